"""User endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from solarcrm.auth.rbac import require_scopes
from solarcrm.core.dependencies import CurrentUser, get_current_user, get_db
from solarcrm.core.exceptions import NotFoundError
from solarcrm.schemas.users import UserResponse, UserUpdateRequest
from solarcrm.services.user_service import UserService

router = APIRouter(tags=["users"])


@router.get("/users")
def list_users(
    role: str | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    require_scopes(user.role, ["users.read"])
    users = UserService(db).list_users(role=role, status=status_filter)
    return {"users": [UserResponse.model_validate(row).model_dump(mode="json") for row in users]}


@router.get("/users/me", response_model=UserResponse)
def get_me(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)) -> UserResponse:
    profile = UserService(db).get_profile(user.id)
    if profile is None:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    return UserResponse.model_validate(profile)


@router.patch("/users/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    payload: UserUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserResponse:
    updated = UserService(db).update_user(user_id, payload.model_dump(exclude_unset=True), user)
    return UserResponse.model_validate(updated)

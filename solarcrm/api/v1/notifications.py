"""Notification endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from solarcrm.auth.rbac import require_scopes
from solarcrm.core.dependencies import CurrentUser, get_current_user, get_db
from solarcrm.schemas.notifications import NotificationResponse
from solarcrm.services.notification_service import NotificationService

router = APIRouter(tags=["notifications"])


@router.get("/notifications")
def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=20, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    require_scopes(user.role, ["notifications.read"])
    rows = NotificationService(db).list_for_user(user.id, unread_only=unread_only, limit=limit)
    return {"notifications": [NotificationResponse.model_validate(row).model_dump(mode="json") for row in rows]}


@router.post("/notifications/{notification_id}/read", response_model=NotificationResponse)
def mark_read(
    notification_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationResponse:
    return NotificationResponse.model_validate(NotificationService(db).mark_read(notification_id, user.id))

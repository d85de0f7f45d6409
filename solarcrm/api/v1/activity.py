"""Activity log endpoints for API v1."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from solarcrm.auth.rbac import require_lead_access, require_scopes
from solarcrm.core.dependencies import CurrentUser, get_current_user, get_db
from solarcrm.models.lead import Lead
from solarcrm.schemas.activity import ActivityListResponse, ActivityResponse
from solarcrm.schemas.common import PaginationInfo
from solarcrm.services.activity_log_service import ActivityLogService, ActivityPage

router = APIRouter(tags=["activity"])


def _page_response(result: ActivityPage) -> ActivityListResponse:
    return ActivityListResponse(
        activities=[ActivityResponse.model_validate(row) for row in result.items],
        pagination=PaginationInfo(page=result.page, limit=result.limit, total=result.total, totalPages=result.total_pages),
    )


@router.get("/activity", response_model=ActivityListResponse)
def list_activity(
    user_id: str | None = Query(default=None, alias="userId"),
    action_type: str | None = Query(default=None, alias="actionType"),
    date_from: datetime | None = Query(default=None, alias="dateFrom"),
    date_to: datetime | None = Query(default=None, alias="dateTo"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=500),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ActivityListResponse:
    require_scopes(user.role, ["activity.read"])
    result = ActivityLogService(db).query(
        user_id=user_id,
        action_contains=action_type,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    return _page_response(result)


@router.get("/leads/{lead_id}/activity", response_model=ActivityListResponse)
def list_lead_activity(
    lead_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=500),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ActivityListResponse:
    require_lead_access(user, db.get(Lead, lead_id), scopes=("activity.lead_read",))
    return _page_response(ActivityLogService(db).query(lead_id=lead_id, page=page, limit=limit))

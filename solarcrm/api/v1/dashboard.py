"""Dashboard metrics endpoint for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from solarcrm.core.dependencies import CurrentUser, get_current_user, get_db
from solarcrm.services.dashboard_service import DashboardService

router = APIRouter(tags=["dashboard"])


@router.get("/dashboard/metrics")
def dashboard_metrics(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)) -> dict:
    return DashboardService(db).get_metrics(user)

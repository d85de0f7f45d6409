"""Page routes behind the route guard.

The UI itself is external; these endpoints answer with the page payload a
client renders. Role gating happens in ``RouteGuardMiddleware`` before any
handler here runs.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from solarcrm.auth.route_guard import DASHBOARD_ROUTES
from solarcrm.core.config import Config
from solarcrm.core.dependencies import CurrentUser, get_current_user, get_db, get_settings
from solarcrm.core.exceptions import NotFoundError
from solarcrm.services.dashboard_service import DashboardService

router = APIRouter(tags=["pages"])


@router.get("/")
def home(
    redirect_to: str | None = Query(default=None, alias="redirectTo"),
    error: str | None = Query(default=None),
    settings: Config = Depends(get_settings),
) -> dict:
    body = {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "api_prefix": settings.API_PREFIX,
        "page": "login",
    }
    if redirect_to:
        body["redirectTo"] = redirect_to
    if error:
        body["error"] = error
    return body


@router.get("/login")
def login_page(redirect_to: str | None = Query(default=None, alias="redirectTo")) -> dict:
    return {"page": "login", "redirectTo": redirect_to}


@router.get("/signup")
def signup_page() -> dict:
    return {"page": "signup"}


@router.get("/auth/callback")
def auth_callback(next_path: str = Query(default="/", alias="next")) -> dict:
    return {"page": "auth_callback", "next": next_path}


@router.get("/{role}/dashboard")
def dashboard_page(
    role: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    if role not in DASHBOARD_ROUTES:
        raise NotFoundError("Page not found")
    return {
        "page": f"{role}_dashboard",
        "user": {"id": user.id, "name": user.name, "role": user.role},
        "metrics": DashboardService(db).get_metrics(user),
    }

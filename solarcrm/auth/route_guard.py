"""Page route guard.

Runs before routing on every request. Dashboard pages are gated by role,
public pages always pass, and anything else (API, docs) passes through to
handlers that enforce their own auth.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import urlencode

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from solarcrm.auth.jwt import PrimarySession, decode_session_token
from solarcrm.auth.rbac import role_name
from solarcrm.auth.session_bridge import resolve_database_identity
from solarcrm.core.config import get_config
from solarcrm.core.exceptions import SolarCRMException
from solarcrm.models.enums import UserRole, UserStatus

logger = logging.getLogger(__name__)

PROTECTED_ROUTES: dict[str, frozenset[str]] = {
    "/admin": frozenset({"admin"}),
    "/office": frozenset({"office", "admin"}),
    "/agent": frozenset({"agent", "admin"}),
    "/installer": frozenset({"installer", "admin"}),
    "/customer": frozenset({"customer", "admin"}),
}

PUBLIC_ROUTES: tuple[str, ...] = ("/", "/login", "/signup", "/auth/callback")

DASHBOARD_ROUTES: dict[str, str] = {
    UserRole.ADMIN.value: "/admin/dashboard",
    UserRole.OFFICE.value: "/office/dashboard",
    UserRole.AGENT.value: "/agent/dashboard",
    UserRole.INSTALLER.value: "/installer/dashboard",
    UserRole.CUSTOMER.value: "/customer/dashboard",
}

HOME_ROUTE = "/"


class Profile(Protocol):
    role: Any
    status: Any


ProfileLoader = Callable[[str], "Profile | None"]


@dataclass(frozen=True)
class GuardDecision:
    allowed: bool
    redirect_to: str | None = None
    reason: str = "pass"


PASS = GuardDecision(allowed=True)


def _segments(path: str) -> list[str]:
    return [segment for segment in path.split("/") if segment]


def _matches(path: str, prefix: str) -> bool:
    """Segment-aware prefix match; ``/admin`` matches ``/admin/x`` but not ``/administrator``."""
    prefix_segments = _segments(prefix)
    if not prefix_segments:
        return not _segments(path)
    return _segments(path)[: len(prefix_segments)] == prefix_segments


def _longest_match(path: str, prefixes: list[str] | tuple[str, ...]) -> str | None:
    matches = [prefix for prefix in prefixes if _matches(path, prefix)]
    if not matches:
        return None
    return max(matches, key=lambda prefix: len(_segments(prefix)))


def is_public_route(path: str) -> bool:
    return _longest_match(path, PUBLIC_ROUTES) is not None


def is_protected_route(path: str) -> bool:
    return _longest_match(path, list(PROTECTED_ROUTES)) is not None


def get_allowed_roles(path: str) -> frozenset[str] | None:
    prefix = _longest_match(path, list(PROTECTED_ROUTES))
    return PROTECTED_ROUTES[prefix] if prefix else None


def get_dashboard_route(role: Any) -> str:
    return DASHBOARD_ROUTES.get(role_name(role), HOME_ROUTE)


def _redirect_home(**params: str) -> str:
    return f"{HOME_ROUTE}?{urlencode(params)}"


def evaluate_request(path: str, user_id: str | None, profile_loader: ProfileLoader) -> GuardDecision:
    """Decide whether a page request passes or where it is redirected.

    ``user_id`` is the identity already resolved from the primary session.
    Profile lookups are lazy: public and unguarded paths never touch the database.
    """
    if user_id and path == HOME_ROUTE:
        profile = profile_loader(user_id)
        if profile is not None and profile.role:
            return GuardDecision(False, get_dashboard_route(profile.role), "authenticated_home")

    if is_public_route(path):
        return PASS

    allowed_roles = get_allowed_roles(path)
    if allowed_roles is None:
        return PASS

    if not user_id:
        return GuardDecision(False, _redirect_home(redirectTo=path), "unauthenticated")

    profile = profile_loader(user_id)
    if profile is None:
        return GuardDecision(False, _redirect_home(redirectTo=path), "missing_profile")

    if role_name(profile.status) == UserStatus.DISABLED.value:
        return GuardDecision(False, _redirect_home(error="account_disabled"), "account_disabled")

    if role_name(profile.role) not in allowed_roles:
        return GuardDecision(False, get_dashboard_route(profile.role), "role_not_allowed")

    return PASS


def load_profile_from_database(primary_session: PrimarySession, cookies: Mapping[str, str]) -> Any:
    """Read the caller's profile through the session bridge; errors mean no profile."""
    from solarcrm.services.user_service import UserService

    try:
        with resolve_database_identity(primary_session, cookies) as client:
            return UserService(client.session).get_profile(primary_session.user_id)
    except SolarCRMException as exc:
        logger.warning(
            "route_guard.profile_lookup_failed",
            extra={"event": "route_guard.profile_lookup_failed", "reason": exc.message},
        )
        return None


class RouteGuardMiddleware(BaseHTTPMiddleware):
    """Apply ``evaluate_request`` to every incoming request."""

    def __init__(self, app, profile_lookup: Callable[[PrimarySession, Mapping[str, str]], Any] | None = None) -> None:
        super().__init__(app)
        self.profile_lookup = profile_lookup or load_profile_from_database

    def _primary_session(self, request: Request) -> PrimarySession | None:
        cfg = get_config()
        token = request.cookies.get(cfg.SESSION_COOKIE_NAME)
        if not token:
            return None
        try:
            return decode_session_token(token, secret=cfg.JWT_SECRET)
        except SolarCRMException:
            return None

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        path = request.url.path
        if not is_public_route(path) and not is_protected_route(path) and path != HOME_ROUTE:
            return await call_next(request)

        primary = self._primary_session(request)
        cookies = dict(request.cookies)

        def _load(user_id: str) -> Any:
            if primary is None or primary.user_id != user_id:
                return None
            return self.profile_lookup(primary, cookies)

        # Profile lookups hit the database; keep them off the event loop.
        decision = await run_in_threadpool(
            evaluate_request, path, primary.user_id if primary else None, _load
        )
        if decision.allowed:
            return await call_next(request)

        logger.info(
            "route_guard.redirect",
            extra={
                "event": "route_guard.redirect",
                "path": path,
                "reason": decision.reason,
                "user_id": primary.user_id if primary else None,
            },
        )
        return RedirectResponse(decision.redirect_to or HOME_ROUTE, status_code=302)

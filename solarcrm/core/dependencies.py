"""Dependency providers for API handlers."""

from __future__ import annotations

from collections.abc import Callable, Generator
from dataclasses import dataclass

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from solarcrm.auth.jwt import PrimarySession, decode_session_token
from solarcrm.auth.session_bridge import DatabaseClient, resolve_database_identity
from solarcrm.auth.supabase_auth import SupabaseAuthClient
from solarcrm.core.config import Config, get_config
from solarcrm.core.exceptions import AuthenticationError, AuthorizationError, NotFoundError
from solarcrm.database.db import new_session
from solarcrm.models.enums import UserStatus
from solarcrm.services.storage import StorageClient, SupabaseStorage
from solarcrm.services.user_service import UserService


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: str
    name: str
    role: str
    status: str
    session: PrimarySession


def get_settings() -> Config:
    """Return validated application configuration."""
    return get_config()


def get_auth_client(settings: Config = Depends(get_settings)) -> SupabaseAuthClient:
    return SupabaseAuthClient.from_config(settings)


def get_session_factory() -> Callable[[], Session]:
    return new_session


def _extract_bearer_token(authorization: str | None) -> str | None:
    if authorization is None or not authorization.strip():
        return None
    parts = authorization.strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError("Authorization header must use Bearer token.")
    return parts[1].strip()


def get_primary_session(request: Request, settings: Config = Depends(get_settings)) -> PrimarySession | None:
    """Decode the primary session from the Authorization header or the session cookie."""
    token = _extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        return None
    return decode_session_token(token, secret=settings.JWT_SECRET)


def get_db_client(
    request: Request,
    primary: PrimarySession | None = Depends(get_primary_session),
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    settings: Config = Depends(get_settings),
) -> Generator[DatabaseClient, None, None]:
    """Yield a per-request database client acting as the caller."""
    client = resolve_database_identity(
        primary,
        request.cookies,
        auth_client=auth_client,
        session_factory=session_factory,
        config=settings,
    )
    try:
        yield client
    finally:
        client.close()


def get_db(client: DatabaseClient = Depends(get_db_client)) -> Session:
    return client.session


def get_storage(
    client: DatabaseClient = Depends(get_db_client),
    settings: Config = Depends(get_settings),
) -> StorageClient:
    return SupabaseStorage.from_config(settings, access_token=client.identity.bearer_token)


def get_current_user(
    request: Request,
    primary: PrimarySession | None = Depends(get_primary_session),
    db: Session = Depends(get_db),
) -> CurrentUser:
    """Resolve the caller; the role always comes from the stored profile."""
    if primary is None:
        raise AuthenticationError("Authentication required")
    profile = UserService(db).get_profile(primary.user_id)
    if profile is None:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    if profile.status == UserStatus.DISABLED:
        raise AuthorizationError("Your account has been disabled.", code="ACCOUNT_DISABLED")

    request.state.user_id = profile.id
    request.state.user_role = profile.role.value
    return CurrentUser(
        id=profile.id,
        email=profile.email,
        name=profile.name,
        role=profile.role.value,
        status=profile.status.value,
        session=primary,
    )

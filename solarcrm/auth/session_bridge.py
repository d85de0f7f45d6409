"""Bridge between the primary session and the identity the database sees.

The primary session is this service's own signed token. Row-level policies
in the database key on the secondary (Supabase) identity, so every request
resolves one of two strategies:

* ``BearerTokenStrategy`` when the primary session embeds a secondary access
  token. The token is verified locally and forwarded as a bearer credential;
  no cookies are read and the auth service is never called.
* ``CookieSessionStrategy`` otherwise. The secondary-system cookie is
  exchanged for a user through the auth service.

Either strategy yields an anonymous identity when it cannot resolve a user.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from sqlalchemy import event, text
from sqlalchemy.orm import Session

from solarcrm.auth.jwt import PrimarySession, decode_jwt
from solarcrm.auth.supabase_auth import SupabaseAuthClient
from solarcrm.core.config import Config, get_config
from solarcrm.core.exceptions import SolarCRMException
from solarcrm.database.db import new_session

logger = logging.getLogger(__name__)

ANON_DATABASE_ROLE = "anon"


@dataclass(frozen=True)
class Identity:
    """Identity evaluated by the database policy engine."""

    source: str
    user_id: str | None = None
    bearer_token: str | None = None
    claims: dict[str, Any] = field(default_factory=dict)
    database_role: str = ANON_DATABASE_ROLE

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


ANONYMOUS = Identity(source="anonymous")


class IdentityStrategy(Protocol):
    def resolve(self) -> Identity: ...


class BearerTokenStrategy:
    """Use the secondary token embedded in the primary session."""

    source = "bearer"

    def __init__(self, access_token: str, jwt_secret: str, database_role: str = "authenticated") -> None:
        self.access_token = access_token
        self.jwt_secret = jwt_secret
        self.database_role = database_role

    def resolve(self) -> Identity:
        try:
            claims = decode_jwt(self.access_token, secret=self.jwt_secret)
        except SolarCRMException as exc:
            logger.info(
                "session_bridge.bearer.invalid",
                extra={"event": "session_bridge.bearer.invalid", "reason": exc.message},
            )
            return ANONYMOUS
        subject = claims.get("sub")
        if not subject:
            return ANONYMOUS
        return Identity(
            source=self.source,
            user_id=str(subject),
            bearer_token=self.access_token,
            claims=claims,
            database_role=self.database_role,
        )


class CookieSessionStrategy:
    """Exchange the secondary-system cookie for a user via the auth service."""

    source = "cookie"

    def __init__(
        self,
        cookies: Mapping[str, str] | None,
        auth_client: SupabaseAuthClient,
        cookie_name: str = "sb-access-token",
        database_role: str = "authenticated",
    ) -> None:
        self.cookies = cookies or {}
        self.auth_client = auth_client
        self.cookie_name = cookie_name
        self.database_role = database_role

    def resolve(self) -> Identity:
        token = self.cookies.get(self.cookie_name)
        if not token:
            return ANONYMOUS
        try:
            user = self.auth_client.get_user(token)
        except SolarCRMException as exc:
            logger.info(
                "session_bridge.cookie.exchange_failed",
                extra={"event": "session_bridge.cookie.exchange_failed", "reason": exc.message},
            )
            return ANONYMOUS
        return Identity(
            source=self.source,
            user_id=user.id,
            bearer_token=token,
            claims={"sub": user.id, "email": user.email, "role": self.database_role},
            database_role=self.database_role,
        )


def select_strategy(
    primary_session: PrimarySession | None,
    cookies: Mapping[str, str] | None,
    auth_client: SupabaseAuthClient,
    config: Config | None = None,
) -> IdentityStrategy:
    cfg = config or get_config()
    if primary_session is not None and primary_session.secondary_access_token:
        return BearerTokenStrategy(
            primary_session.secondary_access_token,
            jwt_secret=cfg.SUPABASE_JWT_SECRET,
            database_role=cfg.DB_RLS_ROLE,
        )
    return CookieSessionStrategy(
        cookies,
        auth_client=auth_client,
        cookie_name=cfg.SUPABASE_AUTH_COOKIE,
        database_role=cfg.DB_RLS_ROLE,
    )


class DatabaseClient:
    """A SQLAlchemy session bound to one resolved identity.

    On PostgreSQL the identity is applied at the start of every transaction so
    ``auth.uid()`` based policies see the caller.
    """

    def __init__(self, session: Session, identity: Identity) -> None:
        self.session = session
        self.identity = identity
        bind = session.get_bind()
        if bind is not None and bind.dialect.name == "postgresql":
            event.listen(session, "after_begin", self._apply_identity)

    @property
    def headers(self) -> dict[str, str]:
        if not self.identity.bearer_token:
            return {}
        return {"Authorization": f"Bearer {self.identity.bearer_token}"}

    def _apply_identity(self, session: Session, transaction: Any, connection: Any) -> None:
        connection.execute(
            text(
                "SELECT set_config('request.jwt.claims', :claims, true), "
                "set_config('request.jwt.claim.sub', :sub, true), "
                "set_config('role', :role, true)"
            ),
            {
                "claims": json.dumps(self.identity.claims, default=str),
                "sub": self.identity.user_id or "",
                "role": self.identity.database_role,
            },
        )

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "DatabaseClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type:
            self.session.rollback()
        self.close()


def resolve_database_identity(
    primary_session: PrimarySession | None,
    cookies: Mapping[str, str] | None = None,
    *,
    auth_client: SupabaseAuthClient | None = None,
    session_factory: Callable[[], Session] | None = None,
    config: Config | None = None,
) -> DatabaseClient:
    """Build a per-request database client acting as the caller."""
    cfg = config or get_config()
    client = auth_client or SupabaseAuthClient.from_config(cfg)
    strategy = select_strategy(primary_session, cookies, client, cfg)
    identity = strategy.resolve()
    factory = session_factory or new_session
    return DatabaseClient(factory(), identity)


def sign_out(primary_session: PrimarySession | None, auth_client: SupabaseAuthClient) -> None:
    """Best-effort secondary sign-out; never blocks the primary logout."""
    if primary_session is None or not primary_session.secondary_access_token:
        return
    try:
        auth_client.sign_out(primary_session.secondary_access_token)
    except SolarCRMException as exc:
        logger.warning(
            "session_bridge.sign_out.failed",
            extra={
                "event": "session_bridge.sign_out.failed",
                "user_id": primary_session.user_id,
                "reason": exc.message,
            },
        )


def database_client_for_token(
    access_token: str,
    *,
    session_factory: Callable[[], Session] | None = None,
    config: Config | None = None,
) -> DatabaseClient:
    """Database client for a secondary token obtained mid-request (sign-in, sign-up)."""
    cfg = config or get_config()
    identity = BearerTokenStrategy(access_token, jwt_secret=cfg.SUPABASE_JWT_SECRET, database_role=cfg.DB_RLS_ROLE).resolve()
    factory = session_factory or new_session
    return DatabaseClient(factory(), identity)

"""JWT token utilities using HS256 signing.

Primary session tokens are issued by this service and embed the secondary
(Supabase) access and refresh tokens so later requests can act as that
identity without another round trip to the auth service.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from solarcrm.core.exceptions import AuthenticationError


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(f"{data}{padding}".encode("ascii"))


def _sign(message: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).digest()
    return _b64url_encode(digest)


def _json_dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), sort_keys=True)


def _now_ts() -> int:
    return int(datetime.now(timezone.utc).timestamp())


def encode_jwt(payload: dict[str, Any], secret: str, ttl: timedelta) -> str:
    """Encode a signed JWT using HS256."""
    if not secret:
        raise AuthenticationError("JWT secret must be configured.")

    now = datetime.now(timezone.utc)
    body = dict(payload)
    body.setdefault("iat", int(now.timestamp()))
    body.setdefault("exp", int((now + ttl).timestamp()))
    body.setdefault("jti", str(uuid.uuid4()))
    header = {"alg": "HS256", "typ": "JWT"}

    header_segment = _b64url_encode(_json_dumps(header).encode("utf-8"))
    payload_segment = _b64url_encode(_json_dumps(body).encode("utf-8"))
    signing_input = f"{header_segment}.{payload_segment}"
    signature = _sign(signing_input, secret=secret)
    return f"{signing_input}.{signature}"


def decode_jwt(token: str, secret: str, verify_exp: bool = True) -> dict[str, Any]:
    """Decode and validate a signed JWT token."""
    if not secret:
        raise AuthenticationError("JWT secret must be configured.")
    if not token:
        raise AuthenticationError("Token is required.")
    try:
        header_segment, payload_segment, signature_segment = token.split(".")
    except ValueError as exc:
        raise AuthenticationError("Invalid token format.") from exc

    signing_input = f"{header_segment}.{payload_segment}"
    expected_signature = _sign(signing_input, secret=secret)
    if not hmac.compare_digest(expected_signature, signature_segment):
        raise AuthenticationError("Invalid token signature.")

    try:
        payload = json.loads(_b64url_decode(payload_segment).decode("utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise AuthenticationError("Invalid token payload.") from exc
    if not isinstance(payload, dict):
        raise AuthenticationError("Invalid token payload.")

    if verify_exp:
        exp = payload.get("exp")
        if exp is None:
            raise AuthenticationError("Token is missing exp claim.")
        if int(exp) < _now_ts():
            raise AuthenticationError("Token has expired.")
    return payload


@dataclass(frozen=True)
class PrimarySession:
    """Decoded primary session token."""

    user_id: str
    email: str
    name: str
    role: str
    status: str
    expires: int
    issued_at: int
    secondary_access_token: str | None = None
    secondary_refresh_token: str | None = None
    secondary_issued_at: int | None = None

    @property
    def has_secondary_token(self) -> bool:
        return bool(self.secondary_access_token)


def create_session_token(
    user: Any,
    secret: str,
    max_age_days: int = 7,
    secondary_access_token: str | None = None,
    secondary_refresh_token: str | None = None,
) -> str:
    """Issue a primary session token for a user profile."""
    role = getattr(user.role, "value", user.role)
    status = getattr(user.status, "value", user.status)
    payload: dict[str, Any] = {
        "sub": str(user.id),
        "email": user.email,
        "name": user.name,
        "role": role,
        "status": status,
        "token_use": "session",
    }
    if secondary_access_token:
        payload["sb_access_token"] = secondary_access_token
        payload["sb_refresh_token"] = secondary_refresh_token
        payload["sb_issued_at"] = _now_ts()
    return encode_jwt(payload=payload, secret=secret, ttl=timedelta(days=max_age_days))


def decode_session_token(token: str, secret: str) -> PrimarySession:
    """Decode a primary session token, raising AuthenticationError when invalid."""
    claims = decode_jwt(token, secret=secret)
    if claims.get("token_use") != "session":
        raise AuthenticationError("Token is not a session token.")
    try:
        return PrimarySession(
            user_id=str(claims["sub"]),
            email=str(claims.get("email", "")),
            name=str(claims.get("name", "")),
            role=str(claims["role"]).lower(),
            status=str(claims.get("status", "active")),
            expires=int(claims["exp"]),
            issued_at=int(claims["iat"]),
            secondary_access_token=claims.get("sb_access_token"),
            secondary_refresh_token=claims.get("sb_refresh_token"),
            secondary_issued_at=claims.get("sb_issued_at"),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise AuthenticationError("Invalid session claims.") from exc


def should_refresh_secondary(primary: PrimarySession, refresh_after_minutes: int, now: int | None = None) -> bool:
    """Report whether the embedded secondary token is older than the refresh window."""
    if not primary.has_secondary_token or not primary.secondary_refresh_token:
        return False
    issued = primary.secondary_issued_at or primary.issued_at
    current = now if now is not None else _now_ts()
    return current - int(issued) >= refresh_after_minutes * 60


def create_secondary_token(user_id: str, email: str, secret: str, ttl_minutes: int = 60) -> str:
    """Mint a token shaped like the auth service's access tokens (local dev and tests)."""
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": "authenticated",
        "aud": "authenticated",
    }
    return encode_jwt(payload=payload, secret=secret, ttl=timedelta(minutes=ttl_minutes))

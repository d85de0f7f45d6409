"""Thin client for the Supabase Auth REST API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import requests

from solarcrm.core.config import Config, get_config
from solarcrm.core.exceptions import AuthenticationError, ConfigurationError, ServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SecondarySession:
    access_token: str
    refresh_token: str | None
    user_id: str
    email: str | None = None
    expires_in: int | None = None
    user_metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SecondaryUser:
    id: str
    email: str | None = None
    user_metadata: dict[str, Any] = field(default_factory=dict)


class SupabaseAuthClient:
    """Password sign-in, sign-up, token refresh and user lookup against GoTrue."""

    def __init__(self, base_url: str | None, anon_key: str | None, timeout: int = 10) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.anon_key = anon_key or ""
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Config | None = None) -> "SupabaseAuthClient":
        cfg = config or get_config()
        return cls(cfg.SUPABASE_URL, cfg.SUPABASE_ANON_KEY, timeout=cfg.HTTP_TIMEOUT_SECONDS)

    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        headers = {"apikey": self.anon_key, "Content-Type": "application/json"}
        headers["Authorization"] = f"Bearer {access_token or self.anon_key}"
        return headers

    def _request(self, method: str, path: str, *, access_token: str | None = None, **kwargs: Any) -> dict[str, Any]:
        if not self.base_url:
            raise ConfigurationError("SUPABASE_URL is not configured.")
        url = f"{self.base_url}/auth/v1/{path.lstrip('/')}"
        try:
            response = requests.request(
                method,
                url,
                headers=self._headers(access_token),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.exceptions.RequestException as exc:
            logger.warning(
                "supabase_auth.request.failed",
                extra={"event": "supabase_auth.request.failed", "path": path, "error": str(exc)},
            )
            raise ServiceError("Authentication service is unavailable.") from exc

        if response.status_code in (400, 401, 403, 422):
            raise AuthenticationError(_error_message(response) or "Invalid credentials.")
        if response.status_code >= 400:
            logger.warning(
                "supabase_auth.request.rejected",
                extra={
                    "event": "supabase_auth.request.rejected",
                    "path": path,
                    "status_code": response.status_code,
                },
            )
            raise ServiceError("Authentication service request failed.")
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise ServiceError("Authentication service returned an invalid response.") from exc

    def sign_in_with_password(self, email: str, password: str) -> SecondarySession:
        body = self._request(
            "POST",
            "token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return _session_from_body(body)

    def sign_up(self, email: str, password: str, metadata: dict[str, Any] | None = None) -> SecondarySession | SecondaryUser:
        """Register a user; returns a session when email confirmation is disabled."""
        body = self._request(
            "POST",
            "signup",
            json={"email": email, "password": password, "data": metadata or {}},
        )
        if body.get("access_token"):
            return _session_from_body(body)
        user = body.get("user") or body
        if not user.get("id"):
            raise ServiceError("Sign-up response did not include a user.")
        return SecondaryUser(id=str(user["id"]), email=user.get("email"), user_metadata=user.get("user_metadata") or {})

    def refresh_session(self, refresh_token: str) -> SecondarySession:
        body = self._request(
            "POST",
            "token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        return _session_from_body(body)

    def get_user(self, access_token: str) -> SecondaryUser:
        body = self._request("GET", "user", access_token=access_token)
        if not body.get("id"):
            raise AuthenticationError("Session is not valid.")
        return SecondaryUser(id=str(body["id"]), email=body.get("email"), user_metadata=body.get("user_metadata") or {})

    def sign_out(self, access_token: str) -> None:
        self._request("POST", "logout", access_token=access_token)


def _error_message(response: requests.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    return body.get("error_description") or body.get("msg") or body.get("message")


def _session_from_body(body: dict[str, Any]) -> SecondarySession:
    user = body.get("user") or {}
    if not body.get("access_token") or not user.get("id"):
        raise AuthenticationError("Authentication response did not include a session.")
    return SecondarySession(
        access_token=body["access_token"],
        refresh_token=body.get("refresh_token"),
        user_id=str(user["id"]),
        email=user.get("email"),
        expires_in=body.get("expires_in"),
        user_metadata=user.get("user_metadata") or {},
    )

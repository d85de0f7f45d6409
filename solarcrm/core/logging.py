"""Request context carried into structured log events."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

from starlette.requests import Request


@dataclass(frozen=True)
class LogContext:
    user_id: str | None = None
    role: str | None = None
    lead_id: str | None = None
    method: str | None = None
    path: str | None = None
    request_id: str | None = None

    @classmethod
    def from_request(cls, request: Request) -> "LogContext":
        """Caller fields are only present once ``get_current_user`` has run."""
        return cls(
            user_id=getattr(request.state, "user_id", None),
            role=getattr(request.state, "user_role", None),
            lead_id=request.path_params.get("lead_id"),
            method=request.method,
            path=request.url.path,
            request_id=request.headers.get("X-Request-ID"),
        )


def build_log_event(event: str, context: LogContext, **fields: Any) -> dict[str, Any]:
    """Merge the context and event fields into one ``extra`` payload."""
    payload: dict[str, Any] = {"timestamp": datetime.now(timezone.utc).isoformat(), "event": event}
    payload.update(asdict(context))
    payload.update(fields)
    return payload

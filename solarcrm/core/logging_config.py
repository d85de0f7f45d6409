"""JSON log output for the API process and scripts."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from solarcrm.core.config import get_config

# Attributes present on every LogRecord; anything else came in through `extra`.
_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

# Credentials that may ride along in auth and storage events.
REDACTED_FIELDS = frozenset(
    {
        "password",
        "access_token",
        "refresh_token",
        "session_token",
        "authorization",
        "secondary_access_token",
        "secondary_refresh_token",
    }
)
REDACTED = "[redacted]"

_NOISY_LOGGERS = ("sqlalchemy.engine", "urllib3", "httpx", "multipart")


def _scrub(key: str, value: Any) -> Any:
    if key.lower() in REDACTED_FIELDS and value:
        return REDACTED
    if isinstance(value, dict):
        return {inner: _scrub(inner, item) for inner, item in value.items()}
    return value


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra`` fields are merged at top level."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and key not in payload:
                payload[key] = _scrub(key, value)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def configure_logging() -> None:
    """Install the JSON handlers on the root logger; a no-op when already configured."""
    config = get_config()
    root = logging.getLogger()
    if root.handlers:
        return

    root.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))
    formatter = JsonFormatter()

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if config.LOG_FILE:
        file_handler = logging.FileHandler(config.LOG_FILE)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    quiet_level = logging.WARNING if config.is_production else logging.INFO
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

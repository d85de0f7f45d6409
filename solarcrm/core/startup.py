"""Startup validation and bootstrap helpers."""

from __future__ import annotations

import logging

from solarcrm.core.config import get_config
from solarcrm.core.logging_config import configure_logging
from solarcrm.database.db import count_step_templates, get_active_database_url, verify_database_connection

logger = logging.getLogger(__name__)


def _warn(event: str, **fields) -> None:
    logger.warning(event, extra={"event": event, **fields})


def _check_auth_services(config) -> None:
    if not config.SUPABASE_URL:
        _warn("startup.auth.supabase_url_missing")
    elif not config.SUPABASE_ANON_KEY:
        _warn("startup.auth.anon_key_missing")


def _check_step_template() -> None:
    # New leads copy the template; an empty one yields empty timelines.
    templates = count_step_templates()
    if templates is None:
        _warn("startup.steps.table_unavailable")
    elif templates == 0:
        _warn("startup.steps.template_empty", hint="run scripts/seed_steps.py")


def validate_startup_config() -> None:
    """Fail-fast config and connectivity checks."""
    config = get_config()
    database_ok = verify_database_connection()
    active_database_url = get_active_database_url()
    if not database_ok and config.DB_CONNECTIVITY_REQUIRED:
        raise RuntimeError("Database connectivity check failed.")
    if not database_ok:
        _warn("startup.database.connectivity_optional_failed")
    else:
        _check_step_template()

    if config.is_production and active_database_url.startswith("sqlite"):
        _warn("startup.production.sqlite_detected")
    _check_auth_services(config)

    logger.info(
        "startup.config.validated",
        extra={
            "event": "startup.config.validated",
            "env": config.ENV,
            "database_url_scheme": active_database_url.split("://", 1)[0],
            "db_connectivity_required": config.DB_CONNECTIVITY_REQUIRED,
            "agent_status_updates_enabled": config.AGENT_STATUS_UPDATES_ENABLED,
            "storage_bucket": config.STORAGE_BUCKET,
        },
    )


def bootstrap() -> None:
    """Initialize logging and validate runtime configuration."""
    configure_logging()
    validate_startup_config()

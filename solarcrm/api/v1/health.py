"""Liveness plus a database check that also reports the step template size."""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from solarcrm.core.config import get_config
from solarcrm.core.dependencies import get_session_factory
from solarcrm.models import StepMaster

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health(session_factory: Callable[[], Session] = Depends(get_session_factory)) -> dict:
    cfg = get_config()
    report = {"status": "ok", "service": cfg.APP_NAME, "version": cfg.APP_VERSION}
    db = session_factory()
    try:
        report["step_templates"] = db.query(StepMaster).count()
        report["database"] = "ok"
    except SQLAlchemyError as exc:
        logger.warning("health.database.unavailable", extra={"event": "health.database.unavailable", "error": str(exc)})
        report["database"] = "unavailable"
    finally:
        db.close()
    return report

"""Append-only activity log.

Entries are written after the primary change has committed, in their own
commit. A failed insert is logged and dropped; it never fails the request
that produced it.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from solarcrm.models.activity_log import ActivityLog
from solarcrm.services.base_service import BaseService

logger = logging.getLogger(__name__)


class ActivityAction:
    LEAD_CREATE = "lead_create"
    LEAD_UPDATE = "lead_update"
    STATUS_CHANGE = "status_change"
    INSTALLER_ASSIGN = "installer_assign"
    STEP_COMPLETE = "step_complete"
    STEP_REOPEN = "step_reopen"
    HALT_STEP = "halt_step"
    ADMIN_OVERRIDE_COMPLETE = "admin_override_complete"
    ADMIN_OVERRIDE_SKIP = "admin_override_skip"
    ADMIN_OVERRIDE_REOPEN = "admin_override_reopen"
    DOCUMENT_UPLOAD = "document_upload"
    DOCUMENT_REPLACE = "document_replace"
    DOCUMENT_DELETE = "document_delete"
    DOCUMENT_MARK_CORRUPTED = "document_mark_corrupted"
    DOCUMENT_MARK_VALID = "document_mark_valid"
    STEP_MASTER_CREATE = "step_master_create"
    STEP_MASTER_UPDATE = "step_master_update"
    STEP_MASTER_DELETE = "step_master_delete"
    STEP_MASTER_REORDER = "step_master_reorder"
    STEP_DOCUMENTS_UPDATE = "step_master_documents_update"
    USER_UPDATE = "user_update"


@dataclass(frozen=True)
class ActivityEntry:
    user_id: str
    action: str
    entity_type: str
    entity_id: str | None = None
    lead_id: str | None = None
    old_value: dict[str, Any] | None = None
    new_value: dict[str, Any] | None = None


@dataclass(frozen=True)
class ActivityPage:
    items: list[ActivityLog]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class ActivityLogService(BaseService):
    def record(self, entry: ActivityEntry) -> bool:
        return self.record_many([entry])

    def record_many(self, entries: list[ActivityEntry]) -> bool:
        """Insert entries in one commit; returns False when the insert failed."""
        if not entries:
            return True
        try:
            self.db.add_all(
                [
                    ActivityLog(
                        lead_id=entry.lead_id,
                        user_id=entry.user_id,
                        action=entry.action,
                        entity_type=entry.entity_type,
                        entity_id=entry.entity_id,
                        old_value=entry.old_value,
                        new_value=entry.new_value,
                    )
                    for entry in entries
                ]
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(
                "activity_log.insert_failed",
                extra={
                    "event": "activity_log.insert_failed",
                    "actions": [entry.action for entry in entries],
                    "lead_id": entries[0].lead_id,
                    "error": str(exc),
                },
            )
            return False
        return True

    def query(
        self,
        lead_id: str | None = None,
        user_id: str | None = None,
        action_contains: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> ActivityPage:
        page = max(page, 1)
        limit = max(limit, 1)
        query = self.db.query(ActivityLog)
        if lead_id:
            query = query.filter(ActivityLog.lead_id == lead_id)
        if user_id:
            query = query.filter(ActivityLog.user_id == user_id)
        if action_contains:
            query = query.filter(ActivityLog.action.ilike(f"%{action_contains}%"))
        if date_from:
            query = query.filter(ActivityLog.timestamp >= date_from)
        if date_to:
            query = query.filter(ActivityLog.timestamp <= date_to)

        total = query.count()
        items = (
            query.order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return ActivityPage(items=items, total=total, page=page, limit=limit)

    def status_history(self, lead_id: str) -> list[ActivityLog]:
        return (
            self.db.query(ActivityLog)
            .filter(ActivityLog.lead_id == lead_id, ActivityLog.action == ActivityAction.STATUS_CHANGE)
            .order_by(ActivityLog.timestamp.asc())
            .all()
        )

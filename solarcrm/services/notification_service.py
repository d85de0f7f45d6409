"""In-app notifications for users."""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from solarcrm.core.exceptions import NotFoundError
from solarcrm.models.notification import Notification
from solarcrm.services.base_service import BaseService

logger = logging.getLogger(__name__)

DOCUMENT_CORRUPTED = "document_corrupted"
DOCUMENT_VALIDATED = "document_validated"
INSTALLER_ASSIGNED = "installer_assigned"


class NotificationService(BaseService):
    def notify(self, user_id: str, notification_type: str, title: str, message: str, lead_id: str | None = None) -> bool:
        """Create a notification in its own commit; failures are logged, not raised."""
        try:
            self.db.add(Notification(user_id=user_id, lead_id=lead_id, type=notification_type, title=title, message=message))
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(
                "notification.insert_failed",
                extra={"event": "notification.insert_failed", "user_id": user_id, "type": notification_type, "error": str(exc)},
            )
            return False
        return True

    def list_for_user(self, user_id: str, unread_only: bool = False, limit: int = 20) -> list[Notification]:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.read.is_(False))
        return query.order_by(Notification.created_at.desc()).limit(limit).all()

    def mark_read(self, notification_id: str, user_id: str) -> Notification:
        notification = self.db.get(Notification, notification_id)
        if notification is None or notification.user_id != user_id:
            raise NotFoundError("Notification not found")
        notification.read = True
        self.commit()
        return notification

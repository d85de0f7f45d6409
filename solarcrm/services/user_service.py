"""User profile service."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from solarcrm.auth.rbac import require_admin, role_name
from solarcrm.core.exceptions import ValidationError
from solarcrm.models.enums import UserRole, UserStatus
from solarcrm.models.user import User
from solarcrm.services.activity_log_service import ActivityAction, ActivityEntry, ActivityLogService
from solarcrm.services.base_service import BaseService
from solarcrm.utils.validators import is_valid_email, is_valid_phone, sanitize_text

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "phone", "role", "status", "assigned_area")


def _plain(value: Any) -> Any:
    return getattr(value, "value", value)


class UserService(BaseService):
    def get_profile(self, user_id: str) -> User | None:
        """Return the profile row, or None when it is missing or unreadable."""
        try:
            return self.db.get(User, user_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning(
                "user.profile_lookup_failed",
                extra={"event": "user.profile_lookup_failed", "user_id": user_id, "error": str(exc)},
            )
            return None

    def get_by_email(self, email: str) -> User | None:
        return self.db.query(User).filter(User.email == email.strip().lower()).first()

    def list_users(self, role: str | None = None, status: str | None = None) -> list[User]:
        query = self.db.query(User)
        try:
            if role:
                query = query.filter(User.role == UserRole(role))
            if status:
                query = query.filter(User.status == UserStatus(status))
        except ValueError as exc:
            raise ValidationError(f"Invalid user filter: {exc}") from exc
        return query.order_by(User.created_at.desc()).all()

    def create_profile(
        self,
        user_id: str,
        email: str,
        name: str,
        phone: str | None = None,
        role: UserRole = UserRole.CUSTOMER,
    ) -> User:
        if not is_valid_email(email):
            raise ValidationError("Invalid email address.")
        if phone and not is_valid_phone(phone):
            raise ValidationError("Invalid phone number format.")
        user = User(
            id=user_id,
            email=email.strip().lower(),
            name=name.strip(),
            phone=sanitize_text(phone),
            role=role,
            status=UserStatus.ACTIVE,
        )
        self.db.add(user)
        self.commit()
        return user

    def update_user(self, user_id: str, fields: dict[str, Any], actor: Any) -> User:
        require_admin(actor, "Only admins can update users.")
        user = self.get_or_404(User, user_id, "User not found")

        changes = {key: value for key, value in fields.items() if key in UPDATABLE_FIELDS and value is not None}
        if "phone" in changes and not is_valid_phone(changes["phone"]):
            raise ValidationError("Invalid phone number format.")
        if "role" in changes:
            changes["role"] = UserRole(role_name(changes["role"]))
        if "status" in changes:
            changes["status"] = UserStatus(_plain(changes["status"]))
        if user.id == actor.id and changes.get("status") == UserStatus.DISABLED:
            raise ValidationError("Admins cannot disable their own account.")

        old_value = {key: _plain(getattr(user, key)) for key in changes}
        for key, value in changes.items():
            setattr(user, key, value)
        self.commit()

        if changes:
            ActivityLogService(self.db).record(
                ActivityEntry(
                    user_id=actor.id,
                    action=ActivityAction.USER_UPDATE,
                    entity_type="user",
                    entity_id=user.id,
                    old_value=old_value,
                    new_value={key: _plain(value) for key, value in changes.items()},
                )
            )
        return user

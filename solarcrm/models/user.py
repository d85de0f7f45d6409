"""User profile model module.

Rows mirror identities issued by the auth service and share their id.
"""

from __future__ import annotations

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from solarcrm.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, enum_type
from solarcrm.models.enums import UserRole, UserStatus


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "users"
    __table_args__ = (Index("idx_users_role", "role"),)

    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32))
    role: Mapped[UserRole] = mapped_column(enum_type(UserRole), nullable=False)
    status: Mapped[UserStatus] = mapped_column(enum_type(UserStatus), default=UserStatus.ACTIVE, nullable=False)
    assigned_area: Mapped[str | None] = mapped_column(String(255))

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

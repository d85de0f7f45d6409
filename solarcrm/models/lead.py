"""Lead model module."""

from __future__ import annotations

from sqlalchemy import ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from solarcrm.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, enum_type
from solarcrm.models.enums import LeadSource, LeadStatus


class Lead(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "leads"
    __table_args__ = (
        Index("idx_leads_status", "status"),
        Index("idx_leads_created_by", "created_by"),
        Index("idx_leads_customer_account_id", "customer_account_id"),
        Index("idx_leads_installer_id", "installer_id"),
        Index("idx_leads_phone", "phone"),
    )

    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320))
    address: Mapped[str] = mapped_column(Text, nullable=False)
    kw_requirement: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False))
    roof_type: Mapped[str | None] = mapped_column(String(64))
    notes: Mapped[str | None] = mapped_column(Text)
    source: Mapped[LeadSource] = mapped_column(enum_type(LeadSource), nullable=False)
    status: Mapped[LeadStatus] = mapped_column(enum_type(LeadStatus), default=LeadStatus.LEAD, nullable=False)
    created_by: Mapped[str | None] = mapped_column(ForeignKey("users.id"))
    customer_account_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"))
    installer_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"))

    steps = relationship("LeadStep", back_populates="lead", cascade="all, delete-orphan")
    documents = relationship("Document", back_populates="lead", cascade="all, delete-orphan")

"""Timeline template steps, their document requirements and per-lead instances."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from solarcrm.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, enum_type
from solarcrm.models.enums import StepStatus, SubmissionType


class StepMaster(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "step_master"

    step_name: Mapped[str] = mapped_column(String(255), nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, unique=True, nullable=False, index=True)
    allowed_roles: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    remarks_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    attachments_allowed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    customer_upload: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    requires_installer_assignment: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    documents = relationship(
        "StepDocument",
        back_populates="step",
        cascade="all, delete-orphan",
        order_by="StepDocument.document_category",
    )


class StepDocument(Base, UUIDPrimaryKeyMixin):
    __tablename__ = "step_documents"
    __table_args__ = (UniqueConstraint("step_id", "document_category", name="uq_step_documents_step_category"),)

    step_id: Mapped[str] = mapped_column(ForeignKey("step_master.id", ondelete="CASCADE"), nullable=False, index=True)
    document_category: Mapped[str] = mapped_column(String(64), nullable=False)
    submission_type: Mapped[SubmissionType] = mapped_column(enum_type(SubmissionType), nullable=False)

    step = relationship("StepMaster", back_populates="documents")


class LeadStep(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "lead_steps"
    __table_args__ = (
        UniqueConstraint("lead_id", "step_id", name="uq_lead_steps_lead_step"),
        Index("idx_lead_steps_status", "status"),
    )

    lead_id: Mapped[str] = mapped_column(ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    step_id: Mapped[str] = mapped_column(ForeignKey("step_master.id", ondelete="CASCADE"), nullable=False, index=True)
    status: Mapped[StepStatus] = mapped_column(enum_type(StepStatus), default=StepStatus.UPCOMING, nullable=False)
    completed_by: Mapped[str | None] = mapped_column(ForeignKey("users.id"))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    remarks: Mapped[str | None] = mapped_column(Text)
    attachments: Mapped[list[str] | None] = mapped_column(JSON)

    lead = relationship("Lead", back_populates="steps")
    step = relationship("StepMaster", lazy="joined")

    @property
    def order_index(self) -> int:
        return self.step.order_index

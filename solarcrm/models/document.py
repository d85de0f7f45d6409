"""Submitted documents: uploaded files and structured forms share one table."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from solarcrm.models.base import Base, UUIDPrimaryKeyMixin, enum_type, utcnow
from solarcrm.models.enums import DocumentStatus, DocumentType


class Document(Base, UUIDPrimaryKeyMixin):
    __tablename__ = "documents"
    __table_args__ = (
        Index("idx_documents_lead_category", "lead_id", "document_category"),
        Index("idx_documents_status", "status"),
    )

    lead_id: Mapped[str] = mapped_column(ForeignKey("leads.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[DocumentType] = mapped_column(enum_type(DocumentType), nullable=False)
    document_category: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[DocumentStatus] = mapped_column(enum_type(DocumentStatus), default=DocumentStatus.VALID, nullable=False)
    is_submitted: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    file_path: Mapped[str | None] = mapped_column(Text)
    file_name: Mapped[str | None] = mapped_column(String(255))
    file_size: Mapped[int | None] = mapped_column(BigInteger)
    mime_type: Mapped[str | None] = mapped_column(String(128))
    form_json: Mapped[dict | None] = mapped_column(JSON)
    uploaded_by: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    lead = relationship("Lead", back_populates="documents")

    @property
    def is_form(self) -> bool:
        return self.form_json is not None

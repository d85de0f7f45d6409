"""Document schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from solarcrm.models.enums import DocumentStatus, DocumentType


class FormSubmissionRequest(BaseModel):
    form_data: dict[str, Any] = Field(min_length=1)


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    lead_id: str
    type: DocumentType
    document_category: str
    status: DocumentStatus
    is_submitted: bool
    file_path: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    mime_type: str | None = None
    form_json: dict[str, Any] | None = None
    uploaded_by: str
    uploaded_at: datetime
    updated_at: datetime | None = None
    signed_url: str | None = None

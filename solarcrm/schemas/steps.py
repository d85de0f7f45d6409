"""Step master and timeline schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from solarcrm.models.enums import StepStatus, SubmissionType


class StepCreateRequest(BaseModel):
    step_name: str = Field(min_length=2, max_length=255)
    order_index: int | None = Field(default=None, ge=1)
    allowed_roles: list[str] = Field(default_factory=lambda: ["admin"])
    remarks_required: bool = False
    attachments_allowed: bool = False
    customer_upload: bool = False
    requires_installer_assignment: bool = False


class StepUpdateRequest(BaseModel):
    step_name: str | None = Field(default=None, min_length=2, max_length=255)
    order_index: int | None = Field(default=None, ge=1)
    allowed_roles: list[str] | None = None
    remarks_required: bool | None = None
    attachments_allowed: bool | None = None
    customer_upload: bool | None = None
    requires_installer_assignment: bool | None = None


class StepOrderItem(BaseModel):
    id: str
    order_index: int = Field(ge=1)


class StepReorderRequest(BaseModel):
    steps: list[StepOrderItem] = Field(min_length=1)


class RequiredDocumentItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    document_category: str = Field(min_length=2, max_length=64)
    submission_type: SubmissionType


class RequiredDocumentsRequest(BaseModel):
    documents: list[RequiredDocumentItem]


class StepResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    step_name: str
    order_index: int
    allowed_roles: list[str]
    remarks_required: bool
    attachments_allowed: bool
    customer_upload: bool
    requires_installer_assignment: bool


class DocumentRequirementStatus(BaseModel):
    document_category: str
    submission_type: SubmissionType
    submitted: bool
    document_id: str | None = None


class LeadStepResponse(BaseModel):
    id: str
    lead_id: str
    step_id: str
    step_name: str
    order_index: int
    status: StepStatus
    completed_by: str | None = None
    completed_at: datetime | None = None
    remarks: str | None = None
    attachments: list[str] | None = None
    allowed_roles: list[str]
    remarks_required: bool
    attachments_allowed: bool
    customer_upload: bool
    requires_installer_assignment: bool
    documents: list[DocumentRequirementStatus] = Field(default_factory=list)


class CompleteStepRequest(BaseModel):
    remarks: str | None = Field(default=None, max_length=5000)
    attachments: list[str] | None = None
    admin_override: bool = False
    skipped: bool = False


class ReopenStepRequest(BaseModel):
    admin_override: bool = False


class RemarksRequest(BaseModel):
    remarks: str | None = Field(default=None, max_length=5000)


class MoveBackwardRequest(BaseModel):
    step_id: str
    remarks: str | None = Field(default=None, max_length=5000)


class MoveBackwardResponse(BaseModel):
    success: bool = True
    message: str
    reopened_steps: list[LeadStepResponse]

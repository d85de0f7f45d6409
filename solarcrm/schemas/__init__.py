"""Pydantic schema package for API contracts."""

from solarcrm.schemas.activity import ActivityListResponse, ActivityResponse
from solarcrm.schemas.auth import CustomerSignupRequest, LoginRequest, SessionResponse, SessionUser
from solarcrm.schemas.common import ErrorBody, ErrorEnvelope, PaginationInfo, SuccessResponse
from solarcrm.schemas.documents import DocumentResponse, FormSubmissionRequest
from solarcrm.schemas.leads import (
    InstallerAssignRequest,
    LeadCreateRequest,
    LeadListResponse,
    LeadResponse,
    LeadStatusUpdateRequest,
    LeadUpdateRequest,
    StatusHistoryItem,
)
from solarcrm.schemas.notifications import NotificationResponse
from solarcrm.schemas.steps import (
    CompleteStepRequest,
    LeadStepResponse,
    MoveBackwardRequest,
    MoveBackwardResponse,
    RemarksRequest,
    ReopenStepRequest,
    RequiredDocumentItem,
    RequiredDocumentsRequest,
    StepCreateRequest,
    StepReorderRequest,
    StepResponse,
    StepUpdateRequest,
)
from solarcrm.schemas.users import UserResponse, UserUpdateRequest

__all__ = [
    "ActivityListResponse",
    "ActivityResponse",
    "CompleteStepRequest",
    "CustomerSignupRequest",
    "DocumentResponse",
    "ErrorBody",
    "ErrorEnvelope",
    "FormSubmissionRequest",
    "InstallerAssignRequest",
    "LeadCreateRequest",
    "LeadListResponse",
    "LeadResponse",
    "LeadStatusUpdateRequest",
    "LeadStepResponse",
    "LeadUpdateRequest",
    "LoginRequest",
    "MoveBackwardRequest",
    "MoveBackwardResponse",
    "NotificationResponse",
    "PaginationInfo",
    "RemarksRequest",
    "ReopenStepRequest",
    "RequiredDocumentItem",
    "RequiredDocumentsRequest",
    "SessionResponse",
    "SessionUser",
    "StatusHistoryItem",
    "StepCreateRequest",
    "StepReorderRequest",
    "StepResponse",
    "StepUpdateRequest",
    "SuccessResponse",
    "UserResponse",
    "UserUpdateRequest",
]

"""SQLAlchemy model package for the SolarCRM schema."""

from solarcrm.models.activity_log import ActivityLog
from solarcrm.models.base import Base
from solarcrm.models.document import Document
from solarcrm.models.enums import (
    FORM_DOCUMENT_CATEGORIES,
    MANDATORY_DOCUMENT_CATEGORIES,
    DocumentStatus,
    DocumentType,
    LeadSource,
    LeadStatus,
    StepStatus,
    SubmissionType,
    UserRole,
    UserStatus,
)
from solarcrm.models.lead import Lead
from solarcrm.models.notification import Notification
from solarcrm.models.step import LeadStep, StepDocument, StepMaster
from solarcrm.models.user import User

__all__ = [
    "ActivityLog",
    "Base",
    "Document",
    "DocumentStatus",
    "DocumentType",
    "FORM_DOCUMENT_CATEGORIES",
    "Lead",
    "LeadSource",
    "LeadStatus",
    "LeadStep",
    "MANDATORY_DOCUMENT_CATEGORIES",
    "Notification",
    "StepDocument",
    "StepMaster",
    "StepStatus",
    "SubmissionType",
    "User",
    "UserRole",
    "UserStatus",
]

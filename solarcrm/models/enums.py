"""Canonical enum values for the SolarCRM schema."""

from __future__ import annotations

import enum


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    OFFICE = "office"
    AGENT = "agent"
    INSTALLER = "installer"
    CUSTOMER = "customer"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    DISABLED = "disabled"


class LeadStatus(str, enum.Enum):
    LEAD = "lead"
    INTERESTED = "interested"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class LeadSource(str, enum.Enum):
    AGENT = "agent"
    OFFICE = "office"
    CUSTOMER = "customer"
    SELF = "self"


class StepStatus(str, enum.Enum):
    UPCOMING = "upcoming"
    PENDING = "pending"
    COMPLETED = "completed"
    HALTED = "halted"


class SubmissionType(str, enum.Enum):
    FORM = "form"
    FILE = "file"


class DocumentType(str, enum.Enum):
    MANDATORY = "mandatory"
    CUSTOMER = "customer"


class DocumentStatus(str, enum.Enum):
    VALID = "valid"
    CORRUPTED = "corrupted"


# Categories that must all be valid before a lead moves to processing.
MANDATORY_DOCUMENT_CATEGORIES: tuple[str, ...] = (
    "aadhar_front",
    "aadhar_back",
    "bijli_bill",
    "bank_passbook",
    "cancelled_cheque",
    "pan_card",
)

# Form-backed categories; everything else is an uploaded file.
FORM_DOCUMENT_CATEGORIES: frozenset[str] = frozenset(
    {
        "customer_profile",
        "quotation",
        "ppa",
        "bank_letter",
        "material_verification",
        "pm_suryaghar",
    }
)

"""Seed the default twenty-step project timeline and its document requirements."""

from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from sqlalchemy.exc import SQLAlchemyError

from solarcrm.database.db import init_schema, new_session
from solarcrm.models import StepDocument, StepMaster
from solarcrm.models.enums import MANDATORY_DOCUMENT_CATEGORIES, SubmissionType

STAFF = ["admin", "office"]
FIELD = ["admin", "office", "agent"]

# (name, allowed roles, remarks required, attachments allowed, customer upload)
DEFAULT_STEPS = [
    ("Lead Created", FIELD, False, False, False),
    ("Initial Contact", FIELD, True, False, False),
    ("Site Survey", FIELD, True, True, False),
    ("Document Collection", FIELD + ["customer"], False, True, True),
    ("PM Suryaghar Form Submission", FIELD + ["customer"], False, False, False),
    ("Proposal Generation", STAFF, True, True, False),
    ("Proposal Approval", STAFF + ["customer"], True, True, True),
    ("Payment/Loan Processing", STAFF, True, True, False),
    ("Installer Assignment", STAFF, True, False, False),
    ("Installation Scheduling", STAFF + ["installer"], True, False, False),
    ("Installation in Progress", STAFF + ["installer"], True, True, False),
    ("Installation Completed", STAFF + ["installer"], True, True, False),
    ("Quality Inspection", STAFF, True, True, False),
    ("Commissioning", STAFF, True, True, False),
    ("Net Meter Application", STAFF, True, True, False),
    ("Net Meter Installation", STAFF, True, True, False),
    ("Subsidy Application", STAFF, True, True, False),
    ("Subsidy Approval", STAFF, True, True, False),
    ("Subsidy Release", STAFF, True, True, False),
    ("Project Closure", STAFF, True, True, False),
]

STEP_DOCUMENTS = {
    "Document Collection": [(category, SubmissionType.FILE) for category in MANDATORY_DOCUMENT_CATEGORIES]
    + [("customer_profile", SubmissionType.FORM)],
    "PM Suryaghar Form Submission": [("pm_suryaghar", SubmissionType.FORM)],
    "Proposal Generation": [("quotation", SubmissionType.FORM)],
    "Proposal Approval": [("ppa", SubmissionType.FORM)],
    "Payment/Loan Processing": [("bank_letter", SubmissionType.FORM)],
    "Quality Inspection": [("material_verification", SubmissionType.FORM)],
}

INSTALLER_GATED_STEPS = {"Installation Scheduling"}


def seed_steps() -> None:
    init_schema()
    db = new_session()
    try:
        if db.query(StepMaster).first() is not None:
            print("Timeline steps already seeded.")
            return

        for order_index, (name, roles, remarks, attachments, customer_upload) in enumerate(DEFAULT_STEPS, start=1):
            step = StepMaster(
                step_name=name,
                order_index=order_index,
                allowed_roles=list(roles),
                remarks_required=remarks,
                attachments_allowed=attachments,
                customer_upload=customer_upload,
                requires_installer_assignment=name in INSTALLER_GATED_STEPS,
            )
            step.documents = [
                StepDocument(document_category=category, submission_type=submission_type)
                for category, submission_type in STEP_DOCUMENTS.get(name, [])
            ]
            db.add(step)
        db.commit()
        print(f"Seeded {len(DEFAULT_STEPS)} timeline steps.")
    except SQLAlchemyError as exc:
        print(f"Error seeding steps: {exc}")
        db.rollback()
    finally:
        db.close()


if __name__ == "__main__":
    seed_steps()

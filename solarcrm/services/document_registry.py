"""Which documents each step requires, and which a lead has submitted."""

from __future__ import annotations

from dataclasses import dataclass

from solarcrm.models.document import Document
from solarcrm.models.enums import DocumentStatus, SubmissionType
from solarcrm.models.step import StepDocument
from solarcrm.services.base_service import BaseService


@dataclass(frozen=True)
class RequiredDocument:
    document_category: str
    submission_type: SubmissionType


@dataclass(frozen=True)
class SubmissionStatus:
    document_category: str
    submission_type: SubmissionType
    submitted: bool
    document_id: str | None = None


def humanize_category(category: str) -> str:
    """``bijli_bill`` -> ``Bijli Bill``"""
    return " ".join(word[:1].upper() + word[1:] for word in category.split("_") if word)


class DocumentRegistry(BaseService):
    def get_required_documents(self, step_id: str) -> list[RequiredDocument]:
        rows = (
            self.db.query(StepDocument)
            .filter(StepDocument.step_id == step_id)
            .order_by(StepDocument.document_category)
            .all()
        )
        return [RequiredDocument(row.document_category, row.submission_type) for row in rows]

    def valid_documents(self, lead_id: str, categories: list[str]) -> dict[str, Document]:
        """Latest valid, submitted document per category."""
        if not categories:
            return {}
        rows = (
            self.db.query(Document)
            .filter(
                Document.lead_id == lead_id,
                Document.document_category.in_(categories),
                Document.is_submitted.is_(True),
                Document.status == DocumentStatus.VALID,
            )
            .order_by(Document.uploaded_at.asc())
            .all()
        )
        return {row.document_category: row for row in rows}

    def get_submission_status(self, lead_id: str, step_id: str) -> list[SubmissionStatus]:
        required = self.get_required_documents(step_id)
        found = self.valid_documents(lead_id, [item.document_category for item in required])
        return [
            SubmissionStatus(
                document_category=item.document_category,
                submission_type=item.submission_type,
                submitted=item.document_category in found,
                document_id=found[item.document_category].id if item.document_category in found else None,
            )
            for item in required
        ]

    def missing_categories(self, lead_id: str, step_id: str) -> list[str]:
        return [item.document_category for item in self.get_submission_status(lead_id, step_id) if not item.submitted]

    def all_satisfied(self, lead_id: str, step_id: str) -> bool:
        return not self.missing_categories(lead_id, step_id)

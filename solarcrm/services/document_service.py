"""Document and form submissions for leads.

A (lead, category) pair holds at most one live document. Submitting again
replaces the previous one: the new artifact is uploaded first, then old rows
are swapped for the new row in one transaction, and superseded artifacts are
removed from storage after the commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from solarcrm.auth.rbac import require_lead_access, require_scopes
from solarcrm.core.config import Config, get_config
from solarcrm.core.exceptions import DatabaseError, NotFoundError, SolarCRMException, ValidationError
from solarcrm.models.document import Document
from solarcrm.models.enums import (
    FORM_DOCUMENT_CATEGORIES,
    MANDATORY_DOCUMENT_CATEGORIES,
    DocumentStatus,
    DocumentType,
    SubmissionType,
)
from solarcrm.models.lead import Lead
from solarcrm.models.step import StepDocument
from solarcrm.services.activity_log_service import ActivityAction, ActivityEntry, ActivityLogService
from solarcrm.services.base_service import BaseService
from solarcrm.services.lead_service import LeadService
from solarcrm.services.notification_service import DOCUMENT_CORRUPTED, DOCUMENT_VALIDATED, NotificationService
from solarcrm.services.storage import StorageClient, SupabaseStorage, build_storage_path
from solarcrm.utils.number_words import amount_in_words, parse_amount
from solarcrm.utils.validators import validate_document_category

logger = logging.getLogger(__name__)

QUOTATION_CATEGORY = "quotation"


@dataclass(frozen=True)
class DocumentView:
    document: Document
    signed_url: str | None = None


def _metadata(document: Document) -> dict[str, Any]:
    return {
        "document_id": document.id,
        "document_category": document.document_category,
        "file_path": document.file_path,
        "file_name": document.file_name,
        "file_size": document.file_size,
        "mime_type": document.mime_type,
        "is_form": document.form_json is not None,
        "status": document.status.value,
        "uploaded_by": document.uploaded_by,
        "uploaded_at": document.uploaded_at.isoformat() if document.uploaded_at else None,
    }


def _format_amount(value: Decimal) -> str:
    if value == value.to_integral_value():
        return str(int(value))
    return f"{value:.2f}"


def enrich_quotation(form_data: dict[str, Any]) -> dict[str, Any]:
    """Derive ``totalCost`` and ``amountInWords`` from system cost and subsidy."""
    enriched = dict(form_data)
    system_cost = parse_amount(enriched.get("systemCost"))
    subsidy = parse_amount(enriched.get("subsidyAmount")) if enriched.get("subsidyAmount") not in (None, "") else Decimal(0)
    if system_cost is not None and subsidy is not None:
        enriched["totalCost"] = _format_amount(system_cost - subsidy)
    if enriched.get("totalCost") not in (None, ""):
        enriched["amountInWords"] = amount_in_words(enriched["totalCost"])
    return enriched


class DocumentService(BaseService):
    def __init__(self, db=None, storage: StorageClient | None = None, config: Config | None = None) -> None:
        super().__init__(db)
        self.config = config or get_config()
        self.storage = storage or SupabaseStorage.from_config(self.config)

    def _lead(self, lead_id: str, actor: Any, scopes: tuple[str, ...]) -> Lead:
        return require_lead_access(actor, self.db.get(Lead, lead_id), scopes=scopes)

    def _expected_submission_type(self, category: str) -> SubmissionType:
        configured = (
            self.db.query(StepDocument.submission_type).filter(StepDocument.document_category == category).first()
        )
        if configured is not None:
            return configured[0]
        return SubmissionType.FORM if category in FORM_DOCUMENT_CATEGORIES else SubmissionType.FILE

    def _check_submission_type(self, category: str, submission_type: SubmissionType) -> None:
        expected = self._expected_submission_type(category)
        if expected != submission_type:
            raise ValidationError(
                f"Category {category} must be submitted as a {expected.value}.",
                details={"expected_submission_type": expected.value},
            )

    def _current_documents(self, lead_id: str, category: str) -> list[Document]:
        return (
            self.db.query(Document)
            .filter(Document.lead_id == lead_id, Document.document_category == category)
            .order_by(Document.uploaded_at.desc())
            .all()
        )

    def _remove_artifacts(self, paths: list[str], lead_id: str) -> None:
        if not paths:
            return
        try:
            self.storage.remove(paths)
        except SolarCRMException as exc:
            logger.warning(
                "document.storage_cleanup_failed",
                extra={"event": "document.storage_cleanup_failed", "lead_id": lead_id, "paths": paths, "error": exc.message},
            )

    def _replace(self, document: Document, actor: Any, uploaded_path: str | None = None) -> Document:
        """Swap prior rows for ``document`` in one transaction, then clean up and audit."""
        lead_id, category = document.lead_id, document.document_category
        try:
            superseded = self._current_documents(lead_id, category)
            superseded_meta = [_metadata(old) for old in superseded]
            for old in superseded:
                self.db.delete(old)
            self.db.flush()
            self.db.add(document)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(
                "document.insert_failed",
                extra={"event": "document.insert_failed", "lead_id": lead_id, "category": category, "error": str(exc)},
            )
            if uploaded_path:
                self._remove_artifacts([uploaded_path], lead_id)
            raise DatabaseError("Failed to save document.") from exc

        stale = {meta["file_path"] for meta in superseded_meta if meta["file_path"]} - {document.file_path}
        self._remove_artifacts(sorted(stale), lead_id)

        entries = [
            ActivityEntry(
                user_id=actor.id,
                lead_id=lead_id,
                action=ActivityAction.DOCUMENT_UPLOAD,
                entity_type="document",
                entity_id=document.id,
                new_value=_metadata(document),
            )
        ]
        if superseded_meta:
            entries.append(
                ActivityEntry(
                    user_id=actor.id,
                    lead_id=lead_id,
                    action=ActivityAction.DOCUMENT_REPLACE,
                    entity_type="document",
                    entity_id=document.id,
                    old_value={"superseded": superseded_meta},
                    new_value=_metadata(document),
                )
            )
        ActivityLogService(self.db).record_many(entries)
        LeadService(self.db).advance_if_documents_complete(lead_id, actor)
        return document

    def submit_file(
        self,
        lead_id: str,
        category: str,
        filename: str | None,
        content: bytes,
        content_type: str | None,
        actor: Any,
    ) -> Document:
        self._lead(lead_id, actor, ("documents.submit",))
        validate_document_category(category)
        self._check_submission_type(category, SubmissionType.FILE)
        if not content:
            raise ValidationError("Uploaded file is empty.")
        if len(content) > self.config.MAX_UPLOAD_BYTES:
            raise ValidationError(
                "Uploaded file exceeds the size limit.",
                details={"max_bytes": self.config.MAX_UPLOAD_BYTES},
            )

        path = build_storage_path(lead_id, category, filename)
        self.storage.upload(path, content, content_type)
        document = Document(
            lead_id=lead_id,
            type=DocumentType.MANDATORY if category in MANDATORY_DOCUMENT_CATEGORIES else DocumentType.CUSTOMER,
            document_category=category,
            status=DocumentStatus.VALID,
            is_submitted=True,
            file_path=path,
            file_name=filename or path.rsplit("/", 1)[-1],
            file_size=len(content),
            mime_type=content_type,
            uploaded_by=actor.id,
        )
        return self._replace(document, actor, uploaded_path=path)

    def submit_form(self, lead_id: str, category: str, form_data: dict[str, Any], actor: Any) -> Document:
        self._lead(lead_id, actor, ("documents.submit",))
        validate_document_category(category)
        self._check_submission_type(category, SubmissionType.FORM)
        if not isinstance(form_data, dict) or not form_data:
            raise ValidationError("form_data must be a non-empty object.")

        payload = enrich_quotation(form_data) if category == QUOTATION_CATEGORY else dict(form_data)
        document = Document(
            lead_id=lead_id,
            type=DocumentType.CUSTOMER,
            document_category=category,
            status=DocumentStatus.VALID,
            is_submitted=True,
            form_json=payload,
            uploaded_by=actor.id,
        )
        return self._replace(document, actor)

    def signed_url(self, document: Document) -> str | None:
        if not document.file_path:
            return None
        return self.storage.create_signed_url(document.file_path, self.config.SIGNED_URL_TTL_SECONDS)

    def get_document(self, lead_id: str, category: str, actor: Any) -> DocumentView:
        self._lead(lead_id, actor, ("documents.read",))
        documents = self._current_documents(lead_id, category)
        if not documents:
            raise NotFoundError("Document not found", code="DOCUMENT_NOT_FOUND")
        document = documents[0]
        return DocumentView(document=document, signed_url=self.signed_url(document))

    def list_documents(self, lead_id: str, actor: Any) -> list[Document]:
        self._lead(lead_id, actor, ("documents.read",))
        return (
            self.db.query(Document)
            .filter(Document.lead_id == lead_id)
            .order_by(Document.document_category.asc(), Document.uploaded_at.desc())
            .all()
        )

    def delete_document(self, lead_id: str, category: str, actor: Any) -> int:
        self._lead(lead_id, actor, ("documents.delete",))
        documents = self._current_documents(lead_id, category)
        if not documents:
            raise NotFoundError("Document not found", code="DOCUMENT_NOT_FOUND")
        removed = [_metadata(document) for document in documents]
        for document in documents:
            self.db.delete(document)
        self.commit()

        self._remove_artifacts([meta["file_path"] for meta in removed if meta["file_path"]], lead_id)
        ActivityLogService(self.db).record_many(
            [
                ActivityEntry(
                    user_id=actor.id,
                    lead_id=lead_id,
                    action=ActivityAction.DOCUMENT_DELETE,
                    entity_type="document",
                    entity_id=meta["document_id"],
                    old_value=meta,
                )
                for meta in removed
            ]
        )
        return len(removed)

    def _set_status(self, document_id: str, status: DocumentStatus, actor: Any) -> tuple[Document, DocumentStatus]:
        require_scopes(actor.role, ["documents.review"])
        document = self.db.get(Document, document_id)
        if document is None:
            raise NotFoundError("Document not found", code="DOCUMENT_NOT_FOUND")
        previous = document.status
        document.status = status
        self.commit()

        action = (
            ActivityAction.DOCUMENT_MARK_CORRUPTED
            if status == DocumentStatus.CORRUPTED
            else ActivityAction.DOCUMENT_MARK_VALID
        )
        ActivityLogService(self.db).record(
            ActivityEntry(
                user_id=actor.id,
                lead_id=document.lead_id,
                action=action,
                entity_type="document",
                entity_id=document.id,
                old_value={"status": previous.value},
                new_value={"status": status.value},
            )
        )
        return document, previous

    def mark_corrupted(self, document_id: str, actor: Any) -> Document:
        document, _ = self._set_status(document_id, DocumentStatus.CORRUPTED, actor)
        label = document.file_name or document.document_category
        NotificationService(self.db).notify(
            document.uploaded_by,
            DOCUMENT_CORRUPTED,
            "Document Marked as Corrupted",
            f'Your uploaded document "{label}" has been marked as corrupted. Please re-upload a valid document.',
            lead_id=document.lead_id,
        )
        return document

    def mark_valid(self, document_id: str, actor: Any) -> Document:
        document, previous = self._set_status(document_id, DocumentStatus.VALID, actor)
        if previous == DocumentStatus.CORRUPTED:
            label = document.file_name or document.document_category
            NotificationService(self.db).notify(
                document.uploaded_by,
                DOCUMENT_VALIDATED,
                "Document Validated",
                f'Your document "{label}" has been validated and marked as valid by an administrator.',
                lead_id=document.lead_id,
            )
            LeadService(self.db).advance_if_documents_complete(document.lead_id, actor)
        return document

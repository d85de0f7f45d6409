"""Document and form submission endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from solarcrm.core.config import Config
from solarcrm.core.dependencies import CurrentUser, get_current_user, get_db, get_settings, get_storage
from solarcrm.core.exceptions import ValidationError
from solarcrm.models.document import Document
from solarcrm.schemas.documents import DocumentResponse, FormSubmissionRequest
from solarcrm.services.document_service import DocumentService
from solarcrm.services.storage import StorageClient

router = APIRouter(tags=["documents"])


def to_document_response(document: Document, signed_url: str | None = None) -> dict:
    payload = DocumentResponse.model_validate(document).model_dump(mode="json")
    payload["signed_url"] = signed_url
    return payload


@router.get("/leads/{lead_id}/documents")
def list_documents(
    lead_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
) -> dict:
    documents = DocumentService(db, storage=storage).list_documents(lead_id, user)
    return {"documents": [to_document_response(document) for document in documents]}


@router.get("/leads/{lead_id}/documents/{category}")
def get_document(
    lead_id: str,
    category: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
) -> dict:
    view = DocumentService(db, storage=storage).get_document(lead_id, category, user)
    return {"document": to_document_response(view.document, view.signed_url)}


async def _read_upload(request: Request, max_bytes: int) -> tuple[str | None, bytes, str | None]:
    form = await request.form()
    upload = form.get("file")
    if not isinstance(upload, UploadFile):
        raise ValidationError("Multipart uploads must include a 'file' field.")
    content = await upload.read(max_bytes + 1)
    return upload.filename, content, upload.content_type


@router.post("/leads/{lead_id}/documents/{category}", status_code=status.HTTP_201_CREATED)
async def submit_document(
    lead_id: str,
    category: str,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
    settings: Config = Depends(get_settings),
) -> dict:
    """Multipart bodies are file uploads; JSON ``{form_data}`` bodies are form submissions."""
    service = DocumentService(db, storage=storage, config=settings)
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("multipart/form-data"):
        filename, content, mime_type = await _read_upload(request, settings.MAX_UPLOAD_BYTES)
        document = await run_in_threadpool(
            service.submit_file, lead_id, category, filename, content, mime_type, user
        )
        return {"document": to_document_response(document)}

    try:
        payload = FormSubmissionRequest.model_validate(await request.json())
    except (ValueError, PydanticValidationError) as exc:
        raise ValidationError("Body must be multipart/form-data or JSON with form_data.") from exc
    document = await run_in_threadpool(service.submit_form, lead_id, category, payload.form_data, user)
    return {"document": to_document_response(document)}


@router.delete("/leads/{lead_id}/documents/{category}")
def delete_document(
    lead_id: str,
    category: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
) -> dict:
    removed = DocumentService(db, storage=storage).delete_document(lead_id, category, user)
    return {"success": True, "deleted": removed}


@router.patch("/documents/{document_id}/corrupted")
def mark_corrupted(
    document_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
) -> dict:
    document = DocumentService(db, storage=storage).mark_corrupted(document_id, user)
    return {"message": "Document marked as corrupted successfully", "document": to_document_response(document)}


@router.patch("/documents/{document_id}/valid")
def mark_valid(
    document_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
) -> dict:
    document = DocumentService(db, storage=storage).mark_valid(document_id, user)
    return {"message": "Document marked as valid successfully", "document": to_document_response(document)}

"""Lead timeline endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from solarcrm.core.dependencies import CurrentUser, get_current_user, get_db
from solarcrm.models.step import LeadStep
from solarcrm.schemas.steps import (
    CompleteStepRequest,
    DocumentRequirementStatus,
    LeadStepResponse,
    MoveBackwardRequest,
    MoveBackwardResponse,
    RemarksRequest,
    ReopenStepRequest,
)
from solarcrm.services.document_registry import SubmissionStatus
from solarcrm.services.timeline_service import TimelineService

router = APIRouter(tags=["timeline"])


def to_lead_step_response(lead_step: LeadStep, documents: list[SubmissionStatus] | None = None) -> LeadStepResponse:
    template = lead_step.step
    return LeadStepResponse(
        id=lead_step.id,
        lead_id=lead_step.lead_id,
        step_id=lead_step.step_id,
        step_name=template.step_name,
        order_index=template.order_index,
        status=lead_step.status,
        completed_by=lead_step.completed_by,
        completed_at=lead_step.completed_at,
        remarks=lead_step.remarks,
        attachments=lead_step.attachments,
        allowed_roles=template.allowed_roles or [],
        remarks_required=template.remarks_required,
        attachments_allowed=template.attachments_allowed,
        customer_upload=template.customer_upload,
        requires_installer_assignment=template.requires_installer_assignment,
        documents=[
            DocumentRequirementStatus(
                document_category=item.document_category,
                submission_type=item.submission_type,
                submitted=item.submitted,
                document_id=item.document_id,
            )
            for item in documents or []
        ],
    )


@router.get("/leads/{lead_id}/steps")
def list_steps(lead_id: str, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)) -> dict:
    items = TimelineService(db).list_timeline(lead_id, user)
    return {
        "steps": [to_lead_step_response(item.lead_step, item.documents).model_dump(mode="json") for item in items]
    }


@router.post("/leads/{lead_id}/steps/{lead_step_id}/complete")
def complete_step(
    lead_id: str,
    lead_step_id: str,
    payload: CompleteStepRequest | None = None,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    payload = payload or CompleteStepRequest()
    lead_step = TimelineService(db).complete_step(
        lead_id,
        lead_step_id,
        user,
        remarks=payload.remarks,
        attachments=payload.attachments,
        admin_override=payload.admin_override,
        skipped=payload.skipped,
    )
    return {"result": to_lead_step_response(lead_step).model_dump(mode="json")}


@router.post("/leads/{lead_id}/steps/{lead_step_id}/reopen")
def reopen_step(
    lead_id: str,
    lead_step_id: str,
    payload: ReopenStepRequest | None = None,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    payload = payload or ReopenStepRequest()
    lead_step = TimelineService(db).reopen_step(lead_id, lead_step_id, user, admin_override=payload.admin_override)
    return {"result": to_lead_step_response(lead_step).model_dump(mode="json")}


@router.post("/leads/{lead_id}/steps/{lead_step_id}/halt")
def halt_step(
    lead_id: str,
    lead_step_id: str,
    payload: RemarksRequest | None = None,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    payload = payload or RemarksRequest()
    lead_step = TimelineService(db).halt_step(lead_id, lead_step_id, user, remarks=payload.remarks)
    return {"result": to_lead_step_response(lead_step).model_dump(mode="json")}


@router.post("/leads/{lead_id}/steps/{lead_step_id}/skip")
def skip_step(
    lead_id: str,
    lead_step_id: str,
    payload: RemarksRequest | None = None,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    payload = payload or RemarksRequest()
    lead_step = TimelineService(db).skip_step(lead_id, lead_step_id, user, remarks=payload.remarks)
    return {"result": to_lead_step_response(lead_step).model_dump(mode="json")}


@router.post("/leads/{lead_id}/admin/move-backward", response_model=MoveBackwardResponse)
def move_backward(
    lead_id: str,
    payload: MoveBackwardRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MoveBackwardResponse:
    result = TimelineService(db).move_backward(lead_id, payload.step_id, user, remarks=payload.remarks)
    return MoveBackwardResponse(
        message=result.message,
        reopened_steps=[to_lead_step_response(step) for step in result.reopened_steps],
    )

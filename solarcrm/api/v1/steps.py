"""Step master administration endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from solarcrm.core.dependencies import CurrentUser, get_current_user, get_db
from solarcrm.schemas.steps import (
    RequiredDocumentItem,
    RequiredDocumentsRequest,
    StepCreateRequest,
    StepReorderRequest,
    StepResponse,
    StepUpdateRequest,
)
from solarcrm.services.step_service import StepService

router = APIRouter(tags=["steps"])


def _documents_payload(documents) -> dict:
    return {
        "documents": [
            RequiredDocumentItem.model_validate(document).model_dump(mode="json") for document in documents
        ]
    }


@router.get("/steps")
def list_steps(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)) -> dict:
    steps = StepService(db).list_steps(user)
    return {"steps": [StepResponse.model_validate(step).model_dump(mode="json") for step in steps]}


@router.post("/steps", response_model=StepResponse, status_code=status.HTTP_201_CREATED)
def create_step(
    payload: StepCreateRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> StepResponse:
    return StepResponse.model_validate(StepService(db).create_step(payload.model_dump(), user))


# Declared before /steps/{step_id} so "reorder" is not captured as an id.
@router.put("/steps/reorder")
def reorder_steps(
    payload: StepReorderRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    steps = StepService(db).reorder([item.model_dump() for item in payload.steps], user)
    return {"steps": [StepResponse.model_validate(step).model_dump(mode="json") for step in steps]}


@router.get("/steps/{step_id}", response_model=StepResponse)
def get_step(step_id: str, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)) -> StepResponse:
    return StepResponse.model_validate(StepService(db).get_step(step_id, user))


@router.patch("/steps/{step_id}", response_model=StepResponse)
def update_step(
    step_id: str,
    payload: StepUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> StepResponse:
    step = StepService(db).update_step(step_id, payload.model_dump(exclude_unset=True), user)
    return StepResponse.model_validate(step)


@router.delete("/steps/{step_id}")
def delete_step(step_id: str, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)) -> dict:
    StepService(db).delete_step(step_id, user)
    return {"success": True}


@router.get("/steps/{step_id}/documents")
def get_step_documents(step_id: str, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)) -> dict:
    return _documents_payload(StepService(db).get_required_documents(step_id, user))


@router.put("/steps/{step_id}/documents")
def set_step_documents(
    step_id: str,
    payload: RequiredDocumentsRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    documents = StepService(db).set_required_documents(
        step_id, [item.model_dump() for item in payload.documents], user
    )
    return _documents_payload(documents)

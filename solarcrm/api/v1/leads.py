"""Lead endpoints for API v1."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from solarcrm.core.dependencies import CurrentUser, get_current_user, get_db
from solarcrm.schemas.common import PaginationInfo
from solarcrm.schemas.leads import (
    InstallerAssignRequest,
    LeadCreateRequest,
    LeadListResponse,
    LeadResponse,
    LeadStatusUpdateRequest,
    LeadUpdateRequest,
    StatusHistoryItem,
)
from solarcrm.services.lead_service import LeadService

router = APIRouter(tags=["leads"])


@router.get("/leads", response_model=LeadListResponse)
def list_leads(
    search: str | None = Query(default=None, max_length=200),
    status_filter: str | None = Query(default=None, alias="status"),
    date_from: datetime | None = Query(default=None, alias="dateFrom"),
    date_to: datetime | None = Query(default=None, alias="dateTo"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LeadListResponse:
    result = LeadService(db).list_leads(
        user,
        search=search,
        status=status_filter,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    return LeadListResponse(
        leads=[LeadResponse.model_validate(lead) for lead in result.items],
        pagination=PaginationInfo(page=result.page, limit=result.limit, total=result.total, totalPages=result.total_pages),
    )


@router.post("/leads", response_model=LeadResponse, status_code=status.HTTP_201_CREATED)
def create_lead(
    payload: LeadCreateRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LeadResponse:
    lead = LeadService(db).create_lead(payload.model_dump(exclude_none=True), user)
    return LeadResponse.model_validate(lead)


@router.get("/leads/{lead_id}", response_model=LeadResponse)
def get_lead(lead_id: str, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)) -> LeadResponse:
    return LeadResponse.model_validate(LeadService(db).get_lead(lead_id, user))


@router.patch("/leads/{lead_id}", response_model=LeadResponse)
def update_lead(
    lead_id: str,
    payload: LeadUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LeadResponse:
    lead = LeadService(db).update_lead(lead_id, payload.model_dump(exclude_unset=True), user)
    return LeadResponse.model_validate(lead)


@router.patch("/leads/{lead_id}/status")
def update_lead_status(
    lead_id: str,
    payload: LeadStatusUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    lead = LeadService(db).transition_status(lead_id, payload.status, user, remarks=payload.remarks)
    return {"lead": LeadResponse.model_validate(lead).model_dump(mode="json")}


@router.get("/leads/{lead_id}/status-history")
def status_history(lead_id: str, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)) -> dict:
    history = LeadService(db).status_history(lead_id, user)
    return {"history": [StatusHistoryItem.model_validate(row, from_attributes=True).model_dump(mode="json") for row in history]}


@router.post("/leads/{lead_id}/installer", response_model=LeadResponse)
def assign_installer(
    lead_id: str,
    payload: InstallerAssignRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LeadResponse:
    return LeadResponse.model_validate(LeadService(db).assign_installer(lead_id, payload.installer_id, user))

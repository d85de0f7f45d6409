"""Lead request/response schemas for API contracts."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from solarcrm.models.enums import LeadSource, LeadStatus
from solarcrm.schemas.common import PaginationInfo


class LeadCreateRequest(BaseModel):
    customer_name: str = Field(min_length=2, max_length=100)
    phone: str = Field(min_length=10, max_length=32)
    email: str | None = Field(default=None, max_length=320)
    address: str = Field(min_length=5, max_length=2000)
    kw_requirement: float | None = Field(default=None, gt=0)
    roof_type: str | None = Field(default=None, max_length=64)
    notes: str | None = Field(default=None, max_length=5000)
    source: LeadSource | None = None
    customer_account_id: str | None = None


class LeadUpdateRequest(BaseModel):
    customer_name: str | None = Field(default=None, min_length=2, max_length=100)
    phone: str | None = Field(default=None, min_length=10, max_length=32)
    email: str | None = Field(default=None, max_length=320)
    address: str | None = Field(default=None, min_length=5, max_length=2000)
    kw_requirement: float | None = Field(default=None, gt=0)
    roof_type: str | None = Field(default=None, max_length=64)
    notes: str | None = Field(default=None, max_length=5000)


class LeadStatusUpdateRequest(BaseModel):
    status: LeadStatus
    remarks: str | None = Field(default=None, max_length=2000)


class InstallerAssignRequest(BaseModel):
    installer_id: str | None = None


class LeadResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    customer_name: str
    phone: str
    email: str | None = None
    address: str
    kw_requirement: float | None = None
    roof_type: str | None = None
    notes: str | None = None
    source: LeadSource
    status: LeadStatus
    created_by: str | None = None
    customer_account_id: str | None = None
    installer_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class LeadListResponse(BaseModel):
    leads: list[LeadResponse]
    pagination: PaginationInfo


class StatusHistoryItem(BaseModel):
    id: str
    timestamp: datetime
    user_id: str
    old_value: dict[str, Any] | None = None
    new_value: dict[str, Any] | None = None

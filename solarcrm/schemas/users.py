"""User schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from solarcrm.models.enums import UserRole, UserStatus


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    phone: str | None = None
    role: UserRole
    status: UserStatus
    assigned_area: str | None = None
    created_at: datetime | None = None


class UserUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=100)
    phone: str | None = Field(default=None, min_length=10, max_length=32)
    role: UserRole | None = None
    status: UserStatus | None = None
    assigned_area: str | None = Field(default=None, max_length=255)

"""Activity log schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from solarcrm.schemas.common import PaginationInfo


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    lead_id: str | None = None
    user_id: str
    action: str
    entity_type: str
    entity_id: str | None = None
    old_value: dict[str, Any] | None = None
    new_value: dict[str, Any] | None = None
    timestamp: datetime


class ActivityListResponse(BaseModel):
    activities: list[ActivityResponse]
    pagination: PaginationInfo

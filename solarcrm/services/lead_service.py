"""Lead service: CRUD, row-scoped listing and status transitions."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import or_

from solarcrm.auth.rbac import STAFF_ROLES, require_lead_access, require_roles, require_scopes, role_name, scope_lead_query
from solarcrm.core.config import get_config
from solarcrm.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from solarcrm.models.document import Document
from solarcrm.models.enums import (
    MANDATORY_DOCUMENT_CATEGORIES,
    DocumentStatus,
    LeadSource,
    LeadStatus,
    UserRole,
    UserStatus,
)
from solarcrm.models.lead import Lead
from solarcrm.models.user import User
from solarcrm.services.activity_log_service import ActivityAction, ActivityEntry, ActivityLogService
from solarcrm.services.base_service import BaseService
from solarcrm.services.notification_service import INSTALLER_ASSIGNED, NotificationService
from solarcrm.services.timeline_service import TimelineService
from solarcrm.utils.validators import sanitize_text, validate_lead_fields
from solarcrm.workflow.state_machine import LEAD_STATUS_MACHINE

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("customer_name", "phone", "email", "address", "kw_requirement", "roof_type", "notes")

SOURCE_BY_ROLE = {
    UserRole.AGENT.value: LeadSource.AGENT,
    UserRole.OFFICE.value: LeadSource.OFFICE,
    UserRole.ADMIN.value: LeadSource.OFFICE,
    UserRole.CUSTOMER.value: LeadSource.SELF,
}


@dataclass(frozen=True)
class LeadPage:
    items: list[Lead]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def _snapshot(lead: Lead, fields: tuple[str, ...] | list[str]) -> dict[str, Any]:
    return {field: getattr(getattr(lead, field), "value", getattr(lead, field)) for field in fields}


class LeadService(BaseService):
    """Service for lead CRUD and status transitions."""

    def _activity(self) -> ActivityLogService:
        return ActivityLogService(self.db)

    def create_lead(self, data: dict[str, Any], actor: Any) -> Lead:
        """Create a lead and its timeline in one transaction."""
        require_scopes(actor.role, ["leads.create"])
        validate_lead_fields(
            customer_name=data.get("customer_name", ""),
            phone=data.get("phone", ""),
            address=data.get("address", ""),
            email=data.get("email"),
        )

        role = role_name(actor.role)
        source = data.get("source") or SOURCE_BY_ROLE.get(role, LeadSource.OFFICE)
        lead = Lead(
            customer_name=data["customer_name"].strip(),
            phone=data["phone"].strip(),
            email=sanitize_text(data.get("email")),
            address=data["address"].strip(),
            kw_requirement=data.get("kw_requirement"),
            roof_type=sanitize_text(data.get("roof_type")),
            notes=sanitize_text(data.get("notes")),
            source=LeadSource(getattr(source, "value", source)),
            status=LeadStatus.LEAD,
            created_by=actor.id,
            customer_account_id=actor.id if role == UserRole.CUSTOMER.value else data.get("customer_account_id"),
        )
        self.db.add(lead)
        self.db.flush()
        TimelineService(self.db).build_timeline(lead.id)
        self.commit()

        logger.info("lead.created", extra={"event": "lead.created", "lead_id": lead.id, "user_id": actor.id})
        self._activity().record(
            ActivityEntry(
                user_id=actor.id,
                lead_id=lead.id,
                action=ActivityAction.LEAD_CREATE,
                entity_type="lead",
                entity_id=lead.id,
                new_value=_snapshot(lead, EDITABLE_FIELDS + ("status", "source")),
            )
        )
        return lead

    def get_lead(self, lead_id: str, actor: Any) -> Lead:
        return require_lead_access(actor, self.db.get(Lead, lead_id))

    def list_leads(
        self,
        actor: Any,
        search: str | None = None,
        status: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> LeadPage:
        require_scopes(actor.role, ["leads.read"])
        page = max(page, 1)
        limit = max(limit, 1)
        query = scope_lead_query(self.db.query(Lead), actor)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(Lead.customer_name.ilike(pattern), Lead.phone.ilike(pattern), Lead.email.ilike(pattern))
            )
        if status:
            try:
                query = query.filter(Lead.status == LeadStatus(status))
            except ValueError as exc:
                raise ValidationError(f"Invalid status: {status}") from exc
        if date_from:
            query = query.filter(Lead.created_at >= date_from)
        if date_to:
            query = query.filter(Lead.created_at <= date_to)

        total = query.count()
        items = query.order_by(Lead.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
        return LeadPage(items=items, total=total, page=page, limit=limit)

    def update_lead(self, lead_id: str, fields: dict[str, Any], actor: Any) -> Lead:
        lead = require_lead_access(actor, self.db.get(Lead, lead_id), scopes=("leads.update",))
        changes = {key: value for key, value in fields.items() if key in EDITABLE_FIELDS}
        if not changes:
            return lead
        validate_lead_fields(
            customer_name=changes.get("customer_name"),
            phone=changes.get("phone"),
            address=changes.get("address"),
            email=changes.get("email"),
        )

        old_value = _snapshot(lead, list(changes))
        for key, value in changes.items():
            setattr(lead, key, value.strip() if isinstance(value, str) else value)
        self.commit()

        self._activity().record(
            ActivityEntry(
                user_id=actor.id,
                lead_id=lead.id,
                action=ActivityAction.LEAD_UPDATE,
                entity_type="lead",
                entity_id=lead.id,
                old_value=old_value,
                new_value=_snapshot(lead, list(changes)),
            )
        )
        return lead

    def _authorize_status_change(self, lead_id: str, actor: Any) -> Lead:
        role = role_name(actor.role)
        agents_enabled = get_config().AGENT_STATUS_UPDATES_ENABLED
        if role not in STAFF_ROLES and not (agents_enabled and role == UserRole.AGENT.value):
            raise AuthorizationError("Only admin, office team, and agents can update status")

        lead = self.db.get(Lead, lead_id)
        if lead is None:
            raise NotFoundError("Lead not found")
        if role == UserRole.AGENT.value and lead.created_by != actor.id:
            raise AuthorizationError("Agents can only update status of their own leads")
        return lead

    def transition_status(self, lead_id: str, requested: str, actor: Any, remarks: str | None = None) -> Lead:
        """Apply a manual status change allowed by the lead lifecycle."""
        lead = self._authorize_status_change(lead_id, actor)
        try:
            target = LeadStatus(getattr(requested, "value", requested))
        except ValueError as exc:
            raise ValidationError(f"Invalid status: {requested}") from exc

        current = lead.status
        message = None
        if current == LeadStatus.INTERESTED and target == LeadStatus.PROCESSING:
            message = (
                f"Invalid status transition from {current.value} to {target.value}. "
                "Status will automatically change to processing when all mandatory documents are submitted and valid."
            )
        LEAD_STATUS_MACHINE.assert_transition(current, target, message=message)

        lead.status = target
        self.commit()
        logger.info(
            "lead.status.changed",
            extra={
                "event": "lead.status.changed",
                "lead_id": lead.id,
                "from_status": current.value,
                "to_status": target.value,
                "user_id": actor.id,
            },
        )

        if remarks:
            self._activity().record(
                ActivityEntry(
                    user_id=actor.id,
                    lead_id=lead.id,
                    action=ActivityAction.STATUS_CHANGE,
                    entity_type="lead",
                    entity_id=lead.id,
                    old_value={"status": current.value},
                    new_value={"status": target.value, "remarks": remarks},
                )
            )
        return lead

    def missing_mandatory_categories(self, lead_id: str) -> list[str]:
        rows = (
            self.db.query(Document.document_category)
            .filter(
                Document.lead_id == lead_id,
                Document.document_category.in_(MANDATORY_DOCUMENT_CATEGORIES),
                Document.status == DocumentStatus.VALID,
                Document.is_submitted.is_(True),
            )
            .distinct()
            .all()
        )
        present = {row[0] for row in rows}
        return [category for category in MANDATORY_DOCUMENT_CATEGORIES if category not in present]

    def advance_if_documents_complete(self, lead_id: str, actor: Any) -> bool:
        """Move interested -> processing once every mandatory document is valid."""
        lead = self.db.get(Lead, lead_id)
        if lead is None or lead.status != LeadStatus.INTERESTED:
            return False
        if self.missing_mandatory_categories(lead_id):
            return False

        lead.status = LeadStatus.PROCESSING
        self.commit()
        logger.info(
            "lead.status.auto_advanced",
            extra={"event": "lead.status.auto_advanced", "lead_id": lead_id, "to_status": LeadStatus.PROCESSING.value},
        )
        self._activity().record(
            ActivityEntry(
                user_id=actor.id,
                lead_id=lead_id,
                action=ActivityAction.STATUS_CHANGE,
                entity_type="lead",
                entity_id=lead_id,
                old_value={"status": LeadStatus.INTERESTED.value},
                new_value={"status": LeadStatus.PROCESSING.value, "remarks": "All mandatory documents submitted"},
            )
        )
        return True

    def assign_installer(self, lead_id: str, installer_id: str | None, actor: Any) -> Lead:
        require_roles(actor, STAFF_ROLES, "Only admin and office team can assign installers.")
        lead = self.get_or_404(Lead, lead_id, "Lead not found")
        if installer_id is not None:
            installer = self.db.get(User, installer_id)
            if installer is None or installer.role != UserRole.INSTALLER:
                raise ValidationError("Assignee must be an installer.")
            if installer.status != UserStatus.ACTIVE:
                raise ValidationError("Installer account is disabled.")

        previous = lead.installer_id
        lead.installer_id = installer_id
        self.commit()

        self._activity().record(
            ActivityEntry(
                user_id=actor.id,
                lead_id=lead.id,
                action=ActivityAction.INSTALLER_ASSIGN,
                entity_type="lead",
                entity_id=lead.id,
                old_value={"installer_id": previous},
                new_value={"installer_id": installer_id},
            )
        )
        if installer_id is not None and installer_id != previous:
            NotificationService(self.db).notify(
                installer_id,
                INSTALLER_ASSIGNED,
                "New Installation Assigned",
                f"You have been assigned to the installation for {lead.customer_name}.",
                lead_id=lead.id,
            )
        return lead

    def status_history(self, lead_id: str, actor: Any, limit: int = 20) -> list[Any]:
        require_lead_access(actor, self.db.get(Lead, lead_id))
        history = ActivityLogService(self.db).status_history(lead_id)
        return list(reversed(history))[:limit]

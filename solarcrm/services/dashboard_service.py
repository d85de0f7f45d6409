"""Per-role dashboard metrics."""

from __future__ import annotations

from typing import Any

from sqlalchemy import func

from solarcrm.auth.rbac import STAFF_ROLES, require_scopes, role_name, scope_lead_query
from solarcrm.models.document import Document
from solarcrm.models.enums import DocumentStatus, LeadStatus, StepStatus, UserRole
from solarcrm.models.lead import Lead
from solarcrm.models.step import LeadStep, StepMaster
from solarcrm.services.base_service import BaseService


class DashboardService(BaseService):
    def _status_counts(self, actor: Any) -> dict[str, int]:
        query = scope_lead_query(self.db.query(Lead.status, func.count(Lead.id)), actor).group_by(Lead.status)
        counts = {status.value: 0 for status in LeadStatus}
        for status, total in query.all():
            counts[status.value] = total
        return counts

    def _visible_lead_ids(self, actor: Any):
        return scope_lead_query(self.db.query(Lead.id), actor)

    def _pending_steps(self, actor: Any, role_filter: str | None = None) -> int:
        query = self.db.query(LeadStep).filter(
            LeadStep.status == StepStatus.PENDING,
            LeadStep.lead_id.in_(self._visible_lead_ids(actor)),
        )
        steps = query.all()
        if role_filter is None:
            return len(steps)
        return sum(1 for step in steps if role_filter in (step.step.allowed_roles or []))

    def _timeline_progress(self, lead_id: str) -> dict[str, Any]:
        steps = (
            self.db.query(LeadStep)
            .join(StepMaster, LeadStep.step_id == StepMaster.id)
            .filter(LeadStep.lead_id == lead_id)
            .order_by(StepMaster.order_index.asc())
            .all()
        )
        completed = sum(1 for step in steps if step.status == StepStatus.COMPLETED)
        current = next((step for step in steps if step.status in (StepStatus.PENDING, StepStatus.HALTED)), None)
        return {
            "lead_id": lead_id,
            "completed_steps": completed,
            "total_steps": len(steps),
            "progress_percent": round(completed * 100 / len(steps)) if steps else 0,
            "current_step": current.step.step_name if current else None,
            "current_step_status": current.status.value if current else None,
        }

    def get_metrics(self, actor: Any) -> dict[str, Any]:
        require_scopes(actor.role, ["dashboard.read"])
        role = role_name(actor.role)
        counts = self._status_counts(actor)
        metrics: dict[str, Any] = {
            "role": role,
            "total_leads": sum(counts.values()),
            "leads_by_status": counts,
        }

        if role in STAFF_ROLES:
            metrics["pending_steps"] = self._pending_steps(actor)
            metrics["documents_corrupted"] = (
                self.db.query(func.count(Document.id)).filter(Document.status == DocumentStatus.CORRUPTED).scalar()
            )
            metrics["processing_without_installer"] = (
                self.db.query(func.count(Lead.id))
                .filter(Lead.status == LeadStatus.PROCESSING, Lead.installer_id.is_(None))
                .scalar()
            )
        elif role == UserRole.AGENT.value:
            metrics["pending_steps"] = self._pending_steps(actor, role_filter=role)
            metrics["conversion_rate"] = (
                round(counts[LeadStatus.COMPLETED.value] * 100 / metrics["total_leads"]) if metrics["total_leads"] else 0
            )
        elif role == UserRole.INSTALLER.value:
            metrics["assigned_leads"] = metrics["total_leads"]
            metrics["pending_steps"] = self._pending_steps(actor, role_filter=role)
        elif role == UserRole.CUSTOMER.value:
            metrics["timelines"] = [self._timeline_progress(lead_id) for (lead_id,) in self._visible_lead_ids(actor).all()]
        return metrics

"""Per-lead timeline of steps and the rules for moving through it.

Each lead gets one LeadStep per StepMaster row. The first step starts
pending and the rest upcoming. Completing a step opens only the step that
immediately follows it by ``order_index``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from solarcrm.auth.rbac import is_admin, require_admin, require_lead_access, role_name
from solarcrm.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidStatusError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from solarcrm.models.enums import LeadStatus, StepStatus
from solarcrm.models.lead import Lead
from solarcrm.models.step import LeadStep, StepMaster
from solarcrm.services.activity_log_service import ActivityAction, ActivityEntry, ActivityLogService
from solarcrm.services.base_service import BaseService
from solarcrm.services.document_registry import DocumentRegistry, SubmissionStatus, humanize_category

logger = logging.getLogger(__name__)

OVERRIDE_COMPLETE_REMARKS = "Admin override completion"
OVERRIDE_SKIP_REMARKS = "Admin override - step skipped"
HALT_REMARKS = "Step halted by admin"
MOVE_BACKWARD_REMARKS = "Admin override - moved timeline backward"


@dataclass(frozen=True)
class TimelineItem:
    lead_step: LeadStep
    documents: list[SubmissionStatus] = field(default_factory=list)


@dataclass(frozen=True)
class MoveBackwardResult:
    target: LeadStep
    reopened_steps: list[LeadStep]

    @property
    def count(self) -> int:
        return len(self.reopened_steps)

    @property
    def message(self) -> str:
        return f"Moved timeline backward, reopened {self.count} step(s)"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _step_state(lead_step: LeadStep) -> dict[str, Any]:
    return {
        "status": lead_step.status.value,
        "completed_by": lead_step.completed_by,
        "completed_at": lead_step.completed_at.isoformat() if lead_step.completed_at else None,
        "remarks": lead_step.remarks,
    }


class TimelineService(BaseService):
    def _ordered_steps(self, lead_id: str) -> list[LeadStep]:
        return (
            self.db.query(LeadStep)
            .join(StepMaster, LeadStep.step_id == StepMaster.id)
            .filter(LeadStep.lead_id == lead_id)
            .order_by(StepMaster.order_index.asc())
            .all()
        )

    def _load_lead(self, lead_id: str, actor: Any, scopes: tuple[str, ...]) -> Lead:
        return require_lead_access(actor, self.db.get(Lead, lead_id), scopes=scopes)

    def _load_lead_step(self, lead_id: str, lead_step_id: str) -> LeadStep:
        lead_step = self.db.get(LeadStep, lead_step_id)
        if lead_step is None or lead_step.lead_id != lead_id:
            raise NotFoundError("Step not found", code="STEP_NOT_FOUND")
        return lead_step

    def _ensure_open_project(self, lead: Lead, actor: Any) -> None:
        if lead.status == LeadStatus.COMPLETED and not is_admin(actor):
            raise AuthorizationError(
                "This project is completed. Only an admin can modify completed projects.",
                code="PROJECT_CLOSED",
            )

    def _ensure_step_role(self, lead_step: LeadStep, actor: Any, verb: str) -> None:
        if is_admin(actor):
            return
        if role_name(actor.role) not in (lead_step.step.allowed_roles or []):
            raise AuthorizationError(f"You are not authorized to {verb} this step")

    def build_timeline(self, lead_id: str) -> list[LeadStep]:
        """Stage one LeadStep per template step; the caller commits."""
        existing = self.db.query(LeadStep.id).filter(LeadStep.lead_id == lead_id).first()
        if existing is not None:
            raise ConflictError("Timeline already initialized for this lead.")

        templates = self.db.query(StepMaster).order_by(StepMaster.order_index.asc()).all()
        steps = [
            LeadStep(
                lead_id=lead_id,
                step_id=template.id,
                status=StepStatus.PENDING if position == 0 else StepStatus.UPCOMING,
            )
            for position, template in enumerate(templates)
        ]
        self.db.add_all(steps)
        self.db.flush()
        return steps

    def initialize_timeline(self, lead_id: str) -> list[LeadStep]:
        self.get_or_404(Lead, lead_id, "Lead not found")
        steps = self.build_timeline(lead_id)
        self.commit()
        logger.info(
            "timeline.initialized",
            extra={"event": "timeline.initialized", "lead_id": lead_id, "steps": len(steps)},
        )
        return steps

    def list_timeline(self, lead_id: str, actor: Any) -> list[TimelineItem]:
        self._load_lead(lead_id, actor, ("timeline.read",))
        registry = DocumentRegistry(self.db)
        return [
            TimelineItem(lead_step=step, documents=registry.get_submission_status(lead_id, step.step_id))
            for step in self._ordered_steps(lead_id)
        ]

    def _open_next_step(self, lead_step: LeadStep) -> LeadStep | None:
        following = (
            self.db.query(LeadStep)
            .join(StepMaster, LeadStep.step_id == StepMaster.id)
            .filter(LeadStep.lead_id == lead_step.lead_id, StepMaster.order_index > lead_step.step.order_index)
            .order_by(StepMaster.order_index.asc())
            .first()
        )
        if following is not None and following.status == StepStatus.UPCOMING:
            following.status = StepStatus.PENDING
            return following
        return None

    def complete_step(
        self,
        lead_id: str,
        lead_step_id: str,
        actor: Any,
        remarks: str | None = None,
        attachments: list[str] | None = None,
        admin_override: bool = False,
        skipped: bool = False,
    ) -> LeadStep:
        """Complete a step and open the one after it, in a single transaction."""
        lead = self._load_lead(lead_id, actor, ("timeline.complete",))
        self._ensure_open_project(lead, actor)
        if admin_override and not is_admin(actor):
            raise AuthorizationError("Only admins can override step completion.")

        lead_step = self._load_lead_step(lead_id, lead_step_id)
        self._ensure_step_role(lead_step, actor, "complete")
        template = lead_step.step

        if lead_step.status == StepStatus.COMPLETED:
            raise InvalidStatusError("This step is already completed")
        if lead_step.status == StepStatus.HALTED and not admin_override:
            raise InvalidStatusError("This step is halted. Only an admin override can complete it.")
        if lead_step.status != StepStatus.PENDING and not admin_override:
            raise InvalidStatusError("Only the current pending step can be completed")

        remarks = (remarks or "").strip() or None
        if admin_override and remarks is None:
            remarks = OVERRIDE_SKIP_REMARKS if skipped else OVERRIDE_COMPLETE_REMARKS
        if template.remarks_required and not remarks:
            raise ValidationError("Remarks are required for this step")
        if attachments and not template.attachments_allowed:
            raise ValidationError("Attachments are not allowed for this step")

        if not admin_override:
            if template.requires_installer_assignment and not lead.installer_id:
                raise PreconditionFailedError("An installer must be assigned before completing this step.")
            missing = DocumentRegistry(self.db).missing_categories(lead_id, lead_step.step_id)
            if missing:
                names = ", ".join(humanize_category(category) for category in missing)
                raise PreconditionFailedError(
                    f"Cannot complete step. Missing required documents: {names}",
                    code="MISSING_DOCUMENTS",
                    details={"missing_documents": missing},
                )

        old_state = _step_state(lead_step)
        lead_step.status = StepStatus.COMPLETED
        lead_step.completed_by = actor.id
        lead_step.completed_at = _now()
        lead_step.remarks = remarks
        lead_step.attachments = list(attachments) if attachments else None
        opened = self._open_next_step(lead_step)
        self.commit()

        if admin_override:
            action = ActivityAction.ADMIN_OVERRIDE_SKIP if skipped else ActivityAction.ADMIN_OVERRIDE_COMPLETE
        else:
            action = ActivityAction.STEP_COMPLETE
        logger.info(
            "timeline.step.completed",
            extra={
                "event": "timeline.step.completed",
                "lead_id": lead_id,
                "lead_step_id": lead_step.id,
                "next_step_id": opened.id if opened else None,
                "action": action,
            },
        )
        ActivityLogService(self.db).record(
            ActivityEntry(
                user_id=actor.id,
                lead_id=lead_id,
                action=action,
                entity_type="lead_step",
                entity_id=lead_step.id,
                old_value=old_state,
                new_value={"status": StepStatus.COMPLETED.value, "remarks": remarks, "step_name": template.step_name},
            )
        )
        return lead_step

    def skip_step(self, lead_id: str, lead_step_id: str, actor: Any, remarks: str | None = None) -> LeadStep:
        require_admin(actor, "Only admins can skip steps.")
        return self.complete_step(lead_id, lead_step_id, actor, remarks=remarks, admin_override=True, skipped=True)

    def reopen_step(self, lead_id: str, lead_step_id: str, actor: Any, admin_override: bool = False) -> LeadStep:
        lead = self._load_lead(lead_id, actor, ("timeline.complete",))
        self._ensure_open_project(lead, actor)
        if admin_override and not is_admin(actor):
            raise AuthorizationError("Only admins can override step reopening.")

        lead_step = self._load_lead_step(lead_id, lead_step_id)
        if lead_step.status != StepStatus.COMPLETED:
            raise InvalidStatusError("Only completed steps can be reopened")
        self._ensure_step_role(lead_step, actor, "reopen")

        old_state = _step_state(lead_step)
        lead_step.status = StepStatus.PENDING
        lead_step.completed_by = None
        lead_step.completed_at = None
        lead_step.remarks = None
        self.commit()

        action = ActivityAction.ADMIN_OVERRIDE_REOPEN if is_admin(actor) else ActivityAction.STEP_REOPEN
        ActivityLogService(self.db).record(
            ActivityEntry(
                user_id=actor.id,
                lead_id=lead_id,
                action=action,
                entity_type="lead_step",
                entity_id=lead_step.id,
                old_value=old_state,
                new_value={"status": StepStatus.PENDING.value},
            )
        )
        return lead_step

    def halt_step(self, lead_id: str, lead_step_id: str, actor: Any, remarks: str | None = None) -> LeadStep:
        require_admin(actor, "Only admins can halt steps.")
        self.get_or_404(Lead, lead_id, "Lead not found")
        lead_step = self._load_lead_step(lead_id, lead_step_id)

        old_state = _step_state(lead_step)
        lead_step.status = StepStatus.HALTED
        lead_step.completed_by = actor.id
        lead_step.completed_at = _now()
        lead_step.remarks = (remarks or "").strip() or HALT_REMARKS
        self.commit()

        ActivityLogService(self.db).record(
            ActivityEntry(
                user_id=actor.id,
                lead_id=lead_id,
                action=ActivityAction.HALT_STEP,
                entity_type="lead_step",
                entity_id=lead_step.id,
                old_value=old_state,
                new_value={"status": StepStatus.HALTED.value, "remarks": lead_step.remarks},
            )
        )
        return lead_step

    def move_backward(self, lead_id: str, lead_step_id: str, actor: Any, remarks: str | None = None) -> MoveBackwardResult:
        """Reopen the target step and reset every later step to upcoming."""
        require_admin(actor, "Admin access required")
        self.get_or_404(Lead, lead_id, "Lead not found")
        target = self._load_lead_step(lead_id, lead_step_id)
        target_order = target.step.order_index
        target_remarks = (remarks or "").strip() or MOVE_BACKWARD_REMARKS

        affected = [step for step in self._ordered_steps(lead_id) if step.step.order_index >= target_order]
        entries = []
        for step in affected:
            old_state = _step_state(step)
            is_target = step.id == target.id
            step.status = StepStatus.PENDING if is_target else StepStatus.UPCOMING
            step.completed_by = None
            step.completed_at = None
            step.remarks = target_remarks if is_target else None
            entries.append(
                ActivityEntry(
                    user_id=actor.id,
                    lead_id=lead_id,
                    action=ActivityAction.ADMIN_OVERRIDE_REOPEN,
                    entity_type="lead_step",
                    entity_id=step.id,
                    old_value=old_state,
                    new_value={"status": step.status.value, "remarks": step.remarks},
                )
            )
        self.commit()

        logger.info(
            "timeline.moved_backward",
            extra={"event": "timeline.moved_backward", "lead_id": lead_id, "reopened": len(affected)},
        )
        ActivityLogService(self.db).record_many(entries)
        return MoveBackwardResult(target=target, reopened_steps=affected)

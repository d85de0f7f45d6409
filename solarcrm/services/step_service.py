"""Administration of the step master template and its document requirements."""

from __future__ import annotations

from typing import Any

from solarcrm.auth.rbac import require_admin, require_scopes
from solarcrm.core.exceptions import ConflictError, ValidationError
from solarcrm.models.enums import SubmissionType, UserRole
from solarcrm.models.step import LeadStep, StepDocument, StepMaster
from solarcrm.services.activity_log_service import ActivityAction, ActivityEntry, ActivityLogService
from solarcrm.services.base_service import BaseService
from solarcrm.services.document_registry import DocumentRegistry, RequiredDocument
from solarcrm.utils.validators import validate_document_category

STEP_FIELDS = (
    "step_name",
    "order_index",
    "allowed_roles",
    "remarks_required",
    "attachments_allowed",
    "customer_upload",
    "requires_installer_assignment",
)
VALID_ROLES = {role.value for role in UserRole}


def _snapshot(step: StepMaster) -> dict[str, Any]:
    return {name: getattr(step, name) for name in STEP_FIELDS}


def _validate_roles(roles: list[str]) -> list[str]:
    invalid = sorted(set(roles) - VALID_ROLES)
    if invalid:
        raise ValidationError(f"Unknown roles: {', '.join(invalid)}")
    return list(dict.fromkeys(roles))


class StepService(BaseService):
    def _record(self, actor: Any, action: str, entity_id: str | None, old=None, new=None) -> None:
        ActivityLogService(self.db).record(
            ActivityEntry(
                user_id=actor.id,
                action=action,
                entity_type="step_master",
                entity_id=entity_id,
                old_value=old,
                new_value=new,
            )
        )

    def _ensure_order_free(self, order_index: int, exclude_id: str | None = None) -> None:
        query = self.db.query(StepMaster.id).filter(StepMaster.order_index == order_index)
        if exclude_id:
            query = query.filter(StepMaster.id != exclude_id)
        if query.first() is not None:
            raise ConflictError(f"A step with order_index {order_index} already exists.")

    def list_steps(self, actor: Any) -> list[StepMaster]:
        require_scopes(actor.role, ["steps.read"])
        return self.db.query(StepMaster).order_by(StepMaster.order_index.asc()).all()

    def get_step(self, step_id: str, actor: Any) -> StepMaster:
        require_scopes(actor.role, ["steps.read"])
        return self.get_or_404(StepMaster, step_id, "Step not found")

    def create_step(self, data: dict[str, Any], actor: Any) -> StepMaster:
        require_admin(actor, "Only admins can manage steps.")
        if data.get("order_index") is None:
            last = self.db.query(StepMaster).order_by(StepMaster.order_index.desc()).first()
            data = {**data, "order_index": (last.order_index + 1) if last else 1}
        self._ensure_order_free(data["order_index"])

        step = StepMaster(
            step_name=data["step_name"].strip(),
            order_index=data["order_index"],
            allowed_roles=_validate_roles(data.get("allowed_roles") or [UserRole.ADMIN.value]),
            remarks_required=bool(data.get("remarks_required", False)),
            attachments_allowed=bool(data.get("attachments_allowed", False)),
            customer_upload=bool(data.get("customer_upload", False)),
            requires_installer_assignment=bool(data.get("requires_installer_assignment", False)),
        )
        self.db.add(step)
        self.commit()
        self._record(actor, ActivityAction.STEP_MASTER_CREATE, step.id, new=_snapshot(step))
        return step

    def update_step(self, step_id: str, fields: dict[str, Any], actor: Any) -> StepMaster:
        require_admin(actor, "Only admins can manage steps.")
        step = self.get_or_404(StepMaster, step_id, "Step not found")
        changes = {key: value for key, value in fields.items() if key in STEP_FIELDS and value is not None}
        if "order_index" in changes:
            self._ensure_order_free(changes["order_index"], exclude_id=step.id)
        if "allowed_roles" in changes:
            changes["allowed_roles"] = _validate_roles(changes["allowed_roles"])

        old_value = _snapshot(step)
        for key, value in changes.items():
            setattr(step, key, value)
        self.commit()
        self._record(actor, ActivityAction.STEP_MASTER_UPDATE, step.id, old=old_value, new=_snapshot(step))
        return step

    def delete_step(self, step_id: str, actor: Any) -> None:
        require_admin(actor, "Only admins can manage steps.")
        step = self.get_or_404(StepMaster, step_id, "Step not found")
        old_value = _snapshot(step)
        self.db.query(LeadStep).filter(LeadStep.step_id == step.id).delete(synchronize_session=False)
        self.db.delete(step)
        self.commit()
        self._record(actor, ActivityAction.STEP_MASTER_DELETE, step_id, old=old_value)

    def reorder(self, ordering: list[dict[str, Any]], actor: Any) -> list[StepMaster]:
        """Apply a new ordering atomically; every listed id must exist."""
        require_admin(actor, "Only admins can manage steps.")
        if not ordering:
            raise ValidationError("Ordering must not be empty.")
        targets = {item["id"]: int(item["order_index"]) for item in ordering}
        if len(set(targets.values())) != len(targets):
            raise ValidationError("order_index values must be unique.")

        steps = {step.id: step for step in self.db.query(StepMaster).all()}
        unknown = sorted(set(targets) - set(steps))
        if unknown:
            raise ValidationError(f"Unknown step ids: {', '.join(unknown)}")
        final = {step_id: targets.get(step_id, step.order_index) for step_id, step in steps.items()}
        if len(set(final.values())) != len(final):
            raise ConflictError("Reordering would duplicate an order_index.")

        old_value = {step_id: step.order_index for step_id, step in steps.items() if step_id in targets}
        # Park moved rows on negative indexes first so the unique constraint holds mid-flush.
        for position, step_id in enumerate(targets, start=1):
            steps[step_id].order_index = -position
        self.db.flush()
        for step_id, order_index in targets.items():
            steps[step_id].order_index = order_index
        self.commit()

        self._record(actor, ActivityAction.STEP_MASTER_REORDER, None, old=old_value, new=targets)
        return self.db.query(StepMaster).order_by(StepMaster.order_index.asc()).all()

    def get_required_documents(self, step_id: str, actor: Any) -> list[RequiredDocument]:
        require_scopes(actor.role, ["steps.read"])
        self.get_or_404(StepMaster, step_id, "Step not found")
        return DocumentRegistry(self.db).get_required_documents(step_id)

    def set_required_documents(self, step_id: str, documents: list[dict[str, Any]], actor: Any) -> list[RequiredDocument]:
        """Replace the step's document requirements in one transaction."""
        require_admin(actor, "Only admins can manage steps.")
        step = self.get_or_404(StepMaster, step_id, "Step not found")
        requested: dict[str, SubmissionType] = {}
        for item in documents:
            category = validate_document_category(item["document_category"])
            if category in requested:
                raise ValidationError(f"Duplicate document category: {category}")
            requested[category] = SubmissionType(getattr(item["submission_type"], "value", item["submission_type"]))

        registry = DocumentRegistry(self.db)
        old_value = {doc.document_category: doc.submission_type.value for doc in registry.get_required_documents(step_id)}
        self.db.query(StepDocument).filter(StepDocument.step_id == step.id).delete(synchronize_session=False)
        self.db.add_all(
            [
                StepDocument(step_id=step.id, document_category=category, submission_type=submission_type)
                for category, submission_type in requested.items()
            ]
        )
        self.commit()
        self.db.expire(step, ["documents"])

        self._record(
            actor,
            ActivityAction.STEP_DOCUMENTS_UPDATE,
            step.id,
            old=old_value,
            new={category: submission_type.value for category, submission_type in requested.items()},
        )
        return registry.get_required_documents(step_id)

from __future__ import annotations

from itertools import combinations

import pytest

from solarcrm.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidStatusError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from solarcrm.models import ActivityLog, Document, LeadStep
from solarcrm.models.enums import DocumentStatus, DocumentType, LeadStatus, StepStatus
from solarcrm.services.activity_log_service import ActivityAction
from solarcrm.services.timeline_service import (
    HALT_REMARKS,
    MOVE_BACKWARD_REMARKS,
    OVERRIDE_COMPLETE_REMARKS,
    OVERRIDE_SKIP_REMARKS,
    TimelineService,
)

DOCUMENT_STEP_CATEGORIES = ("aadhar_front", "bijli_bill", "customer_profile")


def _timeline(db, lead):
    return {step.step.order_index: step for step in db.query(LeadStep).filter(LeadStep.lead_id == lead.id).all()}


def _statuses(db, lead):
    return {order: step.status for order, step in sorted(_timeline(db, lead).items())}


def _make_current(db, lead, order):
    """Mark earlier steps completed so the step at `order` is the pending one."""
    for index, step in _timeline(db, lead).items():
        if index < order:
            step.status = StepStatus.COMPLETED
        elif index == order:
            step.status = StepStatus.PENDING
        else:
            step.status = StepStatus.UPCOMING
    db.commit()


def _submit(db, lead, uploader, category, status=DocumentStatus.VALID):
    is_form = category == "customer_profile"
    db.add(
        Document(
            lead_id=lead.id,
            type=DocumentType.CUSTOMER if is_form else DocumentType.MANDATORY,
            document_category=category,
            status=status,
            file_path=None if is_form else f"leads/{lead.id}/{category}_1.jpg",
            form_json={"name": "Ravi"} if is_form else None,
            uploaded_by=uploader.id,
        )
    )
    db.commit()


def test_build_timeline_twice_conflicts(db, make_lead):
    lead = make_lead()
    with pytest.raises(ConflictError):
        TimelineService(db).build_timeline(lead.id)


def test_initialize_timeline_rebuilds_from_template(db, make_lead):
    lead = make_lead()
    db.query(LeadStep).filter(LeadStep.lead_id == lead.id).delete()
    db.commit()

    steps = TimelineService(db).initialize_timeline(lead.id)

    assert len(steps) == 4
    assert _statuses(db, lead) == {
        1: StepStatus.PENDING,
        2: StepStatus.UPCOMING,
        3: StepStatus.UPCOMING,
        4: StepStatus.UPCOMING,
    }


def test_initialize_timeline_errors(db, make_lead):
    lead = make_lead()
    service = TimelineService(db)

    with pytest.raises(NotFoundError, match="Lead not found"):
        service.initialize_timeline("no-such-lead")
    with pytest.raises(ConflictError, match="already initialized"):
        service.initialize_timeline(lead.id)
    assert db.query(LeadStep).filter(LeadStep.lead_id == lead.id).count() == 4


def test_list_timeline_is_ordered_with_document_status(db, users, make_lead):
    lead = make_lead()
    _submit(db, lead, users["agent"], "bijli_bill")

    items = TimelineService(db).list_timeline(lead.id, users["agent"])

    assert [item.lead_step.step.step_name for item in items] == [
        "Lead Created",
        "Document Collection",
        "Installation Scheduling",
        "Project Closure",
    ]
    submitted = {doc.document_category: doc.submitted for doc in items[1].documents}
    assert submitted == {"aadhar_front": False, "bijli_bill": True, "customer_profile": False}


def test_complete_step_advances_exactly_the_next_step(db, users, make_lead):
    lead = make_lead()
    first = _timeline(db, lead)[1]

    completed = TimelineService(db).complete_step(lead.id, first.id, users["agent"])

    assert completed.status == StepStatus.COMPLETED
    assert completed.completed_by == users["agent"].id
    assert completed.completed_at is not None
    assert _statuses(db, lead) == {
        1: StepStatus.COMPLETED,
        2: StepStatus.PENDING,
        3: StepStatus.UPCOMING,
        4: StepStatus.UPCOMING,
    }
    entry = db.query(ActivityLog).filter(ActivityLog.action == ActivityAction.STEP_COMPLETE).one()
    assert entry.entity_id == first.id


@pytest.mark.parametrize(
    "submitted",
    [subset for size in range(len(DOCUMENT_STEP_CATEGORIES)) for subset in combinations(DOCUMENT_STEP_CATEGORIES, size)],
)
def test_partial_submissions_block_completion(db, users, make_lead, submitted):
    lead = make_lead()
    for category in submitted:
        _submit(db, lead, users["agent"], category)
    _make_current(db, lead, 2)
    step = _timeline(db, lead)[2]

    with pytest.raises(PreconditionFailedError) as exc:
        TimelineService(db).complete_step(lead.id, step.id, users["agent"])

    assert exc.value.code == "MISSING_DOCUMENTS"
    assert sorted(exc.value.details["missing_documents"]) == sorted(set(DOCUMENT_STEP_CATEGORIES) - set(submitted))
    db.refresh(step)
    assert step.status != StepStatus.COMPLETED


def test_corrupted_submission_counts_as_missing(db, users, make_lead):
    lead = make_lead()
    _submit(db, lead, users["agent"], "aadhar_front")
    _submit(db, lead, users["agent"], "bijli_bill", status=DocumentStatus.CORRUPTED)
    _submit(db, lead, users["agent"], "customer_profile")
    _make_current(db, lead, 2)
    step = _timeline(db, lead)[2]

    with pytest.raises(PreconditionFailedError, match="Bijli Bill"):
        TimelineService(db).complete_step(lead.id, step.id, users["agent"])


def test_complete_document_step_when_all_submitted(db, users, make_lead):
    lead = make_lead()
    for category in DOCUMENT_STEP_CATEGORIES:
        _submit(db, lead, users["customer"], category)
    _make_current(db, lead, 2)
    step = _timeline(db, lead)[2]

    TimelineService(db).complete_step(lead.id, step.id, users["agent"])
    assert _statuses(db, lead)[3] == StepStatus.PENDING


def test_completion_only_opens_upcoming_next_step(db, users, make_lead):
    lead = make_lead()
    timeline = _timeline(db, lead)
    service = TimelineService(db)
    service.halt_step(lead.id, timeline[2].id, users["admin"])

    service.complete_step(lead.id, timeline[1].id, users["agent"])

    assert _statuses(db, lead)[2] == StepStatus.HALTED


def test_installer_assignment_is_a_precondition(db, users, make_lead):
    lead = make_lead()
    _make_current(db, lead, 3)
    step = _timeline(db, lead)[3]
    service = TimelineService(db)

    with pytest.raises(PreconditionFailedError, match="installer must be assigned"):
        service.complete_step(lead.id, step.id, users["office"], remarks="Scheduled for Monday")

    lead.installer_id = users["installer"].id
    db.commit()
    service.complete_step(lead.id, step.id, users["installer"], remarks="Scheduled for Monday")
    assert _statuses(db, lead)[4] == StepStatus.PENDING


def test_remarks_required_and_attachments_rules(db, users, make_lead):
    lead = make_lead()
    lead.installer_id = users["installer"].id
    db.commit()
    timeline = _timeline(db, lead)
    service = TimelineService(db)

    with pytest.raises(ValidationError, match="Attachments are not allowed"):
        service.complete_step(lead.id, timeline[1].id, users["agent"], attachments=["leads/x/photo.jpg"])
    _make_current(db, lead, 3)
    with pytest.raises(ValidationError, match="Remarks are required"):
        service.complete_step(lead.id, timeline[3].id, users["office"], remarks="   ")


def test_role_not_in_allowed_roles_is_forbidden(db, users, make_lead):
    lead = make_lead()
    lead.installer_id = users["installer"].id
    db.commit()
    step = _timeline(db, lead)[1]

    with pytest.raises(AuthorizationError, match="not authorized"):
        TimelineService(db).complete_step(lead.id, step.id, users["installer"])


def test_already_completed_step_is_invalid_status(db, users, make_lead):
    lead = make_lead()
    step = _timeline(db, lead)[1]
    service = TimelineService(db)
    service.complete_step(lead.id, step.id, users["agent"])

    with pytest.raises(InvalidStatusError, match="already completed"):
        service.complete_step(lead.id, step.id, users["agent"])


def test_upcoming_step_cannot_jump_the_queue(db, users, make_lead):
    lead = make_lead()
    lead.installer_id = users["installer"].id
    db.commit()
    upcoming = _timeline(db, lead)[3]

    with pytest.raises(InvalidStatusError, match="Only the current pending step"):
        TimelineService(db).complete_step(lead.id, upcoming.id, users["office"], remarks="Scheduled")

    statuses = list(_statuses(db, lead).values())
    assert statuses.count(StepStatus.PENDING) == 1
    assert statuses[0] == StepStatus.PENDING


def test_admin_override_may_complete_out_of_order(db, users, make_lead):
    lead = make_lead()
    upcoming = _timeline(db, lead)[3]

    TimelineService(db).complete_step(lead.id, upcoming.id, users["admin"], admin_override=True)

    assert _statuses(db, lead)[3] == StepStatus.COMPLETED


def test_step_of_another_lead_is_not_found(db, users, make_lead):
    lead = make_lead()
    other = make_lead(customer_name="Second Lead")
    foreign_step = _timeline(db, other)[1]

    with pytest.raises(NotFoundError) as exc:
        TimelineService(db).complete_step(lead.id, foreign_step.id, users["agent"])
    assert exc.value.code == "STEP_NOT_FOUND"


def test_completed_project_is_closed_to_non_admins(db, users, make_lead):
    lead = make_lead()
    lead.status = LeadStatus.COMPLETED
    db.commit()
    step = _timeline(db, lead)[1]

    with pytest.raises(AuthorizationError) as exc:
        TimelineService(db).complete_step(lead.id, step.id, users["office"])
    assert exc.value.code == "PROJECT_CLOSED"

    TimelineService(db).complete_step(lead.id, step.id, users["admin"])


def test_admin_override_bypasses_documents_and_sets_default_remarks(db, users, make_lead):
    lead = make_lead()
    step = _timeline(db, lead)[2]

    result = TimelineService(db).complete_step(lead.id, step.id, users["admin"], admin_override=True)

    assert result.status == StepStatus.COMPLETED
    assert result.remarks == OVERRIDE_COMPLETE_REMARKS
    assert db.query(ActivityLog).filter(ActivityLog.action == ActivityAction.ADMIN_OVERRIDE_COMPLETE).count() == 1


def test_non_admin_override_is_forbidden(db, users, make_lead):
    lead = make_lead()
    step = _timeline(db, lead)[2]
    with pytest.raises(AuthorizationError, match="Only admins"):
        TimelineService(db).complete_step(lead.id, step.id, users["office"], admin_override=True)


def test_skip_step_is_admin_only(db, users, make_lead):
    lead = make_lead()
    step = _timeline(db, lead)[2]
    service = TimelineService(db)

    with pytest.raises(AuthorizationError):
        service.skip_step(lead.id, step.id, users["office"])

    skipped = service.skip_step(lead.id, step.id, users["admin"])
    assert skipped.remarks == OVERRIDE_SKIP_REMARKS
    assert db.query(ActivityLog).filter(ActivityLog.action == ActivityAction.ADMIN_OVERRIDE_SKIP).count() == 1


def test_halted_step_needs_admin_override(db, users, make_lead):
    lead = make_lead()
    step = _timeline(db, lead)[1]
    service = TimelineService(db)

    halted = service.halt_step(lead.id, step.id, users["admin"])
    assert halted.status == StepStatus.HALTED
    assert halted.remarks == HALT_REMARKS

    with pytest.raises(InvalidStatusError, match="halted"):
        service.complete_step(lead.id, step.id, users["agent"])
    service.complete_step(lead.id, step.id, users["admin"], admin_override=True)
    assert _statuses(db, lead)[1] == StepStatus.COMPLETED


def test_halt_is_admin_only(db, users, make_lead):
    lead = make_lead()
    with pytest.raises(AuthorizationError):
        TimelineService(db).halt_step(lead.id, _timeline(db, lead)[1].id, users["office"])


def test_reopen_only_completed_steps(db, users, make_lead):
    lead = make_lead()
    step = _timeline(db, lead)[1]
    service = TimelineService(db)

    with pytest.raises(InvalidStatusError, match="Only completed steps"):
        service.reopen_step(lead.id, step.id, users["agent"])

    service.complete_step(lead.id, step.id, users["agent"])
    reopened = service.reopen_step(lead.id, step.id, users["agent"])

    assert reopened.status == StepStatus.PENDING
    assert reopened.completed_by is None
    assert reopened.completed_at is None
    assert db.query(ActivityLog).filter(ActivityLog.action == ActivityAction.STEP_REOPEN).count() == 1


def test_admin_reopen_is_logged_as_override(db, users, make_lead):
    lead = make_lead()
    step = _timeline(db, lead)[1]
    service = TimelineService(db)
    service.complete_step(lead.id, step.id, users["agent"])

    service.reopen_step(lead.id, step.id, users["admin"], admin_override=True)
    assert db.query(ActivityLog).filter(ActivityLog.action == ActivityAction.ADMIN_OVERRIDE_REOPEN).count() == 1


def test_move_backward_rewrites_target_and_later_steps_only(db, users, make_lead):
    lead = make_lead()
    lead.installer_id = users["installer"].id
    db.commit()
    timeline = _timeline(db, lead)
    service = TimelineService(db)
    service.complete_step(lead.id, timeline[1].id, users["agent"], remarks="Intake done")
    service.complete_step(lead.id, timeline[2].id, users["admin"], admin_override=True)
    service.complete_step(lead.id, timeline[3].id, users["office"], remarks="Booked")
    db.expire_all()
    before = _timeline(db, lead)[1]
    first_snapshot = (before.status, before.completed_by, before.completed_at, before.remarks)

    result = service.move_backward(lead.id, timeline[2].id, users["admin"])

    assert result.count == 3
    assert result.message == "Moved timeline backward, reopened 3 step(s)"
    db.expire_all()
    refreshed = _timeline(db, lead)
    assert (
        refreshed[1].status,
        refreshed[1].completed_by,
        refreshed[1].completed_at,
        refreshed[1].remarks,
    ) == first_snapshot
    assert refreshed[2].status == StepStatus.PENDING
    assert refreshed[2].remarks == MOVE_BACKWARD_REMARKS
    assert refreshed[2].completed_by is None
    for order in (3, 4):
        assert refreshed[order].status == StepStatus.UPCOMING
        assert refreshed[order].completed_by is None
        assert refreshed[order].completed_at is None
        assert refreshed[order].remarks is None
    assert db.query(ActivityLog).filter(ActivityLog.action == ActivityAction.ADMIN_OVERRIDE_REOPEN).count() == 3


def test_move_backward_is_admin_only(db, users, make_lead):
    lead = make_lead()
    with pytest.raises(AuthorizationError, match="Admin access required"):
        TimelineService(db).move_backward(lead.id, _timeline(db, lead)[1].id, users["office"])

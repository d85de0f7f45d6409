from __future__ import annotations

import pytest

from solarcrm.core.exceptions import InvalidTransitionError
from solarcrm.models.enums import LeadStatus
from solarcrm.workflow.state_machine import LEAD_STATUS_MACHINE, StateMachine


def test_state_machine_allows_valid_transition():
    sm = StateMachine({"new": {"running"}, "running": {"completed"}})
    assert sm.can_transition("new", "running") is True
    sm.assert_transition("new", "running")


def test_state_machine_rejects_invalid_transition_with_details():
    sm = StateMachine({"new": {"running"}})
    with pytest.raises(InvalidTransitionError) as exc:
        sm.assert_transition("new", "completed")
    assert exc.value.details == {"from": "new", "to": "completed"}


def test_lead_machine_accepts_enum_and_string_states():
    assert LEAD_STATUS_MACHINE.can_transition(LeadStatus.LEAD, LeadStatus.INTERESTED)
    assert LEAD_STATUS_MACHINE.can_transition("lead", "cancelled")
    assert LEAD_STATUS_MACHINE.allowed_targets(LeadStatus.PROCESSING) == {"completed", "cancelled"}


@pytest.mark.parametrize("terminal", [LeadStatus.COMPLETED, LeadStatus.CANCELLED])
def test_terminal_lead_states_reject_every_transition(terminal):
    assert LEAD_STATUS_MACHINE.is_terminal(terminal)
    for target in LeadStatus:
        assert LEAD_STATUS_MACHINE.can_transition(terminal, target) is False


def test_processing_is_never_a_manual_target():
    for source in LeadStatus:
        assert LEAD_STATUS_MACHINE.can_transition(source, LeadStatus.PROCESSING) is False


def test_interested_to_processing_uses_custom_message():
    with pytest.raises(InvalidTransitionError, match="automatically"):
        LEAD_STATUS_MACHINE.assert_transition(
            LeadStatus.INTERESTED,
            LeadStatus.PROCESSING,
            message="Status will automatically change to processing",
        )

"""Canonical state transition helpers for lead lifecycles."""

from __future__ import annotations

import enum
from collections.abc import Mapping

from solarcrm.core.exceptions import InvalidTransitionError
from solarcrm.models.enums import LeadStatus


def _state(value: str | enum.Enum) -> str:
    return value.value if isinstance(value, enum.Enum) else str(value)


class StateMachine:
    """Table-driven state machine; states without outgoing edges are terminal."""

    def __init__(self, transitions: Mapping[str, set[str]]) -> None:
        self._transitions = {_state(k): {_state(t) for t in v} for k, v in transitions.items()}

    def allowed_targets(self, current: str) -> set[str]:
        return set(self._transitions.get(_state(current), set()))

    def can_transition(self, current: str, target: str) -> bool:
        return _state(target) in self._transitions.get(_state(current), set())

    def is_terminal(self, state: str) -> bool:
        return not self._transitions.get(_state(state))

    def assert_transition(self, current: str, target: str, message: str | None = None) -> None:
        if not self.can_transition(current=current, target=target):
            raise InvalidTransitionError(
                message or f"Transition not allowed: {_state(current)} -> {_state(target)}",
                details={"from": _state(current), "to": _state(target)},
            )


# processing is entered only through the automatic document check.
LEAD_STATUS_MACHINE = StateMachine(
    {
        LeadStatus.LEAD: {LeadStatus.INTERESTED, LeadStatus.CANCELLED},
        LeadStatus.INTERESTED: {LeadStatus.CANCELLED},
        LeadStatus.PROCESSING: {LeadStatus.COMPLETED, LeadStatus.CANCELLED},
        LeadStatus.COMPLETED: set(),
        LeadStatus.CANCELLED: set(),
    }
)

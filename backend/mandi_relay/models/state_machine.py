from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Set


class States:
    COLLECTING = "collecting"
    GROUPING = "grouping"
    DISPATCHING = "dispatching"
    BROADCASTING = "broadcasting"
    DONE = "done"


@dataclass
class StateMachine:
    """Per inbound message dispatch cycle. Done is terminal; there is no retry edge."""

    state: str = States.COLLECTING

    def __post_init__(self):
        self._transitions: Dict[str, Set[str]] = {
            States.COLLECTING: {States.GROUPING, States.DONE},
            States.GROUPING: {States.DISPATCHING, States.DONE},
            States.DISPATCHING: {States.BROADCASTING, States.DONE},
            States.BROADCASTING: {States.DONE},
            States.DONE: set(),
        }

    def can_transition(self, to_state: str) -> bool:
        allowed = self._transitions.get(self.state, set())
        return to_state in allowed

    def transition(self, to_state: str) -> None:
        if not self.can_transition(to_state):
            raise ValueError(f"Invalid transition: {self.state} -> {to_state}")
        self.state = to_state

    @property
    def done(self) -> bool:
        return self.state == States.DONE

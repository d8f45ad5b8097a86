from enum import Enum
from typing import Optional
from dataclasses import dataclass


class MatchState(str, Enum):
    PENDING = "pending"  # reserved, nothing transitions into or out of it
    WAITING_TEAMS = "waiting_teams"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


class TeamFormationMode(str, Enum):
    MANUAL = "manual"
    RANDOM = "random"


class TransitionError(Exception):
    def __init__(self, from_state: str, to_state: str, reason: str = None):
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason or f"Cannot transition from {from_state} to {to_state}"
        super().__init__(self.reason)


@dataclass
class Transition:
    from_state: MatchState
    to_state: MatchState
    action: str


class MatchStateMachine:
    TRANSITIONS = [
        Transition(MatchState.WAITING_TEAMS, MatchState.IN_PROGRESS, "form_teams"),
        Transition(MatchState.IN_PROGRESS, MatchState.FINISHED, "finish"),
    ]

    def __init__(self, initial_state: MatchState = MatchState.WAITING_TEAMS):
        self._state = initial_state

    @property
    def state(self) -> MatchState:
        return self._state

    def transition(self, action: str) -> MatchState:
        for t in self.TRANSITIONS:
            if t.from_state == self._state and t.action == action:
                self._state = t.to_state
                return self._state

        raise TransitionError(
            self._state.value,
            "unknown",
            f"No valid transition for action '{action}' from state '{self._state.value}'"
        )

    def action_for(self, target: MatchState) -> Optional[str]:
        """Return the action that moves the current state to ``target``, if any."""
        for t in self.TRANSITIONS:
            if t.from_state == self._state and t.to_state == target:
                return t.action
        return None

    @classmethod
    def from_state_string(cls, state_str: str) -> "MatchStateMachine":
        """Rebuild from a stored status; unknown values are corrupt data and raise."""
        try:
            state = MatchState(state_str)
        except ValueError:
            raise TransitionError(state_str, "unknown", f"Unknown match status '{state_str}'")
        return cls(initial_state=state)

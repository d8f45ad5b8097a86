from enum import Enum
from dataclasses import dataclass
from datetime import datetime
import json


class EventType(str, Enum):
    # Match lifecycle
    MATCH_CREATED = "match.created"
    MATCH_DELETED = "match.deleted"
    TEAMS_FORMED = "match.teams_formed"

    # State changes
    STATE_CHANGED = "state.changed"

    # Accounts
    PLAN_CHANGED = "user.plan_changed"


@dataclass
class Event:
    type: EventType
    subject_id: str
    timestamp: str = None
    data: dict = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.utcnow().isoformat() + "Z"
        if self.data is None:
            self.data = {}

    def to_dict(self) -> dict:
        return {
            "type": self.type.value if isinstance(self.type, EventType) else self.type,
            "subject_id": self.subject_id,
            "timestamp": self.timestamp,
            "data": self.data
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def state_changed_event(match_id: str, from_state: str, to_state: str) -> Event:
    return Event(
        type=EventType.STATE_CHANGED,
        subject_id=match_id,
        data={
            "from_state": from_state,
            "to_state": to_state
        }
    )


def match_created_event(match_id: str, created_by_id: str, team_count: int) -> Event:
    return Event(
        type=EventType.MATCH_CREATED,
        subject_id=match_id,
        data={
            "created_by": created_by_id,
            "team_count": team_count
        }
    )


def teams_formed_event(match_id: str, mode: str, team_ids: list) -> Event:
    return Event(
        type=EventType.TEAMS_FORMED,
        subject_id=match_id,
        data={
            "mode": mode,
            "teams": team_ids
        }
    )


def plan_changed_event(user_id: str, old_plan: str, new_plan: str) -> Event:
    return Event(
        type=EventType.PLAN_CHANGED,
        subject_id=user_id,
        data={
            "from_plan": old_plan,
            "to_plan": new_plan
        }
    )

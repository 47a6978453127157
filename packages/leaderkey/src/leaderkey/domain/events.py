"""Domain events for the election key and leadership transitions.

Events are immutable value objects. KeyChangeEvent describes what the
coordination service reports about the election key; LeadershipEvent
describes how the local view of leadership changed as a result.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ChangeAction(Enum):
    """Kinds of change the coordination service reports on a key.

    Attributes:
        CREATED: The key was created (first version).
        UPDATED: An existing key received a new value.
        DELETED: The key was removed, explicitly or by lease expiry.
        UNKNOWN: Anything the adapter could not classify.
    """

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class KeyChangeEvent:
    """A single change notification for a watched key.

    Attributes:
        action: What happened to the key.
        key: The key the notification refers to.
        value: The key's new value for CREATED/UPDATED, None otherwise.
        revision: Service revision at which the change happened, if known.
    """

    action: ChangeAction
    key: str
    value: str | None = None
    revision: int | None = None


class LeadershipEventType(Enum):
    """Types of leadership events emitted by the election core.

    Attributes:
        ELECTED: This participant became the leader.
        FOLLOWING: Another participant is now the known leader.
        VACATED: The leader is unknown (key deleted or election failed).
        ELECTION_FAILED: An election attempt exhausted its retries.
    """

    ELECTED = "elected"
    FOLLOWING = "following"
    VACATED = "vacated"
    ELECTION_FAILED = "election_failed"


@dataclass(frozen=True)
class LeadershipEvent:
    """Immutable event representing a change in the known leader.

    Attributes:
        event_type: The type of leadership event that occurred.
        participant_id: Id of the participant that emitted the event.
        leader_id: The known leader after the change ("" when unknown).
        reason: Optional human-readable reason for the event.
    """

    event_type: LeadershipEventType
    participant_id: str
    leader_id: str
    reason: str | None = None

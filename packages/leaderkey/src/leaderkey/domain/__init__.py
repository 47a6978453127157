"""Domain layer: Entities with zero external dependencies."""

from leaderkey.domain.election import ClaimResult, Lease, Participant
from leaderkey.domain.events import (
    ChangeAction,
    KeyChangeEvent,
    LeadershipEvent,
    LeadershipEventType,
)
from leaderkey.domain.exceptions import (
    CoordinationError,
    ElectionClosedError,
    ElectionError,
    ElectionFailedError,
    LeaderKeyConfigError,
    LeaseExpiredError,
    LeaseRevokedError,
    ParticipantIdentityError,
    ServiceUnavailableError,
)
from leaderkey.domain.retry import RetryPolicy
from leaderkey.domain.settings import ElectionSettings

__all__ = [
    "ChangeAction",
    "ClaimResult",
    "CoordinationError",
    "ElectionClosedError",
    "ElectionError",
    "ElectionFailedError",
    "ElectionSettings",
    "KeyChangeEvent",
    "LeaderKeyConfigError",
    "LeadershipEvent",
    "LeadershipEventType",
    "Lease",
    "LeaseExpiredError",
    "LeaseRevokedError",
    "Participant",
    "ParticipantIdentityError",
    "RetryPolicy",
    "ServiceUnavailableError",
]

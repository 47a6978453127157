"""Election domain value objects: participants, leases and claim results."""

from __future__ import annotations

from dataclasses import dataclass

from leaderkey.domain.exceptions import LeaderKeyConfigError, ParticipantIdentityError


@dataclass(frozen=True)
class Participant:
    """One process in the election group.

    The id is opaque and caller-supplied. Uniqueness across the group is
    the caller's responsibility and is not detected here.

    Attributes:
        id: Non-empty identifier written as the election key's value
            when this participant leads.
    """

    id: str

    def __post_init__(self) -> None:
        """Validate participant identity."""
        if not isinstance(self.id, str) or not self.id:
            raise ParticipantIdentityError("participant id cannot be empty")

        if not self.id.strip():
            raise ParticipantIdentityError("participant id cannot be whitespace-only")


@dataclass(frozen=True)
class Lease:
    """Time-bounded liveness grant issued by the coordination service.

    Keys bound to the lease are deleted by the service when the lease
    expires or is revoked.

    Attributes:
        handle: Opaque identifier the service uses to bind keys to the lease.
        ttl: Time-to-live in seconds the lease was granted with.
    """

    handle: int
    ttl: int

    def __post_init__(self) -> None:
        """Validate lease attributes."""
        if self.ttl <= 0:
            raise LeaderKeyConfigError(f"lease ttl must be positive, got: {self.ttl}")


@dataclass(frozen=True)
class ClaimResult:
    """Outcome of an atomic create-if-absent on the election key.

    Attributes:
        created: True if this call created the key (caller is now leader).
        current_value: The key's value after the call: the caller's own id
                       when created, the incumbent's id otherwise. None if
                       the key vanished before its value could be read.
        revision: Service revision observed by the call, or None if the
                  service does not expose revisions.
    """

    created: bool
    current_value: str | None
    revision: int | None = None

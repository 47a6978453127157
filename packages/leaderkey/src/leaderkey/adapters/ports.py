"""Port interfaces for the leaderkey core package.

Ports define the contracts that adapters must implement.
These are Protocol classes (structural subtyping) for flexible testing.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from leaderkey.domain.exceptions import ParticipantIdentityError

if TYPE_CHECKING:
    from collections.abc import Callable

    from leaderkey.domain.election import ClaimResult, Lease
    from leaderkey.domain.events import KeyChangeEvent, LeadershipEvent

PARTICIPANT_ID_ENV_VAR = "LEADERKEY_PARTICIPANT_ID"


@runtime_checkable
class WatchSubscriptionPort(Protocol):
    """Port interface for an active watch on a key.

    Contract:
        - cancel() stops delivery of further events
        - cancel() is idempotent and safe to call before any event arrived
    """

    def cancel(self) -> None:
        """Stop delivering events for this subscription."""
        ...


@runtime_checkable
class CoordinationServicePort(Protocol):
    """Port interface for a strongly-consistent key-value coordination service.

    Implementations wrap a concrete service (etcd, or the in-memory fake).
    The election core relies only on the primitives below and never on a
    client-side read-then-write.

    Contract:
        - create_lease() grants a lease and keeps it alive in the background
          until revoke_lease() is called or renewal keeps failing
        - revoke_lease() deletes every key bound to the lease
        - create_if_absent() is a single atomic server-side operation
        - watch() delivers events for one key in service order, each once
        - Transient failures raise ServiceUnavailableError; a lease unknown
          to the service raises LeaseExpiredError; other failures raise
          CoordinationError
    """

    def create_lease(self, ttl: int) -> Lease:
        """Grant a new lease and start keeping it alive.

        Args:
            ttl: Time-to-live in seconds.

        Returns:
            The granted Lease.
        """
        ...

    def revoke_lease(self, lease: Lease) -> None:
        """Stop keep-alive and revoke the lease, deleting its bound keys.

        Args:
            lease: The lease to revoke.
        """
        ...

    def is_lease_alive(self, lease: Lease) -> bool:
        """Report whether background renewal still holds the lease.

        Args:
            lease: The lease to check.

        Returns:
            False once renewal gave up, the lease expired, or it was revoked.
        """
        ...

    def create_if_absent(self, key: str, value: str, lease: Lease) -> ClaimResult:
        """Atomically create key=value bound to lease if key does not exist.

        Args:
            key: The key to create.
            value: The value to store.
            lease: The lease the key is bound to.

        Returns:
            ClaimResult with created=True and the given value, or
            created=False and the key's existing value.
        """
        ...

    def get_value(self, key: str) -> str | None:
        """Read the current value of key.

        Args:
            key: The key to read.

        Returns:
            The value, or None if the key does not exist.
        """
        ...

    def watch(
        self,
        key: str,
        callback: Callable[[KeyChangeEvent], None],
        start_revision: int | None = None,
    ) -> WatchSubscriptionPort:
        """Subscribe to all changes of key.

        Args:
            key: The key to watch.
            callback: Invoked once per event, in service order, on a
                      service-managed thread.
            start_revision: Replay events from this revision if given.

        Returns:
            The subscription; cancel() it to stop delivery.
        """
        ...


@runtime_checkable
class EventEmitterPort(Protocol):
    """Port interface for emitting leadership events.

    Implementations handle event delivery to observers (logging, metrics, callbacks).

    Contract:
        - emit(event) delivers the event to all registered observers
        - emit() is fire-and-forget (no return value, no exceptions propagated)
        - Thread safety is implementation-defined
    """

    def emit(self, event: LeadershipEvent) -> None:
        """Emit a leadership event to observers.

        Args:
            event: The LeadershipEvent to emit.
        """
        ...


@runtime_checkable
class LoggingPort(Protocol):
    """Port interface for structured logging.

    Abstracts the logging mechanism from use cases that report election
    progress, ignored notifications and failures.

    Contract:
        - info/warning/error are fire-and-forget (no exceptions propagated)
        - Thread safety is implementation-defined
    """

    def info(self, message: str) -> None:
        """Log an info message."""
        ...

    def warning(self, message: str) -> None:
        """Log a warning message."""
        ...

    def error(self, message: str) -> None:
        """Log an error message."""
        ...


@runtime_checkable
class ParticipantIDResolverPort(Protocol):
    """Port interface for resolving this process's participant id.

    Contract:
        - resolve_participant_id() returns a non-empty, stripped string
        - Raises ParticipantIdentityError if no valid id is available
    """

    def resolve_participant_id(self) -> str:
        """Resolve the participant id.

        Returns:
            A non-empty string identifying this participant.

        Raises:
            ParticipantIdentityError: If the id is missing or blank.
        """
        ...


class EnvironmentParticipantIDResolver:
    """Default implementation: resolve the id from LEADERKEY_PARTICIPANT_ID.

    Reads the environment variable and returns it after stripping
    whitespace. This is the standard way to configure identity in
    containerized deployments.
    """

    def __init__(self, env_var: str = PARTICIPANT_ID_ENV_VAR) -> None:
        self._env_var = env_var

    def resolve_participant_id(self) -> str:
        """Resolve the participant id from the environment.

        Returns:
            The variable's value after stripping whitespace.

        Raises:
            ParticipantIdentityError: If the variable is unset or blank.
        """
        try:
            participant_id = os.environ[self._env_var]
        except KeyError as exc:
            raise ParticipantIdentityError(
                f"{self._env_var} environment variable is not set"
            ) from exc

        participant_id_stripped = participant_id.strip()
        if not participant_id_stripped:
            raise ParticipantIdentityError(
                "participant id cannot be empty or whitespace-only"
            )

        return participant_id_stripped


class StandardLoggingAdapter:
    """Default implementation: forward to a standard library logger."""

    def __init__(self, name: str = "leaderkey") -> None:
        self._logger = logging.getLogger(name)

    def info(self, message: str) -> None:
        self._logger.info(message)

    def warning(self, message: str) -> None:
        self._logger.warning(message)

    def error(self, message: str) -> None:
        self._logger.error(message)

"""ElectionCore use case: claims the leader key and tracks the known leader."""

from __future__ import annotations

import threading
import time
from enum import Enum
from typing import TYPE_CHECKING

from leaderkey.adapters.metrics_port import NoOpMetricsAdapter
from leaderkey.adapters.ports import StandardLoggingAdapter
from leaderkey.domain.election import Participant
from leaderkey.domain.events import (
    ChangeAction,
    LeadershipEvent,
    LeadershipEventType,
)
from leaderkey.domain.exceptions import (
    ElectionClosedError,
    ElectionFailedError,
    ServiceUnavailableError,
)
from leaderkey.domain.retry import RetryPolicy
from leaderkey.domain.settings import DEFAULT_ELECTION_KEY

if TYPE_CHECKING:
    from collections.abc import Callable

    from leaderkey.adapters.metrics_port import MetricsPort
    from leaderkey.adapters.ports import (
        CoordinationServicePort,
        EventEmitterPort,
        LoggingPort,
    )
    from leaderkey.domain.election import ClaimResult
    from leaderkey.domain.events import KeyChangeEvent
    from leaderkey.usecases.lease_manager import LeaseManager


class ElectionState(Enum):
    """Local view of leadership.

    Attributes:
        UNKNOWN: No leader is known (leader id is empty).
        FOLLOWING: Another participant is the known leader.
        LEADING: This participant is the known leader.
    """

    UNKNOWN = "unknown"
    FOLLOWING = "following"
    LEADING = "leading"


class ElectionCore:
    """State machine deciding and tracking who leads the election group.

    State is {self id, leader id}. It changes only through two operations:

    - attempt_election(): atomically create the election key with this
      participant's id, bound to the current lease. Creating it means
      leading; finding it means following whoever's id it holds.
    - on_change_notification(): apply a watch event. A deletion clears the
      leader and immediately re-runs attempt_election(); every surviving
      participant races and the service lets exactly one win. A creation
      or update adopts the event's value.

    is_leader() is derived from the last authoritative answer of the
    service. Leadership is never tracked independently.

    Thread safety:
        Both operations run under one re-entrant lock, so a
        notification-driven re-election cannot interleave with an attempt
        started by the caller. Accessors read without locking and never block.
    """

    def __init__(
        self,
        participant_id: str,
        service: CoordinationServicePort,
        lease_manager: LeaseManager,
        *,
        election_key: str = DEFAULT_ELECTION_KEY,
        retry_policy: RetryPolicy | None = None,
        logger: LoggingPort | None = None,
        metrics: MetricsPort | None = None,
        event_emitter: EventEmitterPort | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the election core in the UNKNOWN state.

        Args:
            participant_id: This participant's id.
            service: Coordination service arbitrating the claim.
            lease_manager: Supplies the lease the election key is bound to.
            election_key: The shared key whose value names the leader.
            retry_policy: Attempt bound and backoff. Defaults to RetryPolicy().
            logger: Optional logging port. Defaults to StandardLoggingAdapter.
            metrics: Optional metrics port. Defaults to NoOpMetricsAdapter.
            event_emitter: Optional observer for leadership events.
            sleep: Function used to wait between attempts.

        Raises:
            ParticipantIdentityError: If participant_id is empty or blank.
        """
        self._participant = Participant(participant_id)
        self._service = service
        self._lease_manager = lease_manager
        self._election_key = election_key
        self._retry_policy = retry_policy or RetryPolicy()
        self._logger = logger or StandardLoggingAdapter()
        self._metrics = metrics or NoOpMetricsAdapter()
        self._event_emitter = event_emitter
        self._sleep = sleep

        self._lock = threading.RLock()
        self._leader_id = ""
        self._closed = False
        self._last_claim: ClaimResult | None = None

    # Accessors

    def self_id(self) -> str:
        """Return this participant's id."""
        return self._participant.id

    def current_leader_id(self) -> str:
        """Return the known leader's id, or "" when unknown."""
        return self._leader_id

    def is_leader(self) -> bool:
        """Return True iff this participant is the known leader."""
        return self._leader_id == self._participant.id

    @property
    def state(self) -> ElectionState:
        leader_id = self._leader_id
        if not leader_id:
            return ElectionState.UNKNOWN
        if leader_id == self._participant.id:
            return ElectionState.LEADING
        return ElectionState.FOLLOWING

    @property
    def election_key(self) -> str:
        return self._election_key

    @property
    def last_claim(self) -> ClaimResult | None:
        """Result of the most recent successful attempt, if any."""
        return self._last_claim

    @property
    def closed(self) -> bool:
        return self._closed

    # Operations

    def attempt_election(self) -> ClaimResult:
        """Try to claim the election key for this participant.

        Each attempt acquires the lease (a no-op once held) and issues one
        atomic create-if-absent. Transient failures are retried up to the
        policy's max_attempts; a permanent failure ends the election at once.

        Returns:
            The ClaimResult that settled the election.

        Raises:
            ElectionFailedError: If no attempt produced an answer. The known
                leader is reset to unknown before raising.
            ElectionClosedError: If close() was already called.
        """
        with self._lock:
            if self._closed:
                raise ElectionClosedError("election has been shut down")

            last_error: BaseException | None = None
            for attempt in range(self._retry_policy.max_attempts):
                try:
                    lease = self._lease_manager.acquire()
                    result = self._service.create_if_absent(
                        self._election_key, self._participant.id, lease
                    )
                    if not result.created and not result.current_value:
                        # Incumbent vanished between the compare and the read
                        raise ServiceUnavailableError(
                            f"{self._election_key!r} exists but has no value"
                        )
                except Exception as e:
                    self._metrics.record_election_attempt("error")
                    last_error = e
                    if not self._retry_policy.is_transient_error(e):
                        self._logger.error(
                            f"Election attempt {attempt + 1} failed permanently: {e}"
                        )
                        break

                    self._logger.warning(
                        f"Election attempt {attempt + 1}/"
                        f"{self._retry_policy.max_attempts} failed: {e}"
                    )
                    if self._retry_policy.should_retry(attempt):
                        delay = self._retry_policy.calculate_backoff(attempt)
                        if delay > 0:
                            self._sleep(delay)
                    continue

                self._last_claim = result
                if result.created:
                    self._metrics.record_election_attempt("created")
                    self._logger.info(
                        f"Participant {self._participant.id!r} claimed "
                        f"{self._election_key!r}: I am the leader"
                    )
                    self._set_leader(self._participant.id, reason="claimed election key")
                else:
                    self._metrics.record_election_attempt("exists")
                    self._logger.info(
                        f"Participant {self._participant.id!r} found leader "
                        f"{result.current_value!r}"
                    )
                    self._set_leader(
                        result.current_value or "", reason="election key already held"
                    )
                return result

            attempts = attempt + 1
            self._set_leader("", reason=f"election failed: {last_error}")
            self._emit(LeadershipEventType.ELECTION_FAILED, reason=str(last_error))
            raise ElectionFailedError(
                f"Could not determine leader for {self._election_key!r} "
                f"after {attempts} attempt(s): {last_error}",
                attempts=attempts,
                last_error=last_error,
            ) from last_error

    def on_change_notification(self, event: KeyChangeEvent) -> None:
        """Apply one change event for the election key.

        Deletion re-runs the election. Creation/update adopts the value.
        Events for other keys, unknown actions, and creations/updates
        without a value are logged and ignored. Never raises: an election
        failure here is logged and emitted as ELECTION_FAILED.

        Args:
            event: The notification delivered by the watcher.
        """
        with self._lock:
            if self._closed:
                return

            if event.key != self._election_key:
                self._logger.warning(
                    f"Ignoring notification for unexpected key {event.key!r}"
                )
                return

            if event.action is ChangeAction.DELETED:
                self._logger.info(
                    f"Leader key {self._election_key!r} deleted; starting re-election"
                )
                self._set_leader("", reason="leader key deleted")
                try:
                    self.attempt_election()
                except ElectionFailedError as e:
                    self._logger.error(f"Re-election failed: {e}")
                except ElectionClosedError:
                    pass

            elif event.action in (ChangeAction.CREATED, ChangeAction.UPDATED):
                if not event.value:
                    self._logger.warning(
                        f"Ignoring {event.action.value} notification without a value"
                    )
                    return
                self._set_leader(event.value, reason=f"leader key {event.action.value}")

            else:
                self._logger.warning(
                    f"Ignoring notification with unrecognized action {event.action.value!r}"
                )

    def close(self) -> None:
        """Stop reacting to notifications and refuse further attempts. Idempotent.

        The known leader is cleared: once the lease is gone this participant
        can no longer vouch for anyone's leadership, its own included.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._set_leader("", reason="election closed")

    # Internals

    def _set_leader(self, leader_id: str, reason: str) -> None:
        """Update the known leader and report the transition. Caller holds the lock."""
        if leader_id == self._leader_id:
            return

        self._leader_id = leader_id
        self._metrics.set_is_leader(self.is_leader())
        self._metrics.record_leader_change()

        if not leader_id:
            self._emit(LeadershipEventType.VACATED, reason=reason)
        elif leader_id == self._participant.id:
            self._emit(LeadershipEventType.ELECTED, reason=reason)
        else:
            self._emit(LeadershipEventType.FOLLOWING, reason=reason)

    def _emit(self, event_type: LeadershipEventType, reason: str | None = None) -> None:
        if self._event_emitter is not None:
            self._event_emitter.emit(
                LeadershipEvent(
                    event_type=event_type,
                    participant_id=self._participant.id,
                    leader_id=self._leader_id,
                    reason=reason,
                )
            )

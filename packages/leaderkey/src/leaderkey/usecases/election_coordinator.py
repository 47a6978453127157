"""ElectionCoordinator use case: wires lease, election and watch for a process."""

from __future__ import annotations

import threading
import time
from types import TracebackType
from typing import TYPE_CHECKING

from leaderkey.adapters.metrics_port import NoOpMetricsAdapter
from leaderkey.adapters.ports import StandardLoggingAdapter
from leaderkey.domain.settings import ElectionSettings
from leaderkey.usecases.change_watcher import ChangeWatcher
from leaderkey.usecases.election_core import ElectionCore, ElectionState
from leaderkey.usecases.lease_manager import LeaseManager

if TYPE_CHECKING:
    from collections.abc import Callable

    from leaderkey.adapters.metrics_port import MetricsPort
    from leaderkey.adapters.ports import (
        CoordinationServicePort,
        EventEmitterPort,
        LoggingPort,
    )
    from leaderkey.domain.election import ClaimResult


class ElectionCoordinator:
    """Public election API for one participant process.

    Builds a LeaseManager, an ElectionCore and a ChangeWatcher over one
    shared coordination service and drives them in the required order:

    1. start_election() settles the initial leader deterministically.
    2. watch_for_leader_change() arms the watch afterwards, replaying from
       the revision right after the claim so no change is missed.
    3. shutdown() cancels the watch, then the lease, then closes the core.
       Revoking the lease deletes the election key; with the watch already
       gone that deletion cannot trigger a re-election on a process that
       is going away.

    Example:
        >>> with ElectionCoordinator("node-a", service) as election:
        ...     if election.is_leader():
        ...         run_singleton_work()
    """

    def __init__(
        self,
        participant_id: str,
        service: CoordinationServicePort,
        settings: ElectionSettings | None = None,
        *,
        logger: LoggingPort | None = None,
        metrics: MetricsPort | None = None,
        event_emitter: EventEmitterPort | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the coordinator. No service call is made here.

        Args:
            participant_id: This participant's id.
            service: Coordination service shared by all three components.
            settings: Election key, lease ttl and retry policy.
                      Defaults to ElectionSettings().
            logger: Optional logging port. Defaults to StandardLoggingAdapter.
            metrics: Optional metrics port. Defaults to NoOpMetricsAdapter.
            event_emitter: Optional observer for leadership events.
            sleep: Function used to wait between election attempts.

        Raises:
            ParticipantIdentityError: If participant_id is empty or blank.
        """
        self._settings = settings or ElectionSettings()
        self._logger = logger or StandardLoggingAdapter()
        metrics = metrics or NoOpMetricsAdapter()

        self.lease_manager = LeaseManager(
            service, self._settings.lease_ttl, logger=self._logger, metrics=metrics
        )
        self.core = ElectionCore(
            participant_id,
            service,
            self.lease_manager,
            election_key=self._settings.election_key,
            retry_policy=self._settings.retry_policy,
            logger=self._logger,
            metrics=metrics,
            event_emitter=event_emitter,
            sleep=sleep,
        )
        self.watcher = ChangeWatcher(service, logger=self._logger)
        self._shutdown_lock = threading.Lock()
        self._shut_down = False

    @property
    def settings(self) -> ElectionSettings:
        return self._settings

    @property
    def state(self) -> ElectionState:
        return self.core.state

    def start_election(self) -> ClaimResult:
        """Run one election attempt.

        Returns:
            The ClaimResult that settled the election.

        Raises:
            ElectionFailedError: If leadership could not be determined.
            ElectionClosedError: If shutdown() was already called.
        """
        return self.core.attempt_election()

    def watch_for_leader_change(self) -> None:
        """Arm the watch on the election key.

        Call after start_election(). Events are replayed from the revision
        after the last claim when the service reports revisions.
        """
        last_claim = self.core.last_claim
        start_revision = None
        if last_claim is not None and last_claim.revision is not None:
            start_revision = last_claim.revision + 1

        self.watcher.watch(
            self._settings.election_key,
            self.core.on_change_notification,
            start_revision=start_revision,
        )

    def is_leader(self) -> bool:
        return self.core.is_leader()

    def current_leader_id(self) -> str:
        return self.core.current_leader_id()

    def self_id(self) -> str:
        return self.core.self_id()

    def shutdown(self) -> None:
        """Tear down in order: watcher, then lease, then election core.

        Idempotent. The core is closed even if revoking the lease fails.

        Raises:
            CoordinationError: If the lease revoke fails.
        """
        with self._shutdown_lock:
            if self._shut_down:
                return
            self._shut_down = True

        self.watcher.cancel()
        try:
            self.lease_manager.cancel()
        finally:
            self.core.close()
            self._logger.info(f"Participant {self.self_id()!r} left the election")

    def __enter__(self) -> ElectionCoordinator:
        """Start the election and arm the watch.

        If either step fails the coordinator is shut down and the original
        error propagates; a teardown failure is only logged.
        """
        try:
            self.start_election()
            self.watch_for_leader_change()
        except BaseException:
            try:
                self.shutdown()
            except Exception as e:
                self._logger.warning(f"Teardown after failed start also failed: {e}")
            raise
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Shut down, releasing leadership if held."""
        self.shutdown()

"""LeaseManager use case: owns the participant's renewable lease."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from leaderkey.adapters.metrics_port import NoOpMetricsAdapter
from leaderkey.adapters.ports import StandardLoggingAdapter
from leaderkey.domain.exceptions import LeaseRevokedError
from leaderkey.domain.settings import DEFAULT_LEASE_TTL

if TYPE_CHECKING:
    from leaderkey.adapters.metrics_port import MetricsPort
    from leaderkey.adapters.ports import CoordinationServicePort, LoggingPort
    from leaderkey.domain.election import Lease


class LeaseManager:
    """Owns one renewable lease for as long as the participant takes part.

    The lease is created lazily on the first acquire() and kept alive by the
    coordination service client. Cancelling revokes it, which makes the
    service delete every key bound to it, including the election key if
    this participant holds it. That deletion is how other participants
    learn that this one withdrew or died.

    If renewal keeps failing the lease expires server-side. is_alive() then
    turns False, a claim already in flight with the lease fails with
    LeaseExpiredError, and the next acquire() drops the lost lease and
    grants a fresh one so the participant can re-enter the election.

    Thread safety:
        acquire() and cancel() are serialized by an internal lock.
    """

    def __init__(
        self,
        service: CoordinationServicePort,
        ttl: int = DEFAULT_LEASE_TTL,
        *,
        logger: LoggingPort | None = None,
        metrics: MetricsPort | None = None,
    ) -> None:
        """Initialize the lease manager.

        Args:
            service: Coordination service granting and renewing the lease.
            ttl: Default time-to-live in seconds for acquire().
            logger: Optional logging port. Defaults to StandardLoggingAdapter.
            metrics: Optional metrics port. Defaults to NoOpMetricsAdapter.
        """
        self._service = service
        self._ttl = ttl
        self._logger = logger or StandardLoggingAdapter()
        self._metrics = metrics or NoOpMetricsAdapter()
        self._lock = threading.Lock()
        self._lease: Lease | None = None
        self._cancelled = False

    @property
    def lease(self) -> Lease | None:
        """The current lease, or None before acquire() / after cancel()."""
        return self._lease

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def acquire(self, ttl: int | None = None) -> Lease:
        """Return this manager's lease, creating it on first use.

        Idempotent: while the lease is alive it is returned unchanged,
        whatever ttl is passed. A lease the service reports lost is
        discarded and replaced.

        Args:
            ttl: Time-to-live for a new lease. Defaults to the manager's ttl.

        Returns:
            The lease.

        Raises:
            LeaseRevokedError: If cancel() was already called.
            CoordinationError: If the service cannot grant a lease.
        """
        with self._lock:
            if self._cancelled:
                raise LeaseRevokedError("lease manager has been cancelled")

            if self._lease is not None:
                if self._service.is_lease_alive(self._lease):
                    return self._lease
                self._logger.warning(
                    f"Lease {self._lease.handle} expired; granting a new one"
                )
                self._lease = None
                self._metrics.set_lease_active(False)

            lease = self._service.create_lease(ttl if ttl is not None else self._ttl)
            self._lease = lease
            self._metrics.set_lease_active(True)
            self._logger.info(f"Granted lease {lease.handle} (ttl={lease.ttl}s)")
            return lease

    def is_alive(self) -> bool:
        """Check whether a lease is held and still being renewed."""
        lease = self._lease
        if lease is None:
            return False
        return self._service.is_lease_alive(lease)

    def cancel(self) -> None:
        """Stop renewal and revoke the lease.

        Idempotent, and safe to call when no lease was ever acquired. The
        manager counts as cancelled even if the revoke call fails; the
        lease then expires on its own after its ttl.

        Raises:
            CoordinationError: If the service rejects the revoke.
        """
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            lease, self._lease = self._lease, None

            if lease is None:
                return

            self._metrics.set_lease_active(False)
            try:
                self._service.revoke_lease(lease)
            except Exception as e:
                self._logger.warning(
                    f"Failed to revoke lease {lease.handle}: {e}. "
                    f"It will expire after {lease.ttl}s."
                )
                raise
            self._logger.info(f"Revoked lease {lease.handle}")

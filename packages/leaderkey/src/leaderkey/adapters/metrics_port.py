"""Port interface and no-op implementation for metrics collection.

Metrics ports follow fire-and-forget semantics: implementations may
buffer, sample, or drop metrics as needed. No exceptions should propagate.
"""

from __future__ import annotations

from typing import Literal, Protocol, runtime_checkable

ElectionOutcome = Literal["created", "exists", "error"]


@runtime_checkable
class MetricsPort(Protocol):
    """Port interface for metrics collection.

    Implementations handle metrics recording to various backends
    (Prometheus, StatsD, etc.). Abstracts the metrics mechanism from
    use cases that need to emit metrics.

    Contract:
        - All methods are fire-and-forget (no return value, no exceptions)
        - set_* methods update gauges to specific values
        - record_* methods increment counters
        - Thread safety is implementation-defined
    """

    def set_is_leader(self, is_leader: bool) -> None:
        """Set the leadership gauge.

        Args:
            is_leader: True if this participant leads (1), False otherwise (0).
        """
        ...

    def set_lease_active(self, active: bool) -> None:
        """Set the lease gauge.

        Args:
            active: True while a lease is held (1), False otherwise (0).
        """
        ...

    def record_election_attempt(self, outcome: ElectionOutcome) -> None:
        """Count one claim attempt.

        Args:
            outcome: "created" (won), "exists" (lost to incumbent) or
                     "error" (the attempt raised).
        """
        ...

    def record_leader_change(self) -> None:
        """Count one change of the known leader."""
        ...


class NoOpMetricsAdapter:
    """No-operation metrics adapter for when metrics are disabled.

    All methods are no-ops. This allows use cases to unconditionally
    call metrics methods without checking if metrics are enabled.

    Example:
        >>> adapter = NoOpMetricsAdapter()
        >>> adapter.set_is_leader(True)  # Does nothing
        >>> adapter.record_election_attempt("created")  # Does nothing
    """

    def set_is_leader(self, is_leader: bool) -> None:
        """No-op."""
        pass

    def set_lease_active(self, active: bool) -> None:
        """No-op."""
        pass

    def record_election_attempt(self, outcome: ElectionOutcome) -> None:
        """No-op."""
        pass

    def record_leader_change(self) -> None:
        """No-op."""
        pass

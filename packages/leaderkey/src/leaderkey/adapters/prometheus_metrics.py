"""Prometheus metrics adapter for leaderkey.

Implements MetricsPort using prometheus-client library.
Gracefully handles missing prometheus-client (raises ImportError at init).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from leaderkey.adapters.metrics_port import ElectionOutcome

if TYPE_CHECKING:
    from prometheus_client import Counter, Gauge


class PrometheusMetricsAdapter:
    """Prometheus implementation of MetricsPort.

    Creates and manages Prometheus gauges and counters for election state.
    All metrics use a configurable prefix (default 'leaderkey_') for namespace clarity.

    This adapter requires prometheus-client to be installed:
        pip install leaderkey[metrics]

    Example:
        >>> adapter = PrometheusMetricsAdapter(prefix="myapp_election")
        >>> adapter.set_is_leader(True)  # Sets myapp_election_is_leader to 1
        >>> adapter.record_election_attempt("exists")

    Raises:
        ImportError: If prometheus-client is not installed.
    """

    def __init__(self, prefix: str = "leaderkey") -> None:
        """Initialize Prometheus metrics.

        Args:
            prefix: Metric name prefix. Defaults to "leaderkey".
                   All metric names will be {prefix}_<metric_name>.

        Raises:
            ImportError: If prometheus-client is not installed.
        """
        # Import here to make prometheus-client optional
        from prometheus_client import Counter, Gauge

        self._is_leader: Gauge = Gauge(
            f"{prefix}_is_leader",
            "Leadership status: 1=leader, 0=follower or unknown",
        )
        self._lease_active: Gauge = Gauge(
            f"{prefix}_lease_active",
            "Lease status: 1=lease held, 0=no lease",
        )
        self._election_attempts: Counter = Counter(
            f"{prefix}_election_attempts",
            "Leader key claim attempts by outcome",
            ["outcome"],
        )
        self._leader_changes: Counter = Counter(
            f"{prefix}_leader_changes",
            "Changes of the known leader",
        )

    def set_is_leader(self, is_leader: bool) -> None:
        """Set leadership gauge.

        Args:
            is_leader: True for leader (1), False otherwise (0).
        """
        self._is_leader.set(1 if is_leader else 0)

    def set_lease_active(self, active: bool) -> None:
        """Set lease gauge.

        Args:
            active: True while a lease is held (1), False otherwise (0).
        """
        self._lease_active.set(1 if active else 0)

    def record_election_attempt(self, outcome: ElectionOutcome) -> None:
        """Increment the attempt counter for outcome."""
        self._election_attempts.labels(outcome=outcome).inc()

    def record_leader_change(self) -> None:
        """Increment the leader change counter."""
        self._leader_changes.inc()

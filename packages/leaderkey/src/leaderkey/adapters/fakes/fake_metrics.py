"""Fake metrics adapter for testing.

Provides a test double for MetricsPort that records all metric updates
for assertion in tests.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

from leaderkey.adapters.metrics_port import ElectionOutcome


@dataclass(frozen=True)
class MetricCall:
    """Record of a single metric update.

    Attributes:
        metric_name: Name of the metric that was updated.
        value: Value that was set, or the counter label.
    """

    metric_name: str
    value: float | int | bool | str | None


class FakeMetricsAdapter:
    """Fake implementation of MetricsPort for testing.

    Records all metric updates for later assertion. Provides methods
    to inspect current state and call history. Safe to share between
    the caller thread and watch delivery threads.

    Example:
        >>> fake = FakeMetricsAdapter()
        >>> fake.set_is_leader(True)
        >>> fake.current_is_leader
        True
        >>> fake.calls
        [MetricCall(metric_name='is_leader', value=True)]
    """

    def __init__(self) -> None:
        """Initialize with no recorded state."""
        self._lock = threading.Lock()
        self._is_leader: bool | None = None
        self._lease_active: bool | None = None
        self._attempts: dict[str, int] = {}
        self._leader_changes = 0
        self._calls: list[MetricCall] = []

    @property
    def calls(self) -> list[MetricCall]:
        """Return a copy of all metric update calls, in order of invocation."""
        with self._lock:
            return list(self._calls)

    @property
    def current_is_leader(self) -> bool | None:
        """Return last set leadership state, or None if never set."""
        return self._is_leader

    @property
    def current_lease_active(self) -> bool | None:
        """Return last set lease state, or None if never set."""
        return self._lease_active

    @property
    def leader_changes(self) -> int:
        """Return the number of recorded leader changes."""
        return self._leader_changes

    def election_attempts(self, outcome: ElectionOutcome) -> int:
        """Return how many attempts were recorded with outcome."""
        with self._lock:
            return self._attempts.get(outcome, 0)

    def set_is_leader(self, is_leader: bool) -> None:
        """Record leadership update."""
        with self._lock:
            self._is_leader = is_leader
            self._calls.append(MetricCall("is_leader", is_leader))

    def set_lease_active(self, active: bool) -> None:
        """Record lease state update."""
        with self._lock:
            self._lease_active = active
            self._calls.append(MetricCall("lease_active", active))

    def record_election_attempt(self, outcome: ElectionOutcome) -> None:
        """Record one claim attempt."""
        with self._lock:
            self._attempts[outcome] = self._attempts.get(outcome, 0) + 1
            self._calls.append(MetricCall("election_attempt", outcome))

    def record_leader_change(self) -> None:
        """Record one leader change."""
        with self._lock:
            self._leader_changes += 1
            self._calls.append(MetricCall("leader_change", None))

    def reset(self) -> None:
        """Reset all state and calls."""
        with self._lock:
            self._is_leader = None
            self._lease_active = None
            self._attempts.clear()
            self._leader_changes = 0
            self._calls.clear()

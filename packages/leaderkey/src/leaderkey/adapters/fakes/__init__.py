"""Fake adapters for testing.

This module provides test doubles for port interfaces, enabling
deterministic testing without real I/O operations.
"""

from leaderkey.adapters.fakes.fake_coordination_service import (
    FakeCoordinationService,
    FakeWatch,
)
from leaderkey.adapters.fakes.fake_metrics import FakeMetricsAdapter, MetricCall

__all__ = [
    "FakeCoordinationService",
    "FakeWatch",
    "FakeMetricsAdapter",
    "MetricCall",
]

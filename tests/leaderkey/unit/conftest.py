"""Shared fixtures for leaderkey unit tests."""

from __future__ import annotations

import threading
from collections.abc import Iterator

import pytest

from leaderkey.adapters.fakes import FakeCoordinationService, FakeMetricsAdapter


class FakeLoggingAdapter:
    """Fake logging adapter that captures messages per level for assertion.

    Implements LoggingPort. Thread-safe, since election code logs from
    watch delivery threads.

    Example:
        logger = FakeLoggingAdapter()
        core = ElectionCore("A", service, leases, logger=logger)
        assert any("ignoring" in m.lower() for m in logger.warnings)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._messages: dict[str, list[str]] = {"info": [], "warning": [], "error": []}

    def info(self, message: str) -> None:
        self._record("info", message)

    def warning(self, message: str) -> None:
        self._record("warning", message)

    def error(self, message: str) -> None:
        self._record("error", message)

    def _record(self, level: str, message: str) -> None:
        with self._lock:
            self._messages[level].append(message)

    @property
    def infos(self) -> list[str]:
        with self._lock:
            return list(self._messages["info"])

    @property
    def warnings(self) -> list[str]:
        with self._lock:
            return list(self._messages["warning"])

    @property
    def errors(self) -> list[str]:
        with self._lock:
            return list(self._messages["error"])

    def clear(self) -> None:
        with self._lock:
            for messages in self._messages.values():
                messages.clear()


@pytest.fixture
def service() -> Iterator[FakeCoordinationService]:
    """In-memory coordination service; its watch threads are stopped on teardown."""
    fake = FakeCoordinationService()
    yield fake
    fake.close()


@pytest.fixture
def fake_logger() -> FakeLoggingAdapter:
    return FakeLoggingAdapter()


@pytest.fixture
def fake_metrics() -> FakeMetricsAdapter:
    return FakeMetricsAdapter()


@pytest.fixture
def no_sleep() -> list[float]:
    """Collects requested sleep delays instead of sleeping.

    Pass ``no_sleep.append`` as the ``sleep`` argument.
    """
    return []

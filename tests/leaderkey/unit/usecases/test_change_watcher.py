"""Unit tests for ChangeWatcher use case."""

from __future__ import annotations

import threading

import pytest

from leaderkey.adapters.fakes import FakeCoordinationService
from leaderkey.domain.events import ChangeAction, KeyChangeEvent
from leaderkey.usecases.change_watcher import ChangeWatcher

KEY = "MyApp/leader"


@pytest.mark.tier(1)
@pytest.mark.tra("UseCase.ChangeWatcher")
class TestChangeWatcher:
    """Test event forwarding and cancellation."""

    def test_forwards_every_event_once_in_order(self, service: FakeCoordinationService) -> None:
        received: list[KeyChangeEvent] = []
        watcher = ChangeWatcher(service)
        watcher.watch(KEY, received.append)

        service.put(KEY, "A")
        service.put(KEY, "B")
        service.delete(KEY)
        assert service.drain()

        assert [e.action for e in received] == [
            ChangeAction.CREATED,
            ChangeAction.UPDATED,
            ChangeAction.DELETED,
        ]
        assert watcher.delivered_count == 3
        assert watcher.key == KEY
        assert watcher.is_active is True

    def test_no_callback_after_cancel(self, service: FakeCoordinationService) -> None:
        received: list[KeyChangeEvent] = []
        watcher = ChangeWatcher(service)
        watcher.watch(KEY, received.append)
        watcher.cancel()

        service.put(KEY, "A")
        assert service.drain()

        assert received == []
        assert watcher.is_active is False
        assert service.active_watch_count == 0

    def test_cancel_is_idempotent_and_safe_before_watch(
        self, service: FakeCoordinationService
    ) -> None:
        watcher = ChangeWatcher(service)
        watcher.cancel()
        watcher.cancel()
        assert watcher.is_active is False

    def test_second_watch_keeps_first_subscription(
        self, service: FakeCoordinationService, fake_logger
    ) -> None:
        watcher = ChangeWatcher(service, logger=fake_logger)
        watcher.watch(KEY, lambda event: None)
        watcher.watch("Other/leader", lambda event: None)

        assert watcher.key == KEY
        assert service.active_watch_count == 1
        assert any("Already watching" in m for m in fake_logger.warnings)

    def test_can_rearm_after_cancel(self, service: FakeCoordinationService) -> None:
        received: list[KeyChangeEvent] = []
        watcher = ChangeWatcher(service)
        watcher.watch(KEY, lambda event: None)
        watcher.cancel()
        watcher.watch(KEY, received.append)

        service.put(KEY, "A")
        assert service.drain()
        assert [e.value for e in received] == ["A"]

    def test_start_revision_is_passed_through(self, service: FakeCoordinationService) -> None:
        service.put(KEY, "A")
        service.put(KEY, "B")
        received: list[KeyChangeEvent] = []

        ChangeWatcher(service).watch(KEY, received.append, start_revision=2)
        assert service.drain()

        assert [e.value for e in received] == ["B"]

    def test_callback_error_is_logged_and_delivery_continues(
        self, service: FakeCoordinationService, fake_logger
    ) -> None:
        values: list[str | None] = []

        def callback(event: KeyChangeEvent) -> None:
            values.append(event.value)
            if event.value == "A":
                raise ValueError("bad handler")

        ChangeWatcher(service, logger=fake_logger).watch(KEY, callback)
        service.put(KEY, "A")
        service.put(KEY, "B")
        assert service.drain()

        assert values == ["A", "B"]
        assert any("bad handler" in m for m in fake_logger.errors)

    def test_cancel_from_inside_callback(self, service: FakeCoordinationService) -> None:
        received: list[KeyChangeEvent] = []
        watcher = ChangeWatcher(service)

        def callback(event: KeyChangeEvent) -> None:
            received.append(event)
            watcher.cancel()

        watcher.watch(KEY, callback)
        service.put(KEY, "A")
        service.put(KEY, "B")
        assert service.drain()

        assert [e.value for e in received] == ["A"]


@pytest.mark.tier(2)
@pytest.mark.tra("UseCase.ChangeWatcher")
@pytest.mark.concurrency
class TestChangeWatcherCancelRace:
    """cancel() must wait for a running callback and block later ones."""

    def test_cancel_waits_for_running_callback(self, service: FakeCoordinationService) -> None:
        started = threading.Event()
        release = threading.Event()
        finished = threading.Event()
        calls: list[str | None] = []

        def slow(event: KeyChangeEvent) -> None:
            calls.append(event.value)
            started.set()
            release.wait(2.0)
            finished.set()

        watcher = ChangeWatcher(service)
        watcher.watch(KEY, slow)
        service.put(KEY, "A")
        assert started.wait(2.0)

        canceller = threading.Thread(target=watcher.cancel)
        canceller.start()
        canceller.join(0.1)
        assert canceller.is_alive(), "cancel() returned while a callback was running"

        release.set()
        canceller.join(2.0)
        assert not canceller.is_alive()
        assert finished.is_set()

        service.put(KEY, "B")
        assert service.drain()
        assert calls == ["A"]

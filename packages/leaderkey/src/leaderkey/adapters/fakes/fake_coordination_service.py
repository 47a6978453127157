"""Fake coordination service for testing.

Provides an in-memory implementation of CoordinationServicePort with the
guarantees the election relies on: atomic create-if-absent, lease-bound
keys deleted on revoke/expiry, and per-watch ordered delivery on a
separate thread (as a real service client would).
"""

from __future__ import annotations

import itertools
import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from leaderkey.domain.election import ClaimResult, Lease
from leaderkey.domain.events import ChangeAction, KeyChangeEvent
from leaderkey.domain.exceptions import LeaseExpiredError, ServiceUnavailableError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass
class _StoredKey:
    """A key held by the fake service."""

    value: str
    lease_handle: int | None
    version: int


class FakeWatch:
    """Subscription returned by FakeCoordinationService.watch().

    Events are queued under the service lock and delivered by a dedicated
    daemon thread, one at a time, in the order they were queued.
    """

    def __init__(
        self,
        key: str,
        callback: Callable[[KeyChangeEvent], None],
        on_cancel: Callable[[FakeWatch], None],
    ) -> None:
        self.key = key
        self._callback = callback
        self._on_cancel = on_cancel
        self._queue: queue.Queue[object] = queue.Queue()
        self._cancelled = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name=f"fake-watch-{key}", daemon=True
        )
        self._thread.start()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def idle(self) -> bool:
        """True when no event is queued or being delivered."""
        return self._queue.unfinished_tasks == 0

    def enqueue(self, event: KeyChangeEvent) -> None:
        if not self._cancelled.is_set():
            self._queue.put(event)

    def cancel(self) -> None:
        """Stop delivery. Idempotent."""
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        self._queue.put(_STOP)
        self._on_cancel(self)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                if not self._cancelled.is_set():
                    self._callback(item)  # type: ignore[arg-type]
            except Exception:
                logger.exception(f"Watch callback failed for key {self.key!r}")
            finally:
                self._queue.task_done()


class FakeCoordinationService:
    """In-memory fake for CoordinationServicePort - no network access.

    Shared by every participant of a test, it arbitrates concurrent claims
    exactly like the real service would.

    Example:
        >>> service = FakeCoordinationService()
        >>> lease = service.create_lease(10)
        >>> service.create_if_absent("MyApp/leader", "A", lease).created
        True
        >>> service.expire_lease(lease)  # simulate a crash
        >>> service.get_value("MyApp/leader") is None
        True
    """

    def __init__(self) -> None:
        """Initialize an empty service at revision 0."""
        self._lock = threading.Lock()
        self._revision = 0
        self._handles = itertools.count(1)
        self._keys: dict[str, _StoredKey] = {}
        self._leases: dict[int, Lease] = {}
        self._watches: list[FakeWatch] = []
        self._history: list[KeyChangeEvent] = []
        self._available = True
        self._failures_remaining = 0
        self._claim_calls: list[tuple[str, str, int]] = []
        self._leases_granted = 0
        self._revoked_handles: list[int] = []

    # CoordinationServicePort

    def create_lease(self, ttl: int) -> Lease:
        """Grant a lease. Keep-alive is implicit: leases live until revoked/expired."""
        self._check_available()
        with self._lock:
            lease = Lease(handle=next(self._handles), ttl=ttl)
            self._leases[lease.handle] = lease
            self._leases_granted += 1
            return lease

    def revoke_lease(self, lease: Lease) -> None:
        """Revoke the lease and delete its keys. Unknown leases are ignored."""
        self._check_available()
        with self._lock:
            self._revoked_handles.append(lease.handle)
            self._drop_lease(lease.handle)

    def is_lease_alive(self, lease: Lease) -> bool:
        with self._lock:
            return lease.handle in self._leases

    def create_if_absent(self, key: str, value: str, lease: Lease) -> ClaimResult:
        """Atomically create key bound to lease, or return the existing value."""
        self._check_available()
        with self._lock:
            self._claim_calls.append((key, value, lease.handle))
            if lease.handle not in self._leases:
                raise LeaseExpiredError(f"lease {lease.handle} not found")

            existing = self._keys.get(key)
            if existing is not None:
                return ClaimResult(
                    created=False,
                    current_value=existing.value,
                    revision=self._revision,
                )

            self._revision += 1
            self._keys[key] = _StoredKey(value=value, lease_handle=lease.handle, version=1)
            self._publish(
                KeyChangeEvent(ChangeAction.CREATED, key, value, self._revision)
            )
            return ClaimResult(created=True, current_value=value, revision=self._revision)

    def get_value(self, key: str) -> str | None:
        self._check_available()
        with self._lock:
            stored = self._keys.get(key)
            return stored.value if stored is not None else None

    def watch(
        self,
        key: str,
        callback: Callable[[KeyChangeEvent], None],
        start_revision: int | None = None,
    ) -> FakeWatch:
        """Subscribe to key, replaying history from start_revision if given."""
        self._check_available()
        with self._lock:
            subscription = FakeWatch(key, callback, self._remove_watch)
            if start_revision is not None:
                for event in self._history:
                    if event.key == key and (event.revision or 0) >= start_revision:
                        subscription.enqueue(event)
            self._watches.append(subscription)
            return subscription

    # Test helpers

    def expire_lease(self, lease: Lease | int) -> None:
        """Expire a lease as if its holder crashed. Ignores outage injection."""
        handle = lease.handle if isinstance(lease, Lease) else lease
        with self._lock:
            self._drop_lease(handle)

    def put(self, key: str, value: str) -> None:
        """Set key to value without a lease, emitting CREATED or UPDATED."""
        with self._lock:
            self._revision += 1
            existing = self._keys.get(key)
            if existing is None:
                self._keys[key] = _StoredKey(value=value, lease_handle=None, version=1)
                action = ChangeAction.CREATED
            else:
                existing.value = value
                existing.version += 1
                action = ChangeAction.UPDATED
            self._publish(KeyChangeEvent(action, key, value, self._revision))

    def delete(self, key: str) -> None:
        """Delete key, emitting DELETED if it existed."""
        with self._lock:
            if self._keys.pop(key, None) is not None:
                self._revision += 1
                self._publish(KeyChangeEvent(ChangeAction.DELETED, key, None, self._revision))

    def inject_event(self, event: KeyChangeEvent) -> None:
        """Deliver an arbitrary event to watchers of event.key without storing it."""
        with self._lock:
            for subscription in self._watches:
                if subscription.key == event.key:
                    subscription.enqueue(event)

    def fail_next(self, count: int) -> None:
        """Make the next `count` service calls raise ServiceUnavailableError."""
        with self._lock:
            self._failures_remaining = count

    def set_available(self, available: bool) -> None:
        """Simulate a full outage (False) or recovery (True)."""
        with self._lock:
            self._available = available

    def drain(self, timeout: float = 2.0) -> bool:
        """Wait until every watch has delivered all queued events.

        Returns:
            True if all watches went idle before timeout, False otherwise.
        """
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            with self._lock:
                watches = list(self._watches)
                revision = self._revision
            idle = all(subscription.idle for subscription in watches)
            # A callback may publish to an already-checked watch mid-pass
            if idle and self.revision == revision:
                return True
            time.sleep(0.005)
        return False

    def close(self) -> None:
        """Cancel every active watch."""
        with self._lock:
            watches = list(self._watches)
        for subscription in watches:
            subscription.cancel()

    @property
    def revision(self) -> int:
        with self._lock:
            return self._revision

    @property
    def claim_calls(self) -> list[tuple[str, str, int]]:
        """(key, value, lease handle) of every create_if_absent call, in order."""
        with self._lock:
            return list(self._claim_calls)

    @property
    def leases_granted(self) -> int:
        with self._lock:
            return self._leases_granted

    @property
    def revoked_handles(self) -> list[int]:
        with self._lock:
            return list(self._revoked_handles)

    @property
    def active_watch_count(self) -> int:
        with self._lock:
            return len(self._watches)

    # Internals

    def _check_available(self) -> None:
        with self._lock:
            if not self._available:
                raise ServiceUnavailableError("coordination service unavailable")
            if self._failures_remaining > 0:
                self._failures_remaining -= 1
                raise ServiceUnavailableError("coordination service unavailable")

    def _drop_lease(self, handle: int) -> None:
        """Remove lease and delete its keys. Caller holds the lock."""
        self._leases.pop(handle, None)
        bound = [key for key, stored in self._keys.items() if stored.lease_handle == handle]
        for key in bound:
            del self._keys[key]
            self._revision += 1
            self._publish(KeyChangeEvent(ChangeAction.DELETED, key, None, self._revision))

    def _publish(self, event: KeyChangeEvent) -> None:
        """Record event and queue it for watchers. Caller holds the lock."""
        self._history.append(event)
        for subscription in self._watches:
            if subscription.key == event.key:
                subscription.enqueue(event)

    def _remove_watch(self, subscription: FakeWatch) -> None:
        with self._lock:
            if subscription in self._watches:
                self._watches.remove(subscription)

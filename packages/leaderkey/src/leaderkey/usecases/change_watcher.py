"""ChangeWatcher use case: forwards election key notifications to a callback."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from leaderkey.adapters.ports import StandardLoggingAdapter

if TYPE_CHECKING:
    from collections.abc import Callable

    from leaderkey.adapters.ports import (
        CoordinationServicePort,
        LoggingPort,
        WatchSubscriptionPort,
    )
    from leaderkey.domain.events import KeyChangeEvent


class ChangeWatcher:
    """Owns one persistent watch subscription on a key.

    Every event the service delivers is passed to the callback exactly
    once, in delivery order. After cancel() returns no further callback
    starts, and any callback that was running has finished. This is what
    lets shutdown revoke the lease afterwards without the resulting key
    deletion triggering a re-election.

    Thread safety:
        Dispatch and cancel() share one re-entrant lock, so cancel() waits
        for a running callback to finish. Calling it from the callback
        itself is safe.
    """

    def __init__(
        self,
        service: CoordinationServicePort,
        *,
        logger: LoggingPort | None = None,
    ) -> None:
        """Initialize an idle watcher.

        Args:
            service: Coordination service providing the watch primitive.
            logger: Optional logging port. Defaults to StandardLoggingAdapter.
        """
        self._service = service
        self._logger = logger or StandardLoggingAdapter()
        self._lock = threading.RLock()
        self._subscription: WatchSubscriptionPort | None = None
        self._callback: Callable[[KeyChangeEvent], None] | None = None
        self._key: str | None = None
        self._cancelled = False
        self._delivered = 0

    @property
    def is_active(self) -> bool:
        """True while a subscription is registered and not cancelled."""
        return self._subscription is not None and not self._cancelled

    @property
    def key(self) -> str | None:
        return self._key

    @property
    def delivered_count(self) -> int:
        """Number of events passed to the callback so far."""
        return self._delivered

    def watch(
        self,
        key: str,
        callback: Callable[[KeyChangeEvent], None],
        start_revision: int | None = None,
    ) -> None:
        """Register a persistent subscription for all changes to key.

        Calling watch() while a subscription is active logs a warning and
        keeps the existing subscription. A cancelled watcher can be armed
        again.

        Args:
            key: The key to watch.
            callback: Invoked once per event, in service order.
            start_revision: Replay changes from this revision, so nothing
                            between an earlier read and this call is missed.

        Raises:
            CoordinationError: If the service refuses the subscription.
        """
        with self._lock:
            if self.is_active:
                self._logger.warning(
                    f"Already watching {self._key!r}; ignoring watch on {key!r}"
                )
                return

            self._key = key
            self._callback = callback
            self._cancelled = False
            self._subscription = self._service.watch(
                key, self._dispatch, start_revision=start_revision
            )
            self._logger.info(
                f"Watching {key!r}"
                + (f" from revision {start_revision}" if start_revision else "")
            )

    def cancel(self) -> None:
        """Stop delivering callbacks. Idempotent; safe before any event arrived."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            subscription, self._subscription = self._subscription, None

        if subscription is not None:
            subscription.cancel()
            self._logger.info(f"Stopped watching {self._key!r}")

    def _dispatch(self, event: KeyChangeEvent) -> None:
        with self._lock:
            if self._cancelled or self._callback is None:
                return
            self._delivered += 1
            try:
                self._callback(event)
            except Exception as e:
                self._logger.error(
                    f"Watch callback for {self._key!r} failed on "
                    f"{event.action.value} event: {e}"
                )

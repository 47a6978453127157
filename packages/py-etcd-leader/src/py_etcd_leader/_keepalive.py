"""Background lease refresher."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)

MIN_INTERVAL = 0.1


class LeaseKeepAlive:
    """Refreshes one lease on a daemon thread every ttl/3 seconds.

    The lease counts as lost when etcd reports a TTL of zero or less, or
    when refreshes keep failing for longer than the lease ttl. Once lost the
    thread exits; the lease is never resurrected.
    """

    def __init__(
        self,
        handle: int,
        ttl: int,
        refresh: Callable[[], int],
        interval: float | None = None,
    ) -> None:
        """
        Args:
            handle: Lease id, used for thread naming and logs.
            ttl: Lease time-to-live in seconds.
            refresh: Sends one keep-alive and returns the remaining TTL.
            interval: Seconds between refreshes. Defaults to ttl / 3.
        """
        self.handle = handle
        self.ttl = ttl
        self._refresh = refresh
        self._interval = max(interval if interval is not None else ttl / 3, MIN_INTERVAL)
        self._stopped = threading.Event()
        self._lost = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name=f"etcd-keepalive-{handle:x}", daemon=True
        )

    @property
    def lost(self) -> bool:
        return self._lost.is_set()

    def is_alive(self) -> bool:
        return not self._lost.is_set() and not self._stopped.is_set()

    def start(self) -> None:
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Stop refreshing. Idempotent."""
        self._stopped.set()
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout)

    def _run(self) -> None:
        last_success = time.monotonic()
        while not self._stopped.wait(self._interval):
            try:
                remaining = self._refresh()
            except Exception as e:
                if time.monotonic() - last_success >= self.ttl:
                    logger.error(
                        f"Lease {self.handle:x} lost: no successful keep-alive "
                        f"for {self.ttl}s ({e})"
                    )
                    self._lost.set()
                    return
                logger.warning(f"Keep-alive for lease {self.handle:x} failed: {e}")
                continue

            if remaining <= 0:
                logger.error(f"Lease {self.handle:x} expired on the server")
                self._lost.set()
                return
            last_success = time.monotonic()

"""Streaming watch over the gateway's /v3/watch endpoint."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable

import httpx

from leaderkey.domain.events import KeyChangeEvent
from leaderkey.domain.exceptions import CoordinationError

from py_etcd_leader import _codec

logger = logging.getLogger(__name__)

WATCH_PATH = "/v3/watch"
MAX_RECONNECT_DELAY = 5.0


class WatchStream:
    """One persistent watch on a key, delivered on a daemon thread.

    Events are handed to the callback in revision order. When the stream
    drops, it is reopened from the revision after the last delivered event,
    so nothing is skipped and nothing is delivered twice. If etcd has
    compacted past that revision the stream resumes at the compaction point.
    """

    def __init__(
        self,
        client: httpx.Client,
        url: str,
        key: str,
        callback: Callable[[KeyChangeEvent], None],
        *,
        start_revision: int | None = None,
        connect_timeout: float = 5.0,
        reconnect_delay: float = 0.5,
    ) -> None:
        self.key = key
        self._client = client
        self._url = url
        self._callback = callback
        self._next_revision = start_revision
        self._connect_timeout = connect_timeout
        self._reconnect_delay = reconnect_delay
        self._stopped = threading.Event()
        self._created = threading.Event()
        self._response: httpx.Response | None = None
        self._response_lock = threading.Lock()
        self._thread = threading.Thread(
            target=self._run, name=f"etcd-watch-{key}", daemon=True
        )

    @property
    def cancelled(self) -> bool:
        return self._stopped.is_set()

    @property
    def next_revision(self) -> int | None:
        return self._next_revision

    def start(self) -> None:
        self._thread.start()

    def wait_created(self, timeout: float | None = None) -> bool:
        """Block until etcd has confirmed the watch. Returns False on timeout."""
        return self._created.wait(timeout)

    def cancel(self) -> None:
        """Stop the stream. Idempotent; no callback starts after this returns."""
        if self._stopped.is_set():
            return
        self._stopped.set()
        with self._response_lock:
            response = self._response
        if response is not None:
            response.close()
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(self._connect_timeout)
        logger.debug(f"Watch on {self.key!r} cancelled")

    def _create_request(self) -> dict:
        request: dict = {"key": _codec.encode(self.key)}
        if self._next_revision is not None:
            request["start_revision"] = str(self._next_revision)
        return {"create_request": request}

    def _run(self) -> None:
        failures = 0
        while not self._stopped.is_set():
            try:
                self._stream_once()
                failures = 0
                delay = self._reconnect_delay
            except Exception as e:
                if self._stopped.is_set():
                    return
                failures += 1
                delay = min(self._reconnect_delay * 2 ** (failures - 1), MAX_RECONNECT_DELAY)
                logger.warning(
                    f"Watch on {self.key!r} interrupted ({e}); "
                    f"reconnecting from revision {self._next_revision} in {delay:.1f}s"
                )
            if self._stopped.wait(delay):
                return

    def _stream_once(self) -> None:
        timeout = httpx.Timeout(self._connect_timeout, read=None)
        with self._client.stream(
            "POST", self._url, json=self._create_request(), timeout=timeout
        ) as response:
            with self._response_lock:
                self._response = response
            try:
                if response.status_code >= 400:
                    response.read()
                    _codec.parse_response(WATCH_PATH, response)
                    raise CoordinationError(
                        f"etcd {WATCH_PATH} failed (HTTP {response.status_code})"
                    )
                for line in response.iter_lines():
                    if self._stopped.is_set():
                        return
                    if line.strip():
                        self._handle_message(json.loads(line))
            finally:
                with self._response_lock:
                    self._response = None

    def _handle_message(self, message: dict) -> None:
        _codec.raise_for_error(WATCH_PATH, message)
        result = message.get("result") or {}

        if result.get("created"):
            self._created.set()
            if self._next_revision is None:
                revision = _codec.header_revision(result)
                if revision is not None:
                    self._next_revision = revision + 1

        if result.get("canceled"):
            compact_revision = _codec.to_int(_codec.field(result, "compact_revision"))
            if compact_revision:
                logger.warning(
                    f"Watch on {self.key!r} compacted; resuming at revision {compact_revision}"
                )
                self._next_revision = compact_revision
            reason = _codec.field(result, "cancel_reason", "")
            raise CoordinationError(f"watch canceled by server {reason}".strip())

        for raw in result.get("events") or []:
            if self._stopped.is_set():
                return
            try:
                event = _codec.decode_event(raw)
            except ValueError as e:
                self._skip_malformed(raw, e)
                continue
            if event.revision is not None:
                self._next_revision = event.revision + 1
            try:
                self._callback(event)
            except Exception:
                logger.exception(f"Watch callback for {self.key!r} failed")

    def _skip_malformed(self, raw: dict, error: ValueError) -> None:
        """Log an undecodable event and move the resume point past it."""
        kv = raw.get("kv") or {}
        try:
            revision = _codec.to_int(_codec.field(kv, "mod_revision"))
        except ValueError:
            revision = 0
        if revision:
            self._next_revision = revision + 1
        logger.warning(
            f"Ignoring malformed watch event on {self.key!r} "
            f"at revision {revision or 'unknown'}: {error}"
        )

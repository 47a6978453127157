"""etcd v3 coordination service over the gRPC JSON gateway.

EtcdGatewayClient implements CoordinationServicePort from leaderkey using
plain HTTP via httpx, so no gRPC or protobuf runtime is needed. Leases are
kept alive by a background thread; watches run on their own stream thread.
"""

from __future__ import annotations

import logging
import threading
from types import TracebackType
from typing import TYPE_CHECKING, Any

import httpx

from leaderkey.domain.election import ClaimResult, Lease
from leaderkey.domain.exceptions import (
    CoordinationError,
    LeaseExpiredError,
    ServiceUnavailableError,
)

from py_etcd_leader import _codec
from py_etcd_leader._keepalive import LeaseKeepAlive
from py_etcd_leader._watch import WATCH_PATH, WatchStream

if TYPE_CHECKING:
    from collections.abc import Callable

    from leaderkey.domain.events import KeyChangeEvent

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "http://127.0.0.1:2379"


class EtcdGatewayClient:
    """Coordination service backed by an etcd v3 cluster.

    Attributes:
        endpoint: Base URL of the etcd gateway, e.g. http://127.0.0.1:2379
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        *,
        timeout: float = 5.0,
        client: httpx.Client | None = None,
        keepalive_interval: float | None = None,
        reconnect_delay: float = 0.5,
    ) -> None:
        """Initialize the client. No request is made here.

        Args:
            endpoint: etcd gateway base URL.
            timeout: Per-request timeout in seconds (must be > 0).
            client: Optional pre-built httpx.Client, e.g. with a mock transport.
                    The caller keeps ownership of an injected client.
            keepalive_interval: Seconds between lease refreshes. Defaults to ttl / 3.
            reconnect_delay: Base delay before reopening a dropped watch stream.

        Raises:
            ValueError: If endpoint is empty or timeout is not positive.
        """
        if not endpoint:
            raise ValueError("endpoint must be set")
        if timeout <= 0:
            raise ValueError("timeout must be > 0")

        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)
        self._keepalive_interval = keepalive_interval
        self._reconnect_delay = reconnect_delay
        self._lock = threading.Lock()
        self._keepalives: dict[int, LeaseKeepAlive] = {}
        self._watches: list[WatchStream] = []
        self._closed = False

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = self._client.post(
                f"{self.endpoint}{path}", json=payload, timeout=self.timeout
            )
        except httpx.TransportError as e:
            raise ServiceUnavailableError(
                f"etcd {path} unreachable at {self.endpoint}: {e}", original_error=e
            ) from e
        return _codec.parse_response(path, response)

    # Leases

    def create_lease(self, ttl: int) -> Lease:
        """Grant a lease and start keeping it alive.

        Raises:
            ServiceUnavailableError: etcd is unreachable.
            CoordinationError: etcd refused the grant.
        """
        body = self._post("/v3/lease/grant", {"TTL": str(ttl)})
        handle = _codec.to_int(body.get("ID"))
        granted_ttl = _codec.to_int(body.get("TTL"), default=ttl)
        if not handle:
            raise CoordinationError(f"etcd granted no lease id: {body}")

        lease = Lease(handle=handle, ttl=granted_ttl)
        keepalive = LeaseKeepAlive(
            handle,
            granted_ttl,
            lambda: self._keepalive_once(handle),
            interval=self._keepalive_interval,
        )
        with self._lock:
            self._keepalives[handle] = keepalive
        keepalive.start()
        logger.info(f"Granted lease {handle:x} with ttl {granted_ttl}s")
        return lease

    def _keepalive_once(self, handle: int) -> int:
        body = self._post("/v3/lease/keepalive", {"ID": str(handle)})
        return _codec.to_int(body.get("TTL"))

    def revoke_lease(self, lease: Lease) -> None:
        """Stop refreshing and revoke the lease, deleting keys bound to it.

        A lease etcd no longer knows is treated as already revoked.
        """
        with self._lock:
            keepalive = self._keepalives.pop(lease.handle, None)
        if keepalive is not None:
            keepalive.stop(self.timeout)

        try:
            self._post("/v3/lease/revoke", {"ID": str(lease.handle)})
        except LeaseExpiredError:
            logger.debug(f"Lease {lease.handle:x} already gone")
            return
        logger.info(f"Revoked lease {lease.handle:x}")

    def is_lease_alive(self, lease: Lease) -> bool:
        with self._lock:
            keepalive = self._keepalives.get(lease.handle)
        return keepalive is not None and keepalive.is_alive()

    # Keys

    def create_if_absent(self, key: str, value: str, lease: Lease) -> ClaimResult:
        """Atomically create key bound to lease, or report the existing value.

        Runs one transaction: if the key was never created, put it;
        otherwise read it back.

        Raises:
            LeaseExpiredError: The lease has expired on the server.
            ServiceUnavailableError: etcd is unreachable.
            CoordinationError: Any other failure.
        """
        encoded_key = _codec.encode(key)
        body = self._post(
            "/v3/kv/txn",
            {
                "compare": [
                    {
                        "key": encoded_key,
                        "target": "CREATE",
                        "result": "EQUAL",
                        "create_revision": "0",
                    }
                ],
                "success": [
                    {
                        "request_put": {
                            "key": encoded_key,
                            "value": _codec.encode(value),
                            "lease": str(lease.handle),
                        }
                    }
                ],
                "failure": [{"request_range": {"key": encoded_key}}],
            },
        )
        revision = _codec.header_revision(body)

        if body.get("succeeded"):
            return ClaimResult(created=True, current_value=value, revision=revision)

        current_value = None
        for response in body.get("responses") or []:
            range_response = _codec.field(response, "response_range")
            if range_response:
                kvs = range_response.get("kvs") or []
                if kvs:
                    current_value = _codec.decode(kvs[0].get("value", ""))
        return ClaimResult(created=False, current_value=current_value, revision=revision)

    def get_value(self, key: str) -> str | None:
        body = self._post("/v3/kv/range", {"key": _codec.encode(key)})
        kvs = body.get("kvs") or []
        if not kvs:
            return None
        return _codec.decode(kvs[0].get("value", ""))

    def watch(
        self,
        key: str,
        callback: Callable[[KeyChangeEvent], None],
        start_revision: int | None = None,
    ) -> WatchStream:
        """Open a persistent watch on key.

        Waits up to the request timeout for etcd to confirm the watch; if it
        does not, the stream keeps reconnecting in the background.
        """
        stream = WatchStream(
            self._client,
            f"{self.endpoint}{WATCH_PATH}",
            key,
            callback,
            start_revision=start_revision,
            connect_timeout=self.timeout,
            reconnect_delay=self._reconnect_delay,
        )
        with self._lock:
            self._watches = [w for w in self._watches if not w.cancelled]
            self._watches.append(stream)
        stream.start()
        if not stream.wait_created(self.timeout):
            logger.warning(f"Watch on {key!r} not confirmed yet; retrying in background")
        return stream

    def close(self) -> None:
        """Stop all keep-alives and watches and close the HTTP client. Idempotent.

        Leases are not revoked; they expire after their ttl.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            keepalives = list(self._keepalives.values())
            self._keepalives.clear()
            watches, self._watches = self._watches, []

        for stream in watches:
            stream.cancel()
        for keepalive in keepalives:
            keepalive.stop(self.timeout)
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> EtcdGatewayClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

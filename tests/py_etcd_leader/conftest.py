"""Shared fixtures for py-etcd-leader tests.

GatewayStub stands in for the etcd JSON gateway behind httpx.MockTransport.
Handlers are registered per path; every request body is recorded.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest

from py_etcd_leader import EtcdGatewayClient

Handler = Callable[[dict[str, Any]], httpx.Response]


class GatewayStub:
    """Routes gateway requests by path to registered handlers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[str, Handler] = {}
        self.requests: list[tuple[str, dict[str, Any]]] = []

    def on(self, path: str, handler: Handler) -> None:
        self._handlers[path] = handler

    def reply(self, path: str, body: dict[str, Any], status_code: int = 200) -> None:
        self.on(path, lambda payload: httpx.Response(status_code, json=body))

    def bodies(self, path: str) -> list[dict[str, Any]]:
        with self._lock:
            return [body for p, body in self.requests if p == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content or b"{}")
        with self._lock:
            self.requests.append((request.url.path, body))
        handler = self._handlers.get(request.url.path)
        if handler is None:
            return httpx.Response(404, text="404 page not found")
        return handler(body)


@pytest.fixture
def gateway() -> GatewayStub:
    stub = GatewayStub()
    stub.reply("/v3/lease/grant", {"header": {"revision": "1"}, "ID": "7587", "TTL": "10"})
    stub.reply("/v3/lease/keepalive", {"result": {"ID": "7587", "TTL": "10"}})
    stub.reply("/v3/lease/revoke", {"header": {"revision": "2"}})
    return stub


@pytest.fixture
def http_client(gateway: GatewayStub) -> Iterator[httpx.Client]:
    client = httpx.Client(transport=httpx.MockTransport(gateway))
    yield client
    client.close()


@pytest.fixture
def etcd(http_client: httpx.Client) -> Iterator[EtcdGatewayClient]:
    """Gateway client whose keep-alive never fires during a test."""
    client = EtcdGatewayClient(
        "http://etcd:2379",
        timeout=1.0,
        client=http_client,
        keepalive_interval=60.0,
        reconnect_delay=0.01,
    )
    yield client
    client.close()

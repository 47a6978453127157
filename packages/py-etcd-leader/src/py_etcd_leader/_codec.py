"""JSON encoding helpers for the etcd v3 gRPC gateway.

The gateway speaks protobuf JSON: keys and values are base64, int64 fields
are decimal strings, default-valued fields are omitted, and field names may
appear in snake_case or lowerCamelCase depending on the etcd version.
"""

from __future__ import annotations

import base64
import json
from typing import Any

import httpx

from leaderkey.domain.events import ChangeAction, KeyChangeEvent
from leaderkey.domain.exceptions import (
    CoordinationError,
    LeaseExpiredError,
    ServiceUnavailableError,
)

# gRPC status codes the gateway reports for transient failures
_GRPC_DEADLINE_EXCEEDED = 4
_GRPC_UNAVAILABLE = 14
_TRANSIENT_GRPC_CODES = frozenset({_GRPC_DEADLINE_EXCEEDED, _GRPC_UNAVAILABLE})


def encode(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode(data: str | None) -> str | None:
    if data is None:
        return None
    return base64.b64decode(data).decode("utf-8")


def field(message: dict[str, Any], snake_name: str, default: Any = None) -> Any:
    """Read a field by its snake_case name, falling back to lowerCamelCase."""
    if snake_name in message:
        return message[snake_name]
    head, *rest = snake_name.split("_")
    camel_name = head + "".join(part.capitalize() for part in rest)
    return message.get(camel_name, default)


def to_int(value: Any, default: int = 0) -> int:
    """Convert a protobuf JSON int64 (often a string) to int."""
    if value is None or value == "":
        return default
    return int(value)


def header_revision(message: dict[str, Any]) -> int | None:
    header = message.get("header") or {}
    revision = header.get("revision")
    return to_int(revision) if revision is not None else None


def decode_event(raw: dict[str, Any]) -> KeyChangeEvent:
    """Convert a gateway watch event into a KeyChangeEvent.

    PUT is the protobuf default and therefore usually omitted. A PUT at
    version 1 is a creation, any later PUT an update.
    """
    kv = raw.get("kv") or {}
    key = decode(kv.get("key")) or ""
    revision = to_int(field(kv, "mod_revision"), default=0) or None
    event_type = raw.get("type", "PUT")

    if event_type in ("DELETE", 1):
        return KeyChangeEvent(ChangeAction.DELETED, key, None, revision)

    if event_type in ("PUT", 0):
        action = (
            ChangeAction.CREATED
            if to_int(kv.get("version"), default=1) == 1
            else ChangeAction.UPDATED
        )
        return KeyChangeEvent(action, key, decode(kv.get("value")), revision)

    return KeyChangeEvent(ChangeAction.UNKNOWN, key, decode(kv.get("value")), revision)


def raise_for_error(path: str, message: dict[str, Any], status_code: int = 200) -> None:
    """Map a gateway error body (or HTTP error status) onto domain exceptions.

    Raises:
        LeaseExpiredError: The lease is unknown to etcd.
        ServiceUnavailableError: HTTP 5xx or gRPC UNAVAILABLE/DEADLINE_EXCEEDED.
        CoordinationError: Any other error.
    """
    error = message.get("error")
    if isinstance(error, dict):
        # Streaming endpoints wrap errors: {"error": {"grpc_code": .., "message": ..}}
        code = to_int(field(error, "grpc_code"))
        text = str(error.get("message", ""))
    else:
        code = to_int(message.get("code"))
        text = str(message.get("message") or error or "")

    if status_code < 400 and not code and not error:
        return

    description = f"etcd {path} failed (HTTP {status_code}, code {code}): {text}"
    if "lease not found" in text:
        raise LeaseExpiredError(description)
    if status_code >= 500 or code in _TRANSIENT_GRPC_CODES:
        raise ServiceUnavailableError(description)
    raise CoordinationError(description)


def parse_response(path: str, response: httpx.Response) -> dict[str, Any]:
    """Decode a unary gateway response, raising on errors.

    Streaming endpoints answer with one JSON object per line wrapped in
    {"result": ...}; only the first line is used here.
    """
    text = response.text.strip()
    try:
        message = json.loads(text.splitlines()[0]) if text else {}
    except ValueError as e:
        if response.status_code >= 500:
            raise ServiceUnavailableError(
                f"etcd {path} failed (HTTP {response.status_code})", original_error=e
            ) from e
        raise CoordinationError(f"etcd {path} returned invalid JSON", original_error=e) from e

    if not isinstance(message, dict):
        raise CoordinationError(f"etcd {path} returned unexpected payload")

    raise_for_error(path, message, response.status_code)
    result = message.get("result")
    return result if isinstance(result, dict) else message

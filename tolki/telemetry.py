"""Structured telemetry events written through the package logger."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from typing import Any

from .log import logger
from .util.json import make_json_safe

SENSITIVE_KEYS = {
    "authorization",
    "token",
    "secret",
    "password",
    "api_key",
    "cookie",
}

REDACTED = "[REDACTED]"


def _redact(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_KEYS else _redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_redact(item) for item in value]
    return value


def sanitize(data: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of *data* with sensitive keys replaced by ``[REDACTED]``."""
    return _redact(dict(data))


def log_event(
    event: str,
    payload: Mapping[str, Any] | None = None,
    *,
    start_time: float | None = None,
    level: int = logging.INFO,
) -> None:
    """Log a named session event.

    ``payload`` is sanitised and made JSON-safe before it reaches the
    handlers. When ``start_time`` (a :func:`time.monotonic` value) is given the
    record gains a ``duration_ms`` field.
    """
    safe_payload = make_json_safe(sanitize(payload)) if payload else {}
    data: dict[str, Any] = {
        "event": event,
        "payload": safe_payload,
        "size_bytes": len(json.dumps(safe_payload, ensure_ascii=False).encode("utf-8"))
        if payload
        else 0,
    }
    if start_time is not None:
        data["duration_ms"] = int((time.monotonic() - start_time) * 1000)
    logger.log(level, event, extra={"json": data})


def log_debug_payload(event: str, payload: Any = None) -> None:
    """Emit a debug record carrying the full *payload* when DEBUG is enabled."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    if isinstance(payload, Mapping):
        safe_payload = make_json_safe(sanitize(payload))
    else:
        safe_payload = make_json_safe(_redact(payload))
    record: dict[str, Any] = {"event": event, "level": "DEBUG", "payload": safe_payload}
    message = f"{event} {json.dumps(safe_payload, ensure_ascii=False)}"
    logger.debug(message, extra={"json": record})


__all__ = ["REDACTED", "SENSITIVE_KEYS", "log_debug_payload", "log_event", "sanitize"]

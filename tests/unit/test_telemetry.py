"""Tests for telemetry."""

import json
import logging
from pathlib import Path

import pytest

import tolki.telemetry as telemetry
from tolki import items
from tolki.log import JsonlHandler, logger
from tolki.telemetry import REDACTED, log_debug_payload, log_event, sanitize

pytestmark = pytest.mark.unit


def test_sanitize_redacts_nested_sensitive_keys() -> None:
    data = {
        "Authorization": "Bearer abc",
        "outer": {"Token": "abc", "inner": {"password": "p@ss", "value": 42}},
        "list": [{"secret": "s"}, {"cookie": "c"}],
        "user": "alice",
    }
    sanitized = sanitize(data)
    assert sanitized["Authorization"] == REDACTED
    assert sanitized["outer"]["Token"] == REDACTED
    assert sanitized["outer"]["inner"] == {"password": REDACTED, "value": 42}
    assert sanitized["list"] == [{"secret": REDACTED}, {"cookie": REDACTED}]
    assert sanitized["user"] == "alice"


def test_log_event_records_size_and_duration_and_sanitizes_payload(
    tmp_path: Path, monkeypatch
) -> None:
    log_file = tmp_path / "telemetry.jsonl"
    handler = JsonlHandler(str(log_file))
    logger.addHandler(handler)
    prev_level = logger.level
    logger.setLevel(logging.INFO)
    try:
        monkeypatch.setattr(telemetry.time, "monotonic", lambda: 2.0)
        payload = {"api_key": "key", "chat": "c-1", "nested": {"password": "p@ss"}}
        log_event("MESSAGE_SEND", payload, start_time=1.0)
    finally:
        logger.setLevel(prev_level)
        logger.removeHandler(handler)
        handler.close()
    entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[0])
    sanitized_payload = {"api_key": REDACTED, "chat": "c-1", "nested": {"password": REDACTED}}
    expected_size = len(json.dumps(sanitized_payload, ensure_ascii=False).encode("utf-8"))
    assert entry["event"] == "MESSAGE_SEND"
    assert entry["payload"] == sanitized_payload
    assert "p@ss" not in json.dumps(entry)
    assert entry["size_bytes"] == expected_size
    assert entry["duration_ms"] == 1000


def test_log_event_serialises_items_by_wire_alias(tolki_records) -> None:
    log_event("MESSAGE_RESULT", {"items": [items.cart()]})

    record = tolki_records[-1]
    assert record.json["payload"] == {"items": [{"type": "show_cart"}]}


def test_debug_payload_only_when_debug_enabled(tolki_records) -> None:
    logger.setLevel(logging.INFO)
    log_debug_payload("MESSAGE_REQUEST", {"body": {"message": "hi"}})
    assert tolki_records == []

    logger.setLevel(logging.DEBUG)
    log_debug_payload("MESSAGE_REQUEST", {"body": {"message": "hi"}, "token": "t"})
    assert tolki_records[-1].json["payload"] == {"body": {"message": "hi"}, "token": REDACTED}

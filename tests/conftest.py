"""Pytest configuration for the Tolki session engine test suite."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from gettext import NullTranslations
from typing import Any

import pytest

from tolki import i18n
from tolki.history import HistoryManager
from tolki.items import Item, items_to_payloads
from tolki.log import logger as tolki_logger

BOT_ID = "3f1c2a9e-8b7d-4c6e-9a5f-1d2e3f4a5b6c"
CHAT_ID = "9b8a7c6d-5e4f-4a3b-8c2d-1e0f9a8b7c6d"


@pytest.fixture(autouse=True)
def _reset_translation() -> Iterator[None]:
    """Keep the module-level catalogue from leaking between tests."""
    yield
    i18n._set_translation(NullTranslations())


@pytest.fixture(autouse=True)
def _isolated_log_dir(monkeypatch: pytest.MonkeyPatch, tmp_path_factory) -> None:
    monkeypatch.setenv("TOLKI_LOG_DIR", str(tmp_path_factory.mktemp("logs")))


@pytest.fixture
def persisted() -> list[list[dict[str, Any]]]:
    """Collect every payload handed to the history persistence callback."""
    return []


@pytest.fixture
def history(persisted: list[list[dict[str, Any]]]) -> HistoryManager:
    def _persist(items: list[Item]) -> None:
        persisted.append(items_to_payloads(items))

    return HistoryManager(persist=_persist)


@pytest.fixture
def tolki_records() -> Iterator[list[logging.LogRecord]]:
    """Capture records emitted through the package logger."""
    records: list[logging.LogRecord] = []

    class _Collector(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            records.append(record)

    handler = _Collector(level=logging.DEBUG)
    previous_level = tolki_logger.level
    tolki_logger.addHandler(handler)
    tolki_logger.setLevel(logging.DEBUG)
    try:
        yield records
    finally:
        tolki_logger.removeHandler(handler)
        tolki_logger.setLevel(previous_level)


@pytest.fixture
def bot_id() -> str:
    return BOT_ID


@pytest.fixture
def chat_id() -> str:
    return CHAT_ID

"""Logging setup for the Tolki session engine.

Records go to the console, a rotating text log and a rotating JSONL log
whose lines carry the structured ``json`` extra attached by telemetry.
"""

from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler
import os
import sys
from pathlib import Path
from typing import Any

from .util.time import utc_now_iso

LOG_DIR_ENV = "TOLKI_LOG_DIR"
TEXT_LOG_NAME = "tolki.log"
JSON_LOG_NAME = "tolki.jsonl"
_ROTATION_BACKUPS = 5
_LOG_MAX_BYTES = 5 * 1024 * 1024

logger = logging.getLogger("tolki")


class ConsoleFormatter(logging.Formatter):
    """Append the payload of telemetry events to the console line."""

    def __init__(self) -> None:
        super().__init__("%(levelname)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        event = getattr(record, "json", None)
        if not isinstance(event, dict) or event.get("event") != record.getMessage():
            return line
        payload = event.get("payload")
        if payload is None:
            return line
        return f"{line} {json.dumps(payload, ensure_ascii=False, default=str)}"


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON document."""

    def format(self, record: logging.LogRecord) -> str:
        extra: Any = getattr(record, "json", None)
        data: dict[str, Any] = dict(extra) if isinstance(extra, dict) else {}
        if extra is not None and not isinstance(extra, dict):
            data["data"] = extra
        data.setdefault("message", record.getMessage())
        data.setdefault("level", record.levelname)
        data.setdefault("logger", record.name)
        data.setdefault("timestamp", utc_now_iso())
        if record.exc_info:
            data.setdefault("exc_info", self.formatException(record.exc_info))
        return json.dumps(data, ensure_ascii=False, default=str)


class JsonlHandler(RotatingFileHandler):
    """Rotating file handler writing :class:`JsonFormatter` lines."""

    def __init__(
        self,
        filename: Path | str,
        *,
        max_bytes: int = _LOG_MAX_BYTES,
        backup_count: int = _ROTATION_BACKUPS,
    ) -> None:
        path = Path(filename)
        path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
        self.setFormatter(JsonFormatter())


def resolve_log_dir(log_dir: str | Path | None = None) -> Path:
    """Return the log directory: *log_dir*, ``$TOLKI_LOG_DIR`` or ``~/.tolki/logs``."""
    chosen = log_dir or os.environ.get(LOG_DIR_ENV)
    path = Path(chosen).expanduser() if chosen else Path.home() / ".tolki" / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path.resolve()


def _open_rotating(
    handler_cls: type[RotatingFileHandler], path: Path, **kwargs: Any
) -> RotatingFileHandler:
    # a file left full by a previous run is rolled over before the first write
    full = path.exists() and path.stat().st_size >= _LOG_MAX_BYTES
    handler = handler_cls(path, **kwargs)
    if full:
        handler.doRollover()
    handler.setLevel(logging.DEBUG)
    return handler


def configure_logging(
    level: int = logging.INFO, *, log_dir: str | Path | None = None
) -> Path | None:
    """Attach the package handlers once and return the log directory.

    Returns ``None`` when handlers were already attached.
    """
    if logger.handlers:
        return None
    directory = resolve_log_dir(log_dir)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(ConsoleFormatter())
    logger.addHandler(console)

    text = _open_rotating(
        RotatingFileHandler,
        directory / TEXT_LOG_NAME,
        maxBytes=_LOG_MAX_BYTES,
        backupCount=_ROTATION_BACKUPS,
        encoding="utf-8",
    )
    text.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logger.addHandler(text)
    logger.addHandler(
        _open_rotating(
            JsonlHandler,
            directory / JSON_LOG_NAME,
            max_bytes=_LOG_MAX_BYTES,
            backup_count=_ROTATION_BACKUPS,
        )
    )
    logger.setLevel(logging.DEBUG)
    return directory


def install_exception_hooks() -> None:
    """Record uncaught exceptions through the package logger."""

    def _excepthook(exc_type, exc_value, exc_traceback):
        logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))

    sys.excepthook = _excepthook


__all__ = [
    "ConsoleFormatter",
    "JsonFormatter",
    "JsonlHandler",
    "configure_logging",
    "install_exception_hooks",
    "logger",
    "resolve_log_dir",
]

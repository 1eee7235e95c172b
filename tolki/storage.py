"""Per-bot settings blob persisted as a single JSON document."""

from __future__ import annotations

import json
import logging
from copy import deepcopy
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

HISTORY_KEY = "history"
CHAT_KEY = "chat"
OPEN_KEY = "open"


class SettingsRepository:
    """Scope persisted values by bot identity.

    The whole store is one JSON object ``{bot_id: {key: value}}`` written
    back in full on every change (last writer wins). Without a *path* the
    repository lives in memory only.
    """

    def __init__(
        self,
        path: Path | str | None = None,
        *,
        storage_key: str = "tolki-settings",
    ) -> None:
        self._path = Path(path).expanduser() if path is not None else None
        self._storage_key = storage_key
        self._cache: dict[str, dict[str, Any]] = {}
        self._load()

    # ------------------------------------------------------------------
    @property
    def path(self) -> Path | None:
        return self._path

    # ------------------------------------------------------------------
    @property
    def storage_key(self) -> str:
        return self._storage_key

    # ------------------------------------------------------------------
    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to load settings from %s: %s", self._path, exc)
            return
        blob = raw.get(self._storage_key) if isinstance(raw, dict) else None
        if not isinstance(blob, dict):
            return
        self._cache = {
            str(bot_id): dict(values)
            for bot_id, values in blob.items()
            if isinstance(values, dict)
        }

    # ------------------------------------------------------------------
    def _save(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {self._storage_key: self._cache}
        with self._path.open("w", encoding="utf-8") as fh:
            json.dump(payload, fh, ensure_ascii=False, indent=2)

    # ------------------------------------------------------------------
    def get(self, bot_id: str | None, key: str, default: Any = None) -> Any:
        if not bot_id:
            return default
        value = self._cache.get(bot_id, {}).get(key, default)
        return deepcopy(value)

    # ------------------------------------------------------------------
    def set(self, bot_id: str | None, key: str, value: Any) -> None:
        """Store *value* for *bot_id* and flush the store to disk."""
        if not bot_id:
            return
        self._cache.setdefault(bot_id, {})[key] = deepcopy(value)
        self._save()

    # ------------------------------------------------------------------
    def get_all(self, bot_id: str | None) -> dict[str, Any] | None:
        if not bot_id or bot_id not in self._cache:
            return None
        return deepcopy(self._cache[bot_id])

    # ------------------------------------------------------------------
    def has(self, bot_id: str | None, key: str) -> bool:
        if not bot_id:
            return False
        return self._cache.get(bot_id, {}).get(key) is not None

    # ------------------------------------------------------------------
    def clear(self, bot_id: str | None) -> None:
        if not bot_id:
            return
        self._cache.pop(bot_id, None)
        self._save()

    # ------------------------------------------------------------------
    def clear_all(self) -> None:
        self._cache = {}
        self._save()


__all__ = ["CHAT_KEY", "HISTORY_KEY", "OPEN_KEY", "SettingsRepository"]

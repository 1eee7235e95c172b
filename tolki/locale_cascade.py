"""Reconcile the active display language with the newest locale checkpoint."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence

from .history import HistoryManager
from .i18n import LocaleCatalog
from .items import Item, locale_marker

logger = logging.getLogger(__name__)


def find_last_locale(items: Iterable[Item]) -> str | None:
    """Return the locale of the newest checkpoint, scanning tail to head."""
    sequence: Sequence[Item] = items if isinstance(items, Sequence) else list(items)
    for item in reversed(sequence):
        marker = locale_marker(item)
        if marker:
            return marker
    return None


class LocaleCascadeResolver:
    """Move the active-language pointer forward after bulk log changes.

    Run after the log is restored from storage and after each successful
    round trip. Items already in the log are never retranslated. *on_change*
    receives the new active locale whenever a pass moved it.
    """

    def __init__(
        self,
        history: HistoryManager,
        catalog: LocaleCatalog,
        *,
        on_change: Callable[[str], None] | None = None,
    ) -> None:
        self._history = history
        self._catalog = catalog
        self._on_change = on_change

    async def resolve(self) -> str:
        """Switch to the last requested locale when it differs; return the active one."""
        requested = find_last_locale(self._history.get_current_history())
        if not requested or requested == self._catalog.get_locale():
            return self._catalog.get_locale()
        previous = self._catalog.get_locale()
        logger.debug("Cascading locale %s -> %s", previous, requested)
        active = await self._catalog.activate(requested)
        self._history.persist()
        if active != previous and self._on_change is not None:
            self._on_change(active)
        return active


__all__ = ["LocaleCascadeResolver", "find_last_locale"]

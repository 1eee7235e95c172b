"""Ordered conversation log and the manager owning its mutations."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence

from .items import (
    Item,
    is_cart_notification,
    is_ephemeral,
    is_persistable,
)

logger = logging.getLogger(__name__)

PersistCallback = Callable[[list[Item]], None]
ChangeListener = Callable[[tuple[Item, ...]], None]


class ItemLog:
    """Append-biased sequence of conversation entries; pure data."""

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[Item] = ()) -> None:
        self._items: list[Item] = list(items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    def snapshot(self) -> tuple[Item, ...]:
        return tuple(self._items)

    def replace(self, items: Iterable[Item]) -> None:
        self._items = list(items)


class HistoryManager:
    """Own mutation and persistence filtering over an :class:`ItemLog`.

    All operations are synchronous. Every mutation notifies the registered
    change listeners with a read-only snapshot of the log; ``persist`` hands
    the persistable subset to the storage callback, whose failures propagate.
    """

    def __init__(
        self,
        *,
        persist: PersistCallback,
        log: ItemLog | None = None,
    ) -> None:
        self._log = log if log is not None else ItemLog()
        self._persist = persist
        self._listeners: list[ChangeListener] = []

    # ------------------------------------------------------------------
    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register *listener* for change notifications; return an unsubscriber."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    def _commit(self, items: list[Item]) -> None:
        self._log.replace(items)
        snapshot = self._log.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    # ------------------------------------------------------------------
    def add_item(self, item: Item) -> None:
        self._commit([*self._log, item])

    # ------------------------------------------------------------------
    def add_items(self, items: Iterable[Item]) -> None:
        self._commit([*self._log, *items])

    # ------------------------------------------------------------------
    def insert_items(self, index: int, items: Sequence[Item]) -> None:
        """Insert *items* in order starting at *index* (clamped to the log)."""
        current = list(self._log)
        position = max(0, min(index, len(current)))
        current[position:position] = list(items)
        self._commit(current)

    # ------------------------------------------------------------------
    def remove_items(self, predicate: Callable[[Item], bool]) -> None:
        """Drop entries matching *predicate*, keeping the rest in order."""
        self._commit([item for item in self._log if not predicate(item)])

    # ------------------------------------------------------------------
    def replace_history(self, items: Iterable[Item]) -> None:
        self._commit(list(items))

    # ------------------------------------------------------------------
    def find_index(self, predicate: Callable[[Item], bool]) -> int | None:
        """Return the position of the first entry matching *predicate*."""
        for index, item in enumerate(self._log):
            if predicate(item):
                return index
        return None

    # ------------------------------------------------------------------
    def clear_temporary_items(self) -> None:
        """Remove every ``Thinking`` and ``CartNotification`` entry."""
        self.remove_items(is_ephemeral)

    # ------------------------------------------------------------------
    def remove_cart_notifications(self) -> None:
        """Remove cart notifications in both their legacy and current encoding."""
        self.remove_items(is_cart_notification)

    # ------------------------------------------------------------------
    def get_persistable_items(self) -> list[Item]:
        return [item for item in self._log if is_persistable(item)]

    # ------------------------------------------------------------------
    def persist(self) -> None:
        """Hand the persistable subset to the storage callback."""
        items = self.get_persistable_items()
        logger.debug("Persisting %d of %d history items", len(items), len(self._log))
        self._persist(items)

    # ------------------------------------------------------------------
    def execute_standard_flow(self, on_done: Callable[[], None] | None = None) -> None:
        """Settle the log: drop temporaries, persist, then notify *on_done*."""
        self.clear_temporary_items()
        self.persist()
        if on_done is not None:
            on_done()

    # ------------------------------------------------------------------
    def get_current_history(self) -> tuple[Item, ...]:
        return self._log.snapshot()

    # ------------------------------------------------------------------
    def is_empty(self) -> bool:
        return len(self._log) == 0

    # ------------------------------------------------------------------
    def get_last_item(self) -> Item | None:
        snapshot = self._log.snapshot()
        return snapshot[-1] if snapshot else None

    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._log)


__all__ = ["HistoryManager", "ItemLog"]

"""Built-in chat commands operating on the conversation history."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from . import items as builders
from .commands import Command
from .history import HistoryManager
from .items import ActionItem, ItemKind
from .live_state import LiveStoreState
from .storage import CHAT_KEY
from .telemetry import log_event
from .util.ids import new_chat_id

logger = logging.getLogger(__name__)

LAST_MESSAGE_SCROLL_DELAY_MS = 100


@dataclass(slots=True)
class ChatOperations:
    """Callables through which commands reach the owning session."""

    add_heading_messages: Callable[[], Awaitable[None]]
    save_setting: Callable[[str, Any], None]
    scroll_to_last_message: Callable[[int], None]
    wait_for_render: Callable[[], Awaitable[None]]
    set_chat_id: Callable[[str], None]
    change_language: Callable[[str], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class CancelActionParams:
    """Identify the ``Action`` entry a cancel button belongs to."""

    action: ActionItem | None = None
    data: dict[str, Any] | None = None


class _HistoryCommand(Command):
    def __init__(self, history: HistoryManager, ops: ChatOperations) -> None:
        self._history = history
        self._ops = ops

    async def _settle(self) -> None:
        """Clear temporaries, persist, and scroll once the render caught up."""
        self._history.execute_standard_flow()
        await self._ops.wait_for_render()
        self._ops.scroll_to_last_message(LAST_MESSAGE_SCROLL_DELAY_MS)


class ShowCartCommand(_HistoryCommand):
    """Show the cart panel, replacing any earlier one."""

    def __init__(
        self,
        history: HistoryManager,
        ops: ChatOperations,
        live: LiveStoreState,
        *,
        name: str = "showCart",
        remove_notification: bool = False,
    ) -> None:
        super().__init__(history, ops)
        self._live = live
        self.name = name
        self._remove_notification = remove_notification

    def can_execute(self, params: Any = None) -> bool:
        return self._live.cart is not None and self._live.has_cart_items()

    async def execute(self, params: Any = None) -> None:
        if self._remove_notification:
            self._history.remove_cart_notifications()
        self._history.remove_items(lambda item: item.kind is ItemKind.CART)
        self._history.add_item(builders.cart())
        await self._settle()


class ShowOrdersCommand(_HistoryCommand):
    name = "show_orders"

    def __init__(
        self, history: HistoryManager, ops: ChatOperations, live: LiveStoreState
    ) -> None:
        super().__init__(history, ops)
        self._live = live

    def can_execute(self, params: Any = None) -> bool:
        return self._live.order_count() > 0

    async def execute(self, params: Any = None) -> None:
        self._history.remove_items(lambda item: item.kind is ItemKind.ORDERS)
        self._history.add_item(builders.orders())
        await self._settle()


class ResetChatCommand(Command):
    """Start a new conversation under a fresh session id."""

    name = "resetChat"

    def __init__(self, history: HistoryManager, ops: ChatOperations) -> None:
        self._history = history
        self._ops = ops

    async def execute(self, params: Any = None) -> None:
        chat_id = new_chat_id()
        self._ops.set_chat_id(chat_id)
        self._ops.save_setting(CHAT_KEY, chat_id)
        await self._ops.add_heading_messages()
        self._history.persist()
        log_event("SESSION_RESET", {"items": len(self._history)})


class CancelActionCommand(Command):
    """Remove the ``Action`` entry whose button was pressed."""

    name = "cancelAction"

    def __init__(self, history: HistoryManager) -> None:
        self._history = history

    def validate(self, params: Any = None) -> bool:
        if params is None:
            return True
        return isinstance(params, CancelActionParams) and (
            params.action is None or isinstance(params.action, ActionItem)
        )

    def can_execute(self, params: Any = None) -> bool:
        if params is None or params.action is None:
            return False
        target = params.action
        return self._history.find_index(lambda item: item is target) is not None

    def execute(self, params: Any = None) -> None:
        target = params.action
        self._history.remove_items(lambda item: item is target)
        self._history.persist()


class SetLocaleCommand(Command):
    """Switch the display language through the locale-change path."""

    name = "set_locale"

    def __init__(self, ops: ChatOperations, supported_locales: Sequence[str]) -> None:
        self._ops = ops
        self._supported = [code.lower() for code in supported_locales]

    def validate(self, params: Any = None) -> bool:
        return isinstance(params, str) and len(params.strip()) >= 2

    def can_execute(self, params: Any = None) -> bool:
        return isinstance(params, str) and params.strip().lower() in self._supported

    async def execute(self, params: Any = None) -> None:
        await self._ops.change_language(params.strip().lower())

    def add_supported_locale(self, locale: str) -> None:
        code = locale.lower()
        if code not in self._supported:
            self._supported.append(code)

    def supported_locales(self) -> list[str]:
        return list(self._supported)


def builtin_commands(
    history: HistoryManager,
    ops: ChatOperations,
    live: LiveStoreState,
    *,
    supported_locales: Sequence[str],
) -> list[Command]:
    """Return every built-in command wired to the given collaborators."""
    return [
        ShowCartCommand(history, ops, live),
        ShowCartCommand(history, ops, live, name="show_cart"),
        ShowCartCommand(
            history,
            ops,
            live,
            name="showCartAndRemoveNotification",
            remove_notification=True,
        ),
        ShowOrdersCommand(history, ops, live),
        ResetChatCommand(history, ops),
        CancelActionCommand(history),
        SetLocaleCommand(ops, supported_locales),
    ]


__all__ = [
    "CancelActionCommand",
    "CancelActionParams",
    "ChatOperations",
    "ResetChatCommand",
    "SetLocaleCommand",
    "ShowCartCommand",
    "ShowOrdersCommand",
    "builtin_commands",
]

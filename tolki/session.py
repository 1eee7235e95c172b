"""Chat session wiring history, commands, round trips and scrolling together."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Coroutine
from contextlib import suppress
from dataclasses import dataclass, replace
from typing import Any

from . import items as builders
from .api import MessageEndpointClient
from .bot import BotInitResult, init_bot
from .chat_commands import CancelActionParams, ChatOperations, builtin_commands
from .commands import CommandDispatcher, LoggingMiddleware, TelemetryMiddleware
from .history import HistoryManager
from .i18n import LocaleCatalog, language_from_environment
from .items import (
    PRIVACY_POLICY_KEY,
    ActionButton,
    ActionItem,
    Item,
    is_language_changed_notice,
    items_from_payloads,
    items_to_payloads,
)
from .live_state import LiveStoreState
from .locale_cascade import LocaleCascadeResolver
from .roundtrip import MessageRoundTripController, RoundTripCallbacks, RoundTripOutcome
from .scroll import ScrollReconciler, ScrollStateTracker, Viewport
from .settings import AppSettings
from .storage import CHAT_KEY, HISTORY_KEY, OPEN_KEY, SettingsRepository
from .suggestions import extract_command, parse_command
from .util.ids import is_valid_uuid, new_chat_id

logger = logging.getLogger(__name__)

PRIVACY_MESSAGE = (
    'By using this chat, you agree to our <a target="_blank" href="%(url)s">'
    "privacy policy</a>."
)
LAST_MESSAGE_DELAY_MS = 100


class SessionEvent:
    """Simple signal implementation for the session model."""

    __slots__ = ("_listeners",)

    def __init__(self) -> None:
        self._listeners: list[Callable[[Any], None]] = []

    def connect(self, callback: Callable[[Any], None]) -> None:
        self._listeners.append(callback)

    def disconnect(self, callback: Callable[[Any], None]) -> None:
        with suppress(ValueError):
            self._listeners.remove(callback)

    def emit(self, payload: Any) -> None:
        for listener in list(self._listeners):
            listener(payload)


@dataclass(slots=True)
class SessionEvents:
    """Expose observable hooks for the session lifecycle."""

    history_changed: SessionEvent
    state_changed: SessionEvent
    scroll_requested: SessionEvent


@dataclass(slots=True)
class SessionState:
    bot: BotInitResult | None = None
    chat_id: str = ""
    locale: str = "en"
    open: bool = False
    pending: bool = False
    input_text: str = ""
    render_key: int = 0

    @property
    def ready(self) -> bool:
        return self.bot is not None and self.bot.ready


@dataclass(frozen=True, slots=True)
class ScrollRequest:
    """Viewport alignment asked for by the session; ``None`` means the last entry."""

    index: int | None
    animate: bool = True


@dataclass(frozen=True, slots=True)
class SubmitMessage:
    text: str


@dataclass(frozen=True, slots=True)
class RunCommand:
    command: str
    params: Any = None


@dataclass(frozen=True, slots=True)
class SuggestionClicked:
    text: str


@dataclass(frozen=True, slots=True)
class ActionPressed:
    item: ActionItem
    button: ActionButton


SessionRequest = SubmitMessage | RunCommand | SuggestionClicked | ActionPressed


class ChatSession:
    """Own one conversation for a bot.

    UI input is turned into request objects processed one at a time from a
    dispatch queue, so a second message waits until the previous round trip
    settled. The render layer observes :attr:`events`.
    """

    def __init__(
        self,
        bot_id: str,
        *,
        settings: AppSettings | None = None,
        client: MessageEndpointClient | None = None,
        repository: SettingsRepository | None = None,
        catalog: LocaleCatalog | None = None,
        live: LiveStoreState | None = None,
        viewport: Viewport | None = None,
        lang: str | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or AppSettings()
        self.bot_id = bot_id
        self._lang = lang
        self._sleep = sleep
        self.client = client or MessageEndpointClient(self.settings.endpoint)
        self.repository = repository or SettingsRepository(
            self.settings.storage.path, storage_key=self.settings.storage.storage_key
        )
        self.catalog = catalog or LocaleCatalog(
            source_locale=self.settings.chat.source_locale
        )
        self.live = live or LiveStoreState()
        self.state = SessionState(locale=self.catalog.get_locale())
        self.events = SessionEvents(
            history_changed=SessionEvent(),
            state_changed=SessionEvent(),
            scroll_requested=SessionEvent(),
        )

        self.history = HistoryManager(persist=self._save_history)
        self.history.subscribe(self.events.history_changed.emit)
        self.resolver = LocaleCascadeResolver(
            self.history, self.catalog, on_change=self._on_locale_cascaded
        )

        self.dispatcher = CommandDispatcher()
        self.dispatcher.use(LoggingMiddleware())
        self.dispatcher.use(TelemetryMiddleware())
        self.dispatcher.register_many(
            builtin_commands(
                self.history,
                ChatOperations(
                    add_heading_messages=self.add_heading_messages,
                    save_setting=self.save_setting,
                    scroll_to_last_message=self.scroll_to_last_message,
                    wait_for_render=self.wait_for_render,
                    set_chat_id=self._set_chat_id,
                    change_language=self.change_language,
                ),
                self.live,
                supported_locales=self.settings.chat.supported_locales,
            )
        )

        self.controller = MessageRoundTripController(
            self.history,
            self.resolver,
            self.client,
            RoundTripCallbacks(
                session_ready=lambda: self.state.ready,
                chat_id=lambda: self.state.chat_id,
                bot_id=lambda: self.bot_id,
                is_adk=self._is_adk,
                clear_input=self.clear_input,
                set_pending=self._set_pending,
                request_scroll=self.request_scroll,
            ),
        )

        self.reconciler = (
            ScrollReconciler.from_settings(viewport, self.settings.scroll, sleep=sleep)
            if viewport is not None
            else None
        )
        self.scroll_state = ScrollStateTracker(
            show_button_threshold=self.settings.scroll.show_button_threshold_px,
            at_bottom_threshold=self.settings.scroll.at_bottom_threshold_px,
        )
        self._queue: deque[SessionRequest] = deque()
        self._draining = False
        self._scroll_tasks: set[asyncio.Task[Any]] = set()
        self.live.on_loaded(self.refresh_cart_notification)

    # ------------------------------------------------------------------
    def _emit_state(self) -> None:
        self.events.state_changed.emit(replace(self.state))

    # ------------------------------------------------------------------
    def _is_adk(self) -> bool:
        bot = self.state.bot
        return bool(bot and bot.props and bot.props.is_adk)

    # ------------------------------------------------------------------
    def _set_pending(self, pending: bool) -> None:
        if self.state.pending != pending:
            self.state.pending = pending
            self._emit_state()

    # ------------------------------------------------------------------
    def _on_locale_cascaded(self, locale: str) -> None:
        self.state.locale = locale
        self.state.render_key += 1
        self._emit_state()

    # ------------------------------------------------------------------
    def _set_chat_id(self, chat_id: str) -> None:
        self.state.chat_id = chat_id
        self._emit_state()

    # ------------------------------------------------------------------
    def _save_history(self, items: list[Item]) -> None:
        self.save_setting(HISTORY_KEY, items_to_payloads(items))

    # ------------------------------------------------------------------
    def get_setting(self, key: str, default: Any = None) -> Any:
        return self.repository.get(self.bot_id, key, default)

    # ------------------------------------------------------------------
    def save_setting(self, key: str, value: Any) -> None:
        self.repository.set(self.bot_id, key, value)

    # ------------------------------------------------------------------
    async def start(self) -> BotInitResult:
        """Resolve the bot and restore or seed the conversation.

        The session only becomes ready when the bot status is ``ok``; the
        result is returned either way.
        """
        lang = self._lang or language_from_environment(self.catalog.source_locale)
        self.state.locale = await self.catalog.activate(lang)
        bot = await init_bot(self.client, self.bot_id, lang)
        self.state.bot = bot
        if not bot.ready:
            logger.warning("Bot not initialized: %s", bot.status.value)
            self._emit_state()
            return bot

        saved_chat = self.get_setting(CHAT_KEY)
        if isinstance(saved_chat, str) and is_valid_uuid(saved_chat):
            self.state.chat_id = saved_chat
        else:
            self.state.chat_id = new_chat_id()
            self.save_setting(CHAT_KEY, self.state.chat_id)

        saved_history = self.get_setting(HISTORY_KEY)
        if isinstance(saved_history, list):
            self.history.replace_history(items_from_payloads(saved_history))
            await self.resolver.resolve()
        if self.history.is_empty():
            await self.add_heading_messages()

        saved_open = self.get_setting(OPEN_KEY)
        if saved_open == "true":
            self.state.open = True
        elif saved_open == "false":
            self.state.open = False
        else:
            self.state.open = bool(bot.props is not None and bot.props.default_open is True)

        self.state.locale = self.catalog.get_locale()
        self._emit_state()
        self.scroll_to_last_message(0, animate=False)
        return bot

    # ------------------------------------------------------------------
    async def add_heading_messages(self) -> None:
        """Replace the log with the opening messages of a new conversation."""
        heading: list[Item] = []
        privacy = builders.info(
            PRIVACY_MESSAGE % {"url": self.settings.chat.privacy_policy_url},
            template_key=PRIVACY_POLICY_KEY,
            template_params={"url": self.settings.chat.privacy_policy_url},
        )
        if privacy is not None:
            heading.append(privacy)
        bot = self.state.bot
        if bot is not None and bot.props is not None and bot.props.welcome_message:
            welcome = builders.assistant(bot.props.welcome_message)
            if welcome is not None:
                heading.append(welcome)
        if self.live.has_cart_items() or self.live.is_cart_loading():
            heading.append(builders.cart_notification())
        self.history.replace_history(heading)
        await self.resolver.resolve()

    # ------------------------------------------------------------------
    def toggle_window(self) -> bool:
        self.state.open = not self.state.open
        self.save_setting(OPEN_KEY, "true" if self.state.open else "false")
        self._emit_state()
        return self.state.open

    # ------------------------------------------------------------------
    def request_reset(self) -> None:
        """Ask the user to confirm starting a new conversation."""
        self.history.add_item(builders.reset_confirmation())
        self.scroll_to_last_message(LAST_MESSAGE_DELAY_MS)

    # ------------------------------------------------------------------
    async def change_language(self, locale: str) -> str:
        """Activate *locale* and leave a single language checkpoint in the log."""
        active = await self.catalog.activate(locale)
        self.history.remove_items(is_language_changed_notice)
        self.history.add_item(builders.language_changed(active))
        self.history.execute_standard_flow()
        self.state.locale = active
        self.state.render_key += 1
        self._emit_state()
        await self.wait_for_render()
        self.scroll_to_last_message(LAST_MESSAGE_DELAY_MS)
        return active

    # ------------------------------------------------------------------
    def refresh_cart_notification(self) -> None:
        """Rebuild the ephemeral cart notification from the live cart."""
        self.history.remove_cart_notifications()
        notification = self.live.create_cart_notification()
        if notification is not None:
            self.history.add_item(notification)

    # ------------------------------------------------------------------
    def set_input(self, text: str) -> None:
        self.state.input_text = text
        self._emit_state()

    # ------------------------------------------------------------------
    def clear_input(self) -> None:
        self.set_input("")

    # ------------------------------------------------------------------
    async def send_message(self, text: str | None = None) -> RoundTripOutcome:
        """Send *text*, or the current input when omitted."""
        return await self.controller.submit(self.state.input_text if text is None else text)

    # ------------------------------------------------------------------
    async def execute_command_text(self, command: str) -> bool:
        """Run ``"name param"`` command text through the dispatcher."""
        name, param = parse_command(command)
        return await self.dispatcher.execute(name, param)

    # ------------------------------------------------------------------
    async def handle_suggestion(self, text: str) -> bool | RoundTripOutcome:
        command, display_text = extract_command(text, self.live)
        if command:
            return await self.execute_command_text(command)
        return await self.send_message(display_text)

    # ------------------------------------------------------------------
    async def press_action(self, item: ActionItem, button: ActionButton) -> bool:
        params: Any = button.data
        if button.command == "cancelAction":
            params = CancelActionParams(action=item, data=button.data)
        return await self.dispatcher.execute(button.command, params)

    # ------------------------------------------------------------------
    def enqueue(self, request: SessionRequest) -> None:
        self._queue.append(request)

    # ------------------------------------------------------------------
    async def dispatch(self, request: SessionRequest) -> Any:
        if isinstance(request, SubmitMessage):
            return await self.send_message(request.text)
        if isinstance(request, RunCommand):
            return await self.dispatcher.execute(request.command, request.params)
        if isinstance(request, SuggestionClicked):
            return await self.handle_suggestion(request.text)
        if isinstance(request, ActionPressed):
            return await self.press_action(request.item, request.button)
        raise TypeError(f"Unsupported session request: {request!r}")

    # ------------------------------------------------------------------
    async def process_pending(self) -> list[Any]:
        """Handle queued requests in order; return their results.

        A call made while the queue is already being drained returns
        immediately and leaves its requests to the running drain.
        """
        if self._draining:
            return []
        self._draining = True
        results: list[Any] = []
        try:
            while self._queue:
                results.append(await self.dispatch(self._queue.popleft()))
        finally:
            self._draining = False
        return results

    # ------------------------------------------------------------------
    async def submit(self, request: SessionRequest) -> list[Any]:
        self.enqueue(request)
        return await self.process_pending()

    # ------------------------------------------------------------------
    async def wait_for_render(self) -> None:
        await self._sleep(0)

    # ------------------------------------------------------------------
    def _spawn_scroll(self, coro: Coroutine[Any, Any, Any]) -> None:
        """Schedule viewport work on the running loop; skipped without one."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; viewport alignment skipped")
            coro.close()
            return
        task = loop.create_task(coro)
        self._scroll_tasks.add(task)
        task.add_done_callback(self._scroll_tasks.discard)

    # ------------------------------------------------------------------
    def request_scroll(self, index: int) -> None:
        """Align the viewport on entry *index*."""
        self.events.scroll_requested.emit(ScrollRequest(index))
        if self.reconciler is not None:
            self._spawn_scroll(self.reconciler.align(index))

    # ------------------------------------------------------------------
    def scroll_to_last_message(self, timeout_ms: int = 0, *, animate: bool = True) -> None:
        self.events.scroll_requested.emit(ScrollRequest(None, animate))
        if self.reconciler is not None:
            self._spawn_scroll(
                self.reconciler.scroll_to_last_message(timeout_ms / 1000, animate)
            )

    # ------------------------------------------------------------------
    async def wait_for_scrolls(self) -> None:
        """Wait until every scheduled viewport alignment finished."""
        while True:
            pending = [task for task in self._scroll_tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending)


__all__ = [
    "ActionPressed",
    "ChatSession",
    "RunCommand",
    "ScrollRequest",
    "SessionEvent",
    "SessionEvents",
    "SessionRequest",
    "SessionState",
    "SubmitMessage",
    "SuggestionClicked",
]

"""Per-message send/receive state machine."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from . import items as builders
from .api import MessageApiError, MessageEndpointClient
from .history import HistoryManager
from .items import Item, is_thinking, items_from_payloads
from .locale_cascade import LocaleCascadeResolver
from .telemetry import log_event

logger = logging.getLogger(__name__)


class RoundTripState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    AWAITING_RESPONSE = "awaitingResponse"
    APPLYING_SUCCESS = "applyingSuccess"
    APPLYING_FAILURE = "applyingFailure"


class RoundTripOutcome(str, Enum):
    REFUSED = "refused"
    BUSY = "busy"
    SUCCESS = "success"
    FAILURE = "failure"
    MALFORMED = "malformed"
    STALE = "stale"


@dataclass(slots=True)
class RoundTripCallbacks:
    """Callables used by :class:`MessageRoundTripController` to reach the session."""

    session_ready: Callable[[], bool]
    chat_id: Callable[[], str]
    bot_id: Callable[[], str]
    is_adk: Callable[[], bool]
    clear_input: Callable[[], None]
    set_pending: Callable[[bool], None]
    request_scroll: Callable[[int], None]


class MessageRoundTripController:
    """Drive one user message through ``Idle -> Sending -> AwaitingResponse``.

    Transport failures and non-2xx responses are absorbed into a single
    error entry. Whatever happens, the ``Thinking`` placeholder and the
    pending flag are cleared before :meth:`submit` returns.
    """

    def __init__(
        self,
        history: HistoryManager,
        resolver: LocaleCascadeResolver,
        client: MessageEndpointClient,
        callbacks: RoundTripCallbacks,
    ) -> None:
        self._history = history
        self._resolver = resolver
        self._client = client
        self._callbacks = callbacks
        self._state = RoundTripState.IDLE

    # ------------------------------------------------------------------
    @property
    def state(self) -> RoundTripState:
        return self._state

    # ------------------------------------------------------------------
    def _set_state(self, state: RoundTripState) -> None:
        logger.debug("Round trip %s -> %s", self._state.value, state.value)
        self._state = state

    # ------------------------------------------------------------------
    def _remove_thinking(self) -> int | None:
        index = self._history.find_index(is_thinking)
        if index is not None:
            self._history.remove_items(is_thinking)
        return index

    # ------------------------------------------------------------------
    async def submit(self, text: str | None) -> RoundTripOutcome:
        """Send *text* and apply the server answer to the history."""
        if self._state is not RoundTripState.IDLE:
            logger.info("Message submitted while a round trip is in flight")
            return RoundTripOutcome.BUSY

        entry = builders.user_input(text)
        if entry is None or not self._callbacks.session_ready():
            self._callbacks.clear_input()
            return RoundTripOutcome.REFUSED

        chat_id = self._callbacks.chat_id()
        start = time.monotonic()
        outcome = RoundTripOutcome.FAILURE
        try:
            self._set_state(RoundTripState.SENDING)
            self._history.add_item(entry)
            self._history.clear_temporary_items()
            self._history.persist()
            self._history.add_item(builders.thinking())
            self._callbacks.clear_input()
            self._callbacks.set_pending(True)
            log_event("MESSAGE_SEND", {"chat": chat_id, "length": len(entry.content)})

            self._set_state(RoundTripState.AWAITING_RESPONSE)
            try:
                response = await self._client.send_message(
                    chat_id,
                    self._callbacks.bot_id(),
                    entry.content,
                    is_adk=self._callbacks.is_adk(),
                )
            except MessageApiError as exc:
                logger.warning("Message request failed (%s): %s", exc.status.value, exc)
                if self._callbacks.chat_id() != chat_id:
                    outcome = RoundTripOutcome.STALE
                    self._remove_thinking()
                else:
                    outcome = RoundTripOutcome.FAILURE
                    self._apply_failure()
                return outcome

            if self._callbacks.chat_id() != chat_id:
                logger.info("Discarding response for superseded chat %s", chat_id)
                outcome = RoundTripOutcome.STALE
                self._remove_thinking()
                return outcome

            if not isinstance(response, list):
                logger.warning(
                    "Ignoring malformed message response of type %s",
                    type(response).__name__,
                )
                outcome = RoundTripOutcome.MALFORMED
                self._remove_thinking()
                return outcome

            await self._apply_success(items_from_payloads(response))
            outcome = RoundTripOutcome.SUCCESS
            return outcome
        finally:
            if self._history.find_index(is_thinking) is not None:
                self._history.remove_items(is_thinking)
            self._callbacks.set_pending(False)
            self._set_state(RoundTripState.IDLE)
            log_event(
                "MESSAGE_RESULT",
                {"chat": chat_id, "outcome": outcome.value},
                start_time=start,
            )

    # ------------------------------------------------------------------
    async def _apply_success(self, batch: list[Item]) -> None:
        self._set_state(RoundTripState.APPLYING_SUCCESS)
        index = self._remove_thinking()
        if index is None:
            index = len(self._history)
        self._history.insert_items(index, batch)
        await self._resolver.resolve()
        self._history.persist()
        self._callbacks.set_pending(False)
        if batch:
            self._callbacks.request_scroll(index)
        elif len(self._history):
            self._callbacks.request_scroll(len(self._history) - 1)

    # ------------------------------------------------------------------
    def _apply_failure(self) -> None:
        self._set_state(RoundTripState.APPLYING_FAILURE)
        self._remove_thinking()
        self._history.add_item(builders.error())
        self._history.persist()
        self._callbacks.set_pending(False)
        self._callbacks.request_scroll(len(self._history) - 1)


__all__ = [
    "MessageRoundTripController",
    "RoundTripCallbacks",
    "RoundTripOutcome",
    "RoundTripState",
]

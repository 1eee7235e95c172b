"""Viewport alignment against content that keeps resizing after render."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from .settings import MAX_SCROLL_RETRIES, ScrollSettings

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class Viewport(Protocol):
    """Measurements and movement offered by the render layer."""

    def item_count(self) -> int: ...

    def offset_of(self, index: int) -> float: ...

    def content_height(self) -> float: ...

    def has_dynamic_content(self, index: int) -> bool: ...

    def scroll_to(self, top: float, *, animate: bool) -> None: ...


class ScrollReconciler:
    """Keep the viewport anchored on a target entry.

    After each alignment the content height is measured again once the
    settle delay elapsed; a change above the threshold inside a target
    carrying dynamically sized content triggers another pass, at most
    ``max_retries`` times.
    """

    def __init__(
        self,
        viewport: Viewport,
        *,
        settle_delay: float = 0.15,
        threshold_px: float = 4.0,
        max_retries: int = MAX_SCROLL_RETRIES,
        last_message_offset_px: float = 80.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if not 0 <= max_retries <= MAX_SCROLL_RETRIES:
            raise ValueError(f"max_retries must be between 0 and {MAX_SCROLL_RETRIES}")
        self._viewport = viewport
        self._settle_delay = settle_delay
        self._threshold = threshold_px
        self._max_retries = max_retries
        self._last_message_offset = last_message_offset_px
        self._sleep = sleep

    # ------------------------------------------------------------------
    @classmethod
    def from_settings(
        cls, viewport: Viewport, settings: ScrollSettings, *, sleep: Sleep = asyncio.sleep
    ) -> ScrollReconciler:
        return cls(
            viewport,
            settle_delay=settings.settle_delay_ms / 1000,
            threshold_px=settings.height_threshold_px,
            max_retries=settings.max_retries,
            last_message_offset_px=settings.last_message_offset_px,
            sleep=sleep,
        )

    # ------------------------------------------------------------------
    async def align(self, target: int, animate: bool = True, attempt: int = 0) -> int:
        """Scroll to entry *target*; return the number of retries performed."""
        if not 0 <= target < self._viewport.item_count():
            logger.debug("Scroll target %d out of range", target)
            return attempt
        self._viewport.scroll_to(self._viewport.offset_of(target), animate=animate)
        before = self._viewport.content_height()
        await self._sleep(self._settle_delay)
        after = self._viewport.content_height()
        if (
            abs(after - before) > self._threshold
            and self._viewport.has_dynamic_content(target)
            and attempt < self._max_retries
        ):
            logger.debug(
                "Content height changed %.1f -> %.1f, realigning (attempt %d)",
                before,
                after,
                attempt + 1,
            )
            return await self.align(target, animate, attempt + 1)
        return attempt

    # ------------------------------------------------------------------
    async def scroll_to_last_message(self, delay: float = 0.0, animate: bool = True) -> None:
        """Bring the newest entry into view with some space above it."""
        if delay:
            await self._sleep(delay)
        count = self._viewport.item_count()
        if not count:
            return
        top = self._viewport.offset_of(count - 1) - self._last_message_offset
        self._viewport.scroll_to(max(0.0, top), animate=animate)


@dataclass(frozen=True, slots=True)
class ScrollState:
    show_scroll_down: bool = False
    at_bottom: bool = True


class ScrollStateTracker:
    """Derive the scroll-down button and at-bottom flags from scroll metrics."""

    def __init__(
        self,
        *,
        show_button_threshold: float = 200.0,
        at_bottom_threshold: float = 50.0,
    ) -> None:
        self._show_button_threshold = show_button_threshold
        self._at_bottom_threshold = at_bottom_threshold
        self._state = ScrollState()
        self._listeners: list[Callable[[ScrollState], None]] = []

    # ------------------------------------------------------------------
    @property
    def state(self) -> ScrollState:
        return self._state

    # ------------------------------------------------------------------
    def update(self, scroll_top: float, scroll_height: float, client_height: float) -> None:
        offset_from_bottom = scroll_height - (scroll_top + client_height)
        state = ScrollState(
            show_scroll_down=offset_from_bottom > self._show_button_threshold,
            at_bottom=offset_from_bottom <= self._at_bottom_threshold,
        )
        if state != self._state:
            self._state = state
            self._notify()

    # ------------------------------------------------------------------
    def is_at_bottom(self) -> bool:
        return self._state.at_bottom

    # ------------------------------------------------------------------
    def should_show_scroll_down(self) -> bool:
        return self._state.show_scroll_down

    # ------------------------------------------------------------------
    def subscribe(self, listener: Callable[[ScrollState], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    def reset(self) -> None:
        self._state = ScrollState()
        self._notify()

    # ------------------------------------------------------------------
    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._state)


__all__ = [
    "ScrollReconciler",
    "ScrollState",
    "ScrollStateTracker",
    "Viewport",
]

"""Externally owned storefront state (cart and orders) read by the session."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .items import CartNotificationItem, cart_notification

CartStatus = Literal["idle", "loading", "loaded", "error"]


class CartLine(BaseModel):
    model_config = ConfigDict(extra="allow")

    product_url: str = ""
    image_url: str = ""
    title: str = ""
    price: str = ""
    quantity: int = 0
    subtotal: str = ""


class CartState(BaseModel):
    model_config = ConfigDict(extra="allow")

    items: list[CartLine] = Field(default_factory=list)
    total: str = ""
    subtotal: str = ""
    item_count: int = 0
    status: CartStatus | None = None


class LiveStoreState:
    """Host-page state the session only reads.

    The host replaces ``cart``/``orders`` wholesale and calls
    :meth:`mark_loaded` when fresh data arrived; listeners registered with
    :meth:`on_loaded` are then notified.
    """

    def __init__(
        self,
        *,
        cart: CartState | Mapping[str, Any] | None = None,
        orders: Mapping[str, list[Mapping[str, Any]]] | None = None,
    ) -> None:
        self.cart = CartState.model_validate(cart) if isinstance(cart, Mapping) else cart
        self.orders: dict[str, list[Mapping[str, Any]]] | None = (
            {status: list(entries) for status, entries in orders.items()}
            if orders is not None
            else None
        )
        self.loaded = False
        self._loaded_listeners: list[Callable[[], None]] = []

    # ------------------------------------------------------------------
    def on_loaded(self, listener: Callable[[], None]) -> None:
        self._loaded_listeners.append(listener)

    # ------------------------------------------------------------------
    def update_cart(self, cart: CartState | Mapping[str, Any] | None) -> None:
        self.cart = CartState.model_validate(cart) if isinstance(cart, Mapping) else cart

    # ------------------------------------------------------------------
    def mark_loaded(self) -> None:
        self.loaded = True
        for listener in list(self._loaded_listeners):
            listener()

    # ------------------------------------------------------------------
    def cart_item_count(self) -> int:
        return len(self.cart.items) if self.cart is not None else 0

    # ------------------------------------------------------------------
    def cart_status(self) -> CartStatus | None:
        return self.cart.status if self.cart is not None else None

    # ------------------------------------------------------------------
    def has_cart_items(self) -> bool:
        return self.cart_item_count() > 0

    # ------------------------------------------------------------------
    def is_cart_loading(self) -> bool:
        return self.cart_status() == "loading"

    # ------------------------------------------------------------------
    def order_count(self) -> int:
        if not self.orders:
            return 0
        return sum(len(entries) for entries in self.orders.values())

    # ------------------------------------------------------------------
    def create_cart_notification(self) -> CartNotificationItem | None:
        """Return a notification only for a loaded, non-empty cart."""
        if self.cart_status() == "loaded" and self.has_cart_items():
            return cart_notification()
        return None


__all__ = ["CartLine", "CartState", "LiveStoreState"]

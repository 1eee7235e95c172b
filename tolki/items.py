"""Conversation log entries and the builders that create them."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class ItemKind(str, Enum):
    """Discriminant of every conversation entry, valued by its wire tag."""

    ACTION = "action"
    CARD = "card"
    MARKDOWN = "markdown"
    PRODUCT = "product"
    THINKING = "thinking"
    USER_INPUT = "userInput"
    CART = "show_cart"
    ORDERS = "show_orders"
    CART_NOTIFICATION = "cart_notification"


class MarkdownLevel(str, Enum):
    DEFAULT = "default"
    INFO = "info"
    ERROR = "error"


EPHEMERAL_KINDS = frozenset({ItemKind.THINKING, ItemKind.CART_NOTIFICATION})
PERSISTABLE_KINDS = frozenset(
    {
        ItemKind.ACTION,
        ItemKind.CARD,
        ItemKind.MARKDOWN,
        ItemKind.PRODUCT,
        ItemKind.CART,
        ItemKind.ORDERS,
        ItemKind.USER_INPUT,
    }
)

LANGUAGE_CHANGED_KEY = "language_changed"
PRIVACY_POLICY_KEY = "privacy_policy"
RESET_CONFIRMATION_KEY = "reset_confirmation"
ERROR_MESSAGE = "Sorry, there was an error processing your message."


class _ItemModel(BaseModel):
    """Common configuration for log entries.

    Entries are immutable once created so snapshots handed to the render
    layer cannot alter the log. Unknown fields sent by the server survive a
    persistence round trip.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="allow")

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-ready wire representation."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ActionButton(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="allow")

    label: str
    command: str
    primary: bool | None = None
    data: dict[str, Any] | None = None
    template_key: str | None = Field(None, alias="templateKey")
    template_params: dict[str, Any] | None = Field(None, alias="templateParams")


class ActionItem(_ItemModel):
    kind: ItemKind = Field(ItemKind.ACTION, alias="type")
    text: str
    actions: list[ActionButton] = Field(default_factory=list)
    data: dict[str, Any] | None = None
    translate: bool | None = None
    template_key: str | None = Field(None, alias="templateKey")
    template_params: dict[str, Any] | None = Field(None, alias="templateParams")


class CardItem(_ItemModel):
    kind: ItemKind = Field(ItemKind.CARD, alias="type")
    image: str = ""
    name: str = ""
    description: str | None = None
    data: dict[str, Any] | None = None


class MarkdownItem(_ItemModel):
    kind: ItemKind = Field(ItemKind.MARKDOWN, alias="type")
    content: str = ""
    caption: str | None = None
    level: MarkdownLevel = MarkdownLevel.DEFAULT
    locale: str | None = None
    translate: bool | None = None
    template_key: str | None = Field(None, alias="templateKey")
    template_params: dict[str, Any] | None = Field(None, alias="templateParams")
    prop_key: str | None = Field(None, alias="propKey")


class ProductItem(_ItemModel):
    kind: ItemKind = Field(ItemKind.PRODUCT, alias="type")
    image: str = ""
    name: str = ""
    url: str = ""
    description: str | None = None
    price: str | None = None
    data: dict[str, Any] | None = None


class CartItem(_ItemModel):
    kind: ItemKind = Field(ItemKind.CART, alias="type")


class OrdersItem(_ItemModel):
    kind: ItemKind = Field(ItemKind.ORDERS, alias="type")


class ThinkingItem(_ItemModel):
    kind: ItemKind = Field(ItemKind.THINKING, alias="type")


class UserInputItem(_ItemModel):
    kind: ItemKind = Field(ItemKind.USER_INPUT, alias="type")
    content: str


class CartNotificationItem(_ItemModel):
    kind: ItemKind = Field(ItemKind.CART_NOTIFICATION, alias="type")


Item = (
    ActionItem
    | CardItem
    | MarkdownItem
    | ProductItem
    | CartItem
    | OrdersItem
    | ThinkingItem
    | UserInputItem
    | CartNotificationItem
)

_ITEM_TYPES: dict[str, type[_ItemModel]] = {
    ItemKind.ACTION.value: ActionItem,
    ItemKind.CARD.value: CardItem,
    ItemKind.MARKDOWN.value: MarkdownItem,
    ItemKind.PRODUCT.value: ProductItem,
    ItemKind.CART.value: CartItem,
    ItemKind.ORDERS.value: OrdersItem,
    ItemKind.THINKING.value: ThinkingItem,
    ItemKind.USER_INPUT.value: UserInputItem,
    ItemKind.CART_NOTIFICATION.value: CartNotificationItem,
}


# ----------------------------------------------------------------------
# codec


def item_from_payload(payload: Mapping[str, Any]) -> Item:
    """Build the matching item model from a wire *payload*.

    Raises :class:`ValueError` when the tag is unknown or the payload does
    not validate.
    """
    if not isinstance(payload, Mapping):
        raise ValueError(f"item payload must be an object, got {type(payload).__name__}")
    tag = payload.get("type")
    model = _ITEM_TYPES.get(tag) if isinstance(tag, str) else None
    if model is None:
        raise ValueError(f"unknown item type: {tag!r}")
    try:
        return model.model_validate(dict(payload))
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc


def items_from_payloads(payloads: Iterable[Any]) -> list[Item]:
    """Decode *payloads* in order, skipping entries that fail validation."""
    items: list[Item] = []
    for index, payload in enumerate(payloads):
        try:
            items.append(item_from_payload(payload))
        except ValueError as exc:
            logger.warning("Skipping invalid item at position %d: %s", index, exc)
    return items


def items_to_payloads(items: Iterable[Item]) -> list[dict[str, Any]]:
    return [item.to_payload() for item in items]


# ----------------------------------------------------------------------
# predicates


def is_thinking(item: Item) -> bool:
    return item.kind is ItemKind.THINKING


def is_ephemeral(item: Item) -> bool:
    return item.kind in EPHEMERAL_KINDS


def is_persistable(item: Item) -> bool:
    return item.kind in PERSISTABLE_KINDS


def is_cart_notification(item: Item) -> bool:
    """Match both the first-class kind and the legacy flagged ``Action``."""
    if item.kind is ItemKind.CART_NOTIFICATION:
        return True
    if isinstance(item, ActionItem) and isinstance(item.data, dict):
        return item.data.get("isCartNotification") is True
    return False


def is_language_changed_notice(item: Item) -> bool:
    return (
        isinstance(item, MarkdownItem)
        and bool(item.locale)
        and item.template_key == LANGUAGE_CHANGED_KEY
    )


def locale_marker(item: Item) -> str | None:
    """Return the locale checkpoint carried by *item*, if any."""
    if isinstance(item, MarkdownItem) and item.locale:
        return item.locale
    return None


# ----------------------------------------------------------------------
# builders


def thinking() -> ThinkingItem:
    return ThinkingItem()


def user_input(message: str | None) -> UserInputItem | None:
    """Return a user entry for *message*, or ``None`` when it is blank."""
    text = (message or "").strip()
    if not text:
        return None
    return UserInputItem(content=text)


def markdown(
    message: str | None,
    level: MarkdownLevel = MarkdownLevel.DEFAULT,
    *,
    translate: bool = False,
    template_key: str | None = None,
    template_params: dict[str, Any] | None = None,
    locale: str | None = None,
) -> MarkdownItem | None:
    text = (message or "").strip()
    if not text:
        return None
    return MarkdownItem(
        content=text,
        level=level,
        translate=True if translate else None,
        template_key=template_key,
        template_params=template_params,
        locale=locale,
    )


def assistant(message: str | None) -> MarkdownItem | None:
    return markdown(message, MarkdownLevel.DEFAULT)


def info(
    message: str,
    *,
    template_key: str | None = None,
    template_params: dict[str, Any] | None = None,
    locale: str | None = None,
) -> MarkdownItem | None:
    return markdown(
        message,
        MarkdownLevel.INFO,
        translate=True,
        template_key=template_key,
        template_params=template_params,
        locale=locale,
    )


def error() -> MarkdownItem:
    """Return the generic failure bubble shown after a failed round trip."""
    return MarkdownItem(content=ERROR_MESSAGE, level=MarkdownLevel.ERROR, translate=True)


def dynamic_message(
    prop_key: str, level: MarkdownLevel = MarkdownLevel.DEFAULT
) -> MarkdownItem:
    """Return an entry whose content is resolved from host props at render."""
    return MarkdownItem(content="", level=level, prop_key=prop_key)


def language_changed(locale: str) -> MarkdownItem:
    return MarkdownItem(
        content="Language changed.",
        level=MarkdownLevel.INFO,
        translate=True,
        template_key=LANGUAGE_CHANGED_KEY,
        locale=locale,
    )


def action(
    message: str,
    actions: Iterable[ActionButton] = (),
    data: dict[str, Any] | None = None,
    *,
    translate: bool = True,
    template_key: str | None = None,
    template_params: dict[str, Any] | None = None,
) -> ActionItem:
    return ActionItem(
        text=message,
        actions=list(actions),
        data=data,
        translate=translate,
        template_key=template_key,
        template_params=template_params,
    )


def reset_confirmation() -> ActionItem:
    return action(
        "Do you want to start a new chat? You will lose the current messages.",
        [
            ActionButton(label="Reset", primary=True, command="resetChat", template_key="reset"),
            ActionButton(label="Cancel", command="cancelAction", template_key="cancel"),
        ],
        template_key=RESET_CONFIRMATION_KEY,
    )


def cart() -> CartItem:
    return CartItem()


def orders() -> OrdersItem:
    return OrdersItem()


def cart_notification() -> CartNotificationItem:
    return CartNotificationItem()


_LANGUAGE_NAMES = {
    "en": "English",
    "it": "Italiano",
    "es": "Español",
    "fr": "Français",
    "de": "Deutsch",
    "pt": "Português",
}


def language_name(locale: str) -> str:
    return _LANGUAGE_NAMES.get(locale, locale)


__all__ = [
    "ActionButton",
    "ActionItem",
    "CardItem",
    "CartItem",
    "CartNotificationItem",
    "EPHEMERAL_KINDS",
    "Item",
    "ItemKind",
    "MarkdownItem",
    "MarkdownLevel",
    "OrdersItem",
    "PERSISTABLE_KINDS",
    "ProductItem",
    "ThinkingItem",
    "UserInputItem",
    "item_from_payload",
    "items_from_payloads",
    "items_to_payloads",
    "is_cart_notification",
    "is_ephemeral",
    "is_language_changed_notice",
    "is_persistable",
    "is_thinking",
    "locale_marker",
    "language_name",
]

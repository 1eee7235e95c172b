"""Tests for conversation entries, their predicates and the payload codec."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from tolki import items
from tolki.items import (
    ActionItem,
    ItemKind,
    MarkdownItem,
    MarkdownLevel,
    UserInputItem,
    item_from_payload,
    items_from_payloads,
)

pytestmark = pytest.mark.unit


def test_user_input_trims_and_rejects_blank_text():
    entry = items.user_input("  hello there \n")

    assert isinstance(entry, UserInputItem)
    assert entry.content == "hello there"
    assert items.user_input("   ") is None
    assert items.user_input(None) is None


def test_payload_uses_wire_tags_and_aliases():
    notice = items.language_changed("it")

    payload = notice.to_payload()

    assert payload == {
        "type": "markdown",
        "content": "Language changed.",
        "level": "info",
        "locale": "it",
        "translate": True,
        "templateKey": "language_changed",
    }
    assert items.cart().to_payload() == {"type": "show_cart"}
    assert items.orders().to_payload() == {"type": "show_orders"}


def test_item_from_payload_preserves_unknown_fields():
    entry = item_from_payload(
        {"type": "product", "name": "Mug", "image": "m.png", "url": "/mug", "sku": "M-1"}
    )

    assert entry.kind is ItemKind.PRODUCT
    assert entry.to_payload()["sku"] == "M-1"


@pytest.mark.parametrize(
    "payload",
    [
        {"type": "nope"},
        {"content": "missing tag"},
        {"type": "userInput"},
        "not an object",
    ],
)
def test_item_from_payload_rejects_invalid_payloads(payload):
    with pytest.raises(ValueError):
        item_from_payload(payload)


def test_items_from_payloads_skips_invalid_entries_in_order():
    decoded = items_from_payloads(
        [
            {"type": "markdown", "content": "first"},
            {"type": "bogus"},
            {"type": "userInput", "content": "second"},
        ]
    )

    assert [entry.kind for entry in decoded] == [ItemKind.MARKDOWN, ItemKind.USER_INPUT]


def test_cart_notification_predicate_accepts_legacy_encoding():
    legacy = ActionItem(text="Cart updated", data={"isCartNotification": True})
    plain = ActionItem(text="Pick one", data={"isCartNotification": "yes"})

    assert items.is_cart_notification(legacy)
    assert items.is_cart_notification(items.cart_notification())
    assert not items.is_cart_notification(plain)
    assert not items.is_cart_notification(items.cart())


def test_ephemeral_and_persistable_kinds_are_disjoint():
    assert items.EPHEMERAL_KINDS.isdisjoint(items.PERSISTABLE_KINDS)
    assert items.EPHEMERAL_KINDS | items.PERSISTABLE_KINDS == set(ItemKind)


def test_locale_marker_ignores_empty_locale():
    assert items.locale_marker(MarkdownItem(content="x", locale="fr")) == "fr"
    assert items.locale_marker(MarkdownItem(content="x", locale="")) is None
    assert items.locale_marker(items.user_input("hi")) is None


def test_error_builder_returns_translated_error_bubble():
    bubble = items.error()

    assert bubble.level is MarkdownLevel.ERROR
    assert bubble.translate is True
    assert bubble.content == items.ERROR_MESSAGE


def test_reset_confirmation_offers_reset_and_cancel():
    confirmation = items.reset_confirmation()

    assert [button.command for button in confirmation.actions] == ["resetChat", "cancelAction"]
    assert confirmation.actions[0].primary is True
    assert confirmation.template_key == items.RESET_CONFIRMATION_KEY


def test_items_are_immutable():
    entry = items.user_input("hi")

    with pytest.raises(ValidationError):
        entry.content = "changed"

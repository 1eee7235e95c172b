"""Suggestion chips that may embed a bracketed command."""

from __future__ import annotations

import re
from typing import NamedTuple

from .i18n import _
from .items import language_name
from .live_state import LiveStoreState

_COMMAND_RE = re.compile(r"\[([^\]]+)\]")


class SuggestionCommand(NamedTuple):
    command: str | None
    display_text: str


def parse_command(text: str) -> tuple[str, str | None]:
    """Split ``"name param"`` into the command name and its first parameter."""
    parts = text.strip().split()
    if not parts:
        return "", None
    return parts[0], parts[1] if len(parts) > 1 else None


def command_display_name(command: str, live: LiveStoreState | None = None) -> str:
    """Return the label shown for a suggestion made of a bare command."""
    name, param = parse_command(command)
    if name == "show_cart":
        count = live.cart_item_count() if live is not None else 0
        return _("Cart (%(count)d)") % {"count": count}
    if name == "show_orders":
        count = live.order_count() if live is not None else 0
        return _("My Orders (%(count)d)") % {"count": count}
    if name == "set_locale":
        if param:
            return _("Set language to %(language)s") % {"language": language_name(param)}
        return _("Set language")
    return command


def extract_command(
    text: str, live: LiveStoreState | None = None
) -> SuggestionCommand:
    """Return the command embedded in *text* and the text to display.

    Text before the bracket becomes the label; a suggestion consisting only
    of a command gets a generated label.
    """
    match = _COMMAND_RE.search(text)
    if match is None:
        return SuggestionCommand(None, text)
    command = match.group(1)
    before = text[: match.start()].strip()
    if before:
        return SuggestionCommand(command, before)
    return SuggestionCommand(command, command_display_name(command, live))


__all__ = [
    "SuggestionCommand",
    "command_display_name",
    "extract_command",
    "parse_command",
]

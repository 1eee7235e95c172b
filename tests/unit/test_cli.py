"""Tests for the terminal driver."""

from __future__ import annotations

import asyncio
import io
import json

import httpx
import pytest

from tolki import cli, items
from tolki.api import MessageEndpointClient
from tolki.items import ActionButton, CardItem, MarkdownLevel
from tolki.session import ChatSession
from tolki.settings import AppSettings
from tolki.storage import SettingsRepository

pytestmark = pytest.mark.unit

BOT_PROPS = {"name": "Shop bot", "suggestions": ["Hi!", "Cart [show_cart]"]}


def _handler(settings_status: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(settings_status, json=BOT_PROPS)
        text = json.loads(request.content)["message"]
        return httpx.Response(200, json=[{"type": "markdown", "content": f"echo: {text}"}])

    return handler


def _session_factory(settings_status: int = 200):
    def factory(bot_id, *, settings=None, lang=None):
        return ChatSession(
            bot_id,
            settings=settings,
            client=MessageEndpointClient(
                transport=httpx.MockTransport(_handler(settings_status))
            ),
            repository=SettingsRepository(),
            lang=lang,
        )

    return factory


def _lines(*lines: str):
    pending = list(lines)

    def read_line() -> str:
        return pending.pop(0) if pending else ""

    return read_line


def test_parser_defaults_and_choices():
    parser = cli.build_parser()

    args = parser.parse_args(["--bot", "b"])
    assert args.log_level == "WARNING"
    assert args.lang is None
    with pytest.raises(SystemExit):
        parser.parse_args(["--bot", "b", "--log-level", "LOUD"])
    with pytest.raises(SystemExit):
        parser.parse_args([])


def test_format_item_renders_each_kind():
    assert cli.format_item(items.user_input("hi")) == "> hi"
    assert cli.format_item(items.markdown("Oops", MarkdownLevel.ERROR)) == "! Oops"
    assert cli.format_item(items.language_changed("en")) == "i Language changed."
    assert cli.format_item(items.cart()) == "[cart]"
    assert cli.format_item(items.cart_notification()) == "[cart updated]"
    assert cli.format_item(CardItem(name="Mug")) == "* Mug"
    assert cli.format_item(items.dynamic_message("welcome")) == "[welcome]"
    confirmation = items.action(
        "Proceed?",
        [ActionButton(label="Yes", command="yes"), ActionButton(label="No", command="no")],
    )
    assert cli.format_item(confirmation) == "? Proceed? [1:Yes] [2:No]"


def test_history_printer_only_prints_new_entries():
    out = io.StringIO()
    printer = cli.HistoryPrinter(out)
    first = items.user_input("one")
    second = items.assistant("two")

    printer((first,))
    printer((first, items.thinking()))
    printer((first, second))

    assert out.getvalue().splitlines() == ["> one", "two"]


def test_handle_line_commands(bot_id):
    session = _session_factory()(bot_id, lang="en")
    out = io.StringIO()

    async def _scenario():
        await session.start()
        results = []
        for line in ("/help", "/cmd showCart", "/action 1", "/open", "/bogus", "/quit"):
            results.append(await cli.handle_line(session, line, out))
        return results

    results = asyncio.run(_scenario())
    output = out.getvalue()

    assert results == [True, True, True, True, True, False]
    assert "/cmd <name> [param]" in output
    assert "(command showCart not applicable)" in output
    assert "no such action" in output
    assert "(window open)" in output
    assert "unknown command /bogus" in output


def test_handle_line_reset_then_confirm(bot_id):
    session = _session_factory()(bot_id, lang="en")
    out = io.StringIO()

    async def _scenario():
        await session.start()
        await cli.handle_line(session, "hello", out)
        old_chat = session.state.chat_id
        await cli.handle_line(session, "/reset", out)
        await cli.handle_line(session, "/action 1", out)
        return old_chat

    old_chat = asyncio.run(_scenario())

    assert session.state.chat_id != old_chat
    kinds = [item.kind for item in session.history.get_current_history()]
    assert items.ItemKind.USER_INPUT not in kinds


def test_run_session_prints_conversation(monkeypatch, bot_id):
    monkeypatch.setattr(cli, "ChatSession", _session_factory())
    args = cli.build_parser().parse_args(["--bot", bot_id, "--lang", "en"])
    out = io.StringIO()

    code = asyncio.run(
        cli.run_session(args, AppSettings(), read_line=_lines("hello\n", "/quit\n"), out=out)
    )

    lines = out.getvalue().splitlines()
    assert code == 0
    assert "suggestions: Hi! | Cart [show_cart]" in lines
    assert lines.index("> hello") < lines.index("echo: hello")
    assert "..." not in lines


def test_run_session_reports_unavailable_bot(monkeypatch, bot_id):
    monkeypatch.setattr(cli, "ChatSession", _session_factory(settings_status=403))
    args = cli.build_parser().parse_args(["--bot", bot_id])
    out = io.StringIO()

    code = asyncio.run(cli.run_session(args, AppSettings(), read_line=_lines(), out=out))

    assert code == 1
    assert out.getvalue().strip() == "bot unavailable: inactive"

"""Terminal driver for a chat session."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Callable, Iterable
from typing import TextIO

from .commands import CommandError
from .i18n import _
from .items import ActionItem, CardItem, Item, ItemKind, MarkdownItem, ProductItem
from .log import configure_logging, install_exception_hooks
from .session import (
    ActionPressed,
    ChatSession,
    RunCommand,
    SubmitMessage,
    SuggestionClicked,
)
from .settings import AppSettings, load_app_settings
from .suggestions import parse_command

logger = logging.getLogger(__name__)

HELP_TEXT = """\
Type a message to send it. Commands:
  /cmd <name> [param]  run a chat command
  /suggest <text>      handle suggestion text
  /reset               ask to start a new chat
  /action <n>          press button n of the last action
  /open                toggle the chat window
  /quit                exit"""


def build_parser() -> argparse.ArgumentParser:
    """Construct the argument parser for the terminal driver."""
    parser = argparse.ArgumentParser(prog="tolki", description="Tolki chat session")
    parser.add_argument("--bot", required=True, help="bot identity (UUID)")
    parser.add_argument("--lang", help="initial display language")
    parser.add_argument("--storage", help="path of the persisted settings file")
    parser.add_argument("--config", help="path to JSON/TOML settings")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="console log level",
    )
    return parser


def format_item(item: Item) -> str:
    """Return a one-line rendering of *item* for the terminal."""
    if isinstance(item, MarkdownItem):
        if item.prop_key:
            return f"[{item.prop_key}]"
        text = _(item.content) if item.translate else item.content
        prefix = {"info": "i ", "error": "! "}.get(item.level.value, "")
        return f"{prefix}{text}"
    if isinstance(item, ActionItem):
        text = _(item.text) if item.translate else item.text
        buttons = " ".join(
            f"[{index}:{_(button.label)}]" for index, button in enumerate(item.actions, 1)
        )
        return f"? {text} {buttons}".rstrip()
    if isinstance(item, (CardItem, ProductItem)):
        return f"* {item.name}"
    labels = {
        ItemKind.USER_INPUT: lambda: f"> {getattr(item, 'content', '')}",
        ItemKind.THINKING: lambda: "...",
        ItemKind.CART: lambda: "[cart]",
        ItemKind.ORDERS: lambda: "[orders]",
        ItemKind.CART_NOTIFICATION: lambda: "[cart updated]",
    }
    render = labels.get(item.kind)
    return render() if render is not None else f"[{item.kind.value}]"


class HistoryPrinter:
    """Print entries the first time they appear in the history."""

    def __init__(self, out: TextIO) -> None:
        self._out = out
        self._seen: set[int] = set()

    def __call__(self, snapshot: Iterable[Item]) -> None:
        current: set[int] = set()
        for item in snapshot:
            current.add(id(item))
            if id(item) not in self._seen and item.kind is not ItemKind.THINKING:
                print(format_item(item), file=self._out)
        self._seen = current


def _last_action(session: ChatSession) -> ActionItem | None:
    for item in reversed(session.history.get_current_history()):
        if isinstance(item, ActionItem):
            return item
    return None


async def handle_line(session: ChatSession, line: str, out: TextIO) -> bool:
    """Process one input line; return ``False`` when the driver should stop."""
    text = line.strip()
    if not text:
        return True
    if not text.startswith("/"):
        await session.submit(SubmitMessage(text))
        return True

    command, _sep, rest = text.partition(" ")
    rest = rest.strip()
    if command == "/quit":
        return False
    if command == "/help":
        print(HELP_TEXT, file=out)
    elif command == "/cmd":
        name, param = parse_command(rest)
        results = await session.submit(RunCommand(name, param))
        if results == [False]:
            print(f"(command {name} not applicable)", file=out)
    elif command == "/suggest":
        await session.submit(SuggestionClicked(rest))
    elif command == "/reset":
        session.request_reset()
    elif command == "/action":
        action = _last_action(session)
        try:
            index = int(rest) - 1
        except ValueError:
            index = -1
        if action is None or not 0 <= index < len(action.actions):
            print("no such action", file=out)
        else:
            await session.submit(ActionPressed(action, action.actions[index]))
    elif command == "/open":
        state = "open" if session.toggle_window() else "closed"
        print(f"(window {state})", file=out)
    else:
        print(f"unknown command {command}; try /help", file=out)
    return True


async def run_session(
    args: argparse.Namespace,
    settings: AppSettings,
    *,
    read_line: Callable[[], str] | None = None,
    out: TextIO | None = None,
) -> int:
    stream = out or sys.stdout
    reader = read_line or sys.stdin.readline
    session = ChatSession(args.bot, settings=settings, lang=args.lang)
    session.events.history_changed.connect(HistoryPrinter(stream))
    bot = await session.start()
    if not bot.ready:
        print(f"bot unavailable: {bot.status.value}", file=stream)
        return 1
    if bot.props is not None and bot.props.suggestions:
        print("suggestions: " + " | ".join(bot.props.suggestions), file=stream)
    while True:
        line = await asyncio.to_thread(reader)
        if not line:
            break
        try:
            if not await handle_line(session, line, stream):
                break
        except CommandError as exc:
            print(f"error: {exc}", file=stream)
    await session.wait_for_scrolls()
    return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(getattr(logging, args.log_level))
    install_exception_hooks()
    settings = AppSettings()
    if args.config:
        settings = load_app_settings(args.config)
    if args.storage:
        settings.storage.path = args.storage
    return asyncio.run(run_session(args, settings))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

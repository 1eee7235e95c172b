"""Tests for the command registry and dispatch algorithm."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import pytest

from tolki.commands import (
    Command,
    CommandDispatcher,
    CommandHandler,
    InvalidCommandParamsError,
    TelemetryMiddleware,
    UnknownCommandError,
)

pytestmark = pytest.mark.unit


class _RecordingMiddleware:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    def before(self, command: str, params: Any) -> None:
        self.calls.append(("before", command))

    def after(self, command: str) -> None:
        self.calls.append(("after", command))

    def error(self, command: str, error: BaseException) -> None:
        self.calls.append(("error", command))


class _AsyncCommand(Command):
    name = "greet"

    def __init__(self) -> None:
        self.seen: list[Any] = []

    def validate(self, params: Any = None) -> bool:
        return isinstance(params, str)

    async def execute(self, params: Any = None) -> None:
        await asyncio.sleep(0)
        self.seen.append(params)


def test_unknown_command_raises_after_error_middleware():
    dispatcher = CommandDispatcher()
    middleware = _RecordingMiddleware()
    dispatcher.use(middleware)

    with pytest.raises(UnknownCommandError) as excinfo:
        asyncio.run(dispatcher.execute("missing"))

    assert excinfo.value.command == "missing"
    assert middleware.calls == [("error", "missing")]


def test_invalid_params_raise_without_running_body():
    dispatcher = CommandDispatcher()
    command = _AsyncCommand()
    dispatcher.register(command)

    with pytest.raises(InvalidCommandParamsError):
        asyncio.run(dispatcher.execute("greet", 42))

    assert command.seen == []


def test_inapplicable_command_is_skipped_silently(caplog):
    calls: list[Any] = []
    dispatcher = CommandDispatcher()
    middleware = _RecordingMiddleware()
    dispatcher.use(middleware)
    dispatcher.register(
        CommandHandler(name="showCart", run=calls.append, applicable=lambda _params: False)
    )

    with caplog.at_level(logging.DEBUG, logger="tolki.commands"):
        result = asyncio.run(dispatcher.execute("showCart"))

    assert result is False
    assert calls == []
    assert middleware.calls == []
    assert "cannot be executed" in caplog.text


def test_successful_command_runs_middleware_in_order():
    dispatcher = CommandDispatcher()
    middleware = _RecordingMiddleware()
    dispatcher.use(middleware)
    command = _AsyncCommand()
    dispatcher.register(command)

    result = asyncio.run(dispatcher.execute("greet", "hello"))

    assert result is True
    assert command.seen == ["hello"]
    assert middleware.calls == [("before", "greet"), ("after", "greet")]


def test_failing_body_runs_error_middleware_and_reraises():
    def _boom(_params):
        raise RuntimeError("broken")

    dispatcher = CommandDispatcher()
    middleware = _RecordingMiddleware()
    dispatcher.use(middleware)
    dispatcher.register(CommandHandler(name="boom", run=_boom))

    with pytest.raises(RuntimeError, match="broken"):
        asyncio.run(dispatcher.execute("boom"))

    assert middleware.calls == [("before", "boom"), ("error", "boom")]


def test_register_overwrites_with_warning(caplog):
    dispatcher = CommandDispatcher()
    dispatcher.register(CommandHandler(name="x", run=lambda _params: None))

    with caplog.at_level(logging.WARNING, logger="tolki.commands"):
        dispatcher.register(CommandHandler(name="x", run=lambda _params: None))

    assert "already registered" in caplog.text
    assert dispatcher.names() == ["x"]


def test_registry_queries():
    dispatcher = CommandDispatcher()
    handler = CommandHandler(name="x", run=lambda _params: None)
    dispatcher.register_many([handler, CommandHandler(name="y", run=lambda _params: None)])

    assert dispatcher.has("x")
    assert dispatcher.get("x") is handler
    assert dispatcher.unregister("y") is True
    assert dispatcher.unregister("y") is False
    dispatcher.clear()
    assert dispatcher.names() == []


def test_telemetry_middleware_emits_events(tolki_records):
    dispatcher = CommandDispatcher()
    dispatcher.use(TelemetryMiddleware())
    dispatcher.register(CommandHandler(name="ok", run=lambda _params: None))

    asyncio.run(dispatcher.execute("ok"))

    events = [record.json["event"] for record in tolki_records if hasattr(record, "json")]
    assert events == ["COMMAND_EXECUTED"]


def test_command_handler_dispatches_plain_callables():
    calls: list[Any] = []
    handler = CommandHandler(
        name="echo",
        run=calls.append,
        check_params=lambda params: isinstance(params, int),
        applicable=lambda params: params > 0,
    )
    dispatcher = CommandDispatcher()
    dispatcher.register(handler)

    assert asyncio.run(dispatcher.execute("echo", 3)) is True
    assert asyncio.run(dispatcher.execute("echo", -1)) is False
    with pytest.raises(InvalidCommandParamsError):
        asyncio.run(dispatcher.execute("echo", "3"))
    assert calls == [3]
    assert handler.name == "echo"
    with pytest.raises(TypeError):
        CommandHandler(run=calls.append)

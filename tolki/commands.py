"""Named command registry with validation, applicability guards and middleware."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

from .telemetry import log_event

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Base class for dispatch failures surfaced to the caller."""

    def __init__(self, message: str, *, command: str) -> None:
        super().__init__(message)
        self.command = command


class UnknownCommandError(CommandError):
    def __init__(self, command: str) -> None:
        super().__init__(f"Unknown command: {command}", command=command)


class InvalidCommandParamsError(CommandError):
    def __init__(self, command: str, params: Any = None) -> None:
        super().__init__(f"Invalid params for command: {command}", command=command)
        self.params = params


class Command:
    """Base for a dispatchable operation.

    ``validate`` rejects malformed input (an error for the caller);
    ``can_execute`` reports whether well-formed input is currently
    applicable, and a ``False`` there makes the dispatcher skip silently.
    """

    name: str = ""

    def validate(self, params: Any = None) -> bool:
        return True

    def can_execute(self, params: Any = None) -> bool:
        return True

    def execute(self, params: Any = None) -> Awaitable[None] | None:  # pragma: no cover - abstract
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class CommandHandler(Command):
    """Command assembled from plain callables."""

    name: str = field()
    run: Callable[[Any], Awaitable[None] | None]
    check_params: Callable[[Any], bool] | None = None
    applicable: Callable[[Any], bool] | None = None

    def validate(self, params: Any = None) -> bool:
        return self.check_params(params) if self.check_params is not None else True

    def can_execute(self, params: Any = None) -> bool:
        return self.applicable(params) if self.applicable is not None else True

    def execute(self, params: Any = None) -> Awaitable[None] | None:
        return self.run(params)


class CommandMiddleware(Protocol):
    """Cross-cutting hooks; every method is optional."""

    def before(self, command: str, params: Any) -> None: ...

    def after(self, command: str) -> None: ...

    def error(self, command: str, error: BaseException) -> None: ...


class LoggingMiddleware:
    """Record command execution in the package log."""

    def before(self, command: str, params: Any) -> None:
        logger.debug("Executing command: %s params=%r", command, params)

    def error(self, command: str, error: BaseException) -> None:
        logger.error("Command failed: %s: %s", command, error)


class TelemetryMiddleware:
    """Emit structured events for executed and failed commands."""

    def after(self, command: str) -> None:
        log_event("COMMAND_EXECUTED", {"command": command})

    def error(self, command: str, error: BaseException) -> None:
        log_event(
            "COMMAND_FAILED",
            {"command": command, "error": type(error).__name__, "message": str(error)},
            level=logging.WARNING,
        )


class CommandDispatcher:
    """Map command names to handler records and run them.

    One dispatcher is built per session and handed explicitly to whoever
    needs to trigger commands.
    """

    def __init__(self) -> None:
        self._commands: dict[str, Command] = {}
        self._middlewares: list[CommandMiddleware] = []

    # ------------------------------------------------------------------
    def register(self, command: Command) -> None:
        if command.name in self._commands:
            logger.warning("Command already registered: %s. Overwriting.", command.name)
        self._commands[command.name] = command

    # ------------------------------------------------------------------
    def register_many(self, commands: Iterable[Command]) -> None:
        for command in commands:
            self.register(command)

    # ------------------------------------------------------------------
    def use(self, middleware: CommandMiddleware) -> None:
        self._middlewares.append(middleware)

    # ------------------------------------------------------------------
    def _notify(self, hook: str, *args: Any) -> None:
        for middleware in self._middlewares:
            callback = getattr(middleware, hook, None)
            if callback is not None:
                callback(*args)

    # ------------------------------------------------------------------
    async def execute(self, name: str, params: Any = None) -> bool:
        """Run command *name* with *params*.

        Returns ``True`` when the command body ran and ``False`` when it was
        skipped as currently inapplicable. Unknown names and invalid params
        raise :class:`CommandError` subclasses; failures inside the body are
        re-raised after the error middleware ran.
        """
        command = self._commands.get(name)
        if command is None:
            error: CommandError = UnknownCommandError(name)
            self._notify("error", name, error)
            raise error

        if not command.validate(params):
            error = InvalidCommandParamsError(name, params)
            self._notify("error", name, error)
            raise error

        if not command.can_execute(params):
            logger.debug("Command cannot be executed: %s", name)
            return False

        try:
            self._notify("before", name, params)
            result = command.execute(params)
            if inspect.isawaitable(result):
                await result
            self._notify("after", name)
        except Exception as exc:
            self._notify("error", name, exc)
            raise
        return True

    # ------------------------------------------------------------------
    def has(self, name: str) -> bool:
        return name in self._commands

    # ------------------------------------------------------------------
    def get(self, name: str) -> Command | None:
        return self._commands.get(name)

    # ------------------------------------------------------------------
    def unregister(self, name: str) -> bool:
        return self._commands.pop(name, None) is not None

    # ------------------------------------------------------------------
    def names(self) -> list[str]:
        return list(self._commands)

    # ------------------------------------------------------------------
    def clear(self) -> None:
        self._commands.clear()


__all__ = [
    "Command",
    "CommandDispatcher",
    "CommandError",
    "CommandHandler",
    "CommandMiddleware",
    "InvalidCommandParamsError",
    "LoggingMiddleware",
    "TelemetryMiddleware",
    "UnknownCommandError",
]

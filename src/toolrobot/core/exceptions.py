"""Exceptions raised while parsing, resolving, and invoking tool calls."""

from __future__ import annotations


class ToolRobotError(Exception):
    """Base class for all toolrobot errors."""


class ParseError(ToolRobotError, ValueError):
    """Raised when a call expression is malformed."""


class TypeCoercionError(ToolRobotError, TypeError):
    """Raised when a raw argument cannot be converted to the declared parameter type."""


class UnresolvedFunction(ToolRobotError, LookupError):
    """Raised when a call names a function that is not registered."""

    def __init__(self, name: str, available: list[str] | None = None):
        self.name = name
        self.available = available or []
        msg = f"Function '{name}' is not a registered tool"
        if self.available:
            msg += f". Available tools: {', '.join(self.available)}"
        super().__init__(msg)


class ToolExecutionError(ToolRobotError):
    """Raised when a registered tool raises while executing."""

    def __init__(self, call: str, error: BaseException):
        self.call = call
        self.error = error
        super().__init__(f"Calling {call} failed with {type(error).__name__}: {error}")


class LoopDetected(ToolRobotError):
    """Signals that an identical call was already made during this attempt."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"{key} was already called during this attempt")


class ProviderError(ToolRobotError):
    """Raised when the provider transport fails."""


class TurnBudgetExceeded(ToolRobotError):
    """Raised when a run uses every turn without reaching a final answer."""

    def __init__(self, max_turns: int, last_error: str | None = None):
        self.max_turns = max_turns
        self.last_error = last_error
        msg = f"No final answer after {max_turns} turns"
        if last_error:
            msg += f" (last error: {last_error})"
        super().__init__(msg)

"""Resolve parsed calls against registered tools and invoke them.

A ToolRegistry is built once at setup and is read-only afterward; it can be shared by any number of
concurrent runs. An Invoker resolves a FunctionCall, coerces its raw arguments (evaluating nested calls
recursively), and executes it, consulting and updating the CallHistory of the current attempt.
"""

from __future__ import annotations

import asyncio
from enum import Enum
import json
import logging
from types import MappingProxyType
from typing import Any, Callable, Iterable, Iterator, TypeAlias, Union

from pydantic import BaseModel, ConfigDict

from .base import CallableWithSignature
from .coerce import coerce_argument
from .exceptions import LoopDetected, ToolExecutionError, ToolRobotError, TypeCoercionError, UnresolvedFunction
from .expression import ArgumentKind, array_elements, parse_argument, parse_call
from .history import CallHistory
from .tool import Tool, ToolSignature
from ..types_.core import FunctionCall
from ..utilities import stringify

logger = logging.getLogger(__name__)


class ToolRegistry:
    """An immutable mapping of tool name to Tool.

    Plain functions are wrapped with `Tool`, reading their signature once.

    Raises
    ------
    TypeError
        If an entry is neither a tool nor a callable.
    ValueError
        If two tools share a name.
    """

    def __init__(self, tools: Iterable[CallableWithSignature | Callable] = ()):
        registry: dict[str, CallableWithSignature] = {}
        for entry in tools:
            if not isinstance(entry, CallableWithSignature):
                if not callable(entry):
                    raise TypeError(f"Registry requires callables. Received {entry}: {type(entry)}")
                entry = Tool(entry)

            name = entry.signature.name
            if name in registry:
                raise ValueError(f"Tool '{name}' is registered more than once")
            if not entry.signature.description:
                logger.warning(f"Tool {name} should have a docstring so providers know what it does.")
            registry[name] = entry

        self._tools = MappingProxyType(registry)

    def lookup(self, name: str) -> CallableWithSignature:
        try:
            return self._tools[name]
        except KeyError as e:
            raise UnresolvedFunction(name, list(self._tools)) from e

    def resolve(self, call: FunctionCall) -> ToolSignature:
        """Return the signature a call dispatches to."""
        return self.lookup(call.name).signature

    def list_tools(self) -> list[ToolSignature]:
        return [t.signature for t in self._tools.values()]

    def tools(self) -> list[CallableWithSignature]:
        return list(self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[str]:
        return iter(self._tools)


# --- Call status -------------------------------------------------------------
class Success(BaseModel):
    """The call executed; `result` is the stringified value stored in history."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    key: str
    value: Any = None
    result: str


class Recalled(BaseModel):
    """An identical call was already made during this attempt; the call was not re-executed."""

    key: str

    @property
    def exception(self) -> LoopDetected:
        return LoopDetected(self.key)


class Error(BaseModel):
    """The call could not be resolved, coerced, or executed."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    exception: Exception


CallStatus: TypeAlias = Union[Success, Recalled, Error]


class PreparedCall(BaseModel):
    """A resolved call with coerced arguments, ready to execute."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    key: str
    tool: Any
    args: list[Any]
    kwargs: dict[str, Any]


def render_argument(value: Any) -> str:
    """Render a coerced argument for a canonical call key."""
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, (set, frozenset)):
        value = sorted(value, key=repr)
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return repr(value)


def nested_calls(raw_args: Iterable[str]) -> list[str]:
    """Return the call expressions among raw arguments, including those inside array builders, in order."""
    found = []
    for raw in raw_args:
        argument = parse_argument(raw)
        if argument.kind is ArgumentKind.FUNCTION_CALL:
            found.append(argument.raw)
        elif argument.kind is ArgumentKind.VARARG:
            found.extend(nested_calls(argument.elements))
    return found


class Invoker:
    """Resolve, coerce, and execute calls against a registry.

    Parameters
    ----------
    registry : ToolRegistry
        The tools calls may dispatch to.
    max_depth : int
        Maximum nesting of calls inside arguments.
    """

    def __init__(self, registry: ToolRegistry, max_depth: int = 16):
        self.registry = registry
        self.max_depth = max_depth

    def canonicalize(self, call: FunctionCall, depth: int = 0) -> PreparedCall:
        """Resolve a call and coerce its arguments, evaluating nested calls.

        The canonical key is the name and the rendered, order-sensitive coerced arguments, e.g. `add(2, 3)`.

        Raises
        ------
        UnresolvedFunction
            If the name is not registered.
        TypeCoercionError
            If the arity does not match or an argument cannot be coerced.
        """
        tool = self.registry.lookup(call.name)
        self._check_arity(tool.signature, call)
        return self._prepare(tool, call, depth, {})

    async def acanonicalize(self, call: FunctionCall, depth: int = 0) -> PreparedCall:
        """Like `canonicalize`, but nested calls are evaluated from the event loop.

        Nested coroutine tools are awaited and nested blocking tools run on a worker thread.
        """
        tool = self.registry.lookup(call.name)
        self._check_arity(tool.signature, call)

        resolved: dict[str, Any] = {}
        for expression in nested_calls(call.args):
            if expression not in resolved:
                resolved[expression] = await self.aevaluate(expression, depth=depth + 1)
        return self._prepare(tool, call, depth, resolved)

    def _prepare(
        self, tool: CallableWithSignature, call: FunctionCall, depth: int, resolved: dict[str, Any]
    ) -> PreparedCall:
        args, kwargs = self._bind(tool.signature, call, depth, resolved)
        rendered = [render_argument(v) for v in args]
        rendered += [f"{k}={render_argument(v)}" for k, v in kwargs.items()]
        key = f"{call.name}({', '.join(rendered)})"
        return PreparedCall(key=key, tool=tool, args=args, kwargs=kwargs)

    @staticmethod
    def _check_arity(signature: ToolSignature, call: FunctionCall) -> None:
        ordered = [p for p in signature.parameters if p.kind != "vararg"]
        if signature.vararg is not None:
            ordered = [p for p in ordered if p.kind == "positional"]

        if len(call.args) < signature.required_count:
            raise TypeCoercionError(
                f"{signature.name} expects at least {signature.required_count} arguments, received {len(call.args)}"
            )
        if signature.vararg is None and len(call.args) > len(ordered):
            raise TypeCoercionError(
                f"{signature.name} expects at most {len(ordered)} arguments, received {len(call.args)}"
            )

    def _bind(
        self, signature: ToolSignature, call: FunctionCall, depth: int, resolved: dict[str, Any]
    ) -> tuple[list[Any], dict[str, Any]]:
        def evaluate(expression: str) -> Any:
            if expression in resolved:
                return resolved[expression]
            return self.evaluate(expression, depth=depth + 1)

        raw = list(call.args)
        vararg = signature.vararg
        positional = [p for p in signature.parameters if p.kind == "positional"]
        keyword = [p for p in signature.parameters if p.kind == "keyword"]
        ordered = positional if vararg else positional + keyword

        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        for param, value in zip(ordered, raw):
            try:
                coerced = coerce_argument(value, param.annotation, evaluate)
            except TypeCoercionError as e:
                raise TypeCoercionError(f"Argument '{param.name}' of {signature.name}: {e}") from e
            if param.kind == "keyword":
                kwargs[param.name] = coerced
            else:
                args.append(coerced)

        if vararg is not None:
            rest = raw[len(ordered) :]
            # a single array argument is spread into the vararg, e.g. sum(intArrayOf(1, 2, 3))
            if len(rest) == 1 and parse_argument(rest[0]).kind is ArgumentKind.VARARG:
                rest = array_elements(rest[0])
            for value in rest:
                try:
                    args.append(coerce_argument(value, vararg.annotation, evaluate))
                except TypeCoercionError as e:
                    raise TypeCoercionError(f"Argument '*{vararg.name}' of {signature.name}: {e}") from e

        return args, kwargs

    def evaluate(self, expression: str, depth: int = 0) -> Any:
        """Parse and execute a call expression without recording it, returning the raw value.

        Used for nested calls and for template placeholders. Coroutine tools cannot run here; use `aevaluate`.
        """
        if depth > self.max_depth:
            raise TypeCoercionError(f"Calls nested more than {self.max_depth} deep: {expression}")

        prepared = self.canonicalize(parse_call(expression), depth)
        logger.debug(f"Evaluating {prepared.key}")
        return self._execute(prepared)

    async def aevaluate(self, expression: str, depth: int = 0) -> Any:
        """Parse and execute a call expression from the event loop without recording it."""
        if depth > self.max_depth:
            raise TypeCoercionError(f"Calls nested more than {self.max_depth} deep: {expression}")

        prepared = await self.acanonicalize(parse_call(expression), depth)
        logger.debug(f"Evaluating {prepared.key}")
        return await self._aexecute(prepared)

    def _execute(self, prepared: PreparedCall) -> Any:
        tool = prepared.tool
        if getattr(tool, "is_async", False):
            raise ToolExecutionError(prepared.key, TypeError("async tools can only be invoked from the async loop"))
        try:
            return tool(*prepared.args, **prepared.kwargs)
        except Exception as e:
            logger.exception(f"Tool raised while executing {prepared.key}")
            raise ToolExecutionError(prepared.key, e) from e

    async def _aexecute(self, prepared: PreparedCall) -> Any:
        tool = prepared.tool
        try:
            if getattr(tool, "is_async", False):
                return await tool(*prepared.args, **prepared.kwargs)
            elif getattr(tool, "blocking", False):
                return await asyncio.to_thread(tool, *prepared.args, **prepared.kwargs)
            return tool(*prepared.args, **prepared.kwargs)
        except Exception as e:
            logger.exception(f"Tool raised while executing {prepared.key}")
            raise ToolExecutionError(prepared.key, e) from e

    def invoke(self, call: FunctionCall, history: CallHistory) -> CallStatus:
        """Execute a call once per attempt.

        Returns
        -------
        Success
            The call executed and its stringified result was recorded under the canonical key.
        Recalled
            The canonical key was already in history; nothing was executed.
        Error
            The call could not be resolved, coerced, or executed.
        """
        try:
            prepared = self.canonicalize(call)
        except ToolRobotError as e:
            logger.debug(f"Could not prepare {call}: {e}")
            return Error(exception=e)

        if prepared.key in history:
            logger.warning(f"{prepared.key} was already called during this attempt")
            return Recalled(key=prepared.key)

        try:
            value = self._execute(prepared)
        except ToolExecutionError as e:
            return Error(exception=e)

        return self._record(prepared, value, history)

    async def ainvoke(self, call: FunctionCall, history: CallHistory) -> CallStatus:
        """Execute a call from an event loop.

        Coroutine-function tools are awaited and tools flagged `blocking` run on a worker thread, including
        tools called inside another call's arguments. History is only updated once the call has finished, so
        cancelling the awaiting task never leaves a half-recorded result.
        """
        try:
            prepared = await self.acanonicalize(call)
        except ToolRobotError as e:
            logger.debug(f"Could not prepare {call}: {e}")
            return Error(exception=e)

        if prepared.key in history:
            logger.warning(f"{prepared.key} was already called during this attempt")
            return Recalled(key=prepared.key)

        try:
            value = await self._aexecute(prepared)
        except ToolExecutionError as e:
            return Error(exception=e)

        return self._record(prepared, value, history)

    def _record(self, prepared: PreparedCall, value: Any, history: CallHistory) -> Success:
        result = stringify(value)
        history.record(prepared.key, result)
        logger.debug(f"{prepared.key} -> {result}")
        return Success(key=prepared.key, value=value, result=result)

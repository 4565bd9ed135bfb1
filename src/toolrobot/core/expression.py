"""Parse call expressions found in generated text.

A call expression looks like `name(arg1, arg2, ...)`. Parsing is shallow: the result is the function name and the
raw, trimmed, top-level argument substrings. Nested calls such as `outer(inner(1, 2), 3)` stay as text
(`inner(1, 2)`) until the Invoker evaluates them.
"""

from __future__ import annotations

from enum import Enum
import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict

from .exceptions import ParseError
from ..types_.core import FunctionCall
from ..utilities.parse import check_matched_pairs, find_closing, is_quoted, split_top_level

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"[A-Za-z_][\w.]*")
NUMBER_PATTERN = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")
BOOLEANS = {"true", "false"}
NULLS = {"null", "none", "nil"}

# Builder functions that are always available for array and vararg parameters.
# Maps the builder name to the element type it produces (Any when untyped).
ARRAY_BUILDERS: dict[str, Any] = {
    "intArrayOf": int,
    "longArrayOf": int,
    "shortArrayOf": int,
    "byteArrayOf": int,
    "floatArrayOf": float,
    "doubleArrayOf": float,
    "booleanArrayOf": bool,
    "charArrayOf": str,
    "arrayOf": Any,
    "listOf": Any,
    "setOf": Any,
}


class ArgumentKind(str, Enum):
    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING = "string"
    NULL = "null"
    FUNCTION_CALL = "function_call"
    VARARG = "vararg"
    VALUE = "value"


class ParsedArgument(BaseModel):
    """A raw argument tagged with the shape of value it holds."""

    model_config = ConfigDict(frozen=True)

    kind: ArgumentKind
    raw: str

    @property
    def call(self) -> FunctionCall | None:
        """The shallow parse of a nested call, when this argument is one."""
        if self.kind in (ArgumentKind.FUNCTION_CALL, ArgumentKind.VARARG) and is_call_expression(self.raw):
            return parse_call(self.raw)
        return None

    @property
    def elements(self) -> list[str]:
        """The raw elements of a vararg group."""
        if self.kind is not ArgumentKind.VARARG:
            return [self.raw]
        return array_elements(self.raw)


def split_arguments(text: str) -> list[str]:
    """Split an argument list on top-level commas.

    Commas nested in parentheses or inside an unescaped `"..."` literal are not split points.

    Examples
    --------
    >>> split_arguments('inner(1, 2), 3')
    ['inner(1, 2)', '3']
    >>> split_arguments('"a,b", 2')
    ['"a,b"', '2']
    """
    return split_top_level(text, sep=",")


def parse_call(expression: str) -> FunctionCall:
    """Parse `name(arg1, arg2, ...)` into a FunctionCall.

    Raises
    ------
    ParseError
        If there is no opening parenthesis, the name is not an identifier,
        or the parentheses are not balanced.
    """
    text = expression.strip()
    open_idx = text.find("(")
    if open_idx == -1:
        raise ParseError(f"Missing opening parenthesis in function call: {expression}")

    name = text[:open_idx].strip()
    if not NAME_PATTERN.fullmatch(name):
        raise ParseError(f"Invalid function name {name!r} in function call: {expression}")

    close_idx = text.rfind(")")
    if close_idx < open_idx:
        raise ParseError(f"Missing closing parenthesis in function call: {expression}")
    if text[close_idx + 1 :].strip():
        raise ParseError(f"Unexpected text after closing parenthesis in function call: {expression}")

    inner = text[open_idx + 1 : close_idx]
    if not check_matched_pairs(inner):
        raise ParseError(f"Unbalanced parentheses in function call: {expression}")

    call = FunctionCall(name=name, args=tuple(split_arguments(inner)))
    logger.debug(f"Parsed {expression!r} as {call.name} with {len(call.args)} args")
    return call


def is_call_expression(text: str) -> bool:
    """Determine whether text is a single call expression, e.g. `add(1, 2)` but not `add(1)(2)` or `"f(x)"`."""
    text = text.strip()
    match = NAME_PATTERN.match(text)
    if not match or match.end() >= len(text):
        return False

    open_idx = match.end()
    while open_idx < len(text) and text[open_idx].isspace():
        open_idx += 1
    if open_idx >= len(text) or text[open_idx] != "(":
        return False
    return find_closing(text, open_idx, "(", ")") == len(text) - 1


def call_name(text: str) -> str | None:
    """Return the function name of a call expression, or None if text is not one."""
    if not is_call_expression(text):
        return None
    return text.strip().split("(", 1)[0].strip()


def array_elements(raw: str) -> list[str]:
    """Return the raw elements of an array builder call, a bracket literal, or a single value."""
    raw = raw.strip()
    if raw.startswith("[") and raw.endswith("]"):
        return split_arguments(raw[1:-1])
    if call_name(raw) in ARRAY_BUILDERS:
        return list(parse_call(raw).args)
    return [raw]


def parse_argument(raw: str) -> ParsedArgument:
    """Classify a raw argument by the kind of value it holds."""
    raw = raw.strip()
    lowered = raw.lower()

    if is_quoted(raw):
        kind = ArgumentKind.STRING
    elif NUMBER_PATTERN.fullmatch(raw):
        kind = ArgumentKind.NUMBER
    elif lowered in BOOLEANS:
        kind = ArgumentKind.BOOLEAN
    elif lowered in NULLS:
        kind = ArgumentKind.NULL
    elif raw.startswith("[") and raw.endswith("]"):
        kind = ArgumentKind.VARARG
    elif is_call_expression(raw):
        kind = ArgumentKind.VARARG if call_name(raw) in ARRAY_BUILDERS else ArgumentKind.FUNCTION_CALL
    else:
        kind = ArgumentKind.VALUE

    return ParsedArgument(kind=kind, raw=raw)

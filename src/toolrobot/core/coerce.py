"""Convert raw argument text into typed values.

Providers hand back arguments as untyped strings. Each one is converted according to the annotation of the
parameter it is bound to:

- scalars (`int`, `float`, `bool`, `str`) use direct textual conversion;
- `Optional[T]` and other unions accept `null` or try each member in order;
- sequences (`list[T]`, `tuple[T, ...]`, `set[T]`) accept array builders such as `intArrayOf(1, 2)` and
  bracket literals such as `[1, 2]`, converting every element to `T`;
- pydantic models and enums are validated from JSON or by value;
- a nested call such as `add(1, 2)` is handed to an `evaluate` callback (the Invoker) and its result is
  then converted to the annotation, so coercion may run tools.
"""

from __future__ import annotations

from enum import Enum
import logging
from typing import Any, Callable

import json_repair
from pydantic import BaseModel, ValidationError as PydanticValidationError

from .exceptions import TypeCoercionError
from .expression import ARRAY_BUILDERS, BOOLEANS, NULLS, ArgumentKind, array_elements, call_name, parse_argument
from ..types_.utils import (
    element_type,
    get_union_args,
    is_any,
    is_instance_of_type,
    is_sequence_type,
    sequence_origin,
    type_name,
    unpack_annotated,
)
from ..utilities import stringify
from ..utilities.parse import unquote

logger = logging.getLogger(__name__)

Evaluator = Callable[[str], Any]


def _needs_evaluation(raw: str) -> bool:
    name = call_name(raw)
    return name is not None and name not in ARRAY_BUILDERS


def coerce_argument(raw: str, annotation: Any, evaluate: Evaluator | None = None) -> Any:
    """Convert a raw argument into a value of the annotated type.

    Parameters
    ----------
    raw : str
        The argument text as it appeared in the call expression.
    annotation : Any
        The declared parameter type.
    evaluate : Callable[[str], Any] | None
        Evaluates nested call expressions. Required when `raw` is a nested call.

    Raises
    ------
    TypeCoercionError
        If the value cannot be converted to the annotation.
    """
    raw = raw.strip()
    annotation, _ = unpack_annotated(annotation)

    if _needs_evaluation(raw):
        if evaluate is None:
            raise TypeCoercionError(f"Nested call {raw} cannot be evaluated here")
        return coerce_value(evaluate(raw), annotation)

    if is_any(annotation):
        return infer_value(raw, evaluate)

    members = get_union_args(annotation)
    if len(members) > 1:
        return _coerce_union(raw, members, evaluate)

    if is_sequence_type(annotation):
        return coerce_sequence(array_elements(raw), annotation, evaluate)

    return _coerce_scalar(raw, annotation)


def coerce_sequence(elements: list[str], annotation: Any, evaluate: Evaluator | None = None) -> Any:
    """Convert raw elements into the container described by a sequence annotation."""
    elem_type = element_type(annotation)
    values = [coerce_argument(element, elem_type, evaluate) for element in elements]
    container = sequence_origin(annotation)
    return values if container is list else container(values)


def _coerce_union(raw: str, members: tuple[Any, ...], evaluate: Evaluator | None) -> Any:
    if raw.lower() in NULLS and type(None) in members:
        return None

    errors = []
    for member in members:
        if member is type(None):
            continue
        try:
            return coerce_argument(raw, member, evaluate)
        except TypeCoercionError as e:
            errors.append(str(e))
    raise TypeCoercionError(f"Could not coerce {raw!r} to any of {[type_name(m) for m in members]}: {errors}")


def _coerce_scalar(raw: str, annotation: Any) -> Any:
    lowered = raw.lower()

    if annotation is type(None):
        if lowered in NULLS:
            return None
        raise TypeCoercionError(f"Expected null, received {raw!r}")

    if annotation is bool:
        lowered = unquote(raw).lower()
        if lowered in BOOLEANS:
            return lowered == "true"
        if lowered in ("1", "0"):
            return lowered == "1"
        raise TypeCoercionError(f"Could not coerce {raw!r} to bool")

    if annotation is int:
        text = unquote(raw)
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError as e:
            raise TypeCoercionError(f"Could not coerce {raw!r} to int") from e
        if not number.is_integer():
            raise TypeCoercionError(f"Could not coerce {raw!r} to int without losing precision")
        return int(number)

    if annotation is float:
        try:
            return float(unquote(raw))
        except ValueError as e:
            raise TypeCoercionError(f"Could not coerce {raw!r} to float") from e

    if annotation is str:
        return unquote(raw)

    if isinstance(annotation, type) and issubclass(annotation, Enum):
        value = unquote(raw)
        try:
            return annotation(value)
        except ValueError:
            pass
        try:
            return annotation[value]
        except KeyError as e:
            raise TypeCoercionError(f"{raw!r} is not a member of {annotation.__name__}") from e

    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        try:
            return annotation.model_validate(json_repair.loads(unquote(raw)))
        except PydanticValidationError as e:
            raise TypeCoercionError(f"Could not validate {raw!r} as {annotation.__name__}: {e}") from e

    if isinstance(annotation, type):
        try:
            return annotation(unquote(raw))
        except (TypeError, ValueError) as e:
            raise TypeCoercionError(f"Could not coerce {raw!r} to {annotation.__name__}: {e}") from e

    raise TypeCoercionError(f"Unsupported parameter type {type_name(annotation)}")


def infer_value(raw: str, evaluate: Evaluator | None = None) -> Any:
    """Convert a raw argument without a declared type, based on how it is written."""
    argument = parse_argument(raw)
    kind = argument.kind
    if kind is ArgumentKind.NUMBER:
        return float(raw) if any(c in raw for c in ".eE") else int(raw)
    elif kind is ArgumentKind.BOOLEAN:
        return raw.lower() == "true"
    elif kind is ArgumentKind.NULL:
        return None
    elif kind is ArgumentKind.STRING:
        return unquote(raw)
    elif kind is ArgumentKind.VARARG:
        builder_type = ARRAY_BUILDERS.get(call_name(raw) or "", Any)
        return coerce_sequence(argument.elements, list[builder_type], evaluate)
    elif kind is ArgumentKind.FUNCTION_CALL:
        if evaluate is None:
            raise TypeCoercionError(f"Nested call {raw} cannot be evaluated here")
        return evaluate(raw)
    return raw


def coerce_value(value: Any, annotation: Any) -> Any:
    """Convert an already-evaluated value (e.g. a nested call result) to the annotated type."""
    annotation, _ = unpack_annotated(annotation)
    if is_any(annotation) or is_instance_of_type(value, annotation):
        return value

    if is_sequence_type(annotation) and isinstance(value, (list, tuple, set, frozenset)):
        values = [coerce_value(v, element_type(annotation)) for v in value]
        container = sequence_origin(annotation)
        return values if container is list else container(values)

    if value is None:
        raise TypeCoercionError(f"Expected {type_name(annotation)}, received None")

    # fall back to textual conversion of the rendered value
    return coerce_argument(stringify(value), annotation)

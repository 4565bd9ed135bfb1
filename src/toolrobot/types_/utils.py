from __future__ import annotations as _annotations

import collections.abc
import inspect
import logging
import types
from typing import Annotated, Any, Union, get_args, get_origin

import typing_extensions

logger = logging.getLogger(__name__)

SEQUENCE_TYPES: tuple[type, ...] = (list, tuple, set, frozenset)


# same as `pydantic_ai_slim/pydantic_ai/_result.py:origin_is_union`
def origin_is_union(tp: type[Any] | None) -> bool:
    """Determine whether a given type parameter is a Union type."""
    return tp is Union or tp is types.UnionType


def get_union_args(tp: Any) -> tuple[Any, ...]:
    """Extract the arguments of a Union type if `tp` is a union, otherwise return the original type."""
    if isinstance(tp, typing_extensions.TypeAliasType):
        tp = tp.__value__

    origin = get_origin(tp)
    if origin_is_union(origin):
        return get_args(tp)
    else:
        return (tp,)


def unpack_annotated(tp: Any) -> tuple[Any, list[Any]]:
    """Strip `Annotated` from the type if present.

    Returns
    -------
        `(tp argument, [])` if not annotated, otherwise `(stripped type, annotations)`.
    """
    origin = get_origin(tp)
    if origin is Annotated or origin is typing_extensions.Annotated:
        inner_tp, *args = get_args(tp)
        return inner_tp, args
    else:
        return tp, []


def is_any(tp: Any) -> bool:
    """Treat missing annotations and `Any` alike."""
    return tp is Any or tp is inspect.Parameter.empty or tp is None


def is_sequence_type(tp: Any) -> bool:
    """Determine whether `tp` is a list/tuple/set annotation (bare or parametrized)."""
    origin = get_origin(tp) or tp
    if origin in SEQUENCE_TYPES:
        return True
    return origin in (collections.abc.Sequence, collections.abc.Set, collections.abc.Collection)


def sequence_origin(tp: Any) -> type:
    """Return the concrete container to build for a sequence annotation."""
    origin = get_origin(tp) or tp
    if origin in SEQUENCE_TYPES:
        return origin
    if origin is collections.abc.Set:
        return set
    return list


def element_type(tp: Any) -> Any:
    """Return the element annotation of a sequence annotation, e.g. `int` for `list[int]` or `tuple[int, ...]`."""
    args = get_args(tp)
    if not args:
        return Any
    if get_origin(tp) is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return args[0]
        # fixed-length tuples with mixed members are treated as untyped
        return args[0] if len(set(args)) == 1 else Any
    return args[0]


def type_name(tp: Any) -> str:
    """Render an annotation the way it would be written in a python signature."""
    if is_any(tp):
        return "Any"
    if tp is type(None):
        return "None"
    if isinstance(tp, type) and not get_args(tp):
        return tp.__name__
    return str(tp).replace("typing.", "")


def is_instance_of_type(value: Any, tp: Any) -> bool:
    """Check a value against an annotation, including unions and parametrized sequences.

    `bool` is not accepted where `int` or `float` is expected.
    """
    tp, _ = unpack_annotated(tp)
    for arg in get_union_args(tp):
        if is_any(arg):
            return True
        if arg is type(None):
            if value is None:
                return True
            continue

        if is_sequence_type(arg):
            origin = sequence_origin(arg)
            if isinstance(value, origin) and all(is_instance_of_type(v, element_type(arg)) for v in value):
                return True
            continue

        origin = get_origin(arg) or arg
        if not isinstance(origin, type):
            continue
        if isinstance(value, bool) and origin in (int, float):
            continue
        if isinstance(value, origin):
            return True
    return False

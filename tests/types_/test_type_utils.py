import collections.abc
import inspect
from typing import Annotated, Any, Optional, Union

import pytest
import typing_extensions

from toolrobot.types_.utils import (
    element_type,
    get_union_args,
    is_any,
    is_instance_of_type,
    is_sequence_type,
    origin_is_union,
    sequence_origin,
    type_name,
    unpack_annotated,
)


class TestUnion:
    def test_origin_is_union(self):
        from typing import get_origin

        assert origin_is_union(get_origin(Union[int, str]))
        assert origin_is_union(get_origin(int | str))
        assert not origin_is_union(get_origin(list[int]))

    def test_get_union_args(self):
        assert get_union_args(Optional[int]) == (int, type(None))
        assert get_union_args(int | str) == (int, str)
        assert get_union_args(int) == (int,)

    def test_type_alias(self):
        IntOrStr = typing_extensions.TypeAliasType("IntOrStr", int | str)  # noqa: N806
        assert get_union_args(IntOrStr) == (int, str)


class TestAnnotated:
    def test_unpack(self):
        assert unpack_annotated(Annotated[int, "meta"]) == (int, ["meta"])
        assert unpack_annotated(int) == (int, [])


class TestIsAny:
    @pytest.mark.parametrize("tp", [Any, inspect.Parameter.empty, None])
    def test_any(self, tp):
        assert is_any(tp)

    def test_not_any(self):
        assert not is_any(int)


class TestSequences:
    @pytest.mark.parametrize(
        "tp, expected",
        [
            (list, True),
            (list[int], True),
            (tuple[int, ...], True),
            (set[str], True),
            (collections.abc.Sequence[int], True),
            (str, False),
            (dict[str, int], False),
        ],
    )
    def test_is_sequence_type(self, tp, expected):
        assert is_sequence_type(tp) is expected

    def test_sequence_origin(self):
        assert sequence_origin(list[int]) is list
        assert sequence_origin(tuple[int, ...]) is tuple
        assert sequence_origin(collections.abc.Set[int]) is set
        assert sequence_origin(collections.abc.Sequence[int]) is list

    @pytest.mark.parametrize(
        "tp, expected",
        [
            (list[int], int),
            (list, Any),
            (tuple[int, ...], int),
            (tuple[int, int], int),
            (tuple[int, str], Any),
            (set[float], float),
        ],
    )
    def test_element_type(self, tp, expected):
        assert element_type(tp) is expected


class TestTypeName:
    @pytest.mark.parametrize(
        "tp, expected",
        [
            (int, "int"),
            (Any, "Any"),
            (type(None), "None"),
            (list[int], "list[int]"),
            (dict[str, int], "dict[str, int]"),
        ],
    )
    def test_type_name(self, tp, expected):
        assert type_name(tp) == expected


class TestIsInstanceOfType:
    @pytest.mark.parametrize(
        "value, tp, expected",
        [
            (1, int, True),
            (True, int, False),
            (True, bool, True),
            (1.5, float, True),
            (None, Optional[int], True),
            (3, Optional[int], True),
            ("a", Optional[int], False),
            ([1, 2], list[int], True),
            ([1, "a"], list[int], False),
            ((1, 2), tuple[int, ...], True),
            ("x", Any, True),
            (5, Annotated[int, "meta"], True),
        ],
    )
    def test_is_instance_of_type(self, value, tp, expected):
        assert is_instance_of_type(value, tp) is expected

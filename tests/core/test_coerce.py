from enum import Enum
from typing import Annotated, Any, Optional, Union

from pydantic import BaseModel
import pytest

from toolrobot.core.coerce import coerce_argument, coerce_value, infer_value
from toolrobot.core.exceptions import TypeCoercionError


class Color(Enum):
    RED = "red"
    GREEN = "green"


class Point(BaseModel):
    x: int
    y: int


class TestScalars:
    @pytest.mark.parametrize(
        "raw, annotation, expected",
        [
            ("42", int, 42),
            ("3.0", int, 3),
            ('"7"', int, 7),
            ("2.5", float, 2.5),
            ("3", float, 3.0),
            ("true", bool, True),
            ("FALSE", bool, False),
            ("1", bool, True),
            ("0", bool, False),
            ('"hello"', str, "hello"),
            ("hello", str, "hello"),
            (r'"line\nbreak"', str, "line\nbreak"),
            (r'"say \"hi\""', str, 'say "hi"'),
        ],
    )
    def test_conversion(self, raw, annotation, expected):
        result = coerce_argument(raw, annotation)
        assert result == expected
        assert type(result) is type(expected)

    @pytest.mark.parametrize(
        "raw, annotation",
        [
            ("abc", int),
            ("2.5", int),
            ("abc", float),
            ("yes", bool),
            ("2", bool),
        ],
    )
    def test_failure(self, raw, annotation):
        with pytest.raises(TypeCoercionError):
            coerce_argument(raw, annotation)

    def test_failure_names_value_and_type(self):
        with pytest.raises(TypeCoercionError, match="abc.*int"):
            coerce_argument("abc", int)

    def test_enum_by_value_and_name(self):
        assert coerce_argument('"red"', Color) is Color.RED
        assert coerce_argument("GREEN", Color) is Color.GREEN

        with pytest.raises(TypeCoercionError):
            coerce_argument("blue", Color)

    def test_pydantic_model(self):
        assert coerce_argument('{"x": 1, "y": 2}', Point) == Point(x=1, y=2)

    def test_pydantic_model_invalid(self):
        with pytest.raises(TypeCoercionError):
            coerce_argument('{"x": "one"}', Point)

    def test_annotated(self):
        assert coerce_argument("5", Annotated[int, "a count"]) == 5


class TestOptional:
    @pytest.mark.parametrize("raw", ["null", "None", "nil"])
    def test_null(self, raw):
        assert coerce_argument(raw, Optional[int]) is None

    def test_value(self):
        assert coerce_argument("4", int | None) == 4

    def test_union_tries_members_in_order(self):
        assert coerce_argument("4", Union[int, str]) == 4
        assert coerce_argument("four", Union[int, str]) == "four"

    def test_union_failure(self):
        with pytest.raises(TypeCoercionError):
            coerce_argument("four", Union[int, float])


class TestSequences:
    def test_int_array_builder(self):
        assert coerce_argument("intArrayOf(1, 2, 3)", list[int]) == [1, 2, 3]

    def test_bracket_literal(self):
        assert coerce_argument("[1.5, 2]", list[float]) == [1.5, 2.0]

    def test_tuple_and_set(self):
        assert coerce_argument("listOf(1, 2)", tuple[int, ...]) == (1, 2)
        assert coerce_argument('setOf("a", "b", "a")', set[str]) == {"a", "b"}

    def test_strings_with_commas(self):
        assert coerce_argument('arrayOf("a,b", "c")', list[str]) == ["a,b", "c"]

    def test_single_value(self):
        assert coerce_argument("5", list[int]) == [5]

    def test_element_failure(self):
        with pytest.raises(TypeCoercionError):
            coerce_argument("intArrayOf(1, x)", list[int])


class TestNestedCalls:
    def test_evaluated_and_coerced(self):
        calls = []

        def evaluate(expression):
            calls.append(expression)
            return 5

        assert coerce_argument("add(2, 3)", int, evaluate) == 5
        assert coerce_argument("add(2, 3)", str, evaluate) == "5"
        assert calls == ["add(2, 3)", "add(2, 3)"]

    def test_without_evaluator(self):
        with pytest.raises(TypeCoercionError):
            coerce_argument("add(2, 3)", int)

    def test_nested_inside_array(self):
        assert coerce_argument("listOf(1, inc(1))", list[int], lambda _: 2) == [1, 2]

    def test_result_is_not_converted_when_it_already_matches(self):
        point = Point(x=1, y=2)
        assert coerce_argument("origin()", Point, lambda _: point) is point


class TestInferValue:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("3", 3),
            ("3.5", 3.5),
            ("12345678901234567890", 12345678901234567890),
            ("true", True),
            ("null", None),
            ('"text"', "text"),
            ("bare", "bare"),
            ("intArrayOf(1, 2)", [1, 2]),
            ("[1, 2.5]", [1, 2.5]),
        ],
    )
    def test_infer(self, raw, expected):
        assert infer_value(raw) == expected

    def test_any_annotation(self):
        assert coerce_argument("3", Any) == 3


class TestCoerceValue:
    def test_already_instance(self):
        assert coerce_value(3, int) == 3

    def test_bool_is_not_int(self):
        with pytest.raises(TypeCoercionError):
            coerce_value(True, int)

    def test_textual_fallback(self):
        assert coerce_value(3, float) == 3.0
        assert coerce_value(3, str) == "3"

    def test_sequence(self):
        assert coerce_value([1, 2], tuple[float, ...]) == (1.0, 2.0)

    def test_none(self):
        with pytest.raises(TypeCoercionError):
            coerce_value(None, int)

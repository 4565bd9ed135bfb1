import asyncio
import json
import threading
from typing import Optional

from pydantic import BaseModel
import pytest

from toolrobot.core.exceptions import (
    LoopDetected,
    ToolExecutionError,
    TypeCoercionError,
    UnresolvedFunction,
)
from toolrobot.core.history import CallHistory
from toolrobot.core.registry import Error, Invoker, Recalled, Success, ToolRegistry, render_argument
from toolrobot.core.tool import Tool, tool
from toolrobot.types_.core import FunctionCall


class Point(BaseModel):
    x: int
    y: int


@tool
def add(a: int, b: int) -> int:
    """Add two numbers."""
    return a + b


@tool
def multiply(a: float, b: float) -> float:
    """Multiply two numbers."""
    return a * b


@tool
def total(*numbers: int) -> int:
    """Sum any amount of numbers."""
    return sum(numbers)


@tool
def greet(name: str, greeting: Optional[str] = None) -> str:
    """Greet someone."""
    return f"{greeting or 'Hello'}, {name}!"


@tool
def norm(point: Point) -> int:
    """Manhattan norm of a point."""
    return abs(point.x) + abs(point.y)


@tool
def explode(message: str) -> str:
    """Raise an error."""
    raise RuntimeError(message)


@pytest.fixture
def registry():
    return ToolRegistry([add, multiply, total, greet, norm, explode])


@pytest.fixture
def invoker(registry):
    return Invoker(registry)


@pytest.fixture
def history():
    return CallHistory()


class TestToolRegistry:
    def test_lookup(self, registry):
        assert registry.lookup("add") is add
        assert "add" in registry
        assert len(registry) == 6
        assert list(registry)[:2] == ["add", "multiply"]

    def test_unresolved(self, registry):
        with pytest.raises(UnresolvedFunction) as exc_info:
            registry.lookup("subtract")
        assert exc_info.value.name == "subtract"
        assert "add" in exc_info.value.available
        assert isinstance(exc_info.value, LookupError)

    def test_resolve(self, registry):
        assert registry.resolve(FunctionCall(name="add", args=("1", "2"))) is add.signature

    def test_list_tools(self, registry):
        assert [s.name for s in registry.list_tools()][:2] == ["add", "multiply"]

    def test_wraps_plain_functions(self):
        def subtract(a: int, b: int) -> int:
            """Subtract b from a."""
            return a - b

        registry = ToolRegistry([subtract])
        assert isinstance(registry.lookup("subtract"), Tool)

    def test_rejects_duplicates(self):
        with pytest.raises(ValueError):
            ToolRegistry([add, add])

    def test_rejects_non_callables(self):
        with pytest.raises(TypeError):
            ToolRegistry([42])

    def test_immutable(self, registry):
        with pytest.raises(TypeError):
            registry._tools["other"] = add

    def test_warns_without_description(self, caplog):
        def undocumented(a: int) -> int:
            return a

        ToolRegistry([undocumented])
        assert "should have a docstring" in caplog.text


class TestRenderArgument:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (2, "2"),
            (2.5, "2.5"),
            ("a", '"a"'),
            (True, "true"),
            (None, "null"),
            ([1, 2], "[1, 2]"),
            ({3, 1}, "[1, 3]"),
        ],
    )
    def test_render(self, value, expected):
        assert render_argument(value) == expected

    def test_model(self):
        assert json.loads(render_argument(Point(x=1, y=2))) == {"x": 1, "y": 2}


class TestCanonicalize:
    def test_key(self, invoker):
        prepared = invoker.canonicalize(FunctionCall(name="add", args=("2", "3")))
        assert prepared.key == "add(2, 3)"
        assert prepared.args == [2, 3]

    def test_key_uses_coerced_values(self, invoker):
        a = invoker.canonicalize(FunctionCall(name="add", args=("2", "3.0")))
        b = invoker.canonicalize(FunctionCall(name="add", args=('"2"', "3")))
        assert a.key == b.key == "add(2, 3)"

    def test_nested_call_is_evaluated(self, invoker):
        prepared = invoker.canonicalize(FunctionCall(name="add", args=("add(1, 1)", "3")))
        assert prepared.key == "add(2, 3)"

    def test_too_few(self, invoker):
        with pytest.raises(TypeCoercionError, match="at least 2"):
            invoker.canonicalize(FunctionCall(name="add", args=("2",)))

    def test_too_many(self, invoker):
        with pytest.raises(TypeCoercionError, match="at most 2"):
            invoker.canonicalize(FunctionCall(name="add", args=("1", "2", "3")))

    def test_optional_argument(self, invoker):
        assert invoker.canonicalize(FunctionCall(name="greet", args=('"Ada"',))).args == ["Ada"]
        assert invoker.canonicalize(FunctionCall(name="greet", args=('"Ada"', "null"))).args == ["Ada", None]

    def test_vararg(self, invoker):
        prepared = invoker.canonicalize(FunctionCall(name="total", args=("1", "2", "3")))
        assert prepared.args == [1, 2, 3]

    def test_vararg_spreads_array(self, invoker):
        for raw in ("intArrayOf(1, 2, 3)", "[1, 2, 3]"):
            prepared = invoker.canonicalize(FunctionCall(name="total", args=(raw,)))
            assert prepared.args == [1, 2, 3]

    def test_unresolved(self, invoker):
        with pytest.raises(UnresolvedFunction):
            invoker.canonicalize(FunctionCall(name="subtract", args=("1", "2")))


class TestEvaluate:
    def test_nested(self, invoker):
        assert invoker.evaluate("add(multiply(2, 3), 4)") == 10

    def test_model_argument(self, invoker):
        assert invoker.evaluate('norm({"x": -1, "y": 2})') == 3

    def test_depth_limit(self, registry):
        shallow = Invoker(registry, max_depth=1)
        assert shallow.evaluate("add(add(1, 1), 1)") == 3
        with pytest.raises(TypeCoercionError, match="nested"):
            shallow.evaluate("add(add(add(1, 1), 1), 1)")

    def test_tool_error(self, invoker):
        with pytest.raises(ToolExecutionError) as exc_info:
            invoker.evaluate('explode("boom")')
        assert isinstance(exc_info.value.error, RuntimeError)

    def test_async_tool_rejected(self):
        @tool
        async def fetch(url: str) -> str:
            """Fetch a url."""
            return url

        with pytest.raises(ToolExecutionError):
            Invoker(ToolRegistry([fetch])).evaluate('fetch("x")')


class TestInvoke:
    def test_success_then_recalled(self, invoker, history):
        call = FunctionCall(name="add", args=("2", "3"))

        first = invoker.invoke(call, history)
        assert isinstance(first, Success)
        assert first.key == "add(2, 3)"
        assert first.value == 5
        assert first.result == "5"
        assert history.get("add(2, 3)") == "5"

        second = invoker.invoke(call, history)
        assert isinstance(second, Recalled)
        assert second.key == "add(2, 3)"
        assert isinstance(second.exception, LoopDetected)
        assert len(history) == 1

    def test_equivalent_spelling_is_recalled(self, invoker, history):
        invoker.invoke(FunctionCall(name="add", args=("2", "3")), history)
        assert isinstance(invoker.invoke(FunctionCall(name="add", args=("2.0", '"3"')), history), Recalled)

    def test_nested_calls_are_not_recorded(self, invoker, history):
        invoker.invoke(FunctionCall(name="add", args=("add(1, 1)", "3")), history)
        assert list(history) == ["add(2, 3)"]

    def test_model_result(self, registry, history):
        @tool
        def origin() -> Point:
            """The origin."""
            return Point(x=0, y=0)

        result = Invoker(ToolRegistry([origin])).invoke(FunctionCall(name="origin"), history)
        assert json.loads(result.result) == {"x": 0, "y": 0}

    @pytest.mark.parametrize(
        "call, exception",
        [
            (FunctionCall(name="subtract", args=("1", "2")), UnresolvedFunction),
            (FunctionCall(name="add", args=("one", "2")), TypeCoercionError),
            (FunctionCall(name="add", args=("1",)), TypeCoercionError),
            (FunctionCall(name="explode", args=('"boom"',)), ToolExecutionError),
            (FunctionCall(name="add", args=("add(1)", "2")), TypeCoercionError),
        ],
    )
    def test_error(self, invoker, history, call, exception):
        status = invoker.invoke(call, history)
        assert isinstance(status, Error)
        assert isinstance(status.exception, exception)
        assert len(history) == 0


class TestAsyncInvoke:
    @pytest.mark.asyncio
    async def test_sync_tool(self, invoker, history):
        status = await invoker.ainvoke(FunctionCall(name="add", args=("2", "3")), history)
        assert isinstance(status, Success)
        assert status.result == "5"

    @pytest.mark.asyncio
    async def test_coroutine_tool(self, history):
        @tool
        async def double(a: int) -> int:
            """Double a number."""
            await asyncio.sleep(0)
            return a * 2

        status = await Invoker(ToolRegistry([double])).ainvoke(FunctionCall(name="double", args=("4",)), history)
        assert status.result == "8"

    @pytest.mark.asyncio
    async def test_blocking_tool_runs_on_worker_thread(self, history):
        threads = []

        @tool(blocking=True)
        def slow(a: int) -> int:
            """Do slow work."""
            threads.append(threading.current_thread())
            return a

        status = await Invoker(ToolRegistry([slow])).ainvoke(FunctionCall(name="slow", args=("1",)), history)
        assert isinstance(status, Success)
        assert threads[0] is not threading.main_thread()

    @pytest.mark.asyncio
    async def test_recalled(self, invoker, history):
        call = FunctionCall(name="add", args=("2", "3"))
        await invoker.ainvoke(call, history)
        assert isinstance(await invoker.ainvoke(call, history), Recalled)

    @pytest.mark.asyncio
    async def test_error(self, invoker, history):
        status = await invoker.ainvoke(FunctionCall(name="explode", args=('"boom"',)), history)
        assert isinstance(status, Error)
        assert isinstance(status.exception, ToolExecutionError)

    @pytest.mark.asyncio
    async def test_cancelled_call_is_not_recorded(self, history):
        started = asyncio.Event()

        @tool
        async def hang() -> str:
            """Never finishes."""
            started.set()
            await asyncio.sleep(60)
            return "done"

        invoker = Invoker(ToolRegistry([hang]))

        task = asyncio.create_task(invoker.ainvoke(FunctionCall(name="hang"), history))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(history) == 0

    @pytest.mark.asyncio
    async def test_nested_coroutine_tool(self, history):
        @tool
        async def double(a: int) -> int:
            """Double a number."""
            await asyncio.sleep(0)
            return a * 2

        invoker = Invoker(ToolRegistry([add, double, total]))

        status = await invoker.ainvoke(FunctionCall(name="add", args=("double(2)", "1")), history)
        assert isinstance(status, Success)
        assert status.key == "add(4, 1)"
        assert status.result == "5"

        nested = FunctionCall(name="total", args=("intArrayOf(double(1), double(double(1)))",))
        status = await invoker.ainvoke(nested, history)
        assert status.result == "6"
        assert list(history) == ["add(4, 1)", "total(2, 4)"]

    @pytest.mark.asyncio
    async def test_nested_blocking_tool_runs_on_worker_thread(self, history):
        threads = []

        @tool(blocking=True)
        def slow(a: int) -> int:
            """Do slow work."""
            threads.append(threading.current_thread())
            return a

        invoker = Invoker(ToolRegistry([add, slow]))
        status = await invoker.ainvoke(FunctionCall(name="add", args=("slow(2)", "3")), history)

        assert status.result == "5"
        assert threads[0] is not threading.main_thread()

    @pytest.mark.asyncio
    async def test_nested_error(self, invoker, history):
        status = await invoker.ainvoke(FunctionCall(name="add", args=('explode("boom")', "1")), history)
        assert isinstance(status, Error)
        assert isinstance(status.exception, ToolExecutionError)
        assert len(history) == 0

    @pytest.mark.asyncio
    async def test_arity_checked_before_nested_calls_run(self, history):
        ran = []

        @tool
        async def record() -> int:
            """Record that it ran."""
            ran.append(True)
            return 1

        invoker = Invoker(ToolRegistry([add, record]))
        status = await invoker.ainvoke(FunctionCall(name="add", args=("record()",)), history)

        assert isinstance(status.exception, TypeCoercionError)
        assert ran == []

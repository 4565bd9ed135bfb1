import asyncio
from typing import Any, Callable, Coroutine, TypeVar

T = TypeVar("T")


def _in_ipython() -> bool:
    try:
        from IPython.core.getipython import get_ipython
    except ImportError:
        return False
    return get_ipython() is not None


def run_coroutine(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine to completion from synchronous code.

    Without a running event loop this is `asyncio.run`. IPython already runs a loop, so there it is patched
    with nest_asyncio and re-entered.

    Raises
    ------
    RuntimeError
        If called from a running event loop outside of IPython; await the coroutine instead.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    if _in_ipython():
        import nest_asyncio

        nest_asyncio.apply(loop)
        return loop.run_until_complete(coro)

    coro.close()
    raise RuntimeError("Cannot block on a coroutine inside a running event loop; await it instead")


def synchronize(afunc: Callable[..., Coroutine[Any, Any, T]], *args, **kwargs) -> T:
    """Call an async function from synchronous code."""
    return run_coroutine(afunc(*args, **kwargs))

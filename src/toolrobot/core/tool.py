"""Wrap host functions as tools with a fixed, declarative signature.

The signature of a tool (parameter names, annotations, docstring descriptions) is read exactly once,
when the tool is created at setup time. After that the Invoker only consults the stored `ToolSignature`.

ref: https://github.com/openai/openai-agents-python/blob/8d906f88f02d30b3cf6068e5de88a5f1e4bafd82/src/agents/function_schema.py
"""

from __future__ import annotations

import inspect
import logging
import re
from typing import Any, Callable, Generic, Literal, Type, get_type_hints

from pydantic import BaseModel, ConfigDict, Field, create_model
from typing_extensions import override

from .base import CallableReturnType, CallableWithSignature
from ..types_.utils import type_name
from ..utilities import suppress_logs

logger = logging.getLogger(__name__)


DocstringStyle = Literal["google", "numpy", "sphinx"]
ParameterKind = Literal["positional", "vararg", "keyword"]


def _detect_docstring_style(doc: str) -> DocstringStyle:
    """Detect the style of a docstring.

    Ref: https://github.com/openai/openai-agents-python/blob/8d906f88f02d30b3cf6068e5de88a5f1e4bafd82/src/agents/function_schema.py#L87-L129
    """
    patterns: dict[DocstringStyle, list[str]] = {
        "sphinx": [r"^:param\s", r"^:type\s", r"^:return:", r"^:rtype:"],
        "numpy": [r"^Parameters\s*\n\s*-{3,}", r"^Returns\s*\n\s*-{3,}", r"^Yields\s*\n\s*-{3,}"],
        "google": [r"^(Args|Arguments):", r"^(Returns):", r"^(Raises):"],
    }
    scores = {style: sum(bool(re.search(p, doc, re.MULTILINE)) for p in pats) for style, pats in patterns.items()}

    # Priority order: sphinx > numpy > google in case of tie
    best = max(scores.values())
    if best == 0:
        return "google"
    return next(style for style in ("sphinx", "numpy", "google") if scores[style] == best)


def parse_docstring(fn: Callable) -> tuple[str | None, dict[str, str]]:
    """Extract the summary text and the parameter descriptions from a function's docstring."""
    from griffe import Docstring, DocstringSectionKind

    doc = inspect.getdoc(fn)
    if not doc:
        return None, {}

    with suppress_logs("griffe"):
        docstring = Docstring(doc, lineno=1, parser=_detect_docstring_style(doc))
        parsed = docstring.parse()

    description = next((section.value for section in parsed if section.kind == DocstringSectionKind.text), None)
    params = {
        param.name: param.description
        for section in parsed
        if section.kind == DocstringSectionKind.parameters
        for param in section.value
    }
    return description, params


class Parameter(BaseModel):
    """A declared tool parameter."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    annotation: Any = Field(default=Any)
    description: str | None = None
    kind: ParameterKind = "positional"
    required: bool = True
    default: Any = None

    def render(self) -> str:
        prefix = "*" if self.kind == "vararg" else ""
        text = f"{prefix}{self.name}: {type_name(self.annotation)}"
        if not self.required and self.kind != "vararg":
            text += f" = {self.default!r}"
        return text


class ToolSignature(BaseModel):
    """The name, parameters, and documentation of a tool."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(min_length=1)
    description: str = ""
    parameters: tuple[Parameter, ...] = ()
    returns: Any = Field(default=Any)

    @property
    def vararg(self) -> Parameter | None:
        """The variable-length parameter, which can only come last among positional parameters."""
        return next((p for p in self.parameters if p.kind == "vararg"), None)

    @property
    def required_count(self) -> int:
        return sum(1 for p in self.parameters if p.required and p.kind != "vararg")

    def render(self) -> str:
        """Render the signature the way it would be declared in python."""
        params = ", ".join(p.render() for p in self.parameters)
        return f"def {self.name}({params}) -> {type_name(self.returns)}"

    def pydantic_model(self) -> Type[BaseModel]:
        """Build a pydantic model of the parameters, e.g. to export a JSON schema for function-calling APIs."""
        fields: dict[str, Any] = {}
        for p in self.parameters:
            if p.kind == "vararg":
                fields[p.name] = (list[p.annotation], Field(default_factory=list, description=p.description))
            elif p.required:
                fields[p.name] = (p.annotation, Field(..., description=p.description))
            else:
                fields[p.name] = (p.annotation, Field(default=p.default, description=p.description))

        return create_model(self.name, __doc__=self.description or None, __base__=BaseModel, **fields)


def function_signature(fn: Callable, name: str | None = None) -> ToolSignature:
    """Given a python function, generate a ToolSignature.

    Extracts type hints, default values, and docstring descriptions (ignoring 'self', 'cls', and `**kwargs`).
    Requires type hints and docstrings for an accurate signature.
    """
    if inspect.getdoc(fn) is None:
        logger.warning(f"Function {fn.__name__} requires docstrings for viable signature.")

    # Handle bound methods by getting the original function
    if inspect.ismethod(fn):
        fn = fn.__func__

    description, param_descs = parse_docstring(fn)
    sig = inspect.signature(fn)
    type_hints = get_type_hints(fn)

    parameters = []
    for param_name, param in sig.parameters.items():
        if param_name in ("self", "cls") or param.kind == param.VAR_KEYWORD:
            continue

        annotation = type_hints.get(param_name, param.annotation)
        if annotation is inspect.Parameter.empty:
            annotation = Any

        if param.kind == param.VAR_POSITIONAL:
            kind = "vararg"
        elif param.kind == param.KEYWORD_ONLY:
            kind = "keyword"
        else:
            kind = "positional"

        has_default = param.default is not inspect.Parameter.empty
        parameters.append(
            Parameter(
                name=param_name,
                annotation=annotation,
                description=param_descs.get(param_name),
                kind=kind,
                required=kind != "vararg" and not has_default,
                default=param.default if has_default else None,
            )
        )

    return ToolSignature(
        name=name or fn.__name__,
        description=description or "",
        parameters=tuple(parameters),
        returns=type_hints.get("return", Any),
    )


class Tool(Generic[CallableReturnType], CallableWithSignature[CallableReturnType]):
    """Wrap a callable with the signature the Invoker dispatches on.

    Parameters
    ----------
    func : Callable
        The host function. Coroutine functions are awaited by the async Invoker.
    signature : ToolSignature | None
        An explicit declaration. When omitted, it is read from `func`.
    blocking : bool
        Run the function on a worker thread when invoked from an async loop.
    """

    signature: ToolSignature

    def __init__(
        self,
        func: Callable[..., CallableReturnType],
        signature: ToolSignature | None = None,
        blocking: bool = False,
    ) -> None:
        self._func = func
        self.signature = signature or function_signature(func)
        self.blocking = blocking

        self.__name__ = self.signature.name
        self.__doc__ = self.signature.description or None

    @property
    def name(self) -> str:
        return self.signature.name

    @property
    def is_async(self) -> bool:
        return inspect.iscoroutinefunction(self._func)

    @override
    def __call__(self, *args: Any, **kwargs: Any) -> CallableReturnType:
        return self._func(*args, **kwargs)

    def __repr__(self) -> str:
        return f"Tool({self.signature.render()})"


def tool(
    func: Callable[..., CallableReturnType] | None = None,
    *,
    name: str | None = None,
    blocking: bool = False,
) -> Any:
    """Decorate a function into a Tool.

    Can be used either as a bare decorator (@tool) or with parameters (@tool(blocking=True)).

    Examples
    --------
    >>> @tool
    ... def add(a: int, b: int) -> int:
    ...     "Add two numbers."
    ...     return a + b
    >>> add(1, 2)
    3
    >>> add.signature.render()
    'def add(a: int, b: int) -> int'
    """

    def decorator(f: Callable[..., Any]) -> Tool:
        signature = function_signature(f, name=name) if name else None
        return Tool(f, signature=signature, blocking=blocking)

    if func is not None:
        return decorator(func)
    return decorator

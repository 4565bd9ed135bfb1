"""Core protocols for tool-using conversations.

This module defines the seams between the core and its collaborators.
Providers send a conversation to a text-generation service and return the already-received response.
Strategies interpret a response (never performing I/O themselves) and decide what happens next.
Callables expose the signature the Invoker dispatches on.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Generic, Protocol, Sequence

from typing_extensions import TypeVar, runtime_checkable

from ..types_.core import FunctionCall, Message, Response

if TYPE_CHECKING:
    from .history import CallHistory
    from .registry import Invoker
    from .strategy import OrchestrationResult
    from .tool import Tool, ToolSignature

logger = logging.getLogger(__name__)

CallableReturnType = TypeVar("CallableReturnType", covariant=False)


@runtime_checkable
class CallableWithSignature(Generic[CallableReturnType], Protocol):
    """Protocol for callables that can be registered as tools.

    Attributes
    ----------
    signature : ToolSignature
        The declared name, parameters and return type of the callable.
    """

    signature: ToolSignature

    def __call__(self, *args, **kwargs) -> CallableReturnType:
        """Execute with already-coerced arguments."""
        ...


@runtime_checkable
class Provider(Protocol):
    """Protocol for text-generation services.

    Providers own all transport and request/response schema concerns. Transport failures should be raised
    as `ProviderError` so the Director can retry them uniformly.
    """

    async def send(self, messages: Sequence[Message], tools: Sequence[Tool]) -> Response:
        """Send the conversation and the tools the provider may request.

        Parameters
        ----------
        messages : Sequence[Message]
            The conversation so far, in chronological order.
        tools : Sequence[Tool]
            Tools available for native function calling (may be empty).

        Returns
        -------
        Response
            The generated text and/or the calls requested, in emission order.
        """
        ...

    def on_tool_result(self, call: FunctionCall, result: str) -> None:
        """Notification hook called after each successful tool call."""
        ...


@runtime_checkable
class ToolUseStrategy(Protocol):
    """Protocol for strategies that turn a received response into the next orchestration step."""

    async def __call__(
        self,
        response: Response,
        invoker: Invoker,
        last_user_message: Message | None = None,
        provider: Provider | None = None,
        call_history: CallHistory | None = None,
    ) -> OrchestrationResult:
        """Interpret a response and return the action to take plus the messages it produced."""
        ...

    def advertisement(self, tools: Sequence[ToolSignature]) -> Message | None:
        """Return a message that primes the provider about available tools, if the strategy needs one."""
        ...

    def get_tools(self, tools: Sequence[Any]) -> list[Any]:
        """Filter the tools that are sent to the provider for native function calling."""
        ...

"""Drive a provider and a strategy to a final answer.

The Director owns everything a strategy does not: the turn budget, provider round-trips (with timeout and
transport retries), applying strategy results to the conversation, and resetting the thread on intervention.
Each run gets its own Conversation and CallHistory, so any number of runs can share one Director concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Iterable, Sequence

from jinja2 import StrictUndefined, Template as JinjaTemplate
from pydantic import BaseModel, ConfigDict, Field
from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception_type, stop_after_attempt

from .base import CallableWithSignature, Provider, ToolUseStrategy
from .coerce import coerce_argument
from .exceptions import ProviderError, ToolRobotError, TurnBudgetExceeded
from .history import CallHistory
from .registry import Invoker, ToolRegistry
from .strategy import BackAndForth, OrchestrationResult, ToolResultAction
from .tool import ToolSignature
from ..types_.core import Conversation, Message, Response, SystemMessage, UserMessage
from ..utilities.async_helpers import synchronize

logger = logging.getLogger(__name__)


class DirectorConfig(BaseModel):
    """Settings for a Director.

    Attributes
    ----------
    max_turns : int
        Provider round-trips allowed per run before `TurnBudgetExceeded` is raised.
    loop_detection : bool
        Keep call history across turns so a repeated call is recalled instead of re-executed.
        When disabled, history only spans a single turn.
    completion_nudge : bool
        Ask the provider for its final answer after every fully successful tool turn.
    provider_timeout : float | None
        Seconds to wait for one provider round-trip; a timeout counts as a transport failure.
    transport_retries : int
        Attempts per round-trip before a transport failure is reported back to the provider.
    tools_allowed : bool
        Whether tools are offered to the provider at all.
    system_message : str | None
        Default system message for runs that do not provide one.
    """

    max_turns: int = Field(default=5, ge=1)
    loop_detection: bool = True
    completion_nudge: bool = False
    provider_timeout: float | None = Field(default=None, gt=0)
    transport_retries: int = Field(default=2, ge=1)
    tools_allowed: bool = True
    system_message: str | None = None


class Directive(BaseModel):
    """A declared request with a typed answer.

    `system` and `user` are jinja2 templates rendered with the variables passed to `Director.ask`;
    the answer text is coerced to `returns`.

    Examples
    --------
    >>> directive = Directive(name="sum", user="What is {{ a }} + {{ b }}?", returns=int)
    >>> directive.render(a=2, b=3)
    (None, 'What is 2 + 3?')
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(min_length=1)
    user: str = Field(min_length=1, description="Template for the user message.")
    system: str | None = Field(default=None, description="Template for the system message.")
    returns: Any = str
    description: str | None = None

    def render(self, **variables: Any) -> tuple[str | None, str]:
        system = None
        if self.system is not None:
            system = JinjaTemplate(self.system, undefined=StrictUndefined).render(**variables)
        user = JinjaTemplate(self.user, undefined=StrictUndefined).render(**variables)
        return system, user


def build_advertisement_message(strategy: ToolUseStrategy, tools: Sequence[ToolSignature]) -> Message | None:
    """Return the message that primes the provider about the tools, if the strategy uses one."""
    return strategy.advertisement(tools)


async def invoke(
    strategy: ToolUseStrategy,
    conversation: Conversation,
    response: Response,
    last_user_message: Message | None,
    invoker: Invoker,
    provider: Provider | None,
    call_history: CallHistory | None = None,
) -> OrchestrationResult:
    """Run a strategy on a received response and apply its result to the conversation.

    The response is appended as an assistant message followed by the emitted messages, except:

    - INTERVENE starts a new thread holding only the emitted messages.
    - REPLACE_AND_COMPLETE appends the emitted message in place of the response.

    Exceptions raised by the strategy propagate and leave the conversation untouched.
    """
    result = await strategy(
        response,
        invoker,
        last_user_message=last_user_message,
        provider=provider,
        call_history=call_history,
    )

    if result.action is ToolResultAction.INTERVENE:
        logger.info("Repeated call detected; starting a new thread")
        conversation.new_thread()
        result.call_history.clear()
    elif result.action is not ToolResultAction.REPLACE_AND_COMPLETE:
        conversation.append(response.as_message())

    conversation.extend(result.messages)
    return result


class Director:
    """Run prompts against a provider with a set of tools.

    Parameters
    ----------
    provider : Provider
        The text-generation service.
    tools : ToolRegistry | Iterable[Callable] | None
        Tools the provider may call; plain functions are wrapped as tools.
    strategy : ToolUseStrategy | None
        How responses are turned into calls, by default `BackAndForth`.
    config : DirectorConfig | None
        Turn budget, retries, and defaults.

    Examples
    --------
    >>> director = Director(provider, tools=[add])  # doctest: +SKIP
    >>> director.run_sync("What is 2 + 3?")  # doctest: +SKIP
    '5'
    """

    def __init__(
        self,
        provider: Provider,
        tools: ToolRegistry | Iterable[CallableWithSignature | Callable] | None = None,
        strategy: ToolUseStrategy | None = None,
        config: DirectorConfig | None = None,
    ):
        self.provider = provider
        self.config = config or DirectorConfig()
        self.registry = tools if isinstance(tools, ToolRegistry) else ToolRegistry(tools or ())
        self.invoker = Invoker(self.registry)
        self.strategy = strategy or BackAndForth(completion_nudge=self.config.completion_nudge)

    @property
    def tools(self) -> list[Any]:
        """The tools sent to the provider for native function calling."""
        if not self.config.tools_allowed:
            return []
        return self.strategy.get_tools(self.registry.tools())

    def new_conversation(self, system: str | None = None) -> Conversation:
        """Start a conversation with the system message and, if the strategy uses one, the tool advertisement."""
        parts = [system or self.config.system_message]
        if self.config.tools_allowed:
            advertisement = build_advertisement_message(self.strategy, self.registry.list_tools())
            if advertisement is not None:
                parts.append(advertisement.content)

        content = "\n\n".join(p for p in parts if p)
        return Conversation(system=SystemMessage(content=content) if content else None)

    async def run(self, prompt: str, system: str | None = None) -> str:
        """Send a prompt and drive the conversation until a final answer.

        Raises
        ------
        TurnBudgetExceeded
            If no final answer is produced within `config.max_turns` provider round-trips.
        """
        conversation = self.new_conversation(system)
        conversation.append(UserMessage(content=prompt))
        return await self.drive(conversation)

    async def drive(self, conversation: Conversation) -> str:
        """Drive an existing conversation until a final answer."""
        call_history = CallHistory()
        last_user_message = conversation.last_user_message()
        last_error = None

        for turn in range(1, self.config.max_turns + 1):
            logger.debug(f"Turn {turn}/{self.config.max_turns}")
            try:
                response = await self._send(conversation)
            except ProviderError as e:
                logger.warning(f"Provider failed on turn {turn}: {e}")
                last_error = str(e)
                conversation.append(SystemMessage(content=f"The previous request failed: {e}. Please try again."))
                continue

            last_user_message = conversation.last_user_message() or last_user_message
            history = call_history if self.config.loop_detection else CallHistory()
            try:
                result = await invoke(
                    self.strategy,
                    conversation,
                    response,
                    last_user_message,
                    self.invoker,
                    self.provider,
                    history,
                )
            except ToolRobotError as e:
                logger.warning(f"Could not complete the response on turn {turn}: {e}")
                last_error = str(e)
                conversation.append(response.as_message())
                conversation.append(SystemMessage(content=f"{e}. Correct the response and try again."))
                continue

            if result.action is ToolResultAction.COMPLETE:
                return response.text or ""
            elif result.action is ToolResultAction.REPLACE_AND_COMPLETE:
                return result.messages[-1].content
            elif result.action is ToolResultAction.RETRY:
                last_error = result.messages[-1].content if result.messages else None

        raise TurnBudgetExceeded(self.config.max_turns, last_error)

    async def _send(self, conversation: Conversation) -> Response:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.transport_retries),
            retry=retry_if_exception_type(ProviderError),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            reraise=True,
        )
        return await retrying(self._send_once, conversation)

    async def _send_once(self, conversation: Conversation) -> Response:
        request = self.provider.send(conversation.all(), self.tools)
        if self.config.provider_timeout is None:
            return await request
        try:
            return await asyncio.wait_for(request, timeout=self.config.provider_timeout)
        except asyncio.TimeoutError as e:
            raise ProviderError(f"No response within {self.config.provider_timeout} seconds") from e

    async def ask(self, directive: Directive, **variables: Any) -> Any:
        """Render a directive, run it, and coerce the answer to `directive.returns`.

        Raises
        ------
        jinja2.UndefinedError
            If a template variable is missing.
        TypeCoercionError
            If the answer cannot be converted to the declared type.
        """
        system, user = directive.render(**variables)
        logger.debug(f"Asking {directive.name}")
        answer = await self.run(user, system=system)
        return coerce_argument(answer.strip(), directive.returns)

    async def run_many(self, prompts: Sequence[str], system: str | None = None) -> list[str]:
        """Run independent prompts concurrently, each with its own conversation and history."""
        return list(await asyncio.gather(*(self.run(prompt, system=system) for prompt in prompts)))

    def run_sync(self, prompt: str, system: str | None = None) -> str:
        """Run a prompt from synchronous code."""
        return synchronize(self.run, prompt, system=system)

"""Strategies that turn an already-received provider response into the next orchestration step.

BackAndForth executes the calls a provider requested, one turn at a time, until the provider answers without
requesting any. FillInTheBlank has the provider write its answer as a template with embedded call expressions,
evaluates them, and returns the filled text in a single pass.

Strategies never talk to the provider themselves; the Director sends requests and applies the returned messages.
"""

from __future__ import annotations

from enum import Enum
import logging
import textwrap
from typing import Any, Sequence

from jinja2 import StrictUndefined, Template as JinjaTemplate
from pydantic import BaseModel, ConfigDict, Field
from typing_extensions import override

from .base import Provider, ToolUseStrategy
from .exceptions import ParseError
from .expression import ARRAY_BUILDERS
from .history import CallHistory
from .registry import Invoker, Recalled, Success
from .template import ResponseTemplate
from .tool import ToolSignature
from ..types_.core import AssistantMessage, FunctionCall, Message, Response, SystemMessage, ToolResultMessage
from ..utilities import stringify

logger = logging.getLogger(__name__)


class ToolResultAction(str, Enum):
    """What the Director should do after a strategy has run."""

    CONTINUE = "continue"  # send the tool results back to the provider
    RETRY = "retry"  # send the corrective messages back to the provider
    INTERVENE = "intervene"  # start a new thread with the corrective messages
    COMPLETE = "complete"  # the response text is the final answer
    REPLACE_AND_COMPLETE = "replace_and_complete"  # the emitted message replaces the response as the final answer


class OrchestrationResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    action: ToolResultAction = ToolResultAction.COMPLETE
    messages: list[Message] = Field(default_factory=list)
    call_history: CallHistory = Field(default_factory=CallHistory)


class BackAndForth(ToolUseStrategy):
    """Execute requested calls in emission order and report results back to the provider.

    Per call:

    - Success: the provider is notified and a tool result message is emitted; the action is CONTINUE.
    - Recalled: the provider is going in circles. A recall guard and an intervention message (the last user
      message plus every call result so far) are emitted, the action is INTERVENE, and remaining calls are skipped.
    - Error: the error is emitted as a corrective system message, the action is RETRY, and remaining calls are
      skipped.

    A response without calls is COMPLETE. The turn budget and thread resets are owned by the caller.

    Parameters
    ----------
    completion_nudge : bool
        When every call in a turn succeeds, also ask the provider to state its final answer.
    """

    recall_message = "You must find the answer in the user message and format it to the required format."
    completion_message = (
        "If you know the final answer after reading the results of the function calls, "
        "respond with ONLY the answer in the required format."
    )

    def __init__(self, completion_nudge: bool = False):
        self.completion_nudge = completion_nudge

    @override
    async def __call__(
        self,
        response: Response,
        invoker: Invoker,
        last_user_message: Message | None = None,
        provider: Provider | None = None,
        call_history: CallHistory | None = None,
    ) -> OrchestrationResult:
        result = OrchestrationResult(call_history=call_history if call_history is not None else CallHistory())
        if not response.calls:
            return result

        for call in response.calls:
            status = await invoker.ainvoke(call, result.call_history)

            if isinstance(status, Success):
                if provider is not None:
                    provider.on_tool_result(call, status.result)
                result.messages.append(ToolResultMessage(content=status.result, name=call.name, tool_call_id=call.id))
                result.action = ToolResultAction.CONTINUE

            elif isinstance(status, Recalled):
                result.messages.append(SystemMessage(content=self.recall_message))
                result.messages.append(self.intervention_message(last_user_message, result.call_history))
                result.action = ToolResultAction.INTERVENE
                break

            else:
                result.messages.append(self.error_message(call, status.exception))
                result.action = ToolResultAction.RETRY
                break

        else:
            if self.completion_nudge:
                result.messages.append(SystemMessage(content=self.completion_message))

        logger.debug(f"{len(response.calls)} calls requested -> {result.action.value}")
        return result

    @staticmethod
    def intervention_message(last_user_message: Message | None, call_history: CallHistory) -> SystemMessage:
        """Restate the request together with every result so far, to break a loop of repeated calls."""
        request = last_user_message.content if last_user_message is not None else ""
        return SystemMessage(
            content=(
                f"{request}\nNote the following may contain the answer: [{call_history.summary()}] "
                "If you see the answer, say it in the desired format."
            ).strip()
        )

    @staticmethod
    def error_message(call: FunctionCall, exception: BaseException) -> SystemMessage:
        return SystemMessage(content=f"The call {call} failed: {exception}. Correct the call or answer directly.")

    @override
    def advertisement(self, tools: Sequence[ToolSignature]) -> Message | None:
        return None

    @override
    def get_tools(self, tools: Sequence[Any]) -> list[Any]:
        return list(tools)


ADVERTISEMENT_TEMPLATE = JinjaTemplate(
    textwrap.dedent(
        """
        Declared functions:
        {% for signature in signatures -%}
        - {{ signature.render() }}{% if signature.description %}: {{ signature.description }}{% endif %}
        {% endfor -%}
        - Array builders: {{ builders | join(", ") }}

        These functions are already declared for you. Do not show their results yourself; write your answer as a
        template and place each call inside braces, e.g. if asked to add b and c and `add` is declared, answer
        [The answer is {add(b, c)}]. Calls may be nested, e.g. [The answer is {add(multiply(a, b), c)}].
        Rules:
        1. If a declared function does what is asked, always call it in the template, even if you know the answer.
        2. Never write array literals; use the most suitable builder, e.g. intArrayOf(1, 2, 3) or listOf("a", "b").
        3. Use positional arguments only; never write named arguments such as add(a=1, b=2).
        4. Wrap every calculation in a declared function instead of writing the expression, e.g. {multiply(11, 71)}.
        5. Never invent functions. If no declared function fits, answer directly without braces.
        """
    ).strip(),
    undefined=StrictUndefined,
)


class FillInTheBlank(ToolUseStrategy):
    """Fill call placeholders in the response text with their results in a single pass.

    Placeholders that fail to parse are left as written and do not affect their siblings.
    An unregistered function, an argument that cannot be coerced, or a tool that raises is terminal for the
    turn: the exception propagates to the caller.
    """

    fallback_message = "Answer to the best of your ability."

    @override
    async def __call__(
        self,
        response: Response,
        invoker: Invoker,
        last_user_message: Message | None = None,
        provider: Provider | None = None,
        call_history: CallHistory | None = None,
    ) -> OrchestrationResult:
        template = ResponseTemplate(response.text or "")

        values: list[str | None] = []
        for expression in template.expressions:
            try:
                values.append(stringify(await invoker.aevaluate(expression)))
            except ParseError as e:
                logger.warning(f"Leaving placeholder {{{expression}}} unfilled: {e}")
                values.append(None)

        return OrchestrationResult(
            action=ToolResultAction.REPLACE_AND_COMPLETE,
            messages=[AssistantMessage(content=template.fill(values))],
            call_history=call_history if call_history is not None else CallHistory(),
        )

    @override
    def advertisement(self, tools: Sequence[ToolSignature]) -> Message:
        if not tools:
            return SystemMessage(content=self.fallback_message)
        return SystemMessage(content=ADVERTISEMENT_TEMPLATE.render(signatures=tools, builders=list(ARRAY_BUILDERS)))

    @override
    def get_tools(self, tools: Sequence[Any]) -> list[Any]:
        # tools are advertised in the system message instead of through native function calling
        return []

"""A Provider for OpenAI-compatible chat-completions clients.

Tools are offered through native function calling. Requested calls come back with JSON arguments, which are
ordered by the tool signature and rendered as raw argument text, so they are coerced exactly like parsed calls.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Sequence

import json_repair
from openai import pydantic_function_tool

from aisuite import Client

from .base import CallableWithSignature, Provider
from .exceptions import ProviderError
from .tool import Parameter, ToolSignature
from ..types_.core import AssistantMessage, FunctionCall, Message, Response, ToolResultMessage
from ..types_.openai_compat import ChatCompletion, ToolCall, convert_response

logger = logging.getLogger(__name__)


def tool_spec(signature: ToolSignature) -> dict[str, Any]:
    """Convert a tool signature to an OpenAI function-calling tool specification."""
    return dict(pydantic_function_tool(signature.pydantic_model(), name=signature.name))


def _render(value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return str(value)


def _ordered(signature: ToolSignature) -> list[Parameter]:
    # mirrors positional binding: keyword-only parameters are only reachable when there is no vararg
    if signature.vararg is not None:
        return [p for p in signature.parameters if p.kind == "positional"]
    return [p for p in signature.parameters if p.kind != "vararg"]


def arguments_to_args(arguments: str | None, signature: ToolSignature | None) -> tuple[str, ...]:
    """Order the JSON arguments of a native call by the signature and render each as raw argument text.

    Omitted optional parameters before a supplied one are filled with their defaults; trailing ones are dropped.
    Without a signature, arguments keep the order in which they were sent.
    """
    parsed = json_repair.loads(arguments) if arguments else {}
    if not isinstance(parsed, dict):
        return (_render(parsed),)
    if signature is None:
        return tuple(_render(v) for v in parsed.values())

    params = _ordered(signature)
    vararg = signature.vararg
    has_vararg = vararg is not None and vararg.name in parsed
    supplied = [i for i, p in enumerate(params) if p.name in parsed]
    end = len(params) if has_vararg else (supplied[-1] + 1 if supplied else 0)

    args = []
    for param in params[:end]:
        if param.name in parsed:
            args.append(_render(parsed[param.name]))
        elif param.required:
            # leave the gap to arity validation
            return tuple(args)
        else:
            args.append(_render(param.default))

    if has_vararg:
        args.append(_render(parsed[vararg.name]))
    return tuple(args)


def args_to_arguments(call: FunctionCall, signature: ToolSignature | None) -> str:
    """Render a call's raw arguments as a JSON object keyed by parameter name."""
    values = []
    for raw in call.args:
        try:
            values.append(json.loads(raw))
        except ValueError:
            values.append(raw)

    if signature is None:
        return json.dumps({"args": values})

    params = _ordered(signature)
    named: dict[str, Any] = {p.name: v for p, v in zip(params, values)}
    rest = values[len(params) :]
    if signature.vararg is not None and rest:
        named[signature.vararg.name] = rest[0] if len(rest) == 1 and isinstance(rest[0], list) else rest
    return json.dumps(named)


class ChatCompletionsProvider(Provider):
    """Talk to a chat-completions endpoint through an aisuite (or any OpenAI-compatible) client.

    Parameters
    ----------
    client : Client
        OpenAI-compatible API client.
    model : str
        Model identifier (e.g. 'openai:gpt-4o').
    request_params : dict[str, Any] | None, optional
        Additional API parameters, by default None.
    """

    def __init__(self, client: Client, model: str, request_params: dict[str, Any] | None = None):
        self.client = client
        self.model = model
        self.request_params = request_params or {}

    async def send(self, messages: Sequence[Message], tools: Sequence[CallableWithSignature]) -> Response:
        signatures = {t.signature.name: t.signature for t in tools}
        params = dict(self.request_params)
        if signatures:
            params["tools"] = [tool_spec(s) for s in signatures.values()]

        try:
            completion = await asyncio.to_thread(
                self.client.chat.completions.create,
                model=self.model,
                messages=self.to_chat_messages(messages, signatures),
                **params,
            )
        except Exception as e:
            raise ProviderError(f"{self.model} request failed: {e}") from e

        converted = convert_response(completion)
        if converted.usage is not None:
            logger.debug(f"{self.model} used {converted.usage.total_tokens} tokens")
        return self.to_response(converted, signatures)

    def on_tool_result(self, call: FunctionCall, result: str) -> None:
        logger.debug(f"{call} -> {result}")

    @staticmethod
    def to_chat_messages(
        messages: Sequence[Message], signatures: dict[str, ToolSignature] | None = None
    ) -> list[dict[str, Any]]:
        """Render messages as a chat-completions messages array.

        Native calls that never received a tool result (e.g. ones skipped after an earlier call failed) are
        dropped from the assistant message, since the API rejects unanswered tool calls.
        """
        signatures = signatures or {}
        answered = {m.tool_call_id for m in messages if isinstance(m, ToolResultMessage) and m.tool_call_id}

        rendered = []
        for message in messages:
            if isinstance(message, AssistantMessage):
                entry: dict[str, Any] = {"role": "assistant", "content": message.content or None}
                tool_calls = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": call.name,
                            "arguments": args_to_arguments(call, signatures.get(call.name)),
                        },
                    }
                    for call in message.calls
                    if call.id in answered
                ]
                if tool_calls:
                    entry["tool_calls"] = tool_calls
                rendered.append(entry)
            elif isinstance(message, ToolResultMessage):
                if message.tool_call_id is None:
                    # a result that was not requested through native function calling
                    rendered.append({"role": "user", "content": f"{message.name} returned: {message.content}"})
                else:
                    rendered.append({"role": "tool", "tool_call_id": message.tool_call_id, "content": message.content})
            else:
                rendered.append({"role": message.role, "content": message.content})
        return rendered

    @staticmethod
    def to_response(completion: ChatCompletion, signatures: dict[str, ToolSignature] | None = None) -> Response:
        message = completion.message
        if message is None:
            raise ProviderError("Response contained no choices")
        signatures = signatures or {}

        def to_call(tool_call: ToolCall) -> FunctionCall:
            name = tool_call.function.name
            return FunctionCall(
                name=name,
                args=arguments_to_args(tool_call.function.arguments, signatures.get(name)),
                id=tool_call.id,
            )

        return Response(text=message.text, calls=[to_call(tc) for tc in message.tool_calls or []])

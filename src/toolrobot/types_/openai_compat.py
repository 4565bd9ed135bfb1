"""Local models for chat-completion responses.

Clients disagree on their response classes (the openai SDK returns its own pydantic models, aisuite wraps
provider responses in plain objects, some compatible servers hand back dicts). Everything is converted to the
models below before the provider adapter reads it.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import BaseModel

from aisuite.framework import ChatCompletionResponse as AISuiteChatCompletion
from openai.types.chat import ChatCompletion as OpenAIChatCompletion

logger = logging.getLogger(__name__)

FinishReason = Literal["stop", "length", "tool_calls", "content_filter", "function_call"]


class ToolCallFunction(BaseModel, extra="ignore"):
    name: str
    arguments: str | None = None


class ToolCall(BaseModel, extra="ignore"):
    id: str | None = None
    function: ToolCallFunction
    type: Literal["function"] = "function"


class CompletionMessage(BaseModel, extra="ignore"):
    content: str | None = None
    tool_calls: list[ToolCall] | None = None
    refusal: str | None = None

    @property
    def text(self) -> str | None:
        """The answer text; a refusal stands in for missing content."""
        return self.content if self.content is not None else self.refusal


class CompletionChoice(BaseModel, extra="ignore"):
    finish_reason: FinishReason | None = None
    message: CompletionMessage


class CompletionUsage(BaseModel, extra="ignore"):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletion(BaseModel, extra="ignore"):
    id: int | str | None = None
    model: str | None = None
    choices: list[CompletionChoice]
    usage: CompletionUsage | None = None

    @property
    def message(self) -> CompletionMessage | None:
        """The message of the first choice, which is the only one requested."""
        return self.choices[0].message if self.choices else None


def _message_fields(message: Any) -> dict[str, Any]:
    dumped = message.model_dump() if isinstance(message, BaseModel) else dict(vars(message))
    dumped.pop("role", None)
    return dumped


def convert_response(response: OpenAIChatCompletion | AISuiteChatCompletion | dict[str, Any]) -> ChatCompletion:
    """Unify the response objects of OpenAI-compatible clients."""
    if isinstance(response, OpenAIChatCompletion):
        return ChatCompletion.model_validate(response.model_dump())
    if isinstance(response, dict):
        return ChatCompletion.model_validate(response)

    choices = [
        CompletionChoice(
            message=CompletionMessage.model_validate(_message_fields(choice.message)),
            finish_reason=getattr(choice, "finish_reason", None),
        )
        for choice in response.choices
    ]
    completion = ChatCompletion(
        id=getattr(response, "id", None),
        model=getattr(response, "model", None),
        choices=choices,
    )
    logger.debug(f"Converted {type(response).__name__} with {len(choices)} choices")
    return completion

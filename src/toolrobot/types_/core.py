from __future__ import annotations

from typing import Any, Literal, Self

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["assistant", "system", "tool", "user"]


class FunctionCall(BaseModel):
    """A parsed call: the function name and its raw, untyped argument substrings."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="The name of the function to call.", min_length=1)
    args: tuple[str, ...] = Field(default=(), description="Raw argument substrings in positional order.")
    id: str | None = Field(default=None, description="Provider correlation id for native tool calls.")

    def __str__(self) -> str:
        return f"{self.name}({', '.join(self.args)})"


class Message(BaseModel):
    role: Role = Field(description="The role of the message author.", min_length=1)
    content: str = Field(description="The contents of the message.", min_length=1)


# These messages are for composing Conversations (i.e., inputs to the LLM)
class SystemMessage(Message):
    role: Literal["system"] = "system"


class UserMessage(Message):
    role: Literal["user"] = "user"


class AssistantMessage(Message):
    role: Literal["assistant"] = "assistant"
    content: str = Field(default="", description="The text of the response.")
    calls: list[FunctionCall] = Field(default_factory=list, description="Calls requested in this response.")


class ToolResultMessage(Message):
    role: Literal["tool"] = "tool"
    content: str = Field(description="The result of the tool call.")
    name: str = Field(description="The name of the tool that produced this result.")
    tool_call_id: str | None = Field(default=None, description="The id of the call that requested this response")


class Response(BaseModel):
    """A provider response that has already been received."""

    text: str | None = None
    calls: list[FunctionCall] = Field(default_factory=list)

    def as_message(self) -> AssistantMessage:
        return AssistantMessage(content=self.text or "", calls=self.calls)


class Conversation(BaseModel):
    """An ordered, resettable message log for one logical dialogue.

    Messages are only ever appended; `new_thread` clears them but keeps the `system` message,
    which is held apart from the log and always rendered first.

    Examples
    --------
    >>> conversation = Conversation(system=SystemMessage(content="Be brief."))
    >>> _ = conversation.append(UserMessage(content="What is 2 + 3?"))
    >>> [m.role for m in conversation.all()]
    ['system', 'user']
    """

    system: SystemMessage | None = Field(default=None, description="Configuration message retained across threads.")
    messages: list[Message] = Field(default_factory=list, description="The messages of the current thread.")

    def append(self, message: Message) -> Self:
        self.messages.append(message)
        return self

    def extend(self, messages: list[Message]) -> Self:
        self.messages.extend(messages)
        return self

    def all(self) -> list[Message]:
        """Return the system message (if any) followed by the thread in chronological order."""
        if self.system is None:
            return list(self.messages)
        return [self.system, *self.messages]

    def new_thread(self) -> Self:
        """Clear the thread; the system message is kept."""
        self.messages = []
        return self

    def last_user_message(self) -> UserMessage | None:
        return next((m for m in reversed(self.messages) if m.role == "user"), None)

    def to_messages(self) -> list[dict[str, Any]]:
        """Render the conversation as a messages array for chat APIs."""
        return [m.model_dump(exclude_none=True) for m in self.all()]

    def __len__(self) -> int:
        return len(self.messages)


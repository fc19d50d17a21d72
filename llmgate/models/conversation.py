import json
import uuid
from collections.abc import Iterable
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:24]}"


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ToolCallRequest(BaseModel):
    """A model-issued request to invoke one tool."""

    model_config = ConfigDict(frozen=True)

    id: Annotated[str, Field(default_factory=_new_call_id, description="Call id used to pair the result")]
    name: Annotated[str, Field(description="Name of the requested tool")]
    arguments: Annotated[
        str | dict[str, Any],
        Field(default="{}", description="Raw argument document, JSON text or an already-parsed mapping"),
    ]

    @property
    def arguments_json(self) -> str:
        if isinstance(self.arguments, str):
            return self.arguments
        return json.dumps(self.arguments, ensure_ascii=False)


class ToolCallResult(BaseModel):
    """Outcome of one tool call, re-inserted into the conversation."""

    model_config = ConfigDict(frozen=True)

    call_id: Annotated[str, Field(description="Id of the ToolCallRequest this answers")]
    name: Annotated[str, Field(description="Name of the tool that was called")]
    output: Annotated[Any, Field(default=None, description="JSON-compatible tool output")]
    error: Annotated[str | None, Field(default=None, description="Failure description, if the call failed")]

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def content(self) -> str:
        """Text sent back to the model for this result."""
        if self.error is not None:
            return self.error
        if isinstance(self.output, str):
            return self.output
        return json.dumps(self.output, ensure_ascii=False)

    @classmethod
    def success(cls, request: ToolCallRequest, output: Any) -> "ToolCallResult":
        return cls(call_id=request.id, name=request.name, output=output)

    @classmethod
    def failure(cls, request: ToolCallRequest, description: str) -> "ToolCallResult":
        return cls(call_id=request.id, name=request.name, error=description)


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Annotated[str, Field(default_factory=lambda: str(uuid.uuid4()), description="The unique identifier for the message")]
    role: Annotated[Role, Field(description="The role of the message")]
    content: Annotated[str | None, Field(default=None, description="The text content of the message")]
    tool_calls: Annotated[
        tuple[ToolCallRequest, ...], Field(default=(), description="Tool calls requested by an assistant message")
    ]
    tool_result: Annotated[
        ToolCallResult | None, Field(default=None, description="Result carried by a tool message")
    ]

    @model_validator(mode="after")
    def _check_tool_fields(self) -> "Message":
        if self.tool_calls and self.role is not Role.ASSISTANT:
            raise ValueError("only assistant messages may request tool calls")
        if self.tool_result is not None and self.role is not Role.TOOL:
            raise ValueError("only tool messages may carry a tool result")
        if self.role is Role.TOOL and self.tool_result is None:
            raise ValueError("tool messages must carry a tool result")
        return self

    def to_dict(self) -> dict[str, Any]:
        """Render the message in the chat-completions wire layout."""
        if self.tool_result is not None:
            return {
                "role": Role.TOOL.value,
                "tool_call_id": self.tool_result.call_id,
                "content": self.tool_result.content,
            }
        data: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments_json},
                }
                for call in self.tool_calls
            ]
        return data


class Conversation(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Annotated[str, Field(default_factory=lambda: str(uuid.uuid4()), description="The unique identifier for the conversation")]
    messages: Annotated[tuple[Message, ...], Field(default=(), description="The messages in the conversation")]

    @property
    def messages_dict(self) -> list[dict[str, Any]]:
        return [message.to_dict() for message in self.messages]

    @property
    def last(self) -> Message | None:
        return self.messages[-1] if self.messages else None

    def since(self, index: int) -> tuple[Message, ...]:
        """Messages appended after the first ``index`` messages."""
        return self.messages[index:]

    def __len__(self) -> int:
        return len(self.messages)


class ConversationBuilder:
    """Append-only builder for a Conversation.

    Messages can only be added at the end; nothing already pushed is ever
    replaced, so call/result pairing stays in the order the model saw it.
    """

    def __init__(self, conversation_id: str | None = None):
        self._id = conversation_id or str(uuid.uuid4())
        self._messages: list[Message] = []

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "ConversationBuilder":
        builder = cls(conversation_id=conversation.id)
        builder._messages.extend(conversation.messages)
        return builder

    def push(self, message: Message) -> "ConversationBuilder":
        self._messages.append(message)
        return self

    def push_system(self, content: str) -> "ConversationBuilder":
        return self.push(Message(role=Role.SYSTEM, content=content))

    def push_user(self, content: str) -> "ConversationBuilder":
        return self.push(Message(role=Role.USER, content=content))

    def push_assistant(
        self, content: str | None = None, tool_calls: tuple[ToolCallRequest, ...] | list[ToolCallRequest] = ()
    ) -> "ConversationBuilder":
        return self.push(Message(role=Role.ASSISTANT, content=content, tool_calls=tuple(tool_calls)))

    def push_tool_result(self, result: ToolCallResult) -> "ConversationBuilder":
        return self.push(Message(role=Role.TOOL, tool_result=result))

    def extend(self, messages: Iterable[Message]) -> "ConversationBuilder":
        for message in messages:
            self.push(message)
        return self

    def build(self) -> Conversation:
        return Conversation(id=self._id, messages=tuple(self._messages))

    def __len__(self) -> int:
        return len(self._messages)

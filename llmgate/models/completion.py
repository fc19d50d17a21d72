from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from llmgate.models.conversation import ToolCallRequest, ToolCallResult


class Usage(BaseModel):
    """Token usage reported by a backend."""

    prompt: Annotated[int, Field(default=0, ge=0)]
    completion: Annotated[int, Field(default=0, ge=0)]
    total: Annotated[int, Field(default=0, ge=0)]

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            prompt=self.prompt + other.prompt,
            completion=self.completion + other.completion,
            total=self.total + other.total,
        )


class RequestExtensions(BaseModel):
    """Optional per-request extras forwarded to the backend."""

    model_config = ConfigDict(frozen=True)

    headers: Annotated[dict[str, str], Field(default_factory=dict, description="Extra HTTP headers")]
    user_id: Annotated[str | None, Field(default=None, description="End-user id for abuse monitoring")]
    metadata: Annotated[dict[str, str], Field(default_factory=dict, description="Free-form request metadata")]
    max_tokens: Annotated[int | None, Field(default=None, gt=0, description="Cap on generated tokens per response")]
    system_prompt: Annotated[
        str | None, Field(default=None, description="System instructions sent ahead of the conversation")
    ]

    def with_system_prompt(self, text: str) -> "RequestExtensions":
        """Copy with ``text`` appended to the system prompt."""
        prompt = "\n\n".join(part for part in (self.system_prompt, text) if part)
        return self.model_copy(update={"system_prompt": prompt})


class Completion(BaseModel):
    """A complete (non-streamed) backend response."""

    content: Annotated[str | None, Field(default=None, description="Assistant text")]
    tool_calls: Annotated[list[ToolCallRequest], Field(default_factory=list, description="Requested tool calls")]
    finish_reason: Annotated[str | None, Field(default=None)]
    usage: Annotated[Usage | None, Field(default=None)]

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


class CompletionChunk(BaseModel):
    """One increment of a streamed backend response.

    Tool calls only appear once fully assembled; argument fragments are never
    exposed.
    """

    content: Annotated[str | None, Field(default=None, description="Text delta")]
    tool_calls: Annotated[list[ToolCallRequest], Field(default_factory=list, description="Completed tool calls")]
    finish_reason: Annotated[str | None, Field(default=None)]
    usage: Annotated[Usage | None, Field(default=None)]


StreamPartKind = Literal["content", "tool_call", "tool_result", "usage", "done"]


class StreamPart(BaseModel):
    """An item yielded by a streaming exchange.

    Use ``kind`` to discriminate; payload fields are populated depending on it.
    """

    kind: StreamPartKind
    content: str | None = None
    tool_call: ToolCallRequest | None = None
    tool_result: ToolCallResult | None = None
    usage: Usage | None = None
    round_trip: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True, mode="json")

"""Process status events for LLMGate exchanges.

The orchestrator emits these while driving an exchange so callers can observe
progress (provider calls, tool dispatch, completion, failure) through an
optional ``on_status`` callback.
"""

import inspect
from collections.abc import Awaitable, Callable
from typing import Literal

from pydantic import BaseModel, Field

ProcessEventKind = Literal[
    "llm_call_start",
    "llm_call_end",
    "tool_call_start",
    "tool_call_end",
    "complete",
    "failed",
]


class ProcessEvent(BaseModel):
    """A status event emitted during an exchange.

    Use the `kind` field to discriminate; optional payload fields are
    populated depending on the event kind.
    """

    kind: ProcessEventKind = Field(description="Event type discriminator")
    conversation_id: str | None = Field(default=None, description="Conversation being driven")
    timestamp: float | None = Field(default=None, description="Event time (time.time())")

    # llm_call_start / llm_call_end
    round_trip: int | None = Field(default=None, description="Round trip number (1-based)")
    provider: str | None = Field(default=None, description="Provider name")
    message_count: int | None = Field(default=None, description="Number of messages in the request")
    has_tool_calls: bool | None = Field(default=None, description="Whether response requested tool calls")
    token_usage: dict[str, int] | None = Field(default=None, description="Token usage dict")

    # tool_call_start / tool_call_end
    tool_name: str | None = Field(default=None, description="Name of the tool")
    call_id: str | None = Field(default=None, description="Id of the tool call")
    success: bool | None = Field(default=None, description="Whether the tool call succeeded")
    duration_seconds: float | None = Field(default=None, description="Tool execution duration")
    error: str | None = Field(default=None, description="Error description if the call or exchange failed")

    # complete
    tool_calls_made: int | None = Field(default=None, description="Total tool calls made")
    response_length: int | None = Field(default=None, description="Final response length")


StatusCallback = Callable[[ProcessEvent], None] | Callable[[ProcessEvent], Awaitable[None]]


async def emit_status(event: ProcessEvent, on_status: StatusCallback | None) -> None:
    """Invoke on_status with the event if set; supports sync and async callbacks.

    No-op when on_status is None. Exceptions from the callback are not caught.
    """
    if on_status is None:
        return
    result = on_status(event)
    if inspect.iscoroutine(result):
        await result

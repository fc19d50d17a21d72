"""Completion orchestration: the tool-calling loop of one exchange.

An exchange moves through these states until it ends:

    Sending -> AwaitingResponse -> FinalAnswer
                                -> ToolCallsPending -> Sending ...
                                -> Failed

Each response that asks for tools is one round trip. The tool calls of a
round trip run concurrently; their results are appended in the order the model
requested them, then the conversation is sent again. A tool failure never ends
the exchange: it is fed back to the model as an error result. The exchange
fails only on a provider error or when the round-trip cap is exceeded.

Features:
    - ``run`` for a complete ExchangeResult, ``stream`` for incremental parts
    - Concurrent tool dispatch with optional per-call timeout
    - Retry with exponential backoff for transient provider errors
    - Status events through an optional ``on_status`` callback
    - Tracing spans per tool call
    - Chained tool calling through ``CompletionOrchestrator.chained``

Example:
    >>> orchestrator = CompletionOrchestrator(create_provider(), ToolSet().add_tool(get_weather))
    >>> conversation = ConversationBuilder().push_user("Weather in Paris?").build()
    >>> result = await orchestrator.run(conversation)
    >>> print(result.final_response)
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from typing import Annotated, Any

from pydantic import BaseModel, Field
from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception, stop_after_attempt, wait_exponential

from llmgate.config import get_settings
from llmgate.events import ProcessEvent, StatusCallback, emit_status
from llmgate.exceptions import GenericProviderError, ToolCallError, ToolExecutionError, ToolLoopExceededError
from llmgate.logging_config import get_logger
from llmgate.models.completion import Completion, CompletionChunk, RequestExtensions, StreamPart, Usage
from llmgate.models.conversation import (
    Conversation,
    ConversationBuilder,
    Message,
    ToolCallRequest,
    ToolCallResult,
)
from llmgate.providers.base import ProviderClient
from llmgate.telemetry import set_span_attributes, trace_tool_call
from llmgate.tools.chained import ChainedTool
from llmgate.tools.registry import ToolSet

logger = get_logger(__name__)


def should_retry_error(error: BaseException) -> bool:
    """Only Generic provider errors marked transient are retried.

    Context-window overflows are never retried: the caller decides whether to
    truncate the conversation.
    """
    return isinstance(error, GenericProviderError) and error.retryable


class ExchangeResult(BaseModel):
    """Outcome of one completed exchange."""

    final_response: Annotated[str, Field(description="Text of the final assistant message")]
    conversation: Annotated[Conversation, Field(description="Full conversation including the final answer")]
    new_messages: Annotated[
        list[Message], Field(description="Messages appended during the exchange (assistant, tool, final)")
    ]
    tool_calls_made: Annotated[int, Field(description="Number of tool calls dispatched")]
    round_trips: Annotated[int, Field(description="Number of responses that requested tools")]
    tool_execution_history: Annotated[
        list[dict[str, Any]], Field(description="Per-call record of tool name, arguments and result")
    ]
    tokens_used: Annotated[
        dict[str, int] | None,
        Field(default=None, description="Token usage with 'prompt', 'completion', and 'total' keys"),
    ]


class CompletionOrchestrator:
    """Drives the send / tool-call / resend loop for one provider and ToolSet."""

    def __init__(
        self,
        provider: ProviderClient,
        toolset: ToolSet | None = None,
        max_round_trips: int | None = None,
        tool_timeout: float | None = None,
        retry_max_attempts: int | None = None,
        retry_min_wait: float | None = None,
        retry_max_wait: float | None = None,
        retry_multiplier: float | None = None,
        system_prompt: str | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            provider: Backend every request of the exchange goes to
            toolset: Tools offered to the model (None offers none)
            max_round_trips: Cap on tool round trips (defaults to settings.max_tool_iterations)
            tool_timeout: Per-call tool timeout in seconds (defaults to settings.tool_timeout)
            retry_max_attempts: Provider attempts for transient errors (defaults to settings)
            retry_min_wait: Minimum backoff in seconds (defaults to settings)
            retry_max_wait: Maximum backoff in seconds (defaults to settings)
            retry_multiplier: Backoff multiplier (defaults to settings)
            system_prompt: Text appended to the system prompt of every request
        """
        current = get_settings()
        self.provider = provider
        self.toolset = toolset or ToolSet()
        self.max_round_trips = max_round_trips if max_round_trips is not None else current.max_tool_iterations
        self.tool_timeout = tool_timeout if tool_timeout is not None else current.tool_timeout
        self.retry_max_attempts = retry_max_attempts or current.retry_max_attempts
        self.retry_min_wait = retry_min_wait if retry_min_wait is not None else current.retry_min_wait
        self.retry_max_wait = retry_max_wait if retry_max_wait is not None else current.retry_max_wait
        self.retry_multiplier = retry_multiplier if retry_multiplier is not None else current.retry_multiplier
        self.system_prompt = system_prompt

        if self.max_round_trips < 0:
            raise ValueError("max_round_trips must not be negative")

    @classmethod
    def chained(
        cls,
        provider: ProviderClient,
        toolset: ToolSet,
        generator: ProviderClient | None = None,
        **kwargs: Any,
    ) -> "CompletionOrchestrator":
        """Orchestrator for chained tool calling.

        ``provider`` is offered only ``chained_tool`` and a catalogue of
        ``toolset`` in its system prompt; ``generator`` (``provider`` when
        omitted) writes each real call from the chained call's instructions.
        The conversation records the chained calls and the real tools' output.
        """
        chained = ChainedTool(toolset, generator or provider)
        return cls(provider, ToolSet([chained]), system_prompt=chained.catalogue(), **kwargs)

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception(should_retry_error),
            stop=stop_after_attempt(self.retry_max_attempts),
            wait=wait_exponential(
                multiplier=self.retry_multiplier, min=self.retry_min_wait, max=self.retry_max_wait
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def _send(
        self, conversation: Conversation, extensions: RequestExtensions | None, stream: bool
    ) -> Completion | AsyncIterator[CompletionChunk]:
        tools = self.toolset.descriptors() or None
        if self.system_prompt:
            extensions = (extensions or RequestExtensions()).with_system_prompt(self.system_prompt)
        async for attempt in self._retrying():
            with attempt:
                return await self.provider.send(conversation, tools, extensions, stream=stream)

    async def _dispatch_one(
        self,
        request: ToolCallRequest,
        context: Any,
        round_trip: int,
        conversation_id: str,
        on_status: StatusCallback | None,
    ) -> ToolCallResult:
        """Dispatch a single call, turning any ToolCallError into an error result."""
        await emit_status(
            ProcessEvent(
                kind="tool_call_start",
                conversation_id=conversation_id,
                timestamp=time.time(),
                round_trip=round_trip,
                tool_name=request.name,
                call_id=request.id,
            ),
            on_status,
        )
        start_time = time.time()
        with trace_tool_call(request.name, request.id, **{"llm.round_trip": round_trip}) as span:
            try:
                dispatch = self.toolset.dispatch(request, context)
                if self.tool_timeout:
                    try:
                        result = await asyncio.wait_for(dispatch, timeout=self.tool_timeout)
                    except TimeoutError as e:
                        raise ToolExecutionError(request.name, f"timed out after {self.tool_timeout}s") from e
                else:
                    result = await dispatch
            except ToolCallError as e:
                logger.warning(f"Tool call {request.id} ({request.name}) failed: {e.description}")
                result = ToolCallResult.failure(request, e.description)

            elapsed = time.time() - start_time
            set_span_attributes(span, **{"tool.success": not result.is_error, "tool.duration": elapsed})
            if result.is_error:
                set_span_attributes(span, **{"tool.error": result.error})

        logger.info(f"Tool {request.name} finished in {elapsed:.3f}s: success={not result.is_error}")
        await emit_status(
            ProcessEvent(
                kind="tool_call_end",
                conversation_id=conversation_id,
                timestamp=time.time(),
                round_trip=round_trip,
                tool_name=request.name,
                call_id=request.id,
                success=not result.is_error,
                duration_seconds=elapsed,
                error=result.error,
            ),
            on_status,
        )
        return result

    async def _dispatch_all(
        self,
        requests: list[ToolCallRequest],
        context: Any,
        round_trip: int,
        conversation_id: str,
        on_status: StatusCallback | None,
    ) -> list[ToolCallResult]:
        # gather keeps results in request order and cancels siblings on cancellation
        return list(
            await asyncio.gather(
                *(self._dispatch_one(request, context, round_trip, conversation_id, on_status) for request in requests)
            )
        )

    def _check_round_trip_cap(self, round_trips: int, tool_calls_made: int) -> None:
        if round_trips >= self.max_round_trips:
            logger.warning(
                f"Tool round-trip cap reached: max_round_trips={self.max_round_trips}, "
                f"tool_calls_made={tool_calls_made}"
            )
            raise ToolLoopExceededError(self.max_round_trips, tool_calls_made)

    @staticmethod
    def _history_entries(requests: list[ToolCallRequest], results: list[ToolCallResult]) -> list[dict[str, Any]]:
        return [
            {
                "tool_name": request.name,
                "call_id": request.id,
                "arguments": request.arguments,
                "result": result.content,
                "error": result.is_error,
            }
            for request, result in zip(requests, results, strict=True)
        ]

    async def _fail(self, conversation_id: str, round_trip: int, error: BaseException, on_status) -> None:
        await emit_status(
            ProcessEvent(
                kind="failed",
                conversation_id=conversation_id,
                timestamp=time.time(),
                round_trip=round_trip,
                error=f"{type(error).__name__}: {error}",
            ),
            on_status,
        )

    async def run(
        self,
        conversation: Conversation,
        context: Any = None,
        extensions: RequestExtensions | None = None,
        on_status: StatusCallback | None = None,
    ) -> ExchangeResult:
        """Drive an exchange to its final answer.

        Args:
            conversation: Conversation so far; it is not modified
            context: Opaque value handed to every tool invocation
            extensions: Optional headers and metadata for every request
            on_status: Optional callback receiving ProcessEvent updates

        Returns:
            ExchangeResult: Final answer, extended conversation and tool history

        Raises:
            ContextWindowExceededError: The conversation no longer fits the model
            GenericProviderError: The provider failed (after retries when transient)
            ToolLoopExceededError: The model kept requesting tools past the cap
        """
        builder = ConversationBuilder.from_conversation(conversation)
        start_index = len(conversation)
        usage = Usage()
        saw_usage = False
        history: list[dict[str, Any]] = []
        tool_calls_made = 0
        round_trips = 0

        logger.debug(
            f"Starting exchange: conversation_id={conversation.id}, provider={self.provider.name}, "
            f"tools={len(self.toolset)}, max_round_trips={self.max_round_trips}"
        )

        try:
            while True:
                current = builder.build()
                call_number = round_trips + 1
                await emit_status(
                    ProcessEvent(
                        kind="llm_call_start",
                        conversation_id=conversation.id,
                        timestamp=time.time(),
                        round_trip=call_number,
                        provider=self.provider.name,
                        message_count=len(current),
                    ),
                    on_status,
                )
                completion = await self._send(current, extensions, stream=False)
                if completion.usage is not None:
                    usage += completion.usage
                    saw_usage = True
                await emit_status(
                    ProcessEvent(
                        kind="llm_call_end",
                        conversation_id=conversation.id,
                        timestamp=time.time(),
                        round_trip=call_number,
                        provider=self.provider.name,
                        has_tool_calls=completion.has_tool_calls,
                        token_usage=completion.usage.model_dump() if completion.usage else None,
                    ),
                    on_status,
                )

                if not completion.has_tool_calls:
                    builder.push_assistant(completion.content)
                    break

                self._check_round_trip_cap(round_trips, tool_calls_made)
                round_trips += 1
                logger.info(f"Round trip {round_trips}: model requested {len(completion.tool_calls)} tool call(s)")

                builder.push_assistant(completion.content, completion.tool_calls)
                results = await self._dispatch_all(
                    completion.tool_calls, context, round_trips, conversation.id, on_status
                )
                for result in results:
                    builder.push_tool_result(result)
                tool_calls_made += len(results)
                history.extend(self._history_entries(completion.tool_calls, results))
        except Exception as e:
            await self._fail(conversation.id, round_trips + 1, e, on_status)
            raise

        final = builder.build()
        final_response = completion.content or ""
        await emit_status(
            ProcessEvent(
                kind="complete",
                conversation_id=conversation.id,
                timestamp=time.time(),
                tool_calls_made=tool_calls_made,
                response_length=len(final_response),
            ),
            on_status,
        )
        logger.info(
            f"Exchange completed: conversation_id={conversation.id}, round_trips={round_trips}, "
            f"tool_calls_made={tool_calls_made}"
        )
        return ExchangeResult(
            final_response=final_response,
            conversation=final,
            new_messages=list(final.since(start_index)),
            tool_calls_made=tool_calls_made,
            round_trips=round_trips,
            tool_execution_history=history,
            tokens_used=usage.model_dump() if saw_usage else None,
        )

    async def stream(
        self,
        conversation: Conversation,
        context: Any = None,
        extensions: RequestExtensions | None = None,
        on_status: StatusCallback | None = None,
    ) -> AsyncIterator[StreamPart]:
        """Drive an exchange, yielding parts as they arrive.

        Yields ``content`` deltas, each completed ``tool_call`` and its
        ``tool_result``, ``usage`` reports, and one final ``done`` part whose
        content is the full final answer. Raises the same errors as ``run``.
        """
        builder = ConversationBuilder.from_conversation(conversation)
        tool_calls_made = 0
        round_trips = 0

        try:
            while True:
                call_number = round_trips + 1
                await emit_status(
                    ProcessEvent(
                        kind="llm_call_start",
                        conversation_id=conversation.id,
                        timestamp=time.time(),
                        round_trip=call_number,
                        provider=self.provider.name,
                        message_count=len(builder),
                    ),
                    on_status,
                )
                chunks = await self._send(builder.build(), extensions, stream=True)

                text_parts: list[str] = []
                requests: list[ToolCallRequest] = []
                async for chunk in chunks:
                    if chunk.content:
                        text_parts.append(chunk.content)
                        yield StreamPart(kind="content", content=chunk.content, round_trip=call_number)
                    for request in chunk.tool_calls:
                        requests.append(request)
                        yield StreamPart(kind="tool_call", tool_call=request, round_trip=call_number)
                    if chunk.usage is not None:
                        yield StreamPart(kind="usage", usage=chunk.usage, round_trip=call_number)

                content = "".join(text_parts) or None
                await emit_status(
                    ProcessEvent(
                        kind="llm_call_end",
                        conversation_id=conversation.id,
                        timestamp=time.time(),
                        round_trip=call_number,
                        provider=self.provider.name,
                        has_tool_calls=bool(requests),
                    ),
                    on_status,
                )

                if not requests:
                    builder.push_assistant(content)
                    break

                self._check_round_trip_cap(round_trips, tool_calls_made)
                round_trips += 1
                builder.push_assistant(content, requests)
                results = await self._dispatch_all(requests, context, round_trips, conversation.id, on_status)
                for result in results:
                    builder.push_tool_result(result)
                    yield StreamPart(kind="tool_result", tool_result=result, round_trip=round_trips)
                tool_calls_made += len(results)
        except Exception as e:
            await self._fail(conversation.id, round_trips + 1, e, on_status)
            raise

        final_response = content or ""
        await emit_status(
            ProcessEvent(
                kind="complete",
                conversation_id=conversation.id,
                timestamp=time.time(),
                tool_calls_made=tool_calls_made,
                response_length=len(final_response),
            ),
            on_status,
        )
        yield StreamPart(kind="done", content=final_response, round_trip=round_trips + 1)

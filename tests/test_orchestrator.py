"""Tests for the completion orchestrator (the tool-calling loop)."""

import asyncio

import pytest
from pydantic import BaseModel

from llmgate.exceptions import ContextWindowExceededError, GenericProviderError, ToolLoopExceededError
from llmgate.models.completion import Completion, CompletionChunk, Usage
from llmgate.models.conversation import ConversationBuilder, Role, ToolCallRequest
from llmgate.orchestrator import CompletionOrchestrator, should_retry_error
from llmgate.providers.errors import AnthropicErrorNormalizer
from llmgate.tools import AsyncTool, ToolSet, tool


class DelayInput(BaseModel):
    label: str
    delay: float = 0


class Delayed(AsyncTool):
    """Finishes after ``delay`` seconds; records completion order."""

    name = "delayed"
    description = "Sleep, then echo the label"
    input_model = DelayInput

    def __init__(self):
        self.finished = []

    async def run(self, arguments, context=None):
        await asyncio.sleep(arguments.delay)
        self.finished.append(arguments.label)
        return {"label": arguments.label}


class Sleeper(AsyncTool):
    """Sleeps until cancelled; records which calls saw the cancellation."""

    name = "sleeper"
    description = "Sleep for a long time"
    input_model = DelayInput

    def __init__(self, expected=2):
        self.expected = expected
        self.started = 0
        self.all_started = asyncio.Event()
        self.cancelled = []

    async def run(self, arguments, context=None):
        self.started += 1
        if self.started == self.expected:
            self.all_started.set()
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            self.cancelled.append(arguments.label)
            raise
        return arguments.label


@tool
def search_web(query: str) -> dict:
    """Search the web."""
    return {"results": [f"About {query}"]}


@tool
def get_weather(location: str) -> str:
    """Get the current weather for a location."""
    return f"Sunny in {location}"


@tool
async def slow_lookup(key: str) -> str:
    """Look up a key slowly."""
    await asyncio.sleep(5)
    return key


def tool_turn(*calls, usage=None):
    return Completion(tool_calls=list(calls), finish_reason="tool_calls", usage=usage)


def final(content, usage=None):
    return Completion(content=content, finish_reason="stop", usage=usage)


@pytest.fixture
def conversation():
    return ConversationBuilder(conversation_id="conv-1").push_user("What's the weather in Paris?").build()


def make_orchestrator(provider, toolset=None, **kwargs):
    kwargs.setdefault("retry_min_wait", 0)
    kwargs.setdefault("retry_max_wait", 0)
    return CompletionOrchestrator(provider, toolset, **kwargs)


class TestRun:
    @pytest.mark.asyncio
    async def test_plain_answer(self, scripted_provider, conversation):
        provider = scripted_provider([final("Hello!", usage=Usage(prompt=5, completion=2, total=7))])

        result = await make_orchestrator(provider).run(conversation)

        assert result.final_response == "Hello!"
        assert result.round_trips == 0
        assert result.tool_calls_made == 0
        assert result.tokens_used == {"prompt": 5, "completion": 2, "total": 7}
        assert [m.role for m in result.new_messages] == [Role.ASSISTANT]
        assert len(conversation) == 1

    @pytest.mark.asyncio
    async def test_tool_round_trip(self, scripted_provider, conversation):
        call = ToolCallRequest(id="call_1", name="get_weather", arguments='{"location": "Paris"}')
        provider = scripted_provider(
            [
                tool_turn(call, usage=Usage(prompt=10, completion=3, total=13)),
                final("It is sunny in Paris.", usage=Usage(prompt=20, completion=6, total=26)),
            ]
        )

        result = await make_orchestrator(provider, ToolSet([get_weather])).run(conversation)

        assert result.final_response == "It is sunny in Paris."
        assert result.round_trips == 1
        assert result.tool_calls_made == 1
        assert result.tokens_used == {"prompt": 30, "completion": 9, "total": 39}
        assert result.tool_execution_history == [
            {
                "tool_name": "get_weather",
                "call_id": "call_1",
                "arguments": '{"location": "Paris"}',
                "result": "Sunny in Paris",
                "error": False,
            }
        ]

        second_request = provider.requests[1].messages_dict
        assert second_request[-2]["tool_calls"][0]["id"] == "call_1"
        assert second_request[-1] == {"role": "tool", "tool_call_id": "call_1", "content": "Sunny in Paris"}
        assert provider.tools_offered[0] == ["get_weather"]

    @pytest.mark.asyncio
    async def test_results_appended_in_request_order(self, scripted_provider, conversation):
        delayed = Delayed()
        first = ToolCallRequest(id="call_slow", name="delayed", arguments={"label": "slow", "delay": 0.05})
        second = ToolCallRequest(id="call_fast", name="delayed", arguments={"label": "fast", "delay": 0})
        provider = scripted_provider([tool_turn(first, second), final("done")])

        result = await make_orchestrator(provider, ToolSet([delayed])).run(conversation)

        # The second call finished first, but results follow request order
        assert delayed.finished == ["fast", "slow"]
        tool_messages = [m for m in result.new_messages if m.role is Role.TOOL]
        assert [m.tool_result.call_id for m in tool_messages] == ["call_slow", "call_fast"]

    @pytest.mark.asyncio
    async def test_tool_calls_run_concurrently(self, scripted_provider, conversation):
        calls = [
            ToolCallRequest(name="delayed", arguments={"label": str(i), "delay": 0.2}) for i in range(5)
        ]
        provider = scripted_provider([tool_turn(*calls), final("done")])
        loop = asyncio.get_running_loop()

        start = loop.time()
        await make_orchestrator(provider, ToolSet([Delayed()])).run(conversation)

        assert loop.time() - start < 0.9

    @pytest.mark.asyncio
    async def test_unknown_tool_becomes_error_result(self, scripted_provider, conversation):
        call = ToolCallRequest(id="call_x", name="send_email", arguments="{}")
        provider = scripted_provider([tool_turn(call), final("I cannot send email.")])

        result = await make_orchestrator(provider, ToolSet([get_weather])).run(conversation)

        assert result.final_response == "I cannot send email."
        assert result.tool_execution_history[0]["error"] is True
        fed_back = provider.requests[1].messages_dict[-1]
        assert fed_back == {
            "role": "tool",
            "tool_call_id": "call_x",
            "content": "Tool 'send_email' not found in available tools",
        }

    @pytest.mark.asyncio
    async def test_failing_call_does_not_abort_siblings(self, scripted_provider, conversation):
        search = ToolCallRequest(id="call_search", name="search_web", arguments={"query": "paris weather"})
        email = ToolCallRequest(id="call_email", name="send_email", arguments={"to": "ada@example.com"})
        provider = scripted_provider([tool_turn(search, email), final("Found it, but I cannot send email.")])

        result = await make_orchestrator(provider, ToolSet([search_web])).run(conversation)

        tool_messages = [m for m in result.new_messages if m.role is Role.TOOL]
        assert [m.tool_result.call_id for m in tool_messages] == ["call_search", "call_email"]
        assert [m.tool_result.is_error for m in tool_messages] == [False, True]
        assert tool_messages[0].tool_result.output == {"results": ["About paris weather"]}
        assert tool_messages[1].tool_result.error == "Tool 'send_email' not found in available tools"
        assert result.tool_calls_made == 2
        assert [entry["error"] for entry in result.tool_execution_history] == [False, True]

    @pytest.mark.asyncio
    async def test_cancelling_run_cancels_in_flight_tools(self, scripted_provider, conversation):
        sleeper = Sleeper()
        calls = [ToolCallRequest(name="sleeper", arguments={"label": label}) for label in ("a", "b")]
        provider = scripted_provider([tool_turn(*calls), final("never sent")])

        task = asyncio.create_task(make_orchestrator(provider, ToolSet([sleeper])).run(conversation))
        await asyncio.wait_for(sleeper.all_started.wait(), timeout=2)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert sorted(sleeper.cancelled) == ["a", "b"]
        assert len(provider.requests) == 1

    @pytest.mark.asyncio
    async def test_bad_arguments_become_error_result(self, scripted_provider, conversation):
        call = ToolCallRequest(id="call_b", name="get_weather", arguments='{"city": "Paris"}')
        provider = scripted_provider([tool_turn(call), final("Which location?")])

        result = await make_orchestrator(provider, ToolSet([get_weather])).run(conversation)

        error_result = result.new_messages[1].tool_result
        assert error_result.is_error
        assert "possible model hallucination" in error_result.error

    @pytest.mark.asyncio
    async def test_tool_timeout_becomes_error_result(self, scripted_provider, conversation):
        call = ToolCallRequest(id="call_t", name="slow_lookup", arguments={"key": "k"})
        provider = scripted_provider([tool_turn(call), final("Timed out.")])

        result = await make_orchestrator(provider, ToolSet([slow_lookup]), tool_timeout=0.05).run(conversation)

        assert "timed out" in result.tool_execution_history[0]["result"]

    @pytest.mark.asyncio
    async def test_round_trip_cap(self, scripted_provider, conversation):
        def again():
            return tool_turn(ToolCallRequest(name="get_weather", arguments={"location": "Paris"}))

        provider = scripted_provider([again() for _ in range(10)])

        with pytest.raises(ToolLoopExceededError) as exc_info:
            await make_orchestrator(provider, ToolSet([get_weather]), max_round_trips=3).run(conversation)

        assert exc_info.value.max_round_trips == 3
        assert exc_info.value.tool_calls_made == 3
        assert len(provider.requests) == 4

    @pytest.mark.asyncio
    async def test_round_trip_cap_from_settings(self, scripted_provider, conversation, monkeypatch):
        from llmgate.config import reload_settings

        monkeypatch.setenv("LLMGATE_MAX_TOOL_ITERATIONS", "1")
        reload_settings()
        call = ToolCallRequest(name="get_weather", arguments={"location": "Paris"})
        provider = scripted_provider([tool_turn(call), tool_turn(call)])

        orchestrator = make_orchestrator(provider, ToolSet([get_weather]))
        assert orchestrator.max_round_trips == 1
        with pytest.raises(ToolLoopExceededError):
            await orchestrator.run(conversation)

    @pytest.mark.asyncio
    async def test_context_window_is_not_retried(self, scripted_provider, conversation):
        provider = scripted_provider(
            [Exception("This model's maximum context length is 8192 tokens"), final("unreachable")]
        )

        with pytest.raises(ContextWindowExceededError):
            await make_orchestrator(provider).run(conversation)

        assert len(provider.requests) == 1

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self, scripted_provider, conversation):
        provider = scripted_provider([Exception("429 Too Many Requests"), final("recovered")])

        result = await make_orchestrator(provider, retry_max_attempts=3).run(conversation)

        assert result.final_response == "recovered"
        assert len(provider.requests) == 2

    @pytest.mark.asyncio
    async def test_permanent_errors_are_not_retried(self, scripted_provider, conversation):
        provider = scripted_provider([Exception("invalid api key"), final("unreachable")])

        with pytest.raises(GenericProviderError) as exc_info:
            await make_orchestrator(provider).run(conversation)

        assert not exc_info.value.retryable
        assert len(provider.requests) == 1

    @pytest.mark.asyncio
    async def test_retries_give_up(self, scripted_provider, conversation):
        provider = scripted_provider([Exception("503 service unavailable")] * 3)

        with pytest.raises(GenericProviderError):
            await make_orchestrator(provider, retry_max_attempts=3).run(conversation)

        assert len(provider.requests) == 3

    @pytest.mark.asyncio
    async def test_context_reaches_tools(self, scripted_provider, conversation):
        @tool
        def whoami(context=None) -> str:
            """Name the current user."""
            return context["user"]

        provider = scripted_provider([tool_turn(ToolCallRequest(name="whoami")), final("You are ada.")])

        result = await make_orchestrator(provider, ToolSet([whoami])).run(conversation, context={"user": "ada"})

        assert result.tool_execution_history[0]["result"] == "ada"

    @pytest.mark.asyncio
    async def test_status_events(self, scripted_provider, conversation):
        call = ToolCallRequest(name="get_weather", arguments={"location": "Paris"})
        provider = scripted_provider([tool_turn(call), final("Sunny.")])
        events = []

        await make_orchestrator(provider, ToolSet([get_weather])).run(conversation, on_status=events.append)

        assert [e.kind for e in events] == [
            "llm_call_start",
            "llm_call_end",
            "tool_call_start",
            "tool_call_end",
            "llm_call_start",
            "llm_call_end",
            "complete",
        ]
        assert all(e.conversation_id == "conv-1" for e in events)
        assert events[3].success is True
        assert events[-1].tool_calls_made == 1

    @pytest.mark.asyncio
    async def test_failed_event(self, scripted_provider, conversation):
        provider = scripted_provider([Exception("maximum context length exceeded")])
        events = []

        async def on_status(event):
            events.append(event)

        with pytest.raises(ContextWindowExceededError):
            await make_orchestrator(provider).run(conversation, on_status=on_status)

        assert events[-1].kind == "failed"
        assert "ContextWindowExceededError" in events[-1].error


class TestStream:
    @pytest.mark.asyncio
    async def test_stream_with_tool_round_trip(self, scripted_provider, conversation):
        call = ToolCallRequest(id="call_1", name="get_weather", arguments='{"location": "Paris"}')
        provider = scripted_provider(
            [
                [CompletionChunk(content="Checking. "), CompletionChunk(tool_calls=[call], finish_reason="tool_calls")],
                [
                    CompletionChunk(content="Sunny "),
                    CompletionChunk(content="in Paris."),
                    CompletionChunk(usage=Usage(prompt=1, completion=2, total=3)),
                ],
            ]
        )

        parts = [part async for part in make_orchestrator(provider, ToolSet([get_weather])).stream(conversation)]

        assert [p.kind for p in parts] == ["content", "tool_call", "tool_result", "content", "content", "usage", "done"]
        assert parts[2].tool_result.content == "Sunny in Paris"
        assert parts[-1].content == "Sunny in Paris."

        assistant = provider.requests[1].messages[-2]
        assert assistant.content == "Checking. "
        assert assistant.tool_calls[0].id == "call_1"

    @pytest.mark.asyncio
    async def test_stream_round_trip_cap(self, scripted_provider, conversation):
        call = ToolCallRequest(name="get_weather", arguments={"location": "Paris"})
        provider = scripted_provider([[CompletionChunk(tool_calls=[call])] for _ in range(3)])

        with pytest.raises(ToolLoopExceededError):
            async for _ in make_orchestrator(provider, ToolSet([get_weather]), max_round_trips=1).stream(
                conversation
            ):
                pass

    @pytest.mark.asyncio
    async def test_cancelling_stream_cancels_in_flight_tools(self, scripted_provider, conversation):
        sleeper = Sleeper()
        calls = [ToolCallRequest(name="sleeper", arguments={"label": label}) for label in ("a", "b")]
        provider = scripted_provider([[CompletionChunk(tool_calls=calls, finish_reason="tool_calls")]])
        kinds = []

        async def consume():
            async for part in make_orchestrator(provider, ToolSet([sleeper])).stream(conversation):
                kinds.append(part.kind)

        task = asyncio.create_task(consume())
        await asyncio.wait_for(sleeper.all_started.wait(), timeout=2)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert sorted(sleeper.cancelled) == ["a", "b"]
        assert kinds == ["tool_call", "tool_call"]

    @pytest.mark.asyncio
    async def test_stream_error_is_classified(self, scripted_provider, conversation):
        provider = scripted_provider([[CompletionChunk(content="partial"), Exception("prompt is too long")]])
        provider.normalizer = AnthropicErrorNormalizer()

        with pytest.raises(ContextWindowExceededError):
            async for _ in make_orchestrator(provider).stream(conversation):
                pass


def test_should_retry_error():
    assert should_retry_error(GenericProviderError("overloaded", retryable=True))
    assert not should_retry_error(GenericProviderError("bad request"))
    assert not should_retry_error(ContextWindowExceededError())
    assert not should_retry_error(ValueError("other"))

"""Backends reached through the any-llm SDK.

any-llm speaks the chat-completions message and tool layout for every vendor,
so the translation from a Conversation is shared here. Each vendor subclass
only names its provider, its error normalizer and how request extensions map
onto its parameters.
"""

from collections.abc import AsyncIterator
from typing import Any

from any_llm import acompletion as any_llm_acompletion

from llmgate.config import ProviderConfig
from llmgate.exceptions import GenericProviderError
from llmgate.logging_config import get_logger
from llmgate.models.completion import Completion, CompletionChunk, RequestExtensions, Usage
from llmgate.models.conversation import Conversation, ToolCallRequest
from llmgate.models.tool import ToolDescriptor
from llmgate.providers.base import ProviderClient
from llmgate.providers.errors import AnthropicErrorNormalizer, ErrorNormalizer, OpenAIErrorNormalizer

logger = get_logger(__name__)

TOOL_CALLS_FINISH_REASON = "tool_calls"


def _extract_usage(response: Any) -> Usage | None:
    """Extract token usage from a response or chunk, if it carries any."""
    usage = getattr(response, "usage", None)
    if not usage:
        return None

    def _as_int(value: Any) -> int:
        return int(value) if isinstance(value, (int, float)) else 0

    return Usage(
        prompt=_as_int(getattr(usage, "prompt_tokens", None)),
        completion=_as_int(getattr(usage, "completion_tokens", None)),
        total=_as_int(getattr(usage, "total_tokens", None)),
    )


class _PartialToolCall:
    __slots__ = ("id", "name", "arguments")

    def __init__(self):
        self.id = ""
        self.name = ""
        self.arguments = ""


class ToolCallAccumulator:
    """Assembles streamed tool-call fragments, keyed by their index."""

    def __init__(self):
        self._partials: dict[int, _PartialToolCall] = {}

    def add(self, delta_calls: Any) -> None:
        for call in delta_calls or []:
            function = getattr(call, "function", None)
            if function is None:
                continue
            partial = self._partials.setdefault(getattr(call, "index", 0) or 0, _PartialToolCall())
            if getattr(call, "id", None):
                partial.id = call.id
            if getattr(function, "name", None):
                partial.name += function.name
            if getattr(function, "arguments", None):
                partial.arguments += function.arguments

    def drain(self) -> list[ToolCallRequest]:
        """Return completed calls in index order and reset."""
        calls = []
        for index in sorted(self._partials):
            partial = self._partials[index]
            if not partial.name:
                logger.warning(f"Dropping streamed tool call without a name at index {index}")
                continue
            fields = {"name": partial.name, "arguments": partial.arguments or "{}"}
            if partial.id:
                fields["id"] = partial.id
            calls.append(ToolCallRequest(**fields))
        self._partials = {}
        return calls

    def __bool__(self) -> bool:
        return bool(self._partials)


class AnyLLMProvider(ProviderClient):
    """Shared any-llm request/response translation."""

    normalizer_class: type[ErrorNormalizer]

    def __init__(self, config: ProviderConfig, normalizer: ErrorNormalizer | None = None):
        super().__init__(config, normalizer or self.normalizer_class())

    @property
    def model_id(self) -> str:
        return f"{self.name}:{self.config.model}"

    def apply_extensions(self, kwargs: dict[str, Any], extensions: RequestExtensions) -> None:
        """Map request extensions onto backend parameters."""
        if extensions.headers:
            kwargs["client_args"] = {"default_headers": dict(extensions.headers)}
        if extensions.max_tokens is not None:
            kwargs["max_tokens"] = extensions.max_tokens
        if extensions.system_prompt:
            kwargs["messages"] = [{"role": "system", "content": extensions.system_prompt}, *kwargs["messages"]]

    def build_request(
        self,
        conversation: Conversation,
        tools: list[ToolDescriptor],
        extensions: RequestExtensions | None,
        stream: bool,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model_id,
            "messages": conversation.messages_dict,
            "tools": [descriptor.to_function_tool() for descriptor in tools] or None,
            "stream": stream,
        }
        if self.config.api_key:
            kwargs["api_key"] = self.config.api_key
        if self.config.api_base:
            kwargs["api_base"] = self.config.api_base
        if extensions is not None:
            self.apply_extensions(kwargs, extensions)
        return kwargs

    def parse_completion(self, response: Any) -> Completion:
        choices = getattr(response, "choices", None)
        if not choices:
            raise GenericProviderError("Empty response from LLM provider", provider=self.name)

        choice = choices[0]
        message = choice.message
        tool_calls = [
            ToolCallRequest(id=call.id, name=call.function.name, arguments=call.function.arguments or "{}")
            for call in (getattr(message, "tool_calls", None) or [])
        ]
        return Completion(
            content=getattr(message, "content", None),
            tool_calls=tool_calls,
            finish_reason=getattr(choice, "finish_reason", None),
            usage=_extract_usage(response),
        )

    async def _complete(
        self,
        conversation: Conversation,
        tools: list[ToolDescriptor],
        extensions: RequestExtensions | None,
    ) -> Completion:
        response = await any_llm_acompletion(**self.build_request(conversation, tools, extensions, stream=False))
        return self.parse_completion(response)

    async def _open_stream(
        self,
        conversation: Conversation,
        tools: list[ToolDescriptor],
        extensions: RequestExtensions | None,
    ) -> AsyncIterator[CompletionChunk]:
        response = await any_llm_acompletion(**self.build_request(conversation, tools, extensions, stream=True))
        return self._translate_stream(response)

    async def _translate_stream(self, response: AsyncIterator[Any]) -> AsyncIterator[CompletionChunk]:
        accumulator = ToolCallAccumulator()
        async for part in response:
            usage = _extract_usage(part)
            choices = getattr(part, "choices", None)
            if not choices:
                if usage is not None:
                    yield CompletionChunk(usage=usage)
                continue

            choice = choices[0]
            delta = getattr(choice, "delta", None)
            content = getattr(delta, "content", None) if delta is not None else None
            if delta is not None:
                accumulator.add(getattr(delta, "tool_calls", None))

            finish_reason = getattr(choice, "finish_reason", None)
            completed = accumulator.drain() if finish_reason == TOOL_CALLS_FINISH_REASON else []
            if content or completed or finish_reason or usage is not None:
                yield CompletionChunk(content=content, tool_calls=completed, finish_reason=finish_reason, usage=usage)

        # Some backends end the stream without a tool_calls finish reason
        if accumulator:
            yield CompletionChunk(tool_calls=accumulator.drain(), finish_reason=TOOL_CALLS_FINISH_REASON)


class OpenAIProvider(AnyLLMProvider):
    name = "openai"

    normalizer_class = OpenAIErrorNormalizer

    def build_request(self, conversation, tools, extensions, stream):
        kwargs = super().build_request(conversation, tools, extensions, stream)
        if stream:
            kwargs["stream_options"] = {"include_usage": True}
        return kwargs

    def apply_extensions(self, kwargs: dict[str, Any], extensions: RequestExtensions) -> None:
        super().apply_extensions(kwargs, extensions)
        if extensions.user_id:
            kwargs["user"] = extensions.user_id
        if extensions.metadata:
            kwargs["metadata"] = dict(extensions.metadata)


class AnthropicProvider(AnyLLMProvider):
    name = "anthropic"

    normalizer_class = AnthropicErrorNormalizer

    def apply_extensions(self, kwargs: dict[str, Any], extensions: RequestExtensions) -> None:
        super().apply_extensions(kwargs, extensions)
        # Anthropic only accepts user_id inside request metadata
        if extensions.user_id:
            kwargs["metadata"] = {"user_id": extensions.user_id}

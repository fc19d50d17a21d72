"""Provider client abstraction.

A ``ProviderClient`` sends one provider-agnostic Conversation (plus optional
tool descriptors and request extensions) to a model backend and returns either
a complete response or a stream of incremental chunks. Implementations only
translate to and from their wire format; every failure leaves ``send`` already
classified by the implementation's ErrorNormalizer.

A provider never retries. Retrying is left to the orchestrator or the caller.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence

from llmgate.config import ProviderConfig
from llmgate.logging_config import get_logger
from llmgate.models.completion import Completion, CompletionChunk, RequestExtensions
from llmgate.models.conversation import Conversation
from llmgate.models.tool import ToolDescriptor
from llmgate.providers.errors import ErrorNormalizer
from llmgate.telemetry import record_token_usage, set_span_attributes, trace_provider_call

logger = get_logger(__name__)


class ProviderClient(ABC):
    """Uniform "send a conversation" surface over one model backend."""

    name: str = "unknown"

    def __init__(self, config: ProviderConfig, normalizer: ErrorNormalizer):
        self.config = config
        self.normalizer = normalizer

    async def send(
        self,
        conversation: Conversation,
        tools: Sequence[ToolDescriptor] | None = None,
        extensions: RequestExtensions | None = None,
        *,
        stream: bool = False,
    ) -> Completion | AsyncIterator[CompletionChunk]:
        """Send ``conversation`` to the backend.

        Args:
            conversation: Messages of the exchange so far
            tools: Tool descriptors offered to the model (None offers none)
            extensions: Optional headers and metadata for this request
            stream: Return an async iterator of chunks instead of one Completion

        Returns:
            Completion, or AsyncIterator[CompletionChunk] when ``stream`` is set

        Raises:
            ContextWindowExceededError: The request exceeded the context window
            GenericProviderError: Any other failure (network, malformed response, quota)
        """
        tools = list(tools or [])
        start_time = time.time()
        logger.debug(
            f"Sending request: provider={self.name}, model={self.config.model}, stream={stream}, "
            f"message_count={len(conversation)}, tools={len(tools)}"
        )

        with trace_provider_call(self.name, self.config.model, len(conversation), len(tools), stream=stream) as span:
            try:
                if stream:
                    chunks = await asyncio.wait_for(
                        self._open_stream(conversation, tools, extensions), timeout=self.config.timeout
                    )
                    return self._classified(chunks)

                completion = await asyncio.wait_for(
                    self._complete(conversation, tools, extensions), timeout=self.config.timeout
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                classified = self.normalizer.classify(e)
                logger.error(
                    f"Provider call failed after {time.time() - start_time:.3f}s: provider={self.name}, "
                    f"model={self.config.model}, error_type={type(classified).__name__}",
                    exc_info=True,
                )
                raise classified from e

            elapsed = time.time() - start_time
            if completion.usage is not None:
                record_token_usage(span, completion.usage.model_dump())
            set_span_attributes(
                span,
                **{
                    "llm.response.finish_reason": completion.finish_reason or "unknown",
                    "llm.response.has_tool_calls": completion.has_tool_calls,
                },
            )
            logger.info(
                f"Provider call completed: provider={self.name}, model={self.config.model}, "
                f"latency={elapsed:.3f}s, tool_calls={len(completion.tool_calls)}"
            )
            return completion

    async def _classified(self, chunks: AsyncIterator[CompletionChunk]) -> AsyncIterator[CompletionChunk]:
        """Re-raise mid-stream failures through the normalizer."""
        try:
            async for chunk in chunks:
                yield chunk
        except asyncio.CancelledError:
            raise
        except Exception as e:
            classified = self.normalizer.classify(e)
            logger.error(f"Provider stream failed: provider={self.name}, error_type={type(classified).__name__}")
            raise classified from e

    @abstractmethod
    async def _complete(
        self,
        conversation: Conversation,
        tools: list[ToolDescriptor],
        extensions: RequestExtensions | None,
    ) -> Completion:
        """Make one non-streaming backend call and translate the response."""

    @abstractmethod
    async def _open_stream(
        self,
        conversation: Conversation,
        tools: list[ToolDescriptor],
        extensions: RequestExtensions | None,
    ) -> AsyncIterator[CompletionChunk]:
        """Open one streaming backend call and return translated chunks."""

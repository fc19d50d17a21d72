from collections.abc import AsyncIterator

from llmgate.config import ProviderConfig
from llmgate.exceptions import GenericProviderError
from llmgate.models.completion import Completion, CompletionChunk, RequestExtensions
from llmgate.models.conversation import Conversation
from llmgate.models.tool import ToolDescriptor
from llmgate.providers.base import ProviderClient
from llmgate.providers.errors import NoOpErrorNormalizer


class NoOpProvider(ProviderClient):
    """Provider that never reaches a backend and always fails.

    Useful where a provider is required but no network call may happen.
    """

    name = "noop"

    def __init__(self, config: ProviderConfig | None = None):
        super().__init__(config or ProviderConfig(provider="noop", model="noop"), NoOpErrorNormalizer())

    async def _complete(
        self,
        conversation: Conversation,
        tools: list[ToolDescriptor],
        extensions: RequestExtensions | None,
    ) -> Completion:
        raise GenericProviderError("no-op provider cannot complete requests", provider=self.name)

    async def _open_stream(
        self,
        conversation: Conversation,
        tools: list[ToolDescriptor],
        extensions: RequestExtensions | None,
    ) -> AsyncIterator[CompletionChunk]:
        raise GenericProviderError("no-op provider cannot stream responses", provider=self.name)

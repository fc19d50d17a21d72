"""Pytest configuration for LLMGate tests."""

from collections.abc import AsyncIterator

import pytest

from llmgate.config import ProviderConfig
from llmgate.models.completion import Completion, CompletionChunk
from llmgate.providers.base import ProviderClient
from llmgate.providers.errors import OpenAIErrorNormalizer


class ScriptedProvider(ProviderClient):
    """Provider double that replays a fixed script of responses.

    Each script item is a Completion (or, for streaming, a list of
    CompletionChunk) returned by the next call, or an exception raised by it.
    Every conversation sent is recorded in ``requests``, with the tool names
    offered in ``tools_offered`` and the request extensions in ``extensions``.
    """

    name = "openai"

    def __init__(self, script):
        super().__init__(ProviderConfig(provider="openai", model="scripted", timeout=5), OpenAIErrorNormalizer())
        self.script = list(script)
        self.requests = []
        self.tools_offered = []
        self.extensions = []

    def _next(self, conversation, tools, extensions):
        self.requests.append(conversation)
        self.extensions.append(extensions)
        self.tools_offered.append([descriptor.name for descriptor in tools])
        if not self.script:
            raise AssertionError("ScriptedProvider ran out of responses")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def _complete(self, conversation, tools, extensions) -> Completion:
        return self._next(conversation, tools, extensions)

    async def _open_stream(self, conversation, tools, extensions) -> AsyncIterator[CompletionChunk]:
        chunks = self._next(conversation, tools, extensions)

        async def replay():
            for chunk in chunks:
                if isinstance(chunk, BaseException):
                    raise chunk
                yield chunk

        return replay()


@pytest.fixture(autouse=True)
def reset_settings():
    """Reset global settings after each test to ensure test isolation."""
    yield
    # After each test, reload settings to reset to defaults
    from llmgate.config import reload_settings

    reload_settings()


@pytest.fixture
def scripted_provider():
    """Factory for ScriptedProvider instances."""
    return ScriptedProvider

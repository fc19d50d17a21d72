"""Model backends behind one ProviderClient surface.

Available Providers:
    - OpenAIProvider: OpenAI chat completions (via any-llm)
    - AnthropicProvider: Anthropic messages (via any-llm)
    - NoOpProvider: Never calls out, always fails; for tests and dry runs
"""

from llmgate.config import ProviderConfig
from llmgate.providers.anyllm import AnthropicProvider, AnyLLMProvider, OpenAIProvider
from llmgate.providers.base import ProviderClient
from llmgate.providers.errors import (
    AnthropicErrorNormalizer,
    ErrorNormalizer,
    NoOpErrorNormalizer,
    OpenAIErrorNormalizer,
)
from llmgate.providers.noop import NoOpProvider

PROVIDERS: dict[str, type[ProviderClient]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "noop": NoOpProvider,
}


def create_provider(config: ProviderConfig | None = None) -> ProviderClient:
    """Build the provider client named by ``config.provider``.

    Args:
        config: Connection parameters (defaults to ProviderConfig.from_settings())

    Returns:
        ProviderClient: A client for the configured backend
    """
    config = config or ProviderConfig.from_settings()
    return PROVIDERS[config.provider](config)


__all__ = [
    "AnthropicErrorNormalizer",
    "AnthropicProvider",
    "AnyLLMProvider",
    "ErrorNormalizer",
    "NoOpErrorNormalizer",
    "NoOpProvider",
    "OpenAIErrorNormalizer",
    "OpenAIProvider",
    "PROVIDERS",
    "ProviderClient",
    "create_provider",
]

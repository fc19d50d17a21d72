"""LLMGate - one gateway to several LLM backends, with a tool-calling runtime.

LLMGate lets an application hold a provider-agnostic conversation, send it to
any supported backend and let the model call application-defined tools:
- Append-only conversation model with tool calls and results
- One provider client surface (OpenAI, Anthropic, a no-op double)
- Provider failures normalized into context-window vs. generic errors
- Typed tools with minimized JSON schemas, held in an immutable ToolSet
- An orchestrator that runs tool calls concurrently and caps round trips
- Token counting for budgeting requests

Quick Start:
    >>> import asyncio
    >>> from llmgate import CompletionOrchestrator, ConversationBuilder, ToolSet, create_provider, tool
    >>>
    >>> @tool
    ... def get_weather(city: str) -> str:
    ...     '''Get weather for a city.'''
    ...     return f"Sunny in {city}"
    >>>
    >>> async def main():
    ...     orchestrator = CompletionOrchestrator(create_provider(), ToolSet([get_weather]))
    ...     conversation = ConversationBuilder().push_user("What's the weather in Paris?").build()
    ...     result = await orchestrator.run(conversation)
    ...     print(result.final_response)
    >>>
    >>> asyncio.run(main())

Exceptions:
    - ContextWindowExceededError: Request exceeded the model context window
    - GenericProviderError: Any other provider failure
    - ToolLoopExceededError: The model kept calling tools past the round-trip cap
"""

from llmgate._version import get_version
from llmgate.config import LLMGateSettings, ProviderConfig, get_settings, reload_settings, settings
from llmgate.events import ProcessEvent
from llmgate.exceptions import (
    ContextWindowExceededError,
    GenericProviderError,
    LLMGateError,
    NameConflictError,
    ProviderError,
    TokenizerLoadError,
    ToolCallError,
    ToolDeserializationError,
    ToolExecutionError,
    ToolLoopExceededError,
    ToolNotFoundError,
    ToolSchemaError,
    ToolSetCreationError,
)
from llmgate.logging_config import setup_logging
from llmgate.models import (
    Completion,
    CompletionChunk,
    Conversation,
    ConversationBuilder,
    Message,
    RequestExtensions,
    Role,
    StreamPart,
    ToolCallRequest,
    ToolCallResult,
    ToolDescriptor,
    Usage,
)
from llmgate.orchestrator import CompletionOrchestrator, ExchangeResult
from llmgate.providers import ProviderClient, create_provider
from llmgate.tokens import count_tokens
from llmgate.tools import (
    AsyncTool,
    BaseTool,
    ChainedTool,
    FunctionTool,
    Tool,
    ToolSet,
    describe,
    generate_schema,
    tool,
)

# Initialize logging on package import
_setup_logging_called = False


def _initialize_logging() -> None:
    """Initialize logging configuration from settings."""
    global _setup_logging_called
    if not _setup_logging_called:
        setup_logging(
            log_level=settings.log_level,
            log_file_level=settings.log_file_level,
            log_dir=settings.log_dir,
            log_file_name=settings.log_file_name,
            log_json_format=settings.log_json_format,
            log_max_bytes=settings.log_max_bytes,
            log_backup_count=settings.log_backup_count,
        )
        _setup_logging_called = True


# Initialize logging when package is imported
_initialize_logging()

__all__ = [
    # Runtime
    "CompletionOrchestrator",
    "ExchangeResult",
    "ProcessEvent",
    "ProviderClient",
    "create_provider",
    "count_tokens",
    # Tools
    "AsyncTool",
    "BaseTool",
    "ChainedTool",
    "FunctionTool",
    "Tool",
    "ToolSet",
    "describe",
    "generate_schema",
    "tool",
    # Models
    "Completion",
    "CompletionChunk",
    "Conversation",
    "ConversationBuilder",
    "Message",
    "RequestExtensions",
    "Role",
    "StreamPart",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolDescriptor",
    "Usage",
    # Exceptions
    "LLMGateError",
    "ProviderError",
    "ContextWindowExceededError",
    "GenericProviderError",
    "ToolLoopExceededError",
    "ToolCallError",
    "ToolDeserializationError",
    "ToolNotFoundError",
    "ToolExecutionError",
    "ToolSetCreationError",
    "NameConflictError",
    "ToolSchemaError",
    "TokenizerLoadError",
    # Configuration
    "LLMGateSettings",
    "ProviderConfig",
    "settings",
    "get_settings",
    "reload_settings",
]

__version__ = get_version()

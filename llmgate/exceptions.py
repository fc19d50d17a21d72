"""Exception taxonomy for LLMGate.

Hierarchy:
    - LLMGateError (base)
        - ProviderError: a backend call failed (already classified)
            - ContextWindowExceededError: request exceeded the model's context length
            - GenericProviderError: anything else, original error kept as ``cause``
        - ToolLoopExceededError: an exchange hit its tool round-trip cap
        - ToolCallError: a single tool call could not produce a result
            - ToolDeserializationError: arguments did not match the tool's input shape
            - ToolNotFoundError: the model named a tool that is not registered
            - ToolExecutionError: the tool body raised or timed out
        - ToolSetCreationError: a tool registry could not be built
            - NameConflictError: two tools share a name
            - ToolSchemaError: a tool's input shape cannot be described to a model
        - TokenizerLoadError: the token vocabulary could not be loaded

Callers of an exchange only ever see ContextWindowExceededError,
GenericProviderError or ToolLoopExceededError. ToolCallError is recovered per
call and fed back to the model as an error result.
"""


class LLMGateError(Exception):
    """Base exception for LLMGate errors."""

    pass


# ============================================================================
# Provider errors
# ============================================================================


class ProviderError(LLMGateError):
    """Raised when a provider call fails, after classification."""

    def __init__(self, message: str, provider: str | None = None):
        self.provider = provider
        super().__init__(message)


class ContextWindowExceededError(ProviderError):
    """Raised when the request exceeded the model's maximum context length.

    Callers usually react by truncating the conversation and retrying.
    """

    def __init__(self, provider: str | None = None):
        message = "Request exceeded the model context window"
        if provider:
            message += f" (provider: {provider})"
        super().__init__(message, provider=provider)


class GenericProviderError(ProviderError):
    """Raised for any provider failure that is not a context-window overflow.

    Attributes:
        cause: The original backend exception
        retryable: Whether the failure looks transient (rate limit, network)
    """

    def __init__(self, cause: BaseException | str, provider: str | None = None, retryable: bool = False):
        self.cause = cause
        self.retryable = retryable
        detail = cause if isinstance(cause, str) else f"{type(cause).__name__}: {cause}"
        message = f"Provider request failed: {detail}"
        if provider:
            message = f"[{provider}] {message}"
        super().__init__(message, provider=provider)


class ToolLoopExceededError(LLMGateError):
    """Raised when an exchange needs more tool round trips than allowed."""

    def __init__(self, max_round_trips: int, tool_calls_made: int = 0):
        self.max_round_trips = max_round_trips
        self.tool_calls_made = tool_calls_made
        super().__init__(
            f"Exchange exceeded {max_round_trips} tool round trip(s) "
            f"({tool_calls_made} tool call(s) made) without a final answer"
        )


# ============================================================================
# Tool call errors
# ============================================================================


class ToolCallError(LLMGateError):
    """Raised when a single tool call cannot produce a result.

    Attributes:
        tool_name: Name the model used for the call
        description: Model-facing explanation of the failure
    """

    def __init__(self, tool_name: str, description: str):
        self.tool_name = tool_name
        self.description = description
        super().__init__(f"Tool '{tool_name}': {description}")


class ToolDeserializationError(ToolCallError):
    """Raised when tool arguments do not match the tool's declared input shape.

    The payload comes from the model, so this is treated as a possible
    hallucination rather than a system fault.
    """

    possible_hallucination = True

    def __init__(self, tool_name: str, cause: BaseException | str):
        self.cause = cause
        super().__init__(tool_name, f"Invalid arguments (possible model hallucination): {cause}")


class ToolNotFoundError(ToolCallError):
    """Raised when the model references a tool that is not registered."""

    possible_hallucination = True

    def __init__(self, tool_name: str):
        super().__init__(tool_name, f"Tool '{tool_name}' not found in available tools")


class ToolExecutionError(ToolCallError):
    """Raised when a tool body fails or times out."""

    def __init__(self, tool_name: str, cause: BaseException | str):
        self.cause = cause
        detail = cause if isinstance(cause, str) else f"{type(cause).__name__}: {cause}"
        super().__init__(tool_name, f"Error executing tool: {detail}")


# ============================================================================
# Registry errors
# ============================================================================


class ToolSetCreationError(LLMGateError):
    """Raised when a tool registry cannot be constructed."""

    pass


class NameConflictError(ToolSetCreationError):
    """Raised when a tool name is already registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"A tool named '{name}' is already registered")


class ToolSchemaError(ToolSetCreationError):
    """Raised when a tool's input shape cannot be turned into a model-facing schema."""

    pass


class TokenizerLoadError(LLMGateError):
    """Raised when the token vocabulary cannot be loaded."""

    pass

"""Per-vendor classification of backend errors.

Backends report a context-window overflow only through their error text, so
detection is a substring match on the message. Each vendor keeps its own
markers in its own normalizer; when a vendor exposes a structured error code,
only that vendor's ``is_context_window_exceeded`` needs to change.
"""

import re
from abc import ABC, abstractmethod

from llmgate.exceptions import ContextWindowExceededError, GenericProviderError, ProviderError
from llmgate.logging_config import get_logger

logger = get_logger(__name__)

# Fragments of transient failures (rate limits, overload, network)
RETRYABLE_MARKERS: tuple[str, ...] = (
    "rate limit",
    "rate_limit",
    "too many requests",
    "quota exceeded",
    "resource exhausted",
    "throttled",
    "overloaded",
    "connection",
    "timeout",
    "timed out",
    "network",
    "unreachable",
)

RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504, 529})

# A status code stands alone in the message, never inside an id or a count
_STATUS_CODE_PATTERN = re.compile(r"(?<![\w.-])(\d{3})(?![\w-]|\.\d)")


class ErrorNormalizer(ABC):
    """Maps a backend exception into the shared error taxonomy."""

    provider: str = "unknown"

    @abstractmethod
    def is_context_window_exceeded(self, message: str) -> bool:
        """Return True if the lower-cased error text reports a context overflow."""

    def is_retryable(self, error: BaseException, message: str) -> bool:
        if isinstance(error, (TimeoutError, ConnectionError)):
            return True
        status_code = getattr(error, "status_code", None)
        if isinstance(status_code, int):
            return status_code in RETRYABLE_STATUS_CODES
        if any(marker in message for marker in RETRYABLE_MARKERS):
            return True
        return any(int(code) in RETRYABLE_STATUS_CODES for code in _STATUS_CODE_PATTERN.findall(message))

    def classify(self, error: BaseException) -> ProviderError:
        """Classify ``error`` as ContextWindowExceeded or Generic.

        Already-classified errors are returned unchanged.
        """
        if isinstance(error, ProviderError):
            return error

        message = str(error).lower()
        if self.is_context_window_exceeded(message):
            logger.debug(f"Classified {type(error).__name__} from {self.provider} as context window overflow")
            return ContextWindowExceededError(provider=self.provider)

        return GenericProviderError(error, provider=self.provider, retryable=self.is_retryable(error, message))


class OpenAIErrorNormalizer(ErrorNormalizer):
    provider = "openai"

    def is_context_window_exceeded(self, message: str) -> bool:
        return "maximum context length" in message or "context_length_exceeded" in message


class AnthropicErrorNormalizer(ErrorNormalizer):
    provider = "anthropic"

    def is_context_window_exceeded(self, message: str) -> bool:
        return "prompt is too long" in message or "exceeds the context window" in message


class NoOpErrorNormalizer(ErrorNormalizer):
    provider = "noop"

    def is_context_window_exceeded(self, message: str) -> bool:
        return False

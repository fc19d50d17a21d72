"""Token counting backed by tiktoken.

Encodings are loaded once per name and cached for the life of the process;
tiktoken encoders are safe to share between threads and tasks.

Example:
    >>> from llmgate.tokens import count_tokens
    >>> count_tokens("hello world")
    2
"""

from functools import lru_cache
from typing import TYPE_CHECKING

import tiktoken

from llmgate.config import get_settings
from llmgate.exceptions import TokenizerLoadError
from llmgate.logging_config import get_logger

if TYPE_CHECKING:
    from llmgate.models.conversation import Conversation

logger = get_logger(__name__)


@lru_cache(maxsize=8)
def load_encoding(encoding_name: str) -> tiktoken.Encoding:
    """Load (and cache) a tiktoken encoding.

    Raises:
        TokenizerLoadError: If the vocabulary table cannot be loaded
    """
    try:
        encoding = tiktoken.get_encoding(encoding_name)
    except Exception as e:
        raise TokenizerLoadError(f"Could not load token encoding '{encoding_name}': {e}") from e
    logger.debug(f"Loaded token encoding: {encoding_name}")
    return encoding


def count_tokens(text: str, encoding_name: str | None = None) -> int:
    """Count the tokens of ``text``.

    Args:
        text: Text to count
        encoding_name: tiktoken encoding (defaults to settings.token_encoding)

    Returns:
        Number of tokens; identical text always yields the same count
    """
    if not text:
        return 0
    encoding = load_encoding(encoding_name or get_settings().token_encoding)
    # Special-token text is counted as plain text rather than rejected
    return len(encoding.encode(text, disallowed_special=()))


def count_conversation_tokens(conversation: "Conversation", encoding_name: str | None = None) -> int:
    """Count the tokens carried by every message of a conversation.

    Message content, tool-call arguments and tool-result payloads are counted;
    per-message framing overhead of a specific backend is not.
    """
    total = 0
    for message in conversation.messages:
        total += count_tokens(message.content or "", encoding_name)
        for call in message.tool_calls:
            total += count_tokens(call.name, encoding_name)
            total += count_tokens(call.arguments_json, encoding_name)
        if message.tool_result is not None:
            total += count_tokens(message.tool_result.content, encoding_name)
    return total


def warm_up(encoding_name: str | None = None) -> None:
    """Load the configured encoding eagerly so start-up fails fast."""
    load_encoding(encoding_name or get_settings().token_encoding)


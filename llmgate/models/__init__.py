"""Data models for LLMGate.

This module contains the Pydantic models exchanged between the provider
adapters, the tool registry and the completion orchestrator.

Available Models:
    - Role: Message role enumeration
    - Message: One role-tagged chat message
    - Conversation: Immutable ordered sequence of messages
    - ConversationBuilder: Append-only builder producing a Conversation
    - ToolCallRequest / ToolCallResult: A tool call and its outcome
    - ToolDescriptor: Model-facing description of a tool
    - Completion / CompletionChunk: Provider responses
    - RequestExtensions: Per-request headers and metadata
    - StreamPart: Items yielded by a streaming exchange
"""

from llmgate.models.completion import Completion, CompletionChunk, RequestExtensions, StreamPart, Usage
from llmgate.models.conversation import (
    Conversation,
    ConversationBuilder,
    Message,
    Role,
    ToolCallRequest,
    ToolCallResult,
)
from llmgate.models.tool import ToolDescriptor

__all__ = [
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
]

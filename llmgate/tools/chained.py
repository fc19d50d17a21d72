"""Chained tool calling.

Offering every tool schema on every round trip costs prompt budget. In chained
mode the primary model is offered a single ``chained_tool`` whose arguments are
a tool name and free-text instructions, plus a catalogue of tool names and
descriptions in its system prompt. A generator model then turns each chained
call into a real call, seeing only the selected tool's full schema, and the
real call is dispatched through the wrapped ToolSet.

Example:
    >>> orchestrator = CompletionOrchestrator.chained(
    ...     create_provider(ProviderConfig.from_settings("anthropic", "claude-sonnet-4")),
    ...     ToolSet([search_web, send_email]),
    ...     generator=create_provider(ProviderConfig.from_settings("openai", "gpt-4o-mini")),
    ... )
"""

from typing import Annotated, Any

from pydantic import BaseModel, Field

from llmgate.exceptions import NameConflictError, ToolExecutionError, ToolNotFoundError
from llmgate.logging_config import get_logger
from llmgate.models.conversation import ConversationBuilder, ToolCallRequest
from llmgate.providers.base import ProviderClient
from llmgate.tools.base import AsyncTool
from llmgate.tools.registry import ToolSet

logger = get_logger(__name__)

CHAINED_TOOL_NAME = "chained_tool"

GENERATOR_INSTRUCTIONS = "Use the tool provided in context following the user instructions."


class ChainedToolInput(BaseModel):
    tool_name: Annotated[str, Field(description="Name of the tool to use")]
    instructions: Annotated[
        str,
        Field(
            description="How to call the tool. Include all needed context such as ids, names "
            "and the user's instructions"
        ),
    ]


class ChainedTool(AsyncTool):
    """Routes a (tool name, instructions) pair to a generated call of that tool."""

    name = CHAINED_TOOL_NAME
    description = "Call a tool by naming it and describing how it should be called"
    input_model = ChainedToolInput

    def __init__(self, toolset: ToolSet, generator: ProviderClient):
        if CHAINED_TOOL_NAME in toolset:
            raise NameConflictError(CHAINED_TOOL_NAME)
        self.toolset = toolset
        self.generator = generator

    def catalogue(self) -> str:
        """System-prompt text listing the tools reachable through ``chained_tool``."""
        entries = "\n".join(f"- {d.name}: {d.description}" for d in self.toolset.descriptors())
        return (
            f"The following tools are available through {CHAINED_TOOL_NAME}. "
            f"Name one and describe how it should be called.\n{entries}"
        )

    async def generate_call(self, arguments: ChainedToolInput) -> ToolCallRequest:
        """Ask the generator model to write the real call.

        Raises:
            ToolNotFoundError: The named tool is not in the wrapped ToolSet
            ToolExecutionError: The generator did not produce a call to it
        """
        selected = self.toolset.get(arguments.tool_name)
        if selected is None:
            raise ToolNotFoundError(arguments.tool_name)

        conversation = (
            ConversationBuilder().push_system(GENERATOR_INSTRUCTIONS).push_user(arguments.instructions).build()
        )
        completion = await self.generator.send(conversation, [selected.descriptor()])
        for call in completion.tool_calls:
            if call.name == selected.name:
                return call
        raise ToolExecutionError(self.name, f"no call to '{selected.name}' was generated")

    async def run(self, arguments: ChainedToolInput, context: Any = None) -> Any:
        call = await self.generate_call(arguments)
        logger.debug(f"Chained call to {call.name} generated with arguments {call.arguments_json}")
        result = await self.toolset.dispatch(call, context)
        return result.output

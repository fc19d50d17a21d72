"""ToolSet: the immutable registry of tools offered to a model.

A ToolSet never changes after construction. ``add_tool`` and ``merge`` return a
new ToolSet and leave the original untouched, so one ToolSet can be shared by
any number of concurrent exchanges.
"""

from collections.abc import Callable, Iterable, Iterator
from typing import Any

from llmgate.exceptions import NameConflictError, ToolNotFoundError, ToolSetCreationError
from llmgate.logging_config import get_logger
from llmgate.models.conversation import ToolCallRequest, ToolCallResult
from llmgate.models.tool import ToolDescriptor
from llmgate.tools.base import BaseTool, FunctionTool, describe

logger = get_logger(__name__)

ToolLike = BaseTool | type[BaseTool] | Callable[..., Any]


def as_tool(candidate: ToolLike) -> BaseTool:
    """Coerce a tool instance, tool class or plain function into a tool."""
    if isinstance(candidate, BaseTool):
        return candidate
    if isinstance(candidate, type):
        if issubclass(candidate, BaseTool):
            return candidate()
        raise ToolSetCreationError(f"{candidate.__name__} is not a tool class")
    if callable(candidate):
        return FunctionTool(candidate)
    raise ToolSetCreationError(f"Cannot register {candidate!r} as a tool")


class ToolSet:
    """Name-indexed, read-only collection of tools.

    Example:
        >>> toolset = ToolSet().add_tool(SearchWeb).add_tool(list_emails)
        >>> [d.name for d in toolset.descriptors()]
        ['search_web', 'list_emails']
    """

    def __init__(self, tools: Iterable[ToolLike] = ()):
        self._tools: dict[str, BaseTool] = {}
        self._descriptors: dict[str, ToolDescriptor] = {}
        for candidate in tools:
            self._register(as_tool(candidate))

    def _register(self, tool: BaseTool) -> None:
        if tool.name in self._tools:
            raise NameConflictError(tool.name)
        # Descriptor is built up front so schema problems surface at creation
        self._descriptors[tool.name] = describe(tool)
        self._tools[tool.name] = tool

    def _copy(self) -> "ToolSet":
        clone = ToolSet()
        clone._tools = dict(self._tools)
        clone._descriptors = dict(self._descriptors)
        return clone

    def add_tool(self, candidate: ToolLike) -> "ToolSet":
        """Return a new ToolSet that also contains ``candidate``.

        Raises:
            NameConflictError: A tool with the same name is already registered
            ToolSchemaError: The tool's input shape cannot be described
        """
        extended = self._copy()
        extended._register(as_tool(candidate))
        logger.debug(f"Registered tool: {extended.names()[-1]}")
        return extended

    def merge(self, other: "ToolSet") -> "ToolSet":
        """Return a new ToolSet with the tools of both sets.

        Raises:
            NameConflictError: Both sets register a tool with the same name
        """
        merged = self._copy()
        for tool in other:
            merged._register(tool)
        return merged

    async def dispatch(self, request: ToolCallRequest, context: Any = None) -> ToolCallResult:
        """Run the tool named by ``request`` and wrap its output.

        Raises:
            ToolNotFoundError: No tool has the requested name
            ToolDeserializationError: Arguments did not match the tool's input
            ToolExecutionError: The tool body failed
        """
        tool = self._tools.get(request.name)
        if tool is None:
            raise ToolNotFoundError(request.name)
        output = await tool.invoke(request.arguments, context)
        return ToolCallResult.success(request, output)

    def descriptors(self) -> list[ToolDescriptor]:
        return list(self._descriptors.values())

    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[BaseTool]:
        return iter(list(self._tools.values()))

    def __repr__(self) -> str:
        return f"ToolSet({self.names()!r})"

"""Tools: typed capabilities a model can call, and the registry that holds them."""

from llmgate.tools.base import AsyncTool, BaseTool, FunctionTool, Tool, describe, tool
from llmgate.tools.chained import ChainedTool
from llmgate.tools.registry import ToolSet, as_tool
from llmgate.tools.schema import generate_schema, minimize_schema

__all__ = [
    "AsyncTool",
    "BaseTool",
    "ChainedTool",
    "FunctionTool",
    "Tool",
    "ToolSet",
    "as_tool",
    "describe",
    "generate_schema",
    "minimize_schema",
    "tool",
]

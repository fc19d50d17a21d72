"""Tool definitions.

A tool is a named capability with a typed input (a pydantic model) and a body
that turns a validated input into a JSON-compatible output. Tools come in two
shapes sharing one ``BaseTool`` surface:

- ``Tool``: the body is a blocking ``run`` method, executed in a worker thread
- ``AsyncTool``: the body is a coroutine ``run`` method

Plain functions become tools through ``FunctionTool`` or the ``@tool``
decorator; the input model is built from the function signature and the
summary paragraph of the docstring becomes the description and its
``Args:`` entries become the field descriptions.

Example:
    >>> class SearchWebInput(BaseModel):
    ...     query: str = Field(description="Search terms")
    >>>
    >>> class SearchWeb(AsyncTool):
    ...     name = "search_web"
    ...     description = "Search the web"
    ...     input_model = SearchWebInput
    ...
    ...     async def run(self, arguments, context=None):
    ...         return {"results": await search(arguments.query)}
    >>>
    >>> @tool
    ... def get_time(timezone: str = "UTC") -> str:
    ...     '''Get the current time in a timezone.'''
    ...     return datetime.now(ZoneInfo(timezone)).isoformat()
"""

import asyncio
import inspect
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any, get_type_hints

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, create_model
from pydantic_core import PydanticSerializationError

from llmgate.exceptions import ToolCallError, ToolDeserializationError, ToolExecutionError, ToolSchemaError
from llmgate.logging_config import get_logger
from llmgate.models.tool import ToolDescriptor
from llmgate.tools.schema import generate_schema

logger = get_logger(__name__)

# Names accepted by chat-completions function tools
TOOL_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,64}$")

CONTEXT_PARAMETER = "context"

_OUTPUT_ADAPTER = TypeAdapter(Any)


def to_jsonable(value: Any) -> Any:
    """Convert a tool output into a JSON-compatible document."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return _OUTPUT_ADAPTER.dump_python(value, mode="json")


class BaseTool(ABC):
    """Common surface of every tool: identity, schema and invocation."""

    name: str = ""
    description: str = ""
    input_model: type[BaseModel]

    _schema_cache: dict[str, Any] | None = None

    def schema(self) -> dict[str, Any]:
        """Minimized JSON schema of the tool input (generated once)."""
        if self._schema_cache is None:
            self._schema_cache = generate_schema(self.input_model)
        return self._schema_cache

    def descriptor(self) -> ToolDescriptor:
        return describe(self)

    def parse_arguments(self, raw_arguments: str | Mapping[str, Any] | None) -> BaseModel:
        """Validate a model-produced argument document against ``input_model``.

        Raises:
            ToolDeserializationError: The document is not valid JSON or does not
                match the input shape
        """
        try:
            if raw_arguments is None:
                return self.input_model.model_validate({})
            if isinstance(raw_arguments, str):
                return self.input_model.model_validate_json(raw_arguments.strip() or "{}")
            return self.input_model.model_validate(dict(raw_arguments))
        except ValidationError as e:
            raise ToolDeserializationError(self.name, e) from e

    async def invoke(self, raw_arguments: str | Mapping[str, Any] | None, context: Any = None) -> Any:
        """Parse the arguments, run the body and serialize its output.

        Raises:
            ToolDeserializationError: Arguments did not match the input shape
            ToolExecutionError: The body raised, or its output is not serializable
        """
        arguments = self.parse_arguments(raw_arguments)
        try:
            output = await self._execute(arguments, context)
        except ToolCallError:
            raise
        except Exception as e:
            logger.warning(f"Tool {self.name} raised {type(e).__name__}: {e}", exc_info=True)
            raise ToolExecutionError(self.name, e) from e

        try:
            return to_jsonable(output)
        except PydanticSerializationError as e:
            raise ToolExecutionError(self.name, f"output is not JSON serializable: {e}") from e

    @abstractmethod
    async def _execute(self, arguments: BaseModel, context: Any) -> Any:
        """Run the body with validated arguments."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class Tool(BaseTool):
    """Tool with a blocking body. ``run`` executes in a worker thread."""

    @abstractmethod
    def run(self, arguments: BaseModel, context: Any = None) -> Any:
        """Compute the output for validated ``arguments``."""

    async def _execute(self, arguments: BaseModel, context: Any) -> Any:
        return await asyncio.to_thread(self.run, arguments, context)


class AsyncTool(BaseTool):
    """Tool with a coroutine body."""

    @abstractmethod
    async def run(self, arguments: BaseModel, context: Any = None) -> Any:
        """Compute the output for validated ``arguments``."""

    async def _execute(self, arguments: BaseModel, context: Any) -> Any:
        return await self.run(arguments, context)


def _input_model_name(tool_name: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in re.split(r"[_\-]", tool_name) if part) + "Input"


_ARGS_HEADER = re.compile(r"^(?:Args|Arguments|Parameters)\s*:\s*$", re.IGNORECASE)
_PARAM_ENTRY = re.compile(r"^(?P<name>\w+)\s*(?:\([^)]*\))?\s*:\s*(?P<desc>.*)$")


def parse_docstring(docstring: str | None) -> tuple[str, dict[str, str]]:
    """Split a Google-style docstring into its summary and per-parameter descriptions.

    The summary is the first paragraph with whitespace collapsed. Parameter
    descriptions come from the ``Args:`` section; continuation lines indented
    deeper than the entry are joined onto it.
    """
    if not docstring:
        return "", {}
    lines = inspect.cleandoc(docstring).splitlines()

    summary: list[str] = []
    for line in lines:
        if not line.strip() or _ARGS_HEADER.match(line.strip()):
            break
        summary.append(line.strip())

    params: dict[str, str] = {}
    in_args = False
    entry_indent: int | None = None
    current: str | None = None
    for line in lines:
        stripped = line.strip()
        if _ARGS_HEADER.match(stripped) and not line[:1].isspace():
            in_args, entry_indent, current = True, None, None
            continue
        if not in_args or not stripped:
            continue
        indent = len(line) - len(line.lstrip())
        if indent == 0:
            # Returns:, Raises: and any other top-level line end the section
            in_args = False
            continue
        match = _PARAM_ENTRY.match(stripped)
        if match and (entry_indent is None or indent <= entry_indent):
            entry_indent = indent
            current = match.group("name")
            params[current] = match.group("desc").strip()
        elif current is not None:
            params[current] = f"{params[current]} {stripped}".strip()
    return " ".join(summary), params


class FunctionTool(BaseTool):
    """Tool wrapping a plain sync or async function.

    Each parameter becomes an input field; parameters without a default are
    required. The first docstring paragraph is the description and the
    ``Args:`` entries describe the fields. A parameter named ``context`` is not exposed to the model and
    receives the invoke context instead.
    """

    def __init__(self, func: Callable[..., Any], name: str | None = None, description: str | None = None):
        self.func = func
        self.name = name or func.__name__
        summary, self._param_docs = parse_docstring(inspect.getdoc(func))
        self.description = description if description is not None else summary
        self._is_async = inspect.iscoroutinefunction(func)
        self._takes_context = False
        self.input_model = self._build_input_model()

    def _build_input_model(self) -> type[BaseModel]:
        fields: dict[str, Any] = {}
        hints = get_type_hints(self.func, include_extras=True)
        for parameter in inspect.signature(self.func).parameters.values():
            if parameter.name == CONTEXT_PARAMETER:
                self._takes_context = True
                continue
            if parameter.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
                raise ToolSchemaError(f"Tool '{self.name}' cannot take *args or **kwargs")
            annotation = hints.get(parameter.name, Any)
            default = ... if parameter.default is inspect.Parameter.empty else parameter.default
            param_doc = self._param_docs.get(parameter.name)
            fields[parameter.name] = (annotation, Field(default, description=param_doc) if param_doc else default)
        try:
            return create_model(_input_model_name(self.name), **fields)
        except Exception as e:
            raise ToolSchemaError(f"Could not build an input model for tool '{self.name}': {e}") from e

    async def _execute(self, arguments: BaseModel, context: Any) -> Any:
        kwargs = {field: getattr(arguments, field) for field in type(arguments).model_fields}
        if self._takes_context:
            kwargs[CONTEXT_PARAMETER] = context
        if self._is_async:
            return await self.func(**kwargs)
        return await asyncio.to_thread(self.func, **kwargs)


def tool(func: Callable[..., Any] | None = None, *, name: str | None = None, description: str | None = None):
    """Turn a function into a FunctionTool.

    Usable bare (``@tool``) or with overrides (``@tool(name="lookup")``).
    """

    def decorator(f: Callable[..., Any]) -> FunctionTool:
        return FunctionTool(f, name=name, description=description)

    if func is not None:
        return decorator(func)
    return decorator


def describe(tool: BaseTool) -> ToolDescriptor:
    """Build the model-facing descriptor of a tool.

    Raises:
        ToolSchemaError: The name is not usable as a function name, or the
            input shape cannot be described
    """
    if not TOOL_NAME_PATTERN.match(tool.name or ""):
        raise ToolSchemaError(
            f"Invalid tool name {tool.name!r}: use 1-64 letters, digits, underscores or hyphens"
        )
    return ToolDescriptor(name=tool.name, description=tool.description, parameters=tool.schema())

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field


class ToolDescriptor(BaseModel):
    """Model-facing description of a registered tool."""

    model_config = ConfigDict(frozen=True)

    name: Annotated[str, Field(description="Tool name, unique within a ToolSet")]
    description: Annotated[str, Field(description="What the tool does, shown to the model")]
    parameters: Annotated[dict[str, Any], Field(description="Minimized JSON schema of the tool input")]

    def to_function_tool(self) -> dict[str, Any]:
        """Render as a chat-completions ``function`` tool definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

"""
Tool types exposed to the agent tool surface.

Generated tools are described in the function-calling format and return a
structured ToolResult instead of raising.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from protocol_forge.errors import ForgeError


class FunctionDefinition(BaseModel):
    """Function definition within a tool.

    Defines the schema for a callable function including:
    - name: Function identifier
    - description: What the function does
    - parameters: JSON Schema for function parameters
    """

    model_config = ConfigDict(extra="allow")

    name: str = Field(description="Function name")
    description: str | None = Field(default=None, description="Function description")
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        description="JSON Schema for parameters",
    )


class ToolDefinition(BaseModel):
    """Tool definition in function-calling format.

    Example:
        >>> tool = ToolDefinition.from_function(
        ...     name="weatherApi_getCurrent",
        ...     description="Get current weather",
        ...     parameters={
        ...         "type": "object",
        ...         "properties": {"city": {"type": "string"}},
        ...         "required": ["city"],
        ...     },
        ... )
    """

    model_config = ConfigDict(extra="allow")

    type: str = Field(default="function", description="Tool type")
    function: FunctionDefinition = Field(description="Function definition")

    @classmethod
    def from_function(
        cls,
        name: str,
        description: str | None = None,
        parameters: dict[str, Any] | None = None,
    ) -> ToolDefinition:
        func_def = FunctionDefinition(
            name=name,
            description=description,
            parameters=parameters or {"type": "object", "properties": {}},
        )
        return cls(function=func_def)

    @property
    def name(self) -> str:
        return self.function.name


class ToolCall(BaseModel):
    """A request from the agent to invoke a generated tool.

    Attributes:
        id: Unique identifier for this tool call
        function_name: Name of the tool to call
        arguments: Parsed arguments
        arguments_raw: Raw arguments string, when the call arrived as text
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(description="Unique tool call identifier")
    function_name: str = Field(description="Name of the tool to call")
    arguments: dict[str, Any] = Field(default_factory=dict)
    arguments_raw: str | None = Field(default=None)

    @classmethod
    def from_openai_format(
        cls,
        id: str,
        function_name: str,
        arguments: str | dict[str, Any],
    ) -> ToolCall:
        """Create from an OpenAI-style tool call.

        Unparseable argument strings become empty arguments; the raw text is
        kept so the resulting parameter error can be traced.
        """
        if isinstance(arguments, str):
            try:
                parsed = json.loads(arguments) if arguments else {}
            except json.JSONDecodeError:
                parsed = {}
            if not isinstance(parsed, dict):
                parsed = {}
            return cls(
                id=id,
                function_name=function_name,
                arguments=parsed,
                arguments_raw=arguments,
            )
        return cls(id=id, function_name=function_name, arguments=arguments)


class ToolResult(BaseModel):
    """Outcome of a generated tool invocation.

    Attributes:
        success: Whether the upstream call succeeded
        data: Parsed response body on success
        error: Structured error payload on failure
        status_code: Upstream HTTP status, when a request was made
    """

    success: bool
    data: Any = None
    error: dict[str, Any] | None = None
    status_code: int | None = None

    @classmethod
    def ok(cls, data: Any, status_code: int | None = None) -> ToolResult:
        return cls(success=True, data=data, status_code=status_code)

    @classmethod
    def fail(cls, error: ForgeError) -> ToolResult:
        status_code = getattr(error, "status_code", None)
        return cls(success=False, error=error.to_payload(), status_code=status_code)

    @property
    def error_type(self) -> str | None:
        return self.error.get("type") if self.error else None

    def to_content(self) -> str:
        """Serialize for a tool-result message."""
        if self.success:
            return json.dumps(self.data, default=str)
        return json.dumps({"error": self.error}, default=str)

"""
Type definitions for generated tools.
"""

from protocol_forge.types.tool import (
    FunctionDefinition,
    ToolCall,
    ToolDefinition,
    ToolResult,
)

__all__ = [
    "FunctionDefinition",
    "ToolCall",
    "ToolDefinition",
    "ToolResult",
]

"""生成模块：从协议定义编译输入 schema 与可调用工具。

Generation module - input schemas and callable tools from protocol definitions.
"""

from protocol_forge.generation.schema import (
    apply_defaults,
    generate_input_schema,
    generate_parameter_schema,
    render_tool_docs,
)
from protocol_forge.generation.tools import (
    GeneratedTool,
    ToolGenerator,
    camel_case,
    tool_name,
    validate_generated_tools,
)

__all__ = [
    "GeneratedTool",
    "ToolGenerator",
    "apply_defaults",
    "camel_case",
    "generate_input_schema",
    "generate_parameter_schema",
    "render_tool_docs",
    "tool_name",
    "validate_generated_tools",
]

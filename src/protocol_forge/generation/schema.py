"""
Schema generator.

Translates parameter definitions into JSON Schema (Draft 2020-12) input
schemas. The translation is pure and recursive: every constraint of a
parameter appears in its schema, so a value is accepted by the schema exactly
when it satisfies the parameter.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

from protocol_forge.protocol.models import (
    ArrayParameter,
    EndpointDefinition,
    NumberParameter,
    ObjectParameter,
    StringParameter,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from protocol_forge.generation.tools import GeneratedTool
    from protocol_forge.protocol.models import ParameterDefinition

_STRING_KEYWORDS = {
    "min_length": "minLength",
    "max_length": "maxLength",
    "pattern": "pattern",
    "enum": "enum",
}
_NUMBER_KEYWORDS = {
    "minimum": "minimum",
    "maximum": "maximum",
    "exclusive_minimum": "exclusiveMinimum",
    "exclusive_maximum": "exclusiveMaximum",
    "multiple_of": "multipleOf",
    "enum": "enum",
}
_ARRAY_KEYWORDS = {
    "min_items": "minItems",
    "max_items": "maxItems",
    "unique_items": "uniqueItems",
}


def _copy_keywords(param: Any, mapping: dict[str, str], schema: dict[str, Any]) -> None:
    for attr, keyword in mapping.items():
        value = getattr(param, attr)
        if value is not None:
            schema[keyword] = copy.deepcopy(value)


def generate_parameter_schema(param: ParameterDefinition) -> dict[str, Any]:
    """Compile one parameter definition to a JSON Schema.

    Args:
        param: Parameter definition (any variant)

    Returns:
        JSON Schema dict
    """
    schema: dict[str, Any] = {"type": param.type}
    if param.description:
        schema["description"] = param.description
    if "default" in param.model_fields_set:
        schema["default"] = copy.deepcopy(param.default)

    if isinstance(param, StringParameter):
        _copy_keywords(param, _STRING_KEYWORDS, schema)
    elif isinstance(param, NumberParameter):
        _copy_keywords(param, _NUMBER_KEYWORDS, schema)
    elif isinstance(param, ArrayParameter):
        if param.items is not None:
            schema["items"] = generate_parameter_schema(param.items)
        _copy_keywords(param, _ARRAY_KEYWORDS, schema)
    elif isinstance(param, ObjectParameter):
        if param.properties is not None:
            schema["properties"] = {
                name: generate_parameter_schema(child)
                for name, child in param.properties.items()
            }
            required = [name for name, child in param.properties.items() if child.required]
            if required:
                schema["required"] = required
        if param.additional_properties is not None:
            schema["additionalProperties"] = param.additional_properties

    return schema


def generate_input_schema(endpoint: EndpointDefinition) -> dict[str, Any]:
    """Compile an endpoint's parameters to a closed object schema.

    Args:
        endpoint: Endpoint definition

    Returns:
        Object schema with ``properties``, ``required`` and
        ``additionalProperties: false``
    """
    properties: dict[str, Any] = {}
    required: list[str] = []
    for param in endpoint.parameters:
        if not param.name:
            continue
        properties[param.name] = generate_parameter_schema(param)
        if param.required:
            required.append(param.name)

    return {
        "type": "object",
        "properties": properties,
        "required": required,
        "additionalProperties": False,
    }


def apply_defaults(schema: dict[str, Any], args: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``args`` with schema defaults filled in.

    Defaults are applied to missing object properties, recursively into
    supplied nested objects.
    """
    result = dict(args)
    for name, prop in schema.get("properties", {}).items():
        if name not in result:
            if "default" in prop:
                result[name] = copy.deepcopy(prop["default"])
        elif prop.get("type") == "object" and isinstance(result[name], dict):
            result[name] = apply_defaults(prop, result[name])
    return result


def _describe_constraints(schema: dict[str, Any]) -> str:
    parts = []
    for keyword in (
        "minLength",
        "maxLength",
        "pattern",
        "minimum",
        "maximum",
        "exclusiveMinimum",
        "exclusiveMaximum",
        "multipleOf",
        "minItems",
        "maxItems",
    ):
        if keyword in schema:
            parts.append(f"{keyword}={schema[keyword]}")
    if "enum" in schema:
        parts.append("one of " + ", ".join(f"`{v}`" for v in schema["enum"]))
    if "default" in schema:
        parts.append(f"default `{schema['default']}`")
    return "; ".join(parts)


def _parameter_rows(
    schema: dict[str, Any], prefix: str = ""
) -> list[tuple[str, str, bool, str, str]]:
    rows = []
    required = set(schema.get("required", []))
    for name, prop in schema.get("properties", {}).items():
        full_name = f"{prefix}{name}"
        type_name = prop.get("type", "")
        if type_name == "array" and isinstance(prop.get("items"), dict):
            type_name = f"array<{prop['items'].get('type', '')}>"
        rows.append(
            (
                full_name,
                type_name,
                name in required,
                prop.get("description", ""),
                _describe_constraints(prop),
            )
        )
        if prop.get("type") == "object":
            rows.extend(_parameter_rows(prop, f"{full_name}."))
    return rows


def render_tool_docs(tools: Sequence[GeneratedTool], title: str | None = None) -> str:
    """Render Markdown documentation for generated tools.

    Args:
        tools: Tools to document
        title: Optional top-level heading

    Returns:
        Markdown text
    """
    lines: list[str] = []
    if title:
        lines += [f"# {title}", ""]

    for tool in tools:
        lines += [f"## `{tool.name}`", "", tool.description, ""]
        lines.append(f"`{tool.method} {tool.url}`")
        lines.append("")
        rows = _parameter_rows(tool.input_schema)
        if not rows:
            lines += ["_No parameters._", ""]
            continue
        lines.append("| Parameter | Type | Required | Description | Constraints |")
        lines.append("|-----------|------|----------|-------------|-------------|")
        for name, type_name, is_required, description, constraints in rows:
            lines.append(
                f"| `{name}` | {type_name} | {'yes' if is_required else 'no'} "
                f"| {description} | {constraints} |"
            )
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"

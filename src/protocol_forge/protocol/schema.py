"""
Embedded JSON Schema (Draft 2020-12) for community protocol definitions.

Every configurable shape is closed: the variant of an authentication block
or a parameter is selected by its ``type`` and only that variant's fields
are accepted.
"""

from __future__ import annotations

from typing import Any

SCHEMA_ID = "https://protocol-forge.dev/schemas/protocol/v1.json"

PROTOCOL_NAME_PATTERN = r"^[a-z][a-z0-9]*(-[a-z0-9]+)*$"
SEMVER_PATTERN = (
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(-[0-9A-Za-z-]+(\.[0-9A-Za-z-]+)*)?(\+[0-9A-Za-z-]+(\.[0-9A-Za-z-]+)*)?$"
)
ENDPOINT_NAME_PATTERN = r"^[a-z][a-zA-Z0-9]*$"

PARAMETER_TYPES = ("string", "number", "boolean", "array", "object")
AUTH_TYPES = ("api_key", "bearer_token", "basic", "oauth2")
HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")
RATE_LIMIT_WINDOWS = ("1s", "1m", "1h", "1d")

_COMMON_PARAMETER_FIELDS: dict[str, Any] = {
    "type": {"enum": list(PARAMETER_TYPES)},
    "name": {"type": "string", "minLength": 1},
    "description": {"type": "string"},
    "required": {"type": "boolean"},
    "default": {},
}

_NON_NEGATIVE_INT: dict[str, Any] = {"type": "integer", "minimum": 0}


def _variant(type_name: str, fields: dict[str, Any]) -> dict[str, Any]:
    """Closed variant selected when ``type`` equals ``type_name``."""
    return {
        "if": {"properties": {"type": {"const": type_name}}, "required": ["type"]},
        "then": {
            "properties": fields,
            "additionalProperties": False,
        },
    }


def _parameter_variants() -> list[dict[str, Any]]:
    return [
        _variant(
            "string",
            {
                **_COMMON_PARAMETER_FIELDS,
                "minLength": _NON_NEGATIVE_INT,
                "maxLength": _NON_NEGATIVE_INT,
                "pattern": {"type": "string"},
                "enum": {"type": "array", "minItems": 1, "items": {"type": "string"}},
            },
        ),
        _variant(
            "number",
            {
                **_COMMON_PARAMETER_FIELDS,
                "minimum": {"type": "number"},
                "maximum": {"type": "number"},
                "exclusiveMinimum": {"type": "number"},
                "exclusiveMaximum": {"type": "number"},
                "multipleOf": {"type": "number", "exclusiveMinimum": 0},
                "enum": {"type": "array", "minItems": 1, "items": {"type": "number"}},
            },
        ),
        _variant("boolean", dict(_COMMON_PARAMETER_FIELDS)),
        _variant(
            "array",
            {
                **_COMMON_PARAMETER_FIELDS,
                "items": {"$ref": "#/$defs/parameter"},
                "minItems": _NON_NEGATIVE_INT,
                "maxItems": _NON_NEGATIVE_INT,
                "uniqueItems": {"type": "boolean"},
            },
        ),
        _variant(
            "object",
            {
                **_COMMON_PARAMETER_FIELDS,
                "properties": {
                    "type": "object",
                    "additionalProperties": {"$ref": "#/$defs/parameter"},
                },
                "additionalProperties": {"type": "boolean"},
            },
        ),
    ]


def _auth_variants() -> list[dict[str, Any]]:
    kind = {"enum": list(AUTH_TYPES)}
    api_key = _variant(
        "api_key",
        {
            "type": kind,
            "location": {"enum": ["header", "query", "cookie"]},
            "name": {"type": "string", "minLength": 1},
        },
    )
    api_key["then"]["required"] = ["location", "name"]
    oauth2 = _variant(
        "oauth2",
        {
            "type": kind,
            "tokenUrl": {"type": "string", "minLength": 1},
            "scopes": {"type": "array", "items": {"type": "string"}},
        },
    )
    oauth2["then"]["required"] = ["tokenUrl"]
    return [
        api_key,
        _variant("bearer_token", {"type": kind}),
        _variant("basic", {"type": kind}),
        oauth2,
    ]


PROTOCOL_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": SCHEMA_ID,
    "title": "Community protocol definition",
    "type": "object",
    "required": ["name", "version", "description", "author", "license", "endpoints"],
    "properties": {
        "name": {
            "type": "string",
            "minLength": 3,
            "maxLength": 50,
            "pattern": PROTOCOL_NAME_PATTERN,
        },
        "version": {"type": "string", "pattern": SEMVER_PATTERN},
        "description": {"type": "string", "minLength": 1},
        "author": {"type": "string", "minLength": 1},
        "license": {"type": "string", "minLength": 1},
        "repository": {"type": "string"},
        "homepage": {"type": "string"},
        "dependencies": {
            "type": "object",
            "additionalProperties": {"type": "string"},
        },
        "authentication": {"$ref": "#/$defs/authentication"},
        "rateLimit": {"$ref": "#/$defs/rateLimit"},
        "endpoints": {
            "type": "array",
            "minItems": 1,
            "items": {"$ref": "#/$defs/endpoint"},
        },
        "metadata": {"type": "object"},
    },
    "additionalProperties": False,
    "$defs": {
        "authentication": {
            "type": "object",
            "required": ["type"],
            "properties": {"type": {"enum": list(AUTH_TYPES)}},
            "allOf": _auth_variants(),
        },
        "rateLimit": {
            "type": "object",
            "required": ["requests", "window"],
            "properties": {
                "requests": {"type": "integer", "exclusiveMinimum": 0},
                "window": {"enum": list(RATE_LIMIT_WINDOWS)},
            },
            "additionalProperties": False,
        },
        "endpoint": {
            "type": "object",
            "required": ["name", "method", "path", "description"],
            "properties": {
                "name": {
                    "type": "string",
                    "maxLength": 64,
                    "pattern": ENDPOINT_NAME_PATTERN,
                },
                "method": {"enum": list(HTTP_METHODS)},
                "path": {"type": "string", "minLength": 1},
                "description": {"type": "string", "minLength": 1},
                "authentication": {"type": "boolean"},
                "rateLimit": {"$ref": "#/$defs/rateLimit"},
                "parameters": {
                    "type": "array",
                    "items": {"$ref": "#/$defs/endpointParameter"},
                },
                "response": {
                    "type": "object",
                    "required": ["type"],
                    "properties": {
                        "type": {"enum": list(PARAMETER_TYPES)},
                        "description": {"type": "string"},
                    },
                },
            },
            "additionalProperties": False,
        },
        "endpointParameter": {
            "$ref": "#/$defs/parameter",
            "required": ["name", "type", "description"],
        },
        "parameter": {
            "type": "object",
            "required": ["type"],
            "properties": {"type": {"enum": list(PARAMETER_TYPES)}},
            "allOf": _parameter_variants(),
        },
    },
}

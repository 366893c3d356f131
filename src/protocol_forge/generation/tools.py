"""
Tool generator.

Compiles a validated ProtocolDefinition into one GeneratedTool per endpoint.
Each tool carries its input schema and an invocation closure that, in order:

1. validates arguments against the input schema (defaults applied)
2. injects credentials for the endpoint's effective authentication
3. enforces the endpoint's effective rate limit
4. performs the HTTP call through the transport

A call never raises: failures come back as ``ToolResult.fail(...)``.
"""

from __future__ import annotations

import json
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote, urlsplit

import jsonschema

from protocol_forge.errors import (
    ForgeError,
    InvocationError,
    ParameterValidationError,
    RateLimitExceededError,
)
from protocol_forge.generation.schema import apply_defaults, generate_input_schema
from protocol_forge.protocol.models import EndpointDefinition, ProtocolDefinition
from protocol_forge.protocol.validator import IssueCategory, ValidationResult
from protocol_forge.resilience import FixedWindowRateLimiter
from protocol_forge.telemetry import LogContext, clear_log_context, get_logger, set_log_context
from protocol_forge.transport import (
    CredentialInjector,
    CredentialProvider,
    EnvironmentCredentialProvider,
    HttpRequest,
    HttpTransport,
    HttpxTransport,
)
from protocol_forge.types import ToolDefinition, ToolResult

logger = get_logger(__name__)

TOOL_NAME_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
MAX_TOOL_NAME_LENGTH = 64
_MIN_DESCRIPTION_LENGTH = 10
_MAX_DESCRIPTION_LENGTH = 500

_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})
_PLACEHOLDER = re.compile(r"\{([^{}]+)\}")


def camel_case(protocol_name: str) -> str:
    """``weather-api`` -> ``weatherApi``."""
    first, *rest = protocol_name.split("-")
    return first + "".join(part[:1].upper() + part[1:] for part in rest)


def tool_name(protocol_name: str, endpoint_name: str) -> str:
    """Deterministic tool name for an endpoint of a protocol."""
    return f"{camel_case(protocol_name)}_{endpoint_name}"


Invoker = Callable[[dict[str, Any]], Awaitable[ToolResult]]


@dataclass(frozen=True)
class GeneratedTool:
    """A callable unit compiled from one endpoint.

    Attributes:
        name: ``camelCase(protocol)_endpoint``
        description: Endpoint description
        input_schema: JSON Schema for the arguments
        protocol_name: Owning protocol
        protocol_version: Version of the owning protocol
        endpoint_name: Source endpoint
        method: HTTP method
        url: Endpoint URL template
    """

    name: str
    description: str
    input_schema: dict[str, Any]
    protocol_name: str
    protocol_version: str
    endpoint_name: str
    method: str
    url: str
    _invoker: Invoker = field(repr=False, compare=False)

    @property
    def category(self) -> str:
        """Registry category: the owning protocol name."""
        return self.protocol_name

    async def invoke(self, args: dict[str, Any] | None = None) -> ToolResult:
        """Invoke the tool; never raises."""
        return await self._invoker(dict(args or {}))

    def to_definition(self) -> ToolDefinition:
        """Describe the tool in function-calling format."""
        return ToolDefinition.from_function(
            name=self.name,
            description=self.description,
            parameters=self.input_schema,
        )


def _format_violation(error: jsonschema.ValidationError) -> dict[str, str]:
    path = ".".join(str(p) for p in error.absolute_path)
    return {"path": path or "$", "message": error.message}


def _query_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"))
    if isinstance(value, list):
        return [_query_value(v) for v in value]
    return value


class ToolGenerator:
    """Generates tools from validated protocol definitions.

    Example:
        >>> generator = ToolGenerator(transport=HttpxTransport())
        >>> tools = generator.generate_tools(protocol)
        >>> result = await tools[0].invoke({"city": "Paris"})
    """

    def __init__(
        self,
        transport: HttpTransport | None = None,
        credentials: CredentialProvider | None = None,
        rate_limiter: FixedWindowRateLimiter | None = None,
        invocation_timeout: float = 30.0,
    ) -> None:
        """Initialize the generator.

        Args:
            transport: HTTP transport used by every generated tool
            credentials: Secret source for authenticated endpoints
            rate_limiter: Shared rate-limit counters
            invocation_timeout: Default per-call timeout in seconds
        """
        self._transport = transport or HttpxTransport(timeout=invocation_timeout)
        self._credentials = credentials or EnvironmentCredentialProvider()
        self._injector = CredentialInjector(self._credentials, self._transport)
        self._rate_limiter = rate_limiter or FixedWindowRateLimiter()
        self._invocation_timeout = invocation_timeout

    @property
    def rate_limiter(self) -> FixedWindowRateLimiter:
        return self._rate_limiter

    @property
    def transport(self) -> HttpTransport:
        return self._transport

    def forget_credentials(self, protocol_name: str) -> None:
        """Drop cached OAuth tokens and rate-limit windows for a protocol."""
        self._injector.forget_token(protocol_name)
        self._rate_limiter.reset(protocol_name)

    def generate_tools(self, protocol: ProtocolDefinition) -> list[GeneratedTool]:
        """Compile one tool per endpoint, in endpoint order.

        Args:
            protocol: An already-validated protocol definition

        Returns:
            List of GeneratedTool
        """
        tools = [self._generate_tool(protocol, endpoint) for endpoint in protocol.endpoints]
        logger.debug(
            "Generated tools",
            protocol=protocol.name,
            version=protocol.version,
            tools=[t.name for t in tools],
        )
        return tools

    def _generate_tool(
        self, protocol: ProtocolDefinition, endpoint: EndpointDefinition
    ) -> GeneratedTool:
        name = tool_name(protocol.name, endpoint.name)
        schema = generate_input_schema(endpoint)
        validator = jsonschema.Draft202012Validator(schema)
        timeout = self._timeout_for(protocol)

        async def invoke(args: dict[str, Any]) -> ToolResult:
            set_log_context(
                LogContext(protocol=protocol.name, version=protocol.version, tool=name)
            )
            try:
                return await self._invoke(
                    protocol, endpoint, name, schema, validator, timeout, args
                )
            except ForgeError as e:
                logger.warning("Tool invocation failed", error=e.code, message=e.message)
                return ToolResult.fail(e)
            except Exception as e:  # noqa: BLE001
                logger.exception("Unexpected tool invocation failure")
                return ToolResult.fail(
                    InvocationError(f"Unexpected error: {e}", tool_name=name, cause=e)
                )
            finally:
                clear_log_context()

        return GeneratedTool(
            name=name,
            description=endpoint.description,
            input_schema=schema,
            protocol_name=protocol.name,
            protocol_version=protocol.version,
            endpoint_name=endpoint.name,
            method=endpoint.method,
            url=endpoint.path,
            _invoker=invoke,
        )

    def _timeout_for(self, protocol: ProtocolDefinition) -> float:
        timeout_ms = (protocol.metadata or {}).get("timeoutMs")
        if isinstance(timeout_ms, (int, float)) and not isinstance(timeout_ms, bool):
            if timeout_ms > 0:
                return timeout_ms / 1000.0
        return self._invocation_timeout

    async def _invoke(
        self,
        protocol: ProtocolDefinition,
        endpoint: EndpointDefinition,
        name: str,
        schema: dict[str, Any],
        validator: jsonschema.Draft202012Validator,
        timeout: float,
        args: dict[str, Any],
    ) -> ToolResult:
        payload = apply_defaults(schema, args)
        errors = sorted(
            validator.iter_errors(payload), key=lambda e: [str(p) for p in e.absolute_path]
        )
        violations = [_format_violation(e) for e in errors]
        if violations:
            raise ParameterValidationError(
                f"Invalid arguments for {name}: "
                + "; ".join(f"{v['path']}: {v['message']}" for v in violations),
                tool_name=name,
                violations=violations,
            )

        request = self._build_request(endpoint, name, payload, timeout)

        auth = protocol.effective_auth(endpoint)
        if auth is not None:
            await self._injector.apply(protocol.name, auth, request, tool_name=name)

        limit = protocol.effective_rate_limit(endpoint)
        if limit is not None:
            decision = await self._rate_limiter.try_acquire(protocol.name, endpoint.name, limit)
            if not decision.allowed:
                raise RateLimitExceededError(
                    f"Rate limit of {limit.requests} requests per {limit.window} "
                    f"exceeded for {name}",
                    tool_name=name,
                    limit=limit.requests,
                    window=limit.window,
                    retry_after=decision.retry_after,
                )

        response = await self._transport.send(request)
        logger.debug("Tool invoked", status_code=response.status_code)
        return ToolResult.ok(response.body, status_code=response.status_code)

    @staticmethod
    def _build_request(
        endpoint: EndpointDefinition,
        name: str,
        payload: dict[str, Any],
        timeout: float,
    ) -> HttpRequest:
        """Substitute path placeholders and place remaining arguments."""
        netloc = urlsplit(endpoint.path).netloc
        if _PLACEHOLDER.search(netloc):
            raise InvocationError(
                f"Endpoint host of {name} must be fixed, got {netloc}", tool_name=name
            )
        remaining = dict(payload)
        missing = []

        def substitute(match: re.Match[str]) -> str:
            key = match.group(1)
            if key not in remaining or remaining[key] is None:
                missing.append(key)
                return match.group(0)
            return quote(str(_query_value(remaining.pop(key))), safe="")

        url = _PLACEHOLDER.sub(substitute, endpoint.path)
        if missing:
            raise ParameterValidationError(
                f"Missing path parameter(s) for {name}: {', '.join(missing)}",
                tool_name=name,
                violations=[
                    {"path": key, "message": "path parameter is required"} for key in missing
                ],
            )

        request = HttpRequest(method=endpoint.method, url=url, timeout=timeout)
        if endpoint.method in _BODY_METHODS:
            request.headers["Content-Type"] = "application/json"
            request.json = remaining
        else:
            request.params = {k: _query_value(v) for k, v in remaining.items()}
        return request


def validate_generated_tools(tools: Sequence[GeneratedTool]) -> ValidationResult:
    """Check generated tool names and descriptions.

    Errors: names that are not identifiers, duplicate names. Warnings: names
    longer than 64 characters, descriptions shorter than 10 or longer than
    500 characters.
    """
    result = ValidationResult()
    category = IssueCategory.BUSINESS_LOGIC
    seen: set[str] = set()
    for index, tool in enumerate(tools):
        path = f"tools.{index}"
        if not TOOL_NAME_PATTERN.match(tool.name):
            result.add_error(
                category, "INVALID_TOOL_NAME", f"Invalid tool name '{tool.name}'", f"{path}.name"
            )
        if tool.name in seen:
            result.add_error(
                category,
                "DUPLICATE_TOOL_NAME",
                f"Duplicate tool name '{tool.name}'",
                f"{path}.name",
            )
        seen.add(tool.name)
        if len(tool.name) > MAX_TOOL_NAME_LENGTH:
            result.add_warning(
                category,
                "TOOL_NAME_TOO_LONG",
                f"Tool name '{tool.name}' is longer than {MAX_TOOL_NAME_LENGTH} characters",
                f"{path}.name",
            )
        if len(tool.description) < _MIN_DESCRIPTION_LENGTH:
            result.add_warning(
                category,
                "SHORT_DESCRIPTION",
                f"Description of '{tool.name}' is very short",
                f"{path}.description",
            )
        elif len(tool.description) > _MAX_DESCRIPTION_LENGTH:
            result.add_warning(
                category,
                "LONG_DESCRIPTION",
                f"Description of '{tool.name}' is very long",
                f"{path}.description",
            )
    return result

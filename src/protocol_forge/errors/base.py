"""错误基类：提供分层错误体系和结构化错误上下文。

Base error classes for protocol-forge.

Provides a layered error hierarchy:
- ForgeError: Base class for all library errors
- ProtocolValidationError: Protocol rejected by the validator
  (SchemaError, BusinessLogicError, SecurityError)
- LoadError: Protocol source could not be read or parsed
- ToolNameCollisionError: Generated tool name already owned elsewhere
- ProtocolNotFoundError: Unknown protocol name in the registry
- InvocationError: Tool call failures (rate limit, parameters, credentials,
  transport)
- SubmissionError: Pull-request submission handling failures
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from protocol_forge.protocol.validator import ValidationResult


@dataclass
class ErrorContext:
    """Structured error context for diagnostics.

    Provides actionable information for debugging and error handling.
    """

    field_path: str | None = None
    """Path to the problematic field (e.g., 'endpoints.0.path')"""

    details: dict[str, Any] = field(default_factory=dict)
    """Additional details about the error"""

    source: str | None = None
    """Error source (e.g., 'validation', 'loader', 'invocation')"""

    hint: str | None = None
    """Actionable hint for resolving the error"""

    def __str__(self) -> str:
        parts = []
        if self.source:
            parts.append(f"[{self.source}]")
        if self.field_path:
            parts.append(f"at '{self.field_path}'")
        if self.hint:
            parts.append(f"(hint: {self.hint})")
        return " ".join(parts)


class ForgeError(Exception):
    """Base class for all protocol-forge errors.

    Attributes:
        message: Human-readable error message
        context: Optional structured error context
    """

    code: str = "forge_error"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
    ) -> None:
        self.message = message
        self.context = context or ErrorContext()
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message."""
        ctx_str = str(self.context)
        if ctx_str:
            return f"{self.message} {ctx_str}"
        return self.message

    def with_hint(self, hint: str) -> ForgeError:
        """Add a hint to this error."""
        self.context.hint = hint
        return self

    def to_payload(self) -> dict[str, Any]:
        """Render the error as a structured, JSON-safe payload."""
        payload: dict[str, Any] = {
            "type": type(self).__name__,
            "code": self.code,
            "message": self.message,
        }
        if self.context.field_path:
            payload["path"] = self.context.field_path
        if self.context.details:
            payload["details"] = dict(self.context.details)
        return payload


class ProtocolValidationError(ForgeError):
    """A protocol definition was rejected by the validator.

    Carries the full aggregated validation result so callers can report
    every issue rather than the first one.
    """

    code = "protocol_invalid"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        protocol_name: str | None = None,
        result: ValidationResult | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="validation")
        if protocol_name:
            ctx.details["protocol"] = protocol_name
        super().__init__(message, ctx)
        self.protocol_name = protocol_name
        self.result = result

    @property
    def errors(self) -> list[str]:
        if self.result is None:
            return [self.message]
        return [str(issue) for issue in self.result.errors]


class SchemaError(ProtocolValidationError):
    """Malformed, missing or mistyped protocol fields."""

    code = "schema_error"


class BusinessLogicError(ProtocolValidationError):
    """Duplicate names or paths, or the endpoint limit was exceeded."""

    code = "business_logic_error"


class SecurityError(ProtocolValidationError):
    """Non-HTTPS endpoint, disallowed domain or credential-looking URL."""

    code = "security_error"


class LoadError(ForgeError):
    """Error while fetching or parsing a protocol source.

    Raised when:
    - File not found or unreadable
    - Malformed JSON
    - Remote fetch failure or untrusted host
    - Fetch/validation exceeded the validation timeout
    """

    code = "load_error"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        source: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="loader")
        if source:
            ctx.details["source"] = source
        super().__init__(message, ctx)
        self.source = source
        self.__cause__ = cause


class ToolNameCollisionError(ForgeError):
    """A generated tool name is already owned by another protocol."""

    code = "tool_name_collision"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        tool_name: str,
        owner: str | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="lifecycle")
        ctx.details["tool"] = tool_name
        if owner:
            ctx.details["owner"] = owner
        super().__init__(message, ctx)
        self.tool_name = tool_name
        self.owner = owner


class ProtocolNotFoundError(ForgeError):
    """No protocol with the given name is registered."""

    code = "protocol_not_found"

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Protocol not found: {name}",
            ErrorContext(source="lifecycle", details={"protocol": name}),
        )
        self.name = name


class InvocationError(ForgeError):
    """Error during a generated tool call.

    Raised inside the invocation closure and converted into a structured
    failure payload at the invocation boundary.
    """

    code = "invocation_error"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        tool_name: str | None = None,
        url: str | None = None,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="invocation")
        if tool_name:
            ctx.details["tool"] = tool_name
        if url:
            ctx.details["url"] = url
        if status_code:
            ctx.details["status_code"] = status_code
        super().__init__(message, ctx)
        self.tool_name = tool_name
        self.url = url
        self.status_code = status_code
        self.__cause__ = cause


class RateLimitExceededError(InvocationError):
    """The endpoint's request window is exhausted."""

    code = "rate_limit_exceeded"

    def __init__(
        self,
        message: str,
        *,
        tool_name: str | None = None,
        limit: int,
        window: str,
        retry_after: float,
    ) -> None:
        ctx = ErrorContext(source="rate_limit")
        ctx.details.update(
            {"limit": limit, "window": window, "retry_after": round(retry_after, 3)}
        )
        super().__init__(message, ctx, tool_name=tool_name)
        self.limit = limit
        self.window = window
        self.retry_after = retry_after


class ParameterValidationError(InvocationError):
    """Arguments supplied to a tool do not satisfy its input schema."""

    code = "invalid_parameters"

    def __init__(
        self,
        message: str,
        *,
        tool_name: str | None = None,
        violations: list[dict[str, str]] | None = None,
    ) -> None:
        violations = violations or []
        ctx = ErrorContext(source="parameters")
        ctx.details["violations"] = violations
        if violations:
            ctx.field_path = violations[0].get("path") or None
        super().__init__(message, ctx, tool_name=tool_name)
        self.violations = violations


class MissingCredentialError(InvocationError):
    """Authentication is required but no credential could be resolved."""

    code = "missing_credential"


class SubmissionError(ForgeError):
    """Error while handling a pull-request submission."""

    code = "submission_error"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        pull_request_number: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="submission")
        if pull_request_number is not None:
            ctx.details["pull_request"] = pull_request_number
        super().__init__(message, ctx)
        self.pull_request_number = pull_request_number
        self.__cause__ = cause


class WebhookSignatureError(SubmissionError):
    """The webhook payload signature is missing or does not match."""

    code = "invalid_signature"

"""
Protocol validator.

Runs four ordered, independent rule layers over a raw protocol document:

1. Schema: structure, types and patterns (JSON Schema Draft 2020-12)
2. Business logic: endpoint limits, duplicate names and paths, parameters
3. Security: HTTPS, credential-looking URLs, domain allow-list
4. Performance: advisory warnings only

Each layer inspects the raw data on its own, so a structural problem in one
place does not hide unrelated issues elsewhere. Validation never raises:
all findings are aggregated into a ValidationResult.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import parse_qsl, unquote, urlsplit

import jsonschema

from protocol_forge.config import ValidationConfig
from protocol_forge.errors import (
    BusinessLogicError,
    ErrorContext,
    ProtocolValidationError,
    SchemaError,
    SecurityError,
)
from protocol_forge.protocol.models import WINDOW_SECONDS, ProtocolDefinition
from protocol_forge.protocol.schema import PARAMETER_TYPES, PROTOCOL_SCHEMA
from protocol_forge.telemetry import get_logger

logger = get_logger(__name__)

_PLACEHOLDER = re.compile(r"\{([^{}]+)\}")

_SECRET_QUERY_KEYS = frozenset(
    {
        "api_key",
        "apikey",
        "api-key",
        "key",
        "token",
        "access_token",
        "auth",
        "auth_token",
        "secret",
        "client_secret",
        "password",
        "passwd",
        "signature",
        "sig",
    }
)

_TOKEN_PREFIXES = re.compile(
    r"^(?:"
    r"(?:sk|pk|rk)[-_][A-Za-z0-9_-]{16,}"
    r"|gh[pousr]_[A-Za-z0-9]{20,}"
    r"|xox[abprs]-[A-Za-z0-9-]{10,}"
    r"|AKIA[0-9A-Z]{16}"
    r"|eyJ[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*"
    r")$"
)

_HIGH_ENTROPY_MIN_LENGTH = 32
_HIGH_ENTROPY_CHARS = re.compile(r"^[A-Za-z0-9_\-+/=]+$")
_SENSITIVE_TERMS = ("password", "secret", "private")
_UUID = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)


class IssueCategory(str, Enum):
    """Validation layer an issue belongs to."""

    SCHEMA = "SchemaError"
    BUSINESS_LOGIC = "BusinessLogicError"
    SECURITY = "SecurityError"
    PERFORMANCE = "PerformanceWarning"


_CATEGORY_ERRORS: dict[IssueCategory, type[ProtocolValidationError]] = {
    IssueCategory.SCHEMA: SchemaError,
    IssueCategory.BUSINESS_LOGIC: BusinessLogicError,
    IssueCategory.SECURITY: SecurityError,
}


@dataclass(frozen=True)
class ValidationIssue:
    """A single validation finding.

    Attributes:
        category: Layer that reported the issue
        code: Stable machine-readable code (e.g. ``DUPLICATE_ENDPOINT``)
        message: Human-readable description
        path: Dotted path to the offending field (e.g. ``endpoints.0.path``)
    """

    category: IssueCategory
    code: str
    message: str
    path: str = ""

    def __str__(self) -> str:
        if self.path:
            return f"[{self.category.value}] {self.path}: {self.message}"
        return f"[{self.category.value}] {self.message}"

    def to_dict(self) -> dict[str, str]:
        return {
            "category": self.category.value,
            "code": self.code,
            "message": self.message,
            "path": self.path,
        }


@dataclass
class ValidationResult:
    """Result of protocol validation."""

    valid: bool = True
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.valid

    def add_error(
        self, category: IssueCategory, code: str, message: str, path: str = ""
    ) -> None:
        """Add an error."""
        self.errors.append(ValidationIssue(category, code, message, path))
        self.valid = False

    def add_warning(
        self, category: IssueCategory, code: str, message: str, path: str = ""
    ) -> None:
        """Add a warning."""
        self.warnings.append(ValidationIssue(category, code, message, path))

    def merge(self, other: ValidationResult) -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        self.valid = self.valid and other.valid

    @property
    def error_messages(self) -> list[str]:
        return [str(issue) for issue in self.errors]

    @property
    def warning_messages(self) -> list[str]:
        return [str(issue) for issue in self.warnings]

    def has_error(self, code: str) -> bool:
        return any(issue.code == code for issue in self.errors)

    def has_warning(self, code: str) -> bool:
        return any(issue.code == code for issue in self.warnings)

    def errors_in(self, category: IssueCategory) -> list[ValidationIssue]:
        return [issue for issue in self.errors if issue.category is category]

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [issue.to_dict() for issue in self.errors],
            "warnings": [issue.to_dict() for issue in self.warnings],
        }


# ---- raw-document helpers -------------------------------------------------


def _iter_endpoints(raw: dict[str, Any]) -> Iterator[tuple[int, dict[str, Any]]]:
    endpoints = raw.get("endpoints")
    if not isinstance(endpoints, list):
        return
    for index, endpoint in enumerate(endpoints):
        if isinstance(endpoint, dict):
            yield index, endpoint


def _iter_parameters(
    endpoint: dict[str, Any],
) -> Iterator[tuple[int, dict[str, Any]]]:
    parameters = endpoint.get("parameters")
    if not isinstance(parameters, list):
        return
    for index, parameter in enumerate(parameters):
        if isinstance(parameter, dict):
            yield index, parameter


def _walk_parameter(
    parameter: dict[str, Any], path: str
) -> Iterator[tuple[str, dict[str, Any]]]:
    """Yield a parameter and every nested item/property definition."""
    yield path, parameter
    items = parameter.get("items")
    if isinstance(items, dict):
        yield from _walk_parameter(items, f"{path}.items")
    properties = parameter.get("properties")
    if isinstance(properties, dict):
        for name, child in properties.items():
            if isinstance(child, dict):
                yield from _walk_parameter(child, f"{path}.properties.{name}")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _matches_type(value: Any, type_name: str) -> bool:
    if type_name == "string":
        return isinstance(value, str)
    if type_name == "number":
        return _is_number(value)
    if type_name == "boolean":
        return isinstance(value, bool)
    if type_name == "array":
        return isinstance(value, list)
    if type_name == "object":
        return isinstance(value, dict)
    return False


_CONSTRAINT_KEYWORDS = (
    "minLength",
    "maxLength",
    "pattern",
    "enum",
    "minimum",
    "maximum",
    "exclusiveMinimum",
    "exclusiveMaximum",
    "multipleOf",
    "minItems",
    "maxItems",
    "uniqueItems",
)


def _constraint_schema(parameter: dict[str, Any]) -> dict[str, Any]:
    """JSON Schema for the value constraints of a raw parameter."""
    type_name = parameter.get("type")
    schema: dict[str, Any] = {}
    if type_name in PARAMETER_TYPES:
        schema["type"] = type_name
    for keyword in _CONSTRAINT_KEYWORDS:
        if keyword in parameter:
            schema[keyword] = parameter[keyword]
    items = parameter.get("items")
    if isinstance(items, dict):
        schema["items"] = _constraint_schema(items)
    properties = parameter.get("properties")
    if isinstance(properties, dict):
        schema["properties"] = {
            name: _constraint_schema(child)
            for name, child in properties.items()
            if isinstance(child, dict)
        }
        schema["required"] = [
            name
            for name, child in properties.items()
            if isinstance(child, dict) and child.get("required") is True
        ]
    if parameter.get("additionalProperties") is False:
        schema["additionalProperties"] = False
    return schema


def _is_shared_graphql_url(path: Any) -> bool:
    if not isinstance(path, str):
        return False
    segment = urlsplit(path).path.rstrip("/").rsplit("/", 1)[-1]
    return segment.lower() == "graphql"


def _rate_per_second(rate_limit: Any) -> float | None:
    if not isinstance(rate_limit, dict):
        return None
    requests = rate_limit.get("requests")
    window = rate_limit.get("window")
    seconds = WINDOW_SECONDS.get(window) if isinstance(window, str) else None
    if not _is_number(requests) or seconds is None:
        return None
    return requests / seconds


def _host_allowed(host: str, allowed_domains: list[str]) -> bool:
    host = host.lower().rstrip(".")
    for domain in allowed_domains:
        domain = domain.lower().strip().lstrip(".")
        if host == domain or host.endswith("." + domain):
            return True
    return False


def _is_placeholder(value: str) -> bool:
    return bool(_PLACEHOLDER.fullmatch(value))


def _looks_like_secret(segment: str) -> bool:
    """Heuristic for credential-like URL content."""
    if not segment or _PLACEHOLDER.search(segment):
        return False
    if _TOKEN_PREFIXES.match(segment):
        return True
    if len(segment) < _HIGH_ENTROPY_MIN_LENGTH or _UUID.match(segment):
        return False
    if not _HIGH_ENTROPY_CHARS.match(segment):
        return False
    has_digit = any(c.isdigit() for c in segment)
    has_alpha = any(c.isalpha() for c in segment)
    return has_digit and has_alpha


def find_credential_in_url(url: str) -> str | None:
    """Describe credential-looking content embedded in ``url``, if any.

    Args:
        url: Endpoint URL, possibly containing ``{param}`` placeholders

    Returns:
        Reason string, or None when the URL looks clean
    """
    parts = urlsplit(url)
    if parts.username or parts.password:
        return "URL embeds user credentials"

    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        if key.lower() in _SECRET_QUERY_KEYS and value and not _is_placeholder(value):
            return f"query parameter '{key}' carries a credential"
        if _looks_like_secret(value):
            return f"query parameter '{key}' looks like a secret token"

    for segment in parts.path.split("/"):
        segment = unquote(segment)
        if "=" in segment:
            key, _, value = segment.partition("=")
            if key.lower() in _SECRET_QUERY_KEYS and value and not _is_placeholder(value):
                return f"path segment '{key}=' carries a credential"
        if _looks_like_secret(segment):
            return "path segment looks like a secret token"

    return None


_Layer = Callable[[dict[str, Any], ValidationResult], None]


class ProtocolValidator:
    """Validates raw protocol definitions.

    Example:
        >>> validator = ProtocolValidator(ValidationConfig(strict_mode=True))
        >>> result = validator.validate(data)
        >>> if not result:
        ...     print("\\n".join(result.error_messages))
    """

    def __init__(self, config: ValidationConfig | None = None) -> None:
        """Initialize the validator.

        Args:
            config: Validation settings (defaults: non-strict, 50 endpoints)
        """
        self._config = config or ValidationConfig()
        self._schema_validator = jsonschema.Draft202012Validator(PROTOCOL_SCHEMA)
        self._layers: list[tuple[IssueCategory, _Layer]] = [
            (IssueCategory.SCHEMA, self._check_schema),
            (IssueCategory.BUSINESS_LOGIC, self._check_business_logic),
            (IssueCategory.SECURITY, self._check_security),
            (IssueCategory.PERFORMANCE, self._check_performance),
        ]

    @property
    def config(self) -> ValidationConfig:
        return self._config

    def validate(self, raw: Any) -> ValidationResult:
        """Validate a raw protocol document.

        Args:
            raw: Parsed JSON document

        Returns:
            ValidationResult with every error and warning found
        """
        result = ValidationResult()
        if not isinstance(raw, dict):
            result.add_error(
                IssueCategory.SCHEMA,
                "INVALID_DOCUMENT",
                f"Protocol definition must be a JSON object, got {type(raw).__name__}",
            )
            return result

        for category, layer in self._layers:
            try:
                layer(raw, result)
            except Exception as e:  # noqa: BLE001
                logger.exception(
                    "Validation layer failed", layer=category.value, protocol=raw.get("name")
                )
                result.add_error(category, "VALIDATION_FAILURE", f"Validation error: {e}")

        logger.debug(
            "Protocol validated",
            protocol=raw.get("name"),
            valid=result.valid,
            errors=len(result.errors),
            warnings=len(result.warnings),
        )
        return result

    def is_valid(self, raw: Any) -> bool:
        return self.validate(raw).valid

    def validate_or_raise(self, raw: Any) -> ProtocolDefinition:
        """Validate and parse a raw protocol document.

        Args:
            raw: Parsed JSON document

        Returns:
            The parsed ProtocolDefinition

        Raises:
            ProtocolValidationError: Subclass matching the first error's layer
        """
        result = self.validate(raw)
        if not result.valid:
            raise self.to_exception(raw, result)
        return ProtocolDefinition.model_validate(raw)

    @staticmethod
    def to_exception(raw: Any, result: ValidationResult) -> ProtocolValidationError:
        """Build the exception describing a failed validation result."""
        first = result.errors[0]
        error_cls = _CATEGORY_ERRORS.get(first.category, ProtocolValidationError)
        name = raw.get("name") if isinstance(raw, dict) else None
        return error_cls(
            f"Protocol validation failed: {'; '.join(result.error_messages)}",
            ErrorContext(source="validation", field_path=first.path or None),
            protocol_name=name if isinstance(name, str) else None,
            result=result,
        )

    # ---- layer 1: schema --------------------------------------------------

    def _check_schema(self, raw: dict[str, Any], result: ValidationResult) -> None:
        errors = sorted(
            self._schema_validator.iter_errors(raw),
            key=lambda e: [str(p) for p in e.absolute_path],
        )
        for error in errors:
            path = ".".join(str(p) for p in error.absolute_path)
            result.add_error(
                IssueCategory.SCHEMA,
                f"SCHEMA_{str(error.validator).upper()}",
                error.message,
                path,
            )

    # ---- layer 2: business logic ------------------------------------------

    def _check_business_logic(self, raw: dict[str, Any], result: ValidationResult) -> None:
        category = IssueCategory.BUSINESS_LOGIC
        endpoints = raw.get("endpoints")
        if isinstance(endpoints, list) and len(endpoints) > self._config.max_endpoints:
            result.add_error(
                category,
                "TOO_MANY_ENDPOINTS",
                f"Protocol declares {len(endpoints)} endpoints; "
                f"maximum is {self._config.max_endpoints}",
                "endpoints",
            )

        seen_names: dict[str, int] = {}
        seen_routes: dict[tuple[str, str], int] = {}
        for index, endpoint in _iter_endpoints(raw):
            base = f"endpoints.{index}"
            name = endpoint.get("name")
            if isinstance(name, str):
                if name in seen_names:
                    result.add_error(
                        category,
                        "DUPLICATE_ENDPOINT",
                        f"Duplicate endpoint name '{name}' "
                        f"(first declared at endpoints.{seen_names[name]})",
                        f"{base}.name",
                    )
                else:
                    seen_names[name] = index

            method, path = endpoint.get("method"), endpoint.get("path")
            if isinstance(method, str) and isinstance(path, str):
                route = (method.upper(), path)
                if route in seen_routes and not _is_shared_graphql_url(path):
                    result.add_error(
                        category,
                        "DUPLICATE_PATH_METHOD",
                        f"Duplicate route {method.upper()} {path} "
                        f"(first declared at endpoints.{seen_routes[route]})",
                        f"{base}.path",
                    )
                else:
                    seen_routes.setdefault(route, index)

            self._check_endpoint_parameters(endpoint, base, result)

    def _check_endpoint_parameters(
        self, endpoint: dict[str, Any], base: str, result: ValidationResult
    ) -> None:
        category = IssueCategory.BUSINESS_LOGIC
        declared: dict[str, dict[str, Any]] = {}
        for index, parameter in _iter_parameters(endpoint):
            path = f"{base}.parameters.{index}"
            name = parameter.get("name")
            if isinstance(name, str):
                if name in declared:
                    result.add_error(
                        category,
                        "DUPLICATE_PARAMETER",
                        f"Duplicate parameter name '{name}'",
                        f"{path}.name",
                    )
                else:
                    declared[name] = parameter
            for nested_path, nested in _walk_parameter(parameter, path):
                self._check_parameter(nested, nested_path, result)

        url = endpoint.get("path")
        if not isinstance(url, str):
            return
        for placeholder in _PLACEHOLDER.findall(url):
            parameter = declared.get(placeholder)
            if parameter is None:
                result.add_error(
                    category,
                    "UNKNOWN_PATH_PARAMETER",
                    f"Path placeholder '{{{placeholder}}}' has no matching parameter",
                    f"{base}.path",
                )
            elif parameter.get("required") is not True and "default" not in parameter:
                result.add_warning(
                    category,
                    "OPTIONAL_PATH_PARAMETER",
                    f"Path parameter '{placeholder}' is optional; calls without it "
                    "will fail",
                    f"{base}.path",
                )

    def _check_parameter(
        self, parameter: dict[str, Any], path: str, result: ValidationResult
    ) -> None:
        category = IssueCategory.BUSINESS_LOGIC
        type_name = parameter.get("type")
        if type_name not in PARAMETER_TYPES:
            return
        errors_before = len(result.errors)

        pattern = parameter.get("pattern")
        if isinstance(pattern, str):
            try:
                re.compile(pattern)
            except re.error as e:
                result.add_error(
                    category, "INVALID_PATTERN", f"Invalid regex pattern: {e}", f"{path}.pattern"
                )

        enum = parameter.get("enum")
        if isinstance(enum, list):
            bad = [v for v in enum if not _matches_type(v, type_name)]
            if bad:
                result.add_error(
                    category,
                    "INVALID_ENUM_TYPE",
                    f"Enum values {bad!r} do not match parameter type '{type_name}'",
                    f"{path}.enum",
                )

        for low, high in (
            ("minimum", "maximum"),
            ("minLength", "maxLength"),
            ("minItems", "maxItems"),
            ("exclusiveMinimum", "exclusiveMaximum"),
        ):
            lo, hi = parameter.get(low), parameter.get(high)
            if _is_number(lo) and _is_number(hi) and lo > hi:
                result.add_error(
                    category,
                    "INVALID_RANGE",
                    f"{low} ({lo}) is greater than {high} ({hi})",
                    f"{path}.{low}",
                )

        if type_name == "array" and not isinstance(parameter.get("items"), dict):
            result.add_warning(
                category, "MISSING_ARRAY_ITEMS", "Array parameter has no 'items' definition", path
            )
        if type_name == "object" and not isinstance(parameter.get("properties"), dict):
            result.add_warning(
                category,
                "MISSING_OBJECT_PROPERTIES",
                "Object parameter has no 'properties' definition",
                path,
            )

        if "default" in parameter and len(result.errors) == errors_before:
            self._check_default(parameter, path, result)

    def _check_default(
        self, parameter: dict[str, Any], path: str, result: ValidationResult
    ) -> None:
        default = parameter["default"]
        if default is None:
            return
        try:
            validator = jsonschema.Draft202012Validator(_constraint_schema(parameter))
            violation = next(iter(validator.iter_errors(default)), None)
        except (re.error, TypeError, jsonschema.exceptions.SchemaError):
            return
        if violation is not None:
            result.add_error(
                IssueCategory.BUSINESS_LOGIC,
                "INVALID_DEFAULT",
                f"Default value does not satisfy the parameter: {violation.message}",
                f"{path}.default",
            )

    # ---- layer 3: security ------------------------------------------------

    def _check_security(self, raw: dict[str, Any], result: ValidationResult) -> None:
        category = IssueCategory.SECURITY
        allowed = self._config.allowed_domains

        for index, endpoint in _iter_endpoints(raw):
            url = endpoint.get("path")
            if not isinstance(url, str):
                continue
            path = f"endpoints.{index}.path"
            parts = urlsplit(url)

            if parts.scheme.lower() != "https":
                result.add_error(
                    category, "INSECURE_ENDPOINT", f"Endpoint must use HTTPS: {url}", path
                )
            if not parts.hostname:
                result.add_error(
                    category,
                    "INVALID_ENDPOINT_URL",
                    f"Endpoint path must be an absolute URL with a host: {url}",
                    path,
                )
            if "{" in parts.netloc or "}" in parts.netloc:
                # Arguments may only fill the path, never choose the host
                result.add_error(
                    category,
                    "PLACEHOLDER_IN_HOST",
                    f"Endpoint host must not contain {{param}} placeholders: {url}",
                    path,
                )

            reason = find_credential_in_url(url)
            if reason:
                result.add_error(
                    category,
                    "CREDENTIAL_IN_URL",
                    f"Endpoint URL appears to embed a credential ({reason})",
                    path,
                )
            elif any(term in url.lower() for term in _SENSITIVE_TERMS):
                result.add_warning(
                    category,
                    "SENSITIVE_TERM_IN_URL",
                    "Endpoint URL mentions sensitive data; make sure no secret is embedded",
                    path,
                )

            if allowed and parts.hostname and not _host_allowed(parts.hostname, allowed):
                message = f"Host '{parts.hostname}' is not in the allowed domains"
                if self._config.strict_mode:
                    result.add_error(category, "DOMAIN_NOT_ALLOWED", message, path)
                else:
                    result.add_warning(category, "DOMAIN_NOT_ALLOWED", message, path)

            if endpoint.get("authentication") is True and not isinstance(
                raw.get("authentication"), dict
            ):
                result.add_error(
                    category,
                    "AUTHENTICATION_NOT_CONFIGURED",
                    "Endpoint requires authentication but the protocol declares none",
                    f"endpoints.{index}.authentication",
                )

        auth = raw.get("authentication")
        if auth is None:
            result.add_warning(
                category,
                "NO_AUTHENTICATION",
                "Protocol declares no authentication",
                "authentication",
            )
        elif isinstance(auth, dict) and auth.get("type") == "oauth2":
            token_url = auth.get("tokenUrl")
            if isinstance(token_url, str) and urlsplit(token_url).scheme.lower() != "https":
                result.add_error(
                    category,
                    "INSECURE_TOKEN_URL",
                    f"OAuth2 token URL must use HTTPS: {token_url}",
                    "authentication.tokenUrl",
                )

        for key in ("repository", "homepage"):
            value = raw.get(key)
            if isinstance(value, str) and urlsplit(value).scheme.lower() != "https":
                result.add_warning(
                    category,
                    f"INSECURE_{key.upper()}_URL",
                    f"{key.capitalize()} URL should use HTTPS: {value}",
                    key,
                )

    # ---- layer 4: performance ---------------------------------------------

    def _check_performance(self, raw: dict[str, Any], result: ValidationResult) -> None:
        category = IssueCategory.PERFORMANCE
        ceiling = self._config.max_requests_per_second
        protocol_rate = _rate_per_second(raw.get("rateLimit"))

        if protocol_rate is not None and protocol_rate > ceiling:
            result.add_warning(
                category,
                "RATE_LIMIT_TOO_HIGH",
                f"Rate limit of {protocol_rate:g} req/s exceeds {ceiling:g} req/s",
                "rateLimit",
            )

        endpoints = list(_iter_endpoints(raw))
        unlimited = []
        for index, endpoint in endpoints:
            base = f"endpoints.{index}"
            endpoint_rate = _rate_per_second(endpoint.get("rateLimit"))
            if endpoint_rate is None and protocol_rate is None:
                unlimited.append(index)
            if endpoint_rate is not None:
                if endpoint_rate > ceiling:
                    result.add_warning(
                        category,
                        "RATE_LIMIT_TOO_HIGH",
                        f"Rate limit of {endpoint_rate:g} req/s exceeds {ceiling:g} req/s",
                        f"{base}.rateLimit",
                    )
                if protocol_rate is not None and endpoint_rate > protocol_rate:
                    result.add_warning(
                        category,
                        "ENDPOINT_RATE_LIMIT_EXCEEDS_PROTOCOL",
                        "Endpoint rate limit is more permissive than the protocol default",
                        f"{base}.rateLimit",
                    )

            for p_index, parameter in _iter_parameters(endpoint):
                for nested_path, nested in _walk_parameter(
                    parameter, f"{base}.parameters.{p_index}"
                ):
                    if nested.get("type") == "array" and "maxItems" not in nested:
                        result.add_warning(
                            category,
                            "UNBOUNDED_ARRAY",
                            "Array parameter has no maxItems bound",
                            nested_path,
                        )

            response = endpoint.get("response")
            if isinstance(response, dict) and response.get("type") == "array":
                if "maxItems" not in response:
                    result.add_warning(
                        category,
                        "UNBOUNDED_RESPONSE",
                        "Array response has no maxItems bound; consider pagination",
                        f"{base}.response",
                    )

        if unlimited:
            result.add_warning(
                category,
                "NO_RATE_LIMIT",
                f"{len(unlimited)} endpoint(s) have no rate limit",
                "rateLimit",
            )

        metadata = raw.get("metadata")
        if isinstance(metadata, dict):
            timeout_ms = metadata.get("timeoutMs")
            if _is_number(timeout_ms) and timeout_ms > self._config.max_timeout_ms:
                result.add_warning(
                    category,
                    "LONG_TIMEOUT",
                    f"Timeout of {timeout_ms}ms exceeds {self._config.max_timeout_ms}ms",
                    "metadata.timeoutMs",
                )

        count = len(endpoints)
        near_limit = math.ceil(self._config.max_endpoints * 0.8)
        if near_limit <= count <= self._config.max_endpoints:
            result.add_warning(
                category,
                "ENDPOINT_COUNT_NEAR_LIMIT",
                f"{count} endpoints is close to the limit of {self._config.max_endpoints}",
                "endpoints",
            )

"""Tests for error module."""

from protocol_forge.errors import (
    BusinessLogicError,
    ErrorContext,
    ForgeError,
    InvocationError,
    LoadError,
    MissingCredentialError,
    ParameterValidationError,
    ProtocolNotFoundError,
    ProtocolValidationError,
    RateLimitExceededError,
    SchemaError,
    SecurityError,
    SubmissionError,
    ToolNameCollisionError,
    WebhookSignatureError,
)


class TestErrorContext:
    """Tests for ErrorContext."""

    def test_empty_context(self) -> None:
        """Test empty context string representation."""
        ctx = ErrorContext()
        assert str(ctx) == ""

    def test_context_with_source(self) -> None:
        """Test context with source."""
        ctx = ErrorContext(source="loader")
        assert "[loader]" in str(ctx)

    def test_context_with_field_path(self) -> None:
        """Test context with field path."""
        ctx = ErrorContext(field_path="endpoints.0.path")
        assert "at 'endpoints.0.path'" in str(ctx)

    def test_context_with_hint(self) -> None:
        ctx = ErrorContext(hint="Set WEATHER_API_API_KEY")
        assert "(hint: Set WEATHER_API_API_KEY)" in str(ctx)


class TestForgeError:
    """Tests for base error class."""

    def test_basic_error(self) -> None:
        """Test basic error creation."""
        error = ForgeError("Something went wrong")
        assert error.message == "Something went wrong"
        assert str(error) == "Something went wrong"

    def test_error_with_context(self) -> None:
        ctx = ErrorContext(source="lifecycle", hint="Unload the other protocol")
        error = ForgeError("Failed", ctx)
        assert "[lifecycle]" in str(error)
        assert "(hint: Unload the other protocol)" in str(error)

    def test_with_hint(self) -> None:
        error = ForgeError("Failed").with_hint("Check the file")
        assert error.context.hint == "Check the file"

    def test_payload(self) -> None:
        """Test the structured payload shape."""
        error = ForgeError("Failed", ErrorContext(field_path="name", details={"a": 1}))
        assert error.to_payload() == {
            "type": "ForgeError",
            "code": "forge_error",
            "message": "Failed",
            "path": "name",
            "details": {"a": 1},
        }

    def test_payload_omits_empty_fields(self) -> None:
        assert ForgeError("Failed").to_payload() == {
            "type": "ForgeError",
            "code": "forge_error",
            "message": "Failed",
        }


class TestHierarchy:
    """Tests for the error hierarchy."""

    def test_validation_errors(self) -> None:
        for cls in (SchemaError, BusinessLogicError, SecurityError):
            assert issubclass(cls, ProtocolValidationError)
            assert issubclass(cls, ForgeError)

    def test_invocation_errors(self) -> None:
        for cls in (RateLimitExceededError, ParameterValidationError, MissingCredentialError):
            assert issubclass(cls, InvocationError)

    def test_signature_error_is_submission_error(self) -> None:
        assert issubclass(WebhookSignatureError, SubmissionError)
        assert WebhookSignatureError("bad").code == "invalid_signature"


class TestSpecificErrors:
    """Tests for details carried by specific errors."""

    def test_validation_error_without_result(self) -> None:
        error = SchemaError("Bad protocol", protocol_name="weather-api")
        assert error.errors == ["Bad protocol"]
        assert error.to_payload()["details"] == {"protocol": "weather-api"}
        assert error.code == "schema_error"

    def test_load_error(self) -> None:
        cause = OSError("denied")
        error = LoadError("Cannot read", source="file:/tmp/p.json", cause=cause)
        assert error.__cause__ is cause
        assert error.to_payload()["details"] == {"source": "file:/tmp/p.json"}

    def test_collision(self) -> None:
        error = ToolNameCollisionError(
            "Collision", tool_name="weatherApi_getCurrent", owner="weather-api"
        )
        assert error.to_payload()["details"] == {
            "tool": "weatherApi_getCurrent",
            "owner": "weather-api",
        }

    def test_not_found(self) -> None:
        error = ProtocolNotFoundError("weather-api")
        assert error.name == "weather-api"
        assert str(error).startswith("Protocol not found: weather-api")

    def test_rate_limit(self) -> None:
        """Test rate limit error details."""
        error = RateLimitExceededError(
            "Too many calls",
            tool_name="weatherApi_getCurrent",
            limit=60,
            window="1m",
            retry_after=12.34567,
        )
        payload = error.to_payload()
        assert payload["code"] == "rate_limit_exceeded"
        assert payload["details"]["limit"] == 60
        assert payload["details"]["window"] == "1m"
        assert payload["details"]["retry_after"] == 12.346

    def test_parameter_violations(self) -> None:
        violations = [{"path": "city", "message": "'city' is a required property"}]
        error = ParameterValidationError("Invalid", violations=violations)
        payload = error.to_payload()
        assert payload["code"] == "invalid_parameters"
        assert payload["path"] == "city"
        assert payload["details"]["violations"] == violations

    def test_invocation_status_code(self, upstream_error) -> None:
        assert upstream_error.status_code == 503
        assert upstream_error.to_payload()["details"]["status_code"] == 503

    def test_submission_error(self) -> None:
        error = SubmissionError("Merge failed", pull_request_number=7)
        assert error.to_payload()["details"] == {"pull_request": 7}

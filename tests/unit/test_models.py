"""Tests for protocol definition models."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from protocol_forge.protocol import (
    ApiKeyAuth,
    ArrayParameter,
    EndpointDefinition,
    NumberParameter,
    OAuth2Auth,
    ObjectParameter,
    ProtocolDefinition,
    ProtocolValidator,
    RateLimitConfig,
    StringParameter,
)


class TestParameterVariants:
    """Tests for the parameter discriminated union."""

    def test_variant_selected_by_type(self, weather_protocol) -> None:
        """Each parameter parses into the variant named by its type."""
        protocol = ProtocolDefinition.model_validate(weather_protocol)
        city, units = protocol.endpoints[0].parameters
        days = protocol.endpoints[1].parameters[1]

        assert isinstance(city, StringParameter)
        assert city.min_length == 1
        assert units.enum == ["metric", "imperial"]
        assert isinstance(days, NumberParameter)
        assert days.maximum == 14

    def test_constraint_of_other_variant_rejected(self, weather_protocol) -> None:
        """A number parameter cannot carry string constraints."""
        weather_protocol["endpoints"][1]["parameters"][1]["minLength"] = 2
        with pytest.raises(ValidationError):
            ProtocolDefinition.model_validate(weather_protocol)

    def test_nested_array_and_object(self) -> None:
        """Items and properties parse recursively."""
        endpoint = EndpointDefinition.model_validate(
            {
                "name": "search",
                "method": "POST",
                "path": "https://api.example.com/search",
                "description": "Search records",
                "parameters": [
                    {
                        "name": "filters",
                        "type": "object",
                        "description": "Filters",
                        "properties": {
                            "tags": {
                                "type": "array",
                                "items": {"type": "string"},
                                "maxItems": 5,
                            }
                        },
                    }
                ],
            }
        )
        filters = endpoint.parameters[0]
        assert isinstance(filters, ObjectParameter)
        tags = filters.properties["tags"]
        assert isinstance(tags, ArrayParameter)
        assert isinstance(tags.items, StringParameter)
        assert tags.max_items == 5


class TestAuthVariants:
    """Tests for authentication variants."""

    def test_api_key(self, weather_protocol) -> None:
        protocol = ProtocolDefinition.model_validate(weather_protocol)
        assert isinstance(protocol.authentication, ApiKeyAuth)
        assert protocol.authentication.location == "header"
        assert protocol.authentication.name == "X-API-Key"

    def test_oauth2_token_url_alias(self, weather_protocol) -> None:
        """tokenUrl on the wire maps to token_url."""
        weather_protocol["authentication"] = {
            "type": "oauth2",
            "tokenUrl": "https://auth.example.com/token",
            "scopes": ["read"],
        }
        protocol = ProtocolDefinition.model_validate(weather_protocol)
        assert isinstance(protocol.authentication, OAuth2Auth)
        assert protocol.authentication.token_url == "https://auth.example.com/token"

    def test_unknown_auth_type_rejected(self, weather_protocol) -> None:
        weather_protocol["authentication"] = {"type": "magic"}
        with pytest.raises(ValidationError):
            ProtocolDefinition.model_validate(weather_protocol)


class TestProtocolDefinition:
    """Tests for ProtocolDefinition helpers."""

    def test_json_round_trip(self, weather_protocol) -> None:
        """Serializing and reparsing yields an equal definition."""
        protocol = ProtocolDefinition.model_validate(weather_protocol)
        reparsed = ProtocolDefinition.from_json(protocol.to_json())

        assert reparsed == protocol
        assert json.loads(protocol.to_json()) == weather_protocol
        assert ProtocolValidator().validate(json.loads(protocol.to_json())).valid

    def test_wire_names_are_camel_case(self, weather_protocol) -> None:
        data = ProtocolDefinition.model_validate(weather_protocol).to_dict()
        assert "rateLimit" in data
        assert "minLength" in data["endpoints"][0]["parameters"][0]

    def test_frozen(self, weather_protocol) -> None:
        protocol = ProtocolDefinition.model_validate(weather_protocol)
        with pytest.raises(ValidationError):
            protocol.name = "other"  # type: ignore[misc]

    def test_unknown_field_rejected(self, weather_protocol) -> None:
        weather_protocol["extra"] = True
        with pytest.raises(ValidationError):
            ProtocolDefinition.model_validate(weather_protocol)

    def test_endpoints_required(self, weather_protocol) -> None:
        weather_protocol["endpoints"] = []
        with pytest.raises(ValidationError):
            ProtocolDefinition.model_validate(weather_protocol)

    def test_effective_auth_override(self, weather_protocol) -> None:
        """authentication: false on an endpoint disables the protocol default."""
        weather_protocol["endpoints"][1]["authentication"] = False
        protocol = ProtocolDefinition.model_validate(weather_protocol)

        assert protocol.effective_auth(protocol.endpoints[0]) == protocol.authentication
        assert protocol.effective_auth(protocol.endpoints[1]) is None

    def test_effective_rate_limit_override(self, weather_protocol) -> None:
        weather_protocol["endpoints"][1]["rateLimit"] = {"requests": 5, "window": "1s"}
        protocol = ProtocolDefinition.model_validate(weather_protocol)

        assert protocol.effective_rate_limit(protocol.endpoints[0]).requests == 60
        assert protocol.effective_rate_limit(protocol.endpoints[1]).window == "1s"

    def test_endpoint_lookup_and_key(self, weather_protocol) -> None:
        protocol = ProtocolDefinition.model_validate(weather_protocol)
        assert protocol.endpoint("getForecast").path.endswith("{city}")
        assert protocol.endpoint("missing") is None
        assert protocol.key == "weather-api@1.0.0"

    def test_path_parameters(self, weather_protocol) -> None:
        protocol = ProtocolDefinition.model_validate(weather_protocol)
        assert protocol.endpoints[1].path_parameters() == ["city"]
        assert protocol.endpoints[0].path_parameters() == []


class TestRateLimitConfig:
    """Tests for RateLimitConfig."""

    def test_window_seconds(self) -> None:
        limit = RateLimitConfig(requests=120, window="1m")
        assert limit.window_seconds == 60
        assert limit.per_second == 2.0

    def test_requests_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            RateLimitConfig(requests=0, window="1s")

    def test_unknown_window_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RateLimitConfig(requests=1, window="1w")

"""
Protocol definition models.

These Pydantic models represent a community protocol definition: a
declarative description of an external HTTP API. Every configurable shape
(authentication, parameter type, rate-limit window) is a closed variant, so a
parameter of one type cannot carry another type's constraints.

Wire names are camelCase (``rateLimit``, ``minLength``, ``tokenUrl``); Python
attributes are snake_case.
"""

from __future__ import annotations

import json
import re
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]
RateLimitWindow = Literal["1s", "1m", "1h", "1d"]

WINDOW_SECONDS: dict[str, int] = {
    "1s": 1,
    "1m": 60,
    "1h": 3600,
    "1d": 86400,
}

_PLACEHOLDER = re.compile(r"\{([^{}]+)\}")


class _WireModel(BaseModel):
    """Immutable model with camelCase wire aliases and no unknown fields."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )


# ---- parameters ---------------------------------------------------------


class _ParameterBase(_WireModel):
    name: str | None = Field(default=None, description="Parameter name")
    description: str | None = Field(default=None, description="What the value means")
    required: bool = Field(default=False, description="Whether callers must supply it")
    default: Any = Field(default=None, description="Value used when omitted")


class StringParameter(_ParameterBase):
    """String parameter."""

    type: Literal["string"]
    min_length: int | None = Field(default=None, ge=0)
    max_length: int | None = Field(default=None, ge=0)
    pattern: str | None = None
    enum: list[str] | None = None


class NumberParameter(_ParameterBase):
    """Numeric parameter (integers and floats)."""

    type: Literal["number"]
    minimum: int | float | None = None
    maximum: int | float | None = None
    exclusive_minimum: int | float | None = None
    exclusive_maximum: int | float | None = None
    multiple_of: int | float | None = Field(default=None, gt=0)
    enum: list[int | float] | None = None


class BooleanParameter(_ParameterBase):
    """Boolean parameter."""

    type: Literal["boolean"]


class ArrayParameter(_ParameterBase):
    """Array parameter with an optional item definition."""

    type: Literal["array"]
    items: ParameterDefinition | None = None
    min_items: int | None = Field(default=None, ge=0)
    max_items: int | None = Field(default=None, ge=0)
    unique_items: bool | None = None


class ObjectParameter(_ParameterBase):
    """Object parameter with named, recursively typed properties."""

    type: Literal["object"]
    properties: dict[str, ParameterDefinition] | None = None
    additional_properties: bool | None = None


ParameterDefinition = Annotated[
    Union[
        StringParameter,
        NumberParameter,
        BooleanParameter,
        ArrayParameter,
        ObjectParameter,
    ],
    Field(discriminator="type"),
]

ArrayParameter.model_rebuild()
ObjectParameter.model_rebuild()


# ---- authentication -----------------------------------------------------


class ApiKeyAuth(_WireModel):
    """API key sent in a header, query parameter or cookie."""

    type: Literal["api_key"]
    location: Literal["header", "query", "cookie"]
    name: str = Field(min_length=1, description="Header, query or cookie name")


class BearerTokenAuth(_WireModel):
    """``Authorization: Bearer <token>``."""

    type: Literal["bearer_token"]


class BasicAuth(_WireModel):
    """HTTP basic authentication."""

    type: Literal["basic"]


class OAuth2Auth(_WireModel):
    """OAuth2 access token obtained from ``token_url``."""

    type: Literal["oauth2"]
    token_url: str = Field(min_length=1)
    scopes: list[str] = Field(default_factory=list)


AuthConfig = Annotated[
    Union[ApiKeyAuth, BearerTokenAuth, BasicAuth, OAuth2Auth],
    Field(discriminator="type"),
]


# ---- rate limits, endpoints, protocol -----------------------------------


class RateLimitConfig(_WireModel):
    """Fixed request budget per time window."""

    requests: int = Field(gt=0)
    window: RateLimitWindow

    @property
    def window_seconds(self) -> int:
        return WINDOW_SECONDS[self.window]

    @property
    def per_second(self) -> float:
        return self.requests / self.window_seconds


class ResponseDefinition(BaseModel):
    """Free-form description of an endpoint response."""

    model_config = ConfigDict(extra="allow", frozen=True)

    type: Literal["string", "number", "boolean", "object", "array"]
    description: str | None = None


class EndpointDefinition(_WireModel):
    """One HTTP operation of a protocol."""

    name: str = Field(description="camelCase endpoint identifier")
    method: HttpMethod
    path: str = Field(description="Absolute HTTPS URL, may embed {param} placeholders")
    description: str
    authentication: bool | None = Field(
        default=None, description="Override: false disables protocol authentication"
    )
    rate_limit: RateLimitConfig | None = None
    parameters: list[ParameterDefinition] = Field(default_factory=list)
    response: ResponseDefinition | None = None

    def path_parameters(self) -> list[str]:
        """Names of ``{placeholder}`` segments in the path, in order."""
        return _PLACEHOLDER.findall(self.path)


class ProtocolDefinition(_WireModel):
    """A validated community protocol definition.

    Example:
        >>> protocol = ProtocolDefinition.model_validate(data)
        >>> protocol.endpoints[0].name
        'getCurrent'
    """

    name: str
    version: str
    description: str
    author: str
    license: str
    repository: str | None = None
    homepage: str | None = None
    dependencies: dict[str, str] | None = None
    authentication: AuthConfig | None = None
    rate_limit: RateLimitConfig | None = None
    endpoints: list[EndpointDefinition] = Field(min_length=1)
    metadata: dict[str, Any] | None = None

    def effective_auth(
        self, endpoint: EndpointDefinition
    ) -> ApiKeyAuth | BearerTokenAuth | BasicAuth | OAuth2Auth | None:
        """Authentication applying to ``endpoint`` (override, else default)."""
        if endpoint.authentication is False:
            return None
        return self.authentication

    def effective_rate_limit(self, endpoint: EndpointDefinition) -> RateLimitConfig | None:
        """Rate limit applying to ``endpoint`` (override, else default)."""
        return endpoint.rate_limit or self.rate_limit

    def endpoint(self, name: str) -> EndpointDefinition | None:
        for endpoint in self.endpoints:
            if endpoint.name == name:
                return endpoint
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the wire format that was parsed."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, text: str) -> ProtocolDefinition:
        return cls.model_validate(json.loads(text))

    @property
    def key(self) -> str:
        """``name@version`` identifier."""
        return f"{self.name}@{self.version}"

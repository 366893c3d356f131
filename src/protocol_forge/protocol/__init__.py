"""协议模块：社区协议定义的数据模型与分层校验。

Protocol module - definition models and layered validation.

The loader lives in ``protocol_forge.protocol.loader``.
"""

from protocol_forge.protocol.models import (
    ApiKeyAuth,
    ArrayParameter,
    AuthConfig,
    BasicAuth,
    BearerTokenAuth,
    BooleanParameter,
    EndpointDefinition,
    NumberParameter,
    OAuth2Auth,
    ObjectParameter,
    ParameterDefinition,
    ProtocolDefinition,
    RateLimitConfig,
    ResponseDefinition,
    StringParameter,
)
from protocol_forge.protocol.validator import (
    IssueCategory,
    ProtocolValidator,
    ValidationIssue,
    ValidationResult,
    find_credential_in_url,
)

__all__ = [
    "ApiKeyAuth",
    "ArrayParameter",
    "AuthConfig",
    "BasicAuth",
    "BearerTokenAuth",
    "BooleanParameter",
    "EndpointDefinition",
    "IssueCategory",
    "NumberParameter",
    "OAuth2Auth",
    "ObjectParameter",
    "ParameterDefinition",
    "ProtocolDefinition",
    "ProtocolValidator",
    "RateLimitConfig",
    "ResponseDefinition",
    "StringParameter",
    "ValidationIssue",
    "ValidationResult",
    "find_credential_in_url",
]

"""错误体系：协议校验、加载、调用与提交流程的结构化错误类型。

Error hierarchy for protocol-forge.
"""

from protocol_forge.errors.base import (
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

__all__ = [
    "BusinessLogicError",
    "ErrorContext",
    "ForgeError",
    "InvocationError",
    "LoadError",
    "MissingCredentialError",
    "ParameterValidationError",
    "ProtocolNotFoundError",
    "ProtocolValidationError",
    "RateLimitExceededError",
    "SchemaError",
    "SecurityError",
    "SubmissionError",
    "ToolNameCollisionError",
    "WebhookSignatureError",
]

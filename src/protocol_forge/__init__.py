"""声明式协议编译器：将社区 API 协议编译为可调用的代理工具。

protocol-forge: community API protocols compiled into agent tools.

A protocol is a JSON (or YAML) document describing an HTTP API. It is
validated in layers, compiled into one tool per endpoint, loaded and
hot-swapped at runtime, and can be submitted through pull requests.
"""
from __future__ import annotations

from protocol_forge._features import HAS_KEYRING, require_extra
from protocol_forge.config import (
    ForgeConfig,
    LoadingConfig,
    LoggingConfig,
    SubmissionConfig,
    ValidationConfig,
)
from protocol_forge.errors import (
    ForgeError,
    InvocationError,
    LoadError,
    ProtocolNotFoundError,
    ProtocolValidationError,
    SubmissionError,
    ToolNameCollisionError,
)
from protocol_forge.generation import GeneratedTool, ToolGenerator
from protocol_forge.lifecycle import (
    EventBus,
    InMemoryToolRegistry,
    LifecycleManager,
    LoadedProtocol,
    ProtocolErrored,
    ProtocolLoaded,
    ProtocolStatus,
    ProtocolUnloaded,
)
from protocol_forge.protocol import (
    ProtocolDefinition,
    ProtocolValidator,
    ValidationResult,
)
from protocol_forge.protocol.loader import (
    DynamicLoader,
    FileSource,
    InlineSource,
    LoadedProtocolArtifact,
    UrlSource,
)
from protocol_forge.types import ToolCall, ToolDefinition, ToolResult

__version__ = "0.1.0"

__all__ = [
    # Feature flags
    "HAS_KEYRING",
    "require_extra",
    # Configuration
    "ForgeConfig",
    "LoadingConfig",
    "LoggingConfig",
    "SubmissionConfig",
    "ValidationConfig",
    # Errors
    "ForgeError",
    "InvocationError",
    "LoadError",
    "ProtocolNotFoundError",
    "ProtocolValidationError",
    "SubmissionError",
    "ToolNameCollisionError",
    # Protocols
    "DynamicLoader",
    "FileSource",
    "InlineSource",
    "LoadedProtocolArtifact",
    "ProtocolDefinition",
    "ProtocolValidator",
    "UrlSource",
    "ValidationResult",
    # Tools
    "GeneratedTool",
    "ToolCall",
    "ToolDefinition",
    "ToolGenerator",
    "ToolResult",
    # Lifecycle
    "EventBus",
    "InMemoryToolRegistry",
    "LifecycleManager",
    "LoadedProtocol",
    "ProtocolErrored",
    "ProtocolLoaded",
    "ProtocolStatus",
    "ProtocolUnloaded",
    # Version
    "__version__",
]

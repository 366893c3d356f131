"""
Transport module - HTTP calls and credential injection for generated tools.
"""

from protocol_forge.transport.auth import (
    CredentialInjector,
    CredentialProvider,
    EnvironmentCredentialProvider,
    StaticCredentialProvider,
    env_var_name,
    store_secret,
)
from protocol_forge.transport.http import (
    HttpRequest,
    HttpResponse,
    HttpTransport,
    HttpxTransport,
    get_user_agent,
)

__all__ = [
    "CredentialInjector",
    "CredentialProvider",
    "EnvironmentCredentialProvider",
    "HttpRequest",
    "HttpResponse",
    "HttpTransport",
    "HttpxTransport",
    "StaticCredentialProvider",
    "env_var_name",
    "get_user_agent",
    "store_secret",
]

"""
Credential resolution and injection for generated tools.

Secrets never live in protocol definitions. A CredentialProvider resolves
them by protocol name, and CredentialInjector places them where the
protocol's authentication block says:

- api_key: header, query parameter or cookie named by the protocol
- bearer_token: ``Authorization: Bearer <token>``
- basic: ``Authorization: Basic base64(username:password)``
- oauth2: an access token, or one obtained with client credentials
"""

from __future__ import annotations

import asyncio
import base64
import os
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from protocol_forge._features import HAS_KEYRING, require_extra
from protocol_forge.errors import ErrorContext, InvocationError, MissingCredentialError
from protocol_forge.protocol.models import (
    ApiKeyAuth,
    BasicAuth,
    BearerTokenAuth,
    OAuth2Auth,
)
from protocol_forge.telemetry import get_logger
from protocol_forge.transport.http import HttpRequest

if TYPE_CHECKING:
    from protocol_forge.transport.http import HttpTransport

logger = get_logger(__name__)

KEYRING_SERVICE = "protocol-forge"

# Secret kinds looked up by the injector
API_KEY = "api_key"
TOKEN = "token"
USERNAME = "username"
PASSWORD = "password"
ACCESS_TOKEN = "access_token"
CLIENT_ID = "client_id"
CLIENT_SECRET = "client_secret"


def env_var_name(protocol_name: str, kind: str) -> str:
    """Environment variable holding a secret, e.g. ``WEATHER_API_API_KEY``."""
    return f"{protocol_name.upper().replace('-', '_')}_{kind.upper()}"


class CredentialProvider(ABC):
    """Resolves secret values by protocol name."""

    @abstractmethod
    async def get_secret(self, protocol_name: str, kind: str) -> str | None:
        """Return the secret of ``kind`` for a protocol, or None."""
        raise NotImplementedError


class StaticCredentialProvider(CredentialProvider):
    """Credentials from an in-memory mapping.

    Example:
        >>> provider = StaticCredentialProvider({"weather-api": {"api_key": "k"}})
    """

    def __init__(self, secrets: Mapping[str, Mapping[str, str]] | None = None) -> None:
        self._secrets: dict[str, dict[str, str]] = {
            name: dict(values) for name, values in (secrets or {}).items()
        }

    def set_secret(self, protocol_name: str, kind: str, value: str) -> None:
        self._secrets.setdefault(protocol_name, {})[kind] = value

    async def get_secret(self, protocol_name: str, kind: str) -> str | None:
        return self._secrets.get(protocol_name, {}).get(kind)


class EnvironmentCredentialProvider(CredentialProvider):
    """Credentials from environment variables, then the system keyring.

    Resolution order:
    1. Environment variable ``{PROTOCOL}_{KIND}`` (e.g. ``WEATHER_API_TOKEN``)
    2. System keyring entry ``protocol-forge`` / ``{protocol}:{kind}``
       (when the keyring extra is installed)
    """

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        use_keyring: bool = True,
    ) -> None:
        self._environ = environ
        self._use_keyring = use_keyring and HAS_KEYRING

    async def get_secret(self, protocol_name: str, kind: str) -> str | None:
        env = os.environ if self._environ is None else self._environ
        value = env.get(env_var_name(protocol_name, kind))
        if value:
            return value
        if self._use_keyring:
            return await asyncio.to_thread(_try_keyring, protocol_name, kind)
        return None


def _try_keyring(protocol_name: str, kind: str) -> str | None:
    """Try to read a secret from the system keyring."""
    import keyring
    from keyring.errors import KeyringError

    try:
        return keyring.get_password(KEYRING_SERVICE, f"{protocol_name}:{kind}")
    except KeyringError as e:
        # Common in containers and CI without a keyring backend
        logger.debug("Keyring lookup failed", protocol=protocol_name, error=str(e))
        return None


def store_secret(protocol_name: str, kind: str, value: str) -> None:
    """Save a secret to the system keyring.

    Raises:
        ImportError: If the keyring extra is not installed
    """
    require_extra("keyring", "keyring")
    import keyring

    keyring.set_password(KEYRING_SERVICE, f"{protocol_name}:{kind}", value)


class CredentialInjector:
    """Applies a protocol's authentication to outgoing requests.

    Example:
        >>> injector = CredentialInjector(EnvironmentCredentialProvider(), transport)
        >>> await injector.apply("weather-api", protocol.authentication, request)
    """

    def __init__(
        self,
        provider: CredentialProvider,
        transport: HttpTransport | None = None,
    ) -> None:
        """Initialize the injector.

        Args:
            provider: Source of secret values
            transport: Transport used for OAuth2 token requests
        """
        self._provider = provider
        self._transport = transport
        self._tokens: dict[str, tuple[str, float]] = {}
        self._token_lock = asyncio.Lock()

    async def _require(self, protocol_name: str, kind: str, tool_name: str | None) -> str:
        value = await self._provider.get_secret(protocol_name, kind)
        if not value:
            raise MissingCredentialError(
                f"No '{kind}' credential available for protocol '{protocol_name}'",
                ErrorContext(
                    source="credentials",
                    hint=f"Set {env_var_name(protocol_name, kind)}",
                ),
                tool_name=tool_name,
            )
        return value

    async def apply(
        self,
        protocol_name: str,
        auth: ApiKeyAuth | BearerTokenAuth | BasicAuth | OAuth2Auth,
        request: HttpRequest,
        tool_name: str | None = None,
    ) -> None:
        """Inject credentials into ``request``.

        Raises:
            MissingCredentialError: If a required secret cannot be resolved
        """
        if isinstance(auth, ApiKeyAuth):
            key = await self._require(protocol_name, API_KEY, tool_name)
            if auth.location == "header":
                request.headers[auth.name] = key
            elif auth.location == "query":
                request.params[auth.name] = key
            else:
                request.cookies[auth.name] = key
        elif isinstance(auth, BearerTokenAuth):
            token = await self._require(protocol_name, TOKEN, tool_name)
            request.headers["Authorization"] = f"Bearer {token}"
        elif isinstance(auth, BasicAuth):
            username = await self._require(protocol_name, USERNAME, tool_name)
            password = await self._require(protocol_name, PASSWORD, tool_name)
            encoded = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
            request.headers["Authorization"] = f"Basic {encoded}"
        elif isinstance(auth, OAuth2Auth):
            token = await self._oauth2_token(protocol_name, auth, tool_name)
            request.headers["Authorization"] = f"Bearer {token}"

    async def _oauth2_token(
        self, protocol_name: str, auth: OAuth2Auth, tool_name: str | None
    ) -> str:
        token = await self._provider.get_secret(protocol_name, ACCESS_TOKEN)
        if token:
            return token

        async with self._token_lock:
            cached = self._tokens.get(protocol_name)
            if cached and cached[1] > time.monotonic():
                return cached[0]

            client_id = await self._provider.get_secret(protocol_name, CLIENT_ID)
            client_secret = await self._provider.get_secret(protocol_name, CLIENT_SECRET)
            transport = self._transport
            if not client_id or not client_secret or transport is None:
                raise MissingCredentialError(
                    f"No OAuth2 access token or client credentials for "
                    f"protocol '{protocol_name}'",
                    tool_name=tool_name,
                )

            token, expires_in = await self._request_token(
                transport, auth, client_id, client_secret, tool_name
            )
            # Refresh slightly before the server-side expiry
            self._tokens[protocol_name] = (token, time.monotonic() + max(expires_in - 30, 0))
            logger.info("Obtained OAuth2 token", protocol=protocol_name, expires_in=expires_in)
            return token

    async def _request_token(
        self,
        transport: HttpTransport,
        auth: OAuth2Auth,
        client_id: str,
        client_secret: str,
        tool_name: str | None,
    ) -> tuple[str, float]:
        body: dict[str, Any] = {
            "grant_type": "client_credentials",
            "client_id": client_id,
            "client_secret": client_secret,
        }
        if auth.scopes:
            body["scope"] = " ".join(auth.scopes)
        response = await transport.send(
            HttpRequest(method="POST", url=auth.token_url, json=body)
        )
        payload = response.body if isinstance(response.body, dict) else {}
        token = payload.get("access_token")
        if not isinstance(token, str) or not token:
            raise InvocationError(
                "OAuth2 token response did not contain an access_token",
                tool_name=tool_name,
                url=auth.token_url,
            )
        expires_in = payload.get("expires_in", 3600)
        if not isinstance(expires_in, (int, float)):
            expires_in = 3600
        return token, float(expires_in)

    def forget_token(self, protocol_name: str) -> None:
        """Drop a cached OAuth2 token (e.g. when a protocol is unloaded)."""
        self._tokens.pop(protocol_name, None)

"""HTTP 传输层：基于 httpx 的异步 HTTP 客户端。

HTTP transport used by generated tools.

Provides:
- A transport interface generated tools call through
- An httpx implementation with per-request timeouts
- Mapping of transport failures to InvocationError
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any

import httpx

from protocol_forge.errors import InvocationError
from protocol_forge.telemetry import get_logger

logger = get_logger(__name__)

_DEFAULT_TIMEOUT = 30.0
_DEFAULT_CONNECT_TIMEOUT = 10.0

_UA_VERSION: str | None = None


def _trust_env_enabled() -> bool:
    """Use env proxy settings only when explicitly enabled."""
    return os.getenv("PROTOCOL_FORGE_HTTP_TRUST_ENV", "0") == "1"


def get_user_agent() -> str:
    """User-Agent sent with every outgoing request (version cached)."""
    global _UA_VERSION
    if _UA_VERSION is None:
        try:
            from importlib.metadata import PackageNotFoundError, version

            _UA_VERSION = version("protocol-forge")
        except PackageNotFoundError:
            _UA_VERSION = "0.1.0"
    return f"protocol-forge/{_UA_VERSION}"


@dataclass
class HttpRequest:
    """An outgoing request built by a generated tool.

    Attributes:
        method: HTTP method
        url: Absolute URL with placeholders already substituted
        headers: Request headers
        params: Query parameters
        cookies: Cookies
        json: JSON body (POST, PUT, PATCH)
        timeout: Per-call timeout in seconds
    """

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    cookies: dict[str, str] = field(default_factory=dict)
    json: Any = None
    timeout: float | None = None


@dataclass
class HttpResponse:
    """Response returned to a generated tool."""

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None


class HttpTransport(ABC):
    """Transport collaborator performing a generated tool's HTTP call.

    Implementations raise InvocationError on network failure, timeout or an
    error status.
    """

    @abstractmethod
    async def send(self, request: HttpRequest) -> HttpResponse:
        raise NotImplementedError

    async def close(self) -> None:
        """Release resources held by the transport."""


class HttpxTransport(HttpTransport):
    """HTTP transport backed by a shared httpx.AsyncClient.

    Example:
        >>> transport = HttpxTransport(timeout=10.0)
        >>> response = await transport.send(HttpRequest("GET", "https://api.example.com/v1"))
        >>> response.body
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        proxy: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize HTTP transport.

        Args:
            timeout: Default request timeout in seconds
            proxy: Proxy URL
            client: Pre-built client (owned by the caller)
        """
        self._timeout = timeout if timeout is not None else _DEFAULT_TIMEOUT
        if proxy is None and _trust_env_enabled():
            proxy = os.getenv("PROTOCOL_FORGE_PROXY_URL")
        self._proxy = proxy
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=_DEFAULT_CONNECT_TIMEOUT),
                proxy=self._proxy,
                trust_env=_trust_env_enabled(),
                follow_redirects=False,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _build_headers(self, request: HttpRequest) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": get_user_agent(),
        }
        headers.update(request.headers)
        if request.cookies:
            headers["Cookie"] = "; ".join(f"{k}={v}" for k, v in request.cookies.items())
        return headers

    async def send(self, request: HttpRequest) -> HttpResponse:
        """Perform the request.

        Args:
            request: Request to send

        Returns:
            HttpResponse with a parsed JSON body (text when not JSON)

        Raises:
            InvocationError: On network errors, timeouts and 4xx/5xx responses
        """
        client = self._get_client()
        timeout = httpx.Timeout(
            request.timeout if request.timeout is not None else self._timeout,
            connect=_DEFAULT_CONNECT_TIMEOUT,
        )

        try:
            response = await client.request(
                method=request.method,
                url=request.url,
                headers=self._build_headers(request),
                params=request.params or None,
                json=request.json,
                timeout=timeout,
            )
        except httpx.ConnectError as e:
            raise InvocationError(
                f"Connection failed: {e}", url=request.url, cause=e
            ) from e
        except httpx.TimeoutException as e:
            raise InvocationError(
                f"Request timed out after {timeout.read}s", url=request.url, cause=e
            ) from e
        except httpx.HTTPError as e:
            raise InvocationError(f"HTTP error: {e}", url=request.url, cause=e) from e

        body: Any = response.text
        with suppress(ValueError):
            body = response.json()

        if response.status_code >= 400:
            error = InvocationError(
                f"Upstream returned HTTP {response.status_code}",
                url=request.url,
                status_code=response.status_code,
            )
            error.context.details["body"] = body
            logger.debug(
                "Upstream error response",
                url=request.url,
                status_code=response.status_code,
            )
            raise error

        return HttpResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=body,
        )

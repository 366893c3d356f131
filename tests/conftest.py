"""Root pytest fixtures for protocol-forge tests."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

import pytest

from protocol_forge.config import LoadingConfig
from protocol_forge.errors import InvocationError
from protocol_forge.generation import ToolGenerator
from protocol_forge.lifecycle import EventBus, InMemoryToolRegistry, LifecycleManager
from protocol_forge.protocol.loader import DynamicLoader
from protocol_forge.resilience import FixedWindowRateLimiter
from protocol_forge.transport import (
    HttpRequest,
    HttpResponse,
    HttpTransport,
    StaticCredentialProvider,
)

WEATHER_PROTOCOL: dict[str, Any] = {
    "name": "weather-api",
    "version": "1.0.0",
    "description": "Current conditions and forecasts from the example weather service",
    "author": "Forecast Team",
    "license": "MIT",
    "repository": "https://github.com/example/weather-protocol",
    "authentication": {"type": "api_key", "location": "header", "name": "X-API-Key"},
    "rateLimit": {"requests": 60, "window": "1m"},
    "endpoints": [
        {
            "name": "getCurrent",
            "method": "GET",
            "path": "https://api.weather.example.com/v1/current",
            "description": "Get the current weather for a city",
            "parameters": [
                {
                    "name": "city",
                    "type": "string",
                    "description": "City name",
                    "required": True,
                    "minLength": 1,
                },
                {
                    "name": "units",
                    "type": "string",
                    "description": "Unit system",
                    "enum": ["metric", "imperial"],
                    "default": "metric",
                },
            ],
        },
        {
            "name": "getForecast",
            "method": "GET",
            "path": "https://api.weather.example.com/v1/forecast/{city}",
            "description": "Get a multi-day forecast for a city",
            "parameters": [
                {
                    "name": "city",
                    "type": "string",
                    "description": "City name",
                    "required": True,
                },
                {
                    "name": "days",
                    "type": "number",
                    "description": "Number of days",
                    "minimum": 1,
                    "maximum": 14,
                    "default": 3,
                },
            ],
        },
    ],
}


class FakeTransport(HttpTransport):
    """Transport that records requests and replays queued responses."""

    def __init__(self) -> None:
        self.requests: list[HttpRequest] = []
        self.responses: list[HttpResponse | Exception] = []
        self.closed = False

    def queue(self, response: HttpResponse | Exception) -> None:
        self.responses.append(response)

    async def send(self, request: HttpRequest) -> HttpResponse:
        self.requests.append(request)
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return HttpResponse(status_code=200, body={"ok": True})

    async def close(self) -> None:
        self.closed = True

    @property
    def last(self) -> HttpRequest:
        return self.requests[-1]


@pytest.fixture
def weather_protocol() -> dict[str, Any]:
    """A valid two-endpoint protocol document (fresh copy per test)."""
    return copy.deepcopy(WEATHER_PROTOCOL)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def credentials() -> StaticCredentialProvider:
    return StaticCredentialProvider({"weather-api": {"api_key": "test-key"}})


@pytest.fixture
def rate_limiter() -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter()


@pytest.fixture
def generator(
    transport: FakeTransport,
    credentials: StaticCredentialProvider,
    rate_limiter: FixedWindowRateLimiter,
) -> ToolGenerator:
    return ToolGenerator(
        transport=transport, credentials=credentials, rate_limiter=rate_limiter
    )


@pytest.fixture
def loader(generator: ToolGenerator) -> DynamicLoader:
    return DynamicLoader(LoadingConfig(validation_timeout=5.0), generator=generator)


@pytest.fixture
def registry() -> InMemoryToolRegistry:
    return InMemoryToolRegistry()


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def manager(
    loader: DynamicLoader, registry: InMemoryToolRegistry, events: EventBus
) -> LifecycleManager:
    return LifecycleManager(loader, registry, events)


@pytest.fixture
def write_protocol(tmp_path: Path):
    """Write a protocol document to a file and return its path."""

    def write(data: Any, filename: str = "protocol.json") -> Path:
        path = tmp_path / filename
        path.write_text(data if isinstance(data, str) else json.dumps(data), encoding="utf-8")
        return path

    return write


@pytest.fixture
def upstream_error() -> InvocationError:
    return InvocationError(
        "Upstream returned HTTP 503",
        url="https://api.weather.example.com/v1/current",
        status_code=503,
    )

"""
Dynamic loader for community protocols.

Supports:
- Local files (JSON, or YAML for ``.yaml``/``.yml``)
- Remote URLs (optionally restricted to trusted hosts)
- Inline content (e.g. a file fetched from a pull request)
- TTL caching of compiled artifacts

Loading is fetch -> parse -> validate -> generate tools. Malformed content is
a LoadError; a document that parses but fails validation yields an artifact
carrying the validation errors and no tools.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union
from urllib.parse import urlsplit

import httpx
import yaml
from pydantic import ValidationError as ModelValidationError

from protocol_forge.cache import CacheBackend, MemoryCache, NullCache
from protocol_forge.config import LoadingConfig
from protocol_forge.errors import ErrorContext, ForgeError, LoadError
from protocol_forge.generation.tools import (
    GeneratedTool,
    ToolGenerator,
    validate_generated_tools,
)
from protocol_forge.protocol.models import ProtocolDefinition
from protocol_forge.protocol.validator import (
    IssueCategory,
    ProtocolValidator,
    ValidationResult,
)
from protocol_forge.telemetry import get_logger
from protocol_forge.transport.http import get_user_agent

logger = get_logger(__name__)

_YAML_SUFFIXES = (".yaml", ".yml")
DEFAULT_SUFFIXES = (".json", *_YAML_SUFFIXES)


@dataclass(frozen=True)
class FileSource:
    """Protocol stored on the local filesystem."""

    path: Path

    def __init__(self, path: str | Path) -> None:
        object.__setattr__(self, "path", Path(path))

    @property
    def key(self) -> str:
        return f"file:{self.path.resolve()}"

    def __str__(self) -> str:
        return str(self.path)


@dataclass(frozen=True)
class UrlSource:
    """Protocol served over HTTP(S)."""

    url: str

    @property
    def key(self) -> str:
        return f"url:{self.url}"

    def __str__(self) -> str:
        return self.url


@dataclass(frozen=True)
class InlineSource:
    """Protocol content already in memory.

    Attributes:
        content: Raw JSON text
        label: Where the content came from (e.g. ``pr#42:protocols/x.json``)
    """

    content: str
    label: str = "inline"

    @classmethod
    def from_dict(cls, data: dict[str, Any], label: str = "inline") -> InlineSource:
        return cls(json.dumps(data), label)

    @property
    def key(self) -> str:
        digest = hashlib.sha256(self.content.encode("utf-8")).hexdigest()[:16]
        return f"inline:{self.label}:{digest}"

    def __str__(self) -> str:
        return self.label


ProtocolSource = Union[FileSource, UrlSource, InlineSource]


@dataclass
class LoadedProtocolArtifact:
    """Result of loading one source.

    Attributes:
        source: Where the protocol came from
        protocol: Parsed definition (None when validation failed)
        tools: Generated tools (empty when validation failed)
        validation: Full validation result
        raw: Parsed document
        loaded_at: Unix timestamp of compilation
    """

    source: ProtocolSource
    protocol: ProtocolDefinition | None
    tools: list[GeneratedTool]
    validation: ValidationResult
    raw: Any = None
    loaded_at: float = field(default_factory=time.time)

    @property
    def valid(self) -> bool:
        return self.validation.valid and self.protocol is not None

    @property
    def name(self) -> str | None:
        """Protocol name, read from the raw document when invalid."""
        if self.protocol is not None:
            return self.protocol.name
        if isinstance(self.raw, dict) and isinstance(self.raw.get("name"), str):
            return self.raw["name"]
        return None

    @property
    def tool_names(self) -> list[str]:
        return [tool.name for tool in self.tools]


@dataclass
class LoadOutcome:
    """Per-source result of a batch load."""

    source: ProtocolSource
    artifact: LoadedProtocolArtifact | None = None
    error: ForgeError | None = None

    @property
    def ok(self) -> bool:
        return self.artifact is not None and self.artifact.valid


@dataclass
class LoaderStats:
    loads: int = 0
    cache_hits: int = 0
    rejected: int = 0
    failures: int = 0


def _host_matches(host: str, trusted: list[str]) -> bool:
    host = host.lower()
    return any(host == t.lower() or host.endswith("." + t.lower()) for t in trusted)


class DynamicLoader:
    """Loads, validates and compiles protocols from files, URLs and inline data.

    Example:
        >>> loader = DynamicLoader(LoadingConfig(cache_ttl=600))
        >>> artifact = await loader.load(FileSource("protocols/weather-api.json"))
        >>> if artifact.valid:
        ...     print(artifact.tool_names)
    """

    def __init__(
        self,
        config: LoadingConfig | None = None,
        *,
        validator: ProtocolValidator | None = None,
        generator: ToolGenerator | None = None,
        cache: CacheBackend | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the loader.

        Args:
            config: Loading settings
            validator: Protocol validator (default settings if omitted)
            generator: Tool generator (httpx transport if omitted)
            cache: Artifact cache (MemoryCache, or NullCache when disabled)
            http_client: Client used for URL sources
        """
        self._config = config or LoadingConfig()
        self._validator = validator or ProtocolValidator()
        self._generator = generator or ToolGenerator(
            invocation_timeout=self._config.invocation_timeout
        )
        if cache is not None:
            self._cache = cache
        elif self._config.cache_enabled:
            self._cache = MemoryCache(
                max_size=self._config.cache_max_size, default_ttl=self._config.cache_ttl
            )
        else:
            self._cache = NullCache()
        self._http_client = http_client
        self._owns_client = http_client is None
        self._stats = LoaderStats()

    @property
    def config(self) -> LoadingConfig:
        return self._config

    @property
    def validator(self) -> ProtocolValidator:
        return self._validator

    @property
    def generator(self) -> ToolGenerator:
        return self._generator

    # ---- fetch & parse ---------------------------------------------------

    async def fetch(self, source: ProtocolSource) -> str:
        """Read the raw text of a source.

        Raises:
            LoadError: If the source cannot be read
        """
        if isinstance(source, InlineSource):
            return source.content
        if isinstance(source, FileSource):
            try:
                return await asyncio.to_thread(source.path.read_text, encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise LoadError(
                    f"Cannot read protocol file {source.path}: {e}",
                    source=str(source),
                    cause=e,
                ) from e
        return await self._fetch_url(source)

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.validation_timeout),
                headers={"User-Agent": get_user_agent()},
                follow_redirects=False,
            )
        return self._http_client

    async def _fetch_url(self, source: UrlSource) -> str:
        if not self._config.allow_remote:
            raise LoadError(
                f"Remote loading is disabled: {source.url}",
                ErrorContext(source="loader", hint="Enable loading.allow_remote"),
                source=source.url,
            )

        parts = urlsplit(source.url)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise LoadError(f"Unsupported protocol URL: {source.url}", source=source.url)
        trusted = self._config.trusted_sources
        if trusted and not _host_matches(parts.hostname, trusted):
            raise LoadError(
                f"Host '{parts.hostname}' is not a trusted protocol source",
                source=source.url,
            )

        try:
            response = await self._get_client().get(source.url)
        except httpx.HTTPError as e:
            raise LoadError(
                f"Failed to fetch {source.url}: {e}", source=source.url, cause=e
            ) from e
        if response.status_code != 200:
            raise LoadError(
                f"Failed to fetch {source.url} (status {response.status_code})",
                source=source.url,
            )
        return response.text

    @staticmethod
    def parse(text: str, source: ProtocolSource) -> Any:
        """Parse raw text as JSON (YAML for ``.yaml``/``.yml`` files).

        Raises:
            LoadError: On malformed content
        """
        if isinstance(source, FileSource) and source.path.suffix.lower() in _YAML_SUFFIXES:
            try:
                return yaml.safe_load(text)
            except yaml.YAMLError as e:
                raise LoadError(
                    f"Malformed YAML in {source}: {e}", source=str(source), cause=e
                ) from e
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise LoadError(
                f"Malformed JSON in {source}: {e.msg} (line {e.lineno}, column {e.colno})",
                source=str(source),
                cause=e,
            ) from e

    # ---- compile ---------------------------------------------------------

    async def compile(self, raw: Any, source: ProtocolSource) -> LoadedProtocolArtifact:
        """Validate a parsed document and generate its tools.

        Tools are generated only when every validation layer passes.
        """
        result = await asyncio.to_thread(self._validator.validate, raw)
        if not result.valid:
            return LoadedProtocolArtifact(source, None, [], result, raw)

        try:
            protocol = ProtocolDefinition.model_validate(raw)
        except ModelValidationError as e:
            for error in e.errors():
                result.add_error(
                    IssueCategory.SCHEMA,
                    "MODEL_VALIDATION",
                    error["msg"],
                    ".".join(str(p) for p in error["loc"]),
                )
            return LoadedProtocolArtifact(source, None, [], result, raw)

        tools = self._generator.generate_tools(protocol)
        result.merge(validate_generated_tools(tools))
        if not result.valid:
            return LoadedProtocolArtifact(source, None, [], result, raw)
        return LoadedProtocolArtifact(source, protocol, tools, result, raw)

    async def _load_uncached(self, source: ProtocolSource) -> LoadedProtocolArtifact:
        text = await self.fetch(source)
        raw = self.parse(text, source)
        return await self.compile(raw, source)

    # ---- public API ------------------------------------------------------

    async def load(
        self, source: ProtocolSource, *, use_cache: bool = True
    ) -> LoadedProtocolArtifact:
        """Load a protocol.

        Args:
            source: File, URL or inline source
            use_cache: Serve a cached artifact when one is fresh

        Returns:
            LoadedProtocolArtifact (check ``valid``)

        Raises:
            LoadError: Unreadable source, malformed content or timeout
        """
        key = source.key
        if use_cache:
            cached = await self._cache.get(key)
            if cached is not None:
                self._stats.cache_hits += 1
                logger.debug("Protocol served from cache", source=str(source))
                return cached

        self._stats.loads += 1
        timeout = self._config.validation_timeout
        try:
            artifact = await asyncio.wait_for(self._load_uncached(source), timeout=timeout)
        except asyncio.TimeoutError as e:
            self._stats.failures += 1
            raise LoadError(
                f"Loading {source} exceeded the validation timeout of {timeout}s",
                source=str(source),
                cause=e,
            ) from e
        except LoadError:
            self._stats.failures += 1
            raise

        if artifact.valid:
            await self._cache.set(key, artifact, ttl=self._config.cache_ttl)
            logger.info(
                "Protocol compiled",
                protocol=artifact.name,
                source=str(source),
                tools=len(artifact.tools),
                warnings=len(artifact.validation.warnings),
            )
        else:
            self._stats.rejected += 1
            await self._cache.delete(key)
            logger.warning(
                "Protocol rejected",
                protocol=artifact.name,
                source=str(source),
                errors=artifact.validation.error_messages,
            )
        return artifact

    async def reload(self, source: ProtocolSource) -> LoadedProtocolArtifact:
        """Load bypassing the cache, then refresh the cached entry."""
        return await self.load(source, use_cache=False)

    async def load_many(self, sources: Iterable[ProtocolSource]) -> list[LoadOutcome]:
        """Load independent sources concurrently; one failure never aborts the rest."""

        async def load_one(source: ProtocolSource) -> LoadOutcome:
            try:
                return LoadOutcome(source, artifact=await self.load(source))
            except ForgeError as e:
                logger.warning("Protocol load failed", source=str(source), error=e.message)
                return LoadOutcome(source, error=e)

        return list(await asyncio.gather(*(load_one(s) for s in sources)))

    async def load_directory(
        self,
        directory: str | Path,
        suffixes: tuple[str, ...] = DEFAULT_SUFFIXES,
    ) -> list[LoadOutcome]:
        """Load every protocol file in a directory (non-recursive, sorted)."""
        path = Path(directory)
        if not path.is_dir():
            raise LoadError(f"Not a directory: {path}", source=str(path))
        files = sorted(
            p for p in path.iterdir() if p.is_file() and p.suffix.lower() in suffixes
        )
        return await self.load_many(FileSource(p) for p in files)

    async def invalidate(self, source: ProtocolSource) -> bool:
        """Drop the cached artifact for a source."""
        return await self._cache.delete(source.key)

    async def clear_cache(self) -> None:
        await self._cache.clear()

    def cache_stats(self) -> dict[str, Any]:
        """Cache counters plus loader counters."""
        return {
            **self._cache.stats().to_dict(),
            "loads": self._stats.loads,
            "cache_hits": self._stats.cache_hits,
            "rejected": self._stats.rejected,
            "failures": self._stats.failures,
            "ttl": self._config.cache_ttl,
        }

    async def close(self) -> None:
        """Close the URL client and the tool transport."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None
        await self._generator.transport.close()

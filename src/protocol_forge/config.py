"""
Configuration for protocol-forge.

Settings come from dataclass defaults, environment variables prefixed with
``PROTOCOL_FORGE_`` or a YAML file whose top-level sections mirror the
dataclasses (``validation``, ``loading``, ``submission``, ``logging``).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

ENV_PREFIX = "PROTOCOL_FORGE_"

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(ENV_PREFIX + name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_list(env: Mapping[str, str], name: str) -> list[str] | None:
    value = env.get(ENV_PREFIX + name)
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def _from_section(cls: type, section: Mapping[str, Any] | None) -> Any:
    """Build a dataclass from a mapping, rejecting unknown keys."""
    if not section:
        return cls()
    known = {f.name for f in fields(cls)}
    unknown = set(section) - known
    if unknown:
        raise ValueError(
            f"Unknown {cls.__name__} option(s): {', '.join(sorted(unknown))}"
        )
    return cls(**dict(section))


@dataclass
class ValidationConfig:
    """Protocol validator settings.

    Attributes:
        strict_mode: Domain allow-list violations become errors
        max_endpoints: Maximum endpoints per protocol
        allowed_domains: Endpoint host allow-list (empty = any host)
        max_requests_per_second: Rate above which a performance warning fires
        max_timeout_ms: ``metadata.timeoutMs`` above which a warning fires
    """

    strict_mode: bool = False
    max_endpoints: int = 50
    allowed_domains: list[str] = field(default_factory=list)
    max_requests_per_second: float = 100.0
    max_timeout_ms: int = 60_000

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ValidationConfig:
        env = os.environ if environ is None else environ
        return cls(
            strict_mode=_env_bool(env, "STRICT_MODE", False),
            max_endpoints=int(env.get(ENV_PREFIX + "MAX_ENDPOINTS", "50")),
            allowed_domains=_env_list(env, "ALLOWED_DOMAINS") or [],
        )


@dataclass
class LoadingConfig:
    """Dynamic loader and tool invocation settings.

    Attributes:
        cache_enabled: Cache compiled artifacts
        cache_ttl: Artifact TTL in seconds
        cache_max_size: Maximum cached artifacts
        validation_timeout: Bound on fetch + validate + compile, in seconds
        invocation_timeout: Per-call timeout for generated tools, in seconds
        allow_remote: Permit loading protocols from URLs
        trusted_sources: Hosts URLs may be fetched from (empty = any host)
    """

    cache_enabled: bool = True
    cache_ttl: float = 3600.0
    cache_max_size: int = 256
    validation_timeout: float = 30.0
    invocation_timeout: float = 30.0
    allow_remote: bool = True
    trusted_sources: list[str] = field(default_factory=list)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> LoadingConfig:
        env = os.environ if environ is None else environ
        return cls(
            cache_enabled=_env_bool(env, "CACHE_ENABLED", True),
            cache_ttl=float(env.get(ENV_PREFIX + "CACHE_TTL", "3600")),
            validation_timeout=float(env.get(ENV_PREFIX + "VALIDATION_TIMEOUT", "30")),
            invocation_timeout=float(env.get(ENV_PREFIX + "INVOCATION_TIMEOUT", "30")),
            allow_remote=_env_bool(env, "ALLOW_REMOTE", True),
            trusted_sources=_env_list(env, "TRUSTED_SOURCES") or [],
        )


@dataclass
class SubmissionConfig:
    """Pull-request submission gateway settings.

    Attributes:
        repository: ``owner/name`` of the repository receiving submissions
        token: API token used to read files and post results
        webhook_secret: Shared secret for webhook signatures
        auto_merge: Merge submissions that pass validation
        required_approvals: Approving reviews needed before auto-merge
        protocols_dir: Directory holding protocol files in the repository
        api_url: REST API base URL
    """

    repository: str | None = None
    token: str | None = None
    webhook_secret: str | None = None
    auto_merge: bool = False
    required_approvals: int = 1
    protocols_dir: str = "protocols"
    api_url: str = "https://api.github.com"

    @property
    def owner(self) -> str:
        return self._split_repository()[0]

    @property
    def name(self) -> str:
        return self._split_repository()[1]

    def _split_repository(self) -> tuple[str, str]:
        if not self.repository or "/" not in self.repository:
            raise ValueError(
                f"Submission repository must be 'owner/name', got {self.repository!r}"
            )
        owner, _, name = self.repository.partition("/")
        return owner, name

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SubmissionConfig:
        env = os.environ if environ is None else environ
        return cls(
            repository=env.get(ENV_PREFIX + "SUBMISSION_REPOSITORY"),
            token=env.get(ENV_PREFIX + "GITHUB_TOKEN") or env.get("GITHUB_TOKEN"),
            webhook_secret=env.get(ENV_PREFIX + "WEBHOOK_SECRET"),
            auto_merge=_env_bool(env, "AUTO_MERGE", False),
            required_approvals=int(env.get(ENV_PREFIX + "REQUIRED_APPROVALS", "1")),
            protocols_dir=env.get(ENV_PREFIX + "PROTOCOLS_DIR", "protocols"),
            api_url=env.get(ENV_PREFIX + "API_URL", "https://api.github.com"),
        )

    def __repr__(self) -> str:
        return (
            f"SubmissionConfig(repository={self.repository!r}, "
            f"token={'***' if self.token else None}, "
            f"webhook_secret={'***' if self.webhook_secret else None}, "
            f"auto_merge={self.auto_merge}, "
            f"required_approvals={self.required_approvals})"
        )


@dataclass
class LoggingConfig:
    """Logging output settings."""

    level: str = "INFO"
    format: str = "text"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> LoggingConfig:
        env = os.environ if environ is None else environ
        return cls(
            level=env.get(ENV_PREFIX + "LOG_LEVEL", "INFO").upper(),
            format=env.get(ENV_PREFIX + "LOG_FORMAT", "text").lower(),
        )


@dataclass
class ForgeConfig:
    """Complete protocol-forge configuration.

    Example:
        >>> config = ForgeConfig.from_file("forge.yaml")
        >>> config.validation.max_endpoints
        50
    """

    validation: ValidationConfig = field(default_factory=ValidationConfig)
    loading: LoadingConfig = field(default_factory=LoadingConfig)
    submission: SubmissionConfig = field(default_factory=SubmissionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ForgeConfig:
        """Create configuration from environment variables."""
        return cls(
            validation=ValidationConfig.from_env(environ),
            loading=LoadingConfig.from_env(environ),
            submission=SubmissionConfig.from_env(environ),
            logging=LoggingConfig.from_env(environ),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ForgeConfig:
        return cls(
            validation=_from_section(ValidationConfig, data.get("validation")),
            loading=_from_section(LoadingConfig, data.get("loading")),
            submission=_from_section(SubmissionConfig, data.get("submission")),
            logging=_from_section(LoggingConfig, data.get("logging")),
        )

    @classmethod
    def from_file(cls, path: str | Path) -> ForgeConfig:
        """Load configuration from a YAML file.

        Args:
            path: Path to the YAML file

        Returns:
            ForgeConfig instance

        Raises:
            ValueError: If the file is not a mapping or has unknown options
        """
        content = Path(path).read_text(encoding="utf-8")
        data = yaml.safe_load(content) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        return cls.from_dict(data)

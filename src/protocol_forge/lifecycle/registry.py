"""
Registry entries and the tool registry collaborator.

LoadedProtocol entries are immutable; the lifecycle manager replaces them
wholesale on every state change. Generated tools are pushed to a
ToolRegistry, the surface the agent host reads from.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from protocol_forge.generation.tools import GeneratedTool
    from protocol_forge.protocol.loader import ProtocolSource
    from protocol_forge.protocol.models import ProtocolDefinition
    from protocol_forge.types import ToolDefinition


class ProtocolStatus(str, Enum):
    """Lifecycle states of a registry entry."""

    LOADING = "loading"
    ACTIVE = "active"
    ERROR = "error"
    UNLOADING = "unloading"


@dataclass(frozen=True)
class LoadedProtocol:
    """Registry entry for one protocol name.

    Attributes:
        name: Protocol name
        status: Lifecycle state
        protocol: Active definition (None until a load succeeds)
        tools: Tools registered for this protocol
        source: Source the protocol was loaded from
        loaded_at: Unix timestamp of the last successful load
        errors: Errors from the most recent failed attempt
    """

    name: str
    status: ProtocolStatus
    protocol: ProtocolDefinition | None = None
    tools: tuple[GeneratedTool, ...] = ()
    source: ProtocolSource | None = None
    loaded_at: float = field(default_factory=time.time)
    errors: tuple[str, ...] = ()

    @property
    def version(self) -> str | None:
        return self.protocol.version if self.protocol else None

    @property
    def tool_names(self) -> tuple[str, ...]:
        return tuple(tool.name for tool in self.tools)

    @property
    def is_active(self) -> bool:
        return self.status is ProtocolStatus.ACTIVE

    def with_status(self, status: ProtocolStatus, **changes: object) -> LoadedProtocol:
        return replace(self, status=status, **changes)  # type: ignore[arg-type]

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "status": self.status.value,
            "version": self.version,
            "tools": list(self.tool_names),
            "source": str(self.source) if self.source is not None else None,
            "loaded_at": self.loaded_at,
            "errors": list(self.errors),
        }


class ToolRegistry(ABC):
    """Consumer of generated tools (the agent tool surface)."""

    @abstractmethod
    def register(self, category: str, tool: GeneratedTool) -> None:
        raise NotImplementedError

    @abstractmethod
    def unregister(self, name: str) -> bool:
        """Remove a tool by exact name; returns True if it was present."""
        raise NotImplementedError

    @abstractmethod
    def get(self, name: str) -> GeneratedTool | None:
        raise NotImplementedError


class InMemoryToolRegistry(ToolRegistry):
    """Dictionary-backed tool registry.

    Example:
        >>> registry = InMemoryToolRegistry()
        >>> registry.register("weather-api", tool)
        >>> registry.names("weather-api")
        ['weatherApi_getCurrent']
    """

    def __init__(self) -> None:
        self._tools: dict[str, GeneratedTool] = {}
        self._categories: dict[str, str] = {}

    def register(self, category: str, tool: GeneratedTool) -> None:
        self._tools[tool.name] = tool
        self._categories[tool.name] = category

    def unregister(self, name: str) -> bool:
        self._categories.pop(name, None)
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> GeneratedTool | None:
        return self._tools.get(name)

    def names(self, category: str | None = None) -> list[str]:
        if category is None:
            return sorted(self._tools)
        return sorted(n for n, c in self._categories.items() if c == category)

    def definitions(self) -> list[ToolDefinition]:
        """Function-calling definitions of every registered tool."""
        return [self._tools[name].to_definition() for name in sorted(self._tools)]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

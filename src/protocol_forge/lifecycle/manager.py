"""
Lifecycle manager.

Owns the authoritative ``{protocol name -> LoadedProtocol}`` registry.

- The registry is an immutable snapshot replaced by a single assignment,
  so readers see either the old or the new state, never a mix.
- Load, reload and unload of one name are serialized by a per-name lock;
  different names proceed concurrently.
- Events for a name are published after its lock is released, so a
  handler may call back into the manager.
- A new tool set is fully compiled and collision-checked before any old
  tool is unregistered; the unregister/register swap itself contains no
  await.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from protocol_forge.errors import (
    ForgeError,
    InvocationError,
    LoadError,
    ProtocolNotFoundError,
    ToolNameCollisionError,
)
from protocol_forge.lifecycle.events import (
    EventBus,
    LifecycleEvent,
    ProtocolErrored,
    ProtocolLoaded,
    ProtocolUnloaded,
)
from protocol_forge.lifecycle.registry import (
    InMemoryToolRegistry,
    LoadedProtocol,
    ProtocolStatus,
    ToolRegistry,
)
from protocol_forge.protocol.loader import (
    DynamicLoader,
    FileSource,
    InlineSource,
    LoadedProtocolArtifact,
)
from protocol_forge.protocol.validator import ProtocolValidator
from protocol_forge.telemetry import get_logger
from protocol_forge.types import ToolCall, ToolResult

if TYPE_CHECKING:
    from protocol_forge.generation.tools import GeneratedTool
    from protocol_forge.protocol.loader import ProtocolSource

logger = get_logger(__name__)


@dataclass(frozen=True)
class _RegistryState:
    """One consistent registry snapshot."""

    protocols: Mapping[str, LoadedProtocol] = field(
        default_factory=lambda: MappingProxyType({})
    )
    tools: Mapping[str, GeneratedTool] = field(default_factory=lambda: MappingProxyType({}))
    owners: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


class LifecycleManager:
    """Loads, swaps and unloads protocols and their tools.

    Example:
        >>> manager = LifecycleManager(DynamicLoader())
        >>> entry = await manager.load(FileSource("protocols/weather-api.json"))
        >>> result = await manager.invoke("weatherApi_getCurrent", {"city": "Paris"})
        >>> await manager.unload("weather-api")
    """

    def __init__(
        self,
        loader: DynamicLoader | None = None,
        registry: ToolRegistry | None = None,
        events: EventBus | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            loader: Dynamic loader producing compiled artifacts
            registry: Tool registry receiving generated tools
            events: Event bus for lifecycle notifications
        """
        self._loader = loader or DynamicLoader()
        self._registry = registry or InMemoryToolRegistry()
        self._events = events or EventBus()
        self._state = _RegistryState()
        self._locks: dict[str, asyncio.Lock] = {}
        self._names_by_source: dict[str, str] = {}

    @property
    def loader(self) -> DynamicLoader:
        return self._loader

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def events(self) -> EventBus:
        return self._events

    # ---- read side --------------------------------------------------------

    @property
    def protocols(self) -> Mapping[str, LoadedProtocol]:
        """Current registry snapshot."""
        return self._state.protocols

    def get(self, name: str) -> LoadedProtocol | None:
        return self._state.protocols.get(name)

    def list_protocols(self, status: ProtocolStatus | None = None) -> list[LoadedProtocol]:
        entries = [
            e for e in self._state.protocols.values() if status is None or e.status is status
        ]
        return sorted(entries, key=lambda e: e.name)

    def find_tool(self, tool_name: str) -> GeneratedTool | None:
        return self._state.tools.get(tool_name)

    def tool_names(self) -> list[str]:
        return sorted(self._state.tools)

    def owner_of(self, tool_name: str) -> str | None:
        """Protocol that owns a tool name."""
        return self._state.owners.get(tool_name)

    # ---- locking & state ---------------------------------------------------

    def _lock_for(self, name: str) -> asyncio.Lock:
        return self._locks.setdefault(name, asyncio.Lock())

    def _publish_state(
        self,
        protocols: dict[str, LoadedProtocol],
        tools: dict[str, GeneratedTool] | None = None,
        owners: dict[str, str] | None = None,
    ) -> None:
        self._state = _RegistryState(
            protocols=MappingProxyType(protocols),
            tools=MappingProxyType(tools if tools is not None else dict(self._state.tools)),
            owners=MappingProxyType(owners if owners is not None else dict(self._state.owners)),
        )

    def _set_entry(self, entry: LoadedProtocol) -> None:
        protocols = dict(self._state.protocols)
        protocols[entry.name] = entry
        self._publish_state(protocols)

    # ---- load / reload -------------------------------------------------------

    @asynccontextmanager
    async def _exclusive(self, name: str) -> AsyncIterator[list[LifecycleEvent]]:
        """Hold the per-name lock; events queued inside are published after release."""
        pending: list[LifecycleEvent] = []
        try:
            async with self._lock_for(name):
                yield pending
        finally:
            for event in pending:
                await self._events.publish(event)

    @staticmethod
    def _declared_name(source: ProtocolSource) -> str | None:
        """Name declared by a local source, read without awaiting."""
        if isinstance(source, InlineSource):
            text = source.content
        elif isinstance(source, FileSource):
            try:
                text = source.path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                return None
        else:
            return None
        try:
            raw = DynamicLoader.parse(text, source)
        except LoadError:
            return None
        name = raw.get("name") if isinstance(raw, dict) else None
        return name if isinstance(name, str) and name else None

    async def load(
        self, source: ProtocolSource, *, use_cache: bool = True
    ) -> LoadedProtocol:
        """Load a protocol and make its tools live.

        Requests for the same protocol name are applied in the order they
        were made; a later request waits for the earlier one to finish.
        Inline and file sources are read for their name before the first
        await; a new URL source is ordered by when its fetch completes.

        Args:
            source: File, URL or inline source
            use_cache: Allow the loader to serve a cached artifact

        Returns:
            The active registry entry

        Raises:
            LoadError: Source unreadable, malformed or timed out
            ProtocolValidationError: Protocol rejected by the validator
            ToolNameCollisionError: A tool name is owned by another protocol
        """
        name = self._names_by_source.get(source.key) or self._declared_name(source)
        if name is not None:
            async with self._exclusive(name) as pending:
                self._mark_loading(name)
                artifact = await self._fetch(source, use_cache, name, pending)
                return await self._apply(artifact, source, pending, expected_name=name)

        # URL, unreadable or nameless; the loader reports why
        artifact = await self._fetch(source, use_cache, None, None)
        if artifact.name is None:
            error = ProtocolValidator.to_exception(artifact.raw, artifact.validation)
            await self._events.publish(
                ProtocolErrored(str(source), tuple(artifact.validation.error_messages), error)
            )
            raise error
        async with self._exclusive(artifact.name) as pending:
            return await self._apply(artifact, source, pending)

    async def reload(self, name: str) -> LoadedProtocol:
        """Re-read a protocol from its recorded source, bypassing the cache.

        Raises:
            ProtocolNotFoundError: If the name is not registered
        """
        entry = self.get(name)
        if entry is None or entry.source is None:
            raise ProtocolNotFoundError(name)
        async with self._exclusive(name) as pending:
            self._mark_loading(name)
            artifact = await self._fetch(entry.source, False, name, pending)
            return await self._apply(artifact, entry.source, pending, expected_name=name)

    async def load_many(
        self, sources: Iterable[ProtocolSource]
    ) -> list[LoadedProtocol | ForgeError]:
        """Load sources concurrently; each result is an entry or the error it raised."""

        async def load_one(source: ProtocolSource) -> LoadedProtocol | ForgeError:
            try:
                return await self.load(source)
            except ForgeError as e:
                return e

        return list(await asyncio.gather(*(load_one(s) for s in sources)))

    def _mark_loading(self, name: str) -> None:
        current = self.get(name)
        if current is not None:
            self._set_entry(current.with_status(ProtocolStatus.LOADING))
        else:
            self._set_entry(LoadedProtocol(name=name, status=ProtocolStatus.LOADING))

    async def _fetch(
        self,
        source: ProtocolSource,
        use_cache: bool,
        name: str | None,
        pending: list[LifecycleEvent] | None,
    ) -> LoadedProtocolArtifact:
        try:
            return await self._loader.load(source, use_cache=use_cache)
        except LoadError as e:
            if name is not None and pending is not None:
                self._record_failure(name, (e.message,), e, source, pending)
            else:
                await self._events.publish(ProtocolErrored(str(source), (e.message,), e))
            raise

    async def _apply(
        self,
        artifact: LoadedProtocolArtifact,
        source: ProtocolSource,
        pending: list[LifecycleEvent],
        expected_name: str | None = None,
    ) -> LoadedProtocol:
        """Turn a compiled artifact into registry state (caller holds the lock)."""
        name = expected_name or artifact.name
        if name is None:
            raise LoadError(f"Source {source} declares no protocol name", source=str(source))

        if not artifact.valid:
            error = ProtocolValidator.to_exception(artifact.raw, artifact.validation)
            self._record_failure(
                name, tuple(artifact.validation.error_messages), error, source, pending
            )
            raise error

        if artifact.name != name:
            error = LoadError(
                f"Source {source} now declares protocol '{artifact.name}', "
                f"expected '{name}'; unload '{name}' first",
                source=str(source),
            )
            self._record_failure(name, (error.message,), error, source, pending)
            raise error

        for tool in artifact.tools:
            owner = self._state.owners.get(tool.name)
            foreign = owner is None and self._registry.get(tool.name) is not None
            if (owner is not None and owner != name) or foreign:
                error = ToolNameCollisionError(
                    f"Tool name '{tool.name}' is already registered"
                    + (f" by protocol '{owner}'" if owner else ""),
                    tool_name=tool.name,
                    owner=owner,
                )
                self._record_failure(name, (error.message,), error, source, pending)
                raise error

        previous = self.get(name)
        if previous is not None and previous.protocol is None:
            previous = None
        entry = self._swap(name, artifact, source, previous)
        self._names_by_source[source.key] = name
        previous_version = previous.version if previous is not None else None
        logger.info(
            "Protocol activated",
            protocol=name,
            version=entry.version,
            previous_version=previous_version,
            tools=list(entry.tool_names),
        )
        pending.append(ProtocolLoaded(entry, previous_version))
        return entry

    def _swap(
        self,
        name: str,
        artifact: LoadedProtocolArtifact,
        source: ProtocolSource,
        previous: LoadedProtocol | None,
    ) -> LoadedProtocol:
        """Replace the old tool set with the new one (no await inside)."""
        old_tools = previous.tools if previous is not None else ()
        new_tools = tuple(artifact.tools)

        for tool in old_tools:
            self._registry.unregister(tool.name)
        registered: list[str] = []
        try:
            for tool in new_tools:
                self._registry.register(tool.category, tool)
                registered.append(tool.name)
        except Exception:
            for tool_name in registered:
                self._registry.unregister(tool_name)
            for tool in old_tools:
                self._registry.register(tool.category, tool)
            raise

        entry = LoadedProtocol(
            name=name,
            status=ProtocolStatus.ACTIVE,
            protocol=artifact.protocol,
            tools=new_tools,
            source=source,
            loaded_at=artifact.loaded_at,
        )

        protocols = dict(self._state.protocols)
        tools = dict(self._state.tools)
        owners = dict(self._state.owners)
        for tool in old_tools:
            tools.pop(tool.name, None)
            owners.pop(tool.name, None)
        for tool in new_tools:
            tools[tool.name] = tool
            owners[tool.name] = name
        protocols[name] = entry
        self._publish_state(protocols, tools, owners)
        return entry

    def _record_failure(
        self,
        name: str,
        errors: tuple[str, ...],
        error: ForgeError,
        source: ProtocolSource,
        pending: list[LifecycleEvent],
    ) -> None:
        current = self.get(name)
        if current is not None and current.protocol is not None:
            # Keep the previous version serving traffic
            entry = current.with_status(ProtocolStatus.ACTIVE, errors=errors)
            active_version = current.version
        else:
            entry = LoadedProtocol(
                name=name, status=ProtocolStatus.ERROR, source=source, errors=errors
            )
            active_version = None
        self._set_entry(entry)
        logger.warning(
            "Protocol load failed",
            protocol=name,
            errors=list(errors),
            active_version=active_version,
        )
        pending.append(ProtocolErrored(name, errors, error, active_version))

    # ---- unload ------------------------------------------------------------

    async def unload(self, name: str) -> tuple[str, ...]:
        """Remove a protocol and exactly the tools recorded for it.

        Returns:
            Names of the removed tools

        Raises:
            ProtocolNotFoundError: If the name is not registered
        """
        async with self._lock_for(name):
            current = self.get(name)
            if current is None:
                raise ProtocolNotFoundError(name)
            self._set_entry(current.with_status(ProtocolStatus.UNLOADING))

            removed = current.tool_names
            for tool_name in removed:
                self._registry.unregister(tool_name)

            protocols = dict(self._state.protocols)
            tools = dict(self._state.tools)
            owners = dict(self._state.owners)
            protocols.pop(name, None)
            for tool_name in removed:
                tools.pop(tool_name, None)
                owners.pop(tool_name, None)
            self._publish_state(protocols, tools, owners)

            self._names_by_source = {
                k: v for k, v in self._names_by_source.items() if v != name
            }
            self._loader.generator.forget_credentials(name)

        logger.info("Protocol unloaded", protocol=name, tools=list(removed))
        await self._events.publish(ProtocolUnloaded(name, removed))
        return removed

    # ---- invocation ----------------------------------------------------------

    async def invoke(self, tool_name: str, args: dict[str, Any] | None = None) -> ToolResult:
        """Invoke a live tool by name; never raises."""
        tool = self.find_tool(tool_name)
        if tool is None:
            return ToolResult.fail(
                InvocationError(f"Unknown tool: {tool_name}", tool_name=tool_name)
            )
        return await tool.invoke(args)

    async def handle_tool_call(self, call: ToolCall) -> ToolResult:
        """Invoke the tool named by an agent tool call."""
        return await self.invoke(call.function_name, call.arguments)

    # ---- housekeeping ----------------------------------------------------

    def stats(self) -> dict[str, Any]:
        by_status: dict[str, int] = {status.value: 0 for status in ProtocolStatus}
        for entry in self._state.protocols.values():
            by_status[entry.status.value] += 1
        return {
            "protocols": len(self._state.protocols),
            "tools": len(self._state.tools),
            "by_status": by_status,
            "cache": self._loader.cache_stats(),
        }

    async def shutdown(self) -> None:
        """Unload every protocol and release loader resources."""
        for name in list(self._state.protocols):
            try:
                await self.unload(name)
            except ProtocolNotFoundError:
                continue
        await self._loader.close()

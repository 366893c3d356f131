"""
Lifecycle events and the event bus.

Each event is its own dataclass. Subscribers register for an event type
(and receive its subclasses) with a priority, or consume a queue-backed
stream.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from protocol_forge.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from protocol_forge.errors import ForgeError
    from protocol_forge.lifecycle.registry import LoadedProtocol
    from protocol_forge.submission.models import Submission

logger = get_logger(__name__)


class LifecycleEvent:
    """Base class of every lifecycle event."""

    timestamp: float


@dataclass(frozen=True)
class ProtocolLoaded(LifecycleEvent):
    """A protocol became active, or an active protocol was replaced."""

    protocol: LoadedProtocol
    previous_version: str | None = None
    timestamp: float = field(default_factory=time.time)

    @property
    def name(self) -> str:
        return self.protocol.name


@dataclass(frozen=True)
class ProtocolUnloaded(LifecycleEvent):
    """A protocol and exactly its recorded tools were removed."""

    name: str
    tool_names: tuple[str, ...] = ()
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ProtocolErrored(LifecycleEvent):
    """A load or reload failed.

    Attributes:
        name: Protocol name (or the source when no name could be read)
        errors: Every error message
        error: The exception describing the failure
        active_version: Version still serving traffic, if any
    """

    name: str
    errors: tuple[str, ...]
    error: ForgeError | None = None
    active_version: str | None = None
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class SubmissionProcessed(LifecycleEvent):
    """A pull-request submission was validated (and possibly merged)."""

    submission: Submission
    timestamp: float = field(default_factory=time.time)


E = TypeVar("E", bound=LifecycleEvent)


@dataclass
class Subscription(Generic[E]):
    """A registered event handler.

    Attributes:
        event_type: Event class (subclasses are delivered too)
        callback: Sync or async callable taking the event
        priority: Execution priority (lower = first)
        name: Handler name for logging
    """

    event_type: type[E]
    callback: Callable[[E], Any]
    priority: int = 50
    name: str = ""

    def __lt__(self, other: Subscription[Any]) -> bool:
        return self.priority < other.priority


class EventStream(Generic[E]):
    """Queue-backed stream of events of one type.

    Example:
        >>> async with bus.stream(ProtocolLoaded) as stream:
        ...     event = await stream.get(timeout=5)
    """

    def __init__(self, bus: EventBus, event_type: type[E], maxsize: int = 0) -> None:
        self._bus = bus
        self.event_type = event_type
        self.queue: asyncio.Queue[E] = asyncio.Queue(maxsize=maxsize)

    async def get(self, timeout: float | None = None) -> E:
        if timeout is None:
            return await self.queue.get()
        return await asyncio.wait_for(self.queue.get(), timeout)

    def close(self) -> None:
        self._bus._remove_stream(self)

    def __aiter__(self) -> EventStream[E]:
        return self

    async def __anext__(self) -> E:
        return await self.queue.get()

    async def __aenter__(self) -> EventStream[E]:
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.close()


class EventBus:
    """Typed publish/subscribe dispatcher for lifecycle events.

    Handler failures are logged and never interrupt other handlers or the
    publisher.

    Example:
        >>> bus = EventBus()
        >>>
        >>> @bus.on(ProtocolLoaded)
        >>> async def announce(event):
        ...     print(event.protocol.tool_names)
        >>>
        >>> await bus.publish(ProtocolLoaded(entry))
    """

    def __init__(self, history_size: int = 100) -> None:
        self._subscriptions: list[Subscription[Any]] = []
        self._streams: list[EventStream[Any]] = []
        self._history: deque[LifecycleEvent] = deque(maxlen=history_size)

    def subscribe(
        self,
        event_type: type[E],
        callback: Callable[[E], Any],
        priority: int = 50,
        name: str = "",
    ) -> Subscription[E]:
        """Register a handler for an event type.

        Args:
            event_type: Event class to receive
            callback: Sync or async handler
            priority: Execution priority (lower = first)
            name: Optional handler name

        Returns:
            The Subscription (pass to ``unsubscribe``)
        """
        subscription = Subscription(
            event_type=event_type,
            callback=callback,
            priority=priority,
            name=name or getattr(callback, "__name__", repr(callback)),
        )
        self._subscriptions.append(subscription)
        self._subscriptions.sort()
        return subscription

    def unsubscribe(self, subscription: Subscription[Any]) -> bool:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            return True
        return False

    def on(
        self, event_type: type[E], priority: int = 50
    ) -> Callable[[Callable[[E], Any]], Callable[[E], Any]]:
        """Decorator for registering handlers."""

        def decorator(func: Callable[[E], Any]) -> Callable[[E], Any]:
            self.subscribe(event_type, func, priority)
            return func

        return decorator

    def stream(
        self,
        event_type: type[E] = LifecycleEvent,  # type: ignore[assignment]
        maxsize: int = 0,
    ) -> EventStream[E]:
        """Open a queue that receives every published event of a type."""
        stream: EventStream[E] = EventStream(self, event_type, maxsize)
        self._streams.append(stream)
        return stream

    def _remove_stream(self, stream: EventStream[Any]) -> None:
        if stream in self._streams:
            self._streams.remove(stream)

    async def publish(self, event: LifecycleEvent) -> None:
        """Deliver an event to matching handlers (by priority) and streams."""
        self._history.append(event)

        for subscription in list(self._subscriptions):
            if not isinstance(event, subscription.event_type):
                continue
            try:
                result = subscription.callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Event handler failed",
                    handler=subscription.name,
                    event=type(event).__name__,
                )

        for stream in list(self._streams):
            if not isinstance(event, stream.event_type):
                continue
            try:
                stream.queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    "Event stream full, dropping event", event=type(event).__name__
                )

    def history(self, event_type: type[E] = LifecycleEvent) -> list[E]:  # type: ignore[assignment]
        """Recently published events of a type, oldest first."""
        return [e for e in self._history if isinstance(e, event_type)]  # type: ignore[misc]

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

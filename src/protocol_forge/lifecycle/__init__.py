"""
Lifecycle module - registry of loaded protocols, hot swap and events.
"""

from protocol_forge.lifecycle.events import (
    EventBus,
    EventStream,
    LifecycleEvent,
    ProtocolErrored,
    ProtocolLoaded,
    ProtocolUnloaded,
    SubmissionProcessed,
    Subscription,
)
from protocol_forge.lifecycle.manager import LifecycleManager
from protocol_forge.lifecycle.registry import (
    InMemoryToolRegistry,
    LoadedProtocol,
    ProtocolStatus,
    ToolRegistry,
)

__all__ = [
    "EventBus",
    "EventStream",
    "InMemoryToolRegistry",
    "LifecycleEvent",
    "LifecycleManager",
    "LoadedProtocol",
    "ProtocolErrored",
    "ProtocolLoaded",
    "ProtocolStatus",
    "ProtocolUnloaded",
    "SubmissionProcessed",
    "Subscription",
    "ToolRegistry",
]

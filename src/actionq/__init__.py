"""actionq - offline-first action queue with dead-lettering."""

from .engine import (
    Action,
    DeadLetterItem,
    ActionEngine,
    ActionRegistry,
    ConnectivityMonitor,
    EventBus,
    EngineEvent,
    EventKind,
    ErrorVerdict,
    FilePersistence,
    MemoryPersistence,
    default_error_policy,
    always_fatal,
    classify_by_type,
)
from .errors import ActionQueueError, RegistryError, UnregisteredActionError, PersistenceError

__version__ = "0.1.0"

__all__ = [
    "Action",
    "DeadLetterItem",
    "ActionEngine",
    "ActionRegistry",
    "ConnectivityMonitor",
    "EventBus",
    "EngineEvent",
    "EventKind",
    "ErrorVerdict",
    "FilePersistence",
    "MemoryPersistence",
    "default_error_policy",
    "always_fatal",
    "classify_by_type",
    "ActionQueueError",
    "RegistryError",
    "UnregisteredActionError",
    "PersistenceError",
]

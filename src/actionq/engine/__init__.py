"""Action queue engine

Offline-first FIFO of actions with:
- ActionQueue (FIFO container)
- ActionRegistry (hooks, transformers, dead-letter transformers)
- ActionProcessor (transform -> execute -> classify)
- DeadLetterRouter (terminal store for recoverable failures)
- ProcessingLoop (network-gated, single-flight drain)
- PersistenceBridge (sequenced snapshot writes, pending-write indicator)
- EventBus (dead-letter / halt / progress notifications)
- ConnectivityMonitor (in-process online signal)
"""

from .types import (
    Action,
    DeadLetterItem,
    ErrorVerdict,
    ProcessingStatus,
    Hook,
    Transformer,
    DeadLetterTransformer,
    ErrorPolicy,
)
from .policy import default_error_policy, always_fatal, classify_by_type
from .queue import ActionQueue
from .registry import ActionRegistry
from .persistence import Persistence, MemoryPersistence, FilePersistence, PersistenceBridge
from .dlq import DeadLetterRouter
from .processor import ActionProcessor, ProcessOutcome, ProcessResult
from .events import EventBus, EngineEvent, EventKind
from .connectivity import ConnectivitySignal, ConnectivityMonitor
from .loop import ProcessingLoop
from .engine import ActionEngine

__all__ = [
    # types
    "Action",
    "DeadLetterItem",
    "ErrorVerdict",
    "ProcessingStatus",
    "Hook",
    "Transformer",
    "DeadLetterTransformer",
    "ErrorPolicy",
    "ProcessOutcome",
    "ProcessResult",
    # policies
    "default_error_policy",
    "always_fatal",
    "classify_by_type",
    # runtime
    "ActionQueue",
    "ActionRegistry",
    "ActionProcessor",
    "DeadLetterRouter",
    "ProcessingLoop",
    "ActionEngine",
    # persistence
    "Persistence",
    "MemoryPersistence",
    "FilePersistence",
    "PersistenceBridge",
    # signals
    "EventBus",
    "EngineEvent",
    "EventKind",
    "ConnectivitySignal",
    "ConnectivityMonitor",
]

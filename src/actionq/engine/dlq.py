"""
Dead-letter routing.

Failed actions are reshaped with the dead-letter transformer (which may differ
from the live transformer: diagnostic storage needs a different shape than
execution) and appended to the dead-letter queue. Entries are terminal; only a
bulk clear removes them.
"""

from __future__ import annotations

from loguru import logger

from ..metrics.registry import DEAD_LETTER_DEPTH
from .persistence import PersistenceBridge
from .queue import ActionQueue
from .registry import ActionRegistry
from .types import Action, DeadLetterItem, render_error, utc_now


class DeadLetterRouter:
    """Builds DeadLetterItems and appends them to the dead-letter queue."""

    def __init__(
        self,
        dl_queue: ActionQueue[DeadLetterItem],
        registry: ActionRegistry,
        bridge: PersistenceBridge,
        *,
        engine_id: str = "default",
    ):
        self._dl_queue = dl_queue
        self._registry = registry
        self._bridge = bridge
        self._engine_id = engine_id

    @property
    def queue(self) -> ActionQueue[DeadLetterItem]:
        return self._dl_queue

    def route(self, action: Action, error: Exception) -> DeadLetterItem:
        """Capture ``action`` with ``error`` and schedule a dead-letter snapshot write.

        Synchronous on purpose: the caller removes the live head right after,
        with no suspension point in between.
        """
        payload, entities = self._registry.transform_dead_letter(action)
        item = DeadLetterItem(
            type=action.type,
            payload=payload,
            entities=entities,
            created_at=utc_now().isoformat(),
            error=render_error(error),
        )

        self._dl_queue.enqueue(item)
        self._bridge.save_dead_letters(self._dl_queue.snapshot())
        DEAD_LETTER_DEPTH.labels(self._engine_id).set(self._dl_queue.size)

        logger.warning(
            f"[{self._engine_id}] Dead-lettered {action.type!r}: {item.error} "
            f"(dlq size={self._dl_queue.size})"
        )
        return item

    def clear(self) -> None:
        """Drop every dead-letter entry and schedule the empty snapshot."""
        dropped = self._dl_queue.size
        self._dl_queue.clear()
        self._bridge.save_dead_letters(self._dl_queue.snapshot())
        DEAD_LETTER_DEPTH.labels(self._engine_id).set(0)
        logger.info(f"[{self._engine_id}] Dead-letter queue cleared ({dropped} items)")

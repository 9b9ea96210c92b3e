"""
Processing loop: the network-gated, single-flight drain of the live queue.

Two independent guards:
- ``listening`` keeps outer ``listen()`` invocations from overlapping
- ``status`` keeps ``run_once()`` steps from overlapping within a pass

A fatal error halts the loop with the head left in place. Nothing retries it
automatically; the next external trigger calling ``listen()`` does.
"""

from __future__ import annotations

from typing import Callable, Optional

from loguru import logger

from ..metrics.registry import ACTIONS_PROCESSED_TOTAL, LOOP_HALTS_TOTAL, QUEUE_DEPTH
from .events import EngineEvent, EventBus, EventKind
from .persistence import PersistenceBridge
from .policy import default_error_policy
from .processor import ActionProcessor, ProcessOutcome, ProcessResult
from .queue import ActionQueue
from .types import Action, DeadLetterItem, ErrorPolicy, ProcessingStatus, render_error


class ProcessingLoop:
    """State machine driving the ActionProcessor over the live queue."""

    def __init__(
        self,
        queue: ActionQueue[Action],
        dl_queue: ActionQueue[DeadLetterItem],
        processor: ActionProcessor,
        bridge: PersistenceBridge,
        *,
        is_online: Callable[[], bool],
        error_policy: ErrorPolicy = default_error_policy,
        events: Optional[EventBus] = None,
        engine_id: str = "default",
    ):
        self._queue = queue
        self._dl_queue = dl_queue
        self._processor = processor
        self._bridge = bridge
        self._is_online = is_online
        self._error_policy = error_policy
        self._events = events or EventBus()
        self._engine_id = engine_id

        self._listening = False
        self._status = ProcessingStatus.IDLE
        self._stopped = False
        self._pass: Optional[object] = None

    @property
    def listening(self) -> bool:
        return self._listening

    @property
    def status(self) -> ProcessingStatus:
        return self._status

    def stop(self) -> None:
        """Exit after the step in flight and ignore triggers until ``resume()``."""
        self._stopped = True
        self._listening = False
        self._pass = None

    def resume(self) -> None:
        self._stopped = False

    async def listen(self) -> None:
        """Drain the queue while online; no-op if a pass is already running."""
        if self._listening or self._stopped:
            return

        token = object()
        self._listening = True
        self._pass = token
        logger.debug(f"[{self._engine_id}] Loop started (queue={self._queue.size})")
        try:
            while self._owns(token) and self._queue.head is not None and self._is_online():
                try:
                    result = await self.run_once()
                except Exception as exc:
                    # A trigger fired by a subscriber below may start a new pass.
                    self._release(token)
                    await self._halt(exc)
                    await self._publish(EventKind.PROGRESS)
                    return
                await self._publish(EventKind.PROGRESS)
                if result is None:
                    break
        finally:
            self._release(token)
        logger.debug(f"[{self._engine_id}] Loop idle (queue={self._queue.size})")

    def _owns(self, token: object) -> bool:
        return self._listening and self._pass is token

    def _release(self, token: object) -> None:
        if self._pass is token:
            self._listening = False
            self._pass = None

    async def run_once(self) -> Optional[ProcessResult]:
        """Process the current head once.

        Returns None without doing anything when a step is already in flight,
        the queue is empty, or the network is down.
        """
        if self._status is ProcessingStatus.PROCESSING:
            return None
        head = self._queue.head
        if head is None:
            return None
        if not self._is_online():
            return None

        self._status = ProcessingStatus.PROCESSING
        try:
            try:
                result = await self._processor.process(head, self._error_policy)
            except Exception:
                ACTIONS_PROCESSED_TOTAL.labels(self._engine_id, head.type, "fatal").inc()
                raise

            # No await between dead-letter append and head removal.
            self._queue.dequeue()
            self._bridge.save_queue(self._queue.snapshot())
            QUEUE_DEPTH.labels(self._engine_id).set(self._queue.size)
            ACTIONS_PROCESSED_TOTAL.labels(self._engine_id, head.type, result.outcome.value).inc()

            await self._bridge.settle()
            if result.outcome is ProcessOutcome.DEAD_LETTERED:
                await self._publish(
                    EventKind.DEAD_LETTERED,
                    action_type=head.type,
                    error=result.dead_letter.error if result.dead_letter else None,
                )
            return result
        finally:
            self._status = ProcessingStatus.IDLE

    async def _halt(self, exc: Exception) -> None:
        head = self._queue.head
        action_type = head.type if head is not None else None
        LOOP_HALTS_TOTAL.labels(self._engine_id).inc()
        logger.error(
            f"[{self._engine_id}] Loop halted on {action_type!r}: {render_error(exc)} "
            f"(queue={self._queue.size}); waiting for next trigger"
        )
        await self._publish(EventKind.LOOP_HALTED, action_type=action_type, error=render_error(exc))

    async def _publish(self, kind: EventKind, **fields) -> None:
        await self._events.publish(
            EngineEvent(
                engine_id=self._engine_id,
                kind=kind,
                queue_size=self._queue.size,
                dead_letter_size=self._dl_queue.size,
                **fields,
            )
        )

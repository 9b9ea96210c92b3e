"""
Engine event notifications.

In-process pub/sub for observing the processing loop: dead-letter routing,
loop halts and per-step progress. Subscribers are awaited inline by the loop in
registration order, so a slow subscriber delays the next step.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from loguru import logger


class EventKind(str, Enum):
    """Kinds of engine events."""

    DEAD_LETTERED = "dead_lettered"  # head routed to the dead-letter queue
    LOOP_HALTED = "loop_halted"  # fatal error stopped the loop
    PROGRESS = "progress"  # one loop step finished


@dataclass(frozen=True)
class EngineEvent:
    """Immutable engine event.

    Attributes:
        engine_id: Identifies the emitting engine
        kind: Event kind
        queue_size: Live queue size after the step
        dead_letter_size: Dead-letter queue size after the step
        action_type: Type of the action concerned (if any)
        error: Rendered error (DEAD_LETTERED / LOOP_HALTED only)
    """

    engine_id: str
    kind: EventKind
    queue_size: int
    dead_letter_size: int
    action_type: str | None = None
    error: str | None = None


class EventSubscriber(Protocol):
    """Async callable accepting an EngineEvent.

    Exceptions are caught and logged so one subscriber cannot stall the queue.
    """

    async def __call__(self, event: EngineEvent) -> None: ...


class EventBus:
    """In-process pub/sub bus for engine events.

    Example:
        bus = EventBus()

        async def on_event(event: EngineEvent):
            if event.kind is EventKind.LOOP_HALTED:
                alert(event.error)

        bus.subscribe(on_event)
    """

    def __init__(self) -> None:
        self._subs: list[EventSubscriber] = []

    def subscribe(self, callback: EventSubscriber) -> None:
        if callback not in self._subs:
            self._subs.append(callback)
            logger.debug(f"Event subscriber added (total: {len(self._subs)})")

    def unsubscribe(self, callback: EventSubscriber) -> None:
        """Remove a subscriber; no-op if it was never subscribed."""
        try:
            self._subs.remove(callback)
            logger.debug(f"Event subscriber removed (total: {len(self._subs)})")
        except ValueError:
            pass

    async def publish(self, event: EngineEvent) -> None:
        """Deliver an event to every subscriber (best-effort, in order).

        A failing subscriber is logged and skipped; the loop that published
        the event carries on regardless.
        """
        if not self._subs:
            return

        # Progress fires after every step, keep it below debug.
        log = logger.trace if event.kind is EventKind.PROGRESS else logger.debug
        log(
            f"[{event.engine_id}] {event.kind.value}: queue={event.queue_size} "
            f"dlq={event.dead_letter_size} type={event.action_type!r}"
        )

        for callback in list(self._subs):
            try:
                await callback(event)
            except Exception as exc:
                name = getattr(callback, "__qualname__", type(callback).__name__)
                logger.warning(
                    f"[{event.engine_id}] Subscriber {name} failed on {event.kind.value} "
                    f"(ignored): {type(exc).__name__}: {exc}"
                )

    @property
    def subscriber_count(self) -> int:
        return len(self._subs)

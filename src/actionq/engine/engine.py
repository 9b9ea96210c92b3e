"""
ActionEngine: offline-first action queue facade.

Owns the live and dead-letter queues, wires registry, processor, router,
persistence bridge and processing loop together, and manages the
connectivity subscription lifecycle (subscribe in ``start``, unsubscribe in
``aclose``).
"""

from __future__ import annotations

import asyncio
from typing import Optional

from loguru import logger

from ..metrics.registry import ACTIONS_ENQUEUED_TOTAL, DEAD_LETTER_DEPTH, QUEUE_DEPTH
from .connectivity import ConnectivitySignal
from .dlq import DeadLetterRouter
from .events import EventBus
from .loop import ProcessingLoop
from .persistence import Persistence, PersistenceBridge
from .policy import default_error_policy
from .processor import ActionProcessor
from .queue import ActionQueue
from .registry import ActionRegistry
from .types import Action, DeadLetterItem, ErrorPolicy, ProcessingStatus


class ActionEngine:
    """Durable FIFO of actions drained one at a time while online.

    Example:
        registry = ActionRegistry(hooks={"send_message": api.send_message})
        monitor = ConnectivityMonitor(online=False)

        async with ActionEngine(registry, FilePersistence(q_path, dl_path), monitor) as engine:
            await engine.enqueue(Action(type="send_message", payload={"text": "hi"}))
            await monitor.report(True)  # drains
            await engine.wait_idle()
    """

    def __init__(
        self,
        registry: ActionRegistry,
        persistence: Persistence,
        connectivity: Optional[ConnectivitySignal] = None,
        *,
        error_policy: ErrorPolicy = default_error_policy,
        events: Optional[EventBus] = None,
        engine_id: str = "default",
        await_writes: bool = False,
    ):
        self._registry = registry
        self._connectivity = connectivity
        self._engine_id = engine_id
        self._events = events or EventBus()

        self._queue: ActionQueue[Action] = ActionQueue()
        self._dl_queue: ActionQueue[DeadLetterItem] = ActionQueue()
        self._online = connectivity.online if connectivity is not None else True

        self._bridge = PersistenceBridge(persistence, engine_id=engine_id, await_writes=await_writes)
        self._router = DeadLetterRouter(self._dl_queue, registry, self._bridge, engine_id=engine_id)
        self._processor = ActionProcessor(registry, self._router)
        self._loop = ProcessingLoop(
            self._queue,
            self._dl_queue,
            self._processor,
            self._bridge,
            is_online=lambda: self._online,
            error_policy=error_policy,
            events=self._events,
            engine_id=engine_id,
        )

        self._tasks: set[asyncio.Task] = set()
        self._started = False
        self._loaded = False

    # --- Lifecycle ---

    async def start(self) -> None:
        """Load persisted snapshots, subscribe to connectivity, start draining."""
        if self._started:
            return

        if not self._loaded:
            await self._load()

        if self._connectivity is not None:
            self._online = self._connectivity.online
            self._connectivity.subscribe(self._on_connectivity)

        QUEUE_DEPTH.labels(self._engine_id).set(self._queue.size)
        DEAD_LETTER_DEPTH.labels(self._engine_id).set(self._dl_queue.size)
        self._loop.resume()
        self._started = True
        logger.info(
            f"[{self._engine_id}] Engine started: queue={self._queue.size} "
            f"dlq={self._dl_queue.size} online={self._online}"
        )

        await self._bridge.settle()
        self.trigger()

    async def _load(self) -> None:
        loaded = await self._bridge.read_queue()
        dead = await self._bridge.read_dead_letters()

        unknown = sorted({a.type for a in loaded if not self._registry.is_registered(a.type)})
        if unknown:
            logger.warning(
                f"[{self._engine_id}] Persisted actions with no registered hook: {unknown}; "
                "the loop will halt when one reaches the head"
            )

        had_pending = self._queue.size > 0
        self._queue.restore(loaded)
        self._dl_queue.restore(dead)
        if had_pending:
            self._bridge.save_queue(self._queue.snapshot())
        self._loaded = True

    async def aclose(self) -> None:
        """Unsubscribe, stop the loop after the in-flight step, flush writes."""
        if self._connectivity is not None:
            self._connectivity.unsubscribe(self._on_connectivity)
        self._started = False
        self._loop.stop()
        await self.wait_idle()
        await self._bridge.flush()
        logger.info(f"[{self._engine_id}] Engine closed (queue={self._queue.size})")

    async def __aenter__(self) -> "ActionEngine":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # --- Public surface ---

    async def enqueue(self, action: Action) -> Action:
        """Append ``action`` to the live queue and trigger the loop.

        Actions enqueued before ``start()`` are kept in memory and persisted
        behind the restored snapshot.

        Raises:
            UnregisteredActionError: no hook for ``action.type``
        """
        self._registry.require(action.type)
        self._queue.enqueue(action)
        ACTIONS_ENQUEUED_TOTAL.labels(self._engine_id, action.type).inc()
        QUEUE_DEPTH.labels(self._engine_id).set(self._queue.size)

        # Saving before the first load would overwrite the persisted snapshot.
        if not self._loaded:
            return action

        self._bridge.save_queue(self._queue.snapshot())
        await self._bridge.settle()
        self.trigger()
        return action

    async def clear_dead_letter_queue(self) -> None:
        """Drop every dead-letter entry, in memory and in storage."""
        if not self._loaded:
            await self._load()
        self._router.clear()
        await self._bridge.settle()

    def trigger(self) -> Optional[asyncio.Task]:
        """Schedule a loop pass (enqueue, reconnect, app lifecycle signals).

        Safe to call redundantly: overlapping passes no-op.
        """
        if not self._started:
            return None
        task = asyncio.get_running_loop().create_task(self._loop.listen())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for every scheduled loop pass to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _on_connectivity(self, online: bool) -> None:
        was_online = self._online
        self._online = online
        if online and not was_online:
            logger.info(f"[{self._engine_id}] Back online, resuming (queue={self._queue.size})")
            self.trigger()

    # --- Read-only state ---

    @property
    def engine_id(self) -> str:
        return self._engine_id

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def queue_size(self) -> int:
        return self._queue.size

    @property
    def dead_letter_size(self) -> int:
        return self._dl_queue.size

    @property
    def pending_actions(self) -> list[Action]:
        return self._queue.snapshot()

    @property
    def dead_letters(self) -> list[DeadLetterItem]:
        return self._dl_queue.snapshot()

    @property
    def pending_writes(self) -> int:
        return self._bridge.pending_writes

    @property
    def last_write_error(self) -> Optional[Exception]:
        return self._bridge.last_error

    @property
    def online(self) -> bool:
        return self._online

    @property
    def listening(self) -> bool:
        return self._loop.listening

    @property
    def status(self) -> ProcessingStatus:
        return self._loop.status

    async def flush(self) -> None:
        """Wait for every scheduled snapshot write."""
        await self._bridge.flush()

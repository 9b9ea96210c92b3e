"""
Persistence for the live and dead-letter queues.

The engine never hands live state to storage: every mutation produces a list
snapshot which the PersistenceBridge writes in the background. Writes are
serialized per channel so snapshots land in mutation order, and the number of
writes still in flight is exposed so callers can decide on crash-safety.
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Awaitable, Callable, Protocol, Sequence

from loguru import logger
from pydantic import ValidationError

from ..errors import PersistenceError
from ..metrics.registry import PERSIST_WRITES_TOTAL
from .types import Action, DeadLetterItem


class Persistence(Protocol):
    """Durable storage for queue snapshots (consumer-supplied)."""

    async def save_queue(self, items: Sequence[Action]) -> None: ...

    async def save_dead_letters(self, items: Sequence[DeadLetterItem]) -> None: ...

    async def read_queue(self) -> list[Action]: ...

    async def read_dead_letters(self) -> list[DeadLetterItem]: ...


class MemoryPersistence:
    """In-process storage, useful for tests and ephemeral engines."""

    def __init__(
        self,
        queue: Sequence[Action] = (),
        dead_letters: Sequence[DeadLetterItem] = (),
    ):
        self.queue: list[Action] = list(queue)
        self.dead_letters: list[DeadLetterItem] = list(dead_letters)
        self.queue_saves = 0
        self.dead_letter_saves = 0

    async def save_queue(self, items: Sequence[Action]) -> None:
        self.queue = list(items)
        self.queue_saves += 1

    async def save_dead_letters(self, items: Sequence[DeadLetterItem]) -> None:
        self.dead_letters = list(items)
        self.dead_letter_saves += 1

    async def read_queue(self) -> list[Action]:
        return list(self.queue)

    async def read_dead_letters(self) -> list[DeadLetterItem]:
        return list(self.dead_letters)


class FilePersistence:
    """JSON snapshot files, one per queue.

    Each save rewrites the whole snapshot through a temp file + os.replace so a
    crash mid-write leaves the previous snapshot intact. File I/O runs in a
    worker thread to keep the event loop free.

    Example:
        store = FilePersistence(".actionq/queue.json", ".actionq/dead_letters.json")
    """

    def __init__(self, queue_path: str | Path, dead_letter_path: str | Path, *, mkdirs: bool = True):
        self.queue_path = Path(queue_path)
        self.dead_letter_path = Path(dead_letter_path)
        if mkdirs:
            self.queue_path.parent.mkdir(parents=True, exist_ok=True)
            self.dead_letter_path.parent.mkdir(parents=True, exist_ok=True)

    async def save_queue(self, items: Sequence[Action]) -> None:
        rows = [a.model_dump(mode="json") for a in items]
        await asyncio.to_thread(_write_json, self.queue_path, rows)

    async def save_dead_letters(self, items: Sequence[DeadLetterItem]) -> None:
        rows = [d.model_dump(mode="json") for d in items]
        await asyncio.to_thread(_write_json, self.dead_letter_path, rows)

    async def read_queue(self) -> list[Action]:
        rows = await asyncio.to_thread(_read_json, self.queue_path)
        return _validate_rows(Action, rows, self.queue_path)

    async def read_dead_letters(self) -> list[DeadLetterItem]:
        rows = await asyncio.to_thread(_read_json, self.dead_letter_path)
        return _validate_rows(DeadLetterItem, rows, self.dead_letter_path)


def _write_json(path: Path, rows: list[dict]) -> None:
    tmp = path.with_name(path.name + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(rows, f, separators=(",", ":"))
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp, path)


def _read_json(path: Path) -> list[dict]:
    if not path.exists():
        return []
    try:
        with open(path, "r", encoding="utf-8") as f:
            rows = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise PersistenceError(f"Corrupt snapshot {path}: {e}") from e
    if not isinstance(rows, list):
        raise PersistenceError(f"Snapshot {path} is not a JSON array")
    return rows


def _validate_rows(model, rows: list[dict], path: Path) -> list:
    try:
        return [model.model_validate(r) for r in rows]
    except ValidationError as e:
        raise PersistenceError(f"Invalid record in {path}: {e}") from e


class PersistenceBridge:
    """Sequenced background writer in front of a Persistence store.

    Args:
        persistence: Consumer-supplied store
        engine_id: Label for metrics/logs
        await_writes: When True, ``settle()`` waits for in-flight writes so
            mutating call sites return only after their snapshot is stored
    """

    QUEUE = "queue"
    DEAD_LETTER = "dead_letter"

    def __init__(self, persistence: Persistence, *, engine_id: str = "default", await_writes: bool = False):
        self._persistence = persistence
        self._engine_id = engine_id
        self.await_writes = await_writes
        self._locks = {self.QUEUE: asyncio.Lock(), self.DEAD_LETTER: asyncio.Lock()}
        self._tasks: set[asyncio.Task] = set()
        self.last_error: Exception | None = None

    @property
    def pending_writes(self) -> int:
        """Snapshot writes scheduled but not yet completed."""
        return len(self._tasks)

    def save_queue(self, items: Sequence[Action]) -> asyncio.Task:
        return self._schedule(self.QUEUE, self._persistence.save_queue, list(items))

    def save_dead_letters(self, items: Sequence[DeadLetterItem]) -> asyncio.Task:
        return self._schedule(self.DEAD_LETTER, self._persistence.save_dead_letters, list(items))

    async def read_queue(self) -> list[Action]:
        return list(await self._persistence.read_queue())

    async def read_dead_letters(self) -> list[DeadLetterItem]:
        return list(await self._persistence.read_dead_letters())

    async def flush(self) -> None:
        """Wait until every scheduled write has completed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def settle(self) -> None:
        if self.await_writes:
            await self.flush()

    def _schedule(
        self,
        channel: str,
        writer: Callable[[list], Awaitable[None]],
        snapshot: list,
    ) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._write(channel, writer, snapshot))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _write(self, channel: str, writer, snapshot: list) -> None:
        # Tasks acquire in creation order, so the last mutation's snapshot wins.
        async with self._locks[channel]:
            try:
                await writer(snapshot)
            except Exception as exc:
                self.last_error = exc
                PERSIST_WRITES_TOTAL.labels(self._engine_id, channel, "error").inc()
                logger.warning(
                    f"[{self._engine_id}] {channel} snapshot write failed "
                    f"({len(snapshot)} items): {type(exc).__name__}: {exc}"
                )
                return
            PERSIST_WRITES_TOTAL.labels(self._engine_id, channel, "ok").inc()
            logger.debug(f"[{self._engine_id}] {channel} snapshot saved ({len(snapshot)} items)")

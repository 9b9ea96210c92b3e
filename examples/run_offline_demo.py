"""
Demo for ActionEngine.

Shows:
- Actions queued while offline and persisted to JSON snapshots
- Automatic drain on reconnect, strictly in order
- Dead-lettering of failed actions (with a dead-letter transformer)
- Prometheus metrics (exposed when ACTIONQ_METRICS_PORT is set)
"""

import asyncio
import random

from loguru import logger
from prometheus_client import start_http_server

from actionq import (
    Action,
    ActionEngine,
    ActionRegistry,
    ConnectivityMonitor,
    EngineEvent,
    EventKind,
    FilePersistence,
)
from actionq.config import get_settings


async def send_message(ident, payload) -> None:
    # Simulate a flaky remote call
    await asyncio.sleep(0.02)
    if random.random() < 0.2:
        raise RuntimeError(f"remote rejected message {ident}")
    logger.info(f"Delivered message {ident}: {payload['text']!r}")


async def on_event(event: EngineEvent) -> None:
    if event.kind is EventKind.DEAD_LETTERED:
        logger.warning(f"💀 {event.action_type} dead-lettered: {event.error}")


async def main():
    cfg = get_settings()
    if cfg.METRICS_PORT:
        start_http_server(cfg.METRICS_PORT)
        logger.info(f"📊 Prometheus metrics at http://localhost:{cfg.METRICS_PORT}/metrics")

    registry = ActionRegistry(
        hooks={"send_message": send_message},
        transformers={"send_message": lambda p: (p["id"], {"text": p["text"]})},
        dead_letter_transformers={
            "send_message": lambda p: ({"id": p["id"]}, {"thread": p["thread"]})
        },
    )
    monitor = ConnectivityMonitor(online=False)
    store = FilePersistence(cfg.QUEUE_PATH, cfg.DEAD_LETTER_PATH)

    async with ActionEngine(
        registry,
        store,
        monitor,
        engine_id=cfg.ENGINE_ID,
        await_writes=cfg.AWAIT_WRITES,
    ) as engine:
        engine.events.subscribe(on_event)

        logger.info("📴 Offline: queueing 20 messages")
        for i in range(20):
            await engine.enqueue(
                Action(
                    type="send_message",
                    payload={"id": f"m{i}", "thread": "t1", "text": f"hello #{i}"},
                )
            )
        logger.info(f"Queued: {engine.queue_size} (pending writes: {engine.pending_writes})")

        await asyncio.sleep(0.2)
        logger.info("📶 Back online")
        await monitor.report(True)
        await engine.wait_idle()

        logger.info(
            f"✅ Drained: queue={engine.queue_size} dead_letters={engine.dead_letter_size}"
        )

    logger.info(f"Snapshots in {cfg.QUEUE_PATH} and {cfg.DEAD_LETTER_PATH}")


if __name__ == "__main__":
    asyncio.run(main())

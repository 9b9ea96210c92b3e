"""
Unit tests for EventBus.
"""

import pytest
from loguru import logger

from actionq.engine import EngineEvent, EventBus, EventKind


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def event():
    return EngineEvent(
        engine_id="test-engine",
        kind=EventKind.DEAD_LETTERED,
        queue_size=3,
        dead_letter_size=1,
        action_type="send",
        error="RuntimeError: boom",
    )


def test_event_is_immutable(event):
    with pytest.raises(Exception):  # dataclass frozen raises on assignment
        event.queue_size = 9  # type: ignore


@pytest.mark.asyncio
async def test_subscribe_and_publish(bus, event):
    received = []

    async def subscriber(evt: EngineEvent):
        received.append(evt)

    bus.subscribe(subscriber)
    bus.subscribe(subscriber)  # duplicate ignored
    await bus.publish(event)

    assert received == [event]
    assert bus.subscriber_count == 1


@pytest.mark.asyncio
async def test_subscribers_called_in_registration_order(bus, event):
    order = []

    async def first(evt):
        order.append("first")

    async def second(evt):
        order.append("second")

    bus.subscribe(first)
    bus.subscribe(second)
    await bus.publish(event)

    assert order == ["first", "second"]


@pytest.mark.asyncio
async def test_unsubscribe(bus, event):
    received = []

    async def subscriber(evt):
        received.append(evt)

    bus.subscribe(subscriber)
    bus.unsubscribe(subscriber)
    bus.unsubscribe(subscriber)  # safe when already gone
    await bus.publish(event)

    assert received == []


@pytest.mark.asyncio
async def test_failing_subscriber_is_isolated(bus, event):
    received = []

    async def broken(evt):
        raise ValueError("subscriber bug")

    async def healthy(evt):
        received.append(evt)

    bus.subscribe(broken)
    bus.subscribe(healthy)
    await bus.publish(event)

    assert received == [event]


@pytest.mark.asyncio
async def test_publish_logs_event_and_failing_subscriber(bus, event):
    messages = []
    sink = logger.add(lambda m: messages.append(m.record), level="DEBUG")

    async def broken(evt):
        raise ValueError("bad subscriber")

    bus.subscribe(broken)
    try:
        await bus.publish(event)
    finally:
        logger.remove(sink)

    published = [r for r in messages if r["level"].name == "DEBUG"]
    assert any("dead_lettered" in r["message"] and "queue=3" in r["message"] for r in published)
    failed = [r for r in messages if r["level"].name == "WARNING"]
    assert len(failed) == 1
    assert "broken" in failed[0]["message"]
    assert "ValueError: bad subscriber" in failed[0]["message"]

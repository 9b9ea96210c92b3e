"""
Unit tests for ProcessingLoop (ordering, single-flight, gating, halt).
"""

import asyncio
from types import SimpleNamespace

import pytest

from actionq.engine import (
    Action,
    ActionProcessor,
    ActionQueue,
    ActionRegistry,
    DeadLetterRouter,
    EventBus,
    EventKind,
    MemoryPersistence,
    PersistenceBridge,
    ProcessingLoop,
    ProcessingStatus,
    always_fatal,
    default_error_policy,
)


def build(
    hooks, *, error_policy=default_error_policy, online=True, dead_letter_transformers=None
):
    env = SimpleNamespace(online=online, events=[])
    registry = ActionRegistry(hooks=hooks, dead_letter_transformers=dead_letter_transformers)
    env.queue = ActionQueue()
    env.dl_queue = ActionQueue()
    env.store = MemoryPersistence()
    env.bridge = PersistenceBridge(env.store)
    router = DeadLetterRouter(env.dl_queue, registry, env.bridge)
    bus = EventBus()

    async def collect(event):
        env.events.append(event)

    bus.subscribe(collect)
    env.loop = ProcessingLoop(
        env.queue,
        env.dl_queue,
        ActionProcessor(registry, router),
        env.bridge,
        is_online=lambda: env.online,
        error_policy=error_policy,
        events=bus,
    )
    return env


def fill(env, *payloads, action_type="a"):
    for p in payloads:
        env.queue.enqueue(Action(type=action_type, payload=p))


def kinds(env, kind):
    return [e for e in env.events if e.kind is kind]


@pytest.mark.asyncio
async def test_drains_in_fifo_order(recorder):
    env = build({"a": recorder})
    fill(env, "A", "B", "C")

    await env.loop.listen()
    await env.bridge.flush()

    assert recorder.payloads == ["A", "B", "C"]
    assert env.queue.size == 0
    assert env.store.queue == []
    assert env.loop.listening is False


@pytest.mark.asyncio
async def test_status_is_processing_only_around_each_step():
    seen = []

    async def hook(ident, payload):
        seen.append(env.loop.status)

    env = build({"a": hook})
    fill(env, 1, 2)

    assert env.loop.status is ProcessingStatus.IDLE
    await env.loop.listen()

    assert seen == [ProcessingStatus.PROCESSING, ProcessingStatus.PROCESSING]
    assert env.loop.status is ProcessingStatus.IDLE


@pytest.mark.asyncio
async def test_single_flight_under_redundant_triggers(make_hook):
    hook = make_hook(delay=0.01)
    env = build({"a": hook})
    fill(env, *range(5))

    await asyncio.gather(
        env.loop.listen(),
        env.loop.listen(),
        env.loop.run_once(),
        env.loop.listen(),
    )

    assert hook.max_in_flight == 1
    assert hook.payloads == [0, 1, 2, 3, 4]


@pytest.mark.asyncio
async def test_offline_is_a_no_op(recorder):
    env = build({"a": recorder}, online=False)
    fill(env, "A", "B")

    await env.loop.listen()
    assert await env.loop.run_once() is None

    assert recorder.calls == []
    assert env.queue.size == 2

    env.online = True
    await env.loop.listen()
    assert recorder.payloads == ["A", "B"]


@pytest.mark.asyncio
async def test_going_offline_stops_after_current_step():
    async def hook(ident, payload):
        env.online = False

    env = build({"a": hook})
    fill(env, "A", "B", "C")

    await env.loop.listen()

    assert env.queue.size == 2
    assert env.queue.head.payload == "B"
    assert env.loop.listening is False


@pytest.mark.asyncio
async def test_run_once_on_empty_queue(recorder):
    env = build({"a": recorder})
    assert await env.loop.run_once() is None
    assert recorder.calls == []


@pytest.mark.asyncio
async def test_recoverable_failures_are_dead_lettered_and_loop_continues(make_hook):
    hook = make_hook(fail_with=RuntimeError("boom"))
    env = build({"a": hook})
    fill(env, "A", "B")

    await env.loop.listen()
    await env.bridge.flush()

    assert env.queue.size == 0
    assert [d.payload for d in env.dl_queue] == ["A", "B"]
    assert env.store.queue == []
    assert len(env.store.dead_letters) == 2
    dead = kinds(env, EventKind.DEAD_LETTERED)
    assert len(dead) == 2
    assert dead[0].error == "RuntimeError: boom"
    assert dead[0].queue_size == 1


@pytest.mark.asyncio
async def test_fatal_error_halts_with_head_in_place(make_hook):
    hook = make_hook(fail_with=RuntimeError("boom"))
    env = build({"a": hook}, error_policy=always_fatal)
    fill(env, "A", "B")

    await env.loop.listen()

    assert env.loop.listening is False
    assert env.loop.status is ProcessingStatus.IDLE
    assert env.queue.size == 2
    assert env.queue.head.payload == "A"
    assert env.dl_queue.size == 0
    assert hook.payloads == ["A"]
    halted = kinds(env, EventKind.LOOP_HALTED)
    assert len(halted) == 1
    assert halted[0].action_type == "a"
    assert halted[0].error == "RuntimeError: boom"

    # Next trigger retries the same head from scratch
    hook.fail_with = None
    await env.loop.listen()

    assert hook.payloads == ["A", "A", "B"]
    assert env.queue.size == 0


@pytest.mark.asyncio
async def test_unregistered_head_halts_loop(recorder):
    env = build({"a": recorder})
    env.queue.enqueue(Action(type="ghost", payload=None))
    fill(env, "A")

    await env.loop.listen()

    assert env.queue.head.type == "ghost"
    assert env.queue.size == 2
    assert env.dl_queue.size == 0
    assert recorder.calls == []
    assert len(kinds(env, EventKind.LOOP_HALTED)) == 1


@pytest.mark.asyncio
async def test_progress_event_after_every_step(recorder):
    env = build({"a": recorder})
    fill(env, 1, 2, 3)

    await env.loop.listen()

    assert [e.queue_size for e in kinds(env, EventKind.PROGRESS)] == [2, 1, 0]


@pytest.mark.asyncio
async def test_stopped_loop_ignores_triggers(recorder):
    env = build({"a": recorder})
    fill(env, "A")

    env.loop.stop()
    await env.loop.listen()
    assert recorder.calls == []

    env.loop.resume()
    await env.loop.listen()
    assert recorder.payloads == ["A"]


@pytest.mark.asyncio
async def test_failing_dead_letter_transformer_halts_with_head_in_place(failing_hook):
    def explode(payload):
        raise KeyError("thread")

    env = build({"a": failing_hook}, dead_letter_transformers={"a": explode})
    fill(env, "A", "B")

    await env.loop.listen()
    await env.bridge.flush()

    assert env.queue.head.payload == "A"
    assert env.queue.size == 2
    assert env.dl_queue.size == 0
    assert env.store.dead_letters == []
    assert env.loop.listening is False
    assert env.loop.status is ProcessingStatus.IDLE
    halted = kinds(env, EventKind.LOOP_HALTED)
    assert len(halted) == 1
    assert halted[0].error == "KeyError: 'thread'"
    assert kinds(env, EventKind.DEAD_LETTERED) == []


@pytest.mark.asyncio
async def test_pass_ends_when_another_step_is_in_flight(make_hook):
    hook = make_hook(delay=0.05)
    env = build({"a": hook})
    fill(env, "A", "B")

    first = asyncio.create_task(env.loop.listen())
    await asyncio.sleep(0)
    assert env.loop.status is ProcessingStatus.PROCESSING

    # A second pass that finds the step busy must return instead of spinning.
    env.loop.stop()
    env.loop.resume()
    await asyncio.wait_for(env.loop.listen(), timeout=1)
    await first

    assert hook.max_in_flight == 1
    assert hook.payloads[0] == "A"

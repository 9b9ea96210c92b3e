"""
Pytest configuration and fixtures for actionq.

Provides cross-platform event loop configuration and shared engine pieces.
"""

import asyncio
import sys

import pytest

from actionq.engine import ConnectivityMonitor, MemoryPersistence

# Set policy *before* pytest-asyncio creates any loops
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


class HookRecorder:
    """Async hook that records calls and optionally fails."""

    def __init__(self, fail_with: Exception | None = None, delay: float = 0.0):
        self.calls: list[tuple] = []
        self.fail_with = fail_with
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, ident, payload) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.calls.append((ident, payload))
            if self.fail_with is not None:
                raise self.fail_with
        finally:
            self.in_flight -= 1

    @property
    def payloads(self) -> list:
        return [p for _, p in self.calls]


@pytest.fixture
def recorder():
    """Hook that always succeeds."""
    return HookRecorder()


@pytest.fixture
def failing_hook():
    """Hook that always raises RuntimeError("boom")."""
    return HookRecorder(fail_with=RuntimeError("boom"))


@pytest.fixture
def store():
    """Fresh in-memory persistence."""
    return MemoryPersistence()


@pytest.fixture
def monitor():
    """Connectivity monitor starting online."""
    return ConnectivityMonitor(online=True)


@pytest.fixture
def offline_monitor():
    """Connectivity monitor starting offline."""
    return ConnectivityMonitor(online=False)


@pytest.fixture
def make_hook():
    """Factory for HookRecorder with custom failure/delay."""

    def _make(fail_with: Exception | None = None, delay: float = 0.0) -> HookRecorder:
        return HookRecorder(fail_with=fail_with, delay=delay)

    return _make

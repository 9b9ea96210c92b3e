"""
Connectivity signal.

The engine only needs a boolean "online" state plus change notifications.
ConnectivityMonitor is the in-process implementation: the host application
feeds it from whatever detector it uses (OS callbacks, health probes, ...).
"""

from __future__ import annotations

from typing import Protocol

from loguru import logger

from .types import ConnectivityCallback


class ConnectivitySignal(Protocol):
    """Source of connectivity changes the engine subscribes to."""

    @property
    def online(self) -> bool: ...

    def subscribe(self, callback: ConnectivityCallback) -> None: ...

    def unsubscribe(self, callback: ConnectivityCallback) -> None: ...


class ConnectivityMonitor:
    """Manually fed connectivity signal.

    Example:
        monitor = ConnectivityMonitor(online=False)
        engine = ActionEngine(registry, store, monitor)
        ...
        await monitor.report(True)  # engine resumes draining
    """

    def __init__(self, online: bool = True) -> None:
        self._online = online
        self._subs: list[ConnectivityCallback] = []

    @property
    def online(self) -> bool:
        return self._online

    @property
    def subscriber_count(self) -> int:
        return len(self._subs)

    def subscribe(self, callback: ConnectivityCallback) -> None:
        if callback not in self._subs:
            self._subs.append(callback)

    def unsubscribe(self, callback: ConnectivityCallback) -> None:
        try:
            self._subs.remove(callback)
        except ValueError:
            pass

    async def report(self, online: bool) -> None:
        """Record the current state and notify every subscriber."""
        if online != self._online:
            logger.info(f"Connectivity changed: {'online' if online else 'offline'}")
        self._online = online

        for callback in list(self._subs):
            try:
                await callback(online)
            except Exception as exc:
                logger.debug(f"Connectivity subscriber error (ignored): {type(exc).__name__}: {exc}")

"""Aggregate agent status for local observers."""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class StatusSnapshot:
    state: str = "disconnected"
    connected: bool = False
    device_ready: bool = False
    device_name: Optional[str] = None
    last_heartbeat_at: Optional[datetime] = None
    pending_jobs: int = 0
    last_error: Optional[str] = None

    def as_dict(self) -> Dict[str, object]:
        return {
            "state": self.state,
            "connected": self.connected,
            "printerReady": self.device_ready,
            "printerName": self.device_name,
            "lastHeartbeat": (
                self.last_heartbeat_at.isoformat(timespec="seconds")
                if self.last_heartbeat_at
                else None
            ),
            "pendingJobs": self.pending_jobs,
            "lastError": self.last_error,
        }


StatusListener = Callable[[StatusSnapshot], Awaitable[None] | None]


class StatusPublisher:
    """Holds the latest status snapshot and broadcasts every change.

    Listeners are called synchronously in registration order. Coroutine
    listeners are scheduled on the running loop rather than awaited so that
    callers can publish from synchronous teardown paths.
    """

    def __init__(self, initial: Optional[StatusSnapshot] = None) -> None:
        self._snapshot = initial or StatusSnapshot()
        self._listeners: list[StatusListener] = []
        self._pending: set[asyncio.Task[None]] = set()

    def snapshot(self) -> StatusSnapshot:
        return self._snapshot

    def subscribe(self, listener: StatusListener) -> None:
        if listener in self._listeners:
            raise ValueError("Listener already subscribed")
        self._listeners.append(listener)

    def unsubscribe(self, listener: StatusListener) -> None:
        with contextlib.suppress(ValueError):
            self._listeners.remove(listener)

    def update(self, **changes: Any) -> StatusSnapshot:
        snapshot = dataclasses.replace(self._snapshot, **changes)
        self._snapshot = snapshot

        for listener in list(self._listeners):
            try:
                result = listener(snapshot)
            except Exception:
                LOGGER.exception("Status listener failed")
                continue
            if asyncio.iscoroutine(result):
                self._schedule(result)

        return snapshot

    def _schedule(self, coro: Awaitable[None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.warning("Dropping async status listener outside of an event loop")
            coro.close()  # type: ignore[attr-defined]
            return

        task = loop.create_task(coro)  # type: ignore[arg-type]
        self._pending.add(task)
        task.add_done_callback(self._listener_done)

    def _listener_done(self, task: asyncio.Task[None]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Async status listener failed: %s", exc)

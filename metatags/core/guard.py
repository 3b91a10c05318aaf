"""Reentrancy suppression and change coalescing for the sync engine.

The engine's own writes come back as change notifications. Three mechanisms
keep them from looping:

- ``ReentrancyGuard``: scoped hold per (operation kind, document path); while
  held, notifications for that path are dropped.
- ``Debouncer``: per-path quiet window; a burst of notifications runs one pass.
- ``RecentWrites``: paths the engine just wrote stay suppressed for a short
  window, covering re-delivery before the host indexer catches up.
"""

import asyncio
import logging
import time
from collections import Counter
from contextlib import contextmanager
from enum import Enum
from typing import Awaitable, Callable, Iterator

logger = logging.getLogger(__name__)


class OperationKind(str, Enum):
    """Kinds of engine activity that hold the guard."""

    DISPATCH = "dispatch"
    APPLY = "apply"
    PROPAGATE = "propagate"
    PRUNE = "prune"


class ReentrancyGuard:
    """Scoped suppression keyed by operation kind and document path."""

    def __init__(self) -> None:
        # Counts allow the same kind to be held re-entrantly on a path
        self._held: Counter[tuple[OperationKind, str]] = Counter()

    @contextmanager
    def hold(self, kind: OperationKind, path: str) -> Iterator[None]:
        """Hold the guard for (kind, path); released on every exit path."""
        key = (kind, path)
        self._held[key] += 1
        try:
            yield
        finally:
            self._held[key] -= 1
            if self._held[key] <= 0:
                del self._held[key]

    def is_held(self, path: str, kind: OperationKind | None = None) -> bool:
        if kind is not None:
            return self._held.get((kind, path), 0) > 0
        return any(p == path for _, p in self._held)


class RecentWrites:
    """Remembers paths written by the engine for a short window."""

    def __init__(self, window: float = 2.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.window = window
        self._clock = clock
        self._written: dict[str, float] = {}

    def mark(self, path: str) -> None:
        self._written[path] = self._clock()

    def is_recent(self, path: str) -> bool:
        written_at = self._written.get(path)
        if written_at is None:
            return False
        if self._clock() - written_at >= self.window:
            del self._written[path]
            return False
        return True

    def clear(self) -> None:
        self._written.clear()


class Debouncer:
    """Per-path coalescing of bursts into a single callback run.

    Each ``schedule`` call for a path restarts its quiet window; only the last
    scheduled callback runs once the window passes without new calls.
    """

    def __init__(self, delay: float = 0.5) -> None:
        self.delay = delay
        self._handles: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task] = set()

    def schedule(self, path: str, callback: Callable[[str], Awaitable[object]]) -> None:
        """Run callback(path) after the quiet window; must be called on the loop."""
        loop = asyncio.get_running_loop()
        handle = self._handles.pop(path, None)
        if handle is not None:
            handle.cancel()
        self._handles[path] = loop.call_later(self.delay, self._fire, path, callback)

    def _fire(self, path: str, callback: Callable[[str], Awaitable[object]]) -> None:
        self._handles.pop(path, None)
        task = asyncio.ensure_future(callback(path))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Error while processing debounced change", exc_info=exc)

    def pending(self, path: str) -> bool:
        return path in self._handles

    def cancel_all(self) -> None:
        """Cancel pending windows (running callbacks are left to finish)."""
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()

    async def drain(self) -> None:
        """Wait for callbacks that already started."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

"""Vault file monitoring using watchdog.

A watchdog ``Observer`` watches the vault recursively on its own thread. Each
filesystem event for a document is handed to the asyncio loop with
``call_soon_threadsafe`` and delivered to the engine as a change or delete
notification; coalescing happens in the engine's debouncer.
"""

import asyncio
import logging
import os

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .engine import SyncEngine
from .vault import VaultHost

logger = logging.getLogger(__name__)


class _EventHandler(FileSystemEventHandler):
    """Watchdog handler that feeds events into the watcher."""

    def __init__(self, watcher: "VaultWatcher"):
        super().__init__()
        self._watcher = watcher

    def on_created(self, event):
        if not event.is_directory:
            self._watcher._on_fs_event(event.src_path, "changed")

    def on_modified(self, event):
        if not event.is_directory:
            self._watcher._on_fs_event(event.src_path, "changed")

    def on_deleted(self, event):
        if not event.is_directory:
            self._watcher._on_fs_event(event.src_path, "deleted")

    def on_moved(self, event):
        if not event.is_directory:
            self._watcher._on_fs_event(event.src_path, "deleted")
            self._watcher._on_fs_event(event.dest_path, "changed")


class VaultWatcher:
    """Delivers vault filesystem events to a sync engine.

    Lifecycle:
        1. ``start()``: must be called from the running event loop.
        2. Events arrive on the observer thread and are forwarded to the engine on the loop.
        3. ``stop()``: tears down the observer.
    """

    def __init__(self, vault: VaultHost, engine: SyncEngine) -> None:
        self.vault = vault
        self.engine = engine
        self._loop: asyncio.AbstractEventLoop | None = None
        self._observer: Observer | None = None

    @property
    def running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        if self._observer is not None:
            return
        self._loop = asyncio.get_running_loop()
        observer = Observer()
        observer.schedule(_EventHandler(self), str(self.vault.root), recursive=True)
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.info("Watching %s", self.vault.root)

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5)
        self._observer = None
        logger.info("Stopped watching %s", self.vault.root)

    def _on_fs_event(self, abs_path: str | bytes, status: str) -> None:
        """Runs on the observer thread."""
        rel = self.vault.relative(os.fsdecode(abs_path))
        if rel is None or self._loop is None:
            return
        self._loop.call_soon_threadsafe(self._dispatch, rel, status)

    def _dispatch(self, path: str, status: str) -> None:
        """Runs on the event loop."""
        if status == "deleted":
            if not self.vault.absolute(path).exists():
                self.engine.notify_deleted(path)
            return
        self.engine.notify_changed(path)

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """Watch until stop_event is set (or forever)."""
        stop_event = stop_event or asyncio.Event()
        self.start()
        try:
            await stop_event.wait()
        finally:
            self.stop()
            await self.engine.close()

"""File system watcher relaying structural changes to the host.

This module provides:
- WatcherBridge: Watches a repository root using watchdog
- EventChannel: Hands events from the observer thread to an asyncio queue

The bridge only reports what happened; deciding whether to re-run change
detection is left to the orchestrator.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from codesync.client.sync.filters import PathFilter
from codesync.client.sync.types import WatchCallback, WatchEvent, WatchEventKind

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver, ObservedWatch

logger = logging.getLogger(__name__)


def _decode(path: str | bytes) -> Path:
    if isinstance(path, bytes):
        path = path.decode("utf-8", errors="replace")
    return Path(path)


class RelayEventHandler(FileSystemEventHandler):
    """Translates watchdog events into WatchEvents for a callback."""

    def __init__(
        self,
        path_filter: PathFilter,
        on_event: WatchCallback,
        watch_path: Path | None = None,
    ) -> None:
        """Initialize the handler.

        Args:
            path_filter: Supplies the directory-exclusion rule.
            on_event: Receives every event outside excluded directories.
            watch_path: Directory this handler watches; events about the
                directory itself are left to the watch on its parent.
        """
        super().__init__()
        self._filter = path_filter
        self._on_event = on_event
        self._watch_path = watch_path

    def _relay(self, kind: WatchEventKind, path: Path) -> None:
        if path == self._watch_path or self._filter.is_excluded_directory(path):
            return
        event = WatchEvent(kind, path)
        logger.debug(f"Watcher relayed event: {event}")
        try:
            self._on_event(event)
        except Exception:
            # Keep the observer thread alive
            logger.exception(f"Watch callback failed for {event}")

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle created event."""
        if isinstance(event, DirCreatedEvent):
            self._relay(WatchEventKind.FOLDER_ADDED, _decode(event.src_path))
        elif isinstance(event, FileCreatedEvent):
            self._relay(WatchEventKind.FILE_ADDED, _decode(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle modified event (directory modifications carry no kind)."""
        if isinstance(event, FileModifiedEvent):
            self._relay(WatchEventKind.FILE_CHANGED, _decode(event.src_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle deleted event."""
        if isinstance(event, DirDeletedEvent):
            self._relay(WatchEventKind.FOLDER_DELETED, _decode(event.src_path))
        elif isinstance(event, FileDeletedEvent):
            self._relay(WatchEventKind.FILE_DELETED, _decode(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle moved event as a delete of the source and an add of the target."""
        src = _decode(event.src_path)
        dest = _decode(event.dest_path)
        if isinstance(event, DirMovedEvent):
            self._relay(WatchEventKind.FOLDER_DELETED, src)
            self._relay(WatchEventKind.FOLDER_ADDED, dest)
        elif isinstance(event, FileMovedEvent):
            self._relay(WatchEventKind.FILE_DELETED, src)
            self._relay(WatchEventKind.FILE_ADDED, dest)


class _RootEventHandler(RelayEventHandler):
    """Relays events for the root's direct children.

    Also keeps the per-directory watches in step with the top-level directories.
    """

    def __init__(
        self,
        path_filter: PathFilter,
        on_event: WatchCallback,
        bridge: WatcherBridge,
    ) -> None:
        super().__init__(path_filter, on_event)
        self._bridge = bridge

    def on_created(self, event: FileSystemEvent) -> None:
        if isinstance(event, DirCreatedEvent):
            self._bridge._watch_subtree(_decode(event.src_path))
        super().on_created(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if isinstance(event, DirDeletedEvent):
            self._bridge._unwatch_subtree(_decode(event.src_path))
        super().on_deleted(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        if isinstance(event, DirMovedEvent):
            self._bridge._unwatch_subtree(_decode(event.src_path))
            self._bridge._watch_subtree(_decode(event.dest_path))
        super().on_moved(event)


class EventChannel:
    """Single queue of WatchEvents consumed on the event loop.

    Usage:
        channel = EventChannel(asyncio.get_running_loop())
        bridge.subscribe(channel.put)
        event = await channel.get()
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._queue: asyncio.Queue[WatchEvent] = asyncio.Queue()

    def put(self, event: WatchEvent) -> None:
        """Enqueue an event. Safe to call from the observer thread."""
        self._loop.call_soon_threadsafe(self._queue.put_nowait, event)

    async def get(self) -> WatchEvent:
        """Wait for the next event."""
        return await self._queue.get()

    def get_nowait(self) -> WatchEvent:
        """Get an event if one is available.

        Raises:
            asyncio.QueueEmpty: If no event is queued.
        """
        return self._queue.get_nowait()

    def __len__(self) -> int:
        return self._queue.qsize()


class WatcherBridge:
    """Watches a repository root and relays changes to a subscriber.

    The root itself is watched non-recursively and every top-level directory
    gets its own recursive watch, so VCS and dependency directories directly
    under the root (``.git``, ``node_modules``) never get watches. Nested ones
    are still watched and their events dropped by the handler.
    """

    def __init__(self, root: Path, path_filter: PathFilter | None = None) -> None:
        """Initialize the bridge.

        Args:
            root: Directory to watch.
            path_filter: Supplies the directory-exclusion rule.
        """
        self._root = Path(root).resolve()
        if not self._root.is_dir():
            raise ValueError(f"Watch path must be a directory: {root}")
        self._filter = path_filter or PathFilter(root=self._root)
        self._observer: BaseObserver | None = None
        self._on_event: WatchCallback | None = None
        self._subtrees: dict[Path, ObservedWatch] = {}

    @property
    def root(self) -> Path:
        """Get the watched directory path."""
        return self._root

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._observer is not None

    @property
    def watched_directories(self) -> list[Path]:
        """Get the top-level directories that have a recursive watch."""
        return sorted(self._subtrees.copy())

    def subscribe(self, on_event: WatchCallback) -> None:
        """Start watching and relay events to on_event.

        Calling this on a running bridge does nothing.
        """
        if self._observer is not None:
            return

        observer = Observer()
        observer.schedule(
            _RootEventHandler(self._filter, on_event, self),
            str(self._root),
            recursive=False,
        )
        self._observer = observer
        self._on_event = on_event
        for child in self._root.iterdir():
            self._watch_subtree(child)
        observer.start()
        logger.info(f"Watching {self._root} ({len(self._subtrees)} directories)")

    def _watch_subtree(self, path: Path) -> None:
        # Runs on the observer thread for directories created after subscribe()
        if self._observer is None or self._on_event is None:
            return
        if path.parent != self._root or path in self._subtrees:
            return
        if self._filter.is_unwatched(path.name) or path.is_symlink() or not path.is_dir():
            return
        try:
            self._subtrees[path] = self._observer.schedule(
                RelayEventHandler(self._filter, self._on_event, watch_path=path),
                str(path),
                recursive=True,
            )
        except OSError as e:
            logger.warning(f"Cannot watch {path}: {e}")

    def _unwatch_subtree(self, path: Path) -> None:
        watch = self._subtrees.pop(path, None)
        if watch is None or self._observer is None:
            return
        try:
            self._observer.unschedule(watch)
        except KeyError:
            logger.debug(f"Watch on {path} already gone")

    def stop(self) -> None:
        """Stop watching for changes."""
        if self._observer is None:
            return

        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None
        self._on_event = None
        self._subtrees.clear()

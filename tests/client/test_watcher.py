"""Tests for the file system watcher bridge."""

import asyncio
import time
from collections.abc import Callable
from pathlib import Path

import pytest
from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from codesync.client.sync.filters import PathFilter
from codesync.client.sync.types import WatchEvent, WatchEventKind
from codesync.client.sync.watcher import EventChannel, RelayEventHandler, WatcherBridge


def wait_for(condition: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll condition until it holds or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.05)
    return condition()


@pytest.fixture
def events() -> list[WatchEvent]:
    """Collected relayed events."""
    return []


@pytest.fixture
def handler(tmp_path: Path, events: list[WatchEvent]) -> RelayEventHandler:
    """Create a handler that appends to events."""
    return RelayEventHandler(PathFilter(root=tmp_path), events.append)


class TestRelayEventHandler:
    """Tests for RelayEventHandler."""

    def test_created(self, tmp_path: Path, handler: RelayEventHandler, events: list[WatchEvent]) -> None:
        """Should report file and folder creation."""
        handler.dispatch(FileCreatedEvent(str(tmp_path / "a.py")))
        handler.dispatch(DirCreatedEvent(str(tmp_path / "src")))

        assert events == [
            WatchEvent(WatchEventKind.FILE_ADDED, tmp_path / "a.py"),
            WatchEvent(WatchEventKind.FOLDER_ADDED, tmp_path / "src"),
        ]

    def test_modified(self, tmp_path: Path, handler: RelayEventHandler, events: list[WatchEvent]) -> None:
        """Should report file changes but not directory modifications."""
        handler.dispatch(FileModifiedEvent(str(tmp_path / "a.py")))
        handler.dispatch(DirModifiedEvent(str(tmp_path / "src")))

        assert events == [WatchEvent(WatchEventKind.FILE_CHANGED, tmp_path / "a.py")]

    def test_deleted(self, tmp_path: Path, handler: RelayEventHandler, events: list[WatchEvent]) -> None:
        """Should report file and folder deletion."""
        handler.dispatch(FileDeletedEvent(str(tmp_path / "a.py")))
        handler.dispatch(DirDeletedEvent(str(tmp_path / "src")))

        assert [e.kind for e in events] == [
            WatchEventKind.FILE_DELETED,
            WatchEventKind.FOLDER_DELETED,
        ]

    def test_moved(self, tmp_path: Path, handler: RelayEventHandler, events: list[WatchEvent]) -> None:
        """Should report a move as a delete followed by an add."""
        handler.dispatch(FileMovedEvent(str(tmp_path / "a.py"), str(tmp_path / "b.py")))
        handler.dispatch(DirMovedEvent(str(tmp_path / "x"), str(tmp_path / "y")))

        assert events == [
            WatchEvent(WatchEventKind.FILE_DELETED, tmp_path / "a.py"),
            WatchEvent(WatchEventKind.FILE_ADDED, tmp_path / "b.py"),
            WatchEvent(WatchEventKind.FOLDER_DELETED, tmp_path / "x"),
            WatchEvent(WatchEventKind.FOLDER_ADDED, tmp_path / "y"),
        ]

    def test_excluded_directories(
        self, tmp_path: Path, handler: RelayEventHandler, events: list[WatchEvent]
    ) -> None:
        """Should drop events inside .git and node_modules, not the directory itself."""
        handler.dispatch(FileModifiedEvent(str(tmp_path / ".git" / "index")))
        handler.dispatch(FileCreatedEvent(str(tmp_path / "node_modules" / "x" / "a.js")))
        handler.dispatch(DirCreatedEvent(str(tmp_path / "node_modules")))

        assert events == [WatchEvent(WatchEventKind.FOLDER_ADDED, tmp_path / "node_modules")]

    def test_watched_directory_itself_dropped(self, tmp_path: Path, events: list[WatchEvent]) -> None:
        """A subtree handler should leave events about its own directory to the root."""
        handler = RelayEventHandler(
            PathFilter(root=tmp_path), events.append, watch_path=tmp_path / "src"
        )
        handler.dispatch(DirDeletedEvent(str(tmp_path / "src")))
        handler.dispatch(FileDeletedEvent(str(tmp_path / "src" / "a.py")))

        assert events == [WatchEvent(WatchEventKind.FILE_DELETED, tmp_path / "src" / "a.py")]

    def test_callback_error_contained(self, tmp_path: Path) -> None:
        """A failing callback should not propagate into the observer."""

        def explode(event: WatchEvent) -> None:
            raise RuntimeError("boom")

        handler = RelayEventHandler(PathFilter(root=tmp_path), explode)
        handler.dispatch(FileCreatedEvent(str(tmp_path / "a.py")))


class TestEventChannel:
    """Tests for EventChannel."""

    @pytest.mark.asyncio
    async def test_delivers_from_thread(self, tmp_path: Path) -> None:
        """Events put from another thread should arrive in order."""
        channel = EventChannel(asyncio.get_running_loop())
        first = WatchEvent(WatchEventKind.FILE_ADDED, tmp_path / "a.py")
        second = WatchEvent(WatchEventKind.FILE_CHANGED, tmp_path / "a.py")

        await asyncio.to_thread(channel.put, first)
        await asyncio.to_thread(channel.put, second)

        assert await asyncio.wait_for(channel.get(), timeout=1.0) == first
        assert await asyncio.wait_for(channel.get(), timeout=1.0) == second
        assert len(channel) == 0

    @pytest.mark.asyncio
    async def test_get_nowait_empty(self) -> None:
        """Should raise when nothing is queued."""
        channel = EventChannel(asyncio.get_running_loop())
        with pytest.raises(asyncio.QueueEmpty):
            channel.get_nowait()


class TestWatcherBridge:
    """Tests for WatcherBridge."""

    def test_requires_directory(self, tmp_path: Path) -> None:
        """Should reject a root that is not a directory."""
        path = tmp_path / "file.txt"
        path.write_text("x")
        with pytest.raises(ValueError, match="directory"):
            WatcherBridge(path)

    def test_subscribe_idempotent(self, tmp_path: Path) -> None:
        """Subscribing twice should keep a single observer."""
        bridge = WatcherBridge(tmp_path)
        try:
            bridge.subscribe(lambda event: None)
            observer = bridge._observer
            bridge.subscribe(lambda event: None)

            assert bridge.is_running
            assert bridge._observer is observer
        finally:
            bridge.stop()
        assert not bridge.is_running

    def test_reports_new_file(self, tmp_path: Path) -> None:
        """Should relay a file created under the root."""
        received: list[WatchEvent] = []
        bridge = WatcherBridge(tmp_path)
        bridge.subscribe(received.append)
        try:
            target = bridge.root / "new.py"
            target.write_text("x")

            deadline = time.monotonic() + 5.0
            while time.monotonic() < deadline:
                if any(e.path == target for e in received):
                    break
                time.sleep(0.05)
        finally:
            bridge.stop()

        assert WatchEvent(WatchEventKind.FILE_ADDED, target) in received

    def test_skips_excluded_subtrees(self, tmp_path: Path) -> None:
        """.git and node_modules under the root should get no watch."""
        for name in ("src", ".git", "node_modules/pkg"):
            (tmp_path / name).mkdir(parents=True)
        (tmp_path / "main.py").write_text("x")
        bridge = WatcherBridge(tmp_path)
        bridge.subscribe(lambda event: None)
        try:
            assert bridge.watched_directories == [bridge.root / "src"]
            assert bridge._observer is not None
            watched = {Path(emitter.watch.path) for emitter in bridge._observer.emitters}
            assert watched == {bridge.root, bridge.root / "src"}
        finally:
            bridge.stop()

    def test_watches_new_directory(self, tmp_path: Path) -> None:
        """A directory created after subscribing should be watched recursively."""
        received: list[WatchEvent] = []
        bridge = WatcherBridge(tmp_path)
        bridge.subscribe(received.append)
        try:
            lib = bridge.root / "lib"
            lib.mkdir()
            assert wait_for(lambda: lib in bridge.watched_directories)

            target = lib / "a.py"
            target.write_text("x")
            assert wait_for(
                lambda: WatchEvent(WatchEventKind.FILE_ADDED, target) in received
            )
        finally:
            bridge.stop()

    def test_removed_directory_unwatched(self, tmp_path: Path) -> None:
        """Deleting a top-level directory should drop its watch."""
        (tmp_path / "src").mkdir()
        bridge = WatcherBridge(tmp_path)
        bridge.subscribe(lambda event: None)
        try:
            (bridge.root / "src").rmdir()
            assert wait_for(lambda: bridge.watched_directories == [])
        finally:
            bridge.stop()

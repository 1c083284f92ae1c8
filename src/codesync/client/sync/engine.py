"""Sync orchestration for one repository root.

This module provides:
- SyncOrchestrator: Runs discovery, change detection and upload as phases

Phases:
    IDLE → WALKING → DETECTING → UPLOADING → DONE

    cancel() moves any non-terminal run to CANCELLED at the next phase
    boundary. Requests already in flight are not aborted, but their results
    are discarded. When uploads are not permitted (remote mode or the user
    has not opted in) a run resolves to DONE without touching the network.
    A stage that raises is logged and ends the run in DONE (or CANCELLED)
    with no report, so the next start() is accepted.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from codesync.client.api import INDEX_DONE, STATUS_ERROR, STATUS_NOT_FOUND, APIError
from codesync.client.preferences import Preferences, RepoSettings
from codesync.client.sync.change_scanner import ChangeScanner
from codesync.client.sync.filters import PathFilter
from codesync.client.sync.fs import LocalFileSystem
from codesync.client.sync.types import (
    ProgressCallback,
    SyncError,
    SyncSession,
    TransferErrorKind,
    TransferReport,
    WatchCallback,
)
from codesync.client.sync.upload import UploadPipeline
from codesync.client.sync.vcs import GitIgnoreResolver
from codesync.client.sync.walker import TreeWalker
from codesync.client.sync.watcher import EventChannel, WatcherBridge
from codesync.core.config import SyncConfig
from codesync.core.types import SyncPhase

if TYPE_CHECKING:
    from codesync.client.api import IndexClient

logger = logging.getLogger(__name__)

_RUNNING_PHASES = (SyncPhase.WALKING, SyncPhase.DETECTING, SyncPhase.UPLOADING)


class SyncOrchestrator:
    """Coordinates a full or incremental sync of one repository root.

    Usage:
        orchestrator = SyncOrchestrator(root, client, preferences=prefs)
        report = await orchestrator.start(repo_id)

        # Keep in sync until cancelled
        await orchestrator.run_periodic()
    """

    def __init__(
        self,
        root: Path,
        client: IndexClient,
        config: SyncConfig | None = None,
        preferences: Preferences | None = None,
        fs: LocalFileSystem | None = None,
        resolver: GitIgnoreResolver | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            root: Repository root to synchronize.
            client: HTTP client bound to this root.
            config: Sync options.
            preferences: Persisted preferences (upload opt-in, repo settings).
            fs: File system access layer.
            resolver: VCS ignore listing for the root.
        """
        self._root = Path(root).resolve()
        self._client = client
        self._config = config or SyncConfig()
        self._preferences = preferences or Preferences()
        fs = fs or LocalFileSystem()

        self._filter = PathFilter(self._config, self._root)
        self._resolver = resolver or GitIgnoreResolver(
            self._root, page_size=self._config.vcs_page_size
        )
        self._walker = TreeWalker(self._root, self._filter, fs, self._config)
        self._scanner = ChangeScanner(client, self._root, fs, self._config)
        self._pipeline = UploadPipeline(
            client,
            self._root,
            fs,
            self._config,
            is_permitted=lambda: self.uploads_permitted() and not self.is_cancelled,
        )

        self._phase = SyncPhase.IDLE
        self._session: SyncSession | None = None
        self._last_report: TransferReport | None = None
        self._cancel_event = asyncio.Event()
        self._watcher: WatcherBridge | None = None
        self._channel: EventChannel | None = None

    # === State ===

    @property
    def root(self) -> Path:
        """Get the repository root."""
        return self._root

    @property
    def phase(self) -> SyncPhase:
        """Get the current phase."""
        return self._phase

    @property
    def session(self) -> SyncSession | None:
        """Get the current sync session."""
        return self._session

    @property
    def last_report(self) -> TransferReport | None:
        """Get the transfer report of the last completed run."""
        return self._last_report

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation was requested."""
        return self._cancel_event.is_set()

    def uploads_permitted(self) -> bool:
        """Check if the operating context allows contacting the server."""
        return not self._config.remote_mode and self._preferences.uploads_enabled

    def progress(self) -> float:
        """Get upload progress of the current session."""
        if self._session is None:
            return 0.0
        return self._session.progress()

    def cancel(self) -> None:
        """Request cancellation; takes effect at the next phase boundary."""
        self._cancel_event.set()
        if not self._phase.is_terminal and self._phase not in _RUNNING_PHASES:
            self._phase = SyncPhase.CANCELLED
        logger.info(f"Sync of {self._root} cancelled")

    def _enter(self, phase: SyncPhase) -> bool:
        if self.is_cancelled:
            self._phase = SyncPhase.CANCELLED
            return False
        logger.debug(f"{self._root}: {self._phase.value} -> {phase.value}")
        self._phase = phase
        return True

    # === Sync ===

    async def list_files(self) -> list[Path]:
        """Discover eligible files, honoring the VCS ignore set."""
        if not self.uploads_permitted():
            return []
        ignored = await self._resolver.list_ignored()
        return await self._walker.walk(ignored)

    async def start(
        self,
        repo_id: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> TransferReport | None:
        """Run a full sync in a new session.

        Args:
            repo_id: Remote repository identifier; defaults to the current
                session's or the one stored in preferences.
            on_progress: Called with the upload fraction after each transfer.

        Returns:
            The transfer report, or None if the run was cancelled or a stage
            raised (the error is logged and the run ends DONE).

        Raises:
            SyncError: If a run is already in progress or no repository id
                is known.
        """
        if repo_id is None and self._session is not None:
            repo_id = self._session.repo_id
        if repo_id is None:
            repo_id = self._preferences.load_repo_settings(self._root).repo_id
        if repo_id is None:
            raise SyncError(f"No repository registered for {self._root}")

        self._guard_not_running()
        self._cancel_event.clear()
        self._session = SyncSession(root=self._root, repo_id=repo_id)
        return await self._run(on_progress)

    async def resync(
        self, on_progress: ProgressCallback | None = None
    ) -> TransferReport | None:
        """Run again from WALKING with the current session's identifiers."""
        if self._session is None:
            raise SyncError("resync() requires a previous start()")
        self._guard_not_running()
        self._cancel_event.clear()
        return await self._run(on_progress)

    def _guard_not_running(self) -> None:
        if self._phase in _RUNNING_PHASES:
            raise SyncError(f"Sync of {self._root} already in progress")

    async def _run(self, on_progress: ProgressCallback | None) -> TransferReport | None:
        session = self._session
        assert session is not None

        if not self.uploads_permitted():
            logger.info("Uploads not permitted, skipping sync")
            session.begin(0)
            session.finished = True
            self._phase = SyncPhase.DONE
            self._last_report = TransferReport()
            return self._last_report

        try:
            report = await self._run_stages(session, on_progress)
        except Exception:
            logger.exception(f"Sync of {self._root} failed in phase {self._phase.value}")
            self._abort(session)
            return None
        if report is None:
            return None
        self._finish(report)
        return report

    async def _run_stages(
        self, session: SyncSession, on_progress: ProgressCallback | None
    ) -> TransferReport | None:
        if not self._enter(SyncPhase.WALKING):
            return None
        files = await self.list_files()

        if not self._enter(SyncPhase.DETECTING):
            return None
        changes = await self._scanner.detect_changes(files, session.repo_id)

        if not self._enter(SyncPhase.UPLOADING):
            return None
        report = await self._pipeline.transfer(changes, session, on_progress)

        if self.is_cancelled:
            self._phase = SyncPhase.CANCELLED
            return None
        return report

    def _abort(self, session: SyncSession) -> None:
        """End a run that raised so the next start() is not refused."""
        session.finished = True
        self._phase = SyncPhase.CANCELLED if self.is_cancelled else SyncPhase.DONE
        self._last_report = None

    def _finish(self, report: TransferReport) -> None:
        self._phase = SyncPhase.DONE
        self._last_report = report
        if not report.failed:
            return
        kinds = [r.error.kind for r in report.failed if r.error is not None]
        missing = kinds.count(TransferErrorKind.FILE_MISSING)
        skipped = kinds.count(TransferErrorKind.SKIPPED)
        logger.warning(
            f"{len(kinds) - missing - skipped} transfers failed remotely, "
            f"{missing} files vanished, {skipped} not sent; retrying on the next sync"
        )

    async def reindex(self) -> None:
        """Ask the server to re-index the repository."""
        if not self.uploads_permitted() or self._session is None:
            return
        try:
            await self._client.finish_upload(self._session.repo_id)
        except APIError as e:
            logger.warning(f"Re-index request failed: {e}")

    async def _wait_cancelled(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True

    async def run_periodic(self) -> None:
        """Re-sync every ``sync_interval`` and re-index every
        ``reindex_interval`` seconds until cancel() is called."""
        if self._session is None:
            raise SyncError("run_periodic() requires a previous start()")

        last_reindex = time.monotonic()
        while not await self._wait_cancelled(self._config.sync_interval):
            if self._phase not in _RUNNING_PHASES:
                await self._run(None)
            if time.monotonic() - last_reindex >= self._config.reindex_interval:
                await self.reindex()
                last_reindex = time.monotonic()
        logger.info(f"Periodic sync of {self._root} stopped")

    # === Watcher ===

    def start_watcher(self, on_event: WatchCallback) -> WatcherBridge:
        """Relay file system events under the root to on_event.

        Starting the watcher twice is a no-op.
        """
        if self._watcher is None:
            self._watcher = WatcherBridge(self._root, self._filter)
        self._watcher.subscribe(on_event)
        return self._watcher

    def open_event_channel(self) -> EventChannel:
        """Start the watcher and deliver its events to an asyncio queue.

        Must be called from the running event loop.
        """
        if self._channel is None:
            self._channel = EventChannel(asyncio.get_running_loop())
            self.start_watcher(self._channel.put)
        return self._channel

    def stop_watcher(self) -> None:
        """Stop the watcher if it is running."""
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None
            self._channel = None

    # === Host handlers ===

    async def init_project(self) -> str | None:
        """Restore the remote binding saved for this root.

        Returns:
            The stored repository id if the server still knows it, else None
            (stale settings are cleared).
        """
        settings = self._preferences.load_repo_settings(self._root)
        if not settings.uploaded or settings.repo_id is None:
            return None

        status = await self._client.check_status(settings.repo_id)
        if status in (STATUS_NOT_FOUND, STATUS_ERROR):
            logger.info(f"Repository {settings.repo_id} unavailable ({status}), forgetting it")
            self._preferences.save_repo_settings(self._root, RepoSettings())
            return None

        if self._session is None or self._session.repo_id != settings.repo_id:
            self._session = SyncSession(root=self._root, repo_id=settings.repo_id)
            self._session.finished = True
        return settings.repo_id

    async def index_project(
        self, on_progress: ProgressCallback | None = None
    ) -> str | None:
        """Register the root as a new repository and upload every file.

        Returns:
            The new repository id, or None if uploads are not permitted, the
            server is unavailable, or the run was cancelled or failed.
        """
        if not self.uploads_permitted():
            return None
        self._guard_not_running()
        self._cancel_event.clear()

        try:
            repo_id = await self._client.register_repo()
        except APIError as e:
            logger.warning(f"Cannot register {self._root}: {e}")
            return None

        session = SyncSession(root=self._root, repo_id=repo_id)
        self._session = session
        try:
            report = await self._upload_everything(session, on_progress)
        except Exception:
            logger.exception(f"Initial upload of {self._root} failed in phase {self._phase.value}")
            self._abort(session)
            return None
        if report is None:
            return None

        self._finish(report)
        await self.reindex()
        self._preferences.save_repo_settings(
            self._root, RepoSettings(repo_id=repo_id, uploaded=True)
        )
        return repo_id

    async def _upload_everything(
        self, session: SyncSession, on_progress: ProgressCallback | None
    ) -> TransferReport | None:
        if not self._enter(SyncPhase.WALKING):
            return None
        files = await self.list_files()

        if not self._enter(SyncPhase.UPLOADING):
            return None
        report = await self._pipeline.upload_all(files, session, on_progress)
        if self.is_cancelled:
            self._phase = SyncPhase.CANCELLED
            return None
        return report

    async def get_progress(self) -> dict[str, Any]:
        """Get combined upload and remote indexing progress.

        Returns:
            {"progress": fraction, "state": one of "notStarted",
            "uploading", "indexing", "done", "error"}
        """
        session = self._session
        if session is None:
            return {"progress": 0.0, "state": "notStarted"}
        if not session.finished:
            return {"progress": session.progress(), "state": "uploading"}

        try:
            progress = await self._client.index_progress(session.repo_id)
        except APIError as e:
            logger.debug(f"Index progress unavailable: {e}")
            return {"progress": 0.0, "state": "error"}
        if progress == INDEX_DONE:
            return {"progress": 1.0, "state": "done"}
        return {"progress": progress, "state": "indexing"}

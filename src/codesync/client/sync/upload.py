"""Bounded-concurrency upload of new and changed files.

This module provides:
- UploadPipeline: Sends file contents to the remote index

Every transfer holds one slot of a shared semaphore for the duration of its
request, so at most ``upload_concurrency`` requests are in flight no matter
how many files are submitted. A failed transfer is reported in the
TransferReport and never aborts its siblings; the next sync pass offers the
file again.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import TYPE_CHECKING, Any

from codesync.client.api import APIError
from codesync.client.sync.change_scanner import to_remote_path
from codesync.client.sync.fs import LocalFileSystem
from codesync.client.sync.types import (
    CandidateFile,
    ChangeSet,
    ProgressCallback,
    SyncSession,
    TransferError,
    TransferErrorKind,
    TransferReport,
    TransferResult,
    TransferType,
)
from codesync.core.config import SyncConfig

if TYPE_CHECKING:
    from codesync.client.api import IndexClient

logger = logging.getLogger(__name__)


class UploadPipeline:
    """Transfers files to the remote index under a concurrency cap.

    Usage:
        pipeline = UploadPipeline(client, root)
        report = await pipeline.transfer(changes, session)
        for result in report.failed:
            ...
    """

    def __init__(
        self,
        client: IndexClient,
        root: Path,
        fs: LocalFileSystem | None = None,
        config: SyncConfig | None = None,
        is_permitted: Callable[[], bool] | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            client: HTTP client for server communication.
            root: Repository root the files belong to.
            fs: File system access layer.
            config: Sync options (upload concurrency).
            is_permitted: Checked before each request; when it returns False
                the request is not sent and reported as SKIPPED.
        """
        self._client = client
        self._root = root
        self._fs = fs or LocalFileSystem()
        self._config = config or SyncConfig()
        self._is_permitted = is_permitted or (lambda: True)
        self._slots = asyncio.Semaphore(self._config.upload_concurrency)

    @property
    def concurrency(self) -> int:
        """Get the maximum number of in-flight transfers."""
        return self._config.upload_concurrency

    async def _send(
        self,
        relative_path: str,
        contents: str,
        transfer_type: TransferType,
        repo_id: str,
    ) -> None:
        """Send one file.

        Raises:
            TransferError: SKIPPED if uploads are no longer permitted.
            APIError: If the request fails.
        """
        if not self._is_permitted():
            logger.debug(f"Uploads disabled, not sending {relative_path}")
            raise TransferError(
                relative_path, TransferErrorKind.SKIPPED, "uploads not permitted"
            )
        if transfer_type == TransferType.ADD:
            await self._client.add_file(repo_id, relative_path, contents)
        else:
            await self._client.update_file(repo_id, relative_path, contents)

    def _completed(
        self,
        session: SyncSession,
        on_progress: ProgressCallback | None,
    ) -> None:
        session.record_upload()
        if on_progress:
            on_progress(session.progress())

    async def _transfer_one(
        self,
        candidate: CandidateFile,
        transfer_type: TransferType,
        session: SyncSession,
        on_progress: ProgressCallback | None,
    ) -> TransferResult:
        path = candidate.relative_path
        async with self._slots:
            contents = candidate.contents
            if contents is None:
                # Already released by an earlier transfer of the same change set
                error = TransferError(
                    path, TransferErrorKind.FILE_MISSING, "contents no longer loaded"
                )
                return TransferResult(path, transfer_type, error)

            if transfer_type == TransferType.ADD:
                logger.info(f"Uploading file: {path}")
            else:
                logger.info(f"Updating file: {path}")
            try:
                await self._send(path, contents, transfer_type, session.repo_id)
            except TransferError as e:
                return TransferResult(path, transfer_type, e)
            except APIError as e:
                logger.warning(f"Transfer of {path} failed: {e}")
                error = TransferError(path, TransferErrorKind.REMOTE, str(e))
                return TransferResult(path, transfer_type, error)
            finally:
                # Contents are not needed past the request
                candidate.contents = None

        self._completed(session, on_progress)
        return TransferResult(path, transfer_type)

    async def _read_and_add(
        self,
        path: Path,
        session: SyncSession,
        on_progress: ProgressCallback | None,
    ) -> TransferResult:
        relative_path = to_remote_path(path, self._root)
        async with self._slots:
            contents = await self._fs.aread_text(path)
            if contents is None:
                error = TransferError(
                    relative_path, TransferErrorKind.FILE_MISSING, "file is unreadable"
                )
                return TransferResult(relative_path, TransferType.ADD, error)

            logger.info(f"Uploading file: {relative_path}")
            try:
                await self._send(relative_path, contents, TransferType.ADD, session.repo_id)
            except TransferError as e:
                return TransferResult(relative_path, TransferType.ADD, e)
            except APIError as e:
                logger.warning(f"Upload of {relative_path} failed: {e}")
                error = TransferError(relative_path, TransferErrorKind.REMOTE, str(e))
                return TransferResult(relative_path, TransferType.ADD, error)

        self._completed(session, on_progress)
        logger.debug(f"Uploaded file: {relative_path}")
        return TransferResult(relative_path, TransferType.ADD)

    async def _join(
        self,
        jobs: list[Coroutine[Any, Any, TransferResult]],
        session: SyncSession,
    ) -> TransferReport:
        # Barrier: every dispatched transfer resolves before the session finishes
        outcomes = await asyncio.gather(*jobs, return_exceptions=True)
        report = TransferReport()
        for outcome in outcomes:
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.error(f"Unexpected transfer failure: {outcome!r}")
                continue
            report.results.append(outcome)
        session.finished = True

        logger.info(
            f"Transferred {len(report.succeeded)}/{len(report)} files, "
            f"{len(report.failed)} failed"
        )
        return report

    async def transfer(
        self,
        changes: ChangeSet,
        session: SyncSession,
        on_progress: ProgressCallback | None = None,
    ) -> TransferReport:
        """Add new files and update changed files; unchanged files are skipped.

        Args:
            changes: Result of change detection.
            session: Session whose counters track progress.
            on_progress: Called with the session progress after each success.

        Returns:
            One TransferResult per new or changed file.
        """
        session.begin(changes.pending)
        jobs = [
            self._transfer_one(c, TransferType.ADD, session, on_progress)
            for c in changes.new
        ] + [
            self._transfer_one(c, TransferType.UPDATE, session, on_progress)
            for c in changes.changed
        ]
        return await self._join(jobs, session)

    async def upload_all(
        self,
        files: list[Path],
        session: SyncSession,
        on_progress: ProgressCallback | None = None,
    ) -> TransferReport:
        """Add every file without change detection (initial bulk upload).

        Each file is read only once its transfer holds a slot.
        """
        session.begin(len(files))
        jobs = [self._read_and_add(path, session, on_progress) for path in files]
        return await self._join(jobs, session)

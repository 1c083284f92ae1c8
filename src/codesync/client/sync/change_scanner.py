"""Change detection against the remote index.

This module provides:
- ChangeScanner: Splits candidate files into new, changed and unchanged
- to_remote_path: Path form used on the wire ("./" + root-relative path)

Architecture:
    ChangeScanner reads and fingerprints every candidate on each pass; no
    local fingerprint cache is kept, so out-of-band remote changes are
    always noticed. Files are looked up in fixed-size batches, and all
    batches are dispatched concurrently:

    TreeWalker → ChangeScanner (batched lookups) → UploadPipeline
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

from codesync.client.api import APIError
from codesync.client.sync.fs import LocalFileSystem
from codesync.client.sync.types import CandidateFile, ChangeSet
from codesync.core.config import SyncConfig
from codesync.core.hashing import compute_fingerprint

if TYPE_CHECKING:
    from codesync.client.api import IndexClient

logger = logging.getLogger(__name__)


def to_remote_path(path: Path, root: Path) -> str:
    """Get the server-side form of a path under the root.

    Raises:
        ValueError: If the path is not under the root.
    """
    return "./" + path.relative_to(root).as_posix()


class ChangeScanner:
    """Compares local fingerprints with the ones the server has on record.

    Usage:
        scanner = ChangeScanner(client, root)
        changes = await scanner.detect_changes(files, repo_id)
        # changes.new / changes.changed need uploading
    """

    def __init__(
        self,
        client: IndexClient,
        root: Path,
        fs: LocalFileSystem | None = None,
        config: SyncConfig | None = None,
    ) -> None:
        """Initialize the change scanner.

        Args:
            client: HTTP client for server communication.
            root: Repository root the files belong to.
            fs: File system access layer.
            config: Sync options (batch size).
        """
        self._client = client
        self._root = root
        self._fs = fs or LocalFileSystem()
        self._config = config or SyncConfig()

    async def read_candidate(self, path: Path, repo_id: str) -> CandidateFile | None:
        """Read and fingerprint one file.

        Returns:
            The candidate, or None if the file cannot be read (for example
            because it was deleted after the walk).
        """
        try:
            relative_path = to_remote_path(path, self._root)
        except ValueError:
            logger.warning(f"Skipping {path}: not under {self._root}")
            return None

        contents = await self._fs.aread_text(path)
        if contents is None:
            return None

        return CandidateFile(
            path=path,
            relative_path=relative_path,
            fingerprint=compute_fingerprint(
                relative_path, contents.encode("utf-8"), repo_id
            ),
            contents=contents,
        )

    async def _detect_batch(self, paths: list[Path], repo_id: str) -> ChangeSet:
        result = ChangeSet()
        candidates = await asyncio.gather(
            *(self.read_candidate(path, repo_id) for path in paths)
        )

        readable: list[CandidateFile] = []
        for path, candidate in zip(paths, candidates, strict=True):
            if candidate is None:
                result.skipped.append(path)
            else:
                readable.append(candidate)
        if not readable:
            return result

        try:
            found = await self._client.get_fingerprints(
                repo_id, [c.relative_path for c in readable]
            )
        except APIError as e:
            logger.warning(f"Fingerprint lookup failed for {len(readable)} files: {e}")
            result.skipped.extend(c.path for c in readable)
            return result

        for candidate in readable:
            remote = found.get(candidate.relative_path)
            if remote is None:
                result.new.append(candidate)
            elif remote != candidate.fingerprint:
                result.changed.append(candidate)
            else:
                result.unchanged.append(replace(candidate, contents=None))
        return result

    async def detect_changes(self, files: list[Path], repo_id: str) -> ChangeSet:
        """Classify files by comparing fingerprints with the server.

        Args:
            files: Absolute paths of candidate files.
            repo_id: Remote repository identifier.

        Returns:
            ChangeSet whose new/changed/unchanged lists keep input order.
        """
        size = self._config.batch_size
        batches = [files[i:i + size] for i in range(0, len(files), size)]
        results = await asyncio.gather(
            *(self._detect_batch(batch, repo_id) for batch in batches)
        )

        changes = ChangeSet()
        for batch_result in results:
            changes.extend(batch_result)

        logger.info(
            f"Change detection: new={len(changes.new)}, changed={len(changes.changed)}, "
            f"unchanged={len(changes.unchanged)}, skipped={len(changes.skipped)}"
        )
        return changes

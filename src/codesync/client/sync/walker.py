"""Discovery of eligible files under a repository root.

This module provides:
- TreeWalker: Lists every syncable file under a root

Traversal uses an explicit work-list instead of recursion. Directories are
listed concurrently in waves of at most ``walk_concurrency``; the result is
then assembled in depth-first order (entries sorted by name), so walking an
unchanged tree twice yields the same list.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from codesync.client.sync.filters import PathFilter
from codesync.client.sync.fs import DirEntry, LocalFileSystem
from codesync.core.config import SyncConfig

logger = logging.getLogger(__name__)


class TreeWalker:
    """Enumerates eligible files under a root, capped at ``max_results``."""

    def __init__(
        self,
        root: Path,
        path_filter: PathFilter | None = None,
        fs: LocalFileSystem | None = None,
        config: SyncConfig | None = None,
    ) -> None:
        """Initialize the walker.

        Args:
            root: Directory to walk (absolute).
            path_filter: File eligibility rules.
            fs: File system access layer.
            config: Sync options (concurrency, size and result limits).
        """
        self._root = root
        self._config = config or (path_filter.config if path_filter else SyncConfig())
        self._filter = path_filter or PathFilter(self._config, root)
        self._fs = fs or LocalFileSystem()

    @property
    def root(self) -> Path:
        """Get the walked root."""
        return self._root

    async def _list(self, directory: Path) -> list[DirEntry]:
        try:
            entries = await self._fs.alist_directory(directory)
        except OSError as e:
            # Unreadable or deleted mid-walk: treat as empty
            logger.debug(f"Cannot list {directory}: {e}")
            return []
        return sorted(entries, key=lambda entry: entry.name)

    async def _list_tree(self) -> dict[Path, list[DirEntry]]:
        listings: dict[Path, list[DirEntry]] = {}
        pending = [self._root]
        fan_out = self._config.walk_concurrency

        while pending:
            wave, pending = pending[:fan_out], pending[fan_out:]
            results = await asyncio.gather(*(self._list(d) for d in wave))
            for directory, entries in zip(wave, results, strict=True):
                listings[directory] = entries
                for entry in entries:
                    if entry.is_directory and not self._filter.is_pruned(entry.name):
                        pending.append(directory / entry.name)
        return listings

    def _accept(self, path: Path, entry: DirEntry, ignored: set[Path]) -> bool:
        if path in ignored:
            return False
        if entry.size > self._config.max_file_size:
            return False
        return self._filter.is_eligible(path, entry.size)

    async def walk(self, ignored: set[Path] | None = None) -> list[Path]:
        """Walk the root.

        Args:
            ignored: Absolute paths to leave out (the VCS ignore set).

        Returns:
            Eligible absolute file paths in depth-first discovery order,
            truncated to ``max_results``.
        """
        ignored = ignored or set()
        listings = await self._list_tree()
        limit = self._config.max_results

        files: list[Path] = []
        stack = [(self._root, iter(listings.get(self._root, [])))]
        while stack and len(files) < limit:
            directory, entries = stack[-1]
            entry = next(entries, None)
            if entry is None:
                stack.pop()
                continue

            path = directory / entry.name
            if entry.is_directory:
                if path in listings:
                    stack.append((path, iter(listings[path])))
            elif self._accept(path, entry, ignored):
                files.append(path)

        logger.info(f"Found {len(files)} files to sync under {self._root}")
        return files

"""Local file system access for the sync pipeline.

This module provides:
- DirEntry: Name, type and size of one directory entry
- LocalFileSystem: Directory listing and file reads, sync and async
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirEntry:
    """One entry of a directory listing."""

    name: str
    is_directory: bool
    size: int


class LocalFileSystem:
    """Reads the local disk. Blocking calls have async wrappers."""

    def list_directory(self, path: Path) -> list[DirEntry]:
        """List a directory with type and size from a single scan.

        Symlinks are skipped.

        Raises:
            OSError: If the directory cannot be read.
        """
        entries: list[DirEntry] = []
        with os.scandir(path) as it:
            for entry in it:
                try:
                    if entry.is_symlink():
                        continue
                    if entry.is_dir(follow_symlinks=False):
                        entries.append(DirEntry(entry.name, True, 0))
                    elif entry.is_file(follow_symlinks=False):
                        size = entry.stat(follow_symlinks=False).st_size
                        entries.append(DirEntry(entry.name, False, size))
                except OSError:
                    # Entry removed between listing and stat
                    logger.debug(f"Skipping vanished entry {entry.path}")
        return entries

    def read_file(self, path: Path) -> bytes:
        """Read a file's raw contents.

        Raises:
            OSError: If the file cannot be read.
        """
        with open(path, "rb") as f:
            return f.read()

    async def alist_directory(self, path: Path) -> list[DirEntry]:
        """Async wrapper around list_directory()."""
        return await asyncio.to_thread(self.list_directory, path)

    async def aread_file(self, path: Path) -> bytes:
        """Async wrapper around read_file()."""
        return await asyncio.to_thread(self.read_file, path)

    async def aread_text(self, path: Path) -> str | None:
        """Read a file as UTF-8 text.

        Returns:
            The decoded contents, or None if the file is missing, unreadable
            or not valid UTF-8.
        """
        try:
            data = await self.aread_file(path)
        except OSError as e:
            logger.debug(f"Cannot read {path}: {e}")
            return None
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug(f"Skipping non UTF-8 file {path}")
            return None

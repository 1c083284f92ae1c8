"""Eligibility rules for synchronized files.

This module provides:
- PathFilter: Decides which files are offered to the remote index and
  which directories are never reported or descended into

Paths under the repository root are judged by their root-relative part, so
a root that itself lives under a dotted or vendored directory stays syncable.
"""

from __future__ import annotations

import re
from pathlib import Path, PurePath

from codesync.core.config import SyncConfig


class PathFilter:
    """Pure predicates over paths. Safe to share between concurrent walkers."""

    def __init__(self, config: SyncConfig | None = None, root: Path | None = None) -> None:
        """Initialize the filter.

        Args:
            config: Sync options (extensions, patterns, size limit).
            root: Repository root; paths under it are judged relative to it.
        """
        self._config = config or SyncConfig()
        self._root = root
        self._ignore_re: re.Pattern[str] | None = None
        if self._config.ignore_patterns:
            combined = "|".join(f"(?:{p})" for p in self._config.ignore_patterns)
            self._ignore_re = re.compile(combined)

    @property
    def config(self) -> SyncConfig:
        """Get the sync options."""
        return self._config

    def _relative_parts(self, path: PurePath) -> tuple[str, ...]:
        if self._root is not None:
            try:
                return path.relative_to(self._root).parts
            except ValueError:
                pass
        return path.parts

    def _posix(self, parts: tuple[str, ...]) -> str:
        # Leading slash lets directory-shaped patterns match the first segment
        joined = "/".join(p for p in parts if p not in ("/", "\\"))
        return "/" + joined

    def is_eligible(self, path: Path | str, size: int | None = None) -> bool:
        """Check whether a file should be synced.

        Args:
            path: File path (absolute, or relative to the root).
            size: File size in bytes, if known.

        Returns:
            False if the extension is unsupported, the name is a lockfile,
            any segment is hidden, a generated/vendor pattern matches, or the
            file exceeds the size limit.
        """
        path = PurePath(path)
        suffix = path.suffix[1:]
        if suffix not in self._config.supported_extensions:
            return False
        if path.name in self._config.lockfile_names:
            return False

        parts = self._relative_parts(path)
        if any(part.startswith(".") and part not in (".", "..") for part in parts):
            return False

        if self._ignore_re is not None and self._ignore_re.match(self._posix(parts)):
            return False

        if size is not None and size > self._config.max_file_size:
            return False
        return True

    def is_excluded_directory(self, path: Path | str) -> bool:
        """Check whether a path lies inside a VCS or dependency directory.

        Only parent segments count: the directory itself (e.g. a path ending
        in "node_modules") is not excluded, anything beneath it is.
        """
        parts = self._relative_parts(PurePath(path))
        return any(part in self._config.vcs_dirs for part in parts[:-1])

    def is_pruned(self, name: str) -> bool:
        """Check whether the walker must not descend into a directory name."""
        return name in self._config.excluded_dirs

    def is_unwatched(self, name: str) -> bool:
        """Check whether the watcher must not place a watch on a directory name."""
        return name in self._config.vcs_dirs

"""Version-control aware ignore listing.

This module provides:
- CommandRunner: Runs a command and streams its stdout line by line
- GitIgnoreResolver: Collects files git ignores or that belong to submodules

Listings can be arbitrarily large, so they are consumed in fixed-size pages;
a page shorter than the page size means the listing is exhausted.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from pathlib import Path

from codesync.client.sync.types import VCSError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10000

GIT_IGNORED_CMD = [
    "git", "-c", "core.quotePath=false",
    "ls-files", "--others", "--ignored", "--exclude-standard",
]
GIT_SUBMODULE_FILES_CMD = [
    "git", "submodule", "foreach", "--quiet", "--recursive",
    'git -c core.quotePath=false ls-files | sed "s|^|$displaypath/|"',
]
GIT_IS_WORK_TREE_CMD = ["git", "rev-parse", "--is-inside-work-tree"]


class CommandRunner:
    """Runs external commands without blocking the event loop."""

    async def stream_lines(self, args: list[str], cwd: Path) -> AsyncIterator[str]:
        """Yield the command's stdout lines (without line endings).

        Raises:
            VCSError: If the command cannot be started or exits non-zero.
                Raised after the last line has been yielded.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise VCSError(f"Cannot run {args[0]}: {e}") from e

        assert proc.stdout is not None and proc.stderr is not None
        # Drained alongside stdout so a chatty stderr cannot fill its pipe
        stderr_task = asyncio.create_task(proc.stderr.read())
        try:
            while True:
                raw = await proc.stdout.readline()
                if not raw:
                    break
                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                if line:
                    yield line

            stderr = await stderr_task
            returncode = await proc.wait()
            if returncode != 0:
                message = stderr.decode("utf-8", errors="replace").strip()
                raise VCSError(f"{' '.join(args[:3])} exited {returncode}: {message}")
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            if not stderr_task.done():
                stderr_task.cancel()
                await asyncio.gather(stderr_task, return_exceptions=True)

    async def run(self, args: list[str], cwd: Path) -> list[str]:
        """Run a command to completion and return its stdout lines."""
        async with aclosing(self.stream_lines(args, cwd)) as lines:
            return [line async for line in lines]


async def _read_page(lines: AsyncIterator[str], size: int) -> list[str]:
    page: list[str] = []
    async for line in lines:
        page.append(line)
        if len(page) >= size:
            break
    return page


class GitIgnoreResolver:
    """Lists files under a root that git would not track.

    Usage:
        resolver = GitIgnoreResolver(root)
        ignored = await resolver.list_ignored()
    """

    def __init__(
        self,
        root: Path,
        page_size: int = DEFAULT_PAGE_SIZE,
        runner: CommandRunner | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            root: Repository root (absolute).
            page_size: Lines consumed per page of command output.
            runner: Command execution capability.
        """
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self._root = root
        self._page_size = page_size
        self._runner = runner or CommandRunner()

    async def _collect(self, args: list[str]) -> set[Path]:
        found: set[Path] = set()
        pages = 0
        async with aclosing(self._runner.stream_lines(args, self._root)) as lines:
            while True:
                page = await _read_page(lines, self._page_size)
                pages += 1
                found.update(self._root / line for line in page)
                if len(page) < self._page_size:
                    break
        logger.debug(f"{args[1:4]}: {len(found)} paths in {pages} pages")
        return found

    async def is_work_tree(self) -> bool:
        """Check whether the root is inside a git work tree."""
        try:
            output = await self._runner.run(GIT_IS_WORK_TREE_CMD, self._root)
        except VCSError:
            return False
        return output[:1] == ["true"]

    async def list_ignored(self) -> set[Path]:
        """Collect ignored and submodule files as absolute paths.

        Returns:
            Union of the two listings, or an empty set if git is unavailable,
            the root is not a work tree, or a listing fails.
        """
        if not await self.is_work_tree():
            logger.debug(f"{self._root} is not a git work tree, no ignore set")
            return set()

        try:
            ignored = await self._collect(GIT_IGNORED_CMD)
            submodule_files = await self._collect(GIT_SUBMODULE_FILES_CMD)
        except VCSError as e:
            logger.warning(f"Ignoring git exclusions for {self._root}: {e}")
            return set()

        return ignored | submodule_files

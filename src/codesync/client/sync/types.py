"""Shared types and dataclasses for sync operations.

This module provides:
- SyncError, TransferError, VCSError: Exception classes
- SyncSession: Progress bookkeeping for one sync pass
- CandidateFile, ChangeSet: Change detection results
- TransferResult, TransferReport: Per-file upload outcomes
- WatchEventKind, WatchEvent: File system notifications
- Type aliases for callbacks
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum, IntEnum, auto
from pathlib import Path


class SyncError(Exception):
    """Base exception for sync errors."""


class VCSError(SyncError):
    """The version control tool failed or is not available."""


class TransferErrorKind(IntEnum):
    """Why a transfer did not complete."""

    REMOTE = auto()  # Network failure or non-success status
    FILE_MISSING = auto()  # File vanished or became unreadable before upload
    SKIPPED = auto()  # Not sent: uploads stopped being permitted (cancel, opt-out)


class TransferError(SyncError):
    """A single file transfer failed.

    Attributes:
        path: Relative path of the file.
        kind: Failure category.
    """

    def __init__(self, path: str, kind: TransferErrorKind, message: str) -> None:
        self.path = path
        self.kind = kind
        super().__init__(f"{path}: {message}")


class TransferType(IntEnum):
    """Type of transfer operation."""

    ADD = auto()
    UPDATE = auto()


@dataclass
class SyncSession:
    """Bookkeeping for one synchronization pass.

    The counters are only mutated from the event loop thread, so
    record_upload() needs no lock.

    Attributes:
        root: Repository root being synchronized.
        repo_id: Remote repository identifier.
        total_files: Number of files submitted for transfer.
        files_uploaded: Number of transfers completed successfully.
        finished: True once every submitted transfer has resolved.
    """

    root: Path
    repo_id: str
    total_files: int = 0
    files_uploaded: int = 0
    finished: bool = False
    started_at: float = field(default_factory=time.time)

    def begin(self, total_files: int) -> None:
        """Reset counters for a new batch of transfers."""
        self.total_files = total_files
        self.files_uploaded = 0
        self.finished = False

    def record_upload(self) -> None:
        """Count one successful transfer."""
        if self.files_uploaded < self.total_files:
            self.files_uploaded += 1

    def progress(self) -> float:
        """Get upload progress.

        The denominator is total + 1 so the value stays below 1.0 until the
        caller marks the session finished.
        """
        if self.total_files == 0:
            return 0.0
        return self.files_uploaded / (self.total_files + 1)


@dataclass
class CandidateFile:
    """A file considered for upload.

    Attributes:
        path: Absolute path on disk.
        relative_path: Path sent to the server ("./" + path relative to root).
        fingerprint: Hash over relative path, contents and repository id.
        contents: Decoded file contents, None once no longer needed.
    """

    path: Path
    relative_path: str
    fingerprint: str
    contents: str | None = None


@dataclass
class ChangeSet:
    """Result of comparing local fingerprints with the server's.

    new, changed and unchanged partition every file that could be read and
    looked up; skipped holds the rest.
    """

    new: list[CandidateFile] = field(default_factory=list)
    changed: list[CandidateFile] = field(default_factory=list)
    unchanged: list[CandidateFile] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)

    @property
    def pending(self) -> int:
        """Get number of files that need a transfer."""
        return len(self.new) + len(self.changed)

    def extend(self, other: ChangeSet) -> None:
        """Merge another change set into this one, keeping order."""
        self.new.extend(other.new)
        self.changed.extend(other.changed)
        self.unchanged.extend(other.unchanged)
        self.skipped.extend(other.skipped)


@dataclass
class TransferResult:
    """Outcome of one file transfer."""

    path: str
    transfer_type: TransferType
    error: TransferError | None = None

    @property
    def ok(self) -> bool:
        """Check if the transfer succeeded."""
        return self.error is None


@dataclass
class TransferReport:
    """Outcomes of every transfer dispatched in one batch."""

    results: list[TransferResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[TransferResult]:
        """Get successful transfers."""
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> list[TransferResult]:
        """Get failed transfers."""
        return [r for r in self.results if not r.ok]

    def __len__(self) -> int:
        return len(self.results)


class WatchEventKind(Enum):
    """Kind of file system notification relayed to the host."""

    FILE_ADDED = "fileAdded"
    FOLDER_ADDED = "folderAdded"
    FILE_CHANGED = "fileChanged"
    FILE_DELETED = "fileDeleted"
    FOLDER_DELETED = "folderDeleted"


@dataclass(frozen=True)
class WatchEvent:
    """A file system change under the repository root."""

    kind: WatchEventKind
    path: Path

    def __repr__(self) -> str:
        """Human-readable representation."""
        return f"WatchEvent({self.kind.name}, path={str(self.path)!r})"


# Type aliases for callbacks
ProgressCallback = Callable[[float], None]
WatchCallback = Callable[[WatchEvent], None]

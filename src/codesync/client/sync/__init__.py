"""Sync pipeline for uploading a repository to the remote index.

Architecture:
    TreeWalker → ChangeScanner → UploadPipeline, driven by SyncOrchestrator

Components:
- **PathFilter**: Decides which files are eligible and which directories are excluded
- **GitIgnoreResolver**: Lists git-ignored and submodule files (paginated)
- **TreeWalker**: Enumerates eligible files under the root
- **ChangeScanner**: Fingerprints files and asks the server which changed
- **UploadPipeline**: Adds/updates files under a concurrency cap
- **WatcherBridge**: Relays file system events under the root
- **SyncOrchestrator**: Runs the phases, periodic re-sync and re-index
"""

from codesync.client.sync.change_scanner import ChangeScanner, to_remote_path
from codesync.client.sync.engine import SyncOrchestrator
from codesync.client.sync.filters import PathFilter
from codesync.client.sync.fs import DirEntry, LocalFileSystem
from codesync.client.sync.types import (
    CandidateFile,
    ChangeSet,
    ProgressCallback,
    SyncError,
    SyncSession,
    TransferError,
    TransferErrorKind,
    TransferReport,
    TransferResult,
    TransferType,
    VCSError,
    WatchCallback,
    WatchEvent,
    WatchEventKind,
)
from codesync.client.sync.upload import UploadPipeline
from codesync.client.sync.vcs import CommandRunner, GitIgnoreResolver
from codesync.client.sync.walker import TreeWalker
from codesync.client.sync.watcher import EventChannel, WatcherBridge

__all__ = [
    # Pipeline
    "ChangeScanner",
    "CommandRunner",
    "GitIgnoreResolver",
    "LocalFileSystem",
    "PathFilter",
    "SyncOrchestrator",
    "TreeWalker",
    "UploadPipeline",
    "to_remote_path",
    # Watcher
    "EventChannel",
    "WatcherBridge",
    # Types
    "CandidateFile",
    "ChangeSet",
    "DirEntry",
    "ProgressCallback",
    "SyncError",
    "SyncSession",
    "TransferError",
    "TransferErrorKind",
    "TransferReport",
    "TransferResult",
    "TransferType",
    "VCSError",
    "WatchCallback",
    "WatchEvent",
    "WatchEventKind",
]

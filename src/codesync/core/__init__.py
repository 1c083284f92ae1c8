"""Core module - Shared configuration, hashing and types."""

from codesync.core.config import (
    DEFAULT_EXCLUDED_DIRS,
    DEFAULT_IGNORE_PATTERNS,
    DEFAULT_LOCKFILE_NAMES,
    DEFAULT_SUPPORTED_EXTENSIONS,
    DEFAULT_VCS_DIRS,
    ServerConfig,
    SyncConfig,
)
from codesync.core.hashing import compute_fingerprint
from codesync.core.types import SyncPhase

__all__ = [
    # Config
    "DEFAULT_EXCLUDED_DIRS",
    "DEFAULT_IGNORE_PATTERNS",
    "DEFAULT_LOCKFILE_NAMES",
    "DEFAULT_SUPPORTED_EXTENSIONS",
    "DEFAULT_VCS_DIRS",
    "ServerConfig",
    "SyncConfig",
    # Hashing
    "compute_fingerprint",
    # Types
    "SyncPhase",
]

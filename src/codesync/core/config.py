"""Shared configuration classes for codesync.

This module defines the connection settings for the remote index and the
immutable options that drive discovery, change detection and upload.
"""

from __future__ import annotations

from dataclasses import dataclass

# File types offered to the remote index
DEFAULT_SUPPORTED_EXTENSIONS = frozenset({
    "py", "ts", "tsx", "js", "jsx", "go", "java", "scala", "rb", "php",
    "cs", "cpp", "c", "h", "hpp", "hxx", "cc", "hh", "cxx", "m", "mm",
    "swift", "rs", "kt", "kts", "clj", "cljc", "cljs", "md", "html", "css",
    "scss", "less", "sass", "txt", "json", "yaml", "yml", "xml", "toml",
    "ini", "conf", "config", "dockerfile", "sh", "bash", "zsh", "fish",
    "bat", "ps1", "psm1",
})

# Generated, vendored and tool-metadata directories (matched on posix paths)
DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    r".*/python\d\.\d/.*",
    r".*/dist/.*",
    r".*/bin/.*",
    r".*/lib/.*",
    r".*/build/.*",
    r".*/\.egg-info/.*",
    r".*/\.venv/.*",
    r".*/node_modules/.*",
    r".*/__pycache__/.*",
    r".*/\.vscode/.*",
    r".*/\.idea/.*",
    r".*/\.vs/.*",
    r".*/\.next/.*",
    r".*/\.nuxt/.*",
    r".*/\.cache/.*",
    r".*/\.sass-cache/.*",
    r".*/\.gradle/.*",
    r".*/\.DS_Store/.*",
    r".*/\.ipynb_checkpoints/.*",
    r".*/\.pytest_cache/.*",
    r".*/\.mypy_cache/.*",
    r".*/\.tox/.*",
    r".*/\.git/.*",
    r".*/\.hg/.*",
    r".*/\.svn/.*",
    r".*/\.bzr/.*",
    r".*/\.lock-wscript/.*",
    r".*/\.wafpickle-[0-9]*/.*",
    r".*/\.lock-waf_[0-9]*/.*",
    r".*/\.Python/.*",
    r".*/\.jupyter/.*",
    r".*/\.vscode-test/.*",
    r".*/\.history/.*",
    r".*/\.yarn/.*",
    r".*/\.yarn-cache/.*",
    r".*/\.eslintcache/.*",
    r".*/\.parcel-cache/.*",
    r".*/\.cache-loader/.*",
    r".*/\.nyc_output/.*",
    r".*/\.node_repl_history/.*",
    r".*/\.pnp\.js/.*",
    r".*/\.pnp/.*",
)

DEFAULT_LOCKFILE_NAMES = frozenset({"package-lock.json", "yarn.lock"})

# Directories the walker never descends into
DEFAULT_EXCLUDED_DIRS = frozenset({".git", "node_modules", "build", "out"})

# Directories whose contents are never reported by the watcher
DEFAULT_VCS_DIRS = frozenset({".git", "node_modules"})


@dataclass
class ServerConfig:
    """Configuration for connecting to the remote index.

    Attributes:
        server_url: Base URL of the API (e.g., "https://index.example.com").
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    server_url: str
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")

    @property
    def upload_url(self) -> str:
        """Get the base URL of the private upload endpoints."""
        return f"{self.server_url}/upload/repos/private"

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS."""
        return self.server_url.startswith("https://")


@dataclass(frozen=True)
class SyncConfig:
    """Options recognized by the sync pipeline.

    Attributes:
        supported_extensions: File extensions (without dot) eligible for sync.
        ignore_patterns: Regular expressions for generated/vendor directories.
        lockfile_names: Basenames of lockfile artifacts that are never synced.
        excluded_dirs: Directory names the walker never descends into.
        vcs_dirs: Directory names whose contents the watcher never reports.
        max_file_size: Files larger than this (bytes) are not uploaded.
        walk_concurrency: Maximum directories listed at once during a walk.
        upload_concurrency: Maximum simultaneous network transfers.
        max_results: The walk result is truncated to this many files.
        batch_size: Files per fingerprint lookup request.
        vcs_page_size: Lines per page when reading VCS tool output.
        sync_interval: Seconds between periodic re-syncs.
        reindex_interval: Seconds between periodic remote re-index triggers.
        remote_mode: True when the host works on a remote file system;
            uploads are disabled in that mode.
    """

    supported_extensions: frozenset[str] = DEFAULT_SUPPORTED_EXTENSIONS
    ignore_patterns: tuple[str, ...] = DEFAULT_IGNORE_PATTERNS
    lockfile_names: frozenset[str] = DEFAULT_LOCKFILE_NAMES
    excluded_dirs: frozenset[str] = DEFAULT_EXCLUDED_DIRS
    vcs_dirs: frozenset[str] = DEFAULT_VCS_DIRS
    max_file_size: int = 1024 * 1024
    walk_concurrency: int = 8
    upload_concurrency: int = 20
    max_results: int = 1000
    batch_size: int = 100
    vcs_page_size: int = 10000
    sync_interval: float = 120.0
    reindex_interval: float = 3600.0
    remote_mode: bool = False

    def __post_init__(self) -> None:
        """Validate numeric limits."""
        for name in (
            "walk_concurrency",
            "upload_concurrency",
            "max_results",
            "batch_size",
            "vcs_page_size",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")
        if self.max_file_size < 0:
            raise ValueError("max_file_size must not be negative")

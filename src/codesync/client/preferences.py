"""Persisted preferences for codesync.

This module provides:
- Preferences: JSON-file backed key/value store
- RepoSettings: Per-root repository binding (remote id, upload state)
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

UPLOAD_PREFERENCES_KEY = "upload_preferences"
SERVER_URL_KEY = "server_url"
DEFAULT_SERVER_URL = "http://localhost:8000"


def get_config_dir() -> Path:
    """Get the configuration directory for codesync.

    Returns:
        Path from $CODESYNC_HOME, or ~/.codesync.
    """
    override = os.environ.get("CODESYNC_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".codesync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


@dataclass
class RepoSettings:
    """Remote binding of one repository root.

    Attributes:
        repo_id: Identifier assigned by the server, None if never registered.
        uploaded: Whether the initial bulk upload completed.
    """

    repo_id: str | None = None
    uploaded: bool = False


class Preferences:
    """Key/value preferences stored as a JSON document."""

    def __init__(self, path: Path | None = None) -> None:
        """Initialize the store.

        Args:
            path: JSON file location (default: ~/.codesync/config.json).
        """
        self._path = path or get_config_file()

    @property
    def path(self) -> Path:
        """Get the backing file path."""
        return self._path

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            return dict(json.loads(self._path.read_text()))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable preferences {self._path}: {e}")
            return {}

    def _save(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2))

    def get(self, key: str, default: Any = None) -> Any:
        """Get a preference value."""
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set a preference value and persist it."""
        data = self._load()
        data[key] = value
        self._save(data)

    @property
    def uploads_enabled(self) -> bool:
        """Check if the user opted in to uploading code."""
        return bool(self.get(UPLOAD_PREFERENCES_KEY, False))

    def load_repo_settings(self, root: Path | str) -> RepoSettings:
        """Get the remote binding stored for a repository root."""
        raw = self.get(f"settings:{root}")
        if not isinstance(raw, dict):
            return RepoSettings()
        return RepoSettings(
            repo_id=raw.get("repo_id"),
            uploaded=bool(raw.get("uploaded", False)),
        )

    def save_repo_settings(self, root: Path | str, settings: RepoSettings) -> None:
        """Persist the remote binding for a repository root."""
        self.set(
            f"settings:{root}",
            {"repo_id": settings.repo_id, "uploaded": settings.uploaded},
        )

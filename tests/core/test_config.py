"""Tests for core configuration classes."""

from __future__ import annotations

import pytest

from codesync.core.config import (
    DEFAULT_EXCLUDED_DIRS,
    DEFAULT_SUPPORTED_EXTENSIONS,
    ServerConfig,
    SyncConfig,
)


class TestServerConfig:
    """Tests for ServerConfig class."""

    def test_init_basic(self) -> None:
        """Should initialize with defaults."""
        config = ServerConfig(server_url="https://example.com")
        assert config.server_url == "https://example.com"
        assert config.timeout == 30.0
        assert config.verify_ssl is True

    def test_url_trailing_slash_removed(self) -> None:
        """Should strip trailing slash from server URL."""
        config = ServerConfig(server_url="https://example.com/")
        assert config.server_url == "https://example.com"

    def test_upload_url(self) -> None:
        """Should build the private upload base URL."""
        config = ServerConfig(server_url="http://localhost:8000")
        assert config.upload_url == "http://localhost:8000/upload/repos/private"

    def test_is_secure(self) -> None:
        """Should detect HTTPS."""
        assert ServerConfig(server_url="https://example.com").is_secure is True
        assert ServerConfig(server_url="http://example.com").is_secure is False


class TestSyncConfig:
    """Tests for SyncConfig class."""

    def test_defaults(self) -> None:
        """Should use the documented limits."""
        config = SyncConfig()
        assert config.max_file_size == 1024 * 1024
        assert config.upload_concurrency == 20
        assert config.max_results == 1000
        assert config.batch_size == 100
        assert config.vcs_page_size == 10000
        assert config.remote_mode is False

    def test_default_extensions(self) -> None:
        """Should allow common source types but not images."""
        assert "py" in DEFAULT_SUPPORTED_EXTENSIONS
        assert "tsx" in DEFAULT_SUPPORTED_EXTENSIONS
        assert "png" not in DEFAULT_SUPPORTED_EXTENSIONS

    def test_default_excluded_dirs(self) -> None:
        """Should prune VCS, dependency and output directories."""
        assert DEFAULT_EXCLUDED_DIRS == {".git", "node_modules", "build", "out"}

    def test_frozen(self) -> None:
        """Should be immutable."""
        config = SyncConfig()
        with pytest.raises(AttributeError):
            config.max_results = 5  # type: ignore[misc]

    @pytest.mark.parametrize(
        "field", ["walk_concurrency", "upload_concurrency", "max_results", "batch_size"]
    )
    def test_rejects_zero_limits(self, field: str) -> None:
        """Should reject limits below one."""
        with pytest.raises(ValueError, match=field):
            SyncConfig(**{field: 0})

    def test_rejects_negative_size(self) -> None:
        """Should reject a negative size limit."""
        with pytest.raises(ValueError):
            SyncConfig(max_file_size=-1)

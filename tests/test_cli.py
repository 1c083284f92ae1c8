"""Tests for CLI commands - uploads, set-server, sync, status, reindex."""

import importlib
import json
from pathlib import Path

import httpx
import pytest
from click.testing import CliRunner

from codesync.client.api import IndexClient
from codesync.client.cli import cli
from codesync.core.config import ServerConfig


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the preferences at a temporary directory."""
    config = tmp_path / ".codesync"
    monkeypatch.setenv("CODESYNC_HOME", str(config))
    return config


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """Create a small repository."""
    root = tmp_path / "repo"
    root.mkdir()
    (root / "main.py").write_text("print('hi')")
    (root / "notes.md").write_text("# notes")
    return root


class FakeServer:
    """Answers the index API in memory and records requests."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path))
        if path == "/upload/repos/private":
            return httpx.Response(200, json={"message": "created", "id": "r1"})
        if path == "/repos/r1/status":
            return httpx.Response(200, json={"status": "synced"})
        if path.startswith("/upload/repos/private/uuids/"):
            return httpx.Response(200, json=[None for _ in json.loads(request.content)])
        if path.startswith("/upload/repos/private/index_progress/"):
            return httpx.Response(200, json={"progress": "done"})
        return httpx.Response(200, json={})


@pytest.fixture
def server(monkeypatch: pytest.MonkeyPatch) -> FakeServer:
    """Route the CLI's HTTP client to an in-memory server."""
    fake = FakeServer()

    def make_client(config: ServerConfig, repo_path: str) -> IndexClient:
        return IndexClient(config, repo_path, transport=httpx.MockTransport(fake))

    # The package re-exports the "sync" command under the module's name
    sync_module = importlib.import_module("codesync.client.cli.sync")
    monkeypatch.setattr(sync_module, "IndexClient", make_client)
    return fake


class TestUploadsCommand:
    """Tests for 'codesync uploads' command."""

    def test_disabled_by_default(self, runner: CliRunner, config_dir: Path) -> None:
        """Uploads should start disabled."""
        result = runner.invoke(cli, ["uploads"])
        assert result.exit_code == 0
        assert "Uploads are disabled." in result.output

    def test_enable_and_disable(self, runner: CliRunner, config_dir: Path) -> None:
        """Should persist the opt-in."""
        result = runner.invoke(cli, ["uploads", "on"])
        assert "Uploads are enabled." in result.output
        assert json.loads((config_dir / "config.json").read_text())["upload_preferences"] is True

        result = runner.invoke(cli, ["uploads", "off"])
        assert "Uploads are disabled." in result.output

    def test_invalid_state(self, runner: CliRunner, config_dir: Path) -> None:
        """Should reject anything but on/off."""
        result = runner.invoke(cli, ["uploads", "maybe"])
        assert result.exit_code != 0


class TestSetServerCommand:
    """Tests for 'codesync set-server' command."""

    def test_saves_url(self, runner: CliRunner, config_dir: Path) -> None:
        """Should store the URL without a trailing slash."""
        result = runner.invoke(cli, ["set-server", "https://index.example.com/"])
        assert result.exit_code == 0
        assert "Server set to https://index.example.com" in result.output
        saved = json.loads((config_dir / "config.json").read_text())
        assert saved["server_url"] == "https://index.example.com"


class TestSyncCommand:
    """Tests for 'codesync sync' command."""

    def test_refuses_without_opt_in(
        self, runner: CliRunner, config_dir: Path, repo: Path, server: FakeServer
    ) -> None:
        """Should not upload anything before the user opts in."""
        result = runner.invoke(cli, ["sync", str(repo)])
        assert result.exit_code == 1
        assert "Uploads are disabled" in result.output
        assert server.requests == []

    def test_first_sync_registers(
        self, runner: CliRunner, config_dir: Path, repo: Path, server: FakeServer
    ) -> None:
        """The first sync should register the repository and upload every file."""
        runner.invoke(cli, ["uploads", "on"])

        result = runner.invoke(cli, ["sync", str(repo)])

        assert result.exit_code == 0, result.output
        assert "as r1" in result.output
        added = [path for method, path in server.requests if path.endswith("/add_file/r1")]
        assert len(added) == 2
        assert ("POST", "/upload/repos/private/finish_upload/r1") in server.requests

    def test_second_sync_is_incremental(
        self, runner: CliRunner, config_dir: Path, repo: Path, server: FakeServer
    ) -> None:
        """A registered repository should go through change detection."""
        runner.invoke(cli, ["uploads", "on"])
        runner.invoke(cli, ["sync", str(repo)])
        server.requests.clear()

        result = runner.invoke(cli, ["sync", str(repo)])

        assert result.exit_code == 0, result.output
        assert "Synced 2 files" in result.output
        assert ("GET", "/repos/r1/status") in server.requests
        assert ("POST", "/upload/repos/private/uuids/r1") in server.requests
        assert ("POST", "/upload/repos/private") not in server.requests


class TestStatusCommand:
    """Tests for 'codesync status' and 'codesync reindex' commands."""

    def test_not_started(
        self, runner: CliRunner, config_dir: Path, repo: Path, server: FakeServer
    ) -> None:
        """An unregistered root should report notStarted."""
        result = runner.invoke(cli, ["status", str(repo)])
        assert result.exit_code == 0
        assert "notStarted (0%)" in result.output

    def test_done_after_sync(
        self, runner: CliRunner, config_dir: Path, repo: Path, server: FakeServer
    ) -> None:
        """Should report the server's indexing state."""
        runner.invoke(cli, ["uploads", "on"])
        runner.invoke(cli, ["sync", str(repo)])

        result = runner.invoke(cli, ["status", str(repo)])

        assert "done (100%)" in result.output

    def test_reindex_unregistered(
        self, runner: CliRunner, config_dir: Path, repo: Path, server: FakeServer
    ) -> None:
        """Should fail for a root that was never synced."""
        result = runner.invoke(cli, ["reindex", str(repo)])
        assert result.exit_code == 1
        assert "not registered" in result.output

    def test_reindex(
        self, runner: CliRunner, config_dir: Path, repo: Path, server: FakeServer
    ) -> None:
        """Should request indexing for a registered root."""
        runner.invoke(cli, ["uploads", "on"])
        runner.invoke(cli, ["sync", str(repo)])
        server.requests.clear()

        result = runner.invoke(cli, ["reindex", str(repo)])

        assert result.exit_code == 0
        assert "Re-index requested for r1" in result.output
        assert ("POST", "/upload/repos/private/finish_upload/r1") in server.requests


def test_version(runner: CliRunner) -> None:
    """Should print the package version."""
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output

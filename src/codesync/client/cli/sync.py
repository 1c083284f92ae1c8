"""Sync commands for the codesync CLI.

Commands:
- sync: Upload a repository (registering it on first use)
- status: Show upload and indexing progress
- reindex: Ask the server to re-index a repository
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import click

from codesync.client.api import IndexClient
from codesync.client.cli.config import resolve_server_url
from codesync.client.preferences import Preferences
from codesync.client.sync.engine import SyncOrchestrator
from codesync.core.config import ServerConfig, SyncConfig

T = TypeVar("T")

root_argument = click.argument(
    "root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)


def _run_with_orchestrator(
    ctx: click.Context,
    root: Path,
    action: Callable[[SyncOrchestrator], Awaitable[T]],
) -> T:
    """Build a client and orchestrator for root and run action on them."""
    preferences = Preferences()
    server_url = resolve_server_url(preferences, ctx.obj.get("server_url"))
    root = root.resolve()

    async def main() -> T:
        async with IndexClient(ServerConfig(server_url=server_url), str(root)) as client:
            orchestrator = SyncOrchestrator(
                root, client, config=SyncConfig(), preferences=preferences
            )
            try:
                return await action(orchestrator)
            finally:
                orchestrator.stop_watcher()

    return asyncio.run(main())


async def _watch(orchestrator: SyncOrchestrator) -> None:
    channel = orchestrator.open_event_channel()
    periodic = asyncio.create_task(orchestrator.run_periodic())
    click.echo(f"Watching {orchestrator.root} (Ctrl+C to stop)")
    try:
        while True:
            event = await channel.get()
            click.echo(f"  {event.kind.value}: {event.path}")
    finally:
        orchestrator.cancel()
        await periodic


@click.command()
@root_argument
@click.option("--repo-id", default=None, help="Remote repository id (default: saved binding).")
@click.option("--watch", "-w", is_flag=True, help="Keep syncing and report file changes.")
@click.pass_context
def sync(ctx: click.Context, root: Path, repo_id: str | None, watch: bool) -> None:
    """Upload new and changed files under ROOT.

    The first sync of a directory registers it with the server and uploads
    every eligible file. Later syncs only send what changed.
    """

    def on_progress(fraction: float) -> None:
        click.echo(f"\r  Uploading... {fraction:.0%}", nl=False)

    async def action(orchestrator: SyncOrchestrator) -> int:
        if not orchestrator.uploads_permitted():
            click.echo("Uploads are disabled. Run 'codesync uploads on' first.", err=True)
            return 1

        known = repo_id or await orchestrator.init_project()
        if known is None:
            new_id = await orchestrator.index_project(on_progress=on_progress)
            click.echo("")
            if new_id is None:
                click.echo("Error: could not register repository.", err=True)
                return 1
            click.echo(f"Registered {orchestrator.root} as {new_id}")
        else:
            report = await orchestrator.start(known, on_progress=on_progress)
            click.echo("")
            if report is None:
                click.echo("Error: sync did not complete.", err=True)
                return 1
            click.echo(
                f"Synced {len(report.succeeded)} files"
                + (f", {len(report.failed)} failed" if report.failed else "")
            )

        if watch:
            await _watch(orchestrator)
        return 0

    try:
        code = _run_with_orchestrator(ctx, root, action)
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


@click.command()
@root_argument
@click.pass_context
def status(ctx: click.Context, root: Path) -> None:
    """Show upload and indexing progress of ROOT."""

    async def action(orchestrator: SyncOrchestrator) -> dict:
        repo_id = await orchestrator.init_project()
        if repo_id is None:
            return {"progress": 0.0, "state": "notStarted"}
        return await orchestrator.get_progress()

    result = _run_with_orchestrator(ctx, root, action)
    click.echo(f"{result['state']} ({result['progress']:.0%})")


@click.command()
@root_argument
@click.pass_context
def reindex(ctx: click.Context, root: Path) -> None:
    """Ask the server to re-index ROOT."""

    async def action(orchestrator: SyncOrchestrator) -> str | None:
        repo_id = await orchestrator.init_project()
        if repo_id is not None:
            await orchestrator.reindex()
        return repo_id

    repo_id = _run_with_orchestrator(ctx, root, action)
    if repo_id is None:
        click.echo("Error: repository is not registered. Run 'codesync sync' first.", err=True)
        sys.exit(1)
    click.echo(f"Re-index requested for {repo_id}")

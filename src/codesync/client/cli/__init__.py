"""Command-line interface for codesync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- sync: Upload a repository and optionally keep watching it
- status: Show upload and indexing progress
- reindex: Ask the server to re-index a repository
- uploads: Show or change the upload opt-in
- set-server: Remember the server URL
"""

from __future__ import annotations

import click

from codesync.client.cli.config import configure_logging, set_server, uploads
from codesync.client.cli.sync import reindex, status, sync


@click.group()
@click.version_option(package_name="codesync")
@click.option("--server-url", default=None, help="Server URL (default: saved setting).")
@click.option("--verbose", "-v", count=True, help="Show more log output (-vv for debug).")
@click.pass_context
def cli(ctx: click.Context, server_url: str | None, verbose: int) -> None:
    """CodeSync - Keep a repository in sync with a remote code index."""
    ctx.ensure_object(dict)
    ctx.obj["server_url"] = server_url
    configure_logging(verbose)


# Sync commands
cli.add_command(sync)
cli.add_command(status)
cli.add_command(reindex)

# Config commands
cli.add_command(uploads)
cli.add_command(set_server)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = ["cli", "main"]

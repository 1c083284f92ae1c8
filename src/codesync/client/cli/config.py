"""Configuration commands and helpers for the codesync CLI.

Commands:
- uploads: Opt in to or out of uploading code
"""

from __future__ import annotations

import logging
import sys

import click

from codesync.client.preferences import (
    DEFAULT_SERVER_URL,
    SERVER_URL_KEY,
    UPLOAD_PREFERENCES_KEY,
    Preferences,
)


def configure_logging(verbose: int) -> None:
    """Route codesync log records to stderr.

    Args:
        verbose: 0 shows warnings, 1 info, 2 or more debug.
    """
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    codesync_logger = logging.getLogger("codesync")
    for existing in codesync_logger.handlers[:]:
        codesync_logger.removeHandler(existing)
    codesync_logger.addHandler(handler)
    codesync_logger.setLevel(level)
    codesync_logger.propagate = False


def resolve_server_url(preferences: Preferences, override: str | None) -> str:
    """Get the server URL from the command line or preferences."""
    return override or preferences.get(SERVER_URL_KEY) or DEFAULT_SERVER_URL


@click.command()
@click.argument("state", type=click.Choice(["on", "off"]), required=False)
def uploads(state: str | None) -> None:
    """Show or change whether code may be uploaded.

    Nothing leaves this machine until uploads are turned on.
    """
    preferences = Preferences()
    if state is not None:
        preferences.set(UPLOAD_PREFERENCES_KEY, state == "on")
    enabled = preferences.uploads_enabled
    click.echo(f"Uploads are {'enabled' if enabled else 'disabled'}.")


@click.command("set-server")
@click.argument("url")
def set_server(url: str) -> None:
    """Remember the server URL used by other commands."""
    preferences = Preferences()
    preferences.set(SERVER_URL_KEY, url.rstrip("/"))
    click.echo(f"Server set to {url.rstrip('/')}")

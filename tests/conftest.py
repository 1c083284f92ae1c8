"""Shared fixtures for codesync tests."""

import logging
from collections.abc import Iterator

import pytest


@pytest.fixture(autouse=True)
def reset_codesync_logger() -> Iterator[None]:
    """Drop handlers the CLI installs so they do not outlive CliRunner streams."""
    yield
    codesync_logger = logging.getLogger("codesync")
    for handler in codesync_logger.handlers[:]:
        codesync_logger.removeHandler(handler)
    codesync_logger.setLevel(logging.NOTSET)
    codesync_logger.propagate = True

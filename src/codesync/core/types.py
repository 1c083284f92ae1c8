"""Shared types for codesync.

This module defines the phases of a synchronization pass.
"""

from __future__ import annotations

from enum import Enum


class SyncPhase(str, Enum):
    """Phase of the sync orchestrator.

    IDLE -> WALKING -> DETECTING -> UPLOADING -> DONE, with CANCELLED
    reachable from any non-terminal phase.
    """

    IDLE = "idle"
    WALKING = "walking"
    DETECTING = "detecting"
    UPLOADING = "uploading"
    DONE = "done"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Check if no further stage follows this phase."""
        return self in (SyncPhase.DONE, SyncPhase.CANCELLED)

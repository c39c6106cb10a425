"""Content-addressed SVG cache with reference-counted garbage collection."""

from __future__ import annotations

from .concurrency import DebouncedSweeper, KeyedLock
from .coordinator import CacheCoordinator, SweepReport
from .references import Checkpoint, ReferenceIndex
from .store import Artifact, ArtifactStore


__all__ = [
    "Artifact",
    "ArtifactStore",
    "CacheCoordinator",
    "Checkpoint",
    "DebouncedSweeper",
    "KeyedLock",
    "ReferenceIndex",
    "SweepReport",
]

"""Ordered registry of filtered-artifact locations.

Jobs append on completion; the listing endpoint reads a snapshot. One lock
serializes both so concurrent jobs cannot interleave an append with a read.
There is no removal path: entries live for the life of the process.
"""

from __future__ import annotations

import threading


class ArtifactRegistry:
    """Thread-safe, append-only list of locations in completion order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._locations: list[str] = []

    def append(self, location: str) -> None:
        with self._lock:
            self._locations.append(location)

    def snapshot(self) -> list[str]:
        """Copy of the current contents."""
        with self._lock:
            return list(self._locations)

    def __len__(self) -> int:
        with self._lock:
            return len(self._locations)

    def __contains__(self, location: object) -> bool:
        with self._lock:
            return location in self._locations


__all__ = ["ArtifactRegistry"]

"""Error taxonomy for the export pipeline.

Codec and storage failures surface as subclasses of :class:`ExportError` so the
orchestrator and the HTTP boundary can catch one base type. Unmatched projection
columns are *not* an error; see :class:`pipeline.projector.ProjectionResult`.
"""

from __future__ import annotations


class ExportError(RuntimeError):
    """Base class for export pipeline failures."""


class MalformedInput(ExportError):
    """Raised when bytes do not decode as a well-formed CSV table."""


class NotFound(ExportError):
    """Raised when no artifact exists at the requested location."""

    def __init__(self, location: str, message: str | None = None) -> None:
        super().__init__(message or f"artifact not found: {location}")
        self.location = location


class StorageUnavailable(ExportError):
    """Raised when a storage backend cannot be reached."""


class WriteFailed(ExportError):
    """Raised when a backend accepted the connection but rejected the write."""


class QueryError(ExportError):
    """Raised when the flow-log query fails."""


__all__ = [
    "ExportError",
    "MalformedInput",
    "NotFound",
    "QueryError",
    "StorageUnavailable",
    "WriteFailed",
]

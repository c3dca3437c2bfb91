"""
Protocol definitions for dependency injection.

The orchestrator and storage adapters depend on these protocols, not on
concrete boto3 clients or backends, so tests can substitute fakes
(see ``tests/storage_mocks.py``).
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from contracts.table import Table


@runtime_checkable
class S3ClientProtocol(Protocol):
    """Subset of the boto3 S3 client used by :class:`pipeline.storage.S3Storage`."""

    def put_object(self, *, Bucket: str, Key: str, Body: Any, **kwargs: Any) -> dict[str, Any]:
        """Upload bytes to ``Bucket/Key``."""
        ...

    def get_object(self, *, Bucket: str, Key: str, **kwargs: Any) -> dict[str, Any]:
        """Download ``Bucket/Key``; the payload is a stream under ``Body``."""
        ...

    def delete_object(self, *, Bucket: str, Key: str, **kwargs: Any) -> dict[str, Any]:
        """Delete ``Bucket/Key``."""
        ...


@runtime_checkable
class StorageBackend(Protocol):
    """Read/write whole CSV artifacts at string locations."""

    def write_table(self, name: str, table: Table) -> str:
        """Encode and store ``table`` under ``name``; return its location."""
        ...

    def read_table(self, location: str) -> Table:
        """Fetch and decode the artifact at ``location``."""
        ...

    def delete(self, location: str) -> bool:
        """Best-effort removal; never raises."""
        ...


# Factory for the unique token embedded in artifact names.
TokenFactory = Callable[[], str]


__all__ = ["S3ClientProtocol", "StorageBackend", "TokenFactory"]

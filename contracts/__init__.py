"""Contracts shared across the exporter.

- table: the in-memory CSV table and artifact references
- flow_schema: the flow-log record and the fixed full-export columns
- errors: the export error taxonomy
- interfaces: Protocol definitions for storage backends and S3 clients
"""

from contracts.errors import (
    ExportError,
    MalformedInput,
    NotFound,
    QueryError,
    StorageUnavailable,
    WriteFailed,
)
from contracts.flow_schema import FLOW_EXPORT_COLUMNS, FlowRecord
from contracts.table import ArtifactRef, Table

__all__ = [
    "ArtifactRef",
    "ExportError",
    "FLOW_EXPORT_COLUMNS",
    "FlowRecord",
    "MalformedInput",
    "NotFound",
    "QueryError",
    "StorageUnavailable",
    "Table",
    "WriteFailed",
]

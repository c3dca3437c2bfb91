"""Build the full (unprojected) flow-log export table."""

from __future__ import annotations

from collections.abc import Iterable

from contracts.flow_schema import FLOW_EXPORT_COLUMNS, FlowRecord
from contracts.table import Table


def build_full_table(records: Iterable[FlowRecord]) -> Table:
    """Header is always present, even for an empty result set."""
    return Table(
        header=FLOW_EXPORT_COLUMNS,
        rows=tuple(rec.to_export_row() for rec in records),
    )


__all__ = ["build_full_table"]

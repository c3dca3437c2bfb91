"""Column projection over decoded tables.

Policy
------
- Header names map to their *first* index; later duplicates in the source
  header are unreachable by name.
- Requested names are trimmed, then matched exactly (case-sensitive).
- The output header is the requested names that matched, in requested order.
  Duplicate requests produce duplicate output columns.
- Requested names absent from the header are dropped from the output and
  reported in :attr:`ProjectionResult.unmatched`. This is not an error.
- Projecting the empty table (no header) returns the empty table; every
  requested name is reported as unmatched.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from contracts.table import Table
from pipeline.csv_codec import read_csv_file, write_csv_file

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectionResult:
    """Projected table plus the match report for the requested columns."""

    table: Table
    matched: tuple[str, ...]
    unmatched: tuple[str, ...]

    @property
    def fully_matched(self) -> bool:
        return not self.unmatched


def parse_column_list(text: str | None) -> list[str]:
    """Split a comma-separated column request into trimmed, non-empty names."""
    if not text:
        return []
    return [part.strip() for part in str(text).split(",") if part.strip()]


def _index_map(header: Sequence[str]) -> dict[str, int]:
    indexes: dict[str, int] = {}
    for i, name in enumerate(header):
        indexes.setdefault(name, i)
    return indexes


def project(table: Table, columns: Sequence[str]) -> ProjectionResult:
    """Keep only ``columns`` (in that order) from ``table``."""
    requested = [str(c).strip() for c in columns]

    if table.header is None:
        return ProjectionResult(table=Table.empty(), matched=(), unmatched=tuple(requested))

    indexes = _index_map(table.header)
    matched: list[str] = []
    unmatched: list[str] = []
    picks: list[int] = []
    for name in requested:
        idx = indexes.get(name)
        if idx is None:
            unmatched.append(name)
            continue
        matched.append(name)
        picks.append(idx)

    rows = tuple(tuple(row[i] for i in picks) for row in table.rows)
    projected = Table(header=tuple(matched), rows=rows)
    if unmatched:
        logger.debug("projection dropped unmatched columns: %s", ", ".join(unmatched))
    return ProjectionResult(table=projected, matched=tuple(matched), unmatched=tuple(unmatched))


def project_file(
    in_path: str | Path,
    out_path: str | Path,
    columns: Sequence[str],
) -> ProjectionResult:
    """Project a local CSV file into another local CSV file."""
    result = project(read_csv_file(in_path), columns)
    written = write_csv_file(out_path, result.table)
    logger.info("Filtered report saved to %s", written)
    return result


__all__ = ["ProjectionResult", "parse_column_list", "project", "project_file"]

"""In-memory tabular types shared by the codec, projector and storage layers.

A :class:`Table` is the decoded form of one CSV artifact: an optional header and
an ordered tuple of data rows, every field a string. The empty table (no header
at all) is distinct from a header-only table; callers must check
:attr:`Table.is_empty` before relying on a header.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Literal

from contracts.errors import MalformedInput

Row = tuple[str, ...]
ArtifactKind = Literal["full", "filtered"]


@dataclass(frozen=True)
class Table:
    """Header + data rows. Every data row has exactly ``len(header)`` fields."""

    header: Row | None = None
    rows: tuple[Row, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.header is None:
            if self.rows:
                raise MalformedInput("table without a header cannot carry data rows")
            return
        width = len(self.header)
        for idx, row in enumerate(self.rows, start=1):
            if len(row) != width:
                raise MalformedInput(
                    f"row {idx} has {len(row)} fields, header has {width}"
                )

    @classmethod
    def from_rows(cls, rows: Iterable[Sequence[str]]) -> Table:
        """Build a table from wire rows where row 0 is the header."""
        materialized = [tuple(str(v) for v in row) for row in rows]
        if not materialized:
            return cls()
        return cls(header=materialized[0], rows=tuple(materialized[1:]))

    @classmethod
    def empty(cls) -> Table:
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.header is None

    def to_rows(self) -> list[list[str]]:
        """Return header + data rows as lists (wire order)."""
        if self.header is None:
            return []
        return [list(self.header)] + [list(r) for r in self.rows]

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class ArtifactRef:
    """A stored table: its kind, the unique token in its name, and its location."""

    kind: ArtifactKind
    token: str
    location: str


__all__ = ["ArtifactKind", "ArtifactRef", "Row", "Table"]

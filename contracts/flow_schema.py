"""Flow-log record contract and the fixed full-export column schema."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

# Header of every full export. Downstream consumers match on these names.
FLOW_EXPORT_COLUMNS: tuple[str, ...] = (
    "org_name",
    "SrcIP",
    "SrcPort",
    "DstIP",
    "DstPort",
    "PacketCount",
    "ByteCount",
    "Timestamp",
)

# Column order of the `logs` table as selected by the query collaborator.
FLOW_DB_COLUMNS: tuple[str, ...] = (
    "org_name",
    "src_ip",
    "src_port",
    "dst_ip",
    "dst_port",
    "packets_count",
    "bytes_count",
    "timestamp_column",
)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_MAX_PORT = 65535


def _as_int(value: Any, *, name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got bool")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be an integer: {value!r}") from exc


@dataclass(frozen=True)
class FlowRecord:
    """One row of the `logs` table."""

    org_name: str
    src_ip: str
    src_port: int
    dst_ip: str
    dst_port: int
    packet_count: int
    byte_count: int
    timestamp: datetime

    def __post_init__(self) -> None:
        for name in ("src_port", "dst_port"):
            port = getattr(self, name)
            if not 0 <= port <= _MAX_PORT:
                raise ValueError(f"{name} out of range 0-{_MAX_PORT}: {port}")
        for name in ("packet_count", "byte_count"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if not isinstance(self.timestamp, datetime):
            raise ValueError(f"timestamp must be a datetime, got {type(self.timestamp).__name__}")

    @classmethod
    def from_row(cls, row: Sequence[Any] | Mapping[str, Any]) -> FlowRecord:
        """Build a record from a DB tuple (``FLOW_DB_COLUMNS`` order) or dict row."""
        if isinstance(row, Mapping):
            values = [row.get(col) for col in FLOW_DB_COLUMNS]
        else:
            values = list(row)
            if len(values) != len(FLOW_DB_COLUMNS):
                raise ValueError(
                    f"expected {len(FLOW_DB_COLUMNS)} columns, got {len(values)}"
                )
        org_name, src_ip, src_port, dst_ip, dst_port, packets, nbytes, ts = values
        return cls(
            org_name=str(org_name or ""),
            src_ip=str(src_ip or ""),
            src_port=_as_int(src_port, name="src_port"),
            dst_ip=str(dst_ip or ""),
            dst_port=_as_int(dst_port, name="dst_port"),
            packet_count=_as_int(packets, name="packet_count"),
            byte_count=_as_int(nbytes, name="byte_count"),
            timestamp=ts,
        )

    def to_export_row(self) -> tuple[str, ...]:
        """Render as one full-export row, aligned with ``FLOW_EXPORT_COLUMNS``."""
        return (
            self.org_name,
            self.src_ip,
            str(self.src_port),
            self.dst_ip,
            str(self.dst_port),
            str(self.packet_count),
            str(self.byte_count),
            # strftime renders the wall-clock fields of the record's own zone.
            self.timestamp.strftime(TIMESTAMP_FORMAT),
        )


__all__ = ["FLOW_DB_COLUMNS", "FLOW_EXPORT_COLUMNS", "FlowRecord", "TIMESTAMP_FORMAT"]

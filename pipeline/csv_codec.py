"""CSV codec: bytes/text <-> :class:`contracts.table.Table`.

Encoding follows RFC 4180 (comma delimiter, double-quote escaping, CRLF record
terminator, quoting only where needed). Decoding accepts CRLF or LF line
endings. The codec itself does no I/O; the two ``*_csv_file`` helpers are thin
local-file wrappers for CLI and local-storage use.
"""

from __future__ import annotations

import csv
import io
import sys
from pathlib import Path

from contracts.errors import MalformedInput, NotFound
from contracts.table import Table

ENCODING = "utf-8"

# Lift the reader's 128 KiB per-field default so anything encode() writes
# can be read back.
try:
    csv.field_size_limit(sys.maxsize)
except OverflowError:
    csv.field_size_limit(2**31 - 1)


def decode(source: bytes | str) -> Table:
    """Parse CSV into a table (row 0 is the header).

    Raises:
        MalformedInput: undecodable bytes, inconsistent quoting, or a data row
            whose width differs from the header.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        try:
            text = bytes(source).decode(ENCODING)
        except UnicodeDecodeError as exc:
            raise MalformedInput(f"CSV is not valid {ENCODING}: {exc}") from exc
    else:
        text = source

    if not text:
        return Table.empty()

    reader = csv.reader(io.StringIO(text, newline=""), strict=True)
    try:
        parsed = list(reader)
    except csv.Error as exc:
        raise MalformedInput(f"CSV parse error at line {reader.line_num}: {exc}") from exc

    rows = [row for row in parsed if row]
    if not rows:
        if not parsed:
            return Table.empty()
        # Only blank records: a projection that matched no column.
        return Table(header=(), rows=tuple(() for _ in parsed[1:]))

    return Table.from_rows(rows)


def encode(table: Table) -> bytes:
    """Serialize a table to CSV bytes (header first, one record per line)."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\r\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerows(table.to_rows())
    return buf.getvalue().encode(ENCODING)


def read_csv_file(path: str | Path) -> Table:
    """Read and decode a local CSV file."""
    p = Path(path)
    try:
        data = p.read_bytes()
    except FileNotFoundError as exc:
        raise NotFound(str(p)) from exc
    return decode(data)


def write_csv_file(path: str | Path, table: Table) -> Path:
    """Encode ``table`` and write it to ``path`` (parent dirs are created)."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(encode(table))
    return p


__all__ = ["ENCODING", "decode", "encode", "read_csv_file", "write_csv_file"]

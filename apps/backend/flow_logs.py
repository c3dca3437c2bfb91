"""Read model for the ``logs`` table (network flow records)."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import psycopg2  # type: ignore[import-untyped]

from apps.backend.db import fetch_all_conn
from contracts.errors import QueryError
from contracts.flow_schema import FLOW_DB_COLUMNS, FlowRecord

logger = logging.getLogger(__name__)

FLOW_RECORDS_SQL = (
    f"SELECT {', '.join(FLOW_DB_COLUMNS)} "
    "FROM logs "
    "WHERE org_name = %s AND timestamp_column >= %s AND timestamp_column <= %s "
    "ORDER BY timestamp_column"
)


def fetch_flow_records(conn: Any, org_name: str, start: datetime, end: datetime) -> list[FlowRecord]:
    """Return the organization's flow records with ``start <= timestamp <= end``.

    Raises:
        QueryError: the query failed or returned a row that is not a valid
            flow record.
    """
    if end < start:
        raise ValueError("end must not be before start")
    try:
        rows = fetch_all_conn(conn, FLOW_RECORDS_SQL, (org_name, start, end))
    except psycopg2.Error as exc:
        raise QueryError(f"flow-log query failed: {exc}") from exc

    records: list[FlowRecord] = []
    for i, row in enumerate(rows):
        try:
            records.append(FlowRecord.from_row(row))
        except ValueError as exc:
            raise QueryError(f"invalid flow record at row {i}: {exc}") from exc
    logger.debug("fetched %d flow records for org %s", len(records), org_name)
    return records


__all__ = ["FLOW_RECORDS_SQL", "fetch_flow_records"]

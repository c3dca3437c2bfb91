"""Tests for the flow-log read model (apps.backend.flow_logs)."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

import psycopg2
import pytest

import apps.backend.flow_logs as flow_logs
from contracts.errors import QueryError

_START = datetime(2024, 1, 1, tzinfo=UTC)
_END = datetime(2024, 1, 2, tzinfo=UTC)


def _row(port: int = 443) -> tuple[Any, ...]:
    return ("acme", "10.0.0.1", port, "10.0.0.2", 51000, 10, 1500, datetime(2024, 1, 1, 8, 0, 0))


def test_query_is_parameterized_and_ordered(monkeypatch: Any) -> None:
    captured: list[tuple[str, Sequence[Any] | None]] = []

    def _fake_fetch_all(_conn: object, sql: str, params: Sequence[Any] | None = None) -> list[tuple[Any, ...]]:
        captured.append((sql, params))
        return [_row(443), _row(22)]

    monkeypatch.setattr(flow_logs, "fetch_all_conn", _fake_fetch_all)

    records = flow_logs.fetch_flow_records(object(), "acme", _START, _END)

    sql, params = captured[0]
    sql_l = sql.lower()
    assert "from logs" in sql_l
    assert "org_name = %s" in sql_l
    assert "timestamp_column >= %s and timestamp_column <= %s" in sql_l
    assert sql_l.rstrip().endswith("order by timestamp_column")
    assert params == ("acme", _START, _END)
    assert [r.src_port for r in records] == [443, 22]


def test_org_name_is_never_interpolated(monkeypatch: Any) -> None:
    captured: list[str] = []
    monkeypatch.setattr(flow_logs, "fetch_all_conn", lambda _c, sql, _p=None: captured.append(sql) or [])

    flow_logs.fetch_flow_records(object(), "acme'; DROP TABLE logs; --", _START, _END)

    assert "acme" not in captured[0]


def test_empty_result_set(monkeypatch: Any) -> None:
    monkeypatch.setattr(flow_logs, "fetch_all_conn", lambda *_a, **_k: [])
    assert flow_logs.fetch_flow_records(object(), "acme", _START, _END) == []


def test_database_errors_become_query_errors(monkeypatch: Any) -> None:
    def _boom(*_a: Any, **_k: Any) -> list[Any]:
        raise psycopg2.OperationalError("server closed the connection unexpectedly")

    monkeypatch.setattr(flow_logs, "fetch_all_conn", _boom)

    with pytest.raises(QueryError, match="server closed"):
        flow_logs.fetch_flow_records(object(), "acme", _START, _END)


def test_invalid_rows_become_query_errors(monkeypatch: Any) -> None:
    monkeypatch.setattr(flow_logs, "fetch_all_conn", lambda *_a, **_k: [_row(70000)])

    with pytest.raises(QueryError, match="row 0"):
        flow_logs.fetch_flow_records(object(), "acme", _START, _END)


def test_inverted_window_rejected() -> None:
    with pytest.raises(ValueError):
        flow_logs.fetch_flow_records(object(), "acme", _END, _START)

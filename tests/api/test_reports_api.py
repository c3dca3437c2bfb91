"""Tests for the flow-report HTTP endpoints."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime
from typing import Any

import psycopg2
import pytest

import apps.flask_api.blueprints.reports as reports
import apps.flask_api.flask_app as flask_app
from contracts.errors import QueryError, StorageUnavailable
from contracts.flow_schema import FlowRecord
from services.export_orchestrator import ExportOrchestrator
from tests.storage_mocks import InMemoryStorage, ManualScheduler, counting_tokens


class _DummyConn:
    """Minimal context manager returned by db_conn during unit tests."""

    def __enter__(self) -> _DummyConn:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:  # type: ignore[no-untyped-def]
        return False


_RECORDS = [
    FlowRecord("acme", "10.0.0.1", 443, "10.0.0.2", 51000, 10, 1500, datetime(2024, 1, 1, 1, tzinfo=UTC)),
    FlowRecord("acme", "10.0.0.3", 22, "10.0.0.4", 52000, 3, 180, datetime(2024, 1, 1, 2, tzinfo=UTC)),
]

_BODY = {
    "orgName": "acme",
    "startTime": "2024-01-01T00:00:00Z",
    "endTime": "2024-01-02T00:00:00+00:00",
    "shablon": "SrcIP,ByteCount",
}


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def remote() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def orchestrator(scheduler: ManualScheduler, remote: InMemoryStorage) -> Iterator[ExportOrchestrator]:
    orch = ExportOrchestrator(
        local=InMemoryStorage(),
        remote=remote,
        token_factory=counting_tokens(),
        scheduler=scheduler,
    )
    reports.set_orchestrator(orch)
    yield orch
    reports.set_orchestrator(None)


@pytest.fixture
def queries(monkeypatch: Any) -> list[tuple[str, datetime, datetime]]:
    """Stub the DB: records every query and returns _RECORDS."""
    seen: list[tuple[str, datetime, datetime]] = []

    def _fake_fetch(_conn: object, org_name: str, start: datetime, end: datetime) -> list[FlowRecord]:
        seen.append((org_name, start, end))
        return list(_RECORDS)

    monkeypatch.setattr(flask_app, "_API_BEARER_TOKEN", "")
    monkeypatch.setattr(reports, "db_conn", lambda: _DummyConn())
    monkeypatch.setattr(reports, "fetch_flow_records", _fake_fetch)
    return seen


def test_process_data_accepts_and_schedules(
    orchestrator: ExportOrchestrator, scheduler: ManualScheduler, queries: list[Any]
) -> None:
    client = flask_app.app.test_client()
    resp = client.post("/processData", json=_BODY)

    assert resp.status_code == 202
    body = resp.get_json()
    assert body["ok"] is True
    assert body["job_id"] == "tok-1"
    assert body["state"] == "scheduled"
    assert body["full_location"] == "output/output_IDtok-1.csv"
    assert body["row_count"] == 2
    assert body["columns"] == ["SrcIP", "ByteCount"]

    org, start, end = queries[0]
    assert org == "acme"
    assert start == datetime(2024, 1, 1, tzinfo=UTC)
    assert end == datetime(2024, 1, 2, tzinfo=UTC)
    assert len(scheduler.pending) == 1


def test_filtered_files_listed_after_projection(
    orchestrator: ExportOrchestrator, scheduler: ManualScheduler, queries: list[Any]
) -> None:
    client = flask_app.app.test_client()
    client.post("/processData", json=_BODY)

    assert client.get("/getFilteredFiles").get_json() == []

    scheduler.fire_all()
    resp = client.get("/getFilteredFiles")

    assert resp.status_code == 200
    assert resp.get_json() == ["filtered/filtered_output_IDtok-2.csv"]
    assert "no-store" in resp.headers["Cache-Control"]


def test_columns_alias_is_accepted(orchestrator: ExportOrchestrator, queries: list[Any]) -> None:
    body = {k: v for k, v in _BODY.items() if k != "shablon"}
    body["columns"] = "DstIP"
    resp = flask_app.app.test_client().post("/processData", json=body)

    assert resp.status_code == 202
    assert resp.get_json()["columns"] == ["DstIP"]


@pytest.mark.parametrize(
    ("body", "fragment"),
    [
        ({**_BODY, "orgName": ""}, "orgName"),
        ({k: v for k, v in _BODY.items() if k != "startTime"}, "startTime"),
        ({**_BODY, "endTime": "yesterday"}, "endTime"),
        ({**_BODY, "startTime": "2024-01-03T00:00:00Z"}, "before startTime"),
        ({**_BODY, "orgName": 42}, "must be a string"),
    ],
)
def test_process_data_validation_errors(
    orchestrator: ExportOrchestrator, queries: list[Any], body: dict[str, Any], fragment: str
) -> None:
    resp = flask_app.app.test_client().post("/processData", json=body)

    assert resp.status_code == 400
    payload = resp.get_json()
    assert payload["ok"] is False
    assert payload["error"] == "bad_request"
    assert fragment in payload["message"]
    assert queries == []


def test_process_data_rejects_non_json_body(orchestrator: ExportOrchestrator, queries: list[Any]) -> None:
    resp = flask_app.app.test_client().post("/processData", data="orgName=acme", content_type="text/plain")
    assert resp.status_code == 400


def test_process_data_wrong_method(orchestrator: ExportOrchestrator, queries: list[Any]) -> None:
    assert flask_app.app.test_client().get("/processData").status_code == 405


def test_query_failure_maps_to_502(orchestrator: ExportOrchestrator, queries: list[Any], monkeypatch: Any) -> None:
    def _fail(*_a: Any, **_k: Any) -> list[FlowRecord]:
        raise QueryError("flow-log query failed: relation \"logs\" does not exist")

    monkeypatch.setattr(reports, "fetch_flow_records", _fail)
    resp = flask_app.app.test_client().post("/processData", json=_BODY)

    assert resp.status_code == 502
    assert resp.get_json()["error"] == "query_failed"


def test_connection_failure_maps_to_502(orchestrator: ExportOrchestrator, queries: list[Any], monkeypatch: Any) -> None:
    def _no_db() -> Any:
        raise psycopg2.OperationalError("could not connect to server")

    monkeypatch.setattr(reports, "db_conn", _no_db)
    resp = flask_app.app.test_client().post("/processData", json=_BODY)

    assert resp.status_code == 502
    assert resp.get_json()["error"] == "query_failed"


def test_storage_failure_maps_to_502(queries: list[Any]) -> None:
    orch = ExportOrchestrator(
        local=InMemoryStorage(),
        remote=InMemoryStorage(fail_write=StorageUnavailable("minio down")),
        scheduler=ManualScheduler(),
    )
    reports.set_orchestrator(orch)
    try:
        resp = flask_app.app.test_client().post("/processData", json=_BODY)
    finally:
        reports.set_orchestrator(None)

    assert resp.status_code == 502
    assert resp.get_json()["error"] == "storage_error"


def test_job_status_endpoint(
    orchestrator: ExportOrchestrator, scheduler: ManualScheduler, queries: list[Any]
) -> None:
    client = flask_app.app.test_client()
    client.post("/processData", json=_BODY)

    pending = client.get("/api/jobs/tok-1").get_json()["job"]
    assert pending["state"] == "scheduled"
    assert pending["filtered_location"] is None

    scheduler.fire_all()
    done = client.get("/api/jobs/tok-1").get_json()["job"]
    assert done["state"] == "registered"
    assert done["filtered_location"] == "filtered/filtered_output_IDtok-2.csv"
    assert done["matched_columns"] == ["SrcIP", "ByteCount"]


def test_unknown_job_is_404(orchestrator: ExportOrchestrator, queries: list[Any]) -> None:
    resp = flask_app.app.test_client().get("/api/jobs/nope")
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "not_found"


def test_api_routes_require_bearer_token_when_configured(
    orchestrator: ExportOrchestrator, queries: list[Any], monkeypatch: Any
) -> None:
    monkeypatch.setattr(flask_app, "_API_BEARER_TOKEN", "s3cret")
    client = flask_app.app.test_client()

    assert client.get("/api/jobs/tok-1").status_code == 401
    assert client.get("/api/jobs/tok-1", headers={"Authorization": "Bearer wrong"}).status_code == 403
    assert client.get("/api/jobs/tok-1", headers={"Authorization": "Bearer s3cret"}).status_code == 404
    # Legacy report routes stay public.
    assert client.get("/getFilteredFiles").status_code == 200


def test_health_and_version_are_public(monkeypatch: Any) -> None:
    monkeypatch.setattr(flask_app, "_API_BEARER_TOKEN", "s3cret")
    client = flask_app.app.test_client()

    assert client.get("/health").get_json() == {"ok": True}
    version = client.get("/api/version").get_json()
    assert version["engine"] == "flowreport"
    assert version["export_schema_version"] == 1


def test_request_id_is_echoed(orchestrator: ExportOrchestrator, queries: list[Any]) -> None:
    resp = flask_app.app.test_client().get("/getFilteredFiles", headers={"X-Request-ID": "req-42"})
    assert resp.headers["X-Request-ID"] == "req-42"

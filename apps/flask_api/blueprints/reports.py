"""Reports Blueprint.

Flow-report export endpoints. ``/processData`` and ``/getFilteredFiles`` keep
their historical paths and payload shapes because existing clients call them
directly; job status lives under ``/api``.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Any

import psycopg2  # type: ignore[import-untyped]
from flask import Blueprint, jsonify

from apps.backend.db import db_conn
from apps.backend.flow_logs import fetch_flow_records
from apps.flask_api.utils import (
    _err,
    _export_error_response,
    _json_payload,
    _ok,
    _parse_csv_list,
    _payload_text,
    _require_iso8601_dt,
)
from contracts.errors import ExportError, QueryError
from contracts.flow_schema import FlowRecord
from infra.logging_config import StructuredLogger
from services.export_orchestrator import ExportOrchestrator

reports_bp = Blueprint("reports", __name__)

logger = StructuredLogger(__name__)

# One orchestrator per process: its registry backs /getFilteredFiles.
_ORCHESTRATOR: ExportOrchestrator | None = None
_ORCHESTRATOR_LOCK = threading.Lock()


def get_orchestrator() -> ExportOrchestrator:
    """Return the process-wide orchestrator, building it from settings on first use."""
    global _ORCHESTRATOR
    with _ORCHESTRATOR_LOCK:
        if _ORCHESTRATOR is None:
            _ORCHESTRATOR = ExportOrchestrator.from_settings()
        return _ORCHESTRATOR


def set_orchestrator(orchestrator: ExportOrchestrator | None) -> None:
    """Install (or clear, with ``None``) the process-wide orchestrator."""
    global _ORCHESTRATOR
    with _ORCHESTRATOR_LOCK:
        _ORCHESTRATOR = orchestrator


def _load_flow_records(org_name: str, start: datetime, end: datetime) -> list[FlowRecord]:
    try:
        with db_conn() as conn:
            return fetch_flow_records(conn, org_name, start, end)
    except psycopg2.Error as exc:
        # Pool checkout / connect failures surface here, not in the query.
        raise QueryError(f"database unavailable: {exc}") from exc


@reports_bp.route("/processData", methods=["POST"])
def process_data() -> Any:
    """Start an export job for one organization and time window.

    JSON body:
        orgName (required): organization to export
        startTime, endTime (required): RFC 3339 bounds, inclusive
        shablon: comma-separated columns for the filtered report
            (``columns`` is accepted as an alias)

    Returns 202 once the full export is uploaded; the filtered report is
    produced after the configured report interval.
    """
    try:
        payload = _json_payload()
        org_name = _payload_text(payload, "orgName", "org_name", required=True)
        if org_name is None:
            raise ValueError("Missing required field: orgName")
        start = _require_iso8601_dt(
            _payload_text(payload, "startTime", "start_time"), field_name="startTime"
        )
        end = _require_iso8601_dt(_payload_text(payload, "endTime", "end_time"), field_name="endTime")
        if end < start:
            raise ValueError("endTime must not be before startTime")
        columns = _payload_text(payload, "shablon", "columns") or ""
    except ValueError as exc:
        return _err("bad_request", str(exc), status=400)

    try:
        records = _load_flow_records(org_name, start, end)
        job = get_orchestrator().submit(org_name, records, columns)
    except ExportError as exc:
        logger.error("process_data_failed", org_name=org_name, error=str(exc))
        return _export_error_response(exc)

    return _ok(
        {
            "job_id": job.job_id,
            "state": job.state,
            "full_location": job.full_location,
            "row_count": job.row_count,
            "columns": _parse_csv_list(columns) or [],
        },
        status=202,
    )


@reports_bp.route("/getFilteredFiles", methods=["GET"])
def get_filtered_files() -> Any:
    """Locations of every filtered report produced so far, oldest first."""
    return jsonify(get_orchestrator().filtered_locations())


@reports_bp.route("/api/jobs/<job_id>", methods=["GET"])
def api_job_status(job_id: str) -> Any:
    job = get_orchestrator().get_job(job_id)
    if job is None:
        return _err("not_found", f"unknown job: {job_id}", status=404)
    return _ok({"job": job.to_dict()})

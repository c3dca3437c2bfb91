"""Health and metadata endpoints Blueprint."""

from typing import Any

from flask import Blueprint, jsonify

from apps.backend.db import db_conn, fetch_one_conn
from apps.flask_api.utils import _json, _ok
from version import ENGINE_NAME, ENGINE_VERSION, EXPORT_SCHEMA_VERSION

health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health() -> Any:
    """Basic liveness check; touches neither the database nor the bucket."""
    return jsonify({"ok": True})


@health_bp.route("/api/health/db", methods=["GET"])
def api_health_db() -> Any:
    """Database health check endpoint.

    Returns:
        JSON response with database health status
    """
    with db_conn() as conn:
        row = fetch_one_conn(conn, "SELECT 1")
    return _ok({"db": bool(row and row[0] == 1)})


@health_bp.route("/api/version", methods=["GET"])
def api_version() -> Any:
    return _json(
        {
            "engine": ENGINE_NAME,
            "version": ENGINE_VERSION,
            "export_schema_version": EXPORT_SCHEMA_VERSION,
        }
    )

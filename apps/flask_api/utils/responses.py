"""Response helpers for Flask API.

Provides standardized HTTP response formatting for consistent API responses.
"""

import traceback
from typing import Any, Dict, Optional

from flask import jsonify, request

from contracts.errors import ExportError, NotFound, QueryError

# Set from APIConfig.debug_errors when the app is built.
_API_DEBUG_ERRORS: bool = False


def set_debug_mode(enabled: bool) -> None:
    """Set debug mode for error responses."""
    global _API_DEBUG_ERRORS
    _API_DEBUG_ERRORS = enabled


def _ok(data: Optional[Dict[str, Any]] = None, *, status: int = 200) -> Any:
    """Create a successful JSON response.

    Args:
        data: Optional dictionary to include in the response
        status: HTTP status code (default 200)

    Returns:
        Flask response tuple (json, status)
    """
    payload: Dict[str, Any] = {"ok": True}
    if data:
        payload.update(data)
    return jsonify(payload), status


def _err(
    code: str,
    message: str,
    *,
    status: int,
    extra: Optional[Dict[str, Any]] = None,
) -> Any:
    """Create an error JSON response.

    Args:
        code: Error code (e.g., 'bad_request', 'not_found')
        message: Human-readable error message
        status: HTTP status code
        extra: Optional additional data to include

    Returns:
        Flask response tuple (json, status)
    """
    payload: Dict[str, Any] = {"ok": False, "error": code, "message": message}
    if extra:
        payload.update(extra)
    return jsonify(payload), status


def _json(payload: Dict[str, Any], *, status: int = 200) -> Any:
    """Create a generic JSON response with explicit status code.

    If 'ok' is missing, it is inferred from status.
    """
    if "ok" not in payload:
        payload = dict(payload)
        payload["ok"] = status < 400
    return jsonify(payload), status


def _export_error_response(exc: ExportError) -> Any:
    """Map export pipeline failures to JSON error bodies.

    - ``QueryError``: 502 ``query_failed`` (the database is upstream)
    - ``NotFound``: 404 ``not_found``
    - other storage failures: 502 ``storage_error``
    """
    if isinstance(exc, QueryError):
        return _err("query_failed", str(exc), status=502)
    if isinstance(exc, NotFound):
        return _err("not_found", str(exc), status=404)
    return _err("storage_error", str(exc), status=502)


def _api_internal_error_response(exc: Exception) -> Any:
    """Map unexpected exceptions to a stable 500 body.

    In debug mode the body also carries ``detail`` and ``traceback``.
    """
    exc_text = str(exc)

    try:
        path = request.path if request else ""
    except RuntimeError:
        path = ""

    if path == "/api/health/db":
        extra = {"detail": exc_text} if _API_DEBUG_ERRORS else None
        return _err("db_unhealthy", "db health check failed", status=500, extra=extra)

    extra = None
    if _API_DEBUG_ERRORS:
        extra = {"detail": exc_text, "traceback": "".join(traceback.format_exception(exc))}
    return _err("internal_error", "internal error", status=500, extra=extra)

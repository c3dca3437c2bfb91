"""flask_app.py

HTTP API for the flow-report exporter.

Routes live in blueprints (``apps.flask_api.blueprints``); this module owns the
app object and the cross-cutting hooks: request logging, cache headers, bearer
auth for ``/api/*`` and JSON error handlers.

Env
---
- DB_URL (required for exports) used by apps.backend.db
- MINIO_* / STORAGE__* object store settings, see infra.config
- API_BEARER_TOKEN (optional) protects /api/* routes
- API_DEBUG_ERRORS=1 adds exception detail to 500 responses

Run
---
python cli.py serve
FLASK_APP=apps.flask_api.flask_app flask run --host=0.0.0.0 --port=8080
"""

from __future__ import annotations

import hmac
import time
import uuid
from typing import Any, Optional

from flask import Flask, Response, abort, request

from apps.flask_api.blueprints import health_bp, reports_bp
from apps.flask_api.utils import _api_internal_error_response, _err, _export_error_response
from apps.flask_api.utils.responses import set_debug_mode
from contracts.errors import ExportError
from infra.config import get_settings
from infra.logging_config import StructuredLogger, clear_log_context, set_log_context

app = Flask(__name__)
app.register_blueprint(health_bp)
app.register_blueprint(reports_bp)

logger = StructuredLogger("apps.flask_api")

_API_SETTINGS = get_settings().api
_API_DEBUG_ERRORS = _API_SETTINGS.debug_errors
set_debug_mode(_API_DEBUG_ERRORS)

# If API_BEARER_TOKEN is unset/empty, authentication is disabled (useful for
# local dev). In hosted environments, set it to require:
#   Authorization: Bearer <token>
_API_BEARER_TOKEN = _API_SETTINGS.bearer_token.strip()

# Reachable without a token even when auth is enabled.
_PUBLIC_API_PATHS = frozenset({"/api/health/db", "/api/version"})


def _merge_vary_header(current: Optional[str], token: str) -> str:
    """Return a Vary header value that includes token exactly once."""
    items = [x.strip() for x in str(current or "").split(",") if x.strip()]
    token_norm = token.strip()
    if token_norm and token_norm.lower() not in {x.lower() for x in items}:
        items.append(token_norm)
    return ", ".join(items)


@app.before_request
def _start_request() -> None:
    request.environ["_flowreport_t0"] = time.monotonic()
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request.environ["_flowreport_request_id"] = request_id
    set_log_context(request_id=request_id)


@app.after_request
def _log_request(resp: Response) -> Response:
    t0 = float(request.environ.get("_flowreport_t0") or 0.0)
    ms = int(max(0.0, (time.monotonic() - t0) * 1000.0)) if t0 else None
    logger.info(
        "http_request",
        method=request.method,
        path=request.path,
        status=int(resp.status_code or 0),
        ms=ms,
        ip=request.headers.get("X-Forwarded-For", request.remote_addr),
    )

    request_id = request.environ.get("_flowreport_request_id")
    if request_id:
        resp.headers["X-Request-ID"] = request_id

    # Job status changes while a projection is pending; never cache it.
    path = request.path or ""
    if path.startswith("/api/") or path == "/getFilteredFiles":
        resp.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
        resp.headers["Pragma"] = "no-cache"
        resp.headers["Expires"] = "0"
        resp.headers["Vary"] = _merge_vary_header(resp.headers.get("Vary"), "Authorization")
    return resp


@app.teardown_request
def _clear_request_context(_: Optional[BaseException]) -> None:
    clear_log_context()


# --------------------
# Auth (Bearer token)
# --------------------


def _is_auth_required() -> bool:
    return bool(_API_BEARER_TOKEN)


def _check_bearer_token() -> None:
    """Abort the request if the bearer token is missing/invalid."""
    if not _is_auth_required():
        return

    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        abort(401)

    token = auth[len("Bearer ") :].strip()
    # constant-time comparison
    if not hmac.compare_digest(token, _API_BEARER_TOKEN):
        abort(403)


@app.before_request
def _enforce_api_auth() -> None:
    """Enforce bearer auth for ``/api/*`` routes.

    /health, /processData and /getFilteredFiles stay public for existing
    clients; so do the entries in ``_PUBLIC_API_PATHS``.
    """
    path = request.path or ""
    if not path.startswith("/api/"):
        return
    if path in _PUBLIC_API_PATHS:
        return
    _check_bearer_token()


# --------------------
# Error handlers
# --------------------


@app.errorhandler(401)
def _err_401(_: Exception) -> Any:
    return _err("unauthorized", "missing bearer token", status=401)


@app.errorhandler(403)
def _err_403(_: Exception) -> Any:
    return _err("forbidden", "invalid bearer token", status=403)


@app.errorhandler(ExportError)
def _err_export(exc: ExportError) -> Any:
    logger.error("export_error", path=request.path, error=str(exc))
    return _export_error_response(exc)


@app.errorhandler(500)
def _err_500(exc: Exception) -> Any:
    original = getattr(exc, "original_exception", None) or exc
    logger.error("unhandled_exception", path=request.path, detail=str(original))
    return _api_internal_error_response(original)


if __name__ == "__main__":
    app.run(host=_API_SETTINGS.host, port=_API_SETTINGS.port)

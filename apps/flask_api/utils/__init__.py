"""Flask API utilities package.

- responses: Standardized HTTP response helpers
- params: Payload parameter parsing
"""

# Re-export commonly used functions for convenience
from apps.flask_api.utils.params import (
    _json_payload,
    _parse_csv_list,
    _parse_iso8601_dt,
    _payload_text,
    _require_iso8601_dt,
)
from apps.flask_api.utils.responses import (
    _api_internal_error_response,
    _err,
    _export_error_response,
    _json,
    _ok,
)

__all__ = [
    # responses
    "_ok",
    "_err",
    "_json",
    "_export_error_response",
    "_api_internal_error_response",
    # params
    "_json_payload",
    "_payload_text",
    "_parse_csv_list",
    "_parse_iso8601_dt",
    "_require_iso8601_dt",
]

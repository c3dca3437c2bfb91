"""Payload parameter parsing helpers for Flask API.

Provides utilities for extracting and validating fields from JSON request
bodies, comma-separated lists and ISO-8601 timestamps.
"""

from datetime import UTC, datetime
from typing import Any

from flask import request


def _json_payload() -> dict[str, Any]:
    """Return the request body as a JSON object.

    Raises:
        ValueError: If the body is not a JSON object
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValueError("Request body must be a JSON object")
    return payload


def _payload_text(payload: dict[str, Any], *keys: str, required: bool = False) -> str | None:
    """Return the first non-empty string among ``keys`` in ``payload``.

    Args:
        payload: JSON payload dictionary
        keys: Field name followed by accepted aliases
        required: Raise when no key carries a value

    Raises:
        ValueError: If a value is not a string, or a required field is missing
    """
    for key in keys:
        value = payload.get(key)
        if value is None:
            continue
        if not isinstance(value, str):
            raise ValueError(f"{key} must be a string")
        text = value.strip()
        if text:
            return text
    if required:
        raise ValueError(f"Missing required field: {keys[0]}")
    return None


def _parse_csv_list(value: str | None) -> list[str] | None:
    """Parse a comma-separated list of values.

    Args:
        value: Comma-separated string

    Returns:
        List of trimmed strings, or None if empty
    """
    if not value:
        return None
    items = [x.strip() for x in value.split(",") if x.strip()]
    return items or None


def _parse_iso8601_dt(
    value: str | None, *, field_name: str = "timestamp"
) -> datetime | None:
    """Parse an ISO-8601 / RFC 3339 timestamp into a UTC-aware datetime.

    Accepts timestamps with or without timezone, and trailing 'Z'.

    Raises:
        ValueError: If timestamp format is invalid
    """
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValueError(
            f"Invalid {field_name} (expected ISO-8601): {s!r}"
        ) from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _require_iso8601_dt(value: str | None, *, field_name: str) -> datetime:
    """Like :func:`_parse_iso8601_dt` but the value is mandatory."""
    dt = _parse_iso8601_dt(value, field_name=field_name)
    if dt is None:
        raise ValueError(f"Missing required field: {field_name}")
    return dt

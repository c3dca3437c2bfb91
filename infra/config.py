"""Centralized application configuration with schema validation.

This module is intentionally compatibility-first:
- Supports flat environment names (for example ``DB_URL``, ``MINIO_BUCKET``).
- Supports nested names (for example ``DB__URL``, ``STORAGE__BUCKET``).
- Optionally reads a local ``.env`` file before process env values.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from threading import Lock

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _normalize_level(value: object) -> str:
    text = str(value or "").strip().upper()
    if text in _LOG_LEVELS:
        return text
    return "INFO"


class DatabaseConfig(BaseModel):
    """Database connection settings."""

    model_config = ConfigDict(frozen=True)

    url: str | None = Field(default=None, description="Postgres connection URL")
    pool_maxconn: int = Field(default=10, ge=1, le=100)
    connect_timeout: int = Field(default=5, ge=1, le=60)


class StorageConfig(BaseModel):
    """S3-compatible object store (MinIO by default)."""

    model_config = ConfigDict(frozen=True)

    endpoint: str = Field(default="localhost:9000")
    access_key: str = Field(default="minioadmin")
    secret_key: str = Field(default="minioadmin")
    bucket: str = Field(default="bucket", min_length=3, max_length=63)
    secure: bool = Field(default=False)
    region: str = Field(default="us-east-1")
    max_retries: int = Field(default=3, ge=1, le=25)
    timeout: int = Field(default=60, ge=1, le=300)
    connect_timeout: int = Field(default=5, ge=1, le=60)

    @field_validator("endpoint", mode="before")
    @classmethod
    def _strip_scheme(cls, value: object) -> str:
        """Accept ``http://host:port`` as well as bare ``host:port``."""
        text = str(value or "").strip()
        text = re.sub(r"^https?://", "", text)
        return text.rstrip("/") or "localhost:9000"

    @field_validator("bucket", mode="before")
    @classmethod
    def _normalize_bucket(cls, value: object) -> str:
        return str(value or "").strip()

    def endpoint_url(self) -> str:
        scheme = "https" if self.secure else "http"
        return f"{scheme}://{self.endpoint}"


class ExportConfig(BaseModel):
    """Export job layout and scheduling."""

    model_config = ConfigDict(frozen=True)

    local_dir: str = Field(default=".")
    report_interval_seconds: float = Field(default=1.0, ge=0.0)
    output_prefix: str = Field(default="output")
    filtered_prefix: str = Field(default="filtered")
    purge_remote_full: bool = Field(default=False)

    @field_validator("output_prefix", "filtered_prefix", mode="before")
    @classmethod
    def _normalize_prefix(cls, value: object) -> str:
        text = str(value or "").strip().strip("/")
        if not text:
            raise ValueError("prefix must be a non-empty key segment")
        return text


class APIConfig(BaseModel):
    """Flask API runtime configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)
    debug_errors: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    bearer_token: str = Field(default="")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return _normalize_level(value)


class LoggingSettings(BaseModel):
    """Repository-wide logging settings."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO")
    json_logs: bool = Field(default=False)
    override_root_handlers: bool = Field(default=False)

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        return _normalize_level(value)


class DbMetricsConfig(BaseModel):
    """DB query instrumentation settings."""

    model_config = ConfigDict(frozen=True)

    metrics_enabled: bool = Field(default=True)
    slow_query_threshold_ms: float = Field(default=1000.0, ge=0.0)

    @field_validator("metrics_enabled", mode="before")
    @classmethod
    def _normalize_metrics_enabled(cls, value: object) -> bool:
        if value is None:
            return True
        text = str(value).strip().lower()
        if text in {"0", "false", "no", "off"}:
            return False
        return True

    @field_validator("slow_query_threshold_ms", mode="before")
    @classmethod
    def _normalize_threshold_ms(cls, value: object) -> float:
        if value is None:
            return 1000.0
        text = str(value).strip()
        if text == "":
            return 1000.0
        try:
            parsed = float(text)
        except (TypeError, ValueError):
            return 1000.0
        return max(0.0, parsed)


class Settings(BaseModel):
    """Top-level settings model."""

    model_config = ConfigDict(frozen=True)

    db: DatabaseConfig = Field(default_factory=DatabaseConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    db_metrics: DbMetricsConfig = Field(default_factory=DbMetricsConfig)

    @classmethod
    def from_env(
        cls,
        *,
        env: Mapping[str, str] | None = None,
        env_file: str = ".env",
    ) -> Settings:
        """Build settings from `.env` then environment variables."""
        runtime_env = os.environ if env is None else env
        merged_env = _merge_env(_load_dotenv(Path(env_file)), runtime_env)
        payload = _build_payload(merged_env)
        return cls.model_validate(payload)


def _load_dotenv(path: Path) -> dict[str, str]:
    """Parse a minimal `.env` file format."""
    if not path.exists() or not path.is_file():
        return {}

    values: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, raw_value = line.split("=", 1)
        key_clean = key.strip()
        value = raw_value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        if key_clean:
            values[key_clean] = value
    return values


def _merge_env(dotenv_values: Mapping[str, str], runtime_env: Mapping[str, str]) -> dict[str, str]:
    """Return env map where process env overrides `.env` values."""
    merged = {str(k): str(v) for k, v in dotenv_values.items()}
    for key, value in runtime_env.items():
        merged[str(key)] = str(value)
    return merged


def _first_non_empty(env: Mapping[str, str], *keys: str) -> str | None:
    """Return the first non-empty value for the provided keys."""
    for key in keys:
        value = str(env.get(key, "")).strip()
        if value:
            return value
    return None


def _build_payload(env: Mapping[str, str]) -> dict[str, object]:
    """Build nested settings payload from env values."""
    db = {
        "url": _first_non_empty(env, "DB__URL", "DB_URL"),
        "pool_maxconn": _first_non_empty(env, "DB__POOL_MAXCONN", "DB_POOL_MAXCONN"),
        "connect_timeout": _first_non_empty(env, "DB__CONNECT_TIMEOUT", "DB_CONNECT_TIMEOUT"),
    }
    storage = {
        "endpoint": _first_non_empty(env, "STORAGE__ENDPOINT", "MINIO_ENDPOINT", "S3_ENDPOINT"),
        "access_key": _first_non_empty(env, "STORAGE__ACCESS_KEY", "MINIO_ACCESS_KEY", "AWS_ACCESS_KEY_ID"),
        "secret_key": _first_non_empty(
            env, "STORAGE__SECRET_KEY", "MINIO_SECRET_KEY", "AWS_SECRET_ACCESS_KEY"
        ),
        "bucket": _first_non_empty(env, "STORAGE__BUCKET", "MINIO_BUCKET", "S3_BUCKET"),
        "secure": _first_non_empty(env, "STORAGE__SECURE", "MINIO_SECURE"),
        "region": _first_non_empty(env, "STORAGE__REGION", "AWS_DEFAULT_REGION"),
        "max_retries": _first_non_empty(env, "STORAGE__MAX_RETRIES", "S3_MAX_RETRIES"),
        "timeout": _first_non_empty(env, "STORAGE__TIMEOUT", "S3_TIMEOUT"),
        "connect_timeout": _first_non_empty(env, "STORAGE__CONNECT_TIMEOUT", "S3_CONNECT_TIMEOUT"),
    }
    export = {
        "local_dir": _first_non_empty(env, "EXPORT__LOCAL_DIR", "EXPORT_LOCAL_DIR"),
        "report_interval_seconds": _first_non_empty(
            env, "EXPORT__REPORT_INTERVAL_SECONDS", "REPORT_INTERVAL_SECONDS"
        ),
        "output_prefix": _first_non_empty(env, "EXPORT__OUTPUT_PREFIX", "EXPORT_OUTPUT_PREFIX"),
        "filtered_prefix": _first_non_empty(env, "EXPORT__FILTERED_PREFIX", "EXPORT_FILTERED_PREFIX"),
        "purge_remote_full": _first_non_empty(
            env, "EXPORT__PURGE_REMOTE_FULL", "EXPORT_PURGE_REMOTE_FULL"
        ),
    }
    api = {
        "host": _first_non_empty(env, "API__HOST", "API_HOST", "HOST"),
        "port": _first_non_empty(env, "API__PORT", "API_PORT", "PORT"),
        "debug_errors": _first_non_empty(env, "API__DEBUG_ERRORS", "API_DEBUG_ERRORS"),
        "log_level": _first_non_empty(env, "API__LOG_LEVEL", "API_LOG_LEVEL"),
        "bearer_token": _first_non_empty(env, "API__BEARER_TOKEN", "API_BEARER_TOKEN"),
    }
    logging_settings = {
        "level": _first_non_empty(env, "LOGGING__LEVEL", "FLOWREPORT_LOG_LEVEL"),
        "json_logs": _first_non_empty(env, "LOGGING__JSON_LOGS", "FLOWREPORT_LOG_JSON"),
        "override_root_handlers": _first_non_empty(
            env, "LOGGING__OVERRIDE_ROOT_HANDLERS", "FLOWREPORT_LOG_OVERRIDE"
        ),
    }
    db_metrics = {
        "metrics_enabled": _first_non_empty(env, "DB_METRICS__ENABLED", "DB_QUERY_METRICS_ENABLED"),
        "slow_query_threshold_ms": _first_non_empty(
            env, "DB_METRICS__SLOW_QUERY_THRESHOLD_MS", "DB_SLOW_QUERY_THRESHOLD_MS"
        ),
    }
    return {
        "db": {k: v for k, v in db.items() if v is not None},
        "storage": {k: v for k, v in storage.items() if v is not None},
        "export": {k: v for k, v in export.items() if v is not None},
        "api": {k: v for k, v in api.items() if v is not None},
        "logging": {k: v for k, v in logging_settings.items() if v is not None},
        "db_metrics": {k: v for k, v in db_metrics.items() if v is not None},
    }


_SETTINGS_LOCK = Lock()
_SETTINGS_CACHE: Settings | None = None


def get_settings(*, reload: bool = False) -> Settings:
    """Return cached settings, optionally forcing reload from env."""
    global _SETTINGS_CACHE
    with _SETTINGS_LOCK:
        if reload or _SETTINGS_CACHE is None:
            _SETTINGS_CACHE = Settings.from_env()
        return _SETTINGS_CACHE


def clear_settings_cache() -> None:
    """Clear in-process settings cache."""
    global _SETTINGS_CACHE
    with _SETTINGS_LOCK:
        _SETTINGS_CACHE = None


__all__ = [
    "APIConfig",
    "DatabaseConfig",
    "DbMetricsConfig",
    "ExportConfig",
    "LoggingSettings",
    "Settings",
    "StorageConfig",
    "get_settings",
    "clear_settings_cache",
    "ValidationError",
]

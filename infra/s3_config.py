"""S3 client configuration for the object store (MinIO or AWS S3).

The API, CLI and tests that need a real client build it here so retry,
timeout and addressing knobs live in one place.
"""

from __future__ import annotations

from typing import Any

import boto3  # type: ignore[import-untyped]
from botocore.config import Config

from infra.config import StorageConfig, get_settings
from version import ENGINE_NAME, ENGINE_VERSION


def sdk_config(cfg: StorageConfig) -> Config:
    """botocore Config for the object store."""
    return Config(
        retries={"max_attempts": int(cfg.max_retries), "mode": "standard"},
        user_agent_extra=f"{ENGINE_NAME}/{ENGINE_VERSION}",
        connect_timeout=int(cfg.connect_timeout),
        read_timeout=int(cfg.timeout),
        # MinIO serves buckets by path, not by virtual host.
        s3={"addressing_style": "path"},
        signature_version="s3v4",
    )


def make_s3_client(cfg: StorageConfig | None = None) -> Any:
    """Build a boto3 S3 client pointed at the configured endpoint."""
    cfg = cfg or get_settings().storage
    session = boto3.session.Session()
    return session.client(
        "s3",
        endpoint_url=cfg.endpoint_url(),
        aws_access_key_id=cfg.access_key,
        aws_secret_access_key=cfg.secret_key,
        region_name=cfg.region,
        config=sdk_config(cfg),
    )


__all__ = ["make_s3_client", "sdk_config"]

"""Tests for object-store client configuration."""

from __future__ import annotations

from infra.config import StorageConfig
from infra.s3_config import make_s3_client, sdk_config


def test_sdk_config_uses_path_style_and_retries() -> None:
    cfg = sdk_config(StorageConfig(max_retries=5, timeout=30, connect_timeout=3))

    assert cfg.s3 == {"addressing_style": "path"}
    assert cfg.retries == {"max_attempts": 5, "mode": "standard"}
    assert cfg.read_timeout == 30
    assert cfg.connect_timeout == 3
    assert cfg.user_agent_extra.startswith("flowreport/")


def test_make_s3_client_targets_configured_endpoint() -> None:
    client = make_s3_client(StorageConfig(endpoint="minio.local:9000", secure=True, region="eu-west-1"))

    assert client.meta.endpoint_url == "https://minio.local:9000"
    assert client.meta.region_name == "eu-west-1"

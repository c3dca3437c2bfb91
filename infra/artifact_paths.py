"""Naming conventions for export artifacts.

Everything that needs to know how an artifact is named, locally or in the
bucket, goes through :class:`ArtifactPaths`. The names are a compatibility
contract with downstream consumers:

- full export:      ``output_ID<token>.csv`` under ``output/``
- filtered export:  ``filtered_output_ID<token>.csv`` under ``filtered/``
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

FULL_FILENAME_TEMPLATE = "output_ID{token}.csv"
FILTERED_FILENAME_TEMPLATE = "filtered_output_ID{token}.csv"


def new_token() -> str:
    """Fresh unique token for one artifact name (UUID4, canonical form)."""
    return str(uuid.uuid4())


def _check_prefix(name: str, value: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must be a non-empty string")
    if "\\" in value or value.startswith("/") or value.endswith("/"):
        raise ValueError(f"{name} must be a relative key prefix without leading/trailing '/': {value!r}")


@dataclass(frozen=True)
class ArtifactPaths:
    """Resolve file names and object keys for export artifacts."""

    output_prefix: str = "output"
    filtered_prefix: str = "filtered"

    def __post_init__(self) -> None:
        _check_prefix("output_prefix", self.output_prefix)
        _check_prefix("filtered_prefix", self.filtered_prefix)

    @staticmethod
    def full_filename(token: str) -> str:
        return FULL_FILENAME_TEMPLATE.format(token=token)

    @staticmethod
    def filtered_filename(token: str) -> str:
        return FILTERED_FILENAME_TEMPLATE.format(token=token)

    def full_key(self, token: str) -> str:
        return f"{self.output_prefix}/{self.full_filename(token)}"

    def filtered_key(self, token: str) -> str:
        return f"{self.filtered_prefix}/{self.filtered_filename(token)}"

    @classmethod
    def from_settings(cls, export_cfg) -> ArtifactPaths:  # type: ignore[no-untyped-def]
        """Build from :class:`infra.config.ExportConfig`."""
        return cls(
            output_prefix=export_cfg.output_prefix,
            filtered_prefix=export_cfg.filtered_prefix,
        )


__all__ = [
    "ArtifactPaths",
    "FILTERED_FILENAME_TEMPLATE",
    "FULL_FILENAME_TEMPLATE",
    "new_token",
]

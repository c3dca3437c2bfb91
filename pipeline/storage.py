"""Storage backends for whole CSV artifacts.

Two implementations of :class:`contracts.interfaces.StorageBackend`:

- :class:`LocalStorage`: files under a base directory. Writes land in a
  temporary sibling first and are renamed into place, so a failed write never
  leaves a partial artifact behind.
- :class:`S3Storage`: objects in one bucket of an S3-compatible store. Tables
  are uploaded straight from the in-memory encoded buffer; no local round trip.

Failures map onto :mod:`contracts.errors`:

=====================  =========================================================
``NotFound``           nothing at the location
``MalformedInput``     the stored bytes are not a well-formed CSV table
``StorageUnavailable`` the backend cannot be reached (or the bucket is missing)
``WriteFailed``        the backend was reached but rejected the write
=====================  =========================================================

``delete`` is best-effort on both backends: failures are logged and reported as
``False``, never raised.
"""

from __future__ import annotations

import errno
import logging
import os
import uuid
from pathlib import Path
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from contracts.errors import NotFound, StorageUnavailable, WriteFailed
from contracts.interfaces import S3ClientProtocol
from contracts.table import Table
from pipeline.csv_codec import decode, encode

logger = logging.getLogger(__name__)

CSV_CONTENT_TYPE = "application/csv"

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404"})
_UNAVAILABLE_CODES = frozenset(
    {
        "NoSuchBucket",
        "ServiceUnavailable",
        "SlowDown",
        "RequestTimeout",
        "InternalError",
        "500",
        "503",
    }
)
# errno values that mean "the write was refused", as opposed to "no such place".
_WRITE_REJECTED_ERRNOS = frozenset(
    {errno.EACCES, errno.EPERM, errno.ENOSPC, errno.EROFS, getattr(errno, "EDQUOT", errno.ENOSPC)}
)


def _client_error_code(exc: ClientError) -> str:
    err = exc.response.get("Error") or {}
    return str(err.get("Code") or "")


# --------------------
# Local filesystem
# --------------------


class LocalStorage:
    """Artifacts as files; a location is the file path as a string."""

    def __init__(self, base_dir: str | Path = ".") -> None:
        self._base = Path(base_dir)

    @property
    def base_dir(self) -> Path:
        return self._base

    def path_for(self, name: str) -> Path:
        return self._base / name

    def write_table(self, name: str, table: Table) -> str:
        target = self.path_for(name)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailable(f"cannot prepare directory {target.parent}: {exc}") from exc

        tmp = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
        try:
            tmp.write_bytes(encode(table))
            os.replace(tmp, target)
        except OSError as exc:
            try:
                tmp.unlink()
            except FileNotFoundError:
                pass
            except OSError as cleanup_exc:
                logger.warning("Failed to remove temp file %s: %s", tmp, cleanup_exc)
            if exc.errno in _WRITE_REJECTED_ERRNOS:
                raise WriteFailed(f"write rejected for {target}: {exc}") from exc
            raise StorageUnavailable(f"cannot write {target}: {exc}") from exc

        logger.info("Data saved to %s", target)
        return str(target)

    def read_table(self, location: str) -> Table:
        path = Path(location)
        try:
            data = path.read_bytes()
        except (FileNotFoundError, IsADirectoryError) as exc:
            raise NotFound(location) from exc
        except OSError as exc:
            raise StorageUnavailable(f"cannot read {location}: {exc}") from exc
        return decode(data)

    def delete(self, location: str) -> bool:
        try:
            Path(location).unlink()
        except OSError as exc:
            logger.warning("Failed to remove file from the local filesystem: %s", exc)
            return False
        return True


# --------------------
# S3-compatible object store
# --------------------


class S3Storage:
    """Artifacts as objects in one bucket; a location is the object key."""

    def __init__(self, client: S3ClientProtocol | Any, bucket: str) -> None:
        self._client = client
        self._bucket = bucket

    @property
    def bucket(self) -> str:
        return self._bucket

    def write_table(self, name: str, table: Table) -> str:
        body = encode(table)
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=name,
                Body=body,
                ContentLength=len(body),
                ContentType=CSV_CONTENT_TYPE,
            )
        except ClientError as exc:
            code = _client_error_code(exc)
            if code in _UNAVAILABLE_CODES:
                raise StorageUnavailable(f"object store unavailable writing {name}: {code}") from exc
            raise WriteFailed(f"upload of {name} rejected: {code or exc}") from exc
        except BotoCoreError as exc:
            raise StorageUnavailable(f"object store unreachable writing {name}: {exc}") from exc

        logger.info("Uploaded %s to bucket %s (%d bytes)", name, self._bucket, len(body))
        return name

    def read_table(self, location: str) -> Table:
        try:
            resp = self._client.get_object(Bucket=self._bucket, Key=location)
        except ClientError as exc:
            code = _client_error_code(exc)
            if code in _NOT_FOUND_CODES:
                raise NotFound(location) from exc
            raise StorageUnavailable(f"cannot read {location}: {code or exc}") from exc
        except BotoCoreError as exc:
            raise StorageUnavailable(f"object store unreachable reading {location}: {exc}") from exc

        body = resp["Body"]
        try:
            data = body.read()
        except BotoCoreError as exc:
            raise StorageUnavailable(f"stream for {location} interrupted: {exc}") from exc
        finally:
            close = getattr(body, "close", None)
            if callable(close):
                close()
        return decode(data)

    def delete(self, location: str) -> bool:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=location)
        except (ClientError, BotoCoreError) as exc:
            logger.warning("Failed to remove %s from bucket %s: %s", location, self._bucket, exc)
            return False
        return True


__all__ = ["CSV_CONTENT_TYPE", "LocalStorage", "S3Storage"]

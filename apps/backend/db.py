"""
db.py

PostgreSQL access (psycopg2) through a process-global connection pool.

The export path opens one pooled connection per request and runs the flow
query on it; callers never close connections themselves. The DSN, pool size
and connect timeout come from :class:`infra.config.DatabaseConfig`
(``DB_URL``, ``DB_POOL_MAXCONN``, ``DB_CONNECT_TIMEOUT``).
"""

from __future__ import annotations

import atexit
import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Sequence, Tuple

from apps.backend.db_metrics import measure_query
from infra.config import get_settings

_LOGGER = logging.getLogger(__name__)


def _db_url() -> str:
    url = get_settings().db.url
    if not url:
        raise RuntimeError("DB_URL is not set")
    return url


# Keep a single global pool per process.
_POOL = None
_POOL_DSN: Optional[str] = None


def _get_pool():
    """Return a process-global psycopg2 pool, creating it on first use."""
    global _POOL, _POOL_DSN

    dsn = _db_url()
    if _POOL is not None and _POOL_DSN == dsn:
        return _POOL

    from psycopg2.pool import SimpleConnectionPool  # type: ignore

    cfg = get_settings().db
    _POOL = SimpleConnectionPool(
        minconn=1,
        maxconn=cfg.pool_maxconn,
        dsn=dsn,
        connect_timeout=cfg.connect_timeout,
    )
    _POOL_DSN = dsn
    return _POOL


def _close_pool() -> None:
    """Close the pool on process exit."""
    global _POOL
    try:
        if _POOL is not None:
            _POOL.closeall()
    except Exception as exc:  # interpreter shutdown: nothing left to report to
        _LOGGER.debug("closing db pool failed: %s", exc)
    finally:
        _POOL = None


atexit.register(_close_pool)


@contextmanager
def db_conn() -> Iterator[Any]:
    """Yield a pooled psycopg2 connection.

    - Callers should NOT close the connection; it is returned to the pool.
    - Any open transaction is rolled back before the connection goes back, so
      the next checkout never sees a stale snapshot.
    """
    pool = _get_pool()
    conn = pool.getconn()
    try:
        yield conn
    finally:
        try:
            conn.rollback()
        except Exception as exc:
            _LOGGER.debug("rollback before putconn failed: %s", exc)
        try:
            pool.putconn(conn)
        except Exception as exc:
            _LOGGER.warning("putconn failed, closing connection: %s", exc)
            try:
                conn.close()
            except Exception as close_exc:
                _LOGGER.debug("closing orphaned connection failed: %s", close_exc)


def _query_name(sql: str, *, operation: str) -> str:
    """Return a stable query operation label for metrics/logging."""
    text = " ".join(str(sql or "").strip().split())
    if not text:
        return operation
    first_token = text.split(" ", 1)[0].lower()
    return f"{operation}:{first_token}"


def fetch_one_conn(conn: Any, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[Tuple[Any, ...]]:
    """Execute a query on an existing connection and return one row (or None)."""
    with conn.cursor() as cur:
        with measure_query(_query_name(sql, operation="fetch_one_conn")):
            cur.execute(sql, params or ())
        return cur.fetchone()


def fetch_all_conn(conn: Any, sql: str, params: Optional[Sequence[Any]] = None) -> list[Tuple[Any, ...]]:
    """Execute a query on an existing connection and return all rows."""
    with conn.cursor() as cur:
        with measure_query(_query_name(sql, operation="fetch_all_conn")):
            cur.execute(sql, params or ())
        return cur.fetchall()

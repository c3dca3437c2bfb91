"""Two-phase export job orchestration.

Phase 1 runs on the caller's thread (:meth:`ExportOrchestrator.submit`):

    queried -> full_written -> full_uploaded -> scheduled

It builds the full table from the query result, writes it locally as
``output_ID<token>.csv``, uploads it as ``output/output_ID<token>.csv`` and
schedules phase 2 after the configured report interval. Errors raise to the
caller.

Phase 2 runs once on a timer thread:

    scheduled -> projected -> registered

It reads the full export back from the remote store, projects the requested
columns, uploads ``filtered/filtered_output_ID<token2>.csv`` from memory,
deletes the local full copy (best-effort) and appends the filtered location to
the :class:`~services.artifact_registry.ArtifactRegistry`. Errors are logged
and recorded on the job (``state == "failed"``); nothing is retried or rolled
back, so an uploaded full export may be left behind.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from contracts.errors import ExportError
from contracts.flow_schema import FlowRecord
from contracts.interfaces import StorageBackend, TokenFactory
from contracts.table import ArtifactRef
from infra.artifact_paths import ArtifactPaths, new_token
from infra.config import Settings, get_settings
from infra.logging_config import StructuredLogger, log_context
from infra.s3_config import make_s3_client
from pipeline.flow_export import build_full_table
from pipeline.projector import parse_column_list, project
from pipeline.storage import LocalStorage, S3Storage
from services.artifact_registry import ArtifactRegistry

logger = StructuredLogger(__name__)

STATE_QUERIED = "queried"
STATE_FULL_WRITTEN = "full_written"
STATE_FULL_UPLOADED = "full_uploaded"
STATE_SCHEDULED = "scheduled"
STATE_PROJECTED = "projected"
STATE_REGISTERED = "registered"
STATE_FAILED = "failed"

JOB_STATES: tuple[str, ...] = (
    STATE_QUERIED,
    STATE_FULL_WRITTEN,
    STATE_FULL_UPLOADED,
    STATE_SCHEDULED,
    STATE_PROJECTED,
    STATE_REGISTERED,
)
TERMINAL_STATES = frozenset({STATE_REGISTERED, STATE_FAILED})

# (delay_seconds, callback) -> handle. Must call ``callback`` exactly once.
Scheduler = Callable[[float, Callable[[], None]], Any]


def timer_scheduler(delay: float, callback: Callable[[], None]) -> threading.Timer:
    """Run ``callback`` once on a daemon timer thread after ``delay`` seconds."""
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.name = "export-projection"
    timer.start()
    return timer


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class ExportJob:
    """Mutable job record. Callers only ever see copies (see ``get_job``)."""

    job_id: str
    org_name: str
    columns: str
    state: str = STATE_QUERIED
    full_local: ArtifactRef | None = None
    full_remote: ArtifactRef | None = None
    filtered: ArtifactRef | None = None
    matched_columns: tuple[str, ...] = ()
    unmatched_columns: tuple[str, ...] = ()
    row_count: int = 0
    error: str | None = None
    created_at: datetime = field(default_factory=_utc_now)
    finished_at: datetime | None = None

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def full_location(self) -> str | None:
        return self.full_remote.location if self.full_remote else None

    @property
    def filtered_location(self) -> str | None:
        return self.filtered.location if self.filtered else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "org_name": self.org_name,
            "columns": self.columns,
            "state": self.state,
            "full_location": self.full_location,
            "filtered_location": self.filtered_location,
            "matched_columns": list(self.matched_columns),
            "unmatched_columns": list(self.unmatched_columns),
            "row_count": self.row_count,
            "error": self.error,
            "created_at": self.created_at.isoformat().replace("+00:00", "Z"),
            "finished_at": self.finished_at.isoformat().replace("+00:00", "Z") if self.finished_at else None,
        }


class ExportOrchestrator:
    """Coordinates full export, deferred projection and registration."""

    def __init__(
        self,
        *,
        local: StorageBackend,
        remote: StorageBackend,
        registry: ArtifactRegistry | None = None,
        paths: ArtifactPaths | None = None,
        delay_seconds: float = 1.0,
        purge_remote_full: bool = False,
        max_finished_jobs: int = 1000,
        token_factory: TokenFactory = new_token,
        scheduler: Scheduler = timer_scheduler,
    ) -> None:
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        if max_finished_jobs < 1:
            raise ValueError("max_finished_jobs must be >= 1")
        self._local = local
        self._remote = remote
        self._registry = registry if registry is not None else ArtifactRegistry()
        self._paths = paths or ArtifactPaths()
        self._delay = float(delay_seconds)
        self._purge_remote_full = purge_remote_full
        self._max_finished = max_finished_jobs
        self._token_factory = token_factory
        self._scheduler = scheduler

        self._lock = threading.Lock()
        self._jobs: dict[str, ExportJob] = {}
        # Only unfinished jobs keep an Event; finished ones are pruned oldest
        # first past max_finished_jobs.
        self._done: dict[str, threading.Event] = {}

    @classmethod
    def from_settings(cls, settings: Settings | None = None, *, s3_client: Any = None) -> ExportOrchestrator:
        """Wire local disk + S3 backends from :class:`infra.config.Settings`."""
        cfg = settings or get_settings()
        client = s3_client if s3_client is not None else make_s3_client(cfg.storage)
        return cls(
            local=LocalStorage(cfg.export.local_dir),
            remote=S3Storage(client, cfg.storage.bucket),
            paths=ArtifactPaths.from_settings(cfg.export),
            delay_seconds=cfg.export.report_interval_seconds,
            purge_remote_full=cfg.export.purge_remote_full,
        )

    @property
    def registry(self) -> ArtifactRegistry:
        return self._registry

    # -------------------------
    # Public API
    # -------------------------

    def submit(self, org_name: str, records: Sequence[FlowRecord], columns: str) -> ExportJob:
        """Run phase 1 and schedule phase 2. Returns a snapshot of the job.

        Raises whatever the local/remote backends raise (``ExportError``
        subclasses); the job is marked failed first.
        """
        token = self._token_factory()
        job = ExportJob(job_id=token, org_name=org_name, columns=columns)
        with self._lock:
            if token in self._jobs:
                raise RuntimeError(f"duplicate job token: {token}")
            self._jobs[token] = job
            self._done[token] = threading.Event()

        with log_context(job_id=token, org_name=org_name):
            logger.info("export_job_queried", job_id=token, records=len(records))
            try:
                table = build_full_table(records)
                name = self._paths.full_filename(token)
                local_location = self._local.write_table(name, table)
                self._advance(
                    token,
                    STATE_FULL_WRITTEN,
                    full_local=ArtifactRef("full", token, local_location),
                    row_count=len(table),
                )

                remote_location = self._remote.write_table(self._paths.full_key(token), table)
                self._advance(
                    token,
                    STATE_FULL_UPLOADED,
                    full_remote=ArtifactRef("full", token, remote_location),
                )

                # State first: with a zero delay the timer may fire before
                # the scheduler call returns.
                self._advance(token, STATE_SCHEDULED)
                self._scheduler(self._delay, lambda: self._run_projection(token))
                logger.info("export_job_scheduled", job_id=token, delay_seconds=self._delay)
            except Exception as exc:
                self._fail(token, exc)
                raise

        snapshot = self.get_job(token)
        if snapshot is None:
            raise RuntimeError(f"export job {token} was pruned before submit returned")
        return snapshot

    def run(
        self,
        org_name: str,
        records: Sequence[FlowRecord],
        columns: str,
        *,
        timeout: float | None = None,
    ) -> ExportJob:
        """Submit and block until the projection phase has finished."""
        job = self.submit(org_name, records, columns)
        return self.wait(job.job_id, timeout=timeout)

    def wait(self, job_id: str, *, timeout: float | None = None) -> ExportJob:
        """Block until ``job_id`` is terminal.

        Raises:
            KeyError: unknown job.
            TimeoutError: the job did not finish within ``timeout`` seconds.
        """
        with self._lock:
            if job_id not in self._jobs:
                raise KeyError(job_id)
            event = self._done.get(job_id)
        if event is not None and not event.wait(timeout):
            raise TimeoutError(f"export job {job_id} still running after {timeout}s")
        snapshot = self.get_job(job_id)
        if snapshot is None:
            raise KeyError(job_id)
        return snapshot

    def get_job(self, job_id: str) -> ExportJob | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return replace(job) if job is not None else None

    def list_jobs(self) -> list[ExportJob]:
        with self._lock:
            return [replace(j) for j in self._jobs.values()]

    def filtered_locations(self) -> list[str]:
        return self._registry.snapshot()

    # -------------------------
    # Phase 2
    # -------------------------

    def _run_projection(self, job_id: str) -> None:
        job = self.get_job(job_id)
        if job is None or job.state != STATE_SCHEDULED:
            return
        if job.full_remote is None:
            raise RuntimeError(f"export job {job_id} scheduled without a remote full export")

        with log_context(job_id=job_id, org_name=job.org_name):
            try:
                full = self._remote.read_table(job.full_remote.location)
                result = project(full, parse_column_list(job.columns))

                filtered_token = self._token_factory()
                key = self._paths.filtered_key(filtered_token)
                location = self._remote.write_table(key, result.table)
                self._advance(
                    job_id,
                    STATE_PROJECTED,
                    filtered=ArtifactRef("filtered", filtered_token, location),
                    matched_columns=result.matched,
                    unmatched_columns=result.unmatched,
                )
                if result.unmatched:
                    logger.warning(
                        "export_columns_unmatched",
                        job_id=job_id,
                        unmatched=",".join(result.unmatched),
                    )

                if job.full_local is not None:
                    self._local.delete(job.full_local.location)
                if self._purge_remote_full:
                    self._remote.delete(job.full_remote.location)

                self._registry.append(location)
                self._advance(job_id, STATE_REGISTERED)
                logger.info("export_job_registered", job_id=job_id, filtered_location=location)
            except ExportError as exc:
                self._fail(job_id, exc)
            except Exception as exc:  # timer thread: record instead of dying silently
                logger.exception("export_job_crashed", job_id=job_id)
                self._fail(job_id, exc)

    # -------------------------
    # State bookkeeping
    # -------------------------

    def _advance(self, job_id: str, state: str, **changes: Any) -> None:
        with self._lock:
            job = self._jobs[job_id]
            expected = JOB_STATES.index(state) - 1
            if JOB_STATES.index(job.state) != expected:
                raise RuntimeError(f"illegal transition {job.state} -> {state} for job {job_id}")
            for key, value in changes.items():
                setattr(job, key, value)
            job.state = state
            if state in TERMINAL_STATES:
                self._finish_locked(job)
        logger.debug("export_job_state", job_id=job_id, state=state)

    def _fail(self, job_id: str, exc: BaseException) -> None:
        with self._lock:
            job = self._jobs[job_id]
            failed_in = job.state
            job.state = STATE_FAILED
            job.error = f"{type(exc).__name__}: {exc}"
            self._finish_locked(job)
        logger.error("export_job_failed", job_id=job_id, failed_in=failed_in, error=str(exc))

    def _finish_locked(self, job: ExportJob) -> None:
        job.finished_at = _utc_now()
        event = self._done.pop(job.job_id, None)
        if event is not None:
            event.set()

        finished = [jid for jid, j in self._jobs.items() if j.done]
        for jid in finished[: max(0, len(finished) - self._max_finished)]:
            del self._jobs[jid]


__all__ = [
    "ExportJob",
    "ExportOrchestrator",
    "JOB_STATES",
    "STATE_FAILED",
    "STATE_FULL_UPLOADED",
    "STATE_FULL_WRITTEN",
    "STATE_PROJECTED",
    "STATE_QUERIED",
    "STATE_REGISTERED",
    "STATE_SCHEDULED",
    "Scheduler",
    "TERMINAL_STATES",
    "timer_scheduler",
]

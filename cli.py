"""
Flow-report CLI (flat-layout friendly).

Usage
-----
flowreport serve --port 8080
flowreport export --org acme --start 2024-01-01T00:00:00Z --end 2024-01-02T00:00:00Z --columns SrcIP,DstIP
flowreport project --in output_ID123.csv --out filtered.csv --columns SrcIP,ByteCount
"""

from __future__ import annotations

import argparse
import os
from datetime import UTC, datetime
from typing import List, Optional

from contracts.errors import ExportError
from infra.logging_config import setup_logging


def _env_default(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.environ.get(name)
    if v is None or v == "":
        return default
    return v


def _parse_time(value: str, *, flag: str) -> datetime:
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError as exc:
        raise SystemExit(f"Invalid {flag} (expected ISO-8601): {value!r}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def cmd_serve(args: argparse.Namespace) -> None:
    from apps.flask_api.flask_app import app  # local import: pulls in Flask + settings
    from infra.config import get_settings

    api = get_settings().api
    app.run(host=args.host or api.host, port=args.port or api.port)


def cmd_export(args: argparse.Namespace) -> None:
    from apps.backend.db import db_conn
    from apps.backend.flow_logs import fetch_flow_records
    from services.export_orchestrator import STATE_REGISTERED, ExportOrchestrator

    org = args.org or _env_default("ORG_NAME")
    if not org:
        raise SystemExit("Missing --org (or ORG_NAME env var).")
    start = _parse_time(args.start, flag="--start")
    end = _parse_time(args.end, flag="--end")
    if end < start:
        raise SystemExit("--end must not be before --start.")

    orchestrator = ExportOrchestrator.from_settings()
    try:
        with db_conn() as conn:
            records = fetch_flow_records(conn, org, start, end)
        job = orchestrator.run(org, records, args.columns or "", timeout=args.timeout)
    except ExportError as exc:
        raise SystemExit(f"Export failed: {exc}") from exc
    except TimeoutError as exc:
        raise SystemExit(str(exc)) from exc

    if job.state != STATE_REGISTERED:
        raise SystemExit(f"Export job {job.job_id} failed: {job.error}")
    print(f"Full export:     {job.full_location}")
    print(f"Filtered report: {job.filtered_location}")
    if job.unmatched_columns:
        print(f"Unmatched columns: {', '.join(job.unmatched_columns)}")


def cmd_project(args: argparse.Namespace) -> None:
    from pipeline.projector import parse_column_list, project_file

    try:
        result = project_file(args.input, args.output, parse_column_list(args.columns))
    except ExportError as exc:
        raise SystemExit(f"Projection failed: {exc}") from exc
    print(f"Wrote {args.output} ({len(result.table)} rows, columns: {', '.join(result.matched) or '-'})")
    if result.unmatched:
        print(f"Unmatched columns: {', '.join(result.unmatched)}")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="flowreport", description="Flow-report exporter CLI")
    p.add_argument("--log-level", default=None, help="Override FLOWREPORT_LOG_LEVEL.")
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("serve", help="Run the HTTP API (Flask development server).")
    sp.add_argument("--host", default=None, help="Bind address. Default: API_HOST or 0.0.0.0")
    sp.add_argument("--port", type=int, default=None, help="Port. Default: API_PORT or 8080")
    sp.set_defaults(func=cmd_serve)

    sp = sub.add_parser("export", help="Export one organization's flows and wait for the filtered report.")
    sp.add_argument("--org", default=None, help="Organization name (or ORG_NAME env var).")
    sp.add_argument("--start", required=True, help="Window start, ISO-8601 (inclusive).")
    sp.add_argument("--end", required=True, help="Window end, ISO-8601 (inclusive).")
    sp.add_argument("--columns", default="", help="Comma-separated columns for the filtered report.")
    sp.add_argument("--timeout", type=float, default=None, help="Seconds to wait for the filtered report.")
    sp.set_defaults(func=cmd_export)

    sp = sub.add_parser("project", help="Project columns of a local CSV file into another file.")
    sp.add_argument("--in", dest="input", required=True, help="Input CSV path.")
    sp.add_argument("--out", dest="output", required=True, help="Output CSV path.")
    sp.add_argument("--columns", required=True, help="Comma-separated columns to keep, in order.")
    sp.set_defaults(func=cmd_project)

    return p


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(level=args.log_level)
    args.func(args)


if __name__ == "__main__":
    main()

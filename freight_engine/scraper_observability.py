from __future__ import annotations

import json
import logging
import os
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine

from .schema_router import index_table, is_postgres

logger = logging.getLogger("freight-engine")

RUN_STATUSES = ("running", "success", "degraded", "failed")
_TERMINAL = {"success", "degraded", "failed"}
_TRUTHY = {"1", "true", "yes", "on"}


def dry_run_enabled() -> bool:
    return os.getenv("FREIGHT_DRY_RUN", "0").strip().lower() in _TRUTHY


def persist_mock_enabled() -> bool:
    return os.getenv("FREIGHT_PERSIST_MOCK", "0").strip().lower() in _TRUTHY


def new_run_id() -> str:
    return str(uuid.uuid4())


def log_event(event: str, **payload: Any) -> None:
    logger.info(
        "ACQUIRE_%s %s", event, json.dumps(payload, default=str, sort_keys=True)
    )


def _runs_table(engine: Engine) -> str:
    return index_table(engine, "acquisition_runs")


def _ts(engine: Engine, value: datetime | None):
    if value is None or is_postgres(engine):
        return value
    return value.isoformat()


def ensure_runs_table(engine: Engine) -> None:
    table = _runs_table(engine)
    if is_postgres(engine):
        ddl = f"""
        CREATE TABLE IF NOT EXISTS {table} (
          run_id text NOT NULL,
          family text NOT NULL,
          started_at timestamptz NOT NULL,
          finished_at timestamptz,
          status text NOT NULL,
          dry_run boolean NOT NULL DEFAULT false,
          source text,
          degraded boolean NOT NULL DEFAULT false,
          rows_upserted integer NOT NULL DEFAULT 0,
          rows_rejected integer NOT NULL DEFAULT 0,
          attempt_count integer NOT NULL DEFAULT 0,
          last_error text,
          details_json jsonb NOT NULL DEFAULT '{{}}'::jsonb,
          PRIMARY KEY (run_id, family)
        )
        """
    else:
        ddl = f"""
        CREATE TABLE IF NOT EXISTS {table} (
          run_id TEXT NOT NULL,
          family TEXT NOT NULL,
          started_at TEXT NOT NULL,
          finished_at TEXT,
          status TEXT NOT NULL,
          dry_run INTEGER NOT NULL DEFAULT 0,
          source TEXT,
          degraded INTEGER NOT NULL DEFAULT 0,
          rows_upserted INTEGER NOT NULL DEFAULT 0,
          rows_rejected INTEGER NOT NULL DEFAULT 0,
          attempt_count INTEGER NOT NULL DEFAULT 0,
          last_error TEXT,
          details_json TEXT NOT NULL DEFAULT '{{}}',
          PRIMARY KEY (run_id, family)
        )
        """
    with engine.begin() as conn:
        if is_postgres(engine):
            schema = table.split(".", 1)[0]
            conn.execute(sql_text(f"CREATE SCHEMA IF NOT EXISTS {schema}"))
        conn.execute(sql_text(ddl))


def upsert_run(
    engine: Engine,
    *,
    run_id: str,
    family: str,
    status: str,
    started_at: datetime,
    dry_run: bool,
    source: str | None = None,
    degraded: bool = False,
    rows_upserted: int = 0,
    rows_rejected: int = 0,
    attempt_count: int = 0,
    last_error: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    if status not in RUN_STATUSES:
        raise ValueError(f"unknown run status: {status}")
    ensure_runs_table(engine)
    table = _runs_table(engine)
    details_param = (
        "CAST(:details AS jsonb)" if is_postgres(engine) else ":details"
    )
    finished_at = datetime.now(timezone.utc) if status in _TERMINAL else None
    with engine.begin() as conn:
        conn.execute(
            sql_text(
                f"""
                INSERT INTO {table}
                (run_id, family, started_at, finished_at, status, dry_run, source, degraded,
                 rows_upserted, rows_rejected, attempt_count, last_error, details_json)
                VALUES (:run_id, :family, :started_at, :finished_at, :status, :dry_run, :source,
                        :degraded, :rows_upserted, :rows_rejected, :attempt_count, :last_error,
                        {details_param})
                ON CONFLICT (run_id, family) DO UPDATE SET
                  finished_at = excluded.finished_at,
                  status = excluded.status,
                  dry_run = excluded.dry_run,
                  source = excluded.source,
                  degraded = excluded.degraded,
                  rows_upserted = excluded.rows_upserted,
                  rows_rejected = excluded.rows_rejected,
                  attempt_count = excluded.attempt_count,
                  last_error = excluded.last_error,
                  details_json = excluded.details_json
                """
            ),
            {
                "run_id": run_id,
                "family": family,
                "started_at": _ts(engine, started_at),
                "finished_at": _ts(engine, finished_at),
                "status": status,
                "dry_run": dry_run,
                "source": source,
                "degraded": degraded,
                "rows_upserted": rows_upserted,
                "rows_rejected": rows_rejected,
                "attempt_count": attempt_count,
                "last_error": last_error,
                "details": json.dumps(details or {}, default=str, sort_keys=True),
            },
        )


def latest_status(engine: Engine) -> list[dict[str, Any]]:
    """Most recent run per family, newest first."""
    ensure_runs_table(engine)
    table = _runs_table(engine)
    with engine.begin() as conn:
        rows = (
            conn.execute(
                sql_text(
                    f"""
                    SELECT r.family, r.run_id, r.started_at, r.finished_at, r.status,
                           r.dry_run, r.source, r.degraded, r.rows_upserted,
                           r.rows_rejected, r.attempt_count, r.last_error, r.details_json
                    FROM {table} r
                    WHERE r.started_at = (
                      SELECT max(x.started_at) FROM {table} x WHERE x.family = r.family
                    )
                    ORDER BY r.family
                    """
                )
            )
            .mappings()
            .all()
        )
    out: list[dict[str, Any]] = []
    for row in rows:
        data = dict(row)
        data["dry_run"] = bool(data["dry_run"])
        data["degraded"] = bool(data["degraded"])
        details = data.pop("details_json")
        data["details"] = json.loads(details) if isinstance(details, str) else details
        data["last_success"] = (
            data["finished_at"] if data["status"] == "success" else None
        )
        out.append(data)
    return out


class StepTimer:
    def __init__(self) -> None:
        self.started = time.perf_counter()

    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self.started) * 1000)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)

"""Idempotent persistence of index records, one flat table per family.

Rows are keyed by ``UNIQUE(route, index_date)``; a second write of the same
key overwrites every non-identity column.  Each ``upsert`` call is one
transaction: invalid records are skipped and counted, any database error
rolls the whole batch back.
"""
from __future__ import annotations

import logging
import math
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .errors import PersistenceError
from .schema_router import index_table, is_postgres
from .types import UNITS, IndexRecord, UpsertResult

logger = logging.getLogger("freight-engine")

_COLUMNS = (
    "route, unit, weighting, previous_index, current_index, change, "
    "previous_date, index_date"
)


def _family_name(family) -> str:
    return getattr(family, "name", family)


def _as_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return float(value)
    return float(value)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def validate_record(record: IndexRecord) -> Optional[str]:
    """Return why *record* cannot be stored, or None when it is valid."""
    if not isinstance(record.route, str) or not record.route.strip():
        return "empty route"
    value = record.current_index
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return "non-numeric current_index"
    if not math.isfinite(float(value)):
        return "non-finite current_index"
    if not isinstance(record.current_date, date):
        return "missing current_date"
    return None


class IndexStore:
    """Explicit store handle; construct once per engine and inject where needed."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._ready: set[str] = set()

    # ── Schema ──────────────────────────────────────────────────────────────

    def table_for(self, family) -> str:
        return index_table(self.engine, f"freight_indices_{_family_name(family).lower()}")

    def _bind_date(self, value: Optional[date]):
        if value is None or is_postgres(self.engine):
            return value
        return value.isoformat()

    def ensure_table(self, family) -> str:
        table = self.table_for(family)
        if table in self._ready:
            return table
        units = ", ".join(f"'{u}'" for u in UNITS)
        if is_postgres(self.engine):
            ddl = f"""
            CREATE TABLE IF NOT EXISTS {table} (
              id bigserial PRIMARY KEY,
              route varchar(255) NOT NULL,
              unit text NOT NULL DEFAULT 'points' CHECK (unit IN ({units})),
              weighting numeric NOT NULL DEFAULT 0,
              previous_index numeric,
              current_index numeric NOT NULL,
              change numeric,
              previous_date date,
              index_date date NOT NULL,
              created_at timestamptz NOT NULL DEFAULT now(),
              updated_at timestamptz NOT NULL DEFAULT now(),
              UNIQUE (route, index_date)
            )
            """
        else:
            ddl = f"""
            CREATE TABLE IF NOT EXISTS {table} (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              route TEXT NOT NULL,
              unit TEXT NOT NULL DEFAULT 'points' CHECK (unit IN ({units})),
              weighting REAL NOT NULL DEFAULT 0,
              previous_index REAL,
              current_index REAL NOT NULL,
              change REAL,
              previous_date TEXT,
              index_date TEXT NOT NULL,
              created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
              updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
              UNIQUE (route, index_date)
            )
            """
        try:
            with self.engine.begin() as conn:
                if is_postgres(self.engine):
                    schema = table.split(".", 1)[0]
                    conn.execute(sql_text(f"CREATE SCHEMA IF NOT EXISTS {schema}"))
                conn.execute(sql_text(ddl))
        except SQLAlchemyError as exc:
            raise PersistenceError(f"could not create {table}: {exc}") from exc
        self._ready.add(table)
        return table

    # ── Writes ──────────────────────────────────────────────────────────────

    def _params(self, record: IndexRecord) -> dict:
        return {
            "route": record.route.strip(),
            "unit": record.unit,
            "weighting": float(record.weighting or 0.0),
            "previous_index": _as_float(record.previous_index),
            "current_index": float(record.current_index),
            "change": _as_float(record.change),
            "previous_date": self._bind_date(record.previous_date),
            "index_date": self._bind_date(record.current_date),
        }

    def upsert(self, family, records: Sequence[IndexRecord]) -> UpsertResult:
        name = _family_name(family)
        table = self.ensure_table(family)
        result = UpsertResult()
        valid: List[dict] = []
        for record in records:
            problem = validate_record(record)
            if problem:
                result.rejected += 1
                logger.warning("Skipping %s record %r: %s", name, record.route, problem)
                continue
            valid.append(self._params(record))

        if not valid:
            return result

        statement = sql_text(
            f"""
            INSERT INTO {table} ({_COLUMNS})
            VALUES (:route, :unit, :weighting, :previous_index, :current_index, :change,
                    :previous_date, :index_date)
            ON CONFLICT (route, index_date) DO UPDATE SET
              unit = excluded.unit,
              weighting = excluded.weighting,
              previous_index = excluded.previous_index,
              current_index = excluded.current_index,
              change = excluded.change,
              previous_date = excluded.previous_date,
              updated_at = CURRENT_TIMESTAMP
            """
        )
        try:
            with self.engine.begin() as conn:
                for params in valid:
                    conn.execute(statement, params)
        except SQLAlchemyError as exc:
            logger.error("Rolled back %s batch of %d records: %s", name, len(valid), exc)
            raise PersistenceError(f"{name} batch rolled back: {exc}") from exc

        result.succeeded = len(valid)
        logger.info(
            "Saved %d %s records (%d rejected)", result.succeeded, name, result.rejected
        )
        return result

    # ── Reads ───────────────────────────────────────────────────────────────

    def _row_to_record(self, row: Mapping[str, Any]) -> IndexRecord:
        return IndexRecord(
            route=row["route"],
            unit=row["unit"],
            weighting=_as_float(row["weighting"]) or 0.0,
            previous_index=_as_float(row["previous_index"]),
            current_index=_as_float(row["current_index"]),
            change=_as_float(row["change"]) or 0.0,
            previous_date=_as_date(row["previous_date"]),
            current_date=_as_date(row["index_date"]),
        )

    def _query(self, sql: str, params: dict) -> List[Mapping[str, Any]]:
        try:
            with self.engine.begin() as conn:
                return conn.execute(sql_text(sql), params).mappings().all()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"index read failed: {exc}") from exc

    def latest_by_route(self, family, candidates: Sequence[str] = ()) -> Optional[IndexRecord]:
        """Most recent record for the first candidate (substring, case-insensitive) with data.

        An empty candidate list returns the most recent record of any route.
        """
        table = self.ensure_table(family)
        patterns: Tuple[str, ...] = tuple(c for c in candidates if c) or ("",)
        for candidate in patterns:
            rows = self._query(
                f"""
                SELECT {_COLUMNS} FROM {table}
                WHERE lower(route) LIKE :pattern ESCAPE '\\'
                ORDER BY index_date DESC, id DESC
                LIMIT 1
                """,
                {"pattern": f"%{_escape_like(candidate.lower())}%"},
            )
            if rows:
                return self._row_to_record(rows[0])
        return None

    def history(self, family, route: str, limit: int = 10) -> List[IndexRecord]:
        """Recent readings of one exact route, newest first."""
        table = self.ensure_table(family)
        rows = self._query(
            f"""
            SELECT {_COLUMNS} FROM {table}
            WHERE route = :route
            ORDER BY index_date DESC
            LIMIT :limit
            """,
            {"route": route, "limit": int(limit)},
        )
        return [self._row_to_record(r) for r in rows]

    def count(self, family) -> int:
        table = self.ensure_table(family)
        rows = self._query(f"SELECT count(*) AS n FROM {table}", {})
        return int(rows[0]["n"])

from __future__ import annotations

import os
import re

from sqlalchemy.engine import Engine

_IDENT_RE = re.compile(r"^[a-z_][a-z0-9_]*$")


def index_schema() -> str:
    return os.getenv("FREIGHT_SCHEMA", "freight").strip() or "freight"


def is_postgres(engine: Engine) -> bool:
    return engine.dialect.name.startswith("postgres")


def _check_identifier(name: str) -> str:
    if not _IDENT_RE.match(name):
        raise ValueError(f"unsafe SQL identifier: {name!r}")
    return name


def index_table(engine: Engine, table: str) -> str:
    """Qualify *table* with the index schema on PostgreSQL; bare name elsewhere."""
    table = _check_identifier(table.lower())
    if is_postgres(engine):
        return f"{_check_identifier(index_schema())}.{table}"
    return table

import os

from sqlalchemy import create_engine, text as sql_text
from sqlalchemy.engine import URL, Engine, make_url

_DB_URL_ALIASES = (
    "DATABASE_URL",
    "DATABASE_PRIVATE_URL",
    "POSTGRES_URL",
    "POSTGRESQL_URL",
)

_TRUTHY = {"1", "true", "yes", "on"}


def _resolve_database_url() -> str:
    for key in _DB_URL_ALIASES:
        value = os.getenv(key)
        if value:
            return value
    sqlite_path = os.getenv("FREIGHT_SQLITE_PATH", "").strip()
    if sqlite_path:
        return f"sqlite+pysqlite:///{sqlite_path}"
    raise RuntimeError(
        "DATABASE_URL is not set (checked aliases: "
        + ", ".join(_DB_URL_ALIASES)
        + "; set FREIGHT_SQLITE_PATH for a local SQLite file)"
    )


def normalise_url(raw: str) -> URL:
    """Pin PostgreSQL URLs to the psycopg 3 driver and apply SSL settings from env."""
    url = make_url(raw)
    if url.drivername in ("postgresql", "postgres"):
        url = url.set(drivername="postgresql+psycopg")
    if not url.drivername.startswith("postgresql"):
        return url

    query = dict(url.query)
    explicit_sslmode = os.getenv("DB_SSLMODE", "").strip()
    require_ssl = os.getenv("REQUIRE_DB_SSL", "0").strip().lower() in _TRUTHY
    if "sslmode" not in query:
        if explicit_sslmode:
            query["sslmode"] = explicit_sslmode
        elif require_ssl:
            query["sslmode"] = "require"
    if query != dict(url.query):
        url = url.set(query=query)
    return url


def get_engine(database_url: str | None = None) -> Engine:
    url = normalise_url(database_url or _resolve_database_url())
    if url.drivername.startswith("sqlite"):
        return create_engine(url, future=True)
    return create_engine(url, pool_pre_ping=True, future=True)


def check_db_connectivity(engine: Engine) -> None:
    with engine.begin() as conn:
        conn.execute(sql_text("SELECT 1"))

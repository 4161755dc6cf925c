import os
import sys
from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))


@pytest.fixture()
def sqlite_engine():
    # one shared connection so every thread sees the same in-memory database
    return create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture()
def store(sqlite_engine):
    from freight_engine.store import IndexStore

    return IndexStore(sqlite_engine)


@pytest.fixture()
def as_of():
    return date(2024, 3, 15)


@pytest.fixture(autouse=True)
def _clean_freight_env(monkeypatch):
    for key in ("FREIGHT_DRY_RUN", "FREIGHT_PERSIST_MOCK", "FREIGHT_RETRY_MAX", "FREIGHT_RETRY_DELAY"):
        monkeypatch.delenv(key, raising=False)

import logging
from datetime import datetime, timezone

import pytest

from freight_engine.scraper_observability import (
    dry_run_enabled,
    latest_status,
    log_event,
    upsert_run,
)


def test_run_row_is_updated_in_place(sqlite_engine):
    started = datetime(2024, 3, 15, 6, 0, tzinfo=timezone.utc)
    upsert_run(sqlite_engine, run_id="r1", family="SCFI", status="running", started_at=started, dry_run=False)
    upsert_run(
        sqlite_engine,
        run_id="r1",
        family="SCFI",
        status="success",
        started_at=started,
        dry_run=False,
        source="sse",
        rows_upserted=6,
        details={"routes": ["SCFI Europe"]},
    )

    rows = latest_status(sqlite_engine)

    assert len(rows) == 1
    assert rows[0]["status"] == "success"
    assert rows[0]["source"] == "sse"
    assert rows[0]["details"] == {"routes": ["SCFI Europe"]}
    assert rows[0]["finished_at"] is not None
    assert rows[0]["last_success"] == rows[0]["finished_at"]


def test_latest_status_picks_newest_run_per_family(sqlite_engine):
    upsert_run(
        sqlite_engine,
        run_id="old",
        family="FBX",
        status="success",
        started_at=datetime(2024, 3, 1, tzinfo=timezone.utc),
        dry_run=False,
    )
    upsert_run(
        sqlite_engine,
        run_id="new",
        family="FBX",
        status="degraded",
        started_at=datetime(2024, 3, 8, tzinfo=timezone.utc),
        dry_run=False,
        degraded=True,
    )

    (row,) = latest_status(sqlite_engine)

    assert row["run_id"] == "new"
    assert row["degraded"] is True
    assert row["last_success"] is None


def test_unknown_run_status_rejected(sqlite_engine):
    with pytest.raises(ValueError):
        upsert_run(
            sqlite_engine,
            run_id="r",
            family="SCFI",
            status="exploded",
            started_at=datetime.now(timezone.utc),
            dry_run=False,
        )


def test_dry_run_flag_from_environment(monkeypatch):
    assert dry_run_enabled() is False
    monkeypatch.setenv("FREIGHT_DRY_RUN", "yes")
    assert dry_run_enabled() is True


def test_log_event_emits_json_payload(caplog):
    with caplog.at_level(logging.INFO, logger="freight-engine"):
        log_event("PARSE", family="SCFI", items_found=6)

    assert 'ACQUIRE_PARSE {"family": "SCFI", "items_found": 6}' in caplog.text

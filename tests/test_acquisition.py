import pytest

from freight_engine.acquisition import acquire, acquire_all, latest
from freight_engine.errors import ExhaustedSources, PersistenceError, TransientFetchError, UnknownFamilyError
from freight_engine.retry import RetryPolicy
from freight_engine.scraper_observability import latest_status

SSE_PAGE = """
<table class="scfitable">
  <tr><th>Route</th><th>Index</th><th>Change</th></tr>
  <tr><td>Europe (Base port)</td><td>2,020</td><td>35</td></tr>
  <tr><td>Mediterranean (Base port)</td><td>2,980</td><td>30</td></tr>
</table>
"""

NEWS_PAGE = "<article><p>The SCFI stood at 1,980.4 points, up 22.1 on the week.</p></article>"


def _fetcher(pages):
    calls = []

    def fetch(locator):
        calls.append(locator)
        for marker, response in pages.items():
            if marker in locator:
                if isinstance(response, Exception):
                    raise response
                return response
        raise TransientFetchError(locator, "connection refused")

    fetch.calls = calls
    return fetch


def _no_retry():
    return RetryPolicy(max_retries=0, fixed_delay=0, sleep=lambda _: None)


def _status_for(engine, family):
    return {row["family"]: row for row in latest_status(engine)}[family]


def test_primary_table_is_parsed_synthesized_and_stored(store, as_of):
    fetch = _fetcher({"sse.net.cn": (200, SSE_PAGE)})

    result = acquire(store, "SCFI", fetcher=fetch, retry_policy=_no_retry(), as_of=as_of)

    assert result.source == "sse"
    assert result.degraded is False
    assert [r.route for r in result.records] == [
        "SCFI Composite Index",
        "SCFI Europe (Base port)",
        "SCFI Mediterranean (Base port)",
    ]
    assert result.persisted.succeeded == 3
    assert store.count("SCFI") == 3
    assert latest(store, "scfi", ["mediterranean"]).current_index == 2980.0

    run = _status_for(store.engine, "SCFI")
    assert run["status"] == "success"
    assert run["rows_upserted"] == 3
    assert run["last_success"] is not None


def test_alternate_source_used_when_primary_returns_error_status(store, as_of):
    fetch = _fetcher({"sse.net.cn": (503, "busy"), "freightwaves": (200, NEWS_PAGE)})

    result = acquire(store, "SCFI", fetcher=fetch, retry_policy=_no_retry(), as_of=as_of)

    assert result.source == "freightwaves"
    assert len(result.records) == 1
    assert result.records[0].route == "SCFI Composite Index"
    assert result.records[0].current_index == 1980.4
    assert result.records[0].change == 22.1
    assert result.attempts == {"sse": 1, "freightwaves": 1}


def test_exhausted_sources_degrade_to_unpersisted_reference_data(store, as_of):
    fetch = _fetcher({})

    result = acquire(store, "SCFI", fetcher=fetch, retry_policy=_no_retry(), as_of=as_of)

    assert result.degraded is True
    assert result.source == "mock"
    assert result.records[0].route == "SCFI Composite Index"
    assert result.records[0].current_index == 1950.0
    assert len(result.records) == 6
    assert result.persisted is None
    assert "exhausted" in result.error
    assert store.count("SCFI") == 0
    assert _status_for(store.engine, "SCFI")["status"] == "degraded"


def test_reference_data_persisted_when_enabled(store, as_of, monkeypatch):
    monkeypatch.setenv("FREIGHT_PERSIST_MOCK", "1")

    result = acquire(store, "WCI", fetcher=_fetcher({}), retry_policy=_no_retry(), as_of=as_of)

    assert result.persisted.succeeded == len(result.records)
    assert store.count("WCI") == len(result.records)


def test_without_fallback_exhaustion_is_raised_and_recorded(store, as_of):
    with pytest.raises(ExhaustedSources):
        acquire(
            store, "CCFI", fetcher=_fetcher({}), retry_policy=_no_retry(), as_of=as_of, fallback=False
        )

    run = _status_for(store.engine, "CCFI")
    assert run["status"] == "failed"
    assert run["attempt_count"] == 2


def test_dry_run_parses_without_writing(store, as_of):
    fetch = _fetcher({"sse.net.cn": (200, SSE_PAGE)})

    result = acquire(store, "SCFI", fetcher=fetch, retry_policy=_no_retry(), as_of=as_of, dry_run=True)

    assert len(result.records) == 3
    assert result.persisted is None
    assert store.count("SCFI") == 0
    assert _status_for(store.engine, "SCFI")["dry_run"] is True


def test_storage_failure_still_returns_records(store, as_of, monkeypatch):
    def broken_upsert(family, records):
        raise PersistenceError("SCFI batch rolled back: disk full")

    monkeypatch.setattr(store, "upsert", broken_upsert)
    fetch = _fetcher({"sse.net.cn": (200, SSE_PAGE)})

    result = acquire(store, "SCFI", fetcher=fetch, retry_policy=_no_retry(), as_of=as_of)

    assert len(result.records) == 3
    assert "disk full" in result.error
    assert _status_for(store.engine, "SCFI")["status"] == "failed"


def test_bdi_single_value_has_no_synthetic_composite(store, as_of):
    page = '<p><span class="bdi-value">1,452</span><span class="bdi-change">+12</span></p>'
    fetch = _fetcher({"balticexchange": (200, page)})

    result = acquire(store, "BDI", fetcher=fetch, retry_policy=_no_retry(), as_of=as_of)

    assert [r.route for r in result.records] == ["Baltic Dry Index (BDI)"]
    assert result.records[0].previous_index == 1440.0


def test_acquire_all_keeps_going_after_an_exhausted_family(store, as_of):
    page = '<p><span class="bdi-value">1,452</span><span class="bdi-change">+12</span></p>'
    fetch = _fetcher({"balticexchange": (200, page)})

    results = acquire_all(
        store,
        ["SCFI", "BDI"],
        fetcher=fetch,
        retry_policy=_no_retry(),
        as_of=as_of,
        fallback=False,
    )

    assert list(results) == ["BDI"]
    statuses = {row["family"]: row for row in latest_status(store.engine)}
    assert statuses["SCFI"]["status"] == "failed"
    assert statuses["BDI"]["status"] == "success"
    assert statuses["SCFI"]["run_id"] == statuses["BDI"]["run_id"]


def test_unknown_family(store):
    with pytest.raises(UnknownFamilyError):
        acquire(store, "XYZ", fetcher=_fetcher({}))


def test_os_level_fetch_errors_are_retried_then_degrade(store, as_of):
    calls = []

    def resetting_fetch(locator):
        calls.append(locator)
        raise ConnectionError("connection reset by peer")

    policy = RetryPolicy(max_retries=2, fixed_delay=0, sleep=lambda _: None)

    result = acquire(store, "SCFI", fetcher=resetting_fetch, retry_policy=policy, as_of=as_of)

    # three attempts on each of the two sources
    assert len(calls) == 6
    assert result.degraded is True
    assert result.attempts == {"sse": 3, "freightwaves": 3}
    assert _status_for(store.engine, "SCFI")["status"] == "degraded"


def test_timeout_on_primary_falls_through_to_alternate(store, as_of):
    def fetch(locator):
        if "sse.net.cn" in locator:
            raise TimeoutError("read timed out")
        return 200, NEWS_PAGE

    result = acquire(store, "SCFI", fetcher=fetch, retry_policy=_no_retry(), as_of=as_of)

    assert result.source == "freightwaves"
    assert result.degraded is False


def test_unexpected_error_closes_run_as_failed(store, as_of):
    def broken_fetch(locator):
        raise KeyError("fetcher misconfigured")

    with pytest.raises(KeyError):
        acquire(store, "FBX", fetcher=broken_fetch, retry_policy=_no_retry(), as_of=as_of)

    run = _status_for(store.engine, "FBX")
    assert run["status"] == "failed"
    assert "KeyError" in run["last_error"]
    assert run["finished_at"] is not None

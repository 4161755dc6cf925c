"""Acquire one index family end to end.

Sources -> retries -> extraction -> composite synthesis -> store.  The
caller always gets records back: exhausted sources degrade to reference
data and storage failures are reported on the result, not raised.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from .composite import CompositeSynthesizer
from .errors import ExhaustedSources, PersistenceError, TransientFetchError
from .extractors import extractor_for
from .families import FAMILY_NAMES, IndexFamily, get_family
from .fetch import Fetcher, HttpFetcher
from .mock_fallback import MockFallbackGenerator
from .retry import RetryPolicy
from .scraper_observability import (
    dry_run_enabled,
    log_event,
    new_run_id,
    persist_mock_enabled,
    upsert_run,
    utc_now,
)
from .source_chain import SourceChain
from .store import IndexStore
from .types import IndexRecord, SourceDescriptor, UpsertResult

logger = logging.getLogger("freight-engine")

MOCK_SOURCE = "mock"


@dataclass
class AcquisitionResult:
    family: str
    records: List[IndexRecord]
    source: str
    degraded: bool = False
    persisted: Optional[UpsertResult] = None
    error: Optional[str] = None
    attempts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "family": self.family,
            "source": self.source,
            "degraded": self.degraded,
            "persisted": self.persisted.to_dict() if self.persisted else None,
            "error": self.error,
            "attempts": dict(self.attempts),
            "records": [r.to_dict() for r in self.records],
        }


def _resolve_family(family) -> IndexFamily:
    return family if isinstance(family, IndexFamily) else get_family(family)


def source_attempt(family: IndexFamily, fetcher: Fetcher, as_of: date):
    """One fetch+extract attempt against a single source."""

    def attempt(source: SourceDescriptor) -> List[IndexRecord]:
        try:
            status, document = fetcher(source.locator)
        except OSError as exc:
            raise TransientFetchError(source.locator, f"{type(exc).__name__}: {exc}") from exc
        if not 200 <= int(status) < 300:
            raise TransientFetchError(source.locator, f"HTTP {status}", status=status)
        records = extractor_for(source).extract(document, family=family, as_of=as_of)
        log_event(
            "PARSE",
            family=family.name,
            source=source.name,
            strategy=source.extraction_strategy,
            items_found=len(records),
        )
        return records

    return attempt


def _record_run(store: IndexStore, **kwargs) -> None:
    # run bookkeeping must never break acquisition
    try:
        upsert_run(store.engine, **kwargs)
    except SQLAlchemyError as exc:
        logger.warning("Could not record %s run: %s", kwargs.get("family"), exc)


def acquire(
    store: IndexStore,
    family,
    *,
    fetcher: Fetcher | None = None,
    retry_policy: RetryPolicy | None = None,
    as_of: date | None = None,
    fallback: bool = True,
    dry_run: bool | None = None,
    run_id: str | None = None,
) -> AcquisitionResult:
    fam = _resolve_family(family)
    as_of = as_of or date.today()
    dry_run = dry_run_enabled() if dry_run is None else dry_run
    run_id = run_id or new_run_id()
    started_at = utc_now()

    own_fetcher = fetcher is None
    fetch = fetcher or HttpFetcher()

    log_event("START", family=fam.name, run_id=run_id, dry_run=dry_run, as_of=as_of)
    _record_run(
        store,
        run_id=run_id,
        family=fam.name,
        status="running",
        started_at=started_at,
        dry_run=dry_run,
    )

    chain = SourceChain(
        fam.name,
        fam.ordered_sources(),
        source_attempt(fam, fetch, as_of),
        retry_policy or RetryPolicy(),
    )

    def record_failure(exc: BaseException) -> None:
        _record_run(
            store,
            run_id=run_id,
            family=fam.name,
            status="failed",
            started_at=started_at,
            dry_run=dry_run,
            attempt_count=sum(chain.attempts.values()),
            last_error=f"{type(exc).__name__}: {exc}",
        )
        log_event("END", family=fam.name, run_id=run_id, success=False)

    error: Optional[str] = None
    try:
        records = chain.run()
        source = chain.winning_source.name
        degraded = False
    except ExhaustedSources as exc:
        error = str(exc)
        if not fallback:
            record_failure(exc)
            raise
        logger.warning("%s; falling back to reference data", exc)
        records = MockFallbackGenerator().generate(fam, as_of)
        source = MOCK_SOURCE
        degraded = True
    except Exception as exc:
        # unexpected parser or collaborator bug: close the run row, then propagate
        record_failure(exc)
        raise
    finally:
        if own_fetcher:
            fetch.close()

    if not degraded and fam.synthesize_composite:
        records = CompositeSynthesizer.for_family(fam).synthesize(records)

    result = AcquisitionResult(
        family=fam.name,
        records=records,
        source=source,
        degraded=degraded,
        error=error,
        attempts=dict(chain.attempts),
    )

    if dry_run:
        log_event("WRITE", family=fam.name, run_id=run_id, rows=len(records), mode="dry-run")
    elif degraded and not persist_mock_enabled():
        logger.info("Not persisting mock %s records", fam.name)
    else:
        try:
            result.persisted = store.upsert(fam, records)
            log_event(
                "WRITE",
                family=fam.name,
                run_id=run_id,
                table=store.table_for(fam),
                rows_upserted=result.persisted.succeeded,
                rows_rejected=result.persisted.rejected,
            )
        except PersistenceError as exc:
            result.error = str(exc)
            logger.error("Keeping %d unsaved %s records: %s", len(records), fam.name, exc)

    status = "degraded" if degraded else ("failed" if result.error else "success")
    _record_run(
        store,
        run_id=run_id,
        family=fam.name,
        status=status,
        started_at=started_at,
        dry_run=dry_run,
        source=source,
        degraded=degraded,
        rows_upserted=result.persisted.succeeded if result.persisted else 0,
        rows_rejected=result.persisted.rejected if result.persisted else 0,
        attempt_count=sum(chain.attempts.values()),
        last_error=result.error,
        details={"routes": [r.route for r in records]},
    )
    log_event(
        "END",
        family=fam.name,
        run_id=run_id,
        success=status != "failed",
        source=source,
        degraded=degraded,
        records=len(records),
    )
    return result


def acquire_all(
    store: IndexStore, families: Iterable[str] | None = None, **kwargs
) -> Dict[str, AcquisitionResult]:
    """Acquire each family in turn; an exhausted family never stops the others."""
    run_id = kwargs.pop("run_id", None) or new_run_id()
    results: Dict[str, AcquisitionResult] = {}
    for name in families or FAMILY_NAMES:
        try:
            results[name] = acquire(store, name, run_id=run_id, **kwargs)
        except ExhaustedSources as exc:
            logger.error("Skipping %s: %s", name, exc)
    return results


def latest(store: IndexStore, family, route_candidates: Sequence[str] = ()) -> Optional[IndexRecord]:
    return store.latest_by_route(_resolve_family(family), route_candidates)

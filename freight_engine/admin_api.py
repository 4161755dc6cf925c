import logging
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query

from .db import get_engine
from .errors import ExhaustedSources, UnknownFamilyError

logger = logging.getLogger("freight-engine")

app = FastAPI(title="Freight Index Engine API", version="1.0")


@app.get("/health")
def health():
    return {"ok": True, "version": "1.0"}


@app.post("/acquire/{family}")
def acquire_family(family: str, dry_run: bool = False, fallback: bool = True):
    from .acquisition import acquire
    from .store import IndexStore

    store = IndexStore(get_engine())
    try:
        result = acquire(store, family, dry_run=dry_run, fallback=fallback)
    except UnknownFamilyError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ExhaustedSources as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return {"ok": True, "result": result.to_dict()}


@app.get("/indices/{family}/latest")
def latest_index(family: str, route: Optional[List[str]] = Query(default=None)):
    from .acquisition import latest
    from .store import IndexStore

    try:
        record = latest(IndexStore(get_engine()), family, route or [])
    except UnknownFamilyError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    if record is None:
        raise HTTPException(status_code=404, detail=f"no {family.upper()} readings stored")
    return {"ok": True, "record": record.to_dict()}


@app.get("/estimate")
def estimate(
    origin: str,
    destination: str,
    container: str = "40DV",
    weight: float = 20000.0,
):
    from .fusion import RateFusionEngine
    from .store import IndexStore

    fusion = RateFusionEngine(IndexStore(get_engine()))
    result = fusion.estimate_rate(origin, destination, container, weight)
    return {"ok": True, "estimate": result.to_dict()}


@app.get("/runs/status")
def runs_status():
    from .scraper_observability import latest_status

    return {"ok": True, "runs": latest_status(get_engine())}

import argparse
import json
import logging
import os
from datetime import date

from .db import check_db_connectivity, get_engine
from .logging_setup import setup_logging

logger = logging.getLogger("freight-engine")


def _csv(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [s.strip() for s in raw.split(",") if s.strip()]


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, default=str, sort_keys=True))


def cmd_init(engine):
    from .families import FAMILY_NAMES
    from .scraper_observability import ensure_runs_table
    from .store import IndexStore

    check_db_connectivity(engine)
    store = IndexStore(engine)
    for name in FAMILY_NAMES:
        logger.info("Ensuring %s", store.ensure_table(name))
    ensure_runs_table(engine)


def cmd_acquire(engine, families: list[str], as_of: date | None, dry_run: bool, fallback: bool):
    from .acquisition import acquire_all
    from .store import IndexStore

    results = acquire_all(
        IndexStore(engine),
        families or None,
        as_of=as_of,
        dry_run=dry_run or None,
        fallback=fallback,
    )
    return {name: res.to_dict() for name, res in results.items()}


def cmd_latest(engine, family: str, routes: list[str]):
    from .acquisition import latest
    from .store import IndexStore

    record = latest(IndexStore(engine), family, routes)
    return record.to_dict() if record else None


def cmd_estimate(engine, origin: str, destination: str, container: str, weight: float):
    from .fusion import RateFusionEngine
    from .store import IndexStore

    fusion = RateFusionEngine(IndexStore(engine))
    return fusion.estimate_rate(origin, destination, container, weight).to_dict()


def cmd_status(engine):
    from .scraper_observability import latest_status

    return latest_status(engine)


def parse_args(argv=None):
    ap = argparse.ArgumentParser(prog="freight-engine")
    ap.add_argument(
        "command",
        choices=["init", "acquire", "latest", "estimate", "status"],
    )
    ap.add_argument(
        "--family",
        "--families",
        dest="families",
        type=str,
        default=os.getenv("FREIGHT_FAMILIES", ""),
        help="Comma-separated index families (default: all)",
    )
    ap.add_argument(
        "--routes",
        type=str,
        default="",
        help="Comma-separated route keywords in priority order for `latest`",
    )
    ap.add_argument("--as-of", type=date.fromisoformat, default=None)
    ap.add_argument(
        "--dry-run",
        action="store_true",
        help="Fetch and parse but do not write index rows",
    )
    ap.add_argument(
        "--no-fallback",
        action="store_true",
        help="Fail instead of serving reference data when every source is down",
    )
    ap.add_argument("--origin", type=str, default="Asia")
    ap.add_argument("--destination", type=str, default="Europe")
    ap.add_argument("--container", type=str, default="40DV")
    ap.add_argument("--weight", type=float, default=20000.0)
    return ap.parse_args(argv)


def main(argv=None):
    setup_logging()
    args = parse_args(argv)
    engine = get_engine()
    families = [f.upper() for f in _csv(args.families)]

    if args.command == "init":
        cmd_init(engine)
    elif args.command == "acquire":
        _print_json(
            cmd_acquire(
                engine,
                families,
                as_of=args.as_of,
                dry_run=args.dry_run,
                fallback=not args.no_fallback,
            )
        )
    elif args.command == "latest":
        if len(families) != 1:
            raise SystemExit("latest needs exactly one --family")
        _print_json(cmd_latest(engine, families[0], _csv(args.routes)))
    elif args.command == "estimate":
        _print_json(
            cmd_estimate(engine, args.origin, args.destination, args.container, args.weight)
        )
    elif args.command == "status":
        _print_json(cmd_status(engine))


if __name__ == "__main__":
    main()

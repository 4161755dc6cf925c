from __future__ import annotations

import logging
import os
from typing import Callable, Tuple

import requests

from .errors import TransientFetchError
from .scraper_observability import StepTimer, log_event

logger = logging.getLogger("freight-engine")

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}

# fetch(locator) -> (status, raw document)
Fetcher = Callable[[str], Tuple[int, str]]


def fetch_timeout() -> float:
    return float(os.getenv("FREIGHT_FETCH_TIMEOUT", "20"))


class HttpFetcher:
    """Blocking HTTP fetch over a shared ``requests.Session``.

    Network failures are raised as :class:`TransientFetchError`.  Any HTTP
    status is returned to the caller, which decides what counts as success.
    """

    def __init__(self, session: requests.Session | None = None, timeout: float | None = None):
        self.session = session or requests.Session()
        self.session.headers.update(DEFAULT_HEADERS)
        self.timeout = fetch_timeout() if timeout is None else timeout

    def __call__(self, locator: str) -> Tuple[int, str]:
        timer = StepTimer()
        try:
            response = self.session.get(locator, timeout=self.timeout)
        except requests.RequestException as exc:
            log_event("FETCH", url=locator, status=None, latency_ms=timer.elapsed_ms())
            raise TransientFetchError(locator, f"{type(exc).__name__}: {exc}") from exc
        log_event(
            "FETCH",
            url=locator,
            status=response.status_code,
            bytes=len(response.content),
            latency_ms=timer.elapsed_ms(),
        )
        return response.status_code, response.text

    def close(self) -> None:
        self.session.close()

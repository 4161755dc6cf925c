"""Bounded retry with a constant delay between attempts."""
from __future__ import annotations

import logging
import os
import time
from typing import Callable, Generic, List, Tuple, Type, TypeVar

from .errors import ExhaustedRetries, NoDataFound, TransientFetchError
from .types import FetchAttemptOutcome

logger = logging.getLogger("freight-engine")

T = TypeVar("T")

RETRYABLE_ERRORS: Tuple[Type[BaseException], ...] = (TransientFetchError, NoDataFound)


def _non_empty(result) -> bool:
    return bool(result)


class RetryPolicy(Generic[T]):
    def __init__(
        self,
        max_retries: int | None = None,
        fixed_delay: float | None = None,
        success_predicate: Callable[[T], bool] = _non_empty,
        *,
        retry_on: Tuple[Type[BaseException], ...] = RETRYABLE_ERRORS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_retries is None:
            max_retries = int(os.getenv("FREIGHT_RETRY_MAX", "3"))
        if fixed_delay is None:
            fixed_delay = float(os.getenv("FREIGHT_RETRY_DELAY", "2.0"))
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.fixed_delay = max(0.0, fixed_delay)
        self.success_predicate = success_predicate
        self.retry_on = retry_on
        self.sleep = sleep
        self.history: List[FetchAttemptOutcome] = []

    def attempt(self, op: Callable[[], T], *, label: str = "operation") -> T:
        """Run *op* until it yields an accepted result or the attempts run out.

        Raises :class:`ExhaustedRetries` carrying the last failure after
        ``max_retries + 1`` unsuccessful attempts.  Errors outside
        ``retry_on`` propagate immediately.
        """
        self.history = []
        last_error: BaseException | None = None
        total = self.max_retries + 1
        for attempt_no in range(1, total + 1):
            try:
                result = op()
            except self.retry_on as exc:
                last_error = exc
                self.history.append(FetchAttemptOutcome(success=False, error=exc))
                logger.warning(
                    "%s attempt %d/%d failed: %s", label, attempt_no, total, exc
                )
            else:
                if self.success_predicate(result):
                    records = list(result) if isinstance(result, (list, tuple)) else []
                    self.history.append(FetchAttemptOutcome(success=True, records=records))
                    return result
                last_error = NoDataFound(f"{label} returned no usable result")
                self.history.append(FetchAttemptOutcome(success=False, error=last_error))
                logger.warning(
                    "%s attempt %d/%d returned nothing", label, attempt_no, total
                )
            if attempt_no < total and self.fixed_delay:
                self.sleep(self.fixed_delay)
        raise ExhaustedRetries(last_error, attempts=total)

"""First-successful-source-wins acquisition over an ordered source list.

The chain is an explicit state machine::

    PENDING -> TRYING_SOURCE(0) -> TRYING_SOURCE(1) -> ... -> EXHAUSTED
                     |                   |
                     +-------------------+--> SUCCEEDED(records)

Sources are tried strictly one after another in priority order, each
through a :class:`RetryPolicy`.  The first non-empty record list ends the
chain; no later source is contacted.
"""
from __future__ import annotations

import enum
import logging
from typing import Callable, Dict, List, Optional, Sequence

from .errors import ExhaustedRetries, ExhaustedSources
from .retry import RetryPolicy
from .types import IndexRecord, SourceDescriptor

logger = logging.getLogger("freight-engine")

AttemptSource = Callable[[SourceDescriptor], List[IndexRecord]]


class ChainState(enum.Enum):
    PENDING = "pending"
    TRYING_SOURCE = "trying_source"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


class SourceChain:
    def __init__(
        self,
        family: str,
        sources: Sequence[SourceDescriptor],
        attempt_source: AttemptSource,
        retry_policy: RetryPolicy | None = None,
    ):
        if not sources:
            raise ValueError(f"{family}: a source chain needs at least one source")
        self.family = family
        self.sources: List[SourceDescriptor] = sorted(sources, key=lambda s: s.priority)
        self.attempt_source = attempt_source
        self.retry_policy = retry_policy or RetryPolicy()
        self.state = ChainState.PENDING
        self.index: Optional[int] = None
        self.records: List[IndexRecord] = []
        self.errors: Dict[str, BaseException] = {}
        self.attempts: Dict[str, int] = {}

    @property
    def done(self) -> bool:
        return self.state in (ChainState.SUCCEEDED, ChainState.EXHAUSTED)

    @property
    def current_source(self) -> Optional[SourceDescriptor]:
        if self.state is not ChainState.TRYING_SOURCE or self.index is None:
            return None
        return self.sources[self.index]

    @property
    def winning_source(self) -> Optional[SourceDescriptor]:
        if self.state is not ChainState.SUCCEEDED or self.index is None:
            return None
        return self.sources[self.index]

    def step(self) -> ChainState:
        """Advance one transition and return the new state."""
        if self.state is ChainState.PENDING:
            self.index = 0
            self.state = ChainState.TRYING_SOURCE
            return self.state
        if self.done:
            return self.state

        source = self.sources[self.index]
        label = f"{self.family}/{source.name}"
        try:
            records = self.retry_policy.attempt(
                lambda: self.attempt_source(source), label=label
            )
        except ExhaustedRetries as exc:
            self.errors[source.name] = exc.last_error or exc
            self.attempts[source.name] = exc.attempts
            logger.warning("%s exhausted after %d attempts", label, exc.attempts)
            if self.index + 1 < len(self.sources):
                self.index += 1
            else:
                self.state = ChainState.EXHAUSTED
            return self.state

        self.attempts[source.name] = len(self.retry_policy.history)
        self.records = list(records)
        self.state = ChainState.SUCCEEDED
        logger.info("%s succeeded with %d records", label, len(self.records))
        return self.state

    def run(self) -> List[IndexRecord]:
        """Drive the chain to a terminal state.

        Returns the winning source's records or raises
        :class:`ExhaustedSources` with every source's last error.
        """
        while not self.done:
            self.step()
        if self.state is ChainState.EXHAUSTED:
            raise ExhaustedSources(self.family, self.errors)
        return self.records

from __future__ import annotations


class FreightEngineError(RuntimeError):
    """Base class for all freight engine failures."""


class TransientFetchError(FreightEngineError):
    """Network failure or non-success status while fetching a document."""

    def __init__(self, locator: str, reason: str, status: int | None = None):
        self.locator = locator
        self.reason = reason
        self.status = status
        super().__init__(f"fetch failed for {locator}: {reason}")


class NoDataFound(FreightEngineError):
    """A document was fetched but no index figure could be located."""


class ExhaustedRetries(FreightEngineError):
    """Every attempt of a retry policy failed."""

    def __init__(self, last_error: BaseException | None, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"gave up after {attempts} attempts: {last_error}")


class ExhaustedSources(FreightEngineError):
    """Every configured source of an index family failed."""

    def __init__(self, family: str, errors: dict[str, BaseException] | None = None):
        self.family = family
        self.errors = dict(errors or {})
        tried = ", ".join(self.errors) or "none"
        super().__init__(f"all sources exhausted for {family} (tried: {tried})")


class PersistenceError(FreightEngineError):
    """A batch write or read against the index store failed and was rolled back."""


class NoSourceData(FreightEngineError):
    """Rate fusion had no family reading to combine."""


class UnknownFamilyError(FreightEngineError):
    """Requested index family is not registered."""

    def __init__(self, family: str):
        self.family = family
        super().__init__(f"unknown index family: {family}")

"""Error taxonomy for the tax determination engine.

Every error carries a ``kind`` that the API layer maps to an HTTP status:
``not_found`` -> 404, ``bad_request`` -> 400, ``internal_error`` -> 500.

A return with no income records is not an error: it computes to a zero
snapshot.
"""

from typing import Any


class TaxEngineError(Exception):
    """Base class for all engine errors."""

    kind = "internal_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Structured error body: kind, message and any details."""
        body: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ConfigurationMissing(TaxEngineError):
    """No bracket or deduction table for the requested year/status/jurisdiction."""

    kind = "not_found"


class InvalidConfiguration(TaxEngineError):
    """A bracket table does not partition [0, inf)."""


class ReturnNotFound(TaxEngineError):
    kind = "not_found"


class NoTransactions(TaxEngineError):
    """Capital-gains schedule requested with no transaction entries."""

    kind = "bad_request"


class InvalidTransaction(TaxEngineError):
    """A capital-gain entry could not be used (e.g. non-numeric proceeds)."""

    kind = "bad_request"


class PersistenceFailure(TaxEngineError):
    """Database read or write failed; the calculation is aborted."""

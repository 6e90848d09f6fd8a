"""Error taxonomy shared by the record store, aggregate reader and API."""
from typing import Optional


class CensusError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(CensusError):
    """Malformed or missing input, detected before any write."""
    status_code = 400


class NotFoundError(CensusError):
    """A referenced entity does not exist."""
    status_code = 404


class ConflictError(CensusError):
    """Foreign-key or uniqueness violation reported by the database."""
    status_code = 400


class TransactionError(CensusError):
    """A compound write failed and was rolled back."""
    status_code = 500


class DatabaseConnectionError(CensusError):
    """The pool could not hand out a connection or the database is unreachable."""
    status_code = 503

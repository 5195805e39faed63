"""
Error taxonomy for the exchange-rate subsystem.

"No rate available" is not an error: lookups return None for that case.
"""
from datetime import date
from typing import Optional


class FinanceError(Exception):
    """Base class for all errors raised by the finance backend"""


class FetchError(FinanceError):
    """
    Transport or HTTP failure while reaching the rate feed.
    Transient: the sync job retries it with backoff.
    """

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ParseError(FinanceError):
    """A single malformed feed record. Logged and skipped, never retried."""

    def __init__(self, message: str, rate_date: Optional[date] = None, currency: Optional[str] = None):
        super().__init__(message)
        self.rate_date = rate_date
        self.currency = currency


class StorageError(FinanceError):
    """Persistence failure on read or write"""


class InvalidInput(FinanceError, ValueError):
    """Caller error: negative amount, empty currency code"""

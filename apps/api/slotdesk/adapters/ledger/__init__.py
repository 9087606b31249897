"""Job ledger adapters."""

from .base import JobLedger, LedgerError, LedgerRejectedError, LedgerUnavailableError
from .http_ledger import HttpJobLedger

__all__ = [
    "HttpJobLedger",
    "JobLedger",
    "LedgerError",
    "LedgerRejectedError",
    "LedgerUnavailableError",
]

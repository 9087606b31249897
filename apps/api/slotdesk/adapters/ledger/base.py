"""Job ledger interfaces."""

from abc import ABC, abstractmethod
from typing import Any

from slotdesk.schemas.job import Job


class LedgerError(Exception):
    """Base class for job ledger failures."""


class LedgerUnavailableError(LedgerError):
    """Ledger unreachable, timed out or answered with a transport-level error.

    The mutation may or may not have been applied.
    """


class LedgerRejectedError(LedgerError):
    """Ledger answered and refused the mutation."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        self.code = code
        super().__init__(message)


class JobLedger(ABC):
    """Remote store that durably holds job rows and applies lifecycle mutations."""

    @abstractmethod
    def list_jobs(
        self,
        *,
        status: str | None = None,
        assigned_to: str | None = None,
        q: str = "",
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Job]:
        """Return jobs matching the filters. ``assigned_to=""`` selects unassigned jobs."""

    @abstractmethod
    def get_job(self, job_id: str) -> Job | None:
        """Return one job including soft-deleted rows, or ``None`` when unknown."""

    @abstractmethod
    def apply(self, action: str, payload: dict[str, Any]) -> Job | None:
        """Apply a mutation and return the resulting job when the ledger reports it."""

    @abstractmethod
    def ping(self) -> bool:
        """Cheap liveness check; never raises."""


__all__ = ["JobLedger", "LedgerError", "LedgerRejectedError", "LedgerUnavailableError"]

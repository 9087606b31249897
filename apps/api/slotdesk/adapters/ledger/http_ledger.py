"""HTTP job ledger adapter (spreadsheet-backed web app speaking JSON)."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from slotdesk.adapters.ledger.base import JobLedger, LedgerRejectedError, LedgerUnavailableError
from slotdesk.schemas.job import Job

logger = logging.getLogger(__name__)


class HttpJobLedger(JobLedger):
    """Talks to the ledger web app.

    Reads are ``GET <base>?secret=...&<filters>``; writes are
    ``POST <base>`` with ``{"secret", "action", ...}``. Every call carries a
    timeout; any transport failure or non-2xx answer is reported as
    ``LedgerUnavailableError`` because the outcome of the call is unknown.
    """

    def __init__(
        self,
        *,
        base_url: str,
        secret: str,
        timeout_seconds: float,
        client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url
        self._secret = secret
        self._client = client or httpx.Client(timeout=timeout_seconds)
        self._timeout = timeout_seconds

    def list_jobs(
        self,
        *,
        status: str | None = None,
        assigned_to: str | None = None,
        q: str = "",
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Job]:
        params: dict[str, Any] = {"status": status, "assigned_to": assigned_to, "q": q or None, "limit": limit}
        if offset:
            params["offset"] = offset
        data = self._get(params)
        return self._parse_jobs(data.get("jobs"))

    def get_job(self, job_id: str) -> Job | None:
        data = self._get({"action": "get_jobs", "booking_id": job_id})
        jobs = self._parse_jobs(data.get("jobs"))
        return next((job for job in jobs if job.id == job_id), None)

    def apply(self, action: str, payload: dict[str, Any]) -> Job | None:
        body = {"secret": self._secret, "action": action, **payload}
        data = self._request("POST", json=body)
        if data.get("ok") is False:
            raise LedgerRejectedError(str(data.get("error") or f"Ledger rejected {action}"), code=data.get("code"))
        job_row = data.get("job")
        if isinstance(job_row, dict):
            jobs = self._parse_jobs([job_row])
            return jobs[0] if jobs else None
        return None

    def ping(self) -> bool:
        try:
            self._get({"action": "health"})
        except LedgerUnavailableError:
            return False
        return True

    def close(self) -> None:
        self._client.close()

    def _get(self, params: dict[str, Any]) -> dict[str, Any]:
        query = {"secret": self._secret}
        query.update({key: str(value) for key, value in params.items() if value is not None})
        return self._request("GET", params=query)

    def _request(self, method: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self._client.request(method, self._base_url, timeout=self._timeout, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("ledger.timeout method=%s", method)
            raise LedgerUnavailableError("Job ledger timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("ledger.transport_failed method=%s reason=%s", method, type(exc).__name__)
            raise LedgerUnavailableError("Job ledger unreachable") from exc

        if response.status_code >= 400:
            logger.warning("ledger.http_error method=%s status=%s", method, response.status_code)
            raise LedgerUnavailableError(f"Job ledger answered {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise LedgerUnavailableError("Job ledger returned a non-JSON body") from exc
        if not isinstance(data, dict):
            raise LedgerUnavailableError("Job ledger returned an unexpected body")
        return data

    @staticmethod
    def _parse_jobs(rows: Any) -> list[Job]:
        if not isinstance(rows, list):
            return []
        jobs: list[Job] = []
        for row in rows:
            try:
                jobs.append(Job.model_validate(row))
            except ValidationError:
                logger.warning("ledger.row_skipped reason=invalid_job_row")
        return jobs


__all__ = ["HttpJobLedger"]

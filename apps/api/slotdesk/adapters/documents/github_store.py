"""GitHub contents API document store adapter."""

from __future__ import annotations

import base64
import json
import logging
from typing import Any
from urllib.parse import quote

import httpx

from slotdesk.adapters.documents.base import (
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreUnavailableError,
    VersionConflictError,
    VersionedDocument,
)

logger = logging.getLogger(__name__)

# GitHub answers a stale or missing blob sha with 409 or 422.
_CONFLICT_STATUSES = frozenset({409, 422})


class GitHubContentsStore(DocumentStore):
    """Stores JSON files in a repository branch; the blob sha is the version token."""

    def __init__(
        self,
        *,
        token: str,
        owner: str,
        repo: str,
        branch: str,
        timeout_seconds: float,
        api_url: str = "https://api.github.com",
        client: httpx.Client | None = None,
    ) -> None:
        self._owner = owner
        self._repo = repo
        self._branch = branch
        self._client = client or httpx.Client(
            base_url=api_url,
            timeout=timeout_seconds,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
        )

    def read(self, path: str) -> VersionedDocument:
        response = self._send("GET", path, params={"ref": self._branch})
        if response.status_code == 404:
            raise DocumentNotFoundError(path)
        self._raise_for_unavailable(response, path)

        data = response.json()
        try:
            raw = base64.b64decode(data.get("content", ""))
            document = json.loads(raw.decode("utf-8") or "null")
        except (ValueError, UnicodeDecodeError) as exc:
            raise DocumentStoreUnavailableError(f"Undecodable document at {path}") from exc
        return VersionedDocument(document=document, version=str(data["sha"]))

    def write(self, path: str, document: Any, *, expected_version: str | None, message: str) -> str:
        body = json.dumps(document, indent=2, ensure_ascii=False) + "\n"
        payload: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(body.encode("utf-8")).decode("ascii"),
            "branch": self._branch,
        }
        if expected_version is not None:
            payload["sha"] = expected_version

        response = self._send("PUT", path, json=payload)
        if response.status_code in _CONFLICT_STATUSES:
            logger.info("documents.write_conflict path=%s status=%s", path, response.status_code)
            raise VersionConflictError(path, expected_version=expected_version)
        if response.status_code == 404:
            raise DocumentNotFoundError(path)
        self._raise_for_unavailable(response, path)
        return str(response.json()["content"]["sha"])

    def close(self) -> None:
        self._client.close()

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"/repos/{self._owner}/{self._repo}/contents/{quote(path)}"
        try:
            return self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("documents.timeout method=%s path=%s", method, path)
            raise DocumentStoreUnavailableError(f"Timed out accessing {path}") from exc
        except httpx.HTTPError as exc:
            logger.warning("documents.transport_failed method=%s path=%s reason=%s", method, path, type(exc).__name__)
            raise DocumentStoreUnavailableError(f"Failed to reach document store for {path}") from exc

    @staticmethod
    def _raise_for_unavailable(response: httpx.Response, path: str) -> None:
        if response.status_code >= 400:
            logger.warning("documents.http_error path=%s status=%s", path, response.status_code)
            raise DocumentStoreUnavailableError(f"Document store answered {response.status_code} for {path}")


__all__ = ["GitHubContentsStore"]

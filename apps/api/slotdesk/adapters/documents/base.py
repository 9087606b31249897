"""Versioned document store interfaces."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class VersionedDocument:
    document: Any
    version: str


class DocumentStoreError(Exception):
    """Base class for document store failures."""


class DocumentNotFoundError(DocumentStoreError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Document not found: {path}")


class VersionConflictError(DocumentStoreError):
    """Write carried a version token that is no longer current."""

    def __init__(self, path: str, *, expected_version: str | None, current_version: str | None = None) -> None:
        self.path = path
        self.expected_version = expected_version
        self.current_version = current_version
        super().__init__(f"Stale version for {path}")


class DocumentStoreUnavailableError(DocumentStoreError):
    """Store unreachable, timed out, or failing."""


class DocumentStore(ABC):
    """JSON documents guarded by optimistic concurrency."""

    @abstractmethod
    def read(self, path: str) -> VersionedDocument:
        """Return the document and its current version token."""

    @abstractmethod
    def write(self, path: str, document: Any, *, expected_version: str | None, message: str) -> str:
        """Replace the document if ``expected_version`` is current; return the new token.

        ``expected_version=None`` creates the document and conflicts if it exists.
        Stale tokens raise ``VersionConflictError``; nothing is merged.
        """


__all__ = [
    "DocumentNotFoundError",
    "DocumentStore",
    "DocumentStoreError",
    "DocumentStoreUnavailableError",
    "VersionConflictError",
    "VersionedDocument",
]

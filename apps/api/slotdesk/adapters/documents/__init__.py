"""Versioned document store adapters."""

from .base import (
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreError,
    DocumentStoreUnavailableError,
    VersionConflictError,
    VersionedDocument,
)
from .github_store import GitHubContentsStore

__all__ = [
    "DocumentNotFoundError",
    "DocumentStore",
    "DocumentStoreError",
    "DocumentStoreUnavailableError",
    "GitHubContentsStore",
    "VersionConflictError",
    "VersionedDocument",
]

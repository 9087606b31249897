"""Utilities for safe structured logging fields and request fingerprints."""

from __future__ import annotations

import hashlib
import json
from typing import Any


def safe_log_identifier(value: Any, *, prefix: str) -> str:
    """Return a deterministic non-reversible token for log correlation fields.

    Bearer tokens double as actor identities, so they only ever reach logs
    and audit records through this function.
    """
    text = str(value or "").strip()
    if not text:
        return f"{prefix}-missing"

    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]
    return f"{prefix}-{digest}"


def fingerprint_payload(payload: Any) -> str:
    """Stable digest of a JSON-compatible request body, independent of key order."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

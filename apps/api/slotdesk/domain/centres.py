"""Centre identifier normalization."""

import re
from typing import Any

from slotdesk.schemas.job import Job

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_CONNECTIVE = "and"


def normalize_centre_id(value: Any) -> str:
    """Map a free-text centre name or id onto its canonical slug.

    Lowercase, trim, ``&`` becomes ``and``, runs of non-alphanumerics collapse
    to one hyphen, leading/trailing hyphens are dropped. A standalone ``and``
    is a connective, not part of the identity, so "A & B Test Centre",
    "A and B Test Centre" and "a-b-test-centre" all map to "a-b-test-centre".
    The result is a fixed point: normalizing it again returns it unchanged.
    """
    text = str(value or "").lower().strip().replace("&", " and ")
    words = [word for word in _NON_ALNUM.split(text) if word]
    kept = [word for word in words if word != _CONNECTIVE] or words
    return "-".join(kept)


def normalize_centre_ids(values: Any) -> list[str]:
    """Normalize a list of ids, dropping blanks and duplicates while keeping order."""
    if not isinstance(values, (list, tuple, set, frozenset)):
        return []
    seen: dict[str, None] = {}
    for value in values:
        normalized = normalize_centre_id(value)
        if normalized:
            seen.setdefault(normalized, None)
    return list(seen)


def job_centre_id(job: Job) -> str:
    """Centre a job belongs to: explicit id, else display name, else first desired centre."""
    raw = job.centre_id or job.centre_name or (job.desired_centres[0] if job.desired_centres else "")
    return normalize_centre_id(raw)

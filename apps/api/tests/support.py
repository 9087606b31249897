"""Shared fixtures for API tests: a controllable clock and an app wired to in-memory collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import FastAPI
from fastapi.testclient import TestClient

from slotdesk.adapters.notify import NotificationError, Notifier
from slotdesk.core.config import Settings
from slotdesk.main import create_app
from slotdesk.repositories.memory import InMemoryDocumentStore, InMemoryJobLedger

MASTER = "master-code"
BOOKER_X = "booker-x"
BOOKER_Y = "booker-y"
BOOKER_EMPTY = "booker-empty"
BOOKER_UNSET = "booker-unset"

RECORDS_PATH = "data/admin_tokens.json"
CENTRES_PATH = "data/test_centres.json"
AUDIT_PATH = "log/audit.json"
COVERAGE_DIR = "data/admin_coverage"

DEFAULT_RECORDS: dict[str, dict[str, Any]] = {
    MASTER: {"name": "Morgan", "role": "master"},
    BOOKER_X: {"name": "Xan", "role": "booker", "coverage": ["acme-centre"]},
    BOOKER_Y: {"name": "Yara", "role": "booker", "coverage": ["acme-centre", "b-test-centre"]},
    BOOKER_EMPTY: {"name": "Emma", "role": "booker", "coverage": []},
    BOOKER_UNSET: {"name": "Uma", "role": "booker"},
}

START = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class FakeClock:
    """Wall clock and monotonic clock that only move when told to."""

    def __init__(self, start: datetime = START) -> None:
        self._now = start
        self._monotonic = 1000.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._monotonic

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)
        self._monotonic += seconds


class RecordingNotifier(Notifier):
    def __init__(self, *, fail: bool = False) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []
        self.fail = fail

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        if self.fail:
            raise NotificationError(f"Notification {event} failed")
        self.events.append((event, payload))


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def job_row(job_id: str, *, centre: str = "Acme Centre", status: str = "open", **extra: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": job_id,
        "status": status,
        "centre_name": centre,
        "candidate_name": f"Candidate {job_id}",
        "candidate_phone": "07700900000",
    }
    row.update(extra)
    return row


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "ledger_base_url": None,
        "ledger_secret": None,
        "github_token": None,
        "notify_webhook_url": None,
        "master_token": None,
        "admin_tokens_json": None,
        "centres_path": CENTRES_PATH,
        "admin_records_path": RECORDS_PATH,
        "coverage_dir": COVERAGE_DIR,
        "audit_path": AUDIT_PATH,
        "timezone": "Europe/London",
        "keepalive_enabled": False,
    }
    values.update(overrides)
    return Settings(**values)


@dataclass
class Harness:
    app: FastAPI
    client: TestClient
    ledger: InMemoryJobLedger
    documents: InMemoryDocumentStore
    clock: FakeClock
    notifier: RecordingNotifier
    settings: Settings = field(repr=False)

    def audit_entries(self) -> list[dict[str, Any]]:
        current = self.documents.documents.get(AUDIT_PATH)
        return list(current.document) if current is not None else []

    def records(self) -> dict[str, Any]:
        return self.documents.documents[RECORDS_PATH].document

    def records_version(self) -> str:
        return self.documents.documents[RECORDS_PATH].version


def build_harness(
    *,
    records: dict[str, Any] | None = DEFAULT_RECORDS,
    jobs: tuple[dict[str, Any], ...] = (),
    centres: list[dict[str, Any]] | None = None,
    notifier: RecordingNotifier | None = None,
    **settings_overrides: Any,
) -> Harness:
    clock = FakeClock()
    ledger = InMemoryJobLedger(now=clock.now)
    documents = InMemoryDocumentStore()
    if records is not None:
        documents.seed(RECORDS_PATH, records)
    if centres is not None:
        documents.seed(CENTRES_PATH, centres)
    for index, job in enumerate(jobs):
        ledger.seed({"created_at": clock.now() + timedelta(seconds=index), **job})

    settings = make_settings(**settings_overrides)
    notifier = notifier or RecordingNotifier()
    app = create_app(
        settings,
        ledger=ledger,
        documents=documents,
        notifier=notifier,
        now=clock.now,
        monotonic=clock.monotonic,
    )
    return Harness(
        app=app,
        client=TestClient(app),
        ledger=ledger,
        documents=documents,
        clock=clock,
        notifier=notifier,
        settings=settings,
    )

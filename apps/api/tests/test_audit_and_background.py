"""Audit trail, notifier and periodic task tests."""

from __future__ import annotations

import asyncio
import json
import unittest

import httpx

from slotdesk.adapters.notify import NotificationError, WebhookNotifier
from slotdesk.repositories.memory import InMemoryDocumentStore, InMemoryJobLedger
from slotdesk.schemas.auth import AuthPrincipal
from slotdesk.services.audit import DocumentAuditLog
from slotdesk.services.background import PeriodicTask, keepalive_step, sweep_step
from slotdesk.services.idempotency import InMemoryIdempotencyStore
from slotdesk.services.job_cache import JobCache
from slotdesk.services.rate_limit import InMemoryRateLimiter

from support import AUDIT_PATH, FakeClock


class DocumentAuditLogTests(unittest.TestCase):
    def test_records_append_in_order_without_raw_tokens(self) -> None:
        clock = FakeClock()
        store = InMemoryDocumentStore()
        audit = DocumentAuditLog(store, path=AUDIT_PATH, now=clock.now)
        actor = AuthPrincipal(token="booker-x", name="Xan")

        audit.record(actor=actor, action="coverage.set", target="data/admin_tokens.json", after_version="v2")
        clock.advance(60)
        audit.record(actor=actor, action="profile.update", target="data/admin_tokens.json", details={"a": 1})

        entries = store.read(AUDIT_PATH).document
        self.assertEqual([entry["action"] for entry in entries], ["coverage.set", "profile.update"])
        self.assertEqual(entries[0]["actor"], "Xan")
        self.assertEqual(entries[0]["role"], "booker")
        self.assertEqual(entries[0]["after_version"], "v2")
        self.assertEqual(entries[1]["details"], {"a": 1})
        self.assertEqual(entries[1]["timestamp"], "2026-03-02T09:01:00+00:00")
        self.assertNotIn("booker-x", json.dumps(entries))

    def test_store_failure_never_propagates(self) -> None:
        store = InMemoryDocumentStore()
        store.unavailable_paths.add(AUDIT_PATH)
        audit = DocumentAuditLog(store, path=AUDIT_PATH)

        with self.assertLogs("slotdesk.services.audit", level="WARNING") as logs:
            audit.record(actor=AuthPrincipal(token="booker-x"), action="job.claim", target="job:job-1")

        self.assertIn("audit.write_failed", logs.output[0])


class WebhookNotifierTests(unittest.TestCase):
    def test_posts_event_with_payload(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(204)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        WebhookNotifier(url="https://hooks.test/slot", timeout_seconds=5, client=client).notify(
            "offer.proposed", {"job_id": "job-1"}
        )

        self.assertEqual(bodies, [{"event": "offer.proposed", "job_id": "job-1"}])

    def test_failed_delivery_raises_notification_error(self) -> None:
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
        notifier = WebhookNotifier(url="https://hooks.test/slot", timeout_seconds=5, client=client)

        with self.assertRaises(NotificationError):
            notifier.notify("offer.nudged", {"job_id": "job-1"})


class PeriodicTaskTests(unittest.TestCase):
    def test_task_runs_step_repeatedly_and_survives_failures(self) -> None:
        calls: list[int] = []

        async def step() -> None:
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first cycle fails")

        async def scenario() -> None:
            task = PeriodicTask("test-loop", step, interval_seconds=0.01)
            task.start()
            self.assertTrue(task.running)
            for _ in range(200):
                if len(calls) >= 3:
                    break
                await asyncio.sleep(0.01)
            await task.stop()
            self.assertFalse(task.running)

        asyncio.run(scenario())
        self.assertGreaterEqual(len(calls), 3)

    def test_sweep_step_clears_expired_state(self) -> None:
        clock = FakeClock()
        idempotency = InMemoryIdempotencyStore(ttl_seconds=10, monotonic=clock.monotonic)
        limiter = InMemoryRateLimiter(limit=1, window_seconds=10, monotonic=clock.monotonic)
        cache = JobCache(ttl_seconds=10, monotonic=clock.monotonic)
        idempotency.begin(("booker-x", "claim", "k"), fingerprint="fp", expected=None)
        limiter.check("booker-x")
        cache.get_or_compute(("board", None, "acme", 50, 0), lambda: [])
        clock.advance(10)

        asyncio.run(sweep_step(idempotency, limiter, cache=cache)())

        self.assertEqual(len(idempotency), 0)
        self.assertEqual(limiter.sweep(), 0)
        self.assertEqual(len(cache), 0)

    def test_keepalive_step_logs_unhealthy_ledger(self) -> None:
        ledger = InMemoryJobLedger()
        ledger.available = False

        with self.assertLogs("slotdesk.services.background", level="WARNING") as logs:
            asyncio.run(keepalive_step(ledger)())

        self.assertIn("background.keepalive_failed", logs.output[0])


if __name__ == "__main__":
    unittest.main()

"""Periodic maintenance tasks run for the lifetime of the app."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from slotdesk.adapters.ledger.base import JobLedger
from slotdesk.services.idempotency import IdempotencyStore
from slotdesk.services.job_cache import JobCache
from slotdesk.services.rate_limit import RateLimiter

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Runs ``step`` every ``interval_seconds`` until stopped."""

    def __init__(self, name: str, step: Callable[[], Awaitable[None]], *, interval_seconds: float) -> None:
        self.name = name
        self._step = step
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            logger.warning("background.already_running task=%s", self.name)
            return
        self._task = asyncio.create_task(self._run_loop(), name=self.name)
        logger.info("background.started task=%s interval_seconds=%s", self.name, self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("background.stopped task=%s", self.name)

    async def _run_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self._step()
            except Exception as exc:  # one failed cycle must not end the loop
                logger.warning("background.cycle_failed task=%s reason=%s", self.name, type(exc).__name__)


def sweep_step(
    idempotency: IdempotencyStore,
    *limiters: RateLimiter,
    cache: JobCache | None = None,
) -> Callable[[], Awaitable[None]]:
    async def step() -> None:
        entries = idempotency.sweep()
        buckets = sum(limiter.sweep() for limiter in limiters)
        cached = cache.prune() if cache is not None else 0
        if entries or buckets or cached:
            logger.info(
                "background.swept idempotency_entries=%s rate_buckets=%s cache_entries=%s",
                entries,
                buckets,
                cached,
            )

    return step


def keepalive_step(ledger: JobLedger) -> Callable[[], Awaitable[None]]:
    async def step() -> None:
        healthy = await asyncio.to_thread(ledger.ping)
        if not healthy:
            logger.warning("background.keepalive_failed")

    return step


__all__ = ["PeriodicTask", "keepalive_step", "sweep_step"]

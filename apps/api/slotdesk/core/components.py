"""Process-wide collaborators shared by every request."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
import logging
import time
from typing import Callable

from slotdesk.adapters.auth import AdminRecordTokenVerifier, TokenVerifier
from slotdesk.adapters.documents import DocumentStore, GitHubContentsStore
from slotdesk.adapters.ledger import HttpJobLedger, JobLedger
from slotdesk.adapters.notify import Notifier, NullNotifier, WebhookNotifier
from slotdesk.core.config import Settings
from slotdesk.repositories.memory import InMemoryDocumentStore, InMemoryJobLedger
from slotdesk.services.audit import AuditLog, DocumentAuditLog
from slotdesk.services.coverage import CoverageResolver
from slotdesk.services.directory import AdminDirectory
from slotdesk.services.idempotency import IdempotencyStore, InMemoryIdempotencyStore
from slotdesk.services.job_cache import JobCache
from slotdesk.services.rate_limit import InMemoryRateLimiter, RateLimiter

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class AppComponents:
    settings: Settings
    ledger: JobLedger
    documents: DocumentStore
    directory: AdminDirectory
    verifier: TokenVerifier
    coverage: CoverageResolver
    cache: JobCache
    claim_limiter: RateLimiter
    action_limiter: RateLimiter
    idempotency: IdempotencyStore
    audit: AuditLog
    notifier: Notifier
    now: Callable[[], datetime]
    monotonic: Callable[[], float]


def build_components(
    settings: Settings,
    *,
    ledger: JobLedger | None = None,
    documents: DocumentStore | None = None,
    notifier: Notifier | None = None,
    now: Callable[[], datetime] | None = None,
    monotonic: Callable[[], float] | None = None,
) -> AppComponents:
    """Wire collaborators from settings; explicit arguments win over configuration."""
    now = now or _utc_now
    monotonic = monotonic or time.monotonic

    if ledger is None:
        if settings.ledger_configured:
            ledger = HttpJobLedger(
                base_url=str(settings.ledger_base_url),
                secret=str(settings.ledger_secret),
                timeout_seconds=settings.ledger_timeout_seconds,
            )
        else:
            logger.warning("components.ledger_in_memory reason=ledger_not_configured")
            ledger = InMemoryJobLedger(now=now)

    if documents is None:
        if settings.github_configured:
            documents = GitHubContentsStore(
                token=str(settings.github_token),
                owner=str(settings.github_owner),
                repo=str(settings.github_repo),
                branch=settings.github_branch,
                timeout_seconds=settings.store_timeout_seconds,
                api_url=settings.github_api_url,
            )
        else:
            logger.warning("components.documents_in_memory reason=github_not_configured")
            documents = InMemoryDocumentStore()

    if notifier is None:
        if settings.notify_webhook_url:
            notifier = WebhookNotifier(url=settings.notify_webhook_url, timeout_seconds=settings.notify_timeout_seconds)
        else:
            notifier = NullNotifier()

    directory = AdminDirectory(documents, path=settings.admin_records_path, static_records=settings.admin_tokens_json)
    return AppComponents(
        settings=settings,
        ledger=ledger,
        documents=documents,
        directory=directory,
        verifier=AdminRecordTokenVerifier(directory, master_token=settings.master_token),
        coverage=CoverageResolver(
            directory,
            documents,
            coverage_dir=settings.coverage_dir,
            static_records=settings.admin_tokens_json,
            centres_path=settings.centres_path,
        ),
        cache=JobCache(ttl_seconds=settings.job_cache_ttl_seconds, monotonic=monotonic),
        claim_limiter=InMemoryRateLimiter(
            limit=settings.claim_rate_limit,
            window_seconds=settings.claim_rate_window_seconds,
            monotonic=monotonic,
        ),
        action_limiter=InMemoryRateLimiter(
            limit=settings.action_rate_limit,
            window_seconds=settings.action_rate_window_seconds,
            monotonic=monotonic,
        ),
        idempotency=InMemoryIdempotencyStore(ttl_seconds=settings.idempotency_ttl_seconds, monotonic=monotonic),
        audit=DocumentAuditLog(documents, path=settings.audit_path, now=now),
        notifier=notifier,
        now=now,
        monotonic=monotonic,
    )


__all__ = ["AppComponents", "build_components"]

"""Actor-scoped reads and writes of the caller's own record."""

from __future__ import annotations

from datetime import UTC, datetime
import logging
from typing import Any, Callable, TypeVar

from slotdesk.adapters.documents.base import DocumentStoreUnavailableError, VersionConflictError
from slotdesk.core.logging_safety import safe_log_identifier
from slotdesk.domain.centres import normalize_centre_ids
from slotdesk.errors import ApiError, upstream_error, version_conflict_error
from slotdesk.schemas.auth import AuthPrincipal, MeResponse
from slotdesk.schemas.profile import (
    MyCentresResponse,
    OnboardingComplete,
    OnboardingResponse,
    ProfileResponse,
    ProfileUpdate,
)
from slotdesk.services.audit import AuditLog
from slotdesk.services.coverage import CoverageResolver
from slotdesk.services.directory import ActorRecord, AdminDirectory, DirectoryWrite
from slotdesk.services.job_cache import JobCache

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utc_now() -> datetime:
    return datetime.now(UTC)


class ProfileService:
    def __init__(
        self,
        *,
        directory: AdminDirectory,
        coverage: CoverageResolver,
        audit: AuditLog,
        cache: JobCache,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._directory = directory
        self._coverage = coverage
        self._audit = audit
        self._cache = cache
        self._now = now

    def me(self, principal: AuthPrincipal) -> MeResponse:
        return MeResponse(name=principal.name, role=principal.role)

    def my_centres(self, principal: AuthPrincipal) -> MyCentresResponse:
        """Centres the caller can actually act on; masters see their stored list."""
        if principal.is_master:
            record = self._own_record(principal)
            return MyCentresResponse(centres=list(record.coverage or []))
        return MyCentresResponse(centres=self._coverage.resolve_token(principal.token).as_list())

    def set_my_centres(self, principal: AuthPrincipal, centres: list[str]) -> MyCentresResponse:
        normalized = normalize_centre_ids(centres)

        def apply(record: ActorRecord) -> dict[str, Any]:
            before = list(record.coverage or [])
            record.coverage = normalized
            return {"before": before, "after": normalized}

        change, write = self._update_own(principal, apply, message="coverage: set own centres")
        self._record(principal, "coverage.set", write, change)
        self._cache.invalidate("board")
        return MyCentresResponse(centres=normalized)

    def profile(self, principal: AuthPrincipal) -> ProfileResponse:
        record = self._own_record(principal)
        return ProfileResponse(notes=record.notes, max_daily=record.max_daily, available=record.available)

    def update_profile(self, principal: AuthPrincipal, update: ProfileUpdate) -> ProfileResponse:
        changes = update.model_dump(exclude_none=True)

        def apply(record: ActorRecord) -> dict[str, Any]:
            before = {"notes": record.notes, "max_daily": record.max_daily, "available": record.available}
            for field, value in changes.items():
                setattr(record, field, value)
            after = {"notes": record.notes, "max_daily": record.max_daily, "available": record.available}
            return {"before": before, "after": after}

        change, write = self._update_own(principal, apply, message="profile: update")
        self._record(principal, "profile.update", write, change)
        return ProfileResponse(**change["after"])

    def onboarding(self, principal: AuthPrincipal) -> OnboardingResponse:
        record = self._own_record(principal)
        return OnboardingResponse(
            onboarding_required=record.onboarding_required,
            name=record.name,
            coverage=list(record.coverage or []),
            available=record.available,
        )

    def complete_onboarding(self, principal: AuthPrincipal, request: OnboardingComplete) -> OnboardingResponse:
        coverage = normalize_centre_ids(request.coverage)
        if not coverage:
            raise ApiError(
                status_code=400,
                code="REQUIRED_FIELDS",
                message="Name and coverage are required",
                details={"fields": ["coverage"]},
            )
        onboarded_at = self._now().isoformat()

        def apply(record: ActorRecord) -> dict[str, Any]:
            record.name = request.name
            record.coverage = coverage
            record.available = request.available
            record.onboarding_required = False
            record.onboarded_at = onboarded_at
            return {"name": request.name, "coverage": coverage, "available": request.available}

        change, write = self._update_own(principal, apply, message="onboarding: complete")
        self._record(principal, "onboarding.complete", write, change)
        self._cache.invalidate_all()
        return OnboardingResponse(onboarding_required=False, **change)

    def _own_record(self, principal: AuthPrincipal) -> ActorRecord:
        try:
            record = self._directory.get(principal.token)
        except DocumentStoreUnavailableError as exc:
            raise upstream_error("Actor records are unavailable") from exc
        return record or ActorRecord(name=principal.name, role=principal.role)

    def _update_own(
        self,
        principal: AuthPrincipal,
        apply: Callable[[ActorRecord], T],
        *,
        message: str,
    ) -> tuple[T, DirectoryWrite]:
        def mutate(records: dict[str, ActorRecord]) -> T:
            record = records.get(principal.token)
            if record is None:
                record = ActorRecord(name=principal.name, role=principal.role)
                records[principal.token] = record
            return apply(record)

        try:
            return self._directory.update(mutate, message=message)
        except VersionConflictError as exc:
            raise version_conflict_error(
                path=self._directory.path,
                expected_version=exc.expected_version,
                current_version=exc.current_version,
            ) from exc
        except DocumentStoreUnavailableError as exc:
            raise upstream_error("Actor records could not be saved") from exc

    def _record(self, principal: AuthPrincipal, action: str, write: DirectoryWrite, details: dict[str, Any]) -> None:
        self._audit.record(
            actor=principal,
            action=action,
            target=self._directory.path,
            before_version=write.before_version,
            after_version=write.after_version,
            details=details,
        )
        logger.info("%s actor_id=%s", action, safe_log_identifier(principal.token, prefix="aid"))


__all__ = ["ProfileService"]

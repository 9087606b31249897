"""Master-only administration of actor records."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from slotdesk.adapters.documents.base import DocumentStoreUnavailableError, VersionConflictError
from slotdesk.core.logging_safety import safe_log_identifier
from slotdesk.errors import ApiError, invalid_fields, upstream_error, validation_failed, version_conflict_error
from slotdesk.schemas.admin import (
    AdminCode,
    AdminCodesMutationResponse,
    AdminCodesResponse,
    AppendAdminCodeRequest,
    BookerSummary,
    BookersResponse,
    parse_admin_codes_update,
)
from slotdesk.schemas.auth import AuthPrincipal
from slotdesk.schemas.profile import OkResponse
from slotdesk.services.audit import AuditLog
from slotdesk.services.directory import ActorRecord, AdminDirectory, DirectorySnapshot, DirectoryWrite
from slotdesk.services.job_cache import JobCache

logger = logging.getLogger(__name__)


class AdminService:
    def __init__(self, *, directory: AdminDirectory, audit: AuditLog, cache: JobCache) -> None:
        self._directory = directory
        self._audit = audit
        self._cache = cache

    def bookers(self, principal: AuthPrincipal) -> BookersResponse:
        self._require_master(principal)
        snapshot = self._load()
        return BookersResponse(
            bookers=[
                BookerSummary(
                    token=token,
                    name=record.name,
                    role=record.role,
                    coverage=list(record.coverage or []),
                    available=record.available,
                )
                for token, record in snapshot.records.items()
                if not record.is_master
            ]
        )

    def force_onboard(self, principal: AuthPrincipal, token: str) -> OkResponse:
        self._require_master(principal)

        def mutate(records: dict[str, ActorRecord]) -> None:
            record = records.get(token)
            if record is None:
                raise ApiError(status_code=404, code="UNKNOWN_TOKEN", message="Token not found")
            record.onboarding_required = True
            record.onboarded_at = ""

        write = self._update(mutate, message="admins: force onboarding")
        self._cache.invalidate_all()
        self._record(principal, "admins.force_onboard", write, {"actor_id": safe_log_identifier(token, prefix="aid")})
        return OkResponse()

    def codes(self, principal: AuthPrincipal) -> AdminCodesResponse:
        self._require_master(principal)
        snapshot = self._load()
        return AdminCodesResponse(
            codes={
                token: AdminCode(
                    name=record.name,
                    role=record.role,
                    onboarding_required=record.onboarding_required,
                    onboarded_at=record.onboarded_at,
                )
                for token, record in snapshot.records.items()
            },
            sha=snapshot.version,
        )

    def update_codes(self, principal: AuthPrincipal, body: Any) -> AdminCodesMutationResponse:
        """Append or delete one code; the caller's version token must still be current."""
        self._require_master(principal)
        try:
            request = parse_admin_codes_update(body)
        except ValidationError as exc:
            mode = body.get("mode") if isinstance(body, dict) else None
            raise validation_failed(invalid_fields(exc, tag=mode, discriminator="mode")) from exc

        snapshot = self._load()
        if request.sha != snapshot.version:
            raise version_conflict_error(
                path=self._directory.path,
                expected_version=request.sha,
                current_version=snapshot.version,
            )

        records = snapshot.records
        if isinstance(request, AppendAdminCodeRequest):
            if request.code in records:
                raise ApiError(status_code=400, code="DUPLICATE_CODE", message="Code already exists")
            records[request.code] = ActorRecord(name=request.name, role=request.role)
            details = {"name": request.name, "role": request.role}
        else:
            removed = records.pop(request.code, None)
            if removed is None:
                raise ApiError(status_code=404, code="UNKNOWN_TOKEN", message="Code not found")
            details = {"name": removed.name, "role": removed.role}

        try:
            version = self._directory.write(
                records,
                expected_version=snapshot.version,
                message=f"admins: {request.mode}",
            )
        except VersionConflictError as exc:
            raise version_conflict_error(
                path=self._directory.path,
                expected_version=snapshot.version,
                current_version=exc.current_version,
            ) from exc
        except DocumentStoreUnavailableError as exc:
            raise upstream_error("Actor records could not be saved") from exc

        write = DirectoryWrite(before_version=snapshot.version, after_version=version)
        self._cache.invalidate_all()
        details["actor_id"] = safe_log_identifier(request.code, prefix="aid")
        self._record(principal, f"admins.{request.mode}", write, details)
        return AdminCodesMutationResponse(mode=request.mode, code=request.code, sha=version)

    def _load(self) -> DirectorySnapshot:
        try:
            return self._directory.load()
        except DocumentStoreUnavailableError as exc:
            raise upstream_error("Actor records are unavailable") from exc

    def _update(self, mutate, *, message: str) -> DirectoryWrite:
        try:
            _, write = self._directory.update(mutate, message=message)
        except VersionConflictError as exc:
            raise version_conflict_error(
                path=self._directory.path,
                expected_version=exc.expected_version,
                current_version=exc.current_version,
            ) from exc
        except DocumentStoreUnavailableError as exc:
            raise upstream_error("Actor records could not be saved") from exc
        return write

    def _record(self, principal: AuthPrincipal, action: str, write: DirectoryWrite, details: dict) -> None:
        self._audit.record(
            actor=principal,
            action=action,
            target=self._directory.path,
            before_version=write.before_version,
            after_version=write.after_version,
            details=details,
        )
        logger.info("%s actor_id=%s", action, safe_log_identifier(principal.token, prefix="aid"))

    @staticmethod
    def _require_master(principal: AuthPrincipal) -> None:
        if not principal.is_master:
            raise ApiError(status_code=403, code="MASTER_REQUIRED", message="Only a master may manage admins.")


__all__ = ["AdminService"]

"""Centre list service: versioned append, soft delete with coverage cascade, restore."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from slotdesk.adapters.documents.base import (
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreUnavailableError,
    VersionConflictError,
)
from slotdesk.core.logging_safety import safe_log_identifier
from slotdesk.domain.centres import normalize_centre_id
from slotdesk.errors import ApiError, invalid_fields, upstream_error, validation_failed, version_conflict_error
from slotdesk.schemas.auth import AuthPrincipal
from slotdesk.schemas.centre import (
    AppendCentresRequest,
    Centre,
    CentresMutationResponse,
    CentresResponse,
    DeleteCentresRequest,
    parse_centres_update,
)
from slotdesk.services.audit import AuditLog
from slotdesk.services.directory import ActorRecord, AdminDirectory

logger = logging.getLogger(__name__)

CASCADE_ATTEMPTS = 3


def _mode_of(body: Any) -> str | None:
    return body.get("mode") if isinstance(body, dict) else None


class CentresService:
    def __init__(self, *, store: DocumentStore, directory: AdminDirectory, audit: AuditLog, path: str) -> None:
        self._store = store
        self._directory = directory
        self._audit = audit
        self._path = path

    def list_active(self) -> CentresResponse:
        centres, version = self._read()
        return CentresResponse(centres=[centre for centre in centres if not centre.deleted], sha=version)

    def list_deleted(self, principal: AuthPrincipal) -> CentresResponse:
        self._require_master(principal)
        centres, version = self._read()
        return CentresResponse(centres=[centre for centre in centres if centre.deleted], sha=version)

    def update(self, principal: AuthPrincipal, body: Any) -> CentresMutationResponse:
        self._require_master(principal)
        try:
            request = parse_centres_update(body)
        except ValidationError as exc:
            raise validation_failed(invalid_fields(exc, tag=_mode_of(body), discriminator="mode")) from exc

        centres, version = self._read()
        if request.sha != version:
            raise version_conflict_error(path=self._path, expected_version=request.sha, current_version=version)

        if isinstance(request, AppendCentresRequest):
            updated, changed = self._append(centres, request)
        else:
            updated, changed = self._flip(centres, request.ids, deleted=isinstance(request, DeleteCentresRequest))

        message = f"centres: {request.mode} {', '.join(changed)}"
        new_version = self._write(updated, expected_version=version, message=message)
        active_count = sum(1 for centre in updated if not centre.deleted)
        details: dict[str, Any] = {"ids": changed}

        removed_from_bookers = 0
        if isinstance(request, DeleteCentresRequest):
            removed_from_bookers = self._cascade(principal, changed, before_version=version, after_version=new_version)
            details["removed_from_bookers"] = removed_from_bookers

        self._audit.record(
            actor=principal,
            action=f"centres.{request.mode}",
            target=self._path,
            before_version=version,
            after_version=new_version,
            details=details,
        )
        logger.info(
            "centres.updated actor_id=%s mode=%s changed=%s",
            safe_log_identifier(principal.token, prefix="aid"),
            request.mode,
            len(changed),
        )
        return CentresMutationResponse(
            mode=request.mode,
            sha=new_version,
            count=active_count,
            changed=changed,
            removed_from_bookers=removed_from_bookers,
        )

    def _append(self, centres: list[Centre], request: AppendCentresRequest) -> tuple[list[Centre], list[str]]:
        existing = {centre.id: centre for centre in centres}
        added: list[Centre] = []
        for item in request.centres:
            centre_id = normalize_centre_id(item.id or item.name)
            if not centre_id:
                raise ApiError(
                    status_code=400,
                    code="VALIDATION_FAILED",
                    message="Each centre needs a name that yields an id",
                    details={"fields": ["centres"]},
                )
            match = existing.get(centre_id)
            if match is not None:
                hint = "restore it from the bin instead" if match.deleted else "pick a different name"
                raise ApiError(
                    status_code=400,
                    code="DUPLICATE_CENTRE",
                    message=f"Centre {centre_id} already exists; {hint}.",
                    details={"id": centre_id, "deleted": match.deleted},
                )
            centre = Centre(id=centre_id, name=item.name)
            existing[centre_id] = centre
            added.append(centre)
        return [*centres, *added], [centre.id for centre in added]

    def _flip(self, centres: list[Centre], ids: list[str], *, deleted: bool) -> tuple[list[Centre], list[str]]:
        wanted = list(dict.fromkeys(normalize_centre_id(value) for value in ids))
        known = {centre.id for centre in centres}
        unknown = [centre_id for centre_id in wanted if centre_id not in known]
        if unknown:
            raise ApiError(
                status_code=400,
                code="UNKNOWN_CENTRE",
                message=f"Unknown centre ids: {', '.join(unknown)}",
                details={"ids": unknown},
            )
        selected = set(wanted)
        # Flag flip in place keeps every entry at its index.
        updated = [
            centre.model_copy(update={"deleted": deleted}) if centre.id in selected else centre for centre in centres
        ]
        return updated, wanted

    def _cascade(
        self,
        principal: AuthPrincipal,
        ids: list[str],
        *,
        before_version: str | None,
        after_version: str,
    ) -> int:
        removed = set(ids)

        def strip_coverage(records: dict[str, ActorRecord]) -> int:
            count = 0
            for record in records.values():
                if not record.coverage:
                    continue
                kept = [centre_id for centre_id in record.coverage if centre_id not in removed]
                count += len(record.coverage) - len(kept)
                record.coverage = kept
            return count

        try:
            count, write = self._directory.update(
                strip_coverage,
                message=f"coverage: drop deleted centres {', '.join(ids)}",
                attempts=CASCADE_ATTEMPTS,
            )
        except (VersionConflictError, DocumentStoreUnavailableError) as exc:
            logger.warning("centres.cascade_incomplete ids=%s reason=%s", len(ids), type(exc).__name__)
            self._audit.record(
                actor=principal,
                action="centres.delete",
                target=self._path,
                before_version=before_version,
                after_version=after_version,
                details={"ids": ids, "cascade": "incomplete", "reason": type(exc).__name__},
            )
            raise ApiError(
                status_code=502,
                code="CASCADE_INCOMPLETE",
                message="Centres were deleted but bookers' coverage was not updated; repeat the delete to finish.",
                details={"ids": ids, "sha": after_version},
            ) from exc

        self._audit.record(
            actor=principal,
            action="coverage.cascade",
            target=self._directory.path,
            before_version=write.before_version,
            after_version=write.after_version,
            details={"ids": ids, "removed_from_bookers": count},
        )
        return count

    def _read(self) -> tuple[list[Centre], str | None]:
        try:
            current = self._store.read(self._path)
        except DocumentNotFoundError:
            return [], None
        except DocumentStoreUnavailableError as exc:
            raise upstream_error("Centre list is unavailable") from exc

        centres: list[Centre] = []
        raw = current.document if isinstance(current.document, list) else []
        for item in raw:
            try:
                centre = Centre.model_validate(item)
            except ValidationError:
                logger.warning("centres.entry_skipped reason=invalid_entry")
                continue
            if centre.id:
                centres.append(centre)
        return centres, current.version

    def _write(self, centres: list[Centre], *, expected_version: str | None, message: str) -> str:
        document = [centre.model_dump(mode="json") for centre in centres]
        try:
            return self._store.write(self._path, document, expected_version=expected_version, message=message)
        except VersionConflictError as exc:
            raise version_conflict_error(
                path=self._path,
                expected_version=expected_version,
                current_version=exc.current_version,
            ) from exc
        except DocumentStoreUnavailableError as exc:
            raise upstream_error("Centre list could not be saved") from exc

    @staticmethod
    def _require_master(principal: AuthPrincipal) -> None:
        if not principal.is_master:
            raise ApiError(status_code=403, code="MASTER_REQUIRED", message="Only a master may manage centres.")


__all__ = ["CASCADE_ATTEMPTS", "CentresService"]

"""Bearer tokens verified against the actor records document."""

from __future__ import annotations

from secrets import compare_digest

from slotdesk.adapters.auth.base import AuthBackendUnavailableError, AuthVerificationError, TokenVerifier
from slotdesk.adapters.documents.base import DocumentStoreUnavailableError
from slotdesk.schemas.auth import AuthPrincipal
from slotdesk.services.directory import AdminDirectory


class AdminRecordTokenVerifier(TokenVerifier):
    """Maps a bearer token onto the actor record stored under it.

    ``master_token`` is an optional bootstrap credential from settings so a
    fresh deployment can create the first records.
    """

    def __init__(self, directory: AdminDirectory, *, master_token: str | None = None) -> None:
        self._directory = directory
        self._master_token = master_token

    def verify_token(self, token: str) -> AuthPrincipal:
        token = token.strip()
        if not token:
            raise AuthVerificationError("Invalid bearer token")
        if self._master_token and compare_digest(token.encode("utf-8"), self._master_token.encode("utf-8")):
            return AuthPrincipal(token=token, name="Master", role="master")

        try:
            record = self._directory.get(token)
        except DocumentStoreUnavailableError as exc:
            raise AuthBackendUnavailableError("Credential records are unavailable") from exc
        if record is None:
            raise AuthVerificationError("Invalid bearer token")

        return AuthPrincipal(token=token, name=record.name.strip() or "Admin", role=record.role)


__all__ = ["AdminRecordTokenVerifier"]

"""Auth verifier adapters."""

from .admin_records import AdminRecordTokenVerifier
from .base import AuthBackendUnavailableError, AuthVerificationError, TokenVerifier

__all__ = [
    "AdminRecordTokenVerifier",
    "AuthBackendUnavailableError",
    "AuthVerificationError",
    "TokenVerifier",
]

"""Dependency wiring for routes."""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import uuid4

from fastapi import Depends, Request, Security
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from slotdesk.adapters.auth import AuthBackendUnavailableError, AuthVerificationError
from slotdesk.core.components import AppComponents
from slotdesk.core.logging_safety import safe_log_identifier
from slotdesk.errors import ApiError, upstream_error
from slotdesk.schemas.auth import AuthPrincipal
from slotdesk.services.admins import AdminService
from slotdesk.services.centres import CentresService
from slotdesk.services.jobs import JobService
from slotdesk.services.profiles import ProfileService

bearer_scheme = HTTPBearer(auto_error=False, scheme_name="bearerAuth")
logger = logging.getLogger(__name__)


def _auth_error(message: str) -> ApiError:
    return ApiError(status_code=401, code="UNAUTHORIZED", message=message)


def _request_correlation_id(request: Request) -> str:
    existing = getattr(request.state, "correlation_id", None)
    if isinstance(existing, str) and existing:
        return existing

    correlation_id = request.headers.get("X-Correlation-Id")
    if correlation_id:
        request.state.correlation_id = correlation_id
        return correlation_id

    generated = f"req-{uuid4()}"
    request.state.correlation_id = generated
    return generated


def get_components(request: Request) -> AppComponents:
    return request.app.state.components


async def get_authenticated_principal(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    components: Annotated[AppComponents, Depends(get_components)],
) -> AuthPrincipal:
    """Validate bearer token and attach normalized principal to request context."""
    correlation_id = _request_correlation_id(request)
    safe_correlation_id = safe_log_identifier(correlation_id, prefix="cid")
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        logger.warning(
            "auth.rejected correlation_id=%s method=%s path=%s reason=invalid_or_missing_bearer",
            safe_correlation_id,
            request.method,
            request.url.path,
        )
        raise _auth_error("Invalid or missing bearer token")

    try:
        principal = await run_in_threadpool(components.verifier.verify_token, credentials.credentials)
    except AuthVerificationError as exc:
        logger.warning(
            "auth.rejected correlation_id=%s method=%s path=%s reason=token_verification_failed",
            safe_correlation_id,
            request.method,
            request.url.path,
        )
        raise _auth_error(str(exc) or "Invalid bearer token") from exc
    except AuthBackendUnavailableError as exc:
        logger.warning(
            "auth.unavailable correlation_id=%s method=%s path=%s",
            safe_correlation_id,
            request.method,
            request.url.path,
        )
        raise upstream_error("Credential records are unavailable") from exc

    logger.info(
        "auth.accepted correlation_id=%s method=%s path=%s actor_id=%s role=%s",
        safe_correlation_id,
        request.method,
        request.url.path,
        safe_log_identifier(principal.token, prefix="aid"),
        principal.role,
    )
    request.state.auth_principal = principal
    return principal


def get_job_service(components: Annotated[AppComponents, Depends(get_components)]) -> JobService:
    return JobService(
        ledger=components.ledger,
        cache=components.cache,
        coverage=components.coverage,
        directory=components.directory,
        claim_limiter=components.claim_limiter,
        action_limiter=components.action_limiter,
        idempotency=components.idempotency,
        audit=components.audit,
        notifier=components.notifier,
        settings=components.settings,
        now=components.now,
    )


def get_centres_service(components: Annotated[AppComponents, Depends(get_components)]) -> CentresService:
    return CentresService(
        store=components.documents,
        directory=components.directory,
        audit=components.audit,
        path=components.settings.centres_path,
    )


def get_profile_service(components: Annotated[AppComponents, Depends(get_components)]) -> ProfileService:
    return ProfileService(
        directory=components.directory,
        coverage=components.coverage,
        audit=components.audit,
        cache=components.cache,
        now=components.now,
    )


def get_admin_service(components: Annotated[AppComponents, Depends(get_components)]) -> AdminService:
    return AdminService(directory=components.directory, audit=components.audit, cache=components.cache)

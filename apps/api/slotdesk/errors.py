"""Application exception types."""

from typing import Any

from pydantic import ValidationError

from slotdesk.schemas.error import ErrorResponse

_ERROR_KIND_BY_STATUS: dict[int, str] = {
    400: "validation_error",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    429: "rate_limited",
    502: "upstream_failed",
    503: "upstream_failed",
}


class ApiError(Exception):
    """Structured API error that maps directly to contract error payloads."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.status_code = status_code
        self.headers = headers
        self.payload = ErrorResponse(
            error=_ERROR_KIND_BY_STATUS.get(status_code, "internal_error"),
            code=code,
            message=message,
            details=details,
        )
        super().__init__(message)


def rate_limited_error(retry_after_seconds: int) -> ApiError:
    return ApiError(
        status_code=429,
        code="RATE_LIMIT_EXCEEDED",
        message=f"Try again in {retry_after_seconds} seconds",
        details={"retry_after": retry_after_seconds},
        headers={"Retry-After": str(retry_after_seconds)},
    )


def version_conflict_error(*, path: str, expected_version: str | None, current_version: str | None) -> ApiError:
    return ApiError(
        status_code=409,
        code="VERSION_CONFLICT",
        message="Data changed since it was loaded, please reload and retry.",
        details={
            "path": path,
            "expected_version": expected_version,
            "current_version": current_version,
            "action": "reload",
        },
    )


def validation_failed(fields: list[str]) -> ApiError:
    return ApiError(
        status_code=400,
        code="VALIDATION_FAILED",
        message=f"Invalid fields: {', '.join(fields)}",
        details={"fields": fields},
    )


def invalid_fields(exc: ValidationError, *, tag: str | None = None, discriminator: str = "body") -> list[str]:
    """Dotted paths of every field a pydantic validation error names.

    Errors raised inside a tagged union are located under the tag value;
    ``tag`` strips that prefix so paths match the request body.
    """
    fields: set[str] = set()
    for error in exc.errors(include_url=False):
        loc = list(error["loc"])
        if tag is not None and loc and loc[0] == tag:
            loc = loc[1:]
        if error["type"] in ("union_tag_not_found", "union_tag_invalid"):
            loc = [discriminator]
        fields.add(".".join(str(part) for part in loc) or "body")
    return sorted(fields)


def upstream_error(message: str, details: dict[str, Any] | None = None) -> ApiError:
    return ApiError(status_code=502, code="UPSTREAM_ERROR", message=message, details=details)


__all__ = [
    "ApiError",
    "invalid_fields",
    "rate_limited_error",
    "upstream_error",
    "validation_failed",
    "version_conflict_error",
]

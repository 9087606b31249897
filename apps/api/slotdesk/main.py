"""FastAPI application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
import logging
from typing import AsyncIterator, Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from slotdesk.adapters.documents.base import DocumentStore
from slotdesk.adapters.ledger.base import JobLedger
from slotdesk.adapters.notify import Notifier
from slotdesk.core.components import AppComponents, build_components
from slotdesk.core.config import Settings, get_settings
from slotdesk.errors import ApiError, validation_failed
from slotdesk.routes import admins_router, centres_router, health_router, jobs_router, profile_router
from slotdesk.services.background import PeriodicTask, keepalive_step, sweep_step

logger = logging.getLogger(__name__)


def _background_tasks(components: AppComponents) -> list[PeriodicTask]:
    settings = components.settings
    tasks = [
        PeriodicTask(
            "idempotency-sweep",
            sweep_step(
                components.idempotency,
                components.claim_limiter,
                components.action_limiter,
                cache=components.cache,
            ),
            interval_seconds=settings.idempotency_sweep_seconds,
        )
    ]
    if settings.keepalive_enabled:
        tasks.append(
            PeriodicTask(
                "ledger-keepalive",
                keepalive_step(components.ledger),
                interval_seconds=settings.keepalive_interval_seconds,
            )
        )
    return tasks


def create_app(
    settings: Settings | None = None,
    *,
    ledger: JobLedger | None = None,
    documents: DocumentStore | None = None,
    notifier: Notifier | None = None,
    now: Callable[[], datetime] | None = None,
    monotonic: Callable[[], float] | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    components = build_components(
        settings,
        ledger=ledger,
        documents=documents,
        notifier=notifier,
        now=now,
        monotonic=monotonic,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        tasks = _background_tasks(components)
        for task in tasks:
            task.start()
        try:
            yield
        finally:
            for task in tasks:
                await task.stop()

    app = FastAPI(title="Slotdesk API", version="1.0.0", lifespan=lifespan)
    app.state.components = components

    @app.exception_handler(ApiError)
    async def handle_api_error(_, exc: ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.payload.model_dump(mode="json", exclude_none=True),
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = sorted(
            {".".join(str(part) for part in error["loc"] if part != "body") or "body" for error in exc.errors()}
        )
        logger.info("request.invalid method=%s path=%s fields=%s", request.method, request.url.path, fields)
        error = validation_failed(fields)
        return JSONResponse(
            status_code=error.status_code,
            content=error.payload.model_dump(mode="json", exclude_none=True),
        )

    api_prefix = "/api"
    app.include_router(jobs_router, prefix=api_prefix)
    app.include_router(centres_router, prefix=api_prefix)
    app.include_router(profile_router, prefix=api_prefix)
    app.include_router(admins_router, prefix=api_prefix)
    app.include_router(health_router, prefix=api_prefix)

    return app


app = create_app()

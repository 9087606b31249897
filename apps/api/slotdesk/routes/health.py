"""Liveness and dependency health routes."""

import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from slotdesk.core.components import AppComponents
from slotdesk.routes.dependencies import get_components

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health() -> dict[str, bool]:
    return {"ok": True}


@router.get("/health/deps")
async def dependency_health(components: Annotated[AppComponents, Depends(get_components)]) -> JSONResponse:
    timeout = components.settings.ledger_timeout_seconds
    try:
        ledger_ok = await asyncio.wait_for(asyncio.to_thread(components.ledger.ping), timeout=timeout)
    except asyncio.TimeoutError:
        ledger_ok = False

    checks = {"ledger": "ok" if ledger_ok else "down"}
    healthy = all(state == "ok" for state in checks.values())
    return JSONResponse(status_code=200 if healthy else 503, content={"ok": healthy, "checks": checks})

"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from frontdesk.api.deps import get_runtime
from frontdesk.orchestration.runtime import EscalationRuntime

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def ready(runtime: EscalationRuntime = Depends(get_runtime)):
    if not runtime.running:
        return JSONResponse(status_code=503, content={"status": "starting"})
    return {"status": "ready", "knowledge_entries": len(runtime.knowledge.matcher)}

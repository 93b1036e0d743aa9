"""FastAPI application with lifespan and router mounting."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from frontdesk.api.routes import agent, health, supervisor
from frontdesk.core.config import AppSettings
from frontdesk.core.exceptions import StoreUnavailableError
from frontdesk.orchestration.runtime import EscalationRuntime
from frontdesk.persistence import create_persistence
from frontdesk.realtime.channel import WebSocketSessionHub

logger = logging.getLogger(__name__)


def configure_logging(settings: AppSettings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_runtime(settings: AppSettings) -> EscalationRuntime:
    help_requests, knowledge_store = create_persistence(settings)
    return EscalationRuntime(
        settings=settings,
        help_requests=help_requests,
        knowledge_store=knowledge_store,
        channel=WebSocketSessionHub(),
    )


def create_app(runtime: EscalationRuntime | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Pass ``runtime`` to serve a pre-built runtime (tests); otherwise one is
    built from ``AppSettings`` at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Initialize and tear down application resources."""
        rt = runtime
        if rt is None:
            settings = AppSettings()
            configure_logging(settings)
            rt = build_runtime(settings)
        app.state.settings = rt.settings
        app.state.runtime = rt
        await rt.start()
        try:
            yield
        finally:
            await rt.stop()

    app = FastAPI(
        title="FrontDesk Escalation Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable(request: Request, exc: StoreUnavailableError) -> JSONResponse:
        logger.error("Store unavailable during %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"error": "Store unavailable", "details": str(exc)})

    app.include_router(health.router)
    app.include_router(agent.router, prefix="/api/agent")
    app.include_router(supervisor.router, prefix="/api")
    return app


def main() -> None:
    import uvicorn

    server = AppSettings().server
    uvicorn.run("frontdesk.api.app:create_app", factory=True, host=server.host, port=server.port)

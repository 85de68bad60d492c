"""tempinbox Server - Core Application

Architecture:
    FastAPI
        /api/health          - Health check
        /api/config          - Effective configuration
        /api/inbox/...       - Inbox session routes (tempinbox.inbox)

The inbox session is started in the application lifespan and torn
down when the server stops.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, FastAPI
from fastapi.responses import RedirectResponse

from tempinbox import __version__, inbox

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    await inbox.on_startup()
    try:
        yield
    finally:
        await inbox.on_shutdown()


def create_app(title: str = "tempinbox", version: str = __version__) -> FastAPI:
    """Build the FastAPI application.

    Call tempinbox.inbox.initialize() first to inject a config or
    client; otherwise on_startup() initializes from config.yaml.
    """
    app = FastAPI(
        title=title,
        version=version,
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
        lifespan=_lifespan,
    )

    core = APIRouter(prefix="/api", tags=["core"])

    @core.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "version": version}

    @core.get("/config")
    async def config() -> dict[str, Any]:
        """Effective configuration of the running inbox."""
        try:
            cfg = inbox._get_state()["config"]
        except RuntimeError:
            from tempinbox.config import load_config

            cfg = load_config()
        return cfg.model_dump()

    @app.get("/", include_in_schema=False)
    async def root() -> RedirectResponse:
        return RedirectResponse(url="/api/inbox/status")

    app.include_router(core)
    app.include_router(inbox.router, prefix="/api/inbox", tags=["inbox"])
    logger.debug("Created app %s v%s", title, version)
    return app

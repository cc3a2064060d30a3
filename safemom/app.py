"""FastAPI application serving the troubleshooting routes."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx
import structlog
from dotenv import load_dotenv
from fastapi import FastAPI

from safemom import __version__
from safemom.api.diagnostics import router as diagnostics_router
from safemom.config import get_base_url
from safemom.logging_config import configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure logging and own the outbound HTTP client."""
    configure_logging()

    async with httpx.AsyncClient(timeout=10.0) as client:
        app.state.http_client = client
        logger.info("lifespan.ready", base_url=get_base_url(), version=__version__)
        yield
        logger.info("lifespan.shutdown")

    app.state.http_client = None


def create_app() -> FastAPI:
    """Build the FastAPI app."""
    load_dotenv()

    app = FastAPI(
        title="SafeMom Diagnostics",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/version")
    async def version() -> dict[str, Any]:
        return {"version": __version__}

    app.include_router(diagnostics_router)
    return app


app = create_app()

"""
FastAPI Main Application - Unified API entry point.

Run with: uvicorn councilsearch.interfaces.api.main:app --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from councilsearch import __version__
from councilsearch.config import configure_logging, get_settings

from .auth import require_admin
from .deps import cleanup_services, init_services
from .middleware import (
    ErrorHandlerMiddleware,
    LatencyMiddleware,
    RequestIDMiddleware,
)
from .routes import health, search, sync

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Starting CouncilSearch API...")
    logger.info(
        "  Search index: %s (connector %s)", settings.elasticsearch_index, settings.connector_id
    )

    await init_services()
    logger.info("  Services initialized")

    yield

    logger.info("Shutting down CouncilSearch API...")
    await cleanup_services()


def create_app() -> FastAPI:
    """Create FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="CouncilSearch API",
        description="Hybrid search over council meeting subjects with safe index sync",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters - first added = innermost)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(LatencyMiddleware)
    app.add_middleware(RequestIDMiddleware)

    allowed_origins = [
        "http://localhost:3000",
        "http://localhost:8000",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:8000",
    ]
    allowed_origins.extend(settings.api_cors_origins)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(search.router, prefix="/api/search", tags=["Search"])
    app.include_router(
        sync.router,
        prefix="/api/admin/sync",
        tags=["Sync"],
        dependencies=[Depends(require_admin)],
    )

    return app


app = create_app()

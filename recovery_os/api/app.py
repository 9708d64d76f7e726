"""FastAPI application for RecoveryOS."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from recovery_os import __version__
from recovery_os.api.middleware import APIKeyMiddleware, RequestLoggingMiddleware
from recovery_os.api.routes import health, patients, protocols, timeline
from recovery_os.config import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting RecoveryOS API")

    from recovery_os.core.database import init_db

    await init_db()

    logger.info("RecoveryOS API started successfully")

    yield

    logger.info("Shutting down RecoveryOS API")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="RecoveryOS API",
        description="Recovery-day timelines and task scheduling for orthopedic surgery patients",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(RequestLoggingMiddleware)

    if settings.api_key:
        app.add_middleware(APIKeyMiddleware, api_key=settings.api_key)

    app.include_router(health.router, tags=["health"])
    app.include_router(protocols.router, prefix="/api/v1", tags=["protocols"])
    app.include_router(patients.router, prefix="/api/v1", tags=["patients"])
    app.include_router(timeline.router, prefix="/api/v1", tags=["timeline"])

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc) if settings.debug_mode else None,
            },
        )

    return app

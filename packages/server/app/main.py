"""
StaticSnack API Server

Entry point for the FastAPI application.
"""

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.core.config import get_settings
from app.core.database import engine
from app.core.errors import error_response, install_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import SecurityHeadersMiddleware, UnhandledErrorMiddleware
from app.core.redis import close_redis
from app.api.v1 import router as functions_v1_router

settings = get_settings()
log = structlog.get_logger()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="StaticSnack",
        description="Content management for GitHub-hosted static sites.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Middleware (order matters — innermost first)
    app.add_middleware(UnhandledErrorMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    install_exception_handlers(app)

    # Function routes
    app.include_router(functions_v1_router, prefix="/functions/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Liveness check."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check endpoint: the database must answer."""
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as exc:
            log.warning("readiness.database_unavailable", error=str(exc))
            return error_response(503, "Database unavailable")
        return {"status": "ready"}

    @app.on_event("startup")
    async def on_startup():
        log.info("StaticSnack starting", storage=settings.storage_backend, rate_limit=settings.rate_limit_backend)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("StaticSnack shutting down")
        await close_redis()

    return app


app = create_app()

"""
FastAPI application factory for shopsync.

Run with:
    uvicorn shopsync.api.main:create_app --factory
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shopsync import __version__
from shopsync.api.middleware.error_handler import ErrorHandlerMiddleware
from shopsync.api.routes import analytics, auth, health, shopify, sync, webhooks
from shopsync.bootstrap import AppContext, build_context
from shopsync.utils.config import Settings, get_settings
from shopsync.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None, context: Optional[AppContext] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Explicit settings; loaded from the environment when None
        context: Prebuilt service graph; built from ``settings`` when None
    """
    if context is None:
        settings = settings or get_settings()
        context = build_context(settings)
    settings = context.settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        setup_logging(settings)
        logger.info("Starting shopsync API...")

        if settings.database_auto_create:
            await context.database.init_models()

        if settings.sync_enabled:
            context.scheduler.start()

        logger.info("API started successfully")

        yield

        logger.info("Shutting down shopsync API...")
        context.scheduler.shutdown()
        await context.database.dispose()

    app = FastAPI(
        title="shopsync",
        description="Multi-tenant Shopify data sync service",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(ErrorHandlerMiddleware)

    app.include_router(shopify.router, tags=["OAuth"])
    app.include_router(webhooks.router, tags=["Webhooks"])
    app.include_router(auth.router, tags=["Authentication"])
    app.include_router(sync.router, prefix="/api", tags=["Sync"])
    app.include_router(analytics.router, prefix="/api/analytics", tags=["Analytics"])
    app.include_router(health.router, prefix="/health", tags=["Health"])

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "name": "shopsync",
            "version": __version__,
            "status": "operational",
            "docs": "/docs",
        }

    return app

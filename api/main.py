"""
FastAPI application initialization
"""

from typing import Optional

import httpx
from fastapi import FastAPI
from api.routes import health, oauth, stats, sync
from core.config import Settings, settings
from core.database import Database
from core.logging import setup_logging
from ingestion.auth.oauth import CredentialManager, CredentialStore, DatabaseTicketCache
from ingestion.runner import SyncRunner
from ingestion.scheduler import SyncScheduler
from ingestion.state import SettingsProgressStore, SettingsStore
import logging
from api.middleware import RequestContextMiddleware

logger = logging.getLogger(__name__)


def create_app(
    database: Optional[Database] = None,
    app_settings: Optional[Settings] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    enable_scheduler: Optional[bool] = None
) -> FastAPI:
    """
    Build the application and the components it owns.

    Args:
        database: Storage handle (defaults to one built from DATABASE_URL)
        app_settings: Settings override
        http_client: Shared client for outbound calls (tests inject a mock transport)
        enable_scheduler: Arm the cron timer on startup (defaults to SCHEDULER_ENABLED)
    """
    app_settings = app_settings or settings
    database = database or Database(app_settings.DATABASE_URL)
    if enable_scheduler is None:
        enable_scheduler = app_settings.SCHEDULER_ENABLED

    app = FastAPI(
        title="Collection Sync API",
        description="Synchronizes a catalog collection and its market value history",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.add_middleware(RequestContextMiddleware)

    store = SettingsStore(database)
    progress = SettingsProgressStore(store)
    credential_store = CredentialStore(store)
    runner = SyncRunner(
        database,
        settings=app_settings,
        progress=progress,
        credential_store=credential_store,
        http_client=http_client
    )

    app.state.settings = app_settings
    app.state.database = database
    app.state.progress = progress
    app.state.runner = runner
    app.state.credential_manager = CredentialManager(
        credential_store,
        DatabaseTicketCache(database),
        settings=app_settings,
        http_client=http_client
    )
    app.state.scheduler = SyncScheduler(
        runner,
        cron_schedule=app_settings.SYNC_CRON_SCHEDULE,
        timezone=app_settings.SYNC_TIMEZONE
    )

    app.include_router(health.router)
    app.include_router(sync.router)
    app.include_router(oauth.router)
    app.include_router(stats.router)

    @app.on_event("startup")
    async def startup_event():
        """Application startup event"""
        logger.info("Starting Collection Sync API")
        logger.info(f"Environment: {app_settings.ENVIRONMENT}")
        logger.info(f"Database: {database.url.split('@')[1] if '@' in database.url else 'configured'}")

        database.open()
        await database.create_all()

        if enable_scheduler:
            app.state.scheduler.start()
        else:
            logger.info("Scheduled sync disabled")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Application shutdown event"""
        logger.info("Shutting down Collection Sync API")
        app.state.scheduler.stop()
        await database.close()

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": "Collection Sync API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/health",
            "endpoints": {
                "sync": "/collection/sync",
                "sync_status": "/collection/sync/status",
                "oauth_setup": "/oauth/setup",
                "auth_status": "/auth/status",
                "stats": "/stats"
            }
        }

    return app


setup_logging()
app = create_app()

"""
Health check endpoint with database and sync status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from api.dependencies import get_db, get_progress_store, get_scheduler
from ingestion.scheduler import SyncScheduler
from ingestion.state import SettingsProgressStore
from models.base import SyncState
from schemas.api import HealthCheckResponse
from datetime import datetime
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    progress: SettingsProgressStore = Depends(get_progress_store),
    scheduler: SyncScheduler = Depends(get_scheduler)
):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Current sync status
    - Whether the sync timer is armed
    """
    db_connected = False
    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {str(e)}")

    sync_status = "unknown"
    if db_connected:
        try:
            sync_status = (await progress.read_status()).status
        except SQLAlchemyError as e:
            logger.error(f"Failed to read sync status: {str(e)}")

    if not db_connected:
        status = "unhealthy"
    elif sync_status == SyncState.ERROR.value:
        status = "degraded"
    else:
        status = "healthy"

    return HealthCheckResponse(
        status=status,
        timestamp=datetime.utcnow(),
        database_connected=db_connected,
        sync_status=sync_status,
        scheduler_running=scheduler.running
    )

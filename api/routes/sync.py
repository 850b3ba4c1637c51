"""
On-demand sync trigger and progress polling endpoints
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from api.dependencies import get_progress_store, get_runner
from core.exceptions import SyncError, SyncInProgressError
from ingestion.runner import SyncRunner
from ingestion.state import SettingsProgressStore
from schemas.api import ErrorResponse, SyncResponse, SyncStatusResponse
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/collection/sync", tags=["Sync"])


@router.post(
    "",
    response_model=SyncResponse,
    responses={409: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
)
async def start_sync(runner: SyncRunner = Depends(get_runner)):
    """Run one sync and wait for it to finish."""
    logger.info("Received request to sync collection")

    try:
        result = await runner.run()
    except SyncInProgressError as e:
        return JSONResponse(
            status_code=409,
            content=ErrorResponse(message="A sync is already running", error=e.message).dict()
        )
    except Exception as e:
        message = e.message if isinstance(e, SyncError) else str(e)
        logger.error(f"Collection sync request failed: {message}")
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(message="Failed to sync collection", error=message).dict()
        )

    return SyncResponse(item_count=result.item_count, message=result.message)


@router.get("/status", response_model=SyncStatusResponse)
async def sync_status(progress: SettingsProgressStore = Depends(get_progress_store)):
    snapshot = await progress.read_status()
    return SyncStatusResponse(
        status=snapshot.status,
        current_item=snapshot.current_item,
        total_items=snapshot.total_items,
        last_error=snapshot.last_error
    )

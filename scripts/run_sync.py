"""
Script to run one collection sync from the shell
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import Database
from core.exceptions import SyncError
from core.logging import setup_logging
from ingestion.runner import SyncRunner

logger = logging.getLogger(__name__)


async def run_sync() -> int:
    """Run one sync; returns the process exit code"""
    database = Database(settings.DATABASE_URL, echo=False)

    try:
        await database.create_all()
        result = await SyncRunner(database, settings=settings).run()
        logger.info(result.message)
        return 0
    except SyncError as e:
        logger.error(f"Sync failed: {e.message}", extra={"error_context": e.to_dict()})
        return 1
    finally:
        await database.close()


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(run_sync()))

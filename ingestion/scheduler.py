import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from core.exceptions import SyncInProgressError
from ingestion.runner import SyncRunner

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "collection_sync"


class SyncScheduler:
    """Arms a cron trigger that invokes the sync runner."""

    def __init__(self, runner: SyncRunner, cron_schedule: str, timezone: str):
        self.runner = runner
        self.cron_schedule = cron_schedule
        self.timezone = timezone
        self.scheduler = AsyncIOScheduler(timezone=timezone)

    def build_trigger(self) -> Optional[CronTrigger]:
        """Parse the cron expression; an invalid one disables scheduling."""
        try:
            return CronTrigger.from_crontab(self.cron_schedule, timezone=self.timezone)
        except (ValueError, TypeError) as e:
            logger.error(
                f"Invalid cron expression '{self.cron_schedule}': {e}. Scheduled sync disabled."
            )
            return None

    async def run_sync_job(self):
        """Job to run one sync; failures are already recorded by the runner"""
        logger.info("Scheduler: Starting collection sync")
        try:
            result = await self.runner.run()
            logger.info(f"Scheduler: {result.message}")
        except SyncInProgressError:
            logger.warning("Scheduler: Sync already in progress, skipping this trigger")
        except Exception as e:
            logger.error(f"Scheduler: Collection sync failed - {e}")

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> bool:
        """Start the scheduler; returns False when the expression was rejected"""
        trigger = self.build_trigger()
        if trigger is None:
            return False

        self.scheduler.add_job(
            self.run_sync_job,
            trigger=trigger,
            id=SYNC_JOB_ID,
            replace_existing=True
        )
        self.scheduler.start()
        logger.info(
            f"Sync scheduler started with '{self.cron_schedule}' ({self.timezone})"
        )
        return True

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Sync scheduler stopped")

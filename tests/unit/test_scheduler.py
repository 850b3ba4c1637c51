import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from apscheduler.triggers.cron import CronTrigger

from core.exceptions import ConfigurationError, SyncInProgressError
from ingestion.runner import SyncResult
from ingestion.scheduler import SYNC_JOB_ID, SyncScheduler


def test_build_trigger_valid_expression():
    scheduler = SyncScheduler(MagicMock(), "0 0 * * *", "Europe/Berlin")

    assert isinstance(scheduler.build_trigger(), CronTrigger)


@pytest.mark.parametrize("expression", ["not a cron", "61 * * * *", "* * *"])
def test_build_trigger_invalid_expression(expression):
    scheduler = SyncScheduler(MagicMock(), expression, "Europe/Berlin")

    assert scheduler.build_trigger() is None


@pytest.mark.asyncio
async def test_start_arms_job():
    scheduler = SyncScheduler(MagicMock(), "*/5 * * * *", "UTC")

    assert scheduler.start() is True
    try:
        assert scheduler.running
        assert scheduler.scheduler.get_job(SYNC_JOB_ID) is not None
    finally:
        scheduler.stop()


@pytest.mark.asyncio
async def test_invalid_expression_is_not_armed():
    scheduler = SyncScheduler(MagicMock(), "every night", "UTC")

    assert scheduler.start() is False
    assert not scheduler.running
    scheduler.stop()


@pytest.mark.asyncio
async def test_job_execution_runs_sync():
    runner = MagicMock()
    runner.run = AsyncMock(return_value=SyncResult(item_count=3, message="done", duration_seconds=0.1))

    await SyncScheduler(runner, "0 0 * * *", "UTC").run_sync_job()

    runner.run.assert_awaited_once()


@pytest.mark.asyncio
async def test_job_swallows_failures():
    runner = MagicMock()
    runner.run = AsyncMock(side_effect=ConfigurationError("DISCOGS_USERNAME is not configured"))

    with patch("ingestion.scheduler.logger") as logger:
        await SyncScheduler(runner, "0 0 * * *", "UTC").run_sync_job()

    assert logger.error.called


@pytest.mark.asyncio
async def test_job_skips_when_sync_in_progress():
    runner = MagicMock()
    runner.run = AsyncMock(side_effect=SyncInProgressError("busy"))

    with patch("ingestion.scheduler.logger") as logger:
        await SyncScheduler(runner, "0 0 * * *", "UTC").run_sync_job()

    assert logger.warning.called
    assert not logger.error.called

"""
Unit tests for the settings store and progress/status surface
"""

import pytest

from ingestion.state import (
    SYNC_CURRENT_ITEM_KEY,
    SYNC_LAST_ERROR_KEY,
    SYNC_STATUS_KEY,
    SYNC_TOTAL_ITEMS_KEY,
    SettingsProgressStore,
    SettingsStore,
)
from models.base import SyncState


@pytest.mark.asyncio
async def test_settings_store_upsert_and_delete(database):
    store = SettingsStore(database)

    await store.set("discogs_username", "first")
    await store.set("discogs_username", "second")
    assert await store.get("discogs_username") == "second"

    await store.delete("discogs_username")
    assert await store.get("discogs_username") is None


@pytest.mark.asyncio
async def test_get_many_fills_missing_keys(database):
    store = SettingsStore(database)
    await store.set("a", "1")

    assert await store.get_many(["a", "b"]) == {"a": "1", "b": None}


@pytest.mark.asyncio
async def test_begin_run_resets_counters_and_error(database):
    store = SettingsStore(database)
    progress = SettingsProgressStore(store)
    await store.set_many({SYNC_CURRENT_ITEM_KEY: "12", SYNC_TOTAL_ITEMS_KEY: "40", SYNC_LAST_ERROR_KEY: "boom"})

    await progress.begin_run()

    status = await progress.read_status()
    assert status.status == "running"
    assert status.current_item == 0
    assert status.total_items == 0
    assert status.last_error is None


@pytest.mark.asyncio
async def test_progress_and_terminal_status(database):
    progress = SettingsProgressStore(SettingsStore(database))

    await progress.begin_run()
    await progress.report_progress(5, 137)
    await progress.report_progress(6, 137)

    status = await progress.read_status()
    assert (status.current_item, status.total_items) == (6, 137)

    await progress.report_status(SyncState.ERROR, "Page fetch failed")
    status = await progress.read_status()
    assert status.status == "error"
    assert status.last_error == "Page fetch failed"

    await progress.begin_run()
    await progress.report_status(SyncState.IDLE)
    status = await progress.read_status()
    assert status.status == "idle"
    assert status.last_error is None


@pytest.mark.asyncio
async def test_read_status_sanitizes_values(database):
    store = SettingsStore(database)
    await store.set_many({
        SYNC_STATUS_KEY: "exploded",
        SYNC_CURRENT_ITEM_KEY: "NaN",
        SYNC_TOTAL_ITEMS_KEY: "",
    })

    status = await SettingsProgressStore(store).read_status()

    assert status.status == "unknown"
    assert status.current_item == 0
    assert status.total_items == 0


@pytest.mark.asyncio
async def test_read_status_with_nothing_stored(database):
    status = await SettingsProgressStore(SettingsStore(database)).read_status()

    assert status.status == "unknown"
    assert status.last_error is None

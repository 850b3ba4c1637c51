"""
Key/value settings storage and the sync progress/status surface.

Progress writes are committed immediately and independently of the sync
transaction so that pollers can watch a run while it is in flight.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, Optional
import logging

from sqlalchemy import delete, select

from core.database import Database
from models.base import SyncState
from models.setting import Setting

logger = logging.getLogger(__name__)

SYNC_STATUS_KEY = "sync_status"
SYNC_CURRENT_ITEM_KEY = "sync_current_item"
SYNC_TOTAL_ITEMS_KEY = "sync_total_items"
SYNC_LAST_ERROR_KEY = "sync_last_error"

PROGRESS_KEYS = (SYNC_STATUS_KEY, SYNC_CURRENT_ITEM_KEY, SYNC_TOTAL_ITEMS_KEY, SYNC_LAST_ERROR_KEY)


class SettingsStore:
    """Read and write rows of the ``settings`` table."""

    def __init__(self, database: Database):
        self.database = database

    async def get(self, key: str) -> Optional[str]:
        async with self.database.session() as session:
            setting = await session.get(Setting, key)
            return setting.value if setting else None

    async def get_many(self, keys: Iterable[str]) -> Dict[str, Optional[str]]:
        keys = list(keys)
        async with self.database.session() as session:
            result = await session.execute(select(Setting).where(Setting.key.in_(keys)))
            found = {s.key: s.value for s in result.scalars().all()}
        return {key: found.get(key) for key in keys}

    async def set(self, key: str, value: Optional[str]):
        await self.set_many({key: value})

    async def set_many(self, values: Dict[str, Optional[str]]):
        """Upsert several keys in one commit"""
        async with self.database.session() as session:
            for key, value in values.items():
                setting = await session.get(Setting, key)
                if setting is None:
                    session.add(Setting(key=key, value=value))
                else:
                    setting.value = value
            await session.commit()
        logger.debug(f"Settings updated: {', '.join(values)}")

    async def delete(self, *keys: str):
        async with self.database.session() as session:
            await session.execute(delete(Setting).where(Setting.key.in_(keys)))
            await session.commit()


@dataclass
class SyncStatusSnapshot:
    """Point-in-time view of the progress keys"""
    status: str
    current_item: int
    total_items: int
    last_error: Optional[str]


class ProgressReporter(ABC):
    """Where the orchestrator publishes run state."""

    @abstractmethod
    async def begin_run(self):
        """Enter RUNNING with counters reset and the last error cleared."""
        pass

    @abstractmethod
    async def report_progress(self, current: int, total: int):
        pass

    @abstractmethod
    async def report_status(self, state: SyncState, error: Optional[str] = None):
        pass


def _as_count(value: Optional[str]) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class SettingsProgressStore(ProgressReporter):
    """Progress reporter backed by the settings table."""

    def __init__(self, store: SettingsStore):
        self.store = store
        self._last_total: Optional[int] = None

    async def begin_run(self):
        self._last_total = 0
        await self.store.set_many({
            SYNC_STATUS_KEY: SyncState.RUNNING.value,
            SYNC_CURRENT_ITEM_KEY: "0",
            SYNC_TOTAL_ITEMS_KEY: "0",
            SYNC_LAST_ERROR_KEY: "",
        })

    async def report_progress(self, current: int, total: int):
        values = {SYNC_CURRENT_ITEM_KEY: str(current)}
        if total != self._last_total:
            values[SYNC_TOTAL_ITEMS_KEY] = str(total)
            self._last_total = total
        await self.store.set_many(values)

    async def report_status(self, state: SyncState, error: Optional[str] = None):
        values = {SYNC_STATUS_KEY: state.value}
        if error is not None:
            values[SYNC_LAST_ERROR_KEY] = error
        await self.store.set_many(values)

    async def read_status(self) -> SyncStatusSnapshot:
        """Read the progress keys the way a poller sees them."""
        values = await self.store.get_many(PROGRESS_KEYS)
        status = values[SYNC_STATUS_KEY] or "unknown"
        if status not in {s.value for s in SyncState}:
            status = "unknown"

        return SyncStatusSnapshot(
            status=status,
            current_item=_as_count(values[SYNC_CURRENT_ITEM_KEY]),
            total_items=_as_count(values[SYNC_TOTAL_ITEMS_KEY]),
            last_error=values[SYNC_LAST_ERROR_KEY] or None,
        )

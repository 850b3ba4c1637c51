"""
Unit tests for the transactional collection loader
"""

import pytest
from datetime import datetime
from sqlalchemy import func, select

from core.exceptions import PersistenceError
from ingestion.loaders.collection_loader import CollectionLoader
from models.collection_item import CollectionItem
from models.value_snapshot import ValueSnapshot
from schemas.collection import CollectionItemCreate, ValueSnapshotCreate


def snapshot(timestamp, total_items):
    return ValueSnapshotCreate(
        timestamp=timestamp,
        total_items=total_items,
        value_min=10.0,
        value_mean=20.0,
        value_max=30.0,
    )


async def count_rows(database, model):
    async with database.session() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar()


@pytest.fixture
def items(release_factory):
    return [
        CollectionItemCreate.from_release(release_factory(i), suggested_value=float(i))
        for i in range(1, 4)
    ]


@pytest.mark.asyncio
async def test_replace_all_writes_items_and_snapshot(database, items):
    loader = CollectionLoader(database)

    written = await loader.replace_all(items, snapshot(datetime(2024, 1, 1), len(items)))

    assert written == 3
    assert await count_rows(database, CollectionItem) == 3
    assert await count_rows(database, ValueSnapshot) == 1

    async with database.session() as session:
        stored = await session.get(CollectionItem, 1)
    assert stored.artist == "Artist A, Artist B"
    assert stored.genres == ["Rock", "Jazz"]
    assert stored.suggested_value == 1.0


@pytest.mark.asyncio
async def test_replace_all_removes_previous_items(database, items, release_factory):
    loader = CollectionLoader(database)
    await loader.replace_all(items, snapshot(datetime(2024, 1, 1), 3))

    replacement = [CollectionItemCreate.from_release(release_factory(99))]
    await loader.replace_all(replacement, snapshot(datetime(2024, 1, 2), 1))

    async with database.session() as session:
        ids = (await session.execute(select(CollectionItem.id))).scalars().all()
    assert ids == [99]
    assert await count_rows(database, ValueSnapshot) == 2


@pytest.mark.asyncio
async def test_empty_collection_still_records_snapshot(database, items):
    loader = CollectionLoader(database)
    await loader.replace_all(items, snapshot(datetime(2024, 1, 1), 3))

    assert await loader.replace_all([], snapshot(datetime(2024, 1, 2), 0)) == 0

    assert await count_rows(database, CollectionItem) == 0
    assert await count_rows(database, ValueSnapshot) == 2


@pytest.mark.asyncio
async def test_failure_rolls_back_everything(database, items, release_factory):
    loader = CollectionLoader(database)
    taken = datetime(2024, 1, 1)
    await loader.replace_all(items, snapshot(taken, 3))

    # Same snapshot timestamp violates the primary key after the items were replaced
    replacement = [CollectionItemCreate.from_release(release_factory(99))]
    with pytest.raises(PersistenceError) as exc_info:
        await loader.replace_all(replacement, snapshot(taken, 1))

    assert exc_info.value.context["operation"] == "REPLACE"
    async with database.session() as session:
        ids = sorted((await session.execute(select(CollectionItem.id))).scalars().all())
    assert ids == [1, 2, 3]
    assert await count_rows(database, ValueSnapshot) == 1

"""
Replace the stored collection and append a value snapshot in one transaction
"""

from typing import List

from sqlalchemy import delete, insert
from sqlalchemy.exc import SQLAlchemyError

from core.database import Database
from core.exceptions import PersistenceError
from models.collection_item import CollectionItem
from models.value_snapshot import ValueSnapshot
from schemas.collection import CollectionItemCreate, ValueSnapshotCreate
import logging

logger = logging.getLogger(__name__)


class CollectionLoader:
    """
    Full-replace loader for the collection table.

    Ensures:
    - The previous item set survives any failure (single transaction, full rollback)
    - The snapshot's item count always matches the rows written in the same run
    """

    def __init__(self, database: Database):
        self.database = database

    async def replace_all(
        self,
        items: List[CollectionItemCreate],
        snapshot: ValueSnapshotCreate
    ) -> int:
        """
        Delete every item, insert ``items`` and append ``snapshot``.

        Args:
            items: Enriched, validated items (unique ids)
            snapshot: Aggregate values for this run

        Returns:
            Number of item rows written

        Raises:
            PersistenceError: If anything in the transaction fails (rolled back)
        """
        rows = [item.dict() for item in items]

        try:
            async with self.database.session() as session:
                async with session.begin():
                    await session.execute(delete(CollectionItem))
                    if rows:
                        await session.execute(insert(CollectionItem), rows)
                    session.add(ValueSnapshot(**snapshot.dict()))
        except SQLAlchemyError as e:
            logger.error(f"Collection replace rolled back: {e}")
            raise PersistenceError(
                "Failed to persist collection items and value snapshot",
                context={
                    "operation": "REPLACE",
                    "table_name": "collection_items",
                    "records_to_load": len(rows)
                },
                original_exception=e
            )

        logger.info(f"Replaced collection with {len(rows)} items")
        return len(rows)

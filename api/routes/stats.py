"""
Collection statistics endpoint: value history, valuable items and distributions
"""
from collections import Counter
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from api.dependencies import get_db
from schemas.api import StatsResponse, ValuableItem, ItemCountPoint, ValuePoint
from models.collection_item import CollectionItem
from models.value_snapshot import ValueSnapshot
from typing import Dict, Iterable, List, Optional
import uuid
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Statistics"])

VALUABLE_ITEMS_LIMIT = 10

VINYL_MARKERS = ("vinyl", " lp", " ep", ' 7"', ' 10"', ' 12"')


def primary_format(descriptor: Optional[str]) -> str:
    """Bucket a free-text format descriptor into a coarse media type"""
    if not descriptor:
        return "Unknown"
    text = descriptor.lower()
    if any(marker in text for marker in VINYL_MARKERS):
        return "Vinyl"
    if "cd" in text or "compact disc" in text:
        return "CD"
    if "cass" in text:
        return "Cassette"
    if "file" in text or "digital" in text:
        return "File"
    return "Other"


def _sorted_counts(values: Iterable[str]) -> Dict[str, int]:
    return dict(Counter(values).most_common())


@router.get("/stats", response_model=StatsResponse)
async def get_stats(db: AsyncSession = Depends(get_db)):
    """
    Get collection statistics.

    Returns:
    - Latest snapshot values and average value per item
    - Item count and value history
    - Top and least valuable items
    - Genre, year and format distributions
    """
    request_id = f"req_{uuid.uuid4().hex[:12]}"

    logger.info(f"[{request_id}] GET /stats")

    # ========== Items ==========

    items_result = await db.execute(select(CollectionItem))
    items: List[CollectionItem] = items_result.scalars().all()

    # ========== Value History ==========

    history_result = await db.execute(select(ValueSnapshot).order_by(ValueSnapshot.timestamp.asc()))
    history: List[ValueSnapshot] = history_result.scalars().all()
    latest = history[-1] if history else None

    total_items = latest.total_items if latest else len(items)
    latest_mean = latest.value_mean if latest else None
    average_value = latest_mean / total_items if total_items > 0 and latest_mean is not None else None

    # ========== Valuable Items ==========

    valued = sorted(
        (item for item in items if item.suggested_value is not None and item.suggested_value > 0),
        key=lambda item: item.suggested_value
    )
    top_items = [ValuableItem.from_orm(item) for item in reversed(valued[-VALUABLE_ITEMS_LIMIT:])]
    least_items = [ValuableItem.from_orm(item) for item in valued[:VALUABLE_ITEMS_LIMIT]]

    # ========== Distributions ==========

    genres = [
        genre.strip()
        for item in items
        for genre in (item.genres or [])
        if isinstance(genre, str) and genre.strip()
    ]
    years = [str(item.year) if item.year and item.year > 0 else "Unknown" for item in items]
    formats = [primary_format(item.format) for item in items]

    logger.info(f"[{request_id}] Stats: {len(items)} items, {len(history)} snapshots")

    return StatsResponse(
        total_items=total_items,
        latest_value_min=latest.value_min if latest else None,
        latest_value_mean=latest_mean,
        latest_value_max=latest.value_max if latest else None,
        average_value_per_item=average_value,
        item_count_history=[
            ItemCountPoint(timestamp=row.timestamp, count=row.total_items) for row in history
        ],
        value_history=[
            ValuePoint(timestamp=row.timestamp, min=row.value_min, mean=row.value_mean, max=row.value_max)
            for row in history
        ],
        genre_distribution=_sorted_counts(genres),
        year_distribution=_sorted_counts(years),
        format_distribution=_sorted_counts(formats),
        top_valuable_items=top_items,
        least_valuable_items=least_items
    )

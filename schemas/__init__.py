"""
Pydantic schemas for data validation and serialization.

Schemas:
    collection: Catalog record mapping, value snapshots and aggregate values
    api: API endpoint request/response schemas

Usage:
    from schemas.collection import CollectionItemCreate, ValueSnapshotCreate
    from schemas.api import SyncStatusResponse, StatsResponse

Example:
    # Map a listing entry onto the item schema
    item = CollectionItemCreate.from_release(release, suggested_value=24.5)

    assert item.id == release["instance_id"]

Validation:
    - Unknown years (0) become null
    - Genre/style tags are normalized to lists of strings
    - Timestamps are stored as naive UTC
"""

__all__ = [
    "CollectionItemCreate",
    "ValueSnapshotCreate",
    "CollectionValue",
    "SyncResponse",
    "SyncStatusResponse",
    "AuthStatusResponse",
    "StatsResponse",
]

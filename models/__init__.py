"""
SQLAlchemy ORM models for database tables.

Models:
    base: Base declarative class and the SyncState enum
    collection_item: Enriched collection items (replaced on every sync)
    value_snapshot: Append-only value history, one row per sync
    setting: Key/value settings (progress, credential)
    handshake_ticket: Expiring OAuth request token secrets

Usage:
    from models import CollectionItem, ValueSnapshot, Setting
    from models.base import SyncState
"""

from models.base import Base, SyncState
from models.collection_item import CollectionItem
from models.value_snapshot import ValueSnapshot
from models.setting import Setting
from models.handshake_ticket import HandshakeTicket

__all__ = [
    "Base",
    "SyncState",
    "CollectionItem",
    "ValueSnapshot",
    "Setting",
    "HandshakeTicket",
]

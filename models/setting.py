from sqlalchemy import Column, String, Text, DateTime
from datetime import datetime
from models.base import Base


class Setting(Base):
    """
    Small key/value surface.

    Holds sync progress (sync_status, sync_current_item, sync_total_items,
    sync_last_error) and the long-lived access credential.
    """
    __tablename__ = "settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

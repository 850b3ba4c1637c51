from sqlalchemy import Column, Integer, Float, DateTime
from models.base import Base


class ValueSnapshot(Base):
    """
    Append-only history of collection size and aggregate value.

    Exactly one row is written per successful sync run, inside the same
    transaction that replaces the item set, so ``total_items`` always matches
    the item rows of that run.
    """
    __tablename__ = "collection_stats_history"

    timestamp = Column(DateTime, primary_key=True)
    total_items = Column(Integer, nullable=False)
    value_min = Column(Float, nullable=True)
    value_mean = Column(Float, nullable=True)  # Median reported by the catalog service
    value_max = Column(Float, nullable=True)

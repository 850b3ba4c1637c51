from sqlalchemy import Column, BigInteger, Integer, String, Text, Float, DateTime, JSON, Index
from models.base import Base


class CollectionItem(Base):
    """
    One release instance in the user's collection, enriched with a value estimate.

    Lifecycle:
    - The full set is deleted and re-inserted in one transaction per sync run
    - Never updated outside a run; read-only for reporting

    Field Mapping (catalog record -> column):
    - instance_id -> id
    - id / basic_information.id -> release_id
    - basic_information.artists[].name -> artist (", " joined)
    - basic_information.formats -> format ("1 x Vinyl (LP, Album)"; "; " joined)
    - basic_information.genres / styles -> genres / styles (JSON arrays)
    - basic_information.cover_image -> cover_image_url
    - date_added -> added_date
    - notes[].value -> notes
    """
    __tablename__ = "collection_items"

    id = Column(BigInteger, primary_key=True, autoincrement=False)  # Instance ID
    release_id = Column(BigInteger, nullable=False, index=True)

    artist = Column(String(1000), nullable=True, index=True)
    title = Column(String(1000), nullable=True)
    year = Column(Integer, nullable=True, index=True)
    format = Column(Text, nullable=True)
    genres = Column(JSON, nullable=True)
    styles = Column(JSON, nullable=True)
    cover_image_url = Column(String(2048), nullable=True)

    added_date = Column(DateTime, nullable=False, index=True)
    folder_id = Column(BigInteger, nullable=True)
    rating = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    condition = Column(String(100), nullable=True)

    # Valuation
    suggested_value = Column(Float, nullable=True)
    last_value_check = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_collection_items_suggested_value", "suggested_value"),
    )

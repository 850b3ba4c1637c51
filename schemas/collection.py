"""
Pydantic schemas for collection records with validation
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone


def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def is_valid_release(release: Any) -> bool:
    """A listing entry is usable when it has a release id and basic information."""
    return (
        isinstance(release, dict)
        and bool(release.get("id"))
        and isinstance(release.get("basic_information"), dict)
    )


def _entries(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def describe_formats(formats: Optional[List[Dict[str, Any]]]) -> Optional[str]:
    """Render format entries as ``"1 x Vinyl (LP, Album); 1 x CD"``."""
    parts = []
    for entry in _entries(formats):
        if not isinstance(entry, dict):
            continue
        text = f"{entry.get('qty', '1')} x {entry.get('name', 'Unknown')}"
        descriptions = entry.get("descriptions")
        if isinstance(descriptions, list) and descriptions:
            text += f" ({', '.join(str(d) for d in descriptions)})"
        parts.append(text)
    return "; ".join(parts) or None


class CollectionItemCreate(BaseModel):
    """
    Schema for one enriched collection item, ready for persistence.

    Built from a raw listing entry with ``from_release``.
    """

    id: int = Field(..., description="Instance ID, unique per collection entry")
    release_id: int

    artist: Optional[str] = None
    title: Optional[str] = None
    year: Optional[int] = None
    format: Optional[str] = None
    genres: List[str] = Field(default_factory=list)
    styles: List[str] = Field(default_factory=list)
    cover_image_url: Optional[str] = Field(None, max_length=2048)

    added_date: datetime
    folder_id: Optional[int] = None
    rating: Optional[int] = Field(None, ge=0, le=5)
    notes: Optional[str] = None
    condition: Optional[str] = None

    suggested_value: Optional[float] = None
    last_value_check: Optional[datetime] = None

    @validator("year", pre=True)
    def clean_year(cls, v):
        """The catalog reports an unknown year as 0"""
        if not v:
            return None
        return v

    @validator("genres", "styles", pre=True)
    def clean_tags(cls, v):
        """Ensure tag fields are lists of strings"""
        if v is None:
            return []
        if isinstance(v, str):
            return [t.strip() for t in v.split(",") if t.strip()]
        if isinstance(v, list):
            return [str(t).strip() for t in v if str(t).strip()]
        return []

    @validator("added_date", "last_value_check")
    def store_as_utc(cls, v):
        return _to_naive_utc(v)

    @classmethod
    def from_release(
        cls,
        release: Dict[str, Any],
        suggested_value: Optional[float] = None,
        last_value_check: Optional[datetime] = None
    ) -> "CollectionItemCreate":
        """
        Map a collection listing entry onto the item schema.

        Raises:
            pydantic.ValidationError: If required fields are missing or malformed
        """
        info = release.get("basic_information") or {}
        artists = ", ".join(
            str(a["name"]) for a in _entries(info.get("artists"))
            if isinstance(a, dict) and a.get("name")
        )
        notes = "; ".join(
            str(n.get("value")) for n in _entries(release.get("notes"))
            if isinstance(n, dict) and n.get("value")
        )

        return cls(
            id=release.get("instance_id"),
            release_id=release.get("id") or info.get("id"),
            artist=artists or "Unknown Artist",
            title=info.get("title") or "Unknown Title",
            year=info.get("year"),
            format=describe_formats(info.get("formats")),
            genres=info.get("genres"),
            styles=info.get("styles"),
            cover_image_url=info.get("cover_image") or None,
            added_date=release.get("date_added"),
            folder_id=release.get("folder_id"),
            rating=release.get("rating"),
            notes=notes or None,
            condition=release.get("condition"),
            suggested_value=suggested_value,
            last_value_check=last_value_check,
        )


class ValueSnapshotCreate(BaseModel):
    """Schema for one value history row"""

    timestamp: datetime
    total_items: int = Field(..., ge=0)
    value_min: Optional[float] = None
    value_mean: Optional[float] = None
    value_max: Optional[float] = None

    @validator("timestamp")
    def store_as_utc(cls, v):
        return _to_naive_utc(v)


class CollectionValue(BaseModel):
    """Aggregate value strings as reported by the catalog, e.g. ``"$1,234.56"``"""

    minimum: Optional[str] = None
    median: Optional[str] = None
    maximum: Optional[str] = None

    class Config:
        extra = "ignore"

    @validator("minimum", "median", "maximum", pre=True)
    def amount_as_text(cls, v):
        """Bare numbers are kept as text; any other shape means unknown"""
        if isinstance(v, bool):
            return None
        if isinstance(v, (int, float)):
            return str(v)
        if not isinstance(v, str):
            return None
        return v

"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict
from datetime import datetime


class APIModel(BaseModel):
    """Base for API bodies: camelCase on the wire, snake_case in Python"""

    class Config:
        populate_by_name = True


class ErrorResponse(APIModel):
    message: str
    error: Optional[str] = None


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    database_connected: bool
    sync_status: str = "unknown"
    scheduler_running: bool = False

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "sync_status": "idle",
                "scheduler_running": True
            }
        }


# ============================================================================
# Sync Schemas
# ============================================================================

class SyncResponse(APIModel):
    """Result of an on-demand sync"""
    item_count: int = Field(..., alias="itemCount")
    message: str


class SyncStatusResponse(APIModel):
    """Progress keys as seen by a poller"""
    status: str = Field(..., description="idle, running, error or unknown")
    current_item: int = Field(0, alias="currentItem")
    total_items: int = Field(0, alias="totalItems")
    last_error: Optional[str] = Field(None, alias="lastError")

    class Config:
        json_schema_extra = {
            "example": {
                "status": "running",
                "currentItem": 42,
                "totalItems": 137,
                "lastError": None
            }
        }


# ============================================================================
# OAuth Schemas
# ============================================================================

class OAuthSetupResponse(APIModel):
    status: str = Field(..., description="already_authenticated or auth_required")
    message: str
    authorize_url: Optional[str] = Field(None, alias="authorizeUrl")
    request_token: Optional[str] = Field(None, alias="requestToken")
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")
    instructions: List[str] = Field(default_factory=list)


class OAuthCallbackRequest(APIModel):
    """Verification code entered by the user plus the token from setup"""
    verifier: Optional[str] = None
    request_token: Optional[str] = Field(None, alias="requestToken")

    @validator("verifier", "request_token")
    def strip_blank(cls, v):
        if v is None:
            return None
        v = v.strip()
        return v or None


class OAuthCallbackResponse(APIModel):
    status: str
    message: str
    username: Optional[str] = None
    tokens_stored: bool = Field(True, alias="tokensStored")
    warning: Optional[str] = None


class AuthStatusResponse(APIModel):
    is_authenticated: bool = Field(..., alias="isAuthenticated")
    username: Optional[str] = None


# ============================================================================
# Statistics Schemas
# ============================================================================

class ValuableItem(APIModel):
    id: int
    release_id: int
    artist: Optional[str] = None
    title: Optional[str] = None
    cover_image_url: Optional[str] = None
    condition: Optional[str] = None
    suggested_value: Optional[float] = None

    class Config:
        from_attributes = True


class ItemCountPoint(APIModel):
    timestamp: datetime
    count: int


class ValuePoint(APIModel):
    timestamp: datetime
    min: Optional[float] = None
    mean: Optional[float] = None
    max: Optional[float] = None


class StatsResponse(APIModel):
    """Reporting view over the stored collection and its value history"""
    total_items: int = Field(..., alias="totalItems")
    latest_value_min: Optional[float] = Field(None, alias="latestValueMin")
    latest_value_mean: Optional[float] = Field(None, alias="latestValueMean")
    latest_value_max: Optional[float] = Field(None, alias="latestValueMax")
    average_value_per_item: Optional[float] = Field(None, alias="averageValuePerItem")

    item_count_history: List[ItemCountPoint] = Field(default_factory=list, alias="itemCountHistory")
    value_history: List[ValuePoint] = Field(default_factory=list, alias="valueHistory")

    genre_distribution: Dict[str, int] = Field(default_factory=dict, alias="genreDistribution")
    year_distribution: Dict[str, int] = Field(default_factory=dict, alias="yearDistribution")
    format_distribution: Dict[str, int] = Field(default_factory=dict, alias="formatDistribution")

    top_valuable_items: List[ValuableItem] = Field(default_factory=list, alias="topValuableItems")
    least_valuable_items: List[ValuableItem] = Field(default_factory=list, alias="leastValuableItems")

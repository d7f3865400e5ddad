# hotcontent/schemas/hot.py
"""
Schemas for the public hot feed.

GET  /v1/hot                     - Approved items ordered by trending score
POST /v1/hot/{media_id}/engagement - Record views/likes/shares/clicks
"""

from datetime import datetime

from pydantic import BaseModel, Field


class HotItem(BaseModel):
    """A single approved content item."""

    id: str
    entity_name: str = Field(..., description="Display name of the public figure")
    platform: str
    source_url: str = Field(..., description="Where the content lives (metadata only)")
    image_url: str | None = None
    thumbnail_url: str | None = None
    media_type: str
    is_embed: bool = Field(..., description="Rendered through the platform's embed")
    category: str | None = None
    caption: str | None = None
    trending_score: float
    published_at: datetime | None = None


class HotFeedResponse(BaseModel):
    """Response from the hot feed endpoint."""

    items: list[HotItem] = Field(default_factory=list, description="Items sorted by trending score")
    generated_at: datetime = Field(..., description="When this list was generated")
    category: str | None = Field(None, description="Category filter applied, if any")


class EngagementRequest(BaseModel):
    """Counter increments. All default to zero."""

    views: int = Field(0, ge=0)
    likes: int = Field(0, ge=0)
    shares: int = Field(0, ge=0)
    clicks: int = Field(0, ge=0)


class EngagementResponse(BaseModel):
    id: str
    views: int
    likes: int
    shares: int
    clicks: int
    engagement_rate: float

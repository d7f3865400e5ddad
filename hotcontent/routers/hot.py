# hotcontent/routers/hot.py
"""
Public hot feed endpoints.

GET  /v1/hot                        - Approved items ordered by trending score
POST /v1/hot/{media_id}/engagement  - Record engagement counters
"""

import logging
import uuid
from datetime import datetime

from cachetools import TTLCache
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from hotcontent.database import get_db
from hotcontent.errors import PersistenceError
from hotcontent.schemas.hot import EngagementRequest, EngagementResponse, HotFeedResponse, HotItem
from hotcontent.services.learning import EngagementLearningService
from hotcontent.services.persistence import HotMediaRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/hot", tags=["hot"])

# Cache for the hot feed (5 minute TTL)
_hot_cache: TTLCache = TTLCache(maxsize=50, ttl=300)


def _get_cache_key(limit: int, category: str | None) -> str:
    """Generate cache key for the hot feed."""
    return f"hot_{limit}_{category or 'all'}"


def clear_hot_cache() -> None:
    _hot_cache.clear()


@router.get("", response_model=HotFeedResponse)
def get_hot_feed(
    limit: int = Query(20, ge=1, le=100, description="Max items (1-100, default 20)"),
    category: str | None = Query(None, description="Restrict to one category"),
    db: Session = Depends(get_db),
) -> HotFeedResponse:
    """
    Get approved content ordered by trending score.

    Only approved and auto-published items appear. Results are cached for
    5 minutes, so moderation changes can take that long to show.
    """
    cache_key = _get_cache_key(limit, category)

    if cache_key in _hot_cache:
        logger.debug("Hot feed cache hit")
        return _hot_cache[cache_key]

    items = HotMediaRepository(db).list_hot(limit=limit, category=category)
    result = HotFeedResponse(
        items=[
            HotItem(
                id=str(item.id),
                entity_name=item.entity_name,
                platform=item.platform,
                source_url=item.source_url,
                image_url=item.image_url,
                thumbnail_url=item.thumbnail_url,
                media_type=item.media_type,
                is_embed=item.is_embed,
                category=item.category,
                caption=item.caption,
                trending_score=item.trending_score or 0.0,
                published_at=item.published_at,
            )
            for item in items
        ],
        generated_at=datetime.utcnow(),
        category=category,
    )

    _hot_cache[cache_key] = result
    logger.debug(f"Generated hot feed with {len(result.items)} items")

    return result


@router.post("/{media_id}/engagement", response_model=EngagementResponse)
def record_engagement(
    media_id: str,
    request: EngagementRequest,
    db: Session = Depends(get_db),
) -> EngagementResponse:
    """Add to the item's counters. Trending scores move on the next learning run."""
    try:
        media_uuid = uuid.UUID(media_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid media ID format")

    try:
        media = EngagementLearningService(db).record_engagement(
            media_uuid,
            views=request.views,
            likes=request.likes,
            shares=request.shares,
            clicks=request.clicks,
        )
    except PersistenceError as e:
        logger.error(f"Engagement write failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to record engagement")

    if media is None:
        raise HTTPException(status_code=404, detail="Media not found")

    return EngagementResponse(
        id=str(media.id),
        views=media.views,
        likes=media.likes,
        shares=media.shares,
        clicks=media.clicks,
        engagement_rate=media.engagement_rate,
    )

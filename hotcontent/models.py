# hotcontent/models.py
"""
Hot-content database models.

Tables:
- Celebrity: canonical discovered entities, keyed by merge_key
- CelebritySocialProfile: platform handles per entity
- HotMedia: content candidates (metadata only, never image bytes)
- MediaEntity: alternate metadata cache filled by metadata refresh
- LearningInsight: latest engagement insight per entity/category
"""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from hotcontent.database import Base

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB, "postgresql")


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------


class EntityType(str, Enum):
    """Kinds of public figures tracked by the pipeline."""

    ACTRESS = "actress"
    ANCHOR = "anchor"
    MODEL = "model"
    INFLUENCER = "influencer"


class HotMediaStatus(str, Enum):
    """Storage status of a content candidate."""

    DRAFT = "draft"
    APPROVED = "approved"
    ARCHIVED = "archived"


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"
    NEW = "new"


# -----------------------------------------------------------------------------
# Entities
# -----------------------------------------------------------------------------


class Celebrity(Base):
    """
    Canonical entity record.

    hot_score is deliberately absent: it is recomputed from these inputs
    on every run.
    """

    __tablename__ = "celebrities"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    merge_key = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    name_te = Column(String(255), nullable=True)

    wikidata_id = Column(String(32), nullable=True, index=True)
    tmdb_id = Column(Integer, nullable=True, index=True)
    imdb_id = Column(String(32), nullable=True)

    entity_type = Column(String(32), nullable=False, default=EntityType.ACTRESS.value)
    occupations = Column(JSONType, nullable=True)
    birth_date = Column(String(32), nullable=True)
    wikipedia_url = Column(Text, nullable=True)

    popularity_score = Column(Float, nullable=False, default=0.0)
    tmdb_popularity = Column(Float, nullable=False, default=0.0)
    trend_score = Column(Float, nullable=False, default=0.0)
    previous_trend_score = Column(Float, nullable=True)
    trend_direction = Column(String(16), nullable=True)

    discovery_source = Column(String(32), nullable=False)
    sources = Column(JSONType, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    deactivated_at = Column(DateTime, nullable=True)
    deactivation_reason = Column(Text, nullable=True)

    discovered_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    last_seen_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    social_profiles = relationship(
        "CelebritySocialProfile", back_populates="celebrity", cascade="all, delete-orphan"
    )
    media = relationship("HotMedia", back_populates="celebrity")

    __table_args__ = (
        Index("ix_celebrities_active_popularity", "is_active", "popularity_score"),
    )


class CelebritySocialProfile(Base):
    """A platform presence for an entity."""

    __tablename__ = "celebrity_social_profiles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    celebrity_id = Column(Uuid, ForeignKey("celebrities.id"), nullable=False)
    platform = Column(String(32), nullable=False)
    handle = Column(String(255), nullable=False)
    profile_url = Column(Text, nullable=True)
    confidence_score = Column(Integer, nullable=False, default=0)
    verified = Column(Boolean, nullable=False, default=False)
    source = Column(String(32), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True)

    celebrity = relationship("Celebrity", back_populates="social_profiles")

    __table_args__ = (
        UniqueConstraint("celebrity_id", "platform", name="uq_social_profile_platform"),
    )


# -----------------------------------------------------------------------------
# Content
# -----------------------------------------------------------------------------


class HotMedia(Base):
    """
    Content candidate. Only URLs and license tier are stored.

    moderation_state carries the content state machine value; status is
    the coarse storage state derived from it.
    """

    __tablename__ = "hot_media"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    celebrity_id = Column(Uuid, ForeignKey("celebrities.id"), nullable=False)
    entity_name = Column(String(255), nullable=False)

    platform = Column(String(32), nullable=False)
    source_url = Column(Text, nullable=False)
    image_url = Column(Text, nullable=True)
    thumbnail_url = Column(Text, nullable=True)
    media_type = Column(String(32), nullable=False, default="profile")
    license_type = Column(String(32), nullable=False, default="unknown")
    confidence_score = Column(Integer, nullable=False, default=0)
    is_embed = Column(Boolean, nullable=False, default=False)

    category = Column(String(32), nullable=True)
    caption = Column(Text, nullable=True)

    safety_risk = Column(String(16), nullable=False, default="safe")
    safety_flags = Column(JSONType, nullable=True)
    requires_review = Column(Boolean, nullable=False, default=False)
    is_blocked = Column(Boolean, nullable=False, default=False)
    blocked_reason = Column(Text, nullable=True)
    moderation_state = Column(String(32), nullable=False)
    moderation_note = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default=HotMediaStatus.DRAFT.value)

    views = Column(Integer, nullable=False, default=0)
    likes = Column(Integer, nullable=False, default=0)
    shares = Column(Integer, nullable=False, default=0)
    clicks = Column(Integer, nullable=False, default=0)
    engagement_rate = Column(Float, nullable=False, default=0.0)
    trending_score = Column(Float, nullable=False, default=0.0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True)
    published_at = Column(DateTime, nullable=True)
    archived_at = Column(DateTime, nullable=True)
    last_engaged_at = Column(DateTime, nullable=True)

    celebrity = relationship("Celebrity", back_populates="media")

    __table_args__ = (
        UniqueConstraint("celebrity_id", "platform", "source_url", name="uq_hot_media_entity_platform_url"),
        Index("ix_hot_media_status_trending", "status", "trending_score"),
        Index("ix_hot_media_moderation_state", "moderation_state"),
    )


class MediaEntity(Base):
    """Cached per-entity metadata from the refresh fallback chain."""

    __tablename__ = "media_entities"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name_key = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    entity_type = Column(String(32), nullable=True)
    tmdb_id = Column(Integer, nullable=True)
    wikipedia_url = Column(Text, nullable=True)
    image_sources = Column(JSONType, nullable=True)
    trending_keywords = Column(JSONType, nullable=True)
    strategy_errors = Column(JSONType, nullable=True)
    last_fetched_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


class LearningInsight(Base):
    """Latest engagement insight for one entity or category."""

    __tablename__ = "learning_insights"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    dimension_type = Column(String(16), nullable=False)  # entity | category
    dimension_value = Column(String(255), nullable=False)
    trend = Column(String(16), nullable=False)
    engagement = Column(Float, nullable=False, default=0.0)
    cohort_average = Column(Float, nullable=False, default=0.0)
    recommendation = Column(Text, nullable=False)
    generated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("dimension_type", "dimension_value", name="uq_learning_insight_dimension"),
    )

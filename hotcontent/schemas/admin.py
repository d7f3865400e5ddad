# hotcontent/schemas/admin.py
"""
Schemas for admin pipeline, learning and moderation endpoints.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from hotcontent.constants import DiscoveryDefaults

# -----------------------------------------------------------------------------
# Pipeline
# -----------------------------------------------------------------------------


class PipelineRunRequest(BaseModel):
    """Request to trigger one discovery batch."""

    entity_types: list[str] | None = Field(None, description="Entity types to include (default: all)")
    sources: list[str] | None = Field(None, description="Connectors to query (default: all)")
    limit: int = Field(DiscoveryDefaults.INGEST_LIMIT, ge=1, le=500, description="Max content candidates")
    top_n: int | None = Field(None, ge=1, description="Only gate the top N ranked entities")
    categories: list[str] | None = Field(None, description="Restrict candidates to these categories")
    dry_run: bool = Field(False, description="Run every stage but write nothing")


class PipelineRunResponse(BaseModel):
    """Batch counts. Field names are the public camelCase contract."""

    discovered: int
    validated: int
    autoPublished: int
    queuedForReview: int
    blocked: int
    errors: list[str] = Field(default_factory=list)
    run_id: str | None = None


# -----------------------------------------------------------------------------
# Learning
# -----------------------------------------------------------------------------


class InsightResponse(BaseModel):
    dimension_type: str = Field(..., description="entity | category")
    dimension_value: str
    trend: str = Field(..., description="up | down | stable against the cohort average")
    engagement: float
    cohort_average: float
    recommendation: str


class LearningRunResponse(BaseModel):
    """Response from a learning run."""

    items_scored: int
    items_updated: int
    entities_updated: int
    insights: list[InsightResponse] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class RecommendationsResponse(BaseModel):
    """What the next batch should focus on."""

    priority_names: list[str] = Field(default_factory=list, description="Entities ordered by priority score")
    recommended_categories: list[str] = Field(default_factory=list, description="Categories trending up")
    insights: list[InsightResponse] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Candidates
# -----------------------------------------------------------------------------


class RankedCandidateResponse(BaseModel):
    name: str
    entity_type: str
    hot_score: float
    components: dict[str, float]
    primary_platform: str | None = None
    social_profiles_count: int
    content_count: int
    has_safe_embeds: bool
    is_eligible: bool
    ineligibility_reasons: list[str] = Field(default_factory=list)


class CandidatesResponse(BaseModel):
    candidates: list[RankedCandidateResponse] = Field(default_factory=list)
    total: int
    eligible: int


# -----------------------------------------------------------------------------
# Celebrities
# -----------------------------------------------------------------------------


class DeactivateRequest(BaseModel):
    reason: str | None = Field(None, max_length=500, description="Why the entity is being removed")


class CelebrityResponse(BaseModel):
    id: str
    name: str
    entity_type: str
    is_active: bool
    deactivated_at: datetime | None = None
    deactivation_reason: str | None = None


# -----------------------------------------------------------------------------
# Moderation
# -----------------------------------------------------------------------------


class ModerateRequest(BaseModel):
    """Manual moderation move."""

    action: Literal["approve", "reject", "unpublish", "requeue"]
    note: str | None = Field(None, max_length=1000)


class MediaItemResponse(BaseModel):
    """One content candidate as a moderator sees it."""

    id: str
    entity_name: str
    platform: str
    source_url: str
    image_url: str | None = None
    thumbnail_url: str | None = None
    media_type: str
    license_type: str
    is_embed: bool
    category: str | None = None
    caption: str | None = None
    confidence_score: int
    safety_risk: str
    safety_flags: list[str] = Field(default_factory=list)
    blocked_reason: str | None = None
    moderation_state: str
    moderation_note: str | None = None
    status: str
    created_at: datetime
    published_at: datetime | None = None


class ReviewQueueResponse(BaseModel):
    items: list[MediaItemResponse] = Field(default_factory=list)
    total: int

# hotcontent/routers/admin.py
"""
Admin endpoints for pipeline runs, learning and moderation.

All routes require the X-API-Key header.

POST /v1/pipeline/run                    - Run one discovery batch
POST /v1/learning/run                    - Recompute engagement/trending scores
GET  /v1/learning/recommendations        - Priority entities and categories
GET  /v1/candidates                      - Rank stored active entities
POST /v1/celebrities/{id}/deactivate     - Administrative soft delete
POST /v1/celebrities/{id}/activate       - Restore a deactivated entity
GET  /v1/media/review-queue              - Items waiting for a moderator
POST /v1/media/{id}/moderate             - approve | reject | unpublish | requeue
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from hotcontent import models
from hotcontent.auth import require_admin_key
from hotcontent.config import get_settings
from hotcontent.constants import DiscoveryDefaults
from hotcontent.database import get_db
from hotcontent.errors import ConfigurationError, InvalidTransitionError, PersistenceError
from hotcontent.schemas.admin import (
    CandidatesResponse,
    CelebrityResponse,
    DeactivateRequest,
    InsightResponse,
    LearningRunResponse,
    MediaItemResponse,
    ModerateRequest,
    PipelineRunRequest,
    PipelineRunResponse,
    RankedCandidateResponse,
    RecommendationsResponse,
    ReviewQueueResponse,
)
from hotcontent.services.connectors import ALL_SOURCES
from hotcontent.services.learning import EngagementLearningService, LearningConfig
from hotcontent.services.orchestrator import AutoPipelineOrchestrator, RunOptions
from hotcontent.services.persistence import CelebrityRepository, HotMediaRepository
from hotcontent.services.safety_gate import ContentState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["admin"])

MODERATION_ACTIONS = {
    "approve": ContentState.APPROVED,
    "reject": ContentState.REJECTED,
    "unpublish": ContentState.REJECTED,
    "requeue": ContentState.QUEUED_FOR_REVIEW,
}


def _parse_id(value: str, label: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {label} ID format")


def _media_item(media: models.HotMedia) -> MediaItemResponse:
    return MediaItemResponse(
        id=str(media.id),
        entity_name=media.entity_name,
        platform=media.platform,
        source_url=media.source_url,
        image_url=media.image_url,
        thumbnail_url=media.thumbnail_url,
        media_type=media.media_type,
        license_type=media.license_type,
        is_embed=media.is_embed,
        category=media.category,
        caption=media.caption,
        confidence_score=media.confidence_score,
        safety_risk=media.safety_risk,
        safety_flags=sorted(media.safety_flags or []),
        blocked_reason=media.blocked_reason,
        moderation_state=media.moderation_state,
        moderation_note=media.moderation_note,
        status=media.status,
        created_at=media.created_at,
        published_at=media.published_at,
    )


def _celebrity(celebrity: models.Celebrity) -> CelebrityResponse:
    return CelebrityResponse(
        id=str(celebrity.id),
        name=celebrity.name,
        entity_type=celebrity.entity_type,
        is_active=celebrity.is_active,
        deactivated_at=celebrity.deactivated_at,
        deactivation_reason=celebrity.deactivation_reason,
    )


# -----------------------------------------------------------------------------
# Pipeline
# -----------------------------------------------------------------------------


@router.post("/pipeline/run", response_model=PipelineRunResponse)
async def run_pipeline(
    request: PipelineRunRequest = PipelineRunRequest(),
    db: Session = Depends(get_db),
    _: None = Depends(require_admin_key),
) -> PipelineRunResponse:
    """
    Run one discovery batch: discover, resolve, enrich, score, gate, persist.

    Per-source and per-item failures are reported in errors; the counts
    cover only what succeeded.
    """
    entity_types = tuple(request.entity_types or DiscoveryDefaults.ENTITY_TYPES)
    unknown = [t for t in entity_types if t not in DiscoveryDefaults.ENTITY_TYPES]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown entity type(s): {', '.join(unknown)}")

    sources = tuple(request.sources or ALL_SOURCES)
    unknown = [s for s in sources if s not in ALL_SOURCES]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown source(s): {', '.join(unknown)}")

    options = RunOptions(
        entity_types=entity_types,
        sources=sources,
        limit=request.limit,
        top_n=request.top_n,
        dry_run=request.dry_run,
        categories=tuple(request.categories) if request.categories else None,
    )

    try:
        result = await AutoPipelineOrchestrator(db).run_batch(options)
    except ConfigurationError as e:
        logger.error(f"Pipeline configuration error: {e}")
        raise HTTPException(status_code=500, detail="Pipeline configuration error")

    return PipelineRunResponse(**result.to_dict(), run_id=result.run_id)


# -----------------------------------------------------------------------------
# Learning
# -----------------------------------------------------------------------------


@router.post("/learning/run", response_model=LearningRunResponse)
def run_learning(
    dry_run: bool = Query(False, description="Compute without writing"),
    db: Session = Depends(get_db),
    _: None = Depends(require_admin_key),
) -> LearningRunResponse:
    """Recompute engagement rates and trending scores, then refresh insights."""
    try:
        config = LearningConfig.from_settings(get_settings())
        result = EngagementLearningService(db, dry_run=dry_run, config=config).run()
    except PersistenceError as e:
        logger.error(f"Learning run failed to persist: {e}")
        raise HTTPException(status_code=500, detail="Learning run failed to persist")

    return LearningRunResponse(**result.to_dict())


@router.get("/learning/recommendations", response_model=RecommendationsResponse)
def get_recommendations(
    limit: int = Query(DiscoveryDefaults.RECOMMENDATION_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
    _: None = Depends(require_admin_key),
) -> RecommendationsResponse:
    config = LearningConfig.from_settings(get_settings())
    recommendations = EngagementLearningService(db, config=config).get_recommendations(limit=limit)
    return RecommendationsResponse(
        priority_names=recommendations.priority_names,
        recommended_categories=recommendations.recommended_categories,
        insights=[InsightResponse(**i.to_dict()) for i in recommendations.insights],
    )


# -----------------------------------------------------------------------------
# Candidates
# -----------------------------------------------------------------------------


@router.get("/candidates", response_model=CandidatesResponse)
def list_candidates(
    entity_type: str | None = Query(None, description="Restrict to one entity type"),
    top_n: int | None = Query(None, ge=1, le=500),
    db: Session = Depends(get_db),
    _: None = Depends(require_admin_key),
) -> CandidatesResponse:
    """Rank stored active entities without calling any source."""
    if entity_type and entity_type not in DiscoveryDefaults.ENTITY_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown entity type: {entity_type}")

    types = (entity_type,) if entity_type else DiscoveryDefaults.ENTITY_TYPES
    ranked = AutoPipelineOrchestrator(db).rank_stored(entity_types=types, top_n=top_n)
    return CandidatesResponse(
        candidates=[RankedCandidateResponse(**c.to_dict()) for c in ranked],
        total=len(ranked),
        eligible=sum(1 for c in ranked if c.is_eligible),
    )


# -----------------------------------------------------------------------------
# Celebrities
# -----------------------------------------------------------------------------


def _get_celebrity_or_404(db: Session, celebrity_id: str) -> models.Celebrity:
    celebrity = CelebrityRepository(db).get(_parse_id(celebrity_id, "celebrity"))
    if celebrity is None:
        raise HTTPException(status_code=404, detail="Celebrity not found")
    return celebrity


@router.post("/celebrities/{celebrity_id}/deactivate", response_model=CelebrityResponse)
def deactivate_celebrity(
    celebrity_id: str,
    request: DeactivateRequest = DeactivateRequest(),
    db: Session = Depends(get_db),
    _: None = Depends(require_admin_key),
) -> CelebrityResponse:
    """
    Soft delete an entity. Later batches skip it; its rows are kept.
    """
    celebrity = _get_celebrity_or_404(db, celebrity_id)
    celebrity = CelebrityRepository(db).set_active(celebrity, False, reason=request.reason)
    logger.info(
        f"Deactivated {celebrity.name}",
        extra={"event": "celebrity_deactivated", "entity": celebrity.name},
    )
    return _celebrity(celebrity)


@router.post("/celebrities/{celebrity_id}/activate", response_model=CelebrityResponse)
def activate_celebrity(
    celebrity_id: str,
    db: Session = Depends(get_db),
    _: None = Depends(require_admin_key),
) -> CelebrityResponse:
    celebrity = _get_celebrity_or_404(db, celebrity_id)
    celebrity = CelebrityRepository(db).set_active(celebrity, True)
    logger.info(
        f"Reactivated {celebrity.name}",
        extra={"event": "celebrity_activated", "entity": celebrity.name},
    )
    return _celebrity(celebrity)


# -----------------------------------------------------------------------------
# Moderation
# -----------------------------------------------------------------------------


@router.get("/media/review-queue", response_model=ReviewQueueResponse)
def get_review_queue(
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    _: None = Depends(require_admin_key),
) -> ReviewQueueResponse:
    """Items waiting for a moderator, oldest first."""
    items = HotMediaRepository(db).review_queue(limit=limit)
    return ReviewQueueResponse(items=[_media_item(m) for m in items], total=len(items))


@router.post("/media/{media_id}/moderate", response_model=MediaItemResponse)
def moderate_media(
    media_id: str,
    request: ModerateRequest,
    db: Session = Depends(get_db),
    _: None = Depends(require_admin_key),
) -> MediaItemResponse:
    """
    Apply a manual moderation move.

    Moves the state machine does not allow return 409.
    """
    repo = HotMediaRepository(db)
    media = repo.get(_parse_id(media_id, "media"))
    if media is None:
        raise HTTPException(status_code=404, detail="Media not found")

    try:
        media = repo.moderate(media, MODERATION_ACTIONS[request.action], note=request.note)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info(
        f"Moderated {media.id}: {request.action} -> {media.moderation_state}",
        extra={"event": "media_moderated", "entity": media.entity_name},
    )
    return _media_item(media)

# hotcontent/services/persistence.py
"""
Repositories for celebrities, social profiles, content candidates and
the metadata cache.

Every write is an upsert on a natural key (merge key, celebrity+platform,
celebrity+platform+url, name key), so replaying a batch is harmless.
Writes are committed per unit and retried on transient database errors;
a unit that still fails is surfaced as PersistenceError for the caller
to record and move on.

With dry_run=True the repositories read normally but never write.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from hotcontent import models
from hotcontent.constants import LearningDefaults
from hotcontent.errors import PersistenceError
from hotcontent.services.connectors.base import ImageSource, SocialHandle, trust_rank
from hotcontent.services.safety_gate import (
    ContentState,
    SafetyValidation,
    status_for_state,
    transition,
)

if TYPE_CHECKING:
    from hotcontent.services.candidates import ContentCandidate
    from hotcontent.services.metadata_refresh import EntityMetadata
    from hotcontent.services.resolver import ResolvedEntity

logger = logging.getLogger(__name__)

T = TypeVar("T")

_IDENTITY_COLUMNS = ("name_te", "wikidata_id", "tmdb_id", "imdb_id", "entity_type", "birth_date", "wikipedia_url")


def run_write(db: Session, key: str, write: Callable[[], T]) -> T:
    """
    Run one write unit and commit it, retrying transient failures.

    Raises:
        PersistenceError: if the unit cannot be committed
    """

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(OperationalError),
        reraise=True,
    )
    def _attempt() -> T:
        try:
            result = write()
            db.commit()
            return result
        except OperationalError:
            db.rollback()
            logger.warning(f"Transient write failure for {key}, retrying")
            raise

    try:
        return _attempt()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Write failed for {key}: {e}", extra={"event": "persistence_failed"})
        raise PersistenceError(key, str(e)) from e


# -----------------------------------------------------------------------------
# Celebrities
# -----------------------------------------------------------------------------


class CelebrityRepository:
    def __init__(self, db: Session, dry_run: bool = False):
        self.db = db
        self.dry_run = dry_run

    def get(self, celebrity_id) -> models.Celebrity | None:
        return self.db.get(models.Celebrity, celebrity_id)

    def get_by_merge_key(self, merge_key: str) -> models.Celebrity | None:
        return self.db.query(models.Celebrity).filter(models.Celebrity.merge_key == merge_key).first()

    def list_active(
        self,
        entity_types: tuple[str, ...] | None = None,
        limit: int | None = None,
    ) -> list[models.Celebrity]:
        query = self.db.query(models.Celebrity).filter(models.Celebrity.is_active == True)  # noqa: E712
        if entity_types:
            query = query.filter(models.Celebrity.entity_type.in_(entity_types))
        query = query.order_by(models.Celebrity.popularity_score.desc(), models.Celebrity.name)
        if limit:
            query = query.limit(limit)
        return query.all()

    def inactive_keys(self) -> set[str]:
        rows = (
            self.db.query(models.Celebrity.merge_key)
            .filter(models.Celebrity.is_active == False)  # noqa: E712
            .all()
        )
        return {row[0] for row in rows}

    def upsert(self, entity: "ResolvedEntity") -> models.Celebrity | None:
        """
        Insert or merge a resolved entity by merge key.

        Identity fields are replaced only by an equally or more trusted
        source. Numeric fields take the max. Nothing is ever deleted.
        """
        if self.dry_run:
            return None
        return run_write(self.db, entity.merge_key, lambda: self._upsert(entity))

    def _upsert(self, entity: "ResolvedEntity") -> models.Celebrity:
        now = datetime.utcnow()
        celebrity = self.get_by_merge_key(entity.merge_key)

        if celebrity is None:
            celebrity = models.Celebrity(
                merge_key=entity.merge_key,
                name=entity.name,
                occupations=list(entity.occupations),
                popularity_score=entity.popularity_score,
                tmdb_popularity=entity.tmdb_popularity,
                trend_score=0.0,
                discovery_source=entity.discovery_source,
                sources=list(entity.sources),
                is_active=True,
                discovered_at=entity.discovered_at,
                last_seen_at=now,
            )
            for column in _IDENTITY_COLUMNS:
                value = getattr(entity, column)
                if value is not None:
                    setattr(celebrity, column, value)
            self.db.add(celebrity)
            self.db.flush()
            return celebrity

        more_trusted = trust_rank(entity.discovery_source) <= trust_rank(celebrity.discovery_source)
        for column in _IDENTITY_COLUMNS:
            value = getattr(entity, column)
            if value is None:
                continue
            if more_trusted or getattr(celebrity, column) is None:
                setattr(celebrity, column, value)
        if more_trusted:
            celebrity.name = entity.name
            celebrity.discovery_source = entity.discovery_source

        celebrity.popularity_score = max(celebrity.popularity_score or 0.0, entity.popularity_score)
        celebrity.tmdb_popularity = max(celebrity.tmdb_popularity or 0.0, entity.tmdb_popularity)

        occupations = list(celebrity.occupations or [])
        occupations += [o for o in entity.occupations if o not in occupations]
        celebrity.occupations = occupations

        sources = list(celebrity.sources or [])
        sources += [s for s in entity.sources if s not in sources]
        celebrity.sources = sorted(sources, key=trust_rank)

        celebrity.last_seen_at = now
        self.db.flush()
        return celebrity

    def upsert_social_profile(
        self,
        celebrity: models.Celebrity,
        handle: SocialHandle,
    ) -> models.CelebritySocialProfile | None:
        """One profile per (celebrity, platform). Higher confidence replaces the handle."""
        if self.dry_run:
            return None
        key = f"{celebrity.merge_key}:{handle.platform}"
        return run_write(self.db, key, lambda: self._upsert_social_profile(celebrity, handle))

    def _upsert_social_profile(
        self,
        celebrity: models.Celebrity,
        handle: SocialHandle,
    ) -> models.CelebritySocialProfile:
        profile = (
            self.db.query(models.CelebritySocialProfile)
            .filter(
                models.CelebritySocialProfile.celebrity_id == celebrity.id,
                models.CelebritySocialProfile.platform == handle.platform,
            )
            .first()
        )
        if profile is None:
            profile = models.CelebritySocialProfile(
                celebrity_id=celebrity.id,
                platform=handle.platform,
                handle=handle.handle,
                profile_url=handle.profile_url,
                confidence_score=handle.confidence,
                verified=handle.verified,
                source=handle.source,
            )
            self.db.add(profile)
        else:
            if handle.confidence >= (profile.confidence_score or 0):
                profile.handle = handle.handle
                profile.profile_url = handle.profile_url
                profile.confidence_score = handle.confidence
                profile.source = handle.source
            profile.verified = bool(profile.verified or handle.verified)
            profile.updated_at = datetime.utcnow()
        self.db.flush()
        return profile

    def social_handles(self, celebrity: models.Celebrity) -> list[SocialHandle]:
        return [
            SocialHandle(
                platform=p.platform,
                handle=p.handle,
                confidence=p.confidence_score or 0,
                verified=bool(p.verified),
                source=p.source or "curated",
            )
            for p in sorted(celebrity.social_profiles, key=lambda p: p.platform)
        ]

    def set_active(self, celebrity: models.Celebrity, active: bool, reason: str | None = None) -> models.Celebrity:
        """Administrative soft delete / restore."""

        def _write() -> models.Celebrity:
            celebrity.is_active = active
            if active:
                celebrity.deactivated_at = None
                celebrity.deactivation_reason = None
            else:
                celebrity.deactivated_at = datetime.utcnow()
                celebrity.deactivation_reason = reason
            return celebrity

        return run_write(self.db, celebrity.merge_key, _write)


# -----------------------------------------------------------------------------
# Content
# -----------------------------------------------------------------------------


class HotMediaRepository:
    def __init__(self, db: Session, dry_run: bool = False):
        self.db = db
        self.dry_run = dry_run

    def get(self, media_id) -> models.HotMedia | None:
        return self.db.get(models.HotMedia, media_id)

    def find(self, celebrity_id, platform: str, source_url: str) -> models.HotMedia | None:
        return (
            self.db.query(models.HotMedia)
            .filter(
                models.HotMedia.celebrity_id == celebrity_id,
                models.HotMedia.platform == platform,
                models.HotMedia.source_url == source_url,
            )
            .first()
        )

    def upsert_candidate(
        self,
        celebrity: models.Celebrity,
        candidate: "ContentCandidate",
        validation: SafetyValidation,
        target: ContentState,
    ) -> tuple[models.HotMedia | None, bool]:
        """
        Insert a gated candidate or refresh an existing one.

        Returns (row, created). An existing row keeps its moderation state.
        """
        if self.dry_run:
            return None, False
        key = f"{celebrity.merge_key}:{candidate.platform}:{candidate.source_url}"
        return run_write(self.db, key, lambda: self._upsert_candidate(celebrity, candidate, validation, target))

    def _upsert_candidate(
        self,
        celebrity: models.Celebrity,
        candidate: "ContentCandidate",
        validation: SafetyValidation,
        target: ContentState,
    ) -> tuple[models.HotMedia, bool]:
        existing = self.find(celebrity.id, candidate.platform, candidate.source_url)
        now = datetime.utcnow()

        if existing is not None:
            existing.image_url = candidate.image_url
            existing.thumbnail_url = candidate.thumbnail_url
            existing.confidence_score = candidate.confidence
            existing.updated_at = now
            self.db.flush()
            return existing, False

        state = transition(ContentState.DISCOVERED, ContentState.SAFETY_CHECKED)
        state = transition(state, target)

        media = models.HotMedia(
            celebrity_id=celebrity.id,
            entity_name=celebrity.name,
            platform=candidate.platform,
            source_url=candidate.source_url,
            image_url=candidate.image_url,
            thumbnail_url=candidate.thumbnail_url,
            media_type=candidate.media_type,
            license_type=candidate.license_type,
            confidence_score=candidate.confidence,
            is_embed=candidate.is_embed,
            category=candidate.category,
            caption=candidate.caption,
            safety_risk=validation.risk.value,
            safety_flags=sorted(validation.flags),
            requires_review=validation.requires_review,
            is_blocked=state == ContentState.BLOCKED,
            blocked_reason=validation.blocked_reason,
            moderation_state=state.value,
            status=status_for_state(state).value,
            created_at=now,
            published_at=now if state == ContentState.AUTO_PUBLISHED else None,
            archived_at=now if state == ContentState.BLOCKED else None,
        )
        self.db.add(media)
        self.db.flush()
        return media, True

    def moderate(self, media: models.HotMedia, target: ContentState, note: str | None = None) -> models.HotMedia:
        """
        Apply a manual moderation move.

        Raises:
            InvalidTransitionError: if the move is not allowed
        """
        new_state = transition(ContentState(media.moderation_state), target, manual=True)

        def _write() -> models.HotMedia:
            now = datetime.utcnow()
            media.moderation_state = new_state.value
            media.status = status_for_state(new_state).value
            media.moderation_note = note
            media.requires_review = new_state == ContentState.QUEUED_FOR_REVIEW
            media.updated_at = now
            if new_state == ContentState.APPROVED:
                media.published_at = now
                media.archived_at = None
            elif new_state == ContentState.REJECTED:
                media.archived_at = now
            elif new_state == ContentState.QUEUED_FOR_REVIEW:
                media.published_at = None
            return media

        return run_write(self.db, str(media.id), _write)

    def review_queue(self, limit: int = 50) -> list[models.HotMedia]:
        return (
            self.db.query(models.HotMedia)
            .filter(models.HotMedia.moderation_state == ContentState.QUEUED_FOR_REVIEW.value)
            .order_by(models.HotMedia.created_at.asc())
            .limit(limit)
            .all()
        )

    def list_hot(self, limit: int = 20, category: str | None = None) -> list[models.HotMedia]:
        query = self.db.query(models.HotMedia).filter(
            models.HotMedia.status == models.HotMediaStatus.APPROVED.value
        )
        if category:
            query = query.filter(models.HotMedia.category == category)
        return (
            query.order_by(models.HotMedia.trending_score.desc(), models.HotMedia.created_at.desc())
            .limit(limit)
            .all()
        )

    def live(self) -> list[models.HotMedia]:
        return (
            self.db.query(models.HotMedia)
            .filter(models.HotMedia.status != models.HotMediaStatus.ARCHIVED.value)
            .all()
        )

    def stats_for(self, celebrity_id) -> dict[str, Any]:
        """Engagement mean, live item count and latest item time for one entity."""
        row = (
            self.db.query(
                func.avg(models.HotMedia.engagement_rate),
                func.count(models.HotMedia.id),
                func.max(models.HotMedia.created_at),
            )
            .filter(
                models.HotMedia.celebrity_id == celebrity_id,
                models.HotMedia.status != models.HotMediaStatus.ARCHIVED.value,
            )
            .one()
        )
        return {
            "engagement": float(row[0] or 0.0),
            "content_count": int(row[1] or 0),
            "latest_at": row[2],
        }

    def recent_captions(self, days: int = LearningDefaults.RECENT_ACTIVITY_DAYS, limit: int = 200) -> list[str]:
        cutoff = datetime.utcnow() - timedelta(days=days)
        rows = (
            self.db.query(models.HotMedia.caption)
            .filter(
                models.HotMedia.status == models.HotMediaStatus.APPROVED.value,
                models.HotMedia.created_at >= cutoff,
                models.HotMedia.caption.isnot(None),
            )
            .order_by(models.HotMedia.trending_score.desc())
            .limit(limit)
            .all()
        )
        return [row[0] for row in rows]

    def archive_all(self) -> int:
        """Archive every non-archived item. Rows are kept."""
        if self.dry_run:
            return self._archivable().count()

        def _write() -> int:
            now = datetime.utcnow()
            items = self._archivable().all()
            for item in items:
                item.status = models.HotMediaStatus.ARCHIVED.value
                item.archived_at = now
                item.updated_at = now
            return len(items)

        return run_write(self.db, "hot_media:archive_all", _write)

    def archive_weak_content(
        self,
        max_trending: float = LearningDefaults.WEAK_CONTENT_MAX_TRENDING,
        min_age_days: int = LearningDefaults.WEAK_CONTENT_MIN_AGE_DAYS,
    ) -> int:
        """Archive old items whose trending score stayed low."""
        cutoff = datetime.utcnow() - timedelta(days=min_age_days)
        query = self._archivable().filter(
            models.HotMedia.trending_score < max_trending,
            models.HotMedia.created_at < cutoff,
        )
        if self.dry_run:
            return query.count()

        def _write() -> int:
            now = datetime.utcnow()
            items = query.all()
            for item in items:
                item.status = models.HotMediaStatus.ARCHIVED.value
                item.archived_at = now
                item.updated_at = now
            return len(items)

        return run_write(self.db, "hot_media:archive_weak", _write)

    def _archivable(self):
        return self.db.query(models.HotMedia).filter(
            models.HotMedia.status != models.HotMediaStatus.ARCHIVED.value
        )

    def record_engagement(
        self,
        media: models.HotMedia,
        views: int = 0,
        likes: int = 0,
        shares: int = 0,
        clicks: int = 0,
        engagement_rate: Callable[[int, int, int, int], float] | None = None,
    ) -> models.HotMedia:
        """Increment counters and refresh the engagement rate."""

        def _write() -> models.HotMedia:
            media.views = (media.views or 0) + views
            media.likes = (media.likes or 0) + likes
            media.shares = (media.shares or 0) + shares
            media.clicks = (media.clicks or 0) + clicks
            if engagement_rate is not None:
                media.engagement_rate = engagement_rate(media.views, media.likes, media.shares, media.clicks)
            media.last_engaged_at = datetime.utcnow()
            return media

        return run_write(self.db, str(media.id), _write)


# -----------------------------------------------------------------------------
# Metadata cache
# -----------------------------------------------------------------------------


class MediaEntityRepository:
    def __init__(self, db: Session, dry_run: bool = False):
        self.db = db
        self.dry_run = dry_run

    def get(self, name_key: str) -> models.MediaEntity | None:
        return self.db.query(models.MediaEntity).filter(models.MediaEntity.name_key == name_key).first()

    def images_for(self, name_key: str) -> list[ImageSource]:
        row = self.get(name_key)
        if row is None:
            return []
        return [ImageSource.from_dict(item) for item in row.image_sources or []]

    def stale(self, stale_after_hours: int, limit: int | None = None) -> list[models.MediaEntity]:
        cutoff = datetime.utcnow() - timedelta(hours=stale_after_hours)
        query = (
            self.db.query(models.MediaEntity)
            .filter(models.MediaEntity.last_fetched_at < cutoff)
            .order_by(models.MediaEntity.last_fetched_at.asc())
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def save_metadata(self, metadata: "EntityMetadata") -> models.MediaEntity | None:
        """Upsert the cache row for one entity by name key."""
        if self.dry_run:
            return None
        return run_write(self.db, metadata.name_key, lambda: self._save(metadata))

    def _save(self, metadata: "EntityMetadata") -> models.MediaEntity:
        row = self.get(metadata.name_key)
        if row is None:
            row = models.MediaEntity(name_key=metadata.name_key, name=metadata.name)
            self.db.add(row)

        row.name = metadata.name
        row.entity_type = metadata.entity_type
        row.tmdb_id = metadata.tmdb_id or row.tmdb_id
        row.wikipedia_url = metadata.wikipedia_url or row.wikipedia_url
        if metadata.images or not row.image_sources:
            row.image_sources = [image.to_dict() for image in metadata.images]
        row.trending_keywords = list(metadata.trending_keywords)
        row.strategy_errors = list(metadata.errors)
        row.last_fetched_at = metadata.fetched_at
        self.db.flush()
        return row

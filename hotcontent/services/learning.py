# hotcontent/services/learning.py
"""
Engagement learning service.

Turns view/like/share/click counters into engagement rates and
time-decayed trending scores, rolls them up per entity and per category,
and writes the per-entity average back to celebrities.trend_score where
the next discovery batch picks it up as its trend input.

Formulas:
    engagement_rate = min(100, (likes + shares*3 + clicks*2) / views * 100)
    trending_score  = engagement_rate * max(0.1, 1 - age_days * 0.02)
    priority_score  = avg_trending + engagement + min(50, idle_days * 5)

Runs on its own cadence (ingest --full, POST /v1/learning/run).
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from hotcontent import models
from hotcontent.config import Settings
from hotcontent.constants import DiscoveryDefaults, LearningDefaults
from hotcontent.services.persistence import CelebrityRepository, HotMediaRepository, run_write

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Config
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class LearningConfig:
    """Scoring weights and thresholds. Defaults from constants."""

    share_weight: float = LearningDefaults.SHARE_WEIGHT
    click_weight: float = LearningDefaults.CLICK_WEIGHT
    max_engagement_rate: float = LearningDefaults.MAX_ENGAGEMENT_RATE
    decay_per_day: float = LearningDefaults.DECAY_PER_DAY
    decay_floor: float = LearningDefaults.DECAY_FLOOR
    min_persist_delta: float = LearningDefaults.MIN_PERSIST_DELTA
    gap_points_per_day: float = LearningDefaults.GAP_POINTS_PER_DAY
    gap_points_cap: float = LearningDefaults.GAP_POINTS_CAP
    trend_up_ratio: float = LearningDefaults.TREND_UP_RATIO
    trend_down_ratio: float = LearningDefaults.TREND_DOWN_RATIO
    trend_direction_delta: float = LearningDefaults.TREND_DIRECTION_DELTA
    weak_content_max_trending: float = LearningDefaults.WEAK_CONTENT_MAX_TRENDING
    weak_content_min_age_days: int = LearningDefaults.WEAK_CONTENT_MIN_AGE_DAYS

    @classmethod
    def from_settings(cls, settings: Settings) -> "LearningConfig":
        return cls(
            decay_per_day=settings.LEARNING_DECAY_PER_DAY,
            min_persist_delta=settings.LEARNING_MIN_PERSIST_DELTA,
            weak_content_max_trending=settings.LEARNING_WEAK_CONTENT_MAX_TRENDING,
            weak_content_min_age_days=settings.LEARNING_WEAK_CONTENT_MIN_AGE_DAYS,
        )


DEFAULT_LEARNING_CONFIG = LearningConfig()


# -----------------------------------------------------------------------------
# Pure scoring functions
# -----------------------------------------------------------------------------


def calculate_engagement_rate(
    views: int,
    likes: int,
    shares: int,
    clicks: int,
    config: LearningConfig = DEFAULT_LEARNING_CONFIG,
) -> float:
    """Weighted interactions per view, as a percentage capped at 100."""
    if not views or views <= 0:
        return 0.0
    weighted = likes + shares * config.share_weight + clicks * config.click_weight
    return min(config.max_engagement_rate, weighted / views * 100)


def calculate_trending_score(
    engagement_rate: float,
    age_days: float,
    config: LearningConfig = DEFAULT_LEARNING_CONFIG,
) -> float:
    """Linear 2%/day decay, floored at 10% of the undecayed value."""
    decay = max(config.decay_floor, 1 - max(0.0, age_days) * config.decay_per_day)
    return max(0.0, engagement_rate) * decay


def calculate_priority_score(
    avg_trending_score: float,
    engagement: float,
    days_since_last_content: float,
    config: LearningConfig = DEFAULT_LEARNING_CONFIG,
) -> float:
    gap = min(config.gap_points_cap, max(0.0, days_since_last_content) * config.gap_points_per_day)
    return avg_trending_score + engagement + gap


def classify_trend(value: float, cohort_average: float, config: LearningConfig = DEFAULT_LEARNING_CONFIG) -> str:
    """up / down / stable against the cohort average."""
    if cohort_average <= 0:
        return "stable"
    if value > cohort_average * config.trend_up_ratio:
        return "up"
    if value < cohort_average * config.trend_down_ratio:
        return "down"
    return "stable"


def trend_direction(
    previous: float | None,
    current: float,
    first_run: bool,
    config: LearningConfig = DEFAULT_LEARNING_CONFIG,
) -> models.TrendDirection:
    if first_run or previous is None:
        return models.TrendDirection.NEW
    delta = current - previous
    if delta > config.trend_direction_delta:
        return models.TrendDirection.UP
    if delta < -config.trend_direction_delta:
        return models.TrendDirection.DOWN
    return models.TrendDirection.STABLE


def _recommendation(dimension_type: str, value: str, trend: str, engagement: float, average: float) -> str:
    verb = {"up": "Increase", "down": "Reduce", "stable": "Maintain"}[trend]
    return f"{verb} {dimension_type} '{value}' content: engagement {engagement:.1f} vs average {average:.1f}"


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


# -----------------------------------------------------------------------------
# Results
# -----------------------------------------------------------------------------


@dataclass
class EngagementInsight:
    dimension_type: str  # entity | category
    dimension_value: str
    trend: str
    engagement: float
    cohort_average: float
    recommendation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "dimension_type": self.dimension_type,
            "dimension_value": self.dimension_value,
            "trend": self.trend,
            "engagement": round(self.engagement, 2),
            "cohort_average": round(self.cohort_average, 2),
            "recommendation": self.recommendation,
        }


@dataclass
class LearningRunResult:
    items_scored: int = 0
    items_updated: int = 0
    entities_updated: int = 0
    insights: list[EngagementInsight] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "items_scored": self.items_scored,
            "items_updated": self.items_updated,
            "entities_updated": self.entities_updated,
            "insights": [i.to_dict() for i in self.insights],
            "errors": list(self.errors),
        }


@dataclass
class DiscoveryRecommendations:
    priority_names: list[str] = field(default_factory=list)
    recommended_categories: list[str] = field(default_factory=list)
    insights: list[EngagementInsight] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "priority_names": list(self.priority_names),
            "recommended_categories": list(self.recommended_categories),
            "insights": [i.to_dict() for i in self.insights],
        }


# -----------------------------------------------------------------------------
# Service
# -----------------------------------------------------------------------------


class EngagementLearningService:
    """Recomputes trending scores and emits discovery insights."""

    def __init__(
        self,
        db: Session,
        dry_run: bool = False,
        now: datetime | None = None,
        config: LearningConfig | None = None,
    ):
        self.db = db
        self.config = config or DEFAULT_LEARNING_CONFIG
        self.dry_run = dry_run
        self.now = now or datetime.utcnow()
        self.media = HotMediaRepository(db, dry_run=dry_run)
        self.celebrities = CelebrityRepository(db, dry_run=dry_run)

    def _age_days(self, item: models.HotMedia) -> float:
        started = item.published_at or item.created_at or self.now
        return max(0.0, (self.now - started).total_seconds() / 86400)

    def run(self) -> LearningRunResult:
        result = LearningRunResult()
        items = self.media.live()
        result.items_scored = len(items)

        trending_by_entity: dict[Any, list[float]] = defaultdict(list)
        engagement_by_entity: dict[str, list[float]] = defaultdict(list)
        engagement_by_category: dict[str, list[float]] = defaultdict(list)
        changed: list[tuple[models.HotMedia, float, float]] = []

        for item in items:
            rate = calculate_engagement_rate(
                item.views or 0, item.likes or 0, item.shares or 0, item.clicks or 0, self.config
            )
            trending = calculate_trending_score(rate, self._age_days(item), self.config)
            if abs(trending - (item.trending_score or 0.0)) > self.config.min_persist_delta:
                changed.append((item, rate, trending))

            trending_by_entity[item.celebrity_id].append(trending)
            engagement_by_entity[item.entity_name].append(rate)
            engagement_by_category[item.category or "uncategorized"].append(rate)

        if changed and not self.dry_run:
            result.items_updated = run_write(self.db, "hot_media:trending", lambda: self._apply_scores(changed))
        else:
            result.items_updated = len(changed)

        result.entities_updated = self._update_entity_trends(trending_by_entity)

        result.insights = self._insights("entity", engagement_by_entity) + self._insights(
            "category", engagement_by_category
        )
        if result.insights and not self.dry_run:
            run_write(self.db, "learning_insights", lambda: self._store_insights(result.insights))

        logger.info(
            f"Learning run scored {result.items_scored} items, updated {result.items_updated} items "
            f"and {result.entities_updated} entities, {len(result.insights)} insights",
            extra={"event": "learning_complete", "items_processed": result.items_scored},
        )
        return result

    def _apply_scores(self, changed: list[tuple[models.HotMedia, float, float]]) -> int:
        for item, rate, trending in changed:
            item.engagement_rate = round(rate, 4)
            item.trending_score = round(trending, 4)
            item.updated_at = self.now
        return len(changed)

    def _update_entity_trends(self, trending_by_entity: dict[Any, list[float]]) -> int:
        updates = []
        for celebrity_id, scores in trending_by_entity.items():
            celebrity = self.celebrities.get(celebrity_id)
            if celebrity is None:
                continue
            average = _mean(scores)
            first_run = celebrity.trend_direction is None
            current = celebrity.trend_score or 0.0
            if not first_run and abs(average - current) <= self.config.min_persist_delta:
                continue
            updates.append((celebrity, average, trend_direction(current, average, first_run, self.config)))

        if not updates or self.dry_run:
            return len(updates)

        def _write() -> int:
            for celebrity, average, direction in updates:
                celebrity.previous_trend_score = celebrity.trend_score
                celebrity.trend_score = round(average, 4)
                celebrity.trend_direction = direction.value
            return len(updates)

        return run_write(self.db, "celebrities:trend_score", _write)

    def _insights(self, dimension_type: str, engagement: dict[str, list[float]]) -> list[EngagementInsight]:
        means = {value: _mean(rates) for value, rates in engagement.items()}
        cohort_average = _mean(list(means.values()))
        insights = []
        for value in sorted(means):
            trend = classify_trend(means[value], cohort_average, self.config)
            insights.append(
                EngagementInsight(
                    dimension_type=dimension_type,
                    dimension_value=value,
                    trend=trend,
                    engagement=means[value],
                    cohort_average=cohort_average,
                    recommendation=_recommendation(dimension_type, value, trend, means[value], cohort_average),
                )
            )
        return insights

    def _store_insights(self, insights: list[EngagementInsight]) -> int:
        for insight in insights:
            row = (
                self.db.query(models.LearningInsight)
                .filter(
                    models.LearningInsight.dimension_type == insight.dimension_type,
                    models.LearningInsight.dimension_value == insight.dimension_value,
                )
                .first()
            )
            if row is None:
                row = models.LearningInsight(
                    dimension_type=insight.dimension_type,
                    dimension_value=insight.dimension_value,
                )
                self.db.add(row)
            row.trend = insight.trend
            row.engagement = insight.engagement
            row.cohort_average = insight.cohort_average
            row.recommendation = insight.recommendation
            row.generated_at = self.now
        return len(insights)

    def stored_insights(self) -> list[EngagementInsight]:
        rows = (
            self.db.query(models.LearningInsight)
            .order_by(models.LearningInsight.dimension_type, models.LearningInsight.engagement.desc())
            .all()
        )
        return [
            EngagementInsight(
                dimension_type=row.dimension_type,
                dimension_value=row.dimension_value,
                trend=row.trend,
                engagement=row.engagement,
                cohort_average=row.cohort_average,
                recommendation=row.recommendation,
            )
            for row in rows
        ]

    def get_recommendations(self, limit: int = DiscoveryDefaults.RECOMMENDATION_LIMIT) -> DiscoveryRecommendations:
        """Entities to prioritise next batch, plus categories trending up."""
        scored = []
        for celebrity in self.celebrities.list_active():
            stats = self.media.stats_for(celebrity.id)
            last = stats["latest_at"] or celebrity.discovered_at or self.now
            idle_days = max(0.0, (self.now - last).total_seconds() / 86400)
            priority = calculate_priority_score(
                celebrity.trend_score or 0.0, stats["engagement"], idle_days, self.config
            )
            scored.append((priority, celebrity.name))
        scored.sort(key=lambda pair: (-pair[0], pair[1]))

        insights = self.stored_insights()
        categories = [i for i in insights if i.dimension_type == "category"]
        rising = [i.dimension_value for i in categories if i.trend == "up"]
        if not rising:
            rising = [i.dimension_value for i in categories if i.trend == "stable"]

        return DiscoveryRecommendations(
            priority_names=[name for _, name in scored[:limit]],
            recommended_categories=rising,
            insights=insights,
        )

    def record_engagement(
        self,
        media_id,
        views: int = 0,
        likes: int = 0,
        shares: int = 0,
        clicks: int = 0,
    ) -> models.HotMedia | None:
        media = self.media.get(media_id)
        if media is None:
            return None
        return self.media.record_engagement(
            media,
            views=views,
            likes=likes,
            shares=shares,
            clicks=clicks,
            engagement_rate=lambda v, lk, s, c: calculate_engagement_rate(v, lk, s, c, self.config),
        )

# hotcontent/services/ranking.py
"""
Hot-score ranking engine.

Scores are a deterministic weighted sum of the entity's current inputs:

    popularity_score * 0.3
    + min(tmdb_weight, tmdb_popularity / 5)
    + trend_score * trend_weight / 100
    + engagement_score * engagement_weight / 100
    + platform bonuses (instagram 15, youtube 10, twitter 5)
    + embed safety bonus (10) when safe embeddable content exists
    + glamour_weight * type multiplier
    + recent activity bonus (5)

clamped to [0, 100] and rounded to one decimal. The score is never
stored as authoritative; callers recompute it from current inputs.
"""

from dataclasses import dataclass, field
from typing import Any

from hotcontent.config import Settings
from hotcontent.constants import EligibilityDefaults, PlatformPolicy, RankingDefaults


@dataclass
class RankingConfig:
    """Tunable weights and thresholds. Defaults from constants."""

    popularity_multiplier: float = RankingDefaults.POPULARITY_MULTIPLIER
    tmdb_weight: float = RankingDefaults.TMDB_WEIGHT
    tmdb_divisor: float = RankingDefaults.TMDB_DIVISOR
    trend_weight: float = RankingDefaults.TREND_WEIGHT
    engagement_weight: float = RankingDefaults.ENGAGEMENT_WEIGHT
    glamour_weight: float = RankingDefaults.GLAMOUR_WEIGHT
    embed_safety_bonus: float = RankingDefaults.EMBED_SAFETY_BONUS
    recent_activity_bonus: float = RankingDefaults.RECENT_ACTIVITY_BONUS
    platform_bonuses: dict[str, float] = field(default_factory=lambda: dict(RankingDefaults.PLATFORM_BONUSES))
    type_multipliers: dict[str, float] = field(default_factory=lambda: dict(RankingDefaults.TYPE_MULTIPLIERS))

    min_score_for_eligibility: float = EligibilityDefaults.MIN_SCORE_FOR_ELIGIBILITY
    min_social_profiles: int = EligibilityDefaults.MIN_SOCIAL_PROFILES
    top_n: int = EligibilityDefaults.TOP_N

    @classmethod
    def from_settings(cls, settings: Settings) -> "RankingConfig":
        return cls(
            tmdb_weight=settings.RANKING_TMDB_WEIGHT,
            trend_weight=settings.RANKING_TREND_WEIGHT,
            engagement_weight=settings.RANKING_ENGAGEMENT_WEIGHT,
            glamour_weight=settings.RANKING_GLAMOUR_WEIGHT,
            min_score_for_eligibility=settings.RANKING_MIN_SCORE,
            min_social_profiles=settings.RANKING_MIN_SOCIAL_PROFILES,
            top_n=settings.RANKING_TOP_N,
        )


@dataclass
class RankingInput:
    """Everything the score depends on for one entity."""

    name: str
    entity_type: str = "actress"
    popularity_score: float = 0.0
    tmdb_popularity: float = 0.0
    trend_score: float = 0.0
    engagement_score: float = 0.0
    platforms: tuple[str, ...] = ()
    has_safe_embeds: bool = False
    content_count: int = 0
    has_recent_activity: bool = False
    entity_ref: Any = None


@dataclass
class RankingCandidate:
    """Scored entity with component breakdown and eligibility verdict."""

    name: str
    entity_type: str
    hot_score: float
    components: dict[str, float]
    primary_platform: str | None
    social_profiles_count: int
    content_count: int
    has_safe_embeds: bool
    ineligibility_reasons: list[str] = field(default_factory=list)
    entity_ref: Any = None

    @property
    def is_eligible(self) -> bool:
        return not self.ineligibility_reasons

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "entity_type": self.entity_type,
            "hot_score": self.hot_score,
            "components": self.components,
            "primary_platform": self.primary_platform,
            "social_profiles_count": self.social_profiles_count,
            "content_count": self.content_count,
            "has_safe_embeds": self.has_safe_embeds,
            "is_eligible": self.is_eligible,
            "ineligibility_reasons": list(self.ineligibility_reasons),
        }


def is_embeddable(platform: str) -> bool:
    """Static capability table lookup."""
    platform = platform.lower()
    return platform in PlatformPolicy.EMBEDDABLE and platform not in PlatformPolicy.NO_EMBED


def select_primary_platform(platforms: tuple[str, ...] | list[str]) -> str | None:
    """Highest-priority embeddable platform present, or None."""
    present = {p.lower() for p in platforms}
    for platform in PlatformPolicy.PRIORITY:
        if platform in present and is_embeddable(platform):
            return platform
    return None


class HotScoreEngine:
    """Computes hot scores and eligibility. Stateless apart from config."""

    def __init__(self, config: RankingConfig | None = None):
        self.config = config or RankingConfig()

    def components(self, item: RankingInput) -> dict[str, float]:
        cfg = self.config
        platforms = {p.lower() for p in item.platforms}

        return {
            "popularity": item.popularity_score * cfg.popularity_multiplier,
            "tmdb": min(cfg.tmdb_weight, item.tmdb_popularity / cfg.tmdb_divisor),
            "trend": item.trend_score * cfg.trend_weight / 100,
            "engagement": item.engagement_score * cfg.engagement_weight / 100,
            "platform": sum(bonus for platform, bonus in cfg.platform_bonuses.items() if platform in platforms),
            "embed_safety": cfg.embed_safety_bonus if item.has_safe_embeds else 0.0,
            "glamour": cfg.glamour_weight * cfg.type_multipliers.get(item.entity_type, 0.0),
            "recent_activity": cfg.recent_activity_bonus if item.has_recent_activity else 0.0,
        }

    def score(self, item: RankingInput) -> RankingCandidate:
        components = self.components(item)
        raw = sum(components.values())
        hot_score = round(max(RankingDefaults.MIN_SCORE, min(RankingDefaults.MAX_SCORE, raw)), 1)

        social_profiles_count = len(set(item.platforms))
        reasons = []
        if hot_score < self.config.min_score_for_eligibility:
            reasons.append(f"hot score {hot_score} below minimum {self.config.min_score_for_eligibility}")
        if social_profiles_count < self.config.min_social_profiles:
            reasons.append(
                f"only {social_profiles_count} social profiles (minimum {self.config.min_social_profiles})"
            )
        if not item.has_safe_embeds and item.content_count <= 0:
            reasons.append("no embeddable content available")

        return RankingCandidate(
            name=item.name,
            entity_type=item.entity_type,
            hot_score=hot_score,
            components={k: round(v, 2) for k, v in components.items()},
            primary_platform=select_primary_platform(item.platforms),
            social_profiles_count=social_profiles_count,
            content_count=item.content_count,
            has_safe_embeds=item.has_safe_embeds,
            ineligibility_reasons=reasons,
            entity_ref=item.entity_ref,
        )

    def rank(self, items: list[RankingInput], top_n: int | None = None) -> list[RankingCandidate]:
        """Score, sort by hot_score descending (name breaks ties), truncate."""
        limit = self.config.top_n if top_n is None else top_n
        candidates = [self.score(item) for item in items]
        candidates.sort(key=lambda c: (-c.hot_score, c.name.lower()))
        return candidates[:limit]

# hotcontent/constants.py
"""
Centralized magic constants organized by domain.

All tunable numbers used by the discovery, ranking, safety and learning
stages are defined here. Config dataclasses default to these values and
settings may override them per deployment.
"""


class RankingDefaults:
    """Hot-score weights and bonuses."""

    POPULARITY_MULTIPLIER = 0.3         # popularity_score contribution factor
    TMDB_WEIGHT = 20.0                  # Cap for tmdb_popularity / 5
    TMDB_DIVISOR = 5.0
    TREND_WEIGHT = 20.0                 # trend_score * weight / 100
    ENGAGEMENT_WEIGHT = 15.0            # engagement_score * weight / 100
    GLAMOUR_WEIGHT = 10.0               # Multiplied by the entity type multiplier
    EMBED_SAFETY_BONUS = 10.0           # Any safe-embeddable content present
    RECENT_ACTIVITY_BONUS = 5.0

    PLATFORM_BONUSES = {
        "instagram": 15.0,
        "youtube": 10.0,
        "twitter": 5.0,
    }

    TYPE_MULTIPLIERS = {
        "actress": 1.0,
        "model": 0.95,
        "influencer": 0.85,
        "anchor": 0.75,
    }

    MIN_SCORE = 0.0
    MAX_SCORE = 100.0


class EligibilityDefaults:
    """Thresholds deciding whether a ranked entity gets content."""

    MIN_SCORE_FOR_ELIGIBILITY = 40.0
    MIN_SOCIAL_PROFILES = 1
    TOP_N = 50
    SAFE_EMBED_MIN_CONFIDENCE = 80      # Profile confidence for a usable embed


class PlatformPolicy:
    """Static platform tables. Policy, not runtime probing."""

    # Highest priority first
    PRIORITY = ("instagram", "tiktok", "youtube", "twitter", "facebook")

    # No public embedding mechanism
    NO_EMBED = frozenset({"snapchat", "imdb", "wikipedia", "official_site"})

    EMBEDDABLE = frozenset(PRIORITY)


class SafetyDefaults:
    """Content safety gate thresholds."""

    AUTO_PUBLISH_MIN_CONFIDENCE = 70    # Image/source confidence for auto-publish
    SMART_AUTO_PUBLISH_MIN_CONFIDENCE = 80
    HIGH_RISK_REVIEW_HITS = 3           # Review-tier hits that escalate to high


class LearningDefaults:
    """Engagement learning constants."""

    SHARE_WEIGHT = 3                    # Shares count 3x likes
    CLICK_WEIGHT = 2                    # Clicks count 2x likes
    MAX_ENGAGEMENT_RATE = 100.0
    DECAY_PER_DAY = 0.02                # Linear 2%/day decay
    DECAY_FLOOR = 0.1                   # Never below 10% of undecayed value
    MIN_PERSIST_DELTA = 1.0             # Skip writes for smaller changes
    GAP_POINTS_PER_DAY = 5              # Content-gap priority per idle day
    GAP_POINTS_CAP = 50
    TREND_UP_RATIO = 1.2                # vs cohort average
    TREND_DOWN_RATIO = 0.8
    TREND_DIRECTION_DELTA = 5.0         # Entity trend_score change for up/down
    WEAK_CONTENT_MAX_TRENDING = 5.0     # Smart mode archives below this
    WEAK_CONTENT_MIN_AGE_DAYS = 14
    RECENT_ACTIVITY_DAYS = 7            # Content newer than this counts as recent


class DiscoveryDefaults:
    """Discovery and ingestion batch defaults."""

    DISCOVER_LIMIT = 100                # discover CLI --limit
    INGEST_LIMIT = 20                   # ingest CLI --limit
    RESET_BATCH_LIMIT = 50              # Fresh batch after --reset
    FULL_MODE_CONTENT_MULTIPLIER = 3    # --full pulls limit * 3 content
    MAX_ITEMS_PER_ENTITY = 5
    MIN_TMDB_POPULARITY = 5.0
    WIKIDATA_BASE_POPULARITY = 50.0
    STALE_AFTER_HOURS = 24
    RECOMMENDATION_LIMIT = 10
    ENTITY_TYPES = ("actress", "anchor", "model", "influencer")


class ConnectorDefaults:
    """External source endpoints and limits."""

    WIKIDATA_SPARQL_URL = "https://query.wikidata.org/sparql"
    TMDB_API_BASE = "https://api.themoviedb.org/3"
    TMDB_IMAGE_BASE = "https://image.tmdb.org/t/p/original"
    WIKIPEDIA_SUMMARY_URL = "https://en.wikipedia.org/api/rest_v1/page/summary"
    WIKIMEDIA_API_URL = "https://commons.wikimedia.org/w/api.php"
    USER_AGENT = "HotContentBot/0.1 (metadata-only discovery)"

    TIMEOUT_SECONDS = 20.0              # Per connector call
    REFRESH_DELAY_MS = 500              # Between per-entity calls
    WIKIMEDIA_SEARCH_LIMIT = 5
    WIKIMEDIA_MIN_DIMENSION = 400       # Pixels, both width and height
    TMDB_SEARCH_TERMS = ("Telugu actress", "South Indian actress", "Tollywood actress")
    MAX_IMAGES_PER_ENTITY = 8

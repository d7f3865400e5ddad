# hotcontent/config.py
"""
Pipeline and API configuration.

Uses pydantic-settings to load and validate environment variables.
Pipeline entry points call require_pipeline_config() so a missing
credential fails fast before any external call is made.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from hotcontent.constants import (
    ConnectorDefaults,
    DiscoveryDefaults,
    EligibilityDefaults,
    LearningDefaults,
    RankingDefaults,
    SafetyDefaults,
)
from hotcontent.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str | None = Field(
        default=None,
        description="SQLAlchemy connection URL (PostgreSQL in production)",
    )

    # Authentication
    ADMIN_API_KEY: str | None = Field(
        default=None,
        description="API key for admin endpoints",
    )

    # Sources
    TMDB_API_KEY: str | None = Field(
        default=None,
        description="TMDB v3 API key. Absent key disables the TMDB connector.",
    )
    WIKIDATA_SPARQL_URL: str = Field(default=ConnectorDefaults.WIKIDATA_SPARQL_URL)
    TMDB_API_BASE: str = Field(default=ConnectorDefaults.TMDB_API_BASE)
    WIKIPEDIA_SUMMARY_URL: str = Field(default=ConnectorDefaults.WIKIPEDIA_SUMMARY_URL)
    WIKIMEDIA_API_URL: str = Field(default=ConnectorDefaults.WIKIMEDIA_API_URL)
    HTTP_USER_AGENT: str = Field(
        default=ConnectorDefaults.USER_AGENT,
        description="User-Agent sent to every source (Wikimedia requires one)",
    )
    CONNECTOR_TIMEOUT_SECONDS: float = Field(
        default=ConnectorDefaults.TIMEOUT_SECONDS,
        description="Timeout applied to every connector in the discovery fan-out",
    )
    METADATA_REFRESH_DELAY_MS: int = Field(
        default=ConnectorDefaults.REFRESH_DELAY_MS,
        description="Fixed delay between per-entity metadata calls",
    )

    # Ranking
    RANKING_TREND_WEIGHT: float = Field(default=RankingDefaults.TREND_WEIGHT)
    RANKING_ENGAGEMENT_WEIGHT: float = Field(default=RankingDefaults.ENGAGEMENT_WEIGHT)
    RANKING_TMDB_WEIGHT: float = Field(default=RankingDefaults.TMDB_WEIGHT)
    RANKING_GLAMOUR_WEIGHT: float = Field(default=RankingDefaults.GLAMOUR_WEIGHT)
    RANKING_MIN_SCORE: float = Field(
        default=EligibilityDefaults.MIN_SCORE_FOR_ELIGIBILITY,
        description="Minimum hot score for eligibility",
    )
    RANKING_MIN_SOCIAL_PROFILES: int = Field(default=EligibilityDefaults.MIN_SOCIAL_PROFILES)
    RANKING_TOP_N: int = Field(default=EligibilityDefaults.TOP_N)

    # Learning
    LEARNING_DECAY_PER_DAY: float = Field(default=LearningDefaults.DECAY_PER_DAY)
    LEARNING_MIN_PERSIST_DELTA: float = Field(default=LearningDefaults.MIN_PERSIST_DELTA)
    LEARNING_WEAK_CONTENT_MAX_TRENDING: float = Field(default=LearningDefaults.WEAK_CONTENT_MAX_TRENDING)
    LEARNING_WEAK_CONTENT_MIN_AGE_DAYS: int = Field(default=LearningDefaults.WEAK_CONTENT_MIN_AGE_DAYS)

    # Safety
    AUTO_PUBLISH_MIN_CONFIDENCE: int = Field(
        default=SafetyDefaults.AUTO_PUBLISH_MIN_CONFIDENCE,
        description="Source confidence required before auto-publishing",
    )
    SMART_AUTO_PUBLISH_MIN_CONFIDENCE: int = Field(
        default=SafetyDefaults.SMART_AUTO_PUBLISH_MIN_CONFIDENCE,
        description="Auto-publish threshold used by ingest --smart",
    )

    # Metadata refresh
    STALE_AFTER_HOURS: int = Field(default=DiscoveryDefaults.STALE_AFTER_HOURS)

    # Application
    ENVIRONMENT: str = Field(
        default="development",
        description="Environment: development, staging, production",
    )
    LOG_LEVEL: str = Field(default="INFO")
    LOG_JSON: bool = Field(
        default=False,
        description="Emit single-line JSON logs",
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def fix_database_url(cls, v: str | None) -> str | None:
        """Hosted Postgres URLs use postgresql:// but SQLAlchemy needs postgresql+psycopg2://"""
        if v and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+psycopg2://", 1)
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        return v.upper()

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


def require_pipeline_config(settings: Settings) -> None:
    """
    Validate settings needed by a pipeline run.

    Raises:
        ConfigurationError: listing every missing required setting
    """
    missing = []
    if not settings.DATABASE_URL:
        missing.append("DATABASE_URL")

    if missing:
        raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

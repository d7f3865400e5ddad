# hotcontent/services/connectors/__init__.py
"""
Source connectors for entity, image and trend discovery.

Each connector returns a ConnectorResult and never raises for
source-level failures.
"""

from hotcontent.config import Settings
from hotcontent.services.connectors.base import (
    BaseConnector,
    ConnectorResult,
    DiscoveryQuery,
    ImageSource,
    RawEntityRecord,
    SocialHandle,
    TrendSignal,
    trust_rank,
)
from hotcontent.services.connectors.tmdb import TmdbConnector
from hotcontent.services.connectors.trends import HeuristicTrendSource, TrendConnector, TrendSource
from hotcontent.services.connectors.wikidata import WikidataConnector
from hotcontent.services.connectors.wikimedia import WikimediaConnector
from hotcontent.services.connectors.wikipedia import WikipediaConnector

ALL_SOURCES = ("wikidata", "tmdb", "wikipedia", "wikimedia", "trends")


def build_connectors(
    settings: Settings,
    sources: tuple[str, ...] = ALL_SOURCES,
    trend_source: TrendSource | None = None,
) -> dict[str, BaseConnector]:
    """Instantiate the requested connectors from settings."""
    timeout = settings.CONNECTOR_TIMEOUT_SECONDS
    delay = settings.METADATA_REFRESH_DELAY_MS / 1000
    agent = settings.HTTP_USER_AGENT

    factories = {
        "wikidata": lambda: WikidataConnector(
            endpoint=settings.WIKIDATA_SPARQL_URL, timeout_seconds=timeout, user_agent=agent
        ),
        "tmdb": lambda: TmdbConnector(
            api_key=settings.TMDB_API_KEY,
            base_url=settings.TMDB_API_BASE,
            timeout_seconds=timeout,
            user_agent=agent,
            delay_seconds=delay,
        ),
        "wikipedia": lambda: WikipediaConnector(
            summary_url=settings.WIKIPEDIA_SUMMARY_URL, timeout_seconds=timeout, user_agent=agent, delay_seconds=delay
        ),
        "wikimedia": lambda: WikimediaConnector(
            api_url=settings.WIKIMEDIA_API_URL, timeout_seconds=timeout, user_agent=agent, delay_seconds=delay
        ),
        "trends": lambda: TrendConnector(source=trend_source, timeout_seconds=timeout),
    }

    unknown = [s for s in sources if s not in factories]
    if unknown:
        raise ValueError(f"Unknown sources: {', '.join(unknown)}. Available: {', '.join(ALL_SOURCES)}")

    return {source: factories[source]() for source in sources}


__all__ = [
    "ALL_SOURCES",
    "BaseConnector",
    "ConnectorResult",
    "DiscoveryQuery",
    "HeuristicTrendSource",
    "ImageSource",
    "RawEntityRecord",
    "SocialHandle",
    "TmdbConnector",
    "TrendConnector",
    "TrendSignal",
    "TrendSource",
    "WikidataConnector",
    "WikimediaConnector",
    "WikipediaConnector",
    "build_connectors",
    "trust_rank",
]

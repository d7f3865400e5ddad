# hotcontent/services/metadata_refresh.py
"""
Per-entity metadata refresh.

Images are gathered by an ordered chain of named strategies:

    tmdb_tagged -> tmdb_profile -> wikipedia -> wikimedia

Each strategy runs behind its own circuit breaker and reports a
StrategyOutcome. The chain stops once max_images have been collected; a
failing strategy is recorded and the next one is tried. New sources are
added by appending a strategy, not by touching the refresh loop.

Batch refresh is deliberately sequential with a fixed delay between
entities to stay inside third-party rate limits.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from hotcontent.config import Settings
from hotcontent.constants import ConnectorDefaults, DiscoveryDefaults
from hotcontent.errors import PersistenceError
from hotcontent.logging_config import ProgressTracker
from hotcontent.services.connectors.base import BOUNDARY_ERRORS, ImageSource
from hotcontent.services.connectors.tmdb import TmdbConnector
from hotcontent.services.connectors.trends import HeuristicTrendSource, TrendSource
from hotcontent.services.connectors.wikimedia import WikimediaConnector
from hotcontent.services.connectors.wikipedia import WikipediaConnector
from hotcontent.services.persistence import MediaEntityRepository
from hotcontent.services.resilience import CircuitBreaker, CircuitOpenError
from hotcontent.utils.text import normalize_name

logger = logging.getLogger(__name__)

STRATEGY_FAILURE_THRESHOLD = 3
STRATEGY_RESET_SECONDS = 300


@dataclass
class EntityMetadata:
    """What the refresh chain learned about one entity."""

    name: str
    entity_type: str = "actress"
    tmdb_id: int | None = None
    wikipedia_url: str | None = None
    images: list[ImageSource] = field(default_factory=list)
    trending_keywords: list[str] = field(default_factory=list)
    outcomes: list["StrategyOutcome"] = field(default_factory=list)
    fetched_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def name_key(self) -> str:
        return normalize_name(self.name)

    @property
    def errors(self) -> list[str]:
        return [f"{o.name}: {o.error}" for o in self.outcomes if o.error]

    def add_images(self, images: list[ImageSource], max_images: int) -> int:
        known = {image.url for image in self.images}
        added = 0
        for image in images:
            if len(self.images) >= max_images:
                break
            if image.url in known:
                continue
            self.images.append(image)
            known.add(image.url)
            added += 1
        return added

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "entity_type": self.entity_type,
            "tmdb_id": self.tmdb_id,
            "wikipedia_url": self.wikipedia_url,
            "images": [image.to_dict() for image in self.images],
            "trending_keywords": list(self.trending_keywords),
            "errors": self.errors,
        }


@dataclass
class StrategyOutcome:
    name: str
    images: list[ImageSource] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# -----------------------------------------------------------------------------
# Strategies
# -----------------------------------------------------------------------------


class ImageStrategy(ABC):
    """One named image source in the fallback chain."""

    name: str = "strategy"

    @abstractmethod
    async def fetch(self, metadata: EntityMetadata) -> list[ImageSource]:
        """Return images for the entity. May fill identity fields on metadata."""
        pass


class _TmdbStrategy(ImageStrategy):
    def __init__(self, tmdb: TmdbConnector):
        self.tmdb = tmdb

    async def _person_id(self, metadata: EntityMetadata) -> int | None:
        """None when TMDB is disabled, even if the id is already known."""
        if not self.tmdb.enabled:
            return None
        if metadata.tmdb_id is None:
            person = await self.tmdb.find_person(metadata.name)
            if person is not None:
                metadata.tmdb_id = person.id
        return metadata.tmdb_id


class TmdbTaggedStrategy(_TmdbStrategy):
    name = "tmdb_tagged"

    async def fetch(self, metadata: EntityMetadata) -> list[ImageSource]:
        person_id = await self._person_id(metadata)
        if person_id is None:
            return []
        return await self.tmdb.tagged_images(person_id)


class TmdbProfileStrategy(_TmdbStrategy):
    name = "tmdb_profile"

    async def fetch(self, metadata: EntityMetadata) -> list[ImageSource]:
        person_id = await self._person_id(metadata)
        if person_id is None:
            return []
        return await self.tmdb.person_images(person_id)


class WikipediaStrategy(ImageStrategy):
    name = "wikipedia"

    def __init__(self, wikipedia: WikipediaConnector):
        self.wikipedia = wikipedia

    async def fetch(self, metadata: EntityMetadata) -> list[ImageSource]:
        summary = await self.wikipedia.fetch_summary(metadata.name)
        if summary is None:
            return []
        metadata.wikipedia_url = metadata.wikipedia_url or summary.page_url
        image = self.wikipedia.lead_image(summary)
        return [image] if image else []


class WikimediaStrategy(ImageStrategy):
    name = "wikimedia"

    def __init__(self, wikimedia: WikimediaConnector):
        self.wikimedia = wikimedia

    async def fetch(self, metadata: EntityMetadata) -> list[ImageSource]:
        return await self.wikimedia.search_images(metadata.name)


# -----------------------------------------------------------------------------
# Service
# -----------------------------------------------------------------------------


@dataclass
class RefreshSummary:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    saved: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "saved": self.saved,
            "errors": list(self.errors),
        }


class MetadataRefreshService:
    """Runs the image strategy chain for one or many entities."""

    def __init__(
        self,
        strategies: list[ImageStrategy],
        delay_seconds: float = ConnectorDefaults.REFRESH_DELAY_MS / 1000,
        max_images: int = ConnectorDefaults.MAX_IMAGES_PER_ENTITY,
        trend_source: TrendSource | None = None,
        owned: list | None = None,
    ):
        self.strategies = strategies
        self.delay_seconds = delay_seconds
        self.max_images = max_images
        self.trend_source = trend_source or HeuristicTrendSource()
        self.breakers = {
            s.name: CircuitBreaker(
                name=s.name,
                failure_threshold=STRATEGY_FAILURE_THRESHOLD,
                reset_timeout_seconds=STRATEGY_RESET_SECONDS,
            )
            for s in strategies
        }
        self._owned = owned or []

    @classmethod
    def from_settings(cls, settings: Settings, trend_source: TrendSource | None = None) -> "MetadataRefreshService":
        """Build the default chain with its own connectors (closed by close())."""
        delay = settings.METADATA_REFRESH_DELAY_MS / 1000
        timeout = settings.CONNECTOR_TIMEOUT_SECONDS
        agent = settings.HTTP_USER_AGENT
        tmdb = TmdbConnector(
            api_key=settings.TMDB_API_KEY,
            base_url=settings.TMDB_API_BASE,
            timeout_seconds=timeout,
            user_agent=agent,
            delay_seconds=delay,
        )
        wikipedia = WikipediaConnector(
            summary_url=settings.WIKIPEDIA_SUMMARY_URL, timeout_seconds=timeout, user_agent=agent, delay_seconds=delay
        )
        wikimedia = WikimediaConnector(
            api_url=settings.WIKIMEDIA_API_URL, timeout_seconds=timeout, user_agent=agent, delay_seconds=delay
        )
        strategies: list[ImageStrategy] = [
            TmdbTaggedStrategy(tmdb),
            TmdbProfileStrategy(tmdb),
            WikipediaStrategy(wikipedia),
            WikimediaStrategy(wikimedia),
        ]
        return cls(
            strategies,
            delay_seconds=delay,
            trend_source=trend_source,
            owned=[tmdb, wikipedia, wikimedia],
        )

    async def close(self) -> None:
        for connector in self._owned:
            await connector.close()

    async def _run_strategy(self, strategy: ImageStrategy, metadata: EntityMetadata) -> StrategyOutcome:
        try:
            images = await self.breakers[strategy.name].call(strategy.fetch, metadata)
        except CircuitOpenError as e:
            return StrategyOutcome(name=strategy.name, error=f"skipped: {e}")
        except BOUNDARY_ERRORS as e:
            logger.warning(f"Strategy {strategy.name} failed for {metadata.name}: {e}")
            return StrategyOutcome(name=strategy.name, error=str(e))
        return StrategyOutcome(name=strategy.name, images=images)

    async def refresh_entity(
        self,
        name: str,
        entity_type: str = "actress",
        tmdb_id: int | None = None,
    ) -> EntityMetadata:
        """Walk the chain until max_images are collected."""
        metadata = EntityMetadata(name=name, entity_type=entity_type, tmdb_id=tmdb_id)

        for strategy in self.strategies:
            if len(metadata.images) >= self.max_images:
                break
            outcome = await self._run_strategy(strategy, metadata)
            metadata.outcomes.append(outcome)
            metadata.add_images(outcome.images, self.max_images)

        keywords = [name] + [f"{name} {image.caption}" for image in metadata.images if image.caption]
        signals = await self.trend_source.fetch_signals(keywords)
        metadata.trending_keywords = [signal.keyword for signal in signals]

        logger.debug(
            f"Refreshed {name}: {len(metadata.images)} images, {len(metadata.errors)} strategy errors",
            extra={"event": "entity_refreshed", "entity": name},
        )
        return metadata

    async def batch_refresh(self, names: list[str], entity_type: str = "actress") -> list[EntityMetadata]:
        """Refresh names one at a time with the fixed delay in between."""
        tracker = ProgressTracker(total=len(names), stage="metadata_refresh", log_every=5)
        results = []
        for index, name in enumerate(names):
            if index and self.delay_seconds:
                await asyncio.sleep(self.delay_seconds)
            metadata = await self.refresh_entity(name, entity_type=entity_type)
            results.append(metadata)
            tracker.increment(success=bool(metadata.images))
        tracker.finish()
        return results

    async def refresh_stale(
        self,
        db: Session,
        stale_after_hours: int = DiscoveryDefaults.STALE_AFTER_HOURS,
        limit: int | None = None,
        dry_run: bool = False,
    ) -> RefreshSummary:
        """Re-run the chain for cached entities older than the cutoff."""
        repo = MediaEntityRepository(db, dry_run=dry_run)
        summary = RefreshSummary()
        rows = repo.stale(stale_after_hours, limit=limit)

        for index, row in enumerate(rows):
            if index and self.delay_seconds:
                await asyncio.sleep(self.delay_seconds)
            metadata = await self.refresh_entity(row.name, entity_type=row.entity_type or "actress", tmdb_id=row.tmdb_id)
            metadata.wikipedia_url = metadata.wikipedia_url or row.wikipedia_url
            summary.processed += 1
            if metadata.images:
                summary.succeeded += 1
            else:
                summary.failed += 1
            summary.errors.extend(f"{row.name}: {error}" for error in metadata.errors)
            try:
                if repo.save_metadata(metadata) is not None:
                    summary.saved += 1
            except PersistenceError as e:
                summary.errors.append(str(e))

        logger.info(
            f"Stale refresh processed {summary.processed} entities, saved {summary.saved}",
            extra={"event": "refresh_stale_complete", "items_processed": summary.processed},
        )
        return summary

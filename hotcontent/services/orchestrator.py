# hotcontent/services/orchestrator.py
"""
Auto-pipeline orchestrator.

One batch runs these stages in order, each wrapped in log_stage:

    discover -> resolve -> enrich -> score -> gate -> persist

Connectors are fanned out concurrently and joined before resolution.
A connector failure or a failing item is recorded in errors and the
batch carries on; only missing configuration aborts a run, and it does
so before any external call is made.

The learning update runs on its own cadence and is not part of a batch.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from hotcontent import models
from hotcontent.catalog import load_catalog
from hotcontent.config import Settings, get_settings, require_pipeline_config
from hotcontent.constants import DiscoveryDefaults, LearningDefaults
from hotcontent.errors import PersistenceError, SafetyBlock
from hotcontent.logging_config import log_stage, run_id_var
from hotcontent.services.candidates import ContentCandidate, build_candidates
from hotcontent.services.candidates import has_safe_embeds as handles_have_safe_embeds
from hotcontent.services.connectors import ALL_SOURCES, BaseConnector, build_connectors
from hotcontent.services.connectors.base import (
    ConnectorResult,
    DiscoveryQuery,
    ImageSource,
    RawEntityRecord,
    SocialHandle,
    TrendSignal,
)
from hotcontent.services.connectors.trends import TrendSource
from hotcontent.services.metadata_refresh import MetadataRefreshService
from hotcontent.services.persistence import CelebrityRepository, HotMediaRepository, MediaEntityRepository
from hotcontent.services.ranking import HotScoreEngine, RankingCandidate, RankingConfig, RankingInput
from hotcontent.services.resolver import EntityResolver, ResolvedEntity
from hotcontent.services.safety_gate import ContentState, RiskLevel, SafetyGate, SafetyValidation
from hotcontent.utils.text import normalize_name

logger = logging.getLogger(__name__)

CURATED_CONFIDENCE = 95


@dataclass
class RunOptions:
    """Knobs for one batch."""

    entity_types: tuple[str, ...] = DiscoveryDefaults.ENTITY_TYPES
    sources: tuple[str, ...] = ALL_SOURCES
    limit: int = DiscoveryDefaults.INGEST_LIMIT  # content candidates per batch
    discover_limit: int = DiscoveryDefaults.DISCOVER_LIMIT
    top_n: int | None = None
    dry_run: bool = False
    categories: tuple[str, ...] | None = None
    auto_publish_min_confidence: int | None = None
    max_items_per_entity: int = DiscoveryDefaults.MAX_ITEMS_PER_ENTITY
    seed_names: tuple[str, ...] = ()
    enrich_missing: bool = True


@dataclass
class DiscoveryOutcome:
    entities: list[ResolvedEntity] = field(default_factory=list)
    signals: list[TrendSignal] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    ambiguities: list[str] = field(default_factory=list)
    connector_status: dict[str, str] = field(default_factory=dict)


@dataclass
class GateDecision:
    entity: ResolvedEntity
    candidate: ContentCandidate
    validation: SafetyValidation
    target: ContentState


@dataclass
class BatchResult:
    """Fixed-shape batch outcome. to_dict() is the public contract."""

    discovered: int = 0
    validated: int = 0
    auto_published: int = 0
    queued_for_review: int = 0
    blocked: int = 0
    errors: list[str] = field(default_factory=list)
    run_id: str | None = None
    ranked: list[RankingCandidate] = field(default_factory=list)

    def count(self, target: ContentState) -> None:
        if target == ContentState.AUTO_PUBLISHED:
            self.auto_published += 1
        elif target == ContentState.BLOCKED:
            self.blocked += 1
        else:
            self.queued_for_review += 1
        self.validated = self.auto_published + self.queued_for_review + self.blocked

    def to_dict(self) -> dict[str, Any]:
        return {
            "discovered": self.discovered,
            "validated": self.validated,
            "autoPublished": self.auto_published,
            "queuedForReview": self.queued_for_review,
            "blocked": self.blocked,
            "errors": list(self.errors),
        }


def curated_records(entity_types: tuple[str, ...]) -> list[RawEntityRecord]:
    """Catalog entries as raw records carrying verified handles."""
    records = []
    for entity in load_catalog().entities:
        if entity.entity_type not in entity_types:
            continue
        handles = [
            SocialHandle(platform=platform, handle=handle, confidence=CURATED_CONFIDENCE, verified=True)
            for platform, handle in sorted(entity.handles.items())
        ]
        records.append(
            RawEntityRecord(
                source="curated",
                name=entity.name,
                name_te=entity.name_te,
                entity_type=entity.entity_type,
                social_handles=handles,
            )
        )
    return records


def entity_from_celebrity(
    celebrity: models.Celebrity,
    images: list[ImageSource] | None = None,
) -> ResolvedEntity:
    """Rebuild a resolved entity from its stored row."""
    handles = [
        SocialHandle(
            platform=p.platform,
            handle=p.handle,
            confidence=p.confidence_score or 0,
            verified=bool(p.verified),
            source=p.source or "curated",
        )
        for p in sorted(celebrity.social_profiles, key=lambda p: p.platform)
    ]
    return ResolvedEntity(
        merge_key=celebrity.merge_key,
        name=celebrity.name,
        name_te=celebrity.name_te,
        wikidata_id=celebrity.wikidata_id,
        tmdb_id=celebrity.tmdb_id,
        imdb_id=celebrity.imdb_id,
        entity_type=celebrity.entity_type,
        occupations=list(celebrity.occupations or []),
        popularity_score=celebrity.popularity_score or 0.0,
        tmdb_popularity=celebrity.tmdb_popularity or 0.0,
        birth_date=celebrity.birth_date,
        wikipedia_url=celebrity.wikipedia_url,
        sources=list(celebrity.sources or [celebrity.discovery_source]),
        images=list(images or []),
        social_handles=handles,
        discovered_at=celebrity.discovered_at or datetime.utcnow(),
        name_keys={normalize_name(celebrity.name)},
    )


class AutoPipelineOrchestrator:
    """Drives one discovery batch end to end."""

    def __init__(
        self,
        db: Session,
        settings: Settings | None = None,
        connectors: dict[str, BaseConnector] | None = None,
        trend_source: TrendSource | None = None,
        refresher: MetadataRefreshService | None = None,
        gate: SafetyGate | None = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.connectors = connectors
        self.trend_source = trend_source
        self.refresher = refresher
        self.gate = gate or SafetyGate()
        self.engine = HotScoreEngine(RankingConfig.from_settings(self.settings))
        self.resolver = EntityResolver()
        self.celebrities = CelebrityRepository(db)
        self.media = HotMediaRepository(db)
        self.media_entities = MediaEntityRepository(db)

    # -------------------------------------------------------------------------
    # Discovery
    # -------------------------------------------------------------------------

    def _seed_names(self, options: RunOptions) -> list[str]:
        names = list(options.seed_names) + list(load_catalog().names)
        names += [c.name for c in self.celebrities.list_active(options.entity_types, limit=options.discover_limit)]

        seen: set[str] = set()
        seeds = []
        for name in names:
            key = normalize_name(name)
            if key and key not in seen:
                seen.add(key)
                seeds.append(name)
        return seeds[: options.discover_limit]

    async def _fetch_all(self, connectors: dict[str, BaseConnector], query: DiscoveryQuery) -> list[ConnectorResult]:
        names = list(connectors)
        results = await asyncio.gather(
            *(connectors[name].fetch(query) for name in names),
            return_exceptions=True,
        )
        collected = []
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.error(f"Connector {name} raised unexpectedly: {result}", exc_info=result)
                collected.append(ConnectorResult(source=name, error=f"{name}: {result}"))
            else:
                collected.append(result)
        return collected

    async def discover_entities(self, options: RunOptions) -> DiscoveryOutcome:
        """Fan out to connectors, then resolve into canonical entities."""
        outcome = DiscoveryOutcome()
        seeds = self._seed_names(options)
        keywords = seeds + self.media.recent_captions()
        query = DiscoveryQuery(
            entity_types=options.entity_types,
            limit=options.discover_limit,
            seed_names=tuple(seeds),
            trend_keywords=tuple(keywords),
        )

        owned = self.connectors is None
        connectors = self.connectors
        if connectors is None:
            connectors = build_connectors(self.settings, options.sources, self.trend_source)
        else:
            connectors = {name: c for name, c in connectors.items() if name in options.sources}

        try:
            results = await self._fetch_all(connectors, query)
        finally:
            if owned:
                for connector in connectors.values():
                    await connector.close()

        records: list[RawEntityRecord] = []
        for result in results:
            if result.disabled:
                outcome.connector_status[result.source] = "disabled"
            elif result.error:
                outcome.connector_status[result.source] = "failed"
                outcome.errors.append(result.error)
            else:
                outcome.connector_status[result.source] = f"ok ({len(result.records) + len(result.signals)})"
            outcome.errors.extend(result.partial_errors)
            records.extend(result.records)
            outcome.signals.extend(result.signals)

        records.extend(curated_records(options.entity_types))

        report = self.resolver.resolve(records)
        outcome.ambiguities = report.ambiguities
        inactive = self.celebrities.inactive_keys()
        outcome.entities = [
            e for e in report.entities
            if e.entity_type in options.entity_types and e.merge_key not in inactive
        ]
        return outcome

    # -------------------------------------------------------------------------
    # Scoring
    # -------------------------------------------------------------------------

    def _trend_for(self, entity: ResolvedEntity, learned: float, signals: list[TrendSignal]) -> float:
        matched = [s.trend_score for s in signals if any(key and key in s.keyword for key in entity.name_keys)]
        return max([learned] + matched)

    def ranking_input(self, entity: ResolvedEntity, signals: list[TrendSignal]) -> RankingInput:
        celebrity = self.celebrities.get_by_merge_key(entity.merge_key)
        learned = 0.0
        engagement = 0.0
        content_count = len(entity.images)
        recent = False
        handles = list(entity.social_handles)

        if celebrity is not None:
            learned = celebrity.trend_score or 0.0
            stats = self.media.stats_for(celebrity.id)
            engagement = stats["engagement"]
            content_count += stats["content_count"]
            cutoff = datetime.utcnow() - timedelta(days=LearningDefaults.RECENT_ACTIVITY_DAYS)
            recent = bool(stats["latest_at"] and stats["latest_at"] >= cutoff)
            known = {h.platform for h in handles}
            handles += [h for h in self.celebrities.social_handles(celebrity) if h.platform not in known]

        return RankingInput(
            name=entity.name,
            entity_type=entity.entity_type or "actress",
            popularity_score=entity.popularity_score,
            tmdb_popularity=entity.tmdb_popularity,
            trend_score=self._trend_for(entity, learned, signals),
            engagement_score=engagement,
            platforms=tuple(sorted({h.platform for h in handles})),
            has_safe_embeds=handles_have_safe_embeds(handles),
            content_count=content_count,
            has_recent_activity=recent,
            entity_ref=entity,
        )

    def rank_entities(
        self,
        entities: list[ResolvedEntity],
        signals: list[TrendSignal] | None = None,
        top_n: int | None = None,
    ) -> list[RankingCandidate]:
        inputs = [self.ranking_input(entity, signals or []) for entity in entities]
        return self.engine.rank(inputs, top_n=top_n)

    def rank_stored(self, entity_types: tuple[str, ...] | None = None, top_n: int | None = None) -> list[RankingCandidate]:
        """Rank active stored entities without calling any source."""
        entities = [
            entity_from_celebrity(c, self.media_entities.images_for(normalize_name(c.name)))
            for c in self.celebrities.list_active(entity_types)
        ]
        return self.rank_entities(entities, top_n=top_n)

    # -------------------------------------------------------------------------
    # Enrichment
    # -------------------------------------------------------------------------

    async def _enrich(self, entities: list[ResolvedEntity], options: RunOptions, result: BatchResult) -> None:
        missing = [e for e in entities if not e.images]
        for entity in missing:
            cached = self.media_entities.images_for(normalize_name(entity.name))
            if cached:
                entity.images.extend(cached)
        missing = [e for e in missing if not e.images][: options.limit]
        if not missing:
            return

        refresher = self.refresher
        owned = refresher is None
        if refresher is None:
            refresher = MetadataRefreshService.from_settings(self.settings, trend_source=self.trend_source)
        cache = MediaEntityRepository(self.db, dry_run=options.dry_run)

        try:
            for index, entity in enumerate(missing):
                if index and refresher.delay_seconds:
                    await asyncio.sleep(refresher.delay_seconds)
                metadata = await refresher.refresh_entity(
                    entity.name, entity_type=entity.entity_type or "actress", tmdb_id=entity.tmdb_id
                )
                entity.images.extend(metadata.images)
                entity.wikipedia_url = entity.wikipedia_url or metadata.wikipedia_url
                result.errors.extend(f"enrich {entity.name}: {error}" for error in metadata.errors)
                try:
                    cache.save_metadata(metadata)
                except PersistenceError as e:
                    result.errors.append(str(e))
        finally:
            if owned:
                await refresher.close()

    # -------------------------------------------------------------------------
    # Gate
    # -------------------------------------------------------------------------

    def gate_candidates(self, eligible: list[RankingCandidate], options: RunOptions) -> list[GateDecision]:
        min_confidence = options.auto_publish_min_confidence
        if min_confidence is None:
            min_confidence = self.settings.AUTO_PUBLISH_MIN_CONFIDENCE

        decisions: list[GateDecision] = []
        for ranked in eligible:
            if len(decisions) >= options.limit:
                break
            entity: ResolvedEntity = ranked.entity_ref
            handles = list(entity.social_handles)
            celebrity = self.celebrities.get_by_merge_key(entity.merge_key)
            if celebrity is not None:
                known = {h.platform for h in handles}
                handles += [h for h in self.celebrities.social_handles(celebrity) if h.platform not in known]

            candidates = build_candidates(
                entity.name,
                entity.images,
                handles,
                categories=options.categories,
                max_items=min(options.max_items_per_entity, options.limit - len(decisions)),
            )

            entity_block: SafetyValidation | None = None
            try:
                self.gate.require_safe_entity(entity.name, entity.entity_type)
            except SafetyBlock as e:
                logger.info(f"Entity blocked: {e.reason}", extra={"event": "entity_blocked", "entity": entity.name})
                entity_block = SafetyValidation(
                    risk=RiskLevel.BLOCKED,
                    flags={"entity_blocked"},
                    blocked_reason=e.reason,
                )

            review_reason = None if entity_block else self.gate.description_review_reason(entity.description)
            if review_reason:
                logger.info(
                    f"Entity content held for review: {review_reason}",
                    extra={"event": "entity_review", "entity": entity.name},
                )

            for candidate in candidates:
                if entity_block is not None:
                    validation = entity_block
                else:
                    validation = self.gate.classify_content(
                        candidate.caption,
                        entity_name=entity.name,
                        platform=candidate.platform,
                        is_embed=candidate.is_embed,
                    )
                    if review_reason:
                        validation = self.gate.require_review(validation)
                target = self.gate.decide(validation, candidate.confidence, min_confidence)
                decisions.append(GateDecision(entity, candidate, validation, target))
        return decisions

    # -------------------------------------------------------------------------
    # Persist
    # -------------------------------------------------------------------------

    def persist_entities(
        self,
        entities: list[ResolvedEntity],
        dry_run: bool,
        errors: list[str],
    ) -> dict[str, models.Celebrity]:
        """Upsert entities and their social profiles. Failures land in errors."""
        repo = CelebrityRepository(self.db, dry_run=dry_run)
        stored: dict[str, models.Celebrity] = {}
        for entity in entities:
            try:
                celebrity = repo.upsert(entity)
                if celebrity is None:
                    celebrity = self.celebrities.get_by_merge_key(entity.merge_key)
                    if celebrity is not None:
                        stored[entity.merge_key] = celebrity
                    continue
                for handle in entity.social_handles:
                    repo.upsert_social_profile(celebrity, handle)
                stored[entity.merge_key] = celebrity
            except PersistenceError as e:
                errors.append(str(e))
        return stored

    def _persist_decisions(
        self,
        decisions: list[GateDecision],
        stored: dict[str, models.Celebrity],
        dry_run: bool,
        result: BatchResult,
    ) -> None:
        repo = HotMediaRepository(self.db, dry_run=dry_run)
        for decision in decisions:
            candidate = decision.candidate
            celebrity = stored.get(decision.entity.merge_key)

            if dry_run:
                exists = celebrity is not None and repo.find(celebrity.id, candidate.platform, candidate.source_url)
                result.discovered += 1
                if not exists:
                    result.count(decision.target)
                continue

            if celebrity is None:
                result.errors.append(f"{decision.entity.merge_key}: entity not persisted, candidate skipped")
                continue
            try:
                _, created = repo.upsert_candidate(celebrity, candidate, decision.validation, decision.target)
            except PersistenceError as e:
                result.errors.append(str(e))
                continue
            result.discovered += 1
            if created:
                result.count(decision.target)

    # -------------------------------------------------------------------------
    # Batch
    # -------------------------------------------------------------------------

    async def run_batch(self, options: RunOptions | None = None) -> BatchResult:
        """
        Run one batch.

        Raises:
            ConfigurationError: before any external call, if settings are incomplete
        """
        options = options or RunOptions()
        require_pipeline_config(self.settings)

        run_id = uuid.uuid4().hex[:12]
        run_id_var.set(run_id)
        result = BatchResult(run_id=run_id)
        logger.info(
            f"Batch {run_id} starting (dry_run={options.dry_run}, limit={options.limit})",
            extra={"event": "batch_start"},
        )

        with log_stage("discover", run_id):
            outcome = await self.discover_entities(options)
            result.errors.extend(outcome.errors)

        with log_stage("resolve", run_id):
            for message in outcome.ambiguities:
                logger.info(message, extra={"event": "merge_ambiguity"})
            entities = outcome.entities

        if options.enrich_missing:
            with log_stage("enrich", run_id):
                await self._enrich(entities, options, result)

        with log_stage("score", run_id):
            ranked = self.rank_entities(entities, outcome.signals, top_n=options.top_n)
            result.ranked = ranked
            eligible = [c for c in ranked if c.is_eligible]

        with log_stage("gate", run_id):
            decisions = self.gate_candidates(eligible, options)

        with log_stage("persist", run_id):
            stored = self.persist_entities(entities, options.dry_run, result.errors)
            self._persist_decisions(decisions, stored, options.dry_run, result)

        logger.info(
            f"Batch {run_id} finished: {result.to_dict()}",
            extra={"event": "batch_complete", "items_processed": result.discovered, "items_failed": len(result.errors)},
        )
        return result

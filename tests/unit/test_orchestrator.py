# tests/unit/test_orchestrator.py
"""
Unit tests for the auto-pipeline orchestrator.

Connectors are replaced by in-memory fakes; persistence runs against the
in-memory SQLite session.
"""

import pytest

from hotcontent import models
from hotcontent.config import Settings
from hotcontent.errors import ConfigurationError, ConnectorServiceError
from hotcontent.services.connectors.base import (
    BaseConnector,
    ConnectorResult,
    DiscoveryQuery,
    ImageSource,
    RawEntityRecord,
    SocialHandle,
    TrendSignal,
)
from hotcontent.services.metadata_refresh import EntityMetadata
from hotcontent.services.orchestrator import AutoPipelineOrchestrator, BatchResult, RunOptions
from hotcontent.services.safety_gate import ContentState


class FakeConnector(BaseConnector):
    """Returns a canned result and records the queries it saw."""

    def __init__(self, source, records=None, signals=None, fail=False):
        super().__init__(timeout_seconds=5)
        self._source = source
        self._records = records or []
        self._signals = signals or []
        self._fail = fail
        self.queries = []

    @property
    def source_type(self):
        return self._source

    async def _fetch(self, query: DiscoveryQuery) -> ConnectorResult:
        self.queries.append(query)
        if self._fail:
            raise ConnectorServiceError(self._source, "service error (503)")
        return ConnectorResult(source=self._source, records=list(self._records), signals=list(self._signals))


class FakeRefresher:
    delay_seconds = 0

    def __init__(self, images):
        self.images = images
        self.names = []

    async def refresh_entity(self, name, entity_type="actress", tmdb_id=None):
        self.names.append(name)
        return EntityMetadata(name=name, entity_type=entity_type, tmdb_id=tmdb_id, images=list(self.images))

    async def close(self):
        pass


def _image(url, caption, confidence=80):
    return ImageSource(
        platform="wikimedia",
        url=url,
        image_type="post",
        license_type="cc-by",
        confidence=confidence,
        caption=caption,
    )


@pytest.fixture
def settings():
    return Settings(DATABASE_URL="sqlite://", TMDB_API_KEY=None)


@pytest.fixture
def rashmika():
    return RawEntityRecord(
        source="wikidata",
        name="Rashmika Mandanna",
        wikidata_id="Q42",
        entity_type="actress",
        popularity_score=80,
        images=[
            _image("https://img.example.org/r1.jpg", "Rashmika Mandanna photoshoot"),
            _image("https://img.example.org/r2.jpg", "Rashmika leaked mms scandal"),
            _image("https://img.example.org/r3.jpg", "Rashmika bikini vacation"),
        ],
    )


@pytest.fixture
def connectors(rashmika):
    return {
        "wikidata": FakeConnector("wikidata", records=[rashmika]),
        "tmdb": FakeConnector("tmdb", fail=True),
    }


def _options(**kwargs):
    defaults = {"entity_types": ("actress",), "sources": ("wikidata", "tmdb"), "enrich_missing": False}
    defaults.update(kwargs)
    return RunOptions(**defaults)


class TestRunBatch:
    @pytest.mark.asyncio
    async def test_batch_counts_and_partial_failure(self, db_session, settings, connectors):
        orchestrator = AutoPipelineOrchestrator(db_session, settings, connectors=connectors)

        result = await orchestrator.run_batch(_options())

        # curated instagram embed + photoshoot image auto-publish, bikini queued, leak blocked
        assert result.auto_published == 2
        assert result.queued_for_review == 1
        assert result.blocked == 1
        assert result.validated == 4
        assert result.discovered == 4
        assert any("service error" in e for e in result.errors)
        assert result.run_id

        rows = db_session.query(models.HotMedia).all()
        states = sorted(r.moderation_state for r in rows)
        assert states == ["auto_published", "auto_published", "blocked", "queued_for_review"]

        blocked = next(r for r in rows if r.moderation_state == "blocked")
        assert blocked.status == "archived"
        assert blocked.is_blocked is True

    @pytest.mark.asyncio
    async def test_counts_add_up(self, db_session, settings, connectors):
        result = await AutoPipelineOrchestrator(db_session, settings, connectors=connectors).run_batch(_options())
        data = result.to_dict()
        assert data["validated"] == data["autoPublished"] + data["queuedForReview"] + data["blocked"]
        assert set(data) == {"discovered", "validated", "autoPublished", "queuedForReview", "blocked", "errors"}

    @pytest.mark.asyncio
    async def test_replay_creates_nothing_new(self, db_session, settings, connectors):
        orchestrator = AutoPipelineOrchestrator(db_session, settings, connectors=connectors)
        await orchestrator.run_batch(_options())
        celebrity_count = db_session.query(models.Celebrity).count()

        second = await orchestrator.run_batch(_options())

        assert second.auto_published == 0
        assert second.validated == 0
        assert db_session.query(models.HotMedia).count() == 4
        assert db_session.query(models.Celebrity).count() == celebrity_count

    @pytest.mark.asyncio
    async def test_existing_moderation_state_kept(self, db_session, settings, connectors):
        orchestrator = AutoPipelineOrchestrator(db_session, settings, connectors=connectors)
        await orchestrator.run_batch(_options())
        queued = db_session.query(models.HotMedia).filter_by(moderation_state="queued_for_review").one()
        orchestrator.media.moderate(queued, ContentState.REJECTED)

        await orchestrator.run_batch(_options())

        db_session.refresh(queued)
        assert queued.moderation_state == "rejected"

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, db_session, settings, connectors):
        result = await AutoPipelineOrchestrator(db_session, settings, connectors=connectors).run_batch(
            _options(dry_run=True)
        )

        assert result.auto_published == 2
        assert result.blocked == 1
        assert db_session.query(models.Celebrity).count() == 0
        assert db_session.query(models.HotMedia).count() == 0

    @pytest.mark.asyncio
    async def test_limit_caps_candidates(self, db_session, settings, connectors):
        result = await AutoPipelineOrchestrator(db_session, settings, connectors=connectors).run_batch(
            _options(limit=2)
        )
        assert result.validated == 2
        assert db_session.query(models.HotMedia).count() == 2

    @pytest.mark.asyncio
    async def test_category_filter(self, db_session, settings, connectors):
        result = await AutoPipelineOrchestrator(db_session, settings, connectors=connectors).run_batch(
            _options(categories=("beach_bikini",))
        )
        assert result.validated == 1
        assert result.queued_for_review == 1

    @pytest.mark.asyncio
    async def test_stricter_threshold_queues_more(self, db_session, settings, connectors):
        result = await AutoPipelineOrchestrator(db_session, settings, connectors=connectors).run_batch(
            _options(auto_publish_min_confidence=90)
        )
        # only the 95-confidence curated embed clears 90
        assert result.auto_published == 1
        assert result.queued_for_review == 2

    @pytest.mark.asyncio
    async def test_missing_configuration_aborts_before_fetch(self, db_session, connectors):
        settings = Settings(DATABASE_URL=None)
        orchestrator = AutoPipelineOrchestrator(db_session, settings, connectors=connectors)

        with pytest.raises(ConfigurationError):
            await orchestrator.run_batch(_options())

        assert connectors["wikidata"].queries == []

    @pytest.mark.asyncio
    async def test_inactive_entities_skipped(self, db_session, settings, connectors):
        db_session.add(
            models.Celebrity(
                merge_key="rashmika mandanna",
                name="Rashmika Mandanna",
                discovery_source="wikidata",
                is_active=False,
            )
        )
        db_session.commit()

        result = await AutoPipelineOrchestrator(db_session, settings, connectors=connectors).run_batch(_options())

        assert result.validated == 0
        assert db_session.query(models.HotMedia).count() == 0
        inactive = db_session.query(models.Celebrity).filter_by(merge_key="rashmika mandanna").one()
        assert inactive.is_active is False

    @pytest.mark.asyncio
    async def test_blocked_entity_blocks_all_content(self, db_session, settings):
        minor = RawEntityRecord(
            source="wikidata",
            name="Baby Sara",
            entity_type="actress",
            popularity_score=100,
            images=[_image("https://img.example.org/s1.jpg", "Baby Sara photoshoot")],
            social_handles=[SocialHandle("instagram", "baby.sara", 90, source="wikidata")],
        )
        connectors = {"wikidata": FakeConnector("wikidata", records=[minor])}

        result = await AutoPipelineOrchestrator(db_session, settings, connectors=connectors).run_batch(
            _options(sources=("wikidata",))
        )

        assert result.blocked == 2
        assert result.auto_published == 0
        reasons = {r.blocked_reason for r in db_session.query(models.HotMedia).all()}
        assert reasons == {"minor indicator: baby"}

    @pytest.mark.asyncio
    async def test_biography_terms_hold_content_for_review(self, db_session, settings):
        adult = RawEntityRecord(
            source="wikidata",
            name="Shriya Saran",
            entity_type="actress",
            description="Indian actress and former child artist",
            popularity_score=100,
            images=[_image("https://img.example.org/shriya.jpg", "Shriya Saran photoshoot", confidence=95)],
            social_handles=[SocialHandle("instagram", "shriya_saran1109", 90, source="wikidata")],
        )
        connectors = {"wikidata": FakeConnector("wikidata", records=[adult])}

        result = await AutoPipelineOrchestrator(db_session, settings, connectors=connectors).run_batch(
            _options(sources=("wikidata",))
        )

        assert result.blocked == 0
        assert result.auto_published == 0
        assert result.queued_for_review == 2
        rows = db_session.query(models.HotMedia).all()
        assert all(r.moderation_state == ContentState.QUEUED_FOR_REVIEW.value for r in rows)
        assert all("entity_review" in r.safety_flags for r in rows)


class TestDiscovery:
    @pytest.mark.asyncio
    async def test_query_carries_seeds_and_types(self, db_session, settings, connectors):
        orchestrator = AutoPipelineOrchestrator(db_session, settings, connectors=connectors)
        await orchestrator.discover_entities(_options(discover_limit=5, seed_names=("Nabha Natesh",)))

        query = connectors["wikidata"].queries[0]
        assert query.entity_types == ("actress",)
        assert query.limit == 5
        assert query.seed_names[0] == "Nabha Natesh"
        assert len(query.seed_names) == 5

    @pytest.mark.asyncio
    async def test_connector_status(self, db_session, settings, connectors):
        outcome = await AutoPipelineOrchestrator(db_session, settings, connectors=connectors).discover_entities(
            _options()
        )
        assert outcome.connector_status == {"wikidata": "ok (1)", "tmdb": "failed"}

    @pytest.mark.asyncio
    async def test_unrequested_sources_not_called(self, db_session, settings, connectors):
        orchestrator = AutoPipelineOrchestrator(db_session, settings, connectors=connectors)
        await orchestrator.discover_entities(_options(sources=("wikidata",)))
        assert connectors["tmdb"].queries == []

    @pytest.mark.asyncio
    async def test_curated_entities_always_present(self, db_session, settings):
        outcome = await AutoPipelineOrchestrator(db_session, settings, connectors={}).discover_entities(_options())
        names = {e.name for e in outcome.entities}
        assert "Samantha Ruth Prabhu" in names
        assert all(e.entity_type == "actress" for e in outcome.entities)


class TestScoring:
    @pytest.mark.asyncio
    async def test_trend_signal_raises_score(self, db_session, settings, rashmika):
        plain = {"wikidata": FakeConnector("wikidata", records=[rashmika])}
        trending = {
            "wikidata": FakeConnector("wikidata", records=[rashmika]),
            "trends": FakeConnector("trends", signals=[TrendSignal("rashmika mandanna red carpet", 55.0)]),
        }

        async def score_for(connectors):
            orchestrator = AutoPipelineOrchestrator(db_session, settings, connectors=connectors)
            result = await orchestrator.run_batch(_options(sources=("wikidata", "trends"), dry_run=True))
            return next(c.hot_score for c in result.ranked if c.name == "Rashmika Mandanna")

        # 80*0.3 + 15 + 10 + 10, then + 55*0.2
        assert await score_for(plain) == 59.0
        assert await score_for(trending) == 70.0

    def test_rank_stored_uses_profiles(self, db_session, settings, stored_celebrity):
        ranked = AutoPipelineOrchestrator(db_session, settings, connectors={}).rank_stored()
        assert [c.name for c in ranked] == ["Test Actress"]
        assert ranked[0].primary_platform == "instagram"
        assert ranked[0].has_safe_embeds is True


class TestEnrichment:
    @pytest.mark.asyncio
    async def test_entities_without_images_are_enriched(self, db_session, settings):
        record = RawEntityRecord(source="wikidata", name="Krithi Shetty", entity_type="actress", popularity_score=80)
        refresher = FakeRefresher([_image("https://img.example.org/k1.jpg", "Krithi Shetty magazine cover")])
        orchestrator = AutoPipelineOrchestrator(
            db_session,
            settings,
            connectors={"wikidata": FakeConnector("wikidata", records=[record])},
            refresher=refresher,
        )

        result = await orchestrator.run_batch(_options(sources=("wikidata",), enrich_missing=True, limit=100))

        assert "Krithi Shetty" in refresher.names
        cached = db_session.query(models.MediaEntity).filter_by(name_key="krithi shetty").one()
        assert cached.image_sources[0]["url"] == "https://img.example.org/k1.jpg"
        urls = {r.source_url for r in db_session.query(models.HotMedia).all()}
        assert "https://img.example.org/k1.jpg" in urls
        assert result.errors == []


class TestBatchResult:
    def test_count(self):
        result = BatchResult()
        result.count(ContentState.AUTO_PUBLISHED)
        result.count(ContentState.QUEUED_FOR_REVIEW)
        result.count(ContentState.BLOCKED)
        assert (result.auto_published, result.queued_for_review, result.blocked, result.validated) == (1, 1, 1, 3)

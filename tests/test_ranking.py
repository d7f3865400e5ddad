# tests/test_ranking.py
"""
Tests for the hot-score ranking engine.
"""

import pytest

from hotcontent.services.ranking import (
    HotScoreEngine,
    RankingConfig,
    RankingInput,
    is_embeddable,
    select_primary_platform,
)


@pytest.fixture
def engine():
    return HotScoreEngine(RankingConfig())


class TestHotScore:
    """Score formula and determinism."""

    def test_pinned_score(self, engine):
        """popularity 70, tmdb 50, instagram, actress -> 21 + 10 + 15 + 10."""
        item = RankingInput(
            name="Pinned",
            entity_type="actress",
            popularity_score=70,
            tmdb_popularity=50,
            trend_score=0,
            platforms=("instagram",),
        )
        assert engine.score(item).hot_score == 56.0

    def test_same_input_same_score(self, engine):
        item = RankingInput(name="Same", popularity_score=42, tmdb_popularity=33, trend_score=17, platforms=("youtube",))
        scores = {engine.score(item).hot_score for _ in range(5)}
        assert len(scores) == 1

    def test_tmdb_component_capped(self, engine):
        item = RankingInput(name="Big", tmdb_popularity=10_000)
        assert engine.components(item)["tmdb"] == 20.0

    def test_score_clamped_to_100(self, engine):
        item = RankingInput(
            name="Max",
            popularity_score=100,
            tmdb_popularity=500,
            trend_score=100,
            engagement_score=100,
            platforms=("instagram", "youtube", "twitter"),
            has_safe_embeds=True,
            has_recent_activity=True,
        )
        assert engine.score(item).hot_score == 100.0

    def test_unknown_type_gets_no_glamour(self, engine):
        item = RankingInput(name="Other", entity_type="singer")
        assert engine.components(item)["glamour"] == 0.0

    def test_type_multipliers(self, engine):
        anchor = engine.components(RankingInput(name="A", entity_type="anchor"))
        model = engine.components(RankingInput(name="M", entity_type="model"))
        assert anchor["glamour"] == pytest.approx(7.5)
        assert model["glamour"] == pytest.approx(9.5)

    @pytest.mark.parametrize("trend", [0, 10, 25, 50, 75, 100])
    def test_trend_never_decreases_score(self, engine, trend):
        base = RankingInput(name="Mono", popularity_score=40, tmdb_popularity=20, trend_score=trend)
        higher = RankingInput(name="Mono", popularity_score=40, tmdb_popularity=20, trend_score=trend + 5)
        assert engine.score(higher).hot_score >= engine.score(base).hot_score

    def test_components_rounded(self, engine):
        candidate = engine.score(RankingInput(name="R", popularity_score=33.333))
        assert candidate.components["popularity"] == 10.0


class TestEligibility:
    """Eligibility rules and reasons."""

    def test_no_content_no_embeds_is_ineligible(self, engine):
        item = RankingInput(name="NoContent", popularity_score=80, platforms=("instagram",), content_count=0)
        candidate = engine.score(item)

        assert candidate.hot_score == 49.0
        assert candidate.is_eligible is False
        assert "no embeddable content available" in candidate.ineligibility_reasons

    def test_eligible_with_safe_embeds(self, engine):
        item = RankingInput(
            name="Ok",
            popularity_score=80,
            platforms=("instagram",),
            has_safe_embeds=True,
        )
        candidate = engine.score(item)
        assert candidate.is_eligible
        assert candidate.ineligibility_reasons == []

    def test_low_score_reason(self, engine):
        candidate = engine.score(RankingInput(name="Low", platforms=("instagram",), content_count=1))
        assert not candidate.is_eligible
        assert any("below minimum" in r for r in candidate.ineligibility_reasons)

    def test_missing_social_profiles_reason(self, engine):
        candidate = engine.score(RankingInput(name="Solo", popularity_score=100, tmdb_popularity=100, content_count=3))
        assert any("social profiles" in r for r in candidate.ineligibility_reasons)

    def test_eligibility_matches_reasons(self, engine):
        items = [
            RankingInput(name="a", popularity_score=90, platforms=("instagram",), has_safe_embeds=True),
            RankingInput(name="b", popularity_score=10),
            RankingInput(name="c", popularity_score=80, platforms=("snapchat",), content_count=2),
        ]
        for candidate in engine.rank(items):
            assert candidate.is_eligible == (not candidate.ineligibility_reasons)


class TestRank:
    def test_sorted_descending_with_name_tiebreak(self, engine):
        items = [
            RankingInput(name="beta", popularity_score=50),
            RankingInput(name="Alpha", popularity_score=50),
            RankingInput(name="gamma", popularity_score=90),
        ]
        names = [c.name for c in engine.rank(items)]
        assert names == ["gamma", "Alpha", "beta"]

    def test_top_n(self, engine):
        items = [RankingInput(name=f"n{i}", popularity_score=i) for i in range(10)]
        assert len(engine.rank(items, top_n=3)) == 3

    def test_default_top_n_from_config(self):
        engine = HotScoreEngine(RankingConfig(top_n=2))
        items = [RankingInput(name=f"n{i}") for i in range(5)]
        assert len(engine.rank(items)) == 2


class TestPlatforms:
    def test_embeddable(self):
        assert is_embeddable("instagram")
        assert is_embeddable("YouTube")
        assert not is_embeddable("snapchat")
        assert not is_embeddable("wikipedia")

    def test_primary_platform_priority(self):
        assert select_primary_platform(("twitter", "youtube", "instagram")) == "instagram"
        assert select_primary_platform(("twitter", "youtube")) == "youtube"

    def test_primary_platform_none(self):
        assert select_primary_platform(("snapchat", "imdb")) is None
        assert select_primary_platform(()) is None

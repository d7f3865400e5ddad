# tests/unit/test_persistence.py
"""
Unit tests for the repositories: natural-key upserts, trust-ordered
identity merges, moderation moves and archiving.
"""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from hotcontent import models
from hotcontent.errors import InvalidTransitionError, PersistenceError
from hotcontent.services.candidates import ContentCandidate
from hotcontent.services.connectors.base import SocialHandle
from hotcontent.services.persistence import CelebrityRepository, HotMediaRepository, run_write
from hotcontent.services.resolver import ResolvedEntity
from hotcontent.services.safety_gate import ContentState, RiskLevel, SafetyValidation


def _entity(source="wikidata", name="Nabha Natesh", **kwargs):
    return ResolvedEntity(merge_key="nabha natesh", name=name, sources=[source], **kwargs)


def _candidate(url="https://img.example.org/n1.jpg", confidence=80):
    return ContentCandidate(
        entity_name="Nabha Natesh",
        platform="wikimedia",
        source_url=url,
        media_type="post",
        license_type="cc-by",
        confidence=confidence,
        caption="Nabha Natesh photoshoot",
        category="photoshoot_glam",
        image_url=url,
    )


class TestCelebrityRepository:
    def test_insert_then_update_by_merge_key(self, db_session):
        repo = CelebrityRepository(db_session)
        first = repo.upsert(_entity(popularity_score=40, wikidata_id="Q5"))
        second = repo.upsert(_entity(popularity_score=30, tmdb_popularity=12.0))

        assert first.id == second.id
        assert db_session.query(models.Celebrity).count() == 1
        assert second.popularity_score == 40
        assert second.tmdb_popularity == 12.0
        assert second.wikidata_id == "Q5"

    def test_less_trusted_source_cannot_overwrite_identity(self, db_session):
        repo = CelebrityRepository(db_session)
        repo.upsert(_entity("wikidata", name="Nabha Natesh", birth_date="1995-12-11"))
        celebrity = repo.upsert(_entity("wikimedia", name="NABHA NATESH", birth_date="1990-01-01", tmdb_id=9))

        assert celebrity.name == "Nabha Natesh"
        assert celebrity.birth_date == "1995-12-11"
        # empty fields still fill from any source
        assert celebrity.tmdb_id == 9
        assert celebrity.sources == ["wikidata", "wikimedia"]

    def test_more_trusted_source_replaces_identity(self, db_session):
        repo = CelebrityRepository(db_session)
        repo.upsert(_entity("tmdb", name="Nabha natesh", imdb_id="nm1"))
        celebrity = repo.upsert(_entity("wikidata", name="Nabha Natesh", imdb_id="nm2"))

        assert celebrity.name == "Nabha Natesh"
        assert celebrity.imdb_id == "nm2"
        assert celebrity.discovery_source == "wikidata"

    def test_dry_run_writes_nothing(self, db_session):
        assert CelebrityRepository(db_session, dry_run=True).upsert(_entity()) is None
        assert db_session.query(models.Celebrity).count() == 0

    def test_social_profile_upsert(self, db_session):
        repo = CelebrityRepository(db_session)
        celebrity = repo.upsert(_entity())

        repo.upsert_social_profile(celebrity, SocialHandle("instagram", "nabha_wd", 85, source="wikidata"))
        repo.upsert_social_profile(celebrity, SocialHandle("instagram", "nabhanatesh", 95, verified=True))
        repo.upsert_social_profile(celebrity, SocialHandle("instagram", "nabha_low", 50, source="tmdb"))

        profiles = db_session.query(models.CelebritySocialProfile).all()
        assert len(profiles) == 1
        assert profiles[0].handle == "nabhanatesh"
        assert profiles[0].verified is True
        assert profiles[0].profile_url == "https://www.instagram.com/nabhanatesh/"

    def test_set_active(self, db_session, stored_celebrity):
        repo = CelebrityRepository(db_session)

        repo.set_active(stored_celebrity, False, reason="duplicate")
        assert repo.inactive_keys() == {"test actress"}
        assert repo.list_active() == []
        assert stored_celebrity.deactivated_at is not None

        repo.set_active(stored_celebrity, True)
        assert stored_celebrity.deactivation_reason is None
        assert repo.list_active() == [stored_celebrity]


class TestHotMediaRepository:
    def _celebrity(self, db_session):
        return CelebrityRepository(db_session).upsert(_entity())

    def test_upsert_candidate_is_idempotent(self, db_session):
        celebrity = self._celebrity(db_session)
        repo = HotMediaRepository(db_session)
        validation = SafetyValidation(risk=RiskLevel.SAFE, auto_approve_eligible=True)

        media, created = repo.upsert_candidate(celebrity, _candidate(), validation, ContentState.AUTO_PUBLISHED)
        again, created_again = repo.upsert_candidate(
            celebrity, _candidate(confidence=90), validation, ContentState.QUEUED_FOR_REVIEW
        )

        assert created is True
        assert created_again is False
        assert again.id == media.id
        assert again.moderation_state == "auto_published"
        assert again.confidence_score == 90
        assert again.status == "approved"
        assert again.published_at is not None

    def test_blocked_candidate_archived(self, db_session):
        celebrity = self._celebrity(db_session)
        validation = SafetyValidation(risk=RiskLevel.BLOCKED, flags={"blocked:leak"}, blocked_reason="blocked term: leak")

        media, _ = HotMediaRepository(db_session).upsert_candidate(
            celebrity, _candidate(), validation, ContentState.BLOCKED
        )

        assert media.status == "archived"
        assert media.is_blocked is True
        assert media.safety_flags == ["blocked:leak"]
        assert media.archived_at is not None

    def test_moderate_requeue_clears_publish(self, db_session):
        celebrity = self._celebrity(db_session)
        repo = HotMediaRepository(db_session)
        media, _ = repo.upsert_candidate(
            celebrity, _candidate(), SafetyValidation(risk=RiskLevel.SAFE), ContentState.AUTO_PUBLISHED
        )

        media = repo.moderate(media, ContentState.QUEUED_FOR_REVIEW, note="check identity")

        assert media.moderation_state == "queued_for_review"
        assert media.status == "draft"
        assert media.published_at is None
        assert media.requires_review is True
        assert repo.review_queue() == [media]

    def test_moderate_invalid_move(self, db_session):
        celebrity = self._celebrity(db_session)
        repo = HotMediaRepository(db_session)
        media, _ = repo.upsert_candidate(
            celebrity, _candidate(), SafetyValidation(risk=RiskLevel.BLOCKED), ContentState.BLOCKED
        )

        with pytest.raises(InvalidTransitionError):
            repo.moderate(media, ContentState.APPROVED)

    def test_archive_all_keeps_rows(self, db_session):
        celebrity = self._celebrity(db_session)
        repo = HotMediaRepository(db_session)
        for i in range(3):
            repo.upsert_candidate(
                celebrity,
                _candidate(url=f"https://img.example.org/{i}.jpg"),
                SafetyValidation(risk=RiskLevel.SAFE),
                ContentState.AUTO_PUBLISHED,
            )

        assert HotMediaRepository(db_session, dry_run=True).archive_all() == 3
        assert repo.archive_all() == 3
        assert repo.archive_all() == 0
        assert db_session.query(models.HotMedia).count() == 3
        assert repo.list_hot() == []

    def test_archive_weak_content(self, db_session):
        celebrity = self._celebrity(db_session)
        repo = HotMediaRepository(db_session)
        old, _ = repo.upsert_candidate(
            celebrity, _candidate(url="https://img.example.org/old.jpg"), SafetyValidation(risk=RiskLevel.SAFE),
            ContentState.AUTO_PUBLISHED,
        )
        repo.upsert_candidate(
            celebrity, _candidate(url="https://img.example.org/new.jpg"), SafetyValidation(risk=RiskLevel.SAFE),
            ContentState.AUTO_PUBLISHED,
        )
        old.created_at = datetime.utcnow() - timedelta(days=30)
        db_session.commit()

        assert repo.archive_weak_content() == 1
        assert old.status == "archived"

    def test_stats_for(self, db_session):
        celebrity = self._celebrity(db_session)
        repo = HotMediaRepository(db_session)
        media, _ = repo.upsert_candidate(
            celebrity, _candidate(), SafetyValidation(risk=RiskLevel.SAFE), ContentState.AUTO_PUBLISHED
        )
        media.engagement_rate = 30.0
        db_session.commit()

        stats = repo.stats_for(celebrity.id)
        assert stats["engagement"] == 30.0
        assert stats["content_count"] == 1
        assert stats["latest_at"] is not None


class TestRunWrite:
    def test_commits_result(self):
        db = MagicMock()
        assert run_write(db, "key", lambda: 7) == 7
        db.commit.assert_called_once()

    def test_integrity_error_raises_persistence_error(self):
        db = MagicMock()
        db.commit.side_effect = IntegrityError("INSERT", {}, Exception("duplicate"))

        with pytest.raises(PersistenceError) as exc_info:
            run_write(db, "nabha natesh", lambda: None)

        assert exc_info.value.key == "nabha natesh"
        db.rollback.assert_called()

    def test_transient_error_retried(self, monkeypatch):
        monkeypatch.setattr("time.sleep", lambda seconds: None)
        db = MagicMock()
        db.commit.side_effect = [OperationalError("COMMIT", {}, Exception("connection reset")), None]

        assert run_write(db, "key", lambda: "ok") == "ok"
        assert db.commit.call_count == 2

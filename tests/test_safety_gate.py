# tests/test_safety_gate.py
"""
Tests for the safety gate and the content state machine.
"""

import pytest

from hotcontent.errors import InvalidTransitionError, SafetyBlock
from hotcontent.models import HotMediaStatus
from hotcontent.services.safety_gate import (
    ContentState,
    RiskLevel,
    SafetyGate,
    SafetyValidation,
    status_for_state,
    transition,
)


@pytest.fixture
def gate():
    return SafetyGate()


class TestEntityChecks:
    def test_minor_name_blocked(self, gate):
        check = gate.check_entity("Baby Sara")
        assert check.is_blocked
        assert check.reason == "minor indicator: baby"

    def test_political_name_blocked(self, gate):
        check = gate.check_entity("Minister Roja")
        assert check.is_blocked
        assert "political" in check.reason

    def test_political_short_term_matches_whole_word_only(self, gate):
        assert not gate.check_entity("Kempa").is_blocked

    def test_regular_actress_passes(self, gate):
        assert not gate.check_entity("Pooja Hegde", "actress").is_blocked

    def test_biography_never_blocks(self, gate):
        assert not gate.check_entity("Shriya Saran", "actress").is_blocked
        assert gate.description_review_reason("Indian actress and former child artist") == (
            "description mentions child artist"
        )

    def test_biography_political_terms_flagged(self, gate):
        assert gate.description_review_reason("Indian actress and MLA") == "description mentions mla"
        assert gate.description_review_reason("Indian actress") is None
        assert gate.description_review_reason(None) is None

    def test_require_review_prevents_auto_publish(self, gate):
        validation = gate.classify_content("Samantha beach photoshoot", entity_name="Samantha")
        held = gate.require_review(validation)

        assert held.requires_review is True
        assert held.auto_approve_eligible is False
        assert "entity_review" in held.flags
        assert gate.decide(held, confidence=100, min_confidence=70) == ContentState.QUEUED_FOR_REVIEW

    def test_require_review_keeps_blocks(self, gate):
        blocked = gate.classify_content("Actress leaked mms scandal", entity_name="Samantha")
        assert gate.require_review(blocked) is blocked

    def test_require_safe_entity_raises(self, gate):
        with pytest.raises(SafetyBlock) as exc_info:
            gate.require_safe_entity("Some Minister")
        assert "Some Minister" in exc_info.value.reason


class TestContentClassification:
    def test_verified_photoshoot_auto_approves(self, gate):
        result = gate.classify_content("Samantha stunning beach photoshoot", entity_name="Samantha")

        assert result.risk in (RiskLevel.SAFE, RiskLevel.LOW)
        assert result.auto_approve_eligible is True
        assert "verified_entity" in result.flags
        assert "safe_context" in result.flags

    def test_leak_scandal_blocked(self, gate):
        result = gate.classify_content("Actress leaked mms scandal", entity_name="Samantha")

        assert result.risk == RiskLevel.BLOCKED
        assert result.blocked_reason
        assert result.requires_review is False
        assert result.auto_approve_eligible is False

    @pytest.mark.parametrize(
        "text",
        [
            "nude photoshoot at red carpet award",
            "deepfake video of verified star fashion event",
            "arrested after rave party premiere",
        ],
    )
    def test_blocked_term_wins_over_positive_signals(self, gate, text):
        result = gate.classify_content(text, entity_name="Samantha", is_embed=True)
        assert result.risk == RiskLevel.BLOCKED
        assert result.requires_review is False
        assert result.auto_approve_eligible is False

    def test_review_term_unverified_needs_review(self, gate):
        result = gate.classify_content("dating rumor with co-star", entity_name="Unknown Newcomer")
        assert result.risk == RiskLevel.MEDIUM
        assert result.requires_review is True
        assert result.auto_approve_eligible is False

    def test_review_term_verified_skips_review_but_not_auto(self, gate):
        result = gate.classify_content("Samantha divorce interview", entity_name="Samantha")
        assert result.risk == RiskLevel.MEDIUM
        assert result.requires_review is False
        assert result.auto_approve_eligible is False

    def test_many_review_terms_high_risk(self, gate):
        result = gate.classify_content("gossip: affair, breakup and feud", entity_name="Samantha")
        assert result.risk == RiskLevel.HIGH
        assert result.requires_review is True

    def test_sensitive_term_raises_to_low(self, gate):
        result = gate.classify_content("Samantha bikini photoshoot", entity_name="Samantha")
        assert result.risk == RiskLevel.LOW
        assert "sensitive:bikini" in result.flags
        assert result.auto_approve_eligible is False

    def test_plain_text_unverified_not_auto(self, gate):
        result = gate.classify_content("new picture", entity_name="Unknown Newcomer")
        assert result.risk == RiskLevel.SAFE
        assert result.auto_approve_eligible is False

    def test_embed_counts_toward_auto(self, gate):
        result = gate.classify_content("new picture", entity_name="Unknown Newcomer", is_embed=True)
        assert result.auto_approve_eligible is True
        assert "platform_embed" in result.flags

    def test_to_dict(self, gate):
        data = gate.classify_content("fashion event", entity_name="Nobody").to_dict()
        assert data["risk"] == "safe"
        assert data["flags"] == ["safe_context"]


class TestDecide:
    def test_blocked(self):
        validation = SafetyValidation(risk=RiskLevel.BLOCKED)
        assert SafetyGate.decide(validation, 100, 70) == ContentState.BLOCKED

    def test_auto_published_above_threshold(self):
        validation = SafetyValidation(risk=RiskLevel.SAFE, auto_approve_eligible=True)
        assert SafetyGate.decide(validation, 80, 70) == ContentState.AUTO_PUBLISHED

    def test_queued_below_threshold(self):
        validation = SafetyValidation(risk=RiskLevel.SAFE, auto_approve_eligible=True)
        assert SafetyGate.decide(validation, 60, 70) == ContentState.QUEUED_FOR_REVIEW

    def test_queued_when_not_eligible(self):
        validation = SafetyValidation(risk=RiskLevel.MEDIUM, requires_review=True)
        assert SafetyGate.decide(validation, 100, 70) == ContentState.QUEUED_FOR_REVIEW


class TestRiskLevel:
    def test_ordering(self):
        order = [RiskLevel.SAFE, RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.BLOCKED]
        severities = [r.severity for r in order]
        assert severities == sorted(set(severities))

    def test_at_least(self):
        assert RiskLevel.SAFE.at_least(RiskLevel.LOW) == RiskLevel.LOW
        assert RiskLevel.HIGH.at_least(RiskLevel.LOW) == RiskLevel.HIGH


class TestStateMachine:
    def test_automatic_path(self):
        state = transition(ContentState.DISCOVERED, ContentState.SAFETY_CHECKED)
        assert transition(state, ContentState.AUTO_PUBLISHED) == ContentState.AUTO_PUBLISHED

    def test_blocked_is_final(self):
        for target in ContentState:
            with pytest.raises(InvalidTransitionError):
                transition(ContentState.BLOCKED, target, manual=True)

    def test_skip_safety_check_rejected(self):
        with pytest.raises(InvalidTransitionError):
            transition(ContentState.DISCOVERED, ContentState.AUTO_PUBLISHED)

    def test_moderator_moves_need_manual(self):
        with pytest.raises(InvalidTransitionError):
            transition(ContentState.QUEUED_FOR_REVIEW, ContentState.APPROVED)
        assert transition(ContentState.QUEUED_FOR_REVIEW, ContentState.APPROVED, manual=True) == ContentState.APPROVED

    def test_auto_published_can_be_unpublished(self):
        assert transition(ContentState.AUTO_PUBLISHED, ContentState.REJECTED, manual=True) == ContentState.REJECTED
        assert (
            transition(ContentState.AUTO_PUBLISHED, ContentState.QUEUED_FOR_REVIEW, manual=True)
            == ContentState.QUEUED_FOR_REVIEW
        )

    def test_rejected_is_final(self):
        with pytest.raises(InvalidTransitionError):
            transition(ContentState.REJECTED, ContentState.APPROVED, manual=True)

    def test_status_mapping(self):
        assert status_for_state(ContentState.AUTO_PUBLISHED) == HotMediaStatus.APPROVED
        assert status_for_state(ContentState.QUEUED_FOR_REVIEW) == HotMediaStatus.DRAFT
        assert status_for_state(ContentState.BLOCKED) == HotMediaStatus.ARCHIVED

# hotcontent/services/safety_gate.py
"""
Safety & eligibility gate.

Two levels of checks:
- Entity level: names that indicate a minor or a political office are
  blocked outright. There is no override.
- Content level: caption/title text is matched against keyword tiers.
  A blocked-tier hit short-circuits everything else. Review-tier hits
  raise the risk to at least medium and require a moderator unless the
  entity is on the curated verified list. Safe-context terms count
  toward auto-approval.

The content state machine lives here as well:

    DISCOVERED -> SAFETY_CHECKED -> BLOCKED (final)
                                 -> QUEUED_FOR_REVIEW -> APPROVED | REJECTED
                                 -> AUTO_PUBLISHED (undone only by a moderator)
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from hotcontent.catalog import Catalog, load_catalog
from hotcontent.constants import SafetyDefaults
from hotcontent.errors import InvalidTransitionError, SafetyBlock
from hotcontent.models import HotMediaStatus
from hotcontent.utils.text import compile_keywords, find_keywords

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Keyword tiers
# -----------------------------------------------------------------------------

MINOR_KEYWORDS = frozenset({
    "kid", "kids", "child", "children", "minor", "teen", "teenage", "teenager",
    "underage", "baby", "schoolgirl", "school girl", "child artist", "junior",
})

POLITICAL_KEYWORDS = frozenset({
    "mp", "mla", "mlc", "minister", "chief minister", "politician", "mayor",
    "corporator", "party president", "party leader", "sarpanch",
})

BLOCKED_CONTENT_KEYWORDS = frozenset({
    # explicit
    "nude", "nudity", "naked", "topless", "explicit", "porn", "xxx", "sex tape",
    "onlyfans", "upskirt", "nip slip", "wardrobe malfunction",
    # minors
    "minor", "underage", "child", "schoolgirl",
    # private leaks
    "leaked", "leak", "mms", "private video", "hidden camera", "morphed", "deepfake",
    # violence
    "assault", "acid attack", "murder", "rape", "molested",
    # illegal
    "drugs", "drug case", "rave party", "arrested",
})

REVIEW_CONTENT_KEYWORDS = frozenset({
    "gossip", "rumor", "rumour", "rumors", "rumours", "affair", "dating",
    "relationship", "boyfriend", "breakup", "break up", "divorce", "split",
    "controversy", "controversial", "scandal", "link-up", "linkup", "secret marriage",
    "pregnant", "pregnancy", "feud", "trolled", "slammed",
})

SENSITIVE_CONTENT_KEYWORDS = frozenset({
    "bikini", "swimwear", "swimsuit", "bold", "lingerie",
})

SAFE_CONTEXT_KEYWORDS = frozenset({
    "photoshoot", "photo shoot", "fashion", "event", "fitness", "workout", "yoga",
    "traditional", "saree", "lehenga", "ethnic", "red carpet", "premiere", "award",
    "awards", "magazine", "festival", "movie launch", "audio launch", "promotion",
    "promotions", "interview", "gala",
})


class RiskLevel(str, Enum):
    """Ordered severity."""

    SAFE = "safe"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    BLOCKED = "blocked"

    @property
    def severity(self) -> int:
        return _RISK_ORDER.index(self)

    def at_least(self, other: "RiskLevel") -> "RiskLevel":
        return self if self.severity >= other.severity else other


_RISK_ORDER = [RiskLevel.SAFE, RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.BLOCKED]


class ContentState(str, Enum):
    DISCOVERED = "discovered"
    SAFETY_CHECKED = "safety_checked"
    BLOCKED = "blocked"
    QUEUED_FOR_REVIEW = "queued_for_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    AUTO_PUBLISHED = "auto_published"


# Automatic moves made by the pipeline
AUTOMATIC_TRANSITIONS: dict[ContentState, frozenset[ContentState]] = {
    ContentState.DISCOVERED: frozenset({ContentState.SAFETY_CHECKED}),
    ContentState.SAFETY_CHECKED: frozenset({
        ContentState.BLOCKED,
        ContentState.QUEUED_FOR_REVIEW,
        ContentState.AUTO_PUBLISHED,
    }),
}

# Moves only a moderator may make
MANUAL_TRANSITIONS: dict[ContentState, frozenset[ContentState]] = {
    ContentState.QUEUED_FOR_REVIEW: frozenset({ContentState.APPROVED, ContentState.REJECTED}),
    ContentState.AUTO_PUBLISHED: frozenset({ContentState.REJECTED, ContentState.QUEUED_FOR_REVIEW}),
    ContentState.APPROVED: frozenset({ContentState.REJECTED}),
}

STATE_TO_STATUS = {
    ContentState.DISCOVERED: HotMediaStatus.DRAFT,
    ContentState.SAFETY_CHECKED: HotMediaStatus.DRAFT,
    ContentState.QUEUED_FOR_REVIEW: HotMediaStatus.DRAFT,
    ContentState.APPROVED: HotMediaStatus.APPROVED,
    ContentState.AUTO_PUBLISHED: HotMediaStatus.APPROVED,
    ContentState.BLOCKED: HotMediaStatus.ARCHIVED,
    ContentState.REJECTED: HotMediaStatus.ARCHIVED,
}


def transition(current: ContentState, target: ContentState, manual: bool = False) -> ContentState:
    """
    Validate a state machine move and return the new state.

    Raises:
        InvalidTransitionError: if policy does not allow the move
    """
    allowed = set(AUTOMATIC_TRANSITIONS.get(current, frozenset()))
    if manual:
        allowed |= MANUAL_TRANSITIONS.get(current, frozenset())

    if target not in allowed:
        mode = "manual" if manual else "automatic"
        raise InvalidTransitionError(f"Cannot move {current.value} -> {target.value} ({mode})")
    return target


def status_for_state(state: ContentState) -> HotMediaStatus:
    return STATE_TO_STATUS[state]


# -----------------------------------------------------------------------------
# Results
# -----------------------------------------------------------------------------


@dataclass
class EntityCheck:
    is_blocked: bool
    reason: str | None = None


@dataclass
class SafetyValidation:
    risk: RiskLevel
    flags: set[str] = field(default_factory=set)
    blocked_reason: str | None = None
    requires_review: bool = False
    auto_approve_eligible: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "risk": self.risk.value,
            "flags": sorted(self.flags),
            "blocked_reason": self.blocked_reason,
            "requires_review": self.requires_review,
            "auto_approve_eligible": self.auto_approve_eligible,
        }


# -----------------------------------------------------------------------------
# Gate
# -----------------------------------------------------------------------------


class SafetyGate:
    """Keyword-tier safety classifier and publication decision."""

    def __init__(self, catalog: Catalog | None = None):
        self.catalog = catalog or load_catalog()
        self._minor = compile_keywords(MINOR_KEYWORDS)
        self._political = compile_keywords(POLITICAL_KEYWORDS)
        self._blocked = compile_keywords(BLOCKED_CONTENT_KEYWORDS)
        self._review = compile_keywords(REVIEW_CONTENT_KEYWORDS)
        self._sensitive = compile_keywords(SENSITIVE_CONTENT_KEYWORDS)
        self._safe_context = compile_keywords(SAFE_CONTEXT_KEYWORDS)

    def is_verified(self, entity_name: str | None) -> bool:
        return bool(entity_name) and self.catalog.is_verified(entity_name)

    def check_entity(self, name: str, entity_type: str | None = None) -> EntityCheck:
        """Hard block for minors and political office holders, matched on the display name."""
        minor_hits = find_keywords(self._minor, name)
        if minor_hits:
            return EntityCheck(is_blocked=True, reason=f"minor indicator: {minor_hits[0]}")

        political_hits = find_keywords(self._political, name)
        if political_hits:
            return EntityCheck(is_blocked=True, reason=f"political role: {political_hits[0]}")

        return EntityCheck(is_blocked=False)

    def require_safe_entity(self, name: str, entity_type: str | None = None) -> None:
        """
        Raises:
            SafetyBlock: when the entity is blocked
        """
        check = self.check_entity(name, entity_type)
        if check.is_blocked:
            raise SafetyBlock(f"{name}: {check.reason}")

    def description_review_reason(self, description: str | None) -> str | None:
        """
        Minor or political terms in a biography. A hit holds the entity's
        content for review and never blocks it.
        """
        minor_hits = find_keywords(self._minor, description)
        if minor_hits:
            return f"description mentions {minor_hits[0]}"
        political_hits = find_keywords(self._political, description)
        if political_hits:
            return f"description mentions {political_hits[0]}"
        return None

    @staticmethod
    def require_review(validation: SafetyValidation) -> SafetyValidation:
        """Copy of validation that can never auto-publish."""
        if validation.risk == RiskLevel.BLOCKED:
            return validation
        return SafetyValidation(
            risk=validation.risk.at_least(RiskLevel.MEDIUM),
            flags=validation.flags | {"entity_review"},
            blocked_reason=validation.blocked_reason,
            requires_review=True,
            auto_approve_eligible=False,
        )

    def classify_content(
        self,
        text: str,
        entity_name: str | None = None,
        platform: str | None = None,
        is_embed: bool = False,
    ) -> SafetyValidation:
        """Classify caption/title text into a risk tier."""
        blocked_hits = find_keywords(self._blocked, text)
        if blocked_hits:
            return SafetyValidation(
                risk=RiskLevel.BLOCKED,
                flags={f"blocked:{hit}" for hit in blocked_hits},
                blocked_reason=f"blocked term: {', '.join(blocked_hits)}",
                requires_review=False,
                auto_approve_eligible=False,
            )

        verified = self.is_verified(entity_name)
        flags: set[str] = set()
        risk = RiskLevel.SAFE
        requires_review = False

        review_hits = find_keywords(self._review, text)
        if review_hits:
            flags.update(f"review:{hit}" for hit in review_hits)
            if len(review_hits) >= SafetyDefaults.HIGH_RISK_REVIEW_HITS:
                risk = RiskLevel.HIGH
                requires_review = True
            else:
                risk = RiskLevel.MEDIUM
                requires_review = not verified

        sensitive_hits = find_keywords(self._sensitive, text)
        if sensitive_hits:
            flags.update(f"sensitive:{hit}" for hit in sensitive_hits)
            risk = risk.at_least(RiskLevel.LOW)

        safe_context = bool(find_keywords(self._safe_context, text))
        if safe_context:
            flags.add("safe_context")
        if verified:
            flags.add("verified_entity")
        if is_embed:
            flags.add("platform_embed")

        has_review_flags = bool(review_hits)
        auto_approve = (
            risk == RiskLevel.SAFE
            and not has_review_flags
            and (verified or safe_context or is_embed)
        )

        return SafetyValidation(
            risk=risk,
            flags=flags,
            requires_review=requires_review,
            auto_approve_eligible=auto_approve,
        )

    @staticmethod
    def decide(validation: SafetyValidation, confidence: int, min_confidence: int) -> ContentState:
        """Target state after SAFETY_CHECKED."""
        if validation.risk == RiskLevel.BLOCKED:
            return ContentState.BLOCKED
        if validation.auto_approve_eligible and confidence >= min_confidence:
            return ContentState.AUTO_PUBLISHED
        return ContentState.QUEUED_FOR_REVIEW

# hotcontent/services/candidates.py
"""
Content candidate construction.

A candidate is one piece of metadata-only content for an entity: an
image URL with its license tier, or an embeddable social profile.
"""

from dataclasses import dataclass
from typing import Any

from hotcontent.catalog import suggest_category
from hotcontent.constants import DiscoveryDefaults, EligibilityDefaults
from hotcontent.services.connectors.base import ImageSource, SocialHandle
from hotcontent.services.ranking import is_embeddable

EMBED_LICENSE = "platform-embed"


@dataclass
class ContentCandidate:
    entity_name: str
    platform: str
    source_url: str
    media_type: str
    license_type: str
    confidence: int
    caption: str
    category: str
    is_embed: bool = False
    image_url: str | None = None
    thumbnail_url: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return self.platform, self.source_url

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_name": self.entity_name,
            "platform": self.platform,
            "source_url": self.source_url,
            "media_type": self.media_type,
            "license_type": self.license_type,
            "confidence": self.confidence,
            "caption": self.caption,
            "category": self.category,
            "is_embed": self.is_embed,
        }


def safe_embed_handles(handles: list[SocialHandle]) -> list[SocialHandle]:
    """Handles on embeddable platforms with enough confidence to embed."""
    return [
        h for h in handles
        if is_embeddable(h.platform)
        and h.confidence >= EligibilityDefaults.SAFE_EMBED_MIN_CONFIDENCE
        and h.profile_url
    ]


def has_safe_embeds(handles: list[SocialHandle]) -> bool:
    return bool(safe_embed_handles(handles))


def from_image(entity_name: str, image: ImageSource) -> ContentCandidate:
    caption = image.caption or entity_name
    return ContentCandidate(
        entity_name=entity_name,
        platform=image.platform,
        source_url=image.url,
        media_type=image.image_type,
        license_type=image.license_type,
        confidence=image.confidence,
        caption=caption,
        category=suggest_category(caption),
        image_url=image.url,
        thumbnail_url=image.url,
    )


def from_handle(entity_name: str, handle: SocialHandle) -> ContentCandidate:
    caption = f"{entity_name} {handle.platform}"
    return ContentCandidate(
        entity_name=entity_name,
        platform=handle.platform,
        source_url=handle.profile_url,
        media_type="embed",
        license_type=EMBED_LICENSE,
        confidence=handle.confidence,
        caption=caption,
        category=suggest_category(caption),
        is_embed=True,
    )


def build_candidates(
    entity_name: str,
    images: list[ImageSource],
    handles: list[SocialHandle],
    categories: tuple[str, ...] | None = None,
    max_items: int = DiscoveryDefaults.MAX_ITEMS_PER_ENTITY,
) -> list[ContentCandidate]:
    """
    Candidates for one entity, most confident first.

    Duplicate (platform, url) pairs collapse to the first seen. When
    categories is given, only candidates in those categories are kept.
    """
    candidates: list[ContentCandidate] = []
    seen: set[tuple[str, str]] = set()

    for candidate in [from_handle(entity_name, h) for h in safe_embed_handles(handles)] + [
        from_image(entity_name, image) for image in images
    ]:
        if candidate.key in seen:
            continue
        if categories and candidate.category not in categories:
            continue
        seen.add(candidate.key)
        candidates.append(candidate)

    candidates.sort(key=lambda c: (-c.confidence, c.platform, c.source_url))
    return candidates[:max_items]

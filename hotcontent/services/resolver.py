# hotcontent/services/resolver.py
"""
Entity resolver: merges raw connector records into canonical entities.

Merge rules:
1. Records are processed in source trust order
   (wikidata > tmdb > wikipedia > wikimedia), stable within a source.
2. A record joins a cluster sharing one of its external ids, or sharing
   its normalized name when no external id or birth date conflicts.
3. Identity fields keep the first (most trusted) value; popularity
   fields take the max; images are unioned by URL.

Two same-name records that disagree on a hard id are kept apart and a
MergeAmbiguityWarning is emitted instead of silently collapsing them.
"""

import logging
import warnings
from dataclasses import dataclass, field
from datetime import datetime

from hotcontent.errors import MergeAmbiguityWarning
from hotcontent.services.connectors.base import ImageSource, RawEntityRecord, SocialHandle, trust_rank
from hotcontent.utils.text import normalize_name

logger = logging.getLogger(__name__)

_ID_FIELDS = ("wikidata_id", "tmdb_id", "imdb_id")
_IDENTITY_FIELDS = ("name_te", "wikidata_id", "tmdb_id", "imdb_id", "entity_type", "birth_date", "wikipedia_url", "description")


@dataclass
class ResolvedEntity:
    """Canonical entity with provenance."""

    merge_key: str
    name: str
    name_te: str | None = None
    wikidata_id: str | None = None
    tmdb_id: int | None = None
    imdb_id: str | None = None
    entity_type: str | None = None
    occupations: list[str] = field(default_factory=list)
    popularity_score: float = 0.0
    tmdb_popularity: float = 0.0
    birth_date: str | None = None
    wikipedia_url: str | None = None
    description: str | None = None
    sources: list[str] = field(default_factory=list)
    images: list[ImageSource] = field(default_factory=list)
    social_handles: list[SocialHandle] = field(default_factory=list)
    discovered_at: datetime = field(default_factory=datetime.utcnow)
    name_keys: set[str] = field(default_factory=set)

    @property
    def discovery_source(self) -> str:
        return self.sources[0] if self.sources else "unknown"

    @property
    def trust(self) -> int:
        """Trust rank of the best contributing source (lower is better)."""
        return min((trust_rank(s) for s in self.sources), default=trust_rank("unknown"))

    def conflicts_with(self, record: RawEntityRecord) -> bool:
        for name in _ID_FIELDS:
            ours, theirs = getattr(self, name), getattr(record, name)
            if ours is not None and theirs is not None and ours != theirs:
                return True
        if self.birth_date and record.birth_date and self.birth_date != record.birth_date:
            return True
        return False

    def shares_id_with(self, record: RawEntityRecord) -> bool:
        for name in _ID_FIELDS:
            ours, theirs = getattr(self, name), getattr(record, name)
            if ours is not None and ours == theirs:
                return True
        return False

    def absorb(self, record: RawEntityRecord) -> None:
        """Merge a less- or equally-trusted record into this entity."""
        for name in _IDENTITY_FIELDS:
            if getattr(self, name) is None and getattr(record, name) is not None:
                setattr(self, name, getattr(record, name))

        self.popularity_score = max(self.popularity_score, record.popularity_score)
        self.tmdb_popularity = max(self.tmdb_popularity, record.tmdb_popularity)

        for occupation in record.occupations:
            if occupation not in self.occupations:
                self.occupations.append(occupation)

        known_urls = {image.url for image in self.images}
        for image in record.images:
            if image.url not in known_urls:
                self.images.append(image)
                known_urls.add(image.url)

        platforms = {handle.platform for handle in self.social_handles}
        for handle in record.social_handles:
            if handle.platform not in platforms:
                self.social_handles.append(handle)
                platforms.add(handle.platform)

        if record.source not in self.sources:
            self.sources.append(record.source)
        self.discovered_at = min(self.discovered_at, record.discovered_at)
        self.name_keys.add(normalize_name(record.name))

    @classmethod
    def from_record(cls, record: RawEntityRecord, merge_key: str) -> "ResolvedEntity":
        entity = cls(merge_key=merge_key, name=record.name.strip(), discovered_at=record.discovered_at)
        entity.absorb(record)
        return entity


@dataclass
class ResolutionReport:
    entities: list[ResolvedEntity] = field(default_factory=list)
    ambiguities: list[str] = field(default_factory=list)
    skipped: int = 0


class EntityResolver:
    """Deterministic merge of raw records. Holds no state between calls."""

    def resolve(self, records: list[RawEntityRecord]) -> ResolutionReport:
        report = ResolutionReport()
        ordered = sorted(enumerate(records), key=lambda pair: (trust_rank(pair[1].source), pair[0]))

        for _, record in ordered:
            key = normalize_name(record.name)
            if not key:
                report.skipped += 1
                continue

            target = self._find_by_id(report.entities, record)
            if target is None:
                same_name = [e for e in report.entities if key in e.name_keys]
                compatible = [e for e in same_name if not e.conflicts_with(record)]
                if compatible:
                    target = compatible[0]
                elif same_name:
                    merge_key = self._split_key(key, record, len(same_name))
                    message = (
                        f"'{record.name}' from {record.source} conflicts with "
                        f"{len(same_name)} existing record(s) of the same name; kept as {merge_key}"
                    )
                    self._warn(message)
                    report.ambiguities.append(message)
                    report.entities.append(ResolvedEntity.from_record(record, merge_key))
                    continue

            if target is not None:
                target.absorb(record)
            else:
                report.entities.append(ResolvedEntity.from_record(record, key))

        for entity in report.entities:
            if entity.entity_type is None:
                entity.entity_type = "actress"

        logger.info(
            f"Resolved {len(records)} records into {len(report.entities)} entities "
            f"({len(report.ambiguities)} ambiguous)",
            extra={"event": "resolve_complete", "items_processed": len(records)},
        )
        return report

    @staticmethod
    def _find_by_id(entities: list[ResolvedEntity], record: RawEntityRecord) -> ResolvedEntity | None:
        for entity in entities:
            if entity.shares_id_with(record) and not entity.conflicts_with(record):
                return entity
        return None

    @staticmethod
    def _split_key(key: str, record: RawEntityRecord, existing: int) -> str:
        discriminator = record.wikidata_id or record.tmdb_id or record.imdb_id or record.birth_date
        return f"{key}|{discriminator or existing + 1}"

    @staticmethod
    def _warn(message: str) -> None:
        logger.warning(message, extra={"event": "merge_ambiguity"})
        warnings.warn(message, MergeAmbiguityWarning, stacklevel=3)

# hotcontent/catalog.py
"""
Curated entity catalog and category keyword table.

Loaded once from package data into frozen structures. The catalog is the
verified-entity allowlist for the safety gate and the source of curated
social handles. Matching is exact or substring on the normalized name,
so spelling variants ("Tamanna" vs "Tamannaah") are not recognised.
"""

import json
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType

from hotcontent.utils.text import compile_keywords, normalize_name

DATA_PATH = Path(__file__).parent / "data" / "curated_entities.json"


@dataclass(frozen=True)
class CuratedEntity:
    name: str
    name_te: str | None
    entity_type: str
    handles: MappingProxyType  # platform -> handle

    @property
    def name_key(self) -> str:
        return normalize_name(self.name)


@dataclass(frozen=True)
class Catalog:
    entities: tuple[CuratedEntity, ...]
    categories: MappingProxyType  # category -> tuple of keywords
    default_category: str

    def find(self, name: str) -> CuratedEntity | None:
        """Exact or substring match against curated names."""
        key = normalize_name(name)
        if not key:
            return None
        for entity in self.entities:
            if entity.name_key == key:
                return entity
        for entity in self.entities:
            if key in entity.name_key or entity.name_key in key:
                return entity
        return None

    def is_verified(self, name: str) -> bool:
        return self.find(name) is not None

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(e.name for e in self.entities)


@lru_cache(maxsize=1)
def load_catalog(path: Path = DATA_PATH) -> Catalog:
    """Read the curated catalog. Cached; the result is immutable."""
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)

    entities = tuple(
        CuratedEntity(
            name=item["name"],
            name_te=item.get("name_te"),
            entity_type=item.get("entity_type", "actress"),
            handles=MappingProxyType(dict(item.get("handles", {}))),
        )
        for item in raw.get("entities", [])
    )
    categories = MappingProxyType(
        {category: tuple(keywords) for category, keywords in raw.get("categories", {}).items()}
    )
    return Catalog(
        entities=entities,
        categories=categories,
        default_category=raw.get("default_category", "photoshoot_glam"),
    )


@lru_cache(maxsize=1)
def _category_patterns() -> tuple[tuple[str, re.Pattern], ...]:
    catalog = load_catalog()
    return tuple((category, compile_keywords(keywords)) for category, keywords in catalog.categories.items())


def suggest_category(text: str | None) -> str:
    """First category whose keywords appear in text, in table order."""
    if text:
        for category, pattern in _category_patterns():
            if pattern.search(text):
                return category
    return load_catalog().default_category

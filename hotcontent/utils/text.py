# hotcontent/utils/text.py
"""
Shared text helpers for name keys and keyword matching.

Keyword tables are matched on word boundaries so short terms such as
"mp" do not fire inside longer words.
"""

import re
from collections.abc import Iterable

_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str | None) -> str:
    """Merge key form of a display name: lower-cased, trimmed, single-spaced."""
    if not name:
        return ""
    return _WHITESPACE.sub(" ", name).strip().lower()


def compile_keywords(keywords: Iterable[str]) -> re.Pattern:
    """Build one case-insensitive word-boundary pattern for a keyword set."""
    ordered = sorted(set(keywords), key=lambda k: (-len(k), k))
    alternation = "|".join(r"\s+".join(re.escape(part) for part in k.split()) for k in ordered)
    return re.compile(rf"(?<!\w)(?:{alternation})(?!\w)", re.IGNORECASE)


def find_keywords(pattern: re.Pattern, text: str | None) -> list[str]:
    """Distinct keyword hits in text, lower-cased, in first-seen order."""
    if not text:
        return []
    hits: list[str] = []
    for match in pattern.finditer(text):
        hit = _WHITESPACE.sub(" ", match.group(0).lower())
        if hit not in hits:
            hits.append(hit)
    return hits

# hotcontent/services/connectors/trends.py
"""
Trend signal sources.

TrendSource is the pluggable contract: keywords in, (keyword, score)
pairs out. The heuristic implementation scores keywords against a fixed
list of glamour patterns and is fully deterministic; a real trends API
can replace it behind the same interface.
"""

import logging
from abc import ABC, abstractmethod

from hotcontent.services.connectors.base import BaseConnector, ConnectorResult, DiscoveryQuery, TrendSignal
from hotcontent.utils.text import compile_keywords, find_keywords

logger = logging.getLogger(__name__)


HOT_PATTERNS = (
    "photoshoot",
    "magazine",
    "bikini",
    "beach",
    "vacation",
    "wedding",
    "movie launch",
    "award",
    "fitness",
    "yoga",
    "fashion week",
    "red carpet",
    "premiere",
    "viral reel",
)


class TrendSource(ABC):
    """Anything that can score keywords for current interest."""

    name: str = "trends"

    @abstractmethod
    async def fetch_signals(self, keywords: list[str]) -> list[TrendSignal]:
        pass


class HeuristicTrendSource(TrendSource):
    """
    Keyword heuristic.

    A keyword containing one hot pattern scores BASE_SCORE; each further
    distinct pattern adds PER_EXTRA_HIT, capped at 100. Keywords without
    any pattern produce no signal.
    """

    name = "heuristic"
    BASE_SCORE = 40.0
    PER_EXTRA_HIT = 15.0

    def __init__(self, patterns: tuple[str, ...] = HOT_PATTERNS):
        self._pattern = compile_keywords(patterns)

    def score(self, keyword: str) -> float:
        hits = find_keywords(self._pattern, keyword)
        if not hits:
            return 0.0
        return min(100.0, self.BASE_SCORE + self.PER_EXTRA_HIT * (len(hits) - 1))

    async def fetch_signals(self, keywords: list[str]) -> list[TrendSignal]:
        signals = []
        seen: set[str] = set()
        for keyword in keywords:
            key = keyword.strip().lower()
            if not key or key in seen:
                continue
            seen.add(key)
            score = self.score(key)
            if score > 0:
                signals.append(TrendSignal(keyword=key, trend_score=score))
        return signals


class TrendConnector(BaseConnector):
    """Adapts a TrendSource to the connector contract."""

    def __init__(self, source: TrendSource | None = None, timeout_seconds: float = 20.0):
        super().__init__(timeout_seconds)
        self.source = source or HeuristicTrendSource()

    @property
    def source_type(self) -> str:
        return "trends"

    async def _fetch(self, query: DiscoveryQuery) -> ConnectorResult:
        signals = await self.source.fetch_signals(list(query.trend_keywords))
        logger.debug(f"Trend source {self.source.name} produced {len(signals)} signals")
        return ConnectorResult(source=self.source_type, signals=signals)

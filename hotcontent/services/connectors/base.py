# hotcontent/services/connectors/base.py
"""
Base classes and types for source connectors.

Every connector exposes one async fetch(query) that never raises for
source-level problems: timeouts, non-2xx answers and malformed payloads
are caught at the connector boundary and returned as an error on an
otherwise empty ConnectorResult.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx
from pydantic import ValidationError

from hotcontent.constants import ConnectorDefaults, DiscoveryDefaults
from hotcontent.errors import ConnectorError, ConnectorTimeoutError
from hotcontent.logging_config import log_connector_call
from hotcontent.services.resilience import connector_retry, raise_for_source_status, with_timeout

logger = logging.getLogger(__name__)


# Identity trust order: earlier wins for spelling and ids
SOURCE_TRUST_ORDER = ("wikidata", "tmdb", "wikipedia", "wikimedia", "curated", "trends")


def trust_rank(source: str) -> int:
    """Lower is more trusted. Unknown sources rank last."""
    try:
        return SOURCE_TRUST_ORDER.index(source)
    except ValueError:
        return len(SOURCE_TRUST_ORDER)


@dataclass
class ImageSource:
    """Image metadata. Only the URL and license tier, never bytes."""

    platform: str
    url: str
    image_type: str  # profile | post | video | thumbnail | tagged
    license_type: str  # api-provided | cc-by | cc-by-sa | public-domain | fair-use | unknown
    confidence: int
    fetched_at: datetime = field(default_factory=datetime.utcnow)
    caption: str | None = None
    width: int | None = None
    height: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform,
            "url": self.url,
            "image_type": self.image_type,
            "license_type": self.license_type,
            "confidence": self.confidence,
            "fetched_at": self.fetched_at.isoformat(),
            "caption": self.caption,
            "width": self.width,
            "height": self.height,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImageSource":
        fetched_at = data.get("fetched_at")
        return cls(
            platform=data["platform"],
            url=data["url"],
            image_type=data.get("image_type", "profile"),
            license_type=data.get("license_type", "unknown"),
            confidence=int(data.get("confidence", 0)),
            fetched_at=datetime.fromisoformat(fetched_at) if fetched_at else datetime.utcnow(),
            caption=data.get("caption"),
            width=data.get("width"),
            height=data.get("height"),
        )


PROFILE_URL_TEMPLATES = {
    "instagram": "https://www.instagram.com/{handle}/",
    "twitter": "https://x.com/{handle}",
    "youtube": "https://www.youtube.com/channel/{handle}",
    "tiktok": "https://www.tiktok.com/@{handle}",
    "facebook": "https://www.facebook.com/{handle}",
}


@dataclass
class SocialHandle:
    platform: str
    handle: str
    confidence: int
    verified: bool = False
    source: str = "curated"

    @property
    def profile_url(self) -> str | None:
        template = PROFILE_URL_TEMPLATES.get(self.platform)
        return template.format(handle=self.handle) if template else None


@dataclass
class RawEntityRecord:
    """One source's view of a public figure, before resolution."""

    source: str
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
    images: list[ImageSource] = field(default_factory=list)
    social_handles: list[SocialHandle] = field(default_factory=list)
    discovered_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class TrendSignal:
    keyword: str
    trend_score: float


@dataclass
class DiscoveryQuery:
    entity_types: tuple[str, ...] = ("actress",)
    limit: int = DiscoveryDefaults.DISCOVER_LIMIT
    min_popularity: float = DiscoveryDefaults.MIN_TMDB_POPULARITY
    seed_names: tuple[str, ...] = ()
    trend_keywords: tuple[str, ...] = ()


@dataclass
class ConnectorResult:
    source: str
    records: list[RawEntityRecord] = field(default_factory=list)
    signals: list[TrendSignal] = field(default_factory=list)
    error: str | None = None
    disabled: bool = False
    partial_errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


# Problems that stay inside a connector
BOUNDARY_ERRORS = (
    ConnectorError,
    httpx.HTTPError,
    ValidationError,
    ValueError,
    KeyError,
    TypeError,
)


class BaseConnector(ABC):
    """
    Abstract base class for source connectors.

    Subclasses implement _fetch(); fetch() adds the timeout, logging and
    error isolation.
    """

    def __init__(self, timeout_seconds: float = ConnectorDefaults.TIMEOUT_SECONDS):
        self.timeout_seconds = timeout_seconds

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Return the source identifier (e.g., 'wikidata', 'tmdb')."""
        pass

    @abstractmethod
    async def _fetch(self, query: DiscoveryQuery) -> ConnectorResult:
        pass

    def time_budget(self, query: DiscoveryQuery) -> float:
        """Overall time allowed for one fetch()."""
        return self.timeout_seconds

    async def fetch(self, query: DiscoveryQuery) -> ConnectorResult:
        """Fetch records, converting any source failure into an error result."""
        budget = self.time_budget(query)
        try:
            with log_connector_call(self.source_type, "fetch") as metrics:
                result = await with_timeout(
                    self._fetch(query),
                    budget,
                    self.source_type,
                    f"{self.source_type} fetch timed out",
                )
                metrics["records"] = len(result.records) + len(result.signals)
            return result
        except BOUNDARY_ERRORS as e:
            logger.warning(
                f"Connector {self.source_type} failed: {e}",
                extra={"event": "connector_failed", "connector": self.source_type},
            )
            return ConnectorResult(source=self.source_type, error=f"{self.source_type}: {e}")

    async def close(self) -> None:
        """Release anything the connector owns. HTTP connectors close their client."""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class HttpConnector(BaseConnector):
    """Connector backed by a shared httpx.AsyncClient."""

    def __init__(
        self,
        timeout_seconds: float = ConnectorDefaults.TIMEOUT_SECONDS,
        user_agent: str = ConnectorDefaults.USER_AGENT,
        delay_seconds: float = ConnectorDefaults.REFRESH_DELAY_MS / 1000,
    ):
        super().__init__(timeout_seconds)
        self.delay_seconds = delay_seconds
        self.client = httpx.AsyncClient(
            timeout=timeout_seconds,
            headers={
                "Accept": "application/json",
                "User-Agent": user_agent,
            },
        )

    def per_call_budget(self, calls: int) -> float:
        """Budget for a throttled sequence of calls."""
        return self.timeout_seconds + max(calls, 1) * (self.delay_seconds + self.timeout_seconds)

    @connector_retry
    async def _get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        allow_missing: bool = False,
    ) -> Any:
        """GET a JSON document. With allow_missing, a 404 returns None."""
        try:
            response = await self.client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise ConnectorTimeoutError(self.source_type, f"GET {url} timed out: {e}")
        if allow_missing and response.status_code == 404:
            return None
        raise_for_source_status(self.source_type, response)
        return response.json()

    async def close(self) -> None:
        await self.client.aclose()

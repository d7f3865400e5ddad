# hotcontent/services/connectors/wikipedia.py
"""
Wikipedia REST summary connector.

Looks up each seed name's page summary for the canonical page URL and
the lead image. Lead images are usually non-free, so they are tagged
fair-use.
"""

import asyncio
import logging
from urllib.parse import quote

from hotcontent.constants import ConnectorDefaults
from hotcontent.services.connectors.base import (
    BOUNDARY_ERRORS,
    ConnectorResult,
    DiscoveryQuery,
    HttpConnector,
    ImageSource,
    RawEntityRecord,
)
from hotcontent.services.connectors.schemas import WikipediaSummary

logger = logging.getLogger(__name__)

LEAD_IMAGE_CONFIDENCE = 75


class WikipediaConnector(HttpConnector):
    """Page summaries and lead images for named entities."""

    def __init__(
        self,
        summary_url: str = ConnectorDefaults.WIKIPEDIA_SUMMARY_URL,
        timeout_seconds: float = ConnectorDefaults.TIMEOUT_SECONDS,
        user_agent: str = ConnectorDefaults.USER_AGENT,
        delay_seconds: float = ConnectorDefaults.REFRESH_DELAY_MS / 1000,
    ):
        super().__init__(timeout_seconds=timeout_seconds, user_agent=user_agent, delay_seconds=delay_seconds)
        self.summary_url = summary_url.rstrip("/")

    @property
    def source_type(self) -> str:
        return "wikipedia"

    def time_budget(self, query: DiscoveryQuery) -> float:
        return self.per_call_budget(len(query.seed_names))

    async def _fetch(self, query: DiscoveryQuery) -> ConnectorResult:
        records: list[RawEntityRecord] = []
        partial_errors: list[str] = []

        for index, name in enumerate(query.seed_names):
            if index:
                await asyncio.sleep(self.delay_seconds)
            try:
                summary = await self.fetch_summary(name)
            except BOUNDARY_ERRORS as e:
                logger.warning(f"Wikipedia summary failed for {name}: {e}")
                partial_errors.append(f"wikipedia: {name}: {e}")
                continue
            if summary is None:
                continue
            records.append(self.to_record(name, summary))

        return ConnectorResult(source=self.source_type, records=records, partial_errors=partial_errors)

    async def fetch_summary(self, name: str) -> WikipediaSummary | None:
        """Summary for a page title, or None for missing and disambiguation pages."""
        title = quote(name.strip().replace(" ", "_"), safe="")
        payload = await self._get_json(f"{self.summary_url}/{title}", allow_missing=True)
        if payload is None:
            return None

        summary = WikipediaSummary.model_validate(payload)
        if summary.type == "disambiguation":
            logger.debug(f"Wikipedia title '{name}' is a disambiguation page")
            return None
        return summary

    def lead_image(self, summary: WikipediaSummary) -> ImageSource | None:
        image = summary.originalimage or summary.thumbnail
        if image is None or not image.source:
            return None
        return ImageSource(
            platform=self.source_type,
            url=image.source,
            image_type="profile",
            license_type="fair-use",
            confidence=LEAD_IMAGE_CONFIDENCE,
            caption=summary.description,
            width=image.width,
            height=image.height,
        )

    def to_record(self, name: str, summary: WikipediaSummary) -> RawEntityRecord:
        image = self.lead_image(summary)
        return RawEntityRecord(
            source=self.source_type,
            name=name,
            wikipedia_url=summary.page_url,
            description=summary.description,
            images=[image] if image else [],
        )

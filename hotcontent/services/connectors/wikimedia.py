# hotcontent/services/connectors/wikimedia.py
"""
Wikimedia Commons image-search connector.

Uses the generator=search image-info API to list openly licensed files
for each seed name. Only raster images larger than 400px on both sides
are kept; the license tier comes from LicenseShortName.
"""

import asyncio
import logging
import re

from hotcontent.constants import ConnectorDefaults
from hotcontent.services.connectors.base import (
    BOUNDARY_ERRORS,
    ConnectorResult,
    DiscoveryQuery,
    HttpConnector,
    ImageSource,
    RawEntityRecord,
)
from hotcontent.services.connectors.schemas import CommonsImageInfo, CommonsResponse

logger = logging.getLogger(__name__)

OPEN_LICENSE_CONFIDENCE = 80
UNKNOWN_LICENSE_CONFIDENCE = 60
_HTML_TAGS = re.compile(r"<[^>]+>")


def parse_license(short_name: str | None) -> str:
    """Map a Commons LicenseShortName to a license tier."""
    value = (short_name or "").lower().replace(" ", "-")
    if "by-sa" in value:
        return "cc-by-sa"
    if "cc-by" in value:
        return "cc-by"
    if "public-domain" in value or value.startswith("pd") or "cc0" in value:
        return "public-domain"
    return "unknown"


def is_usable_image(info: CommonsImageInfo, min_dimension: int = ConnectorDefaults.WIKIMEDIA_MIN_DIMENSION) -> bool:
    mime = (info.mime or "").lower()
    if not info.url or not mime.startswith("image/") or "svg" in mime:
        return False
    return (info.width or 0) > min_dimension and (info.height or 0) > min_dimension


class WikimediaConnector(HttpConnector):
    """Openly licensed images from Wikimedia Commons."""

    def __init__(
        self,
        api_url: str = ConnectorDefaults.WIKIMEDIA_API_URL,
        timeout_seconds: float = ConnectorDefaults.TIMEOUT_SECONDS,
        user_agent: str = ConnectorDefaults.USER_AGENT,
        delay_seconds: float = ConnectorDefaults.REFRESH_DELAY_MS / 1000,
        search_limit: int = ConnectorDefaults.WIKIMEDIA_SEARCH_LIMIT,
    ):
        super().__init__(timeout_seconds=timeout_seconds, user_agent=user_agent, delay_seconds=delay_seconds)
        self.api_url = api_url
        self.search_limit = search_limit

    @property
    def source_type(self) -> str:
        return "wikimedia"

    def time_budget(self, query: DiscoveryQuery) -> float:
        return self.per_call_budget(len(query.seed_names))

    async def _fetch(self, query: DiscoveryQuery) -> ConnectorResult:
        records: list[RawEntityRecord] = []
        partial_errors: list[str] = []

        for index, name in enumerate(query.seed_names):
            if index:
                await asyncio.sleep(self.delay_seconds)
            try:
                images = await self.search_images(name)
            except BOUNDARY_ERRORS as e:
                logger.warning(f"Commons search failed for {name}: {e}")
                partial_errors.append(f"wikimedia: {name}: {e}")
                continue
            if images:
                records.append(RawEntityRecord(source=self.source_type, name=name, images=images))

        return ConnectorResult(source=self.source_type, records=records, partial_errors=partial_errors)

    async def search_images(self, name: str) -> list[ImageSource]:
        payload = await self._get_json(
            self.api_url,
            params={
                "action": "query",
                "generator": "search",
                "gsrsearch": f"{name} actress",
                "gsrnamespace": 6,
                "gsrlimit": self.search_limit,
                "prop": "imageinfo",
                "iiprop": "url|size|mime|extmetadata",
                "format": "json",
            },
        )
        response = CommonsResponse.model_validate(payload)
        if response.query is None:
            return []

        pages = sorted(
            response.query.pages.items(),
            key=lambda item: (item[1].index if item[1].index is not None else 1_000_000, item[0]),
        )

        images: list[ImageSource] = []
        for _, page in pages:
            for info in page.imageinfo:
                if not is_usable_image(info):
                    continue
                images.append(self._to_image(page.title, info))
        return images

    def _to_image(self, title: str | None, info: CommonsImageInfo) -> ImageSource:
        meta = info.extmetadata
        license_type = parse_license(meta.license_short_name.value if meta and meta.license_short_name else None)
        caption = None
        if meta and meta.image_description and meta.image_description.value:
            caption = _HTML_TAGS.sub("", meta.image_description.value).strip() or None
        if caption is None and title:
            caption = title.removeprefix("File:").rsplit(".", 1)[0]

        return ImageSource(
            platform=self.source_type,
            url=info.url,
            image_type="post",
            license_type=license_type,
            confidence=OPEN_LICENSE_CONFIDENCE if license_type != "unknown" else UNKNOWN_LICENSE_CONFIDENCE,
            caption=caption,
            width=info.width,
            height=info.height,
        )

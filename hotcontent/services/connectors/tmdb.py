# hotcontent/services/connectors/tmdb.py
"""
TMDB person connector.

Discovery searches a few regional terms plus the seed names, keeps
acting credits above the popularity floor and enriches each person with
external ids. Image lookups (profile and tagged images) are used by the
metadata refresh chain.

Without an API key the connector reports itself disabled and returns
nothing. That is a soft-disable, not an error.

API Documentation: https://developer.themoviedb.org/reference
"""

import asyncio
import logging

from hotcontent.constants import ConnectorDefaults
from hotcontent.services.connectors.base import (
    BOUNDARY_ERRORS,
    ConnectorResult,
    DiscoveryQuery,
    HttpConnector,
    ImageSource,
    RawEntityRecord,
    SocialHandle,
)
from hotcontent.services.connectors.schemas import (
    TmdbExternalIds,
    TmdbImagesResponse,
    TmdbPerson,
    TmdbSearchResponse,
    TmdbTaggedImagesResponse,
)
from hotcontent.utils.text import normalize_name

logger = logging.getLogger(__name__)

PROFILE_BASE_CONFIDENCE = 70
TAGGED_BASE_CONFIDENCE = 75
SOCIAL_CONFIDENCE = 80
ACTING_DEPARTMENT = "acting"


def profile_confidence(vote_average: float | None) -> int:
    return int(min(100, PROFILE_BASE_CONFIDENCE + (vote_average or 0) * 3))


def tagged_confidence(vote_average: float | None) -> int:
    return int(min(100, TAGGED_BASE_CONFIDENCE + (vote_average or 0) * 2))


class TmdbConnector(HttpConnector):
    """Discover people and image metadata from TMDB."""

    def __init__(
        self,
        api_key: str | None,
        base_url: str = ConnectorDefaults.TMDB_API_BASE,
        image_base: str = ConnectorDefaults.TMDB_IMAGE_BASE,
        timeout_seconds: float = ConnectorDefaults.TIMEOUT_SECONDS,
        user_agent: str = ConnectorDefaults.USER_AGENT,
        delay_seconds: float = ConnectorDefaults.REFRESH_DELAY_MS / 1000,
        search_terms: tuple[str, ...] = ConnectorDefaults.TMDB_SEARCH_TERMS,
    ):
        super().__init__(timeout_seconds=timeout_seconds, user_agent=user_agent, delay_seconds=delay_seconds)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.image_base = image_base
        self.search_terms = search_terms

    @property
    def source_type(self) -> str:
        return "tmdb"

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def time_budget(self, query: DiscoveryQuery) -> float:
        calls = len(self.search_terms) + len(query.seed_names) + query.limit
        return self.per_call_budget(calls)

    def image_url(self, file_path: str) -> str:
        return f"{self.image_base}{file_path}"

    async def _fetch(self, query: DiscoveryQuery) -> ConnectorResult:
        if not self.enabled:
            logger.info("TMDB_API_KEY not set, TMDB connector disabled")
            return ConnectorResult(source=self.source_type, disabled=True)

        people: dict[int, TmdbPerson] = {}
        for term in self.search_terms:
            for person in await self.search_people(term):
                if self._is_candidate(person, query.min_popularity):
                    people.setdefault(person.id, person)
            await asyncio.sleep(self.delay_seconds)

        partial_errors: list[str] = []
        for name in query.seed_names:
            try:
                person = await self.find_person(name)
            except BOUNDARY_ERRORS as e:
                logger.warning(f"TMDB search failed for {name}: {e}")
                partial_errors.append(f"tmdb: search {name}: {e}")
                person = None
            if person is not None:
                people.setdefault(person.id, person)
            await asyncio.sleep(self.delay_seconds)

        records: list[RawEntityRecord] = []
        for person in list(people.values())[: query.limit]:
            try:
                external = await self.external_ids(person.id)
            except BOUNDARY_ERRORS as e:
                # Record without ids is still useful
                logger.warning(f"TMDB external_ids failed for {person.id}: {e}")
                partial_errors.append(f"tmdb: external_ids {person.id}: {e}")
                external = TmdbExternalIds()
            records.append(self._normalize_person(person, external))
            await asyncio.sleep(self.delay_seconds)

        return ConnectorResult(source=self.source_type, records=records, partial_errors=partial_errors)

    def _is_candidate(self, person: TmdbPerson, min_popularity: float) -> bool:
        if person.id is None or not person.name:
            return False
        if (person.known_for_department or "").lower() != ACTING_DEPARTMENT:
            return False
        return (person.popularity or 0) >= min_popularity

    async def search_people(self, term: str) -> list[TmdbPerson]:
        payload = await self._get_json(
            f"{self.base_url}/search/person",
            params={"api_key": self.api_key, "query": term, "page": 1},
        )
        return TmdbSearchResponse.model_validate(payload).results

    async def find_person(self, name: str) -> TmdbPerson | None:
        """Best acting match for an exact name, or None."""
        if not self.enabled:
            return None
        key = normalize_name(name)
        for person in await self.search_people(name):
            if person.id is None or normalize_name(person.name) != key:
                continue
            if (person.known_for_department or "").lower() == ACTING_DEPARTMENT:
                return person
        return None

    async def external_ids(self, person_id: int) -> TmdbExternalIds:
        payload = await self._get_json(
            f"{self.base_url}/person/{person_id}/external_ids",
            params={"api_key": self.api_key},
        )
        return TmdbExternalIds.model_validate(payload)

    async def person_images(self, person_id: int) -> list[ImageSource]:
        if not self.enabled:
            return []
        payload = await self._get_json(
            f"{self.base_url}/person/{person_id}/images",
            params={"api_key": self.api_key},
        )
        images = []
        for image in TmdbImagesResponse.model_validate(payload).profiles:
            if not image.file_path:
                continue
            images.append(
                ImageSource(
                    platform=self.source_type,
                    url=self.image_url(image.file_path),
                    image_type="profile",
                    license_type="api-provided",
                    confidence=profile_confidence(image.vote_average),
                    width=image.width,
                    height=image.height,
                )
            )
        return images

    async def tagged_images(self, person_id: int) -> list[ImageSource]:
        if not self.enabled:
            return []
        payload = await self._get_json(
            f"{self.base_url}/person/{person_id}/tagged_images",
            params={"api_key": self.api_key, "page": 1},
        )
        images = []
        for image in TmdbTaggedImagesResponse.model_validate(payload).results:
            if not image.file_path:
                continue
            images.append(
                ImageSource(
                    platform=self.source_type,
                    url=self.image_url(image.file_path),
                    image_type="tagged",
                    license_type="api-provided",
                    confidence=tagged_confidence(image.vote_average),
                    caption=image.media_title,
                    width=image.width,
                    height=image.height,
                )
            )
        return images

    def _normalize_person(self, person: TmdbPerson, external: TmdbExternalIds) -> RawEntityRecord:
        popularity = float(person.popularity or 0)
        images = []
        if person.profile_path:
            images.append(
                ImageSource(
                    platform=self.source_type,
                    url=self.image_url(person.profile_path),
                    image_type="profile",
                    license_type="api-provided",
                    confidence=PROFILE_BASE_CONFIDENCE,
                )
            )

        handles = []
        for platform, handle in (
            ("instagram", external.instagram_id),
            ("twitter", external.twitter_id),
            ("tiktok", external.tiktok_id),
            ("youtube", external.youtube_id),
            ("facebook", external.facebook_id),
        ):
            if handle:
                handles.append(
                    SocialHandle(
                        platform=platform,
                        handle=handle,
                        confidence=SOCIAL_CONFIDENCE,
                        source=self.source_type,
                    )
                )

        return RawEntityRecord(
            source=self.source_type,
            name=person.name,
            tmdb_id=person.id,
            imdb_id=external.imdb_id or None,
            wikidata_id=external.wikidata_id or None,
            popularity_score=min(100.0, popularity),
            tmdb_popularity=popularity,
            images=images,
            social_handles=handles,
        )

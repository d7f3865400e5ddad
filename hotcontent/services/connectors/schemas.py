# hotcontent/services/connectors/schemas.py
"""
Response schemas for the consumed source APIs.

Every field is optional so a missing key decodes to None instead of
failing the whole payload. Unknown keys are ignored.
"""

from pydantic import BaseModel, ConfigDict, Field


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# -----------------------------------------------------------------------------
# Wikidata SPARQL
# -----------------------------------------------------------------------------


class SparqlValue(_Lenient):
    type: str | None = None
    value: str | None = None


class WikidataBinding(_Lenient):
    person: SparqlValue | None = None
    person_label: SparqlValue | None = Field(default=None, alias="personLabel")
    person_label_te: SparqlValue | None = Field(default=None, alias="personLabelTe")
    birth_date: SparqlValue | None = Field(default=None, alias="birthDate")
    wikipedia: SparqlValue | None = None
    imdb: SparqlValue | None = None
    tmdb: SparqlValue | None = None
    instagram: SparqlValue | None = None
    twitter: SparqlValue | None = None
    youtube: SparqlValue | None = None
    occupations: SparqlValue | None = None

    def text(self, name: str) -> str | None:
        value = getattr(self, name)
        if value is None or not value.value:
            return None
        return value.value.strip() or None


class SparqlResults(_Lenient):
    bindings: list[WikidataBinding] = Field(default_factory=list)


class SparqlResponse(_Lenient):
    results: SparqlResults = Field(default_factory=SparqlResults)


# -----------------------------------------------------------------------------
# TMDB
# -----------------------------------------------------------------------------


class TmdbPerson(_Lenient):
    id: int | None = None
    name: str | None = None
    popularity: float | None = None
    known_for_department: str | None = None
    profile_path: str | None = None
    gender: int | None = None


class TmdbSearchResponse(_Lenient):
    results: list[TmdbPerson] = Field(default_factory=list)


class TmdbExternalIds(_Lenient):
    imdb_id: str | None = None
    wikidata_id: str | None = None
    instagram_id: str | None = None
    twitter_id: str | None = None
    tiktok_id: str | None = None
    youtube_id: str | None = None
    facebook_id: str | None = None


class TmdbImage(_Lenient):
    file_path: str | None = None
    vote_average: float | None = None
    width: int | None = None
    height: int | None = None


class TmdbImagesResponse(_Lenient):
    profiles: list[TmdbImage] = Field(default_factory=list)


class TmdbTaggedMedia(_Lenient):
    title: str | None = None
    name: str | None = None


class TmdbTaggedImage(TmdbImage):
    media_type: str | None = None
    media: TmdbTaggedMedia | None = None

    @property
    def media_title(self) -> str | None:
        if self.media is None:
            return None
        return self.media.title or self.media.name


class TmdbTaggedImagesResponse(_Lenient):
    results: list[TmdbTaggedImage] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Wikipedia REST summary
# -----------------------------------------------------------------------------


class WikipediaImage(_Lenient):
    source: str | None = None
    width: int | None = None
    height: int | None = None


class WikipediaDesktopUrls(_Lenient):
    page: str | None = None


class WikipediaContentUrls(_Lenient):
    desktop: WikipediaDesktopUrls | None = None


class WikipediaSummary(_Lenient):
    type: str | None = None
    title: str | None = None
    description: str | None = None
    extract: str | None = None
    originalimage: WikipediaImage | None = None
    thumbnail: WikipediaImage | None = None
    content_urls: WikipediaContentUrls | None = None

    @property
    def page_url(self) -> str | None:
        if self.content_urls and self.content_urls.desktop:
            return self.content_urls.desktop.page
        return None


# -----------------------------------------------------------------------------
# Wikimedia Commons
# -----------------------------------------------------------------------------


class ExtMetadataValue(_Lenient):
    value: str | None = None


class CommonsExtMetadata(_Lenient):
    license_short_name: ExtMetadataValue | None = Field(default=None, alias="LicenseShortName")
    image_description: ExtMetadataValue | None = Field(default=None, alias="ImageDescription")
    object_name: ExtMetadataValue | None = Field(default=None, alias="ObjectName")


class CommonsImageInfo(_Lenient):
    url: str | None = None
    width: int | None = None
    height: int | None = None
    mime: str | None = None
    descriptionurl: str | None = None
    extmetadata: CommonsExtMetadata | None = None


class CommonsPage(_Lenient):
    title: str | None = None
    index: int | None = None
    imageinfo: list[CommonsImageInfo] = Field(default_factory=list)


class CommonsQuery(_Lenient):
    pages: dict[str, CommonsPage] = Field(default_factory=dict)


class CommonsResponse(_Lenient):
    query: CommonsQuery | None = None

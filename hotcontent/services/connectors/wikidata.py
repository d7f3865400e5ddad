# hotcontent/services/connectors/wikidata.py
"""
Wikidata SPARQL connector.

Issues one read-only SPARQL query for women in the requested occupations
who are tied to the Telugu states (birth place in Andhra Pradesh,
Telangana or Hyderabad, or Indian citizens writing Telugu).

Endpoint: https://query.wikidata.org/sparql
"""

import logging
from typing import Any

import httpx

from hotcontent.constants import ConnectorDefaults, DiscoveryDefaults
from hotcontent.errors import ConnectorTimeoutError
from hotcontent.services.connectors.base import (
    ConnectorResult,
    DiscoveryQuery,
    HttpConnector,
    RawEntityRecord,
    SocialHandle,
)
from hotcontent.services.connectors.schemas import SparqlResponse, WikidataBinding
from hotcontent.services.resilience import connector_retry, raise_for_source_status

logger = logging.getLogger(__name__)


OCCUPATION_QIDS = {
    "actress": ("Q33999", "Q21169216"),  # actor, film actress
    "anchor": ("Q2722764",),  # television presenter
    "model": ("Q4610556",),
    "influencer": ("Q21930755",),
}

REGION_QIDS = (
    "Q1159",  # Andhra Pradesh
    "Q677037",  # Telangana
    "Q1361",  # Hyderabad
)
INDIA_QID = "Q668"
TELUGU_QID = "Q8097"
FEMALE_QID = "Q6581072"

SOCIAL_CONFIDENCE = 85


def build_sparql_query(entity_types: tuple[str, ...], limit: int) -> str:
    """SPARQL text for the requested entity types."""
    qids: list[str] = []
    for entity_type in entity_types:
        for qid in OCCUPATION_QIDS.get(entity_type, ()):
            if qid not in qids:
                qids.append(qid)
    if not qids:
        qids = list(OCCUPATION_QIDS["actress"])

    occupations = " ".join(f"wd:{qid}" for qid in qids)
    regions = " ".join(f"wd:{qid}" for qid in REGION_QIDS)

    return f"""
SELECT ?person ?personLabel ?personLabelTe ?birthDate ?wikipedia ?imdb ?tmdb
       ?instagram ?twitter ?youtube
       (GROUP_CONCAT(DISTINCT ?occupationLabel; separator=", ") AS ?occupations)
WHERE {{
  VALUES ?occupation {{ {occupations} }}
  ?person wdt:P106 ?occupation ;
          wdt:P21 wd:{FEMALE_QID} .
  {{
    VALUES ?region {{ {regions} }}
    ?person wdt:P19/wdt:P131* ?region .
  }} UNION {{
    ?person wdt:P27 wd:{INDIA_QID} ;
            wdt:P1412 wd:{TELUGU_QID} .
  }}
  ?occupation rdfs:label ?occupationLabel .
  FILTER(LANG(?occupationLabel) = "en")
  OPTIONAL {{ ?person wdt:P569 ?birthDate . }}
  OPTIONAL {{ ?person wdt:P345 ?imdb . }}
  OPTIONAL {{ ?person wdt:P4985 ?tmdb . }}
  OPTIONAL {{ ?person wdt:P2003 ?instagram . }}
  OPTIONAL {{ ?person wdt:P2002 ?twitter . }}
  OPTIONAL {{ ?person wdt:P2397 ?youtube . }}
  OPTIONAL {{
    ?wikipedia schema:about ?person ;
               schema:isPartOf <https://en.wikipedia.org/> .
  }}
  OPTIONAL {{
    ?person rdfs:label ?personLabelTe .
    FILTER(LANG(?personLabelTe) = "te")
  }}
  SERVICE wikibase:label {{ bd:serviceParam wikibase:language "en". }}
}}
GROUP BY ?person ?personLabel ?personLabelTe ?birthDate ?wikipedia ?imdb ?tmdb
         ?instagram ?twitter ?youtube
LIMIT {int(limit)}
"""


def infer_entity_type(occupations: str | None) -> str:
    """Map occupation labels to an entity type."""
    text = (occupations or "").lower()
    if "presenter" in text or "anchor" in text:
        return "anchor"
    if "model" in text:
        return "model"
    if "influencer" in text:
        return "influencer"
    return "actress"


class WikidataConnector(HttpConnector):
    """Discover entities from Wikidata."""

    def __init__(
        self,
        endpoint: str = ConnectorDefaults.WIKIDATA_SPARQL_URL,
        timeout_seconds: float = ConnectorDefaults.TIMEOUT_SECONDS,
        user_agent: str = ConnectorDefaults.USER_AGENT,
    ):
        super().__init__(timeout_seconds=timeout_seconds, user_agent=user_agent)
        self.endpoint = endpoint

    @property
    def source_type(self) -> str:
        return "wikidata"

    async def _fetch(self, query: DiscoveryQuery) -> ConnectorResult:
        sparql = build_sparql_query(query.entity_types, query.limit)
        payload = await self._post_sparql(sparql)
        response = SparqlResponse.model_validate(payload)

        records: list[RawEntityRecord] = []
        seen: set[str] = set()
        for binding in response.results.bindings:
            record = self._normalize_binding(binding)
            if record is None or record.wikidata_id in seen:
                continue
            if record.entity_type not in query.entity_types:
                continue
            seen.add(record.wikidata_id)
            records.append(record)

        logger.info(f"Wikidata returned {len(records)} entities")
        return ConnectorResult(source=self.source_type, records=records)

    @connector_retry
    async def _post_sparql(self, sparql: str) -> Any:
        try:
            response = await self.client.post(
                self.endpoint,
                data={"query": sparql},
                headers={"Accept": "application/sparql-results+json"},
            )
        except httpx.TimeoutException as e:
            raise ConnectorTimeoutError(self.source_type, f"SPARQL query timed out: {e}")
        raise_for_source_status(self.source_type, response)
        return response.json()

    def _normalize_binding(self, binding: WikidataBinding) -> RawEntityRecord | None:
        """Convert one SPARQL row. Rows without a QID or label are skipped."""
        person_uri = binding.text("person")
        name = binding.text("person_label")
        if not person_uri or not name:
            return None

        qid = person_uri.rsplit("/", 1)[-1]
        # Unlabelled items come back with the QID as label
        if name == qid:
            return None

        occupations = binding.text("occupations")
        tmdb_raw = binding.text("tmdb")
        birth_date = binding.text("birth_date")

        handles = []
        for platform in ("instagram", "twitter", "youtube"):
            handle = binding.text(platform)
            if handle:
                handles.append(
                    SocialHandle(
                        platform=platform,
                        handle=handle,
                        confidence=SOCIAL_CONFIDENCE,
                        verified=False,
                        source=self.source_type,
                    )
                )

        return RawEntityRecord(
            source=self.source_type,
            name=name,
            name_te=binding.text("person_label_te"),
            wikidata_id=qid,
            tmdb_id=int(tmdb_raw) if tmdb_raw and tmdb_raw.isdigit() else None,
            imdb_id=binding.text("imdb"),
            entity_type=infer_entity_type(occupations),
            occupations=[o.strip() for o in occupations.split(",") if o.strip()] if occupations else [],
            popularity_score=DiscoveryDefaults.WIKIDATA_BASE_POPULARITY,
            birth_date=birth_date[:10] if birth_date else None,
            wikipedia_url=binding.text("wikipedia"),
            social_handles=handles,
        )

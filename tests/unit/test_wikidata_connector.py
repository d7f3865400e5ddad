# tests/unit/test_wikidata_connector.py
"""
Unit tests for the Wikidata SPARQL connector.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from hotcontent.services.connectors.base import DiscoveryQuery
from hotcontent.services.connectors.schemas import WikidataBinding
from hotcontent.services.connectors.wikidata import (
    WikidataConnector,
    build_sparql_query,
    infer_entity_type,
)


def _value(value):
    return {"type": "literal", "value": value}


def _response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    return response


class TestWikidataConnector:
    """Tests for WikidataConnector."""

    @pytest.fixture
    def connector(self):
        return WikidataConnector(endpoint="https://query.example.org/sparql")

    @pytest.fixture
    def sample_binding(self):
        return {
            "person": {"type": "uri", "value": "http://www.wikidata.org/entity/Q123"},
            "personLabel": _value("Anupama Parameswaran"),
            "personLabelTe": _value("అనుపమ పరమేశ్వరన్"),
            "birthDate": _value("1996-02-18T00:00:00Z"),
            "wikipedia": {"type": "uri", "value": "https://en.wikipedia.org/wiki/Anupama_Parameswaran"},
            "imdb": _value("nm7146457"),
            "tmdb": _value("1475220"),
            "instagram": _value("anupamaparameswaran96"),
            "occupations": _value("actor, film actress"),
        }

    @pytest.fixture
    def sample_payload(self, sample_binding):
        return {"results": {"bindings": [sample_binding]}}

    def test_source_type(self, connector):
        assert connector.source_type == "wikidata"

    def test_normalize_binding(self, connector, sample_binding):
        record = connector._normalize_binding(WikidataBinding.model_validate(sample_binding))

        assert record.source == "wikidata"
        assert record.name == "Anupama Parameswaran"
        assert record.name_te == "అనుపమ పరమేశ్వరన్"
        assert record.wikidata_id == "Q123"
        assert record.tmdb_id == 1475220
        assert record.imdb_id == "nm7146457"
        assert record.birth_date == "1996-02-18"
        assert record.entity_type == "actress"
        assert record.occupations == ["actor", "film actress"]
        assert record.popularity_score == 50.0
        assert [(h.platform, h.handle, h.confidence) for h in record.social_handles] == [
            ("instagram", "anupamaparameswaran96", 85)
        ]

    def test_binding_without_label_skipped(self, connector):
        binding = WikidataBinding.model_validate({"person": {"value": "http://www.wikidata.org/entity/Q9"}})
        assert connector._normalize_binding(binding) is None

    def test_binding_with_qid_label_skipped(self, connector):
        binding = WikidataBinding.model_validate(
            {"person": {"value": "http://www.wikidata.org/entity/Q9"}, "personLabel": _value("Q9")}
        )
        assert connector._normalize_binding(binding) is None

    def test_non_numeric_tmdb_id_ignored(self, connector, sample_binding):
        sample_binding["tmdb"] = _value("abc")
        record = connector._normalize_binding(WikidataBinding.model_validate(sample_binding))
        assert record.tmdb_id is None

    @pytest.mark.asyncio
    async def test_fetch_success(self, connector, sample_payload):
        with patch.object(connector.client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _response(payload=sample_payload)

            result = await connector.fetch(DiscoveryQuery(entity_types=("actress",), limit=10))

        assert result.ok
        assert len(result.records) == 1
        assert "LIMIT 10" in mock_post.call_args.kwargs["data"]["query"]

    @pytest.mark.asyncio
    async def test_fetch_deduplicates_qids(self, connector, sample_binding):
        payload = {"results": {"bindings": [sample_binding, dict(sample_binding)]}}
        with patch.object(connector.client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _response(payload=payload)
            result = await connector.fetch(DiscoveryQuery())
        assert len(result.records) == 1

    @pytest.mark.asyncio
    async def test_fetch_filters_entity_types(self, connector, sample_binding):
        sample_binding["occupations"] = _value("television presenter")
        with patch.object(connector.client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _response(payload={"results": {"bindings": [sample_binding]}})
            result = await connector.fetch(DiscoveryQuery(entity_types=("actress",)))
        assert result.records == []

    @pytest.mark.asyncio
    async def test_fetch_empty_payload(self, connector):
        with patch.object(connector.client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _response(payload={})
            result = await connector.fetch(DiscoveryQuery())
        assert result.ok
        assert result.records == []

    @pytest.mark.asyncio
    async def test_server_error_becomes_error_result(self, connector):
        with patch.object(connector.client, "post", new_callable=AsyncMock) as mock_post, patch(
            "hotcontent.services.resilience.asyncio.sleep", new_callable=AsyncMock
        ):
            mock_post.return_value = _response(status_code=503)
            result = await connector.fetch(DiscoveryQuery())

        assert not result.ok
        assert result.error.startswith("wikidata:")
        assert result.records == []
        assert mock_post.call_count == 3

    @pytest.mark.asyncio
    async def test_timeout_becomes_error_result(self, connector):
        with patch.object(connector.client, "post", new_callable=AsyncMock) as mock_post, patch(
            "hotcontent.services.resilience.asyncio.sleep", new_callable=AsyncMock
        ):
            mock_post.side_effect = httpx.ReadTimeout("slow")
            result = await connector.fetch(DiscoveryQuery())

        assert "timed out" in result.error

    @pytest.mark.asyncio
    async def test_malformed_payload_becomes_error_result(self, connector):
        with patch.object(connector.client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _response(payload={"results": {"bindings": "not-a-list"}})
            result = await connector.fetch(DiscoveryQuery())
        assert not result.ok


class TestQueryBuilding:
    def test_occupations_for_types(self):
        sparql = build_sparql_query(("anchor",), 25)
        assert "wd:Q2722764" in sparql
        assert "wd:Q33999" not in sparql
        assert "LIMIT 25" in sparql

    def test_unknown_types_fall_back_to_actress(self):
        assert "wd:Q33999" in build_sparql_query(("singer",), 5)

    @pytest.mark.parametrize(
        "occupations,expected",
        [
            ("television presenter", "anchor"),
            ("model, actor", "model"),
            ("social media influencer", "influencer"),
            ("film actress", "actress"),
            (None, "actress"),
        ],
    )
    def test_infer_entity_type(self, occupations, expected):
        assert infer_entity_type(occupations) == expected

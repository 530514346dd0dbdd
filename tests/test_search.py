"""Tests for search execution and result decompilation."""

import logging

import httpx
import pytest

from IndexBridge.compiler import QueryCompiler
from IndexBridge.conditions import FacetRequest, SearchQuery
from IndexBridge.errors import HostUnreachableError, RemoteRejectedError
from IndexBridge.fields import FieldSchemaManager
from IndexBridge.search import FacetBucket, ResultItem, SearchService
from remote_fixtures import FIELDS_PAGE_PATH, SEARCH_PATH, facetable_fields_page


def make_service(client, *, prefix="ib_", fail_open=True) -> SearchService:
    return SearchService(
        client,
        FieldSchemaManager(client),
        QueryCompiler(prefix),
        id_field="item_id",
        fail_open=fail_open,
    )


RAW_RESPONSE = {
    "totalCountFiltered": 2,
    "results": [
        {"score": 812, "raw": {"item_id": "entity:node/1:en", "title": "One"}},
        {"score": 400, "raw": {"title": "foreign document"}},
        {"score": 120, "raw": {"item_id": "entity:node/2:en"}},
    ],
    "groupByResults": [
        {
            "field": "@ib_color",
            "values": [
                {"value": "red", "numberOfResults": 4},
                {"value": "blue", "numberOfResults": 1},
            ],
        },
        {"field": "@ib_size", "values": []},
    ],
}


class TestSearch:
    """End-to-end search against the mock remote."""

    def test_keyword_search_sends_minimal_query(self, remote, client):
        remote.add_response("POST", SEARCH_PATH, body={"results": [], "totalCountFiltered": 0})
        make_service(client).search(SearchQuery(keywords="alpha", sorts={"relevance": "DESC"}))

        call = remote.requests[0]
        assert call.json() == {"q": "alpha", "sortCriteria": "relevancy"}
        assert call.params == {"organizationId": "acme"}
        assert call.host == "platform.cloud.coveo.com"
        assert call.headers["Authorization"] == "Bearer secret-key"

    def test_schema_only_fetched_for_facets(self, remote, client):
        remote.add_response("POST", SEARCH_PATH, body={"results": []})
        make_service(client).search(SearchQuery(keywords="alpha"))
        assert [call.path for call in remote.requests] == [SEARCH_PATH]

    def test_absent_facet_is_dropped(self, remote, client):
        remote.add_response("GET", FIELDS_PAGE_PATH, body=facetable_fields_page("ib_size"))
        remote.add_response("POST", SEARCH_PATH, body={"results": []})
        results = make_service(client).search(
            SearchQuery(keywords="alpha", facets=[FacetRequest("color")])
        )
        assert "groupBy" not in remote.requests[1].json()
        assert results.warnings == []

    def test_facetable_field_is_requested(self, remote, client):
        remote.add_response("GET", FIELDS_PAGE_PATH, body=facetable_fields_page("ib_color"))
        remote.add_response("POST", SEARCH_PATH, body=RAW_RESPONSE)
        results = make_service(client).search(
            SearchQuery(facets=[FacetRequest("color", 5)])
        )
        assert remote.requests[1].json()["groupBy"] == [
            {"field": "@ib_color", "maximumNumberOfValues": 5}
        ]
        assert results.facets["color"][0] == FacetBucket('"red"', 4)

    def test_connectivity_failure_yields_empty_results(self, remote, client, caplog):
        remote.add_response("POST", SEARCH_PATH, error=httpx.ConnectError)
        with caplog.at_level(logging.WARNING, logger="IndexBridge.search"):
            results = make_service(client).search(SearchQuery(keywords="alpha"))
        assert results.items == []
        assert len(results) == 0
        assert results.result_count is None
        assert results.facets == {}
        assert results.warnings and results.warnings[0].startswith("Search failed")
        assert any(getattr(r, "event", {}).get("operation") == "search" for r in caplog.records)

    def test_undecodable_body_yields_empty_results(self, remote, client):
        remote.add_response(
            "POST", SEARCH_PATH, body=b"not-gzip", headers={"Content-Encoding": "gzip"}
        )
        results = make_service(client).search(SearchQuery(keywords="alpha"))
        assert results.items == []
        assert results.warnings[0].startswith("Search failed")

    def test_malformed_payload_does_not_raise(self, remote, client):
        remote.add_response(
            "POST",
            SEARCH_PATH,
            body={
                "totalCountFiltered": "n/a",
                "results": [{"raw": ["x"]}, {"raw": {"item_id": "entity:node/1:en"}}],
                "groupByResults": [{"field": "@ib_color", "values": 3}],
            },
        )
        results = make_service(client).search(SearchQuery(keywords="alpha"))
        assert results.item_ids == ["entity:node/1:en"]
        assert results.result_count is None
        assert results.facets == {}

    def test_rejection_is_also_swallowed_when_fail_open(self, remote, client):
        remote.add_response("POST", SEARCH_PATH, status=400, body={"message": "bad aq"})
        results = make_service(client).search(SearchQuery(keywords="alpha"))
        assert results.items == []

    def test_fail_closed_raises(self, remote, client):
        remote.add_response("POST", SEARCH_PATH, error=httpx.ConnectError)
        with pytest.raises(HostUnreachableError):
            make_service(client, fail_open=False).search(SearchQuery(keywords="alpha"))

    def test_schema_failure_drops_facets_when_fail_open(self, remote, client):
        remote.add_response("GET", FIELDS_PAGE_PATH, status=401, body={"message": "no"})
        remote.add_response("POST", SEARCH_PATH, body={"results": []})
        results = make_service(client).search(
            SearchQuery(keywords="alpha", facets=[FacetRequest("color")])
        )
        assert "groupBy" not in remote.requests[1].json()
        assert results.warnings[0].startswith("Facets dropped")

    def test_schema_failure_raises_when_fail_closed(self, remote, client):
        remote.add_response("GET", FIELDS_PAGE_PATH, status=401, body={"message": "no"})
        with pytest.raises(RemoteRejectedError):
            make_service(client, fail_open=False).search(
                SearchQuery(keywords="alpha", facets=[FacetRequest("color")])
            )
        assert len(remote.requests) == 1

    def test_execute_returns_raw_body(self, remote, client):
        remote.add_response("POST", SEARCH_PATH, body=RAW_RESPONSE)
        service = make_service(client)
        assert service.execute(service.compile(SearchQuery(keywords="alpha"))) == RAW_RESPONSE

    def test_execute_failure_returns_empty_result(self, remote, client):
        remote.add_response("POST", SEARCH_PATH, status=503, body={})
        service = make_service(client)
        assert service.execute(service.compile(SearchQuery())) == {"results": []}


class TestDecompile:
    """Raw response to generic results."""

    def test_hits_without_back_reference_are_dropped(self, client):
        results = make_service(client).decompile(RAW_RESPONSE)
        assert results.item_ids == ["entity:node/1:en", "entity:node/2:en"]
        assert results.items[0] == ResultItem("entity:node/1:en", 812.0)
        assert results.items[0].raw["title"] == "One"

    def test_result_count(self, client):
        service = make_service(client)
        assert service.decompile(RAW_RESPONSE).result_count == 2
        assert service.decompile(RAW_RESPONSE, skip_result_count=True).result_count is None
        assert service.decompile({"results": [], "totalCountFiltered": 0}).result_count is None

    def test_facets_strip_prefix_and_quote_values(self, client):
        facets = make_service(client).decompile(RAW_RESPONSE).facets
        assert facets == {"color": [FacetBucket('"red"', 4), FacetBucket('"blue"', 1)]}

    def test_facets_without_prefix(self, client):
        raw = {"groupByResults": [{"field": "@color", "values": [{"value": "x", "numberOfResults": 1}]}]}
        assert list(make_service(client, prefix="").decompile(raw).facets) == ["color"]

    def test_non_mapping_raw_is_skipped(self, client):
        raw = {"results": [{"score": 1, "raw": ["x"]}, {"score": 2, "raw": "y"}]}
        assert make_service(client).decompile(raw).items == []

    @pytest.mark.parametrize("total", ["n/a", None, -3, [1], True])
    def test_unusable_count_is_left_unset(self, client, total):
        raw = {"results": [], "totalCountFiltered": total}
        assert make_service(client).decompile(raw).result_count is None

    def test_numeric_string_count(self, client):
        assert make_service(client).decompile({"totalCountFiltered": "7"}).result_count == 7

    def test_empty_response(self, client):
        results = make_service(client).decompile({})
        assert results.items == [] and results.facets == {} and results.result_count is None

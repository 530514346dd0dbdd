"""Tests for the SearchBackend facade."""

import httpx
import pytest

from IndexBridge import SearchBackend
from IndexBridge.conditions import ConditionGroup, SearchQuery
from IndexBridge.config import IndexBridgeConfig
from IndexBridge.errors import ConfigurationError, HostUnreachableError, RemoteRejectedError
from IndexBridge.normalize import IndexField, SourceItem
from remote_fixtures import (
    FIELDS_CREATE_PATH,
    FILES_PATH,
    OLDER_THAN_PATH,
    SEARCH_PATH,
    queue_push,
)


def make_config(**sections) -> IndexBridgeConfig:
    data = {
        "remote": {"organization_id": "acme", "source_id": "src-1", "api_key": "secret-key"},
        "index": {"field_prefix": "ib_"},
    }
    data.update(sections)
    return IndexBridgeConfig.model_validate(data)


@pytest.fixture
def backend(remote, sleeper):
    with SearchBackend(make_config(), http_client=remote.http_client(), sleep=sleeper) as instance:
        yield instance


ITEMS = [
    SourceItem("entity:node/1:en", "https://site.example/a", [IndexField("title", "string", ["A"])]),
    SourceItem("entity:node/2:en", "https://site.example/b", [IndexField("title", "string", ["B"])]),
]


class TestConstruction:
    """Wiring from configuration."""

    def test_missing_credentials_fail_fast(self, remote):
        with pytest.raises(ConfigurationError):
            SearchBackend(IndexBridgeConfig(), http_client=remote.http_client())
        assert remote.requests == []

    def test_from_config_file(self, tmp_path, remote, monkeypatch):
        monkeypatch.delenv("INDEXBRIDGE_REMOTE__API_KEY", raising=False)
        path = tmp_path / "indexbridge.yaml"
        path.write_text(
            "remote:\n  organization_id: acme\n  source_id: src-1\n  api_key: k\n"
            "search:\n  source_name: Docs\n",
            encoding="utf-8",
        )
        with SearchBackend.from_config_file(path, http_client=remote.http_client()) as backend:
            assert backend.compiler.scope_source_name == "Docs"
            assert backend.client.context.organization_id == "acme"

    def test_shared_http_client_left_open(self, remote):
        http_client = remote.http_client()
        with SearchBackend(make_config(), http_client=http_client):
            pass
        assert http_client.is_closed is False


class TestIndexing:
    """Normalise, alter, push."""

    def test_index_items_pushes_normalised_documents(self, backend, remote):
        queue_push(remote)
        indexed = backend.index_items(ITEMS)

        assert indexed == ["entity:node/1:en", "entity:node/2:en"]
        operations = remote.requests[1].json()["addOrUpdate"]
        assert operations[0] == {
            "documentId": "https://site.example/a",
            "data": {
                "documentType": "WebPage",
                "sourceType": "Push",
                "item_id": "entity:node/1:en",
                "ib_title": "A",
            },
            "permissions": {},
        }
        assert backend.last_receipt.total_operations == 2

    def test_alter_hook_can_edit_and_drop(self, backend, remote):
        queue_push(remote)

        def hook(objects, items):
            assert [item.item_id for item in items] == ["entity:node/1:en", "entity:node/2:en"]
            objects.pop("entity:node/2:en")
            objects["entity:node/1:en"]["ib_boost"] = 2

        backend.add_alter_hook(hook)
        assert backend.index_items(ITEMS) == ["entity:node/1:en"]
        operations = remote.requests[1].json()["addOrUpdate"]
        assert len(operations) == 1
        assert operations[0]["data"]["ib_boost"] == 2

    def test_nothing_left_means_no_push(self, backend, remote):
        backend.add_alter_hook(lambda objects, items: objects.clear())
        assert backend.index_items(ITEMS) == []
        assert remote.requests == []

    def test_push_failure_propagates(self, backend, remote):
        remote.add_response("POST", FILES_PATH, error=httpx.ConnectError)
        with pytest.raises(HostUnreachableError) as excinfo:
            backend.index_items(ITEMS)
        assert excinfo.value.status == 503
        assert [call.path for call in remote.requests] == [FILES_PATH]

    def test_delete_all_items(self, backend, remote):
        remote.add_response("DELETE", OLDER_THAN_PATH)
        backend.delete_all_items()
        assert remote.requests[0].path == OLDER_THAN_PATH
        assert int(remote.requests[0].params["orderingId"]) > 0


class TestSchema:
    """Back-reference field provisioning."""

    def test_ensure_id_field(self, backend, remote):
        remote.add_response("POST", FIELDS_CREATE_PATH)
        assert backend.ensure_id_field() is True
        assert remote.requests[0].json() == [
            {
                "name": "item_id",
                "description": "Back-reference to the originating item",
                "type": "STRING",
            }
        ]

    def test_ensure_id_field_existing(self, backend, remote):
        remote.add_response("POST", FIELDS_CREATE_PATH, status=412, body={"message": "exists"})
        assert backend.ensure_id_field() is False

    def test_ensure_id_field_rejected(self, backend, remote):
        remote.add_response("POST", FIELDS_CREATE_PATH, status=403, body={"message": "denied"})
        with pytest.raises(RemoteRejectedError):
            backend.ensure_id_field()


class TestBackendSearch:
    """Search through the facade."""

    def test_search_round_trip(self, backend, remote):
        remote.add_response(
            "POST",
            SEARCH_PATH,
            body={
                "totalCountFiltered": 1,
                "results": [{"score": 10, "raw": {"item_id": "entity:node/1:en"}}],
            },
        )
        query = SearchQuery(
            keywords="alpha", conditions=ConditionGroup().add_condition("type", "article")
        )
        results = backend.search(query)
        assert results.item_ids == ["entity:node/1:en"]
        assert results.result_count == 1
        assert remote.requests[0].json()["aq"] == "(@ib_type==article)"

    def test_dotted_prefix_from_config(self, remote):
        remote.add_response("POST", SEARCH_PATH, body={"results": []})
        config = make_config(index={"field_prefix": "f."})
        with SearchBackend(config, http_client=remote.http_client()) as backend:
            backend.search(
                SearchQuery(conditions=ConditionGroup().add_condition("color", ["red", "blue"], "IN"))
            )
        assert remote.requests[0].json()["aq"] == "(@f.color=(red,blue))"

    def test_search_outage_degrades(self, backend, remote):
        remote.add_response("POST", SEARCH_PATH, error=httpx.ConnectError)
        results = backend.search(SearchQuery(keywords="alpha"))
        assert results.items == [] and results.result_count is None
        assert [call.path for call in remote.requests] == [SEARCH_PATH]

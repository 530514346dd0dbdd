# === NAVMAP v1 ===
# {
#   "module": "IndexBridge.backend",
#   "purpose": "Search backend facade wiring every component from one configuration.",
#   "sections": [
#     {
#       "id": "searchbackend",
#       "name": "SearchBackend",
#       "anchor": "class-searchbackend",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Search backend facade.

``SearchBackend`` is what a host application talks to. It builds one
:class:`~IndexBridge.net.RemoteClient` from an :class:`IndexBridgeConfig`
and shares it with the push pipeline, the field schema manager and the
search service, so every component sees the same credentials and connection
pool. Closing the backend releases the pool.

Indexing normalises items, runs the registered alter hooks, then pushes the
resulting documents in one batch. Hooks receive the ``{item_id: document}``
mapping together with the source items and may edit or drop documents in
place; only the ids still present afterwards are reported as indexed.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

import httpx

from .compiler import QueryCompiler
from .conditions import SearchQuery
from .config import IndexBridgeConfig, load_config
from .fields import FieldDefinition, FieldSchemaManager
from .net import ClientContext, ReadinessProbe, RemoteClient
from .normalize import DocumentNormalizer, SourceItem
from .push import BatchReceipt, PushIndex
from .search import SearchResults, SearchService

__all__ = ["AlterHook", "SearchBackend"]

logger = logging.getLogger(__name__)

AlterHook = Callable[[Dict[str, Dict[str, Any]], Sequence[SourceItem]], None]


class SearchBackend:
    """Index and search generic items through the remote service.

    Args:
        config: Validated configuration; defaults are used when omitted.
        http_client: Shared HTTPX client (left open on :meth:`close`).
        readiness_probe: Upload readiness check used between upload and commit.
        sleep: Sleep function for the commit wait.
        clock: Wall clock used for ordering ids.

    Raises:
        ConfigurationError: The organization, source or API key is missing.
    """

    def __init__(
        self,
        config: Optional[IndexBridgeConfig] = None,
        *,
        http_client: Optional[httpx.Client] = None,
        readiness_probe: Optional[ReadinessProbe] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or IndexBridgeConfig()
        context = ClientContext.from_config(self.config.remote)
        self._client = RemoteClient(
            context,
            http_client=http_client,
            http_config=self.config.http,
            endpoints=self.config.endpoints,
        )
        self.fields = FieldSchemaManager(self._client)
        self.push = PushIndex(
            self._client,
            upload_config=self.config.upload,
            readiness_probe=readiness_probe,
            sleep=sleep,
            clock=clock,
        )
        self.normalizer = DocumentNormalizer(
            field_prefix=self.config.index.field_prefix,
            id_field=self.config.index.id_field,
        )
        self.compiler = QueryCompiler(
            self.config.index.field_prefix,
            relevance_field=self.config.search.relevance_field,
            default_facet_limit=self.config.search.default_facet_limit,
            scope_source_name=self.config.search.source_name,
        )
        self.searcher = SearchService(
            self._client,
            self.fields,
            self.compiler,
            id_field=self.config.index.id_field,
            fail_open=self.config.search.fail_open,
        )
        self._alter_hooks: List[AlterHook] = []
        self.last_receipt: Optional[BatchReceipt] = None
        logger.debug(
            "search-backend-ready",
            extra={"event": {"config_hash": self.config.config_hash()[:12]}},
        )

    @classmethod
    def from_config_file(cls, path: str | Path, **kwargs: Any) -> "SearchBackend":
        """Load configuration from ``path`` (plus environment) and build a backend."""
        return cls(load_config(path), **kwargs)

    @property
    def client(self) -> RemoteClient:
        return self._client

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "SearchBackend":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------
    def ensure_id_field(self) -> bool:
        """Provision the back-reference field; ``False`` if it already existed."""
        definition = FieldDefinition(
            name=self.config.index.id_field,
            description=self.config.index.id_field_description,
            type="string",
        )
        return self.fields.ensure_fields(definition)

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------
    def add_alter_hook(self, hook: AlterHook) -> None:
        """Register ``hook(objects, items)`` to run before documents are pushed."""
        self._alter_hooks.append(hook)

    def index_items(self, items: Iterable[SourceItem]) -> List[str]:
        """Normalise and push ``items``; return the ids of the pushed documents."""
        items = list(items)
        objects: Dict[str, Dict[str, Any]] = {
            item.item_id: self.normalizer.normalize(item) for item in items
        }
        for hook in self._alter_hooks:
            hook(objects, items)

        if objects:
            self.last_receipt = self.push.save_objects(list(objects.values()))
        logger.info(
            "index-items",
            extra={"event": {"submitted": len(items), "pushed": len(objects)}},
        )
        return list(objects)

    def delete_all_items(self) -> Any:
        """Remove every document previously pushed to the source."""
        return self.push.clear_index()

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------
    def search(self, query: SearchQuery) -> SearchResults:
        return self.searcher.search(query)

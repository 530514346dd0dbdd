# === NAVMAP v1 ===
# {
#   "module": "IndexBridge",
#   "purpose": "Search backend adapter public API facade",
#   "sections": []
# }
# === /NAVMAP ===

"""
IndexBridge indexes generic content items into a hosted search index and
translates generic structured queries into that service's query language.

Core modules and how they interrelate:

- ``net`` holds the immutable ``ClientContext`` (organization, source, API
  key) and the HTTPX-backed ``RemoteClient`` that every other component uses.
  It classifies failures into the ``errors`` taxonomy.
- ``fields`` maps generic field types onto remote schema types and provisions
  or lists schema fields; the query side asks it which fields are facetable.
- ``push`` runs the open/upload/commit handshake for document batches and
  the "delete everything older than now" maintenance call.
- ``normalize`` turns typed source items into the flat documents ``push``
  batches.
- ``conditions`` defines the generic query model; ``compiler`` turns it into
  the wire format and ``search`` executes it and maps hits and facet buckets
  back to generic results.
- ``backend`` wires all of the above from one ``IndexBridgeConfig``;
  ``cli`` exposes configuration tooling; ``testing`` fakes the remote APIs.
"""

from __future__ import annotations

# --- Globals ---

__all__ = (
    "BatchReceipt",
    "ClientContext",
    "Condition",
    "ConditionGroup",
    "Conjunction",
    "DocumentNormalizer",
    "FacetBucket",
    "FacetRequest",
    "FieldDefinition",
    "FieldDescriptor",
    "FieldSchemaManager",
    "IndexBridgeConfig",
    "IndexField",
    "Operator",
    "PushIndex",
    "QueryCompiler",
    "RemoteClient",
    "ResultItem",
    "SearchBackend",
    "SearchQuery",
    "SearchResults",
    "SearchService",
    "SortDirection",
    "SourceItem",
    "WireQuery",
    "load_config",
)


# --- Re-exports ---

from .backend import SearchBackend
from .compiler import QueryCompiler, WireQuery
from .conditions import (
    Condition,
    ConditionGroup,
    Conjunction,
    FacetRequest,
    Operator,
    SearchQuery,
    SortDirection,
)
from .config import IndexBridgeConfig, load_config
from .fields import FieldDefinition, FieldDescriptor, FieldSchemaManager
from .net import ClientContext, RemoteClient
from .normalize import DocumentNormalizer, IndexField, SourceItem
from .push import BatchReceipt, PushIndex
from .search import FacetBucket, ResultItem, SearchResults, SearchService

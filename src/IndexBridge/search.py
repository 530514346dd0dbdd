"""
Search execution and result decompilation.

``SearchService`` is the query half of the adapter. It compiles a generic
:class:`~IndexBridge.conditions.SearchQuery`, sends it to the remote search
endpoint and converts the raw response back into generic results.

Flow:
1. When facets are requested the facetable schema fields are loaded first,
   so group-by requests never name a field the remote would reject.
2. The compiled :class:`~IndexBridge.compiler.WireQuery` is POSTed to the
   search endpoint scoped by ``organizationId``.
3. Hits become :class:`ResultItem` objects keyed by the configured id field;
   ``groupByResults`` become facet buckets.

Failure policy:
- With ``fail_open`` enabled (the default) a failed schema lookup drops the
  facets and a failed search returns an empty result set with a warning.
  Both cases are logged.
- With ``fail_open`` disabled every remote failure propagates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .compiler import QueryCompiler, WireQuery
from .conditions import SearchQuery
from .errors import IndexBridgeError, log_remote_failure
from .fields import FieldDescriptor, FieldSchemaManager
from .net.client import RemoteClient

__all__ = [
    "EMPTY_RESPONSE",
    "FacetBucket",
    "ResultItem",
    "SearchResults",
    "SearchService",
]

logger = logging.getLogger(__name__)

EMPTY_RESPONSE: Mapping[str, Any] = {"results": []}


@dataclass(frozen=True)
class ResultItem:
    """One search hit."""

    item_id: str
    score: Optional[float] = None
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class FacetBucket:
    """One facet value; ``filter`` is the quoted value usable as a filter term."""

    filter: str
    count: int


@dataclass
class SearchResults:
    """Generic search results.

    ``result_count`` is ``None`` when the count was skipped or unavailable.
    """

    items: List[ResultItem] = field(default_factory=list)
    result_count: Optional[int] = None
    facets: Dict[str, List[FacetBucket]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)

    @property
    def item_ids(self) -> List[str]:
        return [item.item_id for item in self.items]


class SearchService:
    """Compile, execute and decompile searches against one organization."""

    def __init__(
        self,
        client: RemoteClient,
        schema_manager: FieldSchemaManager,
        compiler: QueryCompiler,
        *,
        id_field: str = "item_id",
        fail_open: bool = True,
    ) -> None:
        self._client = client
        self._schema = schema_manager
        self._compiler = compiler
        self.id_field = id_field
        self.fail_open = fail_open

    @property
    def compiler(self) -> QueryCompiler:
        return self._compiler

    @property
    def search_url(self) -> str:
        return self._client.endpoints.search_url

    # ------------------------------------------------------------------
    # Compile
    # ------------------------------------------------------------------
    def compile(self, query: SearchQuery) -> WireQuery:
        wire, _ = self._compile(query)
        return wire

    def _compile(self, query: SearchQuery) -> Tuple[WireQuery, List[str]]:
        warnings: List[str] = []
        facetable: List[FieldDescriptor] = []
        if query.facets:
            try:
                facetable = self._schema.load_facetable_fields()
            except IndexBridgeError as exc:
                if not self.fail_open:
                    raise
                log_remote_failure(logger, exc, operation="facet-lookup", level=logging.WARNING)
                warnings.append(f"Facets dropped, field schema unavailable: {exc.message}")
        return self._compiler.compile(query, facetable), warnings

    # ------------------------------------------------------------------
    # Execute
    # ------------------------------------------------------------------
    def execute(self, wire_query: WireQuery) -> Dict[str, Any]:
        """Send ``wire_query`` and return the raw response body."""
        response, _ = self._execute(wire_query)
        return response

    def _execute(self, wire_query: WireQuery) -> Tuple[Dict[str, Any], Optional[str]]:
        try:
            response = self._client.request(
                "POST",
                params={"organizationId": self._client.context.organization_id},
                body=wire_query.to_dict(),
                host=self.search_url,
            )
        except IndexBridgeError as exc:
            if not self.fail_open:
                raise
            log_remote_failure(logger, exc, operation="search", level=logging.WARNING)
            return dict(EMPTY_RESPONSE), f"Search failed: {exc.message}"
        if not isinstance(response, dict):
            return dict(EMPTY_RESPONSE), None
        return response, None

    def search(self, query: SearchQuery) -> SearchResults:
        """Run ``query`` end to end."""
        wire, warnings = self._compile(query)
        logger.debug("search", extra={"event": {"query": wire.to_dict()}})
        raw, failure = self._execute(wire)
        results = self.decompile(raw, skip_result_count=query.skip_result_count)
        if failure:
            warnings.append(failure)
        results.warnings = warnings + results.warnings
        return results

    # ------------------------------------------------------------------
    # Decompile
    # ------------------------------------------------------------------
    def decompile(
        self, raw: Mapping[str, Any], *, skip_result_count: bool = False
    ) -> SearchResults:
        """Convert a raw search response into :class:`SearchResults`."""
        results = SearchResults()
        hits = raw.get("results")
        for hit in hits if isinstance(hits, list) else []:
            item = self._decompile_hit(hit)
            if item is not None:
                results.items.append(item)

        total = raw.get("totalCountFiltered")
        if not skip_result_count:
            results.result_count = _as_count(total) or None

        results.facets = self.decompile_facets(raw)
        return results

    def _decompile_hit(self, hit: Any) -> Optional[ResultItem]:
        if not isinstance(hit, Mapping):
            return None
        fields = hit.get("raw") or {}
        if not isinstance(fields, Mapping):
            logger.debug("Skipping hit with malformed raw fields")
            return None
        item_id = fields.get(self.id_field)
        if item_id is None or item_id == "":
            logger.debug("Skipping hit without %s", self.id_field)
            return None
        if isinstance(item_id, (list, tuple)):
            item_id = item_id[0] if item_id else None
            if item_id is None:
                return None
        score = hit.get("score")
        return ResultItem(
            item_id=str(item_id),
            score=float(score) if isinstance(score, (int, float)) else None,
            raw=dict(fields),
        )

    def decompile_facets(self, raw: Mapping[str, Any]) -> Dict[str, List[FacetBucket]]:
        """Map ``groupByResults`` back onto generic (unprefixed) field names."""
        facets: Dict[str, List[FacetBucket]] = {}
        groups = raw.get("groupByResults")
        for group in groups if isinstance(groups, list) else []:
            if not isinstance(group, Mapping):
                continue
            name = self._generic_field_name(str(group.get("field") or ""))
            values = group.get("values")
            buckets = [
                FacetBucket(
                    filter=f'"{value.get("value")}"',
                    count=_as_count(value.get("numberOfResults")) or 0,
                )
                for value in (values if isinstance(values, list) else [])
                if isinstance(value, Mapping)
            ]
            if name and buckets:
                facets[name] = buckets
        return facets

    def _generic_field_name(self, remote_name: str) -> str:
        name = remote_name[1:] if remote_name.startswith("@") else remote_name
        prefix = self._compiler.field_prefix
        if prefix and name.startswith(prefix):
            name = name[len(prefix):]
        return name


def _as_count(value: Any) -> Optional[int]:
    """Return ``value`` as a non-negative count, or ``None`` when it is not one."""
    if isinstance(value, bool):
        return None
    try:
        count = int(value)
    except (TypeError, ValueError):
        return None
    return count if count >= 0 else None

# === NAVMAP v1 ===
# {
#   "module": "IndexBridge.compiler",
#   "purpose": "Compile generic search queries into the remote query wire format.",
#   "sections": [
#     {
#       "id": "wirequery",
#       "name": "WireQuery",
#       "anchor": "class-wirequery",
#       "kind": "class"
#     },
#     {
#       "id": "querycompiler",
#       "name": "QueryCompiler",
#       "anchor": "class-querycompiler",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Compile :class:`~IndexBridge.conditions.SearchQuery` objects into wire queries.

The remote search endpoint accepts a JSON body with these keys:

- ``q``: free-text keywords (omitted when blank)
- ``aq``: advanced query expression compiled from the condition tree
- ``sortCriteria``: comma-joined ``"@field ascending"`` tokens or ``relevancy``
- ``groupBy``: facet requests, restricted to facetable schema fields
- ``firstResult`` / ``numberOfResults``: paging, only when requested

Condition trees compile recursively. Every group is wrapped in parentheses and
joined with its own conjunction so precedence is explicit:

    @f.color=(red,blue)                       IN
    (@f.status<>draft AND @f.status<>archived)  NOT IN
    (@f.a==1 AND (@f.b==2 OR @f.c<>3))        nested groups

Independent fragments (source scoping, the compiled tree) are ANDed together
unless a fragment explicitly overrides what is already there.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .conditions import (
    Condition,
    ConditionGroup,
    FacetRequest,
    Operator,
    SearchQuery,
    SortDirection,
)
from .fields import FieldDescriptor

__all__ = ["RELEVANCY_TOKEN", "QueryCompiler", "WireQuery"]

logger = logging.getLogger(__name__)

RELEVANCY_TOKEN = "relevancy"


class WireQuery:
    """Mutable builder for the remote search request body."""

    def __init__(self) -> None:
        self._query: Dict[str, Any] = {}

    def set_keywords(self, keywords: Optional[str]) -> None:
        if keywords and keywords.strip():
            self._query["q"] = keywords

    def set_sorts(self, sort_criteria: Optional[str]) -> None:
        if sort_criteria:
            self._query["sortCriteria"] = sort_criteria

    def add_advanced_query(self, aq: Optional[str], override: bool = False) -> None:
        """Add an advanced query fragment, ANDed onto any existing one unless ``override``."""
        if not aq:
            return
        if "aq" not in self._query or override:
            self._query["aq"] = aq
        else:
            self._query["aq"] = f"{self._query['aq']} AND {aq}"

    def set_facets(self, group_by: Sequence[Mapping[str, Any]]) -> None:
        if group_by:
            self._query["groupBy"] = [dict(entry) for entry in group_by]
        else:
            self._query.pop("groupBy", None)

    def set_paging(self, offset: Optional[int], limit: Optional[int]) -> None:
        if offset is not None:
            self._query["firstResult"] = int(offset)
        if limit is not None:
            self._query["numberOfResults"] = int(limit)

    @property
    def advanced_query(self) -> Optional[str]:
        return self._query.get("aq")

    def to_dict(self) -> Dict[str, Any]:
        return {
            key: [dict(entry) for entry in value] if key == "groupBy" else value
            for key, value in self._query.items()
        }

    def __repr__(self) -> str:
        return f"WireQuery({self._query!r})"


def _literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class QueryCompiler:
    """Translate generic queries into the remote query language.

    Args:
        field_prefix: Prefix added to every generic field name.
        relevance_field: Sort key that maps onto the bare ``relevancy`` token.
        default_facet_limit: ``maximumNumberOfValues`` when a facet has no limit.
        scope_source_name: When set, every query is restricted to this source.
    """

    def __init__(
        self,
        field_prefix: str = "",
        *,
        relevance_field: str = "relevance",
        default_facet_limit: int = 100,
        scope_source_name: Optional[str] = None,
    ) -> None:
        self.field_prefix = field_prefix
        self.relevance_field = relevance_field
        self.default_facet_limit = default_facet_limit
        self.scope_source_name = scope_source_name

    def remote_field(self, name: str) -> str:
        """Return the ``@``-qualified, prefixed remote field reference."""
        return f"@{self.field_prefix}{name}"

    def compile_condition(self, condition: Condition) -> str:
        remote = self.remote_field(condition.field)
        values = [_literal(value) for value in condition.values]
        if condition.operator is Operator.EQUALS:
            return f"{remote}=={values[0]}"
        if condition.operator is Operator.NOT_EQUALS:
            return f"{remote}<>{values[0]}"
        if condition.operator is Operator.IN:
            return f"{remote}=({','.join(values)})"
        # NOT IN has no native form; expand to an AND chain of inequalities.
        if not values:
            return ""
        return "(" + " AND ".join(f"{remote}<>{value}" for value in values) + ")"

    def compile_filter(self, group: Optional[ConditionGroup]) -> str:
        """Compile a condition tree; empty groups compile to an empty string."""
        if group is None:
            return ""
        fragments: List[str] = []
        for child in group.conditions:
            if isinstance(child, ConditionGroup):
                fragment = self.compile_filter(child)
            else:
                fragment = self.compile_condition(child)
            if fragment:
                fragments.append(fragment)
        if not fragments:
            return ""
        return "(" + f" {group.conjunction.value} ".join(fragments) + ")"

    def compile_sorts(self, sorts: Mapping[str, Union[SortDirection, str]]) -> str:
        tokens: List[str] = []
        for name, direction in sorts.items():
            if name == self.relevance_field:
                # Relevance only sorts one way; a direction suffix is rejected remotely.
                tokens.append(RELEVANCY_TOKEN)
                continue
            tokens.append(f"{self.remote_field(name)} {SortDirection.parse(direction).value}")
        return ",".join(tokens)

    def compile_facets(
        self,
        requests: Iterable[FacetRequest],
        facetable_fields: Iterable[Union[str, FieldDescriptor]],
    ) -> List[Dict[str, Any]]:
        """Return ``groupBy`` entries for requests whose field is facetable."""
        known = {
            entry.name if isinstance(entry, FieldDescriptor) else str(entry)
            for entry in facetable_fields
        }
        group_by: List[Dict[str, Any]] = []
        for request in requests:
            prefixed = f"{self.field_prefix}{request.field}"
            if prefixed not in known:
                logger.debug("Dropping facet on non-facetable field %s", prefixed)
                continue
            group_by.append(
                {
                    "field": f"@{prefixed}",
                    "maximumNumberOfValues": request.limit or self.default_facet_limit,
                }
            )
        return group_by

    def scope_fragment(self) -> Optional[str]:
        if not self.scope_source_name:
            return None
        return f'@syssource=="{self.scope_source_name}"'

    def compile(
        self,
        query: SearchQuery,
        facetable_fields: Iterable[Union[str, FieldDescriptor]] = (),
    ) -> WireQuery:
        """Compile ``query``; facets are checked against ``facetable_fields``."""
        wire = WireQuery()
        wire.set_keywords(query.keywords)
        wire.add_advanced_query(self.scope_fragment())
        wire.add_advanced_query(self.compile_filter(query.conditions))
        if query.facets:
            wire.set_facets(self.compile_facets(query.facets, facetable_fields))
        wire.set_sorts(self.compile_sorts(query.sorts))
        wire.set_paging(query.offset, query.limit)
        return wire

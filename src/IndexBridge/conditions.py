"""
Generic structured query types consumed by the query compiler.

This module defines what callers hand to :class:`IndexBridge.search.SearchService`:
free-text keywords, a nested boolean condition tree, facet requests, an ordered
sort criteria and paging options. Operators form a closed set; anything
outside it is rejected when the condition is built, so the compiler never has
to guess what an unknown operator meant.

Key Features:
- ``Operator`` enumerates ``=``, ``<>``, ``IN`` and ``NOT IN``
- ``ConditionGroup`` nests arbitrarily with an AND/OR conjunction per node
- ``SortDirection`` parses the usual spellings (``ASC``, ``descending``...)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .errors import UnsupportedOperatorError

__all__ = [
    "Condition",
    "ConditionGroup",
    "Conjunction",
    "FacetRequest",
    "Operator",
    "SearchQuery",
    "SortDirection",
]


class Operator(str, Enum):
    """Filter operators supported by the advanced query language."""

    EQUALS = "="
    NOT_EQUALS = "<>"
    IN = "IN"
    NOT_IN = "NOT IN"

    @classmethod
    def parse(cls, value: Union["Operator", str]) -> "Operator":
        """Return the operator named by ``value``.

        Raises:
            UnsupportedOperatorError: ``value`` is not one of the supported operators.
        """
        if isinstance(value, cls):
            return value
        normalized = " ".join(str(value).split()).upper()
        for member in cls:
            if member.value == normalized:
                return member
        raise UnsupportedOperatorError(f"Unsupported filter operator: {value!r}", operator=value)

    @property
    def takes_list(self) -> bool:
        return self in (Operator.IN, Operator.NOT_IN)


class Conjunction(str, Enum):
    AND = "AND"
    OR = "OR"

    @classmethod
    def parse(cls, value: Union["Conjunction", str]) -> "Conjunction":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise UnsupportedOperatorError(
                f"Unsupported conjunction: {value!r}", operator=value
            ) from None


class SortDirection(str, Enum):
    ASC = "ascending"
    DESC = "descending"

    @classmethod
    def parse(cls, value: Union["SortDirection", str]) -> "SortDirection":
        """Parse ``ASC``/``DESC``/``ascending``/``descending`` (any case)."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        if normalized in ("desc", "descending"):
            return cls.DESC
        if normalized in ("asc", "ascending"):
            return cls.ASC
        raise ValueError(f"Unsupported sort direction: {value!r}")


@dataclass(frozen=True)
class Condition:
    """Leaf ``field <operator> value`` of a condition tree.

    ``IN`` and ``NOT IN`` take a sequence of values (a scalar is wrapped);
    ``=`` and ``<>`` take a single scalar.

    Examples:
        >>> Condition("color", ["red", "blue"], "IN").values
        ('red', 'blue')
    """

    field: str
    value: Any
    operator: Operator = Operator.EQUALS

    def __post_init__(self) -> None:
        operator = Operator.parse(self.operator)
        object.__setattr__(self, "operator", operator)
        if not self.field:
            raise ValueError("Conditions require a field name")
        if operator.takes_list:
            value = self.value
            if isinstance(value, (str, bytes)) or not isinstance(value, (Sequence, set, frozenset)):
                value = [value]
            object.__setattr__(self, "value", tuple(value))
        elif isinstance(self.value, (list, tuple, set, frozenset)):
            raise ValueError(f"Operator {operator.value!r} takes a single value")

    @property
    def values(self) -> tuple:
        return self.value if isinstance(self.value, tuple) else (self.value,)


@dataclass
class ConditionGroup:
    """Internal node of a condition tree joining its children with one conjunction."""

    conjunction: Conjunction = Conjunction.AND
    conditions: List[Union[Condition, "ConditionGroup"]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.conjunction = Conjunction.parse(self.conjunction)
        for child in self.conditions:
            if not isinstance(child, (Condition, ConditionGroup)):
                raise TypeError(f"Unsupported condition node: {type(child).__name__}")

    def add_condition(
        self, field_name: str, value: Any, operator: Union[Operator, str] = Operator.EQUALS
    ) -> "ConditionGroup":
        """Append a leaf and return ``self`` for chaining."""
        self.conditions.append(Condition(field_name, value, Operator.parse(operator)))
        return self

    def add_group(self, group: "ConditionGroup") -> "ConditionGroup":
        """Append a nested group and return ``self`` for chaining."""
        if not isinstance(group, ConditionGroup):
            raise TypeError("add_group expects a ConditionGroup")
        self.conditions.append(group)
        return self

    def is_empty(self) -> bool:
        return all(
            isinstance(child, ConditionGroup) and child.is_empty() for child in self.conditions
        )


@dataclass(frozen=True)
class FacetRequest:
    """Request for value counts (group-by) on ``field``."""

    field: str
    limit: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.field:
            raise ValueError("Facet requests require a field name")
        if self.limit is not None and self.limit < 0:
            raise ValueError("Facet limit must be >= 0")


@dataclass
class SearchQuery:
    """Generic search request handed over by the calling system.

    Attributes:
        keywords: Free text; blank keywords are not sent.
        conditions: Root of the filter tree.
        facets: Requested facets; non-facetable fields are dropped silently.
        sorts: Ordered ``field -> direction`` mapping.
        skip_result_count: Do not surface the remote total count.
        offset: First result index (``firstResult``).
        limit: Page size (``numberOfResults``).
    """

    keywords: Optional[str] = None
    conditions: ConditionGroup = field(default_factory=ConditionGroup)
    facets: List[FacetRequest] = field(default_factory=list)
    sorts: Dict[str, SortDirection] = field(default_factory=dict)
    skip_result_count: bool = False
    offset: Optional[int] = None
    limit: Optional[int] = None

    def __post_init__(self) -> None:
        self.sorts = {name: SortDirection.parse(direction) for name, direction in self.sorts.items()}
        self.facets = [
            facet if isinstance(facet, FacetRequest) else _facet_from_mapping(facet)
            for facet in self.facets
        ]

    def add_sort(self, field_name: str, direction: Union[SortDirection, str]) -> "SearchQuery":
        self.sorts[field_name] = SortDirection.parse(direction)
        return self


def _facet_from_mapping(data: Mapping[str, Any]) -> FacetRequest:
    return FacetRequest(field=str(data["field"]), limit=data.get("limit"))

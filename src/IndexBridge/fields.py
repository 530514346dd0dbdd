"""Remote field schema provisioning and facetable-field lookup.

The remote index only accepts facet (group-by) requests on fields flagged as
facetable in its schema, and documents can only populate fields that exist.
``FieldSchemaManager`` wraps the bulk field endpoints:

- ``GET  /indexes/page/fields?origin=USER`` (paged listing)
- ``POST /indexes/fields/batch/create``
- ``PUT  /indexes/fields/batch/update``
- ``DELETE /indexes/fields/batch/delete?fields=a,b``

Single-field calls degrade to one-element bulk calls. ``ensure_fields``
treats a 412 rejection as "already exists" so provisioning is idempotent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from .errors import RemoteRejectedError
from .net.client import RemoteClient

__all__ = [
    "FieldDefinition",
    "FieldDescriptor",
    "FieldSchemaManager",
    "map_field_type",
]

logger = logging.getLogger(__name__)

FIELD_PAGE_PATH = "/indexes/page/fields"
FIELD_BATCH_PATH = "/indexes/fields/batch"

REMOTE_TYPES = frozenset({"STRING", "DATE", "LONG", "LONG_64", "DOUBLE"})
_TYPE_MAP = {
    "boolean": "STRING",
    "string": "STRING",
    "text": "STRING",
    "date": "DATE",
    "integer": "LONG_64",
}


def map_field_type(field_type: Optional[str]) -> str:
    """Map a generic field type onto the remote schema type.

    Remote type names pass through unchanged; anything unrecognised maps to
    ``STRING``.

    Examples:
        >>> map_field_type("integer")
        'LONG_64'
        >>> map_field_type("uri")
        'STRING'
    """
    if not field_type:
        return "STRING"
    if field_type in REMOTE_TYPES:
        return field_type
    return _TYPE_MAP.get(field_type.lower(), "STRING")


@dataclass(frozen=True)
class FieldDefinition:
    """Field to create or update in the remote schema."""

    name: str
    description: str = ""
    type: str = "STRING"

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Field definitions require a name")
        object.__setattr__(self, "type", map_field_type(self.type))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "FieldDefinition":
        """Build a definition from ``name``/``description``/``type`` keys; others are ignored."""

        return cls(
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            type=str(data.get("type") or "STRING"),
        )

    def to_payload(self) -> Dict[str, str]:
        return {"name": self.name, "description": self.description, "type": self.type}


@dataclass(frozen=True)
class FieldDescriptor:
    """Field metadata as reported by the remote schema listing."""

    name: str
    type: str = "STRING"
    facet: bool = False
    multi_value_facet: bool = False
    sort: bool = False
    description: str = ""
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def facetable(self) -> bool:
        return self.facet or self.multi_value_facet

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "FieldDescriptor":
        return cls(
            name=str(payload.get("name", "")),
            type=str(payload.get("type") or "STRING"),
            facet=bool(payload.get("facet")),
            multi_value_facet=bool(payload.get("multiValueFacet")),
            sort=bool(payload.get("sort")),
            description=str(payload.get("description") or ""),
            raw=dict(payload),
        )


FieldInput = Union[FieldDefinition, Mapping[str, Any]]


class FieldSchemaManager:
    """Bulk field provisioning and lookup against the platform API."""

    def __init__(self, client: RemoteClient) -> None:
        self._client = client

    @property
    def base_url(self) -> str:
        return self._client.organization_url(self._client.endpoints.platform_base_url)

    def load_user_fields(
        self, *, page: Optional[int] = None, per_page: Optional[int] = None
    ) -> Dict[str, Any]:
        """Return one raw page of user-defined fields."""

        params: Dict[str, Any] = {"origin": "USER"}
        if page is not None:
            params["page"] = page
        if per_page is not None:
            params["perPage"] = per_page
        response = self._client.request("GET", FIELD_PAGE_PATH, params=params, host=self.base_url)
        return response if isinstance(response, dict) else {}

    def iter_user_fields(self, *, per_page: Optional[int] = None) -> Iterator[FieldDescriptor]:
        """Yield every user-defined field, following ``totalPages`` pagination."""

        page = 0
        while True:
            payload = self.load_user_fields(
                page=page if page or per_page else None, per_page=per_page
            )
            for item in payload.get("items") or []:
                if isinstance(item, Mapping):
                    yield FieldDescriptor.from_payload(item)
            total_pages = payload.get("totalPages")
            if not isinstance(total_pages, int) or page + 1 >= total_pages:
                return
            page += 1

    def load_facetable_fields(self) -> List[FieldDescriptor]:
        """Return the fields currently eligible for facet (group-by) requests."""

        facetable = [descriptor for descriptor in self.iter_user_fields() if descriptor.facetable]
        logger.debug("Loaded %d facetable fields", len(facetable))
        return facetable

    def create(self, fields: Union[FieldInput, Sequence[FieldInput]]) -> Any:
        """Create one or more fields in a single bulk call."""

        payload = [definition.to_payload() for definition in _definitions(fields)]
        return self._client.request(
            "POST", f"{FIELD_BATCH_PATH}/create", body=payload, host=self.base_url
        )

    def update(self, fields: Union[FieldInput, Sequence[FieldInput]]) -> Any:
        """Update one or more fields in a single bulk call."""

        payload = [definition.to_payload() for definition in _definitions(fields)]
        return self._client.request(
            "PUT", f"{FIELD_BATCH_PATH}/update", body=payload, host=self.base_url
        )

    def delete(self, names: Union[str, FieldDefinition, Sequence[Union[str, FieldDefinition]]]) -> Any:
        """Delete one or more fields by name in a single bulk call."""

        if isinstance(names, (str, FieldDefinition)):
            names = [names]
        resolved = [item.name if isinstance(item, FieldDefinition) else str(item) for item in names]
        if not resolved:
            raise ValueError("At least one field name is required")
        return self._client.request(
            "DELETE",
            f"{FIELD_BATCH_PATH}/delete",
            params={"fields": ",".join(resolved)},
            host=self.base_url,
        )

    def ensure_fields(self, fields: Union[FieldInput, Sequence[FieldInput]]) -> bool:
        """Create ``fields``; return ``False`` when the remote reports they already exist.

        Raises:
            RemoteRejectedError: Any rejection other than 412.
        """

        try:
            self.create(fields)
        except RemoteRejectedError as exc:
            if exc.is_already_exists:
                logger.info("Fields already provisioned", extra={"event": {"status": exc.status}})
                return False
            raise
        return True


def _definitions(fields: Union[FieldInput, Sequence[FieldInput]]) -> List[FieldDefinition]:
    if isinstance(fields, (FieldDefinition, Mapping)):
        fields = [fields]
    definitions = [
        item if isinstance(item, FieldDefinition) else FieldDefinition.from_mapping(item)
        for item in fields
    ]
    if not definitions:
        raise ValueError("At least one field definition is required")
    return definitions

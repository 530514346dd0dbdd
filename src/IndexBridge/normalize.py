"""Convert generic items into flat documents ready for the push pipeline.

Each :class:`SourceItem` carries typed :class:`IndexField` values. The
normalizer coerces every value according to its type family, drops empty
values, collapses single values to scalars and prefixes field names so they
line up with the remote schema. The back-reference id field is written
unprefixed so search hits can be mapped back onto the originating item.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

__all__ = [
    "ENVELOPE_KEYS",
    "MAX_TEXT_LENGTH",
    "DocumentNormalizer",
    "IndexField",
    "SourceItem",
    "coerce_number",
    "parse_timestamp",
]

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 10_000

TEXT_TYPES = frozenset({"text", "string", "uri"})
NUMERIC_TYPES = frozenset({"integer", "duration", "decimal"})
ENVELOPE_KEYS = frozenset({"documentType", "sourceType", "documentId"})

_NUMERIC_PREFIX = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass(frozen=True)
class IndexField:
    """One typed field of a source item; ``values`` keeps its original order."""

    identifier: str
    type: str
    values: Sequence[Any] = ()


@dataclass
class SourceItem:
    """Generic item handed over for indexing."""

    item_id: str
    document_id: str
    fields: List[IndexField] = field(default_factory=list)
    document_type: str = "WebPage"
    source_type: str = "Push"


def coerce_number(value: Any) -> Any:
    """Coerce ``value`` to a number using its leading numeric prefix (``0`` if none).

    Examples:
        >>> coerce_number("42 items")
        42
        >>> coerce_number("1.5")
        1.5
        >>> coerce_number("n/a")
        0
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    match = _NUMERIC_PREFIX.match(str(value))
    if not match:
        return 0
    token = match.group(0).strip()
    if any(marker in token for marker in (".", "e", "E")):
        return float(token)
    return int(token)


def parse_timestamp(value: Any) -> Optional[int]:
    """Return ``value`` as epoch seconds, or ``None`` when it cannot be parsed.

    Accepts ``datetime``/``date`` objects, ISO-8601 strings and RFC 2822
    strings. Naive values are treated as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if not text:
            return None
        parsed = _parse_iso(text) or _parse_rfc2822(text)
        if parsed is None:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return int(parsed.timestamp())


def _parse_iso(text: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_rfc2822(text: str) -> Optional[datetime]:
    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return None


def _is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    try:
        float(str(value))
    except ValueError:
        return False
    return True


class DocumentNormalizer:
    """Build push documents from :class:`SourceItem` objects.

    Args:
        field_prefix: Prefix for every generic field name.
        id_field: Unprefixed back-reference field holding the item id.
    """

    def __init__(self, field_prefix: str = "", id_field: str = "item_id") -> None:
        self.field_prefix = field_prefix
        self.id_field = id_field
        self.reserved_keys = ENVELOPE_KEYS | {id_field}

    def normalize(self, item: SourceItem) -> Dict[str, Any]:
        document: Dict[str, Any] = {
            "documentType": item.document_type,
            "sourceType": item.source_type,
            "documentId": item.document_id,
            self.id_field: item.item_id,
        }
        for index_field in item.fields:
            values = []
            for raw in index_field.values:
                # Empty values never reach the index.
                if not raw:
                    continue
                value = self.normalize_value(index_field.type, raw)
                if value is None:
                    continue
                values.append(value)
            if not values:
                continue
            name = f"{self.field_prefix}{index_field.identifier}"
            if name in self.reserved_keys:
                logger.warning(
                    "Skipping field %s of %s: name is reserved for the document envelope",
                    name,
                    item.item_id,
                )
                continue
            document[name] = values[0] if len(values) == 1 else values
        return document

    def normalize_value(self, field_type: str, value: Any) -> Any:
        """Coerce one value; ``None`` means the value is dropped."""
        kind = (field_type or "").lower()
        if kind in TEXT_TYPES:
            text = str(value)
            if len(text) > MAX_TEXT_LENGTH:
                text = text.strip()[:MAX_TEXT_LENGTH]
            return text
        if kind in NUMERIC_TYPES:
            return coerce_number(value)
        if kind == "boolean":
            return bool(value)
        if kind == "date":
            if _is_numeric(value):
                return coerce_number(value)
            timestamp = parse_timestamp(value)
            if timestamp is None:
                logger.debug("Dropping unparseable date value %r", value)
            return timestamp
        return value

    def extract_item_id(self, raw_fields: Mapping[str, Any]) -> Optional[str]:
        """Return the back-reference item id carried by a search hit, if any."""
        value = raw_fields.get(self.id_field)
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        if value is None or value == "":
            return None
        return str(value)

"""Tests for the document item normalizer."""

import logging
from datetime import date, datetime, timezone

import pytest

from IndexBridge.normalize import (
    MAX_TEXT_LENGTH,
    DocumentNormalizer,
    IndexField,
    SourceItem,
    coerce_number,
    parse_timestamp,
)


@pytest.fixture
def normalizer() -> DocumentNormalizer:
    return DocumentNormalizer(field_prefix="ib_", id_field="item_id")


def _item(*fields: IndexField) -> SourceItem:
    return SourceItem("entity:node/1:en", "https://site.example/node/1", list(fields))


class TestNormalize:
    """Document shape."""

    def test_envelope(self, normalizer):
        document = normalizer.normalize(_item())
        assert document == {
            "documentType": "WebPage",
            "sourceType": "Push",
            "documentId": "https://site.example/node/1",
            "item_id": "entity:node/1:en",
        }

    @pytest.mark.parametrize(
        "item_id", ["entity:node/1:en", "entity:taxonomy_term/42:fr", "7", "a b/c?d"]
    )
    def test_item_id_round_trip(self, normalizer, item_id):
        document = normalizer.normalize(SourceItem(item_id, "https://site.example/x"))
        assert normalizer.extract_item_id(document) == item_id

    def test_single_value_collapses_to_scalar(self, normalizer):
        document = normalizer.normalize(_item(IndexField("title", "string", ["Hello"])))
        assert document["ib_title"] == "Hello"

    def test_multiple_values_stay_ordered(self, normalizer):
        document = normalizer.normalize(_item(IndexField("tags", "string", ["b", "a", "c"])))
        assert document["ib_tags"] == ["b", "a", "c"]

    def test_zero_values_omitted(self, normalizer):
        document = normalizer.normalize(
            _item(IndexField("tags", "string", []), IndexField("body", "text", ["", None]))
        )
        assert "ib_tags" not in document
        assert "ib_body" not in document

    def test_empty_values_filtered_before_collapse(self, normalizer):
        document = normalizer.normalize(_item(IndexField("tags", "string", ["", "only", None])))
        assert document["ib_tags"] == "only"

    def test_field_cannot_overwrite_back_reference(self, caplog):
        normalizer = DocumentNormalizer(field_prefix="", id_field="item_id")
        with caplog.at_level(logging.WARNING, logger="IndexBridge.normalize"):
            document = normalizer.normalize(
                SourceItem("42", "https://x/1", [IndexField("item_id", "string", ["a", "b"])])
            )
        assert document["item_id"] == "42"
        assert normalizer.extract_item_id(document) == "42"
        assert "reserved" in caplog.text

    @pytest.mark.parametrize(
        ("key", "expected"),
        [
            ("documentId", "https://x/1"),
            ("documentType", "WebPage"),
            ("sourceType", "Push"),
        ],
    )
    def test_field_cannot_overwrite_envelope(self, key, expected):
        normalizer = DocumentNormalizer(field_prefix="", id_field="item_id")
        document = normalizer.normalize(
            SourceItem(
                "42",
                "https://x/1",
                [IndexField(key, "string", ["zzz"]), IndexField("title", "string", ["T"])],
            )
        )
        assert document[key] == expected
        assert document["title"] == "T"

    def test_prefixed_names_never_collide(self, normalizer):
        document = normalizer.normalize(_item(IndexField("documentId", "string", ["zzz"])))
        assert document["documentId"] == "https://site.example/node/1"
        assert document["ib_documentId"] == "zzz"

    def test_unparseable_dates_dropped(self, normalizer):
        document = normalizer.normalize(_item(IndexField("changed", "date", ["not a date"])))
        assert "ib_changed" not in document


class TestNormalizeValue:
    """Per-type coercion."""

    def test_long_text_truncated_after_trim(self, normalizer):
        value = "  " + "x" * (MAX_TEXT_LENGTH + 50)
        result = normalizer.normalize_value("text", value)
        assert len(result) == MAX_TEXT_LENGTH
        assert result == "x" * MAX_TEXT_LENGTH

    def test_short_text_untouched(self, normalizer):
        assert normalizer.normalize_value("text", "  padded  ") == "  padded  "

    def test_uri_stringified(self, normalizer):
        assert normalizer.normalize_value("uri", 42) == "42"

    @pytest.mark.parametrize("field_type", ["integer", "duration", "decimal"])
    def test_numeric_types(self, normalizer, field_type):
        assert normalizer.normalize_value(field_type, "12") == 12
        assert normalizer.normalize_value(field_type, "3.5 hours") == 3.5

    def test_boolean(self, normalizer):
        assert normalizer.normalize_value("boolean", 1) is True
        assert normalizer.normalize_value("boolean", "yes") is True

    def test_date_numeric_passthrough(self, normalizer):
        assert normalizer.normalize_value("date", 1700000000) == 1700000000
        assert normalizer.normalize_value("date", "1700000000") == 1700000000

    def test_date_strings(self, normalizer):
        assert normalizer.normalize_value("date", "2023-11-14T22:13:20Z") == 1700000000
        assert normalizer.normalize_value("date", "Tue, 14 Nov 2023 22:13:20 +0000") == 1700000000

    def test_date_objects(self, normalizer):
        aware = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
        assert normalizer.normalize_value("date", aware) == 1700000000
        assert normalizer.normalize_value("date", date(1970, 1, 2)) == 86400

    def test_unknown_type_passthrough(self, normalizer):
        value = {"lat": 1.0, "lon": 2.0}
        assert normalizer.normalize_value("location", value) is value


class TestHelpers:
    """Module-level coercion helpers."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("42", 42), ("42 items", 42), ("-1.5e2", -150.0), (".5", 0.5), ("n/a", 0), (7, 7), (True, 1)],
    )
    def test_coerce_number(self, raw, expected):
        assert coerce_number(raw) == expected

    def test_parse_timestamp_naive_is_utc(self):
        assert parse_timestamp("1970-01-01T00:01:00") == 60

    def test_parse_timestamp_garbage(self):
        assert parse_timestamp("yesterday-ish") is None
        assert parse_timestamp("   ") is None

    def test_extract_item_id_missing(self, normalizer):
        assert normalizer.extract_item_id({"title": "x"}) is None
        assert normalizer.extract_item_id({"item_id": ["a", "b"]}) == "a"

"""Tests for legacy export flattening and relation normalization."""

import json

import pytest

from shiptrack.errors.domain import ImportSourceError
from shiptrack.services.legacy_export import (
    CUSTOMER_KEY,
    SHIPMENT_KEY,
    STATUS_UPDATE_KEY,
    RelationKind,
    RelationRef,
    flatten_legacy_export,
    load_json_document,
    normalize_relation,
)


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, RelationRef.none()),
        (5, RelationRef.by_id(5)),
        ("5", RelationRef.by_id(5)),
        ({"id": 5}, RelationRef.by_object(5)),
        ({"data": {"id": 5, "attributes": {}}}, RelationRef.by_object(5)),
        ({"data": None}, RelationRef.none()),
        ({"name": "no id"}, RelationRef.none()),
        ("abc", RelationRef.none()),
        (True, RelationRef.none()),
    ],
)
def test_normalize_relation(value, expected):
    assert normalize_relation(value) == expected


def test_relation_truthiness():
    assert not RelationRef.none()
    assert RelationRef.by_id(1)
    assert RelationRef.by_object(1).kind == RelationKind.by_object


class TestNestedLayout:
    """Raw CMS dumps: {data: [{id, attributes}]}."""

    def test_flattens_relations(self):
        export = flatten_legacy_export({
            "data": [
                {
                    "id": 1,
                    "attributes": {
                        "orderId": "ORD-1",
                        "trackingId": "TRK",
                        "customer": {"data": {"id": 7, "attributes": {"name": "Ada"}}},
                        "status_updates": {
                            "data": [
                                {"id": 11, "attributes": {"order_status": "delivered"}},
                                {"id": 10, "attributes": {"order_status": "picked_up"}},
                            ]
                        },
                    },
                },
                {"attributes": {"orderId": "no id"}},
            ]
        })

        assert list(export.shipments) == [1]
        assert export.shipments[1].customer == RelationRef.by_object(7)
        assert export.customers[7].name == "Ada"
        assert export.shipments[1].status_update_ids == [11, 10]
        assert export.status_updates[10].shipment == RelationRef.by_id(1)

    def test_updates_without_ordinal_sort_by_id(self):
        export = flatten_legacy_export({
            "data": [
                {
                    "id": 1,
                    "attributes": {
                        "status_updates": {
                            "data": [
                                {"id": 12, "attributes": {}},
                                {"id": 30, "attributes": {"status_update_ord": 1}},
                                {"id": 11, "attributes": {}},
                            ]
                        }
                    },
                }
            ]
        })
        assert [su.id for su in export.updates_for(1)] == [30, 11, 12]


class TestFlatLayout:
    """Already-flattened exports keyed by content type."""

    def test_flattens_sections(self):
        export = flatten_legacy_export({
            "version": 3,
            "data": {
                CUSTOMER_KEY: {"7": {"id": 7, "name": "Ada"}},
                SHIPMENT_KEY: {"1": {"id": 1, "orderId": "ORD-1", "customer": 7}},
                STATUS_UPDATE_KEY: {
                    "21": {"id": 21, "shipment": 1, "status_update_ord": "2"},
                    "20": {"id": 20, "shipment": {"id": 1}, "status_update_ord": 1},
                    "99": {"id": 99, "shipment": 2},
                },
            },
        })

        assert export.shipments[1].customer == RelationRef.by_id(7)
        assert export.customers[7].name == "Ada"
        assert [su.id for su in export.updates_for(1)] == [20, 21]

    def test_listed_updates_without_back_reference(self):
        export = flatten_legacy_export({
            "data": {
                SHIPMENT_KEY: {"1": {"id": 1, "status_updates": [5, {"id": 6}]}},
                STATUS_UPDATE_KEY: {"5": {"id": 5}, "6": {"id": 6}},
            }
        })
        assert [su.id for su in export.updates_for(1)] == [5, 6]

    def test_section_must_be_object(self):
        with pytest.raises(ImportSourceError):
            flatten_legacy_export({"data": {SHIPMENT_KEY: "nope"}})


@pytest.mark.parametrize(
    "document",
    [[], "text", {"data": "x"}, {"data": {"unrelated": {}}}, {"rows": []}],
)
def test_unsupported_shape(document):
    with pytest.raises(ImportSourceError) as exc_info:
        flatten_legacy_export(document)
    assert exc_info.value.code == "E-1003"


class TestLoadJsonDocument:
    """Reading JSON import files."""

    def test_reads_file(self, tmp_path):
        path = tmp_path / "dump.json"
        path.write_text(json.dumps({"data": []}), encoding="utf-8")
        assert load_json_document(path) == {"data": []}

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "dump.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ImportSourceError):
            load_json_document(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ImportSourceError):
            load_json_document(tmp_path / "missing.json")

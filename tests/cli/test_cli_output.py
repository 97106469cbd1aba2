"""Tests for CLI output formatters."""

import json

from shiptrack.cli.output import (
    format_bulk_report,
    format_import_report,
    format_shipment_detail,
    format_status_options,
    shipment_to_dict,
    status_markup,
)
from shiptrack.services.import_models import BulkUpdateReport, ImportReport, RowResult
from shiptrack.services.status_constants import get_status_options


def _report() -> ImportReport:
    report = ImportReport()
    report.add(RowResult(key="ORD-1", success=True, row_number=1,
                         updated_status_count=2, order_status="delivered"))
    report.add(RowResult.failure("ORD-[2]", 2, "E-2001", "Unknown order status 'warp'"))
    return report


def test_import_report_json():
    data = json.loads(format_import_report(_report(), as_json=True))
    assert data["succeeded"] == 1
    assert data["results"][1]["key"] == "ORD-[2]"


def test_import_report_table_escapes_keys():
    text = format_import_report(_report(), "CSV import")
    assert "ORD-[2]" in text
    assert "1 succeeded" in text
    assert "E-2001" in text


def test_bulk_report_lists_skipped():
    report = BulkUpdateReport(skipped=[7, 9])
    assert "7, 9" in format_bulk_report(report)


def test_status_markup_unknown_value():
    assert status_markup("delivered") == "[green]Delivered[/green]"
    assert status_markup("mystery") == "[white]mystery[/white]"


def test_status_options_table():
    text = format_status_options(get_status_options())
    assert "Out for Delivery" in text


def test_shipment_detail_newest_first(shipment_factory):
    shipment = shipment_factory(
        "ORD-1",
        "TRK-1",
        history=[
            ("picked_up", "2024-02-01T00:00:00+00:00"),
            ("delivered", "2024-02-02T00:00:00+00:00"),
        ],
    )
    data = shipment_to_dict(shipment)
    assert [u["status_update_ord"] for u in data["statusUpdates"]] == [2, 1]
    assert data["customer"] is None

    detail = json.loads(format_shipment_detail(shipment, matched_by="exact", as_json=True))
    assert detail["matchedBy"] == "exact"
    assert "Delivered" in format_shipment_detail(shipment)

"""Tests for import report types."""

from shiptrack.services.import_models import BulkUpdateReport, ImportReport, RowResult


def test_success_dict_shape():
    result = RowResult(
        key="ORD-1", success=True, row_number=1, updated_status_count=3,
        order_status="delivered",
    )
    assert result.to_dict() == {
        "key": "ORD-1",
        "success": True,
        "updatedStatusCount": 3,
        "order_status": "delivered",
    }


def test_failure_to_error():
    result = RowResult.failure("TRK-9", 4, "E-3001", "Shipment 'TRK-9' not found")
    error = result.to_error()
    assert error.code == "E-3001"
    assert error.message == "Shipment Not Found"
    assert error.rows == {4: "TRK-9"}


def test_import_report_counts():
    report = ImportReport()
    report.add(RowResult(key="A", success=True, row_number=1, updated_status_count=1))
    report.add(RowResult.failure("B", 2, "E-2001", "Unknown order status 'warp'"))
    report.add(RowResult.failure("C", 3, "E-2001", "Unknown order status 'warp'"))

    assert (report.rows_processed, report.succeeded, report.failed) == (3, 1, 2)
    assert [e.rows for e in report.errors()] == [{2: "B"}, {3: "C"}]
    data = report.to_dict()
    assert data["rowsProcessed"] == 3
    assert data["results"][1] == {
        "key": "B",
        "success": False,
        "error": "Unknown order status 'warp'",
    }


def test_bulk_report_dict():
    report = BulkUpdateReport(
        applied=[RowResult(key=1, success=True, row_number=1, updated_status_count=1)],
        skipped=[99],
    )
    assert report.rows_processed == 2
    assert report.to_dict() == {
        "rowsProcessed": 2,
        "applied": 1,
        "skipped": 1,
        "failed": 0,
        "skippedShipmentIds": [99],
        "results": [{"key": 1, "success": True, "updatedStatusCount": 1}],
    }

"""Unit tests for the error registry, domain errors and formatting.

Tests verify:
- Every code is registered under the category its prefix names
- Domain exceptions carry the codes the import report relies on
- Grouping and summary formatting of row failures
"""

import pytest

from shiptrack.errors import (
    ERROR_REGISTRY,
    CustomerInUseError,
    ErrorCategory,
    ImportSourceError,
    InvalidPhoneError,
    InvalidStatusError,
    ShipmentNotFoundError,
    ShipTrackError,
    StorageUnavailableError,
    format_error,
    format_error_summary,
    get_error,
    get_errors_by_category,
    group_errors,
)

_PREFIX_CATEGORY = {
    "1": ErrorCategory.DATA,
    "2": ErrorCategory.VALIDATION,
    "3": ErrorCategory.LOOKUP,
    "4": ErrorCategory.SYSTEM,
}


def test_codes_match_categories():
    for code, error in ERROR_REGISTRY.items():
        assert error.code == code
        assert error.category == _PREFIX_CATEGORY[code[2]]
        assert error.remediation


def test_only_storage_errors_are_retryable():
    retryable = {e.code for e in ERROR_REGISTRY.values() if e.is_retryable}
    assert retryable == {"E-4001", "E-4002"}


def test_get_errors_by_category():
    codes = [e.code for e in get_errors_by_category(ErrorCategory.LOOKUP)]
    assert codes == ["E-3001", "E-3002", "E-3003"]
    assert get_error("E-9999") is None


@pytest.mark.parametrize(
    "exc,code",
    [
        (ShipmentNotFoundError("TRK-1"), "E-3001"),
        (InvalidStatusError("warp"), "E-2001"),
        (InvalidPhoneError("abc"), "E-2003"),
        (CustomerInUseError(1, 2), "E-3003"),
        (ImportSourceError("bad"), "E-1003"),
        (StorageUnavailableError("down"), "E-4001"),
    ],
)
def test_domain_error_codes(exc, code):
    assert exc.code == code
    assert get_error(code) is not None


class TestShipTrackError:
    """Tests for coded error construction."""

    def test_from_code_formats_template(self):
        error = ShipTrackError.from_code("E-3001", key="TRK-1")
        assert error.message == "No shipment matches 'TRK-1'."
        assert str(error) == "E-3001: No shipment matches 'TRK-1'."

    def test_from_code_missing_placeholder_keeps_template(self):
        error = ShipTrackError.from_code("E-1002")
        assert error.message == "No rows found in {source}."

    def test_from_code_unknown(self):
        error = ShipTrackError.from_code("E-0000")
        assert error.message == "Unknown error: E-0000"

    def test_from_exception(self):
        error = ShipTrackError.from_exception(InvalidStatusError("warp"))
        assert error.code == "E-2001"
        assert error.field_name == "order_status"
        assert "status-options" in error.remediation

    def test_from_exception_uncoded(self):
        error = ShipTrackError.from_exception(RuntimeError("boom"))
        assert error.code == "E-4003"
        assert error.message == "boom"


class TestFormatting:
    """Tests for display formatting and grouping."""

    def test_format_error_lists_rows_with_keys(self):
        error = ShipTrackError.from_code("E-3001", key="X")
        error.rows = {5: "TRK-5", 2: "TRK-2"}
        text = format_error(error)
        assert "Rows: 2 (TRK-2), 5 (TRK-5)" in text
        assert "Action:" in text

    def test_format_error_field_and_no_remediation(self):
        error = ShipTrackError.from_exception(InvalidStatusError("warp"))
        text = format_error(error, include_remediation=False)
        assert "Field: order_status" in text
        assert "Action:" not in text

    def test_group_errors_by_code(self):
        errors = [
            ShipTrackError(code="E-2001", message="a", remediation="r", rows={3: "ORD-3"}),
            ShipTrackError(code="E-3001", message="b", remediation="r", rows={2: "ORD-2"}),
            ShipTrackError(code="E-2001", message="c", remediation="r", rows={1: "ORD-1"}),
        ]
        grouped = group_errors(errors)
        assert [e.code for e in grouped] == ["E-2001", "E-3001"]
        assert grouped[0].rows == {1: "ORD-1", 3: "ORD-3"}
        assert errors[0].rows == {3: "ORD-3"}

    def test_summary(self):
        assert format_error_summary([]) == "No errors."
        single = format_error_summary([ShipTrackError.from_code("E-3001", key="X")])
        assert single.startswith("E-3001")
        multi = format_error_summary([
            ShipTrackError(code="E-3001", message="m", remediation="r", rows={1: "A"}),
            ShipTrackError(code="E-2001", message="m", remediation="r", rows={2: "B"}),
        ])
        assert multi.startswith("2 row(s) failed with 2 error code(s):")

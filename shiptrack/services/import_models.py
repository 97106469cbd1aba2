"""Result types produced by the import orchestrator."""

from dataclasses import dataclass, field

from shiptrack.errors.formatter import ShipTrackError
from shiptrack.errors.registry import get_error


@dataclass
class RowResult:
    """Outcome of one input row."""

    key: str | int
    """Identifying key: order id, tracking id or shipment id."""

    success: bool

    row_number: int = 0
    """1-based position of the row in its batch."""

    error: str | None = None
    error_code: str | None = None
    updated_status_count: int | None = None
    order_status: str | None = None

    @classmethod
    def failure(
        cls, key: str | int, row_number: int, code: str, message: str
    ) -> "RowResult":
        """Build a failed result carrying an E-XXXX code."""
        return cls(
            key=key,
            success=False,
            row_number=row_number,
            error=message,
            error_code=code,
        )

    def to_dict(self) -> dict:
        """Render the external per-row result shape."""
        data: dict = {"key": self.key, "success": self.success}
        if self.error is not None:
            data["error"] = self.error
        if self.updated_status_count is not None:
            data["updatedStatusCount"] = self.updated_status_count
        if self.order_status is not None:
            data["order_status"] = self.order_status
        return data

    def to_error(self) -> ShipTrackError:
        """Convert a failed row into a coded error for summaries."""
        code = self.error_code or "E-4003"
        error_def = get_error(code)
        return ShipTrackError(
            code=code,
            message=error_def.title if error_def else (self.error or code),
            remediation=error_def.remediation if error_def else "",
            rows={self.row_number: self.key} if self.row_number else {},
            is_retryable=error_def.is_retryable if error_def else False,
        )


@dataclass
class ImportReport:
    """Manifest of a batch import: one RowResult per input row."""

    results: list[RowResult] = field(default_factory=list)

    def add(self, result: RowResult) -> None:
        self.results.append(result)

    @property
    def rows_processed(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return self.rows_processed - self.succeeded

    def failures(self) -> list[RowResult]:
        return [r for r in self.results if not r.success]

    def errors(self) -> list[ShipTrackError]:
        """Coded errors for every failed row (see format_error_summary)."""
        return [r.to_error() for r in self.failures()]

    def to_dict(self) -> dict:
        return {
            "rowsProcessed": self.rows_processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }


@dataclass
class BulkUpdateReport:
    """Outcome of the append-mode bulk update path.

    Requests for shipments that do not exist are not errors here: their
    shipment ids land in ``skipped`` and no RowResult is recorded.
    """

    applied: list[RowResult] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failed: list[RowResult] = field(default_factory=list)

    @property
    def rows_processed(self) -> int:
        return len(self.applied) + len(self.skipped) + len(self.failed)

    def errors(self) -> list[ShipTrackError]:
        return [r.to_error() for r in self.failed]

    def to_dict(self) -> dict:
        return {
            "rowsProcessed": self.rows_processed,
            "applied": len(self.applied),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
            "skippedShipmentIds": list(self.skipped),
            "results": [r.to_dict() for r in self.applied + self.failed],
        }

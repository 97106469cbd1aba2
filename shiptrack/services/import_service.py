"""Batch import orchestration.

Drives the tokenizer, tracking resolver and history reconciler over
batches of rows. Each row runs in its own transaction: it commits on
success and rolls back on failure, so a bad row never takes the rest of the
batch with it and rows already committed stay committed if the caller
stops half way.

Only two things abort a batch: an unreadable source (ImportSourceError)
and an unreachable database (StorageUnavailableError). Everything else is
turned into a coded RowResult.

Example:
    orchestrator = ImportOrchestrator(db)
    report = orchestrator.import_csv_rows(read_shipment_csv("export.csv"))
    print(report.succeeded, report.failed)
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session

from shiptrack.db.models import DEFAULT_ORDER_STATUS, Customer, OrderStatus, Shipment
from shiptrack.errors.domain import (
    DomainError,
    ImportSourceError,
    ShipmentNotFoundError,
    StorageUnavailableError,
)
from shiptrack.schemas import (
    ImportRow,
    StatusImportRow,
    StatusUpdateRequest,
    describe_validation_error,
    is_missing_field,
)
from shiptrack.services.customer_service import UNKNOWN, CustomerService
from shiptrack.services.import_models import BulkUpdateReport, ImportReport, RowResult
from shiptrack.services.legacy_export import LegacyExport, LegacyShipment
from shiptrack.services.reconciler import (
    DEFAULT_DETAILS,
    EventSource,
    HistoryReconciler,
    MergeMode,
    NewStatusUpdate,
    ReconcileOutcome,
)
from shiptrack.services.shipment_service import ShipmentService
from shiptrack.services.status_constants import normalize_status
from shiptrack.services.status_parser import (
    parse_event_timestamp,
    parse_status_updates,
    to_iso_timestamp,
)
from shiptrack.services.tracking_resolver import TrackingResolver

logger = logging.getLogger(__name__)

_FATAL_DB_ERRORS = (OperationalError, InterfaceError)


@dataclass
class ImportOptions:
    """Knobs for one orchestrator instance."""

    csv_merge_mode: MergeMode = MergeMode.replace_all
    """Merge mode for full-row CSV imports."""

    status_merge_mode: MergeMode = MergeMode.append
    """Merge mode for status-only imports addressed by tracking code."""

    dayfirst: bool = True
    """Read ambiguous ``1/2/2024`` dates as day/month."""

    default_details: str = DEFAULT_DETAILS
    """Details text for parsed events that carry no location."""

    suffix_legacy_tracking_ids: bool = True
    """Store legacy tracking codes as ``<code>-<shipment id>``."""


def _row_key(raw: Any, *names: str, fallback: str) -> str | int:
    if isinstance(raw, dict):
        for name in names:
            value = raw.get(name)
            if value not in (None, ""):
                return value
    else:
        for name in names:
            value = getattr(raw, name, None)
            if value not in (None, ""):
                return value
    return fallback


class ImportOrchestrator:
    """Runs imports row by row with per-row transactions.

    Attributes:
        db: SQLAlchemy session. Committed after every successful row.
        options: Import behaviour settings.
    """

    def __init__(self, db: Session, options: ImportOptions | None = None) -> None:
        self.db = db
        self.options = options or ImportOptions()
        self.reconciler = HistoryReconciler(db, dayfirst=self.options.dayfirst)
        self.resolver = TrackingResolver(db)
        self.shipments = ShipmentService(db)
        self.customers = CustomerService(db)

    # -- row isolation --------------------------------------------------

    def _run_row(
        self,
        key: str | int,
        row_number: int,
        work: Callable[[], RowResult | None],
    ) -> RowResult | None:
        """Run one row's work in its own transaction.

        Raises:
            StorageUnavailableError: The database cannot be reached.
            ImportSourceError: The source itself is unusable.
        """
        try:
            result = work()
            self.db.commit()
            return result
        except _FATAL_DB_ERRORS as e:
            self.db.rollback()
            logger.error("Storage unavailable at row %d: %s", row_number, e)
            raise StorageUnavailableError(str(e)) from e
        except (ImportSourceError, StorageUnavailableError):
            self.db.rollback()
            raise
        except DomainError as e:
            self.db.rollback()
            code, message = e.code, str(e)
        except PydanticValidationError as e:
            self.db.rollback()
            message, _ = describe_validation_error(e)
            code = "E-1001" if is_missing_field(e) else "E-2002"
        except IntegrityError as e:
            self.db.rollback()
            code, message = "E-3002", str(e.orig)
        except Exception as e:
            self.db.rollback()
            code, message = "E-4003", str(e) or type(e).__name__

        logger.warning("Row %d (%s) failed [%s]: %s", row_number, key, code, message)
        return RowResult.failure(key, row_number, code, message)

    @staticmethod
    def _success(
        key: str | int, row_number: int, outcome: ReconcileOutcome
    ) -> RowResult:
        return RowResult(
            key=key,
            success=True,
            row_number=row_number,
            updated_status_count=outcome.updated_status_count,
            order_status=outcome.shipment.order_status,
        )

    def _to_iso(self, value: str | None) -> str | None:
        parsed = parse_event_timestamp(value, dayfirst=self.options.dayfirst)
        return to_iso_timestamp(parsed) if parsed else None

    def _events_to_updates(self, raw: str | None) -> list[NewStatusUpdate]:
        return [
            NewStatusUpdate.from_event(event, self.options.default_details)
            for event in parse_status_updates(raw)
        ]

    def _log_summary(self, label: str, report: ImportReport) -> None:
        logger.info(
            "%s: %d row(s) processed, %d succeeded, %d failed",
            label, report.rows_processed, report.succeeded, report.failed,
        )

    # -- CSV: full rows, shipment by order id ---------------------------

    def _import_csv_row(self, raw: dict | ImportRow, row_number: int) -> RowResult:
        row = raw if isinstance(raw, ImportRow) else ImportRow.model_validate(raw)
        updates = self._events_to_updates(row.status_updates)

        customer = self.customers.get_or_create_by_address(row.address)
        estimated = self._to_iso(row.estimated_delivery)
        shipment = self.shipments.get_by_order_id(row.order_id)
        if shipment is None:
            shipment = self.shipments.create_shipment(
                order_id=row.order_id,
                tracking_id=row.tracking_id,
                customer_id=customer.id,
                estimated_delivery=estimated,
                delivery_address=row.address,
            )
        else:
            shipment.tracking_id = row.tracking_id
            shipment.customer_id = customer.id
            shipment.delivery_address = row.address
            if estimated:
                shipment.estimated_delivery = estimated
            self.db.flush()

        outcome = self.reconciler.reconcile(
            shipment.id, updates, self.options.csv_merge_mode, EventSource.csv_import
        )
        return self._success(row.order_id, row_number, outcome)

    def import_csv_rows(self, rows: Iterable[dict | ImportRow]) -> ImportReport:
        """Import full shipment rows (customer, shipment and history).

        Args:
            rows: Row dicts (see read_shipment_csv) or ImportRow models.

        Returns:
            ImportReport keyed by order id, one entry per input row.

        Raises:
            StorageUnavailableError: The database cannot be reached.
        """
        report = ImportReport()
        for row_number, raw in enumerate(rows, start=1):
            key = _row_key(raw, "order_id", "orderId", fallback=f"row {row_number}")
            report.add(
                self._run_row(key, row_number, partial(self._import_csv_row, raw, row_number))
            )
        self._log_summary("CSV import", report)
        return report

    # -- status-only rows, shipment by tracking code --------------------

    def _import_status_row(
        self, raw: dict | StatusImportRow, row_number: int
    ) -> RowResult:
        row = raw if isinstance(raw, StatusImportRow) else StatusImportRow.model_validate(raw)
        match = self.resolver.resolve_or_raise(row.tracking_id)
        updates = self._events_to_updates(row.status_updates)
        outcome = self.reconciler.reconcile(
            match.shipment.id,
            updates,
            self.options.status_merge_mode,
            EventSource.tracking_import,
        )
        return self._success(row.tracking_id, row_number, outcome)

    def import_status_rows(
        self, rows: Iterable[dict | StatusImportRow]
    ) -> ImportReport:
        """Import status histories for existing shipments.

        Shipments are found with the tracking resolver. Rows whose tracking
        code matches nothing are reported as E-3001 failures.

        Returns:
            ImportReport keyed by tracking id.
        """
        report = ImportReport()
        for row_number, raw in enumerate(rows, start=1):
            key = _row_key(
                raw, "tracking_id", "trackingId", fallback=f"row {row_number}"
            )
            report.add(
                self._run_row(
                    key, row_number, partial(self._import_status_row, raw, row_number)
                )
            )
        self._log_summary("Status import", report)
        return report

    # -- bulk append requests, shipment by primary key ------------------

    @staticmethod
    def _update_from_request(req: StatusUpdateRequest) -> NewStatusUpdate:
        return NewStatusUpdate(
            order_status=req.order_status,
            details=req.details or None,
            location=req.location or None,
            timestamp=req.timestamp,
        )

    def _apply_request(
        self, raw: dict | StatusUpdateRequest, row_number: int
    ) -> RowResult | None:
        req = (
            raw
            if isinstance(raw, StatusUpdateRequest)
            else StatusUpdateRequest.model_validate(raw)
        )
        try:
            outcome = self.reconciler.reconcile(
                req.shipment_id,
                [self._update_from_request(req)],
                MergeMode.append,
                EventSource.bulk_update,
            )
        except ShipmentNotFoundError:
            logger.info(
                "Bulk update row %d: shipment %d not found, skipped",
                row_number, req.shipment_id,
            )
            return None
        return self._success(req.shipment_id, row_number, outcome)

    def apply_bulk_updates(
        self, requests: Iterable[dict | StatusUpdateRequest]
    ) -> BulkUpdateReport:
        """Append one status event per request.

        Requests naming a shipment that does not exist are skipped, not
        failed; their ids are listed in ``BulkUpdateReport.skipped``.
        Malformed requests and storage conflicts are reported as failures.

        Returns:
            BulkUpdateReport with applied, skipped and failed rows.
        """
        report = BulkUpdateReport()
        for row_number, raw in enumerate(requests, start=1):
            key = _row_key(
                raw, "shipment_id", "shipmentId", fallback=f"row {row_number}"
            )
            result = self._run_row(
                key, row_number, partial(self._apply_request, raw, row_number)
            )
            if result is None:
                report.skipped.append(key)
            elif result.success:
                report.applied.append(result)
            else:
                report.failed.append(result)
        logger.info(
            "Bulk update: %d applied, %d skipped, %d failed",
            len(report.applied), len(report.skipped), len(report.failed),
        )
        return report

    # -- operator actions -----------------------------------------------

    def append_status(
        self,
        shipment_id: int,
        order_status: str | OrderStatus | None = None,
        details: str | None = None,
        location: str | None = None,
        timestamp: str | datetime | None = None,
        source: EventSource = EventSource.operator,
    ) -> ReconcileOutcome:
        """Append one status event to a shipment.

        Does not commit; the caller owns the transaction.

        Raises:
            ShipmentNotFoundError: If the shipment does not exist.
            InvalidStatusError: If order_status is not a known status.
        """
        update = NewStatusUpdate(
            order_status=normalize_status(order_status) if order_status else None,
            details=details,
            location=location,
            timestamp=timestamp,
        )
        return self.reconciler.reconcile(
            shipment_id, [update], MergeMode.append, source
        )

    def append_by_tracking(
        self,
        tracking_id: str,
        order_status: str | OrderStatus | None = None,
        details: str | None = None,
        location: str | None = None,
        timestamp: str | datetime | None = None,
    ) -> ReconcileOutcome:
        """Append one status event to the shipment a tracking code resolves to.

        Raises:
            ShipmentNotFoundError: If the tracking code resolves to nothing.
        """
        match = self.resolver.resolve_or_raise(tracking_id)
        return self.append_status(
            match.shipment.id, order_status, details, location, timestamp
        )

    # -- legacy JSON export, everything by caller-supplied id -----------

    def _ensure_legacy_customer(self, export: LegacyExport, customer_id: int) -> None:
        if self.db.get(Customer, customer_id) is not None:
            return
        legacy = export.customers.get(customer_id)
        name = legacy.name if legacy and legacy.name and legacy.name.strip() else None
        phone = legacy.phone if legacy and legacy.phone and legacy.phone.strip() else None
        customer = Customer(
            id=customer_id,
            name=name or f"{UNKNOWN} Customer {customer_id}",
            address=(legacy.address if legacy else None) or f"{UNKNOWN} Address",
            phone=phone or "N/A",
            is_published=bool(legacy and legacy.published_at),
        )
        if legacy and legacy.published_at:
            customer.published_at = self._to_iso(legacy.published_at)
        self.db.add(customer)
        self.db.flush()

    def _legacy_tracking_id(self, legacy: LegacyShipment) -> str:
        if not legacy.tracking_id:
            return f"TRK-{legacy.id}"
        if self.options.suffix_legacy_tracking_ids:
            return f"{legacy.tracking_id}-{legacy.id}"
        return legacy.tracking_id

    def _import_legacy_shipment(
        self, export: LegacyExport, shipment_id: int, row_number: int
    ) -> RowResult:
        legacy = export.shipments[shipment_id]
        customer_id = legacy.customer.id if legacy.customer else None
        if customer_id is not None:
            self._ensure_legacy_customer(export, customer_id)

        if self.db.get(Shipment, shipment_id) is None:
            shipment = self.shipments.create_shipment(
                shipment_id=shipment_id,
                order_id=legacy.order_id or f"ORD-{shipment_id}",
                tracking_id=self._legacy_tracking_id(legacy),
                customer_id=customer_id,
                order_date=self._to_iso(legacy.order_date),
                estimated_delivery=self._to_iso(legacy.estimated_delivery),
                origin_address=legacy.origin_address or f"{UNKNOWN} Origin",
                delivery_address=legacy.delivery_address,
                order_status=legacy.order_status,
                is_published=bool(legacy.published_at),
            )
            if legacy.published_at:
                shipment.published_at = self._to_iso(legacy.published_at)

        updates = [
            NewStatusUpdate(
                order_status=normalize_status(su.order_status or DEFAULT_ORDER_STATUS),
                details=su.details or None,
                location=su.location or None,
                timestamp=su.timestamp,
                id=su.id,
            )
            for su in export.updates_for(shipment_id)
        ]
        outcome = self.reconciler.reconcile(
            shipment_id, updates, MergeMode.replace_all, EventSource.legacy_import
        )
        return self._success(shipment_id, row_number, outcome)

    def import_legacy_export(self, export: LegacyExport) -> ImportReport:
        """Import a flattened legacy export.

        Shipments keep their legacy ids. Existing shipments keep their
        fields but get their history replaced. Customers are created on
        demand for the shipments that reference them.

        Returns:
            ImportReport keyed by shipment id.
        """
        report = ImportReport()
        for row_number, shipment_id in enumerate(sorted(export.shipments), start=1):
            report.add(
                self._run_row(
                    shipment_id,
                    row_number,
                    partial(self._import_legacy_shipment, export, shipment_id, row_number),
                )
            )
        self._log_summary("Legacy import", report)
        return report

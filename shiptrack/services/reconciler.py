"""History reconciler: merges new status events into a shipment's history.

Every path that creates status updates (operator action, tracking import,
bulk update, CSV import, legacy import) goes through
``HistoryReconciler.reconcile`` with an explicit ``MergeMode``:

- ``append``: one or more events are added at the tail. Ordinals continue
  from the current maximum, computed after locking the shipment row so two
  writers cannot claim the same ordinal. Events whose
  ``(order_status, source timestamp, details)`` already exist are skipped;
  an undated event matches a stored row whose time was defaulted.
- ``replace_all``: the existing history is deleted and the new list is
  stored with ordinals ``1..N`` in input order.

After either mode the shipment's ``order_status`` mirrors the event with the
highest ordinal. The reconciler flushes but never commits.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from shiptrack.db.models import OrderStatus, Shipment, StatusUpdate, utc_now_iso
from shiptrack.errors.domain import ShipmentNotFoundError
from shiptrack.services.status_constants import normalize_status
from shiptrack.services.status_parser import (
    StatusEvent,
    parse_event_timestamp,
    to_iso_timestamp,
)

logger = logging.getLogger(__name__)

DEFAULT_DETAILS = "No details provided"


class MergeMode(str, Enum):
    """How new events combine with persisted history."""

    append = "append"
    replace_all = "replace_all"


class EventSource(str, Enum):
    """Where a batch of status events came from.

    Logged with every merge; also decides how undated events are stamped.
    """

    operator = "operator"
    tracking_import = "tracking_import"
    bulk_update = "bulk_update"
    csv_import = "csv_import"
    legacy_import = "legacy_import"


# Events from these sources happen as they are received, so a missing time
# is their real time. Undated file rows keep a defaulted time instead.
LIVE_SOURCES = frozenset({EventSource.operator, EventSource.bulk_update})


@dataclass
class NewStatusUpdate:
    """A status event waiting to be merged into history."""

    order_status: OrderStatus | None = None
    """Event status. None means "keep the shipment's current status"."""

    details: str | None = None
    location: str | None = None

    timestamp: datetime | str | None = None
    """Parsed datetime or raw text. Unparseable or missing means merge time
    (recorded as defaulted for file imports)."""

    id: int | None = None
    """Caller-supplied primary key (legacy imports only)."""

    @classmethod
    def from_event(
        cls, event: StatusEvent, default_details: str = DEFAULT_DETAILS
    ) -> "NewStatusUpdate":
        """Adapt a tokenizer event.

        Raises:
            InvalidStatusError: If the status token is not a known status.
        """
        return cls(
            order_status=normalize_status(event.status_type),
            details=event.location or default_details,
            location=event.location,
            timestamp=event.timestamp,
        )


@dataclass
class ReconcileOutcome:
    """Result of one reconcile() call."""

    shipment: Shipment
    created: list[StatusUpdate] = field(default_factory=list)
    skipped_duplicates: int = 0

    @property
    def updated_status_count(self) -> int:
        return len(self.created)


class HistoryReconciler:
    """Merges status events into persisted shipment history.

    Attributes:
        db: SQLAlchemy session. Callers own commit/rollback.
        dayfirst: Date order used when parsing raw timestamps.
    """

    def __init__(self, db: Session, dayfirst: bool = True) -> None:
        self.db = db
        self.dayfirst = dayfirst

    def reconcile(
        self,
        shipment_id: int,
        updates: list[NewStatusUpdate],
        mode: MergeMode,
        source: EventSource,
    ) -> ReconcileOutcome:
        """Merge events into one shipment's history.

        Args:
            shipment_id: Owning shipment's primary key.
            updates: Events in insertion order.
            mode: Append to or replace the existing history.
            source: Originating path, for logging.

        Returns:
            ReconcileOutcome with the refreshed shipment.

        Raises:
            ShipmentNotFoundError: If the shipment does not exist. Nothing
                is written in that case.
        """
        shipment = self._lock_shipment(shipment_id)
        now = utc_now_iso()

        live = source in LIVE_SOURCES
        if mode == MergeMode.replace_all:
            outcome = self._replace_all(shipment, updates, now, live)
        else:
            outcome = self._append(shipment, updates, now, live)

        self.db.flush()
        self.db.expire(shipment, ["status_updates"])
        logger.debug(
            "Reconciled shipment %d (%s, %s): %d created, %d duplicate(s), "
            "status=%s",
            shipment.id, mode.value, source.value, len(outcome.created),
            outcome.skipped_duplicates, shipment.order_status,
        )
        return outcome

    def recompute_status(self, shipment: Shipment) -> str:
        """Re-derive order_status from the highest ordinal.

        An empty history leaves the current value untouched.
        """
        latest = self.db.execute(
            select(StatusUpdate.order_status)
            .where(StatusUpdate.shipment_id == shipment.id)
            .order_by(StatusUpdate.status_update_ord.desc())
            .limit(1)
        ).scalar_one_or_none()
        if latest is not None:
            shipment.order_status = latest
        return shipment.order_status

    def _lock_shipment(self, shipment_id: int) -> Shipment:
        shipment = (
            self.db.query(Shipment)
            .filter(Shipment.id == shipment_id)
            .with_for_update()
            .one_or_none()
        )
        if shipment is None:
            raise ShipmentNotFoundError(shipment_id)
        return shipment

    def _source_timestamp(self, update: NewStatusUpdate) -> str | None:
        """ISO time carried by the event itself, or None when it has none."""
        value = update.timestamp
        if isinstance(value, datetime):
            return to_iso_timestamp(value)
        parsed = parse_event_timestamp(value, dayfirst=self.dayfirst)
        return to_iso_timestamp(parsed) if parsed else None

    def _build_row(
        self,
        shipment: Shipment,
        update: NewStatusUpdate,
        status: str,
        source_timestamp: str | None,
        now: str,
        ordinal: int,
    ) -> StatusUpdate:
        row = StatusUpdate(
            shipment_id=shipment.id,
            order_status=status,
            details=update.details,
            location=update.location,
            timestamp=source_timestamp or now,
            timestamp_defaulted=source_timestamp is None,
            status_update_ord=ordinal,
        )
        if update.id is not None:
            row.id = update.id
        self.db.add(row)
        return row

    def _append(
        self, shipment: Shipment, updates: list[NewStatusUpdate], now: str, live: bool
    ) -> ReconcileOutcome:
        outcome = ReconcileOutcome(shipment=shipment)
        max_ord = self.db.execute(
            select(func.max(StatusUpdate.status_update_ord)).where(
                StatusUpdate.shipment_id == shipment.id
            )
        ).scalar_one()
        next_ord = (max_ord or 0) + 1

        seen = {
            (
                row.order_status,
                None if row.timestamp_defaulted else row.timestamp,
                row.details,
            )
            for row in self.db.execute(
                select(StatusUpdate).where(StatusUpdate.shipment_id == shipment.id)
            ).scalars()
        }

        for update in updates:
            status = (
                update.order_status.value
                if update.order_status is not None
                else shipment.order_status
            )
            timestamp = self._source_timestamp(update) or (now if live else None)
            key = (status, timestamp, update.details)
            if key in seen:
                outcome.skipped_duplicates += 1
                continue
            seen.add(key)

            row = self._build_row(shipment, update, status, timestamp, now, next_ord)
            outcome.created.append(row)
            next_ord += 1
            if update.order_status is not None:
                shipment.order_status = status

        return outcome

    def _replace_all(
        self, shipment: Shipment, updates: list[NewStatusUpdate], now: str, live: bool
    ) -> ReconcileOutcome:
        outcome = ReconcileOutcome(shipment=shipment)
        self.db.execute(
            delete(StatusUpdate)
            .where(StatusUpdate.shipment_id == shipment.id)
            .execution_options(synchronize_session="fetch")
        )
        # Old ordinals must be gone before 1..N are reused.
        self.db.flush()
        self.db.expire(shipment, ["status_updates"])

        for ordinal, update in enumerate(updates, start=1):
            status = (
                update.order_status.value
                if update.order_status is not None
                else shipment.order_status
            )
            timestamp = self._source_timestamp(update) or (now if live else None)
            row = self._build_row(shipment, update, status, timestamp, now, ordinal)
            outcome.created.append(row)

        if outcome.created:
            shipment.order_status = outcome.created[-1].order_status
        return outcome

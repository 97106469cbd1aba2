"""Service for shipment CRUD, history maintenance and dashboard queries.

Status history is never edited here directly: new events go through the
HistoryReconciler, and removing one event re-derives the shipment status
from what remains.

Example:
    svc = ShipmentService(db)
    shipment = svc.create_shipment(order_id="O1", tracking_id="T1")
    svc.delete_shipment(shipment.id)
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, selectinload

from shiptrack.db.models import (
    DEFAULT_ORDER_STATUS,
    OrderStatus,
    Shipment,
    StatusUpdate,
    utc_now_iso,
)
from shiptrack.errors.domain import (
    NotFoundError,
    ShipmentNotFoundError,
    ValidationError,
)
from shiptrack.services.reconciler import HistoryReconciler
from shiptrack.services.status_constants import normalize_status

logger = logging.getLogger(__name__)

RECENT_SHIPMENTS_LIMIT = 5

_UPDATABLE_FIELDS = frozenset({
    "order_id",
    "tracking_id",
    "customer_id",
    "order_date",
    "estimated_delivery",
    "origin_address",
    "delivery_address",
    "is_published",
})


@dataclass
class DashboardStats:
    """Summary counts plus the most recently ordered shipments."""

    total: int
    delivered: int
    in_transit: int
    pending: int
    recent: list[Shipment] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "stats": {
                "totalShipments": self.total,
                "deliveredCount": self.delivered,
                "inTransitCount": self.in_transit,
                "pendingCount": self.pending,
            },
            "recentShipments": [
                {
                    "id": s.id,
                    "orderId": s.order_id,
                    "trackingId": s.tracking_id,
                    "orderDate": s.order_date,
                    "status": s.order_status,
                    "customer": s.customer.name if s.customer else None,
                }
                for s in self.recent
            ],
        }


class ShipmentService:
    """CRUD and maintenance operations for shipments.

    Methods do NOT call db.commit(); the caller owns the transaction.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def create_shipment(
        self,
        order_id: str,
        tracking_id: str,
        customer_id: int | None = None,
        order_date: str | None = None,
        estimated_delivery: str | None = None,
        origin_address: str | None = None,
        delivery_address: str | None = None,
        order_status: str | OrderStatus | None = None,
        is_published: bool = True,
        shipment_id: int | None = None,
    ) -> Shipment:
        """Create a shipment with an empty history.

        Args:
            order_id: External order reference (unique).
            tracking_id: Carrier tracking code.
            order_status: Initial status; defaults to yet_to_be_picked.
            shipment_id: Caller-supplied primary key (legacy imports).

        Returns:
            The flushed Shipment.

        Raises:
            InvalidStatusError: If order_status is not a known status.
        """
        status = (
            normalize_status(order_status) if order_status else DEFAULT_ORDER_STATUS
        )
        shipment = Shipment(
            order_id=order_id,
            tracking_id=tracking_id,
            customer_id=customer_id,
            order_date=order_date or utc_now_iso(),
            estimated_delivery=estimated_delivery,
            origin_address=origin_address,
            delivery_address=delivery_address,
            order_status=status.value,
            is_published=is_published,
        )
        if shipment_id is not None:
            shipment.id = shipment_id
        self.db.add(shipment)
        self.db.flush()
        logger.info("Created shipment %d (order %s)", shipment.id, order_id)
        return shipment

    def get_shipment(self, shipment_id: int) -> Shipment:
        """Get a shipment with its history loaded.

        Raises:
            ShipmentNotFoundError: If no shipment has that id.
        """
        shipment = (
            self.db.query(Shipment)
            .options(selectinload(Shipment.status_updates))
            .filter(Shipment.id == shipment_id)
            .one_or_none()
        )
        if shipment is None:
            raise ShipmentNotFoundError(shipment_id)
        return shipment

    def get_by_order_id(self, order_id: str) -> Shipment | None:
        return self.db.query(Shipment).filter(Shipment.order_id == order_id).first()

    def update_shipment(self, shipment_id: int, **fields: object) -> Shipment:
        """Update scalar fields of a shipment.

        None values are ignored. ``order_status`` is not accepted: it always
        mirrors the latest history event, so status changes are appended
        through the reconciler instead.

        Raises:
            ShipmentNotFoundError: If no shipment has that id.
            ValidationError: If a field name is not updatable.
        """
        rejected = sorted(set(fields) - _UPDATABLE_FIELDS)
        if rejected:
            raise ValidationError(
                f"Cannot update fields: {', '.join(rejected)}", field=rejected[0]
            )

        shipment = self.get_shipment(shipment_id)
        for name, value in fields.items():
            if value is not None:
                setattr(shipment, name, value)
        self.db.flush()
        return shipment

    def delete_shipment(self, shipment_id: int) -> int:
        """Delete a shipment and, first, all of its status updates.

        Returns:
            Number of status updates removed.

        Raises:
            ShipmentNotFoundError: If no shipment has that id.
        """
        shipment = self.db.get(Shipment, shipment_id)
        if shipment is None:
            raise ShipmentNotFoundError(shipment_id)

        result = self.db.execute(
            delete(StatusUpdate)
            .where(StatusUpdate.shipment_id == shipment_id)
            .execution_options(synchronize_session="evaluate")
        )
        self.db.expire(shipment, ["status_updates"])
        self.db.delete(shipment)
        self.db.flush()
        logger.info(
            "Deleted shipment %d with %d status update(s)",
            shipment_id, result.rowcount,
        )
        return result.rowcount

    def delete_status_update(self, status_update_id: int) -> Shipment:
        """Remove one history event and re-derive the shipment status.

        Remaining ordinals are left as they are; gaps are allowed.

        Raises:
            NotFoundError: If no status update has that id.
        """
        row = self.db.get(StatusUpdate, status_update_id)
        if row is None:
            raise NotFoundError("Status update", status_update_id)
        shipment = row.shipment
        self.db.delete(row)
        self.db.flush()
        self.db.expire(shipment, ["status_updates"])
        HistoryReconciler(self.db).recompute_status(shipment)
        self.db.flush()
        logger.info(
            "Deleted status update %d of shipment %d", status_update_id, shipment.id
        )
        return shipment

    def publish_all(self) -> int:
        """Mark every unpublished shipment as published.

        Returns:
            Number of shipments changed.
        """
        now = utc_now_iso()
        result = self.db.execute(
            update(Shipment)
            .where(Shipment.is_published.is_(False))
            .values(is_published=True, published_at=now, updated_at=now)
            .execution_options(synchronize_session="evaluate")
        )
        logger.info("Published %d shipment(s)", result.rowcount)
        return result.rowcount

    def dashboard_stats(self) -> DashboardStats:
        """Counts by status and the five most recent orders."""

        def count_where(*criteria) -> int:
            return self.db.execute(
                select(func.count(Shipment.id)).where(*criteria)
            ).scalar_one()

        recent = (
            self.db.query(Shipment)
            .options(selectinload(Shipment.customer))
            .order_by(Shipment.order_date.desc(), Shipment.id.desc())
            .limit(RECENT_SHIPMENTS_LIMIT)
            .all()
        )
        return DashboardStats(
            total=count_where(),
            delivered=count_where(Shipment.order_status == OrderStatus.delivered.value),
            in_transit=count_where(Shipment.order_status == OrderStatus.intransit.value),
            pending=count_where(Shipment.order_status != OrderStatus.delivered.value),
            recent=recent,
        )

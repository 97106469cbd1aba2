"""SQLAlchemy ORM models for the shiptrack state database.

This module defines the shipment tracking data model: customers, shipments
and the ordered status history of each shipment. Uses SQLAlchemy 2.0 style
with Mapped and mapped_column.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


def utc_now_iso() -> str:
    """Generate current UTC timestamp in ISO8601 format."""
    return datetime.now(UTC).isoformat()


class OrderStatus(str, Enum):
    """Lifecycle states of a shipment.

    Declaration order is the order exposed to UIs.
    """

    yet_to_be_picked = "yet_to_be_picked"
    picked_up = "picked_up"
    intransit = "intransit"
    on_the_way = "on_the_way"
    out_for_delivery = "out_for_delivery"
    delivered = "delivered"
    cancelled = "cancelled"


DEFAULT_ORDER_STATUS = OrderStatus.yet_to_be_picked


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class Customer(Base):
    """Address/contact record that owns one or more shipments.

    Attributes:
        id: Integer primary key (caller-supplied during legacy imports)
        name: Customer name
        address: Delivery address, also the import lookup key
        phone: Contact phone number
        is_published: Whether the record is visible
        published_at: ISO8601 timestamp of publication
        created_at: ISO8601 timestamp of creation
        updated_at: ISO8601 timestamp of last update
    """

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    published_at: Mapped[str | None] = mapped_column(
        String(50), nullable=True, default=utc_now_iso
    )
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso, onupdate=utc_now_iso
    )

    shipments: Mapped[list["Shipment"]] = relationship(
        "Shipment", back_populates="customer"
    )

    __table_args__ = (Index("idx_customers_address", "address"),)

    def __repr__(self) -> str:
        return f"<Customer(id={self.id!r}, name={self.name!r})>"


class Shipment(Base):
    """One physical consignment and its denormalized current status.

    ``order_status`` always mirrors the status of the StatusUpdate with the
    highest ``status_update_ord``; with an empty history it keeps whatever
    default was set explicitly.

    Attributes:
        id: Integer primary key (caller-supplied during legacy imports)
        order_id: External order reference (unique)
        tracking_id: Carrier tracking code used for public lookup
        customer_id: Optional foreign key to the owning customer
        order_date: ISO8601 order date
        estimated_delivery: ISO8601 estimated delivery date, if known
        origin_address: Pickup address
        delivery_address: Drop-off address
        order_status: Current status projection (OrderStatus value)
        is_published: Only published shipments are publicly trackable
    """

    __tablename__ = "shipments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    tracking_id: Mapped[str] = mapped_column(String(100), nullable=False)
    customer_id: Mapped[int | None] = mapped_column(
        ForeignKey("customers.id"), nullable=True
    )
    order_date: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    estimated_delivery: Mapped[str | None] = mapped_column(String(50), nullable=True)
    origin_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    delivery_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    order_status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=DEFAULT_ORDER_STATUS.value
    )
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    published_at: Mapped[str | None] = mapped_column(
        String(50), nullable=True, default=utc_now_iso
    )
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso, onupdate=utc_now_iso
    )

    customer: Mapped[Optional["Customer"]] = relationship(
        "Customer", back_populates="shipments"
    )
    status_updates: Mapped[list["StatusUpdate"]] = relationship(
        "StatusUpdate",
        back_populates="shipment",
        order_by="StatusUpdate.status_update_ord",
    )

    __table_args__ = (
        Index("idx_shipments_tracking_id", "tracking_id"),
        Index("idx_shipments_status", "order_status"),
        Index("idx_shipments_order_date", "order_date"),
    )

    def history_desc(self) -> list["StatusUpdate"]:
        """Return the status history newest-first (display order)."""
        return sorted(
            self.status_updates, key=lambda u: u.status_update_ord, reverse=True
        )

    def __repr__(self) -> str:
        return (
            f"<Shipment(id={self.id!r}, order_id={self.order_id!r}, "
            f"tracking_id={self.tracking_id!r}, status={self.order_status!r})>"
        )


class StatusUpdate(Base):
    """One discrete event in a shipment's lifecycle.

    Rows are never edited in place; corrections delete and re-create them.
    ``status_update_ord`` is the 1-based insertion position within the
    owning shipment, independent of ``timestamp``.

    Attributes:
        id: Integer primary key (caller-supplied during legacy imports)
        shipment_id: Foreign key to the owning shipment
        order_status: Status carried by this event (OrderStatus value)
        details: Free-text details
        location: Free-text location
        timestamp: ISO8601 event time
        timestamp_defaulted: True when the source event had no usable time
            and ``timestamp`` holds the merge time instead
        status_update_ord: Sequence position within the shipment
    """

    __tablename__ = "status_updates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shipment_id: Mapped[int] = mapped_column(
        ForeignKey("shipments.id"), nullable=False
    )
    order_status: Mapped[str] = mapped_column(String(30), nullable=False)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    timestamp_defaulted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    status_update_ord: Mapped[int] = mapped_column(Integer, nullable=False)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    published_at: Mapped[str | None] = mapped_column(
        String(50), nullable=True, default=utc_now_iso
    )
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    shipment: Mapped["Shipment"] = relationship(
        "Shipment", back_populates="status_updates"
    )

    __table_args__ = (
        UniqueConstraint(
            "shipment_id", "status_update_ord", name="uq_status_update_ord"
        ),
        Index("idx_status_updates_shipment_id", "shipment_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<StatusUpdate(id={self.id!r}, shipment_id={self.shipment_id!r}, "
            f"ord={self.status_update_ord}, status={self.order_status!r})>"
        )

"""Flattening of legacy bulk JSON exports.

Two document layouts are accepted:

Nested (raw CMS dump)::

    {"data": [{"id": 3, "attributes": {
        "orderId": "...", "trackingId": "...",
        "customer": {"data": {"id": 9, "attributes": {...}}},
        "status_updates": {"data": [{"id": 41, "attributes": {...}}]}}}]}

Flattened (already converted)::

    {"version": 3, "data": {
        "api::shipment.shipment": {"3": {...}},
        "api::customer.customer": {"9": {...}},
        "api::status-update.status-update": {"41": {...}}}}

Both become a LegacyExport keyed by numeric id. Relation fields appear as
absent, a bare id, or a nested object depending on the layout and the
exporter version; normalize_relation() is the one place that decides which.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from shiptrack.errors.domain import ImportSourceError

logger = logging.getLogger(__name__)

SHIPMENT_KEY = "api::shipment.shipment"
CUSTOMER_KEY = "api::customer.customer"
STATUS_UPDATE_KEY = "api::status-update.status-update"


class RelationKind(str, Enum):
    none = "none"
    by_id = "by_id"
    by_object = "by_object"


@dataclass(frozen=True)
class RelationRef:
    """Reference from one legacy record to another."""

    kind: RelationKind
    id: int | None = None

    @classmethod
    def none(cls) -> "RelationRef":
        return cls(RelationKind.none)

    @classmethod
    def by_id(cls, ident: int) -> "RelationRef":
        return cls(RelationKind.by_id, ident)

    @classmethod
    def by_object(cls, ident: int) -> "RelationRef":
        return cls(RelationKind.by_object, ident)

    def __bool__(self) -> bool:
        return self.kind != RelationKind.none


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def normalize_relation(value: Any) -> RelationRef:
    """Classify a relation field as absent, a bare id, or an object.

    Accepts ``None``, ``5``, ``"5"``, ``{"id": 5}``, ``{"data": {"id": 5}}``
    and ``{"data": None}``. Anything else is treated as absent.
    """
    if isinstance(value, dict):
        if "data" in value:
            inner = value["data"]
            if not isinstance(inner, dict):
                return RelationRef.none()
            value = inner
        ident = _as_int(value.get("id"))
        return RelationRef.by_object(ident) if ident is not None else RelationRef.none()

    ident = _as_int(value)
    return RelationRef.by_id(ident) if ident is not None else RelationRef.none()


@dataclass
class LegacyCustomer:
    id: int
    name: str | None = None
    address: str | None = None
    phone: str | None = None
    published_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class LegacyStatusUpdate:
    id: int
    order_status: str | None = None
    timestamp: str | None = None
    details: str | None = None
    location: str | None = None
    status_update_ord: int | None = None
    published_at: str | None = None
    shipment: RelationRef = field(default_factory=RelationRef.none)


@dataclass
class LegacyShipment:
    id: int
    order_id: str | None = None
    tracking_id: str | None = None
    order_date: str | None = None
    estimated_delivery: str | None = None
    order_status: str | None = None
    origin_address: str | None = None
    delivery_address: str | None = None
    published_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    customer: RelationRef = field(default_factory=RelationRef.none)
    status_update_ids: list[int] = field(default_factory=list)


@dataclass
class LegacyExport:
    """Flat legacy records keyed by their original numeric ids."""

    shipments: dict[int, LegacyShipment] = field(default_factory=dict)
    customers: dict[int, LegacyCustomer] = field(default_factory=dict)
    status_updates: dict[int, LegacyStatusUpdate] = field(default_factory=dict)

    def updates_for(self, shipment_id: int) -> list[LegacyStatusUpdate]:
        """History of one shipment, ordered by legacy ordinal then id.

        Updates without an ordinal sort after the numbered ones.
        """
        listed = set(self.shipments[shipment_id].status_update_ids) if (
            shipment_id in self.shipments
        ) else set()
        updates = [
            su
            for su in self.status_updates.values()
            if su.shipment.id == shipment_id or (not su.shipment and su.id in listed)
        ]
        return sorted(
            updates,
            key=lambda su: (
                su.status_update_ord is None,
                su.status_update_ord or 0,
                su.id,
            ),
        )


def _customer_from(ident: int, attrs: dict) -> LegacyCustomer:
    return LegacyCustomer(
        id=ident,
        name=attrs.get("name"),
        address=attrs.get("address"),
        phone=attrs.get("phone"),
        published_at=attrs.get("publishedAt"),
        created_at=attrs.get("createdAt"),
        updated_at=attrs.get("updatedAt"),
    )


def _status_update_from(ident: int, attrs: dict, shipment: RelationRef) -> LegacyStatusUpdate:
    return LegacyStatusUpdate(
        id=ident,
        order_status=attrs.get("order_status"),
        timestamp=attrs.get("timestamp"),
        details=attrs.get("details"),
        location=attrs.get("location"),
        status_update_ord=_as_int(attrs.get("status_update_ord")),
        published_at=attrs.get("publishedAt"),
        shipment=shipment,
    )


def _shipment_from(ident: int, attrs: dict) -> LegacyShipment:
    return LegacyShipment(
        id=ident,
        order_id=attrs.get("orderId"),
        tracking_id=attrs.get("trackingId"),
        order_date=attrs.get("orderDate"),
        estimated_delivery=attrs.get("estimatedDelivery"),
        order_status=attrs.get("order_status"),
        origin_address=attrs.get("originAddress"),
        delivery_address=attrs.get("deliveryAddress"),
        published_at=attrs.get("publishedAt"),
        created_at=attrs.get("createdAt"),
        updated_at=attrs.get("updatedAt"),
        customer=normalize_relation(attrs.get("customer")),
    )


def _flatten_nested(items: list) -> LegacyExport:
    export = LegacyExport()
    for item in items:
        ident = _as_int(item.get("id")) if isinstance(item, dict) else None
        if ident is None:
            logger.warning("Skipping legacy entry without a numeric id: %r", item)
            continue
        attrs = item.get("attributes") or {}
        shipment = _shipment_from(ident, attrs)

        customer_attr = attrs.get("customer")
        customer_data = (
            customer_attr.get("data") if isinstance(customer_attr, dict) else None
        )
        if shipment.customer and isinstance(customer_data, dict):
            export.customers[shipment.customer.id] = _customer_from(
                shipment.customer.id, customer_data.get("attributes") or {}
            )

        history = attrs.get("status_updates")
        if isinstance(history, dict):
            history = history.get("data")
        for su in history if isinstance(history, list) else []:
            su_id = _as_int(su.get("id")) if isinstance(su, dict) else None
            if su_id is None:
                logger.warning("Skipping status update without id on shipment %d", ident)
                continue
            export.status_updates[su_id] = _status_update_from(
                su_id, su.get("attributes") or {}, RelationRef.by_id(ident)
            )
            shipment.status_update_ids.append(su_id)

        export.shipments[ident] = shipment
    return export


def _flat_records(section: Any, name: str) -> dict[int, dict]:
    if section is None:
        return {}
    if isinstance(section, list):
        section = {str(r.get("id")): r for r in section if isinstance(r, dict)}
    if not isinstance(section, dict):
        raise ImportSourceError(f"Section '{name}' must be an object keyed by id")
    records = {}
    for key, record in section.items():
        ident = _as_int(record.get("id", key)) if isinstance(record, dict) else None
        if ident is None:
            logger.warning("Skipping %s record %r without a numeric id", name, key)
            continue
        records[ident] = record
    return records


def _flatten_flat(data: dict) -> LegacyExport:
    export = LegacyExport()
    for ident, record in _flat_records(data.get(CUSTOMER_KEY), CUSTOMER_KEY).items():
        export.customers[ident] = _customer_from(ident, record)
    for ident, record in _flat_records(data.get(SHIPMENT_KEY), SHIPMENT_KEY).items():
        shipment = _shipment_from(ident, record)
        shipment.status_update_ids = [
            ref.id
            for ref in (normalize_relation(v) for v in record.get("status_updates") or [])
            if ref
        ]
        export.shipments[ident] = shipment
    for ident, record in _flat_records(
        data.get(STATUS_UPDATE_KEY), STATUS_UPDATE_KEY
    ).items():
        export.status_updates[ident] = _status_update_from(
            ident, record, normalize_relation(record.get("shipment"))
        )
    return export


def flatten_legacy_export(document: Any) -> LegacyExport:
    """Convert a legacy export document into flat records.

    Raises:
        ImportSourceError: If the document has neither accepted layout.
    """
    if not isinstance(document, dict):
        raise ImportSourceError("Legacy export root must be a JSON object")
    data = document.get("data")
    if isinstance(data, list):
        export = _flatten_nested(data)
    elif isinstance(data, dict) and any(
        key in data for key in (SHIPMENT_KEY, CUSTOMER_KEY, STATUS_UPDATE_KEY)
    ):
        export = _flatten_flat(data)
    else:
        raise ImportSourceError(
            "Legacy export root must be { data: [ ... ] } or a flattened export"
        )

    logger.info(
        "Legacy export: %d shipment(s), %d customer(s), %d status update(s)",
        len(export.shipments), len(export.customers), len(export.status_updates),
    )
    return export


def load_json_document(path: str | Path) -> Any:
    """Read and decode a JSON import file.

    Raises:
        ImportSourceError: If the file cannot be read or is not valid JSON.
    """
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except OSError as e:
        raise ImportSourceError(f"Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ImportSourceError(f"{path} is not valid JSON: {e}") from e

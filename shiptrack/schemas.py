"""Pydantic schemas for inbound import rows and update requests.

Rows arrive either with the camelCase keys of the export tooling
(``orderId``, ``trackingId``) or with snake_case names; both validate.
"""

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from shiptrack.db.models import OrderStatus
from shiptrack.errors.domain import InvalidStatusError
from shiptrack.services.status_constants import normalize_status


class ImportRow(BaseModel):
    """One shipment row from a CSV export (full history replacement)."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    order_id: str = Field(..., alias="orderId", min_length=1)
    tracking_id: str = Field(..., alias="trackingId", min_length=1)
    status_updates: str | None = None
    address: str = Field(..., min_length=1)
    estimated_delivery: str | None = Field(None, alias="estimatedDelivery")


class StatusImportRow(BaseModel):
    """Status-only row: history for a shipment addressed by tracking code."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    tracking_id: str = Field(..., alias="trackingId", min_length=1)
    status_updates: str | None = None
    order_id: str | None = Field(None, alias="orderId")


class StatusUpdateRequest(BaseModel):
    """Append-mode update for a shipment addressed by primary key."""

    model_config = ConfigDict(populate_by_name=True)

    shipment_id: int = Field(..., alias="shipmentId")
    order_status: OrderStatus | None = None
    details: str | None = None
    location: str | None = None
    timestamp: str | None = None

    @field_validator("order_status", mode="before")
    @classmethod
    def _normalize_status(cls, v: str | None) -> OrderStatus | None:
        """Accept status aliases and loose spellings ("In Transit")."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        try:
            return normalize_status(v)
        except InvalidStatusError as e:
            raise ValueError(str(e)) from e


def describe_validation_error(exc: ValidationError) -> tuple[str, str | None]:
    """Flatten a pydantic error into a message and the first failing field.

    Returns:
        Tuple of (message, field name or None).
    """
    parts = []
    first_field = None
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        if first_field is None and loc:
            first_field = loc
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts), first_field


def is_missing_field(exc: ValidationError) -> bool:
    """True when every failure is a missing or empty required field."""
    return all(
        err.get("type") == "missing" or err.get("input") is None
        for err in exc.errors()
    )

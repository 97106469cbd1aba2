"""Order status options and status-text normalization."""

import re

from shiptrack.db.models import OrderStatus
from shiptrack.errors.domain import InvalidStatusError

STATUS_LABELS: dict[OrderStatus, str] = {
    OrderStatus.yet_to_be_picked: "Yet to be Picked",
    OrderStatus.picked_up: "Picked Up",
    OrderStatus.intransit: "In Transit",
    OrderStatus.on_the_way: "On the Way",
    OrderStatus.out_for_delivery: "Out for Delivery",
    OrderStatus.delivered: "Delivered",
    OrderStatus.cancelled: "Cancelled",
}

# Spellings seen in carrier exports, keyed after separator normalization.
STATUS_ALIASES: dict[str, OrderStatus] = {
    "in_transit": OrderStatus.intransit,
    "transit": OrderStatus.intransit,
    "pickedup": OrderStatus.picked_up,
    "picked": OrderStatus.picked_up,
    "ontheway": OrderStatus.on_the_way,
    "outfordelivery": OrderStatus.out_for_delivery,
    "canceled": OrderStatus.cancelled,
    "yettobepicked": OrderStatus.yet_to_be_picked,
    "pending": OrderStatus.yet_to_be_picked,
}

_SEPARATORS = re.compile(r"[\s\-]+")


def get_status_options() -> list[dict[str, str]]:
    """Return the ordered ``{value, label}`` pairs for UI population."""
    return [
        {"value": status.value, "label": STATUS_LABELS[status]}
        for status in OrderStatus
    ]


def normalize_status(value: str | OrderStatus) -> OrderStatus:
    """Map free-text status onto the status enumeration.

    Matching is case-insensitive; spaces and hyphens count as underscores.

    Args:
        value: Raw status token or an OrderStatus.

    Returns:
        The matching OrderStatus.

    Raises:
        InvalidStatusError: If the value matches no status or alias.
    """
    if isinstance(value, OrderStatus):
        return value
    key = _SEPARATORS.sub("_", str(value).strip().lower()).strip("_")
    try:
        return OrderStatus(key)
    except ValueError:
        pass
    alias = STATUS_ALIASES.get(key) or STATUS_ALIASES.get(key.replace("_", ""))
    if alias is None:
        raise InvalidStatusError(value)
    return alias

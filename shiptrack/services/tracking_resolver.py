"""Resolve loosely formatted tracking codes to one published shipment.

The same consignment reaches us under several spellings: carrier prefixes,
dashes, legacy ``-<id>`` suffixes, stray whitespace. Resolution tries
progressively looser strategies and stops at the first that finds anything:

1. exact     stored code == input
2. trimmed   stored code == input.strip()
3. contains  stored code contains input
4. digits    stored code (digits only) contains input (digits only)

Within a strategy the lowest shipment id wins. Substring tests are
case-sensitive on every backend: SQL LIKE only narrows candidates and the
final comparison is done in Python.

Example:
    resolver = TrackingResolver(db)
    match = resolver.resolve("trk-001-99")
    if match:
        print(match.shipment.id, match.strategy)
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.orm import Query, Session, selectinload

from shiptrack.db.models import Shipment
from shiptrack.errors.domain import ShipmentNotFoundError

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


def digits_only(value: str) -> str:
    """Strip every non-digit character."""
    return _NON_DIGITS.sub("", value)


class TrackingStrategy(str, Enum):
    """Match strategies, in the order they are tried."""

    exact = "exact"
    trimmed = "trimmed"
    contains = "contains"
    digits = "digits"


@dataclass
class TrackingMatch:
    """A resolved shipment and the strategy that found it."""

    shipment: Shipment
    strategy: TrackingStrategy


class TrackingResolver:
    """Multi-strategy tracking code lookup over published shipments.

    Attributes:
        db: SQLAlchemy session for database operations.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def _published(self) -> Query:
        return (
            self.db.query(Shipment)
            .options(
                selectinload(Shipment.status_updates),
                selectinload(Shipment.customer),
            )
            .filter(Shipment.is_published.is_(True))
        )

    def _match_exact(self, value: str) -> Shipment | None:
        return (
            self._published()
            .filter(Shipment.tracking_id == value)
            .order_by(Shipment.id)
            .first()
        )

    def _match_contains(self, needle: str) -> Shipment | None:
        if not needle:
            return None
        candidates = (
            self._published()
            .filter(Shipment.tracking_id.contains(needle, autoescape=True))
            .order_by(Shipment.id)
        )
        for shipment in candidates:
            if needle in shipment.tracking_id:
                return shipment
        return None

    def _match_digits(self, needle: str) -> Shipment | None:
        if not needle:
            return None
        rows = (
            self.db.query(Shipment.id, Shipment.tracking_id)
            .filter(Shipment.is_published.is_(True))
            .order_by(Shipment.id)
            .all()
        )
        for shipment_id, tracking_id in rows:
            if needle in digits_only(tracking_id):
                return self._published().filter(Shipment.id == shipment_id).one()
        return None

    def _strategies(
        self, tracking: str
    ) -> list[tuple[TrackingStrategy, Callable[[], Shipment | None]]]:
        trimmed = tracking.strip()
        return [
            (TrackingStrategy.exact, lambda: self._match_exact(tracking)),
            (TrackingStrategy.trimmed, lambda: self._match_exact(trimmed)),
            (TrackingStrategy.contains, lambda: self._match_contains(tracking)),
            (
                TrackingStrategy.digits,
                lambda: self._match_digits(digits_only(tracking)),
            ),
        ]

    def resolve(self, tracking: str) -> TrackingMatch | None:
        """Find the one published shipment a tracking string refers to.

        Args:
            tracking: User-supplied or imported tracking text.

        Returns:
            TrackingMatch with the shipment (history loaded) and the
            strategy that matched, or None when nothing matches.
        """
        if not tracking or not tracking.strip():
            return None
        for strategy, attempt in self._strategies(tracking):
            shipment = attempt()
            if shipment is not None:
                logger.debug(
                    "Tracking %r resolved to shipment %d via %s",
                    tracking, shipment.id, strategy.value,
                )
                return TrackingMatch(shipment=shipment, strategy=strategy)
        logger.debug("Tracking %r did not resolve", tracking)
        return None

    def resolve_or_raise(self, tracking: str) -> TrackingMatch:
        """Like resolve(), but raise when nothing matches.

        Raises:
            ShipmentNotFoundError: If no strategy finds a shipment.
        """
        match = self.resolve(tracking)
        if match is None:
            raise ShipmentNotFoundError(tracking)
        return match

    def search(self, pattern: str) -> list[Shipment]:
        """List published shipments whose tracking code contains a pattern.

        Args:
            pattern: Substring to look for.

        Returns:
            Matching shipments in ascending id order.
        """
        return (
            self.db.query(Shipment)
            .filter(
                Shipment.is_published.is_(True),
                Shipment.tracking_id.contains(pattern, autoescape=True),
            )
            .order_by(Shipment.id)
            .all()
        )

    def list_tracking_ids(self) -> list[Shipment]:
        """List every published shipment ordered by tracking code."""
        return (
            self.db.query(Shipment)
            .filter(Shipment.is_published.is_(True))
            .order_by(Shipment.tracking_id)
            .all()
        )

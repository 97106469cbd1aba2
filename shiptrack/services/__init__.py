"""Service layer for shiptrack.

Provides status parsing, tracking resolution, history reconciliation and
the shipment/customer operations built on them. Batch imports live in
shiptrack.services.import_service.
"""

from shiptrack.services.customer_service import CustomerService
from shiptrack.services.reconciler import (
    EventSource,
    HistoryReconciler,
    MergeMode,
    NewStatusUpdate,
    ReconcileOutcome,
)
from shiptrack.services.shipment_service import DashboardStats, ShipmentService
from shiptrack.services.status_parser import StatusEvent, parse_status_updates
from shiptrack.services.tracking_resolver import (
    TrackingMatch,
    TrackingResolver,
    TrackingStrategy,
)

__all__ = [
    "CustomerService",
    "ShipmentService",
    "DashboardStats",
    "HistoryReconciler",
    "MergeMode",
    "EventSource",
    "NewStatusUpdate",
    "ReconcileOutcome",
    "StatusEvent",
    "parse_status_updates",
    "TrackingResolver",
    "TrackingMatch",
    "TrackingStrategy",
]

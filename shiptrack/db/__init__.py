"""Database module for shiptrack persistence."""

from shiptrack.db.connection import (
    SessionLocal,
    configure_engine,
    get_db_context,
    get_engine,
    init_db,
)
from shiptrack.db.models import (
    DEFAULT_ORDER_STATUS,
    Base,
    Customer,
    OrderStatus,
    Shipment,
    StatusUpdate,
)

__all__ = [
    # Models
    "Base",
    "Customer",
    "Shipment",
    "StatusUpdate",
    # Enums
    "OrderStatus",
    "DEFAULT_ORDER_STATUS",
    # Connection
    "SessionLocal",
    "configure_engine",
    "get_engine",
    "get_db_context",
    "init_db",
]

"""Typed domain exceptions raised by the service layer.

Each exception carries the registry code it maps to, so the import
orchestrator can turn a row failure into a coded result entry without
matching on message strings.

Usage:
    # In service layer
    raise ShipmentNotFoundError(tracking_id)

    # At the row boundary
    try:
        reconciler.reconcile(...)
    except DomainError as e:
        result = RowResult.failure(key, e.code, str(e))
"""


class DomainError(Exception):
    """Base exception for all domain errors."""

    code = "E-4003"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class NotFoundError(DomainError):
    """Resource was not found."""

    code = "E-3001"

    def __init__(self, resource_type: str, identifier: object) -> None:
        super().__init__(f"{resource_type} '{identifier}' not found")
        self.resource_type = resource_type
        self.identifier = identifier


class ShipmentNotFoundError(NotFoundError):
    """No shipment resolves from the given id, order id or tracking code."""

    def __init__(self, identifier: object) -> None:
        super().__init__("Shipment", identifier)


class ConflictError(DomainError):
    """Persistence conflict (e.g., duplicate unique key)."""

    code = "E-3002"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class CustomerInUseError(ConflictError):
    """Customer cannot be deleted while shipments reference it."""

    code = "E-3003"

    def __init__(self, customer_id: int, shipment_count: int) -> None:
        super().__init__(
            f"Customer {customer_id} still has {shipment_count} shipment(s)"
        )
        self.customer_id = customer_id
        self.shipment_count = shipment_count


class ValidationError(DomainError):
    """Malformed input or missing required field."""

    code = "E-2002"

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class InvalidStatusError(ValidationError):
    """Status text does not map onto the status enumeration."""

    code = "E-2001"

    def __init__(self, value: object) -> None:
        super().__init__(f"Unknown order status '{value}'", field="order_status")
        self.value = value


class ImportSourceError(DomainError):
    """Import input could not be read or has the wrong overall shape.

    Fatal to the whole batch: no per-row report is possible.
    """

    code = "E-1003"


class StorageUnavailableError(DomainError):
    """The database could not be reached. Fatal to the whole batch."""

    code = "E-4001"


class InvalidPhoneError(ValidationError):
    """Phone number fails format validation."""

    code = "E-2003"

    def __init__(self, value: str) -> None:
        super().__init__(f"Invalid phone number: '{value}'", field="phone")
        self.value = value

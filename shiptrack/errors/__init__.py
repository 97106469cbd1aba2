"""Error handling framework for shiptrack.

This package provides:
- Error code registry with E-XXXX format codes
- Typed domain exceptions raised by the service layer
- Error formatting and grouping utilities

Error categories:
- E-1xxx: Import data errors
- E-2xxx: Validation errors
- E-3xxx: Lookup and conflict errors
- E-4xxx: System/internal errors
"""

from shiptrack.errors.domain import (
    ConflictError,
    CustomerInUseError,
    DomainError,
    ImportSourceError,
    InvalidPhoneError,
    InvalidStatusError,
    NotFoundError,
    ShipmentNotFoundError,
    StorageUnavailableError,
    ValidationError,
)
from shiptrack.errors.formatter import (
    ShipTrackError,
    format_error,
    format_error_summary,
    group_errors,
)
from shiptrack.errors.registry import (
    ERROR_REGISTRY,
    ErrorCategory,
    ErrorCode,
    get_error,
    get_errors_by_category,
)

__all__ = [
    # Registry
    "ErrorCode",
    "ErrorCategory",
    "ERROR_REGISTRY",
    "get_error",
    "get_errors_by_category",
    # Domain
    "DomainError",
    "NotFoundError",
    "ShipmentNotFoundError",
    "ConflictError",
    "CustomerInUseError",
    "ValidationError",
    "InvalidStatusError",
    "InvalidPhoneError",
    "ImportSourceError",
    "StorageUnavailableError",
    # Formatter
    "ShipTrackError",
    "format_error",
    "group_errors",
    "format_error_summary",
]

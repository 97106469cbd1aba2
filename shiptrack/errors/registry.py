"""Error code registry with E-XXXX format codes.

This module defines the error code system for shiptrack, organizing errors
into categories:
- E-1xxx: Import data errors
- E-2xxx: Validation errors
- E-3xxx: Lookup and persistence conflict errors
- E-4xxx: System/internal errors

Each error includes a code, title, message template, and remediation steps.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    DATA = "data"  # E-1xxx: Import data errors
    VALIDATION = "validation"  # E-2xxx: Validation errors
    LOOKUP = "lookup"  # E-3xxx: Lookup/conflict errors
    SYSTEM = "system"  # E-4xxx: System/internal errors


@dataclass
class ErrorCode:
    """Definition of an error code with metadata.

    Attributes:
        code: Error code in E-XXXX format.
        category: Error category for grouping.
        title: Short title for display.
        message_template: Message with {placeholders} for context.
        remediation: Action user should take to resolve.
        is_retryable: Whether the operation can be retried without user action.
    """

    code: str
    category: ErrorCategory
    title: str
    message_template: str
    remediation: str
    is_retryable: bool = False


ERROR_REGISTRY: dict[str, ErrorCode] = {
    # Data errors (E-1xxx)
    "E-1001": ErrorCode(
        code="E-1001",
        category=ErrorCategory.DATA,
        title="Missing Required Field",
        message_template="Required field '{field}' is missing in row {row}.",
        remediation="Add the missing field to the import file and retry.",
    ),
    "E-1002": ErrorCode(
        code="E-1002",
        category=ErrorCategory.DATA,
        title="Empty Import Source",
        message_template="No rows found in {source}.",
        remediation="Check that the file is the expected export and is not empty.",
    ),
    "E-1003": ErrorCode(
        code="E-1003",
        category=ErrorCategory.DATA,
        title="Malformed Import Document",
        message_template="Import document is malformed: {details}",
        remediation="Export the data again using the supported layout.",
    ),
    # Validation errors (E-2xxx)
    "E-2001": ErrorCode(
        code="E-2001",
        category=ErrorCategory.VALIDATION,
        title="Invalid Order Status",
        message_template="Unknown order status '{value}'.",
        remediation="Use one of the listed status options (see `shiptrack status-options`).",
    ),
    "E-2002": ErrorCode(
        code="E-2002",
        category=ErrorCategory.VALIDATION,
        title="Invalid Row",
        message_template="Row failed validation: {details}",
        remediation="Correct the row in the import file and retry.",
    ),
    "E-2003": ErrorCode(
        code="E-2003",
        category=ErrorCategory.VALIDATION,
        title="Invalid Phone Number",
        message_template="Invalid phone number format. Value: '{value}'.",
        remediation="Use digits with an optional leading '+', up to 16 digits.",
    ),
    # Lookup / conflict errors (E-3xxx)
    "E-3001": ErrorCode(
        code="E-3001",
        category=ErrorCategory.LOOKUP,
        title="Shipment Not Found",
        message_template="No shipment matches '{key}'.",
        remediation="Check the tracking id or order id, and that the shipment is published.",
    ),
    "E-3002": ErrorCode(
        code="E-3002",
        category=ErrorCategory.LOOKUP,
        title="Duplicate Key",
        message_template="A record with this key already exists: {details}",
        remediation="Remove the duplicate row or update the existing record instead.",
    ),
    "E-3003": ErrorCode(
        code="E-3003",
        category=ErrorCategory.LOOKUP,
        title="Customer In Use",
        message_template="Customer {customer_id} still has {count} shipment(s).",
        remediation="Delete or reassign the customer's shipments first.",
    ),
    # System errors (E-4xxx)
    "E-4001": ErrorCode(
        code="E-4001",
        category=ErrorCategory.SYSTEM,
        title="Storage Unavailable",
        message_template="Database operation failed: {details}",
        remediation="Check the database URL and that the database is reachable, then retry.",
        is_retryable=True,
    ),
    "E-4002": ErrorCode(
        code="E-4002",
        category=ErrorCategory.SYSTEM,
        title="File System Error",
        message_template="Could not {operation} file: {path}",
        remediation="Check the path and file permissions. Retry the operation.",
        is_retryable=True,
    ),
    "E-4003": ErrorCode(
        code="E-4003",
        category=ErrorCategory.SYSTEM,
        title="Unexpected Row Error",
        message_template="Unexpected error while processing row: {details}",
        remediation="Retry the import. Report the row if the error persists.",
    ),
}


def get_error(code: str) -> ErrorCode | None:
    """Get error definition by code.

    Args:
        code: Error code in E-XXXX format.

    Returns:
        ErrorCode if found, None otherwise.
    """
    return ERROR_REGISTRY.get(code)


def get_errors_by_category(category: ErrorCategory) -> list[ErrorCode]:
    """Get all errors in a category.

    Args:
        category: The error category to filter by.

    Returns:
        List of ErrorCode objects in the specified category.
    """
    return [e for e in ERROR_REGISTRY.values() if e.category == category]

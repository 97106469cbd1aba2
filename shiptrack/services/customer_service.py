"""Service for customer records.

Customers are matched during imports by delivery address only. That is a
best-effort lookup, not an identity guarantee: two people at one address
share a record.

Example:
    svc = CustomerService(db)
    customer = svc.get_or_create_by_address("12 Baker St")
"""

import logging
import re

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from shiptrack.db.models import Customer, Shipment
from shiptrack.errors.domain import (
    CustomerInUseError,
    InvalidPhoneError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"

PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{0,15}$")
_PHONE_FORMATTING = re.compile(r"[\s\-()]")


def is_valid_phone(phone: str) -> bool:
    """Check a phone number after removing spaces, hyphens and parentheses."""
    return bool(PHONE_PATTERN.match(_PHONE_FORMATTING.sub("", phone)))


class CustomerService:
    """CRUD operations for customers.

    Methods do NOT call db.commit(); the caller owns the transaction.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_or_create_by_address(self, address: str) -> Customer:
        """Return the first customer at an address, creating one if needed.

        New customers get placeholder name and phone.
        """
        customer = (
            self.db.query(Customer)
            .filter(Customer.address == address)
            .order_by(Customer.id)
            .first()
        )
        if customer is not None:
            return customer

        customer = Customer(address=address, name=UNKNOWN, phone=UNKNOWN)
        self.db.add(customer)
        self.db.flush()
        logger.info("Created customer %d for address %r", customer.id, address)
        return customer

    def create_customer(
        self,
        name: str,
        address: str,
        phone: str,
        is_published: bool = True,
        customer_id: int | None = None,
    ) -> Customer:
        """Create a customer after validating required fields and phone.

        Raises:
            ValidationError: Missing field or malformed phone number.
        """
        missing = [
            field_name
            for field_name, value in (("name", name), ("address", address), ("phone", phone))
            if not value or not value.strip()
        ]
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}", field=missing[0]
            )
        if not is_valid_phone(phone):
            raise InvalidPhoneError(phone)

        customer = Customer(
            name=name, address=address, phone=phone, is_published=is_published
        )
        if customer_id is not None:
            customer.id = customer_id
        self.db.add(customer)
        self.db.flush()
        logger.info("Created customer %d (%s)", customer.id, name)
        return customer

    def get_customer(self, customer_id: int) -> Customer:
        """Get a customer by id.

        Raises:
            NotFoundError: If no customer has that id.
        """
        customer = self.db.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)
        return customer

    def list_customers(self, published_only: bool = True) -> list[Customer]:
        """List customers, newest first."""
        query = self.db.query(Customer)
        if published_only:
            query = query.filter(Customer.is_published.is_(True))
        return query.order_by(Customer.created_at.desc(), Customer.id.desc()).all()

    def search_customers(self, query: str) -> list[Customer]:
        """Published customers whose name (any case) or phone contains query.

        Raises:
            ValidationError: If the query is blank.
        """
        query = query.strip()
        if not query:
            raise ValidationError("Search query is required", field="query")
        return (
            self.db.query(Customer)
            .filter(
                Customer.is_published.is_(True),
                or_(
                    func.lower(Customer.name).contains(query.lower(), autoescape=True),
                    Customer.phone.contains(query, autoescape=True),
                ),
            )
            .order_by(Customer.name, Customer.id)
            .all()
        )

    def update_customer(
        self,
        customer_id: int,
        name: str | None = None,
        address: str | None = None,
        phone: str | None = None,
        is_published: bool | None = None,
    ) -> Customer:
        """Change the given fields; None and blank strings leave a field as is.

        Raises:
            NotFoundError: If no customer has that id.
            InvalidPhoneError: If a new phone number is malformed.
        """
        customer = self.get_customer(customer_id)
        if phone and not is_valid_phone(phone):
            raise InvalidPhoneError(phone)
        for field_name, value in (("name", name), ("address", address), ("phone", phone)):
            if value and value.strip():
                setattr(customer, field_name, value)
        if is_published is not None:
            customer.is_published = is_published
        self.db.flush()
        logger.info("Updated customer %d", customer_id)
        return customer

    def delete_customer(self, customer_id: int) -> None:
        """Delete a customer that owns no shipments.

        Raises:
            NotFoundError: If no customer has that id.
            CustomerInUseError: If shipments still reference the customer.
        """
        customer = self.get_customer(customer_id)
        shipment_count = self.db.execute(
            select(func.count(Shipment.id)).where(Shipment.customer_id == customer_id)
        ).scalar_one()
        if shipment_count:
            raise CustomerInUseError(customer_id, shipment_count)
        self.db.delete(customer)
        self.db.flush()
        logger.info("Deleted customer %d", customer_id)

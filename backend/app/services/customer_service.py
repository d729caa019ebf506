# Overview: Service-layer operations for customers; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import Customer, Rental, Reservation, ExternalPayment
from ..validation import ConflictError, NotFoundError
from .concurrency import commit_with_retry

CUSTOMER_MUTABLE_FIELDS = {"full_name", "phone"}


class CustomerNotFound(NotFoundError):
    pass


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise CustomerNotFound(f"Customer {customer_id} not found")
    return customer


def list_customers(search: str | None = None, limit: int = 50) -> list[Customer]:
    query = db.session.query(Customer)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            db.or_(Customer.full_name.ilike(pattern), Customer.phone.ilike(pattern))
        )
    limit = min(max(limit or 50, 1), 500)
    return query.order_by(Customer.full_name.asc()).limit(limit).all()


def find_or_create_customer(full_name: str, phone: str | None = None) -> Customer:
    """
    Look a customer up by exact full name, creating one if missing.

    Does not commit; the caller owns the transaction.
    """
    name = full_name.strip()
    customer = db.session.query(Customer).filter(Customer.full_name == name).first()
    if customer is None:
        customer = Customer(full_name=name, phone=phone)
        db.session.add(customer)
        db.session.flush()
    return customer


def create_customer(*, patch: dict) -> Customer:
    customer = Customer()
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)
    db.session.add(customer)
    commit_with_retry()
    return customer


def update_customer(*, customer_id: int, patch: dict) -> Customer:
    customer = get_customer(customer_id)
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)
    commit_with_retry()
    return customer


def delete_customer(*, customer_id: int) -> None:
    customer = get_customer(customer_id)
    in_use = (
        db.session.query(Rental).filter(Rental.customer_id == customer_id).count()
        + db.session.query(Reservation).filter(Reservation.customer_id == customer_id).count()
        + db.session.query(ExternalPayment).filter(ExternalPayment.customer_id == customer_id).count()
    )
    if in_use:
        raise ConflictError("Customer has rentals, reservations or external payments and cannot be deleted")
    db.session.delete(customer)
    commit_with_retry()

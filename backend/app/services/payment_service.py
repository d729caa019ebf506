# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Ledger Service

WHY: Rentals are paid in instalments (cash at pickup, a transfer a week
later, a card payment on return). Each instalment is a Payment row; the
rental's balance is recomputed from the complete ledger after every insert,
edit or delete, inside the same transaction.

DESIGN PRINCIPLES:
- Payments are separate from rentals (many-to-one relationship)
- Amounts are positive integers in minor units (kurus)
- Overpayment is accepted; the balance clamps to zero
- The rental row is locked before its ledger changes
- Deleted rentals are frozen; their ledger cannot change
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Rental, Payment
from ..models.rentals import VALID_PAYMENT_METHODS, PAYMENT_METHOD_CASH
from ..validation import NotFoundError, MAX_AMOUNT_CENTS
from app.time_utils import utcnow
from .concurrency import get_for_update, run_with_retry
from .rental_service import RentalNotFound, RentalDeleted, reconcile_rental


class PaymentError(ValueError):
    """Raised for payment operation errors."""
    pass


class PaymentNotFound(PaymentError, NotFoundError):
    pass


PAYMENT_MUTABLE_FIELDS = {"amount_cents", "paid_at", "method", "note"}


def _check_amount(amount_cents) -> None:
    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool):
        raise PaymentError("Payment amount must be an integer number of minor units")
    if amount_cents <= 0:
        raise PaymentError("Payment amount must be positive")
    if amount_cents > MAX_AMOUNT_CENTS:
        raise PaymentError(f"Payment amount cannot exceed {MAX_AMOUNT_CENTS}")


def _check_method(method: str) -> None:
    if method not in VALID_PAYMENT_METHODS:
        raise PaymentError(f"Invalid payment method: {method}. Must be one of {VALID_PAYMENT_METHODS}")


def _lock_rental(rental_id: int) -> Rental:
    rental = get_for_update(Rental, rental_id)
    if rental is None:
        raise RentalNotFound(f"Rental {rental_id} not found")
    if rental.deleted:
        raise RentalDeleted(f"Rental {rental_id} is deleted; its payments cannot change")
    return rental


def _get_payment(payment_id: int) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if payment is None:
        raise PaymentNotFound(f"Payment {payment_id} not found")
    return payment


# =============================================================================
# LEDGER MUTATIONS
# =============================================================================

def add_payment(
    rental_id: int,
    amount_cents: int,
    paid_at: datetime | None = None,
    method: str = PAYMENT_METHOD_CASH,
    note: str | None = None,
) -> tuple[Payment, Rental]:
    """
    Record a payment against a rental and reconcile its balance.

    Args:
        rental_id: Rental being paid
        amount_cents: Amount paid (minor units, > 0)
        paid_at: When the money was received (UTC-naive); defaults to now
        method: CASH, TRANSFER, CARD
        note: Free text (receipt number, payer, ...)

    Returns:
        (payment, rental) with the rental's balance already updated

    Raises:
        PaymentError: amount or method invalid
        RentalNotFound: rental missing
        RentalDeleted: rental is soft-deleted
    """
    def _op():
        _check_amount(amount_cents)
        _check_method(method)

        rental = _lock_rental(rental_id)

        payment = Payment(
            rental_id=rental.id,
            amount_cents=amount_cents,
            paid_at=paid_at or utcnow(),
            method=method,
            note=note,
        )
        db.session.add(payment)

        reconcile_rental(rental)
        db.session.commit()
        current_app.logger.info(
            "Payment %s of %s (%s) added to rental %s; balance now %s",
            payment.id, amount_cents, method, rental.id, rental.balance_cents,
        )
        return payment, rental

    return run_with_retry(_op)


def update_payment(payment_id: int, patch: dict) -> tuple[Payment, Rental]:
    """
    Edit a payment's amount, date, method or note and reconcile the owning rental.

    Raises:
        PaymentNotFound: payment missing
        PaymentError: new amount or method invalid
        RentalDeleted: owning rental is soft-deleted
    """
    def _op():
        payment = _get_payment(payment_id)

        if "amount_cents" in patch:
            _check_amount(patch["amount_cents"])
        if "method" in patch:
            _check_method(patch["method"])
        if "paid_at" in patch and patch["paid_at"] is None:
            raise PaymentError("paid_at cannot be null")

        rental = _lock_rental(payment.rental_id)

        for k, v in patch.items():
            if k in PAYMENT_MUTABLE_FIELDS:
                setattr(payment, k, v)

        reconcile_rental(rental)
        db.session.commit()
        return payment, rental

    return run_with_retry(_op)


def delete_payment(payment_id: int) -> Rental:
    """Remove a payment from the ledger; returns the reconciled rental."""
    def _op():
        payment = _get_payment(payment_id)
        rental = _lock_rental(payment.rental_id)

        db.session.delete(payment)

        reconcile_rental(rental)
        db.session.commit()
        current_app.logger.info(
            "Payment %s deleted from rental %s; balance now %s",
            payment_id, rental.id, rental.balance_cents,
        )
        return rental

    return run_with_retry(_op)


# =============================================================================
# READS
# =============================================================================

def get_payment(payment_id: int) -> Payment:
    return _get_payment(payment_id)


def get_rental_payments(rental_id: int) -> list[Payment]:
    """Ledger for one rental, oldest first."""
    rental = db.session.get(Rental, rental_id)
    if rental is None or rental.deleted:
        raise RentalNotFound(f"Rental {rental_id} not found")
    return (
        db.session.query(Payment)
        .filter(Payment.rental_id == rental_id)
        .order_by(Payment.paid_at.asc(), Payment.id.asc())
        .all()
    )


def list_payments(
    *,
    rental_id: int | None = None,
    method: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> list[Payment]:
    """
    Ledger across rentals, newest first. Payments of deleted rentals are
    kept: they are historical cash movements.
    """
    query = db.session.query(Payment)
    if rental_id is not None:
        query = query.filter(Payment.rental_id == rental_id)
    if method:
        _check_method(method)
        query = query.filter(Payment.method == method)
    if date_from is not None:
        query = query.filter(Payment.paid_at >= date_from)
    if date_to is not None:
        query = query.filter(Payment.paid_at <= date_to)
    return query.order_by(Payment.paid_at.desc(), Payment.id.desc()).all()

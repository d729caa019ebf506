# Overview: Service-layer operations for rentals; encapsulates business logic and database work.

"""
Rental Service

WHY: A rental's total_due_cents and balance_cents are derived from its charge
fields, its inline payment slots and its ledger payments. Every path that
changes any of those inputs must recompute both numbers in the same
transaction, or the stored balance drifts from reality.

RECONCILIATION (reconcile_rental):
  1. flush pending changes for the unit of work
  2. reload the rental's charge fields and manual slots from the database
  3. load the complete payment ledger for the rental
  4. compute_rental_amounts() and persist total_due_cents / balance_cents

Callers lock the rental row first (get_for_update) and run the whole unit
through run_with_retry, which rolls back on any failure.

STATE MACHINE:
  ACTIVE -> RETURNED   (return_rental)    vehicle freed, returned_at stamped
  ACTIVE -> COMPLETED  (complete_rental)  vehicle freed, completed_at stamped
  ACTIVE -> CANCELLED  (cancel_rental)    vehicle freed
  any    -> deleted    (delete_rental)    soft delete; frees the vehicle if ACTIVE

Soft-deleted rentals are frozen: they cannot be edited, transitioned or
reconciled, and their payments cannot change.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Rental, Payment, Vehicle, Customer
from ..models.fleet import VEHICLE_STATUS_IDLE, VEHICLE_STATUS_RENTED
from ..models.rentals import (
    RENTAL_STATUS_ACTIVE,
    RENTAL_STATUS_RETURNED,
    RENTAL_STATUS_COMPLETED,
    RENTAL_STATUS_CANCELLED,
    RENTAL_TYPE_NEW,
    VALID_RENTAL_STATUSES,
)
from ..validation import MAX_RENTAL_DAYS, NotFoundError, ValidationError
from app.time_utils import utcnow
from .concurrency import get_for_update, run_with_retry
from .customer_service import CustomerNotFound, find_or_create_customer
from .vehicle_service import VehicleNotFound
from .rental_calc import (
    CHARGE_ADDON_FIELDS,
    MANUAL_SLOT_FIELDS,
    ManualPaymentSlots,
    RentalAmounts,
    RentalCharge,
    compute_rental_amounts,
    days_between,
)


class RentalError(ValueError):
    """Raised for rental operation errors."""
    pass


class RentalNotFound(RentalError, NotFoundError):
    pass


class NotActive(RentalError):
    """A status transition was requested for a rental that is not ACTIVE."""
    pass


class RentalDeleted(RentalError):
    """The rental is soft-deleted and can no longer change."""
    pass


class VehicleUnavailable(RentalError):
    pass


RENTAL_MUTABLE_FIELDS = {
    "vehicle_id",
    "customer_id",
    "start_date",
    "end_date",
    "days",
    "daily_price_cents",
    "rental_type",
    "note",
    *CHARGE_ADDON_FIELDS,
    *MANUAL_SLOT_FIELDS,
}


# =============================================================================
# RECONCILIATION
# =============================================================================

def reconcile_rental(rental: Rental) -> RentalAmounts:
    """
    Recompute and store total_due_cents and balance_cents for a rental.

    Must be called inside the caller's unit of work, after the mutation has
    been applied. Does not commit.

    Raises:
        RentalDeleted: rental is soft-deleted
    """
    db.session.flush()
    db.session.refresh(rental)

    if rental.deleted:
        raise RentalDeleted(f"Rental {rental.id} is deleted")

    ledger = [
        amount
        for (amount,) in db.session.query(Payment.amount_cents).filter(Payment.rental_id == rental.id)
    ]
    amounts = compute_rental_amounts(
        RentalCharge.from_rental(rental),
        ManualPaymentSlots.from_rental(rental),
        ledger,
    )

    if (rental.total_due_cents, rental.balance_cents) != tuple(amounts):
        current_app.logger.info(
            "Rental %s reconciled: total_due %s -> %s, balance %s -> %s",
            rental.id,
            rental.total_due_cents,
            amounts.total_due,
            rental.balance_cents,
            amounts.balance,
        )
        rental.total_due_cents = amounts.total_due
        rental.balance_cents = amounts.balance
        db.session.flush()

    return amounts


def reconcile_rental_by_id(rental_id: int, *, dry_run: bool = False) -> dict:
    """
    Recompute a stored rental balance on demand.

    Returns the stored and computed figures. With dry_run the computed values
    are reported but nothing is written.
    """
    def _op():
        rental = _load_rental_for_update(rental_id)
        before = {"total_due_cents": rental.total_due_cents, "balance_cents": rental.balance_cents}
        amounts = reconcile_rental(rental)
        result = {
            "rental_id": rental.id,
            "before": before,
            "after": {"total_due_cents": amounts.total_due, "balance_cents": amounts.balance},
            "changed": before != {"total_due_cents": amounts.total_due, "balance_cents": amounts.balance},
            "dry_run": dry_run,
        }
        if dry_run:
            db.session.rollback()
        else:
            db.session.commit()
        return result

    return run_with_retry(_op)


def reconcile_all_rentals(*, dry_run: bool = False) -> list[dict]:
    """Reconcile every non-deleted rental; returns one result per rental that changed."""
    rental_ids = [
        rid for (rid,) in db.session.query(Rental.id).filter(Rental.deleted.is_(False)).order_by(Rental.id.asc())
    ]
    changed = []
    for rental_id in rental_ids:
        result = reconcile_rental_by_id(rental_id, dry_run=dry_run)
        if result["changed"]:
            changed.append(result)
    return changed


# =============================================================================
# HELPERS
# =============================================================================

def _load_rental_for_update(rental_id: int, *, allow_deleted: bool = False) -> Rental:
    rental = get_for_update(Rental, rental_id)
    if rental is None:
        raise RentalNotFound(f"Rental {rental_id} not found")
    if rental.deleted and not allow_deleted:
        raise RentalDeleted(f"Rental {rental_id} is deleted")
    return rental


def _load_vehicle_for_update(vehicle_id: int) -> Vehicle:
    vehicle = get_for_update(Vehicle, vehicle_id)
    if vehicle is None:
        raise VehicleNotFound(f"Vehicle {vehicle_id} not found")
    return vehicle


def _strict_dates() -> bool:
    return bool(current_app.config.get("RENTAL_STRICT_DATE_RANGE", False))


def _derive_days(rental: Rental) -> int:
    days = days_between(rental.start_date, rental.end_date, strict=_strict_dates())
    if days > MAX_RENTAL_DAYS:
        raise ValidationError(f"days cannot exceed {MAX_RENTAL_DAYS} (got {days} from the dates)")
    return days


def _resolve_customer(patch: dict, customer_name: str | None, customer_phone: str | None) -> Customer:
    customer_id = patch.get("customer_id")
    if customer_id is not None:
        customer = db.session.get(Customer, customer_id)
        if customer is None:
            raise CustomerNotFound(f"Customer {customer_id} not found")
        return customer
    if customer_name and customer_name.strip():
        return find_or_create_customer(customer_name, customer_phone)
    raise ValidationError("customer_id or customer_name is required")


def _free_vehicle(vehicle_id: int) -> None:
    vehicle = db.session.get(Vehicle, vehicle_id)
    if vehicle is not None:
        vehicle.status = VEHICLE_STATUS_IDLE


def _apply_rental_patch(rental: Rental, patch: dict) -> None:
    for k, v in patch.items():
        if k not in RENTAL_MUTABLE_FIELDS:
            continue
        setattr(rental, k, v)


# =============================================================================
# MUTATIONS
# =============================================================================

def create_rental(
    *,
    patch: dict,
    customer_name: str | None = None,
    customer_phone: str | None = None,
) -> Rental:
    """
    Create a rental and mark its vehicle RENTED.

    days is derived from start_date/end_date when not supplied. The customer
    is taken from customer_id, or looked up (and created if missing) by
    customer_name.

    Raises:
        VehicleNotFound / CustomerNotFound: referenced record missing
        VehicleUnavailable: vehicle is deactivated
        InvalidDateRange: strict date mode and end_date before start_date
    """
    def _op():
        vehicle = _load_vehicle_for_update(patch["vehicle_id"])
        if not vehicle.active:
            raise VehicleUnavailable(f"Vehicle {vehicle.plate} is not active")

        customer = _resolve_customer(patch, customer_name, customer_phone)

        rental = Rental(
            status=RENTAL_STATUS_ACTIVE,
            rental_type=RENTAL_TYPE_NEW,
            deleted=False,
            total_due_cents=0,
            balance_cents=0,
            **{name: 0 for name in CHARGE_ADDON_FIELDS + MANUAL_SLOT_FIELDS},
        )
        _apply_rental_patch(rental, patch)
        rental.customer_id = customer.id

        if patch.get("days") is None:
            rental.days = _derive_days(rental)

        db.session.add(rental)
        vehicle.status = VEHICLE_STATUS_RENTED

        reconcile_rental(rental)
        db.session.commit()
        current_app.logger.info(
            "Rental %s created for vehicle %s (total_due=%s, balance=%s)",
            rental.id, vehicle.plate, rental.total_due_cents, rental.balance_cents,
        )
        return rental

    return run_with_retry(_op)


def update_rental(*, rental_id: int, patch: dict) -> Rental:
    """
    Edit a rental and reconcile its balance.

    When the dates change and days is not given, days is recomputed. Moving
    an ACTIVE rental to another vehicle frees the old vehicle and rents the
    new one.
    """
    def _op():
        rental = _load_rental_for_update(rental_id)
        old_vehicle_id = rental.vehicle_id

        if "customer_id" in patch and patch["customer_id"] is not None:
            if db.session.get(Customer, patch["customer_id"]) is None:
                raise CustomerNotFound(f"Customer {patch['customer_id']} not found")

        new_vehicle = None
        if "vehicle_id" in patch and patch["vehicle_id"] != old_vehicle_id:
            new_vehicle = _load_vehicle_for_update(patch["vehicle_id"])
            if not new_vehicle.active:
                raise VehicleUnavailable(f"Vehicle {new_vehicle.plate} is not active")

        _apply_rental_patch(rental, patch)

        dates_changed = "start_date" in patch or "end_date" in patch
        if dates_changed and patch.get("days") is None:
            rental.days = _derive_days(rental)

        if new_vehicle is not None and rental.status == RENTAL_STATUS_ACTIVE:
            _free_vehicle(old_vehicle_id)
            new_vehicle.status = VEHICLE_STATUS_RENTED

        reconcile_rental(rental)
        db.session.commit()
        return rental

    return run_with_retry(_op)


def _transition(rental_id: int, target_status: str) -> Rental:
    def _op():
        rental = _load_rental_for_update(rental_id)
        if rental.status != RENTAL_STATUS_ACTIVE:
            raise NotActive(f"Rental {rental_id} is {rental.status}, not ACTIVE")

        now = utcnow()
        rental.status = target_status
        if target_status in (RENTAL_STATUS_RETURNED, RENTAL_STATUS_COMPLETED):
            rental.returned_at = rental.returned_at or now
        if target_status == RENTAL_STATUS_COMPLETED:
            rental.completed_at = now
        _free_vehicle(rental.vehicle_id)

        reconcile_rental(rental)
        db.session.commit()
        current_app.logger.info("Rental %s -> %s", rental.id, target_status)
        return rental

    return run_with_retry(_op)


def return_rental(rental_id: int) -> Rental:
    return _transition(rental_id, RENTAL_STATUS_RETURNED)


def complete_rental(rental_id: int) -> Rental:
    """Close an ACTIVE rental. An outstanding balance is kept as debt, not written off."""
    return _transition(rental_id, RENTAL_STATUS_COMPLETED)


def cancel_rental(rental_id: int) -> Rental:
    return _transition(rental_id, RENTAL_STATUS_CANCELLED)


def delete_rental(rental_id: int) -> Rental:
    """
    Soft-delete a rental.

    Raises:
        RentalNotFound: missing, or already deleted
    """
    def _op():
        rental = _load_rental_for_update(rental_id, allow_deleted=True)
        if rental.deleted:
            raise RentalNotFound(f"Rental {rental_id} not found")

        if rental.status == RENTAL_STATUS_ACTIVE:
            _free_vehicle(rental.vehicle_id)
        rental.deleted = True
        rental.deleted_at = utcnow()
        db.session.commit()
        current_app.logger.info("Rental %s soft-deleted", rental.id)
        return rental

    return run_with_retry(_op)


# =============================================================================
# READS
# =============================================================================

def get_rental(rental_id: int) -> Rental:
    rental = db.session.get(Rental, rental_id)
    if rental is None or rental.deleted:
        raise RentalNotFound(f"Rental {rental_id} not found")
    return rental


def list_rentals(
    *,
    search: str | None = None,
    plate: str | None = None,
    customer: str | None = None,
    date_from=None,
    date_to=None,
    status: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    List non-deleted rentals, newest first.

    Filters:
        search: plate or customer name substring
        plate / customer: substring on that field only
        date_from / date_to: rentals overlapping [date_from, date_to]
        status: exact rental status

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    query = (
        db.session.query(Rental)
        .join(Vehicle, Rental.vehicle_id == Vehicle.id)
        .join(Customer, Rental.customer_id == Customer.id)
        .filter(Rental.deleted.is_(False))
    )

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(Vehicle.plate.ilike(pattern), Customer.full_name.ilike(pattern)))
    if plate:
        query = query.filter(Vehicle.plate.ilike(f"%{plate.strip()}%"))
    if customer:
        query = query.filter(Customer.full_name.ilike(f"%{customer.strip()}%"))
    if date_from:
        query = query.filter(Rental.end_date >= date_from)
    if date_to:
        query = query.filter(Rental.start_date <= date_to)
    if status:
        if status not in VALID_RENTAL_STATUSES:
            raise ValidationError(f"Unknown rental status: {status}")
        query = query.filter(Rental.status == status)

    query = query.order_by(Rental.start_date.desc(), Rental.id.desc())

    if page is None:
        items = query.all()
        return {"items": [r.to_dict() for r in items], "count": len(items)}

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    rentals = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [r.to_dict() for r in rentals],
        "count": len(rentals),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def list_debtors() -> list[Rental]:
    """Non-deleted rentals with an outstanding balance, largest debt first."""
    return (
        db.session.query(Rental)
        .filter(Rental.deleted.is_(False), Rental.balance_cents > 0)
        .order_by(Rental.balance_cents.desc(), Rental.id.asc())
        .all()
    )

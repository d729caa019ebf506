# Overview: Service-layer operations for vehicles; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Vehicle, Rental, Reservation, VehicleExpense, ConsignmentDeduction
from ..validation import ConflictError, NotFoundError, ValidationError
from ..models.fleet import VALID_VEHICLE_STATUSES, VEHICLE_STATUS_IDLE
from .concurrency import commit_with_retry

VEHICLE_MUTABLE_FIELDS = {"plate", "name", "status", "active"}


class VehicleNotFound(NotFoundError):
    pass


def _normalize_plate(plate: str) -> str:
    return " ".join(plate.split()).upper()


def apply_vehicle_patch(v: Vehicle, patch: dict) -> None:
    for k, val in patch.items():
        if k not in VEHICLE_MUTABLE_FIELDS:
            continue
        if k == "plate":
            val = _normalize_plate(val)
        setattr(v, k, val)


def _check_status(patch: dict) -> None:
    status = patch.get("status")
    if status is not None and status not in VALID_VEHICLE_STATUSES:
        raise ValidationError(
            f"status must be one of {', '.join(sorted(VALID_VEHICLE_STATUSES))}"
        )


def _plate_taken(plate: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(Vehicle).filter(Vehicle.plate == _normalize_plate(plate))
    if exclude_id is not None:
        query = query.filter(Vehicle.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def get_vehicle(vehicle_id: int) -> Vehicle:
    vehicle = db.session.get(Vehicle, vehicle_id)
    if vehicle is None:
        raise VehicleNotFound(f"Vehicle {vehicle_id} not found")
    return vehicle


def list_vehicles(status: str | None = None) -> list[Vehicle]:
    query = db.session.query(Vehicle)
    if status:
        if status not in VALID_VEHICLE_STATUSES:
            raise ValidationError(f"Unknown vehicle status: {status}")
        query = query.filter(Vehicle.status == status)
    return query.order_by(Vehicle.plate.asc()).all()


def create_vehicle(*, patch: dict) -> Vehicle:
    """
    Create a vehicle from a validated patch dict.

    Raises:
        ConflictError: plate already registered
    """
    _check_status(patch)
    if _plate_taken(patch["plate"]):
        raise ConflictError(f"Vehicle with plate {_normalize_plate(patch['plate'])} already exists")

    vehicle = Vehicle(status=VEHICLE_STATUS_IDLE, active=True)
    apply_vehicle_patch(vehicle, patch)
    db.session.add(vehicle)
    try:
        commit_with_retry()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Vehicle with this plate already exists")
    return vehicle


def update_vehicle(*, vehicle_id: int, patch: dict) -> Vehicle:
    _check_status(patch)
    vehicle = get_vehicle(vehicle_id)
    if "plate" in patch and _plate_taken(patch["plate"], exclude_id=vehicle_id):
        raise ConflictError(f"Vehicle with plate {_normalize_plate(patch['plate'])} already exists")

    apply_vehicle_patch(vehicle, patch)
    commit_with_retry()
    return vehicle


def delete_vehicle(*, vehicle_id: int) -> None:
    """
    Hard-delete a vehicle.

    Only IDLE vehicles that nothing references (rentals, reservations,
    expenses, consignment deductions) can be removed. Soft-deleted rentals
    still reference the row, so they block it too.
    """
    vehicle = get_vehicle(vehicle_id)

    if vehicle.status != VEHICLE_STATUS_IDLE:
        raise ConflictError("Only IDLE vehicles can be deleted")

    rental_count = db.session.query(Rental).filter(Rental.vehicle_id == vehicle_id).count()
    if rental_count:
        raise ConflictError("Vehicle has rentals and cannot be deleted; deactivate it instead")

    reservation_count = db.session.query(Reservation).filter(Reservation.vehicle_id == vehicle_id).count()
    if reservation_count:
        raise ConflictError("Vehicle has reservations and cannot be deleted")

    money_lines = (
        db.session.query(VehicleExpense).filter(VehicleExpense.vehicle_id == vehicle_id).count()
        + db.session.query(ConsignmentDeduction).filter(ConsignmentDeduction.vehicle_id == vehicle_id).count()
    )
    if money_lines:
        raise ConflictError("Vehicle has expenses or consignment deductions and cannot be deleted")

    db.session.delete(vehicle)
    commit_with_retry()

# Overview: Service-layer operations for reservations; encapsulates business logic and database work.

"""
Reservations are future bookings: a customer, a vehicle, a pickup time and
an expected duration. They carry no money and never touch rental balances.

STATUS:
  PENDING -> CONFIRMED  (confirm_reservation) vehicle IDLE -> RESERVED
  PENDING/CONFIRMED -> CANCELLED  (cancel_reservation) RESERVED vehicle -> IDLE
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Reservation, Vehicle, Customer
from ..models.fleet import VEHICLE_STATUS_IDLE, VEHICLE_STATUS_RESERVED
from ..models.reservations import (
    RESERVATION_STATUS_PENDING,
    RESERVATION_STATUS_CONFIRMED,
    RESERVATION_STATUS_CANCELLED,
    VALID_RESERVATION_STATUSES,
)
from ..validation import NotFoundError, ValidationError
from .concurrency import commit_with_retry, get_for_update, run_with_retry
from .customer_service import CustomerNotFound, find_or_create_customer
from .vehicle_service import VehicleNotFound

RESERVATION_MUTABLE_FIELDS = {"customer_id", "vehicle_id", "reserved_for", "rental_duration", "note"}


class ReservationError(ValueError):
    """Raised when a reservation cannot move to the requested status."""
    pass


class ReservationNotFound(ReservationError, NotFoundError):
    pass


def get_reservation(reservation_id: int) -> Reservation:
    reservation = db.session.get(Reservation, reservation_id)
    if reservation is None:
        raise ReservationNotFound(f"Reservation {reservation_id} not found")
    return reservation


def list_reservations(status: str | None = None) -> list[Reservation]:
    query = db.session.query(Reservation)
    if status:
        if status not in VALID_RESERVATION_STATUSES:
            raise ValidationError(f"Unknown reservation status: {status}")
        query = query.filter(Reservation.status == status)
    return query.order_by(Reservation.reserved_for.asc(), Reservation.id.asc()).all()


def _resolve_vehicle(vehicle_id: int | None, plate: str | None) -> Vehicle:
    if vehicle_id is not None:
        vehicle = db.session.get(Vehicle, vehicle_id)
        if vehicle is None:
            raise VehicleNotFound(f"Vehicle {vehicle_id} not found")
        return vehicle
    if plate:
        normalized = " ".join(plate.split()).upper()
        vehicle = db.session.query(Vehicle).filter(Vehicle.plate == normalized).first()
        if vehicle is None:
            raise VehicleNotFound(f"Vehicle with plate {normalized} not found")
        return vehicle
    raise ValidationError("vehicle_id or plate is required")


def _check_duration(patch: dict) -> None:
    duration = patch.get("rental_duration")
    if duration is not None and duration < 0:
        raise ValidationError("rental_duration must be >= 0")


def create_reservation(
    *,
    patch: dict,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    plate: str | None = None,
) -> Reservation:
    """
    Book a vehicle for a customer.

    The vehicle may be given by id or plate; the customer by id or by name
    (created when no customer has that exact name).
    """
    _check_duration(patch)

    def _op():
        vehicle = _resolve_vehicle(patch.get("vehicle_id"), plate)

        if patch.get("customer_id") is not None:
            customer = db.session.get(Customer, patch["customer_id"])
            if customer is None:
                raise CustomerNotFound(f"Customer {patch['customer_id']} not found")
        elif customer_name and customer_name.strip():
            customer = find_or_create_customer(customer_name, customer_phone)
        else:
            raise ValidationError("customer_id or customer_name is required")

        reservation = Reservation(status=RESERVATION_STATUS_PENDING, rental_duration=0)
        for k, v in patch.items():
            if k in RESERVATION_MUTABLE_FIELDS and v is not None:
                setattr(reservation, k, v)
        reservation.vehicle_id = vehicle.id
        reservation.customer_id = customer.id

        db.session.add(reservation)
        db.session.commit()
        return reservation

    return run_with_retry(_op)


def update_reservation(*, reservation_id: int, patch: dict) -> Reservation:
    _check_duration(patch)
    reservation = get_reservation(reservation_id)

    if patch.get("vehicle_id") is not None:
        _resolve_vehicle(patch["vehicle_id"], None)
    if patch.get("customer_id") is not None and db.session.get(Customer, patch["customer_id"]) is None:
        raise CustomerNotFound(f"Customer {patch['customer_id']} not found")

    for k, v in patch.items():
        if k in RESERVATION_MUTABLE_FIELDS:
            setattr(reservation, k, v)
    commit_with_retry()
    return reservation


def delete_reservation(*, reservation_id: int) -> None:
    reservation = get_reservation(reservation_id)
    if reservation.status == RESERVATION_STATUS_CONFIRMED:
        _release_vehicle(reservation.vehicle_id)
    db.session.delete(reservation)
    commit_with_retry()


def _release_vehicle(vehicle_id: int) -> None:
    vehicle = get_for_update(Vehicle, vehicle_id)
    if vehicle is not None and vehicle.status == VEHICLE_STATUS_RESERVED:
        vehicle.status = VEHICLE_STATUS_IDLE


def confirm_reservation(reservation_id: int) -> Reservation:
    def _op():
        reservation = get_for_update(Reservation, reservation_id)
        if reservation is None:
            raise ReservationNotFound(f"Reservation {reservation_id} not found")
        if reservation.status != RESERVATION_STATUS_PENDING:
            raise ReservationError(f"Only PENDING reservations can be confirmed (is {reservation.status})")

        reservation.status = RESERVATION_STATUS_CONFIRMED
        vehicle = get_for_update(Vehicle, reservation.vehicle_id)
        if vehicle is not None and vehicle.status == VEHICLE_STATUS_IDLE:
            vehicle.status = VEHICLE_STATUS_RESERVED

        db.session.commit()
        current_app.logger.info("Reservation %s confirmed", reservation.id)
        return reservation

    return run_with_retry(_op)


def cancel_reservation(reservation_id: int) -> Reservation:
    def _op():
        reservation = get_for_update(Reservation, reservation_id)
        if reservation is None:
            raise ReservationNotFound(f"Reservation {reservation_id} not found")
        if reservation.status == RESERVATION_STATUS_CANCELLED:
            raise ReservationError("Reservation is already cancelled")

        if reservation.status == RESERVATION_STATUS_CONFIRMED:
            _release_vehicle(reservation.vehicle_id)
        reservation.status = RESERVATION_STATUS_CANCELLED

        db.session.commit()
        current_app.logger.info("Reservation %s cancelled", reservation.id)
        return reservation

    return run_with_retry(_op)

# Overview: Flask API routes for reservations operations; parses input and returns JSON responses.

from flask import Blueprint, request, current_app

from ..models import Reservation
from ..services import reservation_service
from ..services.reservation_service import ReservationError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    NotFoundError,
)
from ..decorators import require_auth

RESERVATION_POLICY = ModelValidationPolicy(
    writable_fields={"customer_id", "vehicle_id", "reserved_for", "rental_duration", "note"},
    required_on_create={"reserved_for"},
)

reservations_bp = Blueprint("reservations", __name__, url_prefix="/api/reservations")


@reservations_bp.get("")
@require_auth
def list_reservations_route():
    """Query params: status (PENDING, CONFIRMED, CANCELLED)."""
    try:
        reservations = reservation_service.list_reservations(status=request.args.get("status"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"items": [r.to_dict() for r in reservations], "count": len(reservations)}


@reservations_bp.post("")
@require_auth
def create_reservation_route():
    """
    Book a vehicle.

    Request body:
    {
        "vehicle_id": 1,                 (or "plate": "34 ABC 123")
        "customer_id": 2,                (or "customer_name" / "customer_phone")
        "reserved_for": "2024-06-01T09:00:00Z",
        "rental_duration": 5,
        "note": "airport pickup"
    }
    """
    payload = dict(request.get_json(silent=True) or {})
    customer_name = payload.pop("customer_name", None)
    customer_phone = payload.pop("customer_phone", None)
    plate = payload.pop("plate", None)

    try:
        patch = validate_payload(model=Reservation, payload=payload, policy=RESERVATION_POLICY, partial=False)
        reservation = reservation_service.create_reservation(
            patch=patch,
            customer_name=customer_name,
            customer_phone=customer_phone,
            plate=plate,
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create reservation")
        return {"error": "Internal server error"}, 500

    return reservation.to_dict(), 201


@reservations_bp.get("/<int:reservation_id>")
@require_auth
def get_reservation_route(reservation_id: int):
    try:
        return reservation_service.get_reservation(reservation_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@reservations_bp.put("/<int:reservation_id>")
@require_auth
def update_reservation_route(reservation_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Reservation, payload=payload, policy=RESERVATION_POLICY, partial=True)
        reservation = reservation_service.update_reservation(reservation_id=reservation_id, patch=patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400

    return reservation.to_dict()


@reservations_bp.delete("/<int:reservation_id>")
@require_auth
def delete_reservation_route(reservation_id: int):
    try:
        reservation_service.delete_reservation(reservation_id=reservation_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return "", 204


@reservations_bp.post("/<int:reservation_id>/confirm")
@require_auth
def confirm_reservation_route(reservation_id: int):
    try:
        return reservation_service.confirm_reservation(reservation_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ReservationError as e:
        return {"error": str(e)}, 409


@reservations_bp.post("/<int:reservation_id>/cancel")
@require_auth
def cancel_reservation_route(reservation_id: int):
    try:
        return reservation_service.cancel_reservation(reservation_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ReservationError as e:
        return {"error": str(e)}, 409

# Overview: Flask API routes for vehicles operations; parses input and returns JSON responses.

from flask import Blueprint, request, current_app

from ..models import Vehicle
from ..services import vehicle_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth

VEHICLE_POLICY = ModelValidationPolicy(
    writable_fields={"plate", "name", "status", "active"},
    required_on_create={"plate"},
)

vehicles_bp = Blueprint("vehicles", __name__, url_prefix="/api/vehicles")


@vehicles_bp.get("")
@require_auth
def list_vehicles_route():
    """Query params: status (IDLE, RENTED, RESERVED, SERVICE)."""
    try:
        vehicles = vehicle_service.list_vehicles(status=request.args.get("status"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"items": [v.to_dict() for v in vehicles], "count": len(vehicles)}


@vehicles_bp.post("")
@require_auth
def create_vehicle_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Vehicle, payload=payload, policy=VEHICLE_POLICY, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        vehicle = vehicle_service.create_vehicle(patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create vehicle")
        return {"error": "Internal server error"}, 500

    return vehicle.to_dict(), 201


@vehicles_bp.get("/<int:vehicle_id>")
@require_auth
def get_vehicle_route(vehicle_id: int):
    try:
        return vehicle_service.get_vehicle(vehicle_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@vehicles_bp.put("/<int:vehicle_id>")
@require_auth
def update_vehicle_route(vehicle_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Vehicle, payload=payload, policy=VEHICLE_POLICY, partial=True)
        vehicle = vehicle_service.update_vehicle(vehicle_id=vehicle_id, patch=patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update vehicle")
        return {"error": "Internal server error"}, 500

    return vehicle.to_dict()


@vehicles_bp.delete("/<int:vehicle_id>")
@require_auth
def delete_vehicle_route(vehicle_id: int):
    """
    Delete a vehicle.

    Returns:
        204: deleted
        404: not found
        409: vehicle is not IDLE or other records reference it
    """
    try:
        vehicle_service.delete_vehicle(vehicle_id=vehicle_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return "", 204

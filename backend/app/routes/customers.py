# Overview: Flask API routes for customers operations; parses input and returns JSON responses.

from flask import Blueprint, request, current_app

from ..models import Customer
from ..services import customer_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"full_name", "phone"},
    required_on_create={"full_name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers_route():
    """
    Query params:
    - search: name or phone substring
    - limit: max rows (default 50, max 500)
    """
    customers = customer_service.list_customers(
        search=request.args.get("search"),
        limit=request.args.get("limit", 50, type=int),
    )
    return {"items": [c.to_dict() for c in customers], "count": len(customers)}


@customers_bp.post("")
@require_auth
def create_customer_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        customer = customer_service.create_customer(patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return {"error": "Internal server error"}, 500

    return customer.to_dict(), 201


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        return customer_service.get_customer(customer_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@customers_bp.put("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        customer = customer_service.update_customer(customer_id=customer_id, patch=patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400

    return customer.to_dict()


@customers_bp.delete("/<int:customer_id>")
@require_auth
def delete_customer_route(customer_id: int):
    try:
        customer_service.delete_customer(customer_id=customer_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return "", 204

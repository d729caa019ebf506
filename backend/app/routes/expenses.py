# Overview: Flask API routes for vehicle expense operations; parses input and returns JSON responses.

from flask import Blueprint, request, current_app

from ..models import VehicleExpense
from ..services import expense_service
from ..services.money import InvalidAmount
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    normalize_money_fields,
    enforce_positive_amount,
    PAYMENT_MONEY_FIELDS,
    ValidationError,
    NotFoundError,
)
from ..decorators import require_auth
from app.time_utils import parse_iso_date

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"vehicle_id", "expense_date", "expense_type", "location", "amount_cents", "description"},
    required_on_create={"vehicle_id", "expense_date", "expense_type", "location", "amount_cents"},
)

expenses_bp = Blueprint("vehicle_expenses", __name__, url_prefix="/api/vehicle-expenses")


def _expense_patch(payload: dict, *, partial: bool) -> dict:
    payload = normalize_money_fields(payload, PAYMENT_MONEY_FIELDS)
    patch = validate_payload(model=VehicleExpense, payload=payload, policy=EXPENSE_POLICY, partial=partial)
    enforce_positive_amount(patch)
    return patch


@expenses_bp.get("")
@require_auth
def list_expenses_route():
    """
    List expenses, newest first.

    Query params:
    - vehicle_id: int
    - from, to: YYYY-MM-DD, inclusive
    """
    try:
        expenses = expense_service.list_expenses(
            vehicle_id=request.args.get("vehicle_id", type=int),
            date_from=parse_iso_date(request.args.get("from")),
            date_to=parse_iso_date(request.args.get("to")),
        )
    except ValueError as e:
        return {"error": str(e)}, 400

    return {
        "items": [e.to_dict() for e in expenses],
        "count": len(expenses),
        "total_cents": sum(e.amount_cents for e in expenses),
    }


@expenses_bp.get("/totals")
@require_auth
def expense_totals_route():
    """Expense count and sum per vehicle."""
    totals = expense_service.expense_totals_by_vehicle()
    return {"items": totals, "total_cents": sum(t["total_cents"] for t in totals)}


@expenses_bp.post("")
@require_auth
def create_expense_route():
    """
    Record a vehicle expense.

    Request body:
    {
        "vehicle_id": 1,
        "expense_date": "2024-05-03",
        "expense_type": "Tyres",
        "location": "Kadikoy",
        "amount": "2.400,00",        (or "amount_cents": 240000)
        "description": "winter set"
    }
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = _expense_patch(payload, partial=False)
        expense = expense_service.create_expense(patch=patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except (ValidationError, InvalidAmount) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create vehicle expense")
        return {"error": "Internal server error"}, 500

    return expense.to_dict(), 201


@expenses_bp.get("/<int:expense_id>")
@require_auth
def get_expense_route(expense_id: int):
    try:
        return expense_service.get_expense(expense_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@expenses_bp.put("/<int:expense_id>")
@require_auth
def update_expense_route(expense_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = _expense_patch(payload, partial=True)
        expense = expense_service.update_expense(expense_id=expense_id, patch=patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except (ValidationError, InvalidAmount) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update vehicle expense")
        return {"error": "Internal server error"}, 500

    return expense.to_dict()


@expenses_bp.delete("/<int:expense_id>")
@require_auth
def delete_expense_route(expense_id: int):
    try:
        expense_service.delete_expense(expense_id=expense_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return "", 204

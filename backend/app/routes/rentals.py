# Overview: Flask API routes for rentals operations; parses input and returns JSON responses.

# backend/app/routes/rentals.py
"""
Rental API Routes

DESIGN:
- Create / edit / soft-delete rentals
- Status transitions: return, complete, cancel
- Ledger payments nested under a rental
- Debtor list (rentals with an outstanding balance)

MONEY: every money field may be sent either as integer minor units
("daily_price_cents": 150000) or as decimal text in the major unit
("daily_price": "1.500,00"). Responses always carry minor units plus
formatted display strings.
"""

from flask import Blueprint, request, jsonify, current_app

from ..models import Rental, Payment
from ..services import rental_service, payment_service
from ..services.money import InvalidAmount
from ..services.payment_service import PaymentError
from ..services.rental_calc import InvalidDateRange
from ..services.rental_service import NotActive, RentalDeleted, VehicleUnavailable
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    normalize_money_fields,
    enforce_rules_rental,
    enforce_rules_payment,
    RENTAL_MONEY_FIELDS,
    PAYMENT_MONEY_FIELDS,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth
from app.time_utils import parse_iso_date

RENTAL_POLICY = ModelValidationPolicy(
    writable_fields={
        "vehicle_id", "customer_id", "start_date", "end_date", "days",
        "daily_price_cents", "km_diff_cents", "cleaning_cents", "hgs_cents",
        "damage_cents", "fuel_cents", "upfront_cents", "pay1_cents",
        "pay2_cents", "pay3_cents", "pay4_cents", "rental_type", "note",
    },
    required_on_create={"vehicle_id", "start_date", "end_date", "daily_price_cents"},
)

PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={"amount_cents", "paid_at", "method", "note"},
    required_on_create={"amount_cents"},
)

BAD_REQUEST_ERRORS = (ValidationError, InvalidAmount, InvalidDateRange, PaymentError)
CONFLICT_ERRORS = (NotActive, RentalDeleted, VehicleUnavailable, ConflictError)

rentals_bp = Blueprint("rentals", __name__, url_prefix="/api/rentals")


def _rental_patch(payload: dict, *, partial: bool) -> dict:
    payload = normalize_money_fields(payload, RENTAL_MONEY_FIELDS)
    patch = validate_payload(model=Rental, payload=payload, policy=RENTAL_POLICY, partial=partial)
    enforce_rules_rental(patch)
    return patch


# =============================================================================
# RENTAL CRUD
# =============================================================================

@rentals_bp.get("")
@require_auth
def list_rentals_route():
    """
    List non-deleted rentals.

    Query params:
    - search: plate or customer name substring
    - plate, customer: substring filters
    - from, to: YYYY-MM-DD; rentals overlapping the window
    - status: ACTIVE, RETURNED, COMPLETED, CANCELLED
    - page, per_page: optional pagination (default 20, max 100)
    """
    try:
        result = rental_service.list_rentals(
            search=request.args.get("search"),
            plate=request.args.get("plate"),
            customer=request.args.get("customer"),
            date_from=parse_iso_date(request.args.get("from")),
            date_to=parse_iso_date(request.args.get("to")),
            status=request.args.get("status"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
        return result
    except ValueError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to list rentals")
        return {"error": "Internal server error"}, 500


@rentals_bp.post("")
@require_auth
def create_rental_route():
    """
    Create a rental.

    Request body:
    {
        "vehicle_id": 1,
        "customer_id": 4,            (or "customer_name" / "customer_phone")
        "start_date": "2024-05-01",
        "end_date": "2024-05-07",
        "days": 7,                   (optional, derived from the dates)
        "daily_price": "1.500,00",   (or "daily_price_cents": 150000)
        "cleaning_cents": 50000,
        "upfront_cents": 100000,
        "rental_type": "NEW"
    }

    Returns:
        201: Rental created with total_due_cents and balance_cents
        400: Invalid input
        404: Vehicle or customer not found
        409: Vehicle not available
    """
    payload = dict(request.get_json(silent=True) or {})
    customer_name = payload.pop("customer_name", None)
    customer_phone = payload.pop("customer_phone", None)

    try:
        patch = _rental_patch(payload, partial=False)
        rental = rental_service.create_rental(
            patch=patch,
            customer_name=customer_name,
            customer_phone=customer_phone,
        )
        return rental.to_dict(), 201
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except CONFLICT_ERRORS as e:
        return {"error": str(e)}, 409
    except BAD_REQUEST_ERRORS as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create rental")
        return {"error": "Internal server error"}, 500


@rentals_bp.get("/debtors")
@require_auth
def list_debtors_route():
    """Rentals with an outstanding balance, largest first."""
    rentals = rental_service.list_debtors()
    total = sum(r.balance_cents for r in rentals)
    return {
        "items": [r.to_dict() for r in rentals],
        "count": len(rentals),
        "total_balance_cents": total,
    }


@rentals_bp.get("/<int:rental_id>")
@require_auth
def get_rental_route(rental_id: int):
    try:
        rental = rental_service.get_rental(rental_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return rental.to_dict(include_payments=True)


@rentals_bp.put("/<int:rental_id>")
@require_auth
def update_rental_route(rental_id: int):
    """
    Edit a rental (charges, manual payment slots, dates, vehicle, customer).

    The balance is reconciled against the full ledger in the same transaction.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = _rental_patch(payload, partial=True)
        rental = rental_service.update_rental(rental_id=rental_id, patch=patch)
        return rental.to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except CONFLICT_ERRORS as e:
        return {"error": str(e)}, 409
    except BAD_REQUEST_ERRORS as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update rental")
        return {"error": "Internal server error"}, 500


@rentals_bp.delete("/<int:rental_id>")
@require_auth
def delete_rental_route(rental_id: int):
    """Soft delete. The rental stays in history but leaves the debtor list."""
    try:
        rental = rental_service.delete_rental(rental_id)
        return {"id": rental.id, "deleted": True}
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to delete rental")
        return {"error": "Internal server error"}, 500


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================

def _transition_response(func, rental_id: int, action: str):
    try:
        rental = func(rental_id)
        return rental.to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except CONFLICT_ERRORS as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to %s rental", action)
        return {"error": "Internal server error"}, 500


@rentals_bp.post("/<int:rental_id>/return")
@require_auth
def return_rental_route(rental_id: int):
    return _transition_response(rental_service.return_rental, rental_id, "return")


@rentals_bp.post("/<int:rental_id>/complete")
@require_auth
def complete_rental_route(rental_id: int):
    return _transition_response(rental_service.complete_rental, rental_id, "complete")


@rentals_bp.post("/<int:rental_id>/cancel")
@require_auth
def cancel_rental_route(rental_id: int):
    return _transition_response(rental_service.cancel_rental, rental_id, "cancel")


@rentals_bp.post("/<int:rental_id>/reconcile")
@require_auth
def reconcile_rental_route(rental_id: int):
    """
    Recompute the stored balance from charges, slots and ledger.

    Query params:
    - dry_run: true to report without writing
    """
    dry_run = request.args.get("dry_run", "false").lower() == "true"
    try:
        return rental_service.reconcile_rental_by_id(rental_id, dry_run=dry_run)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except CONFLICT_ERRORS as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to reconcile rental")
        return {"error": "Internal server error"}, 500


# =============================================================================
# LEDGER PAYMENTS
# =============================================================================

@rentals_bp.get("/<int:rental_id>/payments")
@require_auth
def get_rental_payments_route(rental_id: int):
    try:
        rental = rental_service.get_rental(rental_id)
        payments = payment_service.get_rental_payments(rental_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return jsonify({
        "rental_id": rental.id,
        "total_due_cents": rental.total_due_cents,
        "balance_cents": rental.balance_cents,
        "paid_cents": sum(p.amount_cents for p in payments),
        "payments": [p.to_dict() for p in payments],
    })


@rentals_bp.post("/<int:rental_id>/payments")
@require_auth
def add_rental_payment_route(rental_id: int):
    """
    Record a ledger payment against a rental.

    Request body:
    {
        "amount": "500,00",            (or "amount_cents": 50000)
        "method": "CASH",              (CASH, TRANSFER, CARD; default CASH)
        "paid_at": "2024-05-03T10:00:00Z",   (optional, default now)
        "note": "deposit"
    }

    Returns:
        201: {"payment": ..., "rental": ...} with the reconciled balance
        400: Invalid input
        404: Rental not found
        409: Rental deleted
    """
    payload = request.get_json(silent=True) or {}

    try:
        payload = normalize_money_fields(payload, PAYMENT_MONEY_FIELDS)
        patch = validate_payload(model=Payment, payload=payload, policy=PAYMENT_POLICY, partial=False)
        enforce_rules_payment(patch)

        kwargs = {"note": patch.get("note")}
        if patch.get("method"):
            kwargs["method"] = patch["method"]
        if patch.get("paid_at"):
            kwargs["paid_at"] = patch["paid_at"]

        payment, rental = payment_service.add_payment(
            rental_id=rental_id,
            amount_cents=patch["amount_cents"],
            **kwargs,
        )
        return jsonify({"payment": payment.to_dict(), "rental": rental.to_dict()}), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except CONFLICT_ERRORS as e:
        return jsonify({"error": str(e)}), 409
    except BAD_REQUEST_ERRORS as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to add payment")
        return jsonify({"error": "Internal server error"}), 500

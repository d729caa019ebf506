# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/app/routes/payments.py
"""
Payment Ledger API Routes

DESIGN:
- Payments are created under /api/rentals/<id>/payments
- This blueprint lists, edits and deletes ledger rows across rentals
- Every edit or delete reconciles the owning rental's balance
"""

from flask import Blueprint, request, jsonify, current_app

from ..models import Payment
from ..services import payment_service
from ..services.money import InvalidAmount
from ..services.payment_service import PaymentError
from ..services.rental_service import RentalDeleted
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    normalize_money_fields,
    enforce_rules_payment,
    PAYMENT_MONEY_FIELDS,
    ValidationError,
    NotFoundError,
)
from ..decorators import require_auth
from app.time_utils import parse_iso_datetime


PAYMENT_EDIT_POLICY = ModelValidationPolicy(
    writable_fields={"amount_cents", "paid_at", "method", "note"},
)

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

@payments_bp.get("")
@require_auth
def list_payments_route():
    """
    List ledger payments, newest first.

    Query params:
    - rental_id: int
    - method: CASH, TRANSFER, CARD
    - from, to: ISO-8601 datetimes bounding paid_at
    """
    try:
        payments = payment_service.list_payments(
            rental_id=request.args.get("rental_id", type=int),
            method=request.args.get("method"),
            date_from=parse_iso_datetime(request.args.get("from")),
            date_to=parse_iso_datetime(request.args.get("to")),
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "items": [p.to_dict() for p in payments],
        "count": len(payments),
        "total_cents": sum(p.amount_cents for p in payments),
    })


@payments_bp.get("/<int:payment_id>")
@require_auth
def get_payment_route(payment_id: int):
    try:
        payment = payment_service.get_payment(payment_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(payment.to_dict())


# =============================================================================
# PAYMENT EDITS
# =============================================================================

@payments_bp.patch("/<int:payment_id>")
@require_auth
def update_payment_route(payment_id: int):
    """
    Edit a payment's amount, paid_at, method or note.

    Returns:
        200: {"payment": ..., "rental": ...} with the reconciled balance
        400: Invalid input
        404: Payment not found
        409: Owning rental is deleted
    """
    payload = request.get_json(silent=True) or {}

    try:
        payload = normalize_money_fields(payload, PAYMENT_MONEY_FIELDS)
        patch = validate_payload(model=Payment, payload=payload, policy=PAYMENT_EDIT_POLICY, partial=True)
        enforce_rules_payment(patch)

        payment, rental = payment_service.update_payment(payment_id, patch)
        return jsonify({"payment": payment.to_dict(), "rental": rental.to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except RentalDeleted as e:
        return jsonify({"error": str(e)}), 409
    except (ValidationError, InvalidAmount, PaymentError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.delete("/<int:payment_id>")
@require_auth
def delete_payment_route(payment_id: int):
    try:
        rental = payment_service.delete_payment(payment_id)
        return jsonify({"deleted": payment_id, "rental": rental.to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except RentalDeleted as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete payment")
        return jsonify({"error": "Internal server error"}), 500

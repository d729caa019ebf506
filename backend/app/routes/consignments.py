# Overview: Flask API routes for consignment settlements; parses input and returns JSON responses.

"""
Consignment API Routes

Request body for POST / PUT of a record:
{
    "general_note": "May settlement",
    "deductions": [
        {"vehicle_id": 1, "amount": "1.500,00", "description": "commission"}
    ],
    "external_payments": [
        {"customer_id": 4, "amount_cents": 250000}
    ]
}

Each line accepts "amount" (decimal text or number) or "amount_cents".
PUT replaces the note and all lines.
"""

from flask import Blueprint, request, current_app

from ..models import ConsignmentRecord, ConsignmentDeduction, ExternalPayment
from ..services import consignment_service
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

RECORD_POLICY = ModelValidationPolicy(writable_fields={"general_note"})

DEDUCTION_POLICY = ModelValidationPolicy(
    writable_fields={"vehicle_id", "amount_cents", "description"},
    required_on_create={"vehicle_id", "amount_cents"},
)

EXTERNAL_PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={"customer_id", "amount_cents", "description"},
    required_on_create={"customer_id", "amount_cents"},
)

BAD_REQUEST_ERRORS = (ValidationError, InvalidAmount)

consignments_bp = Blueprint("consignments", __name__, url_prefix="/api/consignments")


def _line_patch(model, payload, policy: ModelValidationPolicy, *, partial: bool) -> dict:
    payload = normalize_money_fields(payload, PAYMENT_MONEY_FIELDS)
    patch = validate_payload(model=model, payload=payload, policy=policy, partial=partial)
    enforce_positive_amount(patch)
    return patch


def _lines(payload: dict, key: str, model, policy: ModelValidationPolicy) -> list[dict]:
    raw = payload.get(key) or []
    if not isinstance(raw, list):
        raise ValidationError(f"{key} must be a list")
    lines = []
    for i, item in enumerate(raw):
        try:
            lines.append(_line_patch(model, item, policy, partial=False))
        except BAD_REQUEST_ERRORS as e:
            raise ValidationError(f"{key}[{i}]: {e}")
    return lines


def _record_args(payload: dict) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    unknown = set(payload) - {"general_note", "deductions", "external_payments"}
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    note = validate_payload(
        model=ConsignmentRecord,
        payload={k: v for k, v in payload.items() if k == "general_note"},
        policy=RECORD_POLICY,
        partial=True,
    )
    return {
        "general_note": note.get("general_note"),
        "deductions": _lines(payload, "deductions", ConsignmentDeduction, DEDUCTION_POLICY),
        "external_payments": _lines(payload, "external_payments", ExternalPayment, EXTERNAL_PAYMENT_POLICY),
    }


# =============================================================================
# RECORDS
# =============================================================================

@consignments_bp.get("")
@require_auth
def list_records_route():
    records = consignment_service.list_records()
    return {"items": [r.to_dict() for r in records], "count": len(records)}


@consignments_bp.post("")
@require_auth
def create_record_route():
    payload = request.get_json(silent=True) or {}

    try:
        record = consignment_service.create_record(**_record_args(payload))
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except BAD_REQUEST_ERRORS as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create consignment record")
        return {"error": "Internal server error"}, 500

    return record.to_dict(), 201


@consignments_bp.get("/<int:record_id>")
@require_auth
def get_record_route(record_id: int):
    try:
        return consignment_service.get_record(record_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@consignments_bp.put("/<int:record_id>")
@require_auth
def replace_record_route(record_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        record = consignment_service.replace_record(record_id=record_id, **_record_args(payload))
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except BAD_REQUEST_ERRORS as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update consignment record")
        return {"error": "Internal server error"}, 500

    return record.to_dict()


@consignments_bp.delete("/<int:record_id>")
@require_auth
def delete_record_route(record_id: int):
    try:
        consignment_service.delete_record(record_id=record_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return "", 204


# =============================================================================
# SINGLE LINES
# =============================================================================

@consignments_bp.put("/deductions/<int:deduction_id>")
@require_auth
def update_deduction_route(deduction_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = _line_patch(ConsignmentDeduction, payload, DEDUCTION_POLICY, partial=True)
        line = consignment_service.update_deduction(deduction_id=deduction_id, patch=patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except BAD_REQUEST_ERRORS as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update consignment deduction")
        return {"error": "Internal server error"}, 500

    return line.to_dict()


@consignments_bp.delete("/deductions/<int:deduction_id>")
@require_auth
def delete_deduction_route(deduction_id: int):
    try:
        consignment_service.delete_deduction(deduction_id=deduction_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return "", 204


@consignments_bp.put("/external-payments/<int:payment_id>")
@require_auth
def update_external_payment_route(payment_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = _line_patch(ExternalPayment, payload, EXTERNAL_PAYMENT_POLICY, partial=True)
        line = consignment_service.update_external_payment(payment_id=payment_id, patch=patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except BAD_REQUEST_ERRORS as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update external payment")
        return {"error": "Internal server error"}, 500

    return line.to_dict()


@consignments_bp.delete("/external-payments/<int:payment_id>")
@require_auth
def delete_external_payment_route(payment_id: int):
    try:
        consignment_service.delete_external_payment(payment_id=payment_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return "", 204

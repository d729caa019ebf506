from __future__ import annotations
from datetime import date, datetime
from app.time_utils import parse_iso_date, parse_iso_datetime

from dataclasses import dataclass
from typing import Any, Iterable

from sqlalchemy import Boolean, Date, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from app.services.money import parse_amount, is_valid_minor_amount
from app.services.rental_calc import CHARGE_ADDON_FIELDS, MANUAL_SLOT_FIELDS


# Maximum single money value: 9,999,999.99 TL (999,999,999 kurus)
MAX_AMOUNT_CENTS = 999_999_999

# Ten years. Together with MAX_AMOUNT_CENTS this keeps days * daily_price
# plus add-ons inside a 64-bit column.
MAX_RENTAL_DAYS = 3650

RENTAL_MONEY_FIELDS = ("daily_price_cents",) + CHARGE_ADDON_FIELDS + MANUAL_SLOT_FIELDS
PAYMENT_MONEY_FIELDS = ("amount_cents",)


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate plate)."""


class NotFoundError(LookupError):
    """404-level: the referenced record does not exist."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped or ',' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        # Reject floats explicitly
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        # Other types
        raise ValidationError(f"{col.key} must be an integer")

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # Calendar dates ("YYYY-MM-DD" or a full datetime whose time is dropped)
    if isinstance(coltype, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            if d is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            return d
        raise ValidationError(f"{col.key} must be a date")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def normalize_money_fields(payload: dict, fields: Iterable[str]) -> dict:
    """
    Accept money either as integer minor units or as human decimal input.

    For each "<name>_cents" field the client may instead send "<name>"
    (e.g. "daily_price": "1.500,00"), which is converted with
    money.parse_amount. Sending both forms of the same field is rejected.

    Returns a new dict; the input payload is not modified.

    Raises:
        ValidationError: both forms sent for one field
        InvalidAmount: the decimal form does not parse
    """
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    normalized = dict(payload)
    for field in fields:
        human_key = field[: -len("_cents")]
        if human_key not in normalized:
            continue
        if field in normalized:
            raise ValidationError(f"Send either {human_key} or {field}, not both")
        raw = normalized.pop(human_key)
        normalized[field] = None if raw is None else parse_amount(raw)
    return normalized


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_money_range(patch: dict, fields: Iterable[str]) -> None:
    for field in fields:
        value = patch.get(field)
        if value is None:
            continue
        if abs(value) > MAX_AMOUNT_CENTS:
            raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS}")


def enforce_rules_rental(patch: dict) -> None:
    """
    Business rules for rental create/edit that column metadata can't express.

    Charge add-ons may be negative (a discount typed as a charge); manual
    payment slots may not.
    """
    from app.models.rentals import VALID_RENTAL_TYPES

    _check_money_range(patch, RENTAL_MONEY_FIELDS)

    if "days" in patch and patch["days"] is not None:
        if patch["days"] <= 0:
            raise ValidationError("days must be > 0")
        if patch["days"] > MAX_RENTAL_DAYS:
            raise ValidationError(f"days cannot exceed {MAX_RENTAL_DAYS}")

    if "daily_price_cents" in patch and patch["daily_price_cents"] is not None:
        if patch["daily_price_cents"] <= 0:
            raise ValidationError("daily_price_cents must be > 0")

    for field in MANUAL_SLOT_FIELDS:
        if field in patch and not is_valid_minor_amount(patch[field]):
            raise ValidationError(f"{field} must be a non-negative integer")

    if "rental_type" in patch and patch["rental_type"] not in VALID_RENTAL_TYPES:
        raise ValidationError(
            f"rental_type must be one of {', '.join(sorted(VALID_RENTAL_TYPES))}"
        )


def enforce_rules_payment(patch: dict) -> None:
    from app.models.rentals import VALID_PAYMENT_METHODS

    enforce_positive_amount(patch)

    if "method" in patch and patch["method"] not in VALID_PAYMENT_METHODS:
        raise ValidationError(f"method must be one of {', '.join(VALID_PAYMENT_METHODS)}")


def enforce_positive_amount(patch: dict) -> None:
    """Rule for expense and consignment lines: amount_cents, when present, is 1..MAX_AMOUNT_CENTS."""
    if "amount_cents" in patch:
        amount = patch["amount_cents"]
        if amount is None or amount <= 0:
            raise ValidationError("amount_cents must be > 0")
        _check_money_range(patch, PAYMENT_MONEY_FIELDS)

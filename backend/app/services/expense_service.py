# Overview: Service-layer operations for vehicle expenses; encapsulates business logic and database work.

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import Vehicle, VehicleExpense
from ..validation import NotFoundError, ValidationError
from .concurrency import commit_with_retry
from .vehicle_service import VehicleNotFound

EXPENSE_MUTABLE_FIELDS = {"vehicle_id", "expense_date", "expense_type", "location", "amount_cents", "description"}


class ExpenseNotFound(NotFoundError):
    pass


def _require_vehicle(vehicle_id: int) -> None:
    if db.session.get(Vehicle, vehicle_id) is None:
        raise VehicleNotFound(f"Vehicle {vehicle_id} not found")


def _apply_expense_patch(expense: VehicleExpense, patch: dict) -> None:
    for k, v in patch.items():
        if k in EXPENSE_MUTABLE_FIELDS:
            setattr(expense, k, v)


def get_expense(expense_id: int) -> VehicleExpense:
    expense = db.session.get(VehicleExpense, expense_id)
    if expense is None:
        raise ExpenseNotFound(f"Expense {expense_id} not found")
    return expense


def list_expenses(
    *,
    vehicle_id: int | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[VehicleExpense]:
    """Expenses newest first, optionally for one vehicle and an inclusive date window."""
    if date_from and date_to and date_from > date_to:
        raise ValidationError("from must not be after to")

    query = db.session.query(VehicleExpense)
    if vehicle_id is not None:
        query = query.filter(VehicleExpense.vehicle_id == vehicle_id)
    if date_from:
        query = query.filter(VehicleExpense.expense_date >= date_from)
    if date_to:
        query = query.filter(VehicleExpense.expense_date <= date_to)
    return query.order_by(VehicleExpense.expense_date.desc(), VehicleExpense.id.desc()).all()


def expense_totals_by_vehicle() -> list[dict]:
    rows = (
        db.session.query(
            Vehicle.id,
            Vehicle.plate,
            db.func.count(VehicleExpense.id),
            db.func.coalesce(db.func.sum(VehicleExpense.amount_cents), 0),
        )
        .join(VehicleExpense, VehicleExpense.vehicle_id == Vehicle.id)
        .group_by(Vehicle.id, Vehicle.plate)
        .order_by(Vehicle.plate.asc())
        .all()
    )
    return [
        {"vehicle_id": vid, "plate": plate, "count": count, "total_cents": int(total)}
        for vid, plate, count, total in rows
    ]


def create_expense(*, patch: dict) -> VehicleExpense:
    """
    Record an expense against a vehicle.

    Raises:
        VehicleNotFound: vehicle_id does not exist
    """
    _require_vehicle(patch["vehicle_id"])

    expense = VehicleExpense()
    _apply_expense_patch(expense, patch)
    db.session.add(expense)
    commit_with_retry()

    current_app.logger.info(
        "Expense %s recorded for vehicle %s: %s %s",
        expense.id, expense.vehicle_id, expense.expense_type, expense.amount_cents,
    )
    return expense


def update_expense(*, expense_id: int, patch: dict) -> VehicleExpense:
    expense = get_expense(expense_id)
    if "vehicle_id" in patch:
        _require_vehicle(patch["vehicle_id"])

    _apply_expense_patch(expense, patch)
    commit_with_retry()
    return expense


def delete_expense(*, expense_id: int) -> None:
    expense = get_expense(expense_id)
    db.session.delete(expense)
    commit_with_retry()

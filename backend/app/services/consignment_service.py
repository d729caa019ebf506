# Overview: Service-layer operations for consignment settlements; encapsulates business logic and database work.

"""
Consignment Service

A consignment record groups two kinds of money lines:
- deductions: amounts held back per consigned vehicle
- external payments: amounts a customer paid outside the rental ledger

Line items arrive already validated (amount_cents > 0). Saving a record
replaces its lines as a whole; single lines can also be edited or removed.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import (
    ConsignmentRecord,
    ConsignmentDeduction,
    ExternalPayment,
    Customer,
    Vehicle,
)
from ..validation import NotFoundError
from .concurrency import get_for_update, run_with_retry
from .customer_service import CustomerNotFound
from .vehicle_service import VehicleNotFound

LINE_MUTABLE_FIELDS = {"vehicle_id", "customer_id", "amount_cents", "description"}


class ConsignmentNotFound(NotFoundError):
    pass


class ConsignmentLineNotFound(NotFoundError):
    pass


def _require_vehicle(vehicle_id: int) -> None:
    if db.session.get(Vehicle, vehicle_id) is None:
        raise VehicleNotFound(f"Vehicle {vehicle_id} not found")


def _require_customer(customer_id: int) -> None:
    if db.session.get(Customer, customer_id) is None:
        raise CustomerNotFound(f"Customer {customer_id} not found")


def _build_lines(record: ConsignmentRecord, deductions: list[dict], external_payments: list[dict]) -> None:
    for line in deductions:
        _require_vehicle(line["vehicle_id"])
        record.deductions.append(
            ConsignmentDeduction(
                vehicle_id=line["vehicle_id"],
                amount_cents=line["amount_cents"],
                description=line.get("description"),
            )
        )
    for line in external_payments:
        _require_customer(line["customer_id"])
        record.external_payments.append(
            ExternalPayment(
                customer_id=line["customer_id"],
                amount_cents=line["amount_cents"],
                description=line.get("description"),
            )
        )


def _load_record_for_update(record_id: int) -> ConsignmentRecord:
    record = get_for_update(ConsignmentRecord, record_id)
    if record is None:
        raise ConsignmentNotFound(f"Consignment record {record_id} not found")
    return record


def get_record(record_id: int) -> ConsignmentRecord:
    record = db.session.get(ConsignmentRecord, record_id)
    if record is None:
        raise ConsignmentNotFound(f"Consignment record {record_id} not found")
    return record


def list_records() -> list[ConsignmentRecord]:
    return (
        db.session.query(ConsignmentRecord)
        .order_by(ConsignmentRecord.created_at.desc(), ConsignmentRecord.id.desc())
        .all()
    )


def create_record(
    *,
    general_note: str | None,
    deductions: list[dict],
    external_payments: list[dict],
) -> ConsignmentRecord:
    """
    Create a record with its lines in one transaction.

    Raises:
        VehicleNotFound / CustomerNotFound: a line references a missing row
    """
    def _op():
        record = ConsignmentRecord(general_note=general_note)
        db.session.add(record)
        _build_lines(record, deductions, external_payments)
        db.session.commit()
        current_app.logger.info(
            "Consignment record %s created (%s deductions, %s external payments)",
            record.id, len(record.deductions), len(record.external_payments),
        )
        return record

    return run_with_retry(_op)


def replace_record(
    *,
    record_id: int,
    general_note: str | None,
    deductions: list[dict],
    external_payments: list[dict],
) -> ConsignmentRecord:
    """Overwrite the note and every line of a record."""
    def _op():
        record = _load_record_for_update(record_id)
        record.general_note = general_note
        record.deductions.clear()
        record.external_payments.clear()
        db.session.flush()
        _build_lines(record, deductions, external_payments)
        db.session.commit()
        return record

    return run_with_retry(_op)


def delete_record(*, record_id: int) -> None:
    def _op():
        record = _load_record_for_update(record_id)
        db.session.delete(record)
        db.session.commit()

    run_with_retry(_op)


def _get_line(model, line_id: int):
    line = db.session.get(model, line_id)
    if line is None:
        raise ConsignmentLineNotFound(f"{model.__name__} {line_id} not found")
    return line


def update_deduction(*, deduction_id: int, patch: dict) -> ConsignmentDeduction:
    def _op():
        line = _get_line(ConsignmentDeduction, deduction_id)
        if "vehicle_id" in patch:
            _require_vehicle(patch["vehicle_id"])
        for k, v in patch.items():
            if k in LINE_MUTABLE_FIELDS:
                setattr(line, k, v)
        db.session.commit()
        return line

    return run_with_retry(_op)


def update_external_payment(*, payment_id: int, patch: dict) -> ExternalPayment:
    def _op():
        line = _get_line(ExternalPayment, payment_id)
        if "customer_id" in patch:
            _require_customer(patch["customer_id"])
        for k, v in patch.items():
            if k in LINE_MUTABLE_FIELDS:
                setattr(line, k, v)
        db.session.commit()
        return line

    return run_with_retry(_op)


def delete_deduction(*, deduction_id: int) -> None:
    def _op():
        db.session.delete(_get_line(ConsignmentDeduction, deduction_id))
        db.session.commit()

    run_with_retry(_op)


def delete_external_payment(*, payment_id: int) -> None:
    def _op():
        db.session.delete(_get_line(ExternalPayment, payment_id))
        db.session.commit()

    run_with_retry(_op)

from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z
from app.services.money import format_display


class ConsignmentRecord(db.Model):
    """
    Settlement sheet for vehicles run on consignment.

    Deductions are amounts kept back per consigned vehicle; external payments
    are amounts customers paid outside the rental ledger. Neither side is
    reconciled against rentals.
    """
    __tablename__ = "consignment_records"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    general_note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    deductions = db.relationship(
        "ConsignmentDeduction",
        back_populates="record",
        cascade="all, delete-orphan",
        order_by="ConsignmentDeduction.id",
    )
    external_payments = db.relationship(
        "ExternalPayment",
        back_populates="record",
        cascade="all, delete-orphan",
        order_by="ExternalPayment.id",
    )

    def to_dict(self) -> dict:
        deductions_total = sum(d.amount_cents for d in self.deductions)
        external_total = sum(p.amount_cents for p in self.external_payments)
        return {
            "id": self.id,
            "general_note": self.general_note,
            "deductions": [d.to_dict() for d in self.deductions],
            "external_payments": [p.to_dict() for p in self.external_payments],
            "deductions_total_cents": deductions_total,
            "external_payments_total_cents": external_total,
            "deductions_total_display": format_display(deductions_total),
            "external_payments_total_display": format_display(external_total),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ConsignmentDeduction(db.Model):
    __tablename__ = "consignment_deductions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    record_id = db.Column(db.Integer, db.ForeignKey("consignment_records.id"), nullable=False, index=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=True)

    record = db.relationship("ConsignmentRecord", back_populates="deductions")
    vehicle = db.relationship("Vehicle", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "record_id": self.record_id,
            "vehicle_id": self.vehicle_id,
            "plate": self.vehicle.plate if self.vehicle else None,
            "amount_cents": self.amount_cents,
            "amount_display": format_display(self.amount_cents),
            "description": self.description,
        }


class ExternalPayment(db.Model):
    __tablename__ = "external_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    record_id = db.Column(db.Integer, db.ForeignKey("consignment_records.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=True)

    record = db.relationship("ConsignmentRecord", back_populates="external_payments")
    customer = db.relationship("Customer", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "record_id": self.record_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.full_name if self.customer else None,
            "amount_cents": self.amount_cents,
            "amount_display": format_display(self.amount_cents),
            "description": self.description,
        }

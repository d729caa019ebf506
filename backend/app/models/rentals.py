from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z, to_iso_date
from app.services.money import format_display


RENTAL_STATUS_ACTIVE = "ACTIVE"
RENTAL_STATUS_RETURNED = "RETURNED"
RENTAL_STATUS_COMPLETED = "COMPLETED"
RENTAL_STATUS_CANCELLED = "CANCELLED"

VALID_RENTAL_STATUSES = {
    RENTAL_STATUS_ACTIVE,
    RENTAL_STATUS_RETURNED,
    RENTAL_STATUS_COMPLETED,
    RENTAL_STATUS_CANCELLED,
}

RENTAL_TYPE_NEW = "NEW"
RENTAL_TYPE_EXTENSION = "EXTENSION"
VALID_RENTAL_TYPES = {RENTAL_TYPE_NEW, RENTAL_TYPE_EXTENSION}

PAYMENT_METHOD_CASH = "CASH"
PAYMENT_METHOD_TRANSFER = "TRANSFER"
PAYMENT_METHOD_CARD = "CARD"
VALID_PAYMENT_METHODS = [PAYMENT_METHOD_CASH, PAYMENT_METHOD_TRANSFER, PAYMENT_METHOD_CARD]


class Rental(db.Model):
    """
    Rental agreement; the aggregate root for balance purposes.

    WHY: total_due_cents and balance_cents are derived values. They are only
    ever written by the reconciliation step in rental_service, in the same
    transaction as the charge or payment change that made them stale.

    MONEY: every *_cents column is an integer in minor units (kurus).
    upfront/pay1..pay4 are the legacy inline payment slots; new payments go
    to the payments ledger.
    """
    __tablename__ = "rentals"
    __table_args__ = (
        db.Index("ix_rentals_deleted_status", "deleted", "status"),
        db.Index("ix_rentals_dates", "start_date", "end_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    days = db.Column(db.Integer, nullable=False)

    # Charges
    daily_price_cents = db.Column(db.Integer, nullable=False)
    km_diff_cents = db.Column(db.Integer, nullable=False, default=0)
    cleaning_cents = db.Column(db.Integer, nullable=False, default=0)
    hgs_cents = db.Column(db.Integer, nullable=False, default=0)
    damage_cents = db.Column(db.Integer, nullable=False, default=0)
    fuel_cents = db.Column(db.Integer, nullable=False, default=0)

    # Inline manual payment slots
    upfront_cents = db.Column(db.Integer, nullable=False, default=0)
    pay1_cents = db.Column(db.Integer, nullable=False, default=0)
    pay2_cents = db.Column(db.Integer, nullable=False, default=0)
    pay3_cents = db.Column(db.Integer, nullable=False, default=0)
    pay4_cents = db.Column(db.Integer, nullable=False, default=0)

    # Derived (see rental_calc.compute_rental_amounts)
    total_due_cents = db.Column(db.BigInteger, nullable=False, default=0)
    balance_cents = db.Column(db.BigInteger, nullable=False, default=0, index=True)

    status = db.Column(db.String(16), nullable=False, default=RENTAL_STATUS_ACTIVE, index=True)
    rental_type = db.Column(db.String(16), nullable=False, default=RENTAL_TYPE_NEW)
    note = db.Column(db.Text, nullable=True)

    returned_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Soft delete (orthogonal to status)
    deleted = db.Column(db.Boolean, nullable=False, default=False)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    vehicle = db.relationship("Vehicle", backref=db.backref("rentals", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("rentals", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_payments: bool = False) -> dict:
        data = {
            "id": self.id,
            "vehicle_id": self.vehicle_id,
            "customer_id": self.customer_id,
            "plate": self.vehicle.plate if self.vehicle else None,
            "customer_name": self.customer.full_name if self.customer else None,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "days": self.days,
            "daily_price_cents": self.daily_price_cents,
            "km_diff_cents": self.km_diff_cents,
            "cleaning_cents": self.cleaning_cents,
            "hgs_cents": self.hgs_cents,
            "damage_cents": self.damage_cents,
            "fuel_cents": self.fuel_cents,
            "upfront_cents": self.upfront_cents,
            "pay1_cents": self.pay1_cents,
            "pay2_cents": self.pay2_cents,
            "pay3_cents": self.pay3_cents,
            "pay4_cents": self.pay4_cents,
            "total_due_cents": self.total_due_cents,
            "balance_cents": self.balance_cents,
            "total_due_display": format_display(self.total_due_cents or 0),
            "balance_display": format_display(self.balance_cents or 0),
            "status": self.status,
            "rental_type": self.rental_type,
            "note": self.note,
            "returned_at": to_utc_z(self.returned_at) if self.returned_at else None,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "deleted": self.deleted,
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_payments:
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class Payment(db.Model):
    """
    Ledger payment recorded against a rental.

    METHODS: CASH, TRANSFER, CARD

    amount_cents is always positive and in the same minor unit as the
    rental's charge fields.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_rental_paid", "rental_id", "paid_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    rental_id = db.Column(db.Integer, db.ForeignKey("rentals.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(16), nullable=False, default=PAYMENT_METHOD_CASH, index=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    rental = db.relationship(
        "Rental",
        backref=db.backref("payments", lazy=True, order_by="Payment.paid_at"),
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "rental_id": self.rental_id,
            "amount_cents": self.amount_cents,
            "amount_display": format_display(self.amount_cents or 0),
            "method": self.method,
            "paid_at": to_utc_z(self.paid_at),
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }

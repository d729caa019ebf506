from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z, to_iso_date
from app.services.money import format_display


class VehicleExpense(db.Model):
    """
    Money spent on a fleet vehicle (service, tyres, insurance, fines...).

    Expenses never touch rental balances; they feed per-vehicle cost totals.
    """
    __tablename__ = "vehicle_expenses"
    __table_args__ = (
        db.Index("ix_vehicle_expenses_vehicle_date", "vehicle_id", "expense_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id"), nullable=False, index=True)

    expense_date = db.Column(db.Date, nullable=False)
    expense_type = db.Column(db.String(64), nullable=False)
    location = db.Column(db.String(128), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    vehicle = db.relationship("Vehicle", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vehicle_id": self.vehicle_id,
            "plate": self.vehicle.plate if self.vehicle else None,
            "expense_date": to_iso_date(self.expense_date),
            "expense_type": self.expense_type,
            "location": self.location,
            "amount_cents": self.amount_cents,
            "amount_display": format_display(self.amount_cents),
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

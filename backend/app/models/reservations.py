from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


RESERVATION_STATUS_PENDING = "PENDING"
RESERVATION_STATUS_CONFIRMED = "CONFIRMED"
RESERVATION_STATUS_CANCELLED = "CANCELLED"

VALID_RESERVATION_STATUSES = {
    RESERVATION_STATUS_PENDING,
    RESERVATION_STATUS_CONFIRMED,
    RESERVATION_STATUS_CANCELLED,
}


class Reservation(db.Model):
    """Future booking of a vehicle for a customer. Carries no money."""
    __tablename__ = "reservations"
    __table_args__ = (
        db.Index("ix_reservations_vehicle_reserved_for", "vehicle_id", "reserved_for"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id"), nullable=False, index=True)

    reserved_for = db.Column(db.DateTime(timezone=True), nullable=False)
    rental_duration = db.Column(db.Integer, nullable=False, default=0)
    note = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=RESERVATION_STATUS_PENDING, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("reservations", lazy=True))
    vehicle = db.relationship("Vehicle", backref=db.backref("reservations", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "vehicle_id": self.vehicle_id,
            "customer_name": self.customer.full_name if self.customer else None,
            "plate": self.vehicle.plate if self.vehicle else None,
            "reserved_for": to_utc_z(self.reserved_for),
            "rental_duration": self.rental_duration,
            "note": self.note,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


VEHICLE_STATUS_IDLE = "IDLE"
VEHICLE_STATUS_RENTED = "RENTED"
VEHICLE_STATUS_RESERVED = "RESERVED"
VEHICLE_STATUS_SERVICE = "SERVICE"

VALID_VEHICLE_STATUSES = {
    VEHICLE_STATUS_IDLE,
    VEHICLE_STATUS_RENTED,
    VEHICLE_STATUS_RESERVED,
    VEHICLE_STATUS_SERVICE,
}


class Vehicle(db.Model):
    """
    Fleet vehicle.

    status tracks physical availability: a rental going ACTIVE marks the
    vehicle RENTED, returning/completing/cancelling/deleting it frees it
    back to IDLE.
    """
    __tablename__ = "vehicles"
    __table_args__ = (
        db.UniqueConstraint("plate", name="uq_vehicles_plate"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    plate = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(128), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=VEHICLE_STATUS_IDLE, index=True)
    active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "plate": self.plate,
            "name": self.name,
            "status": self.status,
            "active": self.active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Customer(db.Model):
    """Renter master data. Looked up by full name when a rental names a new customer."""
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_full_name", "full_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "phone": self.phone,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

# Overview: Pure calculation functions for rental charges, balances and day counts.

"""
Rental Amount Calculator

    total_due = days * daily_price + km_diff + cleaning + hgs + damage + fuel
    balance   = max(0, total_due - manual_paid - ledger_paid)

manual_paid is the sum of the five inline slots on the rental (upfront,
pay1..pay4); ledger_paid is the sum of Payment rows owned by the rental.

All inputs and outputs are integer minor units. Nothing here parses decimal
text; that happens in money.parse_amount before values reach the calculator.

compute_rental_amounts() is the only entry point mutation paths may use.
Overpayment clamps to zero: there is no customer credit.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, NamedTuple

CHARGE_ADDON_FIELDS = (
    "km_diff_cents",
    "cleaning_cents",
    "hgs_cents",
    "damage_cents",
    "fuel_cents",
)

MANUAL_SLOT_FIELDS = (
    "upfront_cents",
    "pay1_cents",
    "pay2_cents",
    "pay3_cents",
    "pay4_cents",
)


class InvalidDateRange(ValueError):
    """Raised when a day count is requested for something that is not a date range."""
    pass


@dataclass(frozen=True)
class RentalCharge:
    days: int
    daily_price_cents: int
    km_diff_cents: int = 0
    cleaning_cents: int = 0
    hgs_cents: int = 0
    damage_cents: int = 0
    fuel_cents: int = 0

    @classmethod
    def from_rental(cls, obj) -> "RentalCharge":
        """Build from a Rental row or a mapping; missing add-ons count as 0."""
        return cls(
            days=_field(obj, "days"),
            daily_price_cents=_field(obj, "daily_price_cents"),
            **{name: _field(obj, name) for name in CHARGE_ADDON_FIELDS},
        )


@dataclass(frozen=True)
class ManualPaymentSlots:
    upfront_cents: int = 0
    pay1_cents: int = 0
    pay2_cents: int = 0
    pay3_cents: int = 0
    pay4_cents: int = 0

    @classmethod
    def from_rental(cls, obj) -> "ManualPaymentSlots":
        return cls(**{name: _field(obj, name) for name in MANUAL_SLOT_FIELDS})

    @property
    def total(self) -> int:
        return sum(getattr(self, name) for name in MANUAL_SLOT_FIELDS)


class RentalAmounts(NamedTuple):
    total_due: int
    balance: int


def _field(obj, name: str) -> int:
    if isinstance(obj, dict):
        value = obj.get(name)
    else:
        value = getattr(obj, name, None)
    return int(value or 0)


def _payment_amount(payment) -> int:
    if isinstance(payment, int):
        return payment
    return _field(payment, "amount_cents")


def compute_total_due(charge: RentalCharge) -> int:
    return (
        charge.days * charge.daily_price_cents
        + charge.km_diff_cents
        + charge.cleaning_cents
        + charge.hgs_cents
        + charge.damage_cents
        + charge.fuel_cents
    )


def compute_balance(
    total_due: int,
    manual_slots: ManualPaymentSlots,
    ledger_payments: Iterable = (),
) -> int:
    """
    Amount still owed, never below zero.

    ledger_payments may hold Payment rows, mappings with amount_cents, or
    bare integers.
    """
    ledger_paid = sum(_payment_amount(p) for p in ledger_payments)
    return max(0, total_due - manual_slots.total - ledger_paid)


def compute_rental_amounts(
    charge: RentalCharge,
    manual_slots: ManualPaymentSlots,
    ledger_payments: Iterable = (),
) -> RentalAmounts:
    total_due = compute_total_due(charge)
    return RentalAmounts(
        total_due=total_due,
        balance=compute_balance(total_due, manual_slots, ledger_payments),
    )


def days_between(start, end, *, strict: bool = False) -> int:
    """
    Inclusive number of calendar days from start to end, minimum 1.

    Time-of-day is discarded. An inverted range (end before start) clamps to
    1 unless strict is set, in which case it raises InvalidDateRange.
    """
    start_day = _as_date(start, "start")
    end_day = _as_date(end, "end")

    diff = (end_day - start_day).days + 1
    if strict and end_day < start_day:
        raise InvalidDateRange(
            f"end date {end_day.isoformat()} is before start date {start_day.isoformat()}"
        )
    return max(1, diff)


def _as_date(value, label: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise InvalidDateRange(f"{label} is not a valid date: {value!r}")

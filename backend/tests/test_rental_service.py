"""
Rental service tests.

Verifies:
- Creation computes total_due/balance and rents the vehicle
- Every edit reconciles the stored balance in the same commit
- ACTIVE -> RETURNED / COMPLETED / CANCELLED transitions
- Soft-deleted rentals are frozen and leave the debtor list
- On-demand reconciliation repairs drifted balances
"""

from datetime import date

import pytest

from app.extensions import db
from app.models import Rental, Vehicle, Customer
from app.services import rental_service
from app.services.rental_calc import InvalidDateRange
from app.services.rental_service import (
    NotActive,
    RentalDeleted,
    RentalNotFound,
    VehicleUnavailable,
)
from app.services.vehicle_service import VehicleNotFound
from app.validation import NotFoundError, ValidationError

from conftest import scenario_patch


# =============================================================================
# CREATION
# =============================================================================


class TestCreateRental:

    def test_creation_scenario(self, rental, vehicle):
        assert rental.total_due_cents == 124000
        assert rental.balance_cents == 74000
        assert rental.status == "ACTIVE"
        assert rental.rental_type == "NEW"
        assert rental.deleted is False
        assert db.session.get(Vehicle, vehicle.id).status == "RENTED"

    def test_days_derived_from_dates(self, db_session, vehicle, customer):
        patch = scenario_patch(vehicle.id, customer.id)
        del patch["days"]
        created = rental_service.create_rental(patch=patch)
        assert created.days == 8
        assert created.total_due_cents == 124000

    def test_inverted_dates_clamp_to_one_day(self, db_session, vehicle, customer):
        patch = scenario_patch(vehicle.id, customer.id, start_date=date(2024, 5, 8), end_date=date(2024, 5, 1))
        del patch["days"]
        created = rental_service.create_rental(patch=patch)
        assert created.days == 1

    def test_inverted_dates_rejected_in_strict_mode(self, app, db_session, vehicle, customer, monkeypatch):
        monkeypatch.setitem(app.config, "RENTAL_STRICT_DATE_RANGE", True)
        patch = scenario_patch(vehicle.id, customer.id, start_date=date(2024, 5, 8), end_date=date(2024, 5, 1))
        del patch["days"]

        with pytest.raises(InvalidDateRange):
            rental_service.create_rental(patch=patch)

        assert db_session.query(Rental).count() == 0
        assert db_session.get(Vehicle, vehicle.id).status == "IDLE"

    def test_customer_created_by_name(self, db_session, vehicle):
        patch = scenario_patch(vehicle.id, None)
        del patch["customer_id"]
        created = rental_service.create_rental(patch=patch, customer_name="  Mehmet Kaya ", customer_phone="0555")
        assert created.customer.full_name == "Mehmet Kaya"
        assert created.customer.phone == "0555"

    def test_customer_reused_by_name(self, db_session, vehicle, second_vehicle, customer):
        for v in (vehicle, second_vehicle):
            patch = scenario_patch(v.id, None)
            del patch["customer_id"]
            rental_service.create_rental(patch=patch, customer_name=customer.full_name)
        assert db_session.query(Customer).count() == 1

    def test_customer_required(self, db_session, vehicle):
        patch = scenario_patch(vehicle.id, None)
        del patch["customer_id"]
        with pytest.raises(ValidationError):
            rental_service.create_rental(patch=patch)

    def test_unknown_customer(self, db_session, vehicle):
        with pytest.raises(NotFoundError):
            rental_service.create_rental(patch=scenario_patch(vehicle.id, 999999))

    def test_unknown_vehicle(self, db_session, customer):
        with pytest.raises(VehicleNotFound):
            rental_service.create_rental(patch=scenario_patch(999999, customer.id))

    def test_inactive_vehicle(self, db_session, vehicle, customer):
        vehicle.active = False
        db_session.commit()
        with pytest.raises(VehicleUnavailable):
            rental_service.create_rental(patch=scenario_patch(vehicle.id, customer.id))


# =============================================================================
# EDITS
# =============================================================================


class TestUpdateRental:

    def test_charge_edit_reconciles(self, rental):
        updated = rental_service.update_rental(rental_id=rental.id, patch={"daily_price_cents": 20000})
        assert updated.total_due_cents == 164000
        assert updated.balance_cents == 114000

    def test_manual_slot_edit_reconciles(self, rental):
        updated = rental_service.update_rental(rental_id=rental.id, patch={"pay1_cents": 70000, "pay2_cents": 4000})
        assert updated.balance_cents == 0

    def test_manual_overpayment_clamps(self, rental):
        updated = rental_service.update_rental(rental_id=rental.id, patch={"pay4_cents": 100000})
        assert updated.total_due_cents == 124000
        assert updated.balance_cents == 0

    def test_date_edit_recomputes_days(self, rental):
        updated = rental_service.update_rental(rental_id=rental.id, patch={"end_date": date(2024, 5, 10)})
        assert updated.days == 10
        assert updated.total_due_cents == 10 * 15000 + 4000

    def test_explicit_days_win_over_dates(self, rental):
        updated = rental_service.update_rental(
            rental_id=rental.id, patch={"end_date": date(2024, 5, 10), "days": 3}
        )
        assert updated.days == 3

    def test_vehicle_change_moves_status(self, db_session, rental, vehicle, second_vehicle):
        rental_service.update_rental(rental_id=rental.id, patch={"vehicle_id": second_vehicle.id})
        assert db_session.get(Vehicle, vehicle.id).status == "IDLE"
        assert db_session.get(Vehicle, second_vehicle.id).status == "RENTED"

    def test_missing_rental(self, db_session):
        with pytest.raises(RentalNotFound):
            rental_service.update_rental(rental_id=999999, patch={"note": "x"})


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================


class TestTransitions:

    def test_return(self, db_session, rental, vehicle):
        returned = rental_service.return_rental(rental.id)
        assert returned.status == "RETURNED"
        assert returned.returned_at is not None
        assert returned.balance_cents == 74000
        assert db_session.get(Vehicle, vehicle.id).status == "IDLE"

    def test_complete_preserves_balance(self, db_session, rental, vehicle):
        completed = rental_service.complete_rental(rental.id)
        assert completed.status == "COMPLETED"
        assert completed.completed_at is not None
        assert completed.balance_cents == 74000
        assert db_session.get(Vehicle, vehicle.id).status == "IDLE"

    def test_cancel(self, db_session, rental, vehicle):
        cancelled = rental_service.cancel_rental(rental.id)
        assert cancelled.status == "CANCELLED"
        assert db_session.get(Vehicle, vehicle.id).status == "IDLE"

    @pytest.mark.parametrize("first", ["return_rental", "complete_rental", "cancel_rental"])
    @pytest.mark.parametrize("second", ["return_rental", "complete_rental", "cancel_rental"])
    def test_only_active_rentals_transition(self, rental, first, second):
        getattr(rental_service, first)(rental.id)
        with pytest.raises(NotActive):
            getattr(rental_service, second)(rental.id)

    def test_transition_reconciles_drift(self, db_session, rental):
        rental.balance_cents = 1
        db_session.commit()
        returned = rental_service.return_rental(rental.id)
        assert returned.balance_cents == 74000


# =============================================================================
# SOFT DELETE
# =============================================================================


class TestSoftDelete:

    def test_delete_frees_vehicle(self, db_session, rental, vehicle):
        deleted = rental_service.delete_rental(rental.id)
        assert deleted.deleted is True
        assert deleted.deleted_at is not None
        assert deleted.status == "ACTIVE"
        assert db_session.get(Vehicle, vehicle.id).status == "IDLE"

    def test_delete_after_return_keeps_vehicle_status(self, db_session, rental, vehicle, customer):
        rental_service.return_rental(rental.id)
        # vehicle goes out again on a new rental before the old one is archived
        rental_service.create_rental(patch=scenario_patch(vehicle.id, customer.id))
        rental_service.delete_rental(rental.id)
        assert db_session.get(Vehicle, vehicle.id).status == "RENTED"

    def test_deleted_rental_is_hidden(self, rental):
        rental_service.delete_rental(rental.id)
        with pytest.raises(RentalNotFound):
            rental_service.get_rental(rental.id)
        assert rental_service.list_rentals()["count"] == 0
        assert rental_service.list_debtors() == []

    def test_double_delete_is_not_found(self, rental):
        rental_service.delete_rental(rental.id)
        with pytest.raises(RentalNotFound):
            rental_service.delete_rental(rental.id)

    def test_deleted_rental_is_frozen(self, rental):
        rental_service.delete_rental(rental.id)
        with pytest.raises(RentalDeleted):
            rental_service.update_rental(rental_id=rental.id, patch={"pay1_cents": 1000})
        with pytest.raises(RentalDeleted):
            rental_service.return_rental(rental.id)
        with pytest.raises(RentalDeleted):
            rental_service.reconcile_rental_by_id(rental.id)

    def test_reconcile_rejects_deleted_rental_directly(self, db_session, rental):
        rental_service.delete_rental(rental.id)
        with pytest.raises(RentalDeleted):
            rental_service.reconcile_rental(db_session.get(Rental, rental.id))


# =============================================================================
# RECONCILIATION
# =============================================================================


class TestReconcile:

    def test_idempotent(self, rental):
        first = rental_service.reconcile_rental_by_id(rental.id)
        second = rental_service.reconcile_rental_by_id(rental.id)
        assert first["after"] == second["after"] == {"total_due_cents": 124000, "balance_cents": 74000}
        assert second["changed"] is False

    def test_repairs_drift(self, db_session, rental):
        rental.total_due_cents = 0
        rental.balance_cents = 7400000
        db_session.commit()

        result = rental_service.reconcile_rental_by_id(rental.id)
        assert result["changed"] is True
        assert result["before"] == {"total_due_cents": 0, "balance_cents": 7400000}
        assert db_session.get(Rental, rental.id).balance_cents == 74000

    def test_dry_run_does_not_write(self, db_session, rental):
        rental.balance_cents = 1
        db_session.commit()

        result = rental_service.reconcile_rental_by_id(rental.id, dry_run=True)
        assert result["changed"] is True
        assert result["after"]["balance_cents"] == 74000

        db_session.expire_all()
        assert db_session.get(Rental, rental.id).balance_cents == 1

    def test_reconcile_all_reports_only_changes(self, db_session, rental, second_vehicle, customer):
        other = rental_service.create_rental(patch=scenario_patch(second_vehicle.id, customer.id))
        other.balance_cents = 5
        db_session.commit()

        changed = rental_service.reconcile_all_rentals()
        assert [r["rental_id"] for r in changed] == [other.id]


# =============================================================================
# READS
# =============================================================================


class TestListRentals:

    @pytest.fixture
    def two_rentals(self, db_session, vehicle, second_vehicle, customer):
        first = rental_service.create_rental(patch=scenario_patch(vehicle.id, customer.id))
        second = rental_service.create_rental(
            patch=scenario_patch(
                second_vehicle.id, None,
                start_date=date(2024, 6, 1), end_date=date(2024, 6, 2), days=2, upfront_cents=0,
            ),
            customer_name="Zeynep Demir",
        )
        return first, second

    def test_newest_first(self, two_rentals):
        first, second = two_rentals
        ids = [r["id"] for r in rental_service.list_rentals()["items"]]
        assert ids == [second.id, first.id]

    def test_search_matches_plate_or_name(self, two_rentals):
        first, second = two_rentals
        assert [r["id"] for r in rental_service.list_rentals(search="abc")["items"]] == [first.id]
        assert [r["id"] for r in rental_service.list_rentals(search="zeynep")["items"]] == [second.id]

    def test_plate_and_customer_filters(self, two_rentals):
        first, second = two_rentals
        assert rental_service.list_rentals(plate="06 XYZ")["items"][0]["id"] == second.id
        assert rental_service.list_rentals(customer="Ayse")["items"][0]["id"] == first.id

    def test_date_window(self, two_rentals):
        first, second = two_rentals
        result = rental_service.list_rentals(date_from=date(2024, 5, 5), date_to=date(2024, 5, 20))
        assert [r["id"] for r in result["items"]] == [first.id]

    def test_status_filter(self, two_rentals):
        first, second = two_rentals
        rental_service.return_rental(first.id)
        result = rental_service.list_rentals(status="RETURNED")
        assert [r["id"] for r in result["items"]] == [first.id]

    def test_unknown_status(self, db_session):
        with pytest.raises(ValidationError):
            rental_service.list_rentals(status="LOST")

    def test_pagination(self, two_rentals):
        result = rental_service.list_rentals(page=2, per_page=1)
        assert result["count"] == 1
        assert result["pagination"] == {
            "page": 2,
            "per_page": 1,
            "total": 2,
            "total_pages": 2,
            "has_next": False,
            "has_prev": True,
        }

    def test_debtors_largest_first(self, two_rentals):
        first, second = two_rentals
        debtors = rental_service.list_debtors()
        # second: 2 * 15000 + 4000 with nothing paid
        assert [(r.id, r.balance_cents) for r in debtors] == [(first.id, 74000), (second.id, 34000)]

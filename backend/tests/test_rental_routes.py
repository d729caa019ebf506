"""
Rental and payment API tests through the Flask test client.
"""

import pytest

from app.models import Vehicle


@pytest.fixture
def rental_payload(vehicle, customer):
    return {
        "vehicle_id": vehicle.id,
        "customer_id": customer.id,
        "start_date": "2024-05-01",
        "end_date": "2024-05-08",
        "daily_price": "150,00",
        "km_diff": "25",
        "cleaning_cents": 1000,
        "hgs": "₺5,00",
        "upfront": "500,00",
    }


@pytest.fixture
def created(client, rental_payload):
    resp = client.post("/api/rentals", json=rental_payload)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


# =============================================================================
# CREATE / READ / EDIT
# =============================================================================


class TestRentalCrud:

    def test_create_with_decimal_money(self, created):
        assert created["days"] == 8
        assert created["daily_price_cents"] == 15000
        assert created["km_diff_cents"] == 2500
        assert created["hgs_cents"] == 500
        assert created["upfront_cents"] == 50000
        assert created["total_due_cents"] == 124000
        assert created["balance_cents"] == 74000
        assert created["total_due_display"] == "₺1.240,00"
        assert created["balance_display"] == "₺740,00"
        assert created["plate"] == "34 ABC 123"
        assert created["customer_name"] == "Ayse Yilmaz"

    def test_create_with_customer_name(self, client, rental_payload):
        rental_payload.pop("customer_id")
        rental_payload["customer_name"] = "Can Ozturk"
        resp = client.post("/api/rentals", json=rental_payload)
        assert resp.status_code == 201
        assert resp.get_json()["customer_name"] == "Can Ozturk"

    def test_both_money_forms_rejected(self, client, rental_payload):
        rental_payload["daily_price_cents"] = 15000
        resp = client.post("/api/rentals", json=rental_payload)
        assert resp.status_code == 400
        assert "daily_price" in resp.get_json()["error"]

    @pytest.mark.parametrize(
        "field,value",
        [
            ("daily_price", "abc"),
            ("daily_price_cents", 150.5),
            ("daily_price_cents", 0),
            ("upfront_cents", -1),
            ("days", 0),
            ("days", 10**12),
            ("daily_price", "1e30"),
            ("daily_price", "100000000000000000000000000000"),
            ("start_date", "01/05/2024"),
            ("rental_type", "LEASE"),
            ("status", "COMPLETED"),
        ],
    )
    def test_invalid_input(self, client, rental_payload, field, value):
        if field.endswith("_cents"):
            rental_payload.pop(field[: -len("_cents")], None)
        rental_payload[field] = value
        resp = client.post("/api/rentals", json=rental_payload)
        assert resp.status_code == 400

    def test_days_derived_from_overlong_range_rejected(self, client, rental_payload):
        rental_payload["start_date"] = "1900-01-01"
        rental_payload["end_date"] = "2024-05-08"
        resp = client.post("/api/rentals", json=rental_payload)
        assert resp.status_code == 400
        assert "days" in resp.get_json()["error"]

    def test_missing_required_fields(self, client):
        resp = client.post("/api/rentals", json={"vehicle_id": 1})
        assert resp.status_code == 400
        assert "Missing required fields" in resp.get_json()["error"]

    def test_unknown_vehicle(self, client, rental_payload):
        rental_payload["vehicle_id"] = 999999
        resp = client.post("/api/rentals", json=rental_payload)
        assert resp.status_code == 404

    def test_inactive_vehicle(self, client, db_session, vehicle, rental_payload):
        vehicle.active = False
        db_session.commit()
        resp = client.post("/api/rentals", json=rental_payload)
        assert resp.status_code == 409

    def test_get_includes_payments(self, client, created):
        client.post(f"/api/rentals/{created['id']}/payments", json={"amount_cents": 1000})
        body = client.get(f"/api/rentals/{created['id']}").get_json()
        assert body["balance_cents"] == 73000
        assert [p["amount_cents"] for p in body["payments"]] == [1000]

    def test_get_missing(self, client, db_session):
        assert client.get("/api/rentals/999999").status_code == 404

    def test_edit_reconciles(self, client, created):
        resp = client.put(f"/api/rentals/{created['id']}", json={"pay1": "740,00"})
        assert resp.status_code == 200
        assert resp.get_json()["balance_cents"] == 0

    def test_edit_rejects_unknown_field(self, client, created):
        resp = client.put(f"/api/rentals/{created['id']}", json={"balance_cents": 0})
        assert resp.status_code == 400

    def test_list_and_filters(self, client, created):
        body = client.get("/api/rentals").get_json()
        assert body["count"] == 1
        assert client.get("/api/rentals?plate=ABC").get_json()["count"] == 1
        assert client.get("/api/rentals?customer=nobody").get_json()["count"] == 0
        assert client.get("/api/rentals?from=2024-06-01").get_json()["count"] == 0
        assert client.get("/api/rentals?status=ACTIVE").get_json()["count"] == 1

    def test_list_pagination(self, client, created):
        body = client.get("/api/rentals?page=1&per_page=10").get_json()
        assert body["pagination"]["total"] == 1
        assert body["pagination"]["has_next"] is False

    def test_list_bad_filters(self, client, db_session):
        assert client.get("/api/rentals?status=LOST").status_code == 400
        assert client.get("/api/rentals?from=not-a-date").status_code == 400


# =============================================================================
# TRANSITIONS / DELETE
# =============================================================================


class TestRentalLifecycle:

    @pytest.mark.parametrize(
        "action,status",
        [("return", "RETURNED"), ("complete", "COMPLETED"), ("cancel", "CANCELLED")],
    )
    def test_transition(self, client, db_session, created, vehicle, action, status):
        resp = client.post(f"/api/rentals/{created['id']}/{action}")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == status
        assert resp.get_json()["balance_cents"] == 74000
        db_session.expire_all()
        assert db_session.get(Vehicle, vehicle.id).status == "IDLE"

        again = client.post(f"/api/rentals/{created['id']}/{action}")
        assert again.status_code == 409

    def test_transition_missing(self, client, db_session):
        assert client.post("/api/rentals/999999/return").status_code == 404

    def test_soft_delete(self, client, created):
        resp = client.delete(f"/api/rentals/{created['id']}")
        assert resp.status_code == 200
        assert resp.get_json() == {"id": created["id"], "deleted": True}

        assert client.get(f"/api/rentals/{created['id']}").status_code == 404
        assert client.delete(f"/api/rentals/{created['id']}").status_code == 404
        assert client.put(f"/api/rentals/{created['id']}", json={"note": "x"}).status_code == 409
        assert client.post(f"/api/rentals/{created['id']}/payments", json={"amount_cents": 100}).status_code == 409
        assert client.get("/api/rentals/debtors").get_json()["count"] == 0

    def test_reconcile_endpoint(self, client, created):
        body = client.post(f"/api/rentals/{created['id']}/reconcile?dry_run=true").get_json()
        assert body["dry_run"] is True
        assert body["changed"] is False
        assert body["after"]["balance_cents"] == 74000

    def test_debtors(self, client, created):
        body = client.get("/api/rentals/debtors").get_json()
        assert body["count"] == 1
        assert body["total_balance_cents"] == 74000


# =============================================================================
# PAYMENTS
# =============================================================================


class TestRentalPayments:

    def test_add_payment_scenario(self, client, created):
        resp = client.post(
            f"/api/rentals/{created['id']}/payments",
            json={"amount": "740,00", "method": "TRANSFER", "paid_at": "2024-05-03T10:00:00Z"},
        )
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["payment"]["amount_cents"] == 74000
        assert body["payment"]["method"] == "TRANSFER"
        assert body["payment"]["paid_at"] == "2024-05-03T10:00:00Z"
        assert body["rental"]["balance_cents"] == 0

        over = client.post(f"/api/rentals/{created['id']}/payments", json={"amount_cents": 5000})
        assert over.get_json()["rental"]["balance_cents"] == 0

        listing = client.get(f"/api/rentals/{created['id']}/payments").get_json()
        assert listing["paid_cents"] == 79000
        assert listing["balance_cents"] == 0

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"amount_cents": 0},
            {"amount_cents": -100},
            {"amount": "lots"},
            {"amount": "1e30"},
            {"amount": 1e30},
            {"amount_cents": 100, "method": "CHEQUE"},
            {"amount_cents": 100, "rental_id": 5},
        ],
    )
    def test_add_payment_invalid(self, client, created, payload):
        resp = client.post(f"/api/rentals/{created['id']}/payments", json=payload)
        assert resp.status_code == 400

    def test_add_payment_missing_rental(self, client, db_session):
        resp = client.post("/api/rentals/999999/payments", json={"amount_cents": 100})
        assert resp.status_code == 404

    def test_edit_and_delete_payment(self, client, created):
        payment = client.post(
            f"/api/rentals/{created['id']}/payments", json={"amount_cents": 74000}
        ).get_json()["payment"]

        edited = client.patch(f"/api/payments/{payment['id']}", json={"amount": "100,00"})
        assert edited.status_code == 200
        assert edited.get_json()["rental"]["balance_cents"] == 64000

        deleted = client.delete(f"/api/payments/{payment['id']}")
        assert deleted.status_code == 200
        assert deleted.get_json()["rental"]["balance_cents"] == 74000

        assert client.get(f"/api/payments/{payment['id']}").status_code == 404
        assert client.delete(f"/api/payments/{payment['id']}").status_code == 404

    def test_edit_payment_invalid(self, client, created):
        payment = client.post(
            f"/api/rentals/{created['id']}/payments", json={"amount_cents": 1000}
        ).get_json()["payment"]
        assert client.patch(f"/api/payments/{payment['id']}", json={"amount_cents": 0}).status_code == 400
        assert client.patch(f"/api/payments/{payment['id']}", json={"paid_at": "yesterday"}).status_code == 400

    def test_payment_of_deleted_rental_is_frozen(self, client, created):
        payment = client.post(
            f"/api/rentals/{created['id']}/payments", json={"amount_cents": 1000}
        ).get_json()["payment"]
        client.delete(f"/api/rentals/{created['id']}")

        assert client.patch(f"/api/payments/{payment['id']}", json={"amount_cents": 5}).status_code == 409
        assert client.delete(f"/api/payments/{payment['id']}").status_code == 409

    def test_list_payments(self, client, created):
        client.post(f"/api/rentals/{created['id']}/payments", json={"amount_cents": 1000, "method": "CARD"})
        client.post(f"/api/rentals/{created['id']}/payments", json={"amount_cents": 2000})

        body = client.get(f"/api/payments?rental_id={created['id']}").get_json()
        assert body["count"] == 2
        assert body["total_cents"] == 3000
        assert client.get("/api/payments?method=CARD").get_json()["count"] == 1
        assert client.get("/api/payments?method=GOLD").status_code == 400

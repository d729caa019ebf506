"""
Vehicle and customer API tests.
"""

import pytest

from app.services import rental_service

from conftest import scenario_patch


class TestVehicles:

    def test_create_normalizes_plate(self, client, db_session):
        resp = client.post("/api/vehicles", json={"plate": " 34  abc 123 ", "name": "Egea"})
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["plate"] == "34 ABC 123"
        assert body["status"] == "IDLE"
        assert body["active"] is True

    def test_duplicate_plate(self, client, vehicle):
        resp = client.post("/api/vehicles", json={"plate": "34 abc 123"})
        assert resp.status_code == 409

    @pytest.mark.parametrize(
        "payload",
        [{}, {"plate": ""}, {"plate": "X" * 40}, {"plate": "34 A 1", "status": "FLYING"}, {"plate": "34 A 1", "active": "yes"}],
    )
    def test_create_invalid(self, client, db_session, payload):
        assert client.post("/api/vehicles", json=payload).status_code == 400

    def test_list_filters_by_status(self, client, vehicle, second_vehicle):
        client.put(f"/api/vehicles/{second_vehicle.id}", json={"status": "SERVICE"})
        body = client.get("/api/vehicles?status=SERVICE").get_json()
        assert [v["plate"] for v in body["items"]] == ["06 XYZ 987"]
        assert client.get("/api/vehicles").get_json()["count"] == 2
        assert client.get("/api/vehicles?status=GONE").status_code == 400

    def test_update(self, client, vehicle, second_vehicle):
        resp = client.put(f"/api/vehicles/{vehicle.id}", json={"name": "Fiat Egea Cross"})
        assert resp.status_code == 200
        assert resp.get_json()["name"] == "Fiat Egea Cross"

        clash = client.put(f"/api/vehicles/{vehicle.id}", json={"plate": "06 xyz 987"})
        assert clash.status_code == 409

        assert client.put("/api/vehicles/999999", json={"name": "x"}).status_code == 404

    def test_delete_idle_vehicle(self, client, vehicle):
        assert client.delete(f"/api/vehicles/{vehicle.id}").status_code == 204
        assert client.get(f"/api/vehicles/{vehicle.id}").status_code == 404

    def test_delete_rented_vehicle_conflicts(self, client, rental, vehicle):
        assert client.delete(f"/api/vehicles/{vehicle.id}").status_code == 409

    def test_delete_vehicle_with_rental_history_conflicts(self, client, rental, vehicle):
        rental_service.return_rental(rental.id)
        rental_service.delete_rental(rental.id)
        assert client.delete(f"/api/vehicles/{vehicle.id}").status_code == 409


class TestCustomers:

    def test_crud(self, client, db_session):
        created = client.post("/api/customers", json={"full_name": "Ali Veli", "phone": "0532"})
        assert created.status_code == 201
        customer_id = created.get_json()["id"]

        updated = client.put(f"/api/customers/{customer_id}", json={"phone": "0533"})
        assert updated.get_json()["phone"] == "0533"

        assert client.get(f"/api/customers/{customer_id}").get_json()["full_name"] == "Ali Veli"
        assert client.delete(f"/api/customers/{customer_id}").status_code == 204
        assert client.get(f"/api/customers/{customer_id}").status_code == 404

    def test_full_name_required(self, client, db_session):
        assert client.post("/api/customers", json={"phone": "0532"}).status_code == 400
        assert client.post("/api/customers", json={"full_name": "   "}).status_code == 400

    def test_search(self, client, customer):
        client.post("/api/customers", json={"full_name": "Burak Sahin", "phone": "0544"})
        body = client.get("/api/customers?search=ayse").get_json()
        assert [c["full_name"] for c in body["items"]] == ["Ayse Yilmaz"]
        assert client.get("/api/customers?search=0544").get_json()["count"] == 1
        assert client.get("/api/customers?limit=1").get_json()["count"] == 1

    def test_delete_with_rentals_conflicts(self, client, db_session, vehicle, customer):
        rental_service.create_rental(patch=scenario_patch(vehicle.id, customer.id))
        assert client.delete(f"/api/customers/{customer.id}").status_code == 409

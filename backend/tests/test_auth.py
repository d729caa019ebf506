"""
HTTP Basic auth tests.

Verifies:
- API is open when no credentials are configured
- With credentials configured, /api/* returns 401 without valid Basic auth
- /health stays open for probes
"""

import base64

import bcrypt
import pytest

from app.services.auth_service import (
    PasswordValidationError,
    check_credentials,
    hash_password,
    verify_password,
)


PASSWORD = "correct horse"


def basic(username: str, password: str) -> dict:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return {"Authorization": f"Basic {token}"}


@pytest.fixture
def auth_on(app, monkeypatch):
    password_hash = bcrypt.hashpw(PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")
    monkeypatch.setitem(app.config, "BASIC_AUTH_USERNAME", "operator")
    monkeypatch.setitem(app.config, "BASIC_AUTH_PASSWORD_HASH", password_hash)


class TestAuthDisabled:

    def test_api_open_without_config(self, client):
        assert client.get("/api/vehicles").status_code == 200


class TestAuthEnabled:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/vehicles"),
            ("GET", "/api/customers"),
            ("GET", "/api/rentals"),
            ("POST", "/api/rentals"),
            ("GET", "/api/rentals/debtors"),
            ("GET", "/api/payments"),
            ("GET", "/api/reservations"),
            ("GET", "/api/vehicle-expenses"),
            ("POST", "/api/consignments"),
        ],
    )
    def test_requires_auth(self, client, auth_on, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.headers["WWW-Authenticate"].startswith("Basic")

    def test_wrong_password(self, client, auth_on):
        assert client.get("/api/vehicles", headers=basic("operator", "nope")).status_code == 401

    def test_wrong_username(self, client, auth_on):
        assert client.get("/api/vehicles", headers=basic("admin", PASSWORD)).status_code == 401

    def test_bearer_token_rejected(self, client, auth_on):
        resp = client.get("/api/vehicles", headers={"Authorization": "Bearer abc"})
        assert resp.status_code == 401

    def test_valid_credentials(self, client, auth_on):
        assert client.get("/api/vehicles", headers=basic("operator", PASSWORD)).status_code == 200

    def test_health_is_public(self, client, auth_on):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["checks"]["database"]["status"] == "healthy"


class TestPasswordHashing:

    def test_hash_round_trip(self):
        hashed = hash_password("long enough")
        assert verify_password("long enough", hashed)
        assert not verify_password("something else", hashed)

    @pytest.mark.parametrize("password", ["short", " padded-password "])
    def test_weak_password_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            hash_password(password)

    def test_malformed_hash(self):
        assert verify_password("whatever", "not-a-bcrypt-hash") is False

    def test_check_credentials(self):
        hashed = bcrypt.hashpw(b"pw-123456", bcrypt.gensalt(rounds=4)).decode("utf-8")
        assert check_credentials("op", "pw-123456", expected_username="op", password_hash=hashed)
        assert not check_credentials("OP", "pw-123456", expected_username="op", password_hash=hashed)

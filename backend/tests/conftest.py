"""
Pytest fixtures for rental back-office tests.

Provides test database setup, seeded fleet/customer rows, and test client.
"""

from datetime import date

import pytest
from app import create_app
from app.extensions import db
from app.models import Vehicle, Customer
from app.services import rental_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BASIC_AUTH_USERNAME': None,
        'BASIC_AUTH_PASSWORD_HASH': None,
        'RENTAL_STRICT_DATE_RANGE': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def vehicle(db_session):
    v = Vehicle(plate="34 ABC 123", name="Fiat Egea", status="IDLE", active=True)
    db_session.add(v)
    db_session.commit()
    return v


@pytest.fixture(scope='function')
def second_vehicle(db_session):
    v = Vehicle(plate="06 XYZ 987", name="Renault Clio", status="IDLE", active=True)
    db_session.add(v)
    db_session.commit()
    return v


@pytest.fixture(scope='function')
def customer(db_session):
    c = Customer(full_name="Ayse Yilmaz", phone="05321234567")
    db_session.add(c)
    db_session.commit()
    return c


def scenario_patch(vehicle_id: int, customer_id: int, **overrides) -> dict:
    """8 days at 150.00 + km 25.00 + cleaning 10.00 + HGS 5.00, 500.00 paid upfront."""
    patch = {
        "vehicle_id": vehicle_id,
        "customer_id": customer_id,
        "start_date": date(2024, 5, 1),
        "end_date": date(2024, 5, 8),
        "days": 8,
        "daily_price_cents": 15000,
        "km_diff_cents": 2500,
        "cleaning_cents": 1000,
        "hgs_cents": 500,
        "upfront_cents": 50000,
    }
    patch.update(overrides)
    return patch


@pytest.fixture(scope='function')
def rental(db_session, vehicle, customer):
    """The reference rental: total_due 124000, balance 74000."""
    return rental_service.create_rental(patch=scenario_patch(vehicle.id, customer.id))

"""
Pytest fixtures for rental backend tests.

Provides test database setup, catalog/booking factories, and test client.
"""

from datetime import datetime

import pytest
from rentals import create_app
from rentals.extensions import db
from rentals.models import Equipment, Package, AddOn, Customer, Booking, BookingItem
from rentals.models.bookings import BOOKING_STATUS_CONFIRMED


ADMIN_HEADERS = {"X-Actor-Id": "admin@sonicrentals.test"}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'STORE_RETRY_ATTEMPTS': 2,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def admin_headers():
    return dict(ADMIN_HEADERS)


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_equipment(db_session):
    """Factory: create and commit an Equipment row."""
    def _make(name="JBL 15\" EON Speaker", quantity=1, status="Active", category="Speaker", day_rate_cents=3500):
        equipment = Equipment(
            name=name,
            category=category,
            quantity=quantity,
            status=status,
            day_rate_cents=day_rate_cents,
        )
        db_session.add(equipment)
        db_session.commit()
        return equipment
    return _make


@pytest.fixture(scope='function')
def make_package(db_session):
    """Factory: create and commit a Package; key_equipment takes Equipment or ids."""
    def _make(key_equipment, name="Toast & Tunes", base_price_cents=15000):
        ids = [e.id if isinstance(e, Equipment) else e for e in key_equipment]
        package = Package(name=name, base_price_cents=base_price_cents, key_equipment=ids)
        db_session.add(package)
        db_session.commit()
        return package
    return _make


@pytest.fixture(scope='function')
def make_add_on(db_session):
    def _make(name="Speaker Stands", price_cents=2000):
        add_on = AddOn(name=name, category="Technical", price_cents=price_cents)
        db_session.add(add_on)
        db_session.commit()
        return add_on
    return _make


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Dana Reyes", email="dana@example.com", phone="555-0100")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def make_booking(db_session, customer):
    """
    Factory: insert a booking directly in any status.

    equipment is a list of Equipment or (Equipment, quantity) pairs.
    """
    def _make(
        pickup,
        return_,
        equipment=(),
        status=BOOKING_STATUS_CONFIRMED,
        package=None,
        add_ons=(),
        deposit_cents=10000,
    ):
        booking = Booking(
            customer_id=customer.id,
            package_id=package.id if package is not None else None,
            pickup_date=_as_datetime(pickup),
            return_date=_as_datetime(return_),
            total_price_cents=25000,
            deposit_cents=deposit_cents,
            status=status,
        )
        for entry in equipment:
            item, quantity = entry if isinstance(entry, tuple) else (entry, 1)
            booking.items.append(BookingItem(equipment_id=item.id, quantity=quantity))
        for add_on in add_ons:
            booking.items.append(BookingItem(add_on_id=add_on.id, quantity=1))
        db_session.add(booking)
        db_session.commit()
        return booking
    return _make


def _as_datetime(value):
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)

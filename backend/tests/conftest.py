"""
Pytest fixtures for the QR Display inventory core.

Provides the test database, two tenants with one store each, a retail
product with an opened stock record, staff and customer fixtures.
"""

import pytest

from qrdisplay import create_app
from qrdisplay.config import TestConfig
from qrdisplay.extensions import db
from qrdisplay.services import ledger_service, points_service
from qrdisplay.services.customer_service import create_customer
from qrdisplay.services.notification_service import EXTENSION_KEY, LoggingDispatcher
from qrdisplay.services.store_service import create_organization, create_product, create_store


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig, notification_dispatcher=LoggingDispatcher())

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


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
def dispatcher(app):
    """The app's logging dispatcher, emptied for this test."""
    logging_dispatcher = app.extensions[EXTENSION_KEY]
    logging_dispatcher.sent.clear()
    return logging_dispatcher


@pytest.fixture(scope='function')
def org(db_session):
    """Brand organization A."""
    return create_organization(org_code="ACME", name="Acme Vapor Co")


@pytest.fixture(scope='function')
def other_org(db_session):
    """Brand organization B (second tenant)."""
    return create_organization(org_code="BETA", name="Beta Brands")


@pytest.fixture(scope='function')
def store(db_session, org):
    return create_store(org_id=org.id, name="Downtown Smoke Shop", contact_email="owner@downtown.test")


@pytest.fixture(scope='function')
def other_store(db_session, other_org):
    return create_store(org_id=other_org.id, name="Beta Corner Store")


@pytest.fixture(scope='function')
def product(db_session, org):
    return create_product(org_id=org.id, sku="VD-SB-4", name="Strawberry Banana 4mg", price_cents=2999)


@pytest.fixture(scope='function')
def stock(db_session, store, product):
    """Stock record for (store, product) opened with 10 units on hand."""
    return ledger_service.open_stock_record(store.id, product.sku, initial_quantity=10)


@pytest.fixture(scope='function')
def staff(db_session, store):
    return points_service.create_staff_member(store_id=store.id, first_name="Jamie", last_name="Rivera")


@pytest.fixture(scope='function')
def customer(db_session, org, store):
    return create_customer(
        org_id=org.id,
        store_id=store.id,
        first_name="Sam",
        last_name="Lee",
        phone="555-123-4567",
    )

"""
Pytest fixtures for stock ledger tests.

Provides test database setup, catalog/partner fixtures, batch seeding and
a test client.
"""

import pytest

from stockledger import create_app
from stockledger.extensions import db
from stockledger.models import Customer, InventoryBatch, Product, Supplier


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_RETRY_BACKOFF': 0,
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
def product(db_session):
    product = Product(sku="CF-001", name="Ground coffee", unit="bag",
                      default_sale_price=120000, default_cost_price=80000)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def other_product(db_session):
    product = Product(sku="TE-001", name="Green tea", unit="box")
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Cafe A", phone="0900000001")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Farm A", phone="0900000002")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def make_batch(db_session):
    """Factory for opening-stock batches (not owned by any stock-in)."""
    counter = {"n": 0}

    def _make(product, quantity=40, cost_price=1000, batch_code=None):
        counter["n"] += 1
        batch = InventoryBatch(
            product_id=product.id,
            batch_code=batch_code or f"OPEN-{counter['n']:03d}",
            quantity_received=quantity,
            quantity_remaining=quantity,
            cost_price=cost_price,
        )
        db_session.add(batch)
        db_session.commit()
        return batch

    return _make


@pytest.fixture(scope='function')
def batch(product, make_batch):
    """Batch B: 40 units of product at cost 1000."""
    return make_batch(product, quantity=40, cost_price=1000, batch_code="B")


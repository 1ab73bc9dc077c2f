"""
Pytest fixtures for storecore backend tests.

Provides test database setup, seed records, and test client.
"""

import pytest

from storecore import create_app
from storecore.extensions import db
from storecore.models import Product, Provider


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CONCURRENCY_RETRY_ATTEMPTS': 1,
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
    """Product with 10 units on hand and a minimum of 5."""
    product = Product(
        sku="ARZ-001",
        name="Arroz 1kg",
        price_cents=450,
        stock_quantity=10,
        stock_minimum=5,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def second_product(db_session):
    product = Product(
        sku="AZC-001",
        name="Azucar 1kg",
        price_cents=380,
        stock_quantity=4,
        stock_minimum=2,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def provider(db_session):
    provider = Provider(razon_social="Distribuidora Andina SAC", ruc="20123456789", is_active=True)
    db_session.add(provider)
    db_session.commit()
    return provider


def stock_of(product_id: int) -> int:
    """Fresh read of on-hand stock, bypassing the identity map."""
    product = db.session.get(Product, product_id, populate_existing=True)
    return product.stock_quantity

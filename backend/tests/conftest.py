"""
Pytest fixtures for tillbook backend tests.

Provides an in-memory database, per-test table cleanup, the test client and
small factories for products, customers and staff.
"""

from decimal import Decimal

import pytest

from tillbook import create_app
from tillbook.extensions import db
from tillbook.models import Customer, Employee, Product
from tillbook.services.cart_service import Cart


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEVICE_ID': 'test-device',
        'RECEIPT_PREFIX': 'REC',
        'RECEIPT_COUNTER_START': 1000,
        'SHOP_TIMEZONE': 'UTC',
        'RESTRICTED_ROLES': ('cashier',),
        'SYNC_ENDPOINT_URL': None,
        'SYNC_PING_URL': None,
        'SYNC_MAX_ATTEMPTS': 5,
        'SYNC_WORKER_ENABLED': False,
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
def make_product(db_session):
    """Factory: make_product(name, retail_price, stock, **columns)."""
    def _make(name="Item", retail_price="1000", stock="100", min_stock="0", unit="piece", allows_fractions=True, **columns):
        product = Product(
            name=name,
            unit=unit,
            allows_fractions=allows_fractions,
            retail_price=Decimal(str(retail_price)),
            stock=Decimal(str(stock)),
            min_stock=Decimal(str(min_stock)),
            **columns,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def make_customer(db_session):
    def _make(name="Customer"):
        customer = Customer(name=name, balance=Decimal("0"), total_purchases=Decimal("0"))
        db_session.add(customer)
        db_session.commit()
        return customer
    return _make


@pytest.fixture(scope='function')
def cashier(db_session):
    """Employee in a restricted role."""
    employee = Employee(name="Caisse 1", email="caisse1@test.local", role="cashier")
    db_session.add(employee)
    db_session.commit()
    return employee


@pytest.fixture(scope='function')
def manager(db_session):
    employee = Employee(name="Gérant", email="manager@test.local", role="manager")
    db_session.add(employee)
    db_session.commit()
    return employee


@pytest.fixture(scope='function')
def cart_of():
    """Build a cart from (product, quantity) pairs."""
    def _build(*lines, tax_rate="0"):
        cart = Cart(tax_rate=Decimal(tax_rate))
        for product, qty in lines:
            cart.add_item(product, qty)
        return cart
    return _build

"""
Pytest fixtures for Kirana POS backend tests.

Provides the application with an in-memory database, a clean database per
test, product/settings helpers, and a test client with staff headers.
"""

import pytest

from kirana_pos import create_app
from kirana_pos.extensions import db
from kirana_pos.services import products_service, settings_service
from kirana_pos.services.cart import Cart


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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
    """Create fresh database (and empty terminal carts) for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        db.session.expunge_all()
        app.extensions["kirana_terminals"].reset()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        db.session.expunge_all()


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(name, price, stock=..., gst=..., barcode=...)."""
    def _make(name="Tata Salt 1kg", price="22.00", stock="10", gst="5", barcode=None, **extra):
        patch = {"name": name, "selling_price": price, "gst_rate": gst}
        if barcode is not None:
            patch["barcode"] = barcode
        patch.update(extra)
        return products_service.create_product(
            patch=patch,
            opening_stock=stock,
            created_by="tester",
        )

    return _make


@pytest.fixture(scope='function')
def settings(db_session):
    return settings_service.get_settings()


@pytest.fixture(scope='function')
def scenario_cart(make_product):
    """Two lines: 22.00 x 2 at 5% GST and 10.00 x 3 at 18% GST."""
    salt = make_product(name="Tata Salt 1kg", price="22.00", stock="10", gst="5")
    biscuit = make_product(name="Parle-G Biscuit", price="10.00", stock="10", gst="18")
    cart = Cart()
    cart.add_item(salt, 2)
    cart.add_item(biscuit, 3)
    return cart, salt, biscuit

"""
Pytest fixtures for the retailpos backend tests.

Provides the application on an in-memory SQLite database, a per-test
clean schema, two stores with staff in each, and auth helpers.
"""

import pytest

from retailpos import create_app
from retailpos.config import TestConfig
from retailpos.context import RequestContext
from retailpos.extensions import db
from retailpos.models import Customer, Product, Store, User, UserStore
from retailpos.models.auth import ROLE_ADMIN, ROLE_CASHIER, ROLE_MANAGER
from retailpos.services.auth_service import hash_password

PASSWORD = "Passw0rd!"

# bcrypt is slow by design; hash once for every fixture user
_PASSWORD_HASH = None


def _password_hash() -> str:
    global _PASSWORD_HASH
    if _PASSWORD_HASH is None:
        _PASSWORD_HASH = hash_password(PASSWORD)
    return _PASSWORD_HASH


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    overrides = {
        key: getattr(TestConfig, key)
        for key in dir(TestConfig)
        if key.isupper()
    }
    app = create_app(overrides)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh data for each test; the schema is kept."""
    db.session.remove()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()
    db.session.remove()


def _make_store(db_session, name, code, slug, **kwargs):
    store = Store(name=name, code=code, slug=slug, **kwargs)
    db_session.add(store)
    db_session.commit()
    return store


def _make_user(db_session, username, role, store=None):
    user = User(
        username=username,
        email=f"{username}@example.com",
        password_hash=_password_hash(),
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    if store is not None:
        db_session.add(UserStore(user_id=user.id, store_id=store.id))
        db_session.commit()
    return user


@pytest.fixture(scope='function')
def store_a(db_session):
    return _make_store(db_session, "Store A", "A1", "store-a", online_enabled=True, shipping_fee=15000)


@pytest.fixture(scope='function')
def store_b(db_session):
    return _make_store(db_session, "Store B", "B1", "store-b")


@pytest.fixture(scope='function')
def admin_user(db_session):
    """Admins act in every store without explicit grants."""
    return _make_user(db_session, "admin", ROLE_ADMIN)


@pytest.fixture(scope='function')
def manager_a(db_session, store_a):
    return _make_user(db_session, "manager_a", ROLE_MANAGER, store_a)


@pytest.fixture(scope='function')
def cashier_a(db_session, store_a):
    return _make_user(db_session, "cashier_a", ROLE_CASHIER, store_a)


@pytest.fixture(scope='function')
def cashier_b(db_session, store_b):
    return _make_user(db_session, "cashier_b", ROLE_CASHIER, store_b)


@pytest.fixture(scope='function')
def ctx_cashier_a(cashier_a, store_a):
    return RequestContext(user_id=cashier_a.id, store_id=store_a.id, role=cashier_a.role)


@pytest.fixture(scope='function')
def ctx_manager_a(manager_a, store_a):
    return RequestContext(user_id=manager_a.id, store_id=store_a.id, role=manager_a.role)


@pytest.fixture(scope='function')
def product_a(db_session, store_a):
    product = Product(
        store_id=store_a.id,
        sku="RICE-5KG",
        barcode="8930000000011",
        name="Rice 5kg",
        price=50000,
        cost_price=42000,
        stock_quantity=100,
        is_online=True,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_a2(db_session, store_a):
    product = Product(
        store_id=store_a.id,
        sku="OIL-1L",
        name="Cooking Oil 1L",
        price=30000,
        stock_quantity=50,
        is_online=True,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session, store_b):
    product = Product(store_id=store_b.id, sku="SUGAR-1KG", name="Sugar 1kg", price=20000, stock_quantity=10)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer_a(db_session, store_a):
    customer = Customer(store_id=store_a.id, name="Nguyen Van A", phone="0900000001", credit_limit=200000)
    db_session.add(customer)
    db_session.commit()
    return customer


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str, store_id: int | None = None) -> dict:
    """Helper to create Authorization (and store selection) headers."""
    headers = {'Authorization': f'Bearer {token}'}
    if store_id is not None:
        headers['X-Store-Id'] = str(store_id)
    return headers

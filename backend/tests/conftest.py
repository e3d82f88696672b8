"""
Pytest fixtures for bookstore backend tests.

Provides test database setup, reference data, staff users and an
authenticated test client.
"""

from decimal import Decimal

import pytest

from bookstore import create_app
from bookstore.extensions import db
from bookstore.models import (
    Branch,
    CashRegister,
    Currency,
    PaymentType,
    Product,
    ProductPrice,
    Supplier,
    User,
    Warehouse,
)
from bookstore.models.auth import ROLE_ADMIN, ROLE_CASHIER
from bookstore.services import inventory_service, register_service
from bookstore.services.auth_service import hash_password

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'UNPRICED_ITEM_POLICY': 'zero-price',
        'SETTLEMENT_RETRY_ATTEMPTS': 3,
        'TELEGRAM_BOT_TOKEN': None,
        'TELEGRAM_CHAT_IDS': [],
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is deliberately slow; hash the shared test password once."""
    return hash_password(PASSWORD)


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
def branch(db_session):
    branch = Branch(name="Main Branch", address="Chilonzor")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def currency(db_session):
    currency = Currency(code="UZS", name="Uzbek Som", symbol="so'm", rate=1, is_default=True)
    db_session.add(currency)
    db_session.commit()
    return currency


@pytest.fixture(scope='function')
def usd(db_session):
    usd = Currency(code="USD", name="US Dollar", symbol="$", rate=12500)
    db_session.add(usd)
    db_session.commit()
    return usd


@pytest.fixture(scope='function')
def payment_type(db_session):
    payment_type = PaymentType(name="Cash")
    db_session.add(payment_type)
    db_session.commit()
    return payment_type


@pytest.fixture(scope='function')
def warehouse(db_session, branch):
    warehouse = Warehouse(name="Main Warehouse", branch_id=branch.id, low_stock_threshold=5)
    db_session.add(warehouse)
    db_session.commit()
    return warehouse


@pytest.fixture(scope='function')
def second_warehouse(db_session, branch):
    warehouse = Warehouse(name="Back Room", branch_id=branch.id, low_stock_threshold=2)
    db_session.add(warehouse)
    db_session.commit()
    return warehouse


@pytest.fixture(scope='function')
def register(db_session, branch, currency):
    register = CashRegister(name="Front Till", branch_id=branch.id, currency_id=currency.id, balance=0)
    db_session.add(register)
    db_session.commit()
    return register


@pytest.fixture(scope='function')
def second_register(db_session, branch, currency):
    register = CashRegister(name="Safe", branch_id=branch.id, currency_id=currency.id, balance=0)
    db_session.add(register)
    db_session.commit()
    return register


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Sharq Publishing", phone="+998 71 000 00 00")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def admin(db_session, branch, password_hash):
    user = User(
        username="admin",
        full_name="Administrator",
        password_hash=password_hash,
        role=ROLE_ADMIN,
        branch_id=branch.id,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def cashier(db_session, branch, password_hash):
    user = User(
        username="kassir",
        full_name="Kassir Alieva",
        password_hash=password_hash,
        role=ROLE_CASHIER,
        branch_id=branch.id,
    )
    db_session.add(user)
    db_session.commit()
    return user


def make_product(db_session, name, *, cost, prices=None, isbn=None, barcode=None):
    product = Product(name=name, cost_price=Decimal(cost), isbn=isbn, barcode=barcode)
    for currency_id, price in (prices or {}).items():
        product.prices.append(ProductPrice(currency_id=currency_id, price=Decimal(price)))
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product(db_session, currency):
    """Listed at 5000 UZS, cost 3000."""
    return make_product(
        db_session, "Clean Code", cost="3000", prices={currency.id: "5000"},
        isbn="9780132350884", barcode="4780000000011",
    )


@pytest.fixture(scope='function')
def other_product(db_session, currency):
    """Listed at 12000 UZS, cost 8000."""
    return make_product(db_session, "O'tkan kunlar", cost="8000", prices={currency.id: "12000"})


@pytest.fixture(scope='function')
def unpriced_product(db_session):
    """No price in any currency."""
    return make_product(db_session, "Gift Bookmark", cost="500")


@pytest.fixture(scope='function')
def set_stock(db_session, admin):
    """Set stock through the adjustment path so the movement log stays in step."""
    def _set(product, warehouse, quantity):
        return inventory_service.adjust_stock_to(
            product_id=product.id,
            warehouse_id=warehouse.id,
            quantity=quantity,
            user_id=admin.id,
        )
    return _set


@pytest.fixture(scope='function')
def set_balance(db_session, admin):
    """Move a register to a given balance with a manual adjustment."""
    def _set(register, amount):
        db_session.refresh(register)
        delta = Decimal(str(amount)) - register.balance
        return register_service.adjust_balance(register.id, amount=delta, user_id=admin.id)
    return _set


@pytest.fixture(scope='function')
def sale_payload(branch, register, currency, payment_type, warehouse):
    """Request body builder for a sale on the default register and warehouse."""
    def _payload(items, **overrides):
        payload = {
            "branch_id": branch.id,
            "cash_register_id": register.id,
            "currency_id": currency.id,
            "payment_type_id": payment_type.id,
            "warehouse_id": warehouse.id,
            "items": items,
        }
        payload.update(overrides)
        return payload
    return _payload


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, admin.username))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier):
    return auth_headers(get_auth_token(client, cashier.username))


@pytest.fixture(scope='function')
def product_factory(db_session):
    def _make(name, *, cost, prices=None, isbn=None, barcode=None):
        return make_product(db_session, name, cost=cost, prices=prices, isbn=isbn, barcode=barcode)
    return _make

"""
Concurrent settlement tests against a file-backed SQLite store.

Each worker runs in its own thread and app context (so its own session and
connection), and all workers are released together by a barrier.

Verifies:
- Racing withdrawals never overdraw a register
- Racing transfers never overdraw the source, in either direction
- Racing sales never take stock below zero
- Every aggregate still equals the sum of its movement log afterwards
"""

import threading
from decimal import Decimal

import pytest

from bookstore import create_app
from bookstore.errors import SettlementError
from bookstore.extensions import db
from bookstore.models import (
    Branch,
    CashRegister,
    CirculatingFund,
    Currency,
    MoneyTransfer,
    PaymentType,
    Product,
    ProductPrice,
    ProductStock,
    Sale,
    User,
    Warehouse,
)
from bookstore.models.auth import ROLE_ADMIN
from bookstore.services import (
    fund_service,
    inventory_service,
    ledger_service,
    register_service,
    sales_service,
    transfer_service,
)

WORKER_TIMEOUT = 30


@pytest.fixture
def file_app(tmp_path):
    """App on its own SQLite file so threads get real, separate connections."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrent.sqlite3'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {
            'connect_args': {'timeout': WORKER_TIMEOUT, 'check_same_thread': False},
        },
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SETTLEMENT_RETRY_ATTEMPTS': 8,
        'TELEGRAM_BOT_TOKEN': None,
        'TELEGRAM_CHAT_IDS': [],
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def store(file_app):
    """Reference rows shared by every scenario; returns their ids."""
    with file_app.app_context():
        branch = Branch(name="Main Branch")
        currency = Currency(code="UZS", name="Uzbek Som", rate=1, is_default=True)
        payment_type = PaymentType(name="Cash")
        db.session.add_all([branch, currency, payment_type])
        db.session.flush()

        user = User(username="admin", password_hash="-", role=ROLE_ADMIN, branch_id=branch.id)
        warehouse = Warehouse(name="Main Warehouse", branch_id=branch.id, low_stock_threshold=1)
        front = CashRegister(name="Front Till", branch_id=branch.id, currency_id=currency.id, balance=0)
        safe = CashRegister(name="Safe", branch_id=branch.id, currency_id=currency.id, balance=0)
        product = Product(name="Clean Code", cost_price=Decimal("3000"))
        product.prices.append(ProductPrice(currency_id=currency.id, price=Decimal("5000")))
        db.session.add_all([user, warehouse, front, safe, product])
        db.session.commit()

        ids = {
            "branch_id": branch.id,
            "currency_id": currency.id,
            "payment_type_id": payment_type.id,
            "user_id": user.id,
            "warehouse_id": warehouse.id,
            "front_id": front.id,
            "safe_id": safe.id,
            "product_id": product.id,
        }
    return ids


def seed_balance(app, register_id, amount, user_id):
    with app.app_context():
        register_service.adjust_balance(register_id, amount=amount, user_id=user_id)


def seed_stock(app, product_id, warehouse_id, quantity, user_id):
    with app.app_context():
        inventory_service.adjust_stock_to(
            product_id=product_id, warehouse_id=warehouse_id, quantity=quantity, user_id=user_id,
        )


def run_concurrently(app, jobs):
    """
    Start one thread per job, release them together and collect outcomes.

    Each outcome is "ok" or the kind of the SettlementError raised; anything
    else is reported as its repr so a failing assertion shows it.
    """
    barrier = threading.Barrier(len(jobs), timeout=WORKER_TIMEOUT)
    outcomes = []
    lock = threading.Lock()

    def worker(job):
        with app.app_context():
            try:
                barrier.wait()
                job()
                outcome = "ok"
            except SettlementError as exc:
                outcome = exc.kind
            except Exception as exc:
                outcome = repr(exc)
            finally:
                db.session.remove()
            with lock:
                outcomes.append(outcome)

    threads = [threading.Thread(target=worker, args=(job,)) for job in jobs]
    for t in threads:
        t.start()
    for t in threads:
        t.join(WORKER_TIMEOUT * 2)
    assert not any(t.is_alive() for t in threads)
    return sorted(outcomes)


def balance_of(register_id):
    db.session.expire_all()
    return db.session.get(CashRegister, register_id).balance


def assert_register_ledger(register_id):
    report = ledger_service.verify_register(register_id)
    assert report["consistent"], report


# =============================================================================
# CIRCULATING FUNDS
# =============================================================================


class TestConcurrentWithdrawals:

    def test_withdrawals_never_overdraw(self, file_app, store):
        seed_balance(file_app, store["front_id"], 100, store["user_id"])

        def withdraw():
            fund_service.withdraw(cash_register_id=store["front_id"], amount=30, user_id=store["user_id"])

        outcomes = run_concurrently(file_app, [withdraw] * 8)

        assert outcomes.count("ok") == 3
        assert outcomes.count("INSUFFICIENT_FUNDS") == 5
        with file_app.app_context():
            assert balance_of(store["front_id"]) == Decimal("10.00")
            assert db.session.query(CirculatingFund).count() == 3
            assert_register_ledger(store["front_id"])

    def test_deposits_and_withdrawals_interleave(self, file_app, store):
        seed_balance(file_app, store["front_id"], 50, store["user_id"])

        def deposit():
            fund_service.deposit(cash_register_id=store["front_id"], amount=20, user_id=store["user_id"])

        def withdraw():
            fund_service.withdraw(cash_register_id=store["front_id"], amount=40, user_id=store["user_id"])

        outcomes = run_concurrently(file_app, [deposit] * 4 + [withdraw] * 4)

        assert set(outcomes) <= {"ok", "INSUFFICIENT_FUNDS"}
        withdrawn = outcomes.count("ok") - 4
        with file_app.app_context():
            balance = balance_of(store["front_id"])
            assert balance >= 0
            assert balance == Decimal("50") + 4 * Decimal("20") - withdrawn * Decimal("40")
            assert_register_ledger(store["front_id"])


# =============================================================================
# MONEY TRANSFERS
# =============================================================================


class TestConcurrentTransfers:

    def test_transfers_never_overdraw_source(self, file_app, store):
        seed_balance(file_app, store["front_id"], 100, store["user_id"])

        def transfer():
            transfer_service.create_transfer(
                from_register_id=store["front_id"], to_register_id=store["safe_id"],
                amount=60, user_id=store["user_id"],
            )

        outcomes = run_concurrently(file_app, [transfer] * 6)

        assert outcomes.count("ok") == 1
        assert outcomes.count("INSUFFICIENT_FUNDS") == 5
        with file_app.app_context():
            assert balance_of(store["front_id"]) == Decimal("40.00")
            assert balance_of(store["safe_id"]) == Decimal("60.00")
            assert db.session.query(MoneyTransfer).count() == 1
            assert_register_ledger(store["front_id"])
            assert_register_ledger(store["safe_id"])

    def test_opposite_transfers_keep_total(self, file_app, store):
        seed_balance(file_app, store["front_id"], 100, store["user_id"])
        seed_balance(file_app, store["safe_id"], 100, store["user_id"])

        def forward():
            transfer_service.create_transfer(
                from_register_id=store["front_id"], to_register_id=store["safe_id"],
                amount=70, user_id=store["user_id"],
            )

        def backward():
            transfer_service.create_transfer(
                from_register_id=store["safe_id"], to_register_id=store["front_id"],
                amount=70, user_id=store["user_id"],
            )

        outcomes = run_concurrently(file_app, [forward, backward] * 4)

        assert set(outcomes) <= {"ok", "INSUFFICIENT_FUNDS"}
        assert "ok" in outcomes
        with file_app.app_context():
            front = balance_of(store["front_id"])
            safe = balance_of(store["safe_id"])
            assert front >= 0
            assert safe >= 0
            assert front + safe == Decimal("200.00")
            assert db.session.query(MoneyTransfer).count() == outcomes.count("ok")
            assert_register_ledger(store["front_id"])
            assert_register_ledger(store["safe_id"])


# =============================================================================
# SALES
# =============================================================================


class TestConcurrentSales:

    def test_sales_never_oversell(self, file_app, store):
        seed_stock(file_app, store["product_id"], store["warehouse_id"], 5, store["user_id"])

        def sell():
            sales_service.create_sale(
                branch_id=store["branch_id"],
                cash_register_id=store["front_id"],
                currency_id=store["currency_id"],
                payment_type_id=store["payment_type_id"],
                warehouse_id=store["warehouse_id"],
                items=[{"product_id": store["product_id"], "quantity": 1}],
                user_id=store["user_id"],
            )

        outcomes = run_concurrently(file_app, [sell] * 8)

        assert outcomes.count("ok") == 5
        assert outcomes.count("INSUFFICIENT_STOCK") == 3
        with file_app.app_context():
            db.session.expire_all()
            stock = db.session.query(ProductStock).filter_by(
                product_id=store["product_id"], warehouse_id=store["warehouse_id"],
            ).one()
            assert stock.quantity == 0
            assert db.session.query(Sale).count() == 5
            assert balance_of(store["front_id"]) == Decimal("25000.00")

            report = ledger_service.verify_stock(store["product_id"], store["warehouse_id"])
            assert report["consistent"], report
            assert_register_ledger(store["front_id"])

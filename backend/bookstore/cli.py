# Overview: Flask CLI command groups for bootstrap, users and ledger reconciliation.

# backend/bookstore/cli.py
# Commands Legend (run from the backend directory):
# - python -m flask system init
#   Idempotent bootstrap: tables, currencies, payment types, branch,
#   warehouse, register and the admin and cashier users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask users list
# - python -m flask users create --username anvar --password "Password123!" --role MANAGER
# - python -m flask ledger verify
#   Recompute every stock quantity and register balance from its movement log.

import click
from flask.cli import with_appcontext

from .errors import SettlementError
from .extensions import db
from .models import Branch, CashRegister, Currency, PaymentType, User, Warehouse
from .models.auth import ROLE_ADMIN, ROLE_CASHIER, ROLES
from .services import ledger_service
from .services.auth_service import create_user

DEFAULT_PASSWORD = "Password123!"

SEED_CURRENCIES = [
    {"code": "UZS", "name": "Uzbek Som", "symbol": "so'm", "rate": 1, "is_default": True},
    {"code": "USD", "name": "US Dollar", "symbol": "$", "rate": 12500, "is_default": False},
    {"code": "RUB", "name": "Russian Ruble", "symbol": "₽", "rate": 140, "is_default": False},
]
SEED_PAYMENT_TYPES = ["Cash", "Card", "Terminal"]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


def seed_defaults() -> dict:
    """
    Create the baseline reference data and users if they are missing.

    Returns a dict of what was created, keyed by kind.
    """
    created = {"currencies": 0, "payment_types": 0, "branches": 0, "warehouses": 0, "registers": 0, "users": 0}

    for values in SEED_CURRENCIES:
        if not db.session.query(Currency).filter_by(code=values["code"]).first():
            db.session.add(Currency(**values))
            created["currencies"] += 1

    for name in SEED_PAYMENT_TYPES:
        if not db.session.query(PaymentType).filter_by(name=name).first():
            db.session.add(PaymentType(name=name))
            created["payment_types"] += 1
    db.session.commit()

    branch = db.session.query(Branch).order_by(Branch.id).first()
    if branch is None:
        branch = Branch(name="Main Branch")
        db.session.add(branch)
        db.session.commit()
        created["branches"] += 1

    if not db.session.query(Warehouse).filter_by(branch_id=branch.id).first():
        db.session.add(Warehouse(name="Main Warehouse", branch_id=branch.id, low_stock_threshold=5))
        created["warehouses"] += 1

    if not db.session.query(CashRegister).filter_by(branch_id=branch.id).first():
        currency = db.session.query(Currency).filter_by(is_default=True).first()
        db.session.add(CashRegister(name="Main Register", branch_id=branch.id, currency_id=currency.id, balance=0))
        created["registers"] += 1
    db.session.commit()

    for username, full_name, role in (
        ("admin", "Administrator", ROLE_ADMIN),
        ("cashier", "Cashier", ROLE_CASHIER),
    ):
        if not db.session.query(User).filter_by(username=username).first():
            create_user(username, DEFAULT_PASSWORD, full_name=full_name, role=role, branch_id=branch.id)
            created["users"] += 1

    return created


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the bookstore: tables plus default reference data and users.

    All passwords default to "Password123!". Change them in production.
    """
    click.echo("START Initializing bookstore...")
    db.create_all()
    created = seed_defaults()
    for kind, count in created.items():
        click.echo(f"PASS {kind}: {count} created")
    click.echo("DONE")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'ID':<5} {'Username':<20} {'Role':<10} {'Active':<8}")
    for user in users:
        click.echo(f"{user.id:<5} {user.username:<20} {user.role:<10} {str(user.is_active):<8}")


@users_group.command('create')
@click.option('--username', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--full-name', default=None)
@click.option('--role', type=click.Choice(sorted(ROLES)), default=ROLE_CASHIER)
@click.option('--branch-id', type=int, default=None)
@with_appcontext
def create_user_cmd(username, password, full_name, role, branch_id):
    try:
        user = create_user(username, password, full_name=full_name, role=role, branch_id=branch_id)
    except SettlementError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created user {user.username} (ID: {user.id}, role: {user.role})")


@click.group('ledger')
def ledger_group():
    """Movement log reconciliation."""


@ledger_group.command('verify')
@with_appcontext
def verify_ledger():
    """Exit status 1 when any quantity or balance disagrees with its movements."""
    report = ledger_service.verify_all()

    for row in report["stocks"]:
        status = "PASS" if row["consistent"] else "FAIL"
        click.echo(
            f"{status} stock product={row['product_id']} warehouse={row['warehouse_id']} "
            f"expected={row['expected']} actual={row['actual']}"
        )
    for row in report["registers"]:
        status = "PASS" if row["consistent"] else "FAIL"
        click.echo(
            f"{status} register={row['cash_register_id']} "
            f"expected={row['expected']} actual={row['actual']}"
        )

    if not report["consistent"]:
        raise SystemExit(1)
    click.echo("PASS ledger consistent")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(ledger_group)

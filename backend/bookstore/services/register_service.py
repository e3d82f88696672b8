# Overview: Cash register lifecycle and manual balance adjustment.

from __future__ import annotations

from flask import current_app

from ..errors import InvalidRequestError, RegisterNotFoundError
from ..extensions import db
from ..models import Branch, CashRegister, Currency, FinancialMovement
from ..models.registers import REFERENCE_ADJUSTMENT
from ..money import ZERO
from ..validation import optional_text, parse_amount, parse_bool, parse_int, require_fields
from .balance_service import apply_balance_delta, get_register
from .concurrency import run_in_transaction


def _check_branch(session, branch_id: int) -> None:
    if session.get(Branch, branch_id) is None:
        raise InvalidRequestError(f"Branch {branch_id} not found", details={"branch_id": branch_id})


def _check_currency(session, currency_id: int) -> None:
    if session.get(Currency, currency_id) is None:
        raise InvalidRequestError(f"Currency {currency_id} not found", details={"currency_id": currency_id})


def create_register(*, name, branch_id, currency_id, balance=None, user_id: int | None) -> CashRegister:
    """
    Open a register. A non-zero opening balance is posted through the
    balance engine as an ADJUSTMENT so the movement log starts in step.
    """
    require_fields({"name": name, "branch_id": branch_id, "currency_id": currency_id},
                   "name", "branch_id", "currency_id")
    name = optional_text(name, 120)
    branch_id = parse_int(branch_id, "branch_id")
    currency_id = parse_int(currency_id, "currency_id")
    opening = parse_amount(balance, "balance", required=False) or ZERO

    def _op(session):
        _check_branch(session, branch_id)
        _check_currency(session, currency_id)

        register = CashRegister(name=name, branch_id=branch_id, currency_id=currency_id, balance=ZERO)
        session.add(register)
        session.flush()

        if opening != ZERO:
            apply_balance_delta(
                session,
                register_id=register.id,
                delta=opening,
                actor_id=user_id,
                reference_type=REFERENCE_ADJUSTMENT,
                note="Opening balance",
            )
        return register

    register = run_in_transaction(_op)
    current_app.logger.info("cash register %s created balance=%.2f", register.id, register.balance)
    return register


def update_register(register_id: int, *, name=None, branch_id=None, is_active=None) -> CashRegister:
    """Rename, move or (re)activate a register. The balance is never touched here."""
    def _op(session):
        register = get_register(session, register_id, lock=True)
        if name is not None:
            register.name = optional_text(name, 120) or register.name
        if branch_id is not None:
            new_branch = parse_int(branch_id, "branch_id")
            _check_branch(session, new_branch)
            register.branch_id = new_branch
        if is_active is not None:
            register.is_active = parse_bool(is_active)
        session.flush()
        return register

    return run_in_transaction(_op)


def deactivate_register(register_id: int) -> CashRegister:
    return update_register(register_id, is_active=False)


def adjust_balance(register_id: int, *, amount, user_id: int | None, note=None) -> CashRegister:
    """
    Apply a signed amount to a register (positive adds, negative removes).

    No sufficiency check: a manual adjustment may leave the balance negative.
    """
    amount = parse_amount(amount, "amount")
    note = optional_text(note)

    def _op(session):
        get_register(session, register_id, lock=True)
        apply_balance_delta(
            session,
            register_id=register_id,
            delta=amount,
            actor_id=user_id,
            reference_type=REFERENCE_ADJUSTMENT,
            note=note or "Manual adjustment",
        )
        return get_register(session, register_id)

    register = run_in_transaction(_op)
    current_app.logger.info(
        "cash register %s adjusted by %.2f balance=%.2f", register.id, amount, register.balance
    )
    return register


def find_register(register_id: int) -> CashRegister:
    register = db.session.get(CashRegister, register_id)
    if register is None:
        raise RegisterNotFoundError(register_id)
    return register


def list_registers(*, branch_id=None, include_inactive: bool = False) -> list[CashRegister]:
    query = db.session.query(CashRegister)
    if branch_id is not None:
        query = query.filter(CashRegister.branch_id == branch_id)
    if not include_inactive:
        query = query.filter(CashRegister.is_active.is_(True))
    return query.order_by(CashRegister.id).all()


def list_movements(register_id: int, *, limit: int = 200) -> list[FinancialMovement]:
    find_register(register_id)
    return (
        db.session.query(FinancialMovement)
        .filter(FinancialMovement.cash_register_id == register_id)
        .order_by(FinancialMovement.id.desc())
        .limit(limit)
        .all()
    )

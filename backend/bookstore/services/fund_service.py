# Overview: Circulating fund deposits and withdrawals against a register.

from __future__ import annotations

from flask import current_app

from ..errors import InvalidRequestError
from ..extensions import db
from ..models import CirculatingFund
from ..models.registers import FUND_DEPOSIT, FUND_WITHDRAWAL, REFERENCE_FUND
from ..validation import optional_text, parse_int, parse_positive_amount, require_fields
from .balance_service import apply_balance_delta, get_register
from .concurrency import run_in_transaction

FUND_KINDS = {FUND_DEPOSIT, FUND_WITHDRAWAL}


def _record_fund(kind: str, *, cash_register_id, amount, user_id, depositor_name=None, note=None) -> CirculatingFund:
    require_fields({"cash_register_id": cash_register_id, "amount": amount}, "cash_register_id", "amount")
    register_id = parse_int(cash_register_id, "cash_register_id")
    amount = parse_positive_amount(amount)
    depositor_name = optional_text(depositor_name, 120)
    note = optional_text(note)

    def _op(session):
        register = get_register(session, register_id, lock=True)
        fund = CirculatingFund(
            cash_register_id=register.id,
            user_id=user_id,
            type=kind,
            amount=amount,
            depositor_name=depositor_name,
            note=note,
        )
        session.add(fund)
        session.flush()

        apply_balance_delta(
            session,
            register_id=register.id,
            delta=amount if kind == FUND_DEPOSIT else -amount,
            actor_id=user_id,
            reference_type=REFERENCE_FUND,
            reference_id=fund.id,
            note=note or f"{kind.title()} #{fund.id}",
            require_funds=kind == FUND_WITHDRAWAL,
        )
        return fund

    fund = run_in_transaction(_op)
    current_app.logger.info(
        "%s %s of %.2f on register %s", kind.lower(), fund.id, fund.amount, fund.cash_register_id
    )
    return fund


def deposit(*, cash_register_id, amount, user_id: int | None, depositor_name=None, note=None) -> CirculatingFund:
    return _record_fund(
        FUND_DEPOSIT,
        cash_register_id=cash_register_id,
        amount=amount,
        user_id=user_id,
        depositor_name=depositor_name,
        note=note,
    )


def withdraw(*, cash_register_id, amount, user_id: int | None, depositor_name=None, note=None) -> CirculatingFund:
    """Fails with InsufficientFundsError when the register balance is below amount."""
    return _record_fund(
        FUND_WITHDRAWAL,
        cash_register_id=cash_register_id,
        amount=amount,
        user_id=user_id,
        depositor_name=depositor_name,
        note=note,
    )


def list_funds(*, cash_register_id=None, kind=None, limit: int = 200) -> list[CirculatingFund]:
    query = db.session.query(CirculatingFund)
    if cash_register_id is not None:
        query = query.filter(CirculatingFund.cash_register_id == cash_register_id)
    if kind:
        if kind not in FUND_KINDS:
            raise InvalidRequestError(f"Unknown fund type: {kind}")
        query = query.filter(CirculatingFund.type == kind)
    return query.order_by(CirculatingFund.id.desc()).limit(limit).all()

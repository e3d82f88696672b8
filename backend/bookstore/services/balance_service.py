# Overview: Balance adjustment engine; the only writer of CashRegister.balance and FinancialMovement.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy.orm import Session

from ..errors import InsufficientFundsError, RegisterNotFoundError
from ..models import CashRegister, FinancialMovement
from ..models.registers import FLOW_INFLOW, FLOW_OUTFLOW
from ..money import to_decimal
from .concurrency import lock_for_update


def get_register(session: Session, register_id: int, *, lock: bool = False) -> CashRegister:
    query = session.query(CashRegister).filter_by(id=register_id)
    if lock:
        query = lock_for_update(query)
    register = query.first()
    if register is None:
        raise RegisterNotFoundError(register_id)
    return register


def apply_balance_delta(
    session: Session,
    *,
    register_id: int,
    delta,
    actor_id: int | None,
    reference_type: str | None = None,
    reference_id: int | None = None,
    note: str | None = None,
    currency_id: int | None = None,
    payment_type_id: int | None = None,
    require_funds: bool = False,
) -> Decimal:
    """
    Apply a signed amount to a register balance.

    Appends one FinancialMovement: INFLOW when delta >= 0, else OUTFLOW,
    with amount = abs(delta) and balance_after = the new balance. The
    movement currency defaults to the register's own.

    A negative result is allowed unless require_funds is set, in which case
    an outflow larger than the balance raises InsufficientFundsError. The
    check reads the same locked row the write goes to. Does not commit.

    Returns the new balance.
    """
    register = get_register(session, register_id, lock=True)

    delta = to_decimal(delta)
    current = to_decimal(register.balance)
    if require_funds and delta < 0 and current < -delta:
        raise InsufficientFundsError(register_id=register.id, available=current, requested=-delta)

    new_balance = current + delta
    register.balance = new_balance

    session.add(FinancialMovement(
        cash_register_id=register.id,
        currency_id=currency_id or register.currency_id,
        payment_type_id=payment_type_id,
        user_id=actor_id,
        type=FLOW_INFLOW if delta >= 0 else FLOW_OUTFLOW,
        amount=abs(delta),
        balance_after=new_balance,
        reference_type=reference_type,
        reference_id=reference_id,
        note=note,
    ))
    session.flush()
    return new_balance

# Overview: Reconciles stock quantities and register balances against their movement logs.

"""
Ledger reconciliation

ProductStock.quantity and CashRegister.balance are materialized views over
ProductMovement and FinancialMovement. These checks recompute each one
from its log and also walk the log to confirm every row's running value
(quantity_after / balance_after) matches the cumulative sum at that row.
"""

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import CashRegister, FinancialMovement, ProductMovement, ProductStock
from ..models.registers import FLOW_INFLOW
from ..money import ZERO, format_money, to_decimal
from .balance_service import get_register


def verify_stock(product_id: int, warehouse_id: int) -> dict:
    stock = (
        db.session.query(ProductStock)
        .filter_by(product_id=product_id, warehouse_id=warehouse_id)
        .first()
    )
    actual = stock.quantity if stock else 0

    movements = (
        db.session.query(ProductMovement)
        .filter_by(product_id=product_id, warehouse_id=warehouse_id)
        .order_by(ProductMovement.id)
        .all()
    )
    running = 0
    broken_rows = []
    for movement in movements:
        running += movement.quantity_delta
        if movement.quantity_after != running:
            broken_rows.append(movement.id)

    return {
        "product_id": product_id,
        "warehouse_id": warehouse_id,
        "expected": running,
        "actual": actual,
        "movements": len(movements),
        "broken_rows": broken_rows,
        "consistent": running == actual and not broken_rows,
    }


def verify_register(register_id: int) -> dict:
    register = get_register(db.session, register_id)
    actual = to_decimal(register.balance)

    movements = (
        db.session.query(FinancialMovement)
        .filter_by(cash_register_id=register_id)
        .order_by(FinancialMovement.id)
        .all()
    )
    running = ZERO
    broken_rows = []
    for movement in movements:
        amount = to_decimal(movement.amount)
        running += amount if movement.type == FLOW_INFLOW else -amount
        if to_decimal(movement.balance_after) != running:
            broken_rows.append(movement.id)

    return {
        "cash_register_id": register_id,
        "expected": format_money(running),
        "actual": format_money(actual),
        "movements": len(movements),
        "broken_rows": broken_rows,
        "consistent": running == actual and not broken_rows,
    }


def verify_all() -> dict:
    """Every stock pair (with a row or a movement) and every register."""
    pairs = {
        (row.product_id, row.warehouse_id)
        for row in db.session.query(ProductStock.product_id, ProductStock.warehouse_id)
    }
    pairs.update(
        (row.product_id, row.warehouse_id)
        for row in db.session.query(ProductMovement.product_id, ProductMovement.warehouse_id).distinct()
    )
    stocks = [verify_stock(p, w) for p, w in sorted(pairs)]
    registers = [verify_register(rid) for (rid,) in db.session.query(CashRegister.id).order_by(CashRegister.id)]

    return {
        "stocks": stocks,
        "registers": registers,
        "consistent": all(r["consistent"] for r in stocks + registers),
    }


def stock_total(product_id: int) -> int:
    """Quantity on hand across every warehouse."""
    total = (
        db.session.query(db.func.coalesce(db.func.sum(ProductStock.quantity), 0))
        .filter(ProductStock.product_id == product_id)
        .scalar()
    )
    return int(total)


def register_net_flow(register_id: int) -> Decimal:
    """Signed sum of a register's movements, computed in SQL."""
    signed = db.case(
        (FinancialMovement.type == FLOW_INFLOW, FinancialMovement.amount),
        else_=-FinancialMovement.amount,
    )
    total = (
        db.session.query(db.func.coalesce(db.func.sum(signed), 0))
        .filter(FinancialMovement.cash_register_id == register_id)
        .scalar()
    )
    return to_decimal(total)

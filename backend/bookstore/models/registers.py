from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..money import format_money
from ..time_utils import to_utc_z
from .inventory import AppendOnlyViolation

FLOW_INFLOW = "INFLOW"
FLOW_OUTFLOW = "OUTFLOW"

REFERENCE_SALE = "SALE"
REFERENCE_PURCHASE = "PURCHASE"
REFERENCE_ADJUSTMENT = "ADJUSTMENT"
REFERENCE_FUND = "FUND"
REFERENCE_TRANSFER = "TRANSFER"

FUND_DEPOSIT = "DEPOSIT"
FUND_WITHDRAWAL = "WITHDRAWAL"


class CashRegister(db.Model):
    """
    Cash till holding a balance in one currency, scoped to a branch.

    balance is the single source of truth for the money in the till right
    now. Only the balance engine (services/balance_service.py) writes it, and
    every write appends a FinancialMovement whose balance_after equals the
    new value.
    """
    __tablename__ = "cash_registers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=False, index=True)

    balance = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    branch = db.relationship("Branch", backref=db.backref("cash_registers", lazy=True))
    currency = db.relationship("Currency")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<CashRegister id={self.id} name={self.name!r} balance={self.balance}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "branch_id": self.branch_id,
            "branch": self.branch.to_dict() if self.branch else None,
            "currency_id": self.currency_id,
            "currency": self.currency.to_dict() if self.currency else None,
            "balance": format_money(self.balance),
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class FinancialMovement(db.Model):
    """
    Append-only money audit row.

    amount is always a non-negative magnitude; the sign lives in type
    (INFLOW positive, OUTFLOW negative). Summing signed amounts for a
    register reproduces its balance.
    """
    __tablename__ = "financial_movements"
    __table_args__ = (
        db.Index("ix_financial_movements_register", "cash_register_id", "id"),
        db.Index("ix_financial_movements_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cash_register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=False, index=True)
    currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=False)
    payment_type_id = db.Column(db.Integer, db.ForeignKey("payment_types.id"), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)  # INFLOW, OUTFLOW
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    balance_after = db.Column(db.Numeric(18, 2), nullable=False)

    reference_type = db.Column(db.String(16), nullable=True)  # SALE, PURCHASE, ADJUSTMENT, FUND, TRANSFER
    reference_id = db.Column(db.Integer, nullable=True)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    cash_register = db.relationship("CashRegister")
    currency = db.relationship("Currency")
    user = db.relationship("User")

    @property
    def signed_amount(self):
        return self.amount if self.type == FLOW_INFLOW else -self.amount

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cash_register_id": self.cash_register_id,
            "currency_id": self.currency_id,
            "payment_type_id": self.payment_type_id,
            "user_id": self.user_id,
            "type": self.type,
            "amount": format_money(self.amount),
            "balance_after": format_money(self.balance_after),
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


class CirculatingFund(db.Model):
    """Manual cash deposit or withdrawal not tied to a sale."""
    __tablename__ = "circulating_funds"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    cash_register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    type = db.Column(db.String(16), nullable=False, index=True)  # DEPOSIT, WITHDRAWAL
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    depositor_name = db.Column(db.String(120), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    cash_register = db.relationship("CashRegister")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cash_register_id": self.cash_register_id,
            "cash_register": self.cash_register.to_dict() if self.cash_register else None,
            "user_id": self.user_id,
            "type": self.type,
            "amount": format_money(self.amount),
            "depositor_name": self.depositor_name,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


class MoneyTransfer(db.Model):
    """Funds moved from one register to another. Paired with two FinancialMovements."""
    __tablename__ = "money_transfers"
    __table_args__ = (
        db.CheckConstraint("from_register_id <> to_register_id", name="ck_money_transfers_distinct"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    from_register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=False, index=True)
    to_register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    from_register = db.relationship("CashRegister", foreign_keys=[from_register_id])
    to_register = db.relationship("CashRegister", foreign_keys=[to_register_id])
    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "from_register_id": self.from_register_id,
            "from_register": self.from_register.to_dict() if self.from_register else None,
            "to_register_id": self.to_register_id,
            "to_register": self.to_register.to_dict() if self.to_register else None,
            "user": self.user.summary() if self.user else None,
            "amount": format_money(self.amount),
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(FinancialMovement, "before_update")
def _prevent_financial_movement_update(mapper, connection, target):
    raise AppendOnlyViolation(f"Financial movement {target.id} is append-only")


@event.listens_for(FinancialMovement, "before_delete")
def _prevent_financial_movement_delete(mapper, connection, target):
    raise AppendOnlyViolation(f"Financial movement {target.id} is append-only")

from __future__ import annotations

from ..extensions import db
from ..money import format_money
from ..time_utils import to_utc_z


class Sale(db.Model):
    """
    One POS checkout.

    Created atomically with its items and immutable afterwards (there is no
    edit or void). Totals:
        subtotal     = sum(item.total_price)
        total_amount = subtotal - discount
        cost_total   = sum(item.cost_price * item.quantity)
        profit       = total_amount - cost_total
    The discount reduces revenue and profit, never cost.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_branch_created", "branch_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    cash_register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=False, index=True)
    currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=False)
    payment_type_id = db.Column(db.Integer, db.ForeignKey("payment_types.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    customer_name = db.Column(db.String(120), nullable=True)

    subtotal = db.Column(db.Numeric(18, 2), nullable=False)
    discount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(18, 2), nullable=False)
    cost_total = db.Column(db.Numeric(18, 2), nullable=False)
    profit = db.Column(db.Numeric(18, 2), nullable=False)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    branch = db.relationship("Branch")
    cash_register = db.relationship("CashRegister")
    currency = db.relationship("Currency")
    payment_type = db.relationship("PaymentType")
    user = db.relationship("User")
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "branch": self.branch.to_dict() if self.branch else None,
            "cash_register_id": self.cash_register_id,
            "cash_register": self.cash_register.to_dict() if self.cash_register else None,
            "currency_id": self.currency_id,
            "currency": self.currency.to_dict() if self.currency else None,
            "payment_type_id": self.payment_type_id,
            "payment_type": self.payment_type.to_dict() if self.payment_type else None,
            "user": self.user.summary() if self.user else None,
            "customer_name": self.customer_name,
            "subtotal": format_money(self.subtotal),
            "discount": format_money(self.discount),
            "total_amount": format_money(self.total_amount),
            "cost_total": format_money(self.cost_total),
            "profit": format_money(self.profit),
            "note": self.note,
            "items": [item.to_dict() for item in self.items],
            "created_at": to_utc_z(self.created_at),
        }


class SaleItem(db.Model):
    """Line of a sale with the price and cost resolved at checkout time."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(18, 2), nullable=False)
    cost_price = db.Column(db.Numeric(18, 2), nullable=False)
    total_price = db.Column(db.Numeric(18, 2), nullable=False)
    profit = db.Column(db.Numeric(18, 2), nullable=False)

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")
    warehouse = db.relationship("Warehouse")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product": self.product.summary() if self.product else None,
            "warehouse_id": self.warehouse_id,
            "warehouse": self.warehouse.to_dict() if self.warehouse else None,
            "quantity": self.quantity,
            "unit_price": format_money(self.unit_price),
            "cost_price": format_money(self.cost_price),
            "total_price": format_money(self.total_price),
            "profit": format_money(self.profit),
        }

from __future__ import annotations

from ..extensions import db
from ..money import format_money
from ..time_utils import to_utc_z

STATUS_PENDING = "PENDING"
STATUS_RECEIVED = "RECEIVED"
STATUS_CANCELLED = "CANCELLED"


class Purchase(db.Model):
    """
    Order placed with a supplier.

    LIFECYCLE:
    - PENDING: created, no stock effect
    - RECEIVED: stock added and product cost updated (terminal)
    - CANCELLED: abandoned, no stock effect (terminal)
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    total_amount = db.Column(db.Numeric(18, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING, index=True)
    note = db.Column(db.String(255), nullable=True)

    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    received_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier")
    currency = db.relationship("Currency")
    user = db.relationship("User", foreign_keys=[user_id])
    items = db.relationship(
        "PurchaseItem",
        back_populates="purchase",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="PurchaseItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "supplier": self.supplier.to_dict() if self.supplier else None,
            "currency_id": self.currency_id,
            "currency": self.currency.to_dict() if self.currency else None,
            "user": self.user.summary() if self.user else None,
            "total_amount": format_money(self.total_amount),
            "status": self.status,
            "note": self.note,
            "received_at": to_utc_z(self.received_at) if self.received_at else None,
            "received_by_user_id": self.received_by_user_id,
            "items": [item.to_dict() for item in self.items],
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class PurchaseItem(db.Model):
    __tablename__ = "purchase_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(18, 2), nullable=False)
    total_price = db.Column(db.Numeric(18, 2), nullable=False)

    purchase = db.relationship("Purchase", back_populates="items")
    product = db.relationship("Product")
    warehouse = db.relationship("Warehouse")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "product_id": self.product_id,
            "product": self.product.summary() if self.product else None,
            "warehouse_id": self.warehouse_id,
            "warehouse": self.warehouse.to_dict() if self.warehouse else None,
            "quantity": self.quantity,
            "unit_price": format_money(self.unit_price),
            "total_price": format_money(self.total_price),
        }

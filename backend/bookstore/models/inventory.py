from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..time_utils import to_utc_z

"""
Inventory invariants (authoritative)

- ProductStock is the materialized quantity of one product at one warehouse.
  A missing row means quantity 0; rows are created on the first
  stock-affecting event.
- ProductMovement is append-only. For every (product, warehouse) the sum of
  quantity_delta in insertion order equals ProductStock.quantity, and each
  row's quantity_after is that running sum.
- Only the stock engine (services/stock_service.py) writes either table.
"""

MOVEMENT_IN = "IN"
MOVEMENT_OUT = "OUT"
MOVEMENT_ADJUSTMENT = "ADJUSTMENT"
MOVEMENT_KINDS = {MOVEMENT_IN, MOVEMENT_OUT, MOVEMENT_ADJUSTMENT}


class AppendOnlyViolation(RuntimeError):
    """Raised when code tries to update or delete an audit row."""


class ProductStock(db.Model):
    __tablename__ = "product_stocks"
    __table_args__ = (
        db.UniqueConstraint("product_id", "warehouse_id", name="uq_product_stocks_product_warehouse"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    # Optimistic lock: a concurrent writer that loses the race gets StaleDataError
    version_id = db.Column(db.Integer, nullable=False, default=1)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("stocks", lazy=True))
    warehouse = db.relationship("Warehouse")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "warehouse_id": self.warehouse_id,
            "warehouse": self.warehouse.to_dict() if self.warehouse else None,
            "quantity": self.quantity,
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductMovement(db.Model):
    __tablename__ = "product_movements"
    __table_args__ = (
        db.Index("ix_product_movements_product_warehouse", "product_id", "warehouse_id", "id"),
        db.Index("ix_product_movements_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)  # IN, OUT, ADJUSTMENT

    # Signed change and the resulting on-hand quantity
    quantity_delta = db.Column(db.Integer, nullable=False)
    quantity_after = db.Column(db.Integer, nullable=False)

    reference_type = db.Column(db.String(16), nullable=True)  # SALE, PURCHASE
    reference_id = db.Column(db.Integer, nullable=True)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product")
    warehouse = db.relationship("Warehouse")
    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "warehouse_id": self.warehouse_id,
            "user_id": self.user_id,
            "type": self.type,
            "quantity_delta": self.quantity_delta,
            "quantity_after": self.quantity_after,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(ProductMovement, "before_update")
def _prevent_product_movement_update(mapper, connection, target):
    raise AppendOnlyViolation(f"Product movement {target.id} is append-only")


@event.listens_for(ProductMovement, "before_delete")
def _prevent_product_movement_delete(mapper, connection, target):
    raise AppendOnlyViolation(f"Product movement {target.id} is append-only")

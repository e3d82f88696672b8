# Overview: Manual stock adjustment to an absolute target, stock levels and movement queries.

from __future__ import annotations

from flask import current_app

from ..errors import InvalidRequestError, ProductNotFoundError, WarehouseNotFoundError
from ..extensions import db
from ..models import Product, ProductMovement, ProductStock, Warehouse
from ..models.inventory import MOVEMENT_ADJUSTMENT
from ..validation import optional_text, parse_int
from .concurrency import run_in_transaction
from .notification_service import notify_low_stock
from .stock_service import apply_stock_delta, find_stock, get_quantity


def adjust_stock_to(*, product_id, warehouse_id, quantity, user_id: int | None, note=None) -> ProductStock:
    """
    Set on-hand quantity to an absolute target.

    delta = target - current (current is 0 when no row exists). A zero
    delta still appends an ADJUSTMENT movement so every count is audited.
    """
    product_id = parse_int(product_id, "product_id")
    warehouse_id = parse_int(warehouse_id, "warehouse_id")
    target = parse_int(quantity, "quantity")
    if target < 0:
        raise InvalidRequestError("quantity must be zero or positive", details={"quantity": target})
    note = optional_text(note)

    def _op(session):
        if session.get(Product, product_id) is None:
            raise ProductNotFoundError(product_id)
        warehouse = session.get(Warehouse, warehouse_id)
        if warehouse is None:
            raise WarehouseNotFoundError(warehouse_id)

        current = get_quantity(session, product_id, warehouse_id, lock=True)
        apply_stock_delta(
            session,
            product_id=product_id,
            warehouse_id=warehouse_id,
            delta=target - current,
            actor_id=user_id,
            kind=MOVEMENT_ADJUSTMENT,
            note=note or "Manual adjustment",
        )
        return find_stock(session, product_id, warehouse_id), current, warehouse.low_stock_threshold

    stock, previous, threshold = run_in_transaction(_op)

    current_app.logger.info(
        "stock of product %s at warehouse %s adjusted %s -> %s",
        product_id, warehouse_id, previous, stock.quantity,
    )
    if stock.quantity <= threshold:
        notify_low_stock([(stock, threshold)])
    return stock


def list_stock(product_id: int) -> list[ProductStock]:
    return (
        db.session.query(ProductStock)
        .filter(ProductStock.product_id == product_id)
        .order_by(ProductStock.warehouse_id)
        .all()
    )


def list_low_stock(warehouse_id: int | None = None) -> list[ProductStock]:
    """Stock rows at or below their warehouse's low_stock_threshold."""
    query = (
        db.session.query(ProductStock)
        .join(Warehouse, ProductStock.warehouse_id == Warehouse.id)
        .filter(ProductStock.quantity <= Warehouse.low_stock_threshold)
    )
    if warehouse_id is not None:
        query = query.filter(ProductStock.warehouse_id == warehouse_id)
    return query.order_by(ProductStock.quantity, ProductStock.id).all()


def list_movements(product_id: int, *, warehouse_id: int | None = None, limit: int = 200) -> list[ProductMovement]:
    query = db.session.query(ProductMovement).filter(ProductMovement.product_id == product_id)
    if warehouse_id is not None:
        query = query.filter(ProductMovement.warehouse_id == warehouse_id)
    return query.order_by(ProductMovement.id.desc()).limit(limit).all()

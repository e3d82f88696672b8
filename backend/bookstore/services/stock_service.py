# Overview: Stock adjustment engine; the only writer of ProductStock and ProductMovement.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import InsufficientStockError
from ..models import Product, ProductMovement, ProductStock
from ..models.inventory import MOVEMENT_KINDS
from .concurrency import ConcurrentInsertError, lock_for_update


def find_stock(session: Session, product_id: int, warehouse_id: int, *, lock: bool = False) -> ProductStock | None:
    query = session.query(ProductStock).filter_by(product_id=product_id, warehouse_id=warehouse_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_quantity(session: Session, product_id: int, warehouse_id: int, *, lock: bool = False) -> int:
    """Current on-hand quantity; a missing stock row counts as 0."""
    stock = find_stock(session, product_id, warehouse_id, lock=lock)
    return stock.quantity if stock else 0


def _get_or_create_stock(session: Session, product_id: int, warehouse_id: int) -> ProductStock:
    stock = find_stock(session, product_id, warehouse_id, lock=True)
    if stock is not None:
        return stock

    stock = ProductStock(product_id=product_id, warehouse_id=warehouse_id, quantity=0)
    session.add(stock)
    try:
        session.flush()
    except IntegrityError as exc:
        # Lost the race to create the row; the caller's transaction retries
        raise ConcurrentInsertError(
            f"stock row for product {product_id} at warehouse {warehouse_id} created concurrently"
        ) from exc
    return stock


def apply_stock_delta(
    session: Session,
    *,
    product_id: int,
    warehouse_id: int,
    delta: int,
    actor_id: int | None,
    kind: str,
    reference: tuple[str, int] | None = None,
    note: str | None = None,
) -> int:
    """
    Apply a signed quantity change to one (product, warehouse) stock row.

    Writes exactly one stock row (created at quantity 0 if missing) and
    appends one ProductMovement carrying the delta and the resulting
    quantity. Does not commit: the caller owns the transaction.

    Callers validate business policy first; this still refuses to take the
    row below zero and raises InsufficientStockError.

    Returns the new quantity.
    """
    if kind not in MOVEMENT_KINDS:
        raise ValueError(f"invalid movement kind: {kind}")

    stock = _get_or_create_stock(session, product_id, warehouse_id)

    new_quantity = stock.quantity + delta
    if new_quantity < 0:
        product = session.get(Product, product_id)
        raise InsufficientStockError(
            product_id=product_id,
            warehouse_id=warehouse_id,
            available=stock.quantity,
            requested=-delta,
            product_name=product.name if product else None,
        )

    stock.quantity = new_quantity

    reference_type, reference_id = reference if reference else (None, None)
    session.add(ProductMovement(
        product_id=product_id,
        warehouse_id=warehouse_id,
        user_id=actor_id,
        type=kind,
        quantity_delta=delta,
        quantity_after=new_quantity,
        reference_type=reference_type,
        reference_id=reference_id,
        note=note,
    ))
    session.flush()
    return new_quantity

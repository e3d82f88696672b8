# Overview: Supplier purchase orders: creation, receipt into stock, cancellation.

from __future__ import annotations

from flask import current_app

from ..errors import (
    InvalidRequestError,
    InvalidStateError,
    ProductNotFoundError,
    PurchaseNotFoundError,
    SupplierNotFoundError,
    WarehouseNotFoundError,
)
from ..extensions import db
from ..models import Currency, Product, Purchase, PurchaseItem, Supplier, Warehouse
from ..models.inventory import MOVEMENT_IN
from ..models.purchases import STATUS_CANCELLED, STATUS_PENDING, STATUS_RECEIVED
from ..models.registers import REFERENCE_PURCHASE
from ..money import ZERO
from ..time_utils import utcnow
from ..validation import optional_text, parse_amount, parse_int, parse_quantity
from .concurrency import lock_for_update, run_in_transaction
from .stock_service import apply_stock_delta


class PurchaseError(InvalidRequestError):
    """Raised for malformed purchase documents."""


def _parse_items(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise PurchaseError("Purchase must contain at least one item", details={"missing": ["items"]})

    parsed = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise PurchaseError(f"items[{index}] must be an object")
        unit_price = parse_amount(item.get("unit_price"), f"items[{index}].unit_price")
        if unit_price < 0:
            raise PurchaseError(f"items[{index}].unit_price must not be negative")
        parsed.append({
            "product_id": parse_int(item.get("product_id"), f"items[{index}].product_id"),
            "warehouse_id": parse_int(item.get("warehouse_id"), f"items[{index}].warehouse_id"),
            "quantity": parse_quantity(item.get("quantity"), f"items[{index}].quantity"),
            "unit_price": unit_price,
        })
    return parsed


def create_purchase(*, supplier_id, currency_id, items, user_id: int | None, note=None) -> Purchase:
    """
    Record a PENDING purchase order. No stock or cash effect until received.

    total_amount = sum(quantity * unit_price) over the items.
    """
    supplier_id = parse_int(supplier_id, "supplier_id")
    currency_id = parse_int(currency_id, "currency_id")
    lines = _parse_items(items)
    note = optional_text(note)

    def _op(session):
        if session.get(Supplier, supplier_id) is None:
            raise SupplierNotFoundError(supplier_id)
        if session.get(Currency, currency_id) is None:
            raise InvalidRequestError(f"Currency {currency_id} not found", details={"currency_id": currency_id})

        purchase = Purchase(
            supplier_id=supplier_id,
            currency_id=currency_id,
            user_id=user_id,
            status=STATUS_PENDING,
            note=note,
        )
        total = ZERO
        for line in lines:
            if session.get(Product, line["product_id"]) is None:
                raise ProductNotFoundError(line["product_id"])
            if session.get(Warehouse, line["warehouse_id"]) is None:
                raise WarehouseNotFoundError(line["warehouse_id"])
            total_price = line["unit_price"] * line["quantity"]
            total += total_price
            purchase.items.append(PurchaseItem(
                product_id=line["product_id"],
                warehouse_id=line["warehouse_id"],
                quantity=line["quantity"],
                unit_price=line["unit_price"],
                total_price=total_price,
            ))
        purchase.total_amount = total

        session.add(purchase)
        session.flush()
        return purchase

    purchase = run_in_transaction(_op)
    current_app.logger.info("purchase %s created total=%.2f", purchase.id, purchase.total_amount)
    return purchase


def _locked_purchase(session, purchase_id: int) -> Purchase:
    purchase = lock_for_update(session.query(Purchase).filter_by(id=purchase_id)).first()
    if purchase is None:
        raise PurchaseNotFoundError(purchase_id)
    return purchase


def receive_purchase(purchase_id: int, *, user_id: int | None) -> Purchase:
    """
    Receive a PENDING purchase into stock.

    Per item: +quantity IN movement (reference PURCHASE) and the product's
    cost price becomes the item's unit price. Marks the purchase RECEIVED.
    Receiving twice, or receiving a cancelled purchase, raises
    InvalidStateError with no writes.
    """
    def _op(session):
        purchase = _locked_purchase(session, purchase_id)
        if purchase.status == STATUS_RECEIVED:
            raise InvalidStateError("Purchase already received", current_status=purchase.status)
        if purchase.status != STATUS_PENDING:
            raise InvalidStateError(
                f"Cannot receive a {purchase.status.lower()} purchase",
                current_status=purchase.status,
            )

        for item in purchase.items:
            apply_stock_delta(
                session,
                product_id=item.product_id,
                warehouse_id=item.warehouse_id,
                delta=item.quantity,
                actor_id=user_id,
                kind=MOVEMENT_IN,
                reference=(REFERENCE_PURCHASE, purchase.id),
                note=f"Purchase #{purchase.id}",
            )
            product = lock_for_update(session.query(Product).filter_by(id=item.product_id)).first()
            if product is None:
                raise ProductNotFoundError(item.product_id)
            product.cost_price = item.unit_price

        purchase.status = STATUS_RECEIVED
        purchase.received_at = utcnow()
        purchase.received_by_user_id = user_id
        session.flush()
        return purchase

    purchase = run_in_transaction(_op)
    current_app.logger.info("purchase %s received (%d item(s))", purchase.id, len(purchase.items))
    return purchase


def cancel_purchase(purchase_id: int, *, user_id: int | None) -> Purchase:
    """PENDING -> CANCELLED. Any other status raises InvalidStateError."""
    def _op(session):
        purchase = _locked_purchase(session, purchase_id)
        if purchase.status != STATUS_PENDING:
            raise InvalidStateError(
                f"Cannot cancel a {purchase.status.lower()} purchase",
                current_status=purchase.status,
            )
        purchase.status = STATUS_CANCELLED
        session.flush()
        return purchase

    purchase = run_in_transaction(_op)
    current_app.logger.info("purchase %s cancelled by user %s", purchase.id, user_id)
    return purchase


def get_purchase(purchase_id: int) -> Purchase:
    purchase = db.session.get(Purchase, purchase_id)
    if purchase is None:
        raise PurchaseNotFoundError(purchase_id)
    return purchase


def list_purchases(*, status=None, supplier_id=None, date_from=None, date_to=None, limit: int = 200) -> list[Purchase]:
    query = db.session.query(Purchase)
    if status:
        query = query.filter(Purchase.status == status)
    if supplier_id is not None:
        query = query.filter(Purchase.supplier_id == supplier_id)
    if date_from is not None:
        query = query.filter(Purchase.created_at >= date_from)
    if date_to is not None:
        query = query.filter(Purchase.created_at <= date_to)
    return query.order_by(Purchase.id.desc()).limit(limit).all()

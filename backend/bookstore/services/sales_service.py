# Overview: POS checkout settlement: validates a sale, then posts stock and cash effects atomically.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app

from ..errors import (
    InsufficientStockError,
    InvalidRequestError,
    ProductNotFoundError,
    WarehouseNotFoundError,
)
from ..extensions import db
from ..models import Product, Sale, SaleItem, Warehouse
from ..models.inventory import MOVEMENT_OUT
from ..models.registers import REFERENCE_SALE
from ..money import ZERO, to_decimal
from ..validation import optional_text, parse_amount, parse_int, parse_quantity, require_fields
from .balance_service import apply_balance_delta, get_register
from .concurrency import run_in_transaction
from .notification_service import notify, notify_low_stock, sale_completed
from .stock_service import apply_stock_delta, find_stock, get_quantity

"""
Sale invariants (authoritative)

- A sale is all-or-nothing: header, items, one OUT stock movement per item
  and one INFLOW financial movement of total_amount commit together or not
  at all.
- Validation runs in a fixed order and the first failure wins:
    1. required fields and a non-empty item list
    2. cash register exists
    3. warehouse exists
    4. per item, in request order: product exists, quantity positive,
       enough stock for everything requested so far for that product
    5. per item: price resolution under the unpriced-item policy
- Nothing is written before validation passes.
"""

PRICE_POLICY_ZERO = "zero-price"
PRICE_POLICY_REJECT = "reject"
PRICE_POLICIES = {PRICE_POLICY_ZERO, PRICE_POLICY_REJECT}


@dataclass
class SaleLine:
    product_id: int
    quantity: int
    unit_price: Decimal | None = None


def parse_sale_lines(items) -> list[SaleLine]:
    if not isinstance(items, list) or not items:
        raise InvalidRequestError("Sale must contain at least one item", details={"missing": ["items"]})

    lines = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise InvalidRequestError(f"items[{index}] must be an object")
        lines.append(SaleLine(
            product_id=parse_int(item.get("product_id"), f"items[{index}].product_id"),
            quantity=parse_int(item.get("quantity"), f"items[{index}].quantity"),
            unit_price=parse_amount(item.get("unit_price"), f"items[{index}].unit_price", required=False),
        ))
    return lines


def resolve_unit_price(product: Product, line: SaleLine, currency_id: int, policy: str) -> Decimal:
    """
    Price for one sale line.

    An explicit unit price on the line wins, including an explicit 0.
    Otherwise the product's listed price in the sale currency is used. With
    neither, "zero-price" sells the line for 0 and "reject" fails the sale.
    """
    if policy not in PRICE_POLICIES:
        raise InvalidRequestError(f"Unknown unpriced item policy: {policy}")

    if line.unit_price is not None:
        if line.unit_price < 0:
            raise InvalidRequestError("unit_price must not be negative", details={"product_id": product.id})
        return line.unit_price

    listed = product.price_for(currency_id)
    if listed is not None:
        return to_decimal(listed)

    if policy == PRICE_POLICY_REJECT:
        raise InvalidRequestError(
            f'"{product.name}" has no price in the sale currency',
            details={"product_id": product.id, "currency_id": currency_id},
        )
    return ZERO


def create_sale(
    *,
    branch_id,
    cash_register_id,
    currency_id,
    payment_type_id,
    warehouse_id,
    items,
    user_id: int | None,
    customer_name=None,
    discount=None,
    note=None,
    unpriced_policy: str | None = None,
) -> Sale:
    """
    Settle a checkout.

    Raises InvalidRequestError, RegisterNotFoundError, WarehouseNotFoundError,
    ProductNotFoundError or InsufficientStockError before any write;
    InternalError when the store fails mid-commit (nothing is kept).
    """
    require_fields(
        {
            "branch_id": branch_id,
            "cash_register_id": cash_register_id,
            "currency_id": currency_id,
            "payment_type_id": payment_type_id,
            "warehouse_id": warehouse_id,
        },
        "branch_id", "cash_register_id", "currency_id", "payment_type_id", "warehouse_id",
    )
    branch_id = parse_int(branch_id, "branch_id")
    cash_register_id = parse_int(cash_register_id, "cash_register_id")
    currency_id = parse_int(currency_id, "currency_id")
    payment_type_id = parse_int(payment_type_id, "payment_type_id")
    warehouse_id = parse_int(warehouse_id, "warehouse_id")
    lines = parse_sale_lines(items)

    discount = parse_amount(discount, "discount", required=False) or ZERO
    if discount < 0:
        raise InvalidRequestError("discount must not be negative")
    customer_name = optional_text(customer_name, 120)
    note = optional_text(note)
    policy = unpriced_policy or current_app.config.get("UNPRICED_ITEM_POLICY", PRICE_POLICY_ZERO)
    allow_oversized_discount = bool(current_app.config.get("ALLOW_DISCOUNT_OVER_SUBTOTAL", False))

    def _op(session):
        register = get_register(session, cash_register_id, lock=True)

        warehouse = session.get(Warehouse, warehouse_id)
        if warehouse is None:
            raise WarehouseNotFoundError(warehouse_id)

        requested: dict[int, int] = {}
        resolved = []
        for line in lines:
            product = session.get(Product, line.product_id)
            if product is None:
                raise ProductNotFoundError(line.product_id)
            if line.quantity <= 0:
                raise InvalidRequestError(
                    "quantity must be positive",
                    details={"product_id": line.product_id, "quantity": line.quantity},
                )

            requested[product.id] = requested.get(product.id, 0) + line.quantity
            available = get_quantity(session, product.id, warehouse.id, lock=True)
            if available < requested[product.id]:
                raise InsufficientStockError(
                    product_id=product.id,
                    warehouse_id=warehouse.id,
                    available=available,
                    requested=requested[product.id],
                    product_name=product.name,
                )
            resolved.append((product, line))

        priced = [
            (product, line, resolve_unit_price(product, line, currency_id, policy))
            for product, line in resolved
        ]

        sale = Sale(
            branch_id=branch_id,
            cash_register_id=register.id,
            currency_id=currency_id,
            payment_type_id=payment_type_id,
            user_id=user_id,
            customer_name=customer_name,
            discount=discount,
            note=note,
        )

        subtotal = ZERO
        cost_total = ZERO
        for product, line, unit_price in priced:
            cost_price = to_decimal(product.cost_price or 0)
            total_price = unit_price * line.quantity
            line_cost = cost_price * line.quantity
            subtotal += total_price
            cost_total += line_cost
            sale.items.append(SaleItem(
                product_id=product.id,
                warehouse_id=warehouse.id,
                quantity=line.quantity,
                unit_price=unit_price,
                cost_price=cost_price,
                total_price=total_price,
                profit=total_price - line_cost,
            ))

        if discount > subtotal and not allow_oversized_discount:
            raise InvalidRequestError(
                "discount exceeds the sale subtotal",
                details={"discount": f"{discount:.2f}", "subtotal": f"{subtotal:.2f}"},
            )

        sale.subtotal = subtotal
        sale.total_amount = subtotal - discount
        sale.cost_total = cost_total
        sale.profit = sale.total_amount - cost_total

        session.add(sale)
        session.flush()

        low_stock = {}
        for item in sale.items:
            remaining = apply_stock_delta(
                session,
                product_id=item.product_id,
                warehouse_id=item.warehouse_id,
                delta=-item.quantity,
                actor_id=user_id,
                kind=MOVEMENT_OUT,
                reference=(REFERENCE_SALE, sale.id),
                note=f"Sale #{sale.id}",
            )
            if remaining <= warehouse.low_stock_threshold:
                low_stock[item.product_id] = (
                    find_stock(session, item.product_id, warehouse.id),
                    warehouse.low_stock_threshold,
                )

        apply_balance_delta(
            session,
            register_id=register.id,
            delta=sale.total_amount,
            actor_id=user_id,
            reference_type=REFERENCE_SALE,
            reference_id=sale.id,
            note=f"Sale #{sale.id}",
            currency_id=currency_id,
            payment_type_id=payment_type_id,
        )
        return sale, list(low_stock.values())

    sale, low_stock = run_in_transaction(_op)

    current_app.logger.info(
        "sale %s settled on register %s total=%.2f",
        sale.id, sale.cash_register_id, sale.total_amount,
    )
    notify(sale_completed, sale)
    notify_low_stock(low_stock)
    return sale


def get_sale(sale_id: int) -> Sale | None:
    return db.session.get(Sale, sale_id)


def list_sales(*, branch_id=None, cash_register_id=None, user_id=None, date_from=None, date_to=None,
               limit: int = 200) -> list[Sale]:
    query = db.session.query(Sale)
    if branch_id is not None:
        query = query.filter(Sale.branch_id == branch_id)
    if cash_register_id is not None:
        query = query.filter(Sale.cash_register_id == cash_register_id)
    if user_id is not None:
        query = query.filter(Sale.user_id == user_id)
    if date_from is not None:
        query = query.filter(Sale.created_at >= date_from)
    if date_to is not None:
        query = query.filter(Sale.created_at <= date_to)
    return query.order_by(Sale.id.desc()).limit(limit).all()

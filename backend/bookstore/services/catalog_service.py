# Overview: Product catalog: create, patch, price list replacement, lookup and search.

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..errors import InvalidRequestError, ProductNotFoundError
from ..extensions import db
from ..models import Author, Category, Currency, Product, ProductPrice
from ..validation import optional_text, parse_amount, parse_bool, parse_int, require_fields
from .concurrency import run_in_transaction

PRODUCT_TEXT_FIELDS = {"name", "alt_name", "description", "isbn", "barcode"}
PRODUCT_REF_FIELDS = {"category_id": Category, "author_id": Author}


def _clean_prices(session, prices) -> list[tuple[int, object]]:
    """[{currency_id, price}] -> [(currency_id, Decimal)]; one entry per currency."""
    if not isinstance(prices, list):
        raise InvalidRequestError("prices must be a list")

    cleaned = []
    seen = set()
    for index, entry in enumerate(prices):
        if not isinstance(entry, dict):
            raise InvalidRequestError(f"prices[{index}] must be an object")
        currency_id = parse_int(entry.get("currency_id"), f"prices[{index}].currency_id")
        price = parse_amount(entry.get("price"), f"prices[{index}].price")
        if price < 0:
            raise InvalidRequestError(f"prices[{index}].price must not be negative")
        if currency_id in seen:
            raise InvalidRequestError(
                "Duplicate currency in price list",
                details={"currency_id": currency_id},
            )
        if session.get(Currency, currency_id) is None:
            raise InvalidRequestError(f"Currency {currency_id} not found", details={"currency_id": currency_id})
        seen.add(currency_id)
        cleaned.append((currency_id, price))
    return cleaned


def apply_product_patch(session, product: Product, patch: dict) -> None:
    for field in PRODUCT_TEXT_FIELDS:
        if field in patch:
            value = optional_text(patch[field], 255 if field != "description" else 10000)
            if field == "name" and not value:
                raise InvalidRequestError("name required", details={"missing": ["name"]})
            setattr(product, field, value)

    for field, model in PRODUCT_REF_FIELDS.items():
        if field in patch:
            ref_id = parse_int(patch[field], field, required=False)
            if ref_id is not None and session.get(model, ref_id) is None:
                raise InvalidRequestError(f"{field} {ref_id} not found", details={field: ref_id})
            setattr(product, field, ref_id)

    if "cost_price" in patch:
        cost = parse_amount(patch["cost_price"], "cost_price")
        if cost < 0:
            raise InvalidRequestError("cost_price must not be negative")
        product.cost_price = cost

    if "is_active" in patch:
        product.is_active = parse_bool(patch["is_active"])

    if "prices" in patch:
        # Replaced wholesale; delete-orphan cascade drops the old rows
        product.prices = [
            ProductPrice(currency_id=currency_id, price=price)
            for currency_id, price in _clean_prices(session, patch["prices"])
        ]


def create_product(patch: dict) -> Product:
    require_fields(patch, "name")

    def _op(session):
        product = Product(cost_price=0)
        apply_product_patch(session, product, patch)
        session.add(product)
        session.flush()
        return product

    product = run_in_transaction(_op)
    current_app.logger.info("product %s created name=%r", product.id, product.name)
    return product


def update_product(product_id: int, patch: dict) -> Product:
    def _op(session):
        product = session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        if product.prices and "prices" in patch:
            # Flush the deletes before the new rows hit the (product, currency) unique key
            product.prices = []
            session.flush()
        apply_product_patch(session, product, patch)
        session.flush()
        return product

    return run_in_transaction(_op)


def deactivate_product(product_id: int) -> Product:
    return update_product(product_id, {"is_active": False})


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def find_by_code(code: str) -> Product | None:
    """Exact barcode or ISBN match among active products."""
    code = (code or "").strip()
    if not code:
        return None
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True))
        .filter(or_(Product.barcode == code, Product.isbn == code))
        .order_by(Product.id)
        .first()
    )


def list_products(*, search: str | None = None, category_id=None, author_id=None,
                  include_inactive: bool = False, page: int | None = None, per_page: int | None = None) -> dict:
    """
    Product listing with optional search and pagination.

    search matches name, alt_name, ISBN and barcode (case-insensitive).
    Without page, every match is returned.
    """
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if author_id is not None:
        query = query.filter(Product.author_id == author_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            Product.name.ilike(pattern),
            Product.alt_name.ilike(pattern),
            Product.isbn.ilike(pattern),
            Product.barcode.ilike(pattern),
        ))
    query = query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = query.all()
        return {"items": [p.to_dict(include_stock=True) for p in products], "count": len(products)}

    per_page = min(per_page or 20, 100)
    page = max(page, 1)
    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    products = query.offset((page - 1) * per_page).limit(per_page).all()
    return {
        "items": [p.to_dict(include_stock=True) for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }

# Overview: Flask API routes for the product catalog and stock adjustment.

"""
Product routes.

Reads are open to every authenticated user; catalog edits and stock
adjustments need ADMIN or MANAGER.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import InternalError, NotFoundError, SettlementError
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import catalog_service, inventory_service, ledger_service
from ..validation import parse_bool, parse_int

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    Query params:
    - search: matches name, alt_name, ISBN, barcode
    - category_id, author_id
    - include_inactive: bool
    - page, per_page: pagination (all items when page is omitted)
    """
    try:
        result = catalog_service.list_products(
            search=request.args.get("search"),
            category_id=parse_int(request.args.get("category_id"), "category_id", required=False),
            author_id=parse_int(request.args.get("author_id"), "author_id", required=False),
            include_inactive=bool(parse_bool(request.args.get("include_inactive"))),
            page=parse_int(request.args.get("page"), "page", required=False),
            per_page=parse_int(request.args.get("per_page"), "per_page", required=False),
        )
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(result), 200


@products_bp.get("/lookup")
@require_auth
def lookup_product():
    """Exact barcode or ISBN match: ?code=..."""
    code = request.args.get("code")
    product = catalog_service.find_by_code(code)
    if product is None:
        e = NotFoundError(f"No product with barcode or ISBN {code!r}", {"code": code})
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"product": product.to_dict(include_stock=True)}), 200


@products_bp.get("/low-stock")
@require_auth
def low_stock():
    try:
        warehouse_id = parse_int(request.args.get("warehouse_id"), "warehouse_id", required=False)
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    stocks = inventory_service.list_low_stock(warehouse_id)
    return jsonify({
        "items": [
            {**s.to_dict(), "product": s.product.summary()} for s in stocks
        ],
        "count": len(stocks),
    }), 200


@products_bp.get("/<int:product_id>")
@require_auth
def get_product(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    data = product.to_dict(include_stock=True)
    data["total_quantity"] = ledger_service.stock_total(product_id)
    return jsonify({"product": data}), 200


@products_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def create_product():
    """Body: name, alt_name?, description?, isbn?, barcode?, category_id?, author_id?, cost_price?, prices?"""
    data = request.get_json(silent=True) or {}
    try:
        product = catalog_service.create_product(data)
        return jsonify({"product": product.to_dict()}), 201
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        current_app.logger.exception("Failed to create product")
        return jsonify(InternalError(str(e)).to_dict()), 500


@products_bp.put("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def update_product(product_id: int):
    """Partial update. A "prices" list replaces the whole price list."""
    data = request.get_json(silent=True) or {}
    try:
        product = catalog_service.update_product(product_id, data)
        return jsonify({"product": product.to_dict()}), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        current_app.logger.exception("Failed to update product")
        return jsonify(InternalError(str(e)).to_dict()), 500


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def delete_product(product_id: int):
    """Soft delete: the product stays referenced by past sales and movements."""
    try:
        product = catalog_service.deactivate_product(product_id)
        return jsonify({"product": product.to_dict()}), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        current_app.logger.exception("Failed to delete product")
        return jsonify(InternalError(str(e)).to_dict()), 500


@products_bp.post("/<int:product_id>/adjust-stock")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def adjust_stock(product_id: int):
    """Body: warehouse_id, quantity (absolute target), note?"""
    data = request.get_json(silent=True) or {}
    try:
        stock = inventory_service.adjust_stock_to(
            product_id=product_id,
            warehouse_id=data.get("warehouse_id"),
            quantity=data.get("quantity"),
            user_id=g.current_user.id,
            note=data.get("note"),
        )
        return jsonify({"stock": stock.to_dict()}), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify(InternalError(str(e)).to_dict()), 500


@products_bp.get("/<int:product_id>/movements")
@require_auth
def product_movements(product_id: int):
    try:
        catalog_service.get_product(product_id)
        movements = inventory_service.list_movements(
            product_id,
            warehouse_id=parse_int(request.args.get("warehouse_id"), "warehouse_id", required=False),
            limit=min(parse_int(request.args.get("limit"), "limit", required=False) or 200, 1000),
        )
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"items": [m.to_dict() for m in movements], "count": len(movements)}), 200

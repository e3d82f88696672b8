# Overview: Flask API routes for POS sales; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import InternalError, NotFoundError, SettlementError
from ..services import sales_service
from ..validation import parse_datetime, parse_int

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Settle a checkout.

    Body: branch_id, cash_register_id, currency_id, payment_type_id,
    warehouse_id, items [{product_id, quantity, unit_price?}],
    discount?, customer_name?, note?
    Available to: every authenticated role
    """
    data = request.get_json(silent=True) or {}
    try:
        sale = sales_service.create_sale(
            branch_id=data.get("branch_id"),
            cash_register_id=data.get("cash_register_id"),
            currency_id=data.get("currency_id"),
            payment_type_id=data.get("payment_type_id"),
            warehouse_id=data.get("warehouse_id"),
            items=data.get("items"),
            user_id=g.current_user.id,
            customer_name=data.get("customer_name"),
            discount=data.get("discount"),
            note=data.get("note"),
        )
        return jsonify({"sale": sale.to_dict()}), 201
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        current_app.logger.exception("Failed to create sale")
        return jsonify(InternalError(str(e)).to_dict()), 500


@sales_bp.get("")
@require_auth
def list_sales_route():
    """Query params: branch_id, cash_register_id, date_from, date_to (ISO-8601)."""
    try:
        sales = sales_service.list_sales(
            branch_id=parse_int(request.args.get("branch_id"), "branch_id", required=False),
            cash_register_id=parse_int(request.args.get("cash_register_id"), "cash_register_id", required=False),
            date_from=parse_datetime(request.args.get("date_from"), "date_from"),
            date_to=parse_datetime(request.args.get("date_to"), "date_to"),
        )
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"items": [s.to_dict() for s in sales], "count": len(sales)}), 200


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    sale = sales_service.get_sale(sale_id)
    if sale is None:
        e = NotFoundError(f"Sale {sale_id} not found", {"sale_id": sale_id})
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"sale": sale.to_dict()}), 200

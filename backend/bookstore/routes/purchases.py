# Overview: Flask API routes for supplier purchases; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import InternalError, SettlementError
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import purchase_service
from ..validation import parse_datetime, parse_int

purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def create_purchase_route():
    """Body: supplier_id, currency_id, items [{product_id, warehouse_id, quantity, unit_price}], note?"""
    data = request.get_json(silent=True) or {}
    try:
        purchase = purchase_service.create_purchase(
            supplier_id=data.get("supplier_id"),
            currency_id=data.get("currency_id"),
            items=data.get("items"),
            user_id=g.current_user.id,
            note=data.get("note"),
        )
        return jsonify({"purchase": purchase.to_dict()}), 201
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        current_app.logger.exception("Failed to create purchase")
        return jsonify(InternalError(str(e)).to_dict()), 500


@purchases_bp.get("")
@require_auth
def list_purchases_route():
    try:
        purchases = purchase_service.list_purchases(
            status=(request.args.get("status") or "").upper() or None,
            supplier_id=parse_int(request.args.get("supplier_id"), "supplier_id", required=False),
            date_from=parse_datetime(request.args.get("date_from"), "date_from"),
            date_to=parse_datetime(request.args.get("date_to"), "date_to"),
        )
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"items": [p.to_dict() for p in purchases], "count": len(purchases)}), 200


@purchases_bp.get("/<int:purchase_id>")
@require_auth
def get_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.get_purchase(purchase_id)
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"purchase": purchase.to_dict()}), 200


@purchases_bp.post("/<int:purchase_id>/receive")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def receive_purchase_route(purchase_id: int):
    """PENDING -> RECEIVED; adds every item to stock."""
    try:
        purchase = purchase_service.receive_purchase(purchase_id, user_id=g.current_user.id)
        return jsonify({"purchase": purchase.to_dict()}), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        current_app.logger.exception("Failed to receive purchase")
        return jsonify(InternalError(str(e)).to_dict()), 500


@purchases_bp.post("/<int:purchase_id>/cancel")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def cancel_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.cancel_purchase(purchase_id, user_id=g.current_user.id)
        return jsonify({"purchase": purchase.to_dict()}), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        current_app.logger.exception("Failed to cancel purchase")
        return jsonify(InternalError(str(e)).to_dict()), 500

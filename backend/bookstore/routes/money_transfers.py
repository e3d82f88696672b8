# Overview: Flask API routes for register-to-register money transfers.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import InternalError, SettlementError
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import transfer_service
from ..validation import parse_int

money_transfers_bp = Blueprint("money_transfers", __name__, url_prefix="/api/money-transfers")


@money_transfers_bp.get("")
@require_auth
def list_transfers():
    try:
        transfers = transfer_service.list_transfers(
            cash_register_id=parse_int(request.args.get("cash_register_id"), "cash_register_id", required=False),
        )
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"items": [t.to_dict() for t in transfers], "count": len(transfers)}), 200


@money_transfers_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def create_transfer():
    """Body: from_register_id, to_register_id, amount, note?"""
    data = request.get_json(silent=True) or {}
    try:
        transfer = transfer_service.create_transfer(
            from_register_id=data.get("from_register_id"),
            to_register_id=data.get("to_register_id"),
            amount=data.get("amount"),
            user_id=g.current_user.id,
            note=data.get("note"),
        )
        return jsonify({"transfer": transfer.to_dict()}), 201
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        current_app.logger.exception("Failed to create money transfer")
        return jsonify(InternalError(str(e)).to_dict()), 500

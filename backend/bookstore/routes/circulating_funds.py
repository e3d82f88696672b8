# Overview: Flask API routes for circulating fund deposits and withdrawals.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import InternalError, SettlementError
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import fund_service
from ..validation import parse_int

circulating_funds_bp = Blueprint("circulating_funds", __name__, url_prefix="/api/circulating-funds")


@circulating_funds_bp.get("")
@require_auth
def list_funds():
    """Query params: cash_register_id, type (DEPOSIT | WITHDRAWAL)."""
    try:
        funds = fund_service.list_funds(
            cash_register_id=parse_int(request.args.get("cash_register_id"), "cash_register_id", required=False),
            kind=(request.args.get("type") or "").upper() or None,
        )
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"items": [f.to_dict() for f in funds], "count": len(funds)}), 200


def _record(action, label: str):
    data = request.get_json(silent=True) or {}
    try:
        fund = action(
            cash_register_id=data.get("cash_register_id"),
            amount=data.get("amount"),
            user_id=g.current_user.id,
            depositor_name=data.get("depositor_name"),
            note=data.get("note"),
        )
        return jsonify({"fund": fund.to_dict()}), 201
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        current_app.logger.exception("Failed to record %s", label)
        return jsonify(InternalError(str(e)).to_dict()), 500


@circulating_funds_bp.post("/deposit")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def deposit():
    """Body: cash_register_id, amount, depositor_name?, note?"""
    return _record(fund_service.deposit, "deposit")


@circulating_funds_bp.post("/withdraw")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def withdraw():
    """Body: cash_register_id, amount, depositor_name?, note?"""
    return _record(fund_service.withdraw, "withdrawal")

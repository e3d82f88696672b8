# Overview: Flask API routes for cash registers and manual balance adjustment.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import InternalError, SettlementError
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import ledger_service, register_service
from ..validation import parse_bool, parse_int

cash_registers_bp = Blueprint("cash_registers", __name__, url_prefix="/api/cash-registers")


@cash_registers_bp.get("")
@require_auth
def list_registers():
    try:
        registers = register_service.list_registers(
            branch_id=parse_int(request.args.get("branch_id"), "branch_id", required=False),
            include_inactive=bool(parse_bool(request.args.get("include_inactive"))),
        )
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"items": [r.to_dict() for r in registers], "count": len(registers)}), 200


@cash_registers_bp.get("/<int:register_id>")
@require_auth
def get_register(register_id: int):
    try:
        register = register_service.find_register(register_id)
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"cash_register": register.to_dict()}), 200


@cash_registers_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def create_register():
    """Body: name, branch_id, currency_id, balance? (opening balance)"""
    data = request.get_json(silent=True) or {}
    try:
        register = register_service.create_register(
            name=data.get("name"),
            branch_id=data.get("branch_id"),
            currency_id=data.get("currency_id"),
            balance=data.get("balance"),
            user_id=g.current_user.id,
        )
        return jsonify({"cash_register": register.to_dict()}), 201
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        current_app.logger.exception("Failed to create cash register")
        return jsonify(InternalError(str(e)).to_dict()), 500


@cash_registers_bp.put("/<int:register_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def update_register(register_id: int):
    """Body: name?, branch_id?, is_active?. The balance only moves through settlements."""
    data = request.get_json(silent=True) or {}
    try:
        register = register_service.update_register(
            register_id,
            name=data.get("name"),
            branch_id=data.get("branch_id"),
            is_active=data.get("is_active"),
        )
        return jsonify({"cash_register": register.to_dict()}), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        current_app.logger.exception("Failed to update cash register")
        return jsonify(InternalError(str(e)).to_dict()), 500


@cash_registers_bp.delete("/<int:register_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def delete_register(register_id: int):
    try:
        register = register_service.deactivate_register(register_id)
        return jsonify({"cash_register": register.to_dict()}), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        current_app.logger.exception("Failed to delete cash register")
        return jsonify(InternalError(str(e)).to_dict()), 500


@cash_registers_bp.post("/<int:register_id>/adjust-balance")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def adjust_balance(register_id: int):
    """Body: amount (signed), note?"""
    data = request.get_json(silent=True) or {}
    try:
        register = register_service.adjust_balance(
            register_id,
            amount=data.get("amount"),
            user_id=g.current_user.id,
            note=data.get("note"),
        )
        return jsonify({"cash_register": register.to_dict()}), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        current_app.logger.exception("Failed to adjust cash register balance")
        return jsonify(InternalError(str(e)).to_dict()), 500


@cash_registers_bp.get("/<int:register_id>/movements")
@require_auth
def register_movements(register_id: int):
    try:
        movements = register_service.list_movements(
            register_id,
            limit=min(parse_int(request.args.get("limit"), "limit", required=False) or 200, 1000),
        )
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"items": [m.to_dict() for m in movements], "count": len(movements)}), 200


@cash_registers_bp.get("/<int:register_id>/verify")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def verify_register(register_id: int):
    """Recompute the balance from the movement log."""
    try:
        report = ledger_service.verify_register(register_id)
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(report), 200

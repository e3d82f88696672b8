# Overview: Flask API routes for reference data (branches, warehouses, currencies, ...).

"""
One list/create/deactivate triple per resource in
reference_service.RESOURCES, registered under /api/<resource>.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import InternalError, SettlementError
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import reference_service
from ..validation import parse_bool

reference_bp = Blueprint("reference", __name__, url_prefix="/api")


@require_auth
def list_items(resource: str):
    include_inactive = bool(parse_bool(request.args.get("include_inactive")))
    items = reference_service.list_items(resource, include_inactive=include_inactive)
    return jsonify({"items": [i.to_dict() for i in items], "count": len(items)}), 200


@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def create_item(resource: str):
    data = request.get_json(silent=True) or {}
    try:
        item = reference_service.create_item(resource, data)
        return jsonify({"item": item.to_dict()}), 201
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        current_app.logger.exception("Failed to create %s", resource)
        return jsonify(InternalError(str(e)).to_dict()), 500


@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def deactivate_item(resource: str, item_id: int):
    try:
        item = reference_service.deactivate_item(resource, item_id)
        return jsonify({"item": item.to_dict()}), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        current_app.logger.exception("Failed to deactivate %s", resource)
        return jsonify(InternalError(str(e)).to_dict()), 500


for _name in reference_service.RESOURCES:
    _endpoint = _name.replace("-", "_")
    reference_bp.add_url_rule(
        f"/{_name}", f"list_{_endpoint}", list_items, methods=["GET"], defaults={"resource": _name},
    )
    reference_bp.add_url_rule(
        f"/{_name}", f"create_{_endpoint}", create_item, methods=["POST"], defaults={"resource": _name},
    )
    reference_bp.add_url_rule(
        f"/{_name}/<int:item_id>", f"deactivate_{_endpoint}", deactivate_item,
        methods=["DELETE"], defaults={"resource": _name},
    )

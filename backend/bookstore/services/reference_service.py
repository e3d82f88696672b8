# Overview: List, create and soft-deactivate reference data (branches, warehouses, currencies, ...).

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from flask import current_app

from ..errors import InvalidRequestError, NotFoundError
from ..extensions import db
from ..models import Author, Branch, Category, Currency, PaymentType, Supplier, Warehouse
from ..validation import optional_text, parse_bool, parse_int, require_fields


@dataclass(frozen=True)
class ReferenceResource:
    model: type
    label: str
    required: tuple[str, ...] = ("name",)
    text_fields: dict[str, int] = field(default_factory=dict)
    int_fields: tuple[str, ...] = ()


RESOURCES: dict[str, ReferenceResource] = {
    "branches": ReferenceResource(Branch, "Branch", text_fields={"name": 120, "address": 255, "phone": 32}),
    "warehouses": ReferenceResource(
        Warehouse, "Warehouse",
        text_fields={"name": 120, "address": 255},
        int_fields=("branch_id", "low_stock_threshold"),
    ),
    "currencies": ReferenceResource(
        Currency, "Currency", required=("code", "name"), text_fields={"code": 8, "name": 64, "symbol": 16},
    ),
    "payment-types": ReferenceResource(PaymentType, "Payment type", text_fields={"name": 64}),
    "categories": ReferenceResource(Category, "Category", text_fields={"name": 120, "description": 2000}),
    "authors": ReferenceResource(Author, "Author", text_fields={"name": 120, "biography": 5000}),
    "suppliers": ReferenceResource(Supplier, "Supplier", text_fields={"name": 120, "phone": 32, "address": 255}),
}


def get_resource(name: str) -> ReferenceResource:
    resource = RESOURCES.get(name)
    if resource is None:
        raise NotFoundError(f"Unknown resource: {name}")
    return resource


def list_items(name: str, *, include_inactive: bool = False) -> list:
    resource = get_resource(name)
    query = db.session.query(resource.model)
    if not include_inactive:
        query = query.filter(resource.model.is_active.is_(True))
    return query.order_by(resource.model.id).all()


def create_item(name: str, payload: dict):
    resource = get_resource(name)
    require_fields(payload, *resource.required)

    values = {}
    for key, max_length in resource.text_fields.items():
        values[key] = optional_text(payload.get(key), max_length)
    for key in resource.int_fields:
        values[key] = parse_int(payload.get(key), key, required=False)

    if resource.model is Warehouse:
        threshold = values.get("low_stock_threshold")
        if threshold is None:
            values["low_stock_threshold"] = current_app.config.get("DEFAULT_LOW_STOCK_THRESHOLD", 5)
        elif threshold < 0:
            raise InvalidRequestError("low_stock_threshold must be zero or positive")
        if values.get("branch_id") is not None and db.session.get(Branch, values["branch_id"]) is None:
            raise InvalidRequestError(f"Branch {values['branch_id']} not found")

    if resource.model is Currency:
        values["code"] = values["code"].upper()
        if db.session.query(Currency).filter_by(code=values["code"]).first():
            raise InvalidRequestError(f"Currency {values['code']} already exists")
        try:
            values["rate"] = Decimal(str(payload.get("rate", 1)))
        except InvalidOperation:
            raise InvalidRequestError("rate must be a number")
        values["is_default"] = bool(parse_bool(payload.get("is_default")))
        if values["is_default"]:
            db.session.query(Currency).update({Currency.is_default: False})

    item = resource.model(**values)
    db.session.add(item)
    db.session.commit()
    current_app.logger.info("%s %s created", resource.label, item.id)
    return item


def deactivate_item(name: str, item_id: int):
    resource = get_resource(name)
    item = db.session.get(resource.model, item_id)
    if item is None:
        raise NotFoundError(f"{resource.label} {item_id} not found", {"id": item_id})
    item.is_active = False
    db.session.commit()
    return item

# Overview: Error kinds raised by settlement services and mapped to HTTP responses by routes.

"""
Settlement error hierarchy.

Every precondition failure in a settlement is raised as one of these before
any write happens. Routes turn them into

    {"error": message, "kind": kind, "details": {...}}

with the status code carried by the class. Anything else that escapes a
settlement is an INTERNAL error.
"""

from __future__ import annotations


class SettlementError(Exception):
    """Base class for every error a settlement reports to its caller."""

    kind = "INTERNAL"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind,
            "details": self.details,
        }


class InvalidRequestError(SettlementError):
    """Missing or malformed input: empty item list, same-register transfer, etc."""

    kind = "INVALID_REQUEST"
    status_code = 400


class NotFoundError(SettlementError):
    kind = "NOT_FOUND"
    status_code = 404


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id):
        super().__init__(f"Product {product_id} not found", {"product_id": product_id})


class RegisterNotFoundError(NotFoundError):
    def __init__(self, register_id):
        super().__init__(f"Cash register {register_id} not found", {"cash_register_id": register_id})


class WarehouseNotFoundError(NotFoundError):
    def __init__(self, warehouse_id):
        super().__init__(f"Warehouse {warehouse_id} not found", {"warehouse_id": warehouse_id})


class PurchaseNotFoundError(NotFoundError):
    def __init__(self, purchase_id):
        super().__init__(f"Purchase {purchase_id} not found", {"purchase_id": purchase_id})


class SupplierNotFoundError(NotFoundError):
    def __init__(self, supplier_id):
        super().__init__(f"Supplier {supplier_id} not found", {"supplier_id": supplier_id})


class InsufficientStockError(SettlementError):
    kind = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(
        self,
        *,
        product_id: int,
        warehouse_id: int,
        available: int,
        requested: int,
        product_name: str | None = None,
    ):
        label = f'"{product_name}"' if product_name else f"Product {product_id}"
        super().__init__(
            f"Not enough {label} in stock. Available: {available}, requested: {requested}",
            {
                "product_id": product_id,
                "product_name": product_name,
                "warehouse_id": warehouse_id,
                "available": available,
                "requested": requested,
            },
        )


class InsufficientFundsError(SettlementError):
    kind = "INSUFFICIENT_FUNDS"
    status_code = 409

    def __init__(self, *, register_id: int, available, requested):
        super().__init__(
            f"Cash register {register_id} does not have enough funds. "
            f"Available: {available:.2f}, requested: {requested:.2f}",
            {
                "cash_register_id": register_id,
                "available": f"{available:.2f}",
                "requested": f"{requested:.2f}",
            },
        )


class InvalidStateError(SettlementError):
    """A status transition that is not allowed from the current status."""

    kind = "INVALID_STATE"
    status_code = 409

    def __init__(self, message: str, *, current_status: str):
        super().__init__(message, {"current_status": current_status})


class InternalError(SettlementError):
    """Unexpected store failure. The transaction has already been rolled back."""

    kind = "INTERNAL"
    status_code = 500

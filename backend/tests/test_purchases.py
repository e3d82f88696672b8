"""
Purchase lifecycle tests.

Verifies:
- Creation computes the total and has no stock effect
- Receipt adds stock, overwrites cost price and is guarded against repeats
- PENDING -> RECEIVED / CANCELLED are the only transitions
"""

from decimal import Decimal

import pytest

from bookstore.errors import (
    InvalidRequestError,
    InvalidStateError,
    ProductNotFoundError,
    PurchaseNotFoundError,
    SupplierNotFoundError,
    WarehouseNotFoundError,
)
from bookstore.models import FinancialMovement, Product, ProductMovement
from bookstore.models.inventory import MOVEMENT_IN
from bookstore.models.purchases import STATUS_CANCELLED, STATUS_PENDING, STATUS_RECEIVED
from bookstore.models.registers import REFERENCE_PURCHASE
from bookstore.services import purchase_service
from bookstore.services.stock_service import get_quantity


@pytest.fixture
def two_item_purchase(db_session, admin, supplier, currency, product, other_product, warehouse, second_warehouse):
    return purchase_service.create_purchase(
        supplier_id=supplier.id,
        currency_id=currency.id,
        user_id=admin.id,
        items=[
            {"product_id": product.id, "warehouse_id": warehouse.id, "quantity": 10, "unit_price": "3200"},
            {"product_id": other_product.id, "warehouse_id": second_warehouse.id, "quantity": 4, "unit_price": 7500},
        ],
        note="Weekly order",
    )


class TestCreatePurchase:

    def test_total_and_status(self, db_session, two_item_purchase):
        assert two_item_purchase.status == STATUS_PENDING
        assert two_item_purchase.total_amount == Decimal("62000")
        assert [i.total_price for i in two_item_purchase.items] == [Decimal("32000"), Decimal("30000")]
        assert db_session.query(ProductMovement).count() == 0

    def test_unknown_supplier(self, admin, currency, product, warehouse):
        with pytest.raises(SupplierNotFoundError):
            purchase_service.create_purchase(
                supplier_id=404, currency_id=currency.id, user_id=admin.id,
                items=[{"product_id": product.id, "warehouse_id": warehouse.id, "quantity": 1, "unit_price": 1}],
            )

    def test_unknown_product(self, admin, supplier, currency, warehouse):
        with pytest.raises(ProductNotFoundError):
            purchase_service.create_purchase(
                supplier_id=supplier.id, currency_id=currency.id, user_id=admin.id,
                items=[{"product_id": 404, "warehouse_id": warehouse.id, "quantity": 1, "unit_price": 1}],
            )

    def test_unknown_warehouse(self, admin, supplier, currency, product):
        with pytest.raises(WarehouseNotFoundError):
            purchase_service.create_purchase(
                supplier_id=supplier.id, currency_id=currency.id, user_id=admin.id,
                items=[{"product_id": product.id, "warehouse_id": 404, "quantity": 1, "unit_price": 1}],
            )

    @pytest.mark.parametrize("items", [
        [],
        [{"product_id": 1, "warehouse_id": 1, "quantity": 0, "unit_price": 1}],
        [{"product_id": 1, "warehouse_id": 1, "quantity": 1, "unit_price": -1}],
        [{"product_id": 1, "warehouse_id": 1, "quantity": 1}],
    ])
    def test_malformed_items(self, admin, supplier, currency, items):
        with pytest.raises(InvalidRequestError):
            purchase_service.create_purchase(
                supplier_id=supplier.id, currency_id=currency.id, user_id=admin.id, items=items,
            )


class TestReceivePurchase:

    def test_receipt_adds_stock_and_sets_cost(self, db_session, admin, two_item_purchase, product, other_product,
                                             warehouse, second_warehouse):
        received = purchase_service.receive_purchase(two_item_purchase.id, user_id=admin.id)

        assert received.status == STATUS_RECEIVED
        assert received.received_by_user_id == admin.id
        assert received.received_at is not None

        assert get_quantity(db_session, product.id, warehouse.id) == 10
        assert get_quantity(db_session, other_product.id, second_warehouse.id) == 4
        assert db_session.get(Product, product.id).cost_price == Decimal("3200")
        assert db_session.get(Product, other_product.id).cost_price == Decimal("7500")

        movements = db_session.query(ProductMovement).order_by(ProductMovement.id).all()
        assert len(movements) == 2
        assert all(m.type == MOVEMENT_IN for m in movements)
        assert all((m.reference_type, m.reference_id) == (REFERENCE_PURCHASE, received.id) for m in movements)
        assert [m.quantity_after for m in movements] == [10, 4]

    def test_receipt_adds_to_existing_stock(self, db_session, admin, set_stock, two_item_purchase, product,
                                            warehouse):
        set_stock(product, warehouse, 3)
        purchase_service.receive_purchase(two_item_purchase.id, user_id=admin.id)
        assert get_quantity(db_session, product.id, warehouse.id) == 13

    def test_receipt_has_no_cash_effect(self, db_session, admin, two_item_purchase):
        purchase_service.receive_purchase(two_item_purchase.id, user_id=admin.id)
        assert db_session.query(FinancialMovement).count() == 0

    def test_second_receipt_is_rejected(self, db_session, admin, two_item_purchase, product, warehouse):
        purchase_service.receive_purchase(two_item_purchase.id, user_id=admin.id)

        with pytest.raises(InvalidStateError) as exc_info:
            purchase_service.receive_purchase(two_item_purchase.id, user_id=admin.id)

        assert exc_info.value.details == {"current_status": STATUS_RECEIVED}
        assert get_quantity(db_session, product.id, warehouse.id) == 10
        assert db_session.query(ProductMovement).count() == 2
        assert db_session.get(Product, product.id).cost_price == Decimal("3200")

    def test_cannot_receive_cancelled(self, db_session, admin, two_item_purchase, product, warehouse):
        purchase_service.cancel_purchase(two_item_purchase.id, user_id=admin.id)

        with pytest.raises(InvalidStateError) as exc_info:
            purchase_service.receive_purchase(two_item_purchase.id, user_id=admin.id)

        assert exc_info.value.details == {"current_status": STATUS_CANCELLED}
        assert get_quantity(db_session, product.id, warehouse.id) == 0

    def test_unknown_purchase(self, admin):
        with pytest.raises(PurchaseNotFoundError):
            purchase_service.receive_purchase(999, user_id=admin.id)


class TestCancelPurchase:

    def test_pending_can_be_cancelled(self, admin, two_item_purchase):
        cancelled = purchase_service.cancel_purchase(two_item_purchase.id, user_id=admin.id)
        assert cancelled.status == STATUS_CANCELLED

    def test_cannot_cancel_received(self, admin, two_item_purchase):
        purchase_service.receive_purchase(two_item_purchase.id, user_id=admin.id)
        with pytest.raises(InvalidStateError):
            purchase_service.cancel_purchase(two_item_purchase.id, user_id=admin.id)
        assert purchase_service.get_purchase(two_item_purchase.id).status == STATUS_RECEIVED

    def test_cannot_cancel_twice(self, admin, two_item_purchase):
        purchase_service.cancel_purchase(two_item_purchase.id, user_id=admin.id)
        with pytest.raises(InvalidStateError):
            purchase_service.cancel_purchase(two_item_purchase.id, user_id=admin.id)

    def test_list_filters_by_status(self, admin, supplier, currency, product, warehouse, two_item_purchase):
        other = purchase_service.create_purchase(
            supplier_id=supplier.id, currency_id=currency.id, user_id=admin.id,
            items=[{"product_id": product.id, "warehouse_id": warehouse.id, "quantity": 1, "unit_price": 1}],
        )
        purchase_service.cancel_purchase(other.id, user_id=admin.id)

        pending = purchase_service.list_purchases(status=STATUS_PENDING)
        assert [p.id for p in pending] == [two_item_purchase.id]
        assert len(purchase_service.list_purchases(supplier_id=supplier.id)) == 2

"""
Amount coercion tests.

Verifies:
- Request amounts with more than two decimal places are rejected, not rounded
- Trailing zeros past the cent are accepted
- Stored values still format through the rounding helper
"""

from decimal import Decimal

import pytest

from bookstore.errors import InvalidRequestError
from bookstore.models import CirculatingFund, FinancialMovement
from bookstore.money import format_money, to_decimal
from bookstore.services import fund_service
from bookstore.validation import parse_amount, parse_positive_amount


class TestParseAmount:

    @pytest.mark.parametrize("value, expected", [
        ("10.50", Decimal("10.50")),
        ("10.500", Decimal("10.50")),
        ("7", Decimal("7.00")),
        (12, Decimal("12.00")),
        (0.1, Decimal("0.10")),
        (Decimal("3.1"), Decimal("3.10")),
    ])
    def test_accepts_cent_precision(self, value, expected):
        assert parse_amount(value) == expected

    @pytest.mark.parametrize("value", ["10.005", "0.001", 10.005, Decimal("1.999")])
    def test_rejects_sub_cent_digits(self, value):
        with pytest.raises(InvalidRequestError) as exc_info:
            parse_amount(value, "amount")
        assert exc_info.value.kind == "INVALID_REQUEST"
        assert "amount" in exc_info.value.message

    def test_positive_amount_rejects_sub_cent_digits(self):
        with pytest.raises(InvalidRequestError):
            parse_positive_amount("0.004")

    @pytest.mark.parametrize("value", ["abc", "NaN", "1e40", True, [1]])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(InvalidRequestError):
            parse_amount(value)

    def test_missing_optional(self):
        assert parse_amount(None, required=False) is None
        assert parse_amount("  ", required=False) is None


class TestMoneyHelpers:

    def test_to_decimal_rounds_by_default(self):
        assert to_decimal("10.005") == Decimal("10.01")

    def test_to_decimal_exact_raises(self):
        with pytest.raises(ValueError):
            to_decimal("10.005", exact=True)

    def test_format_money_rounds(self):
        assert format_money(Decimal("2.345")) == "2.35"
        assert format_money(None) is None


class TestSubCentRequests:

    def test_deposit_with_sub_cent_amount_is_rejected(self, db_session, admin, register):
        with pytest.raises(InvalidRequestError):
            fund_service.deposit(cash_register_id=register.id, amount="10.005", user_id=admin.id)

        assert db_session.query(CirculatingFund).count() == 0
        assert db_session.query(FinancialMovement).count() == 0
        db_session.refresh(register)
        assert register.balance == Decimal("0")

    def test_route_returns_400(self, client, admin_headers, register):
        response = client.post(
            '/api/circulating-funds/deposit',
            json={"cash_register_id": register.id, "amount": "10.005"},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json["kind"] == "INVALID_REQUEST"

"""
Notification tests: message formatting, Telegram delivery over a mock
transport, and isolation of settlements from failing receivers.
"""

import json
import logging
from decimal import Decimal

import httpx
import pytest
from flask import Flask

from bookstore.models import CashRegister, Sale
from bookstore.services import sales_service
from bookstore.services.notification_service import (
    TelegramNotifier,
    format_low_stock_message,
    format_sale_message,
    init_notifications,
)


@pytest.fixture
def telegram():
    """Connected notifier whose HTTP calls are captured instead of sent."""
    sent = []
    status = {"code": 200}

    def handler(request):
        sent.append((str(request.url), json.loads(request.content)))
        return httpx.Response(status["code"], json={"ok": status["code"] == 200})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    notifier = TelegramNotifier("123:abc", ["-100", "42"], client=client, api_base="https://tg.test/")
    notifier.connect()
    yield notifier, sent, status
    notifier.disconnect()
    client.close()


class TestMessages:

    def test_sale_message(self, db_session, cashier, product, other_product, warehouse, set_stock, sale_payload):
        set_stock(product, warehouse, 10)
        set_stock(other_product, warehouse, 10)
        sale = sales_service.create_sale(
            **sale_payload([
                {"product_id": product.id, "quantity": 2},
                {"product_id": other_product.id, "quantity": 1},
            ]),
            user_id=cashier.id,
        )

        message = format_sale_message(sale)

        assert message.splitlines() == [
            f"Sale #{sale.id}",
            "Cashier: Kassir Alieva",
            "Payment: Cash",
            "Items:",
            "- Clean Code x 2",
            "- O'tkan kunlar x 1",
            "Total: 22000.00 UZS",
            "Profit: 8000.00 UZS",
        ]

    def test_low_stock_message(self, db_session, product, warehouse, set_stock):
        stock = set_stock(product, warehouse, 2)

        assert format_low_stock_message(stock, 2) == (
            "Low stock\n"
            "Product: Clean Code\n"
            "Warehouse: Main Warehouse\n"
            "Remaining: 2"
        )


class TestTelegramNotifier:

    def test_send_posts_to_every_chat(self, telegram):
        notifier, sent, _ = telegram

        notifier.send("hello")

        assert notifier.send_url == "https://tg.test/bot123:abc/sendMessage"
        assert sent == [
            ("https://tg.test/bot123:abc/sendMessage", {"chat_id": "-100", "text": "hello"}),
            ("https://tg.test/bot123:abc/sendMessage", {"chat_id": "42", "text": "hello"}),
        ]

    def test_send_raises_on_http_error(self, telegram):
        notifier, _, status = telegram
        status["code"] = 502

        with pytest.raises(httpx.HTTPStatusError):
            notifier.send("hello")

    def test_sale_and_low_stock_delivered(self, db_session, telegram, cashier, product, warehouse, set_stock,
                                          sale_payload):
        _, sent, _ = telegram
        set_stock(product, warehouse, 20)
        sent.clear()

        sales_service.create_sale(**sale_payload([{"product_id": product.id, "quantity": 16}]),
                                  user_id=cashier.id)

        texts = [body["text"] for _, body in sent]
        assert len(texts) == 4
        assert texts[0].startswith("Sale #")
        assert texts[2].startswith("Low stock")
        assert "Remaining: 4" in texts[2]

    def test_telegram_outage_does_not_undo_sale(self, db_session, telegram, cashier, product, warehouse,
                                                register, set_stock, sale_payload, caplog):
        _, _, status = telegram
        status["code"] = 500
        set_stock(product, warehouse, 10)

        with caplog.at_level(logging.ERROR):
            sale = sales_service.create_sale(**sale_payload([{"product_id": product.id, "quantity": 1}]),
                                              user_id=cashier.id)

        assert "Notification receiver for sale-completed failed" in caplog.text
        db_session.expire_all()
        assert db_session.get(Sale, sale.id) is not None
        assert db_session.get(CashRegister, register.id).balance == Decimal("5000")


class TestInitNotifications:

    def test_disabled_without_configuration(self):
        app = Flask("notifications-off")
        app.config.update(TELEGRAM_BOT_TOKEN="123:abc", TELEGRAM_CHAT_IDS=[])

        assert init_notifications(app) is None
        assert "telegram_notifier" not in app.extensions

    def test_enabled_with_token_and_chats(self):
        app = Flask("notifications-on")
        app.config.update(TELEGRAM_BOT_TOKEN="123:abc", TELEGRAM_CHAT_IDS=["7"])

        notifier = init_notifications(app)
        try:
            assert app.extensions["telegram_notifier"] is notifier
            assert notifier.chat_ids == ["7"]
        finally:
            notifier.disconnect()
            notifier.client.close()

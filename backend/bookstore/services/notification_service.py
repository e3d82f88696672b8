# Overview: Post-commit domain signals and the optional Telegram notifier.

"""
Notifications

Settlements emit these signals only after their transaction commits:

- sale-completed: sender is the committed Sale.
- stock-low: sender is the ProductStock row; kwargs quantity and threshold.

Receivers run synchronously inside the request. A receiver that raises is
logged and skipped; it never reaches the caller and never undoes the
settlement, which is already durable by the time it runs.
"""

from __future__ import annotations

import httpx
from blinker import Namespace
from flask import current_app

from ..money import format_money

_signals = Namespace()

sale_completed = _signals.signal("sale-completed")
stock_low = _signals.signal("stock-low")

TELEGRAM_API_BASE = "https://api.telegram.org"


def notify(signal, sender, **payload) -> None:
    """Send a signal, isolating the caller from receiver failures."""
    for receiver in signal.receivers_for(sender):
        try:
            receiver(sender, **payload)
        except Exception:
            current_app.logger.exception("Notification receiver for %s failed", signal.name)


def notify_low_stock(stocks) -> None:
    """stocks: iterable of (ProductStock, threshold) pairs."""
    for stock, threshold in stocks:
        notify(stock_low, stock, quantity=stock.quantity, threshold=threshold)


def format_sale_message(sale) -> str:
    cashier = (sale.user.full_name or sale.user.username) if sale.user else "unknown"
    payment = sale.payment_type.name if sale.payment_type else "-"
    currency = sale.currency.code if sale.currency else ""

    lines = [
        f"Sale #{sale.id}",
        f"Cashier: {cashier}",
        f"Payment: {payment}",
        "Items:",
    ]
    for item in sale.items:
        name = item.product.name if item.product else f"Product {item.product_id}"
        lines.append(f"- {name} x {item.quantity}")
    lines.append(f"Total: {format_money(sale.total_amount)} {currency}".rstrip())
    lines.append(f"Profit: {format_money(sale.profit)} {currency}".rstrip())
    return "\n".join(lines)


def format_low_stock_message(stock, quantity: int) -> str:
    product = stock.product.name if stock.product else f"Product {stock.product_id}"
    warehouse = stock.warehouse.name if stock.warehouse else f"Warehouse {stock.warehouse_id}"
    return "\n".join([
        "Low stock",
        f"Product: {product}",
        f"Warehouse: {warehouse}",
        f"Remaining: {quantity}",
    ])


class TelegramNotifier:
    """
    Posts sale and low-stock messages to Telegram chats via the Bot API.

    client may be injected (tests pass an httpx.Client on a MockTransport).
    """

    def __init__(self, bot_token: str, chat_ids: list[str], *, client: httpx.Client | None = None,
                 api_base: str = TELEGRAM_API_BASE, timeout: float = 5.0):
        self.bot_token = bot_token
        self.chat_ids = list(chat_ids)
        self.api_base = api_base.rstrip("/")
        self.client = client or httpx.Client(timeout=timeout)

    @property
    def send_url(self) -> str:
        return f"{self.api_base}/bot{self.bot_token}/sendMessage"

    def send(self, text: str) -> None:
        for chat_id in self.chat_ids:
            response = self.client.post(self.send_url, json={"chat_id": chat_id, "text": text})
            response.raise_for_status()

    def on_sale_completed(self, sale, **kwargs) -> None:
        self.send(format_sale_message(sale))

    def on_stock_low(self, stock, *, quantity: int, **kwargs) -> None:
        self.send(format_low_stock_message(stock, quantity))

    def connect(self) -> None:
        sale_completed.connect(self.on_sale_completed, weak=False)
        stock_low.connect(self.on_stock_low, weak=False)

    def disconnect(self) -> None:
        sale_completed.disconnect(self.on_sale_completed)
        stock_low.disconnect(self.on_stock_low)


def init_notifications(app) -> TelegramNotifier | None:
    """Connect a TelegramNotifier when a bot token and at least one chat id are configured."""
    token = app.config.get("TELEGRAM_BOT_TOKEN")
    chat_ids = app.config.get("TELEGRAM_CHAT_IDS") or []
    if not token or not chat_ids:
        return None

    notifier = TelegramNotifier(token, chat_ids)
    notifier.connect()
    app.extensions["telegram_notifier"] = notifier
    app.logger.info("Telegram notifications enabled for %d chat(s)", len(chat_ids))
    return notifier

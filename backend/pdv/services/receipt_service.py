# Overview: Receipt rendering and dispatch after a successful settlement.

"""
Receipt Dispatch

WHY: Printing (or emailing, or displaying) a receipt is a side effect that
must happen exactly once per paid order and must never affect whether the
payment itself succeeds. Settlement calls dispatch_receipt after commit.

Handlers are registered per app under app.extensions; with none
registered the receipt is written to the log. A failing handler is logged
and the remaining handlers still run.
"""

import logging
from typing import Callable

from flask import Flask, current_app

from ..models import Order
from ..time_utils import to_utc_z
from ..validation import format_cents


logger = logging.getLogger(__name__)

EXTENSION_KEY = "pdv.receipt_handlers"

ReceiptHandler = Callable[[dict], None]


def register_handler(app: Flask, handler: ReceiptHandler) -> ReceiptHandler:
    app.extensions.setdefault(EXTENSION_KEY, []).append(handler)
    return handler


def build_receipt(order: Order) -> dict:
    lines = []
    for item in order.items:
        lines.append({
            "name": item.item_name,
            "quantity": item.quantity,
            "unit_price": format_cents(item.unit_price_cents),
            "total": format_cents(item.line_total_cents),
            "modifiers": [
                {"name": m.modifier_name, "quantity": m.quantity, "unit_price": format_cents(m.unit_price_cents)}
                for m in item.modifiers
            ],
            "notes": item.notes,
        })

    return {
        "order_id": order.id,
        "order_type": order.order_type,
        "table_id": order.table_id,
        "lines": lines,
        "subtotal": format_cents(order.subtotal_cents),
        "discount": format_cents(order.discount_cents),
        "service_fee": format_cents(order.service_fee_cents),
        "total": format_cents(order.total_cents),
        "payments": [
            {
                "method": p.method,
                "amount": format_cents(p.amount_cents),
                "received": format_cents(p.received_cents),
                "change": format_cents(p.change_cents),
            }
            for p in order.payments
        ],
        "paid_at": to_utc_z(order.paid_at),
        "notes": order.notes,
    }


def log_receipt(receipt: dict) -> None:
    logger.info(
        "Receipt for order %s: %s line(s), total %s, paid via %s",
        receipt["order_id"],
        len(receipt["lines"]),
        receipt["total"],
        ", ".join(f"{p['method']} {p['amount']}" for p in receipt["payments"]),
    )


def dispatch_receipt(order: Order) -> dict:
    receipt = build_receipt(order)
    handlers = current_app.extensions.get(EXTENSION_KEY) or [log_receipt]
    for handler in handlers:
        try:
            handler(receipt)
        except Exception:
            # One broken printer must not keep the receipt from the others
            logger.exception("Receipt handler %r failed for order %s", handler, order.id)
    return receipt

# Overview: Service-layer operations for payment; settles OPEN orders into PAID.

"""
Payment Settlement Service

WHY: Settlement is the one place money and stock move together. An order
is paid in full, in one call, with one or more tenders (split payment), or
not at all.

SEQUENCE (one database transaction):
 1. Parse tenders (amounts as decimal strings, exact cents)
 2. Order exists and is OPEN               -> InvalidOrderError
 3. Order has no payments yet              -> AlreadyPaidError
 4. Methods active; cash received >= amount -> ValidationError
 5. Sum of tenders == order total exactly  -> AmountMismatchError
 6. Insert payments (with method fee)
 7. Conditional update OPEN -> PAID        -> ConcurrentSettlementError
 8. Decrement stock (direct products, then combo components)
                                           -> InsufficientStockError
 9. PAID event, commit, then the receipt callback exactly once

Any failure after step 6 rolls the whole transaction back: no payments,
order still OPEN, and no stock decrement from this call survives.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from sqlalchemy import func

from ..errors import (
    AlreadyPaidError,
    AmountMismatchError,
    ConcurrentSettlementError,
    InsufficientStockError,
    InvalidOrderError,
    PdvError,
    ValidationError,
)
from ..extensions import db
from ..models import ComboItem, Order, Payment, PaymentMethod, Product
from ..time_utils import utcnow
from ..validation import parse_amount_cents, percent_of, require_operator
from . import receipt_service, stock_service
from .concurrency import compare_and_set
from .order_service import EVENT_PAID, ORDER_STATUS_OPEN, ORDER_STATUS_PAID, append_order_event


logger = logging.getLogger(__name__)


# =============================================================================
# PAYMENT METHODS (DEFAULTS)
# =============================================================================

METHOD_CASH = "CASH"
METHOD_PIX = "PIX"
METHOD_CARD = "CARD"

DEFAULT_PAYMENT_METHODS = [
    {"code": METHOD_CASH, "name": "Dinheiro", "is_cash": True},
    {"code": METHOD_PIX, "name": "PIX", "is_cash": False},
    {"code": METHOD_CARD, "name": "Cartao", "is_cash": False},
]


@dataclass(frozen=True)
class Tender:
    method: str
    amount_cents: int
    received_cents: int | None = None
    change_cents: int | None = None


@dataclass
class SettlementResult:
    order: Order
    payments: list[Payment]
    receipt: dict | None = None


def list_payment_methods(active_only: bool = True) -> list[PaymentMethod]:
    query = db.session.query(PaymentMethod)
    if active_only:
        query = query.filter(PaymentMethod.active.is_(True))
    return query.order_by(PaymentMethod.id).all()


def ensure_default_payment_methods() -> int:
    """Seed CASH/PIX/CARD if missing. Returns how many were created."""
    created = 0
    for spec in DEFAULT_PAYMENT_METHODS:
        if db.session.query(PaymentMethod).filter_by(code=spec["code"]).first():
            continue
        db.session.add(PaymentMethod(active=True, **spec))
        created += 1
    db.session.commit()
    return created


def get_order_payments(order_id: int) -> list[Payment]:
    return db.session.query(Payment).filter_by(order_id=order_id).order_by(Payment.id).all()


# =============================================================================
# TENDER PARSING / VALIDATION
# =============================================================================

def parse_tenders(raw: Any) -> list[Tender]:
    """Structural parsing of the payments array; no database access."""
    if not isinstance(raw, list) or not raw:
        raise ValidationError("payments must be a non-empty list")

    tenders = []
    for index, entry in enumerate(raw):
        where = f"payments[{index}]"
        if not isinstance(entry, dict):
            raise ValidationError(f"{where} must be an object")

        method = entry.get("method")
        if not isinstance(method, str) or not method.strip():
            raise ValidationError(f"{where}.method is required")

        amount = parse_amount_cents(entry.get("amount"), f"{where}.amount", allow_zero=False)
        received = None
        if entry.get("received") is not None:
            received = parse_amount_cents(entry.get("received"), f"{where}.received")
        change = None
        if entry.get("change") is not None:
            change = parse_amount_cents(entry.get("change"), f"{where}.change")

        tenders.append(Tender(
            method=method.strip().upper(),
            amount_cents=amount,
            received_cents=received,
            change_cents=change,
        ))
    return tenders


def _resolve_methods(tenders: list[Tender]) -> dict[str, PaymentMethod]:
    codes = {t.method for t in tenders}
    methods = {
        m.code: m
        for m in db.session.query(PaymentMethod).filter(PaymentMethod.code.in_(codes))
    }
    for code in sorted(codes):
        method = methods.get(code)
        if method is None or not method.active:
            raise ValidationError(f"Payment method {code} is not available")
    return methods


def _check_cash(tender: Tender, method: PaymentMethod) -> Tender:
    """Fill in received/change; only cash tenders may give change."""
    if not method.is_cash:
        if tender.received_cents not in (None, tender.amount_cents) or tender.change_cents:
            raise ValidationError(f"Change can only be given for cash payments ({tender.method})")
        return Tender(method=tender.method, amount_cents=tender.amount_cents)

    received = tender.received_cents if tender.received_cents is not None else tender.amount_cents
    if received < tender.amount_cents:
        raise ValidationError(
            f"Cash received ({received} cents) is less than the amount applied ({tender.amount_cents} cents)"
        )
    change = received - tender.amount_cents
    if tender.change_cents is not None and tender.change_cents != change:
        raise ValidationError(f"Change should be {change} cents, not {tender.change_cents}")
    return Tender(method=tender.method, amount_cents=tender.amount_cents, received_cents=received, change_cents=change)


def method_fee_cents(amount_cents: int, method: PaymentMethod) -> int:
    return percent_of(amount_cents, method.fee_percent_bps or 0) + (method.fee_fixed_cents or 0)


# =============================================================================
# SETTLEMENT STEPS
# =============================================================================

def _insert_payments(order: Order, tenders: list[Tender], methods: dict[str, PaymentMethod], operator_id: int) -> list[Payment]:
    now = utcnow()
    payments = []
    for tender in tenders:
        payment = Payment(
            order_id=order.id,
            method=tender.method,
            amount_cents=tender.amount_cents,
            received_cents=tender.received_cents,
            change_cents=tender.change_cents,
            fee_cents=method_fee_cents(tender.amount_cents, methods[tender.method]),
            created_by=operator_id,
            created_at=now,
        )
        db.session.add(payment)
        payments.append(payment)
    db.session.flush()
    return payments


def compute_stock_demand(order: Order) -> tuple[dict[int, int], dict[int, int]]:
    """
    Returns (direct, combo): product_id -> units, each aggregated across
    all lines of the order. Combo demand is component quantity times line
    quantity, summed over every combo line.
    """
    direct: dict[int, int] = {}
    combo_lines: dict[int, int] = {}
    for item in order.items:
        if item.product_id is not None:
            direct[item.product_id] = direct.get(item.product_id, 0) + item.quantity
        elif item.combo_id is not None:
            combo_lines[item.combo_id] = combo_lines.get(item.combo_id, 0) + item.quantity

    combo: dict[int, int] = {}
    if combo_lines:
        components = db.session.query(ComboItem).filter(ComboItem.combo_id.in_(combo_lines.keys()))
        for component in components:
            units = component.quantity * combo_lines[component.combo_id]
            combo[component.product_id] = combo.get(component.product_id, 0) + units

    return direct, combo


def _apply_stock(order: Order, operator_id: int) -> None:
    direct, combo = compute_stock_demand(order)
    product_ids = set(direct) | set(combo)
    if not product_ids:
        return

    tracked = {
        p.id: p.name
        for p in db.session.query(Product).filter(Product.id.in_(product_ids), Product.track_stock.is_(True))
    }

    for demand, reason in ((direct, stock_service.REASON_SALE), (combo, stock_service.REASON_COMBO)):
        for product_id in sorted(demand):
            if product_id not in tracked:
                continue
            quantity = demand[product_id]
            ok = stock_service.decrement_if_sufficient(
                product_id,
                quantity,
                order_id=order.id,
                operator_id=operator_id,
                reason=reason,
            )
            if not ok:
                available = db.session.query(Product.stock_qty).filter(Product.id == product_id).scalar()
                raise InsufficientStockError(
                    product_id=product_id,
                    product_name=tracked[product_id],
                    requested=quantity,
                    available=available,
                )


def finalize_payment(
    order_id: int,
    payments: Any,
    operator_id: int,
    on_paid: Callable[[Order], Any] | None = None,
) -> SettlementResult:
    """
    Settle an OPEN order in full.

    Args:
        order_id: Order to settle
        payments: Wire tenders, e.g. [{"method": "CASH", "amount": "14.20", "received": "20.00"}]
        operator_id: Operator taking the payment
        on_paid: Called once with the PAID order after commit
            (defaults to receipt_service.dispatch_receipt)

    Raises:
        ValidationError, InvalidOrderError, AlreadyPaidError,
        AmountMismatchError, ConcurrentSettlementError, InsufficientStockError
    """
    operator_id = require_operator(operator_id)
    tenders = parse_tenders(payments)

    order = db.session.get(Order, order_id)
    if order is None:
        raise InvalidOrderError(f"Order {order_id} not found")
    if order.status != ORDER_STATUS_OPEN:
        raise InvalidOrderError(f"Order {order_id} is {order.status}")

    existing = db.session.query(func.count(Payment.id)).filter(Payment.order_id == order_id).scalar()
    if existing:
        raise AlreadyPaidError(f"Order {order_id} already has payments")

    methods = _resolve_methods(tenders)
    tenders = [_check_cash(t, methods[t.method]) for t in tenders]

    tendered = sum(t.amount_cents for t in tenders)
    if tendered != order.total_cents:
        raise AmountMismatchError(expected_cents=order.total_cents, tendered_cents=tendered)

    try:
        inserted = _insert_payments(order, tenders, methods, operator_id)

        paid = compare_and_set(
            Order,
            order_id,
            expected={"status": ORDER_STATUS_OPEN},
            values={"status": ORDER_STATUS_PAID, "paid_at": utcnow()},
        )
        if not paid:
            raise ConcurrentSettlementError(f"Order {order_id} was settled by another request")

        _apply_stock(order, operator_id)

        append_order_event(order_id, EVENT_PAID, operator_id, {
            "total_cents": order.total_cents,
            "payments": [
                {
                    "method": p.method,
                    "amount_cents": p.amount_cents,
                    "fee_cents": p.fee_cents,
                    "change_cents": p.change_cents,
                }
                for p in inserted
            ],
        })
        db.session.commit()
    except PdvError as exc:
        db.session.rollback()
        logger.warning("Settlement of order %s rejected: %s", order_id, exc)
        raise
    except Exception:
        db.session.rollback()
        raise

    order = db.session.get(Order, order_id)
    logger.info("Order %s paid by operator %s (%s tender(s))", order_id, operator_id, len(inserted))

    callback = on_paid or receipt_service.dispatch_receipt
    receipt = None
    try:
        receipt = callback(order)
    except Exception:
        # Payment is committed; a failed receipt must not undo it.
        logger.exception("Receipt callback failed for order %s", order_id)

    return SettlementResult(order=order, payments=get_order_payments(order_id), receipt=receipt)

# Overview: Service-layer operations for orders; persists priced carts and handles cancellation.

"""
Order Ledger Service

WHY: An order is the frozen result of pricing. Everything that makes up an
order (header, lines, modifiers, CREATED event) is written in one
transaction, so a failure can never leave a partial order behind.

LIFECYCLE:
- OPEN -> PAID      (payment_service.finalize_payment)
- OPEN -> CANCELED  (cancel_order, only while no payment exists)
Both transitions are conditional updates on status.
"""

import logging

from flask import current_app
from sqlalchemy import func

from ..errors import (
    NotCancelableError,
    NotFoundError,
    RegisterClosedError,
    ShiftRequiredError,
    ValidationError,
)
from ..extensions import db
from ..models import CashRegister, Order, OrderEvent, OrderItem, OrderItemModifier, Payment, Shift
from ..time_utils import utcnow
from ..validation import require_operator
from . import catalog_service, pricing_service, register_service
from .cart_schema import parse_cart
from .concurrency import compare_and_set
from .pricing_service import PricedCart


logger = logging.getLogger(__name__)


# =============================================================================
# ORDER STATUS / EVENTS (CONSTANTS)
# =============================================================================

ORDER_STATUS_OPEN = "OPEN"
ORDER_STATUS_PAID = "PAID"
ORDER_STATUS_CANCELED = "CANCELED"
VALID_ORDER_STATUSES = [ORDER_STATUS_OPEN, ORDER_STATUS_PAID, ORDER_STATUS_CANCELED]

EVENT_CREATED = "CREATED"
EVENT_CANCELED = "CANCELED"
EVENT_PAID = "PAID"


def append_order_event(order_id: int, event_type: str, operator_id: int, payload: dict | None = None) -> OrderEvent:
    """Add an audit event to the current transaction (caller commits)."""
    event = OrderEvent(
        order_id=order_id,
        event_type=event_type,
        payload=payload or {},
        created_by=operator_id,
        created_at=utcnow(),
    )
    db.session.add(event)
    return event


# =============================================================================
# ORDER CREATION
# =============================================================================

def create_order(priced: PricedCart, *, register_id: int, shift_id: int, operator_id: int) -> Order:
    """
    Persist a priced cart as an OPEN order.

    Writes the order, its lines (one per cart entry, keyed by
    clientReference), line modifiers, and a CREATED event carrying the
    totals. All or nothing.

    Raises:
        RegisterClosedError: register is not OPEN
    """
    operator_id = require_operator(operator_id)

    register = db.session.get(CashRegister, register_id)
    if register is None or register.status != register_service.STATUS_OPEN:
        raise RegisterClosedError("Cash register is not open")

    cart = priced.cart
    try:
        order = Order(
            cash_register_id=register_id,
            shift_id=shift_id,
            operator_id=operator_id,
            order_type=cart.order_type,
            table_session_id=cart.table_session_id,
            table_id=priced.table_id,
            subtotal_cents=priced.subtotal_cents,
            discount_cents=priced.discount_cents,
            discount_type=cart.discount.type,
            discount_value=cart.discount.value,
            service_fee_cents=priced.service_fee_cents,
            service_fee_type=cart.service_fee.type,
            service_fee_value=cart.service_fee.value,
            total_cents=priced.total_cents,
            status=ORDER_STATUS_OPEN,
            notes=cart.notes,
            created_at=utcnow(),
        )
        db.session.add(order)
        db.session.flush()

        for priced_line in priced.lines:
            line = priced_line.line
            item = OrderItem(
                order_id=order.id,
                item_type=line.item_type,
                product_id=None if line.is_combo else line.item_id,
                combo_id=line.item_id if line.is_combo else None,
                item_name=priced_line.item_name,
                client_reference=line.client_reference,
                quantity=line.quantity,
                unit_price_cents=priced_line.unit_price_cents,
                line_total_cents=priced_line.line_total_cents,
                notes=line.notes,
            )
            db.session.add(item)
            db.session.flush()

            for modifier in priced_line.modifiers:
                db.session.add(OrderItemModifier(
                    order_item_id=item.id,
                    modifier_id=modifier.modifier_id,
                    modifier_name=modifier.name,
                    quantity=modifier.quantity,
                    unit_price_cents=modifier.unit_price_cents,
                ))

        append_order_event(order.id, EVENT_CREATED, operator_id, {
            "subtotal_cents": priced.subtotal_cents,
            "discount_cents": priced.discount_cents,
            "service_fee_cents": priced.service_fee_cents,
            "total_cents": priced.total_cents,
        })

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Order %s created on register %s by operator %s (total=%s cents, %s line(s))",
        order.id, register_id, operator_id, order.total_cents, len(priced.lines),
    )
    return order


def _resolve_shift(operator_id: int, register: CashRegister) -> Shift:
    shift = register_service.get_open_shift(operator_id)
    if shift is not None:
        return shift

    if not current_app.config.get("AUTO_OPEN_SHIFT_ON_ORDER", False):
        raise ShiftRequiredError("Open a shift before creating orders")

    logger.info("Auto-opening shift for operator %s on register %s", operator_id, register.id)
    return register_service.open_shift(operator_id, note=register_service.AUTOMATIC_SHIFT_NOTE)


def place_order(payload: dict, operator_id: int) -> Order:
    """
    Full order-creation flow for one request: parse, gate on register and
    shift, price against a fresh snapshot, persist.
    """
    operator_id = require_operator(operator_id)
    cart = parse_cart(payload, max_quantity=current_app.config.get("MAX_LINE_QUANTITY", 999))

    register = register_service.get_open_register()
    if register is None:
        raise RegisterClosedError("Open the cash register before creating orders")

    shift = _resolve_shift(operator_id, register)

    snapshot = catalog_service.load_snapshot(cart)
    priced = pricing_service.price_cart(cart, snapshot)

    return create_order(priced, register_id=register.id, shift_id=shift.id, operator_id=operator_id)


# =============================================================================
# CANCELLATION
# =============================================================================

def cancel_order(order_id: int, reason: str, operator_id: int) -> Order:
    """
    Cancel an OPEN order that has no payments.

    Raises:
        ValidationError: missing reason
        NotFoundError: order does not exist
        NotCancelableError: order is not OPEN, already has payments, or was
            moved out of OPEN concurrently
    """
    operator_id = require_operator(operator_id)
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A cancellation reason is required")

    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")

    if order.status != ORDER_STATUS_OPEN:
        raise NotCancelableError(f"Order {order_id} is {order.status} and cannot be canceled")

    payment_count = db.session.query(func.count(Payment.id)).filter(Payment.order_id == order_id).scalar()
    if payment_count:
        raise NotCancelableError(f"Order {order_id} has payments and cannot be canceled")

    try:
        canceled = compare_and_set(
            Order,
            order_id,
            expected={"status": ORDER_STATUS_OPEN},
            values={"status": ORDER_STATUS_CANCELED, "canceled_at": utcnow()},
        )
        if not canceled:
            raise NotCancelableError(f"Order {order_id} was changed by another request")

        append_order_event(order_id, EVENT_CANCELED, operator_id, {"reason": reason})
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Order %s canceled by operator %s: %s", order_id, operator_id, reason)
    return db.session.get(Order, order_id)


# =============================================================================
# QUERIES
# =============================================================================

def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def list_orders(
    status: str | None = None,
    register_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Order], int]:
    """Returns (page, total_count), newest first."""
    query = db.session.query(Order)
    if status:
        if status not in VALID_ORDER_STATUSES:
            raise ValidationError(f"Invalid status: {status}. Must be one of {VALID_ORDER_STATUSES}")
        query = query.filter(Order.status == status)
    if register_id is not None:
        query = query.filter(Order.cash_register_id == register_id)

    total = query.count()
    orders = query.order_by(Order.id.desc()).offset(offset).limit(limit).all()
    return orders, total


def get_order_events(order_id: int) -> list[OrderEvent]:
    get_order(order_id)
    return db.session.query(OrderEvent).filter_by(order_id=order_id).order_by(OrderEvent.id).all()

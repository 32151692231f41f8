"""
Cash Register and Shift Management Service

WHY: Orders can only be taken while a cash register is open, and every
order belongs to the operator's open shift. Closing the register
reconciles the counted drawer against expected cash.

DESIGN PRINCIPLES:
- At most one OPEN register; at most one OPEN shift per operator
  (partial unique indexes, so concurrent opens cannot both win)
- Registers cannot close while they still have OPEN orders
- Closing is a conditional update on status, never read-then-write
- Cash movements (SUPPLY / WITHDRAW) are append-only
"""

import logging

from sqlalchemy import func

from ..errors import ConflictError, NotFoundError, RegisterClosedError, ValidationError
from ..extensions import db
from ..models import CashMovement, CashRegister, Order, Payment, PaymentMethod, Shift
from ..time_utils import utcnow
from ..validation import require_operator
from .concurrency import compare_and_set, unique_guard


logger = logging.getLogger(__name__)


STATUS_OPEN = "OPEN"
STATUS_CLOSED = "CLOSED"

MOVEMENT_SUPPLY = "SUPPLY"
MOVEMENT_WITHDRAW = "WITHDRAW"
VALID_MOVEMENT_TYPES = [MOVEMENT_SUPPLY, MOVEMENT_WITHDRAW]

AUTOMATIC_SHIFT_NOTE = "automatic"


# =============================================================================
# QUERIES
# =============================================================================

def get_open_register() -> CashRegister | None:
    return db.session.query(CashRegister).filter_by(status=STATUS_OPEN).first()


def get_open_shift(operator_id: int) -> Shift | None:
    return db.session.query(Shift).filter_by(opened_by=operator_id, status=STATUS_OPEN).first()


def get_register(register_id: int) -> CashRegister:
    register = db.session.get(CashRegister, register_id)
    if not register:
        raise NotFoundError(f"Register {register_id} not found")
    return register


def list_registers(limit: int = 20) -> list[CashRegister]:
    return db.session.query(CashRegister).order_by(CashRegister.id.desc()).limit(limit).all()


# =============================================================================
# REGISTER LIFECYCLE
# =============================================================================

def open_register(opening_cents: int, operator_id: int, notes: str | None = None) -> CashRegister:
    """
    Open the cash register with a starting float.

    Also opens a shift for the operator (note "automatic") when they have
    none open, so the register is immediately usable for orders.

    Raises:
        ValidationError: negative opening amount
        ConflictError: a register is already open
    """
    operator_id = require_operator(operator_id)
    if opening_cents < 0:
        raise ValidationError("Opening amount must not be negative")

    existing = get_open_register()
    if existing:
        raise ConflictError(f"Register {existing.id} is already open")

    register = CashRegister(
        status=STATUS_OPEN,
        opening_cents=opening_cents,
        opened_by=operator_id,
        opened_at=utcnow(),
        notes=notes,
    )

    with unique_guard("A register is already open"):
        db.session.add(register)
        db.session.flush()

        shift = get_open_shift(operator_id)
        if shift is None:
            db.session.add(Shift(
                cash_register_id=register.id,
                status=STATUS_OPEN,
                opened_by=operator_id,
                opened_at=register.opened_at,
                note_open=AUTOMATIC_SHIFT_NOTE,
            ))
        elif shift.cash_register_id is None:
            shift.cash_register_id = register.id

        db.session.commit()

    logger.info("Register %s opened by operator %s with %s cents", register.id, operator_id, opening_cents)
    return register


def close_register(counted_cents: int, operator_id: int, notes: str | None = None) -> CashRegister:
    """
    Close the open register after a cash count.

    Records expected cash and variance, and closes the operator's open shift.

    Raises:
        NotFoundError: no register is open
        ConflictError: register still has OPEN orders, or was closed concurrently
    """
    operator_id = require_operator(operator_id)
    if counted_cents < 0:
        raise ValidationError("Counted amount must not be negative")

    register = get_open_register()
    if not register:
        raise NotFoundError("No open register")

    open_orders = db.session.query(func.count(Order.id)).filter(
        Order.cash_register_id == register.id,
        Order.status == STATUS_OPEN,
    ).scalar()
    if open_orders:
        raise ConflictError(f"Register has {open_orders} open order(s); settle or cancel them first")

    expected = compute_expected_cash(register)
    now = utcnow()

    try:
        closed = compare_and_set(
            CashRegister,
            register.id,
            expected={"status": STATUS_OPEN},
            values={
                "status": STATUS_CLOSED,
                "closing_cents": counted_cents,
                "expected_cents": expected,
                "variance_cents": counted_cents - expected,
                "closed_at": now,
                "closed_by": operator_id,
                "notes": notes if notes is not None else register.notes,
            },
        )
        if not closed:
            raise ConflictError("Register was closed by another request")

        shift = get_open_shift(operator_id)
        if shift is not None:
            compare_and_set(
                Shift,
                shift.id,
                expected={"status": STATUS_OPEN},
                values={"status": STATUS_CLOSED, "closed_at": now, "closed_by": operator_id},
            )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Register %s closed by operator %s: counted=%s expected=%s",
        register.id, operator_id, counted_cents, expected,
    )
    return db.session.get(CashRegister, register.id)


# =============================================================================
# CASH MOVEMENTS
# =============================================================================

def record_movement(movement_type: str, amount_cents: int, operator_id: int, reason: str | None = None) -> CashMovement:
    """Record a SUPPLY or WITHDRAW against the open register."""
    operator_id = require_operator(operator_id)
    if movement_type not in VALID_MOVEMENT_TYPES:
        raise ValidationError(f"Invalid movement type: {movement_type}. Must be one of {VALID_MOVEMENT_TYPES}")
    if amount_cents <= 0:
        raise ValidationError("Movement amount must be positive")

    register = get_open_register()
    if not register:
        raise RegisterClosedError("Open the register before recording cash movements")

    shift = get_open_shift(operator_id)
    movement = CashMovement(
        cash_register_id=register.id,
        shift_id=shift.id if shift else None,
        type=movement_type,
        amount_cents=amount_cents,
        reason=reason,
        created_by=operator_id,
    )
    db.session.add(movement)
    db.session.commit()

    logger.info("Cash %s of %s cents on register %s", movement_type, amount_cents, register.id)
    return movement


def _cash_payments_cents(register_id: int) -> int:
    total = db.session.query(func.coalesce(func.sum(Payment.amount_cents), 0)).join(
        Order, Order.id == Payment.order_id
    ).join(
        PaymentMethod, PaymentMethod.code == Payment.method
    ).filter(
        Order.cash_register_id == register_id,
        Order.status == "PAID",
        PaymentMethod.is_cash.is_(True),
    ).scalar()
    return int(total or 0)


def _movements_cents(register_id: int, movement_type: str) -> int:
    total = db.session.query(func.coalesce(func.sum(CashMovement.amount_cents), 0)).filter(
        CashMovement.cash_register_id == register_id,
        CashMovement.type == movement_type,
    ).scalar()
    return int(total or 0)


def compute_expected_cash(register: CashRegister) -> int:
    """opening + cash sales + supplies - withdrawals (change is already netted out of amount)."""
    return (
        register.opening_cents
        + _cash_payments_cents(register.id)
        + _movements_cents(register.id, MOVEMENT_SUPPLY)
        - _movements_cents(register.id, MOVEMENT_WITHDRAW)
    )


def get_register_summary(register_id: int) -> dict:
    """
    Cash and sales summary for one register session.

    Used by the close screen to show theoretical cash before counting.
    """
    register = get_register(register_id)

    by_method = db.session.query(
        Payment.method,
        func.count(Payment.id),
        func.coalesce(func.sum(Payment.amount_cents), 0),
        func.coalesce(func.sum(Payment.fee_cents), 0),
    ).join(Order, Order.id == Payment.order_id).filter(
        Order.cash_register_id == register_id,
        Order.status == "PAID",
    ).group_by(Payment.method).order_by(Payment.method).all()

    by_status = dict(
        db.session.query(Order.status, func.count(Order.id))
        .filter(Order.cash_register_id == register_id)
        .group_by(Order.status)
        .all()
    )

    return {
        "register": register.to_dict(),
        "opening_cents": register.opening_cents,
        "cash_sales_cents": _cash_payments_cents(register_id),
        "supplies_cents": _movements_cents(register_id, MOVEMENT_SUPPLY),
        "withdrawals_cents": _movements_cents(register_id, MOVEMENT_WITHDRAW),
        "expected_cash_cents": compute_expected_cash(register),
        "orders": {
            "OPEN": by_status.get("OPEN", 0),
            "PAID": by_status.get("PAID", 0),
            "CANCELED": by_status.get("CANCELED", 0),
        },
        "payments_by_method": [
            {"method": method, "count": count, "amount_cents": int(amount), "fee_cents": int(fees)}
            for method, count, amount, fees in by_method
        ],
    }


# =============================================================================
# SHIFT MANAGEMENT
# =============================================================================

def open_shift(operator_id: int, note: str | None = None) -> Shift:
    """
    Open a shift for the operator, attached to the open register if any.

    Raises:
        ConflictError: operator already has an open shift
    """
    operator_id = require_operator(operator_id)

    existing = get_open_shift(operator_id)
    if existing:
        raise ConflictError(f"Operator already has open shift {existing.id}")

    register = get_open_register()
    shift = Shift(
        cash_register_id=register.id if register else None,
        status=STATUS_OPEN,
        opened_by=operator_id,
        opened_at=utcnow(),
        note_open=note,
    )

    with unique_guard("Operator already has an open shift"):
        db.session.add(shift)
        db.session.commit()

    logger.info("Shift %s opened by operator %s", shift.id, operator_id)
    return shift


def close_shift(operator_id: int, note: str | None = None) -> Shift:
    operator_id = require_operator(operator_id)

    shift = get_open_shift(operator_id)
    if not shift:
        raise NotFoundError("Operator has no open shift")

    closed = compare_and_set(
        Shift,
        shift.id,
        expected={"status": STATUS_OPEN},
        values={"status": STATUS_CLOSED, "closed_at": utcnow(), "closed_by": operator_id, "note_close": note},
    )
    if not closed:
        db.session.rollback()
        raise ConflictError("Shift was closed by another request")

    db.session.commit()
    logger.info("Shift %s closed by operator %s", shift.id, operator_id)
    return db.session.get(Shift, shift.id)

# Overview: Service-layer operations for dining tables and their sessions.

"""
Table Session Service

WHY: TABLE orders must belong to an occupied table. A session is opened
when guests sit down and closed when they leave; at most one session per
table is OPEN at a time (partial unique index).
"""

import logging

from sqlalchemy import func

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import DiningTable, Order, TableSession
from ..time_utils import utcnow
from ..validation import require_operator
from .concurrency import compare_and_set, unique_guard


logger = logging.getLogger(__name__)

SESSION_OPEN = "OPEN"
SESSION_CLOSED = "CLOSED"


def list_tables(include_inactive: bool = False) -> list[DiningTable]:
    query = db.session.query(DiningTable)
    if not include_inactive:
        query = query.filter(DiningTable.active.is_(True))
    return query.order_by(DiningTable.sort_order, DiningTable.name).all()


def list_open_sessions() -> list[TableSession]:
    return db.session.query(TableSession).filter_by(status=SESSION_OPEN).order_by(TableSession.opened_at).all()


def get_open_session(session_id: int) -> TableSession | None:
    return db.session.query(TableSession).filter_by(id=session_id, status=SESSION_OPEN).first()


def open_session(table_id: int, operator_id: int) -> TableSession:
    operator_id = require_operator(operator_id)

    table = db.session.get(DiningTable, table_id)
    if table is None:
        raise NotFoundError(f"Table {table_id} not found")
    if not table.active:
        raise ValidationError(f"Table {table.name} is inactive")

    existing = db.session.query(TableSession).filter_by(table_id=table_id, status=SESSION_OPEN).first()
    if existing:
        raise ConflictError(f"Table {table.name} already has open session {existing.id}")

    session = TableSession(table_id=table_id, status=SESSION_OPEN, opened_by=operator_id, opened_at=utcnow())
    with unique_guard(f"Table {table.name} already has an open session"):
        db.session.add(session)
        db.session.commit()

    logger.info("Table session %s opened on table %s", session.id, table_id)
    return session


def close_session(session_id: int, operator_id: int) -> TableSession:
    """
    Close a table session. Refused while the session still has OPEN orders.
    """
    operator_id = require_operator(operator_id)

    session = db.session.get(TableSession, session_id)
    if session is None:
        raise NotFoundError(f"Table session {session_id} not found")

    open_orders = db.session.query(func.count(Order.id)).filter(
        Order.table_session_id == session_id,
        Order.status == "OPEN",
    ).scalar()
    if open_orders:
        raise ConflictError(f"Table session has {open_orders} open order(s)")

    closed = compare_and_set(
        TableSession,
        session_id,
        expected={"status": SESSION_OPEN},
        values={"status": SESSION_CLOSED, "closed_at": utcnow(), "closed_by": operator_id},
    )
    if not closed:
        db.session.rollback()
        raise ConflictError(f"Table session {session_id} is not open")

    db.session.commit()
    logger.info("Table session %s closed", session_id)
    return db.session.get(TableSession, session_id)

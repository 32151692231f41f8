# Overview: Service-layer operations for stock; conditional decrements and the movement ledger.

"""
Stock Ledger Service

WHY: Two settlements racing for the last unit must not both succeed. The
decrement is a single conditional UPDATE (stock_qty >= quantity) so the
database decides; there is no read-then-write window.

DESIGN:
- decrement_if_sufficient never commits; it joins the caller's transaction
  so a failed settlement rolls back every decrement it already made
- Every successful decrement appends an OUT movement (append-only)
- Products without track_stock are never decremented
"""

import logging

from sqlalchemy import update

from ..errors import NotFoundError
from ..extensions import db
from ..models import Product, StockMovement
from ..time_utils import utcnow
from .concurrency import expire_loaded


logger = logging.getLogger(__name__)


MOVEMENT_OUT = "OUT"
MOVEMENT_IN = "IN"
MOVEMENT_ADJUST = "ADJUST"

REASON_SALE = "sale"
REASON_COMBO = "combo"


def decrement_if_sufficient(
    product_id: int,
    quantity: int,
    *,
    order_id: int | None,
    operator_id: int,
    reason: str = REASON_SALE,
) -> bool:
    """
    Atomically take `quantity` units of a tracked product.

    Returns True and records an OUT movement when stock was sufficient,
    False (and writes nothing) otherwise.
    """
    if quantity <= 0:
        raise ValueError("quantity must be positive")

    result = db.session.execute(
        update(Product)
        .where(
            Product.id == product_id,
            Product.track_stock.is_(True),
            Product.stock_qty >= quantity,
        )
        .values(stock_qty=Product.stock_qty - quantity, version_id=Product.version_id + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False

    expire_loaded(Product, product_id)
    db.session.add(StockMovement(
        product_id=product_id,
        order_id=order_id,
        type=MOVEMENT_OUT,
        quantity=quantity,
        reason=reason,
        created_by=operator_id,
        created_at=utcnow(),
    ))
    db.session.flush()
    return True


def get_low_stock_products() -> list[Product]:
    """Tracked, active products at or below their minimum."""
    return db.session.query(Product).filter(
        Product.active.is_(True),
        Product.track_stock.is_(True),
        Product.stock_qty <= Product.min_stock,
    ).order_by(Product.stock_qty, Product.name).all()


def get_product_movements(product_id: int, limit: int = 100) -> list[StockMovement]:
    if db.session.get(Product, product_id) is None:
        raise NotFoundError(f"Product {product_id} not found")
    return db.session.query(StockMovement).filter_by(
        product_id=product_id
    ).order_by(StockMovement.id.desc()).limit(limit).all()

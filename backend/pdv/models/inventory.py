from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class StockMovement(db.Model):
    """
    Append-only stock ledger.

    TYPES:
    - OUT: decrement at settlement (reason "sale" or "combo")
    - IN: goods received
    - ADJUST: manual correction (quantity may be negative)

    stock_qty on the product is the running balance; movements are the
    history that explains it.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    type = db.Column(db.String(16), nullable=False)  # OUT, IN, ADJUST
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(64), nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "order_id": self.order_id,
            "type": self.type,
            "quantity": self.quantity,
            "reason": self.reason,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }

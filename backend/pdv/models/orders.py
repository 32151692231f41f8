from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from ..validation import format_cents


class Order(db.Model):
    """
    Priced order.

    LIFECYCLE:
    - OPEN: created with totals fixed at pricing time, awaiting payment
    - PAID: settled (terminal)
    - CANCELED: voided before any payment (terminal)

    Totals are stored, never recomputed: the amounts the customer was quoted
    are the amounts settlement checks against.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_register_status", "cash_register_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cash_register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=False, index=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=False, index=True)
    operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=False, index=True)

    order_type = db.Column(db.String(16), nullable=False, default="COUNTER")  # COUNTER, TABLE
    table_session_id = db.Column(db.Integer, db.ForeignKey("table_sessions.id"), nullable=True, index=True)
    table_id = db.Column(db.Integer, db.ForeignKey("dining_tables.id"), nullable=True)

    # Amounts in cents
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    service_fee_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    # Adjustment inputs as entered: FIXED values in cents, PERCENT values in bps
    discount_type = db.Column(db.String(16), nullable=False, default="NONE")  # NONE, PERCENT, FIXED
    discount_value = db.Column(db.Integer, nullable=False, default=0)
    service_fee_type = db.Column(db.String(16), nullable=False, default="NONE")
    service_fee_value = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="OPEN", index=True)  # OPEN, PAID, CANCELED
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    canceled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    register = db.relationship("CashRegister", backref=db.backref("orders", lazy=True))
    shift = db.relationship("Shift", backref=db.backref("orders", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "cash_register_id": self.cash_register_id,
            "shift_id": self.shift_id,
            "operator_id": self.operator_id,
            "order_type": self.order_type,
            "table_session_id": self.table_session_id,
            "table_id": self.table_id,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "service_fee_cents": self.service_fee_cents,
            "total_cents": self.total_cents,
            "subtotal": format_cents(self.subtotal_cents),
            "discount": format_cents(self.discount_cents),
            "service_fee": format_cents(self.service_fee_cents),
            "total": format_cents(self.total_cents),
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "service_fee_type": self.service_fee_type,
            "service_fee_value": self.service_fee_value,
            "status": self.status,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "paid_at": to_utc_z(self.paid_at),
            "canceled_at": to_utc_z(self.canceled_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """
    One cart line frozen at pricing time.

    item_name and unit_price_cents are snapshots: later catalog edits never
    change what was sold. client_reference ties the line back to the cart
    entry that produced it.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        db.UniqueConstraint("order_id", "client_reference", name="uq_order_items_order_client_ref"),
        db.CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    item_type = db.Column(db.String(16), nullable=False)  # PRODUCT, COMBO
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    combo_id = db.Column(db.Integer, db.ForeignKey("combos.id"), nullable=True, index=True)
    item_name = db.Column(db.String(255), nullable=False)
    client_reference = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)  # base + modifiers
    line_total_cents = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.String(255), nullable=True)

    order = db.relationship(
        "Order",
        backref=db.backref("items", lazy=True, order_by="OrderItem.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "item_type": self.item_type,
            "product_id": self.product_id,
            "combo_id": self.combo_id,
            "item_name": self.item_name,
            "client_reference": self.client_reference,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "unit_price": format_cents(self.unit_price_cents),
            "line_total": format_cents(self.line_total_cents),
            "notes": self.notes,
            "modifiers": [m.to_dict() for m in self.modifiers],
        }


class OrderItemModifier(db.Model):
    __tablename__ = "order_item_modifiers"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_order_item_modifiers_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_item_id = db.Column(db.Integer, db.ForeignKey("order_items.id"), nullable=False, index=True)
    modifier_id = db.Column(db.Integer, db.ForeignKey("modifiers.id"), nullable=False)
    modifier_name = db.Column(db.String(128), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)

    order_item = db.relationship(
        "OrderItem",
        backref=db.backref("modifiers", lazy=True, order_by="OrderItemModifier.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "modifier_id": self.modifier_id,
            "modifier_name": self.modifier_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
        }


class Payment(db.Model):
    """
    One tender applied to an order.

    Payments are only ever written by settlement, all of them in the same
    transaction that moves the order to PAID. fee_cents is what the method
    costs the business (acquirer fee), not what the customer pays.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    method = db.Column(db.String(32), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    # Cash only: what was handed over and the change returned
    received_cents = db.Column(db.Integer, nullable=True)
    change_cents = db.Column(db.Integer, nullable=True)

    fee_cents = db.Column(db.Integer, nullable=False, default=0)
    created_by = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    order = db.relationship("Order", backref=db.backref("payments", lazy=True, order_by="Payment.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "method": self.method,
            "amount_cents": self.amount_cents,
            "amount": format_cents(self.amount_cents),
            "received_cents": self.received_cents,
            "change_cents": self.change_cents,
            "fee_cents": self.fee_cents,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class OrderEvent(db.Model):
    """
    Append-only audit trail of order state changes (CREATED, CANCELED, PAID).
    """
    __tablename__ = "order_events"
    __table_args__ = (
        db.Index("ix_order_events_order_created", "order_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    event_type = db.Column(db.String(32), nullable=False, index=True)
    payload = db.Column(db.JSON, nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "event_type": self.event_type,
            "payload": self.payload,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }

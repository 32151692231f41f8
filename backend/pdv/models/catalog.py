from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from ..validation import format_cents


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sort_order": self.sort_order,
            "active": self.active,
        }


class Product(db.Model):
    """
    Sellable product.

    WHY: Products are priced per unit (price_cents). Stock is only enforced
    when track_stock is set; settlement decrements stock_qty with a
    conditional update so it never goes negative.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_qty >= 0", name="ck_products_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    # Pricing stored in cents
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    track_stock = db.Column(db.Boolean, nullable=False, default=False)
    stock_qty = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category_id": self.category_id,
            "price_cents": self.price_cents,
            "price": format_cents(self.price_cents),
            "active": self.active,
            "track_stock": self.track_stock,
            "stock_qty": self.stock_qty,
            "min_stock": self.min_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class Combo(db.Model):
    """Bundle of products sold at its own price."""
    __tablename__ = "combos"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "category_id": self.category_id,
            "price_cents": self.price_cents,
            "price": format_cents(self.price_cents),
            "active": self.active,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class ComboItem(db.Model):
    __tablename__ = "combo_items"
    __table_args__ = (
        db.UniqueConstraint("combo_id", "product_id", name="uq_combo_items_combo_product"),
        db.CheckConstraint("quantity >= 1", name="ck_combo_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    combo_id = db.Column(db.Integer, db.ForeignKey("combos.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    combo = db.relationship("Combo", backref=db.backref("items", lazy=True))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "combo_id": self.combo_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
        }


class ModifierGroup(db.Model):
    """
    Group of optional add-ons (e.g. "Extras", "Sauce").

    RULES:
    - required: at least max(1, min_select) modifiers must be chosen
    - min_select: lower bound when not required
    - max_select: upper bound, 0 means unlimited
    """
    __tablename__ = "modifier_groups"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    min_select = db.Column(db.Integer, nullable=False, default=0)
    max_select = db.Column(db.Integer, nullable=False, default=0)
    required = db.Column(db.Boolean, nullable=False, default=False)
    active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self, include_modifiers: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "min_select": self.min_select,
            "max_select": self.max_select,
            "required": self.required,
            "active": self.active,
        }
        if include_modifiers:
            data["modifiers"] = [m.to_dict() for m in self.modifiers if m.active]
        return data


class Modifier(db.Model):
    __tablename__ = "modifiers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey("modifier_groups.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    active = db.Column(db.Boolean, nullable=False, default=True)

    group = db.relationship("ModifierGroup", backref=db.backref("modifiers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "group_id": self.group_id,
            "name": self.name,
            "price_cents": self.price_cents,
            "price": format_cents(self.price_cents),
            "active": self.active,
        }


class ProductModifierGroup(db.Model):
    """Links a modifier group to a product; sort_order drives display."""
    __tablename__ = "product_modifier_groups"
    __table_args__ = (
        db.UniqueConstraint("product_id", "group_id", name="uq_product_modifier_groups"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    group_id = db.Column(db.Integer, db.ForeignKey("modifier_groups.id"), nullable=False, index=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    group = db.relationship("ModifierGroup")


class PaymentMethod(db.Model):
    """
    Configured way of paying (CASH, PIX, CARD, ...).

    The method is opaque to settlement apart from is_cash (change is only
    given for cash) and its fee model: percent (bps) plus a fixed amount.
    """
    __tablename__ = "payment_methods"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(64), nullable=False)
    is_cash = db.Column(db.Boolean, nullable=False, default=False)
    fee_percent_bps = db.Column(db.Integer, nullable=False, default=0)
    fee_fixed_cents = db.Column(db.Integer, nullable=False, default=0)
    active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "is_cash": self.is_cash,
            "fee_percent_bps": self.fee_percent_bps,
            "fee_fixed_cents": self.fee_fixed_cents,
            "active": self.active,
        }

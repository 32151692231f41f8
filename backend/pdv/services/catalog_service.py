# Overview: Read-only catalog access; loads the per-request snapshot used by pricing.

"""
Catalog Reader

WHY: Pricing must see one consistent view of the catalog. The snapshot is
loaded once per pricing call, only for the ids the cart references, and
copied into plain frozen records so the pricing engine never triggers lazy
loads or touches the session.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..extensions import db
from ..models import (
    Combo,
    ComboItem,
    Modifier,
    ModifierGroup,
    Product,
    ProductModifierGroup,
    TableSession,
)
from .cart_schema import CartRequest


@dataclass(frozen=True)
class ProductInfo:
    id: int
    name: str
    price_cents: int
    active: bool
    track_stock: bool


@dataclass(frozen=True)
class ComboInfo:
    id: int
    name: str
    price_cents: int
    active: bool
    # (product_id, quantity per combo)
    components: tuple[tuple[int, int], ...] = ()


@dataclass(frozen=True)
class ModifierInfo:
    id: int
    group_id: int
    name: str
    price_cents: int
    active: bool


@dataclass(frozen=True)
class GroupInfo:
    id: int
    name: str
    min_select: int
    max_select: int
    required: bool
    active: bool


@dataclass(frozen=True)
class TableSessionInfo:
    id: int
    table_id: int
    status: str


@dataclass(frozen=True)
class CatalogSnapshot:
    products: dict[int, ProductInfo] = field(default_factory=dict)
    combos: dict[int, ComboInfo] = field(default_factory=dict)
    modifiers: dict[int, ModifierInfo] = field(default_factory=dict)
    groups: dict[int, GroupInfo] = field(default_factory=dict)
    # product_id -> linked group ids in sort order
    product_groups: dict[int, tuple[int, ...]] = field(default_factory=dict)
    table_session: TableSessionInfo | None = None


def _product_info(product: Product) -> ProductInfo:
    return ProductInfo(
        id=product.id,
        name=product.name,
        price_cents=product.price_cents,
        active=product.active,
        track_stock=product.track_stock,
    )


def load_snapshot(cart: CartRequest) -> CatalogSnapshot:
    """Load every catalog row the cart references (active or not)."""
    product_ids = cart.product_ids()
    combo_ids = cart.combo_ids()
    modifier_ids = cart.modifier_ids()

    products = {}
    if product_ids:
        for product in db.session.query(Product).filter(Product.id.in_(product_ids)):
            products[product.id] = _product_info(product)

    combos = {}
    if combo_ids:
        components: dict[int, list[tuple[int, int]]] = {}
        for item in db.session.query(ComboItem).filter(ComboItem.combo_id.in_(combo_ids)).order_by(ComboItem.id):
            components.setdefault(item.combo_id, []).append((item.product_id, item.quantity))
        for combo in db.session.query(Combo).filter(Combo.id.in_(combo_ids)):
            combos[combo.id] = ComboInfo(
                id=combo.id,
                name=combo.name,
                price_cents=combo.price_cents,
                active=combo.active,
                components=tuple(components.get(combo.id, ())),
            )

    product_groups: dict[int, list[int]] = {}
    if product_ids:
        links = db.session.query(ProductModifierGroup).filter(
            ProductModifierGroup.product_id.in_(product_ids)
        ).order_by(ProductModifierGroup.sort_order, ProductModifierGroup.id)
        for link in links:
            product_groups.setdefault(link.product_id, []).append(link.group_id)

    modifiers = {}
    if modifier_ids:
        for modifier in db.session.query(Modifier).filter(Modifier.id.in_(modifier_ids)):
            modifiers[modifier.id] = ModifierInfo(
                id=modifier.id,
                group_id=modifier.group_id,
                name=modifier.name,
                price_cents=modifier.price_cents,
                active=modifier.active,
            )

    group_ids = {gid for gids in product_groups.values() for gid in gids}
    group_ids.update(m.group_id for m in modifiers.values())
    groups = {}
    if group_ids:
        for group in db.session.query(ModifierGroup).filter(ModifierGroup.id.in_(group_ids)):
            groups[group.id] = GroupInfo(
                id=group.id,
                name=group.name,
                min_select=group.min_select,
                max_select=group.max_select,
                required=group.required,
                active=group.active,
            )

    table_session = None
    if cart.table_session_id is not None:
        session = db.session.get(TableSession, cart.table_session_id)
        if session:
            table_session = TableSessionInfo(id=session.id, table_id=session.table_id, status=session.status)

    return CatalogSnapshot(
        products=products,
        combos=combos,
        modifiers=modifiers,
        groups=groups,
        product_groups={pid: tuple(gids) for pid, gids in product_groups.items()},
        table_session=table_session,
    )


# =============================================================================
# READ API
# =============================================================================

def list_products(include_inactive: bool = False) -> list[Product]:
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.active.is_(True))
    return query.order_by(Product.name).all()


def list_combos(include_inactive: bool = False) -> list[Combo]:
    query = db.session.query(Combo)
    if not include_inactive:
        query = query.filter(Combo.active.is_(True))
    return query.order_by(Combo.name).all()


def list_modifier_groups(product_id: int | None = None) -> list[ModifierGroup]:
    """Active groups, optionally only those linked to a product (in display order)."""
    query = db.session.query(ModifierGroup).filter(ModifierGroup.active.is_(True))
    if product_id is not None:
        query = query.join(
            ProductModifierGroup, ProductModifierGroup.group_id == ModifierGroup.id
        ).filter(
            ProductModifierGroup.product_id == product_id
        ).order_by(ProductModifierGroup.sort_order, ModifierGroup.id)
    else:
        query = query.order_by(ModifierGroup.name)
    return query.all()

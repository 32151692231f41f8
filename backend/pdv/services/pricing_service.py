# Overview: Pure order pricing; turns a parsed cart and catalog snapshot into priced lines and totals.

"""
Order Pricing Engine

WHY: The price a customer is quoted must be reproducible from the cart and
the catalog alone. This module has no side effects and never touches the
database session; callers load a CatalogSnapshot first.

FORMULA (all integer cents, percentages rounded half-up to the cent):
    unit      = max(base + sum(modifier price * modifier qty), 0)
    line      = unit * quantity
    subtotal  = sum(line)
    discount  = PERCENT: min(subtotal, subtotal * bps / 10000)
                FIXED:   min(subtotal, value)
    base      = max(subtotal - discount, 0)
    fee       = PERCENT: base * bps / 10000
                FIXED:   value
    total     = max(base + fee, 0)

Example: [10.00 x1] + [15.00 x1 with a 2.00 modifier] = 27.00 subtotal,
FIXED 5.00 discount -> 22.00, PERCENT 10% fee -> 2.20, total 24.20.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import InvalidReferenceError, InvalidTableError, ModifierConstraintError
from ..validation import percent_of
from .cart_schema import (
    ADJUST_FIXED,
    ADJUST_PERCENT,
    ORDER_TABLE,
    Adjustment,
    CartLine,
    CartRequest,
)
from .catalog_service import CatalogSnapshot


@dataclass(frozen=True)
class PricedModifier:
    modifier_id: int
    name: str
    quantity: int
    unit_price_cents: int


@dataclass(frozen=True)
class PricedLine:
    line: CartLine
    item_name: str
    base_price_cents: int
    unit_price_cents: int
    line_total_cents: int
    modifiers: tuple[PricedModifier, ...] = ()


@dataclass(frozen=True)
class PricedCart:
    cart: CartRequest
    lines: tuple[PricedLine, ...]
    subtotal_cents: int
    discount_cents: int
    service_fee_cents: int
    total_cents: int
    table_id: int | None = None


def compute_discount(subtotal_cents: int, discount: Adjustment) -> int:
    if discount.type == ADJUST_PERCENT:
        return min(subtotal_cents, percent_of(subtotal_cents, discount.value))
    if discount.type == ADJUST_FIXED:
        return min(subtotal_cents, discount.value)
    return 0


def compute_service_fee(base_cents: int, fee: Adjustment) -> int:
    if fee.type == ADJUST_PERCENT:
        return percent_of(base_cents, fee.value)
    if fee.type == ADJUST_FIXED:
        return fee.value
    return 0


def compute_totals(subtotal_cents: int, discount: Adjustment, fee: Adjustment) -> tuple[int, int, int]:
    """Returns (discount_cents, service_fee_cents, total_cents)."""
    discount_cents = compute_discount(subtotal_cents, discount)
    base = max(subtotal_cents - discount_cents, 0)
    fee_cents = compute_service_fee(base, fee)
    return discount_cents, fee_cents, max(base + fee_cents, 0)


def _resolve_item(line: CartLine, snapshot: CatalogSnapshot) -> tuple[str, int]:
    if line.is_combo:
        combo = snapshot.combos.get(line.item_id)
        if combo is None or not combo.active:
            raise InvalidReferenceError(f"Combo {line.item_id} is unknown or inactive ({line.client_reference})")
        return combo.name, combo.price_cents

    product = snapshot.products.get(line.item_id)
    if product is None or not product.active:
        raise InvalidReferenceError(f"Product {line.item_id} is unknown or inactive ({line.client_reference})")
    return product.name, product.price_cents


def _resolve_modifiers(line: CartLine, snapshot: CatalogSnapshot) -> tuple[PricedModifier, ...]:
    linked = snapshot.product_groups.get(line.item_id, ()) if not line.is_combo else None
    priced = []
    for selection in line.modifiers:
        modifier = snapshot.modifiers.get(selection.modifier_id)
        group = snapshot.groups.get(modifier.group_id) if modifier else None
        if modifier is None or not modifier.active or group is None or not group.active:
            raise InvalidReferenceError(
                f"Modifier {selection.modifier_id} is unknown or inactive ({line.client_reference})"
            )
        if linked is not None and modifier.group_id not in linked:
            raise InvalidReferenceError(
                f"Modifier {modifier.name} is not offered for this product ({line.client_reference})"
            )
        priced.append(PricedModifier(
            modifier_id=modifier.id,
            name=modifier.name,
            quantity=selection.quantity,
            unit_price_cents=modifier.price_cents,
        ))
    return tuple(priced)


def check_modifier_groups(line: CartLine, snapshot: CatalogSnapshot) -> None:
    """
    Enforce min/max selection for every active group linked to a product.

    The count is the number of distinct modifiers chosen in the group;
    modifier quantity does not count towards it.
    """
    if line.is_combo:
        return

    selected_per_group: dict[int, int] = {}
    for selection in line.modifiers:
        modifier = snapshot.modifiers[selection.modifier_id]
        selected_per_group[modifier.group_id] = selected_per_group.get(modifier.group_id, 0) + 1

    for group_id in snapshot.product_groups.get(line.item_id, ()):
        group = snapshot.groups.get(group_id)
        if group is None or not group.active:
            continue
        selected = selected_per_group.get(group_id, 0)
        minimum = max(1, group.min_select) if group.required else group.min_select
        if selected < minimum:
            raise ModifierConstraintError(
                f"Select at least {minimum} option(s) in '{group.name}' ({line.client_reference})",
                group_id=group.id,
            )
        if group.max_select > 0 and selected > group.max_select:
            raise ModifierConstraintError(
                f"Select at most {group.max_select} option(s) in '{group.name}' ({line.client_reference})",
                group_id=group.id,
            )


def price_line(line: CartLine, snapshot: CatalogSnapshot) -> PricedLine:
    item_name, base_price = _resolve_item(line, snapshot)
    modifiers = _resolve_modifiers(line, snapshot)
    check_modifier_groups(line, snapshot)

    unit_price = max(base_price + sum(m.unit_price_cents * m.quantity for m in modifiers), 0)
    return PricedLine(
        line=line,
        item_name=item_name,
        base_price_cents=base_price,
        unit_price_cents=unit_price,
        line_total_cents=unit_price * line.quantity,
        modifiers=modifiers,
    )


def price_cart(cart: CartRequest, snapshot: CatalogSnapshot) -> PricedCart:
    """
    Price a parsed cart against a catalog snapshot.

    Raises:
        InvalidReferenceError: unknown/inactive product, combo, or modifier
        ModifierConstraintError: group min/max violated
        InvalidTableError: TABLE order without a matching OPEN table session
    """
    lines = tuple(price_line(line, snapshot) for line in cart.items)
    subtotal = sum(line.line_total_cents for line in lines)
    discount, fee, total = compute_totals(subtotal, cart.discount, cart.service_fee)

    table_id = None
    if cart.order_type == ORDER_TABLE:
        session = snapshot.table_session
        if session is None or session.id != cart.table_session_id or session.status != "OPEN":
            raise InvalidTableError(f"Table session {cart.table_session_id} is not open")
        table_id = session.table_id

    return PricedCart(
        cart=cart,
        lines=lines,
        subtotal_cents=subtotal,
        discount_cents=discount,
        service_fee_cents=fee,
        total_cents=total,
        table_id=table_id,
    )

"""
Order pricing engine tests.

Pure: snapshots are built in memory, no database involved.
"""

import pytest

from pdv.errors import InvalidReferenceError, InvalidTableError, ModifierConstraintError
from pdv.services import pricing_service
from pdv.services.cart_schema import Adjustment, parse_cart
from pdv.services.catalog_service import (
    CatalogSnapshot,
    ComboInfo,
    GroupInfo,
    ModifierInfo,
    ProductInfo,
    TableSessionInfo,
)


def _snapshot(**overrides):
    base = dict(
        products={
            1: ProductInfo(id=1, name="Burger", price_cents=1000, active=True, track_stock=True),
            2: ProductInfo(id=2, name="X-Salada", price_cents=1500, active=True, track_stock=False),
            3: ProductInfo(id=3, name="Steak", price_cents=3000, active=True, track_stock=False),
            4: ProductInfo(id=4, name="Retired", price_cents=800, active=False, track_stock=False),
        },
        combos={
            10: ComboInfo(id=10, name="Combo", price_cents=2000, active=True, components=((1, 1), (2, 1))),
        },
        modifiers={
            100: ModifierInfo(id=100, group_id=50, name="Bacon", price_cents=200, active=True),
            101: ModifierInfo(id=101, group_id=50, name="Cheese", price_cents=150, active=True),
            102: ModifierInfo(id=102, group_id=50, name="Egg", price_cents=100, active=True),
            110: ModifierInfo(id=110, group_id=51, name="Rare", price_cents=0, active=True),
            111: ModifierInfo(id=111, group_id=51, name="Well done", price_cents=0, active=True),
            120: ModifierInfo(id=120, group_id=50, name="Old sauce", price_cents=50, active=False),
        },
        groups={
            50: GroupInfo(id=50, name="Extras", min_select=0, max_select=2, required=False, active=True),
            51: GroupInfo(id=51, name="Ponto", min_select=1, max_select=1, required=True, active=True),
        },
        product_groups={2: (50,), 3: (51,)},
    )
    base.update(overrides)
    return CatalogSnapshot(**base)


def _line(item_id, ref, quantity=1, modifiers=(), item_type="PRODUCT"):
    return {
        "itemType": item_type,
        "itemId": item_id,
        "clientReference": ref,
        "quantity": quantity,
        "modifiers": [{"modifierId": mid, "quantity": q} for mid, q in modifiers],
    }


def _cart(*lines, **extra):
    payload = {"items": list(lines)}
    payload.update(extra)
    return parse_cart(payload)


class TestTotals:
    def test_reference_example_prices_to_24_20(self):
        cart = _cart(
            _line(1, "a"),
            _line(2, "b", modifiers=[(100, 1)]),
            discountType="FIXED", discountValue="5.00",
            serviceFeeType="PERCENT", serviceFeeValue="10",
        )
        priced = pricing_service.price_cart(cart, _snapshot())

        assert priced.subtotal_cents == 2700
        assert priced.discount_cents == 500
        assert priced.service_fee_cents == 220
        assert priced.total_cents == 2420
        assert [l.unit_price_cents for l in priced.lines] == [1000, 1700]

    def test_percent_discount_rounds_half_up(self):
        # 10.05 * 12.5% = 1.25625 -> 1.26
        assert pricing_service.compute_discount(1005, Adjustment("PERCENT", 1250)) == 126
        # 0.10 * 5% = 0.005 -> 0.01
        assert pricing_service.compute_discount(10, Adjustment("PERCENT", 500)) == 1

    def test_discount_never_exceeds_subtotal(self):
        discount, fee, total = pricing_service.compute_totals(
            1000, Adjustment("FIXED", 5000), Adjustment("NONE", 0)
        )
        assert discount == 1000
        assert fee == 0
        assert total == 0

    def test_fixed_fee_applies_even_when_fully_discounted(self):
        discount, fee, total = pricing_service.compute_totals(
            1000, Adjustment("PERCENT", 10_000), Adjustment("FIXED", 300)
        )
        assert (discount, fee, total) == (1000, 300, 300)

    def test_percent_fee_is_on_discounted_base(self):
        discount, fee, total = pricing_service.compute_totals(
            2000, Adjustment("FIXED", 1000), Adjustment("PERCENT", 1000)
        )
        assert (discount, fee, total) == (1000, 100, 1100)

    def test_modifier_quantity_multiplies_price_and_line_quantity_applies(self):
        cart = _cart(_line(2, "a", quantity=3, modifiers=[(100, 2), (101, 1)]))
        priced = pricing_service.price_cart(cart, _snapshot())

        line = priced.lines[0]
        assert line.unit_price_cents == 1500 + 2 * 200 + 150
        assert line.line_total_cents == 3 * 2050
        assert priced.total_cents == 6150

    def test_combo_uses_combo_price(self):
        cart = _cart(_line(10, "c", quantity=2, item_type="COMBO"))
        priced = pricing_service.price_cart(cart, _snapshot())
        assert priced.lines[0].item_name == "Combo"
        assert priced.subtotal_cents == 4000


class TestReferences:
    def test_unknown_product(self):
        cart = _cart(_line(999, "a"))
        with pytest.raises(InvalidReferenceError):
            pricing_service.price_cart(cart, _snapshot())

    def test_inactive_product(self):
        cart = _cart(_line(4, "a"))
        with pytest.raises(InvalidReferenceError):
            pricing_service.price_cart(cart, _snapshot())

    def test_unknown_combo(self):
        cart = _cart(_line(1, "a", item_type="COMBO"))
        with pytest.raises(InvalidReferenceError):
            pricing_service.price_cart(cart, _snapshot())

    def test_inactive_modifier(self):
        cart = _cart(_line(2, "a", modifiers=[(120, 1)]))
        with pytest.raises(InvalidReferenceError):
            pricing_service.price_cart(cart, _snapshot())

    def test_modifier_from_group_not_linked_to_product(self):
        cart = _cart(_line(1, "a", modifiers=[(100, 1)]))
        with pytest.raises(InvalidReferenceError):
            pricing_service.price_cart(cart, _snapshot())


class TestModifierGroups:
    def test_required_group_without_selection(self):
        cart = _cart(_line(3, "steak"))
        with pytest.raises(ModifierConstraintError) as exc:
            pricing_service.price_cart(cart, _snapshot())
        assert exc.value.group_id == 51

    def test_required_group_satisfied(self):
        cart = _cart(_line(3, "steak", modifiers=[(110, 1)]))
        assert pricing_service.price_cart(cart, _snapshot()).total_cents == 3000

    def test_max_select_exceeded(self):
        cart = _cart(_line(2, "a", modifiers=[(100, 1), (101, 1), (102, 1)]))
        with pytest.raises(ModifierConstraintError) as exc:
            pricing_service.price_cart(cart, _snapshot())
        assert exc.value.group_id == 50

    def test_quantity_does_not_count_towards_max_select(self):
        cart = _cart(_line(2, "a", modifiers=[(100, 5)]))
        priced = pricing_service.price_cart(cart, _snapshot())
        assert priced.lines[0].unit_price_cents == 2500

    def test_required_with_zero_min_still_needs_one(self):
        snapshot = _snapshot(groups={
            50: GroupInfo(id=50, name="Extras", min_select=0, max_select=0, required=True, active=True),
        })
        with pytest.raises(ModifierConstraintError):
            pricing_service.price_cart(_cart(_line(2, "a")), snapshot)

    def test_inactive_group_is_not_enforced(self):
        snapshot = _snapshot(groups={
            50: GroupInfo(id=50, name="Extras", min_select=0, max_select=2, required=False, active=True),
            51: GroupInfo(id=51, name="Ponto", min_select=1, max_select=1, required=True, active=False),
        })
        priced = pricing_service.price_cart(_cart(_line(3, "steak")), snapshot)
        assert priced.total_cents == 3000


class TestTableOrders:
    def test_table_order_needs_open_session(self):
        cart = _cart(_line(1, "a"), orderType="TABLE", tableSessionId=7)
        closed = TableSessionInfo(id=7, table_id=1, status="CLOSED")
        with pytest.raises(InvalidTableError):
            pricing_service.price_cart(cart, _snapshot(table_session=closed))

    def test_table_order_with_missing_session(self):
        cart = _cart(_line(1, "a"), orderType="TABLE", tableSessionId=7)
        with pytest.raises(InvalidTableError):
            pricing_service.price_cart(cart, _snapshot())

    def test_table_order_carries_table_id(self):
        cart = _cart(_line(1, "a"), orderType="TABLE", tableSessionId=7)
        session = TableSessionInfo(id=7, table_id=3, status="OPEN")
        priced = pricing_service.price_cart(cart, _snapshot(table_session=session))
        assert priced.table_id == 3

import pytest

from pdv.errors import (
    ConflictError,
    InvalidReferenceError,
    NotCancelableError,
    NotFoundError,
    RegisterClosedError,
    ShiftRequiredError,
    ValidationError,
)
from pdv.models import Order, OrderEvent, OrderItem, OrderItemModifier, Payment
from pdv.services import order_service, register_service, table_service
from pdv.services.catalog_service import load_snapshot
from pdv.services.cart_schema import parse_cart
from pdv.services.pricing_service import price_cart

from conftest import combo_line, product_line, sample_cart


class TestPlaceOrder:
    def test_creates_open_order_with_lines_and_event(self, db_session, operator, catalog, open_register):
        order = order_service.place_order(sample_cart(catalog), operator.id)

        assert order.status == "OPEN"
        assert order.total_cents == 2420
        assert order.cash_register_id == open_register.id
        assert order.shift_id == register_service.get_open_shift(operator.id).id

        items = db_session.query(OrderItem).filter_by(order_id=order.id).order_by(OrderItem.id).all()
        assert [i.client_reference for i in items] == ["line-1", "line-2"]
        assert items[1].unit_price_cents == 1700
        mods = db_session.query(OrderItemModifier).filter_by(order_item_id=items[1].id).all()
        assert [(m.modifier_name, m.quantity, m.unit_price_cents) for m in mods] == [("Bacon", 1, 200)]

        events = db_session.query(OrderEvent).filter_by(order_id=order.id).all()
        assert len(events) == 1
        assert events[0].event_type == "CREATED"
        assert events[0].payload == {
            "subtotal_cents": 2700,
            "discount_cents": 500,
            "service_fee_cents": 220,
            "total_cents": 2420,
        }

    def test_snapshots_names_and_prices(self, db_session, operator, catalog, open_register):
        order = order_service.place_order(sample_cart(catalog), operator.id)
        catalog.burger.price_cents = 9999
        catalog.burger.name = "Renamed"
        db_session.commit()

        item = db_session.query(OrderItem).filter_by(order_id=order.id, client_reference="line-1").one()
        assert item.item_name == "Burger"
        assert item.unit_price_cents == 1000

    def test_combo_line(self, db_session, operator, catalog, open_register):
        order = order_service.place_order({"items": [combo_line(catalog.combo, "c1", 2)]}, operator.id)
        item = db_session.query(OrderItem).filter_by(order_id=order.id).one()
        assert item.combo_id == catalog.combo.id
        assert item.product_id is None
        assert order.total_cents == 4000

    def test_register_closed(self, db_session, operator, catalog):
        register_service.open_shift(operator.id)
        with pytest.raises(RegisterClosedError):
            order_service.place_order(sample_cart(catalog), operator.id)
        assert db_session.query(Order).count() == 0

    def test_operator_without_shift(self, db_session, operator, other_operator, catalog, open_register):
        with pytest.raises(ShiftRequiredError):
            order_service.place_order(sample_cart(catalog), other_operator.id)

    def test_auto_open_shift_when_enabled(self, app, db_session, other_operator, catalog, open_register, monkeypatch):
        monkeypatch.setitem(app.config, "AUTO_OPEN_SHIFT_ON_ORDER", True)
        order = order_service.place_order(sample_cart(catalog), other_operator.id)
        shift = register_service.get_open_shift(other_operator.id)
        assert shift is not None
        assert order.shift_id == shift.id

    def test_invalid_reference_writes_nothing(self, db_session, operator, catalog, open_register):
        cart = {"items": [product_line(catalog.burger, "a"), product_line(catalog.retired, "b")]}
        with pytest.raises(InvalidReferenceError):
            order_service.place_order(cart, operator.id)
        assert db_session.query(Order).count() == 0

    def test_failure_mid_write_rolls_back_everything(self, db_session, operator, catalog, open_register, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(order_service, "append_order_event", boom)
        with pytest.raises(RuntimeError):
            order_service.place_order(sample_cart(catalog), operator.id)

        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderItem).count() == 0

    def test_create_order_checks_register_status(self, db_session, operator, catalog, open_register):
        cart = parse_cart(sample_cart(catalog))
        priced = price_cart(cart, load_snapshot(cart))
        shift_id = register_service.get_open_shift(operator.id).id
        register_service.close_register(10000, operator.id)

        with pytest.raises(RegisterClosedError):
            order_service.create_order(priced, register_id=open_register.id, shift_id=shift_id, operator_id=operator.id)

    def test_table_order(self, db_session, operator, catalog, open_register):
        session = table_service.open_session(catalog.table.id, operator.id)
        cart = sample_cart(catalog)
        cart.update(orderType="TABLE", tableSessionId=session.id)

        order = order_service.place_order(cart, operator.id)

        assert order.order_type == "TABLE"
        assert order.table_session_id == session.id
        assert order.table_id == catalog.table.id


class TestCancelOrder:
    def test_cancel_once(self, db_session, operator, catalog, open_register):
        order = order_service.place_order(sample_cart(catalog), operator.id)

        canceled = order_service.cancel_order(order.id, "customer left", operator.id)
        assert canceled.status == "CANCELED"
        assert canceled.canceled_at is not None

        with pytest.raises(NotCancelableError):
            order_service.cancel_order(order.id, "again", operator.id)

        events = [e.event_type for e in order_service.get_order_events(order.id)]
        assert events == ["CREATED", "CANCELED"]
        assert order_service.get_order_events(order.id)[1].payload == {"reason": "customer left"}

    def test_cancel_with_payment_is_conflict(self, db_session, operator, catalog, open_register):
        order = order_service.place_order(sample_cart(catalog), operator.id)
        db_session.add(Payment(order_id=order.id, method="CASH", amount_cents=100, created_by=operator.id))
        db_session.commit()

        with pytest.raises(ConflictError):
            order_service.cancel_order(order.id, "oops", operator.id)
        assert db_session.get(Order, order.id).status == "OPEN"

    def test_cancel_requires_reason(self, db_session, operator, catalog, open_register):
        order = order_service.place_order(sample_cart(catalog), operator.id)
        with pytest.raises(ValidationError):
            order_service.cancel_order(order.id, "   ", operator.id)

    def test_cancel_unknown_order(self, db_session, operator):
        with pytest.raises(NotFoundError):
            order_service.cancel_order(12345, "reason", operator.id)

    def test_cancel_after_order_left_open_state(self, db_session, operator, catalog, open_register):
        order = order_service.place_order(sample_cart(catalog), operator.id)
        # Another request settled the order first
        db_session.query(Order).filter_by(id=order.id).update({"status": "PAID"}, synchronize_session=False)
        db_session.commit()

        with pytest.raises(NotCancelableError):
            order_service.cancel_order(order.id, "late", operator.id)


class TestQueries:
    def test_list_orders_filters_and_pages(self, db_session, operator, catalog, open_register):
        first = order_service.place_order(sample_cart(catalog), operator.id)
        second = order_service.place_order(sample_cart(catalog), operator.id)
        order_service.cancel_order(first.id, "test", operator.id)

        open_orders, total = order_service.list_orders(status="OPEN")
        assert total == 1
        assert [o.id for o in open_orders] == [second.id]

        page, total = order_service.list_orders(limit=1)
        assert total == 2
        assert [o.id for o in page] == [second.id]

    def test_list_orders_rejects_unknown_status(self, db_session):
        with pytest.raises(ValidationError):
            order_service.list_orders(status="LOST")

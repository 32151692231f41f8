import pytest

from pdv.errors import ConflictError, NotFoundError, ValidationError
from pdv.models import DiningTable, TableSession
from pdv.services import order_service, table_service

from conftest import sample_cart


class TestTableSessions:
    def test_one_open_session_per_table(self, db_session, operator, catalog):
        first = table_service.open_session(catalog.table.id, operator.id)
        with pytest.raises(ConflictError):
            table_service.open_session(catalog.table.id, operator.id)

        assert [s.id for s in table_service.list_open_sessions()] == [first.id]

    def test_unknown_table(self, db_session, operator):
        with pytest.raises(NotFoundError):
            table_service.open_session(404, operator.id)

    def test_inactive_table(self, db_session, operator):
        table = DiningTable(name="Varanda", active=False)
        db_session.add(table)
        db_session.commit()
        with pytest.raises(ValidationError):
            table_service.open_session(table.id, operator.id)

    def test_close_blocked_while_orders_open(self, db_session, operator, catalog, open_register):
        session = table_service.open_session(catalog.table.id, operator.id)
        cart = sample_cart(catalog)
        cart.update(orderType="TABLE", tableSessionId=session.id)
        order = order_service.place_order(cart, operator.id)

        with pytest.raises(ConflictError):
            table_service.close_session(session.id, operator.id)

        order_service.cancel_order(order.id, "walked out", operator.id)
        closed = table_service.close_session(session.id, operator.id)
        assert closed.status == "CLOSED"
        assert closed.closed_by == operator.id

    def test_closed_session_rejects_new_table_orders(self, db_session, operator, catalog, open_register):
        session = table_service.open_session(catalog.table.id, operator.id)
        table_service.close_session(session.id, operator.id)

        cart = sample_cart(catalog)
        cart.update(orderType="TABLE", tableSessionId=session.id)
        with pytest.raises(ValidationError):
            order_service.place_order(cart, operator.id)

    def test_table_reopens_after_close(self, db_session, operator, catalog):
        first = table_service.open_session(catalog.table.id, operator.id)
        table_service.close_session(first.id, operator.id)
        second = table_service.open_session(catalog.table.id, operator.id)

        assert second.id != first.id
        assert db_session.query(TableSession).count() == 2

    def test_close_twice(self, db_session, operator, catalog):
        session = table_service.open_session(catalog.table.id, operator.id)
        table_service.close_session(session.id, operator.id)
        with pytest.raises(ConflictError):
            table_service.close_session(session.id, operator.id)

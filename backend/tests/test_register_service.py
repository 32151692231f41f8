import pytest

from pdv.errors import ConflictError, NotFoundError, RegisterClosedError, UnauthenticatedError, ValidationError
from pdv.extensions import db
from pdv.models import CashRegister, Shift
from pdv.services import order_service, payment_service, register_service

from conftest import sample_cart


class TestOpenRegister:
    def test_opens_register_and_implicit_shift(self, db_session, operator):
        register = register_service.open_register(5000, operator.id)

        assert register.status == "OPEN"
        assert register.opening_cents == 5000
        shift = register_service.get_open_shift(operator.id)
        assert shift is not None
        assert shift.note_open == "automatic"
        assert shift.cash_register_id == register.id

    def test_keeps_existing_shift(self, db_session, operator):
        shift = register_service.open_shift(operator.id, note="morning")
        register_service.open_register(0, operator.id)

        shifts = db_session.query(Shift).filter_by(opened_by=operator.id).all()
        assert [s.id for s in shifts] == [shift.id]
        assert shifts[0].note_open == "morning"

    def test_second_open_is_conflict(self, db_session, operator):
        register_service.open_register(1000, operator.id)
        with pytest.raises(ConflictError):
            register_service.open_register(2000, operator.id)
        assert db_session.query(CashRegister).filter_by(status="OPEN").count() == 1

    def test_unique_index_catches_a_missed_check(self, db_session, operator, monkeypatch):
        register_service.open_register(1000, operator.id)
        # Simulate a concurrent request that read "no open register" before ours committed
        monkeypatch.setattr(register_service, "get_open_register", lambda: None)

        with pytest.raises(ConflictError):
            register_service.open_register(2000, operator.id)
        assert db_session.query(CashRegister).filter_by(status="OPEN").count() == 1

    def test_negative_opening_rejected(self, db_session, operator):
        with pytest.raises(ValidationError):
            register_service.open_register(-1, operator.id)

    def test_requires_operator(self, db_session):
        with pytest.raises(UnauthenticatedError):
            register_service.open_register(0, None)


class TestCloseRegister:
    def test_close_without_open_register(self, db_session, operator):
        with pytest.raises(NotFoundError):
            register_service.close_register(0, operator.id)

    def test_close_blocked_by_open_orders(self, db_session, operator, catalog, open_register):
        order_service.place_order(sample_cart(catalog), operator.id)
        with pytest.raises(ConflictError):
            register_service.close_register(10000, operator.id)
        assert register_service.get_open_register().id == open_register.id

    def test_close_records_expected_cash_and_variance(
        self, db_session, operator, catalog, payment_methods, open_register
    ):
        order = order_service.place_order(sample_cart(catalog), operator.id)
        payment_service.finalize_payment(order.id, [
            {"method": "CASH", "amount": "14.20", "received": "20.00"},
            {"method": "PIX", "amount": "10.00"},
        ], operator.id, on_paid=lambda o: None)
        register_service.record_movement("SUPPLY", 2000, operator.id, reason="coins")
        register_service.record_movement("WITHDRAW", 500, operator.id, reason="sangria")

        # 100.00 opening + 14.20 cash + 20.00 supply - 5.00 withdraw
        closed = register_service.close_register(12900, operator.id, notes="end of day")

        assert closed.status == "CLOSED"
        assert closed.expected_cents == 12920
        assert closed.variance_cents == -20
        assert closed.closed_by == operator.id
        assert register_service.get_open_shift(operator.id) is None

    def test_register_can_reopen_after_close(self, db_session, operator):
        register_service.open_register(0, operator.id)
        register_service.close_register(0, operator.id)
        reopened = register_service.open_register(100, operator.id)
        assert reopened.status == "OPEN"
        assert db_session.query(CashRegister).count() == 2


class TestMovementsAndSummary:
    def test_movement_needs_open_register(self, db_session, operator):
        with pytest.raises(RegisterClosedError):
            register_service.record_movement("SUPPLY", 100, operator.id)

    def test_movement_validation(self, db_session, operator, open_register):
        with pytest.raises(ValidationError):
            register_service.record_movement("BONUS", 100, operator.id)
        with pytest.raises(ValidationError):
            register_service.record_movement("SUPPLY", 0, operator.id)

    def test_summary_breaks_down_by_method(self, db_session, operator, catalog, payment_methods, open_register):
        order = order_service.place_order(sample_cart(catalog), operator.id)
        payment_service.finalize_payment(order.id, [
            {"method": "CASH", "amount": "14.20"},
            {"method": "PIX", "amount": "10.00"},
        ], operator.id, on_paid=lambda o: None)
        order_service.place_order(sample_cart(catalog), operator.id)

        summary = register_service.get_register_summary(open_register.id)

        assert summary["cash_sales_cents"] == 1420
        assert summary["expected_cash_cents"] == 11420
        assert summary["orders"] == {"OPEN": 1, "PAID": 1, "CANCELED": 0}
        methods = {row["method"]: row["amount_cents"] for row in summary["payments_by_method"]}
        assert methods == {"CASH": 1420, "PIX": 1000}


class TestShifts:
    def test_one_open_shift_per_operator(self, db_session, operator, other_operator):
        register_service.open_shift(operator.id)
        with pytest.raises(ConflictError):
            register_service.open_shift(operator.id)
        # a different operator is independent
        assert register_service.open_shift(other_operator.id).status == "OPEN"

    def test_close_shift(self, db_session, operator):
        register_service.open_shift(operator.id)
        closed = register_service.close_shift(operator.id, note="bye")
        assert closed.status == "CLOSED"
        assert closed.note_close == "bye"
        with pytest.raises(NotFoundError):
            register_service.close_shift(operator.id)

    def test_shift_attaches_to_open_register(self, db_session, operator, other_operator, open_register):
        shift = register_service.open_shift(other_operator.id)
        assert shift.cash_register_id == open_register.id
        db.session.expire_all()
        assert db.session.get(Shift, shift.id).register.id == open_register.id

from pdv.models import PaymentMethod
from pdv.services import session_service


def test_system_init_seeds_payment_methods(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["system", "init"])
    assert result.exit_code == 0
    assert "Payment methods created: 3" in result.output

    again = runner.invoke(args=["system", "init"])
    assert "Payment methods created: 0" in again.output
    assert sorted(m.code for m in db_session.query(PaymentMethod)) == ["CARD", "CASH", "PIX"]


def test_issue_token(app, operator):
    result = app.test_cli_runner().invoke(args=["operators", "token", "--username", "caixa1"])

    token = result.output.strip()
    assert session_service.validate_session(token).operator.id == operator.id


def test_register_status_when_closed(app, db_session):
    result = app.test_cli_runner().invoke(args=["registers", "status"])
    assert "Register is CLOSED" in result.output

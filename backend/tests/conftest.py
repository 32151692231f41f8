"""
Pytest fixtures for PDV backend tests.

Provides a file-backed SQLite database (so separate app contexts get
separate connections, which the settlement race test relies on), a seeded
catalog, an operator with a session token, and the test client.
"""

from types import SimpleNamespace

import pytest

from pdv import create_app
from pdv.extensions import db
from pdv.models import (
    Combo,
    ComboItem,
    DiningTable,
    Modifier,
    ModifierGroup,
    Operator,
    Product,
    ProductModifierGroup,
)
from pdv.services import payment_service, register_service, session_service
from pdv.services.auth_service import hash_password


OPERATOR_PASSWORD = "caixa1234"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    db_path = tmp_path_factory.mktemp("pdv") / "pdv-test.sqlite3"
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
        'AUTO_OPEN_SHIFT_ON_ORDER': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh tables for each test."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()
        db.session.remove()


@pytest.fixture(scope='session')
def password_hash():
    # bcrypt at cost 12 is slow; hash once per run
    return hash_password(OPERATOR_PASSWORD)


@pytest.fixture(scope='function')
def operator(db_session, password_hash):
    op = Operator(username="caixa1", display_name="Caixa 1", password_hash=password_hash, is_active=True)
    db_session.add(op)
    db_session.commit()
    return op


@pytest.fixture(scope='function')
def other_operator(db_session, password_hash):
    op = Operator(username="caixa2", display_name="Caixa 2", password_hash=password_hash, is_active=True)
    db_session.add(op)
    db_session.commit()
    return op


@pytest.fixture(scope='function')
def auth_headers(operator):
    _, token = session_service.create_session(operator.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope='function')
def payment_methods(db_session):
    payment_service.ensure_default_payment_methods()
    return payment_service.list_payment_methods()


@pytest.fixture(scope='function')
def catalog(db_session):
    """
    Small burger-shop catalog:
    - burger 10.00 (stock 50), x_salad 15.00 with optional "Extras" (max 2)
    - fries 6.00 (stock 3, min 5), soda 5.00 (untracked)
    - combo 20.00 = burger + fries + soda
    - "Ponto" group (required) linked to steak 30.00
    """
    burger = Product(name="Burger", price_cents=1000, track_stock=True, stock_qty=50, min_stock=5)
    x_salad = Product(name="X-Salada", price_cents=1500)
    fries = Product(name="Fries", price_cents=600, track_stock=True, stock_qty=3, min_stock=5)
    soda = Product(name="Soda", price_cents=500)
    steak = Product(name="Steak", price_cents=3000)
    retired = Product(name="Retired", price_cents=800, active=False)
    db_session.add_all([burger, x_salad, fries, soda, steak, retired])
    db_session.flush()

    extras = ModifierGroup(name="Extras", min_select=0, max_select=2, required=False)
    doneness = ModifierGroup(name="Ponto", min_select=1, max_select=1, required=True)
    db_session.add_all([extras, doneness])
    db_session.flush()

    bacon = Modifier(group_id=extras.id, name="Bacon", price_cents=200)
    cheese = Modifier(group_id=extras.id, name="Cheese", price_cents=150)
    egg = Modifier(group_id=extras.id, name="Egg", price_cents=100)
    rare = Modifier(group_id=doneness.id, name="Rare", price_cents=0)
    well_done = Modifier(group_id=doneness.id, name="Well done", price_cents=0)
    db_session.add_all([bacon, cheese, egg, rare, well_done])

    db_session.add_all([
        ProductModifierGroup(product_id=x_salad.id, group_id=extras.id, sort_order=1),
        ProductModifierGroup(product_id=steak.id, group_id=doneness.id, sort_order=1),
    ])

    combo = Combo(name="Combo Burger", price_cents=2000)
    db_session.add(combo)
    db_session.flush()
    db_session.add_all([
        ComboItem(combo_id=combo.id, product_id=burger.id, quantity=1),
        ComboItem(combo_id=combo.id, product_id=fries.id, quantity=1),
        ComboItem(combo_id=combo.id, product_id=soda.id, quantity=1),
    ])

    table = DiningTable(name="Mesa 1", sort_order=1)
    db_session.add(table)
    db_session.commit()

    return SimpleNamespace(
        burger=burger, x_salad=x_salad, fries=fries, soda=soda, steak=steak, retired=retired,
        extras=extras, doneness=doneness, bacon=bacon, cheese=cheese, egg=egg,
        rare=rare, well_done=well_done, combo=combo, table=table,
    )


@pytest.fixture(scope='function')
def open_register(db_session, operator):
    """Open register with a 100.00 float; also opens the operator's shift."""
    return register_service.open_register(10000, operator.id)


def product_line(product, ref, quantity=1, modifiers=None):
    return {
        "itemType": "PRODUCT",
        "itemId": product.id,
        "clientReference": ref,
        "quantity": quantity,
        "modifiers": [{"modifierId": m.id, "quantity": q} for m, q in (modifiers or [])],
    }


def combo_line(combo, ref, quantity=1):
    return {"itemType": "COMBO", "itemId": combo.id, "clientReference": ref, "quantity": quantity}


def sample_cart(catalog):
    """10.00 burger + 15.00 x-salad with 2.00 bacon, FIXED 5.00 off, 10% fee -> 24.20."""
    return {
        "items": [
            product_line(catalog.burger, "line-1"),
            product_line(catalog.x_salad, "line-2", modifiers=[(catalog.bacon, 1)]),
        ],
        "orderType": "COUNTER",
        "discountType": "FIXED",
        "discountValue": "5.00",
        "serviceFeeType": "PERCENT",
        "serviceFeeValue": "10",
    }

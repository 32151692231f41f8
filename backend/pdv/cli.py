# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/pdv/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the CASH/PIX/CARD payment methods.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Operators:
# - python -m flask operators list
# - python -m flask operators create --username caixa1 --password "caixa1234"
# - python -m flask operators token --username caixa1
#   Issue a session token (for scripts and API testing).
#
# Inspection:
# - python -m flask registers status
#   Show the open register, its expected cash, and open orders.
# - python -m flask inventory low-stock

import click
from flask.cli import with_appcontext

from .errors import PdvError
from .extensions import db
from .models import Operator
from .services import auth_service, payment_service, register_service, session_service, stock_service
from .validation import format_cents


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create tables (if missing) and seed default payment methods."""
    db.create_all()
    created = payment_service.ensure_default_payment_methods()
    click.echo(f"OK Payment methods created: {created}")
    if not db.session.query(Operator).first():
        click.echo("NOTE No operators yet. Run 'python -m flask operators create'.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        return
    db.drop_all()
    db.create_all()
    payment_service.ensure_default_payment_methods()
    click.echo("OK Database reset")


@click.group('operators')
def operators_group():
    """Operator management commands."""


@operators_group.command('list')
@with_appcontext
def list_operators():
    operators = db.session.query(Operator).order_by(Operator.id).all()
    if not operators:
        click.echo("No operators")
        return
    for op in operators:
        status = "active" if op.is_active else "inactive"
        click.echo(f"{op.id:>4}  {op.username:<20} {status}")


@operators_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--display-name', default=None, help='Name shown on receipts')
@with_appcontext
def create_operator_cli(username, password, display_name):
    """Create an operator (password: 8+ characters with a letter and a digit)."""
    try:
        operator = auth_service.create_operator(username, password, display_name=display_name)
        click.echo(f"OK Operator '{operator.username}' created (id={operator.id})")
    except PdvError as e:
        click.echo(f"FAIL {e}")


@operators_group.command('token')
@click.option('--username', required=True, help='Operator username')
@with_appcontext
def issue_token(username):
    operator = db.session.query(Operator).filter_by(username=username, is_active=True).first()
    if not operator:
        click.echo(f"FAIL Active operator '{username}' not found")
        return
    _, token = session_service.create_session(operator.id)
    click.echo(token)


@click.group('registers')
def registers_group():
    """Register inspection commands."""


@registers_group.command('status')
@with_appcontext
def register_status():
    register = register_service.get_open_register()
    if not register:
        click.echo("Register is CLOSED")
        return
    summary = register_service.get_register_summary(register.id)
    click.echo(f"Register {register.id} OPEN since {register.to_dict()['opened_at']}")
    click.echo(f"  Opening:       {format_cents(summary['opening_cents'])}")
    click.echo(f"  Cash sales:    {format_cents(summary['cash_sales_cents'])}")
    click.echo(f"  Supplies:      {format_cents(summary['supplies_cents'])}")
    click.echo(f"  Withdrawals:   {format_cents(summary['withdrawals_cents'])}")
    click.echo(f"  Expected cash: {format_cents(summary['expected_cash_cents'])}")
    click.echo(f"  Open orders:   {summary['orders']['OPEN']}")


@click.group('inventory')
def inventory_group():
    """Stock inspection commands."""


@inventory_group.command('low-stock')
@with_appcontext
def low_stock():
    products = stock_service.get_low_stock_products()
    if not products:
        click.echo("No products at or below minimum stock")
        return
    for product in products:
        click.echo(f"{product.id:>4}  {product.name:<30} {product.stock_qty:>5} (min {product.min_stock})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(operators_group)
    app.cli.add_command(registers_group)
    app.cli.add_command(inventory_group)

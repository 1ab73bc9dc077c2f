# Overview: Flask CLI command groups for schema bootstrap, product seeding, and cash drawer inspection.

# backend/storecore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Schema:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Products:
# - python -m flask products create --sku P-001 --name "Arroz 1kg" --price 4.50 --stock 10 --minimum 5
# - python -m flask products list [--low-stock]
#
# Cash drawer:
# - python -m flask cash current
# - python -m flask cash sessions --status closed --limit 20

import click
from flask.cli import with_appcontext

from .errors import StoreCoreError
from .extensions import db
from .services import cash_session_service, products_service
from .validation import amount_to_cents


def _money(cents) -> str:
    if cents is None:
        return "-"
    return f"{cents / 100:,.2f}"


@click.group('system')
def system_group():
    """Schema bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('products')
def products_group():
    """Product seeding and stock inspection."""


@products_group.command('create')
@click.option('--sku', required=True)
@click.option('--name', required=True)
@click.option('--price', help='Unit price as a decimal amount, e.g. 4.50')
@click.option('--stock', type=int, default=0, show_default=True, help='Initial stock')
@click.option('--minimum', type=int, default=0, show_default=True, help='Low-stock threshold')
@click.option('--unit', help='Unit of measure')
@with_appcontext
def create_product_cli(sku, name, price, stock, minimum, unit):
    """
    Create a product.

    Example:
        flask products create --sku P-001 --name "Arroz 1kg" --price 4.50 --stock 10 --minimum 5
    """
    try:
        product = products_service.create_product(
            sku=sku,
            name=name,
            price_cents=amount_to_cents(price, "price") if price is not None else None,
            stock_quantity=stock,
            stock_minimum=minimum,
            unit_of_measure=unit,
        )
    except StoreCoreError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Created product {product.sku} (ID: {product.id}) stock={product.stock_quantity}")


@products_group.command('list')
@click.option('--low-stock', is_flag=True, help='Only products at zero or under their minimum')
@with_appcontext
def list_products_cli(low_stock):
    products = products_service.list_low_stock() if low_stock else products_service.list_products()

    if not products:
        click.echo("No products found.")
        return

    click.echo("\n" + "=" * 90)
    click.echo(f"{'ID':<5} {'SKU':<14} {'Name':<30} {'Stock':>7} {'Min':>5} {'State':<8} {'Price':>10}")
    click.echo("=" * 90)
    for p in products:
        click.echo(
            f"{p.id:<5} {p.sku:<14} {p.name[:30]:<30} {p.stock_quantity:>7} "
            f"{p.stock_minimum:>5} {p.stock_state:<8} {_money(p.price_cents):>10}"
        )
    click.echo("=" * 90 + "\n")


@click.group('cash')
def cash_group():
    """Cash drawer session inspection."""


@cash_group.command('current')
@with_appcontext
def current_session_cli():
    session = cash_session_service.get_current_open()
    if session is None:
        click.echo("No open cash session.")
        return

    summary = cash_session_service.get_session_summary(session.id)
    click.echo(f"Session {session.id} open since {session.opening_date}")
    click.echo(f"   Initial:  {_money(summary['initial_amount_cents'])}")
    click.echo(f"   Sales:    {_money(summary['total_sales_cents'])} ({summary['sales_count']} sales)")
    click.echo(f"   Expected: {_money(summary['expected_amount_cents'])}")


@cash_group.command('sessions')
@click.option('--status', type=click.Choice(['open', 'closed']), help='Filter by status')
@click.option('--limit', type=int, default=20, help='Max sessions to show')
@with_appcontext
def list_sessions_cli(status, limit):
    """
    List cash sessions, newest first.

    Example:
        flask cash sessions
        flask cash sessions --status closed
    """
    sessions = cash_session_service.list_sessions(status=status, limit=limit)

    if not sessions:
        click.echo("No sessions found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<5} {'Status':<8} {'Opened':<20} {'Initial':>12} {'Expected':>12} {'Actual':>12} {'Diff':>10}")
    click.echo("=" * 100)

    for session in sessions:
        diff = "-"
        if session.difference_cents is not None:
            diff = f"{session.difference_cents / 100:+.2f}"
        click.echo(
            f"{session.id:<5} {session.status:<8} {str(session.opening_date)[:19]:<20} "
            f"{_money(session.initial_amount_cents):>12} {_money(session.expected_amount_cents):>12} "
            f"{_money(session.actual_amount_cents):>12} {diff:>10}"
        )

    click.echo("=" * 100 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(products_group)
    app.cli.add_command(cash_group)

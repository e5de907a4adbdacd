# Overview: Flask CLI command groups for bootstrap, stock verification, and sale reconciliation.

# backend/kirana_pos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, the shop settings row, and the invoice counter.
# - python -m flask system seed-demo
#   Add a small kirana catalog with opening stock (skips barcodes already present).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Stock:
# - python -m flask stock verify [--product-id 3]
#   Replay the ledger and compare with cached stock for every (or one) product.
#
# Sales:
# - python -m flask sales reconcile [--abort-stale] [--minutes 15]
#   Report sales missing stock movements and finalize attempts that never committed.

import click
from datetime import timedelta
from flask.cli import with_appcontext

from .extensions import db
from .models import Product
from .services import products_service, sales_service, stock_service
from .services.invoice_service import ensure_counter, peek_next_number
from .services.settings_service import get_settings

DEMO_CATALOG = [
    # barcode, name, category, unit, purchase, selling, gst, opening, min
    ("8901030865278", "Tata Salt 1kg", "Groceries", "Packet", "22.00", "28.00", "0", "40", "10"),
    ("8901725181222", "Aashirvaad Atta 5kg", "Groceries", "Packet", "215.00", "245.00", "0", "15", "5"),
    ("8901063010201", "Parle-G Biscuit", "Snacks", "Packet", "8.50", "10.00", "18", "120", "24"),
    ("8901719110108", "Amul Taaza Milk 500ml", "Dairy", "Packet", "25.00", "27.00", "0", "30", "10"),
    ("8901030704355", "Surf Excel 1kg", "Household", "Packet", "120.00", "140.00", "18", "12", "4"),
    (None, "Toor Dal (loose)", "Groceries", "Kg", "110.00", "130.00", "0", "25.5", "5"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the shop database.

    Creates:
    - All tables (when not using migrations)
    - Default shop settings row
    - Invoice counter, starting at starting_invoice_number
    """
    click.echo("START Initializing Kirana POS...")
    db.create_all()
    click.echo("PASS Tables ready")

    settings = get_settings()
    click.echo(f"PASS Shop settings: {settings.shop_name} (prefix {settings.invoice_prefix})")

    ensure_counter(settings.starting_invoice_number)
    click.echo(f"PASS Invoice counter: next number {peek_next_number()}")


@system_group.command('seed-demo')
@click.option('--staff-id', default='system', help='Recorded as created_by on opening stock')
@with_appcontext
def seed_demo(staff_id):
    """Add a demo catalog with opening stock."""
    created = 0
    for barcode, name, category, unit, purchase, selling, gst, opening, minimum in DEMO_CATALOG:
        exists = db.session.query(Product).filter_by(name=name).first()
        if exists or (barcode and products_service.barcode_in_use(barcode)):
            click.echo(f"SKIP {name} (already present)")
            continue
        product = products_service.create_product(
            patch={
                "barcode": barcode,
                "name": name,
                "category": category,
                "unit": unit,
                "purchase_price": purchase,
                "selling_price": selling,
                "gst_rate": gst,
                "min_stock_level": minimum,
            },
            opening_stock=opening,
            created_by=staff_id,
        )
        created += 1
        click.echo(f"PASS {product.name} (ID: {product.id}, stock {product.current_stock})")
    click.echo(f"\nCreated {created} products.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('stock')
def stock_group():
    """Stock ledger commands."""


@stock_group.command('verify')
@click.option('--product-id', type=int, help='Check a single product')
@with_appcontext
def verify_stock_cli(product_id):
    """
    Compare each product's cached stock with a replay of its movements.

    Exits with status 1 when any product disagrees.
    """
    if product_id:
        product_ids = [product_id]
    else:
        product_ids = [pid for (pid,) in db.session.query(Product.id).order_by(Product.id).all()]

    mismatches = 0
    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<6} {'Product':<40} {'Cached':>12} {'Ledger':>12}  {'Status'}")
    click.echo("="*90)
    for pid in product_ids:
        result = stock_service.verify_stock(pid)
        status = "OK" if result["consistent"] else "MISMATCH"
        if not result["consistent"]:
            mismatches += 1
        click.echo(
            f"{result['product_id']:<6} {result['product_name'][:40]:<40} "
            f"{result['cached_stock']:>12} {result['ledger_stock']:>12}  {status}"
        )
    click.echo("="*90 + "\n")

    if mismatches:
        click.echo(f"FAIL {mismatches} product(s) out of sync with the ledger")
        raise SystemExit(1)
    click.echo(f"PASS {len(product_ids)} product(s) consistent")


@click.group('sales')
def sales_group():
    """Sale maintenance commands."""


@sales_group.command('reconcile')
@click.option('--abort-stale', is_flag=True, help='Mark stale finalize attempts aborted')
@click.option('--minutes', type=int, default=15, show_default=True, help='Age before an attempt counts as stale')
@with_appcontext
def reconcile_cli(abort_stale, minutes):
    """
    Report sales whose stock movements are incomplete and finalize attempts
    that reserved an invoice number but never produced a sale.
    """
    older_than = timedelta(minutes=minutes)

    incomplete = sales_service.find_incomplete_sales()
    if incomplete:
        click.echo("WARN Sales with missing stock movements:")
        for row in incomplete:
            click.echo(f"  {row['invoice_number']}: {row['movements']}/{row['items']} lines moved")
    else:
        click.echo("PASS Every sale has its stock movements")

    stale = sales_service.find_stale_attempts(older_than)
    if not stale:
        click.echo(f"PASS No finalize attempts older than {minutes} minutes")
        return

    click.echo(f"WARN {len(stale)} finalize attempt(s) never committed:")
    for attempt in stale:
        click.echo(f"  {attempt.invoice_number} attempt={attempt.attempt_id} by {attempt.created_by} at {attempt.created_at}")

    if abort_stale:
        aborted = sales_service.abort_stale_attempts(older_than)
        click.echo(f"PASS Aborted {aborted} attempt(s); their invoice numbers stay consumed")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(sales_group)

# Overview: Flask CLI command group for schema bootstrap, demo data and ledger audits.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask ledger <command> [options]
#
# - python -m flask ledger init-db
#   Create all tables that do not exist yet.
# - python -m flask ledger reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask ledger seed-demo
#   Create demo products, partners, one stock-in and one sale.
# - python -m flask ledger check-invariants
#   Audit batches, documents and payments; exits 1 on any violation.

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import Customer, Product, Supplier
from .services import sale_service, stock_in_service
from .services.invariant_service import check_invariants


@click.group('ledger')
def ledger_group():
    """Stock ledger bootstrap and audit commands."""


@ledger_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables (existing data is kept)."""
    db.create_all()
    click.echo("PASS Schema created.")


@ledger_group.command('reset-db')
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

    click.echo("PASS Database reset complete. Run 'python -m flask ledger seed-demo' for sample data.")


@ledger_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Seed a small demo ledger.

    Creates two products, one customer, one supplier, a stock-in receiving
    two batches and a sale drawing from one of them. Skipped when products
    already exist.
    """
    if db.session.query(Product).first() is not None:
        click.echo("WARN  Products already exist, skipping demo seed.")
        return

    coffee = Product(sku="CF-001", name="Ground coffee 500g", unit="bag",
                     default_sale_price=120000, default_cost_price=80000)
    tea = Product(sku="TE-001", name="Green tea 200g", unit="box",
                  default_sale_price=65000, default_cost_price=40000)
    customer = Customer(name="Demo Cafe", phone="0900000001")
    supplier = Supplier(name="Highland Farms", phone="0900000002")
    db.session.add_all([coffee, tea, customer, supplier])
    db.session.commit()
    click.echo(f"PASS Created products {coffee.sku}, {tea.sku}; customer {customer.id}; supplier {supplier.id}")

    try:
        stock_in = stock_in_service.create_stock_in(
            items=[
                {"product_id": coffee.id, "batch_code": "CF-2026-01", "quantity": 50,
                 "cost_price": 80000, "expiry_date": "2027-06-30"},
                {"product_id": tea.id, "batch_code": "TE-2026-01", "quantity": 30,
                 "cost_price": 40000, "expiry_date": "2027-03-31"},
            ],
            supplier_id=supplier.id,
            note="Demo receipt",
            created_by="seed",
        )
        click.echo(f"PASS Stock-in {stock_in.document_number} total {stock_in.total_amount}")

        coffee_batch = next(item.batch_id for item in stock_in.items if item.product_id == coffee.id)
        sale = sale_service.create_sale(
            items=[{"product_id": coffee.id, "batch_id": coffee_batch, "quantity": 5, "sale_price": 120000}],
            customer_id=customer.id,
            note="Demo sale",
            created_by="seed",
        )
        click.echo(f"PASS Sale {sale.document_number} total {sale.total_amount}")
    except LedgerError as e:
        click.echo(f"FAIL Demo seed failed: {e.message} {e.details}")
        raise click.exceptions.Exit(1)


@ledger_group.command('check-invariants')
@with_appcontext
def check_invariants_command():
    """Audit the ledger; prints every violation and exits 1 if any."""
    problems = check_invariants()
    if not problems:
        click.echo("PASS Ledger is consistent.")
        return
    for problem in problems:
        click.echo(f"FAIL {problem}")
    click.echo(f"\n{len(problems)} violation(s) found.")
    raise click.exceptions.Exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(ledger_group)

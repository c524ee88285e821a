# Overview: Flask CLI command groups for bootstrap and ledger maintenance.

# backend/hpledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (use `flask db upgrade` for migrated deployments).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo [--business "Demo Traders"]
#   Idempotent demo data: business, policy, shop, one user per role, customers, products.
#
# Ledger maintenance:
# - python -m flask ledger recalc --purchase-id 12
#   Re-derive paid/outstanding/status for one purchase.
# - python -m flask ledger recalc --business-id 1
#   Re-derive every purchase of a business (or all businesses when omitted).
# - python -m flask ledger mark-overdue [--business-id 1] [--as-of 2026-03-31]
#   Flip past-due purchases with a balance to OVERDUE.

import click
from flask.cli import with_appcontext

from .constants import (
    INTEREST_TYPE_FLAT,
    ROLE_ACCOUNTANT,
    ROLE_BUSINESS_ADMIN,
    ROLE_DEBT_COLLECTOR,
    ROLE_SALES_STAFF,
    ROLE_SHOP_ADMIN,
)
from .errors import LedgerError
from .extensions import db
from .models import Business, BusinessPolicy, Customer, Product, Purchase, Shop, ShopProduct, User
from .services import purchase_service
from .time_utils import parse_date


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""
    pass


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


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
    click.echo("PASS Database reset complete")


DEMO_USERS = [
    ("Amina Admin", "admin@demo.local", ROLE_BUSINESS_ADMIN, False),
    ("Sam Shopadmin", "shopadmin@demo.local", ROLE_SHOP_ADMIN, True),
    ("Ann Accountant", "accountant@demo.local", ROLE_ACCOUNTANT, True),
    ("Dan Collector", "collector@demo.local", ROLE_DEBT_COLLECTOR, False),
    ("Sue Sales", "sales@demo.local", ROLE_SALES_STAFF, False),
]

DEMO_CUSTOMERS = [
    ("Jane", "Wanjiru", "0700000001", "Moi Avenue 12", "Nairobi", "Nairobi"),
    ("Peter", "Otieno", "0700000002", "Oginga Odinga St 4", "Kisumu", "Nyanza"),
]

DEMO_PRODUCTS = [
    ("Solar Lamp", "SL-01", 150000, 200000, 220000, 250000),
    ("Gas Cooker", "GC-02", 800000, 1000000, 1100000, 1250000),
    ("Smartphone", "SP-03", 900000, 1200000, 1300000, 1500000),
]


@system_group.command('seed-demo')
@click.option('--business', 'business_name', default='Demo Traders', help='Business name')
@click.option('--slug', default='demo', help='Business slug')
@with_appcontext
def seed_demo(business_name, slug):
    """
    Idempotent demo bootstrap.

    Creates (only if missing):
    1. Business with a FLAT 10% policy (90 days, 3 installments)
    2. One shop ("main")
    3. One user per role (shop admin and accountant may confirm payments)
    4. Two customers and three products stocked in the shop
    """
    click.echo("START Seeding demo data...")

    business = db.session.query(Business).filter_by(slug=slug).first()
    if not business:
        business = Business(name=business_name, slug=slug)
        db.session.add(business)
        db.session.flush()
        db.session.add(BusinessPolicy(
            business_id=business.id,
            interest_type=INTEREST_TYPE_FLAT,
            interest_rate_bps=1000,
            max_tenor_days=90,
            default_installments=3,
        ))
        click.echo(f"PASS Created business: {business.name} (ID: {business.id})")
    else:
        click.echo(f"PASS Using existing business: {business.name} (ID: {business.id})")

    shop = db.session.query(Shop).filter_by(business_id=business.id, shop_slug="main").first()
    if not shop:
        shop = Shop(business_id=business.id, name="Main Shop", shop_slug="main")
        db.session.add(shop)
        db.session.flush()
        click.echo(f"PASS Created shop: {shop.name} (ID: {shop.id})")

    click.echo("\nUSERS Creating users...")
    for name, email, role, can_confirm in DEMO_USERS:
        if db.session.query(User).filter_by(business_id=business.id, email=email).first():
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue
        user = User(
            business_id=business.id,
            shop_id=None if role == ROLE_BUSINESS_ADMIN else shop.id,
            name=name,
            email=email,
            role=role,
            can_confirm_payments=can_confirm,
        )
        db.session.add(user)
        db.session.flush()
        click.echo(f"PASS Created user: {name} ({role}) ID {user.id}")

    for first, last, phone, address, city, region in DEMO_CUSTOMERS:
        if db.session.query(Customer).filter_by(shop_id=shop.id, phone=phone).first():
            continue
        db.session.add(Customer(
            business_id=business.id,
            shop_id=shop.id,
            first_name=first,
            last_name=last,
            phone=phone,
            address=address,
            city=city,
            region=region,
        ))

    for name, sku, cost, cash, layaway, credit in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(business_id=business.id, sku=sku).first():
            continue
        product = Product(
            business_id=business.id,
            name=name,
            sku=sku,
            cost_price_cents=cost,
            cash_price_cents=cash,
            layaway_price_cents=layaway,
            credit_price_cents=credit,
        )
        db.session.add(product)
        db.session.flush()
        db.session.add(ShopProduct(shop_id=shop.id, product_id=product.id, stock_quantity=20))

    db.session.commit()
    click.echo("\n" + "=" * 60)
    click.echo("DONE Demo data ready. Send X-User-Id with one of the user IDs above.")
    click.echo("=" * 60)


@click.group('ledger')
def ledger_group():
    """Purchase ledger maintenance."""
    pass


@ledger_group.command('recalc')
@click.option('--purchase-id', type=int, default=None, help='Single purchase to recompute')
@click.option('--business-id', type=int, default=None, help='Limit to one business')
@with_appcontext
def recalc(purchase_id, business_id):
    """Recompute paid/outstanding/status from payment and refund history."""
    if purchase_id is not None:
        ids = [purchase_id]
    else:
        q = db.session.query(Purchase.id)
        if business_id is not None:
            q = q.filter(Purchase.business_id == business_id)
        ids = [row.id for row in q.order_by(Purchase.id.asc()).all()]

    failures = 0
    for pid in ids:
        try:
            purchase = purchase_service.recalculate_purchase(pid)
        except LedgerError as e:
            db.session.rollback()
            failures += 1
            click.echo(f"FAIL Purchase {pid}: {e.message}")
            continue
        click.echo(
            f"PASS {purchase.purchase_number}: paid={purchase.amount_paid_cents} "
            f"outstanding={purchase.outstanding_cents} status={purchase.status}"
        )

    click.echo(f"\nRecomputed {len(ids) - failures} purchase(s), {failures} failure(s)")


@ledger_group.command('mark-overdue')
@click.option('--business-id', type=int, default=None, help='Limit to one business')
@click.option('--as-of', 'as_of', default=None, help='Reference date (YYYY-MM-DD), default today')
@with_appcontext
def mark_overdue(business_id, as_of):
    """Flip past-due purchases that still carry a balance to OVERDUE."""
    as_of_date = parse_date(as_of) if as_of else None
    if as_of and as_of_date is None:
        raise click.BadParameter("must be YYYY-MM-DD", param_hint="--as-of")

    count = purchase_service.mark_overdue_purchases(business_id=business_id, as_of=as_of_date)
    click.echo(f"PASS Marked {count} purchase(s) OVERDUE")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)

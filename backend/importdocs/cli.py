# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/importdocs/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Idempotent: creates missing tables and seeds warehouses, categories and sample products.
#
# Users:
# - python -m flask users list [--role Approver]
# - python -m flask users create --email a@b.c --full-name "Ann Admin" --role Admin
#   Prompts for anything omitted (password is hidden and confirmed).
# - python -m flask users set-role --user-id 3 --role Approver
#
# Stock:
# - python -m flask stock reconcile [--fix]
#   Report (and optionally repair) balances that disagree with the movement ledger.
#
# Maintenance:
# - python -m flask sessions cleanup --retention-days 30
#   Delete expired or revoked session tokens older than the retention window.

import click
from decimal import Decimal
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, ProductCategory, UserProfile, Warehouse
from .models.auth import DEPARTMENTS, ROLES
from .services import auth_service, session_service, stock_service
from .validation import ConflictError, NotFoundError, ValidationError


SEED_WAREHOUSES = (
    ("WH-MAIN", "Main Warehouse", "Building A, Floor 1"),
    ("WH-SEC", "Secondary Warehouse", "Building B, Floor 2"),
)

SEED_CATEGORIES = (
    ("RAW", "Raw Materials", "Raw materials for production"),
    ("FIN", "Finished Goods", "Finished products ready for sale"),
    ("PKG", "Packaging", "Packaging materials"),
    ("SUPP", "Supplies", "Office and operational supplies"),
)

# sku, name, description, category code, unit, cost, reorder point
SEED_PRODUCTS = (
    ("SKU-001", "Laptop Computer", "15-inch business laptop", "FIN", "PCS", Decimal("1200.00"), 5),
    ("SKU-002", "Wireless Mouse", "Ergonomic wireless mouse", "FIN", "PCS", Decimal("25.00"), 20),
)


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the system with master data.

    Safe to run more than once; existing codes and SKUs are left alone.
    """
    click.echo("START Initializing ImportDocs...")
    db.create_all()

    for code, name, location in SEED_WAREHOUSES:
        if db.session.query(Warehouse).filter_by(code=code).first():
            click.echo(f"WARN  Warehouse {code} already exists, skipping...")
            continue
        db.session.add(Warehouse(code=code, name=name, location=location, is_active=True))
        click.echo(f"PASS Created warehouse: {code} ({name})")

    categories = {}
    for code, name, description in SEED_CATEGORIES:
        category = db.session.query(ProductCategory).filter_by(code=code).first()
        if category:
            click.echo(f"WARN  Category {code} already exists, skipping...")
        else:
            category = ProductCategory(code=code, name=name, description=description)
            db.session.add(category)
            click.echo(f"PASS Created category: {code} ({name})")
        categories[code] = category
    db.session.flush()

    for sku, name, description, category_code, unit, cost, reorder_point in SEED_PRODUCTS:
        if db.session.query(Product).filter_by(sku=sku).first():
            click.echo(f"WARN  Product {sku} already exists, skipping...")
            continue
        db.session.add(Product(
            sku=sku,
            name=name,
            description=description,
            category_id=categories[category_code].id,
            unit_of_measure=unit,
            cost_price=cost,
            reorder_point=reorder_point,
            is_active=True,
        ))
        click.echo(f"PASS Created product: {sku} ({name})")

    db.session.commit()
    click.echo("DONE ImportDocs initialized. Create users with: python -m flask users create")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@click.option('--role', type=click.Choice(ROLES), help='Only show this role')
@with_appcontext
def list_users(role):
    query = db.session.query(UserProfile)
    if role:
        query = query.filter_by(role=role)
    profiles = query.order_by(UserProfile.id.asc()).all()

    if not profiles:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Email':<30} {'Name':<22} {'Role':<10} {'Active'}")
    click.echo("="*80)
    for profile in profiles:
        active_str = "yes" if profile.user and profile.user.is_active else "no"
        click.echo(f"{profile.id:<5} {profile.email:<30} {profile.full_name[:22]:<22} {profile.role:<10} {active_str}")
    click.echo("="*80 + "\n")


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--full-name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--department', type=click.Choice(DEPARTMENTS), default='General', show_default=True)
@click.option('--role', type=click.Choice(ROLES), prompt=True, help='Role')
@with_appcontext
def create_user_cli(email, full_name, password, department, role):
    try:
        profile = auth_service.sign_up(
            email=email,
            password=password,
            confirm_password=password,
            full_name=full_name,
            department=department,
            role=role,
        )
        click.echo(f"PASS Created user: {profile.email} (ID: {profile.id}) with role '{profile.role}'")
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL Failed to create user: {e}")
        raise SystemExit(1)


@users_group.command('set-role')
@click.option('--user-id', type=int, required=True, help='User ID')
@click.option('--role', type=click.Choice(ROLES), required=True, help='New role')
@with_appcontext
def set_role_cli(user_id, role):
    try:
        profile = auth_service.set_role(user_id, role)
        click.echo(f"PASS {profile.email} is now '{profile.role}'")
    except (ValidationError, NotFoundError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)


@click.group('stock')
def stock_group():
    """Stock ledger maintenance."""


@stock_group.command('reconcile')
@click.option('--fix', is_flag=True, help='Rewrite drifted balances from the ledger')
@with_appcontext
def reconcile_stock_cli(fix):
    result = stock_service.reconcile_balances(fix=fix)
    if not result["drift_count"]:
        click.echo("PASS All stock balances match the movement ledger")
        return

    for item in result["drift"]:
        click.echo(
            f"DRIFT product={item['product_id']} warehouse={item['warehouse_id']} "
            f"recorded={item['recorded']} expected={item['expected']}"
        )
    if result["fixed"]:
        click.echo(f"PASS Repaired {result['drift_count']} balance(s)")
    else:
        click.echo(f"FAIL {result['drift_count']} balance(s) drifted; rerun with --fix to repair")
        raise SystemExit(1)


@click.group('sessions')
def sessions_group():
    """Session token maintenance."""


@sessions_group.command('cleanup')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    deleted = session_service.cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"PASS Deleted {deleted} expired or revoked session(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(sessions_group)

# Overview: Flask CLI command groups for bootstrap, day closing and inspection.

# backend/perla/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-email admin@perla.local]
#   Create tables (if missing) and an initial admin account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --email w1@perla.local --name "Worker 1" --role USER [--daily-salary 120.00]
#
# Finance:
# - python -m flask finance close-day 2024-01-10
#   Close one business date as the system actor (idempotent).
# - python -m flask finance backfill [--days 3]
#   Close the previous N business dates (what the scheduler does at startup).
#
# Inventory:
# - python -m flask inventory low-stock
#
# Customers:
# - python -m flask customers import clientes.csv
#   Insert new customers; duplicates and rows without a name are logged as conflicts.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLES, ROLE_ADMIN
from .services.auth_service import create_user, list_users
from .services import closure_service, customer_service, inventory_service
from .validation import ConflictError, ValidationError
from .time_utils import recent_business_dates


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default='admin@perla.local', help='Initial admin email')
@click.option('--admin-password', default='Password123!', help='Initial admin password')
@with_appcontext
def init_system(admin_email, admin_password):
    """
    Create all tables and an initial ADMIN user. Idempotent.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing Perla...")

    db.create_all()
    click.echo("PASS Tables ready")

    existing = db.session.query(User).filter_by(email=admin_email.strip().lower()).first()
    if existing:
        click.echo(f"WARN  User '{existing.email}' already exists, skipping...")
        return

    try:
        user = create_user(admin_email, admin_password, name="Administrador", role=ROLE_ADMIN)
    except ValidationError as e:
        click.echo(f"FAIL Could not create admin: {e}")
        return

    click.echo(f"PASS Created admin: {user.email}")
    click.echo("\nSECURITY WARNING: change the admin password in production!")


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


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', default=None, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), default='USER', show_default=True, help='Role')
@click.option('--daily-salary', default=None, help='Per-day wage (overrides PAYROLL_DAILY_RATE)')
@with_appcontext
def create_user_cli(email, name, password, role, daily_salary):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter, lowercase letter, digit and special character
    """
    try:
        user = create_user(email, password, name=name, role=role, daily_salary=daily_salary)
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created user: {user.email} (ID: {user.id}, role: {user.role})")


@users_group.command('list')
@with_appcontext
def list_users_cli():
    """List all users."""
    users = list_users()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Email':<30} {'Name':<25} {'Role':<7} {'Salary':<10} {'Active'}")
    click.echo("="*90)

    for user in users:
        salary = user.to_dict()["daily_salary"] or "-"
        active_str = "Yes" if user.is_active else "No"
        click.echo(
            f"{user.id:<5} {user.email:<30} {(user.name or ''):<25} {user.role:<7} {salary:<10} {active_str}"
        )

    click.echo("="*90 + "\n")


@click.group('finance')
def finance_group():
    """Cash closure commands."""


@finance_group.command('close-day')
@click.argument('day')
@with_appcontext
def close_day_cli(day):
    """Close one business date (YYYY-MM-DD) as the system actor."""
    try:
        result = closure_service.auto_close_day(day)
    except ValidationError as e:
        raise click.BadParameter(str(e), param_hint="DAY")

    summary = result["summary"]
    click.echo(
        f"PASS {summary['date']} {result['status']}: incomes={summary['incomes']} "
        f"expenses={summary['expenses']} balance={summary['balance']} "
        f"accruals={len(result['accruals'])}"
    )


@finance_group.command('backfill')
@click.option('--days', type=int, default=None, help='Days before today (default AUTO_CLOSE_BACKFILL_DAYS)')
@with_appcontext
def backfill_cli(days):
    """Close the previous N business dates (today excluded), oldest first."""
    if days is None:
        days = current_app.config["AUTO_CLOSE_BACKFILL_DAYS"]
    if days < 0:
        raise click.BadParameter("must be >= 0", param_hint="--days")

    for day in recent_business_dates(current_app.config["BUSINESS_TZ"], days):
        try:
            result = closure_service.auto_close_day(day)
        except Exception as e:
            db.session.rollback()
            click.echo(f"FAIL {day.isoformat()}: {e}")
            continue
        click.echo(f"PASS {day.isoformat()} {result['status']} (accruals={len(result['accruals'])})")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('low-stock')
@with_appcontext
def low_stock_cli():
    """Items at or below their minimum stock."""
    items = inventory_service.low_stock_items()
    if not items:
        click.echo("No low-stock items.")
        return

    click.echo(f"{'SKU':<16} {'Name':<30} {'Total':>6} {'Min':>6}")
    for item in items:
        click.echo(f"{item['sku']:<16} {item['name']:<30} {item['total_quantity']:>6} {item['min_stock']:>6}")


@click.group('customers')
def customers_group():
    """Customer import commands."""


@customers_group.command('import')
@click.argument('csv_file', type=click.File('r', encoding='utf-8-sig'))
@with_appcontext
def import_customers_cli(csv_file):
    """Import customers from a CSV file; rejected rows go to the conflicts log."""
    try:
        result = customer_service.import_customers_csv(csv_file.read())
    except ValidationError as e:
        raise click.BadParameter(str(e), param_hint="CSV_FILE")
    click.echo(f"PASS inserted={result['inserted']} conflicts={result['conflicts']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(finance_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(customers_group)

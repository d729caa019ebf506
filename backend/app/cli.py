# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent). Prefer `flask db upgrade` in production.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Rental balances:
# - python -m flask rentals reconcile [--rental-id 12] [--dry-run]
#   Recompute stored total_due/balance from charges, slots and ledger.
# - python -m flask rentals debtors
#   List rentals with an outstanding balance.
#
# Credentials:
# - python -m flask auth hash-password
#   Prompt for a password and print a bcrypt hash for BASIC_AUTH_PASSWORD_HASH.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import rental_service
from .services.auth_service import hash_password, PasswordValidationError
from .services.money import format_display
from .services.rental_service import RentalError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("OK Database schema ready")


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

    click.echo("OK Database reset complete")


@click.group('rentals')
def rentals_group():
    """Rental balance inspection and repair."""


@rentals_group.command('reconcile')
@click.option('--rental-id', type=int, default=None, help='Only this rental (default: all non-deleted)')
@click.option('--dry-run', is_flag=True, help='Report differences without writing')
@with_appcontext
def reconcile(rental_id, dry_run):
    """Recompute stored balances from charges, manual slots and the payment ledger."""
    if rental_id is not None:
        try:
            results = [rental_service.reconcile_rental_by_id(rental_id, dry_run=dry_run)]
        except RentalError as e:
            raise click.ClickException(str(e))
        results = [r for r in results if r["changed"]]
    else:
        results = rental_service.reconcile_all_rentals(dry_run=dry_run)

    prefix = "WOULD FIX" if dry_run else "FIXED"
    for r in results:
        click.echo(
            f"{prefix} rental {r['rental_id']}: "
            f"total_due {r['before']['total_due_cents']} -> {r['after']['total_due_cents']}, "
            f"balance {r['before']['balance_cents']} -> {r['after']['balance_cents']}"
        )

    click.echo(f"OK {len(results)} rental(s) {'out of sync' if dry_run else 'reconciled'}")


@rentals_group.command('debtors')
@with_appcontext
def debtors():
    """List non-deleted rentals that still owe money."""
    rentals = rental_service.list_debtors()
    if not rentals:
        click.echo("No outstanding balances")
        return

    total = 0
    for r in rentals:
        total += r.balance_cents
        plate = r.vehicle.plate if r.vehicle else "?"
        name = r.customer.full_name if r.customer else "?"
        click.echo(f"#{r.id:<6} {plate:<12} {name:<30} {r.status:<10} {format_display(r.balance_cents):>16}")

    click.echo(f"TOTAL {format_display(total)} across {len(rentals)} rental(s)")


@click.group('auth')
def auth_group():
    """Back-office credential helpers."""


@auth_group.command('hash-password')
@click.password_option(prompt='Password', help='Password to hash')
def hash_password_cmd(password):
    """Print a bcrypt hash to put in BASIC_AUTH_PASSWORD_HASH."""
    try:
        click.echo(hash_password(password))
    except PasswordValidationError as e:
        raise click.ClickException(str(e))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(rentals_group)
    app.cli.add_command(auth_group)

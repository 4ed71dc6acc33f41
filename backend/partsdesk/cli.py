# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/partsdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Operator accounts:
# - python -m flask users create --email owner@shop.local --password "Password123!" --name "Owner"
#   Create an operator (prompts if options are omitted).
# - python -m flask users list
#
# Backup:
# - python -m flask backup export backup.json
# - python -m flask backup import backup.json --yes
#   Replaces ALL products and transactions with the file's contents.
#
# Dashboard:
# - python -m flask dashboard show [--email owner@shop.local]

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import DashboardError
from .extensions import db
from .models import User
from .services.auth_service import create_user, list_users, PasswordValidationError
from .services import backup_service
from .services.dashboard_store import DashboardStore


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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


@click.group('users')
def users_group():
    """Operator account commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--name', 'display_name', default=None, help='Display name')
@with_appcontext
def create_user_cli(email, password, display_name):
    """Create an operator account."""
    try:
        user = create_user(email=email, password=password, display_name=display_name)
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.email} (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users_cli():
    """List all operator accounts."""
    users = list_users()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Email':<35} {'Name':<20} {'Active'}")
    click.echo("="*70)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<35} {user.display_name or '-':<20} {active_str}")
    click.echo("="*70 + "\n")


@click.group('backup')
def backup_group():
    """Backup export and restore."""


@backup_group.command('export')
@click.argument('path', type=click.Path(dir_okay=False, writable=True))
@with_appcontext
def export_backup_cli(path):
    """Write a full snapshot of products and transactions to PATH."""
    snapshot = backup_service.export_snapshot()
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(backup_service.dumps_snapshot(snapshot))
    click.echo(
        f"PASS Exported {len(snapshot['products'])} products, "
        f"{len(snapshot['transactions'])} transactions to {path}"
    )


@backup_group.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def import_backup_cli(path, yes):
    """Replace ALL products and transactions with the snapshot in PATH."""
    if not yes:
        click.confirm("WARN This replaces ALL products and transactions. Continue?", abort=True)

    with open(path, "rb") as fh:
        raw = fh.read()

    try:
        counts = backup_service.import_snapshot(
            backup_service.loads_snapshot(raw),
            placeholder_image_url=current_app.config["PLACEHOLDER_IMAGE_URL"],
        )
    except DashboardError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Imported {counts['products']} products, {counts['transactions']} transactions")


@click.group('dashboard')
def dashboard_group():
    """Dashboard inspection."""


@dashboard_group.command('show')
@click.option('--email', default=None, help='Operator to read as (defaults to the first active one)')
@with_appcontext
def show_dashboard(email):
    """Print total stock, summary cards and top products."""
    query = db.session.query(User).filter(User.is_active.is_(True))
    if email:
        query = query.filter(User.email == email.strip().lower())
    user = query.order_by(User.id.asc()).first()
    if user is None:
        raise click.ClickException("No active operator found. Run: python -m flask users create")

    with DashboardStore.for_app(user) as store:
        click.echo(f"Total stock: {store.total_stock}")
        for card in store.summary_cards:
            click.echo(f"{card.title:<15} {card.value}")

        click.echo("\nTop selling:")
        for pc in store.top_selling_products:
            click.echo(f"  {pc.count:>4}  {pc.product_name}")
        if not store.top_selling_products:
            click.echo("  (none)")

        click.echo("\nTop returned:")
        for pc in store.top_returning_products:
            click.echo(f"  {pc.count:>4}  {pc.product_name}")
        if not store.top_returning_products:
            click.echo("  (none)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(backup_group)
    app.cli.add_command(dashboard_group)

# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/cafepos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--email admin@cafeteria.local --name "Admin" --password "Password123"]
#   Create tables if missing and optionally the first superadmin.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Admin accounts:
# - python -m flask users list
# - python -m flask users create-superadmin --email ... --name ... --password ...
#
# Access codes:
# - python -m flask codes generate --role cashier [--max-uses 1] [--expires-in-days 1] [--shift morning]
# - python -m flask codes list [--active-only]
# - python -m flask codes clear-demo
#   Delete the demo codes 1234 and 0000 if present.
#
# Menu:
# - python -m flask menu import menu.json
#   Upsert menu items from a JSON list of {name, price_kobo, category, available?, image_url?}.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --older-than-days 30
# - python -m flask maintenance cleanup-security-events --retention-days 90

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import AdminUser
from .services import access_code_service, auth_service, maintenance_service, menu_service
from .services.auth_service import PasswordValidationError, RegistrationError
from .permissions import ACCESS_CODE_ROLES
from .validation import ValidationError
from .time_utils import utcnow


def _money(kobo: int) -> str:
    return f"NGN {kobo / 100:,.2f}"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--email', help='Email for the first superadmin')
@click.option('--name', help='Name for the first superadmin')
@click.option('--password', help='Password for the first superadmin')
@with_appcontext
def init_system(email, name, password):
    """
    Initialize the cafeteria backend.

    Creates any missing tables. When --email, --name and --password are all
    given and no admin exists yet, also creates the first superadmin.
    Safe to run repeatedly.
    """
    click.echo("START Initializing cafeteria POS...")
    db.create_all()
    click.echo("PASS Tables ready")

    if not all([email, name, password]):
        click.echo("SKIP No superadmin details given; the first sign-up becomes superadmin.")
        return

    if auth_service.has_admin_users():
        click.echo("WARN  Admin accounts already exist, skipping superadmin creation")
        return

    try:
        user = auth_service.create_superadmin(email, password, name)
    except (ValidationError, PasswordValidationError, RegistrationError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created superadmin: {user.email} (ID: {user.id})")


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
    """Admin account inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all admin accounts with roles and lockout state."""
    users = db.session.query(AdminUser).order_by(AdminUser.id.asc()).all()
    if not users:
        click.echo("No admin accounts.")
        return

    now = utcnow()
    click.echo(f"{'ID':<5} {'Email':<32} {'Name':<20} {'Role':<11} {'Status'}")
    click.echo("-" * 80)
    for user in users:
        status = "locked" if user.locked_until and user.locked_until > now else "ok"
        click.echo(f"{user.id:<5} {user.email:<32} {user.name:<20} {user.role:<11} {status}")


@users_group.command('create-superadmin')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_superadmin(email, name, password):
    """Create a superadmin account (use to recover from a lost superadmin)."""
    try:
        user = auth_service.create_superadmin(email, password, name)
    except (ValidationError, PasswordValidationError, RegistrationError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created superadmin: {user.email} (ID: {user.id})")


@click.group('codes')
def codes_group():
    """Access code commands."""


@codes_group.command('generate')
@click.option('--role', type=click.Choice(ACCESS_CODE_ROLES), default='cashier', show_default=True)
@click.option('--expires-in-days', type=int, help='Days until the code expires')
@click.option('--max-uses', type=int, help='Maximum redemptions (1 = single use)')
@click.option('--shift', type=click.Choice(access_code_service.SHIFTS), help='Shift label')
@with_appcontext
def generate_code(role, expires_in_days, max_uses, shift):
    """Generate one access code."""
    try:
        access_code = access_code_service.generate_access_code(
            role,
            expires_in_days=expires_in_days,
            max_uses=max_uses,
            shift=shift,
        )
    except ValidationError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS {access_code.code} ({access_code.role})")
    if access_code.expires_at:
        click.echo(f"   expires: {access_code.expires_at:%Y-%m-%d %H:%M} UTC")
    if access_code.max_uses:
        click.echo(f"   max uses: {access_code.max_uses}")


@codes_group.command('list')
@click.option('--active-only', is_flag=True, help='Hide deactivated codes')
@with_appcontext
def list_codes(active_only):
    codes = access_code_service.list_codes()
    if active_only:
        codes = [c for c in codes if c.is_active]
    if not codes:
        click.echo("No access codes.")
        return

    click.echo(f"{'ID':<5} {'Code':<8} {'Role':<8} {'Shift':<8} {'Uses':<9} {'Active'}")
    click.echo("-" * 50)
    for c in codes:
        uses = f"{c.used_count}/{c.max_uses}" if c.max_uses else f"{c.used_count}"
        click.echo(f"{c.id:<5} {c.code:<8} {c.role:<8} {c.shift or '-':<8} {uses:<9} {'yes' if c.is_active else 'no'}")


@codes_group.command('clear-demo')
@with_appcontext
def clear_demo_codes():
    """Delete the demo codes 1234 and 0000."""
    deleted = access_code_service.clear_demo_codes()
    click.echo(f"Deleted {deleted} demo code(s).")


@click.group('menu')
def menu_group():
    """Menu catalogue commands."""


@menu_group.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def import_menu(path):
    """Import menu items from a JSON file (a list, or {"items": [...]})."""
    with open(path, encoding="utf-8") as f:
        payload = json.load(f)
    records = payload.get("items", []) if isinstance(payload, dict) else payload
    if not isinstance(records, list):
        raise click.ClickException("Menu file must hold a list of items")

    try:
        created, updated = menu_service.import_menu_items(records)
    except ValidationError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Imported menu: {created} created, {updated} updated")
    for item in menu_service.list_menu_items():
        click.echo(f"   {item.category:<14} {item.name:<30} {_money(item.price_kobo)}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(older_than_days):
    """Delete sessions that expired more than N days ago."""
    deleted = maintenance_service.cleanup_sessions(older_than_days=older_than_days)
    click.echo(f"Deleted {deleted} sessions expired more than {older_than_days} days ago.")


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """
    Cleanup old security events.

    Default retention: 90 days.
    """
    deleted = maintenance_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(codes_group)
    app.cli.add_command(menu_group)
    app.cli.add_command(maintenance_group)

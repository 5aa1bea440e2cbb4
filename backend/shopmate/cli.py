# Overview: Flask CLI command groups for bootstrap, admin provisioning, and maintenance.

# backend/shopmate/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent). Prefer `flask db upgrade` once
#   migrations are in use.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User provisioning (admins can only be created here, never via /signup):
# - python -m flask users create --username admin2 --password "admin2@123" --role admin
# - python -m flask users list
#
# Maintenance:
# - python -m flask maintenance purge-refresh-tokens
#   Delete refresh tokens past their expiry. Safe to run from cron.

import click
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .models import ROLES, ROLE_USER
from .services import get_services


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema is in place.")


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


@click.group('users')
def users_group():
    """User inspection and provisioning commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), default=ROLE_USER, show_default=True, help='Role')
@with_appcontext
def create_user_cli(username, password, role):
    """
    Create a user. This is the only way to create an admin account.

    A taken username is reported and exits non-zero without touching the
    existing account.
    """
    try:
        user = get_services().credentials.create_user(username, password, role=role)
    except ServiceError as e:
        raise click.ClickException(f"FAIL Failed to create user '{username}': {e}")

    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{user.role}'")
    click.echo("SECURITY Password securely hashed with bcrypt")
    if user.is_admin:
        click.echo("NOTE Admin accounts manage inventory and cannot make purchases")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    try:
        users = get_services().credentials.list_users()
    except ServiceError as e:
        raise click.ClickException(f"FAIL Could not list users: {e}")

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Username':<30} {'Role':<8} {'Created'}")
    click.echo("="*70)

    for user in users:
        row = user.to_dict()
        click.echo(f"{row['id']:<5} {row['username']:<30} {row['role']:<8} {row['created_at'] or '-'}")

    click.echo("="*70 + "\n")


@click.group('maintenance')
def maintenance_group():
    """Housekeeping commands."""


@maintenance_group.command('purge-refresh-tokens')
@with_appcontext
def purge_refresh_tokens():
    """Delete refresh tokens whose expiry has passed."""
    try:
        deleted = get_services().tokens.purge_expired()
    except ServiceError as e:
        raise click.ClickException(f"FAIL Purge failed: {e}")
    click.echo(f"PASS Deleted {deleted} expired refresh token(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)

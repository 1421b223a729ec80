# Overview: Flask CLI command groups for bootstrap and user management.

# backend/equatorial/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--admin-email admin@equatorial.local] [--admin-password "Password123"]
#   Idempotent: creates tables, default store settings and the first admin user.
#
# Users:
# - python -m flask users list
# - python -m flask users create --email staff@equatorial.local --name "Front Counter" --role staff
#   Prompts for the password when --password is omitted.

import click
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .models import User
from .services import settings_service
from .services.auth_service import create_user, list_users


DEFAULT_ADMIN_EMAIL = "admin@equatorial.local"
DEFAULT_ADMIN_PASSWORD = "Password123"


@click.group("system")
def system_group():
    """System bootstrap commands."""


@system_group.command("init")
@click.option("--admin-email", default=DEFAULT_ADMIN_EMAIL, help="Email of the first admin user")
@click.option("--admin-password", default=DEFAULT_ADMIN_PASSWORD, help="Password of the first admin user")
@with_appcontext
def init_system(admin_email, admin_password):
    """
    Initialize the back-office: tables, default settings, first admin.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing Equatorial back-office...")

    db.create_all()
    click.echo("PASS Database tables ready")

    created = settings_service.ensure_default_settings()
    db.session.commit()
    click.echo(f"PASS Default settings created: {created}")

    if db.session.query(User).filter_by(email=admin_email.lower()).first():
        click.echo(f"WARN  User '{admin_email}' already exists, skipping...")
    else:
        try:
            create_user(email=admin_email, name="Administrator", password=admin_password, role="admin")
            click.echo(f"PASS Created admin user: {admin_email}")
        except ServiceError as e:
            click.echo(f"FAIL Failed to create admin user: {e.message}")
            return

    click.echo("\n" + "=" * 60)
    click.echo("DONE Equatorial back-office initialized")
    click.echo("=" * 60)


@click.group("users")
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command("create")
@click.option("--email", prompt=True, help="Email address")
@click.option("--name", prompt=True, help="Display name")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True, help="Password")
@click.option("--role", type=click.Choice(["admin", "manager", "staff"]), default="staff", show_default=True)
@with_appcontext
def create_user_cli(email, name, password, role):
    """
    Create a back-office user.

    Password must be 8+ characters with an uppercase letter, a lowercase
    letter and a digit.
    """
    try:
        user = create_user(email=email, name=name, password=password, role=role)
        click.echo(f"PASS Created user: {user.email} with role '{user.role}'")
    except ServiceError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")


@users_group.command("list")
@with_appcontext
def list_users_cli():
    """List all users with role and active status."""
    users = list_users()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Email':<35} {'Name':<20} {'Role':<10} {'Active'}")
    click.echo("=" * 80)
    for user in users:
        active_str = "yes" if user.is_active else "no"
        click.echo(f"{user.id:<5} {user.email:<35} {user.name:<20} {user.role:<10} {active_str}")
    click.echo("=" * 80 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)

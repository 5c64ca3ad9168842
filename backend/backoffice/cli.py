# Overview: Flask CLI command groups for bootstrap, user administration and maintenance.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db [--with-admin]
#   Create all tables; optionally create admin@backoffice.local.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list [--role manager] [--status active]
# - python -m flask users create --name "Ada" --email ada@example.com --password "Password123!" --role manager
# - python -m flask users set-status ada@example.com suspended
#   Leaving "active" revokes every session of that user.
# - python -m flask users link-identity ada@example.com github 12345
# - python -m flask users unlink-identity ada@example.com github
#   Refused when it would leave the account with no way to sign in.
# - python -m flask users provision-external google 10987 --email ada@example.com [--name "Ada"]
#   Resolve a provider login: linked account, else same email (linked), else new employee.
# - python -m flask users close ada@example.com --yes
#   Soft-delete the account and revoke all of its sessions.
#
# Maintenance:
# - python -m flask sessions cleanup
#   Delete revoked/expired sessions older than 30 days.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import EXTERNAL_PROVIDERS, ROLE_ADMIN, ROLES, STATUSES
from .services import auth_service, identity_service, session_service
from .services.auth_service import AccountError, PasswordValidationError
from .services.identity_service import IdentityLinkError

DEFAULT_ADMIN_EMAIL = "admin@backoffice.local"
DEFAULT_ADMIN_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@click.option('--with-admin', is_flag=True, help='Also create the default admin user')
@with_appcontext
def init_db(with_admin):
    """Create all tables (idempotent)."""
    db.create_all()
    click.echo("PASS Tables created")

    if not with_admin:
        return

    if db.session.query(User).filter_by(email=DEFAULT_ADMIN_EMAIL).first():
        click.echo(f"WARN  {DEFAULT_ADMIN_EMAIL} already exists, skipping...")
        return

    auth_service.create_user(
        name="Administrator",
        email=DEFAULT_ADMIN_EMAIL,
        password=DEFAULT_ADMIN_PASSWORD,
        role=ROLE_ADMIN,
    )
    click.echo(f"PASS Created {DEFAULT_ADMIN_EMAIL} / {DEFAULT_ADMIN_PASSWORD} (CHANGE IN PRODUCTION!)")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User inspection and administration."""


def _live_user(email):
    user = User.live().filter(db.func.lower(User.email) == email.strip().lower()).first()
    if user is None:
        click.echo(f"FAIL No user with email {email}")
        raise SystemExit(1)
    return user


@users_group.command('list')
@click.option('--role', type=click.Choice(ROLES), help='Filter by role')
@click.option('--status', type=click.Choice(STATUSES), help='Filter by status')
@click.option('--include-closed', is_flag=True, help='Include soft-deleted accounts')
@with_appcontext
def list_users(role, status, include_closed):
    """List users."""
    query = db.session.query(User) if include_closed else User.live()
    if role:
        query = query.filter(User.role == role)
    if status:
        query = query.filter(User.status == status)

    users = query.order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'ID':<5} {'Email':<35} {'Role':<10} {'Status':<10} {'Sign-in'}")
    for user in users:
        methods = (["password"] if user.can_login_with_password else []) + user.linked_providers
        status_str = "closed" if user.is_deleted else user.status
        click.echo(f"{user.id:<5} {user.email:<35} {user.role:<10} {status_str:<10} {', '.join(methods)}")


@users_group.command('create')
@click.option('--name', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(ROLES), default='employee', show_default=True)
@with_appcontext
def create_user_command(name, email, password, role):
    """Create a password-based user."""
    try:
        user = auth_service.create_user(name=name, email=email, password=password, role=role)
    except (AccountError, PasswordValidationError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Created user {user.email} (ID: {user.id}) with role '{user.role}'")


@users_group.command('set-status')
@click.argument('email')
@click.argument('status', type=click.Choice(STATUSES))
@with_appcontext
def set_status_command(email, status):
    """Activate, deactivate or suspend a user."""
    user = _live_user(email)
    auth_service.set_status(user, status)
    click.echo(f"PASS {user.email} is now {status}")


@users_group.command('link-identity')
@click.argument('email')
@click.argument('provider', type=click.Choice(tuple(EXTERNAL_PROVIDERS)))
@click.argument('external_id')
@with_appcontext
def link_identity_command(email, provider, external_id):
    """Link a google or github account to a user."""
    user = _live_user(email)
    try:
        identity_service.link_external_identity(user, provider, external_id)
    except IdentityLinkError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Linked {provider} account {external_id} to {user.email}")


@users_group.command('unlink-identity')
@click.argument('email')
@click.argument('provider', type=click.Choice(tuple(EXTERNAL_PROVIDERS)))
@with_appcontext
def unlink_identity_command(email, provider):
    user = _live_user(email)
    try:
        identity_service.unlink_external_identity(user, provider)
    except IdentityLinkError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Unlinked {provider} from {user.email}")


@users_group.command('provision-external')
@click.argument('provider', type=click.Choice(tuple(EXTERNAL_PROVIDERS)))
@click.argument('external_id')
@click.option('--email', required=True)
@click.option('--name', default=None)
@with_appcontext
def provision_external_command(provider, external_id, email, name):
    """Resolve a verified provider login to a user, creating one if needed."""
    try:
        user = identity_service.find_or_create_from_external_identity(
            provider, external_id, email=email, name=name,
        )
    except IdentityLinkError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS {provider} account {external_id} resolves to {user.email} (ID: {user.id})")


@users_group.command('close')
@click.argument('email')
@click.option('--yes', is_flag=True, help='Confirm closing the account')
@with_appcontext
def close_user_command(email, yes):
    """Close an account: soft-delete it and revoke its sessions."""
    if not yes:
        click.echo("FAIL Refusing to close an account without --yes")
        raise SystemExit(1)
    user = _live_user(email)
    auth_service.close_account(user)
    click.echo(f"PASS Closed {user.email}")


@click.group('sessions')
def sessions_group():
    """Session maintenance."""


@sessions_group.command('cleanup')
@with_appcontext
def cleanup_sessions():
    """Delete expired and revoked sessions older than the retention window."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"PASS Deleted {deleted} sessions")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(sessions_group)

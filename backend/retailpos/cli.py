# Overview: Flask CLI command groups for bootstrap, store access, and maintenance.

# backend/retailpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--store "Main Store"]
#   Idempotent bootstrap: creates tables, a default store, and an admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --username cashier1 --email c1@example.com --password "Passw0rd!" --role cashier --store-id 1
#
# Stores:
# - python -m flask stores create --name "Second Street" --code "SEC"
# - python -m flask stores grant-access --username cashier1 --store-id 2
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --older-than-days 30
#   Delete expired and revoked session tokens.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Store, User
from .models.auth import ROLE_ADMIN, ROLE_CASHIER, ROLE_MANAGER
from .services import session_service, store_access_service, store_service
from .services.auth_service import PasswordValidationError, create_user
from .updates import StoreUpdate
from .validation import ConflictError, NotFoundError

DEFAULT_ADMIN_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--store', 'store_name', default='Main Store', help='Default store name')
@click.option('--admin-password', default=DEFAULT_ADMIN_PASSWORD, help='Password for the admin user')
@with_appcontext
def init_system(store_name, admin_password):
    """
    Initialize the system: tables, a default store, and an admin user.

    Safe to run more than once; existing rows are reused.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing system...")

    db.create_all()
    click.echo("PASS Tables ready")

    store = db.session.query(Store).order_by(Store.id.asc()).first()
    if not store:
        store = store_service.create_store(StoreUpdate(name=store_name))
        click.echo(f"PASS Created default store: {store.name} (ID: {store.id}, slug: {store.slug})")
    else:
        click.echo(f"PASS Using existing store: {store.name} (ID: {store.id})")

    admin = db.session.query(User).filter_by(username="admin").first()
    if not admin:
        try:
            admin = create_user("admin", "admin@retailpos.local", admin_password, role=ROLE_ADMIN)
        except PasswordValidationError as e:
            click.echo(f"FAIL Password validation failed: {e}")
            return
        click.echo(f"PASS Created admin user: {admin.username} ({admin.email})")
    else:
        click.echo("PASS Admin user already exists")

    click.echo("\nDONE System initialized.")


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
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([ROLE_ADMIN, ROLE_MANAGER, ROLE_CASHIER]), prompt=True, help='Role')
@click.option('--store-id', type=int, multiple=True, help='Store to grant access to (repeatable)')
@with_appcontext
def create_user_cli(username, email, password, role, store_id):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(username=username, email=email, password=password, role=role)
        if store_id:
            store_access_service.set_user_stores(user_id=user.id, store_ids=list(store_id))

        click.echo(f"PASS Created user: {username} ({email}) with role '{role}'")
        if store_id:
            click.echo(f"     Stores: {', '.join(str(s) for s in store_id)}")

    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except (ConflictError, NotFoundError) as e:
        db.session.rollback()
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their role and stores."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Role':<10} {'Active':<8} {'Stores'}")
    click.echo("="*90)

    for user in users:
        if user.role == ROLE_ADMIN:
            stores_str = "all"
        else:
            grants = store_access_service.list_user_grants(user.id)
            stores_str = ", ".join(str(g.store_id) for g in grants) or "none"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {user.role:<10} {active_str:<8} {stores_str}")

    click.echo("="*90 + "\n")


@click.group('stores')
def stores_group():
    """Store management commands."""


@stores_group.command('create')
@click.option('--name', prompt=True, help='Store name')
@click.option('--code', default=None, help='Unique store code')
@click.option('--slug', default=None, help='Storefront slug (derived from name if omitted)')
@click.option('--online/--no-online', default=False, help='Enable the public storefront')
@with_appcontext
def create_store_cli(name, code, slug, online):
    values = {"name": name, "online_enabled": online}
    if code:
        values["code"] = code
    if slug:
        values["slug"] = slug
    try:
        store = store_service.create_store(StoreUpdate.from_payload(values))
    except ConflictError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created store: {store.name} (ID: {store.id}, slug: {store.slug})")


@stores_group.command('grant-access')
@click.option('--username', required=True, help='Username')
@click.option('--store-id', type=int, required=True, help='Store ID')
@with_appcontext
def grant_access_cli(username, store_id):
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        click.echo(f"FAIL User '{username}' not found")
        return
    try:
        store_access_service.grant_access(user_id=user.id, store_id=store_id)
    except NotFoundError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Granted {username} access to store {store_id}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(older_than_days):
    """Delete expired and revoked session tokens."""
    deleted = session_service.cleanup_expired_sessions(older_than_days=older_than_days)
    click.echo(f"Deleted {deleted} session tokens older than {older_than_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(maintenance_group)

# Overview: Flask CLI command groups for bootstrap and session maintenance.

# backend/wellpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "wellpos:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (development; use `flask db upgrade` in deployments).
# - python -m flask system bootstrap
#   Idempotent: initial company from INITIAL_COMPANY_* and super-admin from SUPER_ADMIN_*.
#
# Sessions:
# - python -m flask sessions cleanup --retention-days 30
#   Mark lapsed sessions inactive and delete inactive rows older than the window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import bootstrap_service, session_service


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables for the current models."""
    db.create_all()
    click.echo("OK Database tables created")


@system_group.command('bootstrap')
@with_appcontext
def bootstrap():
    """Create the initial company and super-admin from the environment."""
    result = bootstrap_service.run()
    click.echo(
        f"Company created: {'yes' if result['company_created'] else 'no'}; "
        f"super-admin created: {'yes' if result['super_admin_created'] else 'no'}"
    )


@click.group('sessions')
def sessions_group():
    """Login session maintenance."""


@sessions_group.command('cleanup')
@click.option('--retention-days', type=int, default=session_service.DEFAULT_RETENTION_DAYS, show_default=True)
@with_appcontext
def cleanup_sessions(retention_days):
    """Expire lapsed sessions and prune old inactive ones."""
    result = session_service.cleanup_expired(retention_days=retention_days)
    click.echo(
        f"Expired {result['expired']} sessions; "
        f"deleted {result['pruned']} inactive sessions older than {retention_days} days."
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(sessions_group)

"""Command-line interface for database and maintenance tasks."""

import json

import click
from flask import Flask

from .config import get_config
from .database import db, init_database
from .db_utils import get_database_health
from .migrations import create_sample_data_if_needed, get_database_info, reset_database, setup_database
from .models.player import Player
from .services.chat_service import ChatError, ChatService
from .services.player_manager import PlayerManager
from .services.transaction_manager import TransactionManager


def create_app(config_name: str = 'development') -> Flask:
    """Create Flask app for CLI operations."""
    app = Flask(__name__)
    app.config.from_object(get_config(config_name))
    init_database(app)
    return app


@click.group()
def cli():
    """Poker room player portal CLI."""
    pass


@cli.command()
@click.option('--config', default='development', help='Configuration to use')
@click.option('--sample-data', is_flag=True, help='Create sample data')
def init_db(config, sample_data):
    """Initialize the database."""
    app = create_app(config)
    setup_database(app, create_sample_data=sample_data)
    click.echo("Database initialized successfully!")


@cli.command()
@click.option('--config', default='development', help='Configuration to use')
def reset_db(config):
    """Reset the database (WARNING: This will delete all data!)."""
    if click.confirm('This will delete all data. Are you sure?'):
        app = create_app(config)
        reset_database(app)
        click.echo("Database reset successfully!")
    else:
        click.echo("Operation cancelled.")


@cli.command()
@click.option('--config', default='development', help='Configuration to use')
def db_info(config):
    """Show database information."""
    info = get_database_info(create_app(config))

    click.echo("Database Information:")
    click.echo(f"  URL: {info['database_url']}")
    click.echo(f"  Tables: {', '.join(info['tables'])}")
    click.echo(f"  Players: {info['player_count']}")
    click.echo(f"  Poker tables: {info['table_count']}")
    click.echo(f"  Transactions: {info['transaction_count']}")
    click.echo(f"  Chat sessions: {info['chat_session_count']}")
    click.echo(f"  Chat messages: {info['chat_message_count']}")
    click.echo(f"  Notifications: {info['notification_count']}")


@cli.command()
@click.option('--config', default='development', help='Configuration to use')
def create_sample_data(config):
    """Create sample data for development."""
    app = create_app(config)
    with app.app_context():
        created = create_sample_data_if_needed()
    click.echo("Sample data created!" if created else "Sample data already exists.")


@cli.command()
@click.option('--config', default='development', help='Configuration to use')
def health_check(config):
    """Check database health."""
    app = create_app(config)
    with app.app_context():
        health = get_database_health()

    click.echo("Database Health Check:")
    click.echo(f"  Status: {health['status']}")

    if health['status'] == 'healthy':
        click.echo(f"  Players: {health['player_count']}")
        click.echo(f"  Active Tables: {health['active_tables']}")
        click.echo(f"  Open Chats: {health['open_chat_sessions']}")
        click.echo(f"  Waiting Requests: {health['waiting_requests']}")
    else:
        click.echo(f"  Error: {health.get('error', 'Unknown error')}")
        raise SystemExit(1)


@cli.command()
@click.argument('email')
@click.option('--revoke', is_flag=True, help='Demote back to a regular player')
@click.option('--config', default='development', help='Configuration to use')
def make_staff(email, revoke, config):
    """Grant or revoke GRE staff access for an account."""
    app = create_app(config)
    with app.app_context():
        player = PlayerManager.get_player_by_email(email)
        if not player:
            raise click.ClickException(f"Player '{email}' not found")

        if revoke:
            if not player.is_staff:
                click.echo(f"'{email}' is not staff")
                return
            player.role = Player.ROLE_PLAYER
        else:
            if player.is_staff:
                click.echo(f"'{email}' is already staff")
                return
            player.role = Player.ROLE_STAFF
        db.session.commit()

    click.echo(f"{'Revoked staff access from' if revoke else 'Granted staff access to'} '{email}'")


@cli.command()
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--source', required=True, help='Legacy table the rows came from, e.g. gre_chat_messages')
@click.option('--config', default='development', help='Configuration to use')
def import_legacy_chat(path, source, config):
    """Import a JSON array of legacy chat rows into the unified chat history."""
    with open(path, encoding='utf-8') as f:
        records = json.load(f)
    if not isinstance(records, list):
        raise click.BadParameter("File must contain a JSON array of records", param_hint='path')

    app = create_app(config)
    with app.app_context():
        try:
            stats = ChatService.import_legacy_messages(records, source)
        except ChatError as e:
            raise click.ClickException(str(e))

    click.echo(
        f"Imported {stats['imported']} messages "
        f"({stats['duplicates']} duplicates, {stats['skipped']} skipped)."
    )


@cli.command()
@click.option('--days', type=int, default=None, help='Idle days before a session is archived')
@click.option('--config', default='development', help='Configuration to use')
def archive_stale_chats(days, config):
    """Archive chat sessions with no recent activity."""
    app = create_app(config)
    with app.app_context():
        count = ChatService.archive_stale_sessions(days)
    click.echo(f"Archived {count} chat sessions.")


@cli.command()
@click.option('--config', default='development', help='Configuration to use')
def balance_audit(config):
    """Compare stored balances with the transaction ledger."""
    app = create_app(config)
    with app.app_context():
        mismatches = TransactionManager.audit_balances()

    if not mismatches:
        click.echo("All balances match the ledger.")
        return

    click.echo(f"{len(mismatches)} players have mismatched balances:")
    for row in mismatches:
        click.echo(
            f"  {row['player_id']} {row['email']}: cash {row['balance']} (ledger {row['ledger_balance']}), "
            f"credit {row['current_credit']} (ledger {row['ledger_credit']})"
        )
    raise SystemExit(1)


if __name__ == '__main__':
    cli()

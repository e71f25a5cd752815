from datetime import datetime

import click
from flask.cli import with_appcontext

from daybreak import db


@click.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (local setups; production uses flask db upgrade)."""
    db.create_all()
    click.echo('Database tables created')


@click.group('briefing')
def briefing_cli():
    """Morning briefing operations."""


@briefing_cli.command('tick')
@click.option('--now', 'now_str', default=None,
              help='UTC moment to evaluate, ISO 8601 (e.g. 2026-10-18T13:05). Defaults to now.')
@with_appcontext
def tick_command(now_str):
    """Deliver briefings to every user whose window is open."""
    from daybreak.briefing.controller import tick

    now = None
    if now_str:
        try:
            now = datetime.fromisoformat(now_str)
        except ValueError:
            raise click.BadParameter(f"Invalid ISO datetime: {now_str}", param_hint='--now')

    summary = tick(now)
    click.echo(
        f"Processed {summary['processed']}: "
        f"{summary['delivered']} delivered, {summary['failed']} failed"
    )


@briefing_cli.command('run')
@click.argument('user_id', type=int)
@with_appcontext
def run_command(user_id):
    """Generate and deliver today's briefing for USER_ID now."""
    from daybreak.briefing.controller import run_briefing_for_user

    try:
        result = run_briefing_for_user(user_id)
    except ValueError as e:
        raise click.ClickException(str(e))

    message = f"User {user_id}: {result.status} via {result.channel}"
    if result.error:
        message += f" ({result.error})"
    click.echo(message)


@briefing_cli.command('history')
@click.argument('user_id', type=int)
@click.option('--limit', default=10, show_default=True, help='Number of records to show.')
@with_appcontext
def history_command(user_id, limit):
    """Show recent delivery attempts for USER_ID."""
    from daybreak.briefing.ledger import get_delivery_history

    records = get_delivery_history(user_id, limit=limit)
    if not records:
        click.echo(f"No deliveries recorded for user {user_id}")
        return

    for record in records:
        status = 'delivered' if record.delivered else f"failed: {record.failure_reason}"
        click.echo(
            f"{record.calendar_day} {record.channel:<9} {status} "
            f"[{record.narrative_source or '-'}] at {record.created_at:%Y-%m-%d %H:%M}"
        )

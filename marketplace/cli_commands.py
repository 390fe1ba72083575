"""
Flask CLI commands.

Commands:
- flask init-db: Create every table
- flask dispatch-credentials: Re-issue and email undelivered employee credentials
"""

import click
from marketplace import database


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create database tables for all models."""
        database.create_all()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('dispatch-credentials')
    @click.option('--company-id', type=int, default=None, help='Only credentials of this company')
    def dispatch_credentials(company_id):
        """Send employee credentials whose email never went out."""
        from marketplace.services.credential_dispatcher import dispatch_pending_credentials

        try:
            result = dispatch_pending_credentials(database.db_session, company_id=company_id)
        except Exception as e:
            database.db_session.rollback()
            click.echo(click.style(f'Error dispatching credentials: {e}', fg='red'))
            raise SystemExit(1)
        finally:
            database.db_session.remove()

        color = 'green' if result['failed'] == 0 else 'yellow'
        click.echo(click.style(f"Sent: {result['sent']}  Failed: {result['failed']}", fg=color))

"""
Flask CLI commands.

Commands:
- flask init-db: Create all tables
- flask stock-alerts: Print low stock, out of stock and near expiry products
"""

import json

import click
from flask import current_app

from pos_backend.database import create_all, get_session


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create database tables."""
        create_all()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('stock-alerts')
    @click.option('--horizon-days', type=int, default=None,
                  help='Days ahead to look for expiring products (default EXPIRY_HORIZON_DAYS)')
    def stock_alerts(horizon_days):
        """Print the stock advisory as JSON."""
        from pos_backend.services.inventory_service import get_stock_alerts

        if horizon_days is None:
            horizon_days = current_app.config.get('EXPIRY_HORIZON_DAYS', 30)
        if horizon_days < 0:
            raise click.BadParameter('must be >= 0', param_hint='--horizon-days')

        alerts = get_stock_alerts(get_session(), horizon_days=horizon_days)
        click.echo(json.dumps(alerts, indent=2, default=str))

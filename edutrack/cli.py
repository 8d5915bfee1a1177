import click

from edutrack import db
from edutrack.services.seed_service import DEFAULT_ADMIN, seed_default_data


def register_commands(app):
    @app.cli.command('init-db')
    def init_db():
        """Create all database tables"""
        db.create_all()
        click.echo('Database tables created')

    @app.cli.command('seed-db')
    def seed_db():
        """Load sample schools, reports and the default admin account"""
        db.create_all()
        if not seed_default_data():
            click.echo('Database already has data, skipping seed')
            return
        click.echo('Default data seeded')
        click.echo(f"  Admin - Email: {DEFAULT_ADMIN['email']}, Password: {DEFAULT_ADMIN['password']}")

import json

import click

import database


def register_commands(app):
    @app.cli.command('init-db')
    def init_db():
        """Create the collection indexes."""
        database.ensure_indexes()
        click.echo('Database indexes created')

    @app.cli.command('db-stats')
    def db_stats():
        """Print document counts per collection."""
        for name, count in database.get_database_stats().items():
            click.echo(f'{name}: {count}')

    @app.cli.command('clear-test-data')
    @click.confirmation_option(prompt='Delete every user, review, vote and list?')
    def clear_test_data():
        try:
            database.clear_test_data(app.config['ENV_NAME'])
        except RuntimeError as exc:
            raise click.ClickException(str(exc))
        click.echo('Test data deleted')

    @app.cli.command('migrate-reviews')
    @click.argument('export_file', type=click.File('r'))
    def migrate_reviews(export_file):
        """Import reviews from a legacy JSON export."""
        migrated = database.migrate_legacy_reviews(json.load(export_file))
        click.echo(f'Migrated {len(migrated)} reviews')

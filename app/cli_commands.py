"""
Flask CLI commands.

Commands:
- flask init-db: Create the database tables
- flask create-user: Provision an account by hand (prints the password)
"""

import click
import re
from app.database import create_schema, get_session
from app.exceptions import AccountCreationError
from app.services.provisioning_service import find_or_create_account


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables that do not exist yet."""
        create_schema()
        click.echo(click.style('✅ Tabelas criadas.', fg='green'))

    @app.cli.command('create-user')
    @click.option('--email', prompt=True, help='Account email address')
    @click.option('--name', default='', help='Full name')
    def create_user(email, name):
        """Create an account with a generated password."""
        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, email.strip()):
            click.echo(click.style('❌ Email inválido. Use o formato: user@example.com', fg='red'))
            return

        try:
            user, password = find_or_create_account(get_session(), email, name)
        except AccountCreationError as e:
            click.echo(click.style(f'❌ {e.message}', fg='red'))
            return

        if password is None:
            click.echo(click.style(f'❌ Já existe uma conta com o email: {user.email}', fg='red'))
            return

        click.echo(click.style('\n✅ Conta criada com sucesso!', fg='green', bold=True))
        click.echo(f'   Email: {user.email}')
        click.echo(f'   Senha: {password}')
        click.echo(f'   ID: {user.id}')

"""
Flask CLI commands.

Commands:
- flask init-db: create the tables
- flask create-store: create a store and its owner user
- flask create-admin: create a platform admin
"""

import click
import re
from lojapdv.database import get_session, create_schema
from lojapdv.models import AppUser, Store, UserRole

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


def _validate_credentials(db_session, email, password):
    """Error message for bad credentials, or None."""
    if not re.match(EMAIL_PATTERN, email):
        return 'Email inválido. Use o formato: user@example.com'
    if len(password) < 6:
        return 'A senha deve ter pelo menos 6 caracteres.'
    if db_session.query(AppUser).filter_by(email=email).first():
        return f'Já existe um usuário com o email: {email}'
    return None


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables."""
        create_schema()
        click.echo(click.style('Tabelas criadas.', fg='green'))

    @app.cli.command('create-store')
    @click.option('--name', prompt=True, help='Store display name')
    @click.option('--slug', prompt=True, help='URL-safe identifier')
    @click.option('--email', prompt=True, help='Owner email address')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Owner password')
    def create_store(name, slug, email, password):
        """Create a store and its owner user."""
        db_session = get_session()
        email = email.strip().lower()

        error = _validate_credentials(db_session, email, password)
        if error:
            click.echo(click.style(error, fg='red'))
            return
        if db_session.query(Store).filter_by(slug=slug).first():
            click.echo(click.style(f'Já existe uma loja com o slug: {slug}', fg='red'))
            return

        try:
            store = Store(name=name.strip(), slug=slug.strip())
            db_session.add(store)
            db_session.flush()

            owner = AppUser(email=email, full_name=name.strip(), store_id=store.id, role=UserRole.OWNER.value)
            owner.set_password(password)
            db_session.add(owner)
            db_session.commit()

            click.echo(click.style('Loja criada!', fg='green', bold=True))
            click.echo(f'   Loja: {store.name} (id {store.id})')
            click.echo(f'   Dono: {email}')
        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'Erro ao criar loja: {str(e)}', fg='red'))

    @app.cli.command('create-admin')
    @click.option('--email', prompt=True, help='Admin email address')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
    def create_admin(email, password):
        """Create a platform admin (sees every store)."""
        db_session = get_session()
        email = email.strip().lower()

        error = _validate_credentials(db_session, email, password)
        if error:
            click.echo(click.style(error, fg='red'))
            return

        try:
            admin = AppUser(email=email, role=UserRole.ADMIN.value)
            admin.set_password(password)
            db_session.add(admin)
            db_session.commit()
            click.echo(click.style(f'Administrador criado: {email} (id {admin.id})', fg='green', bold=True))
        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'Erro ao criar administrador: {str(e)}', fg='red'))

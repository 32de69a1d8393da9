# Commands (run from the project root, FLASK_APP=app:create_app):
# - flask init-db
#   Create database tables (run once during setup).
# - flask create-user --username admin --password "secret"
#   Create a login (prompts if options are omitted).
# - flask reset-password --username admin
#   Set a new password and drop the user's active session.

import click
from flask.cli import with_appcontext

from models import db, User
from services.session_guard import hash_password


@click.command("init-db")
@with_appcontext
def init_db_command():
    """Create database tables."""
    db.create_all()
    click.echo("Database initialized (tables created)")


@click.command("create-user")
@click.option("--username", prompt=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_user_command(username, password):
    """Create a login user."""
    username = username.strip()
    if User.query.filter_by(username=username).first():
        raise click.ClickException(f"User {username!r} already exists")
    if len(password) < 6:
        raise click.ClickException("Password must be at least 6 characters long.")

    db.session.add(User(username=username, password=hash_password(password)))
    db.session.commit()
    click.echo(f"Created user {username}")


@click.command("reset-password")
@click.option("--username", prompt=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def reset_password_command(username, password):
    """Set a new password and end the user's session."""
    user = User.query.filter_by(username=username.strip()).first()
    if user is None:
        raise click.ClickException(f"No user named {username!r}")
    if len(password) < 6:
        raise click.ClickException("Password must be at least 6 characters long.")

    user.password = hash_password(password)
    user.session_token = None
    user.session_expires = None
    user.last_activity = None
    db.session.commit()
    click.echo(f"Password updated for {user.username}")


def register_commands(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(create_user_command)
    app.cli.add_command(reset_password_command)

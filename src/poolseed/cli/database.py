import click

from poolseed.cli import cli
from poolseed.config import settings
from poolseed.database.operations import create_new_sqlite_database
from poolseed.version import __version__


@cli.group()
def database() -> None:
    """
    Database commands
    """


@database.command("reset")
def database_reset() -> None:
    """
    Remove and recreate the database. All stored deployment progress is lost.
    """

    user_confirm = click.confirm(
        f"The existing database at {settings.database.path} will be removed and a new, empty database will be created and initialized using the schema included in {__package__} version {__version__}. Do you want to proceed?",  # noqa: E501
        default=False,
    )
    if user_confirm:
        settings.database.path.unlink(missing_ok=True)
        create_new_sqlite_database(settings.database.path)
    else:
        raise click.Abort

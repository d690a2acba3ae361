import click


@click.group()
@click.version_option(package_name="poolseed")
def cli() -> None: ...


from . import config, database, deployment  # noqa: F401, E402

"""CLI entry point for cloudkeep (ck command)."""

import logging

import click

from cloudkeep import __version__
from cloudkeep.cli.backup_cmd import backup_group
from cloudkeep.cli.settings_cmd import settings_group
from cloudkeep.core.config import load_config

_LOG_LEVELS = ["debug", "info", "warning", "error"]


@click.group()
@click.version_option(version=__version__, prog_name="cloudkeep")
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Logging level (default: log_level from config.yaml).",
)
def cli(log_level: str | None) -> None:
    """cloudkeep — settings backups in the cloud and self-update lifecycle."""
    level_name = log_level or str(load_config().get("log_level", "warning"))
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


cli.add_command(backup_group)
cli.add_command(settings_group)


if __name__ == "__main__":
    cli()

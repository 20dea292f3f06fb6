"""CLI commands for application settings: ck settings list/get/set."""

from __future__ import annotations

from pathlib import Path

import click
import yaml

from cloudkeep.cli.backup_cmd import home_option
from cloudkeep.core.config import resolve_home, settings_path
from cloudkeep.core.settings import SettingsStore, SettingsWriteError

_UNSET = object()


def _store(home: Path | None) -> SettingsStore:
    return SettingsStore(settings_path(home or resolve_home()))


def _dump(value: object) -> str:
    return yaml.safe_dump(value, allow_unicode=True, sort_keys=False, default_flow_style=False).rstrip()


@click.group("settings")
def settings_group() -> None:
    """Inspect and change application settings."""


@settings_group.command("list")
@home_option
def settings_list(home: Path | None) -> None:
    """Show every setting."""
    click.echo(_dump(_store(home).get_all()))


@settings_group.command("get")
@click.argument("key")
@home_option
def settings_get(key: str, home: Path | None) -> None:
    """Show one setting (dotted KEY, e.g. upgrade.autoDownloadUpdate)."""
    value = _store(home).get(key, _UNSET)
    if value is _UNSET:
        raise click.ClickException(f"Setting not found: {key}")
    click.echo(_dump(value))


@settings_group.command("set")
@click.argument("key")
@click.argument("value")
@home_option
def settings_set(key: str, value: str, home: Path | None) -> None:
    """Set KEY to VALUE (parsed as YAML: true, 3, [a, b], ...)."""
    try:
        parsed = yaml.safe_load(value)
    except yaml.YAMLError:
        parsed = value
    try:
        _store(home).set(key, parsed)
    except SettingsWriteError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"{key} = {_dump(parsed)}")

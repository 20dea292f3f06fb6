"""CLI commands for cloud backups: ck backup list/save/restore/delete."""

from __future__ import annotations

import contextlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

import click

from cloudkeep.backup.orchestrator import TransferOrchestrator, TransferProgress
from cloudkeep.core.config import config_path, load_config, resolve_home, settings_path
from cloudkeep.core.settings import SettingsStore
from cloudkeep.core.units import format_size
from cloudkeep.storage.client import StorageClient

home_option = click.option(
    "--home",
    type=click.Path(path_type=Path),
    default=None,
    help="Override CK_HOME path.",
)


def _echo_notice(level: str, message: str) -> None:
    """Print an orchestrator notification."""
    click.echo(message, err=(level == "error"))


def _format_ms(ms: int) -> str:
    if ms <= 0:
        return "unknown"
    try:
        captured = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    except (OverflowError, ValueError, OSError):
        return "unknown"
    return captured.strftime("%Y-%m-%d %H:%M:%S UTC")


@contextlib.contextmanager
def _session(home: Path | None) -> Iterator[TransferOrchestrator]:
    """Build a client and orchestrator from config, closing both on exit."""
    home_path = home or resolve_home()
    config = load_config(config_path(home_path))
    storage_cfg = config.get("storage", {})
    if not storage_cfg.get("base_url"):
        raise click.ClickException(
            f"storage.base_url is not configured. Set it in {config_path(home_path)}"
        )

    settings = SettingsStore(settings_path(home_path))
    with StorageClient(storage_cfg) as client:
        orch = TransferOrchestrator(
            client,
            settings,
            settle_delay=config.get("transfer", {}).get("settle_delay_seconds", 0.6),
            on_notify=_echo_notice,
        )
        try:
            yield orch
        finally:
            orch.close()


@contextlib.contextmanager
def _progress_bar(orch: TransferOrchestrator, label: str) -> Iterator[None]:
    """Render the orchestrator's progress on a click progress bar while active."""
    with click.progressbar(length=100, label=label) as bar:

        def on_progress(progress: TransferProgress) -> None:
            if progress.is_active and progress.percent > bar.pos:
                bar.update(progress.percent - bar.pos)

        orch.on_progress = on_progress
        try:
            yield
        finally:
            orch.on_progress = None


@click.group("backup")
def backup_group() -> None:
    """Back up and restore application settings in the cloud store."""


@backup_group.command("list")
@home_option
def backup_list(home: Path | None) -> None:
    """List stored backups, most recent first."""
    with _session(home) as orch:
        if not orch.refresh():
            raise SystemExit(1)
        if not orch.items:
            click.echo("No backups found.")
            return
        for item in orch.items:
            click.echo(
                f"  {item.name}  ({format_size(item.size)}, {_format_ms(item.last_modified)})"
            )


@backup_group.command("save")
@click.argument("name")
@home_option
def backup_save(name: str, home: Path | None) -> None:
    """Upload the current settings as backup NAME."""
    if not name.strip():
        raise click.BadParameter("Backup name must not be empty.", param_hint="NAME")
    with _session(home) as orch, _progress_bar(orch, "Uploading"):
        ok = orch.save(name)
    if not ok:
        raise SystemExit(1)


@backup_group.command("restore")
@click.argument("name")
@click.option("--yes", is_flag=True, help="Restore without asking for confirmation.")
@home_option
def backup_restore(name: str, yes: bool, home: Path | None) -> None:
    """Download backup NAME and write its settings back."""
    with _session(home) as orch:
        with _progress_bar(orch, "Downloading"):
            loaded = orch.begin_restore(name)
        if not loaded:
            raise SystemExit(1)

        preview = orch.preview
        click.echo(
            f"Backup '{preview.source_name}' captured {_format_ms(preview.captured_at_ms)} "
            f"({len(preview.entries)} settings):"
        )
        for key in preview.entries:
            click.echo(f"  {key}")

        if not yes and not click.confirm("Restore these settings?", default=False):
            orch.cancel_restore()
            click.echo("Restore cancelled.")
            return

        if not orch.commit_restore():
            raise SystemExit(1)


@backup_group.command("delete")
@click.argument("name")
@click.option("--yes", is_flag=True, help="Delete without asking for confirmation.")
@home_option
def backup_delete(name: str, yes: bool, home: Path | None) -> None:
    """Delete backup NAME from the store."""
    if not yes and not click.confirm(f"Delete backup '{name}'?", default=False):
        click.echo("Delete cancelled.")
        return
    with _session(home) as orch:
        ok = orch.remove(name)
    if not ok:
        raise SystemExit(1)

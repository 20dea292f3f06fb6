"""Tests for cloudkeep.cli.settings_cmd and the ck entry point."""

from pathlib import Path

from click.testing import CliRunner

from cloudkeep import __version__
from cloudkeep.cli.main import cli
from cloudkeep.cli.settings_cmd import settings_group
from cloudkeep.core.settings import SettingsStore


class TestSettingsCommands:
    def test_list_shows_defaults(self, tmp_path: Path):
        result = CliRunner().invoke(settings_group, ["list", "--home", str(tmp_path)])
        assert result.exit_code == 0
        assert "autoDownloadUpdate: true" in result.output

    def test_get(self, tmp_path: Path):
        result = CliRunner().invoke(
            settings_group, ["get", "upgrade.autoDownloadUpdate", "--home", str(tmp_path)],
        )
        assert result.exit_code == 0
        assert "true" in result.output

    def test_get_missing(self, tmp_path: Path):
        result = CliRunner().invoke(settings_group, ["get", "nope", "--home", str(tmp_path)])
        assert result.exit_code == 1
        assert "Setting not found" in result.output

    def test_set_parses_yaml(self, tmp_path: Path):
        runner = CliRunner()
        runner.invoke(
            settings_group,
            ["set", "upgrade.autoDownloadUpdate", "false", "--home", str(tmp_path)],
        )
        runner.invoke(settings_group, ["set", "fontSize", "18", "--home", str(tmp_path)])

        store = SettingsStore(tmp_path / ".ck" / "settings.yaml")
        assert store.get("upgrade.autoDownloadUpdate") is False
        assert store.get("fontSize") == 18

    def test_set_invalid_key(self, tmp_path: Path):
        result = CliRunner().invoke(settings_group, ["set", "a..b", "1", "--home", str(tmp_path)])
        assert result.exit_code == 1


class TestMain:
    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_subcommands_registered(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert "backup" in result.output
        assert "settings" in result.output

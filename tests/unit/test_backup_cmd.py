"""Tests for cloudkeep.cli.backup_cmd — ck backup CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest
import yaml
from click.testing import CliRunner

from cloudkeep.cli import backup_cmd
from cloudkeep.cli.backup_cmd import backup_group
from cloudkeep.cli.settings_cmd import settings_group
from cloudkeep.core.settings import SettingsStore
from cloudkeep.storage.client import StorageClient


class MemoryStore:
    """In-memory blob store served over httpx.MockTransport."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.clock = 1700000000000

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "GET" and request.url.params.get("list") == "1":
            items = [
                {"key": key.lstrip("/"), "size": len(body), "lastModified": self.clock + i}
                for i, (key, body) in enumerate(self.objects.items())
            ]
            return httpx.Response(200, json={"items": items})
        if request.method == "GET":
            if path not in self.objects:
                return httpx.Response(404)
            return httpx.Response(200, content=self.objects[path])
        if request.method == "PUT":
            self.objects[path] = request.read()
            return httpx.Response(200)
        if request.method == "DELETE":
            self.objects.pop(path, None)
            return httpx.Response(204)
        return httpx.Response(405)


def _setup_home(home: Path, **storage) -> None:
    ck = home / ".ck"
    ck.mkdir(parents=True, exist_ok=True)
    config = {
        "storage": {"base_url": "https://store.example.com", "token": "secret", **storage},
        "transfer": {"settle_delay_seconds": 0},
    }
    (ck / "config.yaml").write_text(
        yaml.dump(config, default_flow_style=False), encoding="utf-8",
    )


@pytest.fixture()
def store(monkeypatch) -> MemoryStore:
    memory = MemoryStore()
    monkeypatch.setattr(
        backup_cmd,
        "StorageClient",
        lambda cfg: StorageClient(cfg, transport=httpx.MockTransport(memory.handler)),
    )
    return memory


@pytest.fixture()
def home(tmp_path: Path) -> Path:
    home = tmp_path / "home"
    _setup_home(home)
    SettingsStore(home / ".ck" / "settings.yaml").set("theme", "dark")
    return home


class TestSession:
    def test_missing_base_url(self, tmp_path: Path, store):
        home = tmp_path / "home"
        (home / ".ck").mkdir(parents=True)

        result = CliRunner().invoke(backup_group, ["list", "--home", str(home)])
        assert result.exit_code == 1
        assert "base_url is not configured" in result.output


class TestBackupList:
    def test_empty(self, home: Path, store):
        result = CliRunner().invoke(backup_group, ["list", "--home", str(home)])
        assert result.exit_code == 0
        assert "No backups found" in result.output

    def test_shows_items(self, home: Path, store):
        store.objects["/ClassTools/week%201"] = b"x" * 2048
        result = CliRunner().invoke(backup_group, ["list", "--home", str(home)])
        assert result.exit_code == 0
        assert "week 1" in result.output
        assert "2.0 KB" in result.output

    def test_failure_exits_nonzero(self, home: Path, monkeypatch):
        monkeypatch.setattr(
            backup_cmd,
            "StorageClient",
            lambda cfg: StorageClient(
                cfg, transport=httpx.MockTransport(lambda r: httpx.Response(500)),
            ),
        )
        result = CliRunner().invoke(backup_group, ["list", "--home", str(home)])
        assert result.exit_code == 1


class TestBackupSave:
    def test_uploads_settings(self, home: Path, store):
        result = CliRunner().invoke(backup_group, ["save", "week1", "--home", str(home)])

        assert result.exit_code == 0, result.output
        assert "Backup 'week1' saved" in result.output
        envelope = json.loads(store.objects["/ClassTools/week1"])
        assert envelope["data"]["theme"] == "dark"

    def test_unserializable_setting_exits_cleanly(self, home: Path, store):
        runner = CliRunner()
        runner.invoke(settings_group, ["set", "since", "2024-01-01", "--home", str(home)])

        result = runner.invoke(backup_group, ["save", "week1", "--home", str(home)])
        assert result.exit_code == 1
        assert "Saving backup failed" in result.output
        assert store.objects == {}

    def test_blank_name(self, home: Path, store):
        result = CliRunner().invoke(backup_group, ["save", "  ", "--home", str(home)])
        assert result.exit_code == 2
        assert store.objects == {}


class TestBackupRestore:
    def _seed(self, store: MemoryStore) -> None:
        store.objects["/ClassTools/b1"] = json.dumps(
            {"ts": 1700000000000, "data": {"theme": "light", "fontSize": 20}}
        ).encode("utf-8")

    def test_restore_with_yes(self, home: Path, store):
        self._seed(store)
        result = CliRunner().invoke(
            backup_group, ["restore", "b1", "--yes", "--home", str(home)],
        )

        assert result.exit_code == 0, result.output
        assert "2023-11-14" in result.output
        assert "fontSize" in result.output
        settings = SettingsStore(home / ".ck" / "settings.yaml")
        assert settings.get("theme") == "light"
        assert settings.get("fontSize") == 20

    def test_restore_declined(self, home: Path, store):
        self._seed(store)
        result = CliRunner().invoke(
            backup_group, ["restore", "b1", "--home", str(home)], input="n\n",
        )

        assert result.exit_code == 0
        assert "Restore cancelled" in result.output
        assert SettingsStore(home / ".ck" / "settings.yaml").get("theme") == "dark"

    def test_restore_confirmed(self, home: Path, store):
        self._seed(store)
        result = CliRunner().invoke(
            backup_group, ["restore", "b1", "--home", str(home)], input="y\n",
        )

        assert result.exit_code == 0, result.output
        assert SettingsStore(home / ".ck" / "settings.yaml").get("theme") == "light"

    def test_out_of_range_capture_time(self, home: Path, store):
        store.objects["/ClassTools/far"] = b'{"ts": 1e300, "data": {"theme": "light"}}'
        result = CliRunner().invoke(
            backup_group, ["restore", "far", "--yes", "--home", str(home)],
        )
        assert result.exit_code == 0, result.output
        assert "captured unknown" in result.output

    def test_restore_missing(self, home: Path, store):
        result = CliRunner().invoke(
            backup_group, ["restore", "nope", "--yes", "--home", str(home)],
        )
        assert result.exit_code == 1

    def test_restore_malformed(self, home: Path, store):
        store.objects["/ClassTools/bad"] = b"not json"
        result = CliRunner().invoke(
            backup_group, ["restore", "bad", "--yes", "--home", str(home)],
        )
        assert result.exit_code == 1
        assert SettingsStore(home / ".ck" / "settings.yaml").get("theme") == "dark"


class TestBackupDelete:
    def test_delete_with_yes(self, home: Path, store):
        store.objects["/ClassTools/old"] = b"{}"
        result = CliRunner().invoke(
            backup_group, ["delete", "old", "--yes", "--home", str(home)],
        )

        assert result.exit_code == 0, result.output
        assert "Backup 'old' deleted" in result.output
        assert store.objects == {}

    def test_delete_declined(self, home: Path, store):
        store.objects["/ClassTools/old"] = b"{}"
        result = CliRunner().invoke(
            backup_group, ["delete", "old", "--home", str(home)], input="n\n",
        )

        assert result.exit_code == 0
        assert "Delete cancelled" in result.output
        assert "/ClassTools/old" in store.objects

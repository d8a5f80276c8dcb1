"""Tests for EntitySettings source precedence."""

from __future__ import annotations

from pathlib import Path

import click
import pytest

from entitykit.config.settings import EntitySettings

TOML = """\
[database]
url = "sqlite:///from-toml.db"

[update]
max_workers = 3

[entities.customer]
table = "customers"
skip = ["created"]
"""


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("ENTITYKIT_CONFIG", "ENTITYKIT_UPDATE__MAX_WORKERS", "ENTITYKIT_VERBOSE"):
        monkeypatch.delenv(name, raising=False)


class TestFromCli:
    def test_defaults_without_file(self, tmp_path: Path) -> None:
        settings = EntitySettings.from_cli(root=tmp_path, config_path=str(tmp_path / "none"))
        assert settings.config_path is None
        assert settings.update.max_workers == 1
        assert settings.entities == {}

    def test_reads_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "entitykit.toml"
        path.write_text(TOML, encoding="utf-8")
        settings = EntitySettings.from_cli(config_path=str(path))
        assert settings.root == tmp_path
        assert settings.config_path == path
        assert settings.database.url == "sqlite:///from-toml.db"
        assert settings.update.max_workers == 3
        assert settings.entities["customer"].skip == ["created"]

    def test_discovers_from_root(self, tmp_path: Path) -> None:
        (tmp_path / "entitykit.toml").write_text(TOML, encoding="utf-8")
        settings = EntitySettings.from_cli(root=tmp_path)
        assert settings.update.max_workers == 3

    def test_env_overrides_toml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "entitykit.toml"
        path.write_text(TOML, encoding="utf-8")
        monkeypatch.setenv("ENTITYKIT_UPDATE__MAX_WORKERS", "5")
        settings = EntitySettings.from_cli(config_path=str(path))
        assert settings.update.max_workers == 5

    def test_cli_flags_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ENTITYKIT_VERBOSE", "false")
        settings = EntitySettings.from_cli(root=tmp_path, verbose=True, json_output=True)
        assert settings.verbose is True
        assert settings.json_output is True

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "entitykit.toml"
        path.write_text("[database\nurl=", encoding="utf-8")
        with pytest.raises(click.ClickException, match="Invalid TOML"):
            EntitySettings.from_cli(config_path=str(path))

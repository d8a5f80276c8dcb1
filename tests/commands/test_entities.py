"""Tests for the entities command."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from entitykit.cli import cli


@pytest.mark.usefixtures("_isolated_project")
class TestEntitiesCommand:
    def test_lists_bindings(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "entities"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        items = {item["entity"]: item for item in data["data"]["items"]}
        assert list(items) == ["customer", "profile"]
        assert items["customer"]["targets"] == ["customers", "customer_profiles"]
        assert items["customer"]["skip"] == ["created"]
        assert items["profile"]["identity"] == ["id"]

    def test_human_output(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["entities"])
        assert result.exit_code == 0
        assert "entities" in result.stdout
        assert "count: 2" in result.stdout


class TestBrokenConfig:
    def test_missing_table(
        self, cli_runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("ENTITYKIT_CONFIG", raising=False)
        (tmp_path / "entitykit.toml").write_text(
            f'[database]\nurl = "sqlite:///{tmp_path / "empty.db"}"\n\n'
            '[entities.ghost]\ntable = "ghosts"\n',
            encoding="utf-8",
        )
        monkeypatch.chdir(tmp_path)
        result = cli_runner.invoke(cli, ["entities"])
        assert result.exit_code == 1
        assert "Cannot load entity bindings" in result.output

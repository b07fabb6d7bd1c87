from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from flowrunner_release import cli


def test_config_command_prints_json(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["config", "--ref", "refs/heads/master"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert "@semantic-release/changelog" in data["plugins"]
    assert [p[0] if isinstance(p, list) else p for p in data["plugins"]][-3:] == [
        "@semantic-release/exec",
        "@semantic-release/github",
        "@semantic-release/git",
    ]


def test_config_command_reads_env_and_prints_yaml(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("GITHUB_REF", "refs/heads/next")
    assert cli.main(["config", "--format", "yaml"]) == 0
    data = yaml.safe_load(capsys.readouterr().out)
    assert "@semantic-release/changelog" not in data["plugins"]
    assert data["branches"][1] == {"name": "next", "prerelease": True}


def test_config_command_from_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "release.yaml"
    path.write_text("branches: [main]\nplugins:\n  - commit-analyzer\n", encoding="utf-8")
    assert cli.main(["config", "--config", str(path)]) == 0
    assert json.loads(capsys.readouterr().out) == {"branches": ["main"], "plugins": ["commit-analyzer"]}


def test_missing_ref_is_a_config_error(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("GITHUB_REF", raising=False)
    assert cli.main(["run", "--cwd", str(tmp_path), "--dry-run"]) == 2


def test_invalid_config_file_exit_code(tmp_path: Path) -> None:
    path = tmp_path / "release.json"
    path.write_text("{", encoding="utf-8")
    assert cli.main(["config", "--config", str(path)]) == 2


def test_run_on_unconfigured_branch_exits_cleanly(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.delenv("FLOWRUNNER_RELEASE_PLUGINS_DIRS", raising=False)
    assert cli.main(["run", "--ref", "refs/heads/feature-x", "--cwd", str(tmp_path), "--dry-run"]) == 0


def test_missing_config_file_exit_code(tmp_path: Path) -> None:
    assert cli.main(["config", "--config", str(tmp_path / "nope.json")]) == 2

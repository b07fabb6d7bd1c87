from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

import pytest

from flowrunner_release.core import Context, Step
from flowrunner_release.plugins import StepFactory, StepHandler, load_plugins
from flowrunner_release.plugins.builtin import builtin_plugins
from flowrunner_release.plugins.loader import PLUGINS_DIRS_ENV, plugin_search_dirs
from flowrunner_release.release_config import PluginInvocation, build_release_config
from tests.conftest import make_context

PLUGINS_DIR = Path(__file__).resolve().parents[1] / "plugins"


class _NoopStep:
    def __init__(self, phases: tuple[str, ...]) -> None:
        self.phases = phases

    def apply(self, phase: str, ctx: Context) -> str:
        return "noop"


@dataclass(frozen=True)
class _FakePlugin:
    name: str
    names: tuple[str, ...] = ("fake",)
    available: bool = True
    phases: tuple[str, ...] = ("prepare",)

    def handlers(self) -> Sequence[StepHandler]:
        return tuple(StepHandler(name=n) for n in self.names)

    def is_available(self, ctx: Context) -> tuple[bool, str | None]:
        return (True, None) if self.available else (False, "missing tool")

    def from_dict(self, options: dict[str, Any], ctx: Context) -> Step:
        return _NoopStep(self.phases)


@pytest.fixture(autouse=True)
def _isolated_plugin_dirs(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv(PLUGINS_DIRS_ENV, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))


def test_builtin_handlers_cover_default_config(tmp_path: Path, tools_on_path: None) -> None:
    factory = StepFactory(builtin_plugins())
    ctx = make_context(tmp_path)
    for invocation in build_release_config("refs/heads/master").plugins:
        step = factory.from_invocation(invocation, ctx)
        assert step.phases


def test_short_names_are_aliases() -> None:
    factory = StepFactory(builtin_plugins())
    assert factory.plugin_for("exec") is factory.plugin_for("@semantic-release/exec")
    assert "git" in factory.registered_handlers


def test_duplicate_handlers_rejected() -> None:
    with pytest.raises(ValueError, match="Duplicate handler for fake"):
        StepFactory([_FakePlugin("one"), _FakePlugin("two")])


def test_unknown_plugin(tmp_path: Path) -> None:
    factory = StepFactory([_FakePlugin("one")])
    with pytest.raises(ValueError, match=r"Unknown plugin: @semantic-release/npm \(known: fake\)"):
        factory.from_invocation(PluginInvocation("@semantic-release/npm"), make_context(tmp_path))


def test_unavailable_plugin(tmp_path: Path) -> None:
    factory = StepFactory([_FakePlugin("one", available=False)])
    with pytest.raises(RuntimeError, match="missing tool"):
        factory.from_invocation(PluginInvocation("fake"), make_context(tmp_path))


def test_unknown_phase_rejected(tmp_path: Path) -> None:
    factory = StepFactory([_FakePlugin("one", phases=("deploy",))])
    with pytest.raises(ValueError, match="unknown phases: deploy"):
        factory.from_invocation(PluginInvocation("fake"), make_context(tmp_path))


@pytest.mark.parametrize(
    "invocation, message",
    [
        (PluginInvocation("exec"), "at least one of"),
        (PluginInvocation("exec", {"prepareCmd": "build ${nextRelease.tag}"}), "unknown placeholders"),
        (PluginInvocation("commit-analyzer", {"preset": "angular"}), "unsupported preset"),
        (PluginInvocation("github", {"assets": [{"label": "x"}]}), "requires 'path'"),
        (PluginInvocation("git", {"assets": []}), "must not be empty"),
        (PluginInvocation("changelog", {"changelogFile": "/tmp/CHANGELOG.md"}), "relative"),
        (PluginInvocation("github", {"assets": ["/tmp/flowrunner.tar.gz"]}), "relative to the repository root"),
        (PluginInvocation("github", {"assets": [{"path": "/tmp/*.tar.gz"}]}), "relative to the repository root"),
        (PluginInvocation("exec", {"prepareCmd": "true", "execCwd": "sub"}), "unknown options: execCwd"),
        (PluginInvocation("exec", {"prepareCmd": "true", "cwd": ""}), "'cwd'"),
    ],
)
def test_builtin_option_validation(
    tmp_path: Path, tools_on_path: None, invocation: PluginInvocation, message: str
) -> None:
    factory = StepFactory(builtin_plugins())
    with pytest.raises(ValueError, match=message):
        factory.from_invocation(invocation, make_context(tmp_path))


def test_load_plugins_from_directory() -> None:
    result = load_plugins(plugin_dirs=[PLUGINS_DIR])
    assert result.errors == []
    names = [p.name for p in result.plugins]
    assert "flowrunner.cargo-version" in names
    assert names[: len(builtin_plugins())] == [p.name for p in builtin_plugins()]


def test_load_plugins_collects_errors(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    bad = tmp_path / "bad"
    bad.mkdir()
    (bad / "broken.py").write_text("raise RuntimeError('boom')\n", encoding="utf-8")
    (bad / "empty.py").write_text("X = 1\n", encoding="utf-8")
    (bad / "_private.py").write_text("raise RuntimeError('never loaded')\n", encoding="utf-8")
    monkeypatch.setenv(PLUGINS_DIRS_ENV, str(tmp_path / "missing"))

    result = load_plugins(include_builtin=False, plugin_dirs=[bad])
    assert result.plugins == []
    assert len(result.errors) == 3
    assert any("broken.py" in e and "boom" in e for e in result.errors)
    assert any("must define PLUGIN or get_plugin()" in e for e in result.errors)
    assert any("does not exist" in e for e in result.errors)


def test_user_plugins_dir_is_searched(tmp_path: Path) -> None:
    user_dir = tmp_path / "xdg" / "flowrunner-release" / "plugins"
    user_dir.mkdir(parents=True)
    (user_dir / "hello.py").write_text(
        "from dataclasses import dataclass\n"
        "from flowrunner_release.plugin_api import StepHandler\n"
        "\n"
        "@dataclass(frozen=True)\n"
        "class Hello:\n"
        "    name: str = 'user.hello'\n"
        "    def handlers(self):\n"
        "        return (StepHandler(name='hello'),)\n"
        "\n"
        "def get_plugin():\n"
        "    return Hello()\n",
        encoding="utf-8",
    )
    result = load_plugins(include_builtin=False)
    assert result.errors == []
    assert [p.name for p in result.plugins] == ["user.hello"]


def test_plugin_search_dirs_order_and_dedupe(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    cli_dir, env_dir = tmp_path / "cli", tmp_path / "env"
    user_dir = tmp_path / "xdg" / "flowrunner-release" / "plugins"
    user_dir.mkdir(parents=True)
    monkeypatch.setenv(PLUGINS_DIRS_ENV, f"{env_dir}{os.pathsep}{cli_dir}")

    assert plugin_search_dirs([cli_dir]) == [cli_dir.resolve(), env_dir.resolve(), user_dir.resolve()]

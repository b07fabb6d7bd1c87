from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

from flowrunner_release.commits import release_type, render_notes, validate_release_rules, validate_types
from flowrunner_release.core import Context, Step
from flowrunner_release.plugins.api import StepHandler, StepPlugin
from flowrunner_release.plugins.builtin_backends.gh import GhReleaseBackend, ReleaseAsset
from flowrunner_release.plugins.builtin_backends.git import GitBackend
from flowrunner_release.plugins.builtin_backends.shell_bash import BashShellBackend
from flowrunner_release.release_config import (
    CHANGELOG,
    COMMIT_ANALYZER,
    EXEC,
    GIT,
    GITHUB,
    RELEASE_NOTES_GENERATOR,
)
from flowrunner_release.template import placeholders, release_values, render_template
from flowrunner_release.util import expand_path

SUPPORTED_PRESETS = {"conventionalcommits"}

DEFAULT_GIT_MESSAGE = "chore(release): ${nextRelease.version} [skip ci]\n\n${nextRelease.notes}"


def _handlers(full_name: str) -> tuple[StepHandler, ...]:
    # "@semantic-release/exec" is also reachable as plain "exec".
    short = full_name.rsplit("/", 1)[-1]
    return (StepHandler(name=full_name), StepHandler(name=short))


def _require_preset(options: dict[str, Any], *, what: str) -> str:
    preset = options.get("preset", "conventionalcommits")
    if preset not in SUPPORTED_PRESETS:
        raise ValueError(f"{what}: unsupported preset {preset!r} (supported: {', '.join(sorted(SUPPORTED_PRESETS))})")
    return preset


def _check_template(text: str, *, what: str) -> str:
    if not isinstance(text, str) or not text:
        raise ValueError(f"'{what}' must be a non-empty string")
    known = {"branch.name", "lastRelease.version", "lastRelease.gitTag"} | {
        f"nextRelease.{k}" for k in ("version", "gitTag", "channel", "notes")
    }
    unknown = [p for p in placeholders(text) if p not in known]
    if unknown:
        raise ValueError(f"'{what}' uses unknown placeholders: {', '.join(unknown)}")
    return text


class CommitAnalyzerStep:
    phases = ("analyze",)

    def __init__(self, rules: list[dict[str, Any]]) -> None:
        self.rules = rules

    def apply(self, phase: str, ctx: Context) -> str:
        state = ctx.release
        state.bump = release_type(state.commits, self.rules)
        if state.bump is None:
            return f"Analyzed {len(state.commits)} commits: no release."
        return f"Analyzed {len(state.commits)} commits: {state.bump} release."


@dataclass(frozen=True)
class CommitAnalyzerPlugin:
    name: str = "builtin.commit-analyzer"

    def handlers(self) -> Sequence[StepHandler]:
        return _handlers(COMMIT_ANALYZER)

    def is_available(self, ctx: Context) -> tuple[bool, str | None]:
        return True, None

    def from_dict(self, options: dict[str, Any], ctx: Context) -> Step:
        _require_preset(options, what="commit-analyzer")
        rules = validate_release_rules(options.get("releaseRules"))
        return CommitAnalyzerStep(rules)


class ReleaseNotesStep:
    phases = ("generate_notes",)

    def __init__(self, types: list[dict[str, Any]], *, repository_url: str | None) -> None:
        self.types = types
        self.repository_url = repository_url

    def apply(self, phase: str, ctx: Context) -> str:
        state = ctx.release
        state.notes = render_notes(
            state.commits,
            version=str(state.next_version),
            types=self.types,
            date=state.date,
            previous_tag=state.last_tag,
            tag=state.git_tag,
            repository_url=self.repository_url,
        )
        return f"Generated release notes for {state.next_version}."


@dataclass(frozen=True)
class ReleaseNotesPlugin:
    name: str = "builtin.release-notes-generator"

    def handlers(self) -> Sequence[StepHandler]:
        return _handlers(RELEASE_NOTES_GENERATOR)

    def is_available(self, ctx: Context) -> tuple[bool, str | None]:
        return True, None

    def from_dict(self, options: dict[str, Any], ctx: Context) -> Step:
        _require_preset(options, what="release-notes-generator")
        preset_config = options.get("presetConfig", {})
        if not isinstance(preset_config, dict):
            raise ValueError("'presetConfig' must be a table if present")
        types = validate_types(preset_config.get("types"))

        repository_url = options.get("repositoryUrl")
        if repository_url is not None and (not isinstance(repository_url, str) or not repository_url):
            raise ValueError("'repositoryUrl' must be a non-empty string if present")
        return ReleaseNotesStep(types, repository_url=repository_url)


class ChangelogStep:
    phases = ("prepare",)

    def __init__(self, changelog_file: str, *, title: str | None) -> None:
        self.changelog_file = changelog_file
        self.title = title

    def apply(self, phase: str, ctx: Context) -> str:
        path = ctx.repo_root / self.changelog_file
        if ctx.options.dry_run:
            return f"Would update {self.changelog_file}."

        current = path.read_text(encoding="utf-8").strip() if path.exists() else ""
        if self.title and current.startswith(self.title):
            current = current[len(self.title):].strip()

        content = ctx.release.notes.strip()
        if current:
            content = f"{content}\n\n{current}"
        if self.title:
            content = f"{self.title}\n\n{content}"

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content + "\n", encoding="utf-8")
        return f"Updated {self.changelog_file}."


@dataclass(frozen=True)
class ChangelogPlugin:
    name: str = "builtin.changelog"

    def handlers(self) -> Sequence[StepHandler]:
        return _handlers(CHANGELOG)

    def is_available(self, ctx: Context) -> tuple[bool, str | None]:
        return True, None

    def from_dict(self, options: dict[str, Any], ctx: Context) -> Step:
        changelog_file = options.get("changelogFile", "CHANGELOG.md")
        if not isinstance(changelog_file, str) or not changelog_file:
            raise ValueError("'changelogFile' must be a non-empty string if present")
        if Path(changelog_file).is_absolute():
            raise ValueError("'changelogFile' must be relative to the repository root")

        title = options.get("changelogTitle")
        if title is not None and (not isinstance(title, str) or not title):
            raise ValueError("'changelogTitle' must be a non-empty string if present")
        return ChangelogStep(changelog_file, title=title)


# Option name -> lifecycle phase.
EXEC_COMMANDS: dict[str, str] = {
    "verifyConditionsCmd": "verify",
    "prepareCmd": "prepare",
    "publishCmd": "publish",
}


class ExecStep:
    def __init__(self, commands: dict[str, str], *, cwd: str | None) -> None:
        self.commands = commands  # phase -> command template
        self.cwd = cwd
        self.phases = tuple(p for p in EXEC_COMMANDS.values() if p in commands)

    def apply(self, phase: str, ctx: Context) -> str:
        command = render_template(self.commands[phase], release_values(ctx.release))

        if ctx.options.dry_run:
            return f"Would run `{command}`."

        cwd_path = ctx.repo_root
        if self.cwd is not None:
            cwd_path = ctx.repo_root / expand_path(self.cwd)

        backend = BashShellBackend(runner=ctx.runner, logger=ctx.logger)
        backend.run_command(command, cwd=cwd_path)
        return f"Ran `{command}`."


@dataclass(frozen=True)
class ExecPlugin:
    name: str = "builtin.exec"

    def handlers(self) -> Sequence[StepHandler]:
        return _handlers(EXEC)

    def is_available(self, ctx: Context) -> tuple[bool, str | None]:
        if ctx.runner.dry_run:
            return True, None
        if shutil.which("bash") is None:
            return False, "`bash` not found on PATH"
        return True, None

    def from_dict(self, options: dict[str, Any], ctx: Context) -> Step:
        unknown = sorted(set(options) - set(EXEC_COMMANDS) - {"cwd"})
        if unknown:
            raise ValueError(f"exec: unknown options: {', '.join(unknown)}")

        commands: dict[str, str] = {}
        for key, phase in EXEC_COMMANDS.items():
            if key in options:
                commands[phase] = _check_template(options[key], what=key)
        if not commands:
            raise ValueError(f"exec requires at least one of: {', '.join(EXEC_COMMANDS)}")

        cwd = options.get("cwd")
        if cwd is not None and (not isinstance(cwd, str) or not cwd):
            raise ValueError("'cwd' must be a non-empty string if present")
        return ExecStep(commands, cwd=cwd)


@dataclass(frozen=True)
class GithubAssetSpec:
    path: str  # glob, relative to the repository root
    label: str | None = None


class GithubStep:
    phases = ("verify", "publish")

    def __init__(self, assets: list[GithubAssetSpec]) -> None:
        self.assets = assets

    def _resolve_assets(self, ctx: Context) -> list[ReleaseAsset]:
        values = release_values(ctx.release)
        out: list[ReleaseAsset] = []
        for spec in self.assets:
            matches = sorted(p for p in ctx.repo_root.glob(spec.path) if p.is_file())
            if not matches:
                ctx.logger.warning("No file matches asset pattern %s; skipping it.", spec.path)
                continue
            label = render_template(spec.label, values) if spec.label else None
            out.extend(ReleaseAsset(path=p, label=label) for p in matches)
        return out

    def apply(self, phase: str, ctx: Context) -> str:
        backend = GhReleaseBackend(runner=ctx.runner, logger=ctx.logger, cwd=ctx.repo_root)
        if phase == "verify":
            if ctx.options.dry_run:
                return "Would verify GitHub authentication."
            ok, detail = backend.auth_status()
            if not ok:
                raise RuntimeError(f"GitHub CLI is not authenticated: {detail}")
            return "Verified GitHub authentication."

        state = ctx.release
        tag = state.git_tag
        if tag is None:
            raise RuntimeError("github publish requires a git tag")
        if ctx.options.dry_run:
            return f"Would publish GitHub release {tag} ({len(self.assets)} asset patterns)."

        assets = self._resolve_assets(ctx)
        backend.create_release(
            tag=tag,
            title=tag,
            notes=state.notes,
            prerelease=state.prerelease is not None,
            assets=assets,
        )
        return f"Published GitHub release {tag} with {len(assets)} assets."


@dataclass(frozen=True)
class GithubPlugin:
    name: str = "builtin.github"

    def handlers(self) -> Sequence[StepHandler]:
        return _handlers(GITHUB)

    def is_available(self, ctx: Context) -> tuple[bool, str | None]:
        if ctx.runner.dry_run:
            return True, None
        if shutil.which("gh") is None:
            return False, "`gh` not found on PATH"
        return True, None

    def from_dict(self, options: dict[str, Any], ctx: Context) -> Step:
        raw_assets = options.get("assets", [])
        if isinstance(raw_assets, (str, dict)):
            raw_assets = [raw_assets]
        if not isinstance(raw_assets, list):
            raise ValueError("'assets' must be a list if present")

        assets: list[GithubAssetSpec] = []
        for i, a in enumerate(raw_assets, start=1):
            if isinstance(a, str) and a:
                spec = GithubAssetSpec(path=a)
            elif isinstance(a, dict):
                path = a.get("path")
                if not isinstance(path, str) or not path:
                    raise ValueError(f"github asset {i} requires 'path'")
                label = a.get("label")
                if label is not None:
                    _check_template(label, what=f"assets[{i}].label")
                spec = GithubAssetSpec(path=path, label=label)
            else:
                raise ValueError(f"github asset {i} must be a path or a {{path, label}} table")
            # Patterns are globbed under the repository root.
            if Path(spec.path).is_absolute():
                raise ValueError(f"github asset {i} must be relative to the repository root: {spec.path}")
            assets.append(spec)
        return GithubStep(assets)


class GitStep:
    phases = ("prepare",)

    def __init__(self, assets: list[str], *, message: str) -> None:
        self.assets = assets
        self.message = message

    def apply(self, phase: str, ctx: Context) -> str:
        git = GitBackend(runner=ctx.runner, logger=ctx.logger, cwd=ctx.repo_root)
        changed = git.changed_files(self.assets)
        if not changed:
            return "No release assets changed; nothing to commit."

        if ctx.options.dry_run:
            return f"Would commit {len(changed)} files: {', '.join(changed)}."

        message = render_template(self.message, release_values(ctx.release))
        git.add(changed)
        git.commit(message)
        git.push(ctx.options.remote, ctx.release.branch)
        return f"Committed {len(changed)} files: {', '.join(changed)}."


@dataclass(frozen=True)
class GitPlugin:
    name: str = "builtin.git"

    def handlers(self) -> Sequence[StepHandler]:
        return _handlers(GIT)

    def is_available(self, ctx: Context) -> tuple[bool, str | None]:
        if shutil.which("git") is None:
            return False, "`git` not found on PATH"
        return True, None

    def from_dict(self, options: dict[str, Any], ctx: Context) -> Step:
        assets = options.get("assets", ["CHANGELOG.md"])
        if isinstance(assets, str):
            assets = [assets]
        if not isinstance(assets, list) or not all(isinstance(a, str) and a for a in assets):
            raise ValueError("'assets' must be a list of paths or globs")
        if not assets:
            raise ValueError("'assets' must not be empty")

        message = _check_template(options.get("message", DEFAULT_GIT_MESSAGE), what="message")
        return GitStep(list(assets), message=message)


def builtin_plugins() -> list[StepPlugin]:
    # Keep ordering stable for predictable behavior and logging.
    return [
        CommitAnalyzerPlugin(),
        ReleaseNotesPlugin(),
        ChangelogPlugin(),
        ExecPlugin(),
        GithubPlugin(),
        GitPlugin(),
    ]

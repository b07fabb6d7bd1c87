"""
Release configuration: branch matchers plus the ordered plugin list.

`build_release_config()` assembles the project's release pipeline for the
branch that triggered the CI run. The resulting record can be exported with
`ReleaseConfig.to_dict()` for any tool that understands the
`{branches, plugins}` shape, or executed directly by `ReleaseRunner`.
"""

from __future__ import annotations

import copy
import fnmatch
import os
from dataclasses import dataclass, field
from typing import Any, Mapping

GITHUB_REF_ENV = "GITHUB_REF"

STABLE_BRANCH = "master"
PRERELEASE_BRANCH = "next"

COMMIT_ANALYZER = "@semantic-release/commit-analyzer"
RELEASE_NOTES_GENERATOR = "@semantic-release/release-notes-generator"
CHANGELOG = "@semantic-release/changelog"
EXEC = "@semantic-release/exec"
GITHUB = "@semantic-release/github"
GIT = "@semantic-release/git"

PRESET = "conventionalcommits"

RELEASE_NOTE_TYPES: tuple[dict[str, Any], ...] = (
    {"type": "feat", "section": "🚀 Features"},
    {"type": "fix", "section": "🐛 Bug Fixes"},
    {"type": "refactor", "section": "Refactoring"},
    {"type": "test", "section": "Tests", "hidden": True},
    {"type": "spec", "section": "Tests", "hidden": True},
    {"type": "ci", "section": "CI", "hidden": True},
    {"type": "docs", "section": "Documentation", "hidden": True},
    {"type": "chore", "section": "Chores", "hidden": True},
)

BUILD_CMD = ".github/workflows/build.sh ${nextRelease.version}"

ARTIFACT_ASSETS: tuple[dict[str, str], ...] = (
    {
        "path": "target/artifacts/flowrunner-*-amd64-linux.tar.gz",
        "label": "flowrunner-${nextRelease.version}-amd64-linux",
    },
    {
        "path": "target/artifacts/flowrunner-*-arm64-linux.tar.gz",
        "label": "flowrunner-${nextRelease.version}-arm64-linux",
    },
)

COMMITTED_FILES: tuple[str, ...] = ("CHANGELOG.md", "Cargo.toml")

DEFAULT_TAG_FORMAT = "v${version}"


@dataclass(frozen=True)
class BranchMatcher:
    name: str  # literal branch name or glob pattern
    prerelease: bool | str = False

    def matches(self, branch: str) -> bool:
        if self.name == branch:
            return True
        if any(ch in self.name for ch in "*?["):
            return fnmatch.fnmatchcase(branch, self.name)
        return False

    def prerelease_id(self, branch: str) -> str | None:
        if self.prerelease is False:
            return None
        if self.prerelease is True:
            return branch
        return self.prerelease

    def to_value(self) -> str | dict[str, Any]:
        if self.prerelease is False:
            return self.name
        return {"name": self.name, "prerelease": self.prerelease}


@dataclass(frozen=True)
class PluginInvocation:
    name: str
    options: dict[str, Any] = field(default_factory=dict)

    def to_value(self) -> str | list[Any]:
        if not self.options:
            return self.name
        return [self.name, copy.deepcopy(self.options)]


@dataclass(frozen=True)
class ReleaseConfig:
    branches: tuple[BranchMatcher, ...]
    plugins: tuple[PluginInvocation, ...]
    tag_format: str = DEFAULT_TAG_FORMAT

    def plugin_names(self) -> list[str]:
        return [p.name for p in self.plugins]

    def plugin(self, name: str) -> PluginInvocation | None:
        for p in self.plugins:
            if p.name == name:
                return p
        return None

    def match_branch(self, branch: str) -> BranchMatcher | None:
        # First matcher wins, in declaration order.
        for b in self.branches:
            if b.matches(branch):
                return b
        return None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "branches": [b.to_value() for b in self.branches],
            "plugins": [p.to_value() for p in self.plugins],
        }
        if self.tag_format != DEFAULT_TAG_FORMAT:
            out["tagFormat"] = self.tag_format
        return out


def branch_from_ref(ref: str | None) -> str:
    if not isinstance(ref, str) or not ref.strip():
        raise ValueError(f"{GITHUB_REF_ENV} is not set; cannot determine the release branch")
    branch = ref.strip().split("/")[-1]
    if not branch:
        raise ValueError(f"Cannot derive a branch name from ref {ref!r}")
    return branch


def build_release_config(
    ref: str | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> ReleaseConfig:
    if ref is None:
        ref = (os.environ if env is None else env).get(GITHUB_REF_ENV)
    branch = branch_from_ref(ref)

    plugins: list[PluginInvocation] = [
        PluginInvocation(COMMIT_ANALYZER, {"preset": PRESET}),
        PluginInvocation(
            RELEASE_NOTES_GENERATOR,
            {
                "preset": PRESET,
                "presetConfig": {"types": [dict(t) for t in RELEASE_NOTE_TYPES]},
            },
        ),
    ]

    if branch == STABLE_BRANCH:
        plugins.append(PluginInvocation(CHANGELOG))

    plugins.extend(
        [
            PluginInvocation(EXEC, {"prepareCmd": BUILD_CMD}),
            PluginInvocation(GITHUB, {"assets": [dict(a) for a in ARTIFACT_ASSETS]}),
            PluginInvocation(GIT, {"assets": list(COMMITTED_FILES)}),
        ]
    )

    return ReleaseConfig(
        branches=(
            BranchMatcher(STABLE_BRANCH),
            BranchMatcher(PRERELEASE_BRANCH, prerelease=True),
        ),
        plugins=tuple(plugins),
    )

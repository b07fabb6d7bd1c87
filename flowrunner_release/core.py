from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from flowrunner_release.commits import Commit
from flowrunner_release.semver import BumpType, Version
from flowrunner_release.util import CommandRunner

# Lifecycle phases, in execution order.
PHASES: tuple[str, ...] = ("verify", "analyze", "generate_notes", "prepare", "publish")


class Step(Protocol):
    phases: tuple[str, ...]

    def apply(self, phase: str, ctx: "Context") -> str: ...


@dataclass(frozen=True)
class Options:
    dry_run: bool
    remote: str = "origin"


@dataclass
class ReleaseState:
    branch: str
    channel: str | None = None
    prerelease: str | None = None
    date: dt.date = field(default_factory=dt.date.today)
    tags: list[Version] = field(default_factory=list)
    last_release: Version | None = None
    last_tag: str | None = None
    commits: list[Commit] = field(default_factory=list)
    bump: BumpType | None = None
    next_version: Version | None = None
    git_tag: str | None = None
    notes: str = ""


@dataclass(frozen=True)
class Context:
    repo_root: Path
    logger: logging.Logger
    runner: CommandRunner
    options: Options
    release: ReleaseState


def build_context(
    *,
    repo_root: Path,
    branch: str,
    options: Options,
    logger: logging.Logger,
    runner: CommandRunner | None = None,
) -> Context:
    if runner is None:
        runner = CommandRunner(dry_run=options.dry_run, logger=logger)

    return Context(
        repo_root=repo_root.resolve(),
        logger=logger,
        runner=runner,
        options=options,
        release=ReleaseState(branch=branch),
    )

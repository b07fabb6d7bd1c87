from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from flowrunner_release.util import CommandRunner


@dataclass(frozen=True)
class ReleaseAsset:
    path: Path
    label: str | None = None

    def to_arg(self) -> str:
        # gh accepts "file#display label".
        if self.label:
            return f"{self.path}#{self.label}"
        return str(self.path)


@dataclass(frozen=True)
class GhReleaseBackend:
    runner: CommandRunner
    logger: logging.Logger
    cwd: Path

    def auth_status(self) -> tuple[bool, str]:
        res = self.runner.run(["gh", "auth", "status"], mutating=False, cwd=self.cwd)
        return res.returncode == 0, (res.stderr or res.stdout).strip()

    def create_release(
        self,
        *,
        tag: str,
        title: str,
        notes: str,
        prerelease: bool,
        assets: Sequence[ReleaseAsset] = (),
    ) -> None:
        args = ["gh", "release", "create", tag, "--title", title, "--notes-file", "-", "--verify-tag"]
        if prerelease:
            args.append("--prerelease")
        args.extend(a.to_arg() for a in assets)
        self.runner.run(args, check=True, cwd=self.cwd, input=notes)

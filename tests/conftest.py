from __future__ import annotations

import datetime as dt
import logging
from pathlib import Path
from typing import Iterable, Mapping

import pytest

from flowrunner_release.core import Context, Options, build_context
from flowrunner_release.plugins import builtin as builtin_mod
from flowrunner_release.util import CommandRunner, RunResult, sh_join

LOGGER = logging.getLogger("flowrunner_release.tests")

FIELD_SEP = "\x1f"
RECORD_SEP = "\x1e"


def git_log_output(commits: Iterable[tuple[str, str]]) -> str:
    return "".join(f"{sha}{FIELD_SEP}{msg}{RECORD_SEP}\n" for sha, msg in commits)


class RecordingRunner(CommandRunner):
    """
    CommandRunner double: records argv lists and answers from canned stdout,
    matched by the longest argv prefix.
    """

    def __init__(
        self,
        *,
        dry_run: bool = False,
        responses: Mapping[tuple[str, ...], str] | None = None,
        failures: Mapping[tuple[str, ...], tuple[int, str]] | None = None,
    ) -> None:
        super().__init__(dry_run=dry_run, logger=LOGGER)
        self.responses = dict(responses or {})
        self.failures = dict(failures or {})
        self.calls: list[list[str]] = []
        self.skipped: list[list[str]] = []
        self.inputs: dict[str, str | None] = {}
        self.cwds: list[Path | None] = []

    @staticmethod
    def _match(argv: list[str], table: Mapping[tuple[str, ...], object]) -> tuple[str, ...] | None:
        best: tuple[str, ...] | None = None
        for prefix in table:
            if tuple(argv[: len(prefix)]) == prefix and (best is None or len(prefix) > len(best)):
                best = prefix
        return best

    def run(
        self,
        args,
        *,
        check: bool = False,
        capture: bool = True,
        mutating: bool = True,
        cwd: Path | None = None,
        env=None,
        input: str | None = None,
    ) -> RunResult:
        argv = list(args)
        if self.dry_run and mutating:
            self.skipped.append(argv)
            return RunResult(args=argv, returncode=0, stdout="", stderr="")

        self.calls.append(argv)
        self.inputs[sh_join(argv)] = input
        self.cwds.append(cwd)

        failure = self._match(argv, self.failures)
        if failure is not None:
            code, stderr = self.failures[failure]
            if check:
                raise RuntimeError(f"Command failed ({code}): {sh_join(argv)}\n{stderr}")
            return RunResult(args=argv, returncode=code, stdout="", stderr=stderr)

        prefix = self._match(argv, self.responses)
        stdout = self.responses[prefix] if prefix is not None else ""
        return RunResult(args=argv, returncode=0, stdout=stdout, stderr="")

    def commands(self, *prefix: str) -> list[list[str]]:
        return [c for c in self.calls if tuple(c[: len(prefix)]) == prefix]


def make_context(
    repo_root: Path,
    *,
    branch: str = "master",
    runner: RecordingRunner | None = None,
    dry_run: bool = False,
) -> Context:
    runner = runner or RecordingRunner(dry_run=dry_run)
    ctx = build_context(
        repo_root=repo_root,
        branch=branch,
        options=Options(dry_run=runner.dry_run),
        logger=LOGGER,
        runner=runner,
    )
    ctx.release.date = dt.date(2024, 5, 1)
    return ctx


@pytest.fixture
def tools_on_path(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(builtin_mod.shutil, "which", lambda name: f"/usr/bin/{name}")

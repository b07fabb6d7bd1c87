from __future__ import annotations

import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Sequence


def xdg_config_home() -> Path:
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


def expand_path(s: str) -> Path:
    # Expand ~ and $VARS
    return Path(os.path.expandvars(os.path.expanduser(s)))


def sh_join(args: Sequence[str]) -> str:
    return shlex.join(list(args))


def split_env_paths(value: str) -> list[Path]:
    out: list[Path] = []
    for part in value.split(os.pathsep):
        part = part.strip()
        if not part:
            continue
        out.append(Path(part))
    return out


@dataclass(frozen=True)
class RunResult:
    args: list[str]
    returncode: int
    stdout: str
    stderr: str


class CommandRunner:
    """
    Thin subprocess wrapper shared by every step.

    `mutating=True` marks commands that change the repository or the remote;
    those are only logged in dry-run mode. Read-only commands (git log, git tag
    --list, ...) always run so a dry run can still compute the next release.
    """

    def __init__(self, *, dry_run: bool, logger) -> None:
        self._dry_run = dry_run
        self._logger = logger

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def run(
        self,
        args: Iterable[str],
        *,
        check: bool = False,
        capture: bool = True,
        mutating: bool = True,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        input: str | None = None,
    ) -> RunResult:
        argv = list(args)

        # Keep low-level process logs at DEBUG so high-level output can stay
        # "one log line per step".
        self._logger.debug("RUN %s", sh_join(argv))
        if self._dry_run and mutating:
            return RunResult(args=argv, returncode=0, stdout="", stderr="")

        merged_env = None
        if env is not None:
            merged_env = dict(os.environ)
            merged_env.update(dict(env))

        cp = subprocess.run(
            argv,
            text=True,
            capture_output=capture,
            check=False,  # we handle below to include logs
            cwd=str(cwd) if cwd is not None else None,
            env=merged_env,
            input=input,
        )
        if check and cp.returncode != 0:
            raise RuntimeError(
                f"Command failed ({cp.returncode}): {sh_join(argv)}\n{cp.stderr or ''}"
            )
        return RunResult(
            args=argv,
            returncode=cp.returncode,
            stdout=cp.stdout or "",
            stderr=cp.stderr or "",
        )

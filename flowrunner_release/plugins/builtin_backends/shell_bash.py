from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from flowrunner_release.util import CommandRunner, RunResult


@dataclass(frozen=True)
class BashShellBackend:
    runner: CommandRunner
    logger: logging.Logger

    def run_command(
        self,
        command: str,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        show_output: bool = False,
    ) -> RunResult:
        script = "set -euo pipefail\n" + command + "\n"
        res = self.runner.run(
            ["bash", "-c", script],
            check=True,
            capture=(not show_output),
            cwd=cwd,
            env=env,
        )
        if not show_output:
            if res.stdout.strip():
                self.logger.debug("shell stdout:\n%s", res.stdout.rstrip())
            if res.stderr.strip():
                self.logger.debug("shell stderr:\n%s", res.stderr.rstrip())
        return res

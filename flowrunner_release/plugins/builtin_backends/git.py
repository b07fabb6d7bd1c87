from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from flowrunner_release.util import CommandRunner

# Field/record separators for `git log --format`, unlikely to occur in messages.
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"


@dataclass(frozen=True)
class GitBackend:
    runner: CommandRunner
    logger: logging.Logger
    cwd: Path

    def _read(self, args: Sequence[str]) -> str:
        res = self.runner.run(["git", *args], check=True, mutating=False, cwd=self.cwd)
        return res.stdout

    def _write(self, args: Sequence[str]) -> None:
        self.runner.run(["git", *args], check=True, cwd=self.cwd)

    def merged_tags(self) -> list[str]:
        out = self._read(["tag", "--list", "--merged", "HEAD"])
        return [line.strip() for line in out.splitlines() if line.strip()]

    def log(self, since: str | None = None) -> list[tuple[str, str]]:
        rev = f"{since}..HEAD" if since else "HEAD"
        out = self._read(["log", f"--format=%H{_FIELD_SEP}%B{_RECORD_SEP}", rev])
        commits: list[tuple[str, str]] = []
        for record in out.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record:
                continue
            sha, _, message = record.partition(_FIELD_SEP)
            commits.append((sha.strip(), message.strip()))
        return commits

    def changed_files(self, pathspecs: Sequence[str]) -> list[str]:
        # -z: NUL-terminated, unquoted paths.
        out = self._read(["status", "--porcelain", "-z", "--untracked-files=all", "--", *pathspecs])
        entries = out.split("\0")
        files: list[str] = []
        i = 0
        while i < len(entries):
            entry = entries[i]
            i += 1
            if len(entry) < 4:
                continue
            status, path = entry[:2], entry[3:]
            # Renames and copies are followed by the original path as its own entry.
            if "R" in status or "C" in status:
                i += 1
            files.append(path)
        return files

    def add(self, paths: Sequence[str]) -> None:
        self._write(["add", "--force", "--ignore-errors", "--", *paths])

    def commit(self, message: str) -> None:
        self._write(["commit", "-m", message])

    def push(self, remote: str, branch: str) -> None:
        self._write(["push", remote, f"HEAD:refs/heads/{branch}"])

    def tag(self, name: str) -> None:
        self._write(["tag", name])

    def push_tag(self, remote: str, name: str) -> None:
        self._write(["push", remote, f"refs/tags/{name}"])

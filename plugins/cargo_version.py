from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Sequence

from flowrunner_release.plugin_api import Context, Step, StepHandler

_SECTION_RE = re.compile(r"^\s*\[([^\[\]]+)\]\s*$")
_VERSION_RE = re.compile(r'^(\s*version\s*=\s*)"[^"]*"(.*)$')


def set_package_version(text: str, version: str) -> tuple[str, bool]:
    """
    Rewrite `version = "..."` inside the [package] table, keeping every other
    line (comments, ordering, formatting) untouched.
    """
    out: list[str] = []
    section: str | None = None
    changed = False
    for line in text.splitlines(keepends=True):
        m = _SECTION_RE.match(line)
        if m is not None:
            section = m.group(1).strip()
        elif section == "package" and not changed:
            vm = _VERSION_RE.match(line.rstrip("\r\n"))
            if vm is not None:
                ending = line[len(line.rstrip("\r\n")):]
                line = f'{vm.group(1)}"{version}"{vm.group(2)}{ending}'
                changed = True
        out.append(line)
    return "".join(out), changed


class CargoVersionStep:
    phases = ("prepare",)

    def __init__(self, manifests: list[str]) -> None:
        self.manifests = manifests

    def apply(self, phase: str, ctx: Context) -> str:
        version = str(ctx.release.next_version)
        if ctx.options.dry_run:
            return f"Would set version {version} in {', '.join(self.manifests)}."

        for rel in self.manifests:
            path = ctx.repo_root / rel
            if not path.exists():
                raise RuntimeError(f"Cargo manifest not found: {path}")
            text, changed = set_package_version(path.read_text(encoding="utf-8"), version)
            if not changed:
                raise RuntimeError(f"No [package] version found in {path}")
            path.write_text(text, encoding="utf-8")
        return f"Set version {version} in {', '.join(self.manifests)}."


@dataclass(frozen=True)
class CargoVersionPlugin:
    name: str = "flowrunner.cargo-version"

    def handlers(self) -> Sequence[StepHandler]:
        return (StepHandler(name="cargo-version"),)

    def is_available(self, ctx: Context) -> tuple[bool, str | None]:
        return True, None

    def from_dict(self, options: dict[str, Any], ctx: Context) -> Step:
        manifests = options.get("manifests", ["Cargo.toml"])
        if isinstance(manifests, str) and manifests:
            manifests = [manifests]
        if not isinstance(manifests, list) or not manifests or not all(
            isinstance(m, str) and m for m in manifests
        ):
            raise ValueError("cargo-version: 'manifests' must be a path or a list of paths")
        return CargoVersionStep(list(manifests))


PLUGIN = CargoVersionPlugin()

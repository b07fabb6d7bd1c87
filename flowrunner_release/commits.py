"""
Conventional commit parsing and release-notes rendering.

Only the header grammar (`type(scope)!: subject`) and the breaking-change
footer are understood; everything else in a message is kept verbatim in
`Commit.message`.
"""

from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from flowrunner_release.semver import BumpType, max_bump

_HEADER_RE = re.compile(r"^(?P<type>[A-Za-z]+)(?:\((?P<scope>[^()\r\n]*)\))?(?P<bang>!)?: (?P<subject>.+)$")
_BREAKING_RE = re.compile(r"^BREAKING[ -]CHANGE: ?(?P<text>.*)$", re.MULTILINE)

# conventionalcommits preset defaults, used when no presetConfig.types is given.
DEFAULT_TYPES: tuple[dict[str, Any], ...] = (
    {"type": "feat", "section": "Features"},
    {"type": "feature", "section": "Features"},
    {"type": "fix", "section": "Bug Fixes"},
    {"type": "perf", "section": "Performance Improvements"},
    {"type": "revert", "section": "Reverts"},
    {"type": "docs", "section": "Documentation", "hidden": True},
    {"type": "style", "section": "Styles", "hidden": True},
    {"type": "chore", "section": "Miscellaneous Chores", "hidden": True},
    {"type": "refactor", "section": "Code Refactoring", "hidden": True},
    {"type": "test", "section": "Tests", "hidden": True},
    {"type": "build", "section": "Build System", "hidden": True},
    {"type": "ci", "section": "Continuous Integration", "hidden": True},
)

BREAKING_SECTION = "⚠ BREAKING CHANGES"


@dataclass(frozen=True)
class Commit:
    sha: str
    message: str
    type: str | None
    scope: str | None
    subject: str
    breaking: bool
    breaking_note: str | None = None

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


def parse_commit(sha: str, message: str) -> Commit:
    lines = message.strip().splitlines()
    header = lines[0].strip() if lines else ""
    body = "\n".join(lines[1:])

    note_match = _BREAKING_RE.search(body)
    note = note_match.group("text").strip() if note_match else None

    m = _HEADER_RE.match(header)
    if m is None:
        return Commit(
            sha=sha,
            message=message,
            type=None,
            scope=None,
            subject=header,
            breaking=note_match is not None,
            breaking_note=note or None,
        )

    scope = m.group("scope") or None
    return Commit(
        sha=sha,
        message=message,
        type=m.group("type").lower(),
        scope=scope.strip() if scope else None,
        subject=m.group("subject").strip(),
        breaking=bool(m.group("bang")) or note_match is not None,
        breaking_note=note or None,
    )


def _default_release(commit: Commit) -> BumpType | None:
    if commit.breaking:
        return "major"
    if commit.type in {"feat", "feature"}:
        return "minor"
    if commit.type in {"fix", "perf"}:
        return "patch"
    return None


def _rule_matches(rule: Mapping[str, Any], commit: Commit) -> bool:
    for key in ("type", "scope", "breaking"):
        if key not in rule:
            continue
        expected = rule[key]
        actual = getattr(commit, key)
        if key == "scope" and isinstance(expected, str) and expected == "*":
            if actual is None:
                return False
            continue
        if actual != expected:
            return False
    return True


def validate_release_rules(rules: Any) -> list[dict[str, Any]]:
    if rules is None:
        return []
    if not isinstance(rules, list) or not all(isinstance(r, dict) for r in rules):
        raise ValueError("'releaseRules' must be a list of tables")
    for i, rule in enumerate(rules, start=1):
        release = rule.get("release")
        if release is not False and release not in ("major", "minor", "patch"):
            raise ValueError(f"releaseRules entry {i}: 'release' must be major|minor|patch|false")
    return list(rules)


def commit_release(commit: Commit, rules: Sequence[Mapping[str, Any]] = ()) -> BumpType | None:
    # Custom rules win; the first matching rule decides.
    for rule in rules:
        if _rule_matches(rule, commit):
            release = rule.get("release")
            return None if release is False else release
    return _default_release(commit)


def release_type(
    commits: Iterable[Commit],
    rules: Sequence[Mapping[str, Any]] = (),
) -> BumpType | None:
    return max_bump(commit_release(c, rules) for c in commits)


def validate_types(types: Any) -> list[dict[str, Any]]:
    if types is None:
        return [dict(t) for t in DEFAULT_TYPES]
    if not isinstance(types, list) or not all(isinstance(t, dict) for t in types):
        raise ValueError("'presetConfig.types' must be a list of tables")
    for i, t in enumerate(types, start=1):
        if not isinstance(t.get("type"), str) or not t["type"]:
            raise ValueError(f"presetConfig.types entry {i} requires 'type'")
        section = t.get("section")
        if section is not None and not isinstance(section, str):
            raise ValueError(f"presetConfig.types entry {i}: 'section' must be a string")
        hidden = t.get("hidden", False)
        if not isinstance(hidden, bool):
            raise ValueError(f"presetConfig.types entry {i}: 'hidden' must be a boolean")
    return list(types)


def _format_entry(commit: Commit, subject: str) -> str:
    scope = f"**{commit.scope}:** " if commit.scope else ""
    return f"* {scope}{subject} ({commit.short_sha})"


def render_notes(
    commits: Sequence[Commit],
    *,
    version: str,
    types: Sequence[Mapping[str, Any]],
    date: dt.date,
    previous_tag: str | None = None,
    tag: str | None = None,
    repository_url: str | None = None,
) -> str:
    """
    Render markdown release notes.

    Sections follow the order of `types`; the first entry for a type wins when
    a type is listed twice. Types sharing a section name are merged into the
    first occurrence of that section. Hidden types and commits without a
    conventional header are left out, except that breaking changes are always
    listed.
    """
    section_for: dict[str, str] = {}
    hidden: set[str] = set()
    order: list[str] = []
    for t in types:
        name = t["type"]
        if name in section_for or name in hidden:
            continue
        if t.get("hidden", False):
            hidden.add(name)
            continue
        section = t.get("section") or name
        section_for[name] = section
        if section not in order:
            order.append(section)

    grouped: dict[str, list[str]] = {s: [] for s in order}
    breaking: list[str] = []
    for c in commits:
        if c.breaking:
            breaking.append(_format_entry(c, c.breaking_note or c.subject))
        if c.type is None:
            continue
        section = section_for.get(c.type)
        if section is None:
            continue
        grouped[section].append(_format_entry(c, c.subject))

    if repository_url and previous_tag and tag:
        title = f"[{version}]({repository_url.rstrip('/')}/compare/{previous_tag}...{tag})"
    else:
        title = version

    out = [f"## {title} ({date.isoformat()})", ""]

    if breaking:
        out.extend([f"### {BREAKING_SECTION}", "", *breaking, ""])
    for section in order:
        entries = grouped[section]
        if not entries:
            continue
        out.extend([f"### {section}", "", *entries, ""])

    return "\n".join(out).rstrip() + "\n"

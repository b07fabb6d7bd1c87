from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Literal

BumpType = Literal["major", "minor", "patch"]

FIRST_RELEASE = "1.0.0"

_VERSION_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z-]+)\.(0|[1-9]\d*))?$"
)

_BUMP_ORDER: dict[str, int] = {"patch": 1, "minor": 2, "major": 3}


@dataclass(frozen=True)
class Version:
    major: int
    minor: int
    patch: int
    prerelease: str | None = None
    counter: int | None = None

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease is None:
            return base
        return f"{base}-{self.prerelease}.{self.counter}"

    @property
    def is_prerelease(self) -> bool:
        return self.prerelease is not None

    @property
    def base(self) -> "Version":
        return Version(self.major, self.minor, self.patch)

    def sort_key(self) -> tuple[int, int, int, int, str, int]:
        # A stable version sorts after every prerelease of the same base.
        if self.prerelease is None:
            return (self.major, self.minor, self.patch, 1, "", 0)
        return (self.major, self.minor, self.patch, 0, self.prerelease, self.counter or 0)

    def bump(self, kind: BumpType) -> "Version":
        match kind:
            case "major":
                return Version(self.major + 1, 0, 0)
            case "minor":
                return Version(self.major, self.minor + 1, 0)
            case "patch":
                return Version(self.major, self.minor, self.patch + 1)
            case _:
                raise ValueError(f"unexpected bump kind: {kind!r}")


def parse_version(text: str) -> Version | None:
    m = _VERSION_RE.match(text.strip())
    if m is None:
        return None
    pre = m.group(4)
    counter = int(m.group(5)) if pre is not None else None
    return Version(int(m.group(1)), int(m.group(2)), int(m.group(3)), pre, counter)


def format_tag(version: Version, tag_format: str) -> str:
    if "${version}" not in tag_format:
        raise ValueError(f"tag format must contain ${{version}}: {tag_format!r}")
    return tag_format.replace("${version}", str(version))


def parse_tag(tag: str, tag_format: str) -> Version | None:
    if "${version}" not in tag_format:
        raise ValueError(f"tag format must contain ${{version}}: {tag_format!r}")
    prefix, _, suffix = tag_format.partition("${version}")
    if not tag.startswith(prefix) or not tag.endswith(suffix):
        return None
    inner = tag[len(prefix):len(tag) - len(suffix)] if suffix else tag[len(prefix):]
    return parse_version(inner)


def max_bump(kinds: Iterable[BumpType | None]) -> BumpType | None:
    best: BumpType | None = None
    for kind in kinds:
        if kind is None:
            continue
        if best is None or _BUMP_ORDER[kind] > _BUMP_ORDER[best]:
            best = kind
    return best


def last_release(versions: Iterable[Version], *, prerelease: str | None = None) -> Version | None:
    """
    Highest stable version, or (when `prerelease` is given) the highest version
    that is either stable or a prerelease on that identifier.
    """
    candidates = [
        v for v in versions
        if v.prerelease is None or (prerelease is not None and v.prerelease == prerelease)
    ]
    if not candidates:
        return None
    return max(candidates, key=Version.sort_key)


def next_version(
    versions: Iterable[Version],
    bump: BumpType,
    *,
    prerelease: str | None = None,
) -> Version:
    known = list(versions)
    stable = last_release(known)

    if stable is None:
        target = parse_version(FIRST_RELEASE)
        assert target is not None
    else:
        target = stable.bump(bump)

    if prerelease is None:
        return target

    same_channel = [v for v in known if v.prerelease == prerelease]
    if same_channel:
        latest = max(same_channel, key=Version.sort_key)
        if latest.base.sort_key() >= target.sort_key():
            return Version(latest.major, latest.minor, latest.patch, prerelease, (latest.counter or 0) + 1)
    return Version(target.major, target.minor, target.patch, prerelease, 1)

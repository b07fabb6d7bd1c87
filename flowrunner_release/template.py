from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from flowrunner_release.core import ReleaseState

_PLACEHOLDER_RE = re.compile(r"\$\{\s*([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)\s*\}")


def _lookup(values: Mapping[str, Any], dotted: str) -> Any:
    cur: Any = values
    for part in dotted.split("."):
        if not isinstance(cur, Mapping) or part not in cur:
            raise ValueError(f"Unknown template placeholder: ${{{dotted}}}")
        cur = cur[part]
    if isinstance(cur, Mapping):
        raise ValueError(f"Template placeholder ${{{dotted}}} does not name a value")
    return cur


def placeholders(text: str) -> list[str]:
    return _PLACEHOLDER_RE.findall(text)


def render_template(text: str, values: Mapping[str, Any]) -> str:
    def repl(m: re.Match[str]) -> str:
        value = _lookup(values, m.group(1))
        return "" if value is None else str(value)

    return _PLACEHOLDER_RE.sub(repl, text)


def release_values(state: "ReleaseState") -> dict[str, Any]:
    last = state.last_release
    return {
        "branch": {"name": state.branch},
        "lastRelease": {
            "version": str(last) if last is not None else None,
            "gitTag": state.last_tag,
        },
        "nextRelease": {
            "version": str(state.next_version) if state.next_version is not None else None,
            "gitTag": state.git_tag,
            "channel": state.channel,
            "notes": state.notes,
        },
    }

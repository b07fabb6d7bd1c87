from __future__ import annotations

import pytest

from flowrunner_release.core import ReleaseState
from flowrunner_release.semver import Version
from flowrunner_release.template import placeholders, release_values, render_template


def test_render_nested_placeholder() -> None:
    values = {"nextRelease": {"version": "1.3.0"}}
    assert render_template(".github/workflows/build.sh ${nextRelease.version}", values) == (
        ".github/workflows/build.sh 1.3.0"
    )


def test_literal_text_and_shell_vars_untouched() -> None:
    assert render_template("echo $HOME ${ nextRelease.version }", {"nextRelease": {"version": "2"}}) == "echo $HOME 2"


def test_unknown_placeholder_raises() -> None:
    with pytest.raises(ValueError, match="nextRelease.tag"):
        render_template("${nextRelease.tag}", {"nextRelease": {"version": "1"}})
    with pytest.raises(ValueError, match="does not name a value"):
        render_template("${nextRelease}", {"nextRelease": {"version": "1"}})


def test_placeholders() -> None:
    assert placeholders("a ${b.c} ${d}") == ["b.c", "d"]


def test_release_values() -> None:
    state = ReleaseState(branch="next", channel="next", prerelease="next")
    state.last_release = Version(1, 2, 0)
    state.last_tag = "v1.2.0"
    state.next_version = Version(1, 3, 0, "next", 1)
    state.git_tag = "v1.3.0-next.1"
    state.notes = "notes"

    values = release_values(state)
    assert values["nextRelease"] == {
        "version": "1.3.0-next.1",
        "gitTag": "v1.3.0-next.1",
        "channel": "next",
        "notes": "notes",
    }
    assert values["lastRelease"] == {"version": "1.2.0", "gitTag": "v1.2.0"}
    assert render_template("${branch.name}", values) == "next"

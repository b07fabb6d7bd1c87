"""
Stable SDK for external step plugins.

Goal: plugin authors should only depend on this module + the plugin interfaces
under `flowrunner_release.plugins.*`, and avoid importing internal
implementation details from the core codebase.
"""

from __future__ import annotations

from flowrunner_release.core import Context, Options, ReleaseState, Step
from flowrunner_release.plugins.api import StepHandler
from flowrunner_release.template import release_values, render_template
from flowrunner_release.util import (
    CommandRunner,
    RunResult,
    expand_path,
    sh_join,
)

__all__ = [
    "Context",
    "Options",
    "ReleaseState",
    "Step",
    "StepHandler",
    "CommandRunner",
    "RunResult",
    "expand_path",
    "release_values",
    "render_template",
    "sh_join",
]

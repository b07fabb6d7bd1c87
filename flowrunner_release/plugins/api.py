from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from flowrunner_release.core import Context, Step


@dataclass(frozen=True)
class StepHandler:
    name: str  # plugin name as written in the release config


class StepPlugin(Protocol):
    """
    A step plugin converts a plugin invocation's options into an executable Step.

    A plugin must:
    - declare which plugin names it answers to
    - validate its options
    - implement its execution via the returned Step
    """

    name: str

    def handlers(self) -> Sequence[StepHandler]: ...

    def is_available(self, ctx: Context) -> tuple[bool, str | None]: ...

    def from_dict(self, options: dict[str, Any], ctx: Context) -> Step: ...

from __future__ import annotations

from typing import Iterable

from flowrunner_release.core import PHASES, Context, Step
from flowrunner_release.plugins.api import StepHandler, StepPlugin
from flowrunner_release.release_config import PluginInvocation


class StepFactory:
    """
    Registry-backed factory. Core code does not know about concrete plugins.
    """

    def __init__(self, plugins: Iterable[StepPlugin]) -> None:
        by_name: dict[str, StepPlugin] = {}
        for plugin in plugins:
            if not getattr(plugin, "name", None):
                raise ValueError("Plugin is missing required attribute 'name'")
            handlers = plugin.handlers()
            if not handlers:
                raise ValueError(f"Plugin {plugin.name} must handle at least one plugin name")
            for h in handlers:
                if not isinstance(h, StepHandler):
                    raise ValueError(f"Plugin {plugin.name} returned invalid handler: {h!r}")
                if not isinstance(h.name, str) or not h.name:
                    raise ValueError(f"Plugin {plugin.name} returned invalid name: {h.name!r}")
                if h.name in by_name:
                    other = by_name[h.name]
                    raise ValueError(
                        f"Duplicate handler for {h.name}: {other.name} and {plugin.name}"
                    )
                by_name[h.name] = plugin
        self._by_name = by_name

    @property
    def registered_handlers(self) -> list[str]:
        return sorted(self._by_name.keys())

    def plugin_for(self, name: str) -> StepPlugin | None:
        return self._by_name.get(name)

    def from_invocation(self, invocation: PluginInvocation, ctx: Context) -> Step:
        plugin = self._by_name.get(invocation.name)
        if plugin is None:
            known = ", ".join(self.registered_handlers) if self._by_name else "(none)"
            raise ValueError(f"Unknown plugin: {invocation.name} (known: {known})")

        ok, reason = plugin.is_available(ctx)
        if not ok:
            msg = reason or "plugin is not available in this environment"
            raise RuntimeError(f"Plugin {invocation.name} is unavailable: {msg}")

        step = plugin.from_dict(dict(invocation.options), ctx)
        unknown = [p for p in step.phases if p not in PHASES]
        if unknown:
            raise ValueError(f"Plugin {invocation.name} declared unknown phases: {', '.join(unknown)}")
        return step

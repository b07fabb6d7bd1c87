"""
Step plugin system for flowrunner-release.

Plugins are loaded at runtime and registered by the runner.
"""

from flowrunner_release.plugins.api import StepHandler, StepPlugin
from flowrunner_release.plugins.factory import StepFactory
from flowrunner_release.plugins.loader import PluginLoadResult, load_plugins

__all__ = ["StepHandler", "StepPlugin", "StepFactory", "PluginLoadResult", "load_plugins"]

from __future__ import annotations

import importlib.util
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Sequence

from flowrunner_release.plugins.api import StepPlugin
from flowrunner_release.plugins.builtin import builtin_plugins
from flowrunner_release.util import split_env_paths, xdg_config_home

PLUGINS_DIRS_ENV = "FLOWRUNNER_RELEASE_PLUGINS_DIRS"


@dataclass(frozen=True)
class PluginLoadResult:
    plugins: list[StepPlugin]
    errors: list[str] = field(default_factory=list)


def plugin_search_dirs(extra: Sequence[Path] = ()) -> list[Path]:
    """
    Directories searched for step plugins, in priority order and de-duplicated:
    `--plugins-dir` values, then $FLOWRUNNER_RELEASE_PLUGINS_DIRS, then
    ~/.config/flowrunner-release/plugins when it exists.
    """
    candidates = list(extra)
    candidates.extend(split_env_paths(os.environ.get(PLUGINS_DIRS_ENV, "")))
    user_dir = xdg_config_home() / "flowrunner-release" / "plugins"
    if user_dir.is_dir():
        candidates.append(user_dir)

    out: list[Path] = []
    for d in candidates:
        d = d.expanduser().resolve()
        if d not in out:
            out.append(d)
    return out


def _import_plugin_file(py_file: Path) -> StepPlugin:
    module_name = f"flowrunner_release_user_plugin_{py_file.stem}_{abs(hash(str(py_file)))}"
    spec = importlib.util.spec_from_file_location(module_name, py_file)
    if spec is None or spec.loader is None:
        raise ImportError(f"cannot build an import spec for {py_file}")

    mod: ModuleType = importlib.util.module_from_spec(spec)
    # Registered before exec: dataclass processing looks the module up by name.
    sys.modules[module_name] = mod
    try:
        spec.loader.exec_module(mod)
    except Exception:
        sys.modules.pop(module_name, None)
        raise

    if getattr(mod, "PLUGIN", None) is not None:
        return mod.PLUGIN
    factory = getattr(mod, "get_plugin", None)
    if callable(factory):
        return factory()
    raise ValueError(f"Plugin module {py_file} must define PLUGIN or get_plugin().")


def load_plugins(
    *,
    include_builtin: bool = True,
    plugin_dirs: Sequence[Path] | None = None,
) -> PluginLoadResult:
    """
    Builtin step plugins followed by every `*.py` file (not starting with `_`)
    in the search directories. Broken files and missing directories are
    reported in `errors`; they never abort loading.
    """
    result = PluginLoadResult(plugins=builtin_plugins() if include_builtin else [])

    for d in plugin_search_dirs(plugin_dirs or ()):
        if not d.is_dir():
            kind = "is not a directory" if d.exists() else "does not exist"
            result.errors.append(f"Plugins dir {kind}: {d}")
            continue
        for py_file in sorted(d.glob("*.py")):
            if py_file.name.startswith("_"):
                continue
            try:
                result.plugins.append(_import_plugin_file(py_file))
            except Exception as e:
                result.errors.append(f"Failed to load plugin {py_file}: {e}")

    return result

from __future__ import annotations

import json
import tomllib
from json import JSONDecodeError
from pathlib import Path
from typing import Any

from flowrunner_release.release_config import (
    DEFAULT_TAG_FORMAT,
    BranchMatcher,
    PluginInvocation,
    ReleaseConfig,
)

_TOP_LEVEL_KEYS = {"branches", "plugins", "tagFormat"}


def _require_str(value: Any, *, what: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError(f"'{what}' must be a non-empty string")
    return value


def _parse_branch(value: Any, *, index: int) -> BranchMatcher:
    if isinstance(value, str) and value:
        return BranchMatcher(value)
    if isinstance(value, dict):
        name = _require_str(value.get("name"), what=f"branches[{index}].name")
        prerelease = value.get("prerelease", False)
        if not isinstance(prerelease, (bool, str)) or prerelease == "":
            raise ValueError(f"'branches[{index}].prerelease' must be a boolean or a non-empty string")
        return BranchMatcher(name, prerelease=prerelease)
    raise ValueError(f"branches[{index}] must be a branch name or a {{name, prerelease}} table")


def _parse_plugin(value: Any, *, index: int) -> PluginInvocation:
    # "name" | ["name", {options}] | {name = "...", options = {...}} (TOML-friendly)
    if isinstance(value, str) and value:
        return PluginInvocation(value)
    if isinstance(value, list):
        if len(value) not in (1, 2):
            raise ValueError(f"plugins[{index}] must be [name] or [name, options]")
        name = _require_str(value[0], what=f"plugins[{index}][0]")
        options = value[1] if len(value) == 2 else {}
        if not isinstance(options, dict):
            raise ValueError(f"plugins[{index}][1] must be an options table")
        return PluginInvocation(name, dict(options))
    if isinstance(value, dict):
        extra = set(value.keys()) - {"name", "options"}
        if extra:
            raise ValueError(f"plugins[{index}] has unknown keys: {', '.join(sorted(extra))}")
        name = _require_str(value.get("name"), what=f"plugins[{index}].name")
        options = value.get("options", {})
        if not isinstance(options, dict):
            raise ValueError(f"plugins[{index}].options must be a table")
        return PluginInvocation(name, dict(options))
    raise ValueError(f"plugins[{index}] must be a plugin name, [name, options] or {{name, options}}")


def config_from_dict(obj: Any) -> ReleaseConfig:
    if not isinstance(obj, dict):
        raise ValueError("Release config must be a table with 'branches' and 'plugins'.")

    extra = set(obj.keys()) - _TOP_LEVEL_KEYS
    if extra:
        raise ValueError(f"Unknown top-level keys in release config: {', '.join(sorted(extra))}")

    branches = obj.get("branches")
    if isinstance(branches, (str, dict)):
        branches = [branches]
    if not isinstance(branches, list) or not branches:
        raise ValueError("'branches' must be a non-empty list")

    plugins = obj.get("plugins")
    if not isinstance(plugins, list) or not plugins:
        raise ValueError("'plugins' must be a non-empty list")

    tag_format = obj.get("tagFormat", DEFAULT_TAG_FORMAT)
    _require_str(tag_format, what="tagFormat")
    if "${version}" not in tag_format:
        raise ValueError("'tagFormat' must contain ${version}")

    return ReleaseConfig(
        branches=tuple(_parse_branch(b, index=i) for i, b in enumerate(branches)),
        plugins=tuple(_parse_plugin(p, index=i) for i, p in enumerate(plugins)),
        tag_format=tag_format,
    )


def _load_json(text: str, path: Path) -> Any:
    try:
        return json.loads(text)
    except JSONDecodeError as e:
        raise ValueError(
            f"Invalid JSON in {path} at line {e.lineno}, column {e.colno}: {e.msg}"
        ) from e


def _load_toml(text: str, path: Path) -> Any:
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e


def _load_yaml(text: str, path: Path) -> Any:
    import yaml

    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        if mark is not None and hasattr(mark, "line") and hasattr(mark, "column"):
            line = int(mark.line) + 1
            col = int(mark.column) + 1
            raise ValueError(f"Invalid YAML in {path} at line {line}, column {col}: {e}") from e
        raise ValueError(f"Invalid YAML in {path}: {e}") from e


def load_config_file(path: Path) -> ReleaseConfig:
    if not path.is_file():
        raise ValueError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()

    if suffix == ".json":
        raw = _load_json(text, path)
    elif suffix == ".toml":
        raw = _load_toml(text, path)
    elif suffix in (".yaml", ".yml"):
        raw = _load_yaml(text, path)
    else:
        raise ValueError(
            f"Unsupported config format for {path} (expected .json, .toml, .yaml, .yml)."
        )
    try:
        return config_from_dict(raw)
    except ValueError as e:
        raise ValueError(f"{path}: {e}") from e


def dump_config(config: ReleaseConfig, fmt: str = "json") -> str:
    data = config.to_dict()
    if fmt == "json":
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    if fmt == "yaml":
        import yaml

        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    raise ValueError(f"Unsupported output format: {fmt!r} (expected json or yaml)")

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from flowrunner_release.config_loader import dump_config, load_config_file
from flowrunner_release.core import Options, build_context
from flowrunner_release.plugins.factory import StepFactory
from flowrunner_release.plugins.loader import load_plugins
from flowrunner_release.release_config import (
    GITHUB_REF_ENV,
    ReleaseConfig,
    branch_from_ref,
    build_release_config,
)
from flowrunner_release.runner import ReleaseRunner


def _setup_logger(verbose: bool) -> logging.Logger:
    logger = logging.getLogger("flowrunner-release")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    logger.handlers[:] = [handler]
    logger.propagate = False
    return logger


def _resolve_config(args: argparse.Namespace, ref: str | None) -> ReleaseConfig:
    if args.config is not None:
        return load_config_file(args.config)
    return build_release_config(ref)


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--ref",
        help=f"CI ref that triggered the run (default: ${GITHUB_REF_ENV}). The branch is its last path segment.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Load the release config from a file (*.json, *.toml, *.yaml, *.yml) instead of the built-in one.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Verbose logs.",
    )


def _cmd_config(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = _resolve_config(args, args.ref)
    sys.stdout.write(dump_config(config, args.format))
    return 0


def _cmd_run(args: argparse.Namespace, logger: logging.Logger) -> int:
    ref = args.ref if args.ref is not None else os.environ.get(GITHUB_REF_ENV)
    branch = branch_from_ref(ref)
    config = _resolve_config(args, ref)

    options = Options(
        dry_run=bool(args.dry_run),
        remote=args.remote,
    )
    ctx = build_context(
        repo_root=args.cwd,
        branch=branch,
        options=options,
        logger=logger,
    )

    loaded_plugins = load_plugins(plugin_dirs=list(args.plugins_dir))
    for err in loaded_plugins.errors:
        logger.warning("%s", err)
    factory = StepFactory(loaded_plugins.plugins)
    logger.debug("Registered plugins: %s", ", ".join(factory.registered_handlers))

    mode = " (dry run)" if options.dry_run else ""
    logger.info("=== Releasing %s from %s%s ===", branch, ctx.repo_root, mode)
    outcome = ReleaseRunner(config, factory, ctx).run()
    if outcome.released:
        logger.info("Released %s.", outcome.version)
    logger.info("Done.")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="flowrunner-release")
    sub = parser.add_subparsers(dest="command", required=True)

    p_config = sub.add_parser("config", help="Print the release config for the current branch.")
    _add_common(p_config)
    p_config.add_argument(
        "--format",
        choices=["json", "yaml"],
        default="json",
        help="Output format.",
    )
    p_config.set_defaults(handler=_cmd_config)

    p_run = sub.add_parser("run", help="Run the release pipeline for the current branch.")
    _add_common(p_run)
    p_run.add_argument(
        "--plugins-dir",
        action="append",
        type=Path,
        default=[],
        help="Directory containing additional step plugins (*.py). Can be specified multiple times. "
        "Also supports FLOWRUNNER_RELEASE_PLUGINS_DIRS and ~/.config/flowrunner-release/plugins.",
    )
    p_run.add_argument(
        "--cwd",
        type=Path,
        default=Path.cwd(),
        help="Repository root (default: current directory).",
    )
    p_run.add_argument(
        "--remote",
        default="origin",
        help="Git remote to push the release commit and tag to.",
    )
    p_run.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute the release and log actions, but do not change the repository or publish.",
    )
    p_run.set_defaults(handler=_cmd_run)

    args = parser.parse_args(argv)
    logger = _setup_logger(args.verbose)

    try:
        return args.handler(args, logger)
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return 2
    except RuntimeError as e:
        logger.error("Release failed: %s", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

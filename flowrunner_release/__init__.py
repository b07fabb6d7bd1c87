"""Release pipeline config and step runner for flowrunner."""

from flowrunner_release.release_config import (
    BranchMatcher,
    PluginInvocation,
    ReleaseConfig,
    branch_from_ref,
    build_release_config,
)

__all__ = [
    "BranchMatcher",
    "PluginInvocation",
    "ReleaseConfig",
    "branch_from_ref",
    "build_release_config",
]

__version__ = "0.1.0"

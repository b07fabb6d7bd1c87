from __future__ import annotations

from dataclasses import dataclass

from flowrunner_release.commits import parse_commit
from flowrunner_release.core import Context, Step
from flowrunner_release.plugins.builtin_backends.git import GitBackend
from flowrunner_release.plugins.factory import StepFactory
from flowrunner_release.release_config import ReleaseConfig
from flowrunner_release.semver import Version, format_tag, last_release, next_version, parse_tag


@dataclass(frozen=True)
class RunOutcome:
    released: bool
    version: str | None = None
    reason: str | None = None


class ReleaseRunner:
    """
    Executes the plugin list of a release config, phase by phase.

    Within a phase, steps run in plugin-list order. The runner itself finds the
    last release and the commits since then, and creates the git tag between
    the prepare and publish phases.
    """

    def __init__(self, config: ReleaseConfig, factory: StepFactory, ctx: Context) -> None:
        self.config = config
        self.factory = factory
        self.ctx = ctx
        self._git = GitBackend(runner=ctx.runner, logger=ctx.logger, cwd=ctx.repo_root)

    def build_steps(self) -> list[tuple[str, Step]]:
        steps: list[tuple[str, Step]] = []
        for i, invocation in enumerate(self.config.plugins, start=1):
            try:
                step = self.factory.from_invocation(invocation, self.ctx)
            except ValueError as e:
                raise ValueError(f"Invalid plugin {invocation.name} (index {i}): {e}") from e
            steps.append((invocation.name, step))
        return steps

    def _run_phase(self, phase: str, steps: list[tuple[str, Step]]) -> None:
        active = [(name, step) for name, step in steps if phase in step.phases]
        if not active:
            return
        logger = self.ctx.logger
        logger.info("%s", phase)
        for i, (name, step) in enumerate(active, start=1):
            msg = step.apply(phase, self.ctx)
            if i == len(active):
                logger.info("└─ %s: %s", name, msg)
            else:
                logger.info("├─ %s: %s", name, msg)

    def _discover_history(self) -> None:
        state = self.ctx.release
        tag_format = self.config.tag_format

        versions: list[Version] = []
        for tag in self._git.merged_tags():
            version = parse_tag(tag, tag_format)
            if version is not None:
                versions.append(version)
        state.tags = versions

        last = last_release(state.tags, prerelease=state.prerelease)
        state.last_release = last
        state.last_tag = format_tag(last, tag_format) if last is not None else None

        state.commits = [parse_commit(sha, msg) for sha, msg in self._git.log(state.last_tag)]
        self.ctx.logger.debug(
            "Last release: %s; %d commits since",
            state.last_tag or "(none)",
            len(state.commits),
        )

    def run(self) -> RunOutcome:
        logger = self.ctx.logger
        state = self.ctx.release
        options = self.ctx.options

        matcher = self.config.match_branch(state.branch)
        if matcher is None:
            configured = ", ".join(b.name for b in self.config.branches)
            logger.info("Branch %s is not a release branch (configured: %s).", state.branch, configured)
            return RunOutcome(released=False, reason="branch")

        state.prerelease = matcher.prerelease_id(state.branch)
        state.channel = state.prerelease
        steps = self.build_steps()

        self._run_phase("verify", steps)
        self._discover_history()
        self._run_phase("analyze", steps)

        if state.bump is None:
            logger.info("No relevant changes since %s; no release.", state.last_tag or "the first commit")
            return RunOutcome(released=False, reason="no-changes")

        state.next_version = next_version(state.tags, state.bump, prerelease=state.prerelease)
        state.git_tag = format_tag(state.next_version, self.config.tag_format)
        logger.info("Next release: %s (%s)", state.next_version, state.bump)

        for phase in ("generate_notes", "prepare"):
            self._run_phase(phase, steps)

        if options.dry_run:
            logger.info("Would create and push tag %s.", state.git_tag)
        else:
            self._git.tag(state.git_tag)
            self._git.push_tag(options.remote, state.git_tag)
            logger.info("Created tag %s.", state.git_tag)

        self._run_phase("publish", steps)
        return RunOutcome(released=True, version=str(state.next_version))

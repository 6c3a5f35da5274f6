# upgrade.py
# The end-to-end upgrade of one bridged provider, expressed as jobs.
#
#   Discovering Repository -> [Upgrading Forked Provider] -> Upgrading Provider
#
# Jobs are built one at a time, right before they run, so each can be shaped
# by what the previous ones found (repo kind, target version, fork commit).

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Iterator, List, Optional, Union

import semver

from .dsl import cmd, computed, job, step
from .git_facts import git
from .model import Job, Slot, Step, StepContext
from .process import CancelToken
from .repos import RepoCache
from .runner import run_jobs
from .settings import TRUSTED_FORK_ORG, Settings
from .topology import Topology, classify
from .ui.console import Console, get_console
from .versions import expected_target

REPO_PREFIX = "pulumi-"


def bare_name(repo: str) -> str:
    """pulumi-aws -> aws"""
    return repo[len(REPO_PREFIX):] if repo.startswith(REPO_PREFIX) else repo


def work_branch(name: str, target: semver.Version) -> str:
    return f"upgrade-terraform-provider-{name}-to-v{target}"


def upstream_branch(version: Union[str, semver.Version]) -> str:
    return f"upstream-v{version}"


class ProviderUpgrade:
    """
    Upgrade ``repo`` (e.g. ``pulumi-aws``) to the newest upstream release that
    has an open upgrade issue.

    Nothing is rolled back when a later job fails; commits and pushes that
    already happened are listed in ``completed_side_effects`` and every step
    is safe to re-run.
    """

    def __init__(
        self,
        repo: str,
        settings: Settings,
        *,
        cache: Optional[RepoCache] = None,
        console: Optional[Console] = None,
        cancel: Optional[CancelToken] = None,
    ):
        self.repo = repo
        self.name = bare_name(repo)
        self.settings = settings
        self.cache = cache or RepoCache(settings.cache_root, settings.org_remap)
        self.console = console or get_console()
        self.cancel = cancel or CancelToken()

        self.repo_path = Slot("repo path")
        self.provider_path = Slot("provider path")
        self.gomod_path = Slot("go.mod directory")
        self.upstream_path = Slot("upstream path")
        self.previous_upstream = Slot("previous upstream version")
        self.fork_revision = Slot("fork revision")
        self.target_sha = Slot("target sha")

        self.target: Optional[semver.Version] = None
        self.topology: Optional[Topology] = None
        self.completed_side_effects: List[str] = []

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    @property
    def branch_name(self) -> str:
        return work_branch(self.name, self.target)

    def _effect(self, s: Step, description: str) -> Step:
        """Record ``description`` once ``s`` has succeeded."""
        action = s.action

        def _run(ctx: StepContext) -> str:
            out = action(ctx)
            self.completed_side_effects.append(description)
            return out

        return replace(s, action=_run)

    def _commit(self, message: str) -> Step:
        """Commit what is staged; an already committed tree is left alone."""
        def _run(ctx: StepContext) -> str:
            sha = git.commit(ctx.cwd, message, cancel=ctx.cancel)
            if sha is None:
                return "nothing to commit"
            self.completed_side_effects.append(
                f"commit '{message}' ({sha[:12]}) on {self.branch_name} in {ctx.cwd}"
            )
            return sha

        return step(f"git commit -m {message}", _run, cwd=self.repo_path)

    # ------------------------------------------------------------------
    # Discovering Repository
    # ------------------------------------------------------------------

    def _ensure_provider_repo(self, ctx: StepContext) -> str:
        return self.cache.ensure(f"github.com/{self.settings.organization}/{self.repo}", cancel=ctx.cancel)

    def _pull_default(self, ctx: StepContext) -> str:
        return git.pull_default(ctx.cwd, self.settings.remote, cancel=ctx.cancel)

    def _resolve_target(self, ctx: StepContext) -> str:
        self.target = expected_target(
            self.repo,
            self.name,
            organization=self.settings.organization,
            author=self.settings.bot_author,
            limit=self.settings.issue_limit,
            cancel=ctx.cancel,
        )
        return str(self.target)

    def _classify(self, ctx: StepContext) -> str:
        self.topology = classify(self.repo_path.get(), self.name)
        return str(self.topology.kind)

    def discovery_job(self) -> Job:
        return job(
            "Discovering Repository",
            step("Ensure provider repo", self._ensure_provider_repo, assign_to=self.repo_path),
            step("Set default branch", self._pull_default, cwd=self.repo_path),
            step("Upgrade version", self._resolve_target),
            step("Repo kind", self._classify),
        )

    # ------------------------------------------------------------------
    # Upgrading Forked Provider
    # ------------------------------------------------------------------

    def fork_job(self) -> Job:
        fork = self.topology.fork
        remote = TRUSTED_FORK_ORG
        branch = upstream_branch(self.target)

        def ensure_upstream_repo(ctx: StepContext) -> str:
            return self.cache.ensure(fork.old.path, cancel=ctx.cancel)

        def ensure_fork_remote(ctx: StepContext) -> str:
            url = f"https://github.com/{TRUSTED_FORK_ORG}/terraform-provider-{self.name}.git"
            return git.ensure_remote(ctx.cwd, remote, url, cancel=ctx.cancel)

        def discover_previous(ctx: StepContext) -> str:
            return str(git.previous_upstream_version(ctx.cwd, remote, cancel=ctx.cancel))

        def upstream_branch_step(ctx: StepContext) -> str:
            return git.ensure_branch_checked_out(ctx.cwd, branch, cancel=ctx.cancel)

        upstream = self.upstream_path
        push = self._effect(
            cmd("git", "push", remote, branch, name="push upstream", cwd=upstream),
            f"pushed {branch} to {remote} from {fork.old.path}",
        )

        return job(
            "Upgrading Forked Provider",
            step("ensure upstream repo", ensure_upstream_repo, assign_to=upstream),
            step("ensure pulumi remote", ensure_fork_remote, cwd=upstream),
            cmd("git", "fetch", remote, cwd=upstream),
            step("discover previous upstream version", discover_previous, cwd=upstream,
                 assign_to=self.previous_upstream),
            computed(lambda: cmd(
                "git", "checkout", f"{remote}/{upstream_branch(self.previous_upstream.get())}",
                name="checkout upstream",
            ), name="checkout upstream", cwd=upstream),
            step("upstream branch", upstream_branch_step, cwd=upstream),
            cmd("git", "merge", f"v{self.target}", name="merge upstream branch", cwd=upstream),
            cmd("go", "build", ".", cwd=upstream),
            push,
            step("get head commit", lambda ctx: git.head_sha(ctx.cwd, cancel=ctx.cancel),
                 cwd=upstream, assign_to=self.fork_revision),
        )

    # ------------------------------------------------------------------
    # Upgrading Provider
    # ------------------------------------------------------------------

    def _go_get_upstream(self) -> Step:
        # a plain upstream is pinned by commit; a forked one by tag, then replaced
        ref = self.target_sha.value or f"v{self.target}"
        return cmd("go", "get", f"{self.topology.upstream.path}@{ref}")

    def _replace_with_fork(self) -> Step:
        fork = self.topology.fork
        return cmd(
            "go", "mod", "edit", "-replace",
            f"{fork.old.path}={fork.new.path}@{self.fork_revision.get()}",
        )

    def upgrade_job(self) -> Job:
        kind = self.topology.kind
        upstream = self.topology.upstream

        provider_path = Path(self.repo_path.get()) / "provider"
        self.provider_path.set(str(provider_path))
        # a shimmed provider takes its upstream in the shim module
        self.gomod_path.set(str(provider_path / "shim" if kind.is_shimmed else provider_path))

        def ensure_work_branch(ctx: StepContext) -> str:
            return git.ensure_branch_checked_out(ctx.cwd, self.branch_name, cancel=ctx.cancel)

        def lookup_tag_sha(ctx: StepContext) -> str:
            return git.tag_revision(f"https://{upstream.base_path}", f"v{self.target}", cancel=ctx.cancel)

        steps: List[Step] = [
            step("ensure branch", ensure_work_branch, cwd=self.repo_path),
            cmd("go", "get", "-u", self.settings.bridge_module, cwd=self.provider_path),
        ]
        if not kind.is_forked:
            # We don't control the upstream, so pin the commit its tag points at
            steps.append(step("Lookup Tag SHA", lookup_tag_sha, assign_to=self.target_sha))

        steps.append(computed(self._go_get_upstream, name="go get upstream", cwd=self.gomod_path))

        if kind.is_forked:
            steps.append(computed(self._replace_with_fork, name="replace with fork", cwd=self.gomod_path))

        if kind.is_shimmed:
            steps.append(cmd("go", "mod", "tidy", cwd=self.gomod_path))

        steps += [
            cmd("go", "mod", "tidy", cwd=self.provider_path),
            cmd("pulumi", "plugin", "rm", "--all", "--yes"),
            cmd("make", "tfgen", cwd=self.repo_path),
            cmd("git", "add", "--all", cwd=self.repo_path),
            self._commit("make tfgen"),
            cmd("make", "build_sdks", cwd=self.repo_path),
            cmd("git", "add", "--all", cwd=self.repo_path),
            self._commit("make build_sdks"),
            self._effect(
                cmd("git", "push", "--set-upstream", self.settings.remote, self.branch_name, cwd=self.repo_path),
                f"pushed {self.branch_name} to {self.settings.remote} from {self.repo_path.value}",
            ),
        ]
        return job("Upgrading Provider", steps_list=steps)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def jobs(self) -> Iterator[Job]:
        """Yield each job only after the previous one has run."""
        yield self.discovery_job()
        if self.topology.kind.is_forked:
            yield self.fork_job()
        yield self.upgrade_job()

    def run(self) -> None:
        """
        Raises:
            HandledError: a job failed and its failure was already printed.
        """
        run_jobs(self.jobs(), console=self.console, cancel=self.cancel)

# git.py
# Small, focused wrapper around the Git CLI.
# This module centralizes all Git interactions so the rest of the codebase
# never needs to build "git ..." command lines itself.
#
# Every query is split in two: the command, and a pure parser for its output.
# The parsers are what the tests exercise.

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional, TypeVar, Union

import semver

from ..errors import CommandError, UpgradeError
from ..process import CancelToken, query
from ..versions import max_version

T = TypeVar("T")

UPSTREAM_BRANCH_PREFIX = "upstream-v"


def _git(
    args: List[str],
    parse: Optional[Callable[[str], T]] = None,
    *,
    cwd: Union[str, Path, None] = None,
    cancel: Optional[CancelToken] = None,
) -> T:
    """
    Execute a git command and hand its stdout to ``parse``.

    This is the single low-level entry point for all Git operations in this
    file. Without a parser the stripped stdout is returned.
    """
    return query(["git", *args], parse or str.strip, cwd=cwd, cancel=cancel)


def say(message: str) -> Callable[[str], str]:
    """Parser that ignores the output and reports ``message`` instead."""
    return lambda _out: message


# ---------------------------------------------------------------------
# Output parsers
# ---------------------------------------------------------------------

def parse_lines(out: str) -> List[str]:
    return [line.strip() for line in out.splitlines() if line.strip()]


def parse_branches(out: str) -> List[str]:
    """Parse `git branch` output; the current branch is marked with '*'."""
    branches = []
    for line in parse_lines(out):
        if line.startswith(("* ", "+ ")):
            line = line[2:].strip()
        if line.startswith("(") or " -> " in line:
            # detached HEAD / symbolic refs such as origin/HEAD -> origin/main
            continue
        branches.append(line)
    return branches


def parse_ls_remote(out: str) -> List[tuple[str, str]]:
    """Parse `git ls-remote` output into (sha, ref) pairs."""
    refs = []
    for line in parse_lines(out):
        sha, sep, ref = line.partition("\t")
        if not sep:
            raise UpgradeError(f"expected git ls-remote to give '\\t' separated values, got {line!r}")
        refs.append((sha.strip(), ref.strip()))
    return refs


def parse_heads(out: str) -> List[str]:
    return [ref[len("refs/heads/"):] if ref.startswith("refs/heads/") else ref
            for _sha, ref in parse_ls_remote(out)]


def pick_default_branch(branches: List[str]) -> str:
    """Prefer 'main', fall back to 'master'."""
    if "main" in branches:
        return "main"
    if "master" in branches:
        return "master"
    raise UpgradeError(f"could not find 'main' or 'master' branch in {branches!r}")


def pick_tag_revision(refs: List[tuple[str, str]], tag: str) -> str:
    """
    Find the commit a tag points to.

    Annotated tags are listed twice by ls-remote; the peeled ``^{}`` entry is
    the commit, the plain one the tag object.
    """
    plain = f"refs/tags/{tag}"
    peeled = plain + "^{}"
    found: Optional[str] = None
    for sha, ref in refs:
        if ref == peeled:
            return sha
        if ref == plain:
            found = sha
    if found is None:
        raise UpgradeError(f"could not find SHA for tag '{tag}'")
    return found


def pick_previous_upstream(branches: List[str], remote: str) -> semver.Version:
    prefix = f"{remote}/{UPSTREAM_BRANCH_PREFIX}"
    version = max_version(b[len(prefix):] for b in branches if b.startswith(prefix))
    if version is None:
        raise UpgradeError(f"no '{prefix}*' branch found")
    return version


# ---------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------

def remotes(cwd, cancel: Optional[CancelToken] = None) -> List[str]:
    return _git(["remote"], parse_lines, cwd=cwd, cancel=cancel)


def local_branches(cwd, cancel: Optional[CancelToken] = None) -> List[str]:
    return _git(["branch"], parse_branches, cwd=cwd, cancel=cancel)


def remote_branches(cwd, pattern: str, cancel: Optional[CancelToken] = None) -> List[str]:
    return _git(["branch", "--remote", "--list", pattern], parse_branches, cwd=cwd, cancel=cancel)


def remote_heads(cwd, remote: str, cancel: Optional[CancelToken] = None) -> List[str]:
    return _git(["ls-remote", "--heads", remote], parse_heads, cwd=cwd, cancel=cancel)


def tag_revision(url: str, tag: str, cancel: Optional[CancelToken] = None) -> str:
    """Resolve ``tag`` on the repository at ``url`` to a commit SHA."""
    refs = _git(["ls-remote", "--tags", url], parse_ls_remote, cancel=cancel)
    return pick_tag_revision(refs, tag)


def previous_upstream_version(cwd, remote: str, cancel: Optional[CancelToken] = None) -> semver.Version:
    """Highest ``<remote>/upstream-v<version>`` branch: the last upstream we synced."""
    branches = remote_branches(cwd, f"{remote}/{UPSTREAM_BRANCH_PREFIX}*", cancel=cancel)
    return pick_previous_upstream(branches, remote)


def head_sha(cwd, cancel: Optional[CancelToken] = None) -> str:
    """Return the full SHA hash of the current HEAD commit."""
    return _git(["rev-parse", "HEAD"], cwd=cwd, cancel=cancel)


def is_repo(cwd, cancel: Optional[CancelToken] = None) -> None:
    """Raise unless ``cwd`` is inside a working git checkout."""
    _git(["status", "--short"], say(""), cwd=cwd, cancel=cancel)


# ---------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------

def pull_default(cwd, remote: str, cancel: Optional[CancelToken] = None) -> str:
    """Check out the remote's default branch and fast-forward it."""
    try:
        branches = remote_heads(cwd, remote, cancel=cancel)
    except CommandError as e:
        raise UpgradeError(f"gathering branches: {e}") from e
    target = pick_default_branch(branches)
    try:
        _git(["checkout", target], say(""), cwd=cwd, cancel=cancel)
    except CommandError as e:
        raise UpgradeError(f"checking out {target}: {e}") from e
    try:
        _git(["pull", remote], say(""), cwd=cwd, cancel=cancel)
    except CommandError as e:
        raise UpgradeError(f"fast-forwarding {target}: {e}") from e
    return target


def ensure_remote(cwd, name: str, url: str, cancel: Optional[CancelToken] = None) -> str:
    try:
        existing = remotes(cwd, cancel=cancel)
    except CommandError as e:
        raise UpgradeError(f"listing remotes: {e}") from e
    if name in existing:
        return f"'{name}' already exists"
    return _git(["remote", "add", name, url], say(f"set to '{name}'"), cwd=cwd, cancel=cancel)


def ensure_branch_checked_out(cwd, branch: str, cancel: Optional[CancelToken] = None) -> str:
    if branch not in local_branches(cwd, cancel=cancel):
        return _git(["checkout", "-b", branch], say(f"creating {branch}"), cwd=cwd, cancel=cancel)
    return _git(["checkout", branch], say(f"switching to {branch}"), cwd=cwd, cancel=cancel)


def is_clean(cwd, cancel: Optional[CancelToken] = None) -> bool:
    """True when the work tree and index have nothing to commit."""
    return _git(["status", "--porcelain"], lambda out: not out.strip(), cwd=cwd, cancel=cancel)


def commit(cwd, message: str, cancel: Optional[CancelToken] = None) -> Optional[str]:
    """
    Commit everything staged as ``message``.

    Returns the new HEAD, or None when there was nothing to commit (a re-run
    after the commit already happened).
    """
    if is_clean(cwd, cancel=cancel):
        return None
    _git(["commit", "-m", message], say(""), cwd=cwd, cancel=cancel)
    return head_sha(cwd, cancel=cancel)

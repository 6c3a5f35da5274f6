# topology.py
# Works out how a provider repository consumes its upstream Terraform
# provider, from nothing but its go.mod files.

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from .errors import ClassificationError, ManifestError
from .gomod import VERSION_SUFFIX, GoModFile, ModuleVersion, Replace, modpath_without_version, read_gomod
from .settings import TRUSTED_FORK_ORG


class RepoKind(enum.Enum):
    PLAIN = "plain"
    FORKED = "forked"
    SHIMMED = "shimmed"
    FORKED_AND_SHIMMED = "forked & shimmed"

    @property
    def is_forked(self) -> bool:
        return self in (RepoKind.FORKED, RepoKind.FORKED_AND_SHIMMED)

    @property
    def is_shimmed(self) -> bool:
        return self in (RepoKind.SHIMMED, RepoKind.FORKED_AND_SHIMMED)

    def with_shim(self) -> "RepoKind":
        if self is RepoKind.PLAIN:
            return RepoKind.SHIMMED
        if self is RepoKind.FORKED:
            return RepoKind.FORKED_AND_SHIMMED
        return self

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Topology:
    """
    Result of classifying a provider repository.

    ``fork`` is the replace directive that points the upstream module at a
    maintained fork; it is present exactly when ``kind.is_forked``.
    """
    kind: RepoKind
    upstream: ModuleVersion
    fork: Optional[Replace] = None

    def __post_init__(self) -> None:
        if (self.fork is not None) != self.kind.is_forked:
            raise ValueError(f"{self.kind} topology {'requires' if self.kind.is_forked else 'forbids'} a fork")


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def upstream_repo_name(name: str) -> str:
    return f"terraform-provider-{name}"


def find_upstream(mod: GoModFile, name: str) -> ModuleVersion:
    """
    Find the single required module that is the upstream provider.

    Raises:
        ClassificationError: no entry, or more than one, matches.
    """
    repo = upstream_repo_name(name)
    matches: List[ModuleVersion] = [
        req.mod for req in mod.require
        if modpath_without_version(req.mod.path).endswith(repo)
    ]
    if not matches:
        raise ClassificationError(f"{mod.filename}: could not find upstream '{repo}' in go.mod")
    if len(matches) > 1:
        found = ", ".join(m.path for m in matches)
        raise ClassificationError(f"{mod.filename}: ambiguous upstream '{repo}' in go.mod: {found}")
    return matches[0]


def fork_org(replacement_path: str, name: str) -> str:
    """
    Return the organization that hosts a fork of the upstream provider.

    The replacement path must look like ``<host>/<org>/terraform-provider-<name>``
    with an optional major-version suffix.

    Raises:
        ClassificationError: the path does not point at such a repository.
    """
    needle = "/" + upstream_repo_name(name)
    before, found, after = replacement_path.partition(needle)
    if not found or (after and not VERSION_SUFFIX.fullmatch(after)):
        raise ClassificationError(f"go.mod: replace has incorrect repo: '{replacement_path}'")
    return before.rsplit("/", 1)[-1]


def find_fork(mod: GoModFile, upstream: ModuleVersion, name: str) -> Optional[Replace]:
    for rep in mod.replace:
        # only replacements of our upstream are interesting
        if rep.old != upstream:
            continue
        org = fork_org(rep.new.path, name)
        if org != TRUSTED_FORK_ORG:
            raise ClassificationError(f"go.mod: tf fork maintained by '{org}': expected '{TRUSTED_FORK_ORG}'")
        return rep
    return None


def _shim_dir_exists(shim_dir: Path) -> bool:
    try:
        shim_dir.stat()
    except FileNotFoundError:
        return False
    except OSError as e:
        raise ClassificationError(f"unexpected error reading '{shim_dir}': {e}")
    return True


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

def classify(repo_path: Union[str, Path], name: str) -> Topology:
    """
    Classify the provider checkout at ``repo_path``.

    Args:
        repo_path: Root of the pulumi-<name> repository.
        name: Bare provider name (no ``pulumi-`` prefix), e.g. ``aws``.

    Raises:
        ManifestError: a go.mod could not be read or parsed.
        ClassificationError: the upstream or the fork is missing, ambiguous
            or untrusted.
    """
    provider_dir = Path(repo_path) / "provider"
    go_mod = read_gomod(provider_dir / "go.mod")

    shim_dir = provider_dir / "shim"
    shimmed = _shim_dir_exists(shim_dir)
    if shimmed:
        try:
            shim_mod = read_gomod(shim_dir / "go.mod")
        except ManifestError as e:
            raise ManifestError(f"shim/go.mod: {e.args[0]}") from e
        upstream = find_upstream(shim_mod, name)
    else:
        upstream = find_upstream(go_mod, name)

    # replace directives only take effect in the main module
    fork = find_fork(go_mod, upstream, name)

    kind = RepoKind.FORKED if fork is not None else RepoKind.PLAIN
    if shimmed:
        kind = kind.with_shim()

    return Topology(kind=kind, upstream=upstream, fork=fork)

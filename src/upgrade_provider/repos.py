# repos.py
from __future__ import annotations

from pathlib import Path
from typing import Mapping, Optional, Union

from .errors import CommandError, RepositoryError
from .git_facts import git
from .gomod import modpath_without_version
from .process import CancelToken, run_command

LEGACY_ORG = "terraform-providers"


class RepoCache:
    """
    Local checkouts of Go module repositories, laid out like GOPATH/src.

    ``github.com/pulumi/pulumi-aws`` lives at ``<root>/github.com/pulumi/pulumi-aws``.
    Existing directories are reused as-is; anything missing is cloned.
    """

    def __init__(self, root: Union[str, Path], org_remap: Optional[Mapping[str, str]] = None):
        self.root = Path(root)
        self.org_remap = dict(org_remap or {})

    def repo_path(self, module_path: str) -> str:
        """
        Normalise a module path to the repository that holds it.

        Strips the major-version suffix and moves providers that used to live
        under github.com/terraform-providers to their current organization.
        """
        path = modpath_without_version(module_path)
        prefix, found, repo = path.partition(f"/{LEGACY_ORG}/")
        if found:
            name = repo.split("/", 1)[0]
            if name.startswith("terraform-provider-"):
                name = name[len("terraform-provider-"):]
            org = self.org_remap.get(name)
            if org is None:
                raise RepositoryError(f"{LEGACY_ORG} based path: missing remap for '{name}'")
            path = f"{prefix}/{org}/{repo}"
        return path

    def location(self, module_path: str) -> Path:
        """Where the checkout for ``module_path`` lives (whether or not it exists)."""
        return self.root.joinpath(*self.repo_path(module_path).split("/"))

    def ensure(self, module_path: str, cancel: Optional[CancelToken] = None) -> str:
        """
        Return the checkout directory for ``module_path``, cloning it if needed.

        Raises:
            RepositoryError: the location exists but is not a directory, or
                the clone failed.
        """
        repo_path = self.repo_path(module_path)
        location = self.location(module_path)

        if location.exists():
            if not location.is_dir():
                raise RepositoryError(f"'{location}' not a directory")
            return str(location)

        location.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

        url = f"https://{repo_path}.git"
        try:
            run_command(["git", "clone", url, str(location)], cancel=cancel)
        except CommandError as e:
            raise RepositoryError(f"downloading {url}: {e}") from e

        # Check that we are in a git repo
        git.is_repo(location, cancel=cancel)
        return str(location)

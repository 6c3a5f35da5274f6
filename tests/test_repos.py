from __future__ import annotations

from pathlib import Path

import pytest

from upgrade_provider.errors import RepositoryError
from upgrade_provider.repos import RepoCache


def test_existing_checkout_is_reused(tmp_path: Path, fake_commands) -> None:
    existing = tmp_path / "github.com" / "pulumi" / "pulumi-foo"
    existing.mkdir(parents=True)

    cache = RepoCache(tmp_path)

    assert cache.ensure("github.com/pulumi/pulumi-foo") == str(existing)
    assert fake_commands.calls == []


def test_location_strips_major_version(tmp_path: Path) -> None:
    cache = RepoCache(tmp_path)
    assert cache.location("github.com/hashicorp/terraform-provider-foo/v4") == (
        tmp_path / "github.com" / "hashicorp" / "terraform-provider-foo"
    )


def test_non_directory_is_an_error(tmp_path: Path, fake_commands) -> None:
    target = tmp_path / "github.com" / "pulumi"
    target.mkdir(parents=True)
    (target / "pulumi-foo").write_text("not a repo", encoding="utf-8")

    with pytest.raises(RepositoryError, match="not a directory"):
        RepoCache(tmp_path).ensure("github.com/pulumi/pulumi-foo")


def test_missing_checkout_is_cloned(tmp_path: Path, fake_commands) -> None:
    cache = RepoCache(tmp_path)

    location = cache.ensure("github.com/hashicorp/terraform-provider-foo/v4")

    expected = tmp_path / "github.com" / "hashicorp" / "terraform-provider-foo"
    assert location == str(expected)
    assert expected.parent.is_dir()
    assert fake_commands.calls[0] == (
        ("git", "clone", "https://github.com/hashicorp/terraform-provider-foo.git", str(expected)),
        None,
    )
    assert fake_commands.calls[1] == (("git", "status", "--short"), str(expected))


def test_clone_failure_is_a_repository_error(tmp_path: Path, fake_commands) -> None:
    fake_commands.fail(["git", "clone"], exit_code=128)

    with pytest.raises(RepositoryError, match="downloading https://github.com/pulumi/pulumi-foo.git"):
        RepoCache(tmp_path).ensure("github.com/pulumi/pulumi-foo")


def test_terraform_providers_paths_are_remapped(tmp_path: Path) -> None:
    cache = RepoCache(tmp_path, org_remap={"foo": "hashicorp"})

    assert cache.repo_path("github.com/terraform-providers/terraform-provider-foo/v2") == (
        "github.com/hashicorp/terraform-provider-foo"
    )


def test_terraform_providers_path_without_remap(tmp_path: Path) -> None:
    with pytest.raises(RepositoryError, match="missing remap for 'bar'"):
        RepoCache(tmp_path).repo_path("github.com/terraform-providers/terraform-provider-bar")

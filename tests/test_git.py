from __future__ import annotations

import pytest

from upgrade_provider.errors import CommandError, UpgradeError
from upgrade_provider.git_facts import git


def test_parse_branches_strips_current_marker_and_symbolic_refs() -> None:
    out = "  main\n* upgrade-terraform-provider-foo-to-v1.3.0\n  origin/HEAD -> origin/main\n  (HEAD detached at v1.0.0)\n"
    assert git.parse_branches(out) == ["main", "upgrade-terraform-provider-foo-to-v1.3.0"]


def test_parse_heads() -> None:
    out = "aaa\trefs/heads/main\nbbb\trefs/heads/feature/x\n"
    assert git.parse_heads(out) == ["main", "feature/x"]


def test_parse_ls_remote_rejects_malformed_lines() -> None:
    with pytest.raises(UpgradeError):
        git.parse_ls_remote("no tab here\n")


@pytest.mark.parametrize(
    "branches, expected",
    [
        (["main", "master", "dev"], "main"),
        (["master", "dev"], "master"),
        (["dev", "main"], "main"),
    ],
)
def test_pick_default_branch(branches, expected) -> None:
    assert git.pick_default_branch(branches) == expected


def test_pick_default_branch_without_main_or_master() -> None:
    with pytest.raises(UpgradeError, match="could not find 'main' or 'master'"):
        git.pick_default_branch(["dev", "trunk"])


def test_pick_tag_revision_prefers_peeled_commit() -> None:
    refs = [
        ("tagobj", "refs/tags/v1.3.0"),
        ("commit", "refs/tags/v1.3.0^{}"),
        ("other", "refs/tags/v1.2.0"),
    ]
    assert git.pick_tag_revision(refs, "v1.3.0") == "commit"
    assert git.pick_tag_revision(refs, "v1.2.0") == "other"
    with pytest.raises(UpgradeError, match="could not find SHA for tag 'v9.9.9'"):
        git.pick_tag_revision(refs, "v9.9.9")


def test_pick_previous_upstream_takes_highest_semver() -> None:
    branches = [
        "pulumi/upstream-v1.9.0",
        "pulumi/upstream-v1.10.0",
        "pulumi/upstream-vgarbage",
        "origin/upstream-v9.0.0",
    ]
    assert str(git.pick_previous_upstream(branches, "pulumi")) == "1.10.0"


def test_pick_previous_upstream_without_candidates() -> None:
    with pytest.raises(UpgradeError, match="no 'pulumi/upstream-v\\*' branch found"):
        git.pick_previous_upstream(["pulumi/main"], "pulumi")


def test_pull_default_checks_out_and_pulls(fake_commands, tmp_path) -> None:
    fake_commands.respond(["git", "ls-remote", "--heads"], "a\trefs/heads/master\nb\trefs/heads/dev\n")

    assert git.pull_default(tmp_path, "origin") == "master"
    assert fake_commands.commands() == [
        ("git", "ls-remote", "--heads", "origin"),
        ("git", "checkout", "master"),
        ("git", "pull", "origin"),
    ]
    assert all(cwd == str(tmp_path) for _argv, cwd in fake_commands.calls)


def test_pull_default_wraps_checkout_failure(fake_commands, tmp_path) -> None:
    fake_commands.respond(["git", "ls-remote", "--heads"], "a\trefs/heads/main\n")
    fake_commands.fail(["git", "checkout"])

    with pytest.raises(UpgradeError, match="checking out main"):
        git.pull_default(tmp_path, "origin")


def test_ensure_remote_reuses_existing(fake_commands, tmp_path) -> None:
    fake_commands.respond(["git", "remote"], "origin\npulumi\n")

    assert git.ensure_remote(tmp_path, "pulumi", "https://x") == "'pulumi' already exists"
    assert fake_commands.commands() == [("git", "remote")]


def test_ensure_remote_adds_missing(fake_commands, tmp_path) -> None:
    fake_commands.respond(["git", "remote"], "origin\n")

    assert git.ensure_remote(tmp_path, "pulumi", "https://x") == "set to 'pulumi'"
    assert fake_commands.commands()[-1] == ("git", "remote", "add", "pulumi", "https://x")


@pytest.mark.parametrize(
    "existing, expected_cmd, message",
    [
        ("  main\n", ("git", "checkout", "-b", "work"), "creating work"),
        ("  main\n* work\n", ("git", "checkout", "work"), "switching to work"),
    ],
)
def test_ensure_branch_checked_out(fake_commands, tmp_path, existing, expected_cmd, message) -> None:
    fake_commands.respond(["git", "branch"], existing)

    assert git.ensure_branch_checked_out(tmp_path, "work") == message
    assert fake_commands.commands()[-1] == expected_cmd


def test_tag_revision_queries_remote(fake_commands) -> None:
    fake_commands.respond(["git", "ls-remote", "--tags"], "c0ffee\trefs/tags/v1.3.0\n")

    assert git.tag_revision("https://github.com/hashicorp/terraform-provider-foo", "v1.3.0") == "c0ffee"
    assert fake_commands.commands() == [
        ("git", "ls-remote", "--tags", "https://github.com/hashicorp/terraform-provider-foo"),
    ]


def test_previous_upstream_version_lists_remote_branches(fake_commands, tmp_path) -> None:
    fake_commands.respond(["git", "branch", "--remote"], "  pulumi/upstream-v1.2.0\n  pulumi/upstream-v1.1.0\n")

    assert str(git.previous_upstream_version(tmp_path, "pulumi")) == "1.2.0"
    assert fake_commands.commands() == [("git", "branch", "--remote", "--list", "pulumi/upstream-v*")]


def test_query_errors_propagate(fake_commands, tmp_path) -> None:
    fake_commands.fail(["git", "rev-parse"])
    with pytest.raises(CommandError):
        git.head_sha(tmp_path)


def test_commit_skips_clean_tree(fake_commands, tmp_path) -> None:
    fake_commands.respond(["git", "status", "--porcelain"], "\n")

    assert git.commit(tmp_path, "make tfgen") is None
    assert fake_commands.commands() == [("git", "status", "--porcelain")]


def test_commit_returns_new_head(fake_commands, tmp_path) -> None:
    fake_commands.respond(["git", "status", "--porcelain"], "A  sdk/python/setup.py\n")
    fake_commands.respond(["git", "rev-parse", "HEAD"], "abc123\n")

    assert git.commit(tmp_path, "make build_sdks") == "abc123"
    assert fake_commands.commands() == [
        ("git", "status", "--porcelain"),
        ("git", "commit", "-m", "make build_sdks"),
        ("git", "rev-parse", "HEAD"),
    ]

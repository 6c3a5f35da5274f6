# versions.py
from __future__ import annotations

import json
import re
from typing import Iterable, List, Optional

import semver

from .errors import NoUpgradeFound, UpgradeError
from .process import CancelToken, query
from .settings import DEFAULT_BOT, DEFAULT_ORG, ISSUE_LIMIT

_TITLE = re.compile(r"^Upgrade terraform-provider-(?P<name>\S+) to (?P<version>\S+)$")


def parse_version(text: str) -> Optional[semver.Version]:
    """
    Parse a semantic version the lenient way tags and titles are written.

    A leading ``v`` is accepted and missing minor/patch parts count as zero.
    Returns None when ``text`` is not a version.
    """
    text = text.strip()
    if text[:1] in ("v", "V"):
        text = text[1:]
    try:
        return semver.Version.parse(text, optional_minor_and_patch=True)
    except (ValueError, TypeError):
        return None


def max_version(candidates: Iterable[str]) -> Optional[semver.Version]:
    """Highest version among ``candidates``; entries that don't parse are ignored."""
    best: Optional[semver.Version] = None
    for candidate in candidates:
        version = parse_version(candidate)
        if version is None:
            continue
        if best is None or version > best:
            best = version
    return best


def latest_requested_version(titles: Iterable[str], name: str) -> semver.Version:
    """
    Pick the newest upgrade requested through issue titles.

    Only titles shaped ``Upgrade terraform-provider-<name> to <version>`` count.

    Raises:
        NoUpgradeFound: no title carries a usable version.
    """
    versions: List[str] = []
    for title in titles:
        match = _TITLE.match(title.strip())
        if match is None or match.group("name") != name:
            continue
        versions.append(match.group("version"))

    best = max_version(versions)
    if best is None:
        raise NoUpgradeFound()
    return best


def _issue_titles(out: str) -> List[str]:
    try:
        issues = json.loads(out or "[]")
    except ValueError as e:
        raise UpgradeError(f"unexpected output from 'gh issue list': {e}")
    return [issue.get("title", "") for issue in issues if isinstance(issue, dict)]


def expected_target(
    repo: str,
    name: str,
    *,
    organization: str = DEFAULT_ORG,
    author: str = DEFAULT_BOT,
    limit: int = ISSUE_LIMIT,
    cancel: Optional[CancelToken] = None,
) -> semver.Version:
    """
    Ask the issue tracker which upstream version we should upgrade to.

    Args:
        repo: Provider repository name, e.g. ``pulumi-aws``.
        name: Bare upstream name used in issue titles, e.g. ``aws``.
    """
    titles = query(
        [
            "gh", "issue", "list",
            "--state=open",
            f"--author={author}",
            f"--repo={organization}/{repo}",
            f"--limit={limit}",
            "--json=title",
        ],
        _issue_titles,
        cancel=cancel,
    )
    return latest_requested_version(titles, name)

"""
Changelog and contributor extraction from git history.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, List

from .error_handling import ReleaseToolError
from .git_accessor import GitAccessor
from .structured_logging import get_release_logger

_MERGE_PR = re.compile(r"^Merge pull request #([0-9]+)")


@dataclass
class Change:
    """One commit of a changelog."""

    commit: str
    description: str


@dataclass
class ProjectChange:
    """Changes of the project, or of a matched sub-project when ``name`` is set."""

    name: str = ""
    since: str = ""
    changes: List[Change] = field(default_factory=list)


@dataclass(frozen=True)
class Contributor:
    name: str
    email: str


def parse_changelog(raw: bytes) -> List[Change]:
    """Parse ``git log --oneline`` output."""
    changes = []
    for line in raw.decode("utf-8", errors="replace").splitlines():
        fields = line.split()
        if not fields:
            continue
        changes.append(Change(commit=fields[0], description=" ".join(fields[1:])))
    return changes


def get_changelog(git: GitAccessor, previous: str, commit: str) -> List[Change]:
    return parse_changelog(git.log_oneline(previous, commit))


LinkFunc = Callable[[Change], str]


def github_commit_link(git: GitAccessor, repo: str, gfm: bool = False) -> LinkFunc:
    """
    Link target for a change's commit.

    The abbreviated hash is expanded with ``rev-parse`` in the repository of
    ``git``. In GitHub Flavored Markdown mode the ``owner/repo@sha``
    autolink is returned instead of a URL.
    """

    def link(change: Change) -> str:
        full = git.rev_parse(change.commit)
        if gfm:
            return f"{repo}@{full}"
        return f"https://github.com/{repo}/commit/{full}"

    return link


def github_pr_link(repo: str, gfm: bool = False) -> LinkFunc:
    """Description with a leading ``Merge pull request #N`` linked to the PR."""

    def link(change: Change) -> str:
        def substitute(match: "re.Match") -> str:
            pr = match.group(1)
            if gfm:
                return f"Merge pull request {repo}#{pr}"
            return f"Merge pull request [#{pr}](https://github.com/{repo}/pull/{pr})"

        return _MERGE_PR.sub(substitute, change.description)

    return link


def linkify_changes(
    changes: List[Change], commit_link: LinkFunc, pr_link: LinkFunc, gfm: bool = False
) -> None:
    """Rewrite commits and descriptions of ``changes`` in place as markdown links."""
    for change in changes:
        target = commit_link(change)
        description = pr_link(change)

        if gfm:
            change.commit = target
        else:
            change.commit = f"[`{change.commit}`]({target})"
        change.description = description


def linkify_github(git: GitAccessor, changes: List[Change], repo: str, gfm: bool = False) -> None:
    linkify_changes(changes, github_commit_link(git, repo, gfm), github_pr_link(repo, gfm), gfm)


def add_contributors(git: GitAccessor, previous: str, commit: str, contributors: Counter) -> None:
    """
    Count commits per author in ``previous..commit``.

    Raises:
        ReleaseToolError: An author line has no name
    """
    raw = git.log_authors(previous, commit)

    for line in raw.decode("utf-8", errors="replace").splitlines():
        parts = line.split(" ", 1)
        if len(parts) != 2:
            raise ReleaseToolError(f"invalid author line: {line!r}")
        contributors[Contributor(name=parts[1], email=parts[0])] += 1


def order_contributors(contributors: Counter) -> List[str]:
    """Names by commit count, most active first, ties by name."""
    ordered = sorted(contributors.items(), key=lambda item: (-item[1], item[0].name))

    logger = get_release_logger()
    for contributor, count in ordered:
        logger.debug("contributor", author=contributor.name, email=contributor.email, commits=count)

    return [contributor.name for contributor, _ in ordered]


def get_previous_tag(git: GitAccessor, tag: str) -> str:
    """Most recently created tag sharing the part of ``tag`` before its first dash."""
    prefix = tag.split("-", 1)[0]
    tags = git.tags_by_creation(prefix + "*")
    if not tags:
        return ""
    return tags[-1]

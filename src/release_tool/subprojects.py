"""
Changelogs of sub-projects released together with the project.

Updated dependencies whose name matches the ``match_deps`` pattern are cloned
into the cache's ``git/`` directory, or a temporary one, and their history
between the previous and current ref is added to the release notes.
"""

import posixpath
import re
from collections import Counter
from pathlib import Path
from typing import List

from .changelog import ProjectChange, add_contributors, get_changelog, linkify_github
from .dependency import Dependency
from .error_handling import GitCommandError, ReleaseToolError
from .git_accessor import GitAccessor
from .structured_logging import get_release_logger

GITHUB_PREFIX = "github.com/"


def subproject_name(match: "re.Match", dep_name: str) -> str:
    """First capture group of the match, else the last path element."""
    if match.re.groups >= 1 and match.group(1):
        return match.group(1)
    return posixpath.basename(dep_name)


def checkout(git: GitAccessor, git_root: Path, name: str, dep: Dependency) -> GitAccessor:
    """
    Accessor for an up to date clone of ``dep`` under ``git_root``.

    An existing clone is fetched only when it lacks ``dep.ref``.
    """
    logger = get_release_logger()
    path = git_root / name

    if not path.exists():
        logger.debug("subproject_clone", subproject=name, git_url=dep.git_url)
        try:
            git.at(git_root).clone(dep.git_url, path)
        except GitCommandError as e:
            raise GitCommandError(f"failed to clone {dep.git_url}: {e}", e.output, e.returncode) from e
        return git.at(path)

    clone = git.at(path)
    if not clone.has_rev(dep.ref):
        logger.debug("subproject_fetch", subproject=name)
        try:
            clone.fetch("origin")
        except GitCommandError as e:
            raise GitCommandError(f"failed to fetch {name}: {e}", e.output, e.returncode) from e
    return clone


def subproject_changes(
    git: GitAccessor,
    git_root: Path,
    pattern: str,
    updated: List[Dependency],
    contributors: Counter,
    linkify: bool = False,
    gfm: bool = False,
) -> List[ProjectChange]:
    """
    Changes of matched sub-projects, in dependency order.

    Contributors of the sub-projects are added to ``contributors``.

    Raises:
        ReleaseToolError: ``pattern`` is not a valid regular expression
        GitCommandError: A clone, fetch or log fails
    """
    try:
        regex = re.compile(pattern)
    except re.error as e:
        raise ReleaseToolError(f"unable to compile 'match_deps' regexp: {e}") from e

    logger = get_release_logger()
    project_changes = []

    for dep in updated:
        match = regex.search(dep.name)
        if match is None:
            continue

        name = subproject_name(match, dep.name)
        logger.debug("subproject_matched", dependency=dep.name, subproject=name)

        if not dep.git_url:
            raise ReleaseToolError(f"no clone URL known for {dep.name}")

        clone = checkout(git, git_root, name, dep)

        try:
            changes = get_changelog(clone, dep.previous, dep.ref)
        except GitCommandError as e:
            raise GitCommandError(f"failed to get changelog for {name}: {e}", e.output, e.returncode) from e

        try:
            add_contributors(clone, dep.previous, dep.ref, contributors)
        except GitCommandError as e:
            raise GitCommandError(f"failed to get authors for {name}: {e}", e.output, e.returncode) from e

        if linkify:
            if dep.name.startswith(GITHUB_PREFIX):
                linkify_github(clone, changes, dep.name[len(GITHUB_PREFIX) :], gfm)
            else:
                logger.debug("linkify_skipped", dependency=dep.name)

        project_changes.append(ProjectChange(name=name, changes=changes))

    return project_changes

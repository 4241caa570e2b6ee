"""
Release descriptions and release assembly.

A release is described by a TOML file named after its tag. Loading it gives a
``Release`` whose generated fields (changes, contributors, dependencies) are
filled in by ``ReleaseBuilder`` from the git history of the project.
"""

import os
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

from .cache_manager import CacheLayout
from .changelog import (
    Change,
    ProjectChange,
    add_contributors,
    get_changelog,
    get_previous_tag,
    linkify_github,
    order_contributors,
)
from .dependency import Dependency, MakeDependency, ProjectRename
from .differ import get_updated_deps, rename_dependencies
from .error_handling import ReleaseFileError
from .git_accessor import GitAccessor
from .origin_resolver import OriginResolver
from .parsers import parse_dependencies
from .structured_logging import get_release_logger, log_release_complete, log_release_start
from .subprojects import subproject_changes


@dataclass
class Note:
    title: str = ""
    description: str = ""


@dataclass
class Download:
    filename: str
    hash: str


@dataclass
class Release:
    """Release description plus the fields generated for the notes."""

    project_name: str = ""
    github_repo: str = ""
    commit: str = ""
    previous: str = ""
    pre_release: bool = False
    preface: str = ""
    notes: Dict[str, Note] = field(default_factory=dict)
    breaking: Dict[str, Change] = field(default_factory=dict)
    release_date: str = ""

    match_deps: str = ""
    rename_deps: Dict[str, ProjectRename] = field(default_factory=dict)
    ignore_deps: List[str] = field(default_factory=list)
    make_deps: Dict[str, MakeDependency] = field(default_factory=dict)

    changes: List[ProjectChange] = field(default_factory=list)
    contributors: List[str] = field(default_factory=list)
    dependencies: List[Dependency] = field(default_factory=list)
    tag: str = ""
    version: str = ""
    downloads: List[Download] = field(default_factory=list)

    @property
    def breaking_changes(self) -> Dict[str, Change]:
        return self.breaking


def _table(data: Dict[str, Any], key: str) -> Dict[str, Dict[str, Any]]:
    value = data.get(key, {})
    if not isinstance(value, dict) or not all(isinstance(v, dict) for v in value.values()):
        raise ReleaseFileError(f"{key} must be a table of tables")
    return value


def release_from_dict(data: Dict[str, Any]) -> Release:
    """Build a ``Release`` from decoded TOML."""
    try:
        return Release(
            project_name=str(data.get("project_name", "")),
            github_repo=str(data.get("github_repo", "")),
            commit=str(data.get("commit", "")),
            previous=str(data.get("previous", "")),
            pre_release=bool(data.get("pre_release", False)),
            preface=str(data.get("preface", "")),
            notes={k: Note(**v) for k, v in _table(data, "notes").items()},
            breaking={k: Change(**v) for k, v in _table(data, "breaking").items()},
            release_date=str(data.get("release_date", "")),
            match_deps=str(data.get("match_deps", "")),
            rename_deps={k: ProjectRename(**v) for k, v in _table(data, "rename_deps").items()},
            ignore_deps=[str(name) for name in data.get("ignore_deps", [])],
            make_deps={k: MakeDependency(**v) for k, v in _table(data, "make_deps").items()},
        )
    except TypeError as e:
        raise ReleaseFileError(f"invalid release file: {e}") from e


def load_release(path: Optional[str]) -> Release:
    """
    Load a release description.

    Raises:
        ReleaseFileError: The file is missing or is not valid TOML
    """
    if not path or not os.path.exists(path):
        raise ReleaseFileError("please specify the release file as the first argument")

    try:
        with open(path, encoding="utf-8") as f:
            data = toml.load(f)
    except (OSError, toml.TomlDecodeError) as e:
        raise ReleaseFileError(f"unable to load {path}: {e}") from e

    return release_from_dict(data)


def parse_tag(path: str) -> str:
    """Tag named by a release file, its base name without ``.toml``."""
    name = os.path.basename(path)
    if name.endswith(".toml"):
        name = name[: -len(".toml")]
    return name


class ReleaseBuilder:
    """
    Fills the generated fields of a release from the project history.

    Args:
        git: Accessor for the project repository
        layout: Cache directories for remote lookups and sub-project clones
        linkify: Whether changelog entries become GitHub links
        gfm: Emit GitHub Flavored Markdown autolinks instead of URLs
        resolver: Remote resolver, created over the layout's cache when None
    """

    def __init__(
        self,
        git: GitAccessor,
        layout: CacheLayout,
        linkify: bool = False,
        gfm: bool = False,
        resolver: Optional[OriginResolver] = None,
    ):
        self.git = git
        self.layout = layout
        self.linkify = linkify
        self.gfm = gfm
        self.cache = layout.object_cache()
        self._owns_resolver = resolver is None
        self.resolver = resolver or OriginResolver(self.cache, git)
        self.logger = get_release_logger()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        if self._owns_resolver:
            self.resolver.close()
        self.layout.cleanup()

    def _changes(self, previous: str, commit: str, repo: str) -> List[Change]:
        changes = get_changelog(self.git, previous, commit)
        if self.linkify:
            linkify_github(self.git, changes, repo, self.gfm)
        return changes

    def updated_dependencies(self, release: Release) -> List[Dependency]:
        """Dependencies that changed since ``release.previous``."""
        make_deps = list(release.make_deps.values())
        current = parse_dependencies(self.git, release.commit, make_deps)
        previous = parse_dependencies(self.git, release.previous, make_deps)

        rename_dependencies(previous, release.rename_deps)

        return get_updated_deps(previous, current, release.ignore_deps, self.cache, self.resolver)

    def build(self, release: Release, tag: str) -> Release:
        """Populate ``release`` in place and return it."""
        log_release_start(tag, release.project_name, release.commit, release.previous)

        contributors: Counter = Counter()
        project_changes = [
            ProjectChange(changes=self._changes(release.previous, release.commit, release.github_repo))
        ]

        previous_tag = get_previous_tag(self.git, tag)
        if previous_tag and previous_tag not in (release.previous, tag):
            project_changes.append(
                ProjectChange(
                    since=previous_tag,
                    changes=self._changes(previous_tag, release.commit, release.github_repo),
                )
            )

        add_contributors(self.git, release.previous, release.commit, contributors)

        self.logger.info("changes_collected", changes=len(project_changes[0].changes))

        updated = self.updated_dependencies(release)

        if release.match_deps and updated:
            project_changes.extend(
                subproject_changes(
                    self.git,
                    self.layout.git_dir,
                    release.match_deps,
                    updated,
                    contributors,
                    linkify=self.linkify,
                    gfm=self.gfm,
                )
            )

        release.contributors = order_contributors(contributors)
        release.dependencies = updated
        release.changes = project_changes
        release.tag = tag
        release.version = tag.lstrip("v")

        if not release.release_date:
            release.release_date = datetime.now(timezone.utc).strftime("%Y-%m-%d")

        release.preface = release.preface.rstrip()

        log_release_complete(
            len(project_changes[0].changes), len(release.dependencies), len(release.contributors)
        )
        return release


def mailmap_configs(mailmap: str) -> Dict[str, str]:
    """Accessor options mapping authors through the mailmap of the working directory."""
    return {"mailmap.file": str(Path(mailmap).absolute())}

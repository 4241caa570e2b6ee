from dataclasses import dataclass
from typing import Dict, Iterable


@dataclass
class Dependency:
    """One external module at a specific revision of the project."""

    name: str
    ref: str
    sha: str = ""
    previous: str = ""
    git_url: str = ""


@dataclass(frozen=True)
class ProjectRename:
    """A module path change, applied to the previous snapshot before diffing."""

    old: str
    new: str


@dataclass(frozen=True)
class MakeDependency:
    """A dependency pinned through a Makefile variable."""

    variable: str
    repository: str


def to_dep_map(deps: Iterable[Dependency]) -> Dict[str, Dependency]:
    """Index dependencies by name; a later duplicate replaces an earlier one."""
    return {dep.name: dep for dep in deps}

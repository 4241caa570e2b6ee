"""
Dependency snapshot comparison.

Dependencies whose declared ref did not change are trusted to be unchanged
and never resolved. Only when refs differ are commits looked up remotely, so
that a ref alias of the same commit (a tag replacing a pseudo-version, for
instance) is not reported.
"""

from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional

from .cache_manager import Cache
from .dependency import Dependency, ProjectRename, to_dep_map
from .origin_resolver import OriginResolver
from .structured_logging import get_differ_logger


def rename_dependencies(deps: List[Dependency], renames: Mapping[str, ProjectRename]) -> None:
    """Rewrite old module paths to their new names in place."""
    if not renames:
        return

    logger = get_differ_logger()
    rename_map = {rename.old: (shortname, rename.new) for shortname, rename in renames.items()}

    for dep in deps:
        if dep.name in rename_map:
            shortname, new_name = rename_map[dep.name]
            logger.debug("dependency_renamed", shortname=shortname, old_name=dep.name, new_name=new_name)
            dep.name = new_name


def get_updated_deps(
    previous: Iterable[Dependency],
    current: Iterable[Dependency],
    ignored: Iterable[str],
    cache: Cache,
    resolver: Optional[OriginResolver] = None,
) -> List[Dependency]:
    """
    Compute the dependencies that changed between two snapshots.

    New dependencies are returned as they are. Dependencies with a different
    ref are resolved to commits and returned with ``previous`` set to the old
    ref, unless both resolve to the same commit. Ignored names are never
    returned.

    Args:
        previous: Snapshot of the previous release, renames already applied
        current: Snapshot of the release being prepared
        ignored: Dependency names to leave out
        cache: Memo store for remote lookups
        resolver: Remote resolver, one over ``cache`` is created when None

    Returns:
        Updated dependencies sorted by name

    Raises:
        ResolutionError: A remote ref lookup returned no usable line
    """
    logger = get_differ_logger()
    owns_resolver = resolver is None
    if resolver is None:
        resolver = OriginResolver(cache)

    previous_map: Dict[str, Dependency] = {
        name: replace(dep) for name, dep in to_dep_map(previous).items()
    }
    current_map = {name: replace(dep) for name, dep in to_dep_map(current).items()}
    ignore_set = set(ignored)
    updated = []

    try:
        for name, c in current_map.items():
            if name in ignore_set:
                continue

            d = previous_map.get(name)
            if d is None:
                logger.debug("dependency_added", dependency=name, ref=c.ref)
                updated.append(c)
                continue

            if d.ref == c.ref:
                continue

            resolver.fill(d)
            if not c.git_url:
                c.git_url = d.git_url
            resolver.fill(c)

            if d.sha and c.sha and d.sha == c.sha:
                logger.debug("dependency_ref_alias", dependency=name, previous=d.ref, ref=c.ref, sha=c.sha)
                continue

            logger.debug(
                "dependency_updated",
                dependency=name,
                previous=d.ref,
                previous_sha=d.sha,
                ref=c.ref,
                sha=c.sha,
            )
            c.previous = d.ref
            updated.append(c)
    finally:
        if owns_resolver:
            resolver.close()

    return sorted(updated, key=lambda dep: dep.name)

"""
Dependency manifest parsers.

Three manifest formats are supported, tried in this order at a revision:

* ``vendor.conf``: legacy list of ``name commit-or-version [clone-url]``
* ``vendor/modules.txt``: module list written by ``go mod vendor``
* ``go.mod``: module declaration with ``require`` and ``replace`` sections

Each parser turns raw bytes into a list of ``Dependency`` records. Dependencies
pinned through Makefile variables are extracted by evaluating the variable
with ``make``.
"""

import os
import re
import tempfile
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .dependency import Dependency, MakeDependency
from .error_handling import GitCommandError, ManifestFormatError, ManifestNotFoundError
from .git_accessor import GitAccessor, run_make
from .origin_resolver import known_git_url
from .structured_logging import get_parser_logger
from .versions import FULL_SHA_PATTERN, dash_fields, get_commit_or_version, truncate_sha

VENDOR_CONF = "vendor.conf"
MODULES_TXT = "vendor/modules.txt"
GO_MOD = "go.mod"
MAKEFILE = "Makefile"

_GO_MOD_TOKEN = re.compile(r'"(?:[^"\\]|\\.)*"|`[^`]*`|\S+')


def format_dependency(name: str, commit_or_version: str, is_sha: bool) -> Dependency:
    """Build a dependency record, filling the clone URL from the static rules."""
    return Dependency(
        name=name,
        ref=commit_or_version,
        sha=commit_or_version if is_sha else "",
        git_url=known_git_url(name),
    )


def sanitize_line(line: str, comment_delim: str = "#") -> str:
    """Strip whitespace and a trailing comment; whole line comments become empty."""
    ln = line.strip()
    idx = ln.find(comment_delim)
    if idx == 0:
        return ""
    if idx > 0:
        ln = ln[:idx]
    return ln.strip()


def _decode(content: bytes) -> str:
    return content.decode("utf-8", errors="replace")


def parse_vendor_conf(content: bytes) -> List[Dependency]:
    """
    Parse a legacy ``vendor.conf``.

    A token made of exactly 40 hex characters is a commit and is shortened to
    12 characters; any other token is kept as the ref.

    Raises:
        ManifestFormatError: A line does not hold two or three fields
    """
    deps = []

    for raw in _decode(content).splitlines():
        ln = sanitize_line(raw)
        if not ln:
            continue

        parts = ln.split()
        if len(parts) not in (2, 3):
            raise ManifestFormatError(f"invalid config format: {ln}")

        name, commit_or_version = parts[0], parts[1]
        git_url = parts[2] if len(parts) == 3 else known_git_url(name)

        sha = ""
        if FULL_SHA_PATTERN.fullmatch(commit_or_version):
            commit_or_version = truncate_sha(commit_or_version)
            sha = commit_or_version

        deps.append(Dependency(name=name, ref=commit_or_version, sha=sha, git_url=git_url))

    return deps


def parse_modules_txt(content: bytes) -> List[Dependency]:
    """
    Parse ``vendor/modules.txt``.

    Module entries start with a single ``#``. A replaced module is listed as
    ``# old oldver => new newver`` and is recorded under the new path.
    Replacements without a target version carry no information beyond the
    plain entry and are skipped.

    Raises:
        ManifestFormatError: An entry has an unexpected shape or version
    """
    deps = []

    for raw in _decode(content).splitlines():
        ln = raw.strip()
        if not ln:
            continue

        parts = ln.split()
        if parts[0] != "#":
            continue

        if len(parts) == 3:
            name, version = parts[1], parts[2]
        elif len(parts) == 5 and "=>" in (parts[2], parts[3]):
            continue
        elif len(parts) == 6 and parts[3] == "=>":
            name, version = parts[4], parts[5]
        else:
            raise ManifestFormatError(f"unknown file format: {ln}")

        commit_or_version, is_sha = get_commit_or_version(version)
        if not commit_or_version:
            raise ManifestFormatError(f"poorly formatted version {version!r} in {ln}")

        deps.append(format_dependency(name, commit_or_version, is_sha))

    return deps


def _go_mod_tokens(line: str) -> List[str]:
    idx = line.find("//")
    if idx >= 0:
        line = line[:idx]
    return [_unquote(token) for token in _GO_MOD_TOKEN.findall(line)]


def _unquote(token: str) -> str:
    if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"`":
        return token[1:-1]
    return token


def is_local_path(path: str) -> bool:
    """Whether a replacement target is a directory rather than a module."""
    return path in (".", "..") or path.startswith(("./", "../", "/", ".\\", "..\\"))


@dataclass
class _Replace:
    old: str
    new: str
    version: str
    line: str


def _parse_require(tokens: Sequence[str], line: str) -> Tuple[str, str]:
    if len(tokens) != 2:
        raise ManifestFormatError(f"usage: require module/path v1.2.3: {line}")
    return tokens[0], tokens[1]


def _parse_replace(tokens: Sequence[str], line: str) -> _Replace:
    if "=>" not in tokens:
        raise ManifestFormatError(f"usage: replace module/path [v1.2.3] => other/module v1.4: {line}")

    arrow = tokens.index("=>")
    left, right = tokens[:arrow], tokens[arrow + 1 :]
    if len(left) not in (1, 2) or len(right) not in (1, 2):
        raise ManifestFormatError(f"usage: replace module/path [v1.2.3] => other/module v1.4: {line}")

    version = right[1] if len(right) == 2 else ""
    return _Replace(old=left[0], new=right[0], version=version, line=line)


def parse_go_mod(content: bytes) -> List[Dependency]:
    """
    Parse a ``go.mod`` file.

    Every ``require`` entry becomes a dependency. A ``replace`` entry is keyed
    by its target module path and overrides the ref, sha and clone URL of the
    required module with that path. Replacements by local directories are
    ignored and replacements whose target is not required are dropped.

    Raises:
        ManifestFormatError: A directive or version cannot be parsed
    """
    logger = get_parser_logger()
    dep_map: Dict[str, Dependency] = {}
    replaces: List[_Replace] = []
    block: Optional[str] = None

    for raw in _decode(content).splitlines():
        line = raw.strip()
        tokens = _go_mod_tokens(line)
        if not tokens:
            continue

        if block is not None:
            if tokens == [")"]:
                block = None
                continue
            entry = tokens
            verb = block
        else:
            verb, entry = tokens[0], tokens[1:]
            if entry == ["("]:
                block = verb
                continue

        if verb == "require":
            path, version = _parse_require(entry, line)
            commit_or_version, is_sha = get_commit_or_version(version)
            if not commit_or_version:
                raise ManifestFormatError(f"poorly formatted version in require section: {line}")
            dep_map[path] = format_dependency(path, commit_or_version, is_sha)
        elif verb == "replace":
            replaces.append(_parse_replace(entry, line))

    replace_map: Dict[str, Dependency] = {}
    for replace in replaces:
        if is_local_path(replace.new):
            continue

        commit_or_version, is_sha = get_commit_or_version(replace.version)
        if not commit_or_version:
            raise ManifestFormatError(f"poorly formatted version in replace section: {replace.line}")

        replace_map[replace.new] = format_dependency(replace.new, commit_or_version, is_sha)

    for name, replacement in replace_map.items():
        dep = dep_map.get(name)
        if dep is None:
            logger.debug("replace_without_require", dependency=name)
            continue

        dep.ref = replacement.ref
        dep.sha = replacement.sha
        dep.git_url = replacement.git_url

    return list(dep_map.values())


@dataclass(frozen=True)
class ManifestFormat:
    """A manifest location and the parser for its contents."""

    path: str
    parse: Callable[[bytes], List[Dependency]]


MANIFEST_FORMATS = (
    ManifestFormat(VENDOR_CONF, parse_vendor_conf),
    ManifestFormat(MODULES_TXT, parse_modules_txt),
    ManifestFormat(GO_MOD, parse_go_mod),
)


def parse_manifest_dependencies(git: GitAccessor, commit: str) -> List[Dependency]:
    """
    Parse the first manifest found at ``commit``.

    Raises:
        ManifestNotFoundError: None of the supported manifests exists
        ManifestFormatError: The manifest found cannot be parsed
    """
    last_error: Optional[GitCommandError] = None

    for manifest in MANIFEST_FORMATS:
        try:
            content = git.file_from_rev(commit, manifest.path)
        except GitCommandError as e:
            last_error = e
            continue

        get_parser_logger().debug("manifest_found", commit=commit, manifest=manifest.path)
        return manifest.parse(content)

    raise ManifestNotFoundError(f"finding dependency file failed at {commit}: {last_error}")


def make_dependency_from_value(make_dep: MakeDependency, value: str) -> Dependency:
    """
    Interpret the evaluated value of a Makefile version variable.

    ``git describe`` style values (``v1.0-3-gabcdef0``) pin a commit, the
    last field without its ``g`` prefix.
    """
    value = value.strip().split(":")[-1]
    fields = dash_fields(value)

    if len(fields) in (1, 2):
        return format_dependency(make_dep.repository, value, False)
    if len(fields) in (3, 4):
        dep = format_dependency(make_dep.repository, truncate_sha(fields[-1][1:]), True)
        dep.ref = value
        return dep

    raise ManifestFormatError(f"unparseable version for {make_dep.variable}: {value}")


def parse_make_dependencies(
    git: GitAccessor, commit: str, make_deps: Sequence[MakeDependency]
) -> List[Dependency]:
    """
    Extract dependencies pinned by Makefile variables at ``commit``.

    Raises:
        GitCommandError: The Makefile is missing or ``make`` fails
        ManifestFormatError: A variable holds an unparseable version
    """
    if not make_deps:
        return []

    try:
        makefile = git.file_from_rev(commit, MAKEFILE)
    except GitCommandError as e:
        raise GitCommandError(f"error finding Makefile: {e}", e.output, e.returncode) from e

    fd, tmp_name = tempfile.mkstemp(prefix="Makefile")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(makefile)

        deps = []
        for make_dep in make_deps:
            try:
                out = run_make(f"--eval=pp:\n\t@echo $({make_dep.variable})\n", "-f", tmp_name, "pp")
            except GitCommandError as e:
                raise GitCommandError(
                    f"evaluating {make_dep.variable}: {e}", e.output, e.returncode
                ) from e
            deps.append(make_dependency_from_value(make_dep, _decode(out)))
    finally:
        os.unlink(tmp_name)

    get_parser_logger().debug("make_dependencies", count=len(deps))
    return deps


def parse_dependencies(
    git: GitAccessor, commit: str, make_deps: Sequence[MakeDependency] = ()
) -> List[Dependency]:
    """Manifest dependencies at ``commit`` followed by Makefile pinned ones."""
    deps = parse_manifest_dependencies(git, commit)
    deps.extend(parse_make_dependencies(git, commit, make_deps))
    return deps

"""
Shared fixtures for release-tool tests.
"""

import fnmatch
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from release_tool import error_handling
from release_tool.cli_config import reset_config
from release_tool.error_handling import GitCommandError


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Run every test in an empty directory without user configuration."""
    for key in list(os.environ):
        if key.startswith("RELEASE_TOOL_"):
            monkeypatch.delenv(key)

    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))

    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)

    reset_config()
    monkeypatch.setattr(error_handling, "_global_error_handler", None)
    yield workdir
    reset_config()

    for name in ("release_tool", "release_tool.errors"):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)


@pytest.fixture
def temp_dir(tmp_path):
    directory = tmp_path / "data"
    directory.mkdir()
    return directory


def ls_remote_output(*entries: Tuple[str, str]) -> bytes:
    return "".join(f"{sha}\t{ref}\n" for sha, ref in entries).encode()


class FakeGit:
    """
    In-memory stand-in for ``GitAccessor``.

    Args:
        files: ``(rev, path)`` to file contents
        remotes: ``(git_url, ref)`` to ``ls-remote`` output
        logs: ``(previous, commit)`` to ``log --oneline`` output
        authors: ``(previous, commit)`` to author log output
        tags: Tags in creation order
        full_shas: Abbreviated to full commit hashes
    """

    def __init__(
        self,
        files: Optional[Dict[Tuple[str, str], bytes]] = None,
        remotes: Optional[Dict[Tuple[str, str], bytes]] = None,
        logs: Optional[Dict[Tuple[str, str], bytes]] = None,
        authors: Optional[Dict[Tuple[str, str], bytes]] = None,
        tags: Optional[List[str]] = None,
        full_shas: Optional[Dict[str, str]] = None,
        revs: Optional[List[str]] = None,
    ):
        self.files = files or {}
        self.remotes = remotes or {}
        self.logs = logs or {}
        self.authors = authors or {}
        self.tags = tags or []
        self.full_shas = full_shas or {}
        self.revs = set(revs or [])
        self.cwd: Optional[Path] = None
        self.ls_remote_calls: List[Tuple[str, ...]] = []
        self.tag_patterns: List[str] = []
        self.clones: List[Tuple[str, Path]] = []
        self.fetches: List[Optional[Path]] = []

    def at(self, cwd: Path) -> "FakeGit":
        self.cwd = cwd
        return self

    def file_from_rev(self, rev: str, path: str) -> bytes:
        try:
            return self.files[(rev, path)]
        except KeyError:
            raise GitCommandError(
                f"fatal: path '{path}' does not exist in '{rev}'", returncode=128
            ) from None

    def ls_remote(self, git_url: str, *refs: str) -> bytes:
        self.ls_remote_calls.append((git_url, *refs))
        try:
            return self.remotes[(git_url, refs[0])]
        except KeyError:
            raise GitCommandError("fatal: could not read from remote repository", returncode=128) from None

    def log_oneline(self, previous: str, commit: str) -> bytes:
        return self.logs.get((previous, commit), b"")

    def log_authors(self, previous: str, commit: str) -> bytes:
        return self.authors.get((previous, commit), b"")

    def tags_by_creation(self, pattern: str) -> List[str]:
        self.tag_patterns.append(pattern)
        return [tag for tag in self.tags if fnmatch.fnmatch(tag, pattern)]

    def rev_parse(self, rev: str) -> str:
        return self.full_shas[rev]

    def has_rev(self, rev: str) -> bool:
        return rev in self.revs

    def clone(self, git_url: str, destination: Path) -> None:
        self.clones.append((git_url, destination))
        Path(destination).mkdir(parents=True)

    def fetch(self, remote: str = "origin") -> None:
        self.fetches.append(self.cwd)


@pytest.fixture
def fake_git():
    return FakeGit()

"""
Memo store for remote resolution results.

Remote lookups (vanity import path fetches, ``git ls-remote``) are keyed by
the query that produced them. ``NilCache`` keeps nothing and makes every call
hit the network; ``DirCache`` persists payloads under a directory, one file
per key, named by the SHA-256 of the key. Entries never expire.
"""

import hashlib
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional, Tuple

from .error_handling import ErrorCategory, get_error_handler
from .structured_logging import get_cache_logger


class CacheStats:
    """Cache performance statistics."""

    def __init__(self):
        self.hits = 0
        self.misses = 0
        self.writes = 0
        self.write_errors = 0
        self._lock = Lock()

    def record_hit(self) -> None:
        with self._lock:
            self.hits += 1

    def record_miss(self) -> None:
        with self._lock:
            self.misses += 1

    def record_write(self) -> None:
        with self._lock:
            self.writes += 1

    def record_write_error(self) -> None:
        with self._lock:
            self.write_errors += 1

    def get_stats(self) -> Dict[str, Any]:
        """Get a snapshot of the counters including the hit rate."""
        with self._lock:
            total = self.hits + self.misses
            return {
                "hits": self.hits,
                "misses": self.misses,
                "writes": self.writes,
                "write_errors": self.write_errors,
                "total_requests": total,
                "hit_rate_percent": (self.hits / total) * 100.0 if total else 0.0,
            }

    def reset(self) -> None:
        with self._lock:
            self.hits = 0
            self.misses = 0
            self.writes = 0
            self.write_errors = 0


class Cache(ABC):
    """Key/value memo store for remote lookups."""

    def __init__(self):
        self.stats = CacheStats()

    @abstractmethod
    def get(self, key: str) -> Tuple[Optional[bytes], bool]:
        """Return ``(value, found)`` for ``key``."""

    @abstractmethod
    def put(self, key: str, value: bytes) -> None:
        """Store ``value`` under ``key``; raises ``OSError`` on write failure."""

    def get_stats(self) -> Dict[str, Any]:
        return self.stats.get_stats()


class NilCache(Cache):
    """Cache that never remembers anything."""

    def get(self, key: str) -> Tuple[Optional[bytes], bool]:
        self.stats.record_miss()
        return None, False

    def put(self, key: str, value: bytes) -> None:
        return None


class DirCache(Cache):
    """
    Disk-backed cache rooted at ``directory``.

    Args:
        directory: Existing directory that holds one file per entry
    """

    def __init__(self, directory: Path):
        super().__init__()
        self.directory = Path(directory)
        self.logger = get_cache_logger()

    @staticmethod
    def key_hash(key: str) -> str:
        """Stable file name for a cache key."""
        return hashlib.sha256(key.encode("utf-8")).hexdigest()

    def _path(self, key: str) -> Path:
        return self.directory / self.key_hash(key)

    def get(self, key: str) -> Tuple[Optional[bytes], bool]:
        """Unreadable entries count as misses."""
        try:
            value = self._path(key).read_bytes()
        except FileNotFoundError:
            self.stats.record_miss()
            self.logger.debug("cache_miss", cache_key=key)
            return None, False
        except OSError as e:
            self.stats.record_miss()
            get_error_handler().warning(
                ErrorCategory.CACHE,
                f"unreadable cache entry: {e}",
                "cache_manager",
                "get",
                details={"cache_key": key},
                exception=e,
            )
            return None, False

        self.stats.record_hit()
        self.logger.debug("cache_hit", cache_key=key)
        return value, True

    def put(self, key: str, value: bytes) -> None:
        path = self._path(key)
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-")
            with os.fdopen(fd, "wb") as f:
                f.write(value)
            os.replace(tmp_name, path)
        except OSError:
            self.stats.record_write_error()
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        self.stats.record_write()

    def entries(self) -> int:
        """Number of stored entries."""
        return sum(1 for p in self.directory.iterdir() if p.is_file() and not p.name.startswith(".tmp-"))

    def size_bytes(self) -> int:
        return sum(p.stat().st_size for p in self.directory.iterdir() if p.is_file())

    def clear(self) -> int:
        """Remove every entry and return how many were removed."""
        removed = 0
        for path in self.directory.iterdir():
            if path.is_file():
                path.unlink()
                removed += 1
        self.stats.reset()
        return removed


def safe_put(cache: Cache, key: str, value: bytes) -> None:
    """Store a value, ignoring write failures."""
    try:
        cache.put(key, value)
    except OSError as e:
        get_error_handler().warning(
            ErrorCategory.CACHE,
            f"cache write failed: {e}",
            "cache_manager",
            "safe_put",
            details={"cache_key": key},
            exception=e,
        )


class CacheLayout:
    """
    Directory layout of the tool cache.

    ``object/`` holds remote resolution entries and ``git/`` holds sub-project
    clones. Without a configured root, clones go to a temporary directory that
    is removed by ``cleanup``.
    """

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root) if root else None
        self._tmp_git_dir: Optional[Path] = None

        if self.root is not None:
            if not self.root.is_dir():
                raise FileNotFoundError(f"cache directory does not exist: {self.root}")
            self.object_dir.mkdir(exist_ok=True)
            self.git_dir.mkdir(exist_ok=True)

    @property
    def object_dir(self) -> Path:
        return self.root / "object"

    @property
    def git_dir(self) -> Path:
        if self.root is not None:
            return self.root / "git"
        if self._tmp_git_dir is None:
            self._tmp_git_dir = Path(tempfile.mkdtemp(prefix="release-tool-"))
        return self._tmp_git_dir

    def object_cache(self) -> Cache:
        if self.root is None:
            return NilCache()
        return DirCache(self.object_dir)

    def cleanup(self) -> None:
        if self._tmp_git_dir is not None:
            shutil.rmtree(self._tmp_git_dir, ignore_errors=True)
            self._tmp_git_dir = None


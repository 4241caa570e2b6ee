"""
Read-only access to a local git checkout.

All queries go through ``GitAccessor._run`` which applies the configured
``-c key=value`` options, the command deadline and uniform error wrapping.
"""

import subprocess
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from .cli_config import get_config
from .error_handling import GitCommandError


def change_range(previous: str, commit: str) -> str:
    """Revision range for log queries; the whole history when previous is empty."""
    if previous:
        return f"{previous}..{commit}"
    return commit


class GitAccessor:
    """
    Executes git queries against one repository.

    Args:
        cwd: Repository directory, the current directory when None
        configs: Options passed as ``-c key=value`` to every invocation
        executable: git executable, from config when None
        timeout: Deadline in seconds for each invocation, from config when None
    """

    def __init__(
        self,
        cwd: Optional[Path] = None,
        configs: Optional[Mapping[str, str]] = None,
        executable: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        config = get_config()
        self.cwd = Path(cwd) if cwd is not None else None
        self.configs: Dict[str, str] = dict(configs or {})
        self.executable = executable or config.git.executable
        self.timeout = timeout or config.git.timeout_seconds

    def at(self, cwd: Path) -> "GitAccessor":
        """Accessor for another repository sharing options and deadline."""
        return GitAccessor(cwd, self.configs, self.executable, self.timeout)

    def _command(self, args: List[str]) -> List[str]:
        command = [self.executable]
        for key, value in self.configs.items():
            command.extend(["-c", f"{key}={value}"])
        command.extend(args)
        return command

    def _run(self, *args: str) -> bytes:
        command = self._command(list(args))
        try:
            result = subprocess.run(
                command,
                cwd=self.cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise GitCommandError(f"cannot run {self.executable}: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise GitCommandError(
                f"{self.executable} {' '.join(args)} timed out after {self.timeout}s"
            ) from e

        if result.returncode != 0:
            output = result.stdout.decode("utf-8", errors="replace")
            raise GitCommandError(
                f"{self.executable} {' '.join(args)} exited with status {result.returncode}: {output.strip()}",
                output=output,
                returncode=result.returncode,
            )

        return result.stdout

    def run(self, *args: str) -> bytes:
        """Run an arbitrary git command and return its combined output."""
        return self._run(*args)

    def file_from_rev(self, rev: str, path: str) -> bytes:
        """Contents of ``path`` at revision ``rev``."""
        return self._run("show", f"{rev}:{path}")

    def log_oneline(self, previous: str, commit: str) -> bytes:
        return self._run("log", "--oneline", change_range(previous, commit))

    def log_authors(self, previous: str, commit: str) -> bytes:
        """One ``<email> <name>`` line per commit in the range."""
        return self._run("log", "--format=%aE %aN", change_range(previous, commit))

    def tags_by_creation(self, pattern: str) -> List[str]:
        out = self._run("tag", "-l", "--sort=creatordate", pattern)
        return [line for line in out.decode("utf-8").splitlines() if line.strip()]

    def rev_parse(self, rev: str) -> str:
        return self._run("rev-parse", rev).decode("utf-8").strip()

    def ls_remote(self, git_url: str, *refs: str) -> bytes:
        return self._run("ls-remote", git_url, *refs)

    def has_rev(self, rev: str) -> bool:
        try:
            self._run("show", rev)
        except GitCommandError:
            return False
        return True

    def clone(self, git_url: str, destination: Path) -> None:
        """Clone into ``destination``, outside of the project repository."""
        self._run("clone", git_url, str(destination))

    def fetch(self, remote: str = "origin") -> None:
        self._run("fetch", remote)


def run_make(*args: str, cwd: Optional[Path] = None, timeout: Optional[float] = None) -> bytes:
    """Run make and return its combined output."""
    config = get_config()
    executable = config.git.make_executable
    try:
        result = subprocess.run(
            [executable, *args],
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            timeout=timeout or config.git.timeout_seconds,
            check=False,
        )
    except FileNotFoundError as e:
        raise GitCommandError(f"cannot run {executable}: {e}") from e
    except subprocess.TimeoutExpired as e:
        raise GitCommandError(f"{executable} timed out") from e

    if result.returncode != 0:
        output = result.stdout.decode("utf-8", errors="replace")
        raise GitCommandError(
            f"{executable} exited with status {result.returncode}: {output.strip()}",
            output=output,
            returncode=result.returncode,
        )

    return result.stdout

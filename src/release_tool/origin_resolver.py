"""
Clone URL and remote commit resolution for dependencies.

Well known hosts are mapped to clone URLs with static rules. Other module
paths are resolved through the ``go-import`` meta tag served at
``https://<module>?go-get=1``. Remote commits are looked up with
``git ls-remote``. Both kinds of lookup are memoized in a ``Cache``.
"""

from html.parser import HTMLParser
from typing import Optional

import httpx

from .cache_manager import Cache, NilCache, safe_put
from .cli_config import get_config
from .dependency import Dependency
from .error_handling import GitCommandError, ResolutionError, log_git_error, log_network_error
from .git_accessor import GitAccessor
from .structured_logging import get_resolver_logger
from .versions import truncate_sha

PEELED_SUFFIX = "^{}"


def known_git_url(name: str) -> str:
    """
    Clone URL for module paths on well known hosts.

    Returns:
        The clone URL, or an empty string when the path has to be resolved
        over HTTP.
    """
    host, sep, rest = name.partition("/")
    if not sep or not host or not rest:
        return ""

    segments = rest.split("/")

    if host == "github.com":
        if len(segments) < 2:
            return ""
        return "https://github.com/" + "/".join(segments[:2])
    if host == "k8s.io":
        return "https://github.com/kubernetes/" + segments[0]
    if host == "sigs.k8s.io":
        return "https://github.com/kubernetes-sigs/" + segments[0]
    if host == "golang.org" and segments[0] == "x" and len(segments) > 1:
        return "https://go.googlesource.com/" + segments[1]
    if host == "gopkg.in":
        # gopkg.in/pkg.v3 -> go-pkg/pkg, gopkg.in/user/pkg.v3 -> user/pkg
        if len(segments) == 1:
            pkg = segments[0].split(".v", 1)[0]
            return f"https://github.com/go-{pkg}/{pkg}"
        pkg = segments[1].split(".v", 1)[0]
        return f"https://github.com/{segments[0]}/{pkg}"

    return ""


class GoImportParser(HTMLParser):
    """Collects the clone URL of the first usable ``go-import`` meta tag."""

    def __init__(self):
        super().__init__()
        self.repo_url: Optional[str] = None

    def handle_starttag(self, tag, attrs):
        if tag != "meta" or self.repo_url is not None:
            return
        attrs_dict = dict(attrs)
        if attrs_dict.get("name") != "go-import":
            return

        parts = (attrs_dict.get("content") or "").split()
        if len(parts) == 3 and parts[1] == "git":
            self.repo_url = parts[2]


def parse_go_import(markup: str) -> Optional[str]:
    """Clone URL declared by a go-get page, None when it declares no git origin."""
    parser = GoImportParser()
    parser.feed(markup)
    parser.close()
    return parser.repo_url


def go_get_url(name: str) -> str:
    return f"https://{name}?go-get=1"


def ls_remote_key(git_url: str, ref: str) -> str:
    """Cache key of a remote commit lookup, the query that produces it."""
    return f"git ls-remote {git_url} {ref} {ref}{PEELED_SUFFIX}"


def parse_ls_remote(output: bytes) -> str:
    """
    Pick the commit of a ``ls-remote <ref> <ref>^{}`` response.

    The peeled entry of an annotated tag wins over the tag object itself.

    Raises:
        ResolutionError: The response holds no ``<sha> <ref>`` line
    """
    sha = ""
    peeled = False

    for line in output.decode("utf-8", errors="replace").splitlines():
        fields = line.split()
        if len(fields) != 2:
            continue

        if fields[1].endswith(PEELED_SUFFIX):
            peeled = True
        elif peeled:
            continue

        sha = truncate_sha(fields[0])

    if not sha:
        raise ResolutionError("revision not found")

    return sha


class OriginResolver:
    """
    Resolves clone URLs and remote commits of dependencies.

    Use as a context manager so the HTTP client is closed when done.

    Args:
        cache: Memo store for lookups, a ``NilCache`` when None
        git: Accessor used for ``ls-remote``
        client: HTTP client, created from the network config when None
    """

    def __init__(
        self,
        cache: Optional[Cache] = None,
        git: Optional[GitAccessor] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.cache = cache if cache is not None else NilCache()
        self.git = git or GitAccessor()
        self._client = client
        self._owns_client = client is None
        self.logger = get_resolver_logger()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            network = get_config().network
            self._client = httpx.Client(
                timeout=httpx.Timeout(network.read_timeout, connect=network.connect_timeout),
                headers={"User-Agent": network.user_agent},
                follow_redirects=network.follow_redirects,
            )
        return self._client

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def resolve_git_url(self, name: str) -> str:
        """
        Clone URL of a module path.

        Failures are recorded and yield an empty string.
        """
        static = known_git_url(name)
        if static:
            return static

        url = go_get_url(name)
        cached, found = self.cache.get(url)
        if found:
            return cached.decode("utf-8")

        try:
            response = self.client.get(url)
        except httpx.HTTPError as e:
            log_network_error(
                f"go-get lookup failed for {name}",
                "origin_resolver",
                "resolve_git_url",
                url=url,
                exception=e,
            )
            return ""

        if response.status_code >= 400:
            log_network_error(
                f"unexpected status code {response.status_code} for {url}",
                "origin_resolver",
                "resolve_git_url",
                url=url,
                status_code=response.status_code,
            )
            safe_put(self.cache, url, b"")
            return ""

        resolved = parse_go_import(response.text)
        if resolved is None:
            log_network_error(
                f"no go-import meta tag for {name}",
                "origin_resolver",
                "resolve_git_url",
                url=url,
            )
            safe_put(self.cache, url, b"")
            return ""

        self.logger.debug("git_url_resolved", dependency=name, git_url=resolved)
        safe_put(self.cache, url, resolved.encode("utf-8"))
        return resolved

    def get_sha(self, git_url: str, ref: str) -> str:
        """
        Commit a remote ref points to, truncated to 12 characters.

        A failing ``ls-remote`` yields an empty string.

        Raises:
            ResolutionError: ``ls-remote`` answered without any usable line
        """
        key = ls_remote_key(git_url, ref)
        cached, found = self.cache.get(key)
        if found:
            return cached.decode("utf-8")

        try:
            output = self.git.ls_remote(git_url, ref, ref + PEELED_SUFFIX)
        except GitCommandError as e:
            log_git_error(
                "not using sha",
                "origin_resolver",
                "get_sha",
                git_url=git_url,
                ref=ref,
                exception=e,
            )
            return ""

        try:
            sha = parse_ls_remote(output)
        except ResolutionError as e:
            raise ResolutionError(f"{e}: {ref} in {git_url}") from e

        safe_put(self.cache, key, sha.encode("utf-8"))
        return sha

    def fill(self, dep: Dependency) -> None:
        """Resolve a missing sha of ``dep`` in place, resolving its clone URL first."""
        if dep.sha:
            return
        if not dep.git_url:
            dep.git_url = self.resolve_git_url(dep.name)
        if not dep.git_url:
            return
        dep.sha = self.get_sha(dep.git_url, dep.ref)

"""
Dependency snapshot diff tests.
"""

import httpx
from conftest import FakeGit, ls_remote_output

from release_tool.cache_manager import DirCache, NilCache
from release_tool.dependency import Dependency, ProjectRename
from release_tool.differ import get_updated_deps, rename_dependencies
from release_tool.origin_resolver import OriginResolver
from release_tool.parsers import parse_go_mod

URL = "https://github.com/foo/a"
SHA_A = "a" * 40
SHA_B = "b" * 40


def dep(name, ref, sha="", git_url=None):
    if git_url is None:
        git_url = "https://" + name if name.startswith("github.com/") else ""
    return Dependency(name=name, ref=ref, sha=sha, git_url=git_url)


def resolver_for(git, cache=None, handler=None):
    def refuse(request):
        raise AssertionError(f"unexpected HTTP request to {request.url}")

    client = httpx.Client(transport=httpx.MockTransport(handler or refuse))
    return OriginResolver(cache or NilCache(), git, client=client)


class TestGetUpdatedDeps:
    def test_equal_refs_are_not_resolved(self):
        git = FakeGit()
        previous = [dep("github.com/foo/a", "v1")]
        current = [dep("github.com/foo/a", "v1")]

        updated = get_updated_deps(previous, current, [], NilCache(), resolver_for(git))

        assert updated == []
        assert git.ls_remote_calls == []

    def test_new_dependency(self):
        updated = get_updated_deps(
            [], [dep("github.com/foo/a", "v1")], [], NilCache(), resolver_for(FakeGit())
        )

        assert len(updated) == 1
        assert updated[0].name == "github.com/foo/a"
        assert updated[0].previous == ""

    def test_ref_alias_of_same_commit_is_not_emitted(self):
        git = FakeGit(remotes={(URL, "v2"): ls_remote_output((SHA_A, "refs/tags/v2"))})
        previous = [dep("github.com/foo/a", "v1", sha="aaaaaaaaaaaa")]
        current = [dep("github.com/foo/a", "v2")]

        updated = get_updated_deps(previous, current, [], NilCache(), resolver_for(git))

        assert updated == []
        assert git.ls_remote_calls == [(URL, "v2", "v2^{}")]

    def test_different_commit_is_emitted_with_previous_ref(self):
        git = FakeGit(remotes={(URL, "v2"): ls_remote_output((SHA_B, "refs/tags/v2"))})
        previous = [dep("github.com/foo/a", "v1", sha="aaaaaaaaaaaa")]
        current = [dep("github.com/foo/a", "v2")]

        updated = get_updated_deps(previous, current, [], NilCache(), resolver_for(git))

        assert len(updated) == 1
        assert updated[0].previous == "v1"
        assert updated[0].ref == "v2"
        assert updated[0].sha == "bbbbbbbbbbbb"

    def test_both_sides_resolved_when_missing(self):
        git = FakeGit(
            remotes={
                (URL, "v1"): ls_remote_output((SHA_A, "refs/tags/v1")),
                (URL, "v2"): ls_remote_output((SHA_B, "refs/tags/v2")),
            }
        )

        updated = get_updated_deps(
            [dep("github.com/foo/a", "v1")],
            [dep("github.com/foo/a", "v2")],
            [],
            NilCache(),
            resolver_for(git),
        )

        assert [d.previous for d in updated] == ["v1"]
        assert len(git.ls_remote_calls) == 2

    def test_unresolvable_commit_is_reported_on_ref_change(self):
        git = FakeGit()

        updated = get_updated_deps(
            [dep("github.com/foo/a", "v1")],
            [dep("github.com/foo/a", "v2")],
            [],
            NilCache(),
            resolver_for(git),
        )

        assert len(updated) == 1
        assert updated[0].sha == ""
        assert updated[0].previous == "v1"

    def test_ignored_dependencies(self):
        git = FakeGit(remotes={(URL, "v2"): ls_remote_output((SHA_B, "refs/tags/v2"))})
        previous = [dep("github.com/foo/a", "v1", sha="aaaaaaaaaaaa")]
        current = [dep("github.com/foo/a", "v2"), dep("github.com/foo/new", "v1")]

        updated = get_updated_deps(
            previous, current, ["github.com/foo/a", "github.com/foo/new"], NilCache(), resolver_for(git)
        )

        assert updated == []
        assert git.ls_remote_calls == []

    def test_result_is_sorted_by_name(self):
        current = [dep("github.com/z/z", "v1"), dep("github.com/a/a", "v1"), dep("github.com/m/m", "v1")]

        updated = get_updated_deps([], current, [], NilCache(), resolver_for(FakeGit()))

        assert [d.name for d in updated] == ["github.com/a/a", "github.com/m/m", "github.com/z/z"]

    def test_inputs_are_not_mutated(self):
        git = FakeGit(remotes={(URL, "v2"): ls_remote_output((SHA_B, "refs/tags/v2"))})
        previous = [dep("github.com/foo/a", "v1", sha="aaaaaaaaaaaa")]
        current = [dep("github.com/foo/a", "v2")]

        get_updated_deps(previous, current, [], NilCache(), resolver_for(git))

        assert current[0].sha == ""
        assert current[0].previous == ""

    def test_vanity_origin_is_shared_with_current(self):
        page = '<meta name="go-import" content="example.com/mod git https://git.example.com/mod">'
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, text=page)

        git = FakeGit(
            remotes={
                ("https://git.example.com/mod", "v1"): ls_remote_output((SHA_A, "refs/tags/v1")),
                ("https://git.example.com/mod", "v2"): ls_remote_output((SHA_B, "refs/tags/v2")),
            }
        )

        updated = get_updated_deps(
            [dep("example.com/mod", "v1")],
            [dep("example.com/mod", "v2")],
            [],
            NilCache(),
            resolver_for(git, handler=handler),
        )

        assert updated[0].git_url == "https://git.example.com/mod"
        assert len(requests) == 1

    def test_disk_cache_avoids_repeated_queries(self, temp_dir):
        git = FakeGit(
            remotes={
                (URL, "v1"): ls_remote_output((SHA_A, "refs/tags/v1")),
                (URL, "v2"): ls_remote_output((SHA_B, "refs/tags/v2")),
            }
        )
        cache = DirCache(temp_dir)

        for _ in range(2):
            get_updated_deps(
                [dep("github.com/foo/a", "v1")],
                [dep("github.com/foo/a", "v2")],
                [],
                cache,
                resolver_for(git, cache),
            )

        assert len(git.ls_remote_calls) == 2

    def test_fork_replace_is_not_resolved_against_upstream(self):
        previous = parse_go_mod(b"require example.com/vanity v1.0.0\n")
        current = parse_go_mod(
            b"require example.com/vanity v1.0.0\n"
            b"replace example.com/vanity => example.org/fork/vanity v1.1.1\n"
        )
        git = FakeGit()

        updated = get_updated_deps(previous, current, [], NilCache(), resolver_for(git))

        assert updated == []
        assert git.ls_remote_calls == []


class TestRenameDependencies:
    def test_renamed_dependency_is_matched(self):
        previous = [dep("github.com/old/path", "v1")]
        current = [dep("github.com/new/path", "v1")]

        rename_dependencies(previous, {"path": ProjectRename(old="github.com/old/path", new="github.com/new/path")})
        updated = get_updated_deps(previous, current, [], NilCache(), resolver_for(FakeGit()))

        assert previous[0].name == "github.com/new/path"
        assert updated == []

    def test_without_rename_dependency_is_new(self):
        previous = [dep("github.com/old/path", "v1")]
        current = [dep("github.com/new/path", "v1")]

        updated = get_updated_deps(previous, current, [], NilCache(), resolver_for(FakeGit()))

        assert [d.name for d in updated] == ["github.com/new/path"]

    def test_no_renames(self):
        deps = [dep("github.com/old/path", "v1")]
        rename_dependencies(deps, {})
        assert deps[0].name == "github.com/old/path"

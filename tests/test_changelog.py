"""
Changelog, linkify, contributor and previous tag tests.
"""

from collections import Counter

import pytest
from conftest import FakeGit

from release_tool.changelog import (
    Change,
    Contributor,
    add_contributors,
    get_changelog,
    get_previous_tag,
    github_commit_link,
    github_pr_link,
    linkify_changes,
    linkify_github,
    order_contributors,
    parse_changelog,
)
from release_tool.error_handling import ReleaseToolError

LOG = b"""\
abc1234 Fix race in shim cleanup
def5678 Merge pull request #12 from someone/branch
0a1b2c3 Revert "Merge pull request #11 from x/y"
"""

FULL = {
    "abc1234": "abc1234" + "0" * 33,
    "def5678": "def5678" + "0" * 33,
    "0a1b2c3": "0a1b2c3" + "0" * 33,
}


class TestParseChangelog:
    def test_parse(self):
        changes = parse_changelog(LOG)

        assert changes[0] == Change(commit="abc1234", description="Fix race in shim cleanup")
        assert changes[1].description == "Merge pull request #12 from someone/branch"
        assert len(changes) == 3

    def test_blank_lines_are_skipped(self):
        assert parse_changelog(b"\nabc1234 Fix\n\n") == [Change(commit="abc1234", description="Fix")]

    def test_get_changelog_uses_range(self):
        git = FakeGit(logs={("v1.0.0", "HEAD"): LOG})
        assert len(get_changelog(git, "v1.0.0", "HEAD")) == 3


class TestLinkify:
    def test_markdown_links(self):
        git = FakeGit(full_shas=FULL)
        changes = parse_changelog(LOG)

        linkify_github(git, changes, "containerd/containerd")

        assert changes[0].commit == (
            f"[`abc1234`](https://github.com/containerd/containerd/commit/{FULL['abc1234']})"
        )
        assert changes[1].description == (
            "Merge pull request [#12](https://github.com/containerd/containerd/pull/12) from someone/branch"
        )

    def test_only_leading_merge_is_linked(self):
        git = FakeGit(full_shas=FULL)
        changes = parse_changelog(LOG)

        linkify_github(git, changes, "containerd/containerd")

        assert changes[2].description == 'Revert "Merge pull request #11 from x/y"'

    def test_github_flavored_markdown(self):
        git = FakeGit(full_shas=FULL)
        changes = parse_changelog(LOG)

        linkify_github(git, changes, "containerd/containerd", gfm=True)

        assert changes[0].commit == f"containerd/containerd@{FULL['abc1234']}"
        assert changes[1].description == "Merge pull request containerd/containerd#12 from someone/branch"

    def test_custom_link_functions(self):
        changes = [Change(commit="abc", description="desc")]

        linkify_changes(changes, lambda c: "https://example.com/" + c.commit, lambda c: c.description.upper())

        assert changes[0] == Change(commit="[`abc`](https://example.com/abc)", description="DESC")

    def test_commit_link_expands_hash(self):
        git = FakeGit(full_shas=FULL)
        link = github_commit_link(git, "org/repo")
        assert link(Change(commit="abc1234", description="")) == f"https://github.com/org/repo/commit/{FULL['abc1234']}"

    def test_pr_link_without_merge(self):
        link = github_pr_link("org/repo")
        assert link(Change(commit="abc", description="Add feature #3")) == "Add feature #3"


class TestContributors:
    def test_add_contributors_counts_commits(self):
        git = FakeGit(
            authors={
                ("v1.0.0", "HEAD"): (
                    b"jane@example.com Jane Doe\n"
                    b"jane@example.com Jane Doe\n"
                    b"bob@example.com Bob\n"
                )
            }
        )
        contributors = Counter()

        add_contributors(git, "v1.0.0", "HEAD", contributors)

        assert contributors[Contributor(name="Jane Doe", email="jane@example.com")] == 2
        assert contributors[Contributor(name="Bob", email="bob@example.com")] == 1

    def test_invalid_author_line(self):
        git = FakeGit(authors={("a", "b"): b"nobody\n"})
        with pytest.raises(ReleaseToolError, match="invalid author line"):
            add_contributors(git, "a", "b", Counter())

    def test_order_by_count_then_name(self):
        contributors = Counter(
            {
                Contributor("Carol", "c@example.com"): 1,
                Contributor("Alice", "a@example.com"): 3,
                Contributor("Bob", "b@example.com"): 1,
                Contributor("Dave", "d@example.com"): 3,
            }
        )

        assert order_contributors(contributors) == ["Alice", "Dave", "Bob", "Carol"]

    def test_same_name_different_email_counted_separately(self):
        contributors = Counter(
            {
                Contributor("Alice", "a@example.com"): 1,
                Contributor("Alice", "alice@example.org"): 1,
            }
        )
        assert order_contributors(contributors) == ["Alice", "Alice"]


class TestPreviousTag:
    def test_last_created_tag_with_prefix(self):
        git = FakeGit(tags=["v1.1.0", "v1.2.0-beta.0", "v1.2.0-rc.0", "v2.0.0"])

        assert get_previous_tag(git, "v1.2.0-rc.1") == "v1.2.0-rc.0"
        assert git.tag_patterns == ["v1.2.0*"]

    def test_no_tags(self):
        assert get_previous_tag(FakeGit(), "v1.0.0") == ""

"""
Tests for Git repository access.
"""

import pytest

from ai_changelog.git_ops.models import FileStatus
from ai_changelog.git_ops.repository import (
    GitRepository,
    GitRepositoryError,
    count_diff_lines,
    remote_web_url,
)
from tests.conftest import _git


@pytest.fixture
def repo(tmp_git_repo):
    return GitRepository(tmp_git_repo)


class TestCommits:

    def test_newest_first(self, repo):
        commits = repo.get_commits()

        assert [c.subject for c in commits] == [
            "docs: add readme",
            "fix: handle missing query",
            "feat(api): add user listing endpoint",
        ]
        assert commits[1].body == "Closes #12"
        assert commits[0].author == "Dev Example"
        assert len(commits[0].full_hash) == 40

    def test_max_count(self, repo):
        assert len(repo.get_commits(max_count=1)) == 1

    def test_since_tag_becomes_range(self, repo, tmp_git_repo):
        _git(tmp_git_repo, "tag", "v0.1.0", "HEAD~1")

        commits = repo.get_commits(since="v0.1.0")

        assert [c.subject for c in commits] == ["docs: add readme"]

    def test_explicit_range(self, repo):
        commits = repo.get_commits(rev_range="HEAD~2..HEAD~1")
        assert [c.subject for c in commits] == ["fix: handle missing query"]

    def test_author_filter(self, repo):
        assert repo.get_commits(author="nobody@example.org") == []

    def test_bad_range(self, repo):
        with pytest.raises(GitRepositoryError):
            repo.get_commits(rev_range="missing-branch..HEAD")

    def test_get_commit(self, repo):
        assert repo.get_commit("HEAD~2").subject == "feat(api): add user listing endpoint"

    def test_unknown_commit(self, repo):
        with pytest.raises(GitRepositoryError, match="Unknown revision"):
            repo.get_commit("does-not-exist")

    def test_empty_repository(self, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        _git(empty, "init", "-q")

        repo = GitRepository(empty)

        assert not repo.has_commits
        assert repo.get_commits() == []

    def test_not_a_repository(self, tmp_path):
        plain = tmp_path / "plain"
        plain.mkdir()

        with pytest.raises(GitRepositoryError, match="Not a Git repository"):
            GitRepository(plain)


class TestCommitChanges:

    def test_root_commit_adds_file(self, repo):
        root = repo.get_commit("HEAD~2")

        changes = repo.get_commit_changes(root)

        assert len(changes) == 1
        change = changes[0]
        assert change.path == "src/api/users.js"
        assert change.status == FileStatus.ADDED
        assert "+function listUsers(req, res) {" in change.diff
        assert change.lines_added == 5
        assert change.lines_removed == 0

    def test_modified_file_patch(self, repo):
        fix = repo.get_commit("HEAD~1")

        changes = repo.get_commit_changes(fix)

        assert [c.status for c in changes] == [FileStatus.MODIFIED]
        assert "+  if (!req.query) {" in changes[0].diff
        assert changes[0].lines_removed >= 1

    def test_stats(self, repo):
        stats = repo.get_commit_stats(repo.get_commit("HEAD"))

        assert stats.files == 1
        assert stats.insertions == 3
        assert stats.deletions == 0


class TestWorkingDirectory:

    def test_clean_tree(self, repo):
        assert repo.get_working_directory_changes() == []

    def test_detects_changes(self, repo, tmp_git_repo):
        (tmp_git_repo / "README.md").write_text("# Demo\n\nA bigger demo project.\n")
        (tmp_git_repo / "notes").mkdir()
        (tmp_git_repo / "notes" / "todo.txt").write_text("first\n")
        (tmp_git_repo / "src" / "api" / "users.js").unlink()

        changes = {c.path: c for c in repo.get_working_directory_changes()}

        assert changes["README.md"].status == FileStatus.MODIFIED
        assert "+A bigger demo project." in changes["README.md"].diff
        assert changes["README.md"].lines_added == 1

        assert changes["notes/todo.txt"].status == FileStatus.UNTRACKED
        assert changes["notes/todo.txt"].diff.startswith("New file created with 2 lines")
        assert "Content preview:\nfirst" in changes["notes/todo.txt"].diff

        assert changes["src/api/users.js"].status == FileStatus.DELETED
        assert changes["src/api/users.js"].diff.startswith("File deleted (")

    def test_preview_is_truncated(self, repo, tmp_git_repo):
        (tmp_git_repo / "big.txt").write_text("\n".join(f"line {i}" for i in range(80)))

        change = repo.get_working_directory_changes(preview_lines=10)[0]

        assert change.diff.endswith("line 9\n... (truncated)")


class TestRemoteLinks:

    @pytest.mark.parametrize("remote, expected", [
        ("git@github.com:acme/demo.git", "https://github.com/acme/demo"),
        ("https://gitlab.com/group/sub/repo.git", "https://gitlab.com/group/sub/repo"),
        ("https://github.com/acme/demo", "https://github.com/acme/demo"),
        ("not a remote", None),
        (None, None),
    ])
    def test_remote_web_url(self, remote, expected):
        assert remote_web_url(remote) == expected

    def test_templates_from_origin(self, repo, tmp_git_repo):
        _git(tmp_git_repo, "remote", "add", "origin", "git@github.com:acme/demo.git")

        assert repo.commit_url_template() == "https://github.com/acme/demo/commit/%commit%"
        assert repo.commit_range_url_template() == "https://github.com/acme/demo/compare/%from%...%to%"

    def test_no_remote(self, repo):
        assert repo.commit_url_template() is None


def test_count_diff_lines():
    diff = "--- a/x\n+++ b/x\n@@ -1 +1 @@\n-old\n+new\n+more"
    assert count_diff_lines(diff) == (2, 1)

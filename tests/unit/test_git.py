"""Unit tests for git operations."""

from __future__ import annotations

import logging
import shutil
import subprocess
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from smart_release.exceptions import GitError
from smart_release.vcs.git import GitRepository

SHA_1 = "1" * 40
SHA_2 = "2" * 40


def fake_git(responses: dict[tuple[str, ...], str | Exception]):
    """Build a subprocess.run replacement answering by git arguments."""

    def run(cmd, **kwargs):
        args = tuple(cmd[1:])
        for prefix, response in responses.items():
            if args[: len(prefix)] == prefix:
                if isinstance(response, Exception):
                    raise response
                return MagicMock(stdout=response, returncode=0)
        return MagicMock(stdout="", returncode=0)

    return run


def git_calls(mock_run: MagicMock) -> list[list[str]]:
    return [call.args[0] for call in mock_run.call_args_list]


@pytest.fixture
def repo(tmp_path: Path) -> GitRepository:
    return GitRepository(tmp_path)


class TestGitRepository:
    """Tests for repository queries."""

    def test_not_a_directory(self, tmp_path: Path):
        """A missing path is rejected."""
        with pytest.raises(GitError):
            GitRepository(tmp_path / "missing")

    def test_is_dirty(self, repo: GitRepository):
        """Porcelain status output means uncommitted changes."""
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(stdout=" M CHANGELOG.md\n", returncode=0)

            assert repo.is_dirty() is True
            assert git_calls(mock_run) == [["git", "status", "--porcelain"]]

    def test_get_latest_tag(self, repo: GitRepository):
        """The latest matching tag is returned."""
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(stdout="v1.2.0\n", returncode=0)

            assert repo.get_latest_tag("v*") == "v1.2.0"
            assert git_calls(mock_run) == [["git", "describe", "--tags", "--abbrev=0", "--match", "v*"]]

    def test_get_latest_tag_without_tags(self, repo: GitRepository):
        """No tag yields None instead of an error."""
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = subprocess.CalledProcessError(128, "git", stderr="No names found")

            assert repo.get_latest_tag("v*") is None

    def test_get_commits_since_tag(self, repo: GitRepository):
        """Log output is split into commits, newest first."""
        output = (
            f"{SHA_2}\x00Jane\x00jane@example.com\x002024-01-02T10:00:00+00:00\x00fix: second\n\nbody\n\x1e\n"
            f"{SHA_1}\x00John\x00john@example.com\x002024-01-01T09:00:00+00:00\x00feat: first\n\x1e\n"
        )
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(stdout=output, returncode=0)

            commits = repo.get_commits_since_tag("v1.0.0")

        assert [commit.sha for commit in commits] == [SHA_2, SHA_1]
        assert commits[0].message == "fix: second\n\nbody"
        assert commits[0].author_name == "Jane"
        assert commits[0].date == datetime(2024, 1, 2, 10, tzinfo=UTC)
        assert commits[1].message == "feat: first"
        assert git_calls(mock_run)[0][-1] == "v1.0.0..HEAD"

    def test_get_all_commits_without_tag(self, repo: GitRepository):
        """Without a tag the whole history is read."""
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(stdout="", returncode=0)

            assert repo.get_commits_since_tag(None) == []
            assert git_calls(mock_run)[0][-1] == "HEAD"
            assert not any("\x00" in arg for arg in git_calls(mock_run)[0])

    def test_git_not_installed(self, repo: GitRepository):
        """A missing git executable is reported with a hint."""
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = FileNotFoundError("git")

            with pytest.raises(GitError, match="git executable not found"):
                repo.is_dirty()


class TestCommitChanges:
    """Tests for GitRepository.commit_changes()."""

    def test_dry_run_only_logs(self, repo: GitRepository, caplog: pytest.LogCaptureFixture):
        """Dry-run logs the commit it would make."""
        caplog.set_level(logging.DEBUG, logger="smart_release")
        with patch("subprocess.run") as mock_run:
            result = repo.commit_changes("commit message", dry_run=True)

        assert result is None
        mock_run.assert_not_called()
        assert "WOULD run git commit -am 'commit message'" in caplog.text

    def test_dry_run_with_signoff(self, repo: GitRepository, caplog: pytest.LogCaptureFixture):
        """Signoff and empty commits show up in the logged command."""
        caplog.set_level(logging.DEBUG, logger="smart_release")
        with patch("subprocess.run"):
            repo.commit_changes("commit message", dry_run=True, signoff=True, empty_commit_possible=True)

        assert "WOULD run git commit -am 'commit message' --allow-empty --signoff" in caplog.text

    def test_commit_returns_new_head(self, repo: GitRepository):
        """A real commit returns the id of the new HEAD."""
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = fake_git(
                {
                    ("ls-files",): "CHANGELOG.md\n",
                    ("rev-parse", "HEAD"): f"{SHA_1}\n",
                }
            )

            result = repo.commit_changes("Release", changelog_paths=[Path("CHANGELOG.md")])

        assert result == SHA_1
        calls = git_calls(mock_run)
        assert ["git", "commit", "-am", "Release"] in calls
        assert not any(call[1] == "add" for call in calls)

    def test_untracked_changelog_is_added(self, repo: GitRepository):
        """New changelog files are added before committing."""
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = fake_git({("rev-parse", "HEAD"): f"{SHA_1}\n"})

            repo.commit_changes("Release", changelog_paths=[repo.path / "crate" / "CHANGELOG.md"])

        calls = git_calls(mock_run)
        add_call = calls.index(["git", "add", "--", str(Path("crate") / "CHANGELOG.md")])
        assert add_call < calls.index(["git", "commit", "-am", "Release"])

    def test_commit_failure(self, repo: GitRepository):
        """A failing commit raises GitError with git's output."""
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = subprocess.CalledProcessError(1, "git", stderr="nothing to commit")

            with pytest.raises(GitError) as exc_info:
                repo.commit_changes("Release")

        assert exc_info.value.stderr == "nothing to commit"
        assert "nothing to commit" in str(exc_info.value)


class TestCreateVersionTag:
    """Tests for GitRepository.create_version_tag()."""

    def test_skip_tag(self, repo: GitRepository):
        """Skipping creates nothing."""
        with patch("subprocess.run") as mock_run:
            assert repo.create_version_tag("v1.0.0", SHA_1, skip_tag=True) is None
            mock_run.assert_not_called()

    def test_dry_run(self, repo: GitRepository, caplog: pytest.LogCaptureFixture):
        """Dry-run returns the reference it would create."""
        caplog.set_level(logging.DEBUG, logger="smart_release")
        with patch("subprocess.run") as mock_run:
            reference = repo.create_version_tag("v1.0.0", None, message="notes\nmore", dry_run=True)

        assert reference == "refs/tags/v1.0.0"
        mock_run.assert_not_called()
        assert "WOULD create tag object v1.0.0 with changelog message, first line is: 'notes'" in caplog.text

    def test_annotated_tag(self, repo: GitRepository):
        """A message creates an annotated tag."""
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(stdout="", returncode=0)

            repo.create_version_tag("v1.0.0", SHA_1, message="notes")

        assert git_calls(mock_run) == [["git", "tag", "-a", "v1.0.0", SHA_1, "-m", "notes"]]

    def test_lightweight_tag(self, repo: GitRepository, caplog: pytest.LogCaptureFixture):
        """Without message the tag is lightweight."""
        caplog.set_level(logging.INFO, logger="smart_release")
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(stdout="", returncode=0)

            repo.create_version_tag("v1.0.0", SHA_1)

        assert git_calls(mock_run) == [["git", "tag", "v1.0.0", SHA_1]]
        assert "Created tag refs/tags/v1.0.0" in caplog.text

    def test_missing_commit(self, repo: GitRepository):
        """Tagging for real needs a commit."""
        with pytest.raises(GitError):
            repo.create_version_tag("v1.0.0", None)


class TestPushTagsAndHead:
    """Tests for GitRepository.push_tags_and_head()."""

    def test_nothing_to_push(self, repo: GitRepository):
        """Without tags or with skip_push nothing happens."""
        with patch("subprocess.run") as mock_run:
            repo.push_tags_and_head([])
            repo.push_tags_and_head(["refs/tags/v1.0.0"], skip_push=True)

            mock_run.assert_not_called()

    def test_push_to_branch_remote(self, repo: GitRepository):
        """HEAD and tags go to the remote of the current branch."""
        not_set = subprocess.CalledProcessError(1, "git")
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = fake_git(
                {
                    ("branch", "--show-current"): "main\n",
                    ("config", "--get", "branch.main.pushRemote"): not_set,
                    ("config", "--get", "remote.pushDefault"): not_set,
                    ("config", "--get", "branch.main.remote"): "upstream\n",
                }
            )

            repo.push_tags_and_head(["refs/tags/v1.0.0"])

        assert git_calls(mock_run)[-1] == ["git", "push", "upstream", "HEAD", "refs/tags/v1.0.0"]

    def test_push_failure_has_hint(self, repo: GitRepository):
        """A failed push suggests how to resume."""
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = fake_git(
                {
                    ("branch", "--show-current"): "main\n",
                    ("config", "--get", "branch.main.pushRemote"): "origin\n",
                    ("push",): subprocess.CalledProcessError(1, "git", stderr="rejected"),
                }
            )

            with pytest.raises(GitError, match="--skip-push"):
                repo.push_tags_and_head(["refs/tags/v1.0.0"])

    def test_detached_head(self, repo: GitRepository):
        """Pushing from a detached HEAD is refused."""
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(stdout="\n", returncode=0)

            with pytest.raises(GitError, match="detached"):
                repo.push_tags_and_head(["refs/tags/v1.0.0"])


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
class TestWithGit:
    """Tests against a real repository."""

    @pytest.fixture
    def git_repo(self, tmp_path: Path) -> GitRepository:
        identity = ["-c", "user.name=Test", "-c", "user.email=test@test.com", "-c", "commit.gpgsign=false"]
        subprocess.run(["git", "init", "-q"], cwd=tmp_path, check=True)
        (tmp_path / "README.md").write_text("hello\n")
        subprocess.run(["git", "add", "README.md"], cwd=tmp_path, check=True)
        subprocess.run(
            ["git", *identity, "commit", "-q", "-m", "feat: first\n\nwith a body"],
            cwd=tmp_path,
            check=True,
        )
        return GitRepository(tmp_path)

    def test_read_history(self, git_repo: GitRepository):
        """Commits are read back from git log."""
        (commit,) = git_repo.get_commits_since_tag(None)

        assert len(commit.sha) == 40
        assert commit.message == "feat: first\n\nwith a body"
        assert commit.author_name == "Test"
        assert commit.author_email == "test@test.com"
        assert commit.date.tzinfo is not None
        assert git_repo.head_commit() == commit.sha

    def test_no_tags(self, git_repo: GitRepository):
        """A fresh repository has no version tag and a clean tree."""
        assert git_repo.get_latest_tag("v*") is None
        assert git_repo.is_dirty() is False

"""Git operations via subprocess.

The release workflow needs only a handful of git commands: reading tags
and history, committing the updated changelogs, tagging and pushing.
Everything that changes the repository honors ``dry_run`` by logging the
command it would have run instead of running it.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from smart_release.exceptions import GitError

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

# Separators in `git log` output, spelled as git escapes in the format
_FIELD_SEP = "\x00"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = "%H%x00%an%x00%ae%x00%aI%x00%B%x1e"


@dataclass(frozen=True)
class Commit:
    """A commit as read from history.

    Attributes:
        sha: Full 40 character commit id
        message: Complete commit message
        author_name: Author's name
        author_email: Author's email
        date: Author date, timezone aware
    """

    sha: str
    message: str
    author_name: str
    author_email: str
    date: datetime


def will(dry_run: bool) -> str:
    return "WOULD" if dry_run else "Will"


class GitRepository:
    """A git working tree.

    Args:
        path: Directory inside the working tree
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else Path.cwd()
        if not self.path.is_dir():
            raise GitError(f"Not a directory: {self.path}")

    def _run(self, *args: str) -> str:
        cmd = ["git", *args]
        logger.debug("Running %s", shlex.join(cmd))
        try:
            result = subprocess.run(
                cmd,
                cwd=self.path,
                capture_output=True,
                text=True,
                check=True,
            )
        except FileNotFoundError as e:
            raise GitError("git executable not found", hint="Install git and make sure it is on PATH.") from e
        except subprocess.CalledProcessError as e:
            raise GitError(
                f"'git {args[0]}' failed with exit code {e.returncode}",
                stderr=e.stderr,
            ) from e
        return result.stdout

    def _run_unless_dry(self, args: Sequence[str], *, dry_run: bool, hint: str | None = None) -> None:
        cmd = ["git", *args]
        logger.debug("%s run %s", will(dry_run), shlex.join(cmd))
        if dry_run:
            return
        try:
            subprocess.run(
                cmd,
                cwd=self.path,
                capture_output=True,
                text=True,
                check=True,
            )
        except FileNotFoundError as e:
            raise GitError("git executable not found", hint="Install git and make sure it is on PATH.") from e
        except subprocess.CalledProcessError as e:
            raise GitError(
                f"'git {args[0]}' invocation failed with exit code {e.returncode}",
                stderr=e.stderr,
                hint=hint,
            ) from e

    # =========================================================================
    # Queries
    # =========================================================================

    def is_dirty(self) -> bool:
        """Check for uncommitted changes, untracked files included."""
        return bool(self._run("status", "--porcelain").strip())

    def head_commit(self) -> str:
        return self._run("rev-parse", "HEAD").strip()

    def current_branch(self) -> str | None:
        """Name of the checked out branch, or None for a detached HEAD."""
        branch = self._run("branch", "--show-current").strip()
        return branch or None

    def get_latest_tag(self, pattern: str | None = None) -> str | None:
        """Find the most recent tag reachable from HEAD.

        Args:
            pattern: Glob the tag must match, like "v*"

        Returns:
            The tag name, or None if there is no matching tag
        """
        args = ["describe", "--tags", "--abbrev=0"]
        if pattern:
            args.extend(["--match", pattern])
        try:
            return self._run(*args).strip() or None
        except GitError:
            return None

    def get_commits_since_tag(self, tag: str | None = None) -> list[Commit]:
        """Read the commits after tag up to HEAD, newest first.

        Args:
            tag: Starting point (exclusive); all of history if None

        Returns:
            The commits
        """
        revision = f"{tag}..HEAD" if tag else "HEAD"
        output = self._run("log", f"--format={_LOG_FORMAT}", revision)
        return [commit for commit in map(_parse_log_record, output.split(_RECORD_SEP)) if commit is not None]

    def is_tracked(self, path: Path) -> bool:
        return bool(self._run("ls-files", "--", str(path)).strip())

    def get_push_remote(self) -> str:
        """Name of the remote HEAD's branch pushes to.

        Raises:
            GitError: If HEAD is detached or no remote is configured
        """
        branch = self.current_branch()
        if branch is None:
            raise GitError("Cannot push from a detached HEAD")
        for key in (f"branch.{branch}.pushRemote", "remote.pushDefault", f"branch.{branch}.remote"):
            try:
                remote = self._run("config", "--get", key).strip()
            except GitError:
                continue
            if remote:
                return remote
        remotes = self._run("remote").split()
        if len(remotes) == 1:
            return remotes[0]
        raise GitError(
            "Couldn't find push-remote of HEAD reference",
            hint=f"Configure one with: git branch --set-upstream-to=<remote>/{branch}",
        )

    # =========================================================================
    # Changes
    # =========================================================================

    def commit_changes(
        self,
        message: str,
        *,
        dry_run: bool = False,
        empty_commit_possible: bool = False,
        signoff: bool = False,
        changelog_paths: Sequence[Path] = (),
    ) -> str | None:
        """Commit all changes to tracked files, plus new changelogs.

        ``git commit -am`` only picks up tracked files, so changelogs that
        were just created are added to the index first.

        Args:
            message: Commit message
            dry_run: Only log what would be run
            empty_commit_possible: Pass --allow-empty
            signoff: Pass --signoff
            changelog_paths: Changelog files that may not be tracked yet

        Returns:
            The new HEAD commit id, or None in dry-run mode

        Raises:
            GitError: If adding or committing fails
        """
        untracked = [path for path in map(self._relative, changelog_paths) if path and not self.is_tracked(path)]
        if untracked:
            self._run_unless_dry(
                ["add", "--", *map(str, untracked)],
                dry_run=dry_run,
                hint="Failed to add new changelog files to git.",
            )

        args = ["commit", "-am", message]
        if empty_commit_possible:
            args.append("--allow-empty")
        if signoff:
            args.append("--signoff")
        self._run_unless_dry(args, dry_run=dry_run)
        if dry_run:
            return None
        return self.head_commit()

    def create_version_tag(
        self,
        tag_name: str,
        commit_id: str | None,
        *,
        message: str | None = None,
        dry_run: bool = False,
        skip_tag: bool = False,
    ) -> str | None:
        """Tag a commit.

        Args:
            tag_name: Name of the tag, like "v1.2.0"
            commit_id: Commit to tag; may be None only in dry-run mode
            message: Tag message; creates an annotated tag if set
            dry_run: Only log what would be done
            skip_tag: Do nothing at all

        Returns:
            The full reference name of the tag, or None if skipped
        """
        if skip_tag:
            return None
        reference = f"refs/tags/{tag_name}"
        if dry_run:
            if message is not None:
                first_line = message.splitlines()[0] if message else ""
                logger.debug(
                    "WOULD create tag object %s with changelog message, first line is: '%s'",
                    tag_name,
                    first_line,
                )
            else:
                logger.debug("WOULD create tag %s", tag_name)
            return reference

        if commit_id is None:
            raise GitError(f"No commit to create tag {tag_name} for")
        if message is not None:
            self._run_unless_dry(["tag", "-a", tag_name, commit_id, "-m", message], dry_run=False)
            logger.info("Created tag object %s with release notes.", reference)
        else:
            self._run_unless_dry(["tag", tag_name, commit_id], dry_run=False)
            logger.info("Created tag %s", reference)
        return reference

    def push_tags_and_head(
        self,
        tag_names: Sequence[str],
        *,
        dry_run: bool = False,
        skip_push: bool = False,
    ) -> None:
        """Push HEAD and the given tags to HEAD's push remote.

        Nothing is pushed if there are no tags.
        """
        if skip_push or not tag_names:
            return
        remote = self.get_push_remote()
        self._run_unless_dry(
            ["push", remote, "HEAD", *tag_names],
            dry_run=dry_run,
            hint="Try to push manually and repeat the release to resume, possibly with --skip-push.",
        )

    def _relative(self, path: Path) -> Path | None:
        path = Path(path)
        if not path.is_absolute():
            return path
        try:
            return path.resolve().relative_to(self.path.resolve())
        except ValueError:
            logger.debug("Ignoring %s which is outside of %s", path, self.path)
            return None


def _parse_log_record(record: str) -> Commit | None:
    record = record.lstrip("\n")
    if not record:
        return None
    sha, author_name, author_email, date, message = record.split(_FIELD_SEP, 4)
    return Commit(
        sha=sha,
        message=message.strip(),
        author_name=author_name,
        author_email=author_email,
        date=datetime.fromisoformat(date),
    )

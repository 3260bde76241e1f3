"""Version control integration."""

from __future__ import annotations

from smart_release.vcs.git import Commit, GitRepository

__all__ = ["Commit", "GitRepository"]

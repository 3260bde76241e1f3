"""Commit message handling."""

from __future__ import annotations

from smart_release.core.message import IssueId, Message

__all__ = ["IssueId", "Message"]

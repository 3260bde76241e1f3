"""Round-trip safe changelog engine.

Read a changelog with ChangeLog.from_markdown(), merge generated releases
into it and write it back with ChangeLog.to_markdown(). Anything the
engine does not understand survives unchanged.
"""

from __future__ import annotations

from smart_release.changelog.generate import HistoryItem, history_from_commits
from smart_release.changelog.model import (
    UNRELEASED,
    ChangeLog,
    ConventionalSegment,
    GeneratedMessage,
    Kind,
    ObjectId,
    Release,
    UserMessage,
    UserSegment,
    Verbatim,
    Version,
)
from smart_release.changelog.write import AS_TEXT, Components, Linkables

__all__ = [
    "AS_TEXT",
    "UNRELEASED",
    "ChangeLog",
    "Components",
    "ConventionalSegment",
    "GeneratedMessage",
    "HistoryItem",
    "Kind",
    "Linkables",
    "ObjectId",
    "Release",
    "UserMessage",
    "UserSegment",
    "Verbatim",
    "Version",
    "history_from_commits",
]

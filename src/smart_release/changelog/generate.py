"""Producing release sections from commit history and merging them.

A generated release holds one conventional segment per kind and
breaking flag, followed by the statistics, clippy and details reports.
Merging it into a parsed release only ever adds: messages the user
already has, edited or deleted are left alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from smart_release.changelog.model import (
    UNCATEGORIZED,
    Category,
    ChangeLog,
    ClippySegment,
    CommitDetails,
    CommitStatistics,
    ConventionalSegment,
    DetailsMessage,
    DetailsSegment,
    GeneratedMessage,
    Kind,
    ObjectId,
    Release,
    StatisticsSegment,
    ThanksClippy,
    Verbatim,
    Version,
)
from smart_release.core.message import Message
from smart_release.exceptions import ChangelogError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from smart_release.changelog.model import Segment
    from smart_release.vcs.git import Commit

logger = logging.getLogger(__name__)

KIND_ORDER = (
    Kind.FEAT,
    Kind.ADD,
    Kind.FIX,
    Kind.REVERT,
    Kind.REMOVE,
    Kind.CHANGE,
    Kind.DOCS,
    Kind.PERF,
    Kind.REFACTOR,
    Kind.STYLE,
    Kind.OTHER,
)

CLIPPY_TITLE_PREFIX = "thanks clippy"

_REPORT_TYPES = (StatisticsSegment, ClippySegment, DetailsSegment)


@dataclass
class HistoryItem:
    """A commit reduced to what the changelog needs.

    Attributes:
        id: Commit id
        message: Normalized commit message
        time: Author time, if known
    """

    id: ObjectId
    message: Message
    time: datetime | None = None


def history_from_commits(commits: Iterable[Commit], *, allow_emoji: bool = False) -> list[HistoryItem]:
    """Normalize commits read from git, keeping their order."""
    return [
        HistoryItem(
            id=ObjectId(commit.sha),
            message=Message.from_str(commit.message, allow_emoji=allow_emoji),
            time=commit.date,
        )
        for commit in commits
    ]


def is_thanks_clippy(message: Message) -> bool:
    return message.title.lower().startswith(CLIPPY_TITLE_PREFIX)


# =============================================================================
# Generation
# =============================================================================


def release_from_history(
    version: Version,
    history: Iterable[HistoryItem],
    *,
    date: datetime | None = None,
    heading_level: int = 2,
    version_prefix: str = Release.DEFAULT_PREFIX,
    previous_release_date: datetime | None = None,
) -> Release:
    """Build a release section from commits.

    Only conventional commits end up in conventional segments; every commit
    is listed in the details report.

    Args:
        version: Name of the section
        history: Commits of the release, newest first
        date: Release date
        heading_level: Level of the release headline
        version_prefix: Written in front of the version
        previous_release_date: Date of the previous release, for statistics

    Returns:
        The generated release
    """
    items = list(history)
    segments: list[Segment] = _conventional_segments(items)
    segments.append(StatisticsSegment(data=_statistics(items, date, previous_release_date)))
    segments.append(ClippySegment(data=ThanksClippy(count=sum(1 for item in items if is_thanks_clippy(item.message)))))
    segments.append(DetailsSegment(data=_details(items)))
    return Release(
        name=version,
        heading_level=heading_level,
        version_prefix="" if version.is_unreleased else version_prefix,
        date=date,
        segments=segments,
    )


def _conventional_segments(items: list[HistoryItem]) -> list[Segment]:
    groups: dict[tuple[Kind, bool], list[GeneratedMessage]] = {}
    for item in items:
        message = item.message
        if message.kind is None or is_thanks_clippy(message):
            continue
        kind = Kind.from_str(message.kind) or Kind.OTHER
        groups.setdefault((kind, message.breaking), []).append(
            GeneratedMessage(id=item.id, title=message.title, body=message.body)
        )

    segments: list[Segment] = []
    for kind in KIND_ORDER:
        for is_breaking in (True, False):
            messages = groups.get((kind, is_breaking))
            if messages:
                segments.append(ConventionalSegment(kind=kind, is_breaking=is_breaking, messages=list(messages)))
    return segments


def _statistics(
    items: list[HistoryItem],
    date: datetime | None,
    previous_release_date: datetime | None,
) -> CommitStatistics:
    times = [item.time for item in items if item.time is not None]
    duration = (max(times) - min(times)).days if times else None

    passed = None
    if previous_release_date is not None:
        end = date if date is not None else (max(times) if times else None)
        if end is not None:
            passed = (end - previous_release_date).days

    issues: list[Category] = []
    for item in items:
        for addition in item.message.additions:
            category = Category(issue=addition.id)
            if category not in issues:
                issues.append(category)

    return CommitStatistics(
        count=len(items),
        conventional_count=sum(1 for item in items if item.message.kind is not None),
        duration=duration,
        time_passed_since_last_release=passed,
        unique_issues=sorted(issues, key=Category.sort_key),
    )


def _details(items: list[HistoryItem]) -> CommitDetails:
    by_category: dict[Category, list[DetailsMessage]] = {}
    for item in items:
        categories = [Category(issue=addition.id) for addition in item.message.additions] or [UNCATEGORIZED]
        for category in categories:
            by_category.setdefault(category, []).append(DetailsMessage(title=item.message.title, id=item.id))
    return CommitDetails(commits_by_category=by_category)


# =============================================================================
# Merging
# =============================================================================


def merge_release(parsed: Release, generated: Release) -> Release:
    """Merge a generated release into one read from disk.

    Generated messages are added unless their id is already present or was
    marked as removed. User content stays as it is, and report placeholders
    are replaced by the generated reports.

    Args:
        parsed: Release as read from the changelog; modified in place
        generated: Release fresh from history

    Returns:
        The parsed release
    """
    known = _known_ids(parsed)

    for segment in generated.segments:
        if isinstance(segment, ConventionalSegment):
            _merge_conventional(parsed, segment, known)
        elif isinstance(segment, _REPORT_TYPES):
            _replace_report(parsed, segment)

    if parsed.date is None:
        parsed.date = generated.date
    return parsed


def _known_ids(release: Release) -> set[ObjectId]:
    known = set(release.removed_messages)
    for segment in release.segments:
        if isinstance(segment, ConventionalSegment):
            known.update(segment.removed)
            known.update(message.id for message in segment.messages if isinstance(message, GeneratedMessage))
    return known


def _merge_conventional(release: Release, generated: ConventionalSegment, known: set[ObjectId]) -> None:
    new_messages = [
        message
        for message in generated.messages
        if not isinstance(message, GeneratedMessage) or message.id not in known
    ]
    if not new_messages:
        return
    known.update(message.id for message in new_messages if isinstance(message, GeneratedMessage))

    existing = next(
        (
            segment
            for segment in release.segments
            if isinstance(segment, ConventionalSegment)
            and segment.kind == generated.kind
            and segment.is_breaking == generated.is_breaking
        ),
        None,
    )
    if existing is not None:
        existing.messages.extend(new_messages)
        return

    logger.debug("Adding %s segment to %s", generated.kind.headline, release.name)
    segment = ConventionalSegment(kind=generated.kind, is_breaking=generated.is_breaking, messages=new_messages)
    reports = [index for index, other in enumerate(release.segments) if isinstance(other, _REPORT_TYPES)]
    if reports:
        release.segments.insert(reports[0], segment)
    else:
        release.segments.append(segment)


def _replace_report(release: Release, generated: Segment) -> None:
    for index, segment in enumerate(release.segments):
        if type(segment) is type(generated):
            release.segments[index] = generated
            return
    release.segments.append(generated)


def merge_generated(log: ChangeLog, generated: Release) -> Release:
    """Merge a generated release into the matching section of a changelog.

    Without a matching section the generated release is inserted after the
    leading verbatim section, or first if there is none.

    Returns:
        The release section now in the changelog
    """
    existing = log.find_release(generated.name)
    if existing is not None:
        return merge_release(existing, generated)

    position = 1 if log.sections and isinstance(log.sections[0], Verbatim) else 0
    log.sections.insert(position, generated)
    return generated


def take_unreleased_as(
    log: ChangeLog,
    version: Version,
    date: datetime | None,
    *,
    version_prefix: str = Release.DEFAULT_PREFIX,
) -> Release | None:
    """Turn the unreleased section into the section of a release.

    Args:
        log: Changelog to modify
        version: Version being released
        date: Release date
        version_prefix: Written in front of the version

    Returns:
        The renamed section, or None if there was no unreleased section

    Raises:
        ChangelogError: If a section for version exists already
    """
    unreleased = log.find_release(Version())
    if unreleased is None:
        return None
    if log.find_release(version) is not None:
        raise ChangelogError(
            f"Changelog has both an unreleased section and one for {version}",
            hint="Merge the unreleased section into the release section manually.",
        )
    unreleased.name = version
    unreleased.date = date
    unreleased.version_prefix = version_prefix
    return unreleased

"""Writing the changelog model back to markdown.

The output uses exactly the markup the parser recognizes, so parsing
written text yields the same model again. Report blocks (statistics,
clippy, details) are written only when they carry generated data;
after a parse they are placeholders and disappear until regenerated.
"""

from __future__ import annotations

import io
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Flag, auto
from typing import TYPE_CHECKING, Protocol

from smart_release.changelog.events import lines_with_terminator
from smart_release.changelog.model import (
    Category,
    ChangeLog,
    ClippySegment,
    CommitDetails,
    CommitStatistics,
    ConventionalSegment,
    DetailsSegment,
    GeneratedMessage,
    ObjectId,
    Release,
    StatisticsSegment,
    ThanksClippy,
    UserMessage,
    UserSegment,
    Verbatim,
)
from smart_release.exceptions import ChangelogWriteError

if TYPE_CHECKING:
    from smart_release.changelog.model import Section, Segment

LIST_ITEM_PATTERN = re.compile(r"^ {0,3}(?:[-*+]|\d{1,9}[.)])(?:[ \t]|$)")

BODY_INDENT = "   "
SHORT_ID_LEN = 7


class TextSink(Protocol):
    def write(self, text: str, /) -> object: ...


class Components(Flag):
    """Parts of a release section to include in the output."""

    SECTION_TITLE = auto()
    HTML_TAGS = auto()
    DETAIL_TAGS = auto()
    STATISTICS = auto()
    CLIPPY = auto()
    DETAILS = auto()

    @classmethod
    def all(cls) -> Components:
        return (
            cls.SECTION_TITLE
            | cls.HTML_TAGS
            | cls.DETAIL_TAGS
            | cls.STATISTICS
            | cls.CLIPPY
            | cls.DETAILS
        )

    @classmethod
    def empty(cls) -> Components:
        return cls(0)


@dataclass(frozen=True)
class Linkables:
    """How commit ids and issues are rendered in report blocks.

    Without a repository URL they are plain text, otherwise markdown links
    into the repository's web interface.
    """

    repository_url: str | None = None

    @classmethod
    def as_links(cls, repository_url: str) -> Linkables:
        return cls(repository_url=_https_base_url(repository_url))

    def format_id(self, object_id: ObjectId) -> str:
        short = object_id.to_hex_with_len(SHORT_ID_LEN)
        if self.repository_url is None:
            return f"`{short}`"
        return f"[`{short}`]({self.repository_url}/commit/{object_id})"

    def format_category(self, category: Category) -> str:
        if category.issue is None:
            return "Uncategorized"
        if self.repository_url is None:
            return f"#{category.issue}"
        return f"[#{category.issue}]({self.repository_url}/issues/{category.issue})"


AS_TEXT = Linkables()


def _https_base_url(url: str) -> str:
    url = url.strip().rstrip("/")
    scp_like = re.match(r"^[\w.-]+@(?P<host>[^:/]+):(?P<path>.+)$", url)
    if scp_like:
        url = f"https://{scp_like.group('host')}/{scp_like.group('path')}"
    elif url.startswith("ssh://"):
        url = "https://" + re.sub(r"^ssh://(?:[^@/]+@)?", "", url)
    elif url.startswith("http://"):
        url = "https://" + url.removeprefix("http://")
    return url.removesuffix(".git")


# =============================================================================
# Entry points
# =============================================================================


def render_changelog(
    log: ChangeLog,
    link_mode: Linkables | None = None,
    components: Components | None = None,
    *,
    capitalize_commit: bool = False,
    strict: bool = False,
) -> str:
    """Write the changelog into a new string.

    Args:
        log: Changelog to write
        link_mode: Rendering of ids and issues, plain text by default
        components: Parts to include, everything by default
        capitalize_commit: Upper-case the first letter of generated titles
        strict: Raise ChangelogWriteError for content that would not parse back

    Returns:
        Markdown text
    """
    out = io.StringIO()
    write_changelog(
        log,
        out,
        link_mode or AS_TEXT,
        Components.all() if components is None else components,
        capitalize_commit=capitalize_commit,
        strict=strict,
    )
    return out.getvalue()


def write_changelog(
    log: ChangeLog,
    out: TextSink,
    link_mode: Linkables,
    components: Components,
    *,
    capitalize_commit: bool = False,
    strict: bool = False,
) -> None:
    for section in log.sections:
        write_section(section, out, link_mode, components, capitalize_commit=capitalize_commit, strict=strict)


def write_section(
    section: Section,
    out: TextSink,
    link_mode: Linkables,
    components: Components,
    *,
    capitalize_commit: bool = False,
    strict: bool = False,
) -> None:
    if isinstance(section, Verbatim):
        out.write(section.text)
    else:
        write_release(section, out, link_mode, components, capitalize_commit=capitalize_commit, strict=strict)


def write_release(
    release: Release,
    out: TextSink,
    link_mode: Linkables,
    components: Components,
    *,
    capitalize_commit: bool = False,
    strict: bool = False,
) -> None:
    if Components.SECTION_TITLE in components:
        out.write(f"{heading(release.heading_level)} {release.name.to_string(release.version_prefix)}")
        if release.date is None:
            out.write("\n\n")
        else:
            out.write(f" ({format_date(release.date)})\n\n")

    html = Components.HTML_TAGS in components
    if html and release.removed_messages:
        _write_ids(out, release.removed_messages)

    if html and release.unknown:
        if strict and Release.UNKNOWN_TAG_END in release.unknown:
            raise ChangelogWriteError(
                f"Unknown content of {release.name} contains {Release.UNKNOWN_TAG_END!r}",
                hint="The content would end early when parsed again.",
            )
        out.write(f"{Release.UNKNOWN_TAG_START}\n")
        _write_with_newline(out, release.unknown)
        out.write(f"{Release.UNKNOWN_TAG_END}\n\n")

    section_level = release.heading_level + 1
    for segment in release.segments:
        _write_segment(segment, out, section_level, link_mode, components, capitalize_commit, strict)


# =============================================================================
# Segments
# =============================================================================


def _write_segment(
    segment: Segment,
    out: TextSink,
    level: int,
    link_mode: Linkables,
    components: Components,
    capitalize_commit: bool,
    strict: bool,
) -> None:
    if isinstance(segment, UserSegment):
        if strict and Release.UNKNOWN_TAG_START in segment.markdown:
            raise ChangelogWriteError(
                f"User content contains {Release.UNKNOWN_TAG_START!r}",
                hint="It would be read back as unknown content instead.",
            )
        _write_with_newline(out, segment.markdown)
    elif isinstance(segment, ConventionalSegment):
        _write_conventional(segment, out, level, components, capitalize_commit, strict)
    elif isinstance(segment, StatisticsSegment):
        if isinstance(segment.data, CommitStatistics) and Components.STATISTICS in components:
            _write_statistics(segment.data, out, level, link_mode, components)
    elif isinstance(segment, ClippySegment):
        if isinstance(segment.data, ThanksClippy) and Components.CLIPPY in components:
            _write_clippy(segment.data, out, level, components)
    elif isinstance(segment, DetailsSegment):
        if isinstance(segment.data, CommitDetails) and Components.DETAILS in components:
            _write_details(segment.data, out, level, link_mode, components)


def _write_conventional(
    segment: ConventionalSegment,
    out: TextSink,
    level: int,
    components: Components,
    capitalize_commit: bool,
    strict: bool,
) -> None:
    breaking = f" {ConventionalSegment.BREAKING_TITLE_ENCLOSED}" if segment.is_breaking else ""
    out.write(f"{heading(level)} {segment.kind.headline}{breaking}\n\n")

    html = Components.HTML_TAGS in components
    if html and segment.removed:
        _write_ids(out, segment.removed)

    for message in segment.messages:
        if isinstance(message, GeneratedMessage):
            title = capitalize(message.title) if capitalize_commit else message.title
            if html:
                out.write(f" - {ConventionalSegment.REMOVED_HTML_PREFIX}{message.id}/> {title}\n")
            else:
                out.write(f" - {title}\n")
            if message.body:
                for line in lines_with_terminator(message.body):
                    out.write(f"{BODY_INDENT}{line}")
                if not message.body.endswith("\n"):
                    out.write("\n")
        elif isinstance(message, UserMessage):
            if strict and not LIST_ITEM_PATTERN.match(message.markdown):
                raise ChangelogWriteError(
                    f"User message is not a list item: {message.markdown[:40]!r}",
                    hint="Start the message with '- ' so it stays in its group.",
                )
            _write_with_newline(out, message.markdown)
    out.write("\n")


def _write_statistics(
    statistics: CommitStatistics,
    out: TextSink,
    level: int,
    link_mode: Linkables,
    components: Components,
) -> None:
    out.write(f"{heading(level)} {StatisticsSegment.TITLE}\n\n")
    if Components.HTML_TAGS in components:
        out.write(f"{Release.READONLY_TAG}\n")

    count = statistics.count
    duration = statistics.duration
    over_the_course = (
        f" over the course of {duration} calendar {plural(duration, 'day', 'days')}."
        if duration
        else "."
    )
    out.write(f" - {count} {plural(count, 'commit', 'commits')} contributed to the release{over_the_course}\n")

    passed = statistics.time_passed_since_last_release
    if passed:
        out.write(f" - {passed} {plural(passed, 'day', 'days')} passed between releases.\n")

    conventional = statistics.conventional_count
    out.write(
        f" - {conventional} {plural(conventional, 'commit', 'commits')} "
        f"{plural(conventional, 'was', 'were')} understood as "
        "[conventional](https://www.conventionalcommits.org).\n"
    )

    issues = statistics.unique_issues
    if not issues:
        out.write(" - 0 issues like '(#ID)' were seen in commit messages\n")
    else:
        formatted = ", ".join(link_mode.format_category(category) for category in issues)
        out.write(
            f" - {len(issues)} unique {plural(len(issues), 'issue', 'issues')} "
            f"{plural(len(issues), 'was', 'were')} worked on: {formatted}\n"
        )
    out.write("\n")


def _write_clippy(clippy: ThanksClippy, out: TextSink, level: int, components: Components) -> None:
    if clippy.count <= 0:
        return
    out.write(f"{heading(level)} {ClippySegment.TITLE}\n\n")
    if Components.HTML_TAGS in components:
        out.write(f"{Release.READONLY_TAG}\n")
    out.write(
        f"[Clippy](https://github.com/rust-lang/rust-clippy) helped {clippy.count} "
        f"{plural(clippy.count, 'time', 'times')} to make code idiomatic.\n\n"
    )


def _write_details(
    details: CommitDetails,
    out: TextSink,
    level: int,
    link_mode: Linkables,
    components: Components,
) -> None:
    if not details.commits_by_category:
        return
    out.write(f"{heading(level)} {DetailsSegment.TITLE}\n\n")
    if Components.HTML_TAGS in components:
        out.write(f"{Release.READONLY_TAG}\n")
    detail_tags = Components.DETAIL_TAGS in components
    if detail_tags:
        out.write(f"{DetailsSegment.HTML_PREFIX}\n\n")
    for category in sorted(details.commits_by_category, key=Category.sort_key):
        out.write(f" * **{link_mode.format_category(category)}**\n")
        for message in details.commits_by_category[category]:
            out.write(f"    - {message.title} ({link_mode.format_id(message.id)})\n")
    if detail_tags:
        out.write(f"{DetailsSegment.HTML_PREFIX_END}\n")
    out.write("\n")


# =============================================================================
# Helpers
# =============================================================================


def heading(level: int) -> str:
    return "#" * level


def format_date(date: datetime) -> str:
    if date.tzinfo is not None:
        date = date.astimezone(UTC)
    return f"{date.year:04d}-{date.month:02d}-{date.day:02d}"


def plural(count: int, singular: str, multiple: str) -> str:
    return singular if count == 1 else multiple


def capitalize(title: str) -> str:
    return title[:1].upper() + title[1:]


def _write_ids(out: TextSink, ids: list[ObjectId]) -> None:
    for object_id in ids:
        out.write(f"{ConventionalSegment.REMOVED_HTML_PREFIX}{object_id}/>\n")
    out.write("\n")


def _write_with_newline(out: TextSink, text: str) -> None:
    out.write(text)
    if text and not text.endswith("\n"):
        out.write("\n")

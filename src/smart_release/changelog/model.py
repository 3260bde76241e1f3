"""Typed model of a changelog document.

The model is a plain tree: a ChangeLog owns its sections, a Release owns
its segments and a conventional segment owns its messages. Nothing refers
back up the tree, so writing is a pure function of the value.

    ChangeLog
    ├── Verbatim              prose the engine does not own
    └── Release               one "## v1.2.3 (2024-01-01)" entry
        ├── UserSegment       free-form markdown, kept byte-for-byte
        ├── ConventionalSegment
        │   ├── GeneratedMessage   traced to a commit id
        │   └── UserMessage        hand-written bullet
        ├── StatisticsSegment │
        ├── ClippySegment     ├── always regenerated
        └── DetailsSegment    │
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, ClassVar, Union

import semver

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from smart_release.changelog.generate import HistoryItem
    from smart_release.changelog.parse import UnknownEventSink
    from smart_release.changelog.write import Components, Linkables, TextSink

HEX_ID_PATTERN = re.compile(r"^[0-9a-f]{40}$")


class ObjectId(str):
    """A commit id: 20 bytes printed as 40 lowercase hex characters."""

    __slots__ = ()

    def __new__(cls, value: str) -> ObjectId:
        if not HEX_ID_PATTERN.match(value):
            raise ValueError(f"Not a 40 character lowercase hex id: {value!r}")
        return super().__new__(cls, value)

    @classmethod
    def from_hex(cls, value: str) -> ObjectId | None:
        """Return the id or None if value is not a full hex id."""
        try:
            return cls(value)
        except ValueError:
            return None

    def to_hex_with_len(self, length: int) -> str:
        return str(self)[:length]


# =============================================================================
# Versions
# =============================================================================


@dataclass(frozen=True)
class Version:
    """Name of a release section: a semantic version or "Unreleased"."""

    semantic: semver.Version | None = None

    UNRELEASED_NAME: ClassVar[str] = "Unreleased"

    @classmethod
    def parse(cls, value: str) -> Version:
        return cls(semver.Version.parse(value))

    @property
    def is_unreleased(self) -> bool:
        return self.semantic is None

    def to_string(self, prefix: str) -> str:
        if self.semantic is None:
            return self.UNRELEASED_NAME
        return f"{prefix}{self.semantic}"

    def __str__(self) -> str:
        return self.to_string("")


UNRELEASED = Version()


# =============================================================================
# Messages
# =============================================================================


@dataclass
class GeneratedMessage:
    """An entry produced from a commit, identified by its commit id."""

    id: ObjectId
    title: str
    body: str | None = None


@dataclass
class UserMessage:
    """A hand-written bullet inside a conventional group, kept verbatim."""

    markdown: str


Message = Union[GeneratedMessage, UserMessage]


# =============================================================================
# Conventional kinds
# =============================================================================


class Kind(str, Enum):
    """The closed set of conventional groups a release section can contain."""

    FIX = "fix"
    ADD = "add"
    FEAT = "feat"
    REVERT = "revert"
    REMOVE = "remove"
    CHANGE = "change"
    DOCS = "docs"
    PERF = "perf"
    REFACTOR = "refactor"
    OTHER = "other"
    STYLE = "style"

    @property
    def headline(self) -> str:
        return _HEADLINES[self]

    def matches_title(self, title: str) -> bool:
        """Case-insensitive check whether a heading title starts with this kind's headline."""
        headline = self.headline
        return title[: len(headline)].lower() == headline.lower()

    @classmethod
    def from_str(cls, value: str) -> Kind | None:
        """Map a message kind (as produced by commit parsing) onto a group."""
        if value == "added":
            return cls.ADD
        try:
            return cls(value)
        except ValueError:
            return None


_HEADLINES = {
    Kind.FIX: "Bug Fixes",
    Kind.ADD: "Added",
    Kind.FEAT: "New Features",
    Kind.REVERT: "Reverted",
    Kind.REMOVE: "Removed",
    Kind.CHANGE: "Changed",
    Kind.DOCS: "Documentation",
    Kind.PERF: "Performance",
    Kind.REFACTOR: "Refactor",
    Kind.OTHER: "Other",
    Kind.STYLE: "Style",
}


# =============================================================================
# Generated report payloads
# =============================================================================


class Data(Enum):
    """Marker for a report segment that was read back from markdown.

    Its content is not recovered; the segment is regenerated on the next run.
    """

    PARSED = "parsed"


@dataclass(frozen=True)
class Category:
    """Grouping of commits in the details block: an issue id or uncategorized."""

    issue: str | None = None

    def sort_key(self) -> tuple[int, str]:
        return (0, "") if self.issue is None else (1, self.issue)


UNCATEGORIZED = Category()


@dataclass
class ThanksClippy:
    count: int


@dataclass
class CommitStatistics:
    """Numbers about the commits that went into a release.

    Attributes:
        count: Amount of commits
        duration: Days between the first and the last commit, if known
        conventional_count: Commits that parsed as conventional
        time_passed_since_last_release: Days since the previous release, if known
        unique_issues: Issues referenced by the commits
    """

    count: int
    conventional_count: int
    duration: int | None = None
    time_passed_since_last_release: int | None = None
    unique_issues: list[Category] = field(default_factory=list)


@dataclass
class DetailsMessage:
    title: str
    id: ObjectId


@dataclass
class CommitDetails:
    commits_by_category: dict[Category, list[DetailsMessage]] = field(default_factory=dict)


# =============================================================================
# Segments
# =============================================================================


@dataclass
class UserSegment:
    """Markdown the engine did not recognize, sliced from the source."""

    markdown: str


@dataclass
class ConventionalSegment:
    """Messages of one conventional kind under a single heading."""

    kind: Kind
    is_breaking: bool = False
    messages: list[Message] = field(default_factory=list)
    removed: list[ObjectId] = field(default_factory=list)

    REMOVED_HTML_PREFIX: ClassVar[str] = "<csr-id-"
    BREAKING_TITLE_ENCLOSED: ClassVar[str] = "(BREAKING)"


@dataclass
class ClippySegment:
    data: ThanksClippy | Data = Data.PARSED

    TITLE: ClassVar[str] = "Thanks Clippy"


@dataclass
class StatisticsSegment:
    data: CommitStatistics | Data = Data.PARSED

    TITLE: ClassVar[str] = "Commit Statistics"


@dataclass
class DetailsSegment:
    data: CommitDetails | Data = Data.PARSED

    TITLE: ClassVar[str] = "Commit Details"
    HTML_PREFIX: ClassVar[str] = "<details><summary>view details</summary>"
    HTML_PREFIX_END: ClassVar[str] = "</details>"


Segment = Union[UserSegment, ConventionalSegment, ClippySegment, StatisticsSegment, DetailsSegment]


# =============================================================================
# Sections
# =============================================================================


@dataclass
class Verbatim:
    """Text outside of any release, like a preamble."""

    text: str
    generated: bool = False


@dataclass
class Release:
    """Everything below one release headline."""

    name: Version
    heading_level: int
    version_prefix: str = ""
    date: datetime | None = None
    segments: list[Segment] = field(default_factory=list)
    removed_messages: list[ObjectId] = field(default_factory=list)
    unknown: str = ""

    UNKNOWN_TAG_START: ClassVar[str] = "<csr-unknown>"
    UNKNOWN_TAG_END: ClassVar[str] = "<csr-unknown/>"
    READONLY_TAG: ClassVar[str] = "<csr-read-only-do-not-edit/>"
    DEFAULT_PREFIX: ClassVar[str] = "v"

    @classmethod
    def from_history(
        cls,
        version: Version,
        history: Iterable[HistoryItem],
        *,
        date: datetime | None = None,
        heading_level: int = 2,
        version_prefix: str = DEFAULT_PREFIX,
        previous_release_date: datetime | None = None,
    ) -> Release:
        """Generate a release section from commits, see release_from_history()."""
        from smart_release.changelog.generate import release_from_history

        return release_from_history(
            version,
            history,
            date=date,
            heading_level=heading_level,
            version_prefix=version_prefix,
            previous_release_date=previous_release_date,
        )

    def write_to(
        self,
        out: TextSink,
        link_mode: Linkables,
        components: Components,
        *,
        capitalize_commit: bool = False,
        strict: bool = False,
    ) -> None:
        from smart_release.changelog.write import write_release

        write_release(self, out, link_mode, components, capitalize_commit=capitalize_commit, strict=strict)


Section = Union[Verbatim, Release]


@dataclass
class ChangeLog:
    """A whole changelog document."""

    sections: list[Section] = field(default_factory=list)

    @classmethod
    def from_markdown(
        cls,
        text: str,
        *,
        normalize_heading_levels: bool = True,
        on_unknown_event: UnknownEventSink | None = None,
    ) -> ChangeLog:
        """Read as much structure as possible from text.

        Everything that is not understood is kept in the sections it was found in.
        """
        from smart_release.changelog.parse import parse_changelog

        return parse_changelog(
            text,
            normalize_heading_levels=normalize_heading_levels,
            on_unknown_event=on_unknown_event,
        )

    def write_to(
        self,
        out: TextSink,
        link_mode: Linkables,
        components: Components,
        *,
        capitalize_commit: bool = False,
        strict: bool = False,
    ) -> None:
        from smart_release.changelog.write import write_changelog

        write_changelog(self, out, link_mode, components, capitalize_commit=capitalize_commit, strict=strict)

    def to_markdown(
        self,
        link_mode: Linkables | None = None,
        components: Components | None = None,
        *,
        capitalize_commit: bool = False,
        strict: bool = False,
    ) -> str:
        """Write the changelog into a string, with all components and ids as text by default."""
        from smart_release.changelog.write import render_changelog

        return render_changelog(
            self,
            link_mode,
            components,
            capitalize_commit=capitalize_commit,
            strict=strict,
        )

    def releases(self) -> list[Release]:
        return [section for section in self.sections if isinstance(section, Release)]

    def find_release(self, version: Version) -> Release | None:
        return next((release for release in self.releases() if release.name == version), None)

    def merge_generated(self, generated: Release) -> Release:
        from smart_release.changelog.generate import merge_generated

        return merge_generated(self, generated)

    def take_unreleased_as(
        self,
        version: Version,
        date: datetime | None,
        *,
        version_prefix: str = Release.DEFAULT_PREFIX,
    ) -> Release | None:
        from smart_release.changelog.generate import take_unreleased_as

        return take_unreleased_as(self, version, date, version_prefix=version_prefix)

"""Reading changelog markdown into the typed model.

Parsing happens in three steps:

1. The document is cut into sections at every release headline.
2. Release sections are sorted: unreleased first, then newest first.
3. Each release body is walked as a markdown event stream and split into
   conventional groups, report placeholders and user content.

Whatever is not recognized is sliced out of the original text by its
character span, so it comes back byte-for-byte when written again.
Parsing never fails; malformed markup degrades into user content.
"""

from __future__ import annotations

import functools
import logging
from typing import Callable

from smart_release.changelog.events import Event, EventCursor, lines_with_terminator, parse_events
from smart_release.changelog.headline import Headline, parse_headline
from smart_release.changelog.model import (
    ChangeLog,
    ClippySegment,
    ConventionalSegment,
    DetailsSegment,
    GeneratedMessage,
    Kind,
    ObjectId,
    Release,
    Section,
    Segment,
    StatisticsSegment,
    UserMessage,
    UserSegment,
    Verbatim,
    Version,
)

logger = logging.getLogger(__name__)

UnknownEventSink = Callable[[Event], None]

# Generated bodies are indented by this much below their bullet
BODY_INDENT = 3

_REPORT_SEGMENTS = (ClippySegment, StatisticsSegment, DetailsSegment)

_CODE_BLOCKS = ("fence", "code_block", "hr")


def parse_changelog(
    text: str,
    *,
    normalize_heading_levels: bool = True,
    on_unknown_event: UnknownEventSink | None = None,
) -> ChangeLog:
    """Obtain as much information as possible from text.

    Args:
        text: The changelog document
        normalize_heading_levels: Force all release headlines to the level
            of the first one
        on_unknown_event: Called with every event that could not be placed
            anywhere but in a release's unknown text

    Returns:
        The parsed changelog
    """
    sections = _segment(text, normalize_heading_levels, on_unknown_event)
    return ChangeLog(sections=sort_sections(sections))


# =============================================================================
# Segmenting
# =============================================================================


def _segment(
    text: str,
    normalize_heading_levels: bool,
    on_unknown_event: UnknownEventSink | None,
) -> list[Section]:
    sections: list[Section] = []
    body: list[str] = []
    previous: Headline | None = None
    first_level: int | None = None

    def flush_release(headline: Headline) -> None:
        level = first_level if normalize_heading_levels and first_level is not None else headline.level
        sections.append(_release_from_headline_and_body(headline, level, "".join(body), on_unknown_event))

    for line in lines_with_terminator(text):
        headline = parse_headline(line)
        if headline is None:
            body.append(line)
            continue
        if first_level is None:
            first_level = headline.level
        if previous is not None:
            flush_release(previous)
        elif body:
            sections.append(Verbatim(text="".join(body), generated=False))
        body = []
        previous = headline

    if previous is not None:
        flush_release(previous)
    else:
        sections.append(Verbatim(text="".join(body), generated=False))
    return sections


# =============================================================================
# Sorting
# =============================================================================


def sort_sections(sections: list[Section]) -> list[Section]:
    """Sort release sections while keeping prose where it belongs.

    A leading verbatim section stays first. Releases follow, unreleased
    first, then by date and version, newest first. Other verbatim sections
    go last in their original order.
    """
    pinned = 1 if sections and isinstance(sections[0], Verbatim) else 0
    non_releases = [section for section in sections if not isinstance(section, Release)]
    releases = [section for section in sections if isinstance(section, Release)]
    releases.sort(key=functools.cmp_to_key(compare_releases))
    return non_releases[:pinned] + releases + non_releases[pinned:]


def compare_releases(lhs: Release, rhs: Release) -> int:
    if lhs.name.is_unreleased or rhs.name.is_unreleased:
        return _cmp(not lhs.name.is_unreleased, not rhs.name.is_unreleased)
    if lhs.date is not None and rhs.date is not None:
        return _cmp(rhs.date, lhs.date)
    if lhs.date is not None:
        return -1
    if rhs.date is not None:
        return 1
    return _cmp(rhs.name.semantic, lhs.name.semantic)


def _cmp(lhs, rhs) -> int:
    return (lhs > rhs) - (lhs < rhs)


# =============================================================================
# Release bodies
# =============================================================================


class _BodyParser:
    """Walks the events of one release body."""

    def __init__(self, body: str, on_unknown_event: UnknownEventSink | None) -> None:
        self.body = body
        self.on_unknown_event = on_unknown_event
        self.events = EventCursor(parse_events(body))
        self.segments: list[Segment] = []
        self.removed_messages: list[ObjectId] = []
        self.unknown = ""
        self.unknown_range: tuple[int, int] | None = None

    def parse(self) -> None:
        for event in self.events:
            if event.is_html and event.content.startswith(Release.UNKNOWN_TAG_START):
                self.record_unknown_range()
                self.take_unknown_block(event)
            elif event.is_html and event.content.startswith(ConventionalSegment.REMOVED_HTML_PREFIX):
                message_id = parse_message_id(event.content)
                if message_id is not None:
                    _push_unique(self.removed_messages, message_id)
                else:
                    self.update_unknown_range(event)
            elif event.is_heading_start:
                self.record_unknown_range()
                self.parse_heading(event)
            else:
                self.update_unknown_range(event)
        self.record_unknown_range()

    # Unknown content

    def update_unknown_range(self, event: Event) -> None:
        if self.unknown_range is None:
            self.unknown_range = event.span
        elif event.end > self.unknown_range[1]:
            self.unknown_range = (self.unknown_range[0], event.end)

    def record_unknown_range(self) -> None:
        if self.unknown_range is not None:
            start, end = self.unknown_range
            self.segments.append(UserSegment(markdown=self.body[start:end]))
            self.unknown_range = None

    def take_unknown_block(self, start_tag: Event) -> None:
        """Carry the text between unknown tags over into the release's unknown text."""
        end = len(self.body)
        for event in self.events:
            if event.is_html and event.content.startswith(Release.UNKNOWN_TAG_END):
                # An end tag right below a paragraph is inline HTML spanning the whole paragraph
                tag_position = self.body.find(Release.UNKNOWN_TAG_END, event.start, event.end)
                end = tag_position if tag_position != -1 else event.start
                self.skip_events_before(event.end)
                break
        tag_position = self.body.find(Release.UNKNOWN_TAG_START, start_tag.start, start_tag.end)
        content_start = _line_end(self.body, tag_position if tag_position != -1 else start_tag.start)
        if content_start < end:
            self.unknown += self.body[content_start:end]

    def skip_events_before(self, offset: int) -> None:
        """Consume the rest of the block the end tag was found in."""
        while True:
            following = self.events.peek()
            if following is None or following.start >= offset:
                return
            self.events.next()

    def track_unknown_event(self, event: Event) -> None:
        logger.debug("Cannot handle %s event at %d..%d", event.type, event.start, event.end)
        if self.on_unknown_event is not None:
            self.on_unknown_event(event)
        if event.type in ("html", "html_inline", "code_inline", "text", "link_open", "image"):
            self.unknown += event.content

    # Headings

    def parse_heading(self, heading: Event) -> None:
        title_event = self.events.next()
        title = title_event.content if title_event is not None and title_event.type == "text" else None

        report = _report_segment(title) if title is not None else None
        if report is not None:
            self.segments.append(report)
            self.skip_to_heading_end(title_event)
            self.skip_to_next_section_title(heading.heading_level)
            return

        if title is not None and any(kind.matches_title(title) for kind in Kind):
            self.skip_to_heading_end(title_event)
            self.segments.append(self.parse_conventional(title, heading.heading_level))
            return

        # A heading we do not own starts user content which lasts until the next heading
        self.update_unknown_range(heading)
        if title_event is not None:
            self.update_unknown_range(title_event)
            if not title_event.is_heading_end:
                for event in self.events:
                    self.update_unknown_range(event)
                    if event.is_heading_end:
                        break

    def skip_to_heading_end(self, title_event: Event | None) -> None:
        if title_event is None or title_event.is_heading_end:
            return
        for event in self.events:
            if event.is_heading_end:
                break

    def skip_to_next_section_title(self, level: int) -> None:
        for event in iter(lambda: self.events.next_before_heading(level), None):
            if event.is_html and event.content.startswith(Release.UNKNOWN_TAG_START):
                self.take_unknown_block(event)

    # Conventional groups

    def parse_conventional(self, title: str, level: int) -> ConventionalSegment:
        kind = next((kind for kind in Kind if kind.matches_title(title)), None)
        if kind is None:
            raise RuntimeError(
                f"BUG: {title!r} was recognized as conventional title but matches no kind"
            )
        segment = ConventionalSegment(
            kind=kind,
            is_breaking=title.rstrip().endswith(ConventionalSegment.BREAKING_TITLE_ENCLOSED),
        )

        for event in iter(lambda: self.events.next_before_heading(level), None):
            if event.is_html:
                if event.content.startswith(Release.UNKNOWN_TAG_START):
                    self.take_unknown_block(event)
                    continue
                message_id = parse_message_id(event.content)
                if message_id is not None:
                    _push_unique(segment.removed, message_id)
                else:
                    self.track_unknown_event(event)
            elif event.is_list_start:
                self.parse_list(segment)
            elif event.nesting == 1 or event.type in _CODE_BLOCKS:
                self.take_block_as_unknown(event)
            else:
                self.track_unknown_event(event)
        return segment

    def take_block_as_unknown(self, opening: Event) -> None:
        """Move a whole block found between conventional messages into the unknown text."""
        logger.debug("Moving %s block at %d..%d into unknown content", opening.type, *opening.span)
        if self.on_unknown_event is not None:
            self.on_unknown_event(opening)
        if opening.nesting == 1:
            closing = opening.type.removesuffix("_open") + "_close"
            depth = 1
            for event in self.events:
                if event.type == opening.type:
                    depth += 1
                elif event.type == closing:
                    depth -= 1
                    if depth == 0:
                        break
        self.unknown += self.body[opening.start : opening.end]

    def parse_list(self, segment: ConventionalSegment) -> None:
        for event in self.events:
            if event.is_list_end:
                return
            if not event.is_item_start:
                self.track_unknown_event(event)
                continue

            first = self.events.next()
            if first is not None and first.is_paragraph_start:
                first = self.events.next()
            if first is not None and first.is_html:
                self.parse_id_fallback_to_user_message(segment, event, first)
            else:
                self.make_user_message_and_consume_item(segment, event, first)

    def parse_id_fallback_to_user_message(self, segment: ConventionalSegment, item: Event, tag: Event) -> None:
        message_id = parse_message_id(tag.content)
        if message_id is None:
            self.make_user_message_and_consume_item(segment, item, tag)
            return

        item_text = self.body[item.start : item.end]
        tag_text = tag.content.strip() if tag.type == "html" else tag.content
        tag_position = item_text.find(tag_text)
        start = item.start + (tag_position + len(tag_text) if tag_position != -1 else 0)
        self.consume_item_events(tag)
        if any(isinstance(message, GeneratedMessage) and message.id == message_id for message in segment.messages):
            logger.debug("Dropping duplicate message %s", message_id)
            return

        title_and_body = self.body[start : item.end].strip()
        lines = lines_with_terminator(title_and_body)
        title = lines[0].strip() if lines else ""
        body = "".join(_strip_indent(line) for line in lines[1:]) if len(lines) > 1 else None
        segment.messages.append(GeneratedMessage(id=message_id, title=title, body=body))

    def make_user_message_and_consume_item(
        self,
        segment: ConventionalSegment,
        item: Event,
        first: Event | None,
    ) -> None:
        segment.messages.append(UserMessage(markdown=self.body[item.start : item.end].rstrip()))
        self.consume_item_events(first)

    def consume_item_events(self, already_taken: Event | None) -> None:
        """Consume events until the end of the current list item, nested items included."""
        if already_taken is not None and already_taken.is_item_end:
            return
        depth = 1
        for event in self.events:
            if event.is_item_start:
                depth += 1
            elif event.is_item_end:
                depth -= 1
                if depth == 0:
                    break


def _release_from_headline_and_body(
    headline: Headline,
    level: int,
    body: str,
    on_unknown_event: UnknownEventSink | None,
) -> Release:
    parser = _BodyParser(body, on_unknown_event)
    parser.parse()
    return Release(
        name=Version(headline.version),
        heading_level=level,
        version_prefix=headline.version_prefix,
        date=headline.date,
        segments=parser.segments,
        removed_messages=parser.removed_messages,
        unknown=parser.unknown,
    )


def _report_segment(title: str) -> Segment | None:
    for segment_type in _REPORT_SEGMENTS:
        if title.startswith(segment_type.TITLE):
            return segment_type()
    return None


def parse_message_id(html: str) -> ObjectId | None:
    """Extract the commit id from a ``<csr-id-{hex}/>`` tag."""
    if not html.startswith(ConventionalSegment.REMOVED_HTML_PREFIX):
        return None
    rest = html[len(ConventionalSegment.REMOVED_HTML_PREFIX) :]
    end_of_hex = 0
    while end_of_hex < len(rest) and rest[end_of_hex] in "0123456789abcdef":
        end_of_hex += 1
    if end_of_hex == len(rest):
        return None
    return ObjectId.from_hex(rest[:end_of_hex])


def _strip_indent(line: str) -> str:
    """Remove up to BODY_INDENT leading spaces, which the writer added."""
    leading = len(line) - len(line.lstrip(" "))
    return line[min(leading, BODY_INDENT) :]


def _line_end(text: str, position: int) -> int:
    newline = text.find("\n", position)
    return len(text) if newline == -1 else newline + 1


def _push_unique(ids: list[ObjectId], message_id: ObjectId) -> None:
    if message_id not in ids:
        ids.append(message_id)

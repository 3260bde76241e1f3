"""Markdown event stream with source spans.

markdown-it-py produces a flat token list where only block tokens know
their line range. This module turns it into a list of events that all
carry a (start, end) character span over the original text, so the
parser can slice unrecognized content out of the source instead of
re-rendering it.

Span rules:
- a block spans its lines; a top-level block extends to the start of
  the next top-level block, so trailing blank lines belong to it
- closing tokens share the span of their opening token
- HTML blocks become one event per line
- inline tokens share the span of the block containing them
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from markdown_it import MarkdownIt
from markdown_it.token import Token

LINE_PATTERN = re.compile(r"[^\n]*\n|[^\n]+")

HTML = "html"
INLINE_HTML = "html_inline"

_LIST_OPEN = ("bullet_list_open", "ordered_list_open")
_LIST_CLOSE = ("bullet_list_close", "ordered_list_close")


def lines_with_terminator(text: str) -> list[str]:
    """Split text into lines, keeping each line's newline."""
    return LINE_PATTERN.findall(text)


def _markdown_parser() -> MarkdownIt:
    return MarkdownIt("commonmark").enable(["table", "strikethrough"])


@dataclass(frozen=True)
class Event:
    """One structural element of a markdown document.

    Attributes:
        type: markdown-it token type, or "html" for a line of an HTML block
        start: Offset of the first character covered by the event
        end: Offset after the last character covered by the event
        content: Text of text, code and HTML events, or the target of links
        tag: HTML tag name of the token, like "h3"
        nesting: 1 for opening, -1 for closing and 0 for self-contained events
    """

    type: str
    start: int
    end: int
    content: str = ""
    tag: str = ""
    nesting: int = 0

    @property
    def is_html(self) -> bool:
        return self.type in (HTML, INLINE_HTML)

    @property
    def is_heading_start(self) -> bool:
        return self.type == "heading_open"

    @property
    def is_heading_end(self) -> bool:
        return self.type == "heading_close"

    @property
    def heading_level(self) -> int:
        return int(self.tag[1:])

    @property
    def is_list_start(self) -> bool:
        return self.type in _LIST_OPEN

    @property
    def is_list_end(self) -> bool:
        return self.type in _LIST_CLOSE

    @property
    def is_item_start(self) -> bool:
        return self.type == "list_item_open"

    @property
    def is_item_end(self) -> bool:
        return self.type == "list_item_close"

    @property
    def is_paragraph_start(self) -> bool:
        return self.type == "paragraph_open"

    @property
    def span(self) -> tuple[int, int]:
        return self.start, self.end


class EventCursor:
    """Index based cursor over a materialized event list."""

    def __init__(self, events: list[Event]) -> None:
        self._events = events
        self._position = 0

    def peek(self) -> Event | None:
        if self._position < len(self._events):
            return self._events[self._position]
        return None

    def next(self) -> Event | None:
        event = self.peek()
        if event is not None:
            self._position += 1
        return event

    def next_before_heading(self, level: int) -> Event | None:
        """Return the next event unless it starts a heading of the given level."""
        event = self.peek()
        if event is None or (event.is_heading_start and event.heading_level == level):
            return None
        self._position += 1
        return event

    def __iter__(self):
        return self

    def __next__(self) -> Event:
        event = self.next()
        if event is None:
            raise StopIteration
        return event


def parse_events(text: str) -> list[Event]:
    """Parse markdown text into events whose spans index into text."""
    tokens = _markdown_parser().parse(text)
    line_starts = [0] + [match.end() for match in re.finditer("\n", text)]

    def offset(line: int) -> int:
        if line < len(line_starts):
            return line_starts[line]
        return len(text)

    top_level_ends = _top_level_ends(tokens, offset, len(text))

    events: list[Event] = []
    open_spans: list[tuple[int, int]] = []
    for index, token in enumerate(tokens):
        if token.nesting == -1:
            start, end = open_spans.pop() if open_spans else (len(text), len(text))
            events.append(Event(token.type, start, end, tag=token.tag, nesting=-1))
            continue

        start, end = _block_span(token, offset, open_spans, len(text))
        end = top_level_ends.get(index, end)

        if token.type == "html_block":
            events.extend(_html_lines(token, offset, end))
        elif token.type == "inline":
            events.extend(_inline_events(token, start, end))
        elif token.nesting == 1:
            open_spans.append((start, end))
            events.append(Event(token.type, start, end, tag=token.tag, nesting=1))
        else:
            events.append(Event(token.type, start, end, content=token.content, tag=token.tag))
    return events


def _block_span(token: Token, offset, open_spans: list[tuple[int, int]], text_len: int) -> tuple[int, int]:
    if token.map is not None:
        return offset(token.map[0]), offset(token.map[1])
    if open_spans:
        return open_spans[-1]
    return text_len, text_len


def _top_level_ends(tokens: list[Token], offset, text_len: int) -> dict[int, int]:
    """Compute for each top-level block token where its extended span ends."""
    starts = [
        (index, offset(token.map[0]))
        for index, token in enumerate(tokens)
        if token.level == 0 and token.nesting != -1 and token.map is not None
    ]
    ends: dict[int, int] = {}
    for position, (index, _start) in enumerate(starts):
        if position + 1 < len(starts):
            ends[index] = starts[position + 1][1]
        else:
            ends[index] = text_len
    return ends


def _html_lines(token: Token, offset, block_end: int) -> list[Event]:
    lines = lines_with_terminator(token.content)
    first_line = token.map[0] if token.map else 0
    events = []
    for number, line in enumerate(lines):
        start = offset(first_line + number)
        end = block_end if number == len(lines) - 1 else offset(first_line + number + 1)
        events.append(Event(HTML, start, end, content=line))
    return events


def _inline_events(token: Token, start: int, end: int) -> list[Event]:
    events = []
    for child in token.children or []:
        if child.type in ("link_open",):
            content = str(child.attrGet("href") or "")
        elif child.type == "image":
            content = str(child.attrGet("src") or "")
        else:
            content = child.content
        events.append(Event(child.type, start, end, content=content, tag=child.tag, nesting=child.nesting))
    return events

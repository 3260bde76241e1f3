"""Conventional commit message normalization.

Turns a raw commit message into a structured Message: title, mapped
conventional kind, body without trailers, breaking flag and the issue
references that were stripped from the title.

Example:
    >>> m = Message.from_str("feat!: hi (#123)\\n\\nthe body")
    >>> m.kind, m.title, m.breaking, m.additions
    ('feat', 'hi', True, [IssueId(id='123')])
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

# type(scope)!: description
CONVENTIONAL_PATTERN = re.compile(
    r"^(?P<type>[A-Za-z][\w-]*)"
    r"(?:\((?P<scope>[^()\n]*)\))?"
    r"(?P<breaking>!)?"
    r": (?P<description>\S.*)$"
)

# Token: value, Token #value, BREAKING CHANGE: value
FOOTER_PATTERN = re.compile(r"^(?P<token>BREAKING[ -]CHANGE|[\w-]+)(?:: | #)(?P<value>.*)$")

BREAKING_TOKENS = frozenset({"BREAKING CHANGE", "BREAKING-CHANGE"})

ISSUE_SEPARATOR = "(#"

# Code point ranges treated as emoji when emoji are not allowed in titles
EMOJI_PATTERN = re.compile(
    "["
    "\U0001f000-\U0001faff"
    "\U00002600-\U000027bf"
    "\U00002b00-\U00002bff"
    "\U0000fe0f"
    "\U0000200d"
    "]"
)


@dataclass(frozen=True)
class IssueId:
    """The plain issue id, like "123", taken from a "(#123)" reference."""

    id: str


@dataclass
class Message:
    """A commit message broken down into its changelog-relevant parts.

    Attributes:
        title: Summary line with issue references removed
        kind: Mapped conventional type or None for free-form messages
        body: Message body without footers or trailers
        breaking: Whether the commit announces a breaking change
        breaking_description: Text of a BREAKING CHANGE footer, if it differs from the title
        additions: Issue references stripped from the title
    """

    title: str
    kind: str | None = None
    body: str | None = None
    breaking: bool = False
    breaking_description: str | None = None
    additions: list[IssueId] = field(default_factory=list)

    @classmethod
    def from_str(cls, raw: str, *, allow_emoji: bool = False) -> Message:
        """Parse a raw commit message.

        Args:
            raw: Full commit message as stored in git
            allow_emoji: Replace emoji with spaces before parsing, so that
                messages like "🔧 refactor: ..." are still recognized

        Returns:
            Normalized message
        """
        if allow_emoji:
            raw = EMOJI_PATTERN.sub(" ", raw).lstrip()
        return _get_message(raw)


def _get_message(raw: str) -> Message:
    paragraphs = _paragraphs(raw)
    if not paragraphs:
        return Message(title="")

    header = paragraphs[0]
    body_paragraphs, footers = _split_footers(paragraphs[1:])
    body = "\n\n".join(body_paragraphs) or None

    match = CONVENTIONAL_PATTERN.match(header) if "\n" not in header else None
    if match is None:
        title = " ".join(line.strip() for line in header.splitlines())
        kind = None
        breaking = False
        breaking_description = None
    else:
        title = match.group("description").strip()
        kind = as_kind(match.group("type"))
        breaking_footer = next(
            (value for token, value in footers if token in BREAKING_TOKENS),
            None,
        )
        breaking = bool(match.group("breaking")) or breaking_footer is not None
        breaking_description = breaking_footer if breaking_footer != title else None

    title, additions = strip_additions(title)
    return Message(
        title=title,
        kind=kind,
        body=body,
        breaking=breaking,
        breaking_description=breaking_description,
        additions=additions,
    )


def _paragraphs(raw: str) -> list[str]:
    paragraphs: list[str] = []
    current: list[str] = []
    for line in raw.strip().splitlines():
        if line.strip():
            current.append(line.rstrip())
        elif current:
            paragraphs.append("\n".join(current))
            current = []
    if current:
        paragraphs.append("\n".join(current))
    return paragraphs


def _split_footers(paragraphs: list[str]) -> tuple[list[str], list[tuple[str, str]]]:
    """Separate body paragraphs from the trailing footer block.

    The footer block starts at the first paragraph whose first line looks
    like a trailer; everything after it is considered footer as well.
    """
    for index, paragraph in enumerate(paragraphs):
        if FOOTER_PATTERN.match(paragraph.splitlines()[0]):
            footers: list[tuple[str, str]] = []
            for footer_paragraph in paragraphs[index:]:
                for line in footer_paragraph.splitlines():
                    match = FOOTER_PATTERN.match(line)
                    if match:
                        footers.append((match.group("token"), match.group("value").strip()))
                    elif footers:
                        token, value = footers[-1]
                        footers[-1] = (token, f"{value}\n{line.strip()}")
            return paragraphs[:index], footers
    return paragraphs, []


def strip_additions(title: str) -> tuple[str, list[IssueId]]:
    """Remove all "(#ID)" references from a title.

    Whitespace around a removed reference collapses into a single space
    if there was text on both sides, and disappears otherwise.

    Args:
        title: Title to clean

    Returns:
        The cleaned title and the issue ids in order of appearance
    """
    additions: list[IssueId] = []
    while True:
        start = title.find(ISSUE_SEPARATOR)
        if start == -1:
            break
        id_start = start + len(ISSUE_SEPARATOR)
        end = title.find(")", id_start)
        if end == -1:
            break
        additions.append(IssueId(title[id_start:end]))
        title = _cut(title, start, end + 1)
    return title, additions


def _cut(text: str, start: int, end: int) -> str:
    left = text[:start].rstrip()
    new_start = len(left) if left else start
    right = text[end:].lstrip()
    new_end = len(text) - len(right) if right else end
    joiner = " " if new_start != start and new_end != end else ""
    return f"{text[:new_start]}{joiner}{text[new_end:]}"


def as_kind(conventional_type: str | None) -> str | None:
    """Map a conventional commit type onto the kinds used for changelog grouping."""
    if conventional_type is None:
        return None
    return {
        "feat": "feat",
        "add": "feat",
        "added": "feat",
        "fix": "fix",
        "revert": "revert",
        "remove": "revert",
        "docs": "docs",
        "style": "style",
        "refactor": "refactor",
        "change": "change",
        "perf": "perf",
        "test": "test",
        "chore": "chore",
    }.get(conventional_type.lower(), "other")

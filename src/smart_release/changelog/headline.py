"""Release headline recognition.

A headline is a single line like ``## v1.2.3 (2024-01-31)`` or
``### Unreleased``. Recognition is all-or-nothing: a line either matches
the whole grammar or it is ordinary text.

Grammar::

    headline := "#"* ws* ( "v"? semver | "unreleased" ) ( ws* "(" YYYY "-" MM "-" DD ")" )? ws*
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime

import semver

HEADLINE_PATTERN = re.compile(
    r"""
    ^(?P<hashes>\#*)
    \s*
    (?:
        (?P<unreleased>[Uu][Nn][Rr][Ee][Ll][Ee][Aa][Ss][Ee][Dd])(?=\s|\(|$)
      | (?P<prefix>v)?(?P<version>[^\sv]\S*)
    )
    (?:\s*\((?P<year>[0-9]{4})-(?P<month>[0-9]{2})-(?P<day>[0-9]{2})\))?
    \s*$
    """,
    re.VERBOSE,
)


@dataclass(frozen=True)
class Headline:
    """A recognized release headline.

    Attributes:
        level: Number of leading "#" characters
        version_prefix: "v" if the version was written with it, else ""
        version: Parsed version, None for an unreleased section
        date: Release date at midnight UTC, if present
    """

    level: int
    version_prefix: str
    version: semver.Version | None
    date: datetime | None


def parse_headline(line: str) -> Headline | None:
    """Recognize a release headline.

    Args:
        line: A single line, with or without its terminator

    Returns:
        The headline, or None if any part of the line does not match
    """
    match = HEADLINE_PATTERN.match(line)
    if match is None:
        return None

    if match.group("unreleased"):
        version = None
        prefix = ""
    else:
        if not match.group("version").isascii():
            return None
        try:
            version = semver.Version.parse(match.group("version"))
        except ValueError:
            return None
        prefix = match.group("prefix") or ""

    date = None
    if match.group("year"):
        try:
            date = datetime(
                int(match.group("year")),
                int(match.group("month")),
                int(match.group("day")),
                tzinfo=UTC,
            )
        except ValueError:
            return None

    return Headline(
        level=len(match.group("hashes")),
        version_prefix=prefix,
        version=version,
        date=date,
    )

"""Tests for commit message normalization."""

from __future__ import annotations

import pytest

from smart_release.core.message import IssueId, Message, as_kind, strip_additions


class TestMessageFromStr:
    """Tests for Message.from_str()."""

    def test_conventional_with_breaking_marker_and_issue(self):
        """Breaking marker, issue reference and body are separated."""
        m = Message.from_str("feat!: hi (#123)\n\nthe body")

        assert m.kind == "feat"
        assert m.title == "hi"
        assert m.breaking is True
        assert m.breaking_description is None
        assert m.body == "the body"
        assert m.additions == [IssueId("123")]

    def test_scope_is_dropped_from_title(self):
        """Scope does not end up in the title."""
        m = Message.from_str("fix(api): handle null response")

        assert m.kind == "fix"
        assert m.title == "handle null response"
        assert m.breaking is False
        assert m.body is None

    def test_non_conventional_multi_line_title(self):
        """Lines of a non-conventional header are joined with spaces."""
        m = Message.from_str("Hello\nworld\n\nbody")

        assert m.kind is None
        assert m.title == "Hello world"
        assert m.body == "body"

    def test_multi_line_header_is_not_conventional(self):
        """A header that spans lines is not parsed as conventional."""
        m = Message.from_str("feat: first\nsecond")

        assert m.kind is None
        assert m.title == "feat: first second"

    def test_trailers_are_removed_from_body(self):
        """Footer paragraphs do not become part of the body."""
        m = Message.from_str("fix: a thing\n\nbody text\n\nSigned-off-by: Me <me@example.com>")

        assert m.body == "body text"

    def test_message_with_only_trailers_has_no_body(self):
        """A message with nothing but trailers has no body."""
        m = Message.from_str("fix: a thing\n\nCo-authored-by: Someone <someone@example.com>")

        assert m.body is None

    def test_breaking_change_footer(self):
        """BREAKING CHANGE footer makes the message breaking and describes it."""
        m = Message.from_str("feat: new api\n\nBREAKING CHANGE: old api removed")

        assert m.breaking is True
        assert m.breaking_description == "old api removed"
        assert m.body is None

    def test_breaking_footer_equal_to_title_is_not_repeated(self):
        """A breaking description identical to the title is dropped."""
        m = Message.from_str("feat: new api\n\nBREAKING-CHANGE: new api")

        assert m.breaking is True
        assert m.breaking_description is None

    def test_paragraphs_of_body_are_kept(self):
        """The body keeps its paragraph structure."""
        m = Message.from_str("fix: x\n\nfirst paragraph\nsecond line\n\nsecond paragraph")

        assert m.body == "first paragraph\nsecond line\n\nsecond paragraph"

    def test_emoji_are_stripped_when_allowed(self):
        """Leading emoji do not prevent conventional parsing."""
        m = Message.from_str("🔧 refactor: tidy up", allow_emoji=True)

        assert m.kind == "refactor"
        assert m.title == "tidy up"

    def test_emoji_are_kept_by_default(self):
        """Without allow_emoji the emoji is part of a non-conventional title."""
        m = Message.from_str("🔧 refactor: tidy up")

        assert m.kind is None
        assert m.title == "🔧 refactor: tidy up"

    def test_empty_message(self):
        """An empty message yields an empty title."""
        m = Message.from_str("")

        assert m.title == ""
        assert m.kind is None
        assert m.body is None


class TestStripAdditions:
    """Tests for strip_additions()."""

    def test_all_references_are_removed(self):
        """References anywhere in the title are removed, whitespace collapses."""
        title, additions = strip_additions("(#other) foo (#123) hello (#42)")

        assert title == "foo hello"
        assert additions == [IssueId("other"), IssueId("123"), IssueId("42")]

    def test_trailing_reference(self):
        """A trailing reference leaves no trailing space."""
        assert strip_additions("fix the thing (#7)") == ("fix the thing", [IssueId("7")])

    def test_unclosed_reference_is_kept(self):
        """Text without closing parenthesis is left alone."""
        assert strip_additions("broken (#12") == ("broken (#12", [])

    def test_no_references(self):
        """Titles without references pass through."""
        assert strip_additions("plain") == ("plain", [])


class TestAsKind:
    """Tests for as_kind()."""

    @pytest.mark.parametrize(
        ("conventional_type", "expected"),
        [
            ("feat", "feat"),
            ("add", "feat"),
            ("added", "feat"),
            ("fix", "fix"),
            ("remove", "revert"),
            ("Revert", "revert"),
            ("docs", "docs"),
            ("chore", "chore"),
            ("test", "test"),
            ("build", "other"),
        ],
    )
    def test_mapping(self, conventional_type: str, expected: str):
        """Conventional types map onto changelog kinds."""
        assert as_kind(conventional_type) == expected

    def test_none(self):
        """No type maps to no kind."""
        assert as_kind(None) is None

"""Tests for the changelog model types."""

from __future__ import annotations

import pytest

from smart_release.changelog.model import UNRELEASED, Kind, ObjectId, Version


class TestObjectId:
    """Tests for ObjectId."""

    def test_valid(self):
        """Full lowercase hex ids are accepted."""
        object_id = ObjectId("0123456789abcdef0123456789abcdef01234567")

        assert object_id.to_hex_with_len(7) == "0123456"

    @pytest.mark.parametrize(
        "value",
        ["0123456", "0123456789ABCDEF0123456789ABCDEF01234567", "g" * 40, ""],
    )
    def test_invalid(self, value: str):
        """Short, upper case or non-hex ids are rejected."""
        with pytest.raises(ValueError):
            ObjectId(value)
        assert ObjectId.from_hex(value) is None


class TestVersion:
    """Tests for Version."""

    def test_to_string(self):
        """Versions are printed with the given prefix."""
        version = Version.parse("1.2.3-alpha.1")

        assert version.to_string("v") == "v1.2.3-alpha.1"
        assert str(version) == "1.2.3-alpha.1"
        assert not version.is_unreleased

    def test_unreleased(self):
        """Unreleased ignores the prefix."""
        assert UNRELEASED.is_unreleased
        assert UNRELEASED.to_string("v") == "Unreleased"

    def test_equality(self):
        """Versions compare by value."""
        assert Version.parse("1.0.0") == Version.parse("1.0.0")
        assert Version.parse("1.0.0") != UNRELEASED


class TestKind:
    """Tests for Kind."""

    def test_matches_title_prefix(self):
        """Headings match case-insensitively by prefix."""
        assert Kind.FIX.matches_title("bug fixes (BREAKING)")
        assert Kind.FEAT.matches_title("New Features")
        assert not Kind.FEAT.matches_title("Features")

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("feat", Kind.FEAT), ("added", Kind.ADD), ("fix", Kind.FIX), ("chore", None)],
    )
    def test_from_str(self, value: str, expected: Kind | None):
        """Message kinds map onto groups."""
        assert Kind.from_str(value) is expected

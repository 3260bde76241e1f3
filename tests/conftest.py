"""Shared fixtures for smart-release tests."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from smart_release.changelog.model import ObjectId
from smart_release.vcs.git import Commit

if TYPE_CHECKING:
    from pathlib import Path


def id_from_number(number: int) -> ObjectId:
    """Object id like 000...0042 for readable fixtures."""
    return ObjectId(f"{number:040d}")


@pytest.fixture
def temp_project_with_pyproject(tmp_path: Path) -> Path:
    """Create a project directory with a configured pyproject.toml."""
    (tmp_path / "pyproject.toml").write_text(
        """\
[project]
name = "test-project"
version = "1.0.0"

[tool.smart-release]
default_branch = "main"
tag_prefix = "v"

[tool.smart-release.changelog]
path = "CHANGELOG.md"
repository_url = "https://github.com/user/repo.git"

[tool.smart-release.git]
skip_push = true
"""
    )
    return tmp_path


@pytest.fixture
def make_commit():
    """Factory for Commit objects with numbered ids."""

    def factory(number: int, message: str, *, day: int = 1) -> Commit:
        return Commit(
            sha=str(id_from_number(number)),
            message=message,
            author_name="Test",
            author_email="test@test.com",
            date=datetime(2024, 1, day, tzinfo=UTC),
        )

    return factory

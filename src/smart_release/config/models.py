"""Configuration models.

All settings live under ``[tool.smart-release]`` in pyproject.toml and
are validated with pydantic. Every field has a default, so a project
without any configuration works out of the box.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChangelogConfig(BaseModel):
    """How the changelog is read and written."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    path: Path = Field(default=Path("CHANGELOG.md"), description="Changelog file, relative to the project")
    heading_level: int = Field(default=2, ge=1, le=5, description="Level of release headlines in new changelogs")
    capitalize_commit: bool = Field(default=False, description="Upper-case the first letter of generated titles")
    allow_emoji: bool = Field(default=False, description="Strip emoji before parsing commit messages")
    statistics: bool = Field(default=True, description="Write the commit statistics report")
    clippy: bool = Field(default=True, description="Write the thanks clippy report")
    details: bool = Field(default=True, description="Write the commit details report")
    repository_url: str | None = Field(
        default=None,
        description="Repository URL; commit ids and issues become links if set",
    )
    normalize_heading_levels: bool = Field(
        default=True,
        description="Force all release headlines to the level of the first one",
    )


class GitConfig(BaseModel):
    """What happens in git after the changelog was written."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    signoff: bool = Field(default=False, description="Add a Signed-off-by trailer to the release commit")
    skip_tag: bool = Field(default=False, description="Do not create a tag")
    skip_push: bool = Field(default=False, description="Do not push HEAD and tags")
    annotated_tags: bool = Field(default=True, description="Use release notes as tag message")


class SmartReleaseConfig(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    default_branch: str = Field(default="main", description="Branch releases are made from")
    allow_dirty: bool = Field(default=False, description="Allow releasing with uncommitted changes")
    tag_prefix: str = Field(default="v", description="Prefix of version tags")

    changelog: ChangelogConfig = Field(default_factory=ChangelogConfig)
    git: GitConfig = Field(default_factory=GitConfig)

    @field_validator("tag_prefix")
    @classmethod
    def validate_tag_prefix(cls, value: str) -> str:
        if any(character.isspace() for character in value):
            raise ValueError("tag_prefix must not contain whitespace")
        return value

    @property
    def tag_pattern(self) -> str:
        return f"{self.tag_prefix}*"

    @property
    def changelog_version_prefix(self) -> str:
        """Prefix of versions in changelog headlines, which only know "v" or nothing."""
        return "v" if self.tag_prefix == "v" else ""

    def tag_name(self, version: str) -> str:
        return f"{self.tag_prefix}{version}"

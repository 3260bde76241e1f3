"""Exception hierarchy for smart-release.

All errors raised on purpose derive from SmartReleaseError so the CLI
can report them uniformly. Parsing a changelog never raises: content
that cannot be understood is kept as-is instead.
"""

from __future__ import annotations


class SmartReleaseError(Exception):
    """Base class for all smart-release errors.

    Args:
        message: Human readable description
        hint: Optional suggestion shown below the message
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message


# Changelog


class ChangelogError(SmartReleaseError):
    """Raised when a changelog cannot be produced or updated."""


class ChangelogWriteError(ChangelogError):
    """Raised by strict writing when the output would not parse back."""


# Git


class GitError(SmartReleaseError):
    """Raised when a git invocation fails.

    Args:
        message: Error description
        stderr: Captured standard error of the failing command
    """

    def __init__(
        self,
        message: str,
        *,
        stderr: str | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.stderr = stderr

    def __str__(self) -> str:
        text = super().__str__()
        if self.stderr:
            return f"{text}\n{self.stderr.strip()}"
        return text


# Configuration


class ConfigError(SmartReleaseError):
    """Base class for configuration problems."""


class ConfigNotFoundError(ConfigError):
    """Raised when no pyproject.toml can be located."""


class ConfigValidationError(ConfigError):
    """Raised when configuration values are invalid or missing."""

"""Configuration management for smart-release."""

from __future__ import annotations

from smart_release.config.loader import load_config
from smart_release.config.models import ChangelogConfig, GitConfig, SmartReleaseConfig

__all__ = [
    "ChangelogConfig",
    "GitConfig",
    "SmartReleaseConfig",
    "load_config",
]

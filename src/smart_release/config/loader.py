"""Loading configuration from pyproject.toml."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from smart_release.config.models import SmartReleaseConfig
from smart_release.exceptions import ConfigNotFoundError, ConfigValidationError

logger = logging.getLogger(__name__)

TOOL_NAME = "smart-release"


def find_pyproject_toml(start: Path | None = None) -> Path:
    """Find pyproject.toml in start or any of its parents.

    Args:
        start: Directory to start searching from, the current directory by default

    Returns:
        Path to the file

    Raises:
        ConfigNotFoundError: If no pyproject.toml exists up to the filesystem root
    """
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / "pyproject.toml"
        if candidate.is_file():
            return candidate
    raise ConfigNotFoundError(
        f"No pyproject.toml found in {current} or any parent directory",
        hint="Run the command inside a Python project.",
    )


def load_pyproject_toml(path: Path) -> dict[str, Any]:
    """Read and parse a pyproject.toml file.

    Raises:
        ConfigNotFoundError: If the file does not exist
        ConfigValidationError: If the file is not valid TOML
    """
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigNotFoundError(f"File not found: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigValidationError(f"Invalid TOML in {path}: {e}") from e


def extract_smart_release_config(pyproject: dict[str, Any]) -> dict[str, Any]:
    """Return the ``[tool.smart-release]`` table, or an empty one."""
    return pyproject.get("tool", {}).get(TOOL_NAME, {})


def load_config(path: Path | None = None) -> SmartReleaseConfig:
    """Load the configuration of the project at path.

    Args:
        path: Project directory or pyproject.toml file

    Returns:
        Validated configuration, with defaults for everything not set

    Raises:
        ConfigNotFoundError: If there is no pyproject.toml
        ConfigValidationError: If the configuration is invalid
    """
    if path is not None and path.is_file():
        pyproject_path = path
    else:
        pyproject_path = find_pyproject_toml(path)

    data = extract_smart_release_config(load_pyproject_toml(pyproject_path))
    logger.debug("Loaded [tool.%s] from %s: %s", TOOL_NAME, pyproject_path, data)
    try:
        return SmartReleaseConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigValidationError(
            f"Invalid [tool.{TOOL_NAME}] configuration in {pyproject_path}:\n{e}",
        ) from e


def get_project_version(path: Path | None = None) -> str:
    """Read ``[project].version``.

    Raises:
        ConfigValidationError: If the version is missing or dynamic
    """
    project = load_pyproject_toml(find_pyproject_toml(path)).get("project", {})
    version = project.get("version")
    if not version:
        raise ConfigValidationError(
            "No [project].version in pyproject.toml",
            hint="Pass the version to release explicitly.",
        )
    return str(version)

"""Command line entry point."""

from __future__ import annotations

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from smart_release import __version__

console = Console()
err_console = Console(stderr=True)


def configure_logging(verbose: bool) -> None:
    """Route log records through rich; --verbose shows git invocations and parser details."""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, rich_tracebacks=True)],
        force=True,
    )
    logging.getLogger("smart_release").setLevel(logging.DEBUG if verbose else logging.INFO)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.version_option(version=__version__, prog_name="smart-release")
def cli(verbose: bool) -> None:
    """Keep a changelog in sync with git history and cut releases from it."""
    configure_logging(verbose)


@cli.command("changelog")
@click.option(
    "--path",
    type=click.Path(path_type=Path, exists=True, file_okay=False),
    help="Project directory, the current directory by default.",
)
@click.option("--execute", is_flag=True, help="Write the changelog instead of previewing it.")
def changelog_command(path: Path | None, execute: bool) -> None:
    """Add commits since the last release to the Unreleased section."""
    from smart_release.cli.commands.changelog import run_changelog

    run_changelog(path, execute, console, err_console)


@cli.command("release")
@click.argument("version", required=False)
@click.option(
    "--path",
    type=click.Path(path_type=Path, exists=True, file_okay=False),
    help="Project directory, the current directory by default.",
)
@click.option("--execute", is_flag=True, help="Apply changes instead of showing what would happen.")
@click.option("--skip-tag", is_flag=True, help="Do not create a version tag.")
@click.option("--skip-push", is_flag=True, help="Do not push HEAD and tags.")
def release_command(
    version: str | None,
    path: Path | None,
    execute: bool,
    skip_tag: bool,
    skip_push: bool,
) -> None:
    """Turn Unreleased into VERSION, then commit, tag and push.

    VERSION defaults to the version in pyproject.toml.
    """
    from smart_release.cli.commands.release import run_release

    run_release(
        path,
        version,
        execute,
        console,
        err_console,
        skip_tag=skip_tag,
        skip_push=skip_push,
    )


if __name__ == "__main__":
    cli()

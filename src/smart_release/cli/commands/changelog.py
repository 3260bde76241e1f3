"""Implementation of the 'changelog' command.

The changelog command adds commits made since the last release tag to
the Unreleased section of the changelog, leaving everything else as it
was written.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from rich.markdown import Markdown
from rich.panel import Panel

from smart_release.changelog.generate import history_from_commits
from smart_release.changelog.model import UNRELEASED, ChangeLog, Release, Verbatim
from smart_release.changelog.write import AS_TEXT, Components, Linkables
from smart_release.config import load_config
from smart_release.exceptions import SmartReleaseError
from smart_release.vcs import GitRepository

if TYPE_CHECKING:
    from datetime import datetime

    from rich.console import Console

    from smart_release.config.models import ChangelogConfig, SmartReleaseConfig

PREAMBLE = """\
# Changelog

All notable changes to this project will be documented in this file.

The format is based on [Keep a Changelog](https://keepachangelog.com/en/1.0.0/),
and this project adheres to [Semantic Versioning](https://semver.org/spec/v2.0.0.html).

"""


@dataclass
class ChangelogUpdate:
    """A changelog with the latest history merged in, not yet written.

    Attributes:
        path: Location of the changelog file
        original: Text of the file before the update, empty for a new file
        log: Updated changelog
        release: The Unreleased section holding the new commits
        commit_count: Amount of commits since the last release
    """

    path: Path
    original: str
    log: ChangeLog
    release: Release
    commit_count: int

    @property
    def is_new(self) -> bool:
        return not self.original


def components_for(config: ChangelogConfig) -> Components:
    """Report blocks to write, as configured."""
    components = Components.all()
    if not config.statistics:
        components &= ~Components.STATISTICS
    if not config.clippy:
        components &= ~Components.CLIPPY
    if not config.details:
        components &= ~Components.DETAILS
    return components


def linkables_for(config: ChangelogConfig) -> Linkables:
    if config.repository_url:
        return Linkables.as_links(config.repository_url)
    return AS_TEXT


def render(update: ChangelogUpdate, config: ChangelogConfig) -> str:
    return update.log.to_markdown(
        linkables_for(config),
        components_for(config),
        capitalize_commit=config.capitalize_commit,
    )


def render_release(release: Release, config: ChangelogConfig, components: Components | None = None) -> str:
    """Render a single release section."""
    return ChangeLog(sections=[release]).to_markdown(
        linkables_for(config),
        components_for(config) if components is None else components,
        capitalize_commit=config.capitalize_commit,
    )


def prepare_changelog_update(project_path: Path, config: SmartReleaseConfig, repo: GitRepository) -> ChangelogUpdate:
    """Read the changelog and merge the commits since the last release into it.

    Raises:
        SmartReleaseError: If git or the file system fail
    """
    changelog_path = project_path / config.changelog.path
    original = changelog_path.read_text(encoding="utf-8") if changelog_path.exists() else ""
    log = ChangeLog.from_markdown(original, normalize_heading_levels=config.changelog.normalize_heading_levels)

    latest_tag = repo.get_latest_tag(config.tag_pattern)
    commits = repo.get_commits_since_tag(latest_tag)
    history = history_from_commits(commits, allow_emoji=config.changelog.allow_emoji)

    releases = log.releases()
    generated = Release.from_history(
        UNRELEASED,
        history,
        heading_level=releases[0].heading_level if releases else config.changelog.heading_level,
        previous_release_date=_latest_release_date(log),
    )
    if not original.strip():
        log.sections = [Verbatim(text=PREAMBLE, generated=True)]

    release = log.merge_generated(generated)
    return ChangelogUpdate(
        path=changelog_path,
        original=original,
        log=log,
        release=release,
        commit_count=len(commits),
    )


def _latest_release_date(log: ChangeLog) -> datetime | None:
    dates = [release.date for release in log.releases() if release.date is not None]
    return max(dates) if dates else None


def run_changelog(
    path: Path | None,
    execute: bool,
    console: Console,
    err_console: Console,
) -> None:
    """Run the changelog command.

    Args:
        path: Optional path to project directory
        execute: Whether to actually write the changelog
        console: Console for standard output
        err_console: Console for error output
    """
    project_path = Path(path) if path else Path.cwd()

    try:
        config = load_config(project_path)
    except SmartReleaseError as e:
        err_console.print(f"[red]Error loading config:[/] {e}")
        raise SystemExit(1) from e

    try:
        repo = GitRepository(project_path)
        update = prepare_changelog_update(project_path, config, repo)
    except SmartReleaseError as e:
        err_console.print(f"[red]Error:[/] {e}")
        raise SystemExit(1) from e

    if update.commit_count == 0:
        console.print("[yellow]No commits found since last release. Nothing to do.[/]")
        return

    text = render(update, config.changelog)
    if text == update.original:
        console.print(f"[green]{config.changelog.path} is up to date.[/]")
        return

    if not execute:
        mode = "create" if update.is_new else "update"
        console.print(f"\n[yellow]DRY-RUN[/] - Would {mode} [cyan]{config.changelog.path}[/]\n")
        console.print(
            Panel(
                Markdown(render_release(update.release, config.changelog)),
                title="[yellow]Dry Run Preview[/]",
                border_style="yellow",
            )
        )
        console.print("\n[dim]Run with [cyan]--execute[/] to apply these changes.[/]")
        return

    try:
        update.path.parent.mkdir(parents=True, exist_ok=True)
        update.path.write_text(text, encoding="utf-8")
    except OSError as e:
        err_console.print(f"[red]Error writing {update.path}:[/] {e}")
        raise SystemExit(1) from e
    console.print(f"  [green]✓[/] Updated {config.changelog.path}")

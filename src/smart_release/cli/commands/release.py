"""Implementation of the 'release' command.

The release command turns the Unreleased section into the section of
the new version, commits the changelog, tags the commit and pushes.
Without --execute every git step only logs what it would do.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from rich.panel import Panel

from smart_release.changelog.model import Version
from smart_release.changelog.write import Components
from smart_release.cli.commands.changelog import prepare_changelog_update, render, render_release
from smart_release.config import load_config
from smart_release.exceptions import SmartReleaseError
from smart_release.vcs import GitRepository

if TYPE_CHECKING:
    from rich.console import Console

# Tag messages are plain release notes: no headline, markers or details tags
TAG_MESSAGE_COMPONENTS = Components.STATISTICS | Components.CLIPPY | Components.DETAILS


def run_release(
    path: Path | None,
    version: str | None,
    execute: bool,
    console: Console,
    err_console: Console,
    *,
    skip_tag: bool = False,
    skip_push: bool = False,
) -> None:
    """Run the release command.

    Args:
        path: Optional path to project directory
        version: Version to release; read from pyproject.toml if None
        execute: Whether to actually apply changes
        console: Console for standard output
        err_console: Console for error output
        skip_tag: Do not create a tag, in addition to the configured setting
        skip_push: Do not push, in addition to the configured setting
    """
    project_path = Path(path) if path else Path.cwd()

    try:
        config = load_config(project_path)
    except SmartReleaseError as e:
        err_console.print(f"[red]Error loading config:[/] {e}")
        raise SystemExit(1) from e

    if version is None:
        from smart_release.config.loader import get_project_version

        try:
            version = get_project_version(project_path)
        except SmartReleaseError as e:
            err_console.print(f"[red]Error getting version:[/] {e}")
            raise SystemExit(1) from e

    try:
        new_version = Version.parse(version.removeprefix(config.tag_prefix))
    except ValueError as e:
        err_console.print(f"[red]Invalid version format:[/] {e}")
        raise SystemExit(1) from e

    try:
        repo = GitRepository(project_path)
        if not config.allow_dirty and repo.is_dirty():
            err_console.print(
                "[red]Error:[/] Repository has uncommitted changes.\n"
                "Commit or stash them, or use [cyan]allow_dirty = true[/] in config."
            )
            raise SystemExit(1)
        branch = repo.current_branch()
        if branch != config.default_branch:
            checked_out = f"[cyan]{branch}[/]" if branch else "a detached HEAD"
            err_console.print(
                f"[red]Error:[/] Releases are made from [cyan]{config.default_branch}[/], "
                f"but {checked_out} is checked out."
            )
            raise SystemExit(1)
        update = prepare_changelog_update(project_path, config, repo)
        if update.log.find_release(new_version) is not None and update.commit_count == 0:
            console.print(f"[yellow]{new_version} is already in the changelog and there are no new commits.[/]")
            return
        release = update.log.take_unreleased_as(
            new_version,
            datetime.now(UTC),
            version_prefix=config.changelog_version_prefix,
        )
    except SmartReleaseError as e:
        err_console.print(f"[red]Error:[/] {e}")
        raise SystemExit(1) from e

    tag_name = config.tag_name(str(new_version))
    skip_tag = skip_tag or config.git.skip_tag
    skip_push = skip_push or config.git.skip_push
    dry_run = not execute
    tag_message = None
    if release is not None and config.git.annotated_tags:
        tag_message = render_release(release, config.changelog, TAG_MESSAGE_COMPONENTS).strip() or None

    mode_str = "[green]EXECUTING[/]" if execute else "[yellow]DRY-RUN[/]"
    console.print(f"\n{mode_str} - Releasing [green]{tag_name}[/]\n")

    if dry_run:
        steps = [f"  • Write {new_version} section to [cyan]{config.changelog.path}[/]"]
        steps.append(f"  • Commit with message [cyan]'chore(release): {tag_name}'[/]")
        if not skip_tag:
            steps.append(f"  • Create {'annotated ' if tag_message else ''}tag [cyan]{tag_name}[/]")
        if not skip_push and not skip_tag:
            steps.append("  • Push HEAD and tag")
        console.print(
            Panel(
                "[bold]Would make the following changes:[/]\n\n" + "\n".join(steps),
                title="[yellow]Dry Run Preview[/]",
                border_style="yellow",
            )
        )
    else:
        try:
            update.path.parent.mkdir(parents=True, exist_ok=True)
            update.path.write_text(render(update, config.changelog), encoding="utf-8")
        except OSError as e:
            err_console.print(f"[red]Error writing {update.path}:[/] {e}")
            raise SystemExit(1) from e
        console.print(f"  [green]✓[/] Updated {config.changelog.path}")

    try:
        commit_id = repo.commit_changes(
            f"chore(release): {tag_name}",
            dry_run=dry_run,
            empty_commit_possible=False,
            signoff=config.git.signoff,
            changelog_paths=[update.path],
        )
        reference = repo.create_version_tag(
            tag_name,
            commit_id,
            message=tag_message,
            dry_run=dry_run,
            skip_tag=skip_tag,
        )
        repo.push_tags_and_head(
            [reference] if reference else [],
            dry_run=dry_run,
            skip_push=skip_push,
        )
    except SmartReleaseError as e:
        err_console.print(f"[red]Error:[/] {e}")
        raise SystemExit(1) from e

    if dry_run:
        console.print("\n[dim]Run with [cyan]--execute[/] to apply these changes.[/]")
        return

    console.print(
        Panel(
            f"[green]Successfully released {tag_name}![/]",
            title="[green]Release Complete[/]",
            border_style="green",
        )
    )

"""Command-line interface for sandbox-sync.

Meant to be called from cron, e.g.:

    0 * * * * cd /srv/team-repo && sandbox-sync run --quiet

This is the only place ambient state (hostname, current directory) is read;
everything below it receives explicit configuration.
"""

import logging
import sys
from pathlib import Path

import click

from . import __version__
from .config import ConfigLoader, ReconcilerConfig
from .errors import ConfigurationError
from .git_utils import get_repo_root
from .reconciler import SandboxReconciler
from .workspace import detect_workspace_id


def setup_logging(level: str = "INFO", fmt: str | None = None) -> None:
    """Configure logging.

    Args:
        level: Logging level name
        fmt: Log record format

    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=fmt or "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def _load_config(
    repo: Path | None,
    workspace: str | None,
    config_file: Path | None,
    overrides: dict | None = None,
) -> ReconcilerConfig:
    """Resolve ambient defaults and build the configuration.

    Raises:
        click.ClickException: If the repository, workspace or config is invalid

    """
    try:
        repo_root = get_repo_root(repo)
        workspace_id = workspace or detect_workspace_id()
        return ConfigLoader(repo_root).load(
            workspace=workspace_id,
            config_file=config_file,
            overrides=overrides,
        )
    except (ConfigurationError, RuntimeError) as e:
        raise click.ClickException(str(e)) from e


repo_option = click.option(
    "--repo",
    type=click.Path(path_type=Path, file_okay=False, exists=True),
    help="Path inside the shared repository (default: current directory).",
)
workspace_option = click.option(
    "--workspace",
    "-w",
    help="Workspace identifier (default: this machine's hostname).",
)
config_option = click.option(
    "--config",
    "config_file",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Extra YAML config file, applied over .sandbox-sync.yaml.",
)


@click.group()
@click.version_option(version=__version__, prog_name="sandbox-sync")
def cli() -> None:
    """sandbox-sync - hourly auto-commit for per-workspace sandbox folders.

    Keeps sandbox/<workspace>/ of a shared git repository in sync with the
    remote without touching anyone else's files.
    """
    pass


@cli.command()
@repo_option
@workspace_option
@config_option
@click.option("--remote", help="Remote to sync with (default: origin).")
@click.option("--branch", help="Shared branch (default: current branch).")
@click.option(
    "--max-attempts",
    type=click.IntRange(1, 10),
    help="Push attempts before giving up on contention (default: 3).",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Only report problems (for cron).")
def run(
    repo: Path | None,
    workspace: str | None,
    config_file: Path | None,
    remote: str | None,
    branch: str | None,
    max_attempts: int | None,
    verbose: bool,
    quiet: bool,
) -> None:
    """Synchronize this workspace's sandbox with the remote once.

    Exit status is 0 on success (including nothing to do), 2 on a conflict
    that needs a human, 3 when the push kept being rejected, 4 when the
    remote is unreachable, 5 on a scope violation, 6 when another run is
    still active and 1 for any other error.

    Examples:

        sandbox-sync run

        sandbox-sync run --workspace alice-machine --max-attempts 5 -v
    """
    if verbose and quiet:
        raise click.UsageError("Cannot use --verbose and --quiet together.")

    config = _load_config(
        repo,
        workspace,
        config_file,
        overrides={"remote": remote, "branch": branch, "max_attempts": max_attempts},
    )

    level = config.logging.level
    if verbose:
        level = "DEBUG"
    elif quiet:
        level = "WARNING"
    setup_logging(level, config.logging.format)

    result = SandboxReconciler(config).reconcile()

    if not quiet or not result.success:
        click.echo(result.summary(), err=not result.success)
    sys.exit(result.exit_code)


@cli.command()
@repo_option
@workspace_option
@config_option
def status(repo: Path | None, workspace: str | None, config_file: Path | None) -> None:
    """Show pending sandbox changes without fetching or committing.

    Examples:

        sandbox-sync status
    """
    config = _load_config(repo, workspace, config_file)
    try:
        report = SandboxReconciler(config).status()
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Workspace: {report.workspace}")
    click.echo(f"Sandbox:   {report.sandbox_path}")
    click.echo(f"Branch:    {report.branch}")
    if report.conflicted:
        click.echo("Conflict:  unresolved rebase/merge, fix by hand before the next run")
    click.echo(f"Unpushed commits: {report.unpushed_commits}")

    click.echo(f"\nPending changes ({len(report.pending)}):")
    for path in report.pending:
        click.echo(f"  {path}")
    if report.ignored:
        click.echo(f"\nIgnored outside sandbox ({len(report.ignored)}):")
        for path in report.ignored:
            click.echo(f"  {path}")


@cli.command()
def workspace() -> None:
    """Print this machine's workspace identifier."""
    try:
        click.echo(detect_workspace_id())
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()

"""Command-line interface for forestkeeper."""

import asyncio
import logging
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from forestkeeper import __version__
from forestkeeper.cleanup import BranchCleanupEngine, CleanupReport
from forestkeeper.config import RELEASE_PREFIX, CleanupConfig, ConfigurationError
from forestkeeper.vcs.base import Checkout
from forestkeeper.vcs.git import GitCheckout
from forestkeeper.workspace import Scope, WorkspaceModel

app = typer.Typer(
    name="forestkeeper",
    help="Inspect a forest of git checkouts and clean up merged branches",
    add_completion=False,
)
console = Console()

# Error messages
NOT_A_REPOSITORY_ERROR = "[red]Not inside a Git repository: {path}[/red]"

# Help text constants
VERBOSE_OUTPUT_HELP = "Verbose output"
ENV_FILE_HELP = "Path to custom environment file (default: .env.forestkeeper or .env)"
PATH_HELP = "Any folder inside the forest (default: current directory)"


def setup_logging(verbose: bool) -> None:
    """Setup logging configuration.

    Args:
        verbose: If True, enable debug logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )

    # GitPython logs every command it runs at DEBUG
    if not verbose:
        logging.getLogger("git").setLevel(logging.WARNING)


def load_model(path: Path, max_workers: int = 8) -> WorkspaceModel:
    """Build the workspace model for the forest containing a path.

    Raises:
        SystemExit: If the path is not inside a git working tree
    """
    model = WorkspaceModel.from_path(path, max_workers=max_workers)
    if model is None:
        console.print(NOT_A_REPOSITORY_ERROR.format(path=path))
        sys.exit(1)
    return model


def resolve_checkouts(
    model: WorkspaceModel,
    path: Path,
    scope: Scope,
    family: str | None,
    group_id: str | None,
    include_root: bool,
) -> list[Checkout]:
    """Resolve a scope relative to the checkout containing a path.

    The group id defaults to that of the module at the path.

    Raises:
        SystemExit: If the path is not inside a git working tree or the scope
            needs a family or group id that is not known
    """
    calling = GitCheckout.repository(path)
    if calling is None:
        console.print(NOT_A_REPOSITORY_ERROR.format(path=path))
        sys.exit(1)

    if group_id is None:
        module = model.module_of(path)
        if module is not None:
            group_id = module.group_id

    try:
        return model.match_checkouts(
            scope,
            calling,
            include_root=include_root,
            family=family,
            group_id=group_id,
        )
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)


@app.command()
def checkouts(
    path: Path = typer.Argument(Path("."), help=PATH_HELP),
    scope: str = typer.Option(
        Scope.ALL.value,
        "--scope",
        help=f"Which checkouts to list ({', '.join(s.value for s in Scope)})",
    ),
    family: str | None = typer.Option(
        None,
        "--family",
        help="Project family for the family scopes (default: family of the module at PATH)",
    ),
    group_id: str | None = typer.Option(
        None,
        "--group-id",
        help="Group id for the same-group-id scope (default: group id of the module at PATH)",
    ),
    include_root: bool = typer.Option(
        False,
        "--include-root",
        help="Include the superproject when anything else matches",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help=VERBOSE_OUTPUT_HELP,
    ),
) -> None:
    """List the checkouts of the forest, nested ones first."""
    setup_logging(verbose)

    try:
        parsed_scope = Scope.parse(scope)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    model = load_model(path)
    matched = resolve_checkouts(model, path, parsed_scope, family, group_id, include_root)

    if not matched:
        console.print(f"[yellow]No checkouts match scope {parsed_scope.display_name}[/yellow]")
        return

    table = Table(title=f"Checkouts ({parsed_scope.display_name})")
    table.add_column("Checkout")
    table.add_column("Branch")
    table.add_column("Dirty")
    table.add_column("Modules", justify="right")
    for checkout in matched:
        if model.is_detached_head(checkout):
            branch = "[yellow](detached)[/yellow]"
        else:
            branch = model.branch_for(checkout) or ""
        dirty = "[red]yes[/red]" if model.is_dirty(checkout) else "no"
        table.add_row(checkout.logging_name, branch, dirty, str(len(model.modules_within(checkout))))
    console.print(table)


def _display_cleanup_report(report: CleanupReport) -> None:
    """Display the result of a cleanup run.

    Args:
        report: Cleanup report to display
    """
    console.print("\n[bold]Cleanup Summary:[/bold]")
    if report.nothing_to_do:
        console.print("  Nothing to do.")
    elif not report.acknowledged:
        console.print("  [yellow]Pretend mode - nothing was deleted. Would delete:[/yellow]")
        for target in report.would_delete:
            console.print(f"    {target}")
    else:
        console.print(f"  [green]Remote branches deleted: {len(report.remote_deleted)}[/green]")
        for target in report.remote_deleted:
            console.print(f"    {target}")
        console.print(f"  [green]Local branches deleted: {len(report.local_deleted)}[/green]")
        for target in report.local_deleted:
            console.print(f"    {target}")

    if report.warnings:
        console.print("\n[bold]Warnings:[/bold]")
        for warning in report.warnings:
            console.print(f"  [yellow]{warning}[/yellow]")
    if report.failures:
        console.print("\n[bold]Failures:[/bold]")
        for failure in report.failures:
            console.print(f"  [red]{failure}[/red]")


@app.command()
def cleanup(
    path: Path = typer.Argument(Path("."), help=PATH_HELP),
    scope: str | None = typer.Option(
        None,
        "--scope",
        help=f"Which checkouts to clean ({', '.join(s.value for s in Scope)}, default: every checkout)",
    ),
    family: str | None = typer.Option(
        None,
        "--family",
        help="Project family for the family scopes (default: family of the module at PATH)",
    ),
    group_id: str | None = typer.Option(
        None,
        "--group-id",
        help="Group id for the same-group-id scope (default: group id of the module at PATH)",
    ),
    include_root: bool = typer.Option(
        False,
        "--include-root",
        help="Include the superproject when anything else matches",
    ),
    safe_branches: list[str] | None = typer.Option(
        None,
        "--safe-branch",
        "-s",
        help="Branch that merged work lands in (repeatable, default: develop and release/current)",
    ),
    protected_branches: list[str] | None = typer.Option(
        None,
        "--protected",
        "-P",
        help="Branch never to delete (repeatable)",
    ),
    protected_patterns: list[str] | None = typer.Option(
        None,
        "--pattern",
        "-p",
        help="Regular expression for branches never to delete (repeatable)",
    ),
    acknowledged: bool = typer.Option(
        False,
        "--i-understand-the-risks",
        help="Really delete branches; otherwise only report what would be deleted",
    ),
    remote: bool | None = typer.Option(
        None,
        "--remote/--no-remote",
        help="Delete merged remote branches",
    ),
    local: bool | None = typer.Option(
        None,
        "--local/--no-local",
        help="Delete merged local-only branches",
    ),
    env_file: str | None = typer.Option(
        None,
        "--env-file",
        help=ENV_FILE_HELP,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help=VERBOSE_OUTPUT_HELP,
    ),
) -> None:
    """Delete branches whose work is already on a safe branch.

    Remote branches are deleted first, together with their local counterparts,
    then local-only branches. Without --i-understand-the-risks nothing is
    deleted.
    """
    setup_logging(verbose)

    parsed_scope = None
    if scope is not None:
        try:
            parsed_scope = Scope.parse(scope)
        except ValueError as e:
            console.print(f"[red]{e}[/red]")
            sys.exit(1)

    overrides: dict[str, object] = {}
    if safe_branches:
        overrides["safe_branches"] = set(safe_branches)
    if protected_branches:
        overrides["protected_branches"] = set(protected_branches)
    if protected_patterns:
        overrides["protected_patterns"] = protected_patterns
    if acknowledged:
        overrides["acknowledged"] = True
    if remote is not None:
        overrides["cleanup_remote"] = remote
    if local is not None:
        overrides["cleanup_local"] = local

    try:
        # Load configuration
        config = CleanupConfig(env_file=env_file, **overrides)

        model = load_model(path, config.max_workers)
        selected = None
        if parsed_scope is not None:
            selected = resolve_checkouts(model, path, parsed_scope, family, group_id, include_root)
        engine = BranchCleanupEngine(config, model, selected)

        report = asyncio.run(engine.run())
        _display_cleanup_report(report)

    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if verbose:
            console.print_exception()
        sys.exit(1)


@app.command()
def config(
    env_file: str | None = typer.Option(
        None,
        "--env-file",
        help=ENV_FILE_HELP,
    ),
) -> None:
    """Show current cleanup configuration."""
    try:
        cfg = CleanupConfig(env_file=env_file)
        console.print("[bold]Current Configuration:[/bold]\n")
        source = env_file or CleanupConfig.find_env_file()
        console.print(f"  Env File: {source or '(none)'}")
        console.print(f"  Safe Branches: {', '.join(sorted(cfg.safe_branches))}")
        console.print(f"  Protected Branches: {', '.join(sorted(cfg.all_protected_branches))}")
        console.print(f"  Protected Prefix: {RELEASE_PREFIX}*")
        if cfg.protected_patterns:
            console.print(f"  Protected Patterns: {', '.join(cfg.protected_patterns)}")
        console.print(f"  Acknowledged: {cfg.acknowledged}")
        console.print(f"  Remote Cleanup: {cfg.cleanup_remote}")
        console.print(f"  Local Cleanup: {cfg.cleanup_local}")
        console.print(f"  Max Workers: {cfg.max_workers}")
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"forestkeeper version {__version__}")


if __name__ == "__main__":
    app()

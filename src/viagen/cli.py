"""Command-line interface for viagen."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer
from rich import print
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from . import __version__
from .config import ConfigManager, Settings
from .errors import ViagenError
from .files import EditableWorkspace
from .git import ChangeTracker

app = typer.Typer(
    name="viagen",
    help="Serve an allow-listed view of your project and its git changes to an AI coding assistant.",
    rich_markup_mode="rich",
)
console = Console()

STATUS_STYLES = {
    "M": "yellow",
    "A": "green",
    "D": "red",
    "R": "cyan",
    "?": "magenta",
}


def version_callback(value: bool):
    """Show version and exit."""
    if value:
        print(f"[cyan]viagen[/cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
):
    """
    Viagen - secure workspace access for AI coding assistants.
    """
    pass


def _load_settings(project_root: Optional[Path], editable: Optional[List[str]] = None) -> Settings:
    """Resolve settings for a project from options, saved patterns and environment."""
    config_manager = ConfigManager()
    return config_manager.load_settings(project_root, editable=editable or None)


def _configure_logging(log_file: Path, level: str):
    """Log to the state directory and stdout."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stdout)
        ]
    )


@app.command(name="serve", help="Start the workspace access server")
def serve(
    project_root: Optional[Path] = typer.Option(
        None,
        "--project-root",
        "-r",
        help="Project directory (defaults to current directory)",
    ),
    editable: Optional[List[str]] = typer.Option(
        None,
        "--editable",
        "-e",
        help="File or directory the agent may edit; repeat for several",
    ),
    host: Optional[str] = typer.Option(None, "--host", help="Interface to bind"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to bind"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
):
    """Run the FastAPI application under uvicorn."""
    import uvicorn

    from .server import create_app

    config_manager = ConfigManager()
    settings = config_manager.load_settings(
        project_root,
        editable=editable or None,
        host=host,
        port=port,
        log_level=log_level,
    )

    if not settings.project_root.is_dir():
        print(f"[red]Error:[/red] {settings.project_root} is not a valid directory")
        raise typer.Exit(1)

    _configure_logging(config_manager.log_file, settings.log_level)
    logger = logging.getLogger(__name__)
    logger.info(f"Starting viagen on {settings.host}:{settings.port}")

    print(f"[green]Serving[/green] {settings.project_root}")
    print(f"[cyan]Editable:[/cyan] {', '.join(settings.editable)}")
    print(f"[cyan]Logs:[/cyan] {config_manager.log_file}")

    try:
        uvicorn.run(
            create_app(settings),
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower(),
        )
    except KeyboardInterrupt:
        logger.info("Server stopped by user")


@app.command(name="init", help="Save editable patterns for a project")
def init_project(
    editable: List[str] = typer.Argument(..., help="Files or directories, relative to the project root"),
    project_root: Optional[Path] = typer.Option(
        None,
        "--project-root",
        "-r",
        help="Project directory (defaults to current directory)",
    ),
):
    """Store editable patterns so later commands pick them up."""
    path = (project_root or Path.cwd()).resolve()
    if not path.is_dir():
        print(f"[red]Error:[/red] {path} is not a valid directory")
        raise typer.Exit(1)

    config_manager = ConfigManager()
    config_manager.set_editable(path, editable)
    print(f"[green]Saved editable patterns for[/green] {path}")

    missing = [p for p in editable if not (path / p).exists()]
    if missing:
        print(f"[yellow]Not on disk yet (still writable):[/yellow] {', '.join(missing)}")


@app.command(name="files", help="List files the agent may edit")
def list_files(
    project_root: Optional[Path] = typer.Option(None, "--project-root", "-r", help="Project directory"),
    editable: Optional[List[str]] = typer.Option(None, "--editable", "-e", help="Editable file or directory"),
):
    """Show the expanded editable file list."""
    settings = _load_settings(project_root, editable)
    workspace = EditableWorkspace(settings.project_root, settings.editable)
    files = workspace.list_files()

    if not files:
        print("[yellow]No editable files found[/yellow]")
        return

    table = Table(title=f"Editable files in {settings.project_root}")
    table.add_column("Path", style="cyan")
    for path in files:
        table.add_row(path)

    console.print(table)


@app.command(name="check", help="Check whether the agent may access a path")
def check_path(
    path: str = typer.Argument(..., help="Path relative to the project root"),
    project_root: Optional[Path] = typer.Option(None, "--project-root", "-r", help="Project directory"),
    editable: Optional[List[str]] = typer.Option(None, "--editable", "-e", help="Editable file or directory"),
):
    """Exit with status 1 when the path is outside the editable list."""
    settings = _load_settings(project_root, editable)
    workspace = EditableWorkspace(settings.project_root, settings.editable)

    if workspace.is_allowed(path):
        print(f"[green]✓ Allowed:[/green] {path}")
    else:
        print(f"[red]✗ Not in editable list:[/red] {path}")
        raise typer.Exit(1)


@app.command(name="status", help="Show uncommitted changes")
def show_status(
    project_root: Optional[Path] = typer.Option(None, "--project-root", "-r", help="Project directory"),
):
    """Show changed files with insertion and deletion counts."""
    settings = _load_settings(project_root)
    status = asyncio.run(ChangeTracker(settings.project_root).status())

    if not status.git:
        print("[yellow]Not inside a git repository[/yellow]")
        return

    if not status.files:
        print("[green]Working tree clean[/green]")
        return

    table = Table(title="Changed files")
    table.add_column("Status", justify="center")
    table.add_column("Path", style="cyan")
    table.add_column("+", justify="right", style="green")
    table.add_column("-", justify="right", style="red")

    for changed in status.files:
        style = STATUS_STYLES.get(changed.status, "white")
        table.add_row(
            f"[{style}]{changed.status}[/{style}]",
            changed.path,
            str(changed.insertions),
            str(changed.deletions),
        )

    console.print(table)
    if status.degraded:
        print("[yellow]Line counts unavailable; showing 0 for every file[/yellow]")
    else:
        print(f"[green]+{status.insertions}[/green] [red]-{status.deletions}[/red]")


@app.command(name="diff", help="Show the diff for the tree or one file")
def show_diff(
    path: Optional[str] = typer.Argument(None, help="Path relative to the repository root"),
    project_root: Optional[Path] = typer.Option(None, "--project-root", "-r", help="Project directory"),
):
    """Print staged and unstaged changes."""
    settings = _load_settings(project_root)
    tracker = ChangeTracker(settings.project_root)

    try:
        result = asyncio.run(tracker.diff(path))
    except ViagenError as e:
        print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)

    if not result.git:
        print("[yellow]Not inside a git repository[/yellow]")
        return

    if not result.diff:
        print("[cyan]No changes[/cyan]")
        return

    console.print(Syntax(result.diff, "diff", theme="ansi_dark", word_wrap=True))


if __name__ == "__main__":
    app()
